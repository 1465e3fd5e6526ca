"""Domain Gateway Interfaces"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from domain.entities import Payment
from domain.value_objects import PaymentRequestData, PaymentResult


class PaymentGateway(ABC):
    """Payment processing boundary; implementations are interchangeable"""

    @abstractmethod
    async def authorize(self, request: PaymentRequestData) -> PaymentResult:
        """Charge the booking amount and return the authoritative status"""
        pass

    @abstractmethod
    async def refund(self, payment_id: UUID, amount: Decimal) -> PaymentResult:
        """Refund a completed payment"""
        pass

    @abstractmethod
    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        """Look up a processed payment"""
        pass
