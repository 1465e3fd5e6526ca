"""Mock payment gateway simulating a card processor"""
import asyncio
import logging
import random
import string
from decimal import Decimal
from typing import Optional
from uuid import UUID

from domain.entities import Payment
from domain.enums import PaymentStatus
from domain.gateways import PaymentGateway
from domain.repositories import PaymentRepository
from domain.value_objects import PaymentRequestData, PaymentResult
from infrastructure.config import PaymentSettings

logger = logging.getLogger(__name__)

DECLINED_MESSAGE = "Payment processing failed - insufficient funds or card declined"
TRANSACTION_ID_CHARS = string.ascii_uppercase + string.digits


class MockPaymentGateway(PaymentGateway):
    """Succeeds with a configured probability after a fixed delay"""

    def __init__(
        self,
        payment_repo: PaymentRepository,
        settings: Optional[PaymentSettings] = None,
        rng: Optional[random.Random] = None
    ):
        self.payment_repo = payment_repo
        self.settings = settings or PaymentSettings()
        self.rng = rng or random.Random()

    async def authorize(self, request: PaymentRequestData) -> PaymentResult:
        """Process a payment for a booking"""
        logger.info(
            "Processing %s payment for booking %s with amount %s %s (card %s)",
            request.method.value, request.booking_id, request.amount, request.currency,
            request.card_details.masked_number() or "n/a"
        )

        await self._simulate_delay(self.settings.processing_delay_ms)

        is_success = self.rng.random() < self.settings.mock_success_rate

        payment = Payment(
            booking_id=request.booking_id,
            amount=request.amount,
            currency=request.currency,
            method=request.method
        )
        if is_success:
            payment.complete(self._generate_transaction_id())
        else:
            payment.fail(self._generate_transaction_id())
        await self.payment_repo.save(payment)

        result = PaymentResult(
            payment_id=payment.payment_id,
            status=payment.status,
            transaction_id=payment.transaction_id,
            amount=payment.amount,
            currency=payment.currency,
            processed_at=payment.processed_at,
            error_message=None if is_success else DECLINED_MESSAGE
        )

        logger.info("Payment %s processed with status %s", result.transaction_id, result.status.value)
        return result

    async def refund(self, payment_id: UUID, amount: Decimal) -> PaymentResult:
        """Refund a completed payment; failures come back as FAILED results"""
        logger.info("Processing refund for payment %s with amount %s", payment_id, amount)

        payment = await self.payment_repo.find_by_id(payment_id)
        if payment is None:
            return PaymentResult(
                payment_id=payment_id,
                status=PaymentStatus.FAILED,
                error_message="Payment not found"
            )

        if payment.status != PaymentStatus.COMPLETED:
            return PaymentResult(
                payment_id=payment_id,
                status=PaymentStatus.FAILED,
                transaction_id=payment.transaction_id,
                currency=payment.currency,
                error_message="Cannot refund a payment that is not completed"
            )

        if amount > payment.amount:
            return PaymentResult(
                payment_id=payment_id,
                status=PaymentStatus.FAILED,
                transaction_id=payment.transaction_id,
                currency=payment.currency,
                error_message="Refund amount cannot exceed original payment amount"
            )

        await self._simulate_delay(self.settings.refund_delay_ms)

        is_success = self.rng.random() < self.settings.mock_refund_success_rate
        if is_success:
            payment.mark_refunded()
            await self.payment_repo.update(payment)

        result = PaymentResult(
            payment_id=payment.payment_id,
            status=PaymentStatus.REFUNDED if is_success else PaymentStatus.FAILED,
            transaction_id=payment.transaction_id,
            amount=amount,
            currency=payment.currency,
            error_message=None if is_success else "Refund processing failed - please try again later"
        )

        logger.info("Refund for payment %s processed with status %s", payment_id, result.status.value)
        return result

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        return await self.payment_repo.find_by_id(payment_id)

    @staticmethod
    async def _simulate_delay(delay_ms: int) -> None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    def _generate_transaction_id(self) -> str:
        """Generate a 12-character alphanumeric transaction ID"""
        return ''.join(self.rng.choices(TRANSACTION_ID_CHARS, k=12))
