"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    PAYPAL = "PAYPAL"
    BANK_TRANSFER = "BANK_TRANSFER"

    @property
    def is_card(self) -> bool:
        return self in (PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD)


class PointsTransactionType(str, Enum):
    EARN = "EARN"
    REDEEM = "REDEEM"
    REFUND = "REFUND"
    REVOKE = "REVOKE"


class UserRole(str, Enum):
    GUEST = "GUEST"
    HOTEL_MANAGER = "HOTEL_MANAGER"
    ADMIN = "ADMIN"
