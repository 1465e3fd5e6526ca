"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID
from typing import Optional

from domain.enums import PaymentMethod, PaymentStatus


class DateRange(BaseModel):
    """Value Object for a half-open stay interval [check_in, check_out)"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, check_in: date, check_out: date) -> bool:
        """Half-open intersection; touching ranges do not overlap"""
        return self.check_in < check_out and self.check_out > check_in

    class Config:
        frozen = True


class Money(BaseModel):
    """Value Object for monetary amounts"""
    amount: Decimal = Field(ge=0)
    currency: str = "INR"

    class Config:
        frozen = True


class GuestCount(BaseModel):
    """Value Object for number of guests on a booking; the upper bound is a booking rule"""
    count: int = Field(ge=1)

    class Config:
        frozen = True


class CardDetails(BaseModel):
    """Card data handed to the payment gateway, never persisted"""
    card_number: Optional[str] = None
    card_holder_name: Optional[str] = None
    expiry_month: Optional[str] = None
    expiry_year: Optional[str] = None
    cvv: Optional[str] = None

    class Config:
        frozen = True

    def masked_number(self) -> Optional[str]:
        if not self.card_number:
            return None
        return f"****{self.card_number[-4:]}"


class PaymentRequestData(BaseModel):
    """Authorization request passed to a PaymentGateway"""
    booking_id: UUID
    amount: Decimal = Field(ge=0)
    currency: str = "INR"
    method: PaymentMethod = PaymentMethod.CREDIT_CARD
    card_details: CardDetails = Field(default_factory=CardDetails)

    class Config:
        frozen = True


class PaymentResult(BaseModel):
    """Authoritative outcome of an authorize or refund call"""
    payment_id: Optional[UUID] = None
    status: PaymentStatus
    transaction_id: str = ""
    amount: Decimal = Decimal("0")
    currency: str = "INR"
    error_message: Optional[str] = None
    processed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


class RedemptionResult(BaseModel):
    """Outcome of converting loyalty points into a discount"""
    points_redeemed: int
    discount_amount: Decimal
    remaining_balance: int
    message: str = ""

    class Config:
        frozen = True
