"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Any, Optional

from domain.enums import PaymentMethod, UserRole


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    hotel_id: UUID
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    guest_name: str
    guest_email: str
    points_to_redeem: Optional[int] = Field(None, description="Loyalty points to apply as a discount")


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    hotel_id: UUID
    hotel_name: str
    user_id: Optional[UUID] = None
    guest_name: str
    guest_email: str
    check_in_date: date
    check_out_date: date
    nights: int
    number_of_guests: int
    total_amount: Decimal
    currency: str
    status: str
    payment_required: bool
    payment_id: Optional[UUID] = None
    loyalty_points_redeemed: Optional[int] = None
    loyalty_discount_amount: Optional[Decimal] = None
    loyalty_points_earned: Optional[int] = None
    created_at: datetime
    modified_at: datetime
    version: int


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class PaymentRequest(BaseModel):
    """Process payment request DTO"""
    amount: Decimal = Field(ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    card_number: Optional[str] = Field(None, min_length=13, max_length=19)
    card_holder_name: Optional[str] = Field(None, max_length=100)
    expiry_month: Optional[str] = Field(None, pattern=r"^(0[1-9]|1[0-2])$")
    expiry_year: Optional[str] = Field(None, pattern=r"^\d{4}$")
    cvv: Optional[str] = Field(None, pattern=r"^\d{3,4}$")


class PaymentResultResponse(BaseModel):
    """Payment or refund outcome DTO"""
    payment_id: Optional[UUID] = None
    status: str
    transaction_id: str
    amount: Decimal
    currency: str
    error_message: Optional[str] = None
    processed_at: datetime


class PaymentResponse(BaseModel):
    """Stored payment DTO"""
    payment_id: UUID
    booking_id: UUID
    amount: Decimal
    currency: str
    payment_method: str
    status: str
    transaction_id: str
    processed_at: Optional[datetime] = None
    created_at: datetime


# ============================================================================
# LOYALTY SCHEMAS
# ============================================================================

class LoyaltyAccountResponse(BaseModel):
    """Loyalty account DTO"""
    account_id: UUID
    user_id: UUID
    points_balance: int
    total_points_earned: int
    last_updated: datetime


class PointsTransactionResponse(BaseModel):
    """Ledger entry DTO"""
    transaction_id: UUID
    booking_id: Optional[UUID] = None
    points_earned: int
    transaction_type: str
    description: str
    created_at: datetime


class PointsCalculationResponse(BaseModel):
    booking_amount: Decimal
    points_earned: int
    points_percentage: Decimal
    minimum_booking_amount: Decimal


# ============================================================================
# HOTEL SCHEMAS
# ============================================================================

class AvailabilityResponse(BaseModel):
    """Availability check DTO"""
    hotel_id: UUID
    hotel_name: str
    check_in_date: date
    check_out_date: date
    is_available: bool
    available_rooms: int
    requested_rooms: int
    nights: int
    total_price: Decimal
    message: str


# ============================================================================
# ERROR SCHEMAS
# ============================================================================

class ErrorResponse(BaseModel):
    """Error envelope returned for every booking error"""
    kind: str
    message: str
    details: Optional[Any] = None
    status_code: int
    timestamp: datetime
    payment: Optional[PaymentResultResponse] = None


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None
    role: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool
