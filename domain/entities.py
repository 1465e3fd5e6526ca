"""Domain Entities - Aggregates"""
import re
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional, List
from decimal import Decimal

from domain.enums import BookingStatus, PaymentMethod, PaymentStatus, PointsTransactionType
from domain.errors import BookingValidationError, CapacityExceeded, InvalidBookingState
from domain.value_objects import DateRange, GuestCount, Money


GUEST_NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-\.]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Hotel(BaseModel):
    """Catalog view of a hotel as seen by the booking lifecycle"""

    hotel_id: UUID = Field(default_factory=uuid4)
    name: str
    price_per_night: Decimal = Field(ge=0)
    available_rooms: int = Field(ge=0)
    total_rooms: int = Field(ge=0)
    version: int = 1

    class Config:
        from_attributes = True

    def take_room(self) -> None:
        """Decrement the room counter, never below zero"""
        if self.available_rooms <= 0:
            raise CapacityExceeded(f"No rooms are currently available at {self.name}.")
        self.available_rooms -= 1
        self.version += 1

    def return_room(self) -> None:
        """Put a previously taken room back"""
        self.available_rooms = min(self.available_rooms + 1, self.total_rooms)
        self.version += 1

    def price_for(self, date_range: DateRange) -> Money:
        return Money(amount=self.price_per_night * date_range.nights())


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)

    # References to other contexts
    hotel_id: UUID
    user_id: Optional[UUID] = None

    # Guest contact
    guest_name: str
    guest_email: str

    # Value Objects
    date_range: DateRange
    guest_count: GuestCount
    total_amount: Money

    # Loyalty
    loyalty_points_redeemed: Optional[int] = None
    loyalty_discount_amount: Optional[Decimal] = None

    status: BookingStatus = BookingStatus.CONFIRMED

    # Metadata
    created_at: datetime = Field(default_factory=_now)
    modified_at: datetime = Field(default_factory=_now)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        hotel_id: UUID,
        user_id: Optional[UUID],
        guest_name: str,
        guest_email: str,
        date_range: DateRange,
        guest_count: GuestCount,
        total_amount: Money,
        loyalty_points_redeemed: Optional[int] = None,
        loyalty_discount_amount: Optional[Decimal] = None,
        booking_id: Optional[UUID] = None,
        max_guests: int = 10
    ) -> "Booking":
        """Create new booking; payment is still outstanding at this point"""
        errors = Booking.validate_request(
            guest_name=guest_name,
            guest_email=guest_email,
            check_in=date_range.check_in,
            check_out=date_range.check_out,
            number_of_guests=guest_count.count,
            max_guests=max_guests,
        )
        if errors:
            raise BookingValidationError("; ".join(errors), errors)

        return Booking(
            booking_id=booking_id or uuid4(),
            hotel_id=hotel_id,
            user_id=user_id,
            guest_name=guest_name.strip(),
            guest_email=guest_email.strip(),
            date_range=date_range,
            guest_count=guest_count,
            total_amount=total_amount,
            loyalty_points_redeemed=loyalty_points_redeemed,
            loyalty_discount_amount=loyalty_discount_amount,
            status=BookingStatus.CONFIRMED
        )

    @staticmethod
    def validate_request(
        guest_name: Optional[str],
        guest_email: Optional[str],
        check_in: Optional[date],
        check_out: Optional[date],
        number_of_guests: Optional[int],
        max_guests: int = 10,
        today: Optional[date] = None
    ) -> List[str]:
        """Return every business-rule violation of a booking request"""
        errors = []
        today = today or date.today()

        if check_in is None or check_out is None:
            errors.append("Check-in and check-out dates are required")
        else:
            if check_out <= check_in:
                errors.append("Check-out date must be after check-in date")
            if check_in < today:
                errors.append("Check-in date must be today or later")

        if number_of_guests is None or not 1 <= number_of_guests <= max_guests:
            errors.append(f"Number of guests must be between 1 and {max_guests}")

        name = (guest_name or "").strip()
        if not name:
            errors.append("Guest name is required")
        elif not 2 <= len(name) <= 100:
            errors.append("Guest name must be between 2 and 100 characters")
        elif not GUEST_NAME_PATTERN.match(name):
            errors.append("Guest name can only contain letters, spaces, hyphens, and periods")

        email = (guest_email or "").strip()
        if not email:
            errors.append("Guest email is required")
        elif len(email) > 255 or not EMAIL_PATTERN.match(email):
            errors.append("Please provide a valid email address")

        return errors

    # ==================== STATE TRANSITION METHODS ====================
    def mark_paid(self) -> None:
        """Record that a completed payment now backs this booking"""
        if self.status != BookingStatus.CONFIRMED:
            raise InvalidBookingState(
                f"Cannot process payment for a booking with status {self.status.value}"
            )
        self._touch()

    def cancel(self) -> None:
        """Cancel booking; CANCELLED is terminal"""
        if self.status == BookingStatus.CANCELLED:
            raise InvalidBookingState("Booking is already cancelled.")
        self.status = BookingStatus.CANCELLED
        self._touch()

    # ==================== QUERY METHODS ====================
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    def is_owned_by(self, user_id: Optional[UUID]) -> bool:
        return self.user_id is not None and self.user_id == user_id

    def has_redemption(self) -> bool:
        return bool(self.loyalty_points_redeemed and self.loyalty_points_redeemed > 0)

    def get_nights(self) -> int:
        return self.date_range.nights()

    def _touch(self) -> None:
        self.modified_at = _now()
        self.version += 1


class Payment(BaseModel):
    """Payment record produced by a payment gateway"""

    payment_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    amount: Decimal = Field(ge=0)
    currency: str = "INR"
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str = ""
    processed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)

    class Config:
        from_attributes = True

    def complete(self, transaction_id: str) -> None:
        self.status = PaymentStatus.COMPLETED
        self.transaction_id = transaction_id
        self.processed_at = _now()

    def fail(self, transaction_id: str) -> None:
        self.status = PaymentStatus.FAILED
        self.transaction_id = transaction_id
        self.processed_at = _now()

    def mark_refunded(self) -> None:
        if self.status != PaymentStatus.COMPLETED:
            raise InvalidBookingState("Cannot refund a payment that is not completed")
        self.status = PaymentStatus.REFUNDED
        self.processed_at = _now()


class LoyaltyAccount(BaseModel):
    """Loyalty Aggregate Root; balance is the running sum of its ledger"""

    account_id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    points_balance: int = Field(ge=0, default=0)
    total_points_earned: int = Field(ge=0, default=0)
    last_updated: datetime = Field(default_factory=_now)

    class Config:
        from_attributes = True

    def credit(self, points: int, earned: bool = False) -> None:
        self.points_balance += points
        if earned:
            self.total_points_earned += points
        self.last_updated = _now()

    def debit(self, points: int) -> None:
        if points > self.points_balance:
            raise ValueError("Debit would make the points balance negative")
        self.points_balance -= points
        self.last_updated = _now()

    def correct_total_earned(self, points: int) -> None:
        self.total_points_earned = max(0, self.total_points_earned - points)
        self.last_updated = _now()


class PointsTransaction(BaseModel):
    """Append-only ledger entry"""

    transaction_id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    booking_id: Optional[UUID] = None
    points_earned: int
    transaction_type: PointsTransactionType
    description: str
    created_at: datetime = Field(default_factory=_now)

    class Config:
        from_attributes = True
        frozen = True
