"""Booking lifecycle orchestration

BookingLifecycle is the only component that changes Booking.status. It
composes OverlapValidator, RoomInventory, LoyaltyLedger and a PaymentGateway
into the create / pay / cancel state machine:

    PendingPayment --pay ok--> Confirmed --cancel--> Cancelled
    PendingPayment --pay failed / cancel--> Cancelled

A pending booking is persisted as CONFIRMED; "pending" is derived from the
absence of a completed payment (``payment_required``). Every mutation of
rooms or points made earlier in an operation is compensated when a later step
of the same operation fails. The one exception is awarding points after a
successful payment, which is logged and never fails the payment.
"""
import asyncio
import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel

from application.services import LoyaltyLedger, OverlapValidator, RoomInventory
from domain.auth import User
from domain.entities import Booking, Payment
from domain.enums import BookingStatus, PaymentMethod, PaymentStatus
from domain.errors import (
    BookingConflict, BookingValidationError, Forbidden, InvalidBookingState,
    NotFound, PaymentDeclined, RefundFailed, Unauthorized
)
from domain.gateways import PaymentGateway
from domain.repositories import BookingRepository, HotelRepository, PaymentRepository
from domain.value_objects import (
    CardDetails, DateRange, GuestCount, Money, PaymentRequestData, PaymentResult
)
from infrastructure.config import BookingSettings, PaymentSettings
from infrastructure.locking import KeyedLock

logger = logging.getLogger(__name__)


def card_expired(expiry_month: str, expiry_year: str, today: date) -> bool:
    """A card is valid through the last day of its expiry month; 2-digit years are 20xx"""
    try:
        month, year = int(expiry_month), int(expiry_year)
    except ValueError:
        return False
    if year < 100:
        year += 2000
    if not 1 <= month <= 12:
        return False
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, last_day) < today


class BookingView(BaseModel):
    """Read model of a booking with its derived payment and loyalty state"""
    booking: Booking
    hotel_name: str
    payment_required: bool
    payment_id: Optional[UUID] = None
    loyalty_points_earned: Optional[int] = None


class AvailabilityResult(BaseModel):
    hotel_name: str
    is_available: bool
    available_rooms: int
    requested_rooms: int = 1
    nights: int
    total_price: Decimal
    message: str


class BookingLifecycle:
    """Create / pay / cancel state machine for bookings"""

    def __init__(
        self,
        booking_repo: BookingRepository,
        hotel_repo: HotelRepository,
        payment_repo: PaymentRepository,
        overlap_validator: OverlapValidator,
        room_inventory: RoomInventory,
        loyalty_ledger: LoyaltyLedger,
        payment_gateway: PaymentGateway,
        booking_settings: Optional[BookingSettings] = None,
        payment_settings: Optional[PaymentSettings] = None
    ):
        self.booking_repo = booking_repo
        self.hotel_repo = hotel_repo
        self.payment_repo = payment_repo
        self.overlap_validator = overlap_validator
        self.room_inventory = room_inventory
        self.loyalty_ledger = loyalty_ledger
        self.payment_gateway = payment_gateway
        self.booking_settings = booking_settings or BookingSettings()
        self.payment_settings = payment_settings or PaymentSettings()
        # overlap check + reserve + persist must not interleave for one hotel
        self._schedule_locks = KeyedLock()
        # pay and cancel must not interleave for one booking
        self._booking_locks = KeyedLock()

    # ==================== CREATE ====================
    async def create_booking(
        self,
        user: Optional[User],
        hotel_id: UUID,
        check_in: date,
        check_out: date,
        number_of_guests: int,
        guest_name: str,
        guest_email: str,
        points_to_redeem: Optional[int] = None
    ) -> Booking:
        """Reserve a room and persist a booking awaiting payment"""
        hotel = await self.hotel_repo.find_by_id(hotel_id)
        if hotel is None:
            raise NotFound(f"Hotel with ID {hotel_id} does not exist.")

        errors = self._validate_booking_request(
            user, check_in, check_out, number_of_guests, guest_name, guest_email
        )
        if points_to_redeem and points_to_redeem > 0 and user is None:
            errors.append("Guest bookings cannot redeem loyalty points")
        if points_to_redeem is not None and points_to_redeem < 0:
            errors.append("Points to redeem must be zero or positive")
        if errors:
            raise BookingValidationError("; ".join(errors), errors)

        date_range = DateRange(check_in=check_in, check_out=check_out)
        user_id = user.user_id if user else None
        booking_id = uuid4()

        async with self._schedule_locks.acquire(hotel_id):
            if await self.overlap_validator.has_overlap(hotel_id, check_in, check_out):
                raise BookingConflict(
                    "The requested dates overlap an existing booking at this hotel.",
                    details={"hotel_id": str(hotel_id), "check_in": str(check_in), "check_out": str(check_out)}
                )

            hotel = await self.room_inventory.reserve(hotel_id)

            base_amount = hotel.price_per_night * date_range.nights()
            total_amount = base_amount
            points_redeemed = None
            discount_amount = None

            logger.info(
                "Booking calculation: %d nights x %s = %s",
                date_range.nights(), hotel.price_per_night, base_amount
            )

            if points_to_redeem and points_to_redeem > 0:
                try:
                    redemption = await self.loyalty_ledger.redeem(user_id, points_to_redeem, booking_id)
                except Exception:
                    logger.warning(
                        "Failed to redeem loyalty points for user %s, releasing room at hotel %s",
                        user_id, hotel_id
                    )
                    await self.room_inventory.release(hotel_id)
                    raise
                points_redeemed = redemption.points_redeemed
                discount_amount = redemption.discount_amount
                total_amount = max(Decimal("0"), base_amount - discount_amount)
                logger.info(
                    "Applied loyalty discount of %s (%d points) to booking for user %s",
                    discount_amount, points_redeemed, user_id
                )

            try:
                booking = Booking.create(
                    booking_id=booking_id,
                    hotel_id=hotel_id,
                    user_id=user_id,
                    guest_name=guest_name,
                    guest_email=guest_email,
                    date_range=date_range,
                    guest_count=GuestCount(count=number_of_guests),
                    total_amount=Money(amount=total_amount, currency=self.payment_settings.default_currency),
                    loyalty_points_redeemed=points_redeemed,
                    loyalty_discount_amount=discount_amount,
                    max_guests=self.booking_settings.max_guests
                )
                await self.booking_repo.save(booking)
            except Exception:
                logger.error("Failed to persist booking %s, compensating", booking_id)
                await self._compensate_create(user_id, booking_id, hotel_id, points_redeemed)
                raise

        logger.info("Booking %s created for user %s, payment required", booking.booking_id, user_id)
        return booking

    # ==================== PAY ====================
    async def process_payment(
        self,
        booking_id: UUID,
        user: Optional[User],
        amount: Decimal,
        currency: Optional[str] = None,
        method: PaymentMethod = PaymentMethod.CREDIT_CARD,
        card_details: Optional[CardDetails] = None
    ) -> PaymentResult:
        """Settle a booking; a failed payment cancels it and frees the room"""
        card_details = card_details or CardDetails()

        async with self._booking_locks.acquire(booking_id):
            booking = await self._get_booking(booking_id)
            self._check_access(booking, user, "pay for")

            if booking.is_cancelled():
                raise InvalidBookingState("Cannot process payment for a cancelled booking.")
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidBookingState(
                    f"Cannot process payment for a booking with status {booking.status.value}."
                )
            if await self.payment_repo.find_completed_by_booking_id(booking_id):
                raise InvalidBookingState("Payment has already been processed for this booking.")

            errors = self._validate_payment_request(booking, amount, currency, method, card_details)
            if errors:
                raise BookingValidationError("; ".join(errors), errors)

            request = PaymentRequestData(
                booking_id=booking_id,
                amount=amount,
                currency=booking.total_amount.currency,
                method=method,
                card_details=card_details
            )

            result = None
            try:
                result = await asyncio.wait_for(
                    self.payment_gateway.authorize(request),
                    timeout=self.payment_settings.gateway_timeout_seconds
                )
                reason = result.error_message or "Payment was declined"
            except asyncio.TimeoutError:
                logger.error("Payment gateway timed out for booking %s", booking_id)
                reason = "Payment gateway timed out"
            except Exception as e:
                logger.exception("Error processing payment for booking %s", booking_id)
                reason = f"Payment gateway error: {e}"

            if result is not None and result.status == PaymentStatus.COMPLETED:
                booking.mark_paid()
                await self.booking_repo.update(booking)
                await self._award_points(booking)
                logger.info("Payment %s completed for booking %s", result.transaction_id, booking_id)
                return result

            await self._void_after_failed_payment(booking)
            logger.warning("Payment failed for booking %s: %s", booking_id, reason)
            raise PaymentDeclined(reason, result)

    # ==================== CANCEL ====================
    async def cancel_booking(self, booking_id: UUID, user: Optional[User]) -> Optional[PaymentResult]:
        """Cancel a booking, refunding money first and points afterwards"""
        async with self._booking_locks.acquire(booking_id):
            booking = await self._get_booking(booking_id)
            self._check_access(booking, user, "cancel")

            if booking.is_cancelled():
                raise InvalidBookingState("Booking is already cancelled.")

            refund_result = None
            payment = await self.payment_repo.find_completed_by_booking_id(booking_id)

            if payment is not None:
                refund_result = await self._refund(booking, payment)

            booking.cancel()
            await self.booking_repo.update(booking)
            await self.room_inventory.release(booking.hotel_id)

            if booking.user_id is not None:
                if booking.has_redemption():
                    await self._refund_redeemed_points(booking)
                if payment is not None:
                    try:
                        await self.loyalty_ledger.revoke_earned_points(booking.user_id, booking.booking_id)
                    except Exception:
                        logger.warning(
                            "Failed to revoke earned loyalty points for booking %s",
                            booking_id, exc_info=True
                        )

        logger.info("Booking %s cancelled by user %s", booking_id, user.user_id)
        return refund_result

    # ==================== ADMIN ====================
    async def delete_booking(self, booking_id: UUID, user: Optional[User]) -> None:
        """Remove a booking that never had a payment"""
        if user is None:
            raise Unauthorized("You must be signed in to delete a booking.")
        if not user.is_admin:
            raise Forbidden("Only administrators can delete bookings.")

        async with self._booking_locks.acquire(booking_id):
            booking = await self._get_booking(booking_id)

            if await self.payment_repo.find_by_booking_id(booking_id):
                raise InvalidBookingState(
                    "Cannot delete booking with associated payments. Cancel the booking instead."
                )

            if booking.status == BookingStatus.CONFIRMED:
                await self.room_inventory.release(booking.hotel_id)
                if booking.user_id is not None and booking.has_redemption():
                    await self._refund_redeemed_points(booking)

            await self.booking_repo.delete(booking_id)

        logger.info("Booking %s deleted by admin %s", booking_id, user.user_id)

    # ==================== QUERIES ====================
    async def get_booking(self, booking_id: UUID, user: Optional[User]) -> Booking:
        booking = await self._get_booking(booking_id)
        self._check_access(booking, user, "access")
        return booking

    async def get_user_bookings(self, user_id: UUID) -> List[Booking]:
        bookings = await self.booking_repo.find_by_user_id(user_id)
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    async def get_all_bookings(self) -> List[Booking]:
        return await self.booking_repo.find_all()

    async def get_bookings_by_email(self, email: str) -> List[Booking]:
        return await self.booking_repo.find_by_guest_email(email)

    async def get_payment(self, payment_id: UUID, user: Optional[User]) -> Payment:
        if user is None:
            raise Unauthorized("You must be signed in to access a payment.")
        payment = await self.payment_gateway.get_payment(payment_id)
        if payment is None:
            raise NotFound(f"Payment with ID {payment_id} not found")
        booking = await self.booking_repo.find_by_id(payment.booking_id)
        if not user.is_admin and (booking is None or not booking.is_owned_by(user.user_id)):
            raise Forbidden("You can only access payments for your own bookings.")
        return payment

    async def to_view(self, booking: Booking) -> BookingView:
        """Project a booking with its derived payment and loyalty fields"""
        hotel = await self.hotel_repo.find_by_id(booking.hotel_id)
        payment = await self.payment_repo.find_completed_by_booking_id(booking.booking_id)

        loyalty_points_earned = None
        if booking.user_id is not None:
            loyalty_points_earned = await self.loyalty_ledger.earned_points_for_booking(booking.booking_id)

        return BookingView(
            booking=booking,
            hotel_name=hotel.name if hotel else "Unknown Hotel",
            payment_required=payment is None and not booking.is_cancelled(),
            payment_id=payment.payment_id if payment else None,
            loyalty_points_earned=loyalty_points_earned
        )

    async def check_availability(
        self,
        hotel_id: UUID,
        check_in: date,
        check_out: date,
        number_of_guests: int = 1
    ) -> AvailabilityResult:
        """Read-only answer to 'could this stay be booked right now?'"""
        hotel = await self.hotel_repo.find_by_id(hotel_id)
        if hotel is None:
            raise NotFound(f"Hotel with ID {hotel_id} does not exist.")

        errors = []
        if check_out <= check_in:
            errors.append("Check-out date must be after check-in date")
        if not 1 <= number_of_guests <= self.booking_settings.max_guests:
            errors.append(f"Number of guests must be between 1 and {self.booking_settings.max_guests}")
        if errors:
            raise BookingValidationError("; ".join(errors), errors)

        date_range = DateRange(check_in=check_in, check_out=check_out)
        overlap = await self.overlap_validator.has_overlap(hotel_id, check_in, check_out)

        if hotel.available_rooms <= 0:
            message = "No rooms are currently available at this hotel."
        elif overlap:
            message = "The requested dates overlap an existing booking at this hotel."
        else:
            message = "Rooms are available for the requested dates."

        return AvailabilityResult(
            hotel_name=hotel.name,
            is_available=hotel.available_rooms > 0 and not overlap,
            available_rooms=hotel.available_rooms,
            nights=date_range.nights(),
            total_price=hotel.price_for(date_range).amount,
            message=message
        )

    # ==================== PRIVATE ====================
    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repo.find_by_id(booking_id)
        if booking is None:
            raise NotFound(f"Booking with ID {booking_id} not found.")
        return booking

    @staticmethod
    def _check_access(booking: Booking, user: Optional[User], action: str) -> None:
        if user is None:
            raise Unauthorized(f"You must be signed in to {action} a booking.")
        if user.is_admin or booking.is_owned_by(user.user_id):
            return
        raise Forbidden(f"You can only {action} your own bookings.")

    def _validate_booking_request(
        self,
        user: Optional[User],
        check_in: date,
        check_out: date,
        number_of_guests: int,
        guest_name: str,
        guest_email: str
    ) -> List[str]:
        errors = Booking.validate_request(
            guest_name=guest_name,
            guest_email=guest_email,
            check_in=check_in,
            check_out=check_out,
            number_of_guests=number_of_guests,
            max_guests=self.booking_settings.max_guests
        )

        # Admins and hotel managers book on behalf of others without limits
        if user is not None and user.is_staff:
            return errors

        if check_in and check_out and check_out > check_in:
            if (check_out - check_in).days > self.booking_settings.max_stay_nights:
                errors.append(
                    f"Booking duration cannot exceed {self.booking_settings.max_stay_nights} days."
                )
        if check_in and check_in > date.today() + timedelta(days=self.booking_settings.max_advance_days):
            errors.append("Bookings cannot be made more than 1 year in advance.")
        return errors

    @staticmethod
    def _validate_payment_request(
        booking: Booking,
        amount: Decimal,
        currency: Optional[str],
        method: PaymentMethod,
        card_details: CardDetails,
        today: Optional[date] = None
    ) -> List[str]:
        errors = []
        if Decimal(amount) != booking.total_amount.amount:
            errors.append(
                f"Payment amount ({amount}) does not match booking total ({booking.total_amount.amount})."
            )
        if currency and currency.upper() != booking.total_amount.currency:
            errors.append(
                f"Payment currency ({currency}) does not match booking currency "
                f"({booking.total_amount.currency})."
            )
        if method.is_card:
            if not card_details.card_number:
                errors.append("Card number is required for card payments.")
            if not card_details.card_holder_name:
                errors.append("Card holder name is required for card payments.")
            if not card_details.expiry_month or not card_details.expiry_year:
                errors.append("Card expiry date is required for card payments.")
            elif card_expired(card_details.expiry_month, card_details.expiry_year, today or date.today()):
                errors.append("Card has expired.")
            if not card_details.cvv:
                errors.append("CVV is required for card payments.")
        return errors

    async def _award_points(self, booking: Booking) -> None:
        if booking.user_id is None:
            return
        try:
            await self.loyalty_ledger.award(
                booking.user_id, booking.booking_id, booking.total_amount.amount
            )
            logger.info(
                "Loyalty points awarded for booking %s to user %s",
                booking.booking_id, booking.user_id
            )
        except Exception:
            logger.warning(
                "Failed to award loyalty points for booking %s", booking.booking_id, exc_info=True
            )

    async def _refund(self, booking: Booking, payment: Payment) -> PaymentResult:
        """Refund the booking's payment or raise RefundFailed leaving it untouched"""
        try:
            result = await asyncio.wait_for(
                self.payment_gateway.refund(payment.payment_id, payment.amount),
                timeout=self.payment_settings.gateway_timeout_seconds
            )
        except Exception as e:
            logger.error(
                "Error processing refund for booking %s; booking left %s for reconciliation",
                booking.booking_id, booking.status.value, exc_info=True
            )
            raise RefundFailed(f"Failed to process refund: {str(e) or type(e).__name__}") from e

        if result.status != PaymentStatus.REFUNDED:
            logger.error(
                "Refund failed for booking %s: %s; booking left %s for reconciliation",
                booking.booking_id, result.error_message, booking.status.value
            )
            raise RefundFailed(f"Failed to process refund: {result.error_message}", result)

        logger.info("Refund %s processed for booking %s", result.transaction_id, booking.booking_id)
        return result

    async def _refund_redeemed_points(self, booking: Booking) -> None:
        try:
            await self.loyalty_ledger.refund_redeemed_points(
                booking.user_id, booking.booking_id, booking.loyalty_points_redeemed
            )
        except Exception:
            logger.warning(
                "Failed to refund redeemed loyalty points for booking %s",
                booking.booking_id, exc_info=True
            )

    async def _void_after_failed_payment(self, booking: Booking) -> None:
        await self.room_inventory.release(booking.hotel_id)
        booking.cancel()
        await self.booking_repo.update(booking)
        if booking.user_id is not None and booking.has_redemption():
            await self._refund_redeemed_points(booking)

    async def _compensate_create(
        self,
        user_id: Optional[UUID],
        booking_id: UUID,
        hotel_id: UUID,
        points_redeemed: Optional[int]
    ) -> None:
        if points_redeemed and user_id is not None:
            await self.loyalty_ledger.refund_redeemed_points(user_id, booking_id, points_redeemed)
        await self.room_inventory.release(hotel_id)
