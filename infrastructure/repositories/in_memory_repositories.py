"""In-Memory Repository Implementations"""
from typing import Optional, List, Dict
from uuid import UUID

from domain.repositories import (
    HotelRepository, BookingRepository, PaymentRepository,
    LoyaltyAccountRepository, PointsTransactionRepository
)
from domain.entities import Hotel, Booking, Payment, LoyaltyAccount, PointsTransaction
from domain.enums import PaymentStatus, PointsTransactionType


class InMemoryHotelRepository(HotelRepository):
    """In-memory implementation of HotelRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Hotel] = {}

    async def save(self, hotel: Hotel) -> Hotel:
        """Save hotel to memory"""
        self._storage[hotel.hotel_id] = hotel
        return hotel

    async def find_by_id(self, hotel_id: UUID) -> Optional[Hotel]:
        """Find hotel by ID"""
        return self._storage.get(hotel_id)

    async def find_all(self) -> List[Hotel]:
        """Find all hotels"""
        return list(self._storage.values())

    def load(self, hotel: Hotel) -> None:
        """Put a catalog hotel in place, replacing any previous copy"""
        self._storage[hotel.hotel_id] = hotel

    async def update(self, hotel: Hotel) -> Hotel:
        """Update hotel"""
        if hotel.hotel_id in self._storage:
            self._storage[hotel.hotel_id] = hotel
            return hotel
        raise ValueError("Hotel not found")


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        """Save booking to memory"""
        self._storage[booking.booking_id] = booking
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        return self._storage.get(booking_id)

    async def find_by_hotel_id(self, hotel_id: UUID) -> List[Booking]:
        """Find bookings for a hotel"""
        return [b for b in self._storage.values() if b.hotel_id == hotel_id]

    async def find_by_user_id(self, user_id: UUID) -> List[Booking]:
        """Find bookings made by a user"""
        return [b for b in self._storage.values() if b.user_id == user_id]

    async def find_by_guest_email(self, email: str) -> List[Booking]:
        """Find bookings by guest email"""
        wanted = email.lower()
        return [b for b in self._storage.values() if b.guest_email.lower() == wanted]

    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        return list(self._storage.values())

    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        if booking.booking_id in self._storage:
            self._storage[booking.booking_id] = booking
            return booking
        raise ValueError("Booking not found")

    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        if booking_id in self._storage:
            del self._storage[booking_id]
            return True
        return False


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        """Save payment to memory"""
        self._storage[payment.payment_id] = payment
        return payment

    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        return self._storage.get(payment_id)

    async def find_by_booking_id(self, booking_id: UUID) -> List[Payment]:
        """Find all payments for a booking"""
        return [p for p in self._storage.values() if p.booking_id == booking_id]

    async def find_completed_by_booking_id(self, booking_id: UUID) -> Optional[Payment]:
        """Find the completed payment for a booking"""
        for payment in self._storage.values():
            if payment.booking_id == booking_id and payment.status == PaymentStatus.COMPLETED:
                return payment
        return None

    async def update(self, payment: Payment) -> Payment:
        """Update payment"""
        if payment.payment_id in self._storage:
            self._storage[payment.payment_id] = payment
            return payment
        raise ValueError("Payment not found")


class InMemoryLoyaltyAccountRepository(LoyaltyAccountRepository):
    """In-memory implementation of LoyaltyAccountRepository"""

    def __init__(self):
        self._storage: Dict[UUID, LoyaltyAccount] = {}

    async def save(self, account: LoyaltyAccount) -> LoyaltyAccount:
        """Save loyalty account; one account per user"""
        existing = self._storage.get(account.user_id)
        if existing and existing.account_id != account.account_id:
            raise ValueError("Loyalty account already exists for this user")
        self._storage[account.user_id] = account
        return account

    async def find_by_user_id(self, user_id: UUID) -> Optional[LoyaltyAccount]:
        """Find loyalty account by user ID"""
        return self._storage.get(user_id)

    async def update(self, account: LoyaltyAccount) -> LoyaltyAccount:
        """Update loyalty account"""
        if account.user_id in self._storage:
            self._storage[account.user_id] = account
            return account
        raise ValueError("Loyalty account not found")


class InMemoryPointsTransactionRepository(PointsTransactionRepository):
    """In-memory append-only ledger"""

    def __init__(self):
        self._entries: List[PointsTransaction] = []

    async def append(self, transaction: PointsTransaction) -> PointsTransaction:
        """Append ledger entry"""
        self._entries.append(transaction)
        return transaction

    async def find_by_account_id(self, account_id: UUID) -> List[PointsTransaction]:
        """Find ledger entries for an account, oldest first"""
        return [t for t in self._entries if t.account_id == account_id]

    async def find_by_booking(
        self,
        booking_id: UUID,
        transaction_type: Optional[PointsTransactionType] = None
    ) -> List[PointsTransaction]:
        """Find ledger entries tagged with a booking"""
        return [
            t for t in self._entries
            if t.booking_id == booking_id
            and (transaction_type is None or t.transaction_type == transaction_type)
        ]
