"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID

from domain.entities import Hotel, Booking, Payment, LoyaltyAccount, PointsTransaction
from domain.enums import PointsTransactionType


class HotelRepository(ABC):
    """Repository interface for the hotel catalog collaborator"""

    @abstractmethod
    async def save(self, hotel: Hotel) -> Hotel:
        """Save hotel"""
        pass

    @abstractmethod
    async def find_by_id(self, hotel_id: UUID) -> Optional[Hotel]:
        """Find hotel by ID"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Hotel]:
        """Find all hotels"""
        pass

    @abstractmethod
    async def update(self, hotel: Hotel) -> Hotel:
        """Update hotel"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Save booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_hotel_id(self, hotel_id: UUID) -> List[Booking]:
        """Find bookings for a hotel"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> List[Booking]:
        """Find bookings made by a user"""
        pass

    @abstractmethod
    async def find_by_guest_email(self, email: str) -> List[Booking]:
        """Find bookings by guest email, case-insensitive"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        pass

    @abstractmethod
    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        pass


class PaymentRepository(ABC):
    """Repository interface for Payment records"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """Save payment"""
        pass

    @abstractmethod
    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        pass

    @abstractmethod
    async def find_by_booking_id(self, booking_id: UUID) -> List[Payment]:
        """Find all payments for a booking"""
        pass

    @abstractmethod
    async def find_completed_by_booking_id(self, booking_id: UUID) -> Optional[Payment]:
        """Find the completed payment for a booking, if any"""
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        """Update payment"""
        pass


class LoyaltyAccountRepository(ABC):
    """Repository interface for LoyaltyAccount Aggregate"""

    @abstractmethod
    async def save(self, account: LoyaltyAccount) -> LoyaltyAccount:
        """Save loyalty account"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> Optional[LoyaltyAccount]:
        """Find loyalty account by user ID"""
        pass

    @abstractmethod
    async def update(self, account: LoyaltyAccount) -> LoyaltyAccount:
        """Update loyalty account"""
        pass


class PointsTransactionRepository(ABC):
    """Repository interface for the append-only points ledger"""

    @abstractmethod
    async def append(self, transaction: PointsTransaction) -> PointsTransaction:
        """Append ledger entry"""
        pass

    @abstractmethod
    async def find_by_account_id(self, account_id: UUID) -> List[PointsTransaction]:
        """Find ledger entries for an account, oldest first"""
        pass

    @abstractmethod
    async def find_by_booking(
        self,
        booking_id: UUID,
        transaction_type: Optional[PointsTransactionType] = None
    ) -> List[PointsTransaction]:
        """Find ledger entries tagged with a booking"""
        pass
