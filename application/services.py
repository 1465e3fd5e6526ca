"""Application Services - booking lifecycle collaborators

OverlapValidator, RoomInventory and LoyaltyLedger each own one piece of
shared state. Mutations are serialised per key (hotel or user) with an
in-process KeyedLock.
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_FLOOR
from typing import List, Optional
from uuid import UUID

from domain.entities import Hotel, LoyaltyAccount, PointsTransaction
from domain.enums import PointsTransactionType
from domain.errors import InsufficientPoints, InvalidAmount, NotFound
from domain.repositories import (
    BookingRepository, HotelRepository, LoyaltyAccountRepository, PointsTransactionRepository
)
from domain.value_objects import RedemptionResult
from infrastructure.config import LoyaltySettings
from infrastructure.locking import KeyedLock

logger = logging.getLogger(__name__)


class OverlapValidator:
    """Decides whether a date range collides with live bookings of a hotel"""

    def __init__(self, booking_repo: BookingRepository):
        self.booking_repo = booking_repo

    async def has_overlap(
        self,
        hotel_id: UUID,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[UUID] = None
    ) -> bool:
        """True if any non-cancelled booking intersects [check_in, check_out)"""
        bookings = await self.booking_repo.find_by_hotel_id(hotel_id)
        for booking in bookings:
            if booking.is_cancelled():
                continue
            if exclude_booking_id is not None and booking.booking_id == exclude_booking_id:
                continue
            if booking.date_range.overlaps(check_in, check_out):
                return True
        return False


class RoomInventory:
    """Sole writer of Hotel.available_rooms"""

    def __init__(self, hotel_repo: HotelRepository, locks: Optional[KeyedLock] = None):
        self.hotel_repo = hotel_repo
        self._locks = locks or KeyedLock()

    async def reserve(self, hotel_id: UUID) -> Hotel:
        """Take one room, or raise CapacityExceeded"""
        async with self._locks.acquire(hotel_id):
            hotel = await self._get_hotel(hotel_id)
            hotel.take_room()
            await self.hotel_repo.update(hotel)
            logger.debug("Reserved room at hotel %s, %d left", hotel_id, hotel.available_rooms)
            return hotel

    async def release(self, hotel_id: UUID) -> Hotel:
        """Give back a room taken by an earlier successful reserve"""
        async with self._locks.acquire(hotel_id):
            hotel = await self._get_hotel(hotel_id)
            hotel.return_room()
            await self.hotel_repo.update(hotel)
            logger.debug("Released room at hotel %s, %d left", hotel_id, hotel.available_rooms)
            return hotel

    async def available_rooms(self, hotel_id: UUID) -> int:
        hotel = await self._get_hotel(hotel_id)
        return hotel.available_rooms

    async def _get_hotel(self, hotel_id: UUID) -> Hotel:
        hotel = await self.hotel_repo.find_by_id(hotel_id)
        if hotel is None:
            raise NotFound(f"Hotel with ID {hotel_id} does not exist.")
        return hotel


class LoyaltyLedger:
    """Points math plus the append-only ledger behind each balance.

    Every balance change is paired with exactly one PointsTransaction so the
    balance always equals the sum of the account's entries.
    """

    def __init__(
        self,
        account_repo: LoyaltyAccountRepository,
        transaction_repo: PointsTransactionRepository,
        settings: Optional[LoyaltySettings] = None,
        locks: Optional[KeyedLock] = None
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.settings = settings or LoyaltySettings()
        self._locks = locks or KeyedLock()

    # ==================== CALCULATIONS ====================
    def calculate_points(self, amount: Decimal) -> int:
        """floor(amount * points_percentage) above the minimum booking amount"""
        amount = Decimal(amount)
        if amount < self.settings.minimum_booking_amount:
            return 0
        points = (amount * self.settings.points_percentage).to_integral_value(rounding=ROUND_FLOOR)
        return int(points)

    def calculate_discount(self, points: int) -> Decimal:
        """1 point = 1 currency unit"""
        if points < 1:
            return Decimal("0")
        return Decimal(points)

    # ==================== QUERIES ====================
    async def get_account(self, user_id: UUID) -> Optional[LoyaltyAccount]:
        return await self.account_repo.find_by_user_id(user_id)

    async def get_or_create_account(self, user_id: UUID) -> LoyaltyAccount:
        async with self._locks.acquire(user_id):
            return await self._get_or_create(user_id)

    async def get_history(
        self,
        user_id: UUID,
        page_number: int = 1,
        page_size: int = 10
    ) -> List[PointsTransaction]:
        """Ledger entries for a user, newest first; out-of-range paging falls back to defaults"""
        page_number = max(page_number, 1)
        if not 1 <= page_size <= 100:
            page_size = 10
        account = await self.account_repo.find_by_user_id(user_id)
        if account is None:
            return []
        entries = await self.transaction_repo.find_by_account_id(account.account_id)
        entries = list(reversed(entries))
        start = (page_number - 1) * page_size
        return entries[start:start + page_size]

    async def earned_points_for_booking(self, booking_id: UUID) -> Optional[int]:
        earned = await self.transaction_repo.find_by_booking(booking_id, PointsTransactionType.EARN)
        return earned[0].points_earned if earned else None

    # ==================== MUTATIONS ====================
    async def redeem(
        self,
        user_id: UUID,
        points: int,
        booking_id: Optional[UUID] = None
    ) -> RedemptionResult:
        """Convert points into a discount"""
        if points <= 0:
            raise InvalidAmount("Points to redeem must be greater than zero")

        async with self._locks.acquire(user_id):
            account = await self.account_repo.find_by_user_id(user_id)
            balance = account.points_balance if account else 0
            if account is None or balance < points:
                raise InsufficientPoints(
                    f"Insufficient points. Available: {balance}, Required: {points}",
                    details={"available": balance, "required": points}
                )

            discount = self.calculate_discount(points)
            account.debit(points)
            await self.account_repo.update(account)
            await self._append(
                account, -points, PointsTransactionType.REDEEM,
                f"Redeemed {points} points for ₹{discount:.2f} discount", booking_id
            )

        logger.info("User %s redeemed %d points for %.2f discount", user_id, points, discount)
        return RedemptionResult(
            points_redeemed=points,
            discount_amount=discount,
            remaining_balance=account.points_balance,
            message=f"Successfully redeemed {points} points for ₹{discount:.2f} discount"
        )

    async def award(self, user_id: UUID, booking_id: UUID, amount: Decimal) -> LoyaltyAccount:
        """Credit points for a paid booking, at most once per booking"""
        points = self.calculate_points(amount)

        async with self._locks.acquire(user_id):
            account = await self._get_or_create(user_id)

            existing = await self.transaction_repo.find_by_booking(booking_id, PointsTransactionType.EARN)
            if existing:
                logger.warning("Points already awarded for booking %s", booking_id)
                return account

            if points == 0:
                logger.info("Booking %s amount %s earns no points", booking_id, amount)
                return account

            account.credit(points, earned=True)
            await self.account_repo.update(account)
            await self._append(
                account, points, PointsTransactionType.EARN,
                f"Points earned from booking #{booking_id}", booking_id
            )

        logger.info("Awarded %d points to user %s for booking %s", points, user_id, booking_id)
        return account

    async def refund_redeemed_points(self, user_id: UUID, booking_id: UUID, points: int) -> int:
        """Give back points redeemed on a cancelled booking; returns points refunded"""
        if points <= 0:
            return 0

        async with self._locks.acquire(user_id):
            already = await self.transaction_repo.find_by_booking(booking_id, PointsTransactionType.REFUND)
            if already:
                logger.warning("Redeemed points already refunded for booking %s", booking_id)
                return 0

            account = await self._get_or_create(user_id)
            account.credit(points)
            await self.account_repo.update(account)
            await self._append(
                account, points, PointsTransactionType.REFUND,
                f"Refunded {points} redeemed points for cancelled booking #{booking_id}", booking_id
            )

        logger.info("Refunded %d redeemed points to user %s for booking %s", points, user_id, booking_id)
        return points

    async def revoke_earned_points(self, user_id: UUID, booking_id: UUID) -> int:
        """Take back points earned by a booking, clamped so the balance stays >= 0"""
        async with self._locks.acquire(user_id):
            earned = await self.transaction_repo.find_by_booking(booking_id, PointsTransactionType.EARN)
            if not earned:
                return 0
            revoked = await self.transaction_repo.find_by_booking(booking_id, PointsTransactionType.REVOKE)
            if revoked:
                logger.warning("Earned points already revoked for booking %s", booking_id)
                return 0

            account = await self.account_repo.find_by_user_id(user_id)
            if account is None:
                return 0

            earned_points = earned[0].points_earned
            points = min(earned_points, account.points_balance)
            account.debit(points)
            account.correct_total_earned(earned_points)
            await self.account_repo.update(account)
            await self._append(
                account, -points, PointsTransactionType.REVOKE,
                f"Revoked {points} points earned from cancelled booking #{booking_id}", booking_id
            )

        if points < earned_points:
            logger.warning(
                "Revoked only %d of %d points for booking %s; balance was already spent",
                points, earned_points, booking_id
            )
        logger.info("Revoked %d points from user %s for booking %s", points, user_id, booking_id)
        return points

    # ==================== PRIVATE ====================
    async def _get_or_create(self, user_id: UUID) -> LoyaltyAccount:
        account = await self.account_repo.find_by_user_id(user_id)
        if account is None:
            account = await self.account_repo.save(LoyaltyAccount(user_id=user_id))
            logger.info("Created loyalty account for user %s", user_id)
        return account

    async def _append(
        self,
        account: LoyaltyAccount,
        points: int,
        transaction_type: PointsTransactionType,
        description: str,
        booking_id: Optional[UUID]
    ) -> PointsTransaction:
        return await self.transaction_repo.append(PointsTransaction(
            account_id=account.account_id,
            booking_id=booking_id,
            points_earned=points,
            transaction_type=transaction_type,
            description=description
        ))
