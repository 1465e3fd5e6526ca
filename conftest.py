"""Shared fixtures for the booking lifecycle test suites"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from main import app, SEED_HOTELS, get_booking_lifecycle, get_loyalty_ledger
from application.booking_lifecycle import BookingLifecycle
from application.services import LoyaltyLedger, OverlapValidator, RoomInventory
from domain.auth import User
from domain.entities import Hotel
from domain.enums import UserRole
from domain.value_objects import CardDetails
from infrastructure.config import BookingSettings, LoyaltySettings, PaymentSettings
from infrastructure.payments.mock_gateway import MockPaymentGateway
from infrastructure.repositories.in_memory_repositories import (
    InMemoryHotelRepository, InMemoryBookingRepository, InMemoryPaymentRepository,
    InMemoryLoyaltyAccountRepository, InMemoryPointsTransactionRepository
)

ADMIN_ID = UUID("123e4567-e89b-12d3-a456-426614174000")
GUEST_ID = UUID("123e4567-e89b-12d3-a456-426614174002")
TRAVELER_ID = UUID("123e4567-e89b-12d3-a456-426614174003")

GRAND_MUMBAI_ID = SEED_HOTELS[0].hotel_id
HAVELI_ID = SEED_HOTELS[2].hotel_id

VALID_CARD = CardDetails(
    card_number="4111111111111111",
    card_holder_name="Priya Sharma",
    expiry_month="12",
    expiry_year=str(date.today().year + 3),
    cvv="123"
)


def build_lifecycle(
    success_rate: float = 1.0,
    refund_success_rate: float = 1.0,
    gateway_timeout_seconds: float = 5.0,
    hotels=None
) -> BookingLifecycle:
    """Wire a lifecycle over fresh in-memory stores and an instant mock gateway"""
    hotel_repo = InMemoryHotelRepository()
    for hotel in hotels if hotels is not None else SEED_HOTELS:
        hotel_repo.load(hotel.model_copy(deep=True))

    booking_repo = InMemoryBookingRepository()
    payment_repo = InMemoryPaymentRepository()
    payment_settings = PaymentSettings(
        mock_success_rate=success_rate,
        processing_delay_ms=0,
        mock_refund_success_rate=refund_success_rate,
        refund_delay_ms=0,
        gateway_timeout_seconds=gateway_timeout_seconds
    )
    ledger = LoyaltyLedger(
        InMemoryLoyaltyAccountRepository(),
        InMemoryPointsTransactionRepository(),
        LoyaltySettings()
    )
    return BookingLifecycle(
        booking_repo=booking_repo,
        hotel_repo=hotel_repo,
        payment_repo=payment_repo,
        overlap_validator=OverlapValidator(booking_repo),
        room_inventory=RoomInventory(hotel_repo),
        loyalty_ledger=ledger,
        payment_gateway=MockPaymentGateway(payment_repo, payment_settings),
        booking_settings=BookingSettings(),
        payment_settings=payment_settings
    )


def stay(offset_days: int = 10, nights: int = 2):
    check_in = date.today() + timedelta(days=offset_days)
    return check_in, check_in + timedelta(days=nights)


async def ledger_sum(ledger: LoyaltyLedger, user_id: UUID) -> int:
    account = await ledger.get_account(user_id)
    entries = await ledger.transaction_repo.find_by_account_id(account.account_id)
    return sum(t.points_earned for t in entries)


async def seed_points(ledger: LoyaltyLedger, user_id: UUID, points: int, booking_id: Optional[UUID] = None):
    """Give a user `points` by awarding a past stay worth points / 10%"""
    await ledger.award(user_id, booking_id or uuid4(), Decimal(points) * 10)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def guest_user():
    return User(user_id=GUEST_ID, username="guest", full_name="Priya Sharma", role=UserRole.GUEST)


@pytest.fixture
def other_guest():
    return User(user_id=TRAVELER_ID, username="traveler", full_name="Arjun Mehta", role=UserRole.GUEST)


@pytest.fixture
def admin_user():
    return User(user_id=ADMIN_ID, username="admin", full_name="Admin User", role=UserRole.ADMIN)


@pytest.fixture
def manager_user():
    return User(username="manager", full_name="Hotel Manager", role=UserRole.HOTEL_MANAGER)


@pytest.fixture
def lifecycle():
    return build_lifecycle()


@pytest.fixture
def declining_lifecycle():
    return build_lifecycle(success_rate=0.0)


@pytest.fixture
def one_room_hotel():
    return Hotel(name="Lake Palace Annex", price_per_night=Decimal("1000.00"), available_rooms=1, total_rooms=1)


@pytest.fixture
def client():
    """FastAPI test client"""
    return TestClient(app)


@pytest.fixture
def api_lifecycle():
    """Serve the API from a fresh deterministic lifecycle"""
    lifecycle = build_lifecycle()
    app.dependency_overrides[get_booking_lifecycle] = lambda: lifecycle
    app.dependency_overrides[get_loyalty_ledger] = lambda: lifecycle.loyalty_ledger
    yield lifecycle
    app.dependency_overrides.clear()


def _login(client, username: str, password: str) -> dict:
    response = client.post("/token", data={"username": username, "password": password})
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client):
    """Get authentication headers with valid admin token"""
    return _login(client, "admin", "admin123")


@pytest.fixture
def guest_headers(client):
    return _login(client, "guest", "guest123")


@pytest.fixture
def traveler_headers(client):
    return _login(client, "traveler", "traveler123")
