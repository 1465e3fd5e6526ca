import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Depends, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Booking
    CreateBookingRequest, BookingResponse,
    # Payment
    PaymentRequest, PaymentResultResponse, PaymentResponse,
    # Loyalty
    LoyaltyAccountResponse, PointsTransactionResponse, PointsCalculationResponse,
    # Hotel
    AvailabilityResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import get_current_active_user, require_admin, fake_users_db, get_user
from infrastructure.security import (
    verify_password, create_access_token, token_claims_for, ACCESS_TOKEN_EXPIRE_MINUTES
)
from infrastructure.config import settings
from domain.auth import User

from application.booking_lifecycle import BookingLifecycle, BookingView
from application.services import LoyaltyLedger, OverlapValidator, RoomInventory
from infrastructure.payments.mock_gateway import MockPaymentGateway
from infrastructure.repositories.in_memory_repositories import (
    InMemoryHotelRepository, InMemoryBookingRepository, InMemoryPaymentRepository,
    InMemoryLoyaltyAccountRepository, InMemoryPointsTransactionRepository
)
from domain.entities import Hotel, Payment
from domain.enums import BookingStatus, PaymentMethod, PaymentStatus
from domain.errors import BookingError
from domain.value_objects import CardDetails, PaymentResult

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hotel Booking Lifecycle API",
    description="Booking, payment and loyalty lifecycle for the hotel booking platform",
    version="1.0.0"
)

# Initialize repositories
hotel_repo = InMemoryHotelRepository()
booking_repo = InMemoryBookingRepository()
payment_repo = InMemoryPaymentRepository()
loyalty_account_repo = InMemoryLoyaltyAccountRepository()
points_transaction_repo = InMemoryPointsTransactionRepository()

# Services hold the per-hotel, per-user and per-booking locks, so they live
# for the whole process rather than per request
overlap_validator = OverlapValidator(booking_repo)
room_inventory = RoomInventory(hotel_repo)
loyalty_ledger = LoyaltyLedger(loyalty_account_repo, points_transaction_repo, settings.loyalty)
payment_gateway = MockPaymentGateway(payment_repo, settings.payment)
booking_lifecycle = BookingLifecycle(
    booking_repo=booking_repo,
    hotel_repo=hotel_repo,
    payment_repo=payment_repo,
    overlap_validator=overlap_validator,
    room_inventory=room_inventory,
    loyalty_ledger=loyalty_ledger,
    payment_gateway=payment_gateway,
    booking_settings=settings.booking,
    payment_settings=settings.payment
)

SEED_HOTELS = [
    Hotel(
        hotel_id=UUID("a1b2c3d4-0000-4000-8000-000000000001"),
        name="The Grand Mumbai",
        price_per_night=Decimal("1000.00"),
        available_rooms=10,
        total_rooms=10
    ),
    Hotel(
        hotel_id=UUID("a1b2c3d4-0000-4000-8000-000000000002"),
        name="Goa Beach Resort",
        price_per_night=Decimal("2500.00"),
        available_rooms=5,
        total_rooms=5
    ),
    Hotel(
        hotel_id=UUID("a1b2c3d4-0000-4000-8000-000000000003"),
        name="Jaipur Heritage Haveli",
        price_per_night=Decimal("1800.00"),
        available_rooms=1,
        total_rooms=1
    ),
]


def seed_hotels() -> None:
    """Load the hotel catalog (the catalog itself is owned elsewhere)"""
    for hotel in SEED_HOTELS:
        hotel_repo.load(hotel.model_copy(deep=True))


seed_hotels()

# Dependency injection
def get_booking_lifecycle() -> BookingLifecycle:
    return booking_lifecycle

def get_loyalty_ledger() -> LoyaltyLedger:
    return loyalty_ledger

# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Render every booking error as the structured error envelope"""
    body = exc.to_dict()
    body["timestamp"] = datetime.now(timezone.utc)

    result = getattr(exc, "result", None)
    if result is not None:
        body["payment"] = _payment_result_to_response(result)

    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, exc.kind, exc.message)
    else:
        logger.warning("%s %s rejected: %s: %s", request.method, request.url.path, exc.kind, exc.message)

    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [f"{item.name}" for item in BookingStatus],
        "description": "Booking status values: CONFIRMED, CANCELLED, COMPLETED"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus enum values"""
    return {
        "values": [f"{item.name}" for item in PaymentStatus],
        "description": "Payment status values: PENDING, COMPLETED, FAILED, REFUNDED"
    }

@app.get("/api/enums/payment-method", tags=["Enum Reference"])
async def get_payment_methods():
    """Get all PaymentMethod enum values"""
    return {
        "values": [f"{item.name}" for item in PaymentMethod],
        "description": "Payment method values: CREDIT_CARD, DEBIT_CARD, PAYPAL, BANK_TRANSFER"
    }

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data=token_claims_for(user), expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Create a booking; it stays payment-required until paid"""
    booking = await lifecycle.create_booking(
        user=current_user,
        hotel_id=request.hotel_id,
        check_in=request.check_in_date,
        check_out=request.check_out_date,
        number_of_guests=request.number_of_guests,
        guest_name=request.guest_name,
        guest_email=request.guest_email,
        points_to_redeem=request.points_to_redeem
    )
    return _booking_to_response(await lifecycle.to_view(booking))

@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def get_all_bookings(
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(require_admin)
):
    """Get all bookings (admin)"""
    bookings = await lifecycle.get_all_bookings()
    return [_booking_to_response(await lifecycle.to_view(b)) for b in bookings]

@app.get("/api/bookings/my", response_model=List[BookingResponse], tags=["Bookings"])
async def get_my_bookings(
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Get bookings of the current user, newest first"""
    bookings = await lifecycle.get_user_bookings(current_user.user_id)
    return [_booking_to_response(await lifecycle.to_view(b)) for b in bookings]

@app.get("/api/bookings/guest/{email}", response_model=List[BookingResponse], tags=["Bookings"])
async def get_bookings_by_email(
    email: str,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(require_admin)
):
    """Get bookings by guest email (admin)"""
    bookings = await lifecycle.get_bookings_by_email(email)
    return [_booking_to_response(await lifecycle.to_view(b)) for b in bookings]

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Get booking by ID"""
    booking = await lifecycle.get_booking(booking_id, current_user)
    return _booking_to_response(await lifecycle.to_view(booking))

@app.delete("/api/bookings/{booking_id}", status_code=204, tags=["Bookings"])
async def delete_booking(
    booking_id: UUID,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(require_admin)
):
    """Delete a booking that has no payments (admin)"""
    await lifecycle.delete_booking(booking_id, current_user)
    return Response(status_code=204)

@app.post("/api/bookings/{booking_id}/payment", response_model=PaymentResultResponse, tags=["Bookings"])
async def process_payment(
    booking_id: UUID,
    request: PaymentRequest,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Pay for a booking; a declined payment cancels it"""
    result = await lifecycle.process_payment(
        booking_id=booking_id,
        user=current_user,
        amount=request.amount,
        currency=request.currency,
        method=request.payment_method,
        card_details=CardDetails(
            card_number=request.card_number,
            card_holder_name=request.card_holder_name,
            expiry_month=request.expiry_month,
            expiry_year=request.expiry_year,
            cvv=request.cvv
        )
    )
    return _payment_result_to_response(result)

@app.put("/api/bookings/{booking_id}/cancel", response_model=Optional[PaymentResultResponse], tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel a booking, returning the refund when one was made"""
    refund = await lifecycle.cancel_booking(booking_id, current_user)
    return _payment_result_to_response(refund) if refund else None

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.get("/api/payments/{payment_id}", response_model=PaymentResponse, tags=["Payments"])
async def get_payment(
    payment_id: UUID,
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Get payment by ID"""
    payment = await lifecycle.get_payment(payment_id, current_user)
    return _payment_to_response(payment)

# ============================================================================
# LOYALTY ENDPOINTS
# ============================================================================

@app.get("/api/loyalty/account", response_model=LoyaltyAccountResponse, tags=["Loyalty"])
async def get_my_loyalty_account(
    ledger: LoyaltyLedger = Depends(get_loyalty_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Get the current user's loyalty account, creating it on first access"""
    account = await ledger.get_or_create_account(current_user.user_id)
    return _account_to_response(account)

@app.get("/api/loyalty/account/{user_id}", response_model=LoyaltyAccountResponse, tags=["Loyalty"])
async def get_loyalty_account(
    user_id: UUID,
    ledger: LoyaltyLedger = Depends(get_loyalty_ledger),
    current_user: User = Depends(require_admin)
):
    """Get any user's loyalty account (admin)"""
    account = await ledger.get_account(user_id)
    if not account:
        raise HTTPException(status_code=404, detail="Loyalty account not found")
    return _account_to_response(account)

@app.get("/api/loyalty/history", response_model=List[PointsTransactionResponse], tags=["Loyalty"])
async def get_points_history(
    page_number: int = 1,
    page_size: int = 10,
    ledger: LoyaltyLedger = Depends(get_loyalty_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Get the current user's points ledger, newest first"""
    entries = await ledger.get_history(current_user.user_id, page_number, page_size)
    return [_transaction_to_response(t) for t in entries]

@app.get("/api/loyalty/history/{user_id}", response_model=List[PointsTransactionResponse], tags=["Loyalty"])
async def get_user_points_history(
    user_id: UUID,
    page_number: int = 1,
    page_size: int = 10,
    ledger: LoyaltyLedger = Depends(get_loyalty_ledger),
    current_user: User = Depends(require_admin)
):
    """Get any user's points ledger, newest first (admin)"""
    entries = await ledger.get_history(user_id, page_number, page_size)
    return [_transaction_to_response(t) for t in entries]

@app.get("/api/loyalty/calculate-points", response_model=PointsCalculationResponse, tags=["Loyalty"])
async def calculate_points(
    booking_amount: Decimal = Query(..., ge=0),
    ledger: LoyaltyLedger = Depends(get_loyalty_ledger),
    current_user: User = Depends(get_current_active_user)
):
    """Preview the points a booking amount would earn"""
    return PointsCalculationResponse(
        booking_amount=booking_amount,
        points_earned=ledger.calculate_points(booking_amount),
        points_percentage=ledger.settings.points_percentage,
        minimum_booking_amount=ledger.settings.minimum_booking_amount
    )

# ============================================================================
# HOTEL ENDPOINTS
# ============================================================================

@app.get("/api/hotels/{hotel_id}/availability", response_model=AvailabilityResponse, tags=["Hotels"])
async def check_availability(
    hotel_id: UUID,
    check_in_date: date,
    check_out_date: date,
    number_of_guests: int = Query(1, ge=1),
    lifecycle: BookingLifecycle = Depends(get_booking_lifecycle),
    current_user: User = Depends(get_current_active_user)
):
    """Check whether a stay could be booked right now"""
    result = await lifecycle.check_availability(hotel_id, check_in_date, check_out_date, number_of_guests)
    return AvailabilityResponse(
        hotel_id=hotel_id,
        check_in_date=check_in_date,
        check_out_date=check_out_date,
        **result.model_dump()
    )

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _booking_to_response(view: BookingView) -> BookingResponse:
    """Convert BookingView to BookingResponse"""
    booking = view.booking
    return BookingResponse(
        booking_id=booking.booking_id,
        hotel_id=booking.hotel_id,
        hotel_name=view.hotel_name,
        user_id=booking.user_id,
        guest_name=booking.guest_name,
        guest_email=booking.guest_email,
        check_in_date=booking.date_range.check_in,
        check_out_date=booking.date_range.check_out,
        nights=booking.get_nights(),
        number_of_guests=booking.guest_count.count,
        total_amount=booking.total_amount.amount,
        currency=booking.total_amount.currency,
        status=booking.status.value,
        payment_required=view.payment_required,
        payment_id=view.payment_id,
        loyalty_points_redeemed=booking.loyalty_points_redeemed,
        loyalty_discount_amount=booking.loyalty_discount_amount,
        loyalty_points_earned=view.loyalty_points_earned,
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        version=booking.version
    )

def _payment_result_to_response(result: PaymentResult) -> PaymentResultResponse:
    """Convert PaymentResult to PaymentResultResponse"""
    return PaymentResultResponse(
        payment_id=result.payment_id,
        status=result.status.value,
        transaction_id=result.transaction_id,
        amount=result.amount,
        currency=result.currency,
        error_message=result.error_message,
        processed_at=result.processed_at
    )

def _payment_to_response(payment: Payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        booking_id=payment.booking_id,
        amount=payment.amount,
        currency=payment.currency,
        payment_method=payment.method.value,
        status=payment.status.value,
        transaction_id=payment.transaction_id,
        processed_at=payment.processed_at,
        created_at=payment.created_at
    )

def _account_to_response(account) -> LoyaltyAccountResponse:
    """Convert LoyaltyAccount entity to LoyaltyAccountResponse"""
    return LoyaltyAccountResponse(
        account_id=account.account_id,
        user_id=account.user_id,
        points_balance=account.points_balance,
        total_points_earned=account.total_points_earned,
        last_updated=account.last_updated
    )

def _transaction_to_response(transaction) -> PointsTransactionResponse:
    """Convert PointsTransaction entity to PointsTransactionResponse"""
    return PointsTransactionResponse(
        transaction_id=transaction.transaction_id,
        booking_id=transaction.booking_id,
        points_earned=transaction.points_earned,
        transaction_type=transaction.transaction_type.value,
        description=transaction.description,
        created_at=transaction.created_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
