"""Application configuration

Each component takes its own settings object through its constructor.
Values come from the environment (optionally a .env file) with defaults
matching the production platform.
"""
import os
from decimal import Decimal

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LoyaltySettings(BaseModel):
    """Loyalty program configuration"""
    points_percentage: Decimal = Field(default=Decimal("0.10"), ge=0)
    minimum_booking_amount: Decimal = Field(default=Decimal("50.0"), ge=0)


class PaymentSettings(BaseModel):
    """Payment gateway configuration"""
    mock_success_rate: float = Field(default=0.9, ge=0, le=1)
    processing_delay_ms: int = Field(default=1000, ge=0)
    mock_refund_success_rate: float = Field(default=0.95, ge=0, le=1)
    refund_delay_ms: int = Field(default=500, ge=0)
    gateway_timeout_seconds: float = Field(default=30.0, gt=0)
    default_currency: str = "INR"


class BookingSettings(BaseModel):
    """Booking business rules"""
    max_stay_nights: int = Field(default=30, ge=1)
    max_advance_days: int = Field(default=365, ge=1)
    max_guests: int = Field(default=10, ge=1)


class SecuritySettings(BaseModel):
    """Token settings (In production, always set SECRET_KEY in env vars)"""
    secret_key: str = "your-secret-key-keep-it-secret"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30


class Settings(BaseModel):
    loyalty: LoyaltySettings = Field(default_factory=LoyaltySettings)
    payment: PaymentSettings = Field(default_factory=PaymentSettings)
    booking: BookingSettings = Field(default_factory=BookingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, reading .env first"""
        load_dotenv()
        loyalty = LoyaltySettings(
            points_percentage=os.getenv("LOYALTY_POINTS_PERCENTAGE", "0.10"),
            minimum_booking_amount=os.getenv("LOYALTY_MINIMUM_BOOKING_AMOUNT", "50.0"),
        )
        payment = PaymentSettings(
            mock_success_rate=os.getenv("PAYMENT_MOCK_SUCCESS_RATE", "0.9"),
            processing_delay_ms=os.getenv("PAYMENT_PROCESSING_DELAY_MS", "1000"),
            mock_refund_success_rate=os.getenv("PAYMENT_MOCK_REFUND_SUCCESS_RATE", "0.95"),
            refund_delay_ms=os.getenv("PAYMENT_REFUND_DELAY_MS", "500"),
            gateway_timeout_seconds=os.getenv("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "30"),
            default_currency=os.getenv("PAYMENT_DEFAULT_CURRENCY", "INR"),
        )
        booking = BookingSettings(
            max_stay_nights=os.getenv("BOOKING_MAX_STAY_NIGHTS", "30"),
            max_advance_days=os.getenv("BOOKING_MAX_ADVANCE_DAYS", "365"),
            max_guests=os.getenv("BOOKING_MAX_GUESTS", "10"),
        )
        security = SecuritySettings(
            secret_key=os.getenv("SECRET_KEY", "your-secret-key-keep-it-secret"),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"),
        )
        return cls(
            loyalty=loyalty,
            payment=payment,
            booking=booking,
            security=security,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


settings = Settings.from_env()
