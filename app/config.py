"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from decimal import Decimal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder secrets that must never reach a running deployment
INSECURE_SECRETS = frozenset(
    {
        "your-secret-key-change-this-in-prod",
        "changeme",
        "secret",
    }
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars like MARIADB_* used by docker-compose
    )

    # Application
    PROJECT_NAME: str = "Jariya Donations API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_V1_STR: str = "/api/v1"

    # Security
    # No default on purpose: startup fails when the secret is unset
    JWT_SECRET: SecretStr
    ALGORITHM: str = "HS256"
    SESSION_TOKEN_EXPIRE_HOURS: int = 24
    AUTH_COOKIE_NAME: str = "auth_token"

    # Auth gate paths (frontend pages guarded by the middleware)
    LOGIN_PATH: str = "/login"
    ADMIN_PATH_PREFIX: str = "/admin"
    ADMIN_HOME_PATH: str = "/admin"
    COORDINATOR_PATH_PREFIX: str = "/coordinator"
    COORDINATOR_HOME_PATH: str = "/coordinator/dashboard"

    # Login rate limiting
    LOGIN_RATE_LIMIT: int = 10  # failed attempts per window
    LOGIN_RATE_WINDOW_MINUTES: int = 15

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"]
    )

    # Database
    DATABASE_URL: str
    # Sync URL for Alembic migrations and maintenance scripts
    DATABASE_URL_SYNC: str | None = None
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False
    # Upper bound for a single ledger round trip against the store
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Redis
    REDIS_URL: str = Field(default="redis://localhost:6379/0")

    # Payment gateway (Razorpay)
    RAZORPAY_KEY_ID: str
    RAZORPAY_KEY_SECRET: SecretStr
    RAZORPAY_WEBHOOK_SECRET: SecretStr | None = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    CURRENCY: str = "INR"
    QR_DISPLAY_NAME: str = "Jariya Donation"

    # Donations
    MAX_DONATION_AMOUNT: Decimal = Decimal("10000000")

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("JWT_SECRET")
    @classmethod
    def reject_weak_jwt_secret(cls, v: SecretStr) -> SecretStr:
        """Refuse placeholder or short signing secrets"""
        raw = v.get_secret_value()
        if raw in INSECURE_SECRETS:
            raise ValueError("JWT_SECRET is set to a known placeholder value")
        if len(raw) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return v

    @field_validator("RAZORPAY_KEY_SECRET")
    @classmethod
    def require_gateway_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("RAZORPAY_KEY_SECRET must not be empty")
        return v


# Create global settings instance

load_dotenv()
settings = Settings()  # type: ignore[call-arg]


class BatchStatus:
    """Batch status constants"""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class WebhookEvent:
    """Gateway webhook event names"""

    PAYMENT_CAPTURED = "payment.captured"
    ORDER_PAID = "order.paid"
    PAYMENT_FAILED = "payment.failed"

    CONFIRMING = frozenset({PAYMENT_CAPTURED, ORDER_PAID})


class LeaderboardType:
    """Leaderboard grouping constants"""

    BATCHES = "batches"
    INDIVIDUALS = "individuals"
    UNITS = "units"
    PLACES = "places"
    DISTRICTS = "districts"
