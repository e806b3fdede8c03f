"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./tableorder.db"

    # Redis - optional, used for cart storage and token blacklist
    redis_url: Optional[str] = None

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # ==========================================================================
    # Menu feed (published spreadsheet)
    # ==========================================================================
    menu_cache_ttl_seconds: int = 300
    menu_sheet_name: str = "Sheet1"
    menu_fetch_timeout: float = 10.0

    # ==========================================================================
    # Orders & payments
    # ==========================================================================
    order_id_prefix: str = "ORD"
    # Completed/rejected orders stay visible on live boards for this long
    order_expiry_minutes: int = 10
    currency: str = "INR"
    upi_payee_name: str = "TableOrder"
    # Optional remote payment-link function; local UPI generation when unset
    payment_link_url: Optional[str] = None
    payment_link_timeout: float = 10.0

    # ==========================================================================
    # Customer-facing URLs
    # ==========================================================================
    public_base_url: str = "http://localhost:3000"
    qr_image_api: str = "https://api.qrserver.com/v1/create-qr-code/"
    qr_image_size: int = 300

    # Cart persistence (seconds, only used with Redis)
    cart_ttl_seconds: int = 86400

    # Defaults for newly registered tenants
    service_charge_default: float = 5.0
    table_count_default: int = 10

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    @field_validator("service_charge_default")
    @classmethod
    def validate_service_charge_default(cls, v: float) -> float:
        if v < 0 or v > 100:
            raise ValueError("service_charge_default must be between 0 and 100")
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "change-me-in-production":
            import warnings
            warnings.warn(
                "Using default SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to start in production mode with a weak secret key."""
        if not self.debug:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
