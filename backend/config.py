"""
Configuration management for the FuelGo marketplace API.

Loads settings from .env via pydantic-settings.

Notes:
    - validate_production_settings() enforces strict CORS and a JWT secret in production
    - Uploaded vendor logos live under UPLOAD_DIR and are served at /uploads
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/fuelgo.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    app_name: str = "FuelGo API"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "fuelgo-api"
    jwt_access_ttl_minutes: int = 60 * 24 * 7  # 7 days
    password_min_length: int = 6
    admin_invitation_ttl_hours: int = 24

    # ── Rate limits ─────────────────────────────────────────────────
    login_rate_limit: int = 10           # attempts per window
    register_rate_limit: int = 5
    auth_rate_window_seconds: int = 60

    # ── Uploads ─────────────────────────────────────────────────────
    upload_dir: str = "uploads"
    max_logo_bytes: int = 5 * 1024 * 1024  # 5 MB

    # ── Payments ────────────────────────────────────────────────────
    payment_webhook_secret: str = ""     # HMAC-SHA512 key for gateway callbacks

    # ── Marketplace ─────────────────────────────────────────────────
    currency: str = "NGN"
    currency_symbol: str = "₦"
    default_delivery_fee: float = 500.0
    default_minimum_order: float = 0.0
    low_stock_threshold: float = 100.0
    standard_delivery_hours: int = 2
    emergency_delivery_hours: int = 1

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def logo_dir(self) -> str:
        return f"{self.upload_dir.rstrip('/')}/logos"

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign access tokens for every role."
                )
            if len(self.jwt_secret) < 32:
                raise ValueError("JWT_SECRET must be at least 32 characters in production.")
            if not self.payment_webhook_secret:
                raise ValueError(
                    "PAYMENT_WEBHOOK_SECRET must be set in production. "
                    "Gateway callbacks are rejected without it."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.jwt_secret:
                warnings.append("JWT_SECRET is not set (login will fail until configured)")
            if not self.payment_webhook_secret:
                warnings.append("PAYMENT_WEBHOOK_SECRET is not set (payment callbacks will be rejected)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(w)


# Global settings instance
settings = Settings()
