"""OTP Auth Service — configuration loaded from environment."""

import logging
import secrets

from pydantic import model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./otp_auth.db"

    # ── Session tokens ────────────────────────────────────
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    token_expire_seconds: int = 3600

    # ── Credentials ───────────────────────────────────────
    otp_ttl_seconds: int = 300
    bcrypt_rounds: int = 10

    # ── Email (SMTP) ──────────────────────────────────────
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    email_from: str = "no-reply@localhost"

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Auth Service"
    debug: bool = True
    host: str = "127.0.0.1"
    port: int = 5000

    # ── CORS ──────────────────────────────────────────────
    # Browser origins allowed to call the API; "*" admits any origin.
    cors_origins: list[str] = ["*"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _resolve_jwt_secret(self) -> "Settings":
        """Generate a throwaway signing key in debug mode, refuse to start otherwise."""
        if not self.jwt_secret:
            if not self.debug:
                raise ValueError("JWT_SECRET must be set when DEBUG is false")
            self.jwt_secret = secrets.token_urlsafe(48)
            logger.warning(
                "JWT_SECRET not set — generated a random key; tokens will not "
                "survive a restart"
            )
        elif len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return self


# Singleton settings instance
settings = Settings()
