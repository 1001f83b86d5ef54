"""
The Potential auth service configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Token store: "postgres" (kv_store table) or "memory" (local development)
    TOKEN_STORE_BACKEND: str = os.environ.get("TOKEN_STORE_BACKEND", "postgres")

    # Auth provider (Supabase / GoTrue admin API)
    SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
    SUPABASE_ANON_KEY: str = os.environ.get("SUPABASE_ANON_KEY", "")
    AUTH_PROVIDER_TIMEOUT_SECONDS: float = float(os.environ.get("AUTH_PROVIDER_TIMEOUT_SECONDS", "10"))

    # Email (Resend)
    RESEND_API_KEY: str = os.environ.get("RESEND_API_KEY", "")
    EMAIL_FROM: str = os.environ.get("EMAIL_FROM", "The Potential <onboarding@resend.dev>")

    # Routing
    SERVICE_PREFIX: str = os.environ.get("SERVICE_PREFIX", "/potential")

    # Admin purge endpoint is disabled unless a key is configured
    ADMIN_API_KEY: str = os.environ.get("ADMIN_API_KEY", "")

    # Token lifetimes
    EMAIL_VERIFICATION_TTL_MINUTES: int = int(os.environ.get("EMAIL_VERIFICATION_TTL_MINUTES", "1440"))
    MAGIC_LINK_TTL_MINUTES: int = int(os.environ.get("MAGIC_LINK_TTL_MINUTES", "15"))
    VERIFICATION_CODE_TTL_MINUTES: int = int(os.environ.get("VERIFICATION_CODE_TTL_MINUTES", "15"))

    # Rate limits
    SEND_RATE_LIMIT_PER_EMAIL: int = 5  # per hour
    SEND_RATE_LIMIT_PER_IP: int = 20  # per hour
    VERIFY_CODE_ATTEMPTS_PER_EMAIL: int = 10  # per 15 minutes
    VERIFY_LINK_ATTEMPTS_PER_IP: int = 10  # per minute

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    @property
    def PUBLIC_API_URL(self) -> str:
        """Base URL that links in emails point back to."""
        url = os.environ.get("PUBLIC_API_URL")
        if url:
            return url.rstrip("/")
        if self.SUPABASE_URL:
            return f"{self.SUPABASE_URL.rstrip('/')}/functions/v1"
        return "http://localhost:8000"

    @property
    def APP_URL(self) -> str:
        """Frontend URL users land on after verifying."""
        url = os.environ.get("APP_URL")
        if url:
            return url.rstrip("/")
        return "http://localhost:3000" if self.ENVIRONMENT == "development" else "https://thepotential.kr"


# Singleton instance
settings = Settings()

# Validate required settings (skip in test mode)
_testing = os.environ.get("TESTING", "").lower() == "true"

if not _testing and settings.TOKEN_STORE_BACKEND == "postgres" and not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
if settings.TOKEN_STORE_BACKEND not in ("postgres", "memory"):
    raise RuntimeError(f"Unknown TOKEN_STORE_BACKEND: {settings.TOKEN_STORE_BACKEND}")
