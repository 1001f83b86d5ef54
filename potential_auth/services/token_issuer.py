"""Issues single-use verification tokens and persists them in the token store."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from potential_auth import config
from potential_auth.models.token import (
    PAYLOAD_MODELS,
    IssuedToken,
    TokenPurpose,
    token_key,
)
from potential_auth.repos.token_store import TokenStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


def get_clock() -> Callable[[], datetime]:
    """FastAPI dependency for the clock tokens are issued and checked against."""
    return utc_now


def generate_code() -> str:
    """Generate a 6-digit numeric code, uniform over 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


def default_ttl(purpose: TokenPurpose) -> timedelta:
    """Configured lifetime for each purpose."""
    minutes = {
        TokenPurpose.EMAIL_VERIFICATION: config.settings.EMAIL_VERIFICATION_TTL_MINUTES,
        TokenPurpose.MAGIC_LINK: config.settings.MAGIC_LINK_TTL_MINUTES,
        TokenPurpose.VERIFICATION_CODE: config.settings.VERIFICATION_CODE_TTL_MINUTES,
    }[purpose]
    return timedelta(minutes=minutes)


class TokenIssuer:
    """Creates token records. Does not send anything."""

    def __init__(self, store: TokenStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def issue(
        self,
        purpose: TokenPurpose,
        user_id: str,
        email: str,
        ttl: timedelta | None = None,
    ) -> IssuedToken:
        """
        Generate a token and store it under `<purpose>:<identifier>`.

        Link purposes get a random uuid and are keyed by it. The code purpose
        gets a 6-digit code and is keyed by the email address, so issuing a
        new code replaces the previous one.

        Args:
            purpose: What the token authorizes
            user_id: Owning account
            email: Address the token is delivered to
            ttl: Lifetime, defaults to the configured value for the purpose

        Returns:
            IssuedToken with the secret to deliver

        Raises:
            TokenStoreError: If the store write fails
        """
        now = self._clock()
        expires_at = now + (ttl if ttl is not None else default_ttl(purpose))
        fields = {
            "user_id": user_id,
            "email": email,
            "created_at": now,
            "expires_at": expires_at,
        }

        if purpose == TokenPurpose.VERIFICATION_CODE:
            token = generate_code()
            key = token_key(purpose, email.lower())
            fields["code"] = token
        else:
            token = str(uuid4())
            key = token_key(purpose, token)

        payload = PAYLOAD_MODELS[purpose](**fields)
        await self._store.set(key, payload.to_store())

        logger.info("Issued %s token for %s (expires %s)", purpose.value, email, expires_at.isoformat())
        return IssuedToken(purpose=purpose, key=key, token=token, payload=payload)
