"""
Token verification.

A pending token ends in exactly one terminal state:

    INVALID   key absent (never issued, consumed, or purged), or the account is gone
    EXPIRED   present but past expiresAt; the key is deleted
    MISMATCH  code purpose only; wrong code, token kept for another try
    FAILED    privileged action raised; token put back so the user can retry
    SUCCESS   privileged action applied; token deleted
"""

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from potential_auth.errors import AuthProviderError, TokenStoreError
from potential_auth.models.token import (
    TokenPayload,
    TokenPurpose,
    VerificationCodePayload,
    parse_payload,
    token_key,
)
from potential_auth.repos.token_store import TokenStore
from potential_auth.services.auth_provider import SupabaseAuthProvider
from potential_auth.services.token_issuer import utc_now

logger = logging.getLogger(__name__)

PrivilegedAction = Callable[[TokenPayload], Awaitable[Any]]


class VerificationStatus(StrEnum):
    SUCCESS = "success"
    INVALID = "invalid"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of a verify call.

    Attributes:
        status: Terminal state reached
        payload: Stored payload, when the token was found
        value: Return value of the privileged action on SUCCESS
        error: Exception raised by the privileged action on FAILED
        retained: False when a FAILED token could not be put back, so the
            link or code is gone and must be requested again
    """

    status: VerificationStatus
    payload: TokenPayload | None = None
    value: Any = None
    error: Exception | None = None
    retained: bool = True

    @property
    def ok(self) -> bool:
        return self.status == VerificationStatus.SUCCESS


def _redact(identifier: str) -> str:
    return identifier if "@" in identifier else f"{identifier[:8]}…"


class TokenVerifier:
    """Checks a token and runs one privileged action before consuming it."""

    def __init__(self, store: TokenStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def _check(self, payload: TokenPayload, code: str | None) -> VerificationStatus | None:
        """Return a terminal status if the payload may not be used, None if it may."""
        if payload.is_expired(self._clock()):
            return VerificationStatus.EXPIRED
        if isinstance(payload, VerificationCodePayload):
            if code is None or not hmac.compare_digest(payload.code.encode(), code.encode()):
                return VerificationStatus.MISMATCH
        return None

    async def _load(self, purpose: TokenPurpose, key: str, raw: dict | None) -> TokenPayload | None:
        if raw is None:
            return None
        try:
            return parse_payload(purpose, raw)
        except ValidationError:
            # Unreadable records can never verify; drop them
            logger.warning("Discarding malformed %s token record", purpose.value)
            await self._store.delete(key)
            return None

    async def _failed(
        self, purpose: TokenPurpose, key: str, claimed: TokenPayload, error: Exception
    ) -> VerificationResult:
        """Put the claimed token back after a failed action and report FAILED."""
        logger.error(
            "Privileged action failed for %s token (%s)", purpose.value, claimed.email, exc_info=error
        )
        try:
            await self._store.restore(key, claimed.to_store())
        except TokenStoreError:
            logger.exception("Could not restore %s token for %s; it is lost", purpose.value, claimed.email)
            return VerificationResult(VerificationStatus.FAILED, payload=claimed, error=error, retained=False)
        return VerificationResult(VerificationStatus.FAILED, payload=claimed, error=error)

    async def verify(
        self,
        purpose: TokenPurpose,
        identifier: str,
        action: PrivilegedAction,
        code: str | None = None,
    ) -> VerificationResult:
        """
        Verify a token and, if valid, perform the privileged action.

        The token is claimed with an atomic pop before the action runs and
        restored if the action raises, so two concurrent calls can never
        both succeed and a transient downstream failure does not burn it.

        Args:
            purpose: Token purpose, selects key prefix and payload type
            identifier: Link token, or email address for the code purpose
            action: Async callable receiving the payload
            code: Submitted 6-digit code (code purpose only)

        Returns:
            VerificationResult
        """
        if purpose == TokenPurpose.VERIFICATION_CODE:
            identifier = identifier.lower()
        key = token_key(purpose, identifier)

        payload = await self._load(purpose, key, await self._store.get(key))
        if payload is None:
            logger.info("Invalid %s token: %s", purpose.value, _redact(identifier))
            return VerificationResult(VerificationStatus.INVALID)

        status = self._check(payload, code)
        if status == VerificationStatus.EXPIRED:
            await self._store.delete(key)
            logger.info("Expired %s token for %s", purpose.value, payload.email)
            return VerificationResult(status, payload=payload)
        if status == VerificationStatus.MISMATCH:
            logger.info("Code mismatch for %s", payload.email)
            return VerificationResult(status, payload=payload)

        claimed = await self._load(purpose, key, await self._store.pop(key))
        if claimed is None:
            # Another request consumed it between our read and the claim
            return VerificationResult(VerificationStatus.INVALID)
        if claimed != payload:
            # Re-issued in between: judge the record we actually hold
            status = self._check(claimed, code)
            if status is not None:
                if status == VerificationStatus.MISMATCH:
                    await self._store.restore(key, claimed.to_store())
                return VerificationResult(status, payload=claimed)

        try:
            value = await action(claimed)
        except AuthProviderError as e:
            if e.status_code == 404:
                # Account deleted since issuance; the token can never succeed
                logger.info("Dropping %s token for missing account %s", purpose.value, claimed.user_id)
                return VerificationResult(VerificationStatus.INVALID, payload=claimed, error=e)
            return await self._failed(purpose, key, claimed, e)
        except Exception as e:
            return await self._failed(purpose, key, claimed, e)

        logger.info("Consumed %s token for %s", purpose.value, claimed.email)
        return VerificationResult(VerificationStatus.SUCCESS, payload=claimed, value=value)


# ── privileged actions ──────────────────────────────────────────────────────


def generate_temporary_password() -> str:
    """High-entropy throwaway password, never shown in any UI."""
    return secrets.token_urlsafe(32)


def confirm_email(provider: SupabaseAuthProvider) -> PrivilegedAction:
    """Action: mark the account's email as confirmed. Returns the email."""

    async def _confirm(payload: TokenPayload) -> str:
        await provider.update_user_by_id(payload.user_id, email_confirm=True)
        return payload.email

    return _confirm


def create_temporary_credential(provider: SupabaseAuthProvider) -> PrivilegedAction:
    """
    Action: reset the account to a random password and hand it back.

    The auth provider cannot mint a session for an arbitrary user, so the
    client signs in with this password itself.
    """

    async def _reset(payload: TokenPayload) -> dict[str, str]:
        user = await provider.get_user_by_id(payload.user_id)
        temp_password = generate_temporary_password()
        await provider.update_user_by_id(user.id, password=temp_password)
        return {"email": payload.email, "userId": user.id, "tempPassword": temp_password}

    return _reset


def establish_session(provider: SupabaseAuthProvider) -> PrivilegedAction:
    """Action: reset to a random password and sign in with it. Returns the session."""

    async def _sign_in(payload: TokenPayload):
        temp_password = generate_temporary_password()
        await provider.update_user_by_id(payload.user_id, password=temp_password)
        return await provider.sign_in_with_password(payload.email, temp_password)

    return _sign_in
