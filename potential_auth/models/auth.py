"""Auth provider shapes and request/response models for the token endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class AuthUser(BaseModel):
    """An account as returned by the auth provider's admin API."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class AuthSession(BaseModel):
    """A session minted by the auth provider's password grant."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    expires_at: int | None = None
    user: AuthUser | None = None


class _CamelModel(BaseModel):
    """Response models serialize with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── requests ────────────────────────────────────────────────────────────────


class CheckEmailRequest(BaseModel):
    """Request to check whether an email is already registered."""

    email: EmailStr


class SignupRequest(BaseModel):
    """Signup form. Profile fields beyond these are accepted and ignored."""

    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=100)
    avatar_url: str | None = None
    location_hub: str | None = None


class ResendVerificationRequest(BaseModel):
    """Request to re-send the email verification link."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class SendMagicLinkRequest(BaseModel):
    """Request a passwordless sign-in code (default) or link."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    mode: Literal["code", "link"] = "code"


class VerifyCodeRequest(BaseModel):
    """Submit the 6-digit code received by email."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$")


# ── responses ───────────────────────────────────────────────────────────────


class CheckEmailResponse(_CamelModel):
    exists: bool
    message: str


class SignupResponse(_CamelModel):
    """Response after signup. Session is absent when auto sign-in failed."""

    success: bool = True
    user: AuthUser
    session: AuthSession | None = None
    message: str
    need_email_verification: bool = True
    need_login: bool = False


class MessageResponse(_CamelModel):
    success: bool = True
    message: str
    already_verified: bool | None = None


class VerifyCodeResponse(_CamelModel):
    """Credentials the frontend uses to finish sign-in."""

    success: bool = True
    email: str
    temp_password: str
    user_id: str


class PurgeUsersResponse(_CamelModel):
    success: bool = True
    message: str
    deleted_count: int
    failed_count: int
    purged_tokens: int
    errors: list[dict[str, str]] | None = None
