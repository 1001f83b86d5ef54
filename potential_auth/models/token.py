"""Token records: storage keys and typed payloads per purpose."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TokenPurpose(StrEnum):
    """What a token authorizes. Also the prefix of its storage key."""

    EMAIL_VERIFICATION = "email_verification"
    MAGIC_LINK = "magic_link"
    VERIFICATION_CODE = "verification_code"


def token_key(purpose: TokenPurpose, identifier: str) -> str:
    """Build the store key `<purpose>:<identifier>`."""
    return f"{purpose.value}:{identifier}"


class _TokenPayload(BaseModel):
    """Fields every token payload carries. Serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    user_id: str
    email: str
    created_at: datetime
    expires_at: datetime

    @field_validator("created_at", "expires_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def is_expired(self, now: datetime) -> bool:
        """A token is still valid at exactly expires_at."""
        return now > self.expires_at

    def to_store(self) -> dict:
        """JSON-ready dict for the store, without the purpose tag."""
        return self.model_dump(mode="json", by_alias=True, exclude={"purpose"})


class EmailVerificationPayload(_TokenPayload):
    purpose: Literal[TokenPurpose.EMAIL_VERIFICATION] = Field(
        default=TokenPurpose.EMAIL_VERIFICATION, exclude=True
    )


class MagicLinkPayload(_TokenPayload):
    purpose: Literal[TokenPurpose.MAGIC_LINK] = Field(default=TokenPurpose.MAGIC_LINK, exclude=True)


class VerificationCodePayload(_TokenPayload):
    purpose: Literal[TokenPurpose.VERIFICATION_CODE] = Field(
        default=TokenPurpose.VERIFICATION_CODE, exclude=True
    )
    code: str = Field(..., pattern=r"^\d{6}$")


TokenPayload = EmailVerificationPayload | MagicLinkPayload | VerificationCodePayload

PAYLOAD_MODELS: dict[TokenPurpose, type[_TokenPayload]] = {
    TokenPurpose.EMAIL_VERIFICATION: EmailVerificationPayload,
    TokenPurpose.MAGIC_LINK: MagicLinkPayload,
    TokenPurpose.VERIFICATION_CODE: VerificationCodePayload,
}


def parse_payload(purpose: TokenPurpose, raw: dict) -> TokenPayload:
    """Validate a stored payload against the model for its purpose."""
    return PAYLOAD_MODELS[purpose].model_validate(raw)


class IssuedToken(BaseModel):
    """What the issuer hands back: the secret to deliver and where it is stored."""

    purpose: TokenPurpose
    key: str
    token: str  # uuid for link purposes, 6-digit code for the code purpose
    payload: TokenPayload
