"""
Pydantic models for the auth service.

All data shapes defined here. No imports from db, repos, or routes.
"""

from potential_auth.models.auth import (
    AuthSession,
    AuthUser,
    CheckEmailRequest,
    CheckEmailResponse,
    MessageResponse,
    PurgeUsersResponse,
    ResendVerificationRequest,
    SendMagicLinkRequest,
    SignupRequest,
    SignupResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from potential_auth.models.token import (
    EmailVerificationPayload,
    IssuedToken,
    MagicLinkPayload,
    TokenPayload,
    TokenPurpose,
    VerificationCodePayload,
    parse_payload,
    token_key,
)

__all__ = [
    # Token models
    "TokenPurpose",
    "TokenPayload",
    "EmailVerificationPayload",
    "MagicLinkPayload",
    "VerificationCodePayload",
    "IssuedToken",
    "parse_payload",
    "token_key",
    # Auth provider models
    "AuthUser",
    "AuthSession",
    # Request/response models
    "CheckEmailRequest",
    "CheckEmailResponse",
    "SignupRequest",
    "SignupResponse",
    "ResendVerificationRequest",
    "SendMagicLinkRequest",
    "MessageResponse",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
    "PurgeUsersResponse",
]
