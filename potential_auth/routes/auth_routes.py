"""Signup, email verification and passwordless sign-in routes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse

from potential_auth import config
from potential_auth.errors import ApiError, AuthProviderError, EmailDispatchError
from potential_auth.middleware.rate_limit import rate_limiter
from potential_auth.models.auth import (
    CheckEmailRequest,
    CheckEmailResponse,
    MessageResponse,
    ResendVerificationRequest,
    SendMagicLinkRequest,
    SignupRequest,
    SignupResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from potential_auth.models.token import TokenPurpose
from potential_auth.repos.token_store import TokenStore, get_token_store
from potential_auth.routes import pages
from potential_auth.services.auth_provider import SupabaseAuthProvider, get_auth_provider
from potential_auth.services.email import EmailDispatcher, get_email_dispatcher
from potential_auth.services.token_issuer import TokenIssuer, get_clock
from potential_auth.services.token_verifier import (
    TokenVerifier,
    VerificationResult,
    VerificationStatus,
    confirm_email,
    create_temporary_credential,
    establish_session,
    generate_temporary_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=config.settings.SERVICE_PREFIX, tags=["auth"])

_SIGN_IN_SENT = {
    "code": "If an account exists for this email, a sign-in code is on its way.",
    "link": "If an account exists for this email, a sign-in link is on its way.",
}

# Verify-code outcomes that are not SUCCESS
_CODE_ERRORS = {
    VerificationStatus.INVALID: (status.HTTP_404_NOT_FOUND, "Invalid or expired code."),
    VerificationStatus.MISMATCH: (status.HTTP_401_UNAUTHORIZED, "The code does not match."),
    VerificationStatus.EXPIRED: (status.HTTP_410_GONE, "This code has expired. Please request a new one."),
    VerificationStatus.FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Sign-in failed. Please try again."),
}


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/check-email", status_code=200)
async def check_email_endpoint(
    req: CheckEmailRequest,
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
) -> CheckEmailResponse:
    """Report whether an email is already registered (signup form helper)."""
    try:
        user = await provider.find_user_by_email(req.email)
    except AuthProviderError as e:
        logger.error("Email lookup failed: %s", e.message)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to check email.") from e

    if user:
        return CheckEmailResponse(exists=True, message="This email is already registered.")
    return CheckEmailResponse(exists=False, message="This email is available.")


@router.post("/signup", status_code=200)
async def signup_endpoint(
    req: SignupRequest,
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SignupResponse:
    """
    Create an unconfirmed account and email a verification link.

    The account gets a random password so the new user can be signed in
    right away; the verification email is best effort and can be re-sent.
    """
    email = req.email.lower()
    logger.info("Signup request for %s", email)

    try:
        existing = await provider.find_user_by_email(email)
    except AuthProviderError as e:
        # create_user below still rejects duplicates
        logger.warning("Duplicate check failed, relying on create: %s", e.message)
        existing = None
    if existing:
        raise ApiError(
            status.HTTP_409_CONFLICT,
            "This email is already registered. Sign in or use a different email.",
            code="email_exists",
        )

    metadata = {"display_name": req.display_name}
    if req.avatar_url:
        metadata["avatar_url"] = req.avatar_url
    if req.location_hub:
        metadata["location_hub"] = req.location_hub

    password = generate_temporary_password()
    try:
        user = await provider.create_user(email, password, user_metadata=metadata, email_confirm=False)
    except AuthProviderError as e:
        if e.is_email_exists:
            raise ApiError(
                status.HTTP_409_CONFLICT,
                "This email is already registered. Sign in or use a different email.",
                code="email_exists",
            ) from e
        logger.error("Account creation failed for %s: %s", email, e.message)
        raise ApiError(status.HTTP_400_BAD_REQUEST, e.message) from e

    issued = await TokenIssuer(store, clock).issue(TokenPurpose.EMAIL_VERIFICATION, user.id, email)
    try:
        await mailer.send(TokenPurpose.EMAIL_VERIFICATION, email, issued.token, {"display_name": req.display_name})
    except EmailDispatchError:
        # Signup still succeeds; the user can ask for a resend
        logger.exception("Verification email failed for %s", email)

    try:
        session = await provider.sign_in_with_password(email, password)
    except AuthProviderError as e:
        logger.warning("Auto sign-in after signup failed for %s: %s", email, e.message)
        return SignupResponse(
            user=user,
            message="Signup complete! Please sign in.",
            need_login=True,
        )

    return SignupResponse(
        user=session.user or user,
        session=session,
        message="Signup complete! Check your inbox to verify your email.",
    )


def _link_failure_page(result: VerificationResult, ttl_minutes: int) -> HTMLResponse:
    if result.status == VerificationStatus.EXPIRED:
        return pages.expired_link_page(ttl_minutes)
    if result.status == VerificationStatus.FAILED:
        return pages.failure_page(link_kept=result.retained)
    return pages.invalid_link_page()


def _link_rate_limited(request: Request) -> bool:
    return not rate_limiter.check_rate_limit(
        f"verify:ip:{_client_ip(request)}",
        max_requests=config.settings.VERIFY_LINK_ATTEMPTS_PER_IP,
        window_minutes=1,
    )


def _too_many_attempts_page() -> HTMLResponse:
    return pages.message_page(
        "Too many attempts",
        "✋",
        "Too many attempts",
        "Please wait a minute and open the link again.",
        status.HTTP_429_TOO_MANY_REQUESTS,
    )


@router.get("/verify-email", response_class=HTMLResponse)
async def verify_email_endpoint(
    request: Request,
    token: str | None = None,
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> HTMLResponse:
    """Consume an email verification link and confirm the address."""
    if not token:
        return pages.missing_token_page()
    if _link_rate_limited(request):
        return _too_many_attempts_page()

    try:
        result = await TokenVerifier(store, clock).verify(
            TokenPurpose.EMAIL_VERIFICATION, token, confirm_email(provider)
        )
    except Exception:
        logger.exception("Email verification crashed")
        return pages.failure_page(link_kept=False)

    if not result.ok:
        return _link_failure_page(result, config.settings.EMAIL_VERIFICATION_TTL_MINUTES)
    return pages.email_verified_page(result.value)


@router.post("/resend-verification", status_code=200, response_model_exclude_none=True)
async def resend_verification_endpoint(
    req: ResendVerificationRequest,
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> MessageResponse:
    """Issue a fresh verification link for an unconfirmed account."""
    email = req.email.lower()
    rate_limiter.enforce(
        f"resend:email:{email}",
        max_requests=config.settings.SEND_RATE_LIMIT_PER_EMAIL,
        window_minutes=60,
        message="Too many requests. Please try again later.",
    )

    try:
        user = await provider.find_user_by_email(email)
    except AuthProviderError as e:
        logger.error("User lookup failed: %s", e.message)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to look up user.") from e

    if not user:
        raise ApiError(status.HTTP_404_NOT_FOUND, "No account is registered with this email.")
    if user.email_confirmed_at:
        return MessageResponse(message="This account is already verified.", already_verified=True)

    issued = await TokenIssuer(store, clock).issue(TokenPurpose.EMAIL_VERIFICATION, user.id, email)
    try:
        await mailer.send(
            TokenPurpose.EMAIL_VERIFICATION,
            email,
            issued.token,
            {"display_name": user.user_metadata.get("display_name")},
        )
    except EmailDispatchError as e:
        logger.error("Verification resend failed for %s: %s", email, e)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send verification email.") from e

    return MessageResponse(message="Verification email sent. Please check your inbox.")


@router.post("/send-magic-link", status_code=200)
async def send_magic_link_endpoint(
    req: SendMagicLinkRequest,
    request: Request,
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> MessageResponse:
    """
    Email a sign-in code (default) or link.

    The response is the same whether or not the email belongs to an
    account, so this endpoint cannot be used to enumerate users.
    """
    email = req.email.lower()
    rate_limiter.enforce(
        f"send:ip:{_client_ip(request)}",
        max_requests=config.settings.SEND_RATE_LIMIT_PER_IP,
        window_minutes=60,
        message="Too many requests from this IP. Please try again later.",
    )
    rate_limiter.enforce(
        f"send:email:{email}",
        max_requests=config.settings.SEND_RATE_LIMIT_PER_EMAIL,
        window_minutes=60,
        message="Too many requests for this email. Please try again later.",
    )

    try:
        user = await provider.find_user_by_email(email)
    except AuthProviderError as e:
        logger.error("User lookup failed: %s", e.message)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send sign-in email.") from e

    response = MessageResponse(message=_SIGN_IN_SENT[req.mode])
    if not user:
        logger.info("Sign-in requested for unknown email %s", email)
        return response

    purpose = TokenPurpose.VERIFICATION_CODE if req.mode == "code" else TokenPurpose.MAGIC_LINK
    issued = await TokenIssuer(store, clock).issue(purpose, user.id, email)
    try:
        await mailer.send(purpose, email, issued.token, {"display_name": user.user_metadata.get("display_name")})
    except EmailDispatchError as e:
        # Without the email the user has no way forward
        logger.error("Sign-in email failed for %s: %s", email, e)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send sign-in email.") from e

    return response


@router.get("/verify-magic-link", response_class=HTMLResponse)
async def verify_magic_link_endpoint(
    request: Request,
    token: str | None = None,
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> HTMLResponse:
    """Consume a magic link and hand the new session to the browser."""
    if not token:
        return pages.missing_token_page()
    if _link_rate_limited(request):
        return _too_many_attempts_page()

    try:
        result = await TokenVerifier(store, clock).verify(TokenPurpose.MAGIC_LINK, token, establish_session(provider))
    except Exception:
        logger.exception("Magic link verification crashed")
        return pages.failure_page(link_kept=False)

    if not result.ok:
        return _link_failure_page(result, config.settings.MAGIC_LINK_TTL_MINUTES)
    return pages.signed_in_page(result.payload.email, result.value)


@router.post("/verify-code", status_code=200)
async def verify_code_endpoint(
    req: VerifyCodeRequest,
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> VerifyCodeResponse:
    """Check a 6-digit sign-in code and return one-time credentials."""
    email = req.email.lower()
    attempts_key = f"verify:email:{email}"
    rate_limiter.enforce(
        attempts_key,
        max_requests=config.settings.VERIFY_CODE_ATTEMPTS_PER_EMAIL,
        window_minutes=15,
        message="Too many attempts. Please request a new code.",
    )

    result = await TokenVerifier(store, clock).verify(
        TokenPurpose.VERIFICATION_CODE, email, create_temporary_credential(provider), code=req.code
    )
    if not result.ok:
        status_code, message = _CODE_ERRORS[result.status]
        if not result.retained:
            message = "Sign-in failed. Please request a new code."
        raise ApiError(status_code, message, code=result.status.value)

    rate_limiter.reset(attempts_key)
    return VerifyCodeResponse(
        email=result.value["email"],
        temp_password=result.value["tempPassword"],
        user_id=result.value["userId"],
    )
