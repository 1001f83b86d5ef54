"""Email service using Resend for verification links and sign-in codes."""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Any

import resend

from potential_auth import config
from potential_auth.errors import EmailDispatchError
from potential_auth.models.token import TokenPurpose

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = config.settings.RESEND_API_KEY

_STYLE = """
    body {
        margin: 0;
        padding: 0;
        font-family: -apple-system, BlinkMacSystemFont, 'Pretendard', 'Segoe UI', Roboto, sans-serif;
        background-color: #f5f5f5;
        color: #111;
    }
    .container {
        max-width: 600px;
        margin: 40px auto;
        background-color: #ffffff;
        border-radius: 12px;
        overflow: hidden;
    }
    .header {
        background-color: #000000;
        padding: 32px 24px;
        text-align: center;
        color: #ffffff;
        font-size: 24px;
        font-weight: 700;
    }
    .content {
        padding: 32px 24px;
        font-size: 16px;
        line-height: 1.6;
    }
    .button {
        display: inline-block;
        padding: 14px 32px;
        margin: 24px 0;
        background-color: #0052ff;
        color: #ffffff;
        text-decoration: none;
        border-radius: 8px;
        font-weight: 600;
    }
    .code {
        font-size: 36px;
        font-weight: 700;
        letter-spacing: 8px;
        text-align: center;
        padding: 20px;
        margin: 24px 0;
        background-color: #f5f5f5;
        border-radius: 8px;
    }
    .fallback {
        font-size: 13px;
        color: #666;
        word-break: break-all;
    }
    .footer {
        padding: 24px;
        text-align: center;
        font-size: 13px;
        color: #888;
        background-color: #fafafa;
    }
"""


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def _layout(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <div class="container">
        <div class="header">The Potential</div>
        <div class="content">{body}</div>
        <div class="footer">
            <p>If you didn't request this email, you can safely ignore it.</p>
        </div>
    </div>
</body>
</html>
"""


def _greeting(template_data: dict[str, Any]) -> str:
    name = template_data.get("display_name")
    return f"Hello, {html.escape(str(name))}!" if name else "Hello,"


def verify_email_url(token: str) -> str:
    return f"{config.settings.PUBLIC_API_URL}{config.settings.SERVICE_PREFIX}/verify-email?token={token}"


def magic_link_url(token: str) -> str:
    return f"{config.settings.PUBLIC_API_URL}{config.settings.SERVICE_PREFIX}/verify-magic-link?token={token}"


def render_email(purpose: TokenPurpose, token_or_code: str, template_data: dict[str, Any] | None = None) -> RenderedEmail:
    """
    Build subject, HTML and plain-text bodies for a token email.

    Args:
        purpose: Which token is being delivered
        token_or_code: Link token (uuid) or 6-digit code
        template_data: Optional extras, currently only display_name

    Returns:
        RenderedEmail ready to send
    """
    data = template_data or {}
    greeting = _greeting(data)

    if purpose == TokenPurpose.EMAIL_VERIFICATION:
        url = verify_email_url(token_or_code)
        hours = config.settings.EMAIL_VERIFICATION_TTL_MINUTES // 60
        body = f"""
            <p>{greeting}</p>
            <p>Welcome to The Potential. Confirm your email address to unlock every feature.</p>
            <a href="{url}" class="button">Verify email</a>
            <p>This link expires in {hours} hours.</p>
            <p class="fallback">If the button doesn't work, copy this link into your browser:<br>{url}</p>
        """
        text = f"{greeting}\n\nConfirm your email address for The Potential:\n{url}\n\nThis link expires in {hours} hours.\n"
        return RenderedEmail("[The Potential] Please verify your email", _layout("Verify your email", body), text)

    if purpose == TokenPurpose.MAGIC_LINK:
        url = magic_link_url(token_or_code)
        minutes = config.settings.MAGIC_LINK_TTL_MINUTES
        body = f"""
            <p>{greeting}</p>
            <p>Click the button below to sign in to The Potential.</p>
            <a href="{url}" class="button">Sign in</a>
            <p>This link expires in {minutes} minutes and can be used once.</p>
            <p class="fallback">If the button doesn't work, copy this link into your browser:<br>{url}</p>
        """
        text = f"{greeting}\n\nSign in to The Potential:\n{url}\n\nThis link expires in {minutes} minutes.\n"
        return RenderedEmail("[The Potential] Your sign-in link", _layout("Sign in", body), text)

    minutes = config.settings.VERIFICATION_CODE_TTL_MINUTES
    code = html.escape(token_or_code)
    body = f"""
        <p>{greeting}</p>
        <p>Enter this code to sign in to The Potential:</p>
        <div class="code">{code}</div>
        <p>The code expires in {minutes} minutes.</p>
    """
    text = f"{greeting}\n\nYour sign-in code for The Potential: {token_or_code}\n\nThe code expires in {minutes} minutes.\n"
    return RenderedEmail(f"[The Potential] Your sign-in code: {token_or_code}", _layout("Sign-in code", body), text)


class EmailDispatcher:
    """Sends token emails through the Resend API."""

    async def send(
        self,
        purpose: TokenPurpose,
        email: str,
        token_or_code: str,
        template_data: dict[str, Any] | None = None,
    ) -> str:
        """
        Render and send a token email.

        Whether a failure here is fatal is up to the caller.

        Returns:
            Resend message id

        Raises:
            EmailDispatchError: If the API key is missing or Resend rejects the message
        """
        if not config.settings.RESEND_API_KEY:
            raise EmailDispatchError("RESEND_API_KEY is not configured")

        rendered = render_email(purpose, token_or_code, template_data)
        params = {
            "from": config.settings.EMAIL_FROM,
            "to": [email],
            "subject": rendered.subject,
            "html": rendered.html,
            "text": rendered.text,
        }

        try:
            # The Resend SDK is synchronous
            result = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            raise EmailDispatchError(f"Resend rejected {purpose.value} email: {e}") from e

        message_id = result.get("id", "") if isinstance(result, dict) else getattr(result, "id", "")
        logger.info("Sent %s email to %s (id=%s)", purpose.value, email, message_id)
        return message_id


def get_email_dispatcher() -> EmailDispatcher:
    """FastAPI dependency returning the email dispatcher."""
    return EmailDispatcher()
