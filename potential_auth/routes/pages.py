"""HTML pages shown to users who arrive from an email link."""

from __future__ import annotations

import html
import json

from fastapi.responses import HTMLResponse

from potential_auth import config
from potential_auth.models.auth import AuthSession

_PAGE_STYLE = """
    body {
        margin: 0;
        padding: 0;
        font-family: -apple-system, BlinkMacSystemFont, 'Pretendard', sans-serif;
        background: #000;
        color: #fff;
        display: flex;
        align-items: center;
        justify-content: center;
        min-height: 100vh;
    }
    .container { text-align: center; padding: 40px; max-width: 480px; }
    .icon { font-size: 64px; margin-bottom: 24px; }
    h1 { font-size: 28px; font-weight: 700; margin-bottom: 16px; }
    p { font-size: 16px; color: rgba(255,255,255,0.7); line-height: 1.6; }
    .button {
        display: inline-block;
        margin-top: 24px;
        padding: 14px 32px;
        background: #0052ff;
        color: #fff;
        text-decoration: none;
        border-radius: 8px;
        font-weight: 600;
    }
"""


def _page(title: str, icon: str, heading: str, message: str, extra: str = "") -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)} - The Potential</title>
    <style>{_PAGE_STYLE}</style>
</head>
<body>
    <div class="container">
        <div class="icon">{icon}</div>
        <h1>{html.escape(heading)}</h1>
        <p>{message}</p>
        {extra}
    </div>
</body>
</html>
"""


def message_page(title: str, icon: str, heading: str, message: str, status_code: int = 200) -> HTMLResponse:
    """Plain informational page. message is escaped."""
    return HTMLResponse(_page(title, icon, heading, html.escape(message)), status_code=status_code)


def missing_token_page() -> HTMLResponse:
    return message_page(
        "Invalid link", "❌", "Invalid link", "This link is missing its token. Open the link from your email again.", 400
    )


def invalid_link_page() -> HTMLResponse:
    return message_page(
        "Invalid link",
        "⏰",
        "This link is no longer valid",
        "The link has already been used or never existed. Request a new one to continue.",
        400,
    )


def expired_link_page(minutes: int) -> HTMLResponse:
    if minutes % 60 == 0:
        hours = minutes // 60
        window = "1 hour" if hours == 1 else f"{hours} hours"
    else:
        window = "1 minute" if minutes == 1 else f"{minutes} minutes"
    return message_page(
        "Link expired",
        "⏰",
        "This link has expired",
        f"Links are valid for {window}. Request a new one to continue.",
        410,
    )


def failure_page(link_kept: bool = True) -> HTMLResponse:
    """Error page for a link whose action failed. Only promise a retry when the token was kept."""
    if link_kept:
        message = "We couldn't finish the request. Your link is still valid, please try again in a moment."
    else:
        message = "We couldn't finish the request. Please request a new link to continue."
    return message_page("Something went wrong", "⚠️", "Something went wrong", message, 500)


def email_verified_page(email: str) -> HTMLResponse:
    """Success page that forwards to the app after three seconds."""
    app_url = json.dumps(config.settings.APP_URL)
    extra = f"""
        <a href="{html.escape(config.settings.APP_URL)}" class="button">Go to The Potential</a>
        <script>
            setTimeout(function () {{ window.location.href = {app_url}; }}, 3000);
        </script>
    """
    message = f"Welcome, {html.escape(email)}!<br>You now have access to every feature of The Potential."
    return HTMLResponse(_page("Email verified", "🎉", "Email verified", message, extra))


def _script_json(value: object) -> str:
    """JSON safe to inline inside a <script> element."""
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def signed_in_page(email: str, session: AuthSession) -> HTMLResponse:
    """
    Success page for a magic link.

    Stores the session where the frontend auth client looks for it, then
    forwards to the app.
    """
    stored = {
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "expires_at": session.expires_at,
        "user": session.user.model_dump(mode="json") if session.user else None,
    }
    extra = f"""
        <script>
            localStorage.setItem("supabase.auth.token", JSON.stringify({_script_json(stored)}));
            setTimeout(function () {{ window.location.href = {_script_json(config.settings.APP_URL)}; }}, 1000);
        </script>
    """
    message = f"Welcome back, {html.escape(email)}!<br>Taking you to the app…"
    return HTMLResponse(_page("Signed in", "🎉", "You're signed in", message, extra))
