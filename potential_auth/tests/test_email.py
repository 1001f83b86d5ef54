"""Tests for email rendering and dispatch with a mocked Resend SDK."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from potential_auth import config
from potential_auth.errors import EmailDispatchError
from potential_auth.models.token import TokenPurpose
from potential_auth.services.email import EmailDispatcher, render_email


class TestRenderEmail:
    def test_verification_email_links_to_verify_email(self):
        rendered = render_email(TokenPurpose.EMAIL_VERIFICATION, "tok-123", {"display_name": "Minji"})

        url = f"{config.settings.PUBLIC_API_URL}{config.settings.SERVICE_PREFIX}/verify-email?token=tok-123"
        assert url in rendered.html
        assert url in rendered.text
        assert "Hello, Minji!" in rendered.html
        assert "24 hours" in rendered.html

    def test_magic_link_email_links_to_verify_magic_link(self):
        rendered = render_email(TokenPurpose.MAGIC_LINK, "tok-456")

        assert "/verify-magic-link?token=tok-456" in rendered.html
        assert "15 minutes" in rendered.text

    def test_code_email_contains_raw_code(self):
        rendered = render_email(TokenPurpose.VERIFICATION_CODE, "482913")

        assert '<div class="code">482913</div>' in rendered.html
        assert "482913" in rendered.subject
        assert "?token=" not in rendered.html

    def test_display_name_is_escaped(self):
        rendered = render_email(TokenPurpose.MAGIC_LINK, "tok", {"display_name": "<script>x</script>"})

        assert "<script>x</script>" not in rendered.html
        assert "&lt;script&gt;" in rendered.html


@pytest.mark.asyncio(loop_scope="session")
class TestEmailDispatcher:
    async def test_send_calls_resend(self):
        with patch("potential_auth.services.email.resend.Emails.send", return_value={"id": "re_123"}) as send:
            message_id = await EmailDispatcher().send(TokenPurpose.VERIFICATION_CODE, "a@x.com", "123456")

        assert message_id == "re_123"
        params = send.call_args.args[0]
        assert params["to"] == ["a@x.com"]
        assert params["from"] == config.settings.EMAIL_FROM
        assert "123456" in params["html"]
        assert set(params) == {"from", "to", "subject", "html", "text"}

    async def test_resend_error_raises_dispatch_error(self):
        with patch(
            "potential_auth.services.email.resend.Emails.send",
            MagicMock(side_effect=RuntimeError("422 validation_error")),
        ):
            with pytest.raises(EmailDispatchError):
                await EmailDispatcher().send(TokenPurpose.MAGIC_LINK, "a@x.com", "tok")

    async def test_missing_api_key_raises_dispatch_error(self):
        with patch.object(config.settings, "RESEND_API_KEY", ""):
            with patch("potential_auth.services.email.resend.Emails.send") as send:
                with pytest.raises(EmailDispatchError):
                    await EmailDispatcher().send(TokenPurpose.MAGIC_LINK, "a@x.com", "tok")

        send.assert_not_called()
