"""
Tests for token issuance.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch
from uuid import UUID

import pytest

from potential_auth.models.token import TokenPurpose
from potential_auth.services.token_issuer import TokenIssuer, default_ttl, generate_code


class TestGenerateCode:
    """Test 6-digit code generation."""

    def test_code_is_six_digits(self):
        for _ in range(200):
            code = generate_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999

    def test_code_bounds(self):
        """randbelow(900000) spans the full range, low and high end."""
        with patch("potential_auth.services.token_issuer.secrets.randbelow", return_value=0):
            assert generate_code() == "100000"
        with patch("potential_auth.services.token_issuer.secrets.randbelow", return_value=899999):
            assert generate_code() == "999999"


class TestDefaultTTL:
    def test_email_verification_is_24_hours(self):
        assert default_ttl(TokenPurpose.EMAIL_VERIFICATION) == timedelta(hours=24)

    def test_login_tokens_are_15_minutes(self):
        assert default_ttl(TokenPurpose.MAGIC_LINK) == timedelta(minutes=15)
        assert default_ttl(TokenPurpose.VERIFICATION_CODE) == timedelta(minutes=15)


@pytest.mark.asyncio(loop_scope="session")
class TestTokenIssuer:
    """Test issuing and persisting tokens."""

    async def test_issue_email_verification(self, store, clock):
        issuer = TokenIssuer(store, clock)

        issued = await issuer.issue(TokenPurpose.EMAIL_VERIFICATION, "user-1", "a@x.com")

        assert UUID(issued.token).version == 4
        assert issued.key == f"email_verification:{issued.token}"
        stored = await store.get(issued.key)
        assert stored["userId"] == "user-1"
        assert stored["email"] == "a@x.com"
        assert "code" not in stored
        assert issued.payload.expires_at == clock.now + timedelta(hours=24)

    async def test_stored_payload_uses_camel_case_iso_timestamps(self, store, clock):
        issuer = TokenIssuer(store, clock)

        issued = await issuer.issue(TokenPurpose.MAGIC_LINK, "user-1", "a@x.com", ttl=timedelta(minutes=15))

        stored = await store.get(issued.key)
        assert set(stored) == {"userId", "email", "createdAt", "expiresAt"}
        assert stored["createdAt"].startswith("2026-02-10T09:00:00")
        assert stored["expiresAt"].startswith("2026-02-10T09:15:00")

    async def test_issue_verification_code_keyed_by_email(self, store, clock):
        issuer = TokenIssuer(store, clock)

        issued = await issuer.issue(TokenPurpose.VERIFICATION_CODE, "user-2", "B@X.com")

        assert issued.key == "verification_code:b@x.com"
        assert issued.token.isdigit() and len(issued.token) == 6
        stored = await store.get(issued.key)
        assert stored["code"] == issued.token

    async def test_reissuing_code_replaces_previous(self, store, clock):
        issuer = TokenIssuer(store, clock)

        with patch("potential_auth.services.token_issuer.secrets.randbelow", side_effect=[11111, 22222]):
            await issuer.issue(TokenPurpose.VERIFICATION_CODE, "user-2", "b@x.com")
            second = await issuer.issue(TokenPurpose.VERIFICATION_CODE, "user-2", "b@x.com")

        assert store.keys() == ["verification_code:b@x.com"]
        assert (await store.get(second.key))["code"] == "122222"

    async def test_link_tokens_are_unique(self, store, clock):
        issuer = TokenIssuer(store, clock)

        tokens = {
            (await issuer.issue(TokenPurpose.MAGIC_LINK, "user-1", "a@x.com")).token for _ in range(50)
        }

        assert len(tokens) == 50
        assert len(store.keys()) == 50
