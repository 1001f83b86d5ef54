"""Tests for SupabaseAuthProvider with mocked HTTP."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from potential_auth.errors import AuthProviderError
from potential_auth.services.auth_provider import SupabaseAuthProvider

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _provider() -> SupabaseAuthProvider:
    return SupabaseAuthProvider(
        base_url="https://project.supabase.test/",
        service_role_key="service-key",
        anon_key="anon-key",
        timeout=5.0,
    )


def _mock_client(mock_client_cls, *responses):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client.request = AsyncMock(side_effect=list(responses))
    mock_client_cls.return_value = mock_client
    return mock_client


def _user(user_id: str, email: str) -> dict:
    return {"id": user_id, "email": email, "email_confirmed_at": None, "user_metadata": {}}


async def test_create_user_posts_admin_request():
    """create_user POSTs to the admin endpoint with service role headers."""
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = _mock_client(mock_client_cls, httpx.Response(200, json=_user("u1", "a@x.com")))

        user = await _provider().create_user("a@x.com", "pw", {"display_name": "A"})

    assert user.id == "u1"
    method, url = mock_client.request.call_args.args
    assert method == "POST"
    assert url == "https://project.supabase.test/auth/v1/admin/users"
    kwargs = mock_client.request.call_args.kwargs
    assert kwargs["headers"] == {"apikey": "service-key", "Authorization": "Bearer service-key"}
    assert kwargs["json"] == {
        "email": "a@x.com",
        "password": "pw",
        "user_metadata": {"display_name": "A"},
        "email_confirm": False,
    }


async def test_email_exists_error_is_parsed():
    """A 422 with error_code email_exists becomes an AuthProviderError."""
    body = {"code": 422, "error_code": "email_exists", "msg": "A user with this email address has already been registered"}
    with patch("httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, httpx.Response(422, json=body))

        with pytest.raises(AuthProviderError) as exc_info:
            await _provider().create_user("a@x.com", "pw")

    assert exc_info.value.status_code == 422
    assert exc_info.value.code == "email_exists"
    assert exc_info.value.is_email_exists


async def test_non_json_error_body():
    with patch("httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(AuthProviderError) as exc_info:
            await _provider().get_user_by_id("u1")

    assert exc_info.value.status_code == 502
    assert "502" in exc_info.value.message


async def test_transport_error_is_wrapped():
    with patch("httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, httpx.ConnectError("connection refused"))

        with pytest.raises(AuthProviderError) as exc_info:
            await _provider().delete_user("u1")

    assert exc_info.value.status_code is None


async def test_find_user_by_email_is_case_insensitive():
    users = {"users": [_user("u1", "other@x.com"), _user("u2", "Alice@X.com")]}
    with patch("httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, httpx.Response(200, json=users))

        user = await _provider().find_user_by_email("alice@x.com")

    assert user is not None
    assert user.id == "u2"


async def test_list_all_users_follows_pagination():
    first_page = {"users": [_user(f"u{i}", f"u{i}@x.com") for i in range(1000)]}
    second_page = {"users": [_user("last", "last@x.com")]}
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = _mock_client(
            mock_client_cls,
            httpx.Response(200, json=first_page),
            httpx.Response(200, json=second_page),
        )

        users = await _provider().list_all_users()

    assert len(users) == 1001
    pages = [c.kwargs["params"]["page"] for c in mock_client.request.call_args_list]
    assert pages == [1, 2]


async def test_update_user_sends_attributes():
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = _mock_client(mock_client_cls, httpx.Response(200, json=_user("u1", "a@x.com")))

        await _provider().update_user_by_id("u1", email_confirm=True)

    method, url = mock_client.request.call_args.args
    assert method == "PUT"
    assert url.endswith("/auth/v1/admin/users/u1")
    assert mock_client.request.call_args.kwargs["json"] == {"email_confirm": True}


async def test_delete_user_accepts_empty_body():
    with patch("httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, httpx.Response(200))

        assert await _provider().delete_user("u1") is None


async def test_sign_in_uses_password_grant_with_anon_key():
    session = {
        "access_token": "at",
        "refresh_token": "rt",
        "token_type": "bearer",
        "expires_in": 3600,
        "expires_at": 1_800_000_000,
        "user": _user("u1", "a@x.com"),
    }
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = _mock_client(mock_client_cls, httpx.Response(200, json=session))

        result = await _provider().sign_in_with_password("a@x.com", "pw")

    assert result.access_token == "at"
    assert result.user.id == "u1"
    kwargs = mock_client.request.call_args.kwargs
    assert kwargs["params"] == {"grant_type": "password"}
    assert kwargs["headers"]["apikey"] == "anon-key"
    assert mock_client.request.call_args.args[1].endswith("/auth/v1/token")
