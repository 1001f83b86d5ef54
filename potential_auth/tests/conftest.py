"""
Pytest configuration and fixtures for auth service tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("RESEND_API_KEY", "test-resend-key")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("APP_URL", "https://app.test")

from datetime import UTC, datetime, timedelta  # noqa: E402
from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from potential_auth.errors import AuthProviderError, EmailDispatchError  # noqa: E402
from potential_auth.main import app  # noqa: E402
from potential_auth.middleware.rate_limit import rate_limiter  # noqa: E402
from potential_auth.models.auth import AuthSession, AuthUser  # noqa: E402
from potential_auth.models.token import TokenPurpose  # noqa: E402
from potential_auth.repos.token_store import InMemoryTokenStore, get_token_store  # noqa: E402
from potential_auth.services.auth_provider import get_auth_provider  # noqa: E402
from potential_auth.services.email import get_email_dispatcher  # noqa: E402
from potential_auth.services.token_issuer import get_clock  # noqa: E402


class FakeClock:
    """Controllable clock. Call it to read the time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 2, 10, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeAuthProvider:
    """In-memory stand-in for the Supabase admin API."""

    def __init__(self) -> None:
        self.users: dict[str, AuthUser] = {}
        self.passwords: dict[str, str] = {}
        self.fail_updates = False
        self.fail_sign_in = False

    def add_user(self, email: str, confirmed: bool = False, display_name: str | None = None) -> AuthUser:
        user = AuthUser(
            id=str(uuid4()),
            email=email,
            email_confirmed_at=datetime.now(UTC) if confirmed else None,
            user_metadata={"display_name": display_name} if display_name else {},
        )
        self.users[user.id] = user
        return user

    async def list_all_users(self) -> list[AuthUser]:
        return list(self.users.values())

    async def find_user_by_email(self, email: str) -> AuthUser | None:
        for user in self.users.values():
            if user.email and user.email.lower() == email.lower():
                return user
        return None

    async def create_user(self, email, password, user_metadata=None, email_confirm=False) -> AuthUser:
        if await self.find_user_by_email(email):
            raise AuthProviderError(
                "A user with this email address has already been registered", status_code=422, code="email_exists"
            )
        user = self.add_user(email, confirmed=email_confirm)
        user.user_metadata = dict(user_metadata or {})
        self.passwords[user.id] = password
        return user

    async def get_user_by_id(self, user_id: str) -> AuthUser:
        if user_id not in self.users:
            raise AuthProviderError("User not found", status_code=404, code="user_not_found")
        return self.users[user_id]

    async def update_user_by_id(self, user_id: str, **attributes) -> AuthUser:
        if self.fail_updates:
            raise AuthProviderError("Service unavailable", status_code=503)
        user = await self.get_user_by_id(user_id)
        if attributes.get("email_confirm"):
            user.email_confirmed_at = datetime.now(UTC)
        if "password" in attributes:
            self.passwords[user_id] = attributes["password"]
        return user

    async def delete_user(self, user_id: str) -> None:
        await self.get_user_by_id(user_id)
        del self.users[user_id]

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        user = await self.find_user_by_email(email)
        if self.fail_sign_in or user is None or self.passwords.get(user.id) != password:
            raise AuthProviderError("Invalid login credentials", status_code=400, code="invalid_credentials")
        return AuthSession(
            access_token=f"access-{user.id}",
            refresh_token=f"refresh-{user.id}",
            expires_in=3600,
            expires_at=1_800_000_000,
            user=user,
        )


class FakeMailer:
    """Records what would have been emailed."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, purpose: TokenPurpose, email: str, token_or_code: str, template_data=None) -> str:
        if self.fail:
            raise EmailDispatchError("Resend is down")
        self.sent.append({"purpose": purpose, "email": email, "token": token_or_code, "data": template_data})
        return f"msg-{len(self.sent)}"

    def last(self, purpose: TokenPurpose) -> dict:
        return [m for m in self.sent if m["purpose"] == purpose][-1]


@pytest.fixture
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate limiter is process-global; start every test clean."""
    rate_limiter._requests.clear()
    yield
    rate_limiter._requests.clear()


@pytest_asyncio.fixture(loop_scope="session")
async def async_client(store, clock, provider, mailer):
    """Async HTTP client against the ASGI app, wired to in-memory fakes."""
    app.dependency_overrides[get_token_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_auth_provider] = lambda: provider
    app.dependency_overrides[get_email_dispatcher] = lambda: mailer
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
