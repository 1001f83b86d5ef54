"""HTTP client for the Supabase (GoTrue) auth admin API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from potential_auth import config
from potential_auth.errors import AuthProviderError
from potential_auth.models.auth import AuthSession, AuthUser

logger = logging.getLogger(__name__)

_USERS_PER_PAGE = 1000


class SupabaseAuthProvider:
    """HTTP client for the GoTrue admin endpoints.

    Admin calls authenticate with the service role key. The password grant
    uses the anon key, the same way a browser client would sign in.
    """

    def __init__(
        self,
        base_url: str | None = None,
        service_role_key: str | None = None,
        anon_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._base_url = (base_url or config.settings.SUPABASE_URL).rstrip("/")
        self._service_role_key = service_role_key or config.settings.SUPABASE_SERVICE_ROLE_KEY
        self._anon_key = anon_key or config.settings.SUPABASE_ANON_KEY
        self._timeout = timeout or config.settings.AUTH_PROVIDER_TIMEOUT_SECONDS

    def _admin_headers(self) -> dict[str, str]:
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a request to the auth API and decode the JSON body.

        Raises:
            AuthProviderError: On transport failure or any non-2xx response
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    method,
                    f"{self._base_url}/auth/v1{path}",
                    headers=headers if headers is not None else self._admin_headers(),
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as e:
            raise AuthProviderError(f"Auth provider unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = (
                body.get("msg")
                or body.get("message")
                or body.get("error_description")
                or body.get("error")
                or f"Auth provider returned {response.status_code}"
            )
            code = body.get("error_code") or body.get("code")
            raise AuthProviderError(str(message), status_code=response.status_code, code=code and str(code))

        if not response.content:
            return None
        return response.json()

    async def list_users(self, page: int = 1, per_page: int = _USERS_PER_PAGE) -> list[AuthUser]:
        """
        List one page of accounts.

        Args:
            page: 1-based page number
            per_page: Page size

        Returns:
            Accounts on that page (empty past the last page)
        """
        data = await self._request("GET", "/admin/users", params={"page": page, "per_page": per_page})
        return [AuthUser.model_validate(u) for u in (data or {}).get("users", [])]

    async def list_all_users(self) -> list[AuthUser]:
        """List every account, following pagination."""
        users: list[AuthUser] = []
        page = 1
        while True:
            batch = await self.list_users(page=page)
            users.extend(batch)
            if len(batch) < _USERS_PER_PAGE:
                return users
            page += 1

    async def find_user_by_email(self, email: str) -> AuthUser | None:
        """
        Find an account by email, case-insensitively.

        Returns:
            AuthUser if found, None otherwise
        """
        target = email.lower()
        for user in await self.list_all_users():
            if user.email and user.email.lower() == target:
                return user
        return None

    async def create_user(
        self,
        email: str,
        password: str,
        user_metadata: dict[str, Any] | None = None,
        email_confirm: bool = False,
    ) -> AuthUser:
        """
        Create an account.

        Raises:
            AuthProviderError: code "email_exists" when the address is taken
        """
        data = await self._request(
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "user_metadata": user_metadata or {},
                "email_confirm": email_confirm,
            },
        )
        return AuthUser.model_validate(data)

    async def get_user_by_id(self, user_id: str) -> AuthUser:
        data = await self._request("GET", f"/admin/users/{user_id}")
        return AuthUser.model_validate(data)

    async def update_user_by_id(self, user_id: str, **attributes: Any) -> AuthUser:
        """
        Update account attributes, e.g. email_confirm=True or password="...".
        """
        data = await self._request("PUT", f"/admin/users/{user_id}", json=attributes)
        return AuthUser.model_validate(data)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/admin/users/{user_id}")

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Exchange email and password for a session.

        Raises:
            AuthProviderError: If the credentials are rejected
        """
        data = await self._request(
            "POST",
            "/token",
            headers={"apikey": self._anon_key, "Authorization": f"Bearer {self._anon_key}"},
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return AuthSession.model_validate(data)


def get_auth_provider() -> SupabaseAuthProvider:
    """FastAPI dependency returning an auth provider client."""
    return SupabaseAuthProvider()
