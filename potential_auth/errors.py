"""Exception types shared across services and routes."""

from __future__ import annotations


class ApiError(Exception):
    """
    Error raised by a route handler, rendered as a JSON error body.

    Attributes:
        status_code: HTTP status code to return
        message: Human-readable message, returned under "error"
        code: Optional machine-readable code (e.g. "email_exists")
        headers: Optional response headers (e.g. Retry-After)
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.code = code
        self.headers = headers
        super().__init__(message)


class AuthProviderError(Exception):
    """The auth provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

    @property
    def is_email_exists(self) -> bool:
        return self.code == "email_exists" or "already been registered" in self.message


class EmailDispatchError(Exception):
    """The transactional email API did not accept a message."""


class TokenStoreError(Exception):
    """The token store failed to read or write a key."""
