"""Key-value token store backed by the kv_store table."""

from __future__ import annotations

from typing import Any, Protocol

import asyncpg

from potential_auth import config
from potential_auth.db import system_conn
from potential_auth.errors import TokenStoreError


def _like_prefix(prefix: str) -> str:
    """Escape LIKE wildcards so the prefix matches literally."""
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TokenStore(Protocol):
    """Contract every token store implements."""

    async def set(self, key: str, value: dict[str, Any]) -> None: ...

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def delete(self, key: str) -> None: ...

    async def pop(self, key: str) -> dict[str, Any] | None: ...

    async def restore(self, key: str, value: dict[str, Any]) -> None: ...

    async def get_by_prefix(self, prefix: str) -> list[dict[str, Any]]: ...


class PostgresTokenStore:
    """All kv_store database operations."""

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """
        Insert or replace the value stored under a key.

        Args:
            key: Store key, e.g. "email_verification:<uuid>"
            value: JSON-serializable payload
        """
        try:
            async with system_conn() as conn:
                await conn.execute(
                    """
                    INSERT INTO kv_store (key, value)
                    VALUES ($1, $2)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """,
                    key,
                    value,
                )
        except asyncpg.PostgresError as e:
            raise TokenStoreError(f"Failed to write {key.split(':', 1)[0]} token") from e

    async def get(self, key: str) -> dict[str, Any] | None:
        """
        Get the value stored under a key.

        Returns:
            Payload dict if found, None otherwise
        """
        try:
            async with system_conn() as conn:
                return await conn.fetchval("SELECT value FROM kv_store WHERE key = $1", key)
        except asyncpg.PostgresError as e:
            raise TokenStoreError("Failed to read token") from e

    async def delete(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error."""
        try:
            async with system_conn() as conn:
                await conn.execute("DELETE FROM kv_store WHERE key = $1", key)
        except asyncpg.PostgresError as e:
            raise TokenStoreError("Failed to delete token") from e

    async def pop(self, key: str) -> dict[str, Any] | None:
        """
        Atomically delete a key and return what it held.

        Two concurrent callers can never both receive the value.

        Returns:
            Previous payload, or None if the key was absent
        """
        try:
            async with system_conn() as conn:
                return await conn.fetchval(
                    "DELETE FROM kv_store WHERE key = $1 RETURNING value",
                    key,
                )
        except asyncpg.PostgresError as e:
            raise TokenStoreError("Failed to claim token") from e

    async def restore(self, key: str, value: dict[str, Any]) -> None:
        """
        Put a claimed token back unless the key was written again meanwhile.

        A newer token under the same key (a re-issued code) always wins.
        """
        try:
            async with system_conn() as conn:
                await conn.execute(
                    """
                    INSERT INTO kv_store (key, value)
                    VALUES ($1, $2)
                    ON CONFLICT (key) DO NOTHING
                    """,
                    key,
                    value,
                )
        except asyncpg.PostgresError as e:
            raise TokenStoreError("Failed to restore token") from e

    async def get_by_prefix(self, prefix: str) -> list[dict[str, Any]]:
        """
        List all entries whose key starts with prefix.

        Served by the text_pattern_ops index on kv_store.key.

        Returns:
            List of {"key": ..., "value": ...} dicts
        """
        try:
            async with system_conn() as conn:
                rows = await conn.fetch(
                    "SELECT key, value FROM kv_store WHERE key LIKE $1 || '%'",
                    _like_prefix(prefix),
                )
                return [{"key": row["key"], "value": row["value"]} for row in rows]
        except asyncpg.PostgresError as e:
            raise TokenStoreError("Failed to list tokens") from e


class InMemoryTokenStore:
    """
    Dict-backed token store for local development and tests.

    Lives for the lifetime of the process. Not shared between workers.
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def set(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = dict(value)

    async def get(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def pop(self, key: str) -> dict[str, Any] | None:
        return self._data.pop(key, None)

    async def restore(self, key: str, value: dict[str, Any]) -> None:
        self._data.setdefault(key, dict(value))

    async def get_by_prefix(self, prefix: str) -> list[dict[str, Any]]:
        return [{"key": k, "value": dict(v)} for k, v in self._data.items() if k.startswith(prefix)]

    def keys(self) -> list[str]:
        return list(self._data)


_memory_store = InMemoryTokenStore()


def get_token_store() -> TokenStore:
    """
    FastAPI dependency returning the configured token store.

    The Postgres store holds no state of its own; every call borrows a
    connection from the shared pool.
    """
    if config.settings.TOKEN_STORE_BACKEND == "memory":
        return _memory_store
    return PostgresTokenStore()
