"""
Repository layer for the auth service.

All SQL lives here and ONLY here. No database access outside this module.
"""

from potential_auth.repos.token_store import (
    InMemoryTokenStore,
    PostgresTokenStore,
    TokenStore,
    get_token_store,
)

__all__ = [
    "TokenStore",
    "PostgresTokenStore",
    "InMemoryTokenStore",
    "get_token_store",
]
