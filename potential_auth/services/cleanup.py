"""Bulk removal of outstanding tokens, used when purging accounts."""

from __future__ import annotations

import logging

from potential_auth.repos.token_store import TokenStore

logger = logging.getLogger(__name__)


async def purge_all(store: TokenStore, prefix: str) -> int:
    """
    Delete every token whose key starts with prefix, expired or not.

    Args:
        store: Token store to sweep
        prefix: Key prefix, e.g. "email_verification:"

    Returns:
        Number of keys deleted
    """
    entries = await store.get_by_prefix(prefix)
    for entry in entries:
        await store.delete(entry["key"])

    if entries:
        logger.info("Purged %d tokens under %r", len(entries), prefix)
    return len(entries)
