"""Administrative routes. Disabled unless ADMIN_API_KEY is set."""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, status

from potential_auth import config
from potential_auth.errors import ApiError, AuthProviderError, TokenStoreError
from potential_auth.models.auth import PurgeUsersResponse
from potential_auth.models.token import TokenPurpose
from potential_auth.repos.token_store import TokenStore, get_token_store
from potential_auth.services.auth_provider import SupabaseAuthProvider, get_auth_provider
from potential_auth.services.cleanup import purge_all

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{config.settings.SERVICE_PREFIX}/admin", tags=["admin"])


def require_admin_key(x_admin_key: Annotated[str | None, Header()] = None) -> None:
    """
    Guard for admin routes.

    Raises:
        ApiError: 404 when admin routes are disabled, 403 on a wrong key
    """
    expected = config.settings.ADMIN_API_KEY
    if not expected:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Not found.")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Invalid admin key.")


@router.post("/purge-users", status_code=200, response_model_exclude_none=True, dependencies=[Depends(require_admin_key)])
async def purge_users_endpoint(
    store: TokenStore = Depends(get_token_store),
    provider: SupabaseAuthProvider = Depends(get_auth_provider),
) -> PurgeUsersResponse:
    """
    Delete every account and every outstanding token.

    Destructive. Meant for resetting staging environments.
    """
    logger.warning("Purging all users")
    try:
        users = await provider.list_all_users()
    except AuthProviderError as e:
        logger.error("Listing users failed: %s", e.message)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to list users.") from e

    deleted_count = 0
    errors: list[dict[str, str]] = []
    for user in users:
        try:
            await provider.delete_user(user.id)
            deleted_count += 1
        except AuthProviderError as e:
            logger.error("Deleting user %s failed: %s", user.email, e.message)
            errors.append({"email": user.email or user.id, "error": e.message})

    purged_tokens = 0
    for purpose in TokenPurpose:
        try:
            purged_tokens += await purge_all(store, f"{purpose.value}:")
        except TokenStoreError:
            # Accounts are already gone; leftover tokens just expire
            logger.exception("Purging %s tokens failed", purpose.value)

    logger.warning("Purge finished: %d deleted, %d failed, %d tokens", deleted_count, len(errors), purged_tokens)
    return PurgeUsersResponse(
        message=f"Deleted {deleted_count} users.",
        deleted_count=deleted_count,
        failed_count=len(errors),
        purged_tokens=purged_tokens,
        errors=errors or None,
    )
