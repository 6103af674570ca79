"""
Registration operations consumed by application code.

Stateless pass-throughs that work on the store instance passed in.
"""

import logging

from registry.store import RegistrationStore

log = logging.getLogger(__name__)


async def register_user_for_delete_check(store: RegistrationStore, user_id_or_username: str) -> None:
    """
    Register a user ID (preferred) or username for deletion checks.

    Only the value registered is handed back when the account is deleted.
    A user ID cannot later be turned into a username, so register both if
    your data is keyed by both.

    Args:
        store: RegistrationStore instance
        user_id_or_username: ``t2_``-prefixed user ID, or a username

    Raises:
        ValueError: Empty key
        StoreError: Store write failed

    Example:
        >>> await register_user_for_delete_check(store, "t2_abc123")
    """
    if not user_id_or_username:
        raise ValueError("user_id_or_username must be a non-empty string")
    await store.register(user_id_or_username)
    log.debug("Registered %s for delete checks", user_id_or_username)


async def unregister_user_for_delete_check(store: RegistrationStore, user_id_or_username: str) -> None:
    """
    Stop deletion checks for a user ID or username.

    Unregistering a key that was never registered is not an error.
    """
    if not user_id_or_username:
        raise ValueError("user_id_or_username must be a non-empty string")
    await store.unregister(user_id_or_username)
    log.debug("Unregistered %s from delete checks", user_id_or_username)
