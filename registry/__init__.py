"""
registry — Registration Store for user delete detection.

Public API:
    RegistrationStore                 -- store protocol
    RedisRegistrationStore            -- Redis sorted-set store
    MemoryRegistrationStore           -- in-process fallback store
    RegisteredIdentifier              -- (key, score) entry
    StoreError                        -- store read/write failure
    register_user_for_delete_check    -- start watching a user ID or username
    unregister_user_for_delete_check  -- stop watching a user ID or username
"""

from registry.store import (
    DEFAULT_REGISTRY_KEY,
    MemoryRegistrationStore,
    RedisRegistrationStore,
    RegisteredIdentifier,
    RegistrationStore,
    StoreError,
    now_ms,
)
from registry.operations import (
    register_user_for_delete_check,
    unregister_user_for_delete_check,
)

__all__ = [
    "DEFAULT_REGISTRY_KEY",
    "MemoryRegistrationStore",
    "RedisRegistrationStore",
    "RegisteredIdentifier",
    "RegistrationStore",
    "StoreError",
    "now_ms",
    "register_user_for_delete_check",
    "unregister_user_for_delete_check",
]
