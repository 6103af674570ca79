"""
shared_lib — Clients shared by the detector service and embedding apps.

Public API:
    IdentityClient            -- async identity provider client
    IdentityRecord            -- typed Pydantic account model
    IdentityProviderError     -- no definitive answer from the provider
    IdentityConnectionError   -- provider unreachable or timed out
    IdentityQueryError        -- unexpected status or body
"""

from shared_lib.identity_client import (
    IdentityClient,
    IdentityRecord,
    IdentityProviderError,
    IdentityConnectionError,
    IdentityQueryError,
)

__all__ = [
    "IdentityClient",
    "IdentityRecord",
    "IdentityProviderError",
    "IdentityConnectionError",
    "IdentityQueryError",
]
