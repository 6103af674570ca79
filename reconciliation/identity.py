"""
Identifier-space classification for registered keys.

A registered key is either an account ID (``t2_`` prefix) or a username.
The classification depends only on the key's literal form; the store does
not record which space a key belongs to, and the two spaces are never
merged or normalized into each other.
"""

ACCOUNT_ID_PREFIX = "t2_"


def is_account_id(key: str, prefix: str = ACCOUNT_ID_PREFIX) -> bool:
    """Return True if *key* is an account ID (starts with *prefix*, case-sensitive).

    Examples:
        >>> is_account_id("t2_abc123")
        True
        >>> is_account_id("spez")
        False
    """
    return key.startswith(prefix)
