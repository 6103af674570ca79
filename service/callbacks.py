"""Default on-deleted cleanup callbacks.

The callback is where an embedding application deletes everything it stored
for an account. It receives **either** the user ID **or** the username that
was registered, never both, so data should be keyed by one of them
(ideally the user ID).

Callbacks must be safe to call more than once for the same key: if the
unregister after a successful cleanup fails, the next run calls again.
"""

from __future__ import annotations

import logging
from typing import Sequence

logger = logging.getLogger(__name__)


class RedisDataCleanup:
    """Delete a user's Redis data when the account is gone.

    For a deleted key, removes it as a member of every sorted set in
    *sorted_sets* (e.g. leaderboards) and deletes every key produced by
    formatting *key_templates* with ``key=<user id or username>``
    (e.g. ``"usr:{key}:awards"``). ZREM and DEL of missing data are no-ops,
    so repeated calls are harmless. Redis errors propagate so the reconciler
    keeps the registration and retries on the next run.

    Example:
        >>> cleanup = RedisDataCleanup(redis, ["game:leaderboard"], ["usr:{key}:awards"])
        >>> await cleanup("t2_abc123", True)
    """

    def __init__(self, redis_client, sorted_sets: Sequence[str] = (), key_templates: Sequence[str] = ()):
        self._redis = redis_client
        self.sorted_sets = list(sorted_sets)
        self.key_templates = list(key_templates)

    async def __call__(self, user_id_or_username: str, is_user_id: bool) -> None:
        for sorted_set in self.sorted_sets:
            await self._redis.zrem(sorted_set, user_id_or_username)

        keys = [template.format(key=user_id_or_username) for template in self.key_templates]
        if keys:
            await self._redis.delete(*keys)

        logger.info(
            "Cleaned up deleted user data",
            extra={
                "user": user_id_or_username,
                "is_user_id": is_user_id,
                "sorted_sets": len(self.sorted_sets),
                "keys": len(keys),
            },
        )


async def log_only_cleanup(user_id_or_username: str, is_user_id: bool) -> None:
    """Fallback callback when nothing is configured to clean up."""
    logger.info(
        "Deleted user detected; no cleanup configured",
        extra={"user": user_id_or_username, "is_user_id": is_user_id},
    )
