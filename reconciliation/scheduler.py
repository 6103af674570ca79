"""
Run coordination for the scheduled delete detector.

The detector is not a timer/thread: an external cron dispatcher calls the
trigger endpoint on a fixed interval. This module provides what each
invocation needs around the reconciler itself:

- RunLease: a Redis lease so overlapping invocations (HTTP retries, two
  replicas) never reconcile the same store concurrently.
- RunStateRecorder: persisted summary of the last run, for /health.

Without a Redis client both fall back to single-instance behaviour.
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Optional

from redis.exceptions import RedisError

log = logging.getLogger(__name__)

# Compare-and-delete: only the lease owner may release it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@dataclass
class ReconciliationState:
    """Persisted state of the most recent reconciliation run."""
    last_run_time: float = 0.0          # time.time() of last run
    last_candidates: int = 0            # stale entries selected
    last_processed: int = 0             # entries visited
    last_deleted_found: int = 0         # deletions detected
    last_cleaned_up: int = 0            # deletions cleaned up and unregistered
    last_errors: int = 0                # provider + callback failures
    last_truncated: bool = False        # stopped early on time budget?
    last_duration_ms: int = 0
    run_count: int = 0                  # total runs


class RunLease:
    """Exclusive lease for one reconciliation run.

    Uses Redis ``SET key token NX PX ttl``; the lease expires on its own if
    the holder dies. Released with an atomic compare-and-delete so a run that
    overran its TTL cannot release a successor's lease.

    Args:
        redis_client: redis.asyncio client, or None for single-instance mode
        key: Lease key
        ttl_ms: Lease lifetime in milliseconds
    """

    def __init__(self, redis_client, key: str, ttl_ms: int):
        self._redis = redis_client
        self.key = key
        self.ttl_ms = ttl_ms
        self._token: Optional[str] = None

    @property
    def held(self) -> bool:
        return self._token is not None

    async def acquire(self) -> bool:
        """Try to take the lease once, without waiting.

        Returns:
            True if this instance now holds the lease.

        Raises:
            RedisError: Redis unavailable. Callers treat this like any
                        other store failure.
        """
        if self._redis is None:
            self._token = "single-instance"
            return True

        token = uuid.uuid4().hex
        acquired = await self._redis.set(self.key, token, nx=True, px=self.ttl_ms)
        if acquired:
            self._token = token
            log.debug(f"Acquired run lease {self.key} (ttl {self.ttl_ms} ms)")
            return True

        log.warning(f"Run lease {self.key} is held by another run, skipping")
        return False

    async def release(self) -> None:
        """Release the lease if held. Release errors are logged, not raised."""
        token, self._token = self._token, None
        if token is None or self._redis is None:
            return
        try:
            await self._redis.eval(_RELEASE_SCRIPT, 1, self.key, token)
            log.debug(f"Released run lease {self.key}")
        except RedisError as e:
            log.warning(f"Failed to release run lease {self.key}, it will expire: {e}")

    async def __aenter__(self) -> bool:
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


class RunStateRecorder:
    """Loads and records the last-run state.

    State is a JSON string at *key* in Redis, or kept in-process when no
    Redis client is configured.
    """

    def __init__(self, redis_client, key: str):
        self._redis = redis_client
        self.key = key
        self._local: Optional[ReconciliationState] = None

    async def load_state(self) -> ReconciliationState:
        """Load state, falling back to defaults when missing or unreadable."""
        if self._redis is None:
            return self._local or ReconciliationState()
        try:
            raw = await self._redis.get(self.key)
            if raw:
                return ReconciliationState(**json.loads(raw))
        except (RedisError, json.JSONDecodeError, TypeError) as e:
            log.debug(f"Failed to load reconciliation state, using defaults: {e}")
        return ReconciliationState()

    async def save_state(self, state: ReconciliationState) -> None:
        """Save state. Failures are logged; the run itself already succeeded."""
        if self._redis is None:
            self._local = state
            return
        try:
            await self._redis.set(self.key, json.dumps(asdict(state)))
        except RedisError as e:
            log.warning(f"Failed to save reconciliation state: {e}")

    async def record_run(self, summary) -> ReconciliationState:
        """Record a completed reconciliation run.

        Args:
            summary: RunSummary from DeletionReconciler.run()

        Returns:
            The updated state
        """
        state = await self.load_state()
        state.last_run_time = time.time()
        state.last_candidates = summary.candidates
        state.last_processed = summary.processed
        state.last_deleted_found = summary.deleted_found
        state.last_cleaned_up = summary.cleaned_up
        state.last_errors = summary.provider_errors + summary.callback_errors
        state.last_truncated = summary.truncated
        state.last_duration_ms = summary.duration_ms
        state.run_count += 1
        await self.save_state(state)
        return state
