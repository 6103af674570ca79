"""Unit tests for RunLease and RunStateRecorder."""

import json

import pytest

from reconciliation.reconciler import RunSummary
from reconciliation.scheduler import ReconciliationState, RunLease, RunStateRecorder

LEASE_KEY = "usr:del-det:lease"
STATE_KEY = "usr:del-det:last-run"


# =============================================================================
# ReconciliationState Defaults
# =============================================================================

def test_default_state():
    """Fresh ReconciliationState has last_run_time=0.0, run_count=0."""
    state = ReconciliationState()
    assert state.last_run_time == 0.0
    assert state.run_count == 0
    assert state.last_candidates == 0
    assert state.last_truncated is False


# =============================================================================
# RunLease
# =============================================================================

@pytest.mark.asyncio
async def test_lease_acquire_sets_key_with_ttl(fake_redis):
    lease = RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000)

    assert await lease.acquire() is True
    assert lease.held is True
    assert fake_redis.set_calls[0]["nx"] is True
    assert fake_redis.set_calls[0]["px"] == 30_000
    assert LEASE_KEY in fake_redis.strings


@pytest.mark.asyncio
async def test_second_lease_is_refused_while_first_held(fake_redis):
    first = RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000)
    second = RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000)

    assert await first.acquire() is True
    assert await second.acquire() is False
    assert second.held is False


@pytest.mark.asyncio
async def test_release_frees_lease_for_next_run(fake_redis):
    first = RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000)
    await first.acquire()
    await first.release()

    assert LEASE_KEY not in fake_redis.strings
    assert await RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000).acquire() is True


@pytest.mark.asyncio
async def test_release_does_not_delete_someone_elses_lease(fake_redis):
    """A run whose lease expired must not release its successor's lease."""
    stale = RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000)
    await stale.acquire()
    # Lease expired and another run took it
    fake_redis.strings[LEASE_KEY] = "successor-token"

    await stale.release()

    assert fake_redis.strings[LEASE_KEY] == "successor-token"


@pytest.mark.asyncio
async def test_release_errors_are_swallowed(fake_redis, redis_connection_error):
    lease = RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000)
    await lease.acquire()
    fake_redis.fail_with = redis_connection_error

    await lease.release()

    assert lease.held is False


@pytest.mark.asyncio
async def test_lease_without_redis_is_always_granted():
    """Single-instance mode: no Redis, no contention."""
    lease = RunLease(None, LEASE_KEY, ttl_ms=30_000)

    async with lease as acquired:
        assert acquired is True
        assert lease.held is True
    assert lease.held is False


@pytest.mark.asyncio
async def test_lease_context_manager_releases_on_error(fake_redis):
    with pytest.raises(RuntimeError):
        async with RunLease(fake_redis, LEASE_KEY, ttl_ms=30_000) as acquired:
            assert acquired is True
            raise RuntimeError("run failed")

    assert LEASE_KEY not in fake_redis.strings


# =============================================================================
# RunStateRecorder
# =============================================================================

@pytest.mark.asyncio
async def test_load_state_missing_returns_defaults(fake_redis):
    recorder = RunStateRecorder(fake_redis, STATE_KEY)

    state = await recorder.load_state()

    assert state == ReconciliationState()


@pytest.mark.asyncio
async def test_record_run_persists_summary(fake_redis):
    recorder = RunStateRecorder(fake_redis, STATE_KEY)
    summary = RunSummary(
        candidates=10, processed=4, deleted_found=2, cleaned_up=1,
        provider_errors=1, callback_errors=1, truncated=True, duration_ms=15_001,
    )

    await recorder.record_run(summary)
    state = await recorder.record_run(summary)

    stored = json.loads(fake_redis.strings[STATE_KEY])
    assert stored["run_count"] == 2
    assert state.run_count == 2
    assert state.last_candidates == 10
    assert state.last_processed == 4
    assert state.last_deleted_found == 2
    assert state.last_cleaned_up == 1
    assert state.last_errors == 2
    assert state.last_truncated is True
    assert state.last_duration_ms == 15_001
    assert state.last_run_time > 0


@pytest.mark.asyncio
async def test_load_state_corrupt_json_returns_defaults(fake_redis):
    """Corrupt JSON returns defaults (graceful degradation)."""
    fake_redis.strings[STATE_KEY] = "{invalid json content"
    recorder = RunStateRecorder(fake_redis, STATE_KEY)

    state = await recorder.load_state()

    assert state.run_count == 0


@pytest.mark.asyncio
async def test_load_state_unknown_fields_returns_defaults(fake_redis):
    fake_redis.strings[STATE_KEY] = json.dumps({"unexpected": 1})
    recorder = RunStateRecorder(fake_redis, STATE_KEY)

    assert await recorder.load_state() == ReconciliationState()


@pytest.mark.asyncio
async def test_save_failure_is_not_raised(fake_redis, redis_connection_error):
    recorder = RunStateRecorder(fake_redis, STATE_KEY)
    fake_redis.fail_with = redis_connection_error

    state = await recorder.record_run(RunSummary(processed=1))

    assert state.run_count == 1


@pytest.mark.asyncio
async def test_recorder_without_redis_keeps_state_in_process():
    recorder = RunStateRecorder(None, STATE_KEY)

    await recorder.record_run(RunSummary(processed=3))

    state = await recorder.load_state()
    assert state.run_count == 1
    assert state.last_processed == 3
