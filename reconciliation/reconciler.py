"""
Deletion reconciler for registered user IDs and usernames.

Runs one bounded pass over stale registrations: asks the identity provider
whether each account still exists, re-stamps the ones that do, and hands
confirmed deletions to the cleanup callback before unregistering them.
Work beyond the time budget is left in the store for the next run.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

from reconciliation.identity import is_account_id
from registry.store import RegisteredIdentifier, RegistrationStore, now_ms

log = logging.getLogger(__name__)

DEFAULT_STALENESS_WINDOW_MS = 86_400_000  # 24 hours
DEFAULT_TIME_BUDGET_MS = 15_000

# (user_id_or_username, is_user_id). Raise to signal failure.
OnDeletedCallback = Callable[[str, bool], Awaitable[None]]


class IdentityProvider(Protocol):
    """Anything that can tell whether an account still exists.

    Both methods return a record when the account exists and None
    when it has been deleted; they raise when no definitive answer exists.
    """

    async def exists_by_id(self, account_id: str) -> Optional[Any]: ...

    async def exists_by_name(self, username: str) -> Optional[Any]: ...


class CallbackError(Exception):
    """The on-deleted cleanup callback failed for one key."""

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"Cleanup callback failed for {key}: {cause}")
        self.key = key
        self.cause = cause


@dataclass
class RunSummary:
    """Result summary from one reconciliation run.

    Attributes:
        started_at: Run timestamp (ms since epoch); used as the re-check score
        stale_cutoff: started_at - staleness window; entries at or below are due
        candidates: Number of stale entries selected
        processed: Candidates whose branch completed (including per-item failures)
        deleted_found: Candidates the provider reported as deleted
        cleaned_up: Deletions whose callback succeeded and were unregistered
        rechecked: Candidates confirmed existing and re-stamped
        provider_errors: Lookups that failed; entry left for next run
        callback_errors: Callbacks that failed; entry left for next run
        remaining: Candidates not visited because the budget elapsed
        truncated: True if the run stopped early with candidates unvisited
        duration_ms: Wall-clock time spent in the run
        errors: Non-fatal per-item error messages
    """
    started_at: int = 0
    stale_cutoff: int = 0
    candidates: int = 0
    processed: int = 0
    deleted_found: int = 0
    cleaned_up: int = 0
    rechecked: int = 0
    provider_errors: int = 0
    callback_errors: int = 0
    remaining: int = 0
    truncated: bool = False
    duration_ms: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DeletionReconciler:
    """Detects deleted accounts among stale registrations.

    Candidates are processed strictly one at a time, oldest-checked first.
    The elapsed time is checked only after a candidate's branch has fully
    completed, so every entry ends a run either re-stamped, removed, or
    untouched.

    Args:
        store: RegistrationStore holding registrations
        identity_provider: Provider answering exists_by_id / exists_by_name
        on_deleted: Async cleanup callback invoked once per confirmed deletion
        logger: Logger for run events (default: this module's logger)
        clock: Returns current time in ms (default: wall clock). For testing.
    """

    def __init__(
        self,
        store: RegistrationStore,
        identity_provider: IdentityProvider,
        on_deleted: OnDeletedCallback,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.store = store
        self.identity_provider = identity_provider
        self.on_deleted = on_deleted
        self.log = logger or log
        self.clock = clock or now_ms

    async def run(
        self,
        now: Optional[int] = None,
        staleness_window_ms: int = DEFAULT_STALENESS_WINDOW_MS,
        time_budget_ms: int = DEFAULT_TIME_BUDGET_MS,
    ) -> RunSummary:
        """Run one bounded reconciliation pass.

        Args:
            now: Run start time in ms (default: clock()). Also the score
                 written for accounts confirmed to still exist.
            staleness_window_ms: Entries last checked at or before
                 now - staleness_window_ms are candidates.
            time_budget_ms: Stop starting new candidates once more than this
                 much time has elapsed since now.

        Returns:
            RunSummary with counts and per-item errors

        Raises:
            StoreError: Any store read/write failed; the run is aborted.
        """
        if now is None:
            now = self.clock()
        started = time.perf_counter()

        summary = RunSummary(started_at=now, stale_cutoff=now - staleness_window_ms)

        candidates = await self.store.select_stale(summary.stale_cutoff)
        summary.candidates = len(candidates)
        if not candidates:
            self.log.debug("Found 0 users to check for deletion")
            summary.duration_ms = _elapsed_ms(started)
            return summary

        self.log.debug(f"Found {len(candidates)} users to check for deletion")

        for index, candidate in enumerate(candidates):
            await self._process(candidate, now, summary)
            summary.processed += 1

            if self.clock() - now > time_budget_ms:
                summary.remaining = len(candidates) - (index + 1)
                if summary.remaining:
                    summary.truncated = True
                    self.log.warning(
                        f"User delete checking reached {time_budget_ms} ms with "
                        f"{summary.remaining} users left. Continuing on next run."
                    )
                break

        summary.duration_ms = _elapsed_ms(started)
        self.log.info(
            f"Checked {summary.processed}/{summary.candidates} users: "
            f"{summary.deleted_found} deleted ({summary.cleaned_up} cleaned up), "
            f"{summary.rechecked} still exist, "
            f"{summary.provider_errors + summary.callback_errors} errors"
            + (", truncated" if summary.truncated else "")
        )
        return summary

    async def _process(self, candidate: RegisteredIdentifier, now: int, summary: RunSummary) -> None:
        """Run the full existence-check branch for one candidate.

        Provider and callback failures are recorded and absorbed; store
        failures propagate.
        """
        key = candidate.key
        is_user_id = is_account_id(key)

        try:
            if is_user_id:
                profile = await self.identity_provider.exists_by_id(key)
            else:
                profile = await self.identity_provider.exists_by_name(key)
        except Exception as e:
            summary.provider_errors += 1
            summary.errors.append(f"Lookup failed for {key}: {e}")
            self.log.warning(f"Error while checking user {key}, retrying next run: {e}")
            return

        if profile is not None:
            await self.store.touch(key, now)
            summary.rechecked += 1
            return

        summary.deleted_found += 1
        self.log.info(f"Found user {key} has been deleted")

        try:
            await self._cleanup(key, is_user_id)
        except CallbackError as e:
            summary.callback_errors += 1
            summary.errors.append(str(e))
            self.log.error(f"Error while processing deletion of user {key}: {e.cause}")
            return

        await self.store.unregister(key)
        summary.cleaned_up += 1

    async def _cleanup(self, key: str, is_user_id: bool) -> None:
        try:
            await self.on_deleted(key, is_user_id)
        except Exception as e:
            raise CallbackError(key, e) from e


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
