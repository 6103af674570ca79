"""POST /internal/scheduler/check-deleted-users — Scheduler trigger.

Called by an external cron dispatcher on a fixed interval (e.g. every
5 minutes) with an empty body. Each call runs one time-boxed reconciliation
pass; anything left over is picked up by the next call.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from reconciliation.scheduler import RunLease
from service.models import SchedulerResponse

router = APIRouter()
logger = logging.getLogger(__name__)

SCHEDULER_PATH = "/internal/scheduler/check-deleted-users"


@router.post(SCHEDULER_PATH)
async def check_deleted_users(request: Request) -> JSONResponse:
    """Run one bounded deletion-detection pass."""
    state = request.app.state
    settings = state.settings
    start = time.perf_counter()

    lease = RunLease(
        state.lease_client,
        f"{settings.registry_key}:lease",
        settings.run_lease_ttl_ms,
    )
    try:
        async with lease as acquired:
            if not acquired:
                body = SchedulerResponse(status="complete", skipped=True)
                return JSONResponse(content=body.model_dump(exclude_none=True))

            summary = await state.reconciler.run(
                staleness_window_ms=settings.staleness_window_ms,
                time_budget_ms=settings.time_budget_ms,
            )

        await state.recorder.record_run(summary)

    except Exception as exc:
        logger.error(f"Error in delete-user detector scheduler: {exc}", exc_info=True)
        body = SchedulerResponse(
            status="error",
            message=f"Error in delete-user detector scheduler: {exc}",
        )
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    finally:
        logger.debug(
            "Done checking for deleted users",
            extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)},
        )

    body = SchedulerResponse(status="complete", summary=summary.to_dict())
    return JSONResponse(content=body.model_dump(exclude_none=True))
