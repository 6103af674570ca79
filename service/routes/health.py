"""GET /health — Health status endpoint.

Returns current service status including version, uptime, store backend,
number of registrations, and the last reconciliation run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from registry.store import StoreError
from service import __version__
from service.models import HealthResponse

router = APIRouter()
logger = logging.getLogger(__name__)

# Module-level start time: records when the module was imported (proxy for app start)
_start_time = time.time()


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Return service health status."""
    store = request.app.state.store

    status = "ok"
    try:
        registrations = await store.size()
    except StoreError as exc:
        logger.warning("Health check could not reach the store", extra={"error": str(exc)})
        registrations = None
        status = "degraded"

    last_run = await request.app.state.recorder.load_state()

    body = HealthResponse(
        status=status,
        version=__version__,
        uptime_seconds=int(time.time() - _start_time),
        store_backend=getattr(store, "backend", type(store).__name__),
        registrations=registrations,
        last_run=asdict(last_run),
    )
    return JSONResponse(content=body.model_dump())
