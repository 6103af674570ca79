"""PUT/DELETE /internal/registrations/{key} — Registration API.

HTTP pass-throughs to register_user_for_delete_check and
unregister_user_for_delete_check, for applications that do not embed the
registry package directly.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from registry.operations import register_user_for_delete_check, unregister_user_for_delete_check
from registry.store import StoreError
from service.models import RegistrationResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def _store_error(key: str, exc: StoreError) -> JSONResponse:
    logger.error("Registration store unavailable", extra={"key": key, "error": str(exc)})
    body = RegistrationResponse(status="error", key=key, message=str(exc))
    return JSONResponse(status_code=503, content=body.model_dump(exclude_none=True))


@router.put("/internal/registrations/{key}")
async def register(key: str, request: Request) -> JSONResponse:
    """Register a user ID or username for deletion checks."""
    try:
        await register_user_for_delete_check(request.app.state.store, key)
    except StoreError as exc:
        return _store_error(key, exc)

    logger.info("Registered for delete checks", extra={"key": key})
    return JSONResponse(content=RegistrationResponse(status="ok", key=key).model_dump(exclude_none=True))


@router.delete("/internal/registrations/{key}")
async def unregister(key: str, request: Request) -> JSONResponse:
    """Remove a user ID or username from deletion checks."""
    try:
        await unregister_user_for_delete_check(request.app.state.store, key)
    except StoreError as exc:
        return _store_error(key, exc)

    logger.info("Unregistered from delete checks", extra={"key": key})
    return JSONResponse(content=RegistrationResponse(status="ok", key=key).model_dump(exclude_none=True))
