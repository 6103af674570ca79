"""Pydantic response models for the delete detector HTTP API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class SchedulerResponse(BaseModel):
    """Body returned to the cron dispatcher by the scheduler trigger."""

    status: str
    message: Optional[str] = None
    skipped: Optional[bool] = None
    summary: Optional[dict[str, Any]] = None


class RegistrationResponse(BaseModel):
    """Body returned by the register/unregister endpoints."""

    status: str
    key: Optional[str] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Body returned by GET /health."""

    status: str = "ok"
    version: str
    uptime_seconds: int
    store_backend: str
    registrations: Optional[int] = None
    last_run: dict[str, Any] = Field(default_factory=dict)
