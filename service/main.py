"""FastAPI application factory for the user delete detector.

Wires together configuration, structured logging, the Registration Store,
the identity client, the deletion reconciler, route registration, and HTTP
request logging middleware.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request, Response
from redis.exceptions import RedisError

from reconciliation.reconciler import DeletionReconciler, IdentityProvider, OnDeletedCallback
from reconciliation.scheduler import RunStateRecorder
from registry.store import MemoryRegistrationStore, RedisRegistrationStore, RegistrationStore
from service import __version__
from service.callbacks import RedisDataCleanup, log_only_cleanup
from service.config import DetectorSettings, get_settings
from service.logging_config import configure_logging
from service.routes import health, registration, scheduler
from shared_lib.identity_client import IdentityClient

logger = logging.getLogger(__name__)


async def _check_redis_connectivity(client, redis_url: str) -> bool:
    """Ping Redis once at startup. Returns False on any connection error."""
    try:
        reachable = bool(await client.ping())
    except (RedisError, OSError):
        reachable = False

    location = redis_url.split("@")[-1]
    if reachable:
        logger.info("Redis reachable", extra={"redis": location})
    else:
        logger.warning(
            "Redis unreachable; runs will fail until it recovers",
            extra={"redis": location},
        )
    return reachable


def _print_startup_banner(settings: DetectorSettings, backend: str) -> None:
    """Log the startup banner at info level."""
    logger.info(
        "User delete detector starting",
        extra={
            "version": __version__,
            "port": settings.service_port,
            "store_backend": backend,
            "registry_key": settings.registry_key,
            "staleness_window_seconds": settings.staleness_window_seconds,
            "time_budget_seconds": settings.time_budget_seconds,
            "run_lease_enabled": settings.run_lease_enabled,
        },
    )
    # Also emit a human-readable summary for log tailing
    logger.info(
        f"User delete detector v{__version__} | "
        f"Store: {backend} ({settings.registry_key}) | "
        f"Stale after: {settings.staleness_window_seconds:g}s | "
        f"Budget: {settings.time_budget_seconds:g}s"
    )


def _default_callback(settings: DetectorSettings, redis_client) -> OnDeletedCallback:
    if redis_client is not None and (settings.cleanup_sorted_sets or settings.cleanup_key_templates):
        return RedisDataCleanup(
            redis_client,
            sorted_sets=settings.cleanup_sorted_sets,
            key_templates=settings.cleanup_key_templates,
        )
    return log_only_cleanup


def create_app(
    settings: Optional[DetectorSettings] = None,
    store: Optional[RegistrationStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
    on_deleted: Optional[OnDeletedCallback] = None,
    redis_client=None,
) -> FastAPI:
    """Build the detector application.

    Anything not passed in is built from settings at startup: a Redis store
    when ``redis_url`` is set (in-memory otherwise), an IdentityClient, and
    the default cleanup callback. Embedding applications normally pass only
    their own ``on_deleted`` callback.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Runs on startup: load config, configure logging, connect collaborators."""
        cfg = settings or get_settings()
        configure_logging(cfg.log_level)

        owned_redis = None
        client = redis_client
        if client is None and cfg.redis_url:
            client = owned_redis = redis.from_url(cfg.redis_url, decode_responses=True)
            await _check_redis_connectivity(client, cfg.redis_url)

        registrations = store
        if registrations is None:
            if client is not None:
                registrations = RedisRegistrationStore(client, cfg.registry_key)
            else:
                registrations = MemoryRegistrationStore()

        owned_identity = None
        provider = identity_provider
        if provider is None:
            provider = owned_identity = IdentityClient(
                base_url=cfg.identity_base_url,
                user_agent=cfg.identity_user_agent,
                timeout=cfg.identity_timeout_seconds,
            )

        app.state.settings = cfg
        app.state.store = registrations
        app.state.reconciler = DeletionReconciler(
            registrations,
            provider,
            on_deleted or _default_callback(cfg, client),
            logger=logging.getLogger("service.reconciler"),
        )
        app.state.recorder = RunStateRecorder(client, f"{cfg.registry_key}:last-run")
        app.state.lease_client = client if cfg.run_lease_enabled else None

        _print_startup_banner(cfg, getattr(registrations, "backend", type(registrations).__name__))

        yield

        if owned_identity is not None:
            await owned_identity.close()
        if owned_redis is not None:
            await owned_redis.aclose()
        logger.info("User delete detector shutting down")

    app = FastAPI(
        lifespan=lifespan,
        docs_url=None,    # Machine-to-machine API, no Swagger UI
        redoc_url=None,
    )

    app.include_router(scheduler.router)
    app.include_router(registration.router)
    app.include_router(health.router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
        """Log all incoming requests with method, path, status, and response time."""
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "HTTP request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response

    return app


# ── Application ───────────────────────────────────────────────────────────────

app = create_app()


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "service.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        log_level=settings.log_level.lower(),
        access_log=False,  # We handle request logging ourselves
    )
