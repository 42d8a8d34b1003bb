"""FastAPI application for the nudge engine.

Exposes the entity-facing notification inbox and the operator endpoints
that trigger nudge runs, scheduled sweeps and cleanup.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from nudge.core.config import Settings
from nudge.notifications.dispatcher import Transport
from nudge.rules.models import Rule
from nudge.services import build_services
from nudge.web.notification_router import router as notification_router
from nudge.web.ops_router import router as ops_router


class HealthResponse(BaseModel):
    status: str
    service: str
    storage: str
    version: str = "0.1.0"


def create_app(
    settings: Settings | None = None,
    directory: Any = None,
    metrics_provider: Any = None,
    transport: Transport | None = None,
    rules: tuple[Rule, ...] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with their own directory, metrics provider and transport.
    """
    if settings is None:
        settings = Settings()

    services = build_services(
        settings,
        directory=directory,
        metrics_provider=metrics_provider,
        transport=transport,
        rules=rules,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services.db_manager is not None and services.db_manager.is_sqlite:
            await services.db_manager.create_all()
        yield
        await services.close()

    app = FastAPI(
        title="Nudge Engine",
        description="Rule-driven nudges and notification scheduling",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.services = services
    app.state.notification_queue = services.queue
    app.state.nudge_runner = services.runner
    app.state.audit_store = services.audit_store
    app.state.db_manager = services.db_manager

    app.include_router(notification_router)
    app.include_router(ops_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="nudge-engine", storage=services.storage)

    return app
