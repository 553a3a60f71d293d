"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from script_studio import __version__
from script_studio.api.routes import executions, jobs, scripts
from script_studio.config import Settings
from script_studio.runtime import Runtime

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API; the runtime is created on startup and closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        runtime = Runtime.build(settings or Settings.from_env())
        app.state.runtime = runtime
        logger.info("script-studio API ready")
        try:
            yield
        finally:
            logger.info("Shutting down script-studio API")
            runtime.close()

    app = FastAPI(
        title="script-studio API",
        description="Asynchronous script generation jobs and synchronous script execution.",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(jobs.router)
    app.include_router(scripts.router)
    app.include_router(executions.router)

    @app.get("/health")
    def health() -> dict[str, object]:
        runtime: Runtime = app.state.runtime
        return {
            "status": "ok",
            "version": __version__,
            "backends": list(runtime.gateway.backend_names),
            "default_backend_order": list(runtime.settings.generation.backend_order),
        }

    return app
