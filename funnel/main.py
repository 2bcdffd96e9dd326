"""FastAPI application for the engagement pipeline.

This is the web service entry point. It owns one RunRegistry for the
lifetime of the process and exposes the runs API plus a health check.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from funnel.config import get_log_json, get_log_level
from funnel.database import dispose_engine
from funnel.routes import runs
from funnel.services.pipeline_orchestrator import (
    RunRegistry,
    build_orchestrator,
    close_orchestrator,
)
from funnel.utils.logging import configure_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of the run registry.

    Startup:
    - Configure structured logging
    - Build the orchestrator from environment configuration

    Shutdown:
    - Stop active runs and wait for them to reach a terminal state
    - Close collaborator HTTP connections and the database pool
    """
    configure_logging(get_log_level(), get_log_json())

    orchestrator = build_orchestrator()
    registry = RunRegistry(orchestrator)
    app.state.registry = registry
    log.info("run_registry_started")

    yield  # Application runs here

    log.info("shutting_down_runs")
    await registry.shutdown()
    await close_orchestrator(orchestrator)
    await dispose_engine()


app = FastAPI(
    title="Engagement Funnel",
    description="Discovers content, scores it, responds and boosts the responses",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(runs.router)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Health check endpoint.

    Returns:
        JSONResponse: Status and service name
    """
    return JSONResponse(content={"status": "healthy", "service": "engagement-funnel"})


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "funnel.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
