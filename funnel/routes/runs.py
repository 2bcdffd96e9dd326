"""Pipeline run routes.

This module provides FastAPI routes for starting, inspecting and stopping
pipeline runs:
- POST /api/v1/runs - Start a run for a tag (202, 409 if one is active)
- GET /api/v1/runs/{run_id} - Current stage, counts, terminal state and log
- POST /api/v1/runs/{run_id}/stop - Request cancellation

Pattern:
- start returns immediately; the run continues as a background task owned
  by the application's RunRegistry
- run state is in memory only; a restarted process forgets old run ids
"""

from dataclasses import asdict

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from funnel.exceptions import ConfigurationError, RunAlreadyActiveError
from funnel.schemas.run import RunCreate, RunLogEntryResponse, RunResponse, RunSummaryResponse
from funnel.services.pipeline_orchestrator import RunHandle, RunRegistry

log = structlog.get_logger()
router = APIRouter(prefix="/api/v1/runs", tags=["runs"])


def get_registry(request: Request) -> RunRegistry:
    """FastAPI dependency returning the application's RunRegistry."""
    registry: RunRegistry | None = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Run registry not initialized")
    return registry


def _get_handle(registry: RunRegistry, run_id: str) -> RunHandle:
    handle = registry.get(run_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return handle


def to_response(handle: RunHandle) -> RunResponse:
    """Serialize a run handle's BatchRun."""
    run = handle.run
    return RunResponse(
        run_id=run.run_id,
        tag=run.tag,
        stage=run.stage.value,
        attempt=run.attempt,
        cancel_requested=run.cancel_requested,
        is_finished=run.is_finished,
        error=run.error,
        summary=RunSummaryResponse.model_validate(asdict(run.summary)),
        log=[RunLogEntryResponse.model_validate(entry) for entry in run.log],
    )


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=RunResponse)
async def start_run(
    body: RunCreate, registry: RunRegistry = Depends(get_registry)
) -> RunResponse:
    """Start a pipeline run for one tag.

    Returns:
        202 Accepted: Run started in the background
        400 Bad Request: Missing configuration (e.g. no targets for the tag)
        409 Conflict: A run for the same tag is already active
    """
    try:
        handle = await registry.start_run(body.tag)
    except RunAlreadyActiveError as e:
        log.info("run_rejected_already_active", tag=e.tag, active_run_id=e.run_id)
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return to_response(handle)


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(run_id: str, registry: RunRegistry = Depends(get_registry)) -> RunResponse:
    """Return the run's current stage, tallies, terminal state and log."""
    return to_response(_get_handle(registry, run_id))


@router.post("/{run_id}/stop", status_code=status.HTTP_202_ACCEPTED, response_model=RunResponse)
async def stop_run(run_id: str, registry: RunRegistry = Depends(get_registry)) -> RunResponse:
    """Request cancellation. In-flight collaborator calls finish first."""
    handle = _get_handle(registry, run_id)
    registry.stop_run(handle, "Stop requested via API")
    log.info("run_stop_requested", run_id=run_id)
    return to_response(handle)
