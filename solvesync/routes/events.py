"""
Endpoints fed by the page-observation layer:

  POST /api/problem         problem details scraped from the page (navigation)
  POST /api/events          RUN_SUBMITTED / RUN_RESULT / SUBMIT_SUBMITTED / SUBMIT_RESULT
  POST /api/pipeline/retry  re-run the sync pipeline after a failed code-host push
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from solvesync.schemas.events import PageEvent, ProblemDetails
from solvesync.schemas.response import (
    EventResponse,
    PipelineSummary,
    ProblemOpenResponse,
    TrackerSnapshot,
)
from solvesync.services.runtime import SyncRuntime, get_runtime
from solvesync.services.session_stats import stats as session_stats
from solvesync.services.sync_pipeline import PipelineResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


def _summarize(result: PipelineResult) -> PipelineSummary:
    return PipelineSummary(
        state=result.state.value,
        transitions=[s.value for s in result.transitions],
        backend_ok=result.backend_ok,
        code_host_ok=result.code_host_ok,
        tags=result.analysis.tags if result.analysis else [],
        errors=result.errors,
    )


@router.post("/api/problem", response_model=ProblemOpenResponse)
async def open_problem(
    body: ProblemDetails, runtime: SyncRuntime = Depends(get_runtime)
) -> ProblemOpenResponse:
    """Register the problem in view; a new url resets tracker and timer."""
    if not body.url.strip():
        raise HTTPException(status_code=400, detail="Problem url is required.")

    problem = runtime.problem
    changed = await problem.open(body)
    timer = problem.timer
    return ProblemOpenResponse(
        problem_url=problem.url,
        identity_changed=changed,
        elapsed_ms=timer.get_elapsed_active_time() if timer else 0,
    )


@router.post("/api/events", response_model=EventResponse)
async def receive_event(
    event: PageEvent, runtime: SyncRuntime = Depends(get_runtime)
) -> EventResponse:
    """Classify a page event; an accepted submission runs the full sync pipeline."""
    problem = runtime.problem
    if not problem.url:
        raise HTTPException(status_code=409, detail="No problem is open.")

    session_stats.events_received += 1
    logger.debug("Event %s for %s", event.type.value, problem.url)
    result = await problem.handle_event(event)

    return EventResponse(
        problem_url=problem.url,
        tracker=TrackerSnapshot(**problem.tracker.snapshot()),
        pipeline=_summarize(result) if result else None,
    )


@router.post("/api/pipeline/retry", response_model=PipelineSummary)
async def retry_pipeline(runtime: SyncRuntime = Depends(get_runtime)) -> PipelineSummary:
    try:
        result = await runtime.problem.retry_pipeline()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _summarize(result)
