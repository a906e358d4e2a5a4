"""
Session timer endpoints:

  GET  /api/timer             current elapsed active time (display refresh)
  POST /api/timer/visibility  { hidden } page visibility transitions
  POST /api/timer/reset       restart the clock for the current problem
"""
from fastapi import APIRouter, Depends, HTTPException

from solvesync.schemas.response import TimerResponse, VisibilityRequest
from solvesync.services.runtime import SyncRuntime, get_runtime
from solvesync.services.session_timer import SessionTimer, format_elapsed

router = APIRouter(tags=["timer"])


def _timer_response(timer: SessionTimer, display: str | None = None) -> TimerResponse:
    elapsed = timer.get_elapsed_active_time()
    return TimerResponse(
        session_id=timer.session_id,
        elapsed_ms=elapsed,
        display=display or format_elapsed(elapsed),
        start_time=timer.start_time,
        paused_time=timer.paused_time,
        hidden=timer.is_hidden,
    )


def _active_timer(runtime: SyncRuntime) -> SessionTimer:
    timer = runtime.registry.active
    if timer is None:
        raise HTTPException(status_code=409, detail="No active session.")
    return timer


@router.get("/api/timer", response_model=TimerResponse)
async def get_timer(runtime: SyncRuntime = Depends(get_runtime)) -> TimerResponse:
    timer = _active_timer(runtime)
    display = await timer.tick()
    return _timer_response(timer, display)


@router.post("/api/timer/visibility", response_model=TimerResponse)
async def set_visibility(
    body: VisibilityRequest, runtime: SyncRuntime = Depends(get_runtime)
) -> TimerResponse:
    timer = _active_timer(runtime)
    if body.hidden:
        timer.on_visibility_hidden()
    else:
        await timer.on_visibility_visible()
    return _timer_response(timer)


@router.post("/api/timer/reset", response_model=TimerResponse)
async def reset_timer(runtime: SyncRuntime = Depends(get_runtime)) -> TimerResponse:
    timer = _active_timer(runtime)
    await timer.reset()
    return _timer_response(timer)
