"""
Dashboard endpoint: returns collaborator configuration status, activity
counters, the problem in view and recent sync notifications.

  GET /api/dashboard
"""
from fastapi import APIRouter, Depends

from solvesync.schemas.response import (
    DashboardResponse,
    DashboardStats,
    NotificationItem,
    ServiceStatus,
)
from solvesync.services.runtime import SyncRuntime, get_runtime
from solvesync.services.session_stats import stats as session_stats

APP_VERSION = "0.1.0"

router = APIRouter(tags=["dashboard"])


@router.get("/api/dashboard", response_model=DashboardResponse)
def get_dashboard(runtime: SyncRuntime = Depends(get_runtime)) -> DashboardResponse:
    """Return service availability, session statistics and recent notifications."""
    settings = runtime.settings

    services = [
        ServiceStatus(
            name="gemini",
            configured=bool(settings.gemini_api_key),
            label="Google Gemini (Mistake Analysis)",
        ),
        ServiceStatus(
            name="backend",
            configured=bool(settings.backend_base_url),
            label="Backend Sync",
        ),
        ServiceStatus(
            name="github",
            configured=bool(settings.github_token and settings.github_owner and settings.github_repo),
            label="GitHub Solution Push",
        ),
    ]

    return DashboardResponse(
        version=APP_VERSION,
        services=services,
        stats=DashboardStats(
            events_received=session_stats.events_received,
            pipelines_started=session_stats.pipelines_started,
            pipelines_reset=session_stats.pipelines_reset,
            pipelines_aborted=session_stats.pipelines_aborted,
            pipelines_awaiting_retry=session_stats.pipelines_awaiting_retry,
            uptime_seconds=session_stats.uptime_seconds,
        ),
        active_problem=runtime.problem.url or None,
        notifications=[
            NotificationItem(level=n.level, message=n.message, created_at=n.created_at)
            for n in runtime.notifier.recent()
        ],
    )
