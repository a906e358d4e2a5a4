from pydantic import BaseModel, Field


# ── event ingestion ──────────────────────────────────────────────────────────
class TrackerSnapshot(BaseModel):
    attempts: int
    run_count: int
    run_fail_count: int
    submit_fail_count: int
    tries: int
    analysis_latched: bool
    has_code: bool


class PipelineSummary(BaseModel):
    state: str
    transitions: list[str]
    backend_ok: bool | None = None
    code_host_ok: bool | None = None
    tags: list[str] = []
    errors: list[str] = []


class EventResponse(BaseModel):
    status: str = "accepted"
    problem_url: str
    tracker: TrackerSnapshot
    pipeline: PipelineSummary | None = None


class ProblemOpenResponse(BaseModel):
    problem_url: str
    identity_changed: bool
    elapsed_ms: int


# ── timer ─────────────────────────────────────────────────────────────────────
class VisibilityRequest(BaseModel):
    hidden: bool


class TimerResponse(BaseModel):
    session_id: str | None
    elapsed_ms: int
    display: str
    start_time: int | None
    paused_time: int
    hidden: bool


# ── handshake channel ─────────────────────────────────────────────────────────
class HandshakeRequest(BaseModel):
    payload: dict = {}
    # Capped at the server-side handshake timeout.
    timeout: float | None = Field(None, gt=0)


class HandshakeReply(BaseModel):
    correlation_id: str
    data: dict = {}


class HandshakeResponse(BaseModel):
    ok: bool
    correlation_id: str
    data: dict = {}
    error: str | None = None


class PendingHandshake(BaseModel):
    correlation_id: str
    kind: str
    payload: dict


# ── dashboard ─────────────────────────────────────────────────────────────────
class ServiceStatus(BaseModel):
    name: str
    configured: bool
    label: str


class DashboardStats(BaseModel):
    events_received: int
    pipelines_started: int
    pipelines_reset: int
    pipelines_aborted: int
    pipelines_awaiting_retry: int
    uptime_seconds: int


class NotificationItem(BaseModel):
    level: str
    message: str
    created_at: float


class DashboardResponse(BaseModel):
    status: str = "ok"
    version: str
    services: list[ServiceStatus]
    stats: DashboardStats
    active_problem: str | None = None
    notifications: list[NotificationItem] = []
