"""Post-acceptance sync: snapshot, persist, analyze, push.

Stages run strictly in order, each awaited before the next starts::

    IDLE -> EXTRACTING -> PERSISTED -> (ANALYZING) -> BACKEND_SYNCING
         -> (CODE_HOST_PUSHING) -> RESET | AWAITING_RETRY
    EXTRACTING -> ABORTED

Every run works on a :class:`SyncJob` captured when the submission was
accepted: the url, page details, tracker and timer of that problem.  Opening
another problem while a run is in flight does not redirect it.

The solved status is written before any network stage so a later failure
cannot lose it.  Analysis and backend failures are recorded and the run
continues.  Transient attempt state is cleared only once the code host has
the solution (or the push is switched off).  A failed push leaves the job in
``AWAITING_RETRY``; :meth:`SyncPipeline.resume` repeats only the code-host
stage with the context frozen by the first run.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

from solvesync.schemas.events import ProblemDetails
from solvesync.services.contracts import (
    AnalysisResult,
    AnalysisService,
    BackendSyncService,
    CodeHostService,
    Notifier,
)
from solvesync.services.errors import (
    ConfigurationMissing,
    ExtractionIncomplete,
    StorageError,
)
from solvesync.services.problem_record import ProblemContext, SubmissionStats, merge_record
from solvesync.services.session_stats import stats as session_stats
from solvesync.services.store import CODE_DATA_KEY, KeyedWriteQueue, record_key

if TYPE_CHECKING:
    from solvesync.config import Settings
    from solvesync.services.attempt_tracker import AttemptTracker
    from solvesync.services.problem_session import ProblemSession
    from solvesync.services.session_timer import SessionTimer

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    PERSISTED = "persisted"
    ANALYZING = "analyzing"
    BACKEND_SYNCING = "backend_syncing"
    CODE_HOST_PUSHING = "code_host_pushing"
    RESET = "reset"
    AWAITING_RETRY = "awaiting_retry"
    ABORTED = "aborted"


TERMINAL_STATES = {PipelineState.RESET, PipelineState.AWAITING_RETRY, PipelineState.ABORTED}


@dataclass
class PipelineResult:
    state: PipelineState = PipelineState.IDLE
    transitions: list[PipelineState] = field(default_factory=list)
    record: dict | None = None
    analysis: AnalysisResult | None = None
    backend_ok: bool | None = None
    code_host_ok: bool | None = None
    errors: list[str] = field(default_factory=list)

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.debug("Pipeline -> %s", state.value)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass
class SyncJob:
    """One accepted submission, pinned to the problem it was accepted on."""

    url: str
    details: ProblemDetails
    tracker: "AttemptTracker"
    timer: "SessionTimer | None"
    submission: SubmissionStats
    # Filled in by the first run; a resumed run reuses them as-is.
    context: ProblemContext | None = None
    analysis: AnalysisResult | None = None
    result: PipelineResult | None = None

    @property
    def awaiting_retry(self) -> bool:
        return self.result is not None and self.result.state is PipelineState.AWAITING_RETRY


Stages = Callable[["ProblemSession", SyncJob, PipelineResult], Awaitable[None]]


class SyncPipeline:
    def __init__(
        self,
        settings: "Settings",
        write_queue: KeyedWriteQueue,
        analysis: AnalysisService,
        backend: BackendSyncService,
        code_host: CodeHostService,
        notifier: Notifier,
    ) -> None:
        self._settings = settings
        self._queue = write_queue
        self._analysis = analysis
        self._backend = backend
        self._code_host = code_host
        self._notifier = notifier
        self._lock = asyncio.Lock()

    async def run(self, session: "ProblemSession", job: SyncJob) -> PipelineResult:
        """Run every stage for one accepted submission.  Never raises."""
        async with self._lock:
            return await self._execute(session, job, self._run)

    async def resume(self, session: "ProblemSession", job: SyncJob) -> PipelineResult:
        """Repeat only the code-host stage of a job left in ``AWAITING_RETRY``.

        Raises ``ValueError`` when the job is not waiting for a retry.
        """
        async with self._lock:
            if not job.awaiting_retry or job.context is None:
                raise ValueError("Nothing is awaiting retry.")
            logger.info("Retrying code-host push for %s", job.url)
            return await self._execute(session, job, self._resume)

    async def _execute(self, session: "ProblemSession", job: SyncJob, stages: Stages) -> PipelineResult:
        result = PipelineResult()
        session_stats.pipelines_started += 1
        try:
            await stages(session, job, result)
        except Exception as exc:
            # Stage code catches its own failures; this only guards bugs.
            logger.exception("Pipeline failed unexpectedly")
            result.errors.append(f"unexpected: {exc}")
            if not result.finished:
                result.advance(PipelineState.AWAITING_RETRY)

        job.result = result
        if result.state is PipelineState.RESET:
            session_stats.pipelines_reset += 1
        elif result.state is PipelineState.ABORTED:
            session_stats.pipelines_aborted += 1
        else:
            session_stats.pipelines_awaiting_retry += 1
        logger.info("Pipeline for %s finished in state %s", job.url, result.state.value)
        return result

    async def _run(self, session: "ProblemSession", job: SyncJob, result: PipelineResult) -> None:
        tracker = job.tracker

        # ── 1. Extract ───────────────────────────────────────────────────
        result.advance(PipelineState.EXTRACTING)
        if self._settings.settle_seconds > 0:
            await asyncio.sleep(self._settings.settle_seconds)

        try:
            context = await session.extract_context(job)
            missing = context.missing_fields(self._settings.min_code_length)
            if missing:
                raise ExtractionIncomplete(f"missing {', '.join(missing)}")
        except ExtractionIncomplete as exc:
            logger.error("Could not extract problem information: %s", exc)
            result.errors.append(f"extraction: {exc}")
            result.advance(PipelineState.ABORTED)
            return
        context = context.model_copy(update={"stats": job.submission})
        job.context = context

        # ── 2. Persist solved ────────────────────────────────────────────
        result.record = await self._store_record(job, job.analysis, result)
        result.advance(PipelineState.PERSISTED)

        # ── 3. Analyze (optional) ────────────────────────────────────────
        if tracker.analysis_latched:
            analysis = await self._analyze(context, tracker, result)
            if analysis is not None:
                job.analysis = analysis
                result.analysis = analysis
                record = await self._store_record(job, analysis, result)
                if record is not None:
                    result.record = record

        # ── 4. Backend sync ──────────────────────────────────────────────
        result.advance(PipelineState.BACKEND_SYNCING)
        result.backend_ok = await self._sync_backend(context.url, result)

        # ── 5. Code host push (conditional) ──────────────────────────────
        await self._push_code_host(job, result)

    async def _resume(self, session: "ProblemSession", job: SyncJob, result: PipelineResult) -> None:
        previous = job.result
        result.record = previous.record
        result.analysis = previous.analysis
        result.backend_ok = previous.backend_ok
        await self._push_code_host(job, result)

    # ── stages ───────────────────────────────────────────────────────────
    async def _push_code_host(self, job: SyncJob, result: PipelineResult) -> None:
        if not self._settings.github_push_enabled:
            logger.info("Code-host push disabled, skipping")
            await self._reset(job)
            result.advance(PipelineState.RESET)
            return

        result.advance(PipelineState.CODE_HOST_PUSHING)
        try:
            pushed = await self._code_host.push(job.context, self._settings.platform)
        except Exception as exc:
            logger.error("Code-host push error: %s", exc)
            pushed = None
            result.errors.append(f"code_host: {exc}")

        if pushed is not None and pushed.success:
            result.code_host_ok = True
            await self._reset(job)
            result.advance(PipelineState.RESET)
        else:
            if pushed is not None:
                logger.error("Code-host push failed: %s", pushed.error)
                result.errors.append(f"code_host: {pushed.error}")
            result.code_host_ok = False
            result.advance(PipelineState.AWAITING_RETRY)

    async def _store_record(
        self, job: SyncJob, analysis: AnalysisResult | None, result: PipelineResult
    ) -> dict | None:
        context, tracker, timer = job.context, job.tracker, job.timer

        def merge(existing: dict) -> dict:
            return merge_record(
                existing,
                context,
                platform=self._settings.platform,
                solved=True,
                tries=tracker.tries,
                start_time=timer.start_time if timer else None,
                paused_time=timer.paused_time if timer else 0,
                tags=analysis.tags if analysis else None,
                summary=analysis.summary if analysis else None,
                analysis_latched=tracker.analysis_latched,
                run_counter=tracker.run_count,
                incorrect_run_counter=tracker.run_fail_count,
            )

        try:
            record = await self._queue.update(record_key(job.url), merge)
        except StorageError as exc:
            logger.error("Error saving problem data for %s: %s", job.url, exc)
            result.errors.append(f"storage: {exc}")
            return None
        logger.info("Saved problem data for %s", job.url)
        return record

    async def _analyze(
        self, context: ProblemContext, tracker: "AttemptTracker", result: PipelineResult
    ) -> AnalysisResult | None:
        if not self._analysis.configured:
            exc = ConfigurationMissing("Gemini API key not configured")
            logger.info("Skipping analysis: %s", exc)
            return None

        result.advance(PipelineState.ANALYZING)
        attempts = tracker.analysis_attempts()
        logger.debug("Sending %d code iterations for analysis", len(attempts))
        try:
            outcome = await self._analysis.analyze(attempts, context)
        except Exception as exc:
            logger.error("Analysis error: %s", exc)
            result.errors.append(f"analysis: {exc}")
            return None

        if not outcome.success:
            logger.info("Analysis failed: %s", outcome.error)
            result.errors.append(f"analysis: {outcome.error}")
            return None
        return AnalysisResult(
            tags=list(outcome.data.get("tags") or []),
            summary=outcome.data.get("summary") or "",
        )

    async def _sync_backend(self, problem_url: str, result: PipelineResult) -> bool:
        try:
            outcome = await self._backend.push(problem_url)
        except Exception as exc:
            logger.error("Backend push error: %s", exc)
            result.errors.append(f"backend: {exc}")
            self._notifier.error(f"Sync error: {exc}")
            return False

        if outcome.success:
            self._notifier.success(outcome.data.get("message") or "Solution synced!")
            return True
        logger.error("Backend push failed: %s", outcome.error)
        result.errors.append(f"backend: {outcome.error}")
        self._notifier.error(f"Sync failed: {outcome.error}")
        return False

    async def _reset(self, job: SyncJob) -> None:
        job.tracker.clear()
        try:
            await self._queue.discard(
                CODE_DATA_KEY, lambda data: data.get("problem_url") == job.url
            )
        except StorageError as exc:
            logger.error("Error clearing stored code data: %s", exc)
