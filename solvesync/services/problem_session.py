"""The problem currently open in the page.

Owns the attempt tracker and the active timer for one problem identity.
Opening a different url discards both and starts fresh; events are
classified here and handed to the tracker, and an accepted submission
kicks off the sync pipeline with a :class:`SyncJob` pinned to this problem.
"""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from solvesync.schemas.events import EventPayload, EventType, PageEvent, ProblemDetails
from solvesync.services.attempt_tracker import AttemptTracker
from solvesync.services.errors import StorageError
from solvesync.services.problem_record import (
    ProblemContext,
    SubmissionStats,
    canonical_url,
    normalize_difficulty,
    slug_from_url,
    topics_from_url,
)
from solvesync.services.store import CODE_DATA_KEY, KeyedWriteQueue
from solvesync.services.sync_pipeline import SyncJob

if TYPE_CHECKING:
    from solvesync.config import Settings
    from solvesync.services.session_timer import SessionRegistry, SessionTimer
    from solvesync.services.sync_pipeline import PipelineResult, SyncPipeline

logger = logging.getLogger(__name__)


class ProblemSession:
    def __init__(
        self,
        settings: "Settings",
        write_queue: KeyedWriteQueue,
        registry: "SessionRegistry",
        pipeline: "SyncPipeline",
    ) -> None:
        self._settings = settings
        self._queue = write_queue
        self._registry = registry
        self._pipeline = pipeline

        self.details: ProblemDetails | None = None
        self.url: str = ""
        self.tracker = AttemptTracker.from_settings(settings)
        # Kept across navigation: a job is self-contained and can be retried later.
        self.last_job: SyncJob | None = None

    @property
    def timer(self) -> "SessionTimer | None":
        return self._registry.get(self.url) if self.url else None

    @property
    def last_result(self) -> "PipelineResult | None":
        return self.last_job.result if self.last_job else None

    # ── identity ─────────────────────────────────────────────────────────
    async def open(self, details: ProblemDetails) -> bool:
        """Record page details.  Returns True when the problem identity changed."""
        url = canonical_url(details.url)
        changed = url != self.url
        if changed:
            if self.url:
                logger.info("Problem changed from %s to %s", self.url, url)
                self._registry.discard(self.url)
            self.url = url
            self.tracker = AttemptTracker.from_settings(self._settings)
        self.details = details
        await self._registry.activate(url)
        return changed

    def snapshot(self, submission: SubmissionStats | None = None) -> SyncJob:
        """Capture the open problem so a pipeline run cannot drift to another one."""
        return SyncJob(
            url=self.url,
            details=self.details or ProblemDetails(url=self.url),
            tracker=self.tracker,
            timer=self.timer,
            submission=submission or SubmissionStats(),
        )

    # ── events ───────────────────────────────────────────────────────────
    async def handle_event(self, event: PageEvent) -> "PipelineResult | None":
        payload = event.payload
        tracker = self.tracker

        if event.type is EventType.RUN_SUBMITTED:
            tracker.on_run_event(payload.code, payload.language)
        elif event.type is EventType.RUN_RESULT:
            tracker.on_run_result(payload.accepted)
        elif event.type is EventType.SUBMIT_SUBMITTED:
            tracker.on_submit_event(payload.code, payload.language, payload.problem_id)
            await self._store_code_data()
        elif event.type is EventType.SUBMIT_RESULT:
            if not payload.accepted:
                logger.debug("Submission not accepted, status=%s", payload.status)
                tracker.on_submit_result(False)
                return None
            tracker.on_submit_result(True)
            self.last_job = self.snapshot(self._submission_stats(payload))
            return await self._pipeline.run(self, self.last_job)
        return None

    async def retry_pipeline(self) -> "PipelineResult":
        """Manual re-trigger of the code-host push after it failed."""
        if self.last_job is None:
            raise ValueError("No accepted submission to retry.")
        return await self._pipeline.resume(self, self.last_job)

    # ── pipeline hooks ───────────────────────────────────────────────────
    async def extract_context(self, job: SyncJob | None = None) -> ProblemContext:
        """Snapshot the job's problem, falling back to its recently stored code data."""
        job = job or self.snapshot()
        tracker = job.tracker
        code, language, problem_id = tracker.code, tracker.language, tracker.problem_id

        if not (code and language and problem_id):
            stored = await self._load_code_data(job.url)
            if stored:
                code = code or stored.get("code", "")
                language = language or stored.get("language", "")
                problem_id = problem_id or stored.get("problem_id", "")

        details = job.details
        return ProblemContext(
            title=details.title.strip(),
            description=details.description.strip(),
            difficulty=normalize_difficulty(details.difficulty),
            url=job.url,
            language=language,
            code=code,
            slug=problem_id or slug_from_url(details.url or job.url),
            topics=topics_from_url(details.url or job.url),
        )

    # ── internals ────────────────────────────────────────────────────────
    @staticmethod
    def _submission_stats(payload: EventPayload) -> SubmissionStats:
        return SubmissionStats(
            success=True,
            status=payload.status,
            total_test_cases=payload.total_test_cases,
            passed_test_cases=payload.passed_test_cases,
            runtime=payload.average_time,
            memory=payload.average_memory,
        )

    async def _store_code_data(self) -> None:
        tracker = self.tracker
        data = {
            "problem_url": self.url,
            "language": tracker.language,
            "code": tracker.code,
            "problem_id": tracker.problem_id,
            "timestamp": int(time.time() * 1000),
        }
        try:
            await self._queue.update(CODE_DATA_KEY, lambda _: data)
        except StorageError as exc:
            logger.error("Error storing code data: %s", exc)

    async def _load_code_data(self, problem_url: str) -> dict | None:
        try:
            stored = await self._queue.read(CODE_DATA_KEY)
        except StorageError as exc:
            logger.error("Error loading code data: %s", exc)
            return None
        if not stored or not stored.get("timestamp"):
            return None
        if stored.get("problem_url") != problem_url:
            logger.debug("Stored code data belongs to %s, ignoring", stored.get("problem_url"))
            return None
        age_ms = int(time.time() * 1000) - stored["timestamp"]
        if age_ms >= self._settings.code_data_max_age_seconds * 1000:
            logger.debug("Stored code data too old (%ds)", age_ms // 1000)
            return None
        logger.debug("Using stored code data (age %ds)", age_ms // 1000)
        return stored
