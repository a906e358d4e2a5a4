"""Run/submit classification and the mistake-analysis latch.

One tracker lives for exactly one problem identity.  Runs produce
:class:`Attempt` entries whose outcome is resolved once by the matching
result event; submissions only cache the code context and bump ``tries``.
Crossing either failure threshold latches ``analysis_latched``, which never
resets for the lifetime of the tracker.
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum

logger = logging.getLogger(__name__)

RUN_FAILURE_THRESHOLD = 2
SUBMIT_FAILURE_THRESHOLD = 3
MIN_CODE_LENGTH = 10


class AttemptKind(str, Enum):
    RUN = "run"
    SUBMIT = "submit"


class Outcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAIL = "fail"


@dataclass
class Attempt:
    code: str
    language: str
    kind: AttemptKind
    sequence_number: int
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    outcome: Outcome = Outcome.PENDING

    @property
    def pending(self) -> bool:
        return self.outcome is Outcome.PENDING

    def resolve(self, success: bool) -> bool:
        """Set the outcome once.  Returns False if it was already resolved."""
        if not self.pending:
            return False
        self.outcome = Outcome.SUCCESS if success else Outcome.FAIL
        return True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["outcome"] = self.outcome.value
        return data


class AttemptTracker:
    def __init__(
        self,
        run_failure_threshold: int = RUN_FAILURE_THRESHOLD,
        submit_failure_threshold: int = SUBMIT_FAILURE_THRESHOLD,
        min_code_length: int = MIN_CODE_LENGTH,
    ) -> None:
        self.run_failure_threshold = run_failure_threshold
        self.submit_failure_threshold = submit_failure_threshold
        self.min_code_length = min_code_length
        self._reset_state()

    def _reset_state(self) -> None:
        self.attempts: list[Attempt] = []
        self.run_count = 0
        self.run_fail_count = 0
        self.submit_fail_count = 0
        self.tries = 0
        self.analysis_latched = False
        self.code = ""
        self.language = ""
        self.problem_id = ""
        self.captured_at: float | None = None

    @classmethod
    def from_settings(cls, settings) -> "AttemptTracker":
        return cls(
            run_failure_threshold=settings.run_failure_threshold,
            submit_failure_threshold=settings.submit_failure_threshold,
            min_code_length=settings.min_code_length,
        )

    def is_viable(self, code: str | None) -> bool:
        return bool(code) and len(code) > self.min_code_length

    # ── events ───────────────────────────────────────────────────────────
    def on_run_event(self, code: str | None, language: str | None) -> Attempt | None:
        self.run_count += 1
        code = code or self.code
        language = language or self.language

        if not self.is_viable(code):
            logger.debug("Run #%d discarded, code too short", self.run_count)
            return None

        attempt = Attempt(
            code=code,
            language=language,
            kind=AttemptKind.RUN,
            sequence_number=self.run_count,
        )
        self.attempts.append(attempt)
        logger.debug("Stored run attempt #%d", self.run_count)
        return attempt

    def on_run_result(self, success: bool) -> Attempt | None:
        attempt = self._latest_run()
        if attempt is None or not attempt.resolve(success):
            logger.debug("Run result with no pending run attempt, ignored")
            return None

        if success:
            logger.debug("Run #%d succeeded", attempt.sequence_number)
            return attempt

        self.run_fail_count += 1
        logger.debug(
            "Run #%d failed (%d/%d)",
            attempt.sequence_number, self.run_fail_count, self.run_failure_threshold,
        )
        if self.run_fail_count >= self.run_failure_threshold:
            self._latch("run failures")
        return attempt

    def on_submit_event(
        self, code: str | None, language: str | None, problem_id: str | None
    ) -> None:
        self.code = code or ""
        self.language = language or ""
        self.problem_id = problem_id or ""
        self.captured_at = time.time()
        self.tries += 1
        logger.debug(
            "Captured submission: lang=%s, %d chars, tries=%d",
            self.language, len(self.code), self.tries,
        )

    def on_submit_result(self, success: bool) -> None:
        if success:
            return
        self.submit_fail_count += 1
        logger.debug(
            "Submission failed (%d/%d)",
            self.submit_fail_count, self.submit_failure_threshold,
        )
        if self.submit_fail_count >= self.submit_failure_threshold:
            self._latch("submit failures")

    # ── queries ──────────────────────────────────────────────────────────
    def analysis_attempts(self) -> list[Attempt]:
        """Every attempt with viable code, oldest first."""
        return [a for a in self.attempts if self.is_viable(a.code)]

    def snapshot(self) -> dict:
        return {
            "attempts": len(self.attempts),
            "run_count": self.run_count,
            "run_fail_count": self.run_fail_count,
            "submit_fail_count": self.submit_fail_count,
            "tries": self.tries,
            "analysis_latched": self.analysis_latched,
            "has_code": bool(self.code),
        }

    def clear(self) -> None:
        """Drop attempts, counters, the latch and the cached code context."""
        self._reset_state()

    # ── internals ────────────────────────────────────────────────────────
    def _latest_run(self) -> Attempt | None:
        for attempt in reversed(self.attempts):
            if attempt.kind is AttemptKind.RUN:
                return attempt
        return None

    def _latch(self, reason: str) -> None:
        if self.analysis_latched:
            return
        self.analysis_latched = True
        logger.info("Analysis latched after %s", reason)
