"""Problem snapshot and the persisted per-problem record.

A record is stored as a plain dict under ``problem_data_<canonical url>``.
:func:`merge_record` is the only place records are built: it keeps every
field already stored, refreshes tries, timer and analysis fields, and never
downgrades a solved status.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit, urlunsplit

from pydantic import BaseModel, Field

DIFFICULTY_LEVELS = {"easy": 0, "medium": 1, "hard": 2}
DIFFICULTY_NAMES = {v: k.capitalize() for k, v in DIFFICULTY_LEVELS.items()}


def canonical_url(url: str) -> str:
    """Drop query string and fragment."""
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def slug_from_url(url: str) -> str:
    segments = [p for p in urlsplit(url).path.split("/") if p]
    return segments[-1] if segments else ""


def topics_from_url(url: str) -> list[str]:
    """``?category=linked-list`` becomes ``["Linked List"]``."""
    category = parse_qs(urlsplit(url).query).get("category")
    if category and category[0]:
        return [category[0].replace("-", " ").title()]
    return ["General"]


def normalize_difficulty(difficulty: str | int | None) -> int:
    if isinstance(difficulty, int):
        return difficulty if difficulty in DIFFICULTY_NAMES else 1
    text = (difficulty or "").lower()
    for name, level in DIFFICULTY_LEVELS.items():
        if name in text:
            return level
    return 1


class SubmissionStats(BaseModel):
    success: bool = True
    status: str | None = None
    total_test_cases: int | None = None
    passed_test_cases: int | None = None
    runtime: str | None = None
    memory: str | float | int | None = None


class ProblemContext(BaseModel):
    """Everything the pipeline needs to know about the solved problem."""

    title: str = ""
    description: str = ""
    difficulty: int = 1
    url: str = ""
    language: str = ""
    code: str = ""
    slug: str = ""
    topics: list[str] = Field(default_factory=lambda: ["General"])
    stats: SubmissionStats | None = None

    @property
    def difficulty_name(self) -> str:
        return DIFFICULTY_NAMES.get(self.difficulty, "Medium")

    def missing_fields(self, min_code_length: int = 0) -> list[str]:
        missing = []
        if not self.title:
            missing.append("title")
        if not self.code or len(self.code) < min_code_length:
            missing.append("code")
        return missing


class SolvedStatus(BaseModel):
    value: bool = False
    date: int = 0
    tries: int = 0


class ProblemRecord(BaseModel):
    name: str
    platform: str
    difficulty: int
    solved: SolvedStatus
    ignored: bool = False
    parent_topic: list[str] = Field(default_factory=lambda: ["General"])
    problem_link: str
    language: str = "python"
    start_time: int | None = None
    paused_time: int = 0
    tags: list[str] = Field(default_factory=list)
    summary: str | None = None
    analysis_latched: bool = False
    run_counter: int = 0
    incorrect_run_counter: int = 0
    stats: SubmissionStats | None = None
    timestamp: str = ""


def merge_record(
    existing: dict,
    context: ProblemContext,
    *,
    platform: str,
    solved: bool,
    tries: int,
    start_time: int | None,
    paused_time: int,
    tags: list[str] | None = None,
    summary: str | None = None,
    analysis_latched: bool = False,
    run_counter: int = 0,
    incorrect_run_counter: int = 0,
    now_ms: int | None = None,
) -> dict:
    """Combine a stored record with a fresh snapshot.

    A stored ``solved.value`` of True is kept verbatim, whatever ``solved``
    says.  Fields this module does not know about survive untouched.
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    previous = SolvedStatus.model_validate(existing.get("solved") or {})

    if previous.value:
        status = previous
    elif solved:
        status = SolvedStatus(value=True, date=now_ms, tries=tries or 1)
    else:
        status = SolvedStatus(value=False, date=0, tries=tries or 0)

    record = ProblemRecord(
        name=context.title,
        platform=platform,
        difficulty=context.difficulty,
        solved=status,
        ignored=existing.get("ignored", False),
        parent_topic=context.topics or existing.get("parent_topic") or ["General"],
        problem_link=context.url,
        language=context.language or existing.get("language") or "python",
        start_time=start_time or existing.get("start_time") or now_ms,
        paused_time=paused_time or existing.get("paused_time") or 0,
        tags=tags if tags is not None else existing.get("tags") or [],
        summary=summary if summary is not None else existing.get("summary"),
        analysis_latched=analysis_latched,
        run_counter=run_counter,
        incorrect_run_counter=incorrect_run_counter,
        stats=context.stats or existing.get("stats"),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return {**existing, **record.model_dump(mode="json")}
