"""Collaborator contracts consumed by the sync pipeline.

Every network-facing collaborator resolves to a :class:`ServiceResult`
instead of raising, so a failed stage is data the pipeline can log and
report.  Implementations live in ``gemini_analysis``, ``backend_sync`` and
``github_push``; tests substitute fakes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, Sequence

if TYPE_CHECKING:
    from solvesync.services.attempt_tracker import Attempt
    from solvesync.services.problem_record import ProblemContext


@dataclass
class ServiceResult:
    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def ok(cls, **data: Any) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ServiceResult":
        return cls(success=False, error=error)


@dataclass
class AnalysisResult:
    tags: list[str]
    summary: str


class AnalysisService(Protocol):
    @property
    def configured(self) -> bool: ...

    async def analyze(
        self, attempts: Sequence["Attempt"], context: "ProblemContext"
    ) -> ServiceResult: ...


class BackendSyncService(Protocol):
    async def push(self, problem_url: str) -> ServiceResult: ...


class CodeHostService(Protocol):
    async def push(self, context: "ProblemContext", platform: str) -> ServiceResult: ...


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...
