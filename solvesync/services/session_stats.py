"""Lightweight in-memory activity counters.

Incremented by the event routes and the sync pipeline; reset when the
server restarts.  The dashboard just shows live activity.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class SessionStats:
    started_at: float = field(default_factory=time.time)
    events_received: int = 0
    pipelines_started: int = 0
    pipelines_reset: int = 0
    pipelines_aborted: int = 0
    pipelines_awaiting_retry: int = 0

    @property
    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)


# Module-level singleton, imported directly by routes and the pipeline
stats = SessionStats()
