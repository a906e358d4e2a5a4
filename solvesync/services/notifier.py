"""User-facing notifications for sync outcomes.

Fire-and-forget: the pipeline never waits on or checks a notification.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    level: str
    message: str
    created_at: float = field(default_factory=time.time)


class LogNotifier:
    """Logs notifications and keeps the most recent ones for the dashboard."""

    def __init__(self, maxlen: int = 50) -> None:
        self._recent: deque[Notification] = deque(maxlen=maxlen)

    def success(self, message: str) -> None:
        logger.info("Notify success: %s", message)
        self._recent.append(Notification("success", message))

    def error(self, message: str) -> None:
        logger.warning("Notify error: %s", message)
        self._recent.append(Notification("error", message))

    def recent(self) -> list[Notification]:
        return list(self._recent)
