"""Active-time accounting for the problem currently being worked on.

Elapsed active time is wall-clock time since ``start_time`` minus everything
spent with the page hidden::

    elapsed = now - start_time - paused_time - (now - hidden_since if hidden)

Hidden intervals are folded into ``paused_time`` when the page becomes
visible again.  Timer fields live inside the problem record in the store;
writes are funneled through :class:`KeyedWriteQueue` so a visibility change,
a reset and a pipeline write to the same record never interleave.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from solvesync.services.errors import StorageError
from solvesync.services.store import (
    SESSION_RESTARTED_KEY,
    KeyedWriteQueue,
    record_key,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def format_elapsed(elapsed_ms: int) -> str:
    """Render milliseconds as ``MM:SS``, or ``H:MM:SS`` past the hour."""
    seconds = max(elapsed_ms, 0) // 1000
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}:{minutes % 60:02d}:{seconds % 60:02d}"
    return f"{minutes:02d}:{seconds % 60:02d}"


@dataclass
class Session:
    session_id: str
    start_time: int
    paused_time: int = 0
    is_hidden: bool = False
    hidden_since: int | None = None


class SessionTimer:
    """Owns the :class:`Session` for one active session id at a time."""

    def __init__(self, write_queue: KeyedWriteQueue, clock: Clock = now_ms) -> None:
        self._queue = write_queue
        self._clock = clock
        self._session: Session | None = None
        self._hidden = False

    # ── accessors ────────────────────────────────────────────────────────
    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session else None

    @property
    def start_time(self) -> int | None:
        return self._session.start_time if self._session else None

    @property
    def paused_time(self) -> int:
        return self._session.paused_time if self._session else 0

    @property
    def is_hidden(self) -> bool:
        return self._hidden

    # ── lifecycle ────────────────────────────────────────────────────────
    async def start(self, session_id: str) -> None:
        if not session_id:
            logger.warning("No session id provided, timer not started")
            return

        if self._session is not None and self._session.session_id == session_id:
            logger.debug("Same session %s, continuing timer", session_id)
            return

        now = self._clock()
        start_time, paused_time = await self._load(session_id)
        if start_time is None:
            start_time, paused_time = now, 0
            logger.info("Started fresh timer for %s", session_id)

        self._session = Session(
            session_id=session_id,
            start_time=start_time,
            paused_time=paused_time,
            is_hidden=self._hidden,
            hidden_since=now if self._hidden else None,
        )
        if start_time != now:
            logger.info(
                "Resumed timer for %s, elapsed %dms",
                session_id, self.get_elapsed_active_time(),
            )
        await self._persist()

    async def reset(self) -> None:
        if self._session is None:
            logger.debug("Reset requested with no active session")
            return
        now = self._clock()
        self._session.start_time = now
        self._session.paused_time = 0
        self._session.is_hidden = self._hidden
        self._session.hidden_since = now if self._hidden else None
        await self._persist()
        logger.info("Timer reset for %s", self._session.session_id)

    def on_visibility_hidden(self) -> None:
        self._hidden = True
        if self._session is None:
            return
        self._session.is_hidden = True
        self._session.hidden_since = self._clock()
        logger.debug("Page hidden, pausing timer")

    async def on_visibility_visible(self) -> None:
        self._hidden = False
        session = self._session
        if session is None:
            return
        session.is_hidden = False
        if session.hidden_since is not None:
            hidden_for = max(self._clock() - session.hidden_since, 0)
            session.paused_time += hidden_for
            session.hidden_since = None
            logger.debug(
                "Page visible, was hidden for %ds, total paused %ds",
                hidden_for // 1000, session.paused_time // 1000,
            )
            await self._persist()

    def get_elapsed_active_time(self) -> int:
        """Active milliseconds for the current session; never negative."""
        session = self._session
        if session is None:
            return 0

        now = self._clock()
        elapsed = now - session.start_time - session.paused_time
        if session.is_hidden and session.hidden_since is not None:
            elapsed -= now - session.hidden_since

        if elapsed < 0:
            logger.warning(
                "Negative elapsed time (%dms) for %s, resetting timer",
                elapsed, session.session_id,
            )
            session.start_time = now
            session.paused_time = 0
            session.hidden_since = now if session.is_hidden else None
            return 0
        return elapsed

    async def tick(self) -> str:
        """Display refresh: format elapsed time, persisting any self-correction."""
        session = self._session
        if session is None:
            return format_elapsed(0)
        before = (session.start_time, session.paused_time)
        elapsed = self.get_elapsed_active_time()
        if (session.start_time, session.paused_time) != before:
            await self._persist()
        return format_elapsed(elapsed)

    # ── persistence ─────────────────────────────────────────────────────
    async def _load(self, session_id: str) -> tuple[int | None, int]:
        store = self._queue.store
        try:
            flags = await store.get([SESSION_RESTARTED_KEY])
            if flags.get(SESSION_RESTARTED_KEY):
                logger.info("Browser session restarted, not resuming stored timer")
                await store.remove([SESSION_RESTARTED_KEY])
                return None, 0

            record = await self._queue.read(record_key(session_id))
        except Exception as exc:
            logger.error("Error loading timer for %s: %s", session_id, exc)
            return None, 0

        start_time = record.get("start_time")
        return start_time, int(record.get("paused_time") or 0)

    async def _persist(self) -> None:
        session = self._session
        if session is None:
            return
        start_time, paused_time = session.start_time, session.paused_time

        def merge(record: dict) -> dict:
            record["start_time"] = start_time
            record["paused_time"] = paused_time
            return record

        try:
            await self._queue.update(record_key(session.session_id), merge)
        except StorageError as exc:
            logger.error("Error saving timer for %s: %s", session.session_id, exc)


class SessionRegistry:
    """Explicitly owned timers keyed by session id."""

    def __init__(self, write_queue: KeyedWriteQueue, clock: Clock = now_ms) -> None:
        self._queue = write_queue
        self._clock = clock
        self._timers: dict[str, SessionTimer] = {}
        self._active: str | None = None

    @property
    def active(self) -> SessionTimer | None:
        return self._timers.get(self._active) if self._active else None

    async def activate(self, session_id: str) -> SessionTimer:
        """Start (or continue) the timer for ``session_id`` and make it active."""
        timer = self._timers.get(session_id)
        if timer is None:
            timer = self._timers[session_id] = SessionTimer(self._queue, self._clock)
        previous = self.active
        if previous is not None and previous is not timer and previous.is_hidden:
            timer.on_visibility_hidden()
        await timer.start(session_id)
        self._active = session_id
        return timer

    def get(self, session_id: str) -> SessionTimer | None:
        return self._timers.get(session_id)

    def discard(self, session_id: str) -> None:
        self._timers.pop(session_id, None)
        if self._active == session_id:
            self._active = None
