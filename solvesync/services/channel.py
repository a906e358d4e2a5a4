"""Typed request/response channel with correlation ids and a bounded wait.

One side calls :meth:`RequestChannel.request` and awaits; the other side
polls :meth:`pending` and answers with :meth:`resolve`.  A request that is
not answered within the timeout resolves to ``ChannelResponse(ok=False,
error="Timeout")``; callers never hang.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0


@dataclass
class ChannelRequest:
    correlation_id: str
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelResponse:
    ok: bool
    correlation_id: str
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


class RequestChannel:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout
        self._waiters: dict[str, tuple[ChannelRequest, asyncio.Future]] = {}

    def pending(self, kind: str | None = None) -> list[ChannelRequest]:
        return [
            req for req, _ in self._waiters.values()
            if kind is None or req.kind == kind
        ]

    async def request(
        self,
        kind: str,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ChannelResponse:
        # Callers may shorten the wait but never extend it past the channel bound.
        wait = self._timeout if timeout is None else min(timeout, self._timeout)
        req = ChannelRequest(uuid.uuid4().hex, kind, payload or {})
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters[req.correlation_id] = (req, future)
        logger.debug("Channel request %s (%s)", req.correlation_id, kind)

        try:
            data = await asyncio.wait_for(future, wait)
        except asyncio.TimeoutError:
            logger.info("Channel request %s (%s) timed out", req.correlation_id, kind)
            return ChannelResponse(ok=False, correlation_id=req.correlation_id, error="Timeout")
        finally:
            self._waiters.pop(req.correlation_id, None)

        return ChannelResponse(ok=True, correlation_id=req.correlation_id, data=data)

    def resolve(self, correlation_id: str, data: dict[str, Any] | None = None) -> bool:
        """Answer a waiting request.  Unknown or expired ids return False."""
        entry = self._waiters.get(correlation_id)
        if entry is None:
            return False
        _, future = entry
        if future.done():
            return False
        future.set_result(data or {})
        return True
