"""Pushes a stored problem record to the backend service.

The bearer token is whatever the external auth collaborator last stored
under ``auth_token``; this module never signs in.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import requests

from solvesync.services.contracts import ServiceResult
from solvesync.services.errors import NetworkFailure
from solvesync.services.store import AUTH_TOKEN_KEY, KeyedWriteQueue, record_key

if TYPE_CHECKING:
    from solvesync.config import Settings

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/problems/sync"


def pick_message(body: Any, fallback: str) -> str:
    if not isinstance(body, dict):
        return fallback
    for key in ("message", "error", "detail", "status", "info"):
        value = body.get(key)
        if value:
            return str(value)
    return fallback


class HttpBackendSyncService:
    def __init__(self, settings: "Settings", write_queue: KeyedWriteQueue) -> None:
        self._base_url = settings.backend_base_url.rstrip("/")
        self._timeout = settings.request_timeout_seconds
        self._queue = write_queue

    def _post(self, record: dict, token: str | None) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = requests.post(
                f"{self._base_url}{SYNC_PATH}",
                headers=headers,
                json=record,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise NetworkFailure("Unable to reach backend service. Check your connection.") from exc

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {"raw": resp.text}

        if not resp.ok:
            raise NetworkFailure(pick_message(body, f"Request failed with status {resp.status_code}"))
        return body

    async def push(self, problem_url: str) -> ServiceResult:
        record = await self._queue.read(record_key(problem_url))
        if not record:
            return ServiceResult.fail(f"No stored data for {problem_url}")

        token = (await self._queue.store.get([AUTH_TOKEN_KEY])).get(AUTH_TOKEN_KEY)
        if not token:
            logger.warning("No auth token stored, pushing unauthenticated")

        loop = asyncio.get_running_loop()
        try:
            body = await loop.run_in_executor(None, self._post, record, token)
        except NetworkFailure as exc:
            logger.error("Backend push failed for %s: %s", problem_url, exc)
            return ServiceResult.fail(str(exc))

        logger.info("Backend push ok for %s", problem_url)
        return ServiceResult(success=True, data=body if isinstance(body, dict) else {})
