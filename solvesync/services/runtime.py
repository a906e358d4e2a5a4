"""Wires the store, timer registry, collaborators and pipeline together.

Routes reach the shared objects through :func:`get_runtime`, the same way
they reach configuration through ``get_settings``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from solvesync.config import Settings, get_settings
from solvesync.services.backend_sync import HttpBackendSyncService
from solvesync.services.channel import RequestChannel
from solvesync.services.contracts import AnalysisService, BackendSyncService, CodeHostService
from solvesync.services.gemini_analysis import GeminiAnalysisService
from solvesync.services.github_push import GitHubCodeHost
from solvesync.services.notifier import LogNotifier
from solvesync.services.problem_session import ProblemSession
from solvesync.services.session_timer import Clock, SessionRegistry, now_ms
from solvesync.services.store import KeyedWriteQueue, PersistentStore, build_store
from solvesync.services.sync_pipeline import SyncPipeline

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    settings: Settings
    store: PersistentStore
    write_queue: KeyedWriteQueue
    registry: SessionRegistry
    notifier: LogNotifier
    channel: RequestChannel
    pipeline: SyncPipeline
    problem: ProblemSession


def build_runtime(
    settings: Settings,
    store: PersistentStore | None = None,
    *,
    analysis: AnalysisService | None = None,
    backend: BackendSyncService | None = None,
    code_host: CodeHostService | None = None,
    notifier: LogNotifier | None = None,
    clock: Clock = now_ms,
) -> SyncRuntime:
    store = store if store is not None else build_store(settings.storage_file)
    queue = KeyedWriteQueue(store)
    notifier = notifier or LogNotifier()
    registry = SessionRegistry(queue, clock)
    pipeline = SyncPipeline(
        settings,
        queue,
        analysis=analysis or GeminiAnalysisService(settings),
        backend=backend or HttpBackendSyncService(settings, queue),
        code_host=code_host or GitHubCodeHost(settings),
        notifier=notifier,
    )
    return SyncRuntime(
        settings=settings,
        store=store,
        write_queue=queue,
        registry=registry,
        notifier=notifier,
        channel=RequestChannel(settings.handshake_timeout_seconds),
        pipeline=pipeline,
        problem=ProblemSession(settings, queue, registry, pipeline),
    )


@lru_cache
def get_runtime() -> SyncRuntime:
    return build_runtime(get_settings())
