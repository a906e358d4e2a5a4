"""Error taxonomy shared by the timer, the tracker and the sync pipeline.

Only ``StorageError`` propagates to callers.  The pipeline converts every
other failure into an entry on its result object, and a negative elapsed time
is corrected in place and logged rather than raised.
"""
from __future__ import annotations


class SolveSyncError(Exception):
    """Base class for all solvesync failures."""


class ConfigurationMissing(SolveSyncError, ValueError):
    """A collaborator credential (e.g. the Gemini API key) is not configured."""


class ExtractionIncomplete(SolveSyncError):
    """The problem snapshot lacks a title or code and cannot be synced."""


class NetworkFailure(SolveSyncError, RuntimeError):
    """A collaborator call failed or returned a non-success response."""


class StorageError(SolveSyncError, RuntimeError):
    """A persistent-store read or write failed."""
