# src/eisenhower_sync/core/errors.py

"""
Error taxonomy.

Only MalformedRecord and InvalidImport are meant to reach callers of the public
API; the others are raised by adapters and swallowed (and logged) by the core.
"""

from __future__ import annotations


class EisenhowerSyncError(Exception):
    """Base class for every error raised by this package."""


class MalformedRecord(EisenhowerSyncError, ValueError):
    """A single task record fails the required-field checks."""


class CorruptEnvelope(EisenhowerSyncError, ValueError):
    """Persisted payload is unparseable, has the wrong shape, version or size."""


class RemoteUnavailable(EisenhowerSyncError):
    """Remote task store could not be reached (network, auth, not configured)."""


class StorageUnavailable(EisenhowerSyncError):
    """Local key-value store failed (quota, locked database, I/O error)."""


class InvalidImport(EisenhowerSyncError, ValueError):
    """Imported JSON text is not a usable task list."""
