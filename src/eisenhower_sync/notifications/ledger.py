# src/eisenhower_sync/notifications/ledger.py

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from datetime import datetime

from ..core.errors import StorageUnavailable
from ..core.ports import KeyValueStore
from ..core.timeutil import instant_or_epoch, to_iso

logger = logging.getLogger(__name__)

LEDGER_KEY = "eisenhower.firedNotifications.v1"
DEFAULT_LEDGER_CAP = 500


class FiredLedger(Mapping[str, str]):
    """
    Notification id -> instant it fired.

    Bounded: once more than `cap` ids are recorded, the entries that fired
    earliest are evicted. Owned by the caller; the scheduler only reads it.
    """

    def __init__(self, entries: Mapping[str, str] | None = None, *, cap: int = DEFAULT_LEDGER_CAP) -> None:
        self._cap = max(1, int(cap))
        self._entries: dict[str, str] = {}
        for notification_id, fired_at in (entries or {}).items():
            if isinstance(notification_id, str) and isinstance(fired_at, str):
                self._entries[notification_id] = fired_at
        self._evict()

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cap(self) -> int:
        return self._cap

    def record(self, notification_id: str, fired_at: datetime | str) -> None:
        self._entries.pop(notification_id, None)
        self._entries[notification_id] = fired_at if isinstance(fired_at, str) else to_iso(fired_at)
        self._evict()

    def _evict(self) -> None:
        overflow = len(self._entries) - self._cap
        if overflow <= 0:
            return
        # Stable sort keeps insertion order among equal timestamps.
        oldest = sorted(self._entries, key=lambda k: instant_or_epoch(self._entries[k]))[:overflow]
        for k in oldest:
            del self._entries[k]
        logger.debug("FiredLedger evicted %d entries (cap=%d)", overflow, self._cap)

    def to_dict(self) -> dict[str, str]:
        return dict(self._entries)


def load_ledger(store: KeyValueStore, *, cap: int = DEFAULT_LEDGER_CAP) -> FiredLedger:
    try:
        raw = store.get(LEDGER_KEY)
    except StorageUnavailable:
        logger.exception("Failed to load fired-notification ledger; starting empty")
        return FiredLedger(cap=cap)
    if not raw:
        return FiredLedger(cap=cap)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Fired-notification ledger is corrupt; starting empty")
        return FiredLedger(cap=cap)
    return FiredLedger(parsed if isinstance(parsed, dict) else None, cap=cap)


def save_ledger(store: KeyValueStore, ledger: FiredLedger) -> bool:
    try:
        store.set(LEDGER_KEY, json.dumps(ledger.to_dict()))
        return True
    except StorageUnavailable:
        logger.exception("Failed to save fired-notification ledger")
        return False
