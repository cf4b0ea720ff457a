# src/eisenhower_sync/notifications/notifiers.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TextIO

from .scheduler import NotificationType, PlannedNotification

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """In-app delivery for the terminal: one timestamped line per notification."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    async def notify(self, notification: PlannedNotification) -> None:
        stream = self._stream or sys.stdout
        ts = datetime.now().strftime("%H:%M:%S")
        marker = "!" if notification.type == NotificationType.DRIFT else "*"
        print(f"[{ts}] {marker} {notification.message}", file=stream, flush=True)
        logger.debug("Console notification shown id=%s", notification.id)
