# src/eisenhower_sync/tasks/device.py

from __future__ import annotations

import logging
import uuid

from ..core.errors import StorageUnavailable
from ..core.ports import KeyValueStore

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "eisenhower.deviceId"

_current_device_id: str | None = None


def current_device_id() -> str:
    """
    Identifier of this device, used to stamp records that lack one.

    Falls back to an ephemeral id for the process until
    load_or_create_device_id() has resolved the persisted one.
    """
    global _current_device_id
    if _current_device_id is None:
        _current_device_id = f"device-{uuid.uuid4()}"
    return _current_device_id


def set_current_device_id(device_id: str) -> None:
    global _current_device_id
    _current_device_id = device_id


def load_or_create_device_id(store: KeyValueStore) -> str:
    """Read the persisted device id, creating it on first run."""
    try:
        existing = store.get(DEVICE_ID_KEY)
        if existing and existing.strip():
            device_id = existing.strip().strip('"')
        else:
            device_id = str(uuid.uuid4())
            store.set(DEVICE_ID_KEY, device_id)
            logger.info("Created device id %s", device_id)
    except StorageUnavailable:
        logger.exception("Failed to read/persist device id; using an ephemeral one.")
        device_id = f"device-{uuid.uuid4()}"

    set_current_device_id(device_id)
    return device_id
