# src/eisenhower_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

- One Settings object for the whole app.
- Every variable carries the EISEN_ prefix; nothing is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "EISEN"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_optional(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_path: Path
    log_dir: Path

    # ---- Sync ----
    user_id: str | None
    remote_dir: Path | None
    offline: bool
    max_tasks: int

    # ---- Reminders ----
    timezone: str
    fired_ledger_cap: int
    reminder_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "eisenhower").strip() or "eisenhower"
        log_level = _env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO"

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/eisenhower"))
        store_path = _env_path(_k("STORE_PATH"), data_dir / "store.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        user_id = _env_optional(_k("USER_ID"))
        remote_raw = _env_optional(_k("REMOTE_DIR"))
        remote_dir = Path(remote_raw).expanduser() if remote_raw else None
        offline = _env_bool(_k("OFFLINE"), False)
        max_tasks = max(1, _env_int(_k("MAX_TASKS"), 10_000))

        timezone = _env(_k("TIMEZONE"), "UTC").strip() or "UTC"
        fired_ledger_cap = max(1, _env_int(_k("FIRED_LEDGER_CAP"), 500))
        reminder_interval_seconds = max(0.5, _env_float(_k("REMINDER_INTERVAL_SECONDS"), 30.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            store_path=store_path,
            log_dir=log_dir,
            user_id=user_id,
            remote_dir=remote_dir,
            offline=offline,
            max_tasks=max_tasks,
            timezone=timezone,
            fired_ledger_cap=fired_ledger_cap,
            reminder_interval_seconds=reminder_interval_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
