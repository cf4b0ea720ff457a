# src/eisenhower_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs one command:
    eisenhower-sync status
    eisenhower-sync add Write report --important --due 2026-01-12
    eisenhower-sync watch
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from ..cli.bootstrap import create_initial_state
from ..cli.commands import registry
from ..config import get_settings
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)

    args = list(sys.argv[1:] if argv is None else argv) or ["help"]
    line = "/" + " ".join(args)

    logger.debug("Starting %s: %s (log=%s)", settings.app_name, line, log_file)
    state = create_initial_state(settings=settings)

    # SIGTERM stops `watch` the same way Ctrl+C does.
    with contextlib.suppress(ValueError, OSError):
        signal.signal(signal.SIGTERM, signal.default_int_handler)

    try:
        reply = asyncio.run(registry.handle(state, line, emit=print))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
        reply = None
    finally:
        _shutdown(state)

    if reply:
        print(reply)


if __name__ == "__main__":
    main()
