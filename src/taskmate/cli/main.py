# src/taskmate/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the escalation scheduler in a background thread,
- the operator console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..cli.runner import start_scheduler_in_background
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import ConfigurationError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise SystemExit(2) from None

    runner = start_scheduler_in_background(state)
    if runner is None:
        raise SystemExit(1)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            run_console_loop(state, runner)
            stop_main.set()
        else:
            try:
                signal.signal(signal.SIGINT, _handle_signal)
                signal.signal(signal.SIGTERM, _handle_signal)
            except (ValueError, OSError):
                # Some platforms may not support SIGTERM, etc.
                logger.debug("Signal handlers not installed.", exc_info=True)
            logger.info("Console disabled. Running scheduler only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        runner.stop()
        runner.join(timeout=10.0)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
