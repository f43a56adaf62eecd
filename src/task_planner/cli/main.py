# src/task_planner/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the dispatcher, then starts connectors:
- console REPL in the main thread (optional),
- Matrix and Telegram connectors in background threads (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_dispatcher
from ..config import get_settings
from ..connectors.background import BackgroundRunner
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=getattr(settings, "data_dir", ".local/planner"), console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "task-planner"))

    dispatcher = create_dispatcher(settings=settings)

    runners: list[BackgroundRunner] = []
    if settings.matrix_enabled:
        from ..connectors.matrix_connector import start_matrix_in_background

        runner = start_matrix_in_background(dispatcher, settings)
        if runner is not None:
            runners.append(runner)

    if settings.telegram_enabled:
        from ..connectors.telegram_connector import start_telegram_in_background

        runner = start_telegram_in_background(dispatcher, settings)
        if runner is not None:
            runners.append(runner)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        if settings.console_enabled:
            run_console_loop(dispatcher, user_id=settings.console_user_id)
            stop_main.set()
        elif not runners:
            logger.warning("No connectors enabled. Enable console, Matrix or Telegram in .env.")
        else:
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        for runner in runners:
            runner.stop()
        for runner in runners:
            runner.join(timeout=10.0)

        dispatcher.state.store.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
