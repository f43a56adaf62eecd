# src/task_planner/connectors/console_connector.py

from __future__ import annotations

import logging
import shlex
from datetime import datetime
from pathlib import Path

from ..core.dispatcher import Dispatcher
from ..core.models import Attachment, BotResponse, UserKey

logger = logging.getLogger(__name__)

PLATFORM = "console"
QUIT_COMMANDS = ("/quit", "/q")


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def read_attachment(raw_path: str) -> Attachment | None:
    """Load a local file for "/import <path>". Returns None if it cannot be read."""
    try:
        parts = shlex.split(raw_path)
    except ValueError:
        # Unbalanced quotes: take the line as one path.
        parts = [raw_path.strip()] if raw_path.strip() else []
    if not parts:
        return None
    path = Path(parts[0]).expanduser()
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.info("Console import: cannot read %s: %s", path, e)
        return None
    return Attachment(filename=path.name, data=data, path=path)


def render(response: BotResponse) -> str:
    text = response.text
    if response.file is not None and response.file.path is not None:
        text += f"\n[file] {response.file.path}"
    return text


def run_console_loop(dispatcher: Dispatcher, user_id: str = "local") -> None:
    """
    Blocking REPL over the dispatcher.

    The console has no uploads, so "/import <path>" reads a local file and
    delivers it as an attachment. /quit leaves the REPL (/exit logs out).
    """
    key = UserKey(PLATFORM, user_id)
    logger.info("Console connector started (user=%s).", key)
    _print_ts("[CONSOLE] Type /start to begin, /import <path> to load a file, /quit to leave.\n")

    while True:
        try:
            line = input(">>> You: ")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        user_input = line.strip()
        if not user_input:
            continue

        if user_input.lower() in QUIT_COMMANDS:
            logger.info("Console quit command received.")
            break

        attachment = None
        head, _, rest = user_input.partition(" ")
        if head.lower() == "/import" and rest.strip():
            attachment = read_attachment(rest)
            if attachment is None:
                _print_ts(f"Cannot read file: {rest.strip()}")
                continue

        response = dispatcher.handle(key, line, attachment)
        _print_ts(render(response))
