# src/task_planner/core/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .models import BotResponse, UserKey
from .state import AppState

logger = logging.getLogger(__name__)

CommandHandler = Callable[[AppState, UserKey, str], BotResponse]

# Keyboard button labels are alternate spellings of commands.
BUTTON_LABELS: dict[str, str] = {
    # authentication
    "📝 registration": "registration",
    "log in": "login",
    "log out": "exit",
    # main keyboard
    "➕ add task": "add",
    "📝 show tasks": "tasks",
    "✔ done": "done",
    "✅ completed tasks": "dtask",
    "✘ delete": "delete",
    "🔍 expand task": "expand",
    "export": "export",
    "import": "import",
    "help": "help",
    # expansion keyboard
    "🤖 ai subtasks": "add_subtasks_with_gpt",
    "➕ add subtask": "add_subtask",
    "✘ delete subtask": "delete_subtask",
    "edit subtask": "edit_subtask",
    "finish expansion": "finish_expand",
    "save": "save_subtasks_from_gpt",
    "discard": "delete_subtasks_from_gpt",
}

# Older or alternative slash spellings.
COMMAND_ALIASES: dict[str, str] = {
    "integration": "login",
    "logout": "exit",
    "finish_subtask": "finish_expand",
}

MAIN_KEYBOARD: list[list[str]] = [
    ["📝 Registration", "Log in"],
    ["➕ Add task", "📝 Show tasks"],
    ["✔ Done", "✅ Completed tasks"],
    ["✘ Delete", "🔍 Expand task"],
    ["Export", "Import"],
    ["Log out", "Help"],
]

EXPANSION_KEYBOARD: list[list[str]] = [
    ["🤖 AI subtasks"],
    ["➕ Add subtask", "✘ Delete subtask"],
    ["Edit subtask", "Finish expansion"],
    ["Save", "Discard"],
]


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    """`name` is the canonical command without the slash ("" for plain text)."""

    name: str
    parameter: str

    @property
    def is_command(self) -> bool:
        return bool(self.name)


def parse_command(line: str) -> ParsedCommand:
    """
    Split "/command parameter text" into its parts.

    Button labels map to their command with an empty parameter; plain text
    yields name="" and the whole stripped text as parameter.
    """
    text = (line or "").strip()
    if not text:
        return ParsedCommand("", "")

    label = BUTTON_LABELS.get(text.lower())
    if label:
        return ParsedCommand(label, "")

    if not text.startswith("/"):
        return ParsedCommand("", text)

    parts = text[1:].split(None, 1)
    if not parts:
        return ParsedCommand("", text)

    # Telegram group syntax: /add@PlannerBot
    name = parts[0].split("@", 1)[0].lower()
    name = COMMAND_ALIASES.get(name, name)
    parameter = parts[1].strip() if len(parts) > 1 else ""
    return ParsedCommand(name, parameter)


class CommandRegistry:
    """Slash-command registry for the main command set (/add, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._handlers

    def handle(self, state: AppState, user_key: UserKey, command: ParsedCommand) -> BotResponse | None:
        """Run the handler for a parsed command. Returns None if it is not registered."""
        if not command.is_command:
            return None
        handler = self._handlers.get(command.name)
        if handler is None:
            return None
        logger.debug("Command /%s from %s (param=%r)", command.name, user_key, command.parameter)
        return handler(state, user_key, command.parameter)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)
