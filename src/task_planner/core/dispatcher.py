# src/task_planner/core/dispatcher.py

"""
Transport-agnostic entry point.

Connectors call `Dispatcher.handle(user_key, text, attachment)` from whatever
thread delivered the message. Handling of one user key is serialized with the
session store's per-key lock; different keys run fully in parallel.

Routing order:
1. attachment -> import
2. not logged in and no auth dialog -> welcome (only /registration and /login pass)
3. auth dialog pending -> next auth step (the text is taken as-is, even "/login")
4. /registration, /login, /exit -> authentication (replaces any other pending dialog)
5. expansion active -> subtask flow
6. operation parameter pending -> task operation
7. main command set
8. anything else -> unknown command
"""

from __future__ import annotations

import logging

from . import auth_flow, subtask_flow, task_flow
from . import messages as msg
from .commands import CommandRegistry, ParsedCommand, parse_command
from .errors import PlannerError
from .models import Attachment, BotResponse, Operation, UserKey
from .state import AppState

logger = logging.getLogger(__name__)

AUTH_ENTRY_COMMANDS = frozenset({"registration", "login"})


def _cmd_start(state: AppState, key: UserKey, parameter: str) -> BotResponse:
    return BotResponse(msg.START)


def _cmd_help(state: AppState, key: UserKey, parameter: str) -> BotResponse:
    return BotResponse(msg.HELP)


def _cmd_tasks(state: AppState, key: UserKey, parameter: str) -> BotResponse:
    return task_flow.list_tasks(state, key)


def _cmd_completed(state: AppState, key: UserKey, parameter: str) -> BotResponse:
    return task_flow.list_completed(state, key)


def _cmd_import(state: AppState, key: UserKey, parameter: str) -> BotResponse:
    return BotResponse(msg.IMPORT_HINT)


def _cmd_operation(operation: Operation):
    def handler(state: AppState, key: UserKey, parameter: str) -> BotResponse:
        return task_flow.invoke(state, key, operation, parameter)

    return handler


def build_registry() -> CommandRegistry:
    registry = CommandRegistry()
    registry.register("start", _cmd_start, "Show the command overview")
    registry.register("help", _cmd_help, "How to use the planner")
    registry.register("add", _cmd_operation(Operation.ADD), "Add a task")
    registry.register("delete", _cmd_operation(Operation.DELETE), "Delete a task")
    registry.register("done", _cmd_operation(Operation.DONE), "Mark a task as done")
    registry.register("export", _cmd_operation(Operation.EXPORT), "Send your tasks as a file")
    registry.register("tasks", _cmd_tasks, "Show your tasks")
    registry.register("dtask", _cmd_completed, "Show completed tasks", aliases=["completed"])
    registry.register("import", _cmd_import, "Load tasks from a file")
    registry.register("expand", subtask_flow.select_task, "Expand a task into subtasks")
    return registry


class Dispatcher:
    def __init__(self, state: AppState, registry: CommandRegistry | None = None) -> None:
        self.state = state
        self.registry = registry or build_registry()

    def handle(self, user_key: UserKey, text: str, attachment: Attachment | None = None) -> BotResponse:
        """Handle one inbound message. Never raises."""
        with self.state.sessions.locked(user_key):
            try:
                return self._route(user_key, text or "", attachment)
            except PlannerError as e:
                # Flows render their own errors; this is a store failure outside a flow
                # (e.g. while resolving the session).
                logger.warning("Unhandled %s for %s: %s", type(e).__name__, user_key, e)
                self.state.sessions.clear(user_key)
                return BotResponse(msg.STORE_ERROR)
            except Exception:
                logger.exception("Dispatcher failed for %s", user_key)
                self.state.sessions.clear(user_key)
                return BotResponse(msg.INTERNAL_ERROR)

    def _route(self, key: UserKey, text: str, attachment: Attachment | None) -> BotResponse:
        state = self.state

        if attachment is not None:
            if not auth_flow.is_authenticated(state, key):
                return BotResponse(msg.WELCOME)
            logger.debug("Attachment %r from %s routed to import", attachment.filename, key)
            return task_flow.import_tasks(state, key, attachment)

        command = parse_command(text)
        auth_pending = auth_flow.has_pending(state, key)

        if not auth_pending and command.name not in AUTH_ENTRY_COMMANDS:
            if not auth_flow.is_authenticated(state, key):
                return BotResponse(msg.WELCOME)

        if auth_pending:
            return auth_flow.advance(state, key, text)

        auth = self._auth_command(key, command)
        if auth is not None:
            return auth

        if subtask_flow.is_active(state, key):
            return subtask_flow.handle(state, key, text)

        if task_flow.has_pending(state, key):
            return task_flow.advance(state, key, text)

        response = self.registry.handle(state, key, command)
        if response is not None:
            return response

        logger.debug("Unknown input from %s", key)
        return BotResponse(msg.UNKNOWN_COMMAND)

    def _auth_command(self, key: UserKey, command: ParsedCommand) -> BotResponse | None:
        if command.name == "registration":
            return auth_flow.begin_registration(self.state, key)
        if command.name == "login":
            return auth_flow.begin_login(self.state, key)
        if command.name == "exit":
            return auth_flow.handle_exit(self.state, key)
        return None

