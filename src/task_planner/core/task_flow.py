# src/task_planner/core/task_flow.py

"""
Single-parameter task operations: add, delete, done, export.

An operation given with its parameter on the same line ("/add Water plants")
runs immediately. Without one the user is prompted and the next message is
the parameter.

Also hosts the read-only listings and file import, which share the account
resolution and error rendering.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from ..files import task_file
from . import messages as msg
from .errors import AlreadyExists, ImportFormatError, NotAuthenticated, NotFound, StoreFailure
from .models import Attachment, AwaitingOperationParam, BotResponse, Operation, UserKey
from .state import AppState

logger = logging.getLogger(__name__)

_PROMPTS: dict[Operation, str] = {
    Operation.ADD: msg.ADD_PROMPT,
    Operation.DELETE: msg.DELETE_PROMPT,
    Operation.DONE: msg.DONE_PROMPT,
    Operation.EXPORT: msg.EXPORT_PROMPT,
}


def require_account(state: AppState, key: UserKey) -> int:
    account_id = state.store.resolve_account(key.platform, key.platform_id)
    if account_id is None:
        raise NotAuthenticated(str(key))
    return account_id


def has_pending(state: AppState, key: UserKey) -> bool:
    return state.sessions.has_pending(key, AwaitingOperationParam)


def invoke(state: AppState, key: UserKey, operation: Operation, parameter: str = "") -> BotResponse:
    parameter = (parameter or "").strip()
    if parameter:
        return execute(state, key, operation, parameter)

    state.sessions.set(key, AwaitingOperationParam(operation))
    logger.debug("Awaiting %s parameter from %s", operation, key)
    return BotResponse(_PROMPTS[operation])


def advance(state: AppState, key: UserKey, text: str) -> BotResponse:
    parameter = (text or "").strip()
    if not parameter:
        pending = state.sessions.get_as(key, AwaitingOperationParam)
        if pending is not None:
            return BotResponse(_PROMPTS[pending.operation])

    pending = state.sessions.take(key, AwaitingOperationParam)
    if pending is None:
        return BotResponse(msg.INTERNAL_ERROR)
    return execute(state, key, pending.operation, parameter)


# ---- executors ----


def _add(state: AppState, account_id: int, text: str) -> BotResponse:
    try:
        task_id = state.store.insert_task(account_id, text)
    except AlreadyExists:
        return BotResponse(msg.TASK_EXISTS.format(text=text))
    logger.info("Task added account=%s id=%s", account_id, task_id)
    return BotResponse(msg.TASK_ADDED.format(text=text))


def _delete(state: AppState, account_id: int, text: str) -> BotResponse:
    try:
        state.store.delete_task(account_id, text)
    except NotFound:
        return BotResponse(msg.TASK_NOT_FOUND.format(text=text))
    logger.info("Task deleted account=%s", account_id)
    return BotResponse(msg.TASK_DELETED.format(text=text))


def _done(state: AppState, account_id: int, text: str) -> BotResponse:
    try:
        state.store.complete_task(account_id, text)
    except NotFound:
        return BotResponse(msg.TASK_NOT_FOUND.format(text=text))
    logger.info("Task completed account=%s", account_id)
    return BotResponse(msg.TASK_DONE.format(text=text))


def _export(state: AppState, account_id: int, name: str) -> BotResponse:
    current = [t.text for t in state.store.list_current_tasks(account_id)]
    completed = state.store.list_completed_tasks(account_id)

    filename = task_file.export_filename(name)
    data = task_file.serialize(current, completed)
    export_dir = Path(getattr(state.settings, "export_dir", "exports")) / str(account_id)
    path = task_file.write_export(export_dir, filename, data)

    logger.info("Exported %d+%d tasks for account=%s to %s", len(current), len(completed), account_id, path)
    return BotResponse(
        msg.EXPORTED.format(filename=filename),
        file=Attachment(filename=filename, data=data, path=path),
    )


_EXECUTORS: dict[Operation, Callable[[AppState, int, str], BotResponse]] = {
    Operation.ADD: _add,
    Operation.DELETE: _delete,
    Operation.DONE: _done,
    Operation.EXPORT: _export,
}


def execute(state: AppState, key: UserKey, operation: Operation, parameter: str) -> BotResponse:
    try:
        account_id = require_account(state, key)
        return _EXECUTORS[operation](state, account_id, parameter)
    except NotAuthenticated:
        return BotResponse(msg.NOT_AUTHENTICATED)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)
    except OSError:
        logger.exception("Export failed for %s", key)
        return BotResponse(msg.STORE_ERROR)


# ---- listings ----


def list_tasks(state: AppState, key: UserKey) -> BotResponse:
    try:
        account_id = require_account(state, key)
        tasks = state.store.list_current_tasks(account_id)
        if not tasks:
            return BotResponse(msg.TASKS_EMPTY)

        lines = [msg.TASKS_HEADER]
        for i, task in enumerate(tasks, start=1):
            lines.append(f"{i}. {task.text}")
            lines.extend(f"   - {sub}" for sub in state.store.list_subtasks(task.id))
    except NotAuthenticated:
        return BotResponse(msg.NOT_AUTHENTICATED)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)
    return BotResponse("\n".join(lines))


def list_completed(state: AppState, key: UserKey) -> BotResponse:
    try:
        account_id = require_account(state, key)
        completed = state.store.list_completed_tasks(account_id)
    except NotAuthenticated:
        return BotResponse(msg.NOT_AUTHENTICATED)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)

    if not completed:
        return BotResponse(msg.COMPLETED_EMPTY)
    return BotResponse(msg.COMPLETED_HEADER + "\n" + msg.numbered(completed))


# ---- import ----


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def import_tasks(state: AppState, key: UserKey, attachment: Attachment) -> BotResponse:
    """Replace both task sets of the account with the file contents, all or nothing."""
    try:
        account_id = require_account(state, key)
        data = task_file.deserialize(attachment.data)
    except NotAuthenticated:
        return BotResponse(msg.NOT_AUTHENTICATED)
    except ImportFormatError as e:
        logger.info("Rejected import %r from %s: %s", attachment.filename, key, e)
        return BotResponse(msg.IMPORT_FORMAT_ERROR)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)

    completed = _unique(data.completed_tasks)
    done = set(completed)
    current = [t for t in _unique(data.current_tasks) if t not in done]

    try:
        state.store.replace_tasks(account_id, current, completed)
    except (AlreadyExists, StoreFailure):
        return BotResponse(msg.STORE_ERROR)

    logger.info("Imported %d+%d tasks for account=%s", len(current), len(completed), account_id)
    return BotResponse(msg.IMPORT_OK.format(current=len(current), completed=len(completed)))
