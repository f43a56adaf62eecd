# src/task_planner/core/subtask_flow.py

"""
Subtask editing for a task selected with /expand.

The pending state (AwaitingSubtaskStep) carries the selected task for the
whole expansion. `step` is the optional sub-dialog on top of it:

    menu (step=None) -> add | delete | edit-select -> edit-replace -> menu
    menu -> ai-details -> ai-review -> menu
    menu -> /finish_expand -> no state

Every write re-checks that the selected task still exists and still belongs
to the caller's account; the task id is never trusted past that check.
A sub-dialog is claimed (compare-and-swap back to the menu) before its write,
so a store failure never leaves the user stuck inside a step.
"""

from __future__ import annotations

import dataclasses
import logging
import re

from ..llm.client import friendly_llm_error_message
from . import messages as msg
from .commands import ParsedCommand, parse_command
from .errors import AlreadyExists, NotAuthenticated, NotFound, StoreFailure
from .models import AwaitingSubtaskStep, BotResponse, SubtaskStep, UserKey
from .state import AppState
from .task_flow import require_account

logger = logging.getLogger(__name__)

# "1. foo", "2) foo", "- foo", "• foo"
_LIST_MARKER = re.compile(r"^\s*(?:\d+\s*[.)]|[-•*])\s*")

_STEP_PROMPTS: dict[SubtaskStep, str] = {
    SubtaskStep.ADD: msg.SUBTASK_ADD_PROMPT,
    SubtaskStep.DELETE: msg.SUBTASK_DELETE_PROMPT,
    SubtaskStep.EDIT_SELECT: msg.SUBTASK_EDIT_PROMPT,
    SubtaskStep.AI_DETAILS: msg.AI_DETAILS_PROMPT,
}


def start_expansion(state: AppState, key: UserKey, task_id: int, task_text: str) -> BotResponse:
    state.sessions.set(key, AwaitingSubtaskStep(task_id=task_id, task_text=task_text))
    logger.debug("Expansion of task id=%s started for %s", task_id, key)
    return BotResponse(msg.SUBTASK_MENU.format(task=task_text))


def select_task(state: AppState, key: UserKey, parameter: str) -> BotResponse:
    """/expand <number|text>: pick a current task and start its expansion."""
    try:
        account_id = require_account(state, key)
        tasks = state.store.list_current_tasks(account_id)
    except NotAuthenticated:
        return BotResponse(msg.NOT_AUTHENTICATED)
    except StoreFailure:
        return BotResponse(msg.STORE_ERROR)

    if not tasks:
        return BotResponse(msg.TASKS_EMPTY)

    choice = (parameter or "").strip()
    if not choice:
        return BotResponse(msg.EXPAND_PICK.format(tasks=msg.numbered([t.text for t in tasks])))

    task = next((t for t in tasks if t.text == choice), None)
    if task is None and choice.isdigit() and 1 <= int(choice) <= len(tasks):
        task = tasks[int(choice) - 1]
    if task is None:
        return BotResponse(msg.EXPAND_NOT_FOUND)
    return start_expansion(state, key, task.id, task.text)


def is_active(state: AppState, key: UserKey) -> bool:
    return state.sessions.has_pending(key, AwaitingSubtaskStep)


def handle(state: AppState, key: UserKey, text: str) -> BotResponse:
    """Route a message while an expansion is active: menu command or sub-step input."""
    pending = state.sessions.get_as(key, AwaitingSubtaskStep)
    if pending is None:
        return BotResponse(msg.INTERNAL_ERROR)
    if pending.step is None or pending.step is SubtaskStep.AI_REVIEW:
        return dispatch_command(state, key, text)
    # Leaving the expansion is always possible, even mid-step.
    if parse_command(text).name == "finish_expand":
        return _finish(state, key, pending)
    return advance(state, key, text)


# ---- menu ----


def _menu(pending: AwaitingSubtaskStep) -> AwaitingSubtaskStep:
    return dataclasses.replace(pending, step=None, selected_subtask=None, generated_subtasks=())


def _enter(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, step: SubtaskStep) -> BotResponse:
    if not state.sessions.replace(key, pending, dataclasses.replace(pending, step=step)):
        return BotResponse(msg.INTERNAL_ERROR)
    logger.debug("Subtask step %s for %s", step, key)
    return BotResponse(_STEP_PROMPTS[step])


def _finish(state: AppState, key: UserKey, pending: AwaitingSubtaskStep) -> BotResponse:
    state.sessions.replace(key, pending, None)
    logger.debug("Expansion finished for %s", key)
    return BotResponse(msg.EXPAND_FINISHED)


_MENU_STEPS: dict[str, SubtaskStep] = {
    "add_subtask": SubtaskStep.ADD,
    "delete_subtask": SubtaskStep.DELETE,
    "edit_subtask": SubtaskStep.EDIT_SELECT,
    "add_subtasks_with_gpt": SubtaskStep.AI_DETAILS,
}


def dispatch_command(state: AppState, key: UserKey, text: str) -> BotResponse:
    pending = state.sessions.get_as(key, AwaitingSubtaskStep)
    if pending is None:
        return BotResponse(msg.INTERNAL_ERROR)

    command = parse_command(text)
    if command.name == "finish_expand":
        return _finish(state, key, pending)

    if pending.step is SubtaskStep.AI_REVIEW:
        return _review(state, key, pending, command)

    step = _MENU_STEPS.get(command.name)
    if step is None:
        return BotResponse(msg.SUBTASK_USAGE)
    return _enter(state, key, pending, step)


# ---- sub-steps ----


def _live_task(state: AppState, key: UserKey, pending: AwaitingSubtaskStep) -> bool:
    account_id = require_account(state, key)
    task = state.store.get_task(pending.task_id)
    return task is not None and task.account_id == account_id


def _resolve_subtask(subtasks: list[str], choice: str) -> str | None:
    if choice in subtasks:
        return choice
    if choice.isdigit() and 1 <= int(choice) <= len(subtasks):
        return subtasks[int(choice) - 1]
    return None


def advance(state: AppState, key: UserKey, text: str) -> BotResponse:
    pending = state.sessions.get_as(key, AwaitingSubtaskStep)
    if pending is None or pending.step is None:
        return BotResponse(msg.INTERNAL_ERROR)

    try:
        if not _live_task(state, key, pending):
            state.sessions.replace(key, pending, None)
            logger.info("Expanded task id=%s vanished for %s", pending.task_id, key)
            return BotResponse(msg.SUBTASK_TASK_GONE)
        return _STEP_HANDLERS[pending.step](state, key, pending, (text or "").strip())
    except NotAuthenticated:
        state.sessions.replace(key, pending, None)
        return BotResponse(msg.NOT_AUTHENTICATED)
    except NotFound:
        # The parent task disappeared between the check and the write.
        state.sessions.clear(key)
        return BotResponse(msg.SUBTASK_TASK_GONE)
    except StoreFailure:
        state.sessions.clear(key)
        return BotResponse(msg.STORE_ERROR)


def _add(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, text: str) -> BotResponse:
    if not text:
        return BotResponse(msg.SUBTASK_ADD_PROMPT)
    if not state.sessions.replace(key, pending, _menu(pending)):
        return BotResponse(msg.INTERNAL_ERROR)
    try:
        state.store.insert_subtask(pending.task_id, text)
    except AlreadyExists:
        return BotResponse(msg.SUBTASK_EXISTS)
    logger.info("Subtask added to task id=%s", pending.task_id)
    return BotResponse(msg.SUBTASK_ADDED)


def _pick_prompt(subtasks: list[str], template: str, empty: str) -> BotResponse:
    if not subtasks:
        return BotResponse(empty)
    return BotResponse(template.format(subtasks=msg.numbered(subtasks)))


def _delete(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, text: str) -> BotResponse:
    subtasks = state.store.list_subtasks(pending.task_id)
    if not text:
        return _pick_prompt(subtasks, msg.SUBTASK_PICK_DELETE, msg.SUBTASK_NONE_TO_DELETE)

    if not state.sessions.replace(key, pending, _menu(pending)):
        return BotResponse(msg.INTERNAL_ERROR)
    target = _resolve_subtask(subtasks, text)
    if target is None:
        return BotResponse(msg.SUBTASK_NOT_FOUND)
    try:
        state.store.delete_subtask(pending.task_id, target)
    except NotFound:
        return BotResponse(msg.SUBTASK_NOT_FOUND)
    logger.info("Subtask deleted from task id=%s", pending.task_id)
    return BotResponse(msg.SUBTASK_DELETED)


def _edit_select(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, text: str) -> BotResponse:
    subtasks = state.store.list_subtasks(pending.task_id)
    if not text:
        return _pick_prompt(subtasks, msg.SUBTASK_PICK_EDIT, msg.SUBTASK_NONE_TO_EDIT)

    target = _resolve_subtask(subtasks, text)
    if target is None:
        state.sessions.replace(key, pending, _menu(pending))
        return BotResponse(msg.SUBTASK_NOT_FOUND)

    nxt = dataclasses.replace(pending, step=SubtaskStep.EDIT_REPLACE, selected_subtask=target)
    if not state.sessions.replace(key, pending, nxt):
        return BotResponse(msg.INTERNAL_ERROR)
    return BotResponse(msg.SUBTASK_REPLACE_PROMPT)


def _edit_replace(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, text: str) -> BotResponse:
    if not text:
        return BotResponse(msg.SUBTASK_REPLACE_PROMPT)
    if not state.sessions.replace(key, pending, _menu(pending)):
        return BotResponse(msg.INTERNAL_ERROR)
    try:
        state.store.rename_subtask(pending.task_id, pending.selected_subtask or "", text)
    except NotFound:
        return BotResponse(msg.SUBTASK_NOT_FOUND)
    except AlreadyExists:
        return BotResponse(msg.SUBTASK_EXISTS)
    logger.info("Subtask renamed in task id=%s", pending.task_id)
    return BotResponse(msg.SUBTASK_EDITED)


# ---- AI breakdown ----


def parse_generated(reply: str) -> list[str]:
    """Turn a model reply into subtask lines: markers stripped, blanks and repeats dropped."""
    out: list[str] = []
    for line in (reply or "").splitlines():
        item = _LIST_MARKER.sub("", line).strip()
        if item and item not in out:
            out.append(item)
    return out


def _ai_details(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, text: str) -> BotResponse:
    if not text:
        return BotResponse(msg.AI_DETAILS_EMPTY)
    menu = _menu(pending)
    if not state.sessions.replace(key, pending, menu):
        return BotResponse(msg.INTERNAL_ERROR)

    if state.llm is None:
        return BotResponse(msg.AI_FAILED.format(error="no AI client is configured"))

    prompt = msg.AI_USER_PROMPT.format(task=pending.task_text, details=text)
    try:
        reply = "".join(state.llm.stream_chat([{"role": "user", "content": prompt}], msg.AI_SYSTEM_PROMPT))
    except RuntimeError as e:
        logger.warning("AI subtask generation failed for task id=%s: %s", pending.task_id, e)
        return BotResponse(msg.AI_FAILED.format(error=friendly_llm_error_message(e)))

    generated = parse_generated(reply)
    if not generated:
        return BotResponse(msg.AI_EMPTY_RESULT)

    review = dataclasses.replace(
        menu,
        step=SubtaskStep.AI_REVIEW,
        generated_subtasks=tuple(generated),
    )
    # A concurrent /finish_expand wins over the review.
    if not state.sessions.replace(key, menu, review):
        return BotResponse(msg.INTERNAL_ERROR)
    return BotResponse(msg.AI_REVIEW.format(subtasks=msg.numbered(generated)))


def _review(state: AppState, key: UserKey, pending: AwaitingSubtaskStep, command: ParsedCommand) -> BotResponse:
    if command.name == "delete_subtasks_from_gpt":
        state.sessions.replace(key, pending, _menu(pending))
        return BotResponse(msg.AI_DISCARDED)
    if command.name != "save_subtasks_from_gpt":
        return BotResponse(msg.AI_REVIEW_USAGE)

    if not state.sessions.replace(key, pending, _menu(pending)):
        return BotResponse(msg.INTERNAL_ERROR)
    try:
        if not _live_task(state, key, pending):
            state.sessions.clear(key)
            return BotResponse(msg.SUBTASK_TASK_GONE)
        added = state.store.insert_subtasks(pending.task_id, pending.generated_subtasks)
    except NotAuthenticated:
        state.sessions.clear(key)
        return BotResponse(msg.NOT_AUTHENTICATED)
    except NotFound:
        state.sessions.clear(key)
        return BotResponse(msg.SUBTASK_TASK_GONE)
    except StoreFailure:
        state.sessions.clear(key)
        return BotResponse(msg.STORE_ERROR)

    logger.info("Saved %d AI subtasks to task id=%s", added, pending.task_id)
    return BotResponse(msg.AI_SAVED.format(count=added))


_STEP_HANDLERS = {
    SubtaskStep.ADD: _add,
    SubtaskStep.DELETE: _delete,
    SubtaskStep.EDIT_SELECT: _edit_select,
    SubtaskStep.EDIT_REPLACE: _edit_replace,
    SubtaskStep.AI_DETAILS: _ai_details,
}
