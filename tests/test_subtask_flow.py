# tests/test_subtask_flow.py

from __future__ import annotations

import pytest

from task_planner.core import messages as msg
from task_planner.core import subtask_flow
from task_planner.core.models import AwaitingSubtaskStep, SubtaskStep


@pytest.fixture()
def expanding(dispatcher, alice):
    """alice with task "Paint" selected for expansion; yields the task id."""
    dispatcher.handle(alice, "/add Paint")
    assert dispatcher.handle(alice, "/expand Paint").text == msg.SUBTASK_MENU.format(task="Paint")
    return dispatcher.state.sessions.get_as(alice, AwaitingSubtaskStep).task_id


def _step(dispatcher, key):
    pending = dispatcher.state.sessions.get_as(key, AwaitingSubtaskStep)
    return None if pending is None else pending.step


def test_expand_lists_tasks_without_parameter(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Paint")
    dispatcher.handle(alice, "/add Read")
    assert dispatcher.handle(alice, "/expand").text == msg.EXPAND_PICK.format(tasks="1. Paint\n2. Read")
    assert not subtask_flow.is_active(dispatcher.state, alice)

    assert dispatcher.handle(alice, "/expand 2").text == msg.SUBTASK_MENU.format(task="Read")
    assert subtask_flow.is_active(dispatcher.state, alice)


def test_expand_unknown_task(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Paint")
    assert dispatcher.handle(alice, "/expand Swim").text == msg.EXPAND_NOT_FOUND
    assert dispatcher.handle(alice, "/expand 7").text == msg.EXPAND_NOT_FOUND


def test_add_subtask_keeps_selection(dispatcher, alice, expanding) -> None:
    assert dispatcher.handle(alice, "/add_subtask").text == msg.SUBTASK_ADD_PROMPT
    assert _step(dispatcher, alice) is SubtaskStep.ADD

    assert dispatcher.handle(alice, "").text == msg.SUBTASK_ADD_PROMPT
    assert dispatcher.handle(alice, "Buy brushes").text == msg.SUBTASK_ADDED
    assert _step(dispatcher, alice) is None
    assert subtask_flow.is_active(dispatcher.state, alice)

    dispatcher.handle(alice, "➕ Add subtask")
    assert dispatcher.handle(alice, "Buy brushes").text == msg.SUBTASK_EXISTS
    assert dispatcher.state.store.list_subtasks(expanding) == ["Buy brushes"]


def test_unknown_menu_input_shows_usage(dispatcher, alice, expanding) -> None:
    before = dispatcher.state.sessions.get(alice)
    assert dispatcher.handle(alice, "hello").text == msg.SUBTASK_USAGE
    assert dispatcher.state.sessions.get(alice) is before


def test_delete_subtask(dispatcher, alice, expanding) -> None:
    dispatcher.state.store.insert_subtasks(expanding, ["a", "b"])

    dispatcher.handle(alice, "/delete_subtask")
    assert dispatcher.handle(alice, "").text == msg.SUBTASK_PICK_DELETE.format(subtasks="1. a\n2. b")
    assert _step(dispatcher, alice) is SubtaskStep.DELETE

    assert dispatcher.handle(alice, "zzz").text == msg.SUBTASK_NOT_FOUND
    assert _step(dispatcher, alice) is None

    dispatcher.handle(alice, "/delete_subtask")
    assert dispatcher.handle(alice, "2").text == msg.SUBTASK_DELETED
    assert dispatcher.state.store.list_subtasks(expanding) == ["a"]


def test_edit_subtask_select_then_replace(dispatcher, alice, expanding) -> None:
    dispatcher.state.store.insert_subtask(expanding, "Buy brushes")

    dispatcher.handle(alice, "Edit subtask")
    assert dispatcher.handle(alice, "").text == msg.SUBTASK_PICK_EDIT.format(subtasks="1. Buy brushes")
    assert dispatcher.handle(alice, "Buy brushes").text == msg.SUBTASK_REPLACE_PROMPT

    pending = dispatcher.state.sessions.get_as(alice, AwaitingSubtaskStep)
    assert pending.step is SubtaskStep.EDIT_REPLACE
    assert pending.selected_subtask == "Buy brushes"

    assert dispatcher.handle(alice, " ").text == msg.SUBTASK_REPLACE_PROMPT
    assert dispatcher.handle(alice, "Buy two brushes").text == msg.SUBTASK_EDITED

    pending = dispatcher.state.sessions.get_as(alice, AwaitingSubtaskStep)
    assert pending.step is None and pending.selected_subtask is None
    assert dispatcher.state.store.list_subtasks(expanding) == ["Buy two brushes"]


def test_edit_unknown_subtask_changes_nothing(dispatcher, alice, expanding) -> None:
    dispatcher.state.store.insert_subtask(expanding, "Buy brushes")
    dispatcher.handle(alice, "/edit_subtask")
    assert dispatcher.handle(alice, "Sell brushes").text == msg.SUBTASK_NOT_FOUND
    assert _step(dispatcher, alice) is None
    assert dispatcher.state.store.list_subtasks(expanding) == ["Buy brushes"]


def test_finish_clears_everything(dispatcher, alice, expanding) -> None:
    dispatcher.handle(alice, "/add_subtask")
    assert dispatcher.handle(alice, "/finish_expand").text == msg.EXPAND_FINISHED
    assert dispatcher.state.sessions.get(alice) is None
    assert dispatcher.handle(alice, "/tasks").text == f"{msg.TASKS_HEADER}\n1. Paint"


def test_task_deleted_elsewhere_ends_expansion(dispatcher, alice, expanding) -> None:
    dispatcher.handle(alice, "/add_subtask")
    aid = dispatcher.state.store.resolve_account(alice.platform, alice.platform_id)
    dispatcher.state.store.delete_task(aid, "Paint")

    assert dispatcher.handle(alice, "Buy brushes").text == msg.SUBTASK_TASK_GONE
    assert dispatcher.state.sessions.get(alice) is None


def test_ai_subtasks_save(dispatcher, alice, expanding, llm) -> None:
    assert dispatcher.handle(alice, "/add_subtasks_with_gpt").text == msg.AI_DETAILS_PROMPT
    assert dispatcher.handle(alice, "").text == msg.AI_DETAILS_EMPTY

    resp = dispatcher.handle(alice, "watercolor, nature")
    assert resp.text == msg.AI_REVIEW.format(subtasks="1. Buy paint\n2. Pick a spot\n3. Paint")
    pending = dispatcher.state.sessions.get_as(alice, AwaitingSubtaskStep)
    assert pending.step is SubtaskStep.AI_REVIEW
    assert pending.generated_subtasks == ("Buy paint", "Pick a spot", "Paint")

    messages, system_prompt = llm.calls[0]
    assert system_prompt == msg.AI_SYSTEM_PROMPT
    assert "Paint" in messages[0]["content"] and "watercolor, nature" in messages[0]["content"]

    assert dispatcher.handle(alice, "something else").text == msg.AI_REVIEW_USAGE
    assert dispatcher.handle(alice, "Save").text == msg.AI_SAVED.format(count=3)
    assert dispatcher.state.store.list_subtasks(expanding) == ["Buy paint", "Pick a spot", "Paint"]
    assert _step(dispatcher, alice) is None


def test_ai_subtasks_discard(dispatcher, alice, expanding) -> None:
    dispatcher.handle(alice, "/add_subtasks_with_gpt")
    dispatcher.handle(alice, "details")
    assert dispatcher.handle(alice, "/delete_subtasks_from_gpt").text == msg.AI_DISCARDED
    assert dispatcher.state.store.list_subtasks(expanding) == []
    assert _step(dispatcher, alice) is None


def test_ai_failure_returns_to_menu(dispatcher, alice, expanding, llm) -> None:
    llm.error = RuntimeError("All LLM models failed.")
    dispatcher.handle(alice, "/add_subtasks_with_gpt")
    assert dispatcher.handle(alice, "details").text == msg.AI_FAILED.format(error="All LLM models failed.")
    assert _step(dispatcher, alice) is None
    assert subtask_flow.is_active(dispatcher.state, alice)


def test_parse_generated_strips_markers() -> None:
    reply = "1. One\n2) Two\n\n- Three\n• Four\n* One\n  5.   Five  "
    assert subtask_flow.parse_generated(reply) == ["One", "Two", "Three", "Four", "Five"]
