# tests/test_task_flow.py

from __future__ import annotations

import json
import sqlite3

from task_planner.core import messages as msg
from task_planner.core import task_flow
from task_planner.core.models import Attachment, AwaitingOperationParam, Operation, UserKey


def _account_id(dispatcher, key) -> int:
    return dispatcher.state.store.resolve_account(key.platform, key.platform_id)


def test_add_with_inline_parameter_and_duplicate(dispatcher, alice) -> None:
    assert dispatcher.handle(alice, "/add Water plants").text == 'Task "Water plants" added!'
    assert dispatcher.handle(alice, "/add Water plants").text == 'Task "Water plants" already exists!'
    # Inline parameters never touch the pending slot.
    assert dispatcher.state.sessions.get(alice) is None


def test_add_delete_add_again(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Water plants")
    assert dispatcher.handle(alice, "/delete Water plants").text == msg.TASK_DELETED.format(text="Water plants")
    assert dispatcher.handle(alice, "/add Water plants").text == msg.TASK_ADDED.format(text="Water plants")


def test_prompt_then_parameter(dispatcher, alice) -> None:
    assert dispatcher.handle(alice, "➕ Add task").text == msg.ADD_PROMPT
    assert dispatcher.state.sessions.get_as(alice, AwaitingOperationParam).operation is Operation.ADD

    # Empty input re-prompts and keeps the dialog.
    assert dispatcher.handle(alice, "  ").text == msg.ADD_PROMPT
    assert task_flow.has_pending(dispatcher.state, alice)

    assert dispatcher.handle(alice, "  Buy milk ").text == msg.TASK_ADDED.format(text="Buy milk")
    assert dispatcher.state.sessions.get(alice) is None


def test_pending_operation_consumes_next_text(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add")
    assert dispatcher.handle(alice, "/tasks").text == msg.TASK_ADDED.format(text="/tasks")


def test_done_moves_task_to_completed(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Water plants")
    dispatcher.handle(alice, "/done")
    assert dispatcher.handle(alice, "Water plants").text == msg.TASK_DONE.format(text="Water plants")

    assert dispatcher.handle(alice, "/tasks").text == msg.TASKS_EMPTY
    assert dispatcher.handle(alice, "/dTask").text == msg.COMPLETED_HEADER + "\n1. Water plants"


def test_not_found_clears_dialog(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/delete")
    assert dispatcher.handle(alice, "ghost").text == msg.TASK_NOT_FOUND.format(text="ghost")
    assert dispatcher.state.sessions.get(alice) is None


def test_done_store_failure_keeps_task_and_clears_state(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Water plants")

    conn = sqlite3.connect(dispatcher.state.store.db_path)
    conn.execute(
        "CREATE TRIGGER fail_completed BEFORE INSERT ON completed_tasks "
        "BEGIN SELECT RAISE(ABORT, 'injected failure'); END"
    )
    conn.commit()
    conn.close()

    dispatcher.handle(alice, "/done")
    assert dispatcher.handle(alice, "Water plants").text == msg.STORE_ERROR
    assert dispatcher.state.sessions.get(alice) is None

    aid = _account_id(dispatcher, alice)
    assert [t.text for t in dispatcher.state.store.list_current_tasks(aid)] == ["Water plants"]
    assert dispatcher.state.store.list_completed_tasks(aid) == []


def test_execute_without_account_is_not_authenticated(state) -> None:
    stranger = UserKey("console", "nobody")
    resp = task_flow.execute(state, stranger, Operation.ADD, "x")
    assert resp.text == msg.NOT_AUTHENTICATED
    assert state.sessions.get(stranger) is None


def test_list_tasks_shows_subtasks(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Paint")
    dispatcher.handle(alice, "/add Read")
    aid = _account_id(dispatcher, alice)
    task = dispatcher.state.store.find_task(aid, "Paint")
    dispatcher.state.store.insert_subtask(task.id, "Buy brushes")

    assert dispatcher.handle(alice, "📝 Show tasks").text == (
        f"{msg.TASKS_HEADER}\n1. Paint\n   - Buy brushes\n2. Read"
    )


def test_export_writes_file_and_returns_attachment(dispatcher, alice, settings) -> None:
    dispatcher.handle(alice, "/add Water plants")
    dispatcher.handle(alice, "/add Read")
    dispatcher.handle(alice, "/done Read")

    dispatcher.handle(alice, "/export")
    resp = dispatcher.handle(alice, "'my list'")
    assert resp.text == msg.EXPORTED.format(filename="my list.json")
    assert resp.has_file
    assert resp.file.filename == "my list.json"
    assert resp.file.path.parent.parent == settings.export_dir
    assert resp.file.path.read_bytes() == resp.file.data

    payload = json.loads(resp.file.data)
    assert payload == {"current_tasks": ["Water plants"], "completed_tasks": ["Read"]}


def test_export_import_round_trip_into_fresh_account(dispatcher, alice) -> None:
    for text in ("b", "a", "c"):
        dispatcher.handle(alice, f"/add {text}")
    dispatcher.handle(alice, "/done a")
    exported = dispatcher.handle(alice, "/export backup").file

    bob = UserKey("matrix", "@bob:x")
    dispatcher.handle(bob, "/registration")
    dispatcher.handle(bob, "bob")
    dispatcher.handle(bob, "pw")

    resp = dispatcher.handle(bob, "", Attachment(filename=exported.filename, data=exported.data))
    assert resp.text == msg.IMPORT_OK.format(current=2, completed=1)

    bid = _account_id(dispatcher, bob)
    assert [t.text for t in dispatcher.state.store.list_current_tasks(bid)] == ["b", "c"]
    assert dispatcher.state.store.list_completed_tasks(bid) == ["a"]


def test_import_replaces_and_dedupes(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add old")
    data = json.dumps({"current_tasks": ["x", "y", "x", "z"], "completed_tasks": ["z", "w"]}).encode()

    resp = dispatcher.handle(alice, "", Attachment("t.json", data))
    assert resp.text == msg.IMPORT_OK.format(current=2, completed=2)

    aid = _account_id(dispatcher, alice)
    assert [t.text for t in dispatcher.state.store.list_current_tasks(aid)] == ["x", "y"]
    assert dispatcher.state.store.list_completed_tasks(aid) == ["z", "w"]


def test_import_format_error_leaves_tasks_untouched(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add keep me")
    resp = dispatcher.handle(alice, "", Attachment("bad.json", b"{not json"))
    assert resp.text == msg.IMPORT_FORMAT_ERROR

    aid = _account_id(dispatcher, alice)
    assert [t.text for t in dispatcher.state.store.list_current_tasks(aid)] == ["keep me"]


def test_import_command_gives_hint(dispatcher, alice) -> None:
    assert dispatcher.handle(alice, "/import").text == msg.IMPORT_HINT
