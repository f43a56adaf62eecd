# tests/test_dispatcher.py

from __future__ import annotations

from task_planner.core import messages as msg
from task_planner.core.dispatcher import Dispatcher
from task_planner.core.errors import StoreFailure
from task_planner.core.models import Attachment, AwaitingAuthStep, AwaitingOperationParam, Operation, UserKey


def test_unauthenticated_gets_welcome_without_state(dispatcher, key) -> None:
    for text in ("/add Water plants", "/tasks", "hello", "/start", "/exit"):
        assert dispatcher.handle(key, text).text == msg.WELCOME
    assert dispatcher.handle(key, "", Attachment("t.json", b"{}")).text == msg.WELCOME
    assert dispatcher.state.sessions.get(key) is None


def test_auth_buttons_pass_the_gate(dispatcher, key) -> None:
    other = UserKey("matrix", "@carol:x")
    assert dispatcher.handle(key, "📝 Registration").text == msg.REGISTRATION_PROMPT
    assert dispatcher.handle(other, "Log in").text == msg.LOGIN_PROMPT
    assert dispatcher.state.sessions.get_as(key, AwaitingAuthStep).mode == "registration"
    assert dispatcher.state.sessions.get_as(other, AwaitingAuthStep).mode == "login"


def test_start_help_and_unknown(dispatcher, alice) -> None:
    assert dispatcher.handle(alice, "/start").text == msg.START
    assert dispatcher.handle(alice, "Help").text == msg.HELP
    assert dispatcher.handle(alice, "/nope").text == msg.UNKNOWN_COMMAND
    assert dispatcher.handle(alice, "just text").text == msg.UNKNOWN_COMMAND
    assert dispatcher.state.sessions.get(alice) is None


def test_auth_command_supersedes_pending_operation(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add")
    assert dispatcher.handle(alice, "/login").text == msg.LOGIN_PROMPT
    assert dispatcher.state.sessions.get_as(alice, AwaitingOperationParam) is None


def test_pending_auth_step_takes_command_text_verbatim(dispatcher, key) -> None:
    dispatcher.handle(key, "/registration")
    assert dispatcher.handle(key, "/login").text == msg.PASSWORD_PROMPT
    assert dispatcher.state.sessions.get_as(key, AwaitingAuthStep).username == "/login"

    other = UserKey("matrix", "@bob:x")
    dispatcher.handle(other, "/registration")
    dispatcher.handle(other, "bob")
    assert "Welcome, bob!" in dispatcher.handle(other, "Log out").text
    assert dispatcher.state.store.verify_password("bob", "Log out") is not None
    assert dispatcher.state.sessions.get(other) is None


def test_telegram_bot_suffix_is_ignored(dispatcher, alice) -> None:
    assert dispatcher.handle(alice, "/add@PlannerBot Water plants").text == msg.TASK_ADDED.format(text="Water plants")


def test_unexpected_error_is_contained(state, alice, monkeypatch) -> None:
    dispatcher = Dispatcher(state)
    dispatcher.handle(alice, "/add")

    def boom(*args, **kwargs):
        raise ValueError("boom")

    monkeypatch.setattr(state.store, "insert_task", boom)
    assert dispatcher.handle(alice, "Water plants").text == msg.INTERNAL_ERROR
    assert state.sessions.get(alice) is None


def test_store_failure_outside_flow_is_contained(dispatcher, alice, monkeypatch) -> None:
    dispatcher.state.sessions.set(alice, AwaitingOperationParam(Operation.ADD))

    def unavailable(*args, **kwargs):
        raise StoreFailure("database is locked")

    monkeypatch.setattr(dispatcher.state.store, "resolve_account", unavailable)
    assert dispatcher.handle(alice, "/tasks").text == msg.STORE_ERROR
    assert dispatcher.state.sessions.get(alice) is None
