# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from task_planner.core.dispatcher import Dispatcher
from task_planner.core.models import UserKey
from task_planner.core.state import AppState
from task_planner.storage.store import SQLiteStore

from .fakes import FakeLLMClient


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the flows.

    A SimpleNamespace rather than the real config keeps tests isolated from
    the environment.
    """
    return SimpleNamespace(
        db_path=tmp_path / "tasks.sqlite3",
        export_dir=tmp_path / "exports",
        # Cheapest cost factor bcrypt accepts.
        bcrypt_rounds=4,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> SQLiteStore:
    return SQLiteStore(settings.db_path)


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, store: SQLiteStore, llm: FakeLLMClient) -> AppState:
    """AppState over a real SQLite store: its transactions are part of what we test."""
    return AppState(settings=settings, store=store, llm=llm)


@pytest.fixture()
def dispatcher(state: AppState) -> Dispatcher:
    return Dispatcher(state)


@pytest.fixture()
def key() -> UserKey:
    return UserKey("telegram", "1001")


def register(dispatcher: Dispatcher, key: UserKey, username: str = "alice", password: str = "secret") -> str:
    dispatcher.handle(key, "/registration")
    dispatcher.handle(key, username)
    return dispatcher.handle(key, password).text


@pytest.fixture()
def alice(dispatcher: Dispatcher, key: UserKey) -> UserKey:
    """A user key already registered and logged in as 'alice'."""
    register(dispatcher, key)
    return key
