# tests/test_session_state.py

from __future__ import annotations

import threading

from task_planner.core.models import (
    AuthMode,
    AwaitingAuthStep,
    AwaitingOperationParam,
    AwaitingSubtaskStep,
    Operation,
    UserKey,
)
from task_planner.core.session_state import SessionStateStore

K1 = UserKey("telegram", "1")
K2 = UserKey("matrix", "@a:example.org")


def test_set_get_clear_and_overwrite() -> None:
    s = SessionStateStore()
    assert s.get(K1) is None
    assert not s.has_pending(K1)

    s.set(K1, AwaitingOperationParam(Operation.ADD))
    assert s.has_pending(K1)
    assert s.has_pending(K1, AwaitingOperationParam)
    assert not s.has_pending(K1, AwaitingAuthStep)

    # At most one pending dialog: a new one replaces the old.
    s.set(K1, AwaitingAuthStep(mode=AuthMode.LOGIN))
    assert isinstance(s.get(K1), AwaitingAuthStep)
    assert s.get_as(K1, AwaitingOperationParam) is None
    assert len(s) == 1

    s.clear(K1)
    assert s.get(K1) is None
    s.clear(K1)  # idempotent


def test_keys_are_independent() -> None:
    s = SessionStateStore()
    s.set(K1, AwaitingOperationParam(Operation.DONE))
    s.set(K2, AwaitingSubtaskStep(task_id=1, task_text="t"))
    s.clear(K1)
    assert s.get(K1) is None
    assert s.get_as(K2, AwaitingSubtaskStep) is not None


def test_take_returns_state_once() -> None:
    s = SessionStateStore()
    pending = AwaitingOperationParam(Operation.ADD)
    s.set(K1, pending)

    assert s.take(K1, AwaitingAuthStep) is None  # wrong variant: untouched
    assert s.take(K1, AwaitingOperationParam) is pending
    assert s.take(K1, AwaitingOperationParam) is None
    assert s.get(K1) is None


def test_take_is_atomic_across_threads() -> None:
    s = SessionStateStore()
    s.set(K1, AwaitingOperationParam(Operation.DONE))

    barrier = threading.Barrier(16)
    winners: list[object] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        got = s.take(K1, AwaitingOperationParam)
        if got is not None:
            with lock:
                winners.append(got)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(winners) == 1


def test_replace_is_compare_and_swap_by_identity() -> None:
    s = SessionStateStore()
    first = AwaitingSubtaskStep(task_id=1, task_text="t")
    s.set(K1, first)

    equal_but_not_same = AwaitingSubtaskStep(task_id=1, task_text="t")
    assert not s.replace(K1, equal_but_not_same, None)
    assert s.get(K1) is first

    second = AwaitingSubtaskStep(task_id=1, task_text="t", selected_subtask="x")
    assert s.replace(K1, first, second)
    assert s.get(K1) is second

    # Stale expectation loses.
    assert not s.replace(K1, first, None)
    assert s.replace(K1, second, None)
    assert s.get(K1) is None


def test_locked_is_reentrant_and_serializes_same_key() -> None:
    s = SessionStateStore()
    order: list[str] = []
    inside = threading.Event()

    def other() -> None:
        with s.locked(K1):
            order.append("other")

    with s.locked(K1):
        with s.locked(K1):
            t = threading.Thread(target=other)
            t.start()
            inside.wait(0.05)
            order.append("owner")
    t.join()

    assert order == ["owner", "other"]


def test_key_locks_are_dropped_after_use() -> None:
    s = SessionStateStore()
    for i in range(50):
        with s.locked(UserKey("telegram", str(i))):
            assert s.lock_count() == 1
    assert s.lock_count() == 0

    with s.locked(K1):
        with s.locked(K1):
            pass
        # Still held by the outer block.
        assert s.lock_count() == 1
    assert s.lock_count() == 0


def test_dispatcher_leaves_no_locks_behind(dispatcher, alice) -> None:
    dispatcher.handle(alice, "/add Water plants")
    dispatcher.handle(UserKey("matrix", "@someone:x"), "hello")
    assert dispatcher.state.sessions.lock_count() == 0
