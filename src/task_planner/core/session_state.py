# src/task_planner/core/session_state.py

"""
In-memory pending-dialog slots, one per user key.

Thread-safety:
- every read/write of the slot map happens under one short internal lock,
- `locked(key)` hands out a per-key re-entrant lock; the dispatcher holds it
  for the whole handling of a message, so two deliveries for the same key
  never interleave their read-check-mutate-clear sequences,
- `take` and `replace` are atomic compare-and-swap primitives for callers
  that do not hold the per-key lock.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TypeVar

from .models import PendingState, UserKey

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=PendingState)


@dataclass(slots=True)
class _KeyLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class SessionStateStore:
    def __init__(self) -> None:
        self._states: dict[UserKey, PendingState] = {}
        self._key_locks: dict[UserKey, _KeyLock] = {}
        self._guard = threading.Lock()

    # ---- per-key serialization ----

    @contextlib.contextmanager
    def locked(self, key: UserKey) -> Iterator[None]:
        """Hold the key's lock. The lock is dropped once no thread holds or waits for it."""
        with self._guard:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._key_locks[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]

    def lock_count(self) -> int:
        with self._guard:
            return len(self._key_locks)

    # ---- slot access ----

    def get(self, key: UserKey) -> PendingState | None:
        with self._guard:
            return self._states.get(key)

    def get_as(self, key: UserKey, kind: type[S]) -> S | None:
        """Return the pending state only if it is of the given variant."""
        state = self.get(key)
        return state if isinstance(state, kind) else None

    def set(self, key: UserKey, state: PendingState) -> None:
        with self._guard:
            previous = self._states.get(key)
            self._states[key] = state
        if previous is not None and type(previous) is not type(state):
            logger.debug("Pending state for %s superseded: %s -> %s", key, type(previous).__name__, type(state).__name__)

    def clear(self, key: UserKey) -> None:
        with self._guard:
            self._states.pop(key, None)

    def has_pending(self, key: UserKey, kind: type[PendingState] | None = None) -> bool:
        with self._guard:
            state = self._states.get(key)
        if state is None:
            return False
        return kind is None or isinstance(state, kind)

    def take(self, key: UserKey, kind: type[S]) -> S | None:
        """
        Atomically read and clear the slot if it holds the given variant.

        Of two concurrent callers, only one gets the state; the other gets None.
        """
        with self._guard:
            state = self._states.get(key)
            if not isinstance(state, kind):
                return None
            del self._states[key]
            return state

    def replace(self, key: UserKey, expected: PendingState, new: PendingState | None) -> bool:
        """
        Compare-and-swap by identity: install `new` (or clear when None) only if
        the slot still holds exactly `expected`.
        """
        with self._guard:
            if self._states.get(key) is not expected:
                return False
            if new is None:
                del self._states[key]
            else:
                self._states[key] = new
            return True

    def __len__(self) -> int:
        with self._guard:
            return len(self._states)
