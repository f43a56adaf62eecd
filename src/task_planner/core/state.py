# src/task_planner/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .ports import LLMClient, PlannerStore
from .session_state import SessionStateStore


@dataclass
class AppState:
    """
    Everything a flow needs, wired once in cli/bootstrap.py.

    Flows are plain functions over (state, user_key, input); the only mutable
    per-user data lives in `sessions`.
    """

    settings: Any
    store: PlannerStore
    sessions: SessionStateStore = field(default_factory=SessionStateStore)
    llm: LLMClient | None = None
