# src/task_planner/core/models.py

"""
Data structures shared by the flows, the store and the connectors.

PendingState is a closed union of three frozen dataclasses. A user key holds at
most one of them at a time; transitions build a new instance with
dataclasses.replace() so the session store can compare-and-swap by identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TypeAlias


@dataclass(frozen=True, slots=True)
class UserKey:
    """Platform type + platform-scoped user id; the addressing unit for all state."""

    platform: str
    platform_id: str

    def __str__(self) -> str:
        return f"{self.platform}:{self.platform_id}"


class AuthMode(StrEnum):
    REGISTRATION = "registration"
    LOGIN = "login"


class AuthStep(StrEnum):
    USERNAME = "username"
    PASSWORD = "password"


class Operation(StrEnum):
    ADD = "add"
    DELETE = "delete"
    DONE = "done"
    EXPORT = "export"


class SubtaskStep(StrEnum):
    ADD = "add_subtask"
    DELETE = "delete_subtask"
    EDIT_SELECT = "edit_subtask_select"
    EDIT_REPLACE = "edit_subtask_replace"
    AI_DETAILS = "ai_details"
    AI_REVIEW = "ai_review"


@dataclass(frozen=True, slots=True)
class AwaitingAuthStep:
    mode: AuthMode
    step: AuthStep = AuthStep.USERNAME
    username: str | None = None


@dataclass(frozen=True, slots=True)
class AwaitingOperationParam:
    operation: Operation


@dataclass(frozen=True, slots=True)
class AwaitingSubtaskStep:
    """
    Expansion of one selected task.

    step=None means "task selected, waiting for a subtask command".
    """

    task_id: int
    task_text: str
    step: SubtaskStep | None = None
    selected_subtask: str | None = None
    generated_subtasks: tuple[str, ...] = ()


PendingState: TypeAlias = AwaitingAuthStep | AwaitingOperationParam | AwaitingSubtaskStep


@dataclass(frozen=True, slots=True)
class Account:
    id: int
    username: str


@dataclass(frozen=True, slots=True)
class Task:
    id: int
    account_id: int
    text: str


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file travelling in either direction across the transport boundary."""

    filename: str
    data: bytes
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class BotResponse:
    text: str
    file: Attachment | None = None

    @property
    def has_file(self) -> bool:
        return self.file is not None
