# src/task_planner/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The flows depend on Protocols instead of concrete implementations.
This keeps the store and the LLM provider swappable and makes testing easier.
"""

from typing import Iterable, Protocol, Sequence

from .models import Account, Task

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class PlannerStore(Protocol):
    """
    Durable accounts, platform sessions, tasks, completed tasks and subtasks.

    Failures are reported with the exceptions from core.errors:
    AlreadyExists, InvalidInput, NotFound, StoreFailure.
    """

    def close(self) -> None: ...

    # Accounts
    def user_exists(self, username: str) -> bool: ...
    def create_account(self, username: str, password_hash: str) -> int: ...
    def create_account_and_bind(
            self,
            username: str,
            password_hash: str,
            *,
            platform: str,
            platform_id: str,
    ) -> int: ...
    def verify_password(self, username: str, candidate: str) -> int | None: ...
    def get_account(self, account_id: int) -> Account | None: ...

    # Sessions (platform bindings)
    def bind_session(self, platform: str, platform_id: str, account_id: int) -> None: ...
    def unbind_session(self, platform: str, platform_id: str) -> bool: ...
    def resolve_account(self, platform: str, platform_id: str) -> int | None: ...

    # Tasks
    def list_current_tasks(self, account_id: int) -> list[Task]: ...
    def list_completed_tasks(self, account_id: int) -> list[str]: ...
    def find_task(self, account_id: int, text: str) -> Task | None: ...
    def get_task(self, task_id: int) -> Task | None: ...
    def insert_task(self, account_id: int, text: str) -> int: ...
    def delete_task(self, account_id: int, text: str) -> None: ...
    def complete_task(self, account_id: int, text: str) -> None: ...
    def replace_tasks(self, account_id: int, current: Sequence[str], completed: Sequence[str]) -> None: ...

    # Subtasks
    def list_subtasks(self, task_id: int) -> list[str]: ...
    def insert_subtask(self, task_id: int, text: str) -> None: ...
    def insert_subtasks(self, task_id: int, texts: Sequence[str]) -> int: ...
    def delete_subtask(self, task_id: int, text: str) -> None: ...
    def rename_subtask(self, task_id: int, old_text: str, new_text: str) -> None: ...
