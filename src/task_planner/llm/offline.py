# src/task_planner/llm/offline.py

from __future__ import annotations

import re
from collections.abc import Iterable

from ..core.ports import ChatMessage

_TASK_RE = re.compile(r'task "(?P<task>[^"]+)"')


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Suggests the same generic breakdown for every task so the AI subtask
    dialog can be tried end to end without network access.
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        match = _TASK_RE.search(user_text)
        task = match.group("task") if match else "the task"

        yield (
            f"1. Define what done looks like for {task}\n"
            f"2. List what is needed for {task}\n"
            "3. Do the first small step\n"
            "4. Review the result"
        )
