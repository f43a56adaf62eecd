# src/task_planner/files/task_file.py

"""
Task list files for export/import.

Format (UTF-8 JSON, pretty-printed):
    {"current_tasks": ["..."], "completed_tasks": ["..."]}
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import ImportFormatError

logger = logging.getLogger(__name__)

CURRENT_KEY = "current_tasks"
COMPLETED_KEY = "completed_tasks"

_QUOTES = "\"'“”«»"


@dataclass(frozen=True, slots=True)
class TaskFileData:
    current_tasks: list[str]
    completed_tasks: list[str]


def export_filename(name: str) -> str:
    """Normalize a user-supplied export name: strip quotes and directories, force .json."""
    cleaned = (name or "").strip().strip(_QUOTES).strip()
    cleaned = Path(cleaned.replace("\\", "/")).name
    if not cleaned or cleaned in {".", ".."}:
        cleaned = "tasks"
    if not cleaned.endswith(".json"):
        cleaned += ".json"
    return cleaned


def serialize(current: Sequence[str], completed: Sequence[str]) -> bytes:
    data = {
        CURRENT_KEY: list(current or []),
        COMPLETED_KEY: list(completed or []),
    }
    return json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")


def _section(payload: dict, key: str) -> list[str]:
    raw = payload.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ImportFormatError(f"'{key}' must be a list")
    out: list[str] = []
    for item in raw:
        if item is None:
            continue
        text = item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
        text = text.strip()
        if text:
            out.append(text)
    return out


def deserialize(data: bytes) -> TaskFileData:
    try:
        payload = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ImportFormatError(str(e)) from e

    if not isinstance(payload, dict):
        raise ImportFormatError("top-level JSON value must be an object")

    return TaskFileData(
        current_tasks=_section(payload, CURRENT_KEY),
        completed_tasks=_section(payload, COMPLETED_KEY),
    )


def write_export(directory: Path, filename: str, data: bytes) -> Path:
    """Write an export artifact atomically and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)
    logger.debug("Export written to %s (%d bytes)", path, len(data))
    return path
