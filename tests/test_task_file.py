# tests/test_task_file.py

from __future__ import annotations

import json

import pytest

from task_planner.core.errors import ImportFormatError
from task_planner.files import task_file


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("list", "list.json"),
        ("'list'", "list.json"),
        ("«список»", "список.json"),
        ("tasks.json", "tasks.json"),
        ("../../etc/passwd", "passwd.json"),
        ("  ", "tasks.json"),
    ],
)
def test_export_filename(name: str, expected: str) -> None:
    assert task_file.export_filename(name) == expected


def test_serialize_keeps_order_and_unicode() -> None:
    data = task_file.serialize(["Полить цветы", "b"], ["a"])
    assert "Полить цветы" in data.decode("utf-8")
    assert json.loads(data) == {"current_tasks": ["Полить цветы", "b"], "completed_tasks": ["a"]}


def test_deserialize_tolerates_missing_sections_and_bom() -> None:
    parsed = task_file.deserialize("\ufeff{\"current_tasks\": [\" a \", \"\", null, 5]}".encode("utf-8"))
    assert parsed.current_tasks == ["a", "5"]
    assert parsed.completed_tasks == []


@pytest.mark.parametrize(
    "raw",
    [b"not json", b"[1, 2]", b'{"current_tasks": "a"}', b"\xff\xfe\x00"],
)
def test_deserialize_rejects_bad_documents(raw: bytes) -> None:
    with pytest.raises(ImportFormatError):
        task_file.deserialize(raw)


def test_write_export_replaces_atomically(tmp_path) -> None:
    path = task_file.write_export(tmp_path / "out", "a.json", b"one")
    task_file.write_export(tmp_path / "out", "a.json", b"two")
    assert path.read_bytes() == b"two"
    assert sorted(p.name for p in path.parent.iterdir()) == ["a.json"]
