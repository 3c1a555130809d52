"""Tests for the intent data model."""

from __future__ import annotations

import pytest

from intentcli.errors import IntentStateError
from intentcli.models import (
    Impact,
    Intent,
    IntentKind,
    IntentStatus,
    ProjectMemory,
    Task,
    TaskKind,
    TaskStatus,
)


class TestTask:
    """Tests for Task dataclass."""

    def test_defaults(self) -> None:
        task = Task(id="T1", description="Analyze requirements")
        assert task.kind == TaskKind.MANUAL
        assert task.status == TaskStatus.TODO
        assert not task.is_done

    def test_to_dict_uses_values(self) -> None:
        task = Task(id="T2", description="Migrate", kind=TaskKind.SHELL, command="php artisan migrate")
        d = task.to_dict()
        assert d["kind"] == "SHELL"
        assert d["status"] == "TODO"
        assert d["command"] == "php artisan migrate"

    def test_from_dict(self) -> None:
        d = {
            "id": "T3",
            "description": "Create controller",
            "kind": "CREATE_FILE",
            "status": "DONE",
            "target_file": "app/Http/Controllers/X.php",
            "content": "<?php",
        }
        task = Task.from_dict(d)
        assert task.kind == TaskKind.CREATE_FILE
        assert task.is_done
        assert task.target_file == "app/Http/Controllers/X.php"

    def test_legacy_in_progress_loads_as_todo(self) -> None:
        """Test the removed IN_PROGRESS state maps back to TODO."""
        task = Task.from_dict({"id": "T1", "description": "x", "status": "IN_PROGRESS"})
        assert task.status == TaskStatus.TODO

    def test_legacy_keys_infer_kind(self) -> None:
        """Test older records without a kind are inferred from their payload."""
        shell = Task.from_dict({"id": "T1", "description": "x", "command": "ls"})
        create = Task.from_dict({"id": "T2", "description": "y", "file": "a.txt", "content": ""})
        manual = Task.from_dict({"id": "T3", "description": "z"})

        assert shell.kind == TaskKind.SHELL
        assert create.kind == TaskKind.CREATE_FILE
        assert create.target_file == "a.txt"
        assert manual.kind == TaskKind.MANUAL


class TestIntent:
    """Tests for Intent dataclass."""

    def test_create(self) -> None:
        intent = Intent.create("add password reset", IntentKind.FEATURE)
        assert intent.status == IntentStatus.PENDING
        assert intent.tasks == []
        assert intent.created_at

    def test_create_unique_ids(self) -> None:
        ids = {Intent.create("x", IntentKind.FEATURE).id for _ in range(20)}
        assert len(ids) == 20

    def test_advance_forward(self) -> None:
        intent = Intent.create("x", IntentKind.FEATURE)
        intent.advance(IntentStatus.ANALYZED)
        intent.tasks = [Task(id="T1", description="a")]
        intent.advance(IntentStatus.PLANNED)
        assert intent.status == IntentStatus.PLANNED

    def test_advance_same_status_is_noop(self) -> None:
        intent = Intent.create("x", IntentKind.FEATURE)
        intent.advance(IntentStatus.PENDING)
        assert intent.status == IntentStatus.PENDING

    def test_advance_backwards_rejected(self) -> None:
        intent = Intent.create("x", IntentKind.FEATURE)
        intent.tasks = [Task(id="T1", description="a")]
        intent.advance(IntentStatus.COMPLETED)

        with pytest.raises(IntentStateError):
            intent.advance(IntentStatus.PLANNED)
        assert intent.status == IntentStatus.COMPLETED

    def test_planned_requires_tasks(self) -> None:
        intent = Intent.create("x", IntentKind.FEATURE)
        with pytest.raises(IntentStateError):
            intent.advance(IntentStatus.PLANNED)

    def test_pending_tasks(self) -> None:
        intent = Intent.create("x", IntentKind.FEATURE)
        intent.tasks = [
            Task(id="T1", description="a", status=TaskStatus.DONE),
            Task(id="T2", description="b"),
        ]
        assert [t.id for t in intent.pending_tasks] == ["T2"]
        assert not intent.all_tasks_done
        assert intent.get_task("T2") is intent.tasks[1]
        assert intent.get_task("T9") is None

    def test_round_trip(self) -> None:
        intent = Intent.create("add user auth", IntentKind.FEATURE)
        intent.impact = Impact(files=["app/Models/User.php"], modules=["Models"])
        intent.tasks = [Task(id="T1", description="Analyze requirements")]
        intent.status = IntentStatus.PLANNED

        assert Intent.from_dict(intent.to_dict()) == intent

    def test_legacy_keys(self) -> None:
        """Test records written with the older camelCase keys still load."""
        intent = Intent.from_dict(
            {
                "id": "abc",
                "original": "fix login",
                "type": "BUGFIX",
                "status": "PLANNED",
                "createdAt": "2024-01-01T00:00:00",
                "tasks": [{"id": "T1", "description": "a"}],
            }
        )
        assert intent.original_text == "fix login"
        assert intent.kind == IntentKind.BUGFIX
        assert intent.created_at == "2024-01-01T00:00:00"


class TestProjectMemory:
    """Tests for ProjectMemory."""

    def test_round_trip(self) -> None:
        memory = ProjectMemory(
            project_root="/tmp/p",
            intents=[Intent.create("x", IntentKind.REFACTOR)],
            scanned_files=["a.py"],
            last_scan="2024-01-01T00:00:00",
        )
        assert ProjectMemory.from_dict(memory.to_dict()) == memory

    def test_legacy_keys(self) -> None:
        memory = ProjectMemory.from_dict({"projectRoot": "/p", "scannedFiles": ["a"], "lastScan": "t"})
        assert memory.project_root == "/p"
        assert memory.scanned_files == ["a"]
        assert memory.last_scan == "t"
        assert memory.intents == []
