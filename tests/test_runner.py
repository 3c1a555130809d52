"""Tests for task execution."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from intentcli.errors import FileWriteError, ShellExecutionError
from intentcli.models import Task, TaskKind
from intentcli.runner import TaskRunner, split_command

PYTHON = f'"{sys.executable}"'


class TestSplitCommand:
    """Tests for split_command()."""

    def test_quoted_arguments(self) -> None:
        argv = split_command('php artisan make:migration "create users table"')
        assert argv == ["php", "artisan", "make:migration", "create users table"]

    def test_unbalanced_quotes(self) -> None:
        with pytest.raises(ValueError):
            split_command('echo "oops')


class TestManualTask:
    """Tests for MANUAL tasks."""

    def test_always_succeeds(self, project: Path) -> None:
        outcome = TaskRunner(cwd=project).run(Task(id="T1", description="Analyze requirements"))
        assert outcome.ok
        assert outcome.error is None


class TestCreateFile:
    """Tests for CREATE_FILE tasks."""

    def test_creates_parents(self, project: Path) -> None:
        task = Task(
            id="T1",
            description="Create controller",
            kind=TaskKind.CREATE_FILE,
            target_file="app/Http/Controllers/AuthController.php",
            content="<?php\n",
        )
        outcome = TaskRunner(cwd=project).run(task)

        assert outcome.ok
        assert (project / "app/Http/Controllers/AuthController.php").read_text() == "<?php\n"

    def test_overwrites(self, project: Path) -> None:
        (project / "a.txt").write_text("old")
        task = Task(id="T1", description="x", kind=TaskKind.CREATE_FILE, target_file="a.txt", content="new")

        assert TaskRunner(cwd=project).run(task).ok
        assert (project / "a.txt").read_text() == "new"

    def test_write_failure(self, project: Path) -> None:
        """Test writing over a directory yields a FileWriteError outcome."""
        (project / "taken").mkdir()
        task = Task(id="T1", description="x", kind=TaskKind.CREATE_FILE, target_file="taken", content="x")

        outcome = TaskRunner(cwd=project).run(task)

        assert not outcome.ok
        assert isinstance(outcome.error, FileWriteError)
        assert outcome.shell_error is None

    def test_missing_target(self, project: Path) -> None:
        task = Task(id="T1", description="x", kind=TaskKind.CREATE_FILE)
        outcome = TaskRunner(cwd=project).run(task)
        assert isinstance(outcome.error, FileWriteError)


class TestShellTask:
    """Tests for SHELL tasks."""

    def test_quoted_argument_with_spaces(self, project: Path) -> None:
        """Test a double-quoted argument reaches the program as one argv entry."""
        command = (
            f'{PYTHON} -c "import sys; open(\'out.txt\', \'w\').write(sys.argv[1])" "hello world"'
        )
        task = Task(id="T1", description="x", kind=TaskKind.SHELL, command=command)

        outcome = TaskRunner(cwd=project).run(task)

        assert outcome.ok
        assert (project / "out.txt").read_text() == "hello world"

    def test_runs_in_project_root(self, project: Path) -> None:
        command = f"{PYTHON} -c \"open('here.txt', 'w').close()\""
        assert TaskRunner(cwd=project).run_shell(command).ok
        assert (project / "here.txt").exists()

    def test_non_zero_exit(self, project: Path) -> None:
        command = f'{PYTHON} -c "import sys; sys.exit(3)"'
        outcome = TaskRunner(cwd=project).run_shell(command)

        assert not outcome.ok
        error = outcome.shell_error
        assert isinstance(error, ShellExecutionError)
        assert error.exit_code == 3
        assert command in str(error)
        assert error.stdout == ""
        assert error.stderr == ""

    def test_captured_output(self, project: Path) -> None:
        """Test captured stderr is attached to the error when capture is on."""
        command = f"{PYTHON} -c \"import sys; sys.stderr.write('boom'); sys.exit(1)\""
        outcome = TaskRunner(cwd=project, capture_output=True).run_shell(command)

        assert not outcome.ok
        assert "boom" in outcome.shell_error.stderr
        assert "boom" in outcome.shell_error.haystack

    def test_captured_non_utf8_output(self, project: Path) -> None:
        """Test undecodable bytes in captured output are replaced, not raised."""
        command = f"{PYTHON} -c \"import sys; sys.stdout.buffer.write(bytes([255, 254])); sys.exit(1)\""
        outcome = TaskRunner(cwd=project, capture_output=True).run_shell(command)

        assert not outcome.ok
        assert outcome.shell_error.exit_code == 1
        assert "\ufffd" in outcome.shell_error.stdout

    def test_unexpected_error_becomes_outcome(self, project: Path) -> None:
        with patch("intentcli.runner.subprocess.run", side_effect=ValueError("bad fd")):
            outcome = TaskRunner(cwd=project).run_shell("make")

        assert not outcome.ok
        assert isinstance(outcome.error, ShellExecutionError)
        assert "bad fd" in str(outcome.error)

    def test_spawn_failure(self, project: Path) -> None:
        outcome = TaskRunner(cwd=project).run_shell("definitely-not-a-real-program-xyz --flag")

        assert not outcome.ok
        assert "Failed to start" in str(outcome.error)
        assert outcome.shell_error.exit_code is None

    def test_unparseable_command(self, project: Path) -> None:
        outcome = TaskRunner(cwd=project).run_shell('echo "oops')
        assert not outcome.ok
        assert "Cannot parse" in str(outcome.error)

    def test_empty_command(self, project: Path) -> None:
        task = Task(id="T1", description="x", kind=TaskKind.SHELL, command="")
        outcome = TaskRunner(cwd=project).run(task)
        assert isinstance(outcome.error, ShellExecutionError)
