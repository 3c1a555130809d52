"""Tests for failure diagnosis and repair."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from intentcli.errors import (
    MissingDependencyError,
    MissingToolError,
    RepairUnavailable,
    ShellExecutionError,
    VcsNotInitializedError,
)
from intentcli.repair import RepairCategory, Repairer
from intentcli.repair_log import RepairLog
from intentcli.runner import TaskRunner


def _failure(command: str, stderr: str = "", message: str = "") -> ShellExecutionError:
    return ShellExecutionError(
        command,
        message or f"Command '{command}' failed with exit code 1",
        exit_code=1,
        stderr=stderr,
    )


@pytest.fixture
def repair_log(project: Path) -> RepairLog:
    return RepairLog(project / ".intent")


@pytest.fixture
def repairer(project: Path, repair_log: RepairLog) -> Repairer:
    return Repairer(project, repair_log=repair_log, python_executable="python-under-test")


class TestMissingTool:
    """Tests for the stand-in script repair."""

    def test_manage_py_stand_in_end_to_end(self, project: Path, repairer: Repairer) -> None:
        """Test a missing manage.py is replaced and the same command then succeeds."""
        command = f'"{sys.executable}" manage.py make:migration create_users_table'
        runner = TaskRunner(cwd=project)

        first = runner.run_shell(command)
        assert not first.ok

        outcome = repairer.diagnose(command, first.shell_error)

        assert outcome.applied
        assert outcome.category == RepairCategory.MISSING_TOOL
        assert isinstance(outcome.error, MissingToolError)
        assert (project / "manage.py").exists()

        retry = runner.run_shell(command)
        assert retry.ok
        migrations = list((project / "migrations").glob("*_create_users_table.py"))
        assert len(migrations) == 1
        assert "TABLE = 'users'" in migrations[0].read_text()

    def test_stand_in_ignores_other_commands(self, project: Path, repairer: Repairer) -> None:
        command = f'"{sys.executable}" manage.py collectstatic'
        runner = TaskRunner(cwd=project)

        outcome = repairer.diagnose(command, runner.run_shell(command).shell_error)

        assert outcome.applied
        assert runner.run_shell(command).ok
        assert not (project / "migrations").exists()

    def test_artisan_from_captured_output(self, project: Path, repairer: Repairer) -> None:
        """Test the artisan stand-in is written when php reports the missing script."""
        command = "php artisan make:migration create_users_table"
        failure = _failure(command, stderr="Could not open input file: artisan")

        with patch("intentcli.repair.shutil.which", return_value="/usr/bin/php"):
            outcome = repairer.diagnose(command, failure)

        assert outcome.applied
        artisan = project / "artisan"
        assert artisan.exists()
        assert "make:migration" in artisan.read_text()
        assert artisan.read_text().startswith("#!/usr/bin/env php")

    def test_missing_interpreter_not_treated_as_missing_tool(self, project: Path, repairer: Repairer) -> None:
        """Test no stand-in is written when the interpreter itself is missing."""
        command = "php artisan migrate"
        with patch("intentcli.repair.shutil.which", return_value=None):
            diagnosis = repairer.classify(command, _failure(command))

        assert diagnosis.category == RepairCategory.NONE
        assert not (project / "artisan").exists()

    def test_existing_script_not_replaced(self, project: Path, repairer: Repairer) -> None:
        (project / "manage.py").write_text("# real manage.py\n")
        command = f'"{sys.executable}" manage.py migrate'

        outcome = repairer.diagnose(command, _failure(command))

        assert not outcome.applied
        assert (project / "manage.py").read_text() == "# real manage.py\n"

    def test_captured_output_without_pattern(self, project: Path, repairer: Repairer) -> None:
        """Test captured output that does not mention a missing file is not a missing tool."""
        command = f'"{sys.executable}" manage.py migrate'
        failure = _failure(command, stderr="django.db.utils.OperationalError: locked")

        assert repairer.classify(command, failure).category == RepairCategory.NONE

    @pytest.mark.parametrize(
        "command",
        [
            f'"{sys.executable}" -m py_compile manage.py',
            "git add artisan",
            "flake8 manage.py",
        ],
    )
    def test_script_as_argument_is_not_a_missing_tool(self, project: Path, repairer: Repairer, command: str) -> None:
        """Test a framework script named only as an argument gets no stand-in."""
        outcome = repairer.diagnose(command, _failure(command))

        assert not outcome.applied
        assert outcome.category == RepairCategory.NONE
        assert not (project / "manage.py").exists()
        assert not (project / "artisan").exists()

    def test_direct_invocation(self, project: Path, repairer: Repairer) -> None:
        """Test a script run as the program itself is recognised."""
        diagnosis = repairer.classify("./artisan migrate", _failure("./artisan migrate"))

        assert diagnosis.category == RepairCategory.MISSING_TOOL
        assert diagnosis.tool.name == "artisan"


class TestMissingNodeDeps:
    """Tests for the node install repair."""

    @pytest.mark.parametrize(
        "lock_file, expected",
        [
            ("yarn.lock", ["yarn", "install"]),
            ("pnpm-lock.yaml", ["pnpm", "install"]),
            ("package-lock.json", ["npm", "install"]),
            (None, ["npm", "install"]),
        ],
    )
    def test_install_command(self, project: Path, repairer: Repairer, lock_file, expected) -> None:
        (project / "package.json").write_text("{}")
        if lock_file:
            (project / lock_file).write_text("")

        failure = _failure("node build.js", stderr="Error: Cannot find module 'express'")
        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            outcome = repairer.diagnose("node build.js", failure)

        assert outcome.applied
        assert outcome.category == RepairCategory.MISSING_NODE_DEPS
        assert isinstance(outcome.error, MissingDependencyError)
        mock_run.assert_called_once_with(expected, cwd=project)

    def test_node_modules_present(self, project: Path, repairer: Repairer) -> None:
        (project / "package.json").write_text("{}")
        (project / "node_modules").mkdir()
        failure = _failure("node build.js", stderr="Error: Cannot find module 'express'")

        assert repairer.classify("node build.js", failure).category == RepairCategory.NONE

    def test_install_fails(self, project: Path, repairer: Repairer) -> None:
        (project / "package.json").write_text("{}")
        failure = _failure("node build.js", stderr="Module not found: left-pad")

        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=1)):
            outcome = repairer.diagnose("node build.js", failure)

        assert not outcome.applied
        assert "exited with code 1" in outcome.message

    def test_installer_missing(self, project: Path, repairer: Repairer) -> None:
        (project / "package.json").write_text("{}")
        failure = _failure("node build.js", stderr="Cannot find module 'x'")

        with patch("intentcli.repair.subprocess.run", side_effect=FileNotFoundError("npm")):
            outcome = repairer.diagnose("node build.js", failure)

        assert not outcome.applied
        assert "could not start" in outcome.message


class TestMissingPythonModule:
    """Tests for the pip install repair."""

    def test_installs_top_level_package(self, project: Path, repairer: Repairer) -> None:
        failure = _failure(
            "python app.py",
            stderr="ModuleNotFoundError: No module named 'requests.adapters'",
        )
        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            outcome = repairer.diagnose("python app.py", failure)

        assert outcome.applied
        assert outcome.category == RepairCategory.MISSING_PYTHON_MODULE
        mock_run.assert_called_once_with(
            ["python-under-test", "-m", "pip", "install", "requests"],
            cwd=project,
        )

    def test_alias(self, project: Path, repairer: Repairer) -> None:
        """Test import names are mapped to their distribution names."""
        failure = _failure("python app.py", stderr="No module named 'yaml'")
        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            repairer.diagnose("python app.py", failure)

        assert mock_run.call_args[0][0][-1] == "pyyaml"

    def test_requirements_fallback(self, project: Path, repairer: Repairer) -> None:
        (project / "requirements.txt").write_text("requests\n")
        failure = _failure("python app.py", message="ImportError: No module named")

        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            outcome = repairer.diagnose("python app.py", failure)

        assert outcome.applied
        assert mock_run.call_args[0][0][-2:] == ["-r", str(project / "requirements.txt")]

    def test_unknown_module_without_requirements(self, project: Path, repairer: Repairer) -> None:
        failure = _failure("python app.py", message="ImportError: No module named")

        with patch("intentcli.repair.subprocess.run") as mock_run:
            outcome = repairer.diagnose("python app.py", failure)

        assert not outcome.applied
        mock_run.assert_not_called()

    def test_captured_failure_end_to_end(self, project: Path, repairer: Repairer) -> None:
        """Test a real captured ImportError from the runner is diagnosed and installed."""
        command = f'"{sys.executable}" -c "import missing_widget_lib"'
        failure = TaskRunner(cwd=project, capture_output=True).run_shell(command).shell_error
        assert "no module named" in failure.haystack

        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=0)) as mock_run:
            outcome = repairer.diagnose(command, failure)

        assert outcome.applied
        assert outcome.category == RepairCategory.MISSING_PYTHON_MODULE
        assert mock_run.call_args[0][0][-1] == "missing_widget_lib"

    def test_uncaptured_failure_has_no_evidence(self, project: Path, repairer: Repairer) -> None:
        """Test the same failure without output capture gives no python-module diagnosis."""
        command = f'"{sys.executable}" -c "import missing_widget_lib"'
        failure = TaskRunner(cwd=project).run_shell(command).shell_error

        assert repairer.classify(command, failure).category == RepairCategory.NONE


class TestVcsNotInitialized:
    """Tests for the git init repair."""

    def test_initializes_repository(self, project: Path, repairer: Repairer) -> None:
        failure = _failure("git status", stderr="fatal: not a git repository (or any of the parent directories): .git")

        outcome = repairer.diagnose("git status", failure)

        assert outcome.applied
        assert outcome.category == RepairCategory.VCS_NOT_INITIALIZED
        assert isinstance(outcome.error, VcsNotInitializedError)
        assert (project / ".git").is_dir()


class TestNoFix:
    """Tests for failures without a known fix."""

    def test_unknown_failure(self, project: Path, repairer: Repairer, repair_log: RepairLog) -> None:
        outcome = repairer.diagnose("make all", _failure("make all", stderr="Segmentation fault"))

        assert not outcome.applied
        assert outcome.category == RepairCategory.NONE
        assert outcome.message == "no automatic fix available"
        assert isinstance(outcome.error, RepairUnavailable)
        assert repair_log.entries() == []


class TestRepairLogging:
    """Tests for the repair audit trail."""

    def test_applied_repair_is_logged(self, project: Path, repairer: Repairer, repair_log: RepairLog) -> None:
        command = f'"{sys.executable}" manage.py make:migration create_users_table'
        repairer.diagnose(command, _failure(command))

        entries = repair_log.entries()
        assert len(entries) == 1
        assert entries[0].category == "missing-tool"
        assert entries[0].command == command
        assert entries[0].applied

        line = (project / ".intent" / "repairs.jsonl").read_text().splitlines()[0]
        assert json.loads(line)["category"] == "missing-tool"

    def test_failed_repair_is_logged(self, project: Path, repairer: Repairer, repair_log: RepairLog) -> None:
        (project / "package.json").write_text("{}")
        failure = _failure("node x.js", stderr="Cannot find module 'x'")

        with patch("intentcli.repair.subprocess.run", return_value=MagicMock(returncode=1)):
            repairer.diagnose("node x.js", failure)

        assert [e.applied for e in repair_log.entries()] == [False]
