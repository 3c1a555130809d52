"""Task execution against the host filesystem and shell.

Side effects are real: files are overwritten without asking and commands run
with the operator's privileges. There is no dry-run and no rollback.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import FileWriteError, IntentError, ShellExecutionError
from .models import Task, TaskKind

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """Result of running a task once."""

    ok: bool
    error: Optional[IntentError] = None

    @property
    def shell_error(self) -> Optional[ShellExecutionError]:
        return self.error if isinstance(self.error, ShellExecutionError) else None


def split_command(command: str) -> List[str]:
    """Split a command line into argv, honouring quoted arguments.

    Raises:
        ValueError: On unbalanced quotes.
    """
    # posix=True even on Windows: posix=False keeps the quotes in the argument.
    return shlex.split(command, posix=True)


class TaskRunner:
    """Runs a single task in the project root."""

    def __init__(self, cwd: Optional[Path] = None, capture_output: bool = False):
        """Initialize the runner.

        Args:
            cwd: Directory commands run in and relative paths resolve against.
            capture_output: Capture (and then echo) command output instead of
                inheriting the terminal. Captured text feeds failure diagnosis
                but interactive commands lose their TTY.
        """
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.capture_output = capture_output

    def run(self, task: Task) -> TaskOutcome:
        """Execute ``task`` and report success or the error it hit."""
        if task.kind == TaskKind.SHELL:
            if not task.command:
                return TaskOutcome(False, ShellExecutionError("", f"Task {task.id} has no command"))
            return self.run_shell(task.command)

        if task.kind == TaskKind.CREATE_FILE:
            if not task.target_file:
                return TaskOutcome(False, FileWriteError("", f"Task {task.id} has no target file"))
            return self.create_file(task.target_file, task.content or "")

        # MANUAL: acknowledged elsewhere, nothing to do here.
        return TaskOutcome(True)

    def create_file(self, target_file: str, content: str) -> TaskOutcome:
        path = self.cwd / target_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except (OSError, ValueError) as exc:
            logger.error(f"Error creating file: {target_file}: {exc}")
            return TaskOutcome(False, FileWriteError(target_file, str(exc)))

        logger.info(f"Created: {target_file}")
        return TaskOutcome(True)

    def run_shell(self, command: str) -> TaskOutcome:
        try:
            argv = split_command(command)
        except ValueError as exc:
            return TaskOutcome(False, ShellExecutionError(command, f"Cannot parse command '{command}': {exc}"))
        if not argv:
            return TaskOutcome(False, ShellExecutionError(command, "Empty command"))

        logger.info(f"Running: {command}")
        try:
            result = subprocess.run(
                argv,
                cwd=self.cwd,
                capture_output=self.capture_output,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.error(f"Failed to start: {command}")
            return TaskOutcome(
                False,
                ShellExecutionError(command, f"Failed to start '{command}': {exc}"),
            )
        except Exception as exc:
            logger.error(f"Command execution failed: {command}: {exc}")
            return TaskOutcome(
                False,
                ShellExecutionError(command, f"Command '{command}' could not be run: {exc}"),
            )

        stdout = result.stdout or "" if self.capture_output else ""
        stderr = result.stderr or "" if self.capture_output else ""
        if self.capture_output:
            sys.stdout.write(stdout)
            sys.stderr.write(stderr)

        if result.returncode != 0:
            logger.error(f"Failed: {command} (exit code {result.returncode})")
            return TaskOutcome(
                False,
                ShellExecutionError(
                    command,
                    f"Command '{command}' failed with exit code {result.returncode}",
                    exit_code=result.returncode,
                    stdout=stdout,
                    stderr=stderr,
                ),
            )

        logger.info(f"Executed: {command}")
        return TaskOutcome(True)
