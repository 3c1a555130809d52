"""Error taxonomy for the intent engine.

Task-level failures are carried inside result objects (``TaskOutcome``,
``RepairOutcome``) rather than raised out of the orchestrator, so most of
these classes are instantiated far more often than they are raised.
"""

from __future__ import annotations

from typing import Optional


class IntentError(Exception):
    """Base class for all intent engine errors."""

    pass


class ClassificationAmbiguous(IntentError):
    """The classifier could not determine an intent kind.

    Not fatal: ``UNKNOWN`` is a valid kind, the caller decides whether to
    assume a default or ask the operator.
    """

    pass


class StoreError(IntentError):
    """Exception raised when the intent store cannot be written."""

    pass


class IntentStateError(IntentError):
    """Exception raised when an intent status would move backwards."""

    pass


class FileWriteError(IntentError):
    """A CREATE_FILE task could not write its target."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Failed to write {path}: {message}")
        self.path = path


class ShellExecutionError(IntentError):
    """A SHELL task exited non-zero or could not be spawned."""

    def __init__(
        self,
        command: str,
        message: str,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    @property
    def haystack(self) -> str:
        """Lower-cased message plus captured output, used for diagnosis."""
        return f"{self}\n{self.stdout}\n{self.stderr}".lower()


class MissingToolError(IntentError):
    """A framework CLI script referenced by a command does not exist."""

    def __init__(self, tool: str, path: str):
        super().__init__(f"Missing tool '{tool}' at {path}")
        self.tool = tool
        self.path = path


class MissingDependencyError(IntentError):
    """A runtime dependency (node packages or a python module) is missing."""

    def __init__(self, ecosystem: str, message: str, module: Optional[str] = None):
        super().__init__(message)
        self.ecosystem = ecosystem
        self.module = module


class VcsNotInitializedError(IntentError):
    """The working directory is not a git repository."""

    pass


class RepairUnavailable(IntentError):
    """No automatic fix is known for a failure. Terminal for the task."""

    pass


class AdvisorError(IntentError):
    """The advisor backend failed, timed out, or returned nothing usable."""

    pass


class UnknownTaskError(IntentError):
    """A task id does not belong to the intent."""

    pass


class ConfigError(IntentError):
    """The configuration file or an environment override cannot be read."""

    pass
