"""Failure diagnosis and automatic repair for shell tasks.

When a SHELL task fails, the output is matched against an ordered list of
known failure patterns. The first match decides the category and exactly one
corrective action is attempted:

1. missing-tool: a framework CLI script (``artisan``, ``manage.py``) is
   referenced but absent. A stand-in script is written in its place.
2. missing-node-deps: node reports a missing module while ``package.json``
   exists without ``node_modules``. The lock file's package manager installs.
3. missing-python-module: python reports ``No module named ...``. That module
   (or ``requirements.txt``) is installed with pip.
4. vcs-not-initialized: git reports there is no repository. One is created.

Each of these is a real, side-effecting action and is written to the repair
log. Anything else is reported as having no automatic fix.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from git.exc import GitCommandError

from . import vcs
from .errors import (
    IntentError,
    MissingDependencyError,
    MissingToolError,
    RepairUnavailable,
    ShellExecutionError,
    VcsNotInitializedError,
)
from .repair_log import RepairLog
from .runner import split_command
from .shims import KNOWN_TOOLS, ToolSpec

logger = logging.getLogger(__name__)

TOOL_NOT_FOUND_PATTERNS = ("could not open input file", "can't open file", "no such file")
NODE_MISSING_PATTERNS = ("cannot find module", "module not found")
PYTHON_MISSING_PATTERN = "no module named"
VCS_MISSING_PATTERN = "not a git repository"
# Programs that run a framework script passed as their first argument.
INTERPRETER_PATTERN = re.compile(r"^(php|python|py)[\d.]*$")

# Lock file -> install command, checked in order.
NODE_LOCK_FILES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("yarn.lock", ("yarn", "install")),
    ("pnpm-lock.yaml", ("pnpm", "install")),
    ("package-lock.json", ("npm", "install")),
)
DEFAULT_NODE_INSTALL = ("npm", "install")

# Import name -> distribution name, for the common cases where they differ.
PIP_PACKAGE_ALIASES = {
    "yaml": "pyyaml",
    "dotenv": "python-dotenv",
    "git": "GitPython",
    "PIL": "Pillow",
    "cv2": "opencv-python",
    "bs4": "beautifulsoup4",
    "sklearn": "scikit-learn",
}


class RepairCategory(str, Enum):
    """Failure categories the repairer knows how to handle."""

    MISSING_TOOL = "missing-tool"
    MISSING_NODE_DEPS = "missing-node-deps"
    MISSING_PYTHON_MODULE = "missing-python-module"
    VCS_NOT_INITIALIZED = "vcs-not-initialized"
    NONE = "none"


@dataclass
class Diagnosis:
    """A classified failure, with whatever the repair needs to act."""

    category: RepairCategory
    error: IntentError
    tool: Optional[ToolSpec] = None
    tool_path: Optional[Path] = None
    module: Optional[str] = None


@dataclass
class RepairOutcome:
    """What the repairer did about a failure."""

    applied: bool
    category: RepairCategory
    message: str
    error: Optional[IntentError] = None
    action: str = ""


class Repairer:
    """Diagnoses failed shell commands and applies one fix per call."""

    def __init__(
        self,
        root: Path,
        repair_log: Optional[RepairLog] = None,
        python_executable: Optional[str] = None,
    ):
        """Initialize the repairer.

        Args:
            root: Project root; stand-ins, installs and ``git init`` happen here.
            repair_log: Where applied remediations are recorded.
            python_executable: Interpreter used for ``-m pip``.
        """
        self.root = Path(root)
        self.repair_log = repair_log
        self.python_executable = python_executable or sys.executable

        # Ordered: the first detector that returns a diagnosis wins.
        self.rules: Sequence[Tuple[Callable[[str, ShellExecutionError], Optional[Diagnosis]],
                                   Callable[[Diagnosis], RepairOutcome]]] = (
            (self._detect_missing_tool, self._write_stand_in),
            (self._detect_missing_node_deps, self._install_node_deps),
            (self._detect_missing_python_module, self._install_python_module),
            (self._detect_vcs_not_initialized, self._init_repository),
        )

    # ------------------------------------------------------------------ #
    # Classification
    # ------------------------------------------------------------------ #

    def _match(
        self, command: str, failure: ShellExecutionError
    ) -> Tuple[Diagnosis, Optional[Callable[[Diagnosis], RepairOutcome]]]:
        for detect, fix in self.rules:
            diagnosis = detect(command, failure)
            if diagnosis is not None:
                return diagnosis, fix
        unavailable = Diagnosis(
            category=RepairCategory.NONE,
            error=RepairUnavailable(f"No automatic fix available for: {command}"),
        )
        return unavailable, None

    def classify(self, command: str, failure: ShellExecutionError) -> Diagnosis:
        """Classify a failure without acting on it."""
        return self._match(command, failure)[0]

    def _invoked_script(self, argv: List[str]) -> Tuple[int, Optional[ToolSpec]]:
        """Find the framework script ``argv`` runs, as the program or an interpreter's script."""
        program = Path(argv[0]).name
        tool = next((t for t in KNOWN_TOOLS if program == t.script), None)
        if tool is not None:
            return 0, tool
        if len(argv) > 1 and self._is_interpreter(argv[0]):
            script = Path(argv[1]).name
            return 1, next((t for t in KNOWN_TOOLS if script == t.script), None)
        return 0, None

    def _is_interpreter(self, program: str) -> bool:
        name = Path(program).name.lower()
        if name.endswith(".exe"):
            name = name[:-4]
        if INTERPRETER_PATTERN.match(name):
            return True
        return program in (sys.executable, self.python_executable)

    def _detect_missing_tool(self, command: str, failure: ShellExecutionError) -> Optional[Diagnosis]:
        try:
            argv = split_command(command)
        except ValueError:
            return None
        if not argv:
            return None

        index, tool = self._invoked_script(argv)
        if tool is None:
            return None

        tool_path = self.root / argv[index]
        if tool_path.exists():
            return None
        # Without captured output the absent script is the only evidence.
        if (failure.stdout or failure.stderr) and not any(p in failure.haystack for p in TOOL_NOT_FOUND_PATTERNS):
            return None
        # A missing interpreter is not something a stand-in can fix.
        if index > 0 and shutil.which(argv[0]) is None and not Path(argv[0]).exists():
            return None
        return Diagnosis(
            category=RepairCategory.MISSING_TOOL,
            error=MissingToolError(tool.name, str(tool_path)),
            tool=tool,
            tool_path=tool_path,
        )

    def _detect_missing_node_deps(self, command: str, failure: ShellExecutionError) -> Optional[Diagnosis]:
        if not any(p in failure.haystack for p in NODE_MISSING_PATTERNS):
            return None
        if not (self.root / "package.json").exists() or (self.root / "node_modules").exists():
            return None
        return Diagnosis(
            category=RepairCategory.MISSING_NODE_DEPS,
            error=MissingDependencyError("node", "Node dependencies are not installed"),
        )

    def _detect_missing_python_module(self, command: str, failure: ShellExecutionError) -> Optional[Diagnosis]:
        if PYTHON_MISSING_PATTERN not in failure.haystack:
            return None
        # Search the original-case text: module names are case sensitive.
        text = f"{failure}\n{failure.stdout}\n{failure.stderr}"
        match = re.search(r"no module named ['\"]?([A-Za-z_][\w.]*)['\"]?", text, re.IGNORECASE)
        module = match.group(1).split(".")[0] if match else None
        return Diagnosis(
            category=RepairCategory.MISSING_PYTHON_MODULE,
            error=MissingDependencyError(
                "python",
                f"Missing python module: {module or 'unknown'}",
                module=module,
            ),
            module=module,
        )

    def _detect_vcs_not_initialized(self, command: str, failure: ShellExecutionError) -> Optional[Diagnosis]:
        if VCS_MISSING_PATTERN not in failure.haystack:
            return None
        return Diagnosis(
            category=RepairCategory.VCS_NOT_INITIALIZED,
            error=VcsNotInitializedError(f"Not a git repository: {self.root}"),
        )

    # ------------------------------------------------------------------ #
    # Remediation
    # ------------------------------------------------------------------ #

    def diagnose(self, command: str, failure: ShellExecutionError) -> RepairOutcome:
        """Classify a failed command and attempt the matching fix.

        Args:
            command: The command line that failed.
            failure: The error raised by the task runner.

        Returns:
            RepairOutcome; ``applied`` is True only if a fix was carried out
            and the command is worth retrying.
        """
        logger.info(f"Diagnosing failure: {command}")
        diagnosis, fix = self._match(command, failure)

        if fix is None:
            logger.warning("No automatic fix available for this error.")
            return RepairOutcome(
                applied=False,
                category=RepairCategory.NONE,
                message="no automatic fix available",
                error=diagnosis.error,
            )

        outcome = fix(diagnosis)

        if self.repair_log is not None:
            self.repair_log.record(
                category=outcome.category.value,
                command=command,
                action=outcome.action,
                applied=outcome.applied,
                message=outcome.message,
            )
        if outcome.applied:
            logger.warning(f"Repair [{outcome.category.value}]: {outcome.message}")
        else:
            logger.error(f"Repair [{outcome.category.value}] failed: {outcome.message}")
        return outcome

    def _write_stand_in(self, diagnosis: Diagnosis) -> RepairOutcome:
        path = diagnosis.tool_path
        action = f"write stand-in {diagnosis.tool.name} at {path}"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(diagnosis.tool.shim, encoding="utf-8")
        except OSError as exc:
            return RepairOutcome(
                applied=False,
                category=diagnosis.category,
                message=f"could not write stand-in: {exc}",
                error=diagnosis.error,
                action=action,
            )

        try:
            os.chmod(path, 0o755)
        except OSError as exc:
            logger.debug(f"Could not mark {path} executable: {exc}")

        return RepairOutcome(
            applied=True,
            category=diagnosis.category,
            message=f'created stand-in "{diagnosis.tool.name}" script at {path}',
            error=diagnosis.error,
            action=action,
        )

    def node_install_command(self) -> List[str]:
        """Install command implied by the lock file present."""
        for lock_file, command in NODE_LOCK_FILES:
            if (self.root / lock_file).exists():
                return list(command)
        return list(DEFAULT_NODE_INSTALL)

    def _install_node_deps(self, diagnosis: Diagnosis) -> RepairOutcome:
        return self._run_install(diagnosis, self.node_install_command())

    def _install_python_module(self, diagnosis: Diagnosis) -> RepairOutcome:
        pip = [self.python_executable, "-m", "pip", "install"]
        if diagnosis.module:
            package = PIP_PACKAGE_ALIASES.get(diagnosis.module, diagnosis.module)
            return self._run_install(diagnosis, pip + [package])

        requirements = self.root / "requirements.txt"
        if requirements.exists():
            return self._run_install(diagnosis, pip + ["-r", str(requirements)])

        return RepairOutcome(
            applied=False,
            category=diagnosis.category,
            message="could not tell which module is missing and there is no requirements.txt",
            error=diagnosis.error,
        )

    def _run_install(self, diagnosis: Diagnosis, argv: List[str]) -> RepairOutcome:
        action = " ".join(argv)
        logger.info(f"Running: {action}")
        try:
            result = subprocess.run(argv, cwd=self.root)
        except OSError as exc:
            return RepairOutcome(
                applied=False,
                category=diagnosis.category,
                message=f"could not start '{action}': {exc}",
                error=diagnosis.error,
                action=action,
            )

        if result.returncode != 0:
            return RepairOutcome(
                applied=False,
                category=diagnosis.category,
                message=f"'{action}' exited with code {result.returncode}",
                error=diagnosis.error,
                action=action,
            )

        return RepairOutcome(
            applied=True,
            category=diagnosis.category,
            message=f"ran '{action}'",
            error=diagnosis.error,
            action=action,
        )

    def _init_repository(self, diagnosis: Diagnosis) -> RepairOutcome:
        action = f"git init {self.root}"
        try:
            vcs.init_repository(self.root)
        except (GitCommandError, OSError) as exc:
            return RepairOutcome(
                applied=False,
                category=diagnosis.category,
                message=f"git init failed: {exc}",
                error=diagnosis.error,
                action=action,
            )
        return RepairOutcome(
            applied=True,
            category=diagnosis.category,
            message="initialized git repository",
            error=diagnosis.error,
            action=action,
        )
