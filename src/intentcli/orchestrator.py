"""Orchestrator - drives an intent from free text to executed tasks.

Flow per intent:
1. register: classify, persist as PENDING, estimate impact (ANALYZED),
   build the roadmap and persist as PLANNED
2. execute: run the selected tasks in roadmap order, diagnosing and
   repairing shell failures before a bounded retry
3. completion check: the intent becomes COMPLETED once every task is DONE

Task failures never escape ``execute``; they end up in the BatchReport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from . import impact, roadmap
from .advisor import Advisor
from .classifier import classify
from .config import Config
from .errors import (
    AdvisorError,
    ClassificationAmbiguous,
    IntentStateError,
    StoreError,
    UnknownTaskError,
)
from .models import Intent, IntentKind, IntentStatus, Task, TaskKind, TaskStatus
from .profile import ProfileProvider
from .repair import Repairer, RepairOutcome
from .repair_log import RepairLog
from .runner import TaskOutcome, TaskRunner
from .store import IntentStore

logger = logging.getLogger(__name__)


class StatusKind(str, Enum):
    """How a task fared in a batch."""

    SUCCEEDED = "succeeded"
    FIXED = "fixed"
    FAILED_NO_FIX = "failed-no-fix"
    FAILED_AFTER_FIX = "failed-after-fix"
    SKIPPED = "skipped"


@dataclass
class TaskResult:
    """One status line of a batch."""

    task_id: str
    description: str
    status: StatusKind
    message: str = ""
    repair: Optional[RepairOutcome] = None

    @property
    def failed(self) -> bool:
        return self.status in (StatusKind.FAILED_NO_FIX, StatusKind.FAILED_AFTER_FIX)


@dataclass
class BatchReport:
    """Outcome of one ``execute`` call."""

    intent_id: str
    results: List[TaskResult] = field(default_factory=list)
    completed: bool = False

    @property
    def succeeded(self) -> List[TaskResult]:
        return [r for r in self.results if r.status == StatusKind.SUCCEEDED]

    @property
    def fixed(self) -> List[TaskResult]:
        return [r for r in self.results if r.status == StatusKind.FIXED]

    @property
    def failed(self) -> List[TaskResult]:
        return [r for r in self.results if r.failed]

    @property
    def skipped(self) -> List[TaskResult]:
        return [r for r in self.results if r.status == StatusKind.SKIPPED]

    @property
    def has_failures(self) -> bool:
        return any(r.failed for r in self.results)


class Orchestrator:
    """Registers intents and executes their roadmaps."""

    def __init__(
        self,
        store: IntentStore,
        runner: Optional[TaskRunner] = None,
        repairer: Optional[Repairer] = None,
        max_repair_attempts: int = 1,
    ):
        """Initialize the orchestrator.

        Args:
            store: Store the intents live in.
            runner: Task runner; defaults to one rooted at the project.
            repairer: Failure repairer; defaults to one logging into the
                store's state directory.
            max_repair_attempts: Repairs tried per task before giving up.
        """
        self.store = store
        self.runner = runner or TaskRunner(cwd=store.project_root)
        self.repairer = repairer or Repairer(
            store.project_root,
            repair_log=RepairLog(store.state_dir),
        )
        self.max_repair_attempts = max(0, max_repair_attempts)

    @classmethod
    def from_config(cls, config: Config, store: Optional[IntentStore] = None) -> Orchestrator:
        """Wire up an orchestrator from configuration."""
        store = store or IntentStore.open(config.project_root, config.state_dir)
        runner = TaskRunner(cwd=store.project_root, capture_output=config.capture_output)
        repairer = Repairer(store.project_root, repair_log=RepairLog(store.state_dir))
        return cls(store, runner, repairer, max_repair_attempts=config.max_repair_attempts)

    # ------------------------------------------------------------------ #
    # Planning
    # ------------------------------------------------------------------ #

    def register(
        self,
        text: str,
        profile_provider: ProfileProvider,
        assume_kind: Optional[IntentKind] = None,
        advisor: Optional[Advisor] = None,
        allow_unknown: bool = True,
    ) -> Intent:
        """Classify ``text`` and persist it as a PLANNED intent.

        Args:
            text: The raw request.
            profile_provider: Source of the project profile and file list.
            assume_kind: Kind to use when the classifier answers UNKNOWN.
            advisor: Optional advisor whose numbered steps become AI- tasks.
            allow_unknown: If False, an UNKNOWN kind with no ``assume_kind``
                raises instead of being stored.

        Returns:
            The planned intent (a copy; the store keeps its own).

        Raises:
            ClassificationAmbiguous: If the kind is UNKNOWN and not allowed.
            StoreError: If the store cannot be written.
        """
        classification = classify(text)
        kind = classification.kind
        if kind == IntentKind.UNKNOWN and assume_kind is not None:
            kind = IntentKind(assume_kind)
        if kind == IntentKind.UNKNOWN and not allow_unknown:
            raise ClassificationAmbiguous(f"Could not classify: {text!r}")

        intent = Intent.create(text, kind)
        logger.info(f"Classified intent {intent.id} as {kind.value}")

        intent.impact = impact.estimate(text, profile_provider.list_files())
        intent.advance(IntentStatus.ANALYZED)

        profile = profile_provider.detect()
        tasks = roadmap.build(intent, profile)
        if advisor is not None:
            tasks = roadmap.merge_roadmaps(tasks, self._advisor_tasks(advisor, text, profile.framework_label))

        intent.tasks = tasks
        intent.advance(IntentStatus.PLANNED)
        # Stored only once planned; a failed analysis leaves nothing behind.
        self.store.add_intent(intent)
        logger.info(f"Planned {len(tasks)} task(s) for intent {intent.id}")
        return intent

    def _advisor_tasks(self, advisor: Advisor, text: str, context: str) -> List[Task]:
        try:
            advice = advisor.explain(text, context=context)
        except AdvisorError as e:
            logger.warning(f"Advisor failed, keeping heuristic roadmap: {e}")
            return []
        return roadmap.tasks_from_advice(advice)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def active_intent(self) -> Optional[Intent]:
        """The most recent intent that is not yet COMPLETED."""
        return self.store.active_intent()

    def _require_planned(self, intent_id: str) -> Intent:
        intent = self.store.get_intent(intent_id)
        if intent is None:
            raise StoreError(f"Intent not found: {intent_id}")
        if intent.status.rank < IntentStatus.PLANNED.rank:
            raise IntentStateError(f"Intent {intent_id} has not been planned (status {intent.status.value})")
        return intent

    @staticmethod
    def _check_task_ids(intent: Intent, task_ids: Iterable[str]) -> List[str]:
        ids = list(task_ids)
        known = {t.id for t in intent.tasks}
        unknown = [t for t in ids if t not in known]
        if unknown:
            raise UnknownTaskError(f"Unknown task id(s) for intent {intent.id}: {', '.join(unknown)}")
        return ids

    def execute(self, intent_id: str, selected: Optional[Iterable[str]] = None) -> BatchReport:
        """Run the selected (default: all pending) tasks of an intent.

        Raises:
            StoreError: If the intent does not exist.
            IntentStateError: If the intent is not planned yet.
            UnknownTaskError: If ``selected`` names a task the intent lacks.
        """
        intent = self._require_planned(intent_id)
        wanted = None if selected is None else set(self._check_task_ids(intent, selected))

        report = BatchReport(intent_id=intent.id)
        for task in intent.tasks:
            if task.is_done:
                report.results.append(
                    TaskResult(task.id, task.description, StatusKind.SKIPPED, "already done")
                )
                continue
            if wanted is not None and task.id not in wanted:
                report.results.append(
                    TaskResult(task.id, task.description, StatusKind.SKIPPED, "not selected")
                )
                continue

            result = self._run_task(task)
            if not result.failed:
                task.status = TaskStatus.DONE
            logger.info(f"{task.id} {result.status.value}: {task.description}")
            report.results.append(result)

        self._finish(intent)
        report.completed = intent.status == IntentStatus.COMPLETED
        return report

    def _run_task(self, task: Task) -> TaskResult:
        outcome: TaskOutcome = self.runner.run(task)
        if outcome.ok:
            message = "acknowledged" if task.kind == TaskKind.MANUAL else "ok"
            return TaskResult(task.id, task.description, StatusKind.SUCCEEDED, message)

        repair: Optional[RepairOutcome] = None
        fix_applied = False
        attempts = 0
        while not outcome.ok:
            failure = outcome.shell_error
            if failure is None or attempts >= self.max_repair_attempts:
                break
            attempts += 1
            repair = self.repairer.diagnose(task.command or "", failure)
            if not repair.applied:
                break
            fix_applied = True
            logger.info(f"{task.id}: fix applied, retrying")
            outcome = self.runner.run(task)

        if outcome.ok:
            return TaskResult(task.id, task.description, StatusKind.FIXED, repair.message, repair)

        message = str(outcome.error) if outcome.error else "failed"
        if repair is not None and not repair.applied:
            message = f"{message} ({repair.message})"
        status = StatusKind.FAILED_AFTER_FIX if fix_applied else StatusKind.FAILED_NO_FIX
        return TaskResult(task.id, task.description, status, message, repair)

    def mark_done(self, intent_id: str, task_ids: Iterable[str]) -> Intent:
        """Acknowledge tasks as DONE and re-check completion.

        Raises:
            StoreError: If the intent does not exist.
            IntentStateError: If the intent is not planned yet.
            UnknownTaskError: If a task id is not part of the intent.
        """
        intent = self._require_planned(intent_id)
        for task_id in self._check_task_ids(intent, task_ids):
            intent.get_task(task_id).status = TaskStatus.DONE
        self._finish(intent)
        return intent

    def _finish(self, intent: Intent) -> None:
        if intent.tasks and intent.all_tasks_done and intent.status != IntentStatus.COMPLETED:
            intent.advance(IntentStatus.COMPLETED)
            logger.info(f"Intent {intent.id} completed")
        self.store.update_intent(intent)
