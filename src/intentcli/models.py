"""Data model for intents, tasks and the per-project store.

Everything here is a plain dataclass with ``to_dict``/``from_dict`` so the
whole store can be written to and read back from a single JSON document.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import IntentStateError


class IntentKind(str, Enum):
    """What sort of change an intent asks for."""

    FEATURE = "FEATURE"
    REFACTOR = "REFACTOR"
    BUGFIX = "BUGFIX"
    UNKNOWN = "UNKNOWN"


class IntentStatus(str, Enum):
    """Lifecycle of an intent. Only ever moves forward."""

    PENDING = "PENDING"
    ANALYZED = "ANALYZED"
    PLANNED = "PLANNED"
    COMPLETED = "COMPLETED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [
    IntentStatus.PENDING,
    IntentStatus.ANALYZED,
    IntentStatus.PLANNED,
    IntentStatus.COMPLETED,
]


class TaskKind(str, Enum):
    """How a task is carried out."""

    MANUAL = "MANUAL"
    SHELL = "SHELL"
    CREATE_FILE = "CREATE_FILE"


class TaskStatus(str, Enum):
    """Task status. There is no in-flight state."""

    TODO = "TODO"
    DONE = "DONE"


@dataclass
class Task:
    """One unit of work in an intent's roadmap."""

    id: str
    description: str
    kind: TaskKind = TaskKind.MANUAL
    status: TaskStatus = TaskStatus.TODO
    command: Optional[str] = None
    target_file: Optional[str] = None
    content: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'description': self.description,
            'kind': self.kind.value,
            'status': self.status.value,
            'command': self.command,
            'target_file': self.target_file,
            'content': self.content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Task:
        command = data.get('command')
        target_file = data.get('target_file', data.get('file'))
        content = data.get('content')

        kind = data.get('kind') or data.get('type')
        if not kind:
            # Older stores did not record a kind; infer it from the payload.
            if command:
                kind = TaskKind.SHELL
            elif target_file and content is not None:
                kind = TaskKind.CREATE_FILE
            else:
                kind = TaskKind.MANUAL

        # IN_PROGRESS was never reachable; treat it as not done.
        status = data.get('status', 'TODO')
        if status not in (TaskStatus.TODO.value, TaskStatus.DONE.value):
            status = TaskStatus.TODO

        return cls(
            id=str(data['id']),
            description=data.get('description', ''),
            kind=TaskKind(kind),
            status=TaskStatus(status),
            command=command,
            target_file=target_file,
            content=content,
        )


@dataclass
class Impact:
    """Heuristic estimate of the files and modules an intent touches."""

    files: List[str] = field(default_factory=list)
    modules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'files': list(self.files), 'modules': list(self.modules)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Impact:
        return cls(
            files=list(data.get('files', [])),
            modules=list(data.get('modules', [])),
        )


@dataclass
class Intent:
    """A user request plus its derived impact and roadmap."""

    id: str
    original_text: str
    kind: IntentKind
    status: IntentStatus = IntentStatus.PENDING
    impact: Optional[Impact] = None
    tasks: List[Task] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def create(cls, text: str, kind: IntentKind) -> Intent:
        """Create a new PENDING intent with a fresh identifier."""
        return cls(id=uuid.uuid4().hex[:8], original_text=text, kind=kind)

    @property
    def pending_tasks(self) -> List[Task]:
        return [t for t in self.tasks if not t.is_done]

    @property
    def all_tasks_done(self) -> bool:
        return all(t.is_done for t in self.tasks)

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def advance(self, status: IntentStatus) -> None:
        """Move the intent to ``status``.

        Staying in the same status is a no-op.

        Raises:
            IntentStateError: If the move is backwards, or if the intent would
                become PLANNED without any tasks.
        """
        status = IntentStatus(status)
        if status.rank < self.status.rank:
            raise IntentStateError(
                f"Intent {self.id} cannot move from {self.status.value} to {status.value}"
            )
        if status.rank >= IntentStatus.PLANNED.rank and not self.tasks:
            raise IntentStateError(
                f"Intent {self.id} cannot be {status.value} with an empty roadmap"
            )
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'original_text': self.original_text,
            'kind': self.kind.value,
            'status': self.status.value,
            'impact': self.impact.to_dict() if self.impact else None,
            'tasks': [t.to_dict() for t in self.tasks],
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Intent:
        impact = data.get('impact')
        return cls(
            id=str(data['id']),
            original_text=data.get('original_text', data.get('original', '')),
            kind=IntentKind(data.get('kind', data.get('type', 'UNKNOWN'))),
            status=IntentStatus(data.get('status', 'PENDING')),
            impact=Impact.from_dict(impact) if impact else None,
            tasks=[Task.from_dict(t) for t in data.get('tasks') or []],
            created_at=data.get('created_at', data.get('createdAt', '')),
        )


@dataclass
class ProjectMemory:
    """Root aggregate persisted per project directory."""

    project_root: str
    intents: List[Intent] = field(default_factory=list)
    scanned_files: List[str] = field(default_factory=list)
    last_scan: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'project_root': self.project_root,
            'intents': [i.to_dict() for i in self.intents],
            'scanned_files': list(self.scanned_files),
            'last_scan': self.last_scan,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProjectMemory:
        return cls(
            project_root=data.get('project_root', data.get('projectRoot', '')),
            intents=[Intent.from_dict(i) for i in data.get('intents', [])],
            scanned_files=list(data.get('scanned_files', data.get('scannedFiles', []))),
            last_scan=data.get('last_scan', data.get('lastScan')),
        )
