"""Durable store of intents and their tasks.

State lives in a single JSON document under the project's ``.intent/``
directory. The whole document is read on open and rewritten on every
mutation; there is no incremental format and no locking, so only one process
may write a given store at a time.

Callers never hold a live reference into the store: reads return copies,
and changes go back in through ``update_intent``.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .errors import IntentStateError, StoreError
from .models import Intent, IntentStatus, ProjectMemory

logger = logging.getLogger(__name__)


class IntentStore:
    """Persistent record of every intent registered in a project.

    One instance per project directory, created explicitly and handed to the
    components that need it.
    """

    DEFAULT_STATE_DIR = ".intent"
    MEMORY_FILE = "memory.json"

    def __init__(self, project_root: Path, state_dir: Optional[str] = None):
        """Open (or create) the store for a project.

        Args:
            project_root: Root directory of the project.
            state_dir: Name of the state directory, relative to the root.
        """
        self.project_root = Path(project_root).resolve()
        self.state_dir = self.project_root / (state_dir or self.DEFAULT_STATE_DIR)
        self.memory_path = self.state_dir / self.MEMORY_FILE

        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create state directory {self.state_dir}: {exc}") from exc

        self.memory = self._load()

    @classmethod
    def open(cls, project_root: Path, state_dir: Optional[str] = None) -> IntentStore:
        """Open the store rooted at ``project_root``."""
        return cls(project_root, state_dir=state_dir)

    def _empty(self) -> ProjectMemory:
        return ProjectMemory(project_root=str(self.project_root))

    def _load(self) -> ProjectMemory:
        if not self.memory_path.exists():
            memory = self._empty()
            self._write(memory)
            return memory

        try:
            with open(self.memory_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return ProjectMemory.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            # Availability over durability: keep the bad file aside, start empty.
            backup = self._backup_corrupt()
            logger.error(
                f"Failed to load intent store ({e}); resetting to empty. "
                f"Previous contents kept at {backup}"
            )
            memory = self._empty()
            self._write(memory)
            return memory

    def _backup_corrupt(self) -> Optional[Path]:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup = self.memory_path.with_name(f"{self.MEMORY_FILE}.corrupt-{timestamp}")
        try:
            os.replace(self.memory_path, backup)
        except OSError as exc:
            logger.error(f"Could not preserve corrupt store: {exc}")
            return None
        return backup

    def _write(self, memory: ProjectMemory) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.state_dir, prefix=".memory-", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(memory.to_dict(), f, indent=2)
            os.replace(tmp_name, self.memory_path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StoreError(f"Failed to save intent store: {exc}") from exc
        logger.debug(f"Saved intent store to {self.memory_path}")

    def save(self) -> None:
        """Flush the in-memory state to disk."""
        self._write(self.memory)

    def _commit(self, memory: ProjectMemory) -> None:
        # In-memory state only changes once the new document is on disk.
        self._write(memory)
        self.memory = memory

    def get_intents(self) -> List[Intent]:
        """All intents in insertion order (copies)."""
        return copy.deepcopy(self.memory.intents)

    def get_intent(self, intent_id: str) -> Optional[Intent]:
        for intent in self.memory.intents:
            if intent.id == intent_id:
                return copy.deepcopy(intent)
        return None

    def active_intent(self) -> Optional[Intent]:
        """The most recently added intent that is not yet COMPLETED."""
        for intent in reversed(self.memory.intents):
            if intent.status != IntentStatus.COMPLETED:
                return copy.deepcopy(intent)
        return None

    def latest_intent(self) -> Optional[Intent]:
        """The most recently added intent, whatever its status."""
        if not self.memory.intents:
            return None
        return copy.deepcopy(self.memory.intents[-1])

    def add_intent(self, intent: Intent) -> None:
        """Append a new intent and flush.

        Raises:
            StoreError: If an intent with the same id already exists.
        """
        if any(i.id == intent.id for i in self.memory.intents):
            raise StoreError(f"Intent already exists: {intent.id}")
        intents = self.memory.intents + [copy.deepcopy(intent)]
        self._commit(replace(self.memory, intents=intents))
        logger.debug(f"Added intent {intent.id} ({intent.kind.value})")

    def update_intent(self, intent: Intent) -> None:
        """Replace the stored copy of ``intent`` and flush.

        Raises:
            StoreError: If the intent is unknown.
            IntentStateError: If the update would move its status backwards.
        """
        for index, existing in enumerate(self.memory.intents):
            if existing.id != intent.id:
                continue
            if intent.status.rank < existing.status.rank:
                raise IntentStateError(
                    f"Intent {intent.id} cannot regress from "
                    f"{existing.status.value} to {intent.status.value}"
                )
            intents = list(self.memory.intents)
            intents[index] = copy.deepcopy(intent)
            self._commit(replace(self.memory, intents=intents))
            logger.debug(f"Updated intent {intent.id} -> {intent.status.value}")
            return
        raise StoreError(f"Intent not found: {intent.id}")

    def record_scan(self, files: List[str]) -> None:
        """Remember the latest project scan."""
        self._commit(
            replace(self.memory, scanned_files=list(files), last_scan=datetime.now().isoformat())
        )
