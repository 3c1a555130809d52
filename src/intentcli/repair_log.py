"""Audit trail for automatic repairs.

Every remediation the repairer attempts (writing a stand-in script,
installing packages, initializing a repository) is appended as one JSON line,
so nothing is fixed silently.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class RepairLogEntry:
    """One remediation attempt."""

    category: str
    command: str
    action: str
    applied: bool
    message: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RepairLog:
    """Append-only JSON-lines log of repairs for one project."""

    FILENAME = "repairs.jsonl"

    def __init__(self, log_dir: Path):
        """Initialize the repair log.

        Args:
            log_dir: Directory holding the log, usually the ``.intent`` dir.
        """
        self.log_dir = Path(log_dir)
        self.log_file = self.log_dir / self.FILENAME

    def record(
        self,
        category: str,
        command: str,
        action: str,
        applied: bool,
        message: str = "",
    ) -> RepairLogEntry:
        """Append an entry. A log that cannot be written is reported, not fatal."""
        entry = RepairLogEntry(
            category=category,
            command=command,
            action=action,
            applied=applied,
            message=message,
        )
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
        except OSError as e:
            logger.error(f"Failed to write repair log: {e}")
        return entry

    def entries(self, limit: Optional[int] = None) -> List[RepairLogEntry]:
        """Read entries back, oldest first. Unreadable lines are skipped."""
        if not self.log_file.exists():
            return []

        result = []
        with open(self.log_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    result.append(RepairLogEntry(**json.loads(line)))
                except (ValueError, TypeError) as e:
                    logger.debug(f"Skipping bad repair log line: {e}")
        return result[-limit:] if limit else result
