"""Keyword-based impact estimation.

This is a heuristic, not an analysis: it looks for a handful of words in the
intent text and maps them to the files such a change usually touches in a
conventional server-side project. It does not read the target codebase
beyond matching paths from an already-scanned file list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .models import Impact

DEFAULT_MODULE = "Core"


@dataclass(frozen=True)
class ImpactRule:
    """Files implied by the presence of any of ``keywords``."""

    keywords: Tuple[str, ...]
    files: Tuple[str, ...]


IMPACT_RULES: Tuple[ImpactRule, ...] = (
    ImpactRule(
        keywords=("user", "auth"),
        files=("app/Models/User.php", "routes/api.php", "database/migrations"),
    ),
    ImpactRule(
        keywords=("order",),
        files=("app/Models/Order.php", "app/Http/Controllers/OrderController.php"),
    ),
)


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def module_of(path: str) -> str:
    """Module name for a file: its second path segment, or ``Core``."""
    parts = [p for p in path.replace("\\", "/").split("/") if p]
    return parts[1] if len(parts) > 1 else DEFAULT_MODULE


def estimate(
    text: str,
    known_files: Sequence[str] = (),
    rules: Sequence[ImpactRule] = IMPACT_RULES,
) -> Impact:
    """Estimate the files and modules affected by an intent.

    Args:
        text: The raw intent text.
        known_files: Project files from a prior scan. Any whose path contains
            the keyword that fired a rule are added to that rule's files.
        rules: Rule table, evaluated in order.

    Returns:
        Impact with de-duplicated files and modules, first-seen order kept.
    """
    lower = (text or "").lower()
    files: List[str] = []

    for rule in rules:
        matched = [k for k in rule.keywords if k in lower]
        if not matched:
            continue
        files.extend(rule.files)
        for path in known_files:
            if any(k in path.lower() for k in matched):
                files.append(path)

    files = _dedupe(files)
    return Impact(files=files, modules=_dedupe(module_of(f) for f in files))
