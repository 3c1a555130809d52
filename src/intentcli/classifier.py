"""Intent classification by keyword.

Best effort only. ``UNKNOWN`` is an expected answer and callers are meant to
either assume a default or ask the operator, never to fail on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from .impact import estimate
from .models import Impact, IntentKind


@dataclass(frozen=True)
class ClassifierRule:
    """Kind assigned when any keyword appears in the text."""

    keywords: Tuple[str, ...]
    kind: IntentKind

    def matches(self, lower_text: str) -> bool:
        return any(k in lower_text for k in self.keywords)


# Order matters: first match wins.
CLASSIFIER_RULES: Tuple[ClassifierRule, ...] = (
    ClassifierRule(("add", "feature", "create", "implement", "can"), IntentKind.FEATURE),
    ClassifierRule(("fix", "bug", "error", "issue"), IntentKind.BUGFIX),
    ClassifierRule(("refactor", "clean", "optimize"), IntentKind.REFACTOR),
)


@dataclass(frozen=True)
class Classification:
    """Result of classifying an intent text."""

    kind: IntentKind
    draft_impact: Impact

    @property
    def is_ambiguous(self) -> bool:
        return self.kind == IntentKind.UNKNOWN


def classify_kind(
    text: str,
    rules: Sequence[ClassifierRule] = CLASSIFIER_RULES,
) -> IntentKind:
    """Return the kind of the first rule matching ``text``."""
    if not isinstance(text, str):
        return IntentKind.UNKNOWN
    lower = text.lower()
    for rule in rules:
        if rule.matches(lower):
            return rule.kind
    return IntentKind.UNKNOWN


def classify(text: str) -> Classification:
    """Classify free text into an intent kind plus a draft impact estimate.

    Pure and total: the same text always gives the same answer and no input
    raises.
    """
    draft = estimate(text if isinstance(text, str) else "", [])
    return Classification(kind=classify_kind(text), draft_impact=draft)
