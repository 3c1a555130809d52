"""Git helpers for intents, built on GitPython.

Branch names and commit messages are derived from the intent; repository
operations go through ``git.Repo``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import git
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from .errors import VcsNotInitializedError
from .models import Intent, IntentKind

logger = logging.getLogger(__name__)

MAX_BRANCH_SLUG = 50

COMMIT_PREFIXES = {
    IntentKind.FEATURE: "feat",
    IntentKind.BUGFIX: "fix",
    IntentKind.REFACTOR: "refactor",
    IntentKind.UNKNOWN: "feat",
}


def branch_name(intent: Intent) -> str:
    """Branch for an intent, e.g. ``feature/add-user-authentication``."""
    slug = re.sub(r"[^a-z0-9]+", "-", intent.original_text.lower())
    slug = slug.strip("-")[:MAX_BRANCH_SLUG].strip("-") or intent.id
    return f"{intent.kind.value.lower()}/{slug}"


def commit_message(intent: Intent) -> str:
    """Conventional-commit style message for an intent."""
    prefix = COMMIT_PREFIXES.get(intent.kind, "feat")
    return f'{prefix}: implement logic for "{intent.original_text}"'


def is_repository(root: Path) -> bool:
    try:
        git.Repo(root)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False
    return True


def init_repository(root: Path) -> git.Repo:
    """Initialize a git repository at ``root``.

    Raises:
        GitCommandError: If git refuses.
    """
    repo = git.Repo.init(root)
    logger.info(f"Initialized git repository at {root}")
    return repo


def create_branch(root: Path, intent: Intent) -> str:
    """Create (or switch to) the intent's branch and check it out.

    Returns:
        The branch name.

    Raises:
        VcsNotInitializedError: If ``root`` is not a git repository.
        GitCommandError: If the checkout fails.
    """
    try:
        repo = git.Repo(root)
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        raise VcsNotInitializedError(f"Not a git repository: {root}") from exc

    name = branch_name(intent)
    existing = [h for h in repo.heads if h.name == name]
    head = existing[0] if existing else repo.create_head(name)
    head.checkout()
    logger.info(f"Checked out branch: {name}")
    return name

