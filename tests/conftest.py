"""Shared test fixtures for intent tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

import git
import pytest

from intentcli.models import Intent, IntentKind, IntentStatus, Task
from intentcli.profile import LARAVEL, ProjectProfile
from intentcli.store import IntentStore

ENV_VARS = (
    "INTENT_STATE_DIR",
    "INTENT_MAX_REPAIR_ATTEMPTS",
    "INTENT_CAPTURE_OUTPUT",
    "INTENT_LOG_LEVEL",
    "INTENT_ADVISOR",
    "INTENT_ADVISOR_TIMEOUT",
    "GROK_API_KEY",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment and .env out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("intentcli.config.load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.setattr("intentcli.advisor.load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def laravel_project(project: Path) -> Path:
    """A project that looks like a Laravel app."""
    (project / "composer.json").write_text(
        json.dumps({"require": {"php": "^8.2", "laravel/framework": "^11.0"}})
    )
    (project / "composer.lock").write_text("{}")
    (project / "app" / "Models").mkdir(parents=True)
    (project / "app" / "Models" / "User.php").write_text("<?php\n")
    (project / "routes").mkdir()
    (project / "routes" / "api.php").write_text("<?php\n")
    return project


@pytest.fixture
def store(project: Path) -> IntentStore:
    """A fresh store for the project."""
    return IntentStore.open(project)


@pytest.fixture
def laravel_profile() -> ProjectProfile:
    """Profile of a Laravel project."""
    return ProjectProfile(
        detected_frameworks=frozenset({LARAVEL}),
        primary_language="PHP",
        package_manager_hint="COMPOSER",
    )


@pytest.fixture
def planned_intent(store: IntentStore):
    """Factory storing a PLANNED intent with the given tasks."""

    def _make(tasks: List[Task], text: str = "add user authentication") -> Intent:
        intent = Intent.create(text, IntentKind.FEATURE)
        intent.tasks = tasks
        intent.status = IntentStatus.PLANNED
        store.add_intent(intent)
        return intent

    return _make


@pytest.fixture
def git_repo(project: Path) -> git.Repo:
    """A git repository with one commit."""
    repo = git.Repo.init(project)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    readme = project / "README.md"
    readme.write_text("# Project\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    return repo
