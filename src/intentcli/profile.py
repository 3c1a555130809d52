"""Project profile detection.

The engine only needs two read-only queries from a profile provider:
``detect()`` and ``list_files()``. ``FileSystemProfiler`` answers them by
sniffing well-known manifest files in the project root.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Protocol

logger = logging.getLogger(__name__)

LARAVEL = "LARAVEL"
DJANGO = "DJANGO"
NEXT = "NEXT"
REACT = "REACT"
VUE = "VUE"
NEST = "NEST"
EXPRESS = "EXPRESS"

# package.json dependency -> framework
NODE_FRAMEWORKS = {
    "next": NEXT,
    "react": REACT,
    "vue": VUE,
    "@nestjs/core": NEST,
    "express": EXPRESS,
}

# Checked in order; later matches win, matching how lock files shadow each other.
PACKAGE_MANAGER_FILES = [
    ("composer.json", "COMPOSER"),
    ("yarn.lock", "YARN"),
    ("pnpm-lock.yaml", "PNPM"),
    ("package-lock.json", "NPM"),
    ("requirements.txt", "PIP"),
    ("Pipfile", "PIP"),
]

IGNORED_DIRS = {"node_modules", "vendor", "dist", ".git", ".intent", "__pycache__", ".venv"}


@dataclass(frozen=True)
class ProjectProfile:
    """What the engine knows about the target codebase."""

    detected_frameworks: FrozenSet[str] = frozenset()
    primary_language: str = "UNKNOWN"
    package_manager_hint: str = "UNKNOWN"
    structure_flags: Dict[str, bool] = field(default_factory=dict)

    @property
    def framework_label(self) -> str:
        if not self.detected_frameworks:
            return "UNKNOWN"
        return ", ".join(sorted(self.detected_frameworks))


class ProfileProvider(Protocol):
    """Read-only source of project information."""

    def detect(self) -> ProjectProfile:
        ...

    def list_files(self) -> List[str]:
        ...


class StaticProfileProvider:
    """Provider returning a fixed profile and file list."""

    def __init__(self, profile: Optional[ProjectProfile] = None, files: Optional[List[str]] = None):
        self.profile = profile or ProjectProfile()
        self.files = list(files or [])

    def detect(self) -> ProjectProfile:
        return self.profile

    def list_files(self) -> List[str]:
        return list(self.files)


class FileSystemProfiler:
    """Detects frameworks, language and layout from files on disk."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else Path.cwd()

    def _exists(self, relative: str) -> bool:
        return (self.root / relative).exists()

    def _read_json(self, name: str) -> dict:
        try:
            with open(self.root / name, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {name}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def detect(self) -> ProjectProfile:
        frameworks = set()
        language = "UNKNOWN"
        package_manager = "UNKNOWN"

        for filename, manager in PACKAGE_MANAGER_FILES:
            if self._exists(filename):
                package_manager = manager

        if self._exists("composer.json"):
            language = "PHP"
            composer = self._read_json("composer.json")
            if "laravel/framework" in (composer.get("require") or {}):
                frameworks.add(LARAVEL)

        if self._exists("package.json"):
            pkg = self._read_json("package.json")
            deps = {}
            deps.update(pkg.get("dependencies") or {})
            deps.update(pkg.get("devDependencies") or {})
            for dep, framework in NODE_FRAMEWORKS.items():
                if dep in deps:
                    frameworks.add(framework)
            if language == "UNKNOWN":
                language = "TS" if self._exists("tsconfig.json") else "JS"

        if self._exists("manage.py"):
            frameworks.add(DJANGO)
            language = "PYTHON"
        elif language == "UNKNOWN" and (self._exists("pyproject.toml") or self._exists("requirements.txt")):
            language = "PYTHON"

        structure = {
            "has_controllers": any(self._exists(p) for p in ("app/Http/Controllers", "src/controllers", "controllers")),
            "has_components": any(self._exists(p) for p in ("src/components", "components")),
            "has_models": any(self._exists(p) for p in ("app/Models", "src/models", "models")),
            "has_routes": any(self._exists(p) for p in ("routes", "src/routes")),
        }

        profile = ProjectProfile(
            detected_frameworks=frozenset(frameworks),
            primary_language=language,
            package_manager_hint=package_manager,
            structure_flags=structure,
        )
        logger.debug(f"Detected profile: {profile}")
        return profile

    def list_files(self) -> List[str]:
        """Relative POSIX paths of project files, skipping dependency dirs."""
        files = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            rel_dir = Path(dirpath).relative_to(self.root)
            for name in sorted(filenames):
                files.append((rel_dir / name).as_posix())
        return files
