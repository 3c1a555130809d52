"""Configuration management for intent."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

# Type alias for advisor backend names
AdvisorName = Literal["copilot", "grok", "heuristic"]

ADVISOR_NAMES = ("copilot", "grok", "heuristic")


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("true", "1", "yes")


def _as_int(value: object, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got '{value}'") from None


@dataclass
class AdvisorSettings:
    """Settings for the explanation advisor."""

    backend: AdvisorName = "copilot"
    timeout: int = 8
    model: str = "grok-3-latest"
    api_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> AdvisorSettings:
        """Create AdvisorSettings from dictionary."""
        return cls(
            backend=data.get("backend", "copilot"),
            timeout=_as_int(data.get("timeout", 8), "advisor timeout"),
            model=data.get("model", "grok-3-latest"),
            api_key=data.get("api_key"),
        )


@dataclass
class Config:
    """Configuration settings for a project."""

    # Paths
    project_root: Path = field(default_factory=Path.cwd)
    state_dir: str = ".intent"

    # Execution
    max_repair_attempts: int = 1
    capture_output: bool = False  # Capture command output for diagnosis instead of inheriting the TTY

    # Runtime
    log_level: str = "INFO"

    advisor: AdvisorSettings = field(default_factory=AdvisorSettings)

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Config:
        """Load configuration from ``.intent/config.yaml`` and the environment.

        Environment variables win over the YAML file.

        Args:
            project_root: Optional path to the project. Defaults to CWD.

        Returns:
            Config instance.

        Raises:
            ConfigError: If the YAML file is unreadable or not a mapping, or a
                numeric setting is not an integer.
        """
        load_dotenv()

        root = Path(project_root) if project_root else Path.cwd()
        state_dir = os.getenv("INTENT_STATE_DIR", ".intent")

        data = {}
        config_path = root / state_dir / "config.yaml"
        if config_path.exists():
            try:
                with open(config_path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigError(f"{config_path} must contain a mapping of settings")

        advisor_data = data.get("advisor") or {}
        if not isinstance(advisor_data, dict):
            raise ConfigError(f"'advisor' in {config_path} must be a mapping")

        try:
            advisor = AdvisorSettings.from_dict(advisor_data)
            advisor.backend = os.getenv("INTENT_ADVISOR", advisor.backend)
            advisor.timeout = _as_int(
                os.getenv("INTENT_ADVISOR_TIMEOUT", advisor.timeout), "advisor timeout"
            )
            advisor.api_key = os.getenv("GROK_API_KEY", advisor.api_key)
            max_repair_attempts = _as_int(
                os.getenv("INTENT_MAX_REPAIR_ATTEMPTS", data.get("max_repair_attempts", 1)),
                "max_repair_attempts",
            )
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        return cls(
            project_root=root,
            state_dir=state_dir,
            max_repair_attempts=max_repair_attempts,
            capture_output=_as_bool(
                os.getenv("INTENT_CAPTURE_OUTPUT", str(data.get("capture_output", False)))
            ),
            log_level=os.getenv("INTENT_LOG_LEVEL", data.get("log_level", "INFO")),
            advisor=advisor,
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of validation error messages. Empty if valid.
        """
        errors = []

        if not self.project_root.exists():
            errors.append(f"Project path does not exist: {self.project_root}")

        if self.max_repair_attempts < 0:
            errors.append("max_repair_attempts must be 0 or greater")

        if self.advisor.backend not in ADVISOR_NAMES:
            errors.append(
                f"Unknown advisor '{self.advisor.backend}' (expected one of: {', '.join(ADVISOR_NAMES)})"
            )

        return errors

    @property
    def state_path(self) -> Path:
        """Path to the state directory."""
        return self.project_root / self.state_dir

    @property
    def config_file(self) -> Path:
        """Path to the optional YAML config file."""
        return self.state_path / "config.yaml"
