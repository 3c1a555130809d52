"""Advisor backends that explain an intent in prose.

The advisor is optional help, never a dependency of the engine: every backend
may fail or time out, and ``FallbackAdvisor`` answers with deterministic
canned text when that happens so callers never block or fail.

Backends:
- CopilotAdvisor: the GitHub CLI's ``gh copilot explain`` extension
- GrokAdvisor: the xAI chat completions API over HTTP
- HeuristicAdvisor: offline, keyword-driven canned explanations
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol

import requests
from dotenv import load_dotenv

from .config import AdvisorSettings
from .errors import AdvisorError

logger = logging.getLogger(__name__)

GROK_ENDPOINT = "https://api.x.ai/v1/chat/completions"

SYSTEM_PROMPT = (
    "You are a senior software engineer. Explain, as a short numbered list of "
    "implementation steps, how to implement the request in the user's project."
)


class Advisor(Protocol):
    """Anything that can turn a request into an explanation."""

    def explain(self, text: str, context: Optional[str] = None) -> str:
        ...


def _with_context(text: str, context: Optional[str]) -> str:
    return f"{text}\n\nContext: {context}" if context else text


class HeuristicAdvisor:
    """Offline advisor with canned, deterministic explanations."""

    def explain(self, text: str, context: Optional[str] = None) -> str:
        lower = (text or "").lower()

        if "password" in lower and "reset" in lower:
            return (
                f'To implement "{text}", we need to modify the Auth flow.\n'
                "1. Update the **User model** to support password reset tokens.\n"
                "2. Create a standardized **Notification** for email delivery.\n"
                "3. Secure the **API endpoint** with rate limiting to prevent abuse."
            )

        if "newsletter" in lower:
            return (
                "This feature requires a new subscription flow.\n"
                "1. **Database**: Migration for 'newsletter_subscribers' table.\n"
                "2. **Model**: Create Subscriber model with validation.\n"
                "3. **Controller**: Handle POST /subscribe requests.\n"
                "4. **Queue**: Dispatch emails asynchronously."
            )

        if "user" in lower or "auth" in lower:
            return (
                f'"{text}" touches user accounts.\n'
                "1. Extend the user schema with a migration.\n"
                "2. Update the user model and its validation rules.\n"
                "3. Protect the new routes with authentication middleware."
            )

        return (
            f'I have analyzed the request "{text}".\n'
            "It appears to be a backend feature requiring new database migrations and API endpoints.\n"
            "Recommend starting with the data layer."
        )


class CopilotAdvisor:
    """Asks the GitHub CLI Copilot extension for an explanation."""

    def __init__(self, timeout: int = 8, cwd: Optional[Path] = None):
        """Initialize the Copilot advisor.

        Args:
            timeout: Seconds to wait before giving up; ``gh`` may wait for input.
            cwd: Directory to run ``gh`` in.
        """
        self.timeout = timeout
        self.cwd = cwd

    def explain(self, text: str, context: Optional[str] = None) -> str:
        cmd = ["gh", "copilot", "explain", _with_context(text, context)]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired as exc:
            raise AdvisorError(f"gh copilot timed out after {self.timeout} seconds") from exc
        except OSError as exc:
            raise AdvisorError(f"gh CLI is not available: {exc}") from exc

        output = (result.stdout or "").strip()
        if result.returncode != 0 or not output or "Error" in output:
            raise AdvisorError("Copilot CLI returned empty or error output")
        return output


class GrokAdvisor:
    """Asks the xAI Grok chat completions API for an explanation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "grok-3-latest",
        timeout: int = 8,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def explain(self, text: str, context: Optional[str] = None) -> str:
        load_dotenv()
        key = self.api_key or os.getenv("GROK_API_KEY")
        if not key:
            raise AdvisorError("GROK_API_KEY environment variable is not set.")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _with_context(text, context)},
            ],
            "temperature": 0.3,
        }
        headers = {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

        logger.debug(f"Querying Grok API with model={self.model}")
        try:
            response = requests.post(GROK_ENDPOINT, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout as exc:
            raise AdvisorError(f"Grok API request timed out after {self.timeout} seconds") from exc
        except requests.RequestException as exc:
            raise AdvisorError(f"Grok API request failed: {exc}") from exc

        if not response.ok:
            raise AdvisorError(f"Grok API error {response.status_code}: {response.text[:200]}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AdvisorError(f"Unexpected Grok API response format: {exc}") from exc

        if not content or not content.strip():
            raise AdvisorError("Grok API returned an empty explanation")
        return content.strip()


class FallbackAdvisor:
    """Tries a primary advisor and falls back to canned heuristics on failure."""

    def __init__(self, primary: Advisor, fallback: Optional[Advisor] = None):
        self.primary = primary
        self.fallback = fallback or HeuristicAdvisor()

    def explain(self, text: str, context: Optional[str] = None) -> str:
        try:
            return self.primary.explain(text, context)
        except AdvisorError as e:
            logger.debug(f"Advisor unavailable, using heuristics: {e}")
            return self.fallback.explain(text, context)


class MockAdvisor:
    """Mock advisor for testing without subprocesses or API calls."""

    def __init__(self, response: str = "1. Mock step", should_fail: bool = False):
        self.response = response
        self.should_fail = should_fail
        self.calls: List[str] = []

    def explain(self, text: str, context: Optional[str] = None) -> str:
        self.calls.append(text)
        if self.should_fail:
            raise AdvisorError("Mock failure")
        return self.response


def create_advisor(settings: AdvisorSettings, cwd: Optional[Path] = None) -> Advisor:
    """Build the configured advisor, always wrapped with the heuristic fallback."""
    if settings.backend == "heuristic":
        return HeuristicAdvisor()
    if settings.backend == "grok":
        primary: Advisor = GrokAdvisor(
            api_key=settings.api_key,
            model=settings.model,
            timeout=settings.timeout,
        )
    else:
        primary = CopilotAdvisor(timeout=settings.timeout, cwd=cwd)
    return FallbackAdvisor(primary)
