"""Main entry point for running intent as a module.

Usage:
    python -m intentcli --help
    python -m intentcli add "add user authentication"
    python -m intentcli run
"""

from __future__ import annotations

from .cli import app

if __name__ == "__main__":
    app()
