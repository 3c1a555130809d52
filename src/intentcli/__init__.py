"""intent - turn a one-line intent into planned, executed tasks."""

__version__ = "1.0.0"
