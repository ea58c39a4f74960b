"""Prep tracker: recurring preparation tasks, daily occurrences and spaced review."""

__version__ = "1.0.0"
