"""Grading engine for interactive code exercises."""

__version__ = "0.1.0"
