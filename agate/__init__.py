"""agate - drive a project from GOAL.md to working code, one step at a time."""

__version__ = "0.1.0"
