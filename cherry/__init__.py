"""Track technical debt metrics across a codebase."""

__version__ = "1.2.0"
