"""Exception hierarchy shared across cherry components."""

from __future__ import annotations


class CherryError(RuntimeError):
    """Base class for errors surfaced to the command line."""


class ConfigurationError(CherryError):
    """Raised when configuration is missing, invalid or incomplete."""


class VCSError(CherryError):
    """Raised when the git working tree is not in a usable state."""


class TransportError(CherryError):
    """Raised when the remote metrics service rejects or fails a request."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RuleEvaluationError(CherryError):
    """Raised when a metric rule fails; partial metric data is never reported."""

    def __init__(self, metric_name: str, message: str) -> None:
        super().__init__(f"Metric '{metric_name}' failed: {message}")
        self.metric_name = metric_name


__all__ = [
    "CherryError",
    "ConfigurationError",
    "RuleEvaluationError",
    "TransportError",
    "VCSError",
]
