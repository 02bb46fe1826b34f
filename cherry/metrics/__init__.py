"""Metric rule evaluators and the dispatching engine."""

from __future__ import annotations

from .base import EvaluationContext, ToolRunner, default_tool_runner
from .engine import evaluate_metric, find_occurrences

__all__ = [
    "EvaluationContext",
    "ToolRunner",
    "default_tool_runner",
    "evaluate_metric",
    "find_occurrences",
]
