"""Metric evaluation: dispatches each metric definition to its rule evaluator."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

from ..codeowners import Codeowners
from ..config import CherryConfig, MetricDefinition, RuleKind
from ..errors import CherryError, RuleEvaluationError
from ..logging import get_logger
from ..models import Occurrence, SourceFile
from .base import EvaluationContext, ToolRunner, default_tool_runner
from .external import (
    evaluate_command,
    evaluate_npm_outdated,
    evaluate_pip_outdated,
    evaluate_unimported,
)
from .imports import evaluate_circular_imports
from .patterns import evaluate_pattern

Evaluator = Callable[[MetricDefinition, EvaluationContext], List[Occurrence]]

_EVALUATORS: Dict[RuleKind, Evaluator] = {
    RuleKind.PATTERN: evaluate_pattern,
    RuleKind.CIRCULAR_IMPORTS: evaluate_circular_imports,
    RuleKind.NPM_OUTDATED: evaluate_npm_outdated,
    RuleKind.PIP_OUTDATED: evaluate_pip_outdated,
    RuleKind.UNIMPORTED: evaluate_unimported,
    RuleKind.COMMAND: evaluate_command,
}

_LOGGER = get_logger("engine")


def find_occurrences(
    config: CherryConfig,
    files: Sequence[SourceFile],
    codeowners: Codeowners,
    *,
    metric: Optional[str] = None,
    runner: ToolRunner | None = None,
) -> List[Occurrence]:
    """Evaluate every configured metric (or only ``metric``) in configuration order.

    Any failure aborts the whole evaluation as a :class:`RuleEvaluationError`;
    partial results are never returned.
    """
    definitions = [
        definition for definition in config.metrics if metric is None or definition.name == metric
    ]
    if metric is not None and not definitions:
        _LOGGER.warning("Metric '%s' is not defined in the configuration", metric)

    context = EvaluationContext(
        config=config,
        files=list(files),
        codeowners=codeowners,
        runner=runner or default_tool_runner,
    )

    occurrences: List[Occurrence] = []
    for definition in definitions:
        _LOGGER.debug("Evaluating metric %s (%s)", definition.name, definition.kind.value)
        found = evaluate_metric(definition, context)
        _LOGGER.debug("Metric %s produced %d occurrences", definition.name, len(found))
        occurrences.extend(found)
    return occurrences


def evaluate_metric(definition: MetricDefinition, context: EvaluationContext) -> List[Occurrence]:
    evaluator = _EVALUATORS.get(definition.kind)
    if evaluator is None:
        raise RuleEvaluationError(definition.name, f"no evaluator for rule kind '{definition.kind.value}'")
    try:
        return list(evaluator(definition, context))
    except RuleEvaluationError:
        raise
    except (CherryError, OSError, RuntimeError, ValueError) as exc:
        raise RuleEvaluationError(definition.name, str(exc)) from exc
