"""Regex pattern metrics."""

from __future__ import annotations

import math
import re
from typing import Iterator, List, Optional

from ..config import MetricDefinition
from ..globs import matches_any
from ..models import Number, Occurrence, SourceFile
from .base import EvaluationContext


def select_files(definition: MetricDefinition, files: List[SourceFile]) -> Iterator[SourceFile]:
    """Yield files matched by the metric's include globs and not its exclude globs."""
    for file in files:
        if definition.include and not matches_any(file.path, definition.include):
            continue
        if definition.exclude and matches_any(file.path, definition.exclude):
            continue
        yield file


def evaluate_pattern(definition: MetricDefinition, context: EvaluationContext) -> List[Occurrence]:
    pattern = definition.pattern
    if pattern is None:
        raise ValueError("pattern metric without a compiled pattern")

    occurrences: List[Occurrence] = []
    for file in select_files(definition, context.files):
        matches = list(_iter_matches(definition, pattern, file))
        if not matches:
            continue

        if definition.group_by_file:
            # Match count, or the sum of captured values when value_group is set.
            total: Number = 0
            for _, match in matches:
                value = _extract_value(definition, match)
                total += 1 if value is None else value
            occurrences.append(
                Occurrence(
                    metric_name=definition.name,
                    text=file.path,
                    value=total,
                    url=context.url_for(file.path),
                    owners=file.owners,
                )
            )
            continue

        for line_number, match in matches:
            occurrences.append(
                Occurrence(
                    metric_name=definition.name,
                    text=f"{file.path}:{line_number}",
                    value=_extract_value(definition, match),
                    url=context.url_for(file.path, line_number),
                    owners=file.owners,
                )
            )
    return occurrences


def _iter_matches(
    definition: MetricDefinition, pattern: re.Pattern[str], file: SourceFile
) -> Iterator[tuple[int, re.Match[str]]]:
    content = file.content
    if definition.multiline:
        for match in pattern.finditer(content):
            yield content.count("\n", 0, match.start()) + 1, match
        return

    # One occurrence per matching line keeps "path:line" texts unique.
    for line_number, line in enumerate(content.splitlines(), start=1):
        match = pattern.search(line)
        if match is not None:
            yield line_number, match


def _extract_value(definition: MetricDefinition, match: re.Match[str]) -> Optional[Number]:
    if definition.value_group is None:
        return None
    try:
        captured = match.group(definition.value_group)
    except IndexError as exc:
        raise ValueError(f"pattern has no group {definition.value_group!r}") from exc
    if captured is None:
        return None
    return _parse_number(captured)


def _parse_number(raw: str) -> Optional[Number]:
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
