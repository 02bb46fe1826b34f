"""Aggregation of occurrences into metric totals and snapshot differences."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .models import Contribution, Number, Occurrence


def group_by_metric(occurrences: Iterable[Occurrence]) -> Dict[str, List[Occurrence]]:
    """Group occurrences by metric name, keeping first-appearance order."""
    groups: Dict[str, List[Occurrence]] = {}
    for occurrence in occurrences:
        groups.setdefault(occurrence.metric_name, []).append(occurrence)
    return groups


def aggregate_by_metric(occurrences: Iterable[Occurrence]) -> Dict[str, Number]:
    """Return ``metric name -> total`` sorted by metric name.

    A numeric ``value`` is summed as-is; anything else counts as 1. The remote
    service totals pushed occurrences the same way, so local and remote values
    stay comparable.
    """
    totals: Dict[str, Number] = {}
    for occurrence in occurrences:
        totals[occurrence.metric_name] = totals.get(occurrence.metric_name, 0) + occurrence.weight
    return dict(sorted(totals.items()))


def compute_contributions(
    occurrences: Sequence[Occurrence], previous_occurrences: Sequence[Occurrence]
) -> List[Contribution]:
    """Return per-metric occurrence deltas between two snapshots.

    Occurrences are identified by their ``text``: a match whose line number
    shifted is counted as one removal plus one addition. Metrics without a
    change are omitted.
    """
    current = group_by_metric(occurrences)
    previous = group_by_metric(previous_occurrences)

    metric_names = list(current)
    metric_names.extend(name for name in previous if name not in current)

    contributions: List[Contribution] = []
    for name in metric_names:
        current_items = current.get(name, [])
        previous_items = previous.get(name, [])
        current_texts = {occurrence.text for occurrence in current_items}
        previous_texts = {occurrence.text for occurrence in previous_items}
        added = sum(1 for occurrence in current_items if occurrence.text not in previous_texts)
        removed = sum(1 for occurrence in previous_items if occurrence.text not in current_texts)
        diff = added - removed
        if diff != 0:
            contributions.append(Contribution(metric_name=name, diff=diff))
    return contributions


@dataclass(frozen=True)
class RemoteDiff:
    """Comparison of a freshly computed metric against its last reported value."""

    metric_name: str
    last_value: Number
    current_value: Number
    added: Sequence[str] = field(default_factory=tuple)

    @property
    def diff(self) -> Number:
        return self.current_value - self.last_value

    @property
    def increased(self) -> bool:
        return self.diff > 0


def compute_remote_diff(
    metric_name: str,
    last_value: Number,
    previous_texts: Iterable[str],
    occurrences: Iterable[Occurrence],
) -> RemoteDiff:
    """Compare current occurrences of ``metric_name`` with the last reported state."""
    metric_occurrences = [o for o in occurrences if o.metric_name == metric_name]
    current_value = aggregate_by_metric(metric_occurrences).get(metric_name, 0)

    added: List[str] = []
    if current_value - last_value > 0:
        known = set(previous_texts)
        added = [o.text for o in metric_occurrences if o.text not in known]
    return RemoteDiff(
        metric_name=metric_name,
        last_value=last_value,
        current_value=current_value,
        added=tuple(added),
    )


def build_metrics_payload(occurrences: Iterable[Occurrence]) -> List[Dict[str, object]]:
    """Shape occurrences as ``[{name, occurrences: [{text, value, url, owners}]}]``."""
    return [
        {"name": name, "occurrences": [occurrence.to_payload() for occurrence in items]}
        for name, items in group_by_metric(occurrences).items()
    ]


__all__ = [
    "RemoteDiff",
    "aggregate_by_metric",
    "build_metrics_payload",
    "compute_contributions",
    "compute_remote_diff",
    "group_by_metric",
]
