"""Metrics backed by external analysis tools and custom commands."""

from __future__ import annotations

import json
import re
import shlex
import sys
from typing import Any, List, Optional

from ..config import MetricDefinition
from ..models import Occurrence
from .base import EvaluationContext

_UNIMPORTED_LINE = re.compile(r"^\s*\d+\s*[│|]\s*(\S+)\s*$")
_PYTHON_MANIFESTS = ("pyproject.toml", "requirements.txt", "setup.cfg", "setup.py")

# npm outdated and unimported exit with 1 when they report findings.
_SUCCESS = (0,)
_SUCCESS_WITH_FINDINGS = (0, 1)


def evaluate_npm_outdated(definition: MetricDefinition, context: EvaluationContext) -> List[Occurrence]:
    output = context.runner(["npm", "outdated", "--json"], cwd=context.root, ok_codes=_SUCCESS_WITH_FINDINGS)
    payload = _load_json(output, default={})
    if not isinstance(payload, dict):
        raise ValueError("npm outdated returned an unexpected payload")

    owners = context.owners_for("package.json")
    occurrences: List[Occurrence] = []
    for name in sorted(payload):
        details = payload[name] if isinstance(payload[name], dict) else {}
        occurrences.append(
            Occurrence(
                metric_name=definition.name,
                text=f"{name} ({details.get('current', '?')} -> {details.get('latest', '?')})",
                url=context.url_for("package.json"),
                owners=owners,
            )
        )
    return occurrences


def evaluate_pip_outdated(definition: MetricDefinition, context: EvaluationContext) -> List[Occurrence]:
    output = context.runner(
        [sys.executable, "-m", "pip", "list", "--outdated", "--format=json"],
        cwd=context.root,
        ok_codes=_SUCCESS,
    )
    payload = _load_json(output, default=[])
    if not isinstance(payload, list):
        raise ValueError("pip list returned an unexpected payload")

    manifest = next((name for name in _PYTHON_MANIFESTS if context.file(name)), None)
    owners = context.owners_for(manifest) if manifest else ()
    url = context.url_for(manifest) if manifest else None

    occurrences: List[Occurrence] = []
    for entry in sorted(
        (item for item in payload if isinstance(item, dict)),
        key=lambda item: str(item.get("name", "")).lower(),
    ):
        occurrences.append(
            Occurrence(
                metric_name=definition.name,
                text=f"{entry.get('name')} ({entry.get('version', '?')} -> {entry.get('latest_version', '?')})",
                url=url,
                owners=owners,
            )
        )
    return occurrences


def evaluate_unimported(definition: MetricDefinition, context: EvaluationContext) -> List[Occurrence]:
    output = context.runner(
        ["npx", "unimported", "--show-unused-files"], cwd=context.root, ok_codes=_SUCCESS_WITH_FINDINGS
    )
    paths = []
    for line in output.splitlines():
        match = _UNIMPORTED_LINE.match(line)
        if match:
            paths.append(match.group(1))

    return [
        Occurrence(
            metric_name=definition.name,
            text=path,
            url=context.url_for(path),
            owners=context.owners_for(path),
        )
        for path in sorted(set(paths))
    ]


def evaluate_command(definition: MetricDefinition, context: EvaluationContext) -> List[Occurrence]:
    """Run a custom command that prints a JSON list of occurrences."""
    if not definition.command:
        raise ValueError("command metric without a command")
    output = context.runner(shlex.split(definition.command), cwd=context.root, ok_codes=_SUCCESS)
    payload = _load_json(output, default=[])
    if not isinstance(payload, list):
        raise ValueError("command output must be a JSON list")

    occurrences: List[Occurrence] = []
    for position, entry in enumerate(payload, start=1):
        if isinstance(entry, str):
            entry = {"text": entry}
        if not isinstance(entry, dict) or not isinstance(entry.get("text"), str):
            raise ValueError(f"entry #{position} must be an object with a 'text' string")
        text = entry["text"]
        owners = entry.get("owners")
        if not isinstance(owners, list):
            owners = list(context.owners_for(text.split(":", 1)[0]))
        occurrences.append(
            Occurrence(
                metric_name=definition.name,
                text=text,
                value=_numeric(entry.get("value")),
                url=entry.get("url") if isinstance(entry.get("url"), str) else None,
                owners=tuple(str(owner) for owner in owners),
            )
        )
    return occurrences


def _load_json(output: str, *, default: Any) -> Any:
    if not output.strip():
        return default
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        raise ValueError(f"expected JSON output: {exc}") from exc


def _numeric(value: Any) -> Optional[float | int]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None
