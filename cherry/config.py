"""Configuration loading for cherry (.cherry.yml)."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigurationError

CONFIG_FILENAMES = (".cherry.yml", ".cherry.yaml")
DEFAULT_API_URL = "https://www.cherrypush.com/api"
ENV_API_KEY = "CHERRY_API_KEY"
ENV_API_URL_KEYS = ("CHERRY_API_URL", "API_URL")

_GITHUB_PROJECT = re.compile(r"^[\w.-]+/[\w.-]+$")


class RuleKind(str, Enum):
    """Kinds of metric rules understood by the metric engine."""

    PATTERN = "pattern"
    CIRCULAR_IMPORTS = "circular_imports"
    NPM_OUTDATED = "npm_outdated"
    PIP_OUTDATED = "pip_outdated"
    UNIMPORTED = "unimported"
    COMMAND = "command"


@dataclass(frozen=True)
class MetricDefinition:
    """A named metric and the rule used to find its occurrences."""

    name: str
    kind: RuleKind
    pattern: Optional[re.Pattern[str]] = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    multiline: bool = False
    group_by_file: bool = False
    value_group: int | str | None = None
    command: Optional[str] = None


@dataclass
class ApiConfig:
    """Remote service settings resolved from the config file and environment."""

    base_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None


@dataclass
class CherryConfig:
    """Represents the settings defined in .cherry.yml."""

    root: Path
    project_name: Optional[str] = None
    repository_url: Optional[str] = None
    ignore: List[str] = field(default_factory=list)
    metrics: List[MetricDefinition] = field(default_factory=list)
    api: ApiConfig = field(default_factory=ApiConfig)

    def metric(self, name: str) -> Optional[MetricDefinition]:
        for definition in self.metrics:
            if definition.name == name:
                return definition
        return None

    def require_project_name(self) -> str:
        if not self.project_name:
            raise ConfigurationError(
                "Specify a project_name in your .cherry.yml configuration file before pushing metrics"
            )
        return self.project_name

    def require_api_key(self, override: Optional[str] = None) -> str:
        api_key = override or self.api.api_key
        if not api_key:
            raise ConfigurationError(
                f"Please provide an API key with --api-key or the {ENV_API_KEY} environment variable"
            )
        return api_key


def find_config_file(start: Path | None = None) -> Optional[Path]:
    """Walk up from ``start`` and return the first cherry configuration file."""
    current = (start or Path.cwd()).expanduser().resolve()
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def load_config(path: Path | None = None) -> CherryConfig:
    """Load configuration from ``path`` (a file or a directory to search from)."""
    if path is not None and path.is_file():
        config_file: Optional[Path] = path.resolve()
    else:
        config_file = find_config_file(path)
    if config_file is None:
        raise ConfigurationError(
            "No .cherry.yml configuration file found. Run `cherry init` to create one."
        )

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_file.name} must contain a mapping at the root")

    root = config_file.parent
    api_data = _as_dict(data.get("api"))
    api = ApiConfig(
        base_url=(
            _first_env_value(ENV_API_URL_KEYS)
            or _as_str(api_data.get("url"))
            or DEFAULT_API_URL
        ).rstrip("/"),
        api_key=os.getenv(ENV_API_KEY) or None,
    )

    project_name = _as_str(data.get("project_name"))
    repository_url = _as_str(data.get("repository_url"))
    if repository_url is None and project_name and _GITHUB_PROJECT.match(project_name):
        repository_url = f"https://github.com/{project_name}"

    return CherryConfig(
        root=root,
        project_name=project_name,
        repository_url=repository_url.rstrip("/") if repository_url else None,
        ignore=_as_str_list(data.get("ignore")),
        metrics=parse_metrics(data.get("metrics")),
        api=api,
    )


def parse_metrics(raw: Any) -> List[MetricDefinition]:
    """Validate raw metric entries and return ordered definitions."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError("'metrics' must be a list of metric definitions")

    metrics: List[MetricDefinition] = []
    seen: set[str] = set()
    for position, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Metric #{position} must be a mapping")
        definition = _parse_metric(entry, position)
        if definition.name in seen:
            raise ConfigurationError(f"Duplicate metric name '{definition.name}'")
        seen.add(definition.name)
        metrics.append(definition)
    return metrics


def _parse_metric(entry: Dict[str, Any], position: int) -> MetricDefinition:
    name = _as_str(entry.get("name"))
    if not name:
        raise ConfigurationError(f"Metric #{position} is missing a name")

    raw_kind = _as_str(entry.get("type"))
    if raw_kind is None:
        raw_kind = RuleKind.PATTERN.value if "pattern" in entry else None
    if raw_kind is None:
        raise ConfigurationError(f"Metric '{name}' needs either a pattern or a type")
    try:
        kind = RuleKind(raw_kind)
    except ValueError as exc:
        known = ", ".join(kind.value for kind in RuleKind)
        raise ConfigurationError(
            f"Metric '{name}' has unknown type '{raw_kind}' (expected one of: {known})"
        ) from exc

    pattern = None
    if kind is RuleKind.PATTERN:
        raw_pattern = _as_str(entry.get("pattern"))
        if not raw_pattern:
            raise ConfigurationError(f"Metric '{name}' is missing a pattern")
        flags = re.MULTILINE if _as_bool(entry.get("multiline")) else 0
        if _as_bool(entry.get("ignore_case")):
            flags |= re.IGNORECASE
        try:
            pattern = re.compile(raw_pattern, flags)
        except re.error as exc:
            raise ConfigurationError(f"Metric '{name}' has an invalid pattern: {exc}") from exc

    command = _as_str(entry.get("command"))
    if kind is RuleKind.COMMAND and not command:
        raise ConfigurationError(f"Metric '{name}' is missing a command")

    value_group = entry.get("value_group")
    if value_group is not None and not isinstance(value_group, (int, str)):
        raise ConfigurationError(f"Metric '{name}' has an invalid value_group")
    if pattern is not None and isinstance(value_group, int) and value_group > pattern.groups:
        raise ConfigurationError(
            f"Metric '{name}' references group {value_group} but its pattern has {pattern.groups}"
        )

    return MetricDefinition(
        name=name,
        kind=kind,
        pattern=pattern,
        include=tuple(_as_str_list(entry.get("include"))),
        exclude=tuple(_as_str_list(entry.get("exclude"))),
        multiline=bool(_as_bool(entry.get("multiline"))),
        group_by_file=bool(_as_bool(entry.get("group_by_file"))),
        value_group=value_group,
        command=command,
    )


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _first_env_value(keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
