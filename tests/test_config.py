"""Tests for cherry.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from cherry.config import DEFAULT_API_URL, RuleKind, find_config_file, load_config
from cherry.errors import ConfigurationError


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_load_config_parses_metrics_in_order(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("CHERRY_API_KEY", raising=False)
    monkeypatch.delenv("CHERRY_API_URL", raising=False)
    monkeypatch.delenv("API_URL", raising=False)
    _write(
        tmp_path / ".cherry.yml",
        """
project_name: acme/webapp
ignore:
  - dist/
metrics:
  - name: TODO
    pattern: TODO
    include: "**/*.js"
  - name: Cycles
    type: circular_imports
    include: [src/**]
  - name: Outdated
    type: npm_outdated
  - name: Gaps
    type: command
    command: python gaps.py
""",
    )

    config = load_config(tmp_path)

    assert config.root == tmp_path.resolve()
    assert config.project_name == "acme/webapp"
    assert config.repository_url == "https://github.com/acme/webapp"
    assert config.ignore == ["dist/"]
    assert [metric.name for metric in config.metrics] == ["TODO", "Cycles", "Outdated", "Gaps"]
    assert [metric.kind for metric in config.metrics] == [
        RuleKind.PATTERN,
        RuleKind.CIRCULAR_IMPORTS,
        RuleKind.NPM_OUTDATED,
        RuleKind.COMMAND,
    ]
    assert config.metrics[0].include == ("**/*.js",)
    assert config.metrics[0].pattern is not None
    assert config.metrics[1].include == ("src/**",)
    assert config.metrics[3].command == "python gaps.py"
    assert config.api.base_url == DEFAULT_API_URL
    assert config.api.api_key is None


def test_load_config_reads_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("CHERRY_API_KEY", "secret")
    monkeypatch.setenv("CHERRY_API_URL", "http://localhost:3000/api/")
    _write(tmp_path / ".cherry.yml", "project_name: demo\n")

    config = load_config(tmp_path)

    assert config.api.api_key == "secret"
    assert config.api.base_url == "http://localhost:3000/api"
    assert config.repository_url is None
    assert config.require_api_key() == "secret"
    assert config.require_api_key("override") == "override"


def test_find_config_file_walks_up(tmp_path: Path) -> None:
    _write(tmp_path / ".cherry.yml", "project_name: demo\n")
    nested = tmp_path / "src" / "deep"
    nested.mkdir(parents=True)

    assert find_config_file(nested) == (tmp_path / ".cherry.yml").resolve()


def test_load_config_without_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(tmp_path)


def test_duplicate_metric_names_are_rejected(tmp_path: Path) -> None:
    _write(
        tmp_path / ".cherry.yml",
        "metrics:\n  - name: TODO\n    pattern: TODO\n  - name: TODO\n    pattern: FIXME\n",
    )
    with pytest.raises(ConfigurationError, match="Duplicate metric name 'TODO'"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "metric",
    [
        "  - pattern: TODO\n",
        "  - name: Unknown\n    type: magic\n",
        "  - name: Broken\n    pattern: '('\n",
        "  - name: NoCommand\n    type: command\n",
        "  - name: NoRule\n",
    ],
)
def test_invalid_metrics_are_rejected(tmp_path: Path, metric: str) -> None:
    _write(tmp_path / ".cherry.yml", "metrics:\n" + metric)
    with pytest.raises(ConfigurationError):
        load_config(tmp_path)


def test_invalid_yaml_is_reported(tmp_path: Path) -> None:
    _write(tmp_path / ".cherry.yml", "metrics: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Failed to parse"):
        load_config(tmp_path)


def test_require_project_name(tmp_path: Path) -> None:
    _write(tmp_path / ".cherry.yml", "metrics: []\n")
    config = load_config(tmp_path)
    with pytest.raises(ConfigurationError, match="project_name"):
        config.require_project_name()
