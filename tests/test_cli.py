"""Tests for cherry.cli."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cherry import cli, orchestrator
from cherry.aggregate import RemoteDiff
from cherry.errors import ConfigurationError
from cherry.orchestrator import DiffOutcome, EXIT_METRIC_INCREASED


def test_parser_defaults() -> None:
    parser = cli._build_parser()

    args = parser.parse_args(["backfill", "--since", "2024-01-01", "--interval", "7"])
    assert args.since == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert args.until is None
    assert args.interval == 7
    assert args.api_key is None

    run_args = parser.parse_args(["run", "--owner", "@a,@b", "-f", "sarif"])
    assert run_args.owner == "@a,@b"
    assert run_args.format == "sarif"
    assert run_args.verbose is False


@pytest.mark.parametrize(
    "argv",
    [
        ["backfill", "--since", "01/02/2024"],
        ["backfill", "--interval", "0"],
        ["diff"],
        ["run", "--format", "xml"],
    ],
)
def test_parser_rejects_invalid_arguments(argv) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli._build_parser().parse_args(argv)
    assert excinfo.value.code == 2


def test_run_prints_totals(repo_builder, monkeypatch, capsys) -> None:
    repo_builder.write(
        {
            ".cherry.yml": """
            metrics:
              - name: TODO
                pattern: TODO
                include: "**/*.js"
            """,
            "file.js": "// TODO one\n// TODO two\n",
        }
    )
    monkeypatch.chdir(repo_builder.path())

    cli.main(["run"])

    assert "TODO  2" in capsys.readouterr().out


def test_run_with_metric_lists_occurrences_and_exports(repo_builder, monkeypatch, capsys) -> None:
    repo_builder.write(
        {
            ".cherry.yml": """
            metrics:
              - name: TODO
                pattern: TODO
                include: "**/*.js"
            """,
            "file.js": "// TODO one\n",
        }
    )
    monkeypatch.chdir(repo_builder.path())
    loads = []
    real_load_config = orchestrator.load_config

    def counting_load_config(path=None):
        loads.append(path)
        return real_load_config(path)

    monkeypatch.setattr(orchestrator, "load_config", counting_load_config)

    cli.main(["run", "--metric", "TODO", "--output", "out/report.json"])

    output = capsys.readouterr().out
    assert "- file.js:1" in output
    assert "Total occurrences: 1" in output
    assert (repo_builder.path() / "out" / "report.json").is_file()
    assert len(loads) == 1


class _DiffOrchestrator:
    def run_diff(self, *, metric, api_key, error_if_increase):
        diff = RemoteDiff(metric_name=metric, last_value=10, current_value=12, added=("a.js:11", "a.js:12"))
        code = EXIT_METRIC_INCREASED if error_if_increase else 0
        return DiffOutcome(status="increased", exit_code=code, remote_diff=diff)


def test_diff_exit_status(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "Orchestrator", _DiffOrchestrator)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["diff", "--metric", "TODO", "--error-if-increase"])

    assert excinfo.value.code == EXIT_METRIC_INCREASED
    captured = capsys.readouterr()
    assert "Added occurrences:" in captured.out
    assert "a.js:12" in captured.out
    assert "The metric increased" in captured.err


def test_diff_without_flag_returns_normally(monkeypatch) -> None:
    monkeypatch.setattr(cli, "Orchestrator", _DiffOrchestrator)
    cli.main(["diff", "--metric", "TODO"])


class _FailingOrchestrator:
    def run_push(self, *, api_key):
        raise ConfigurationError("Please provide an API key")


def test_cherry_errors_exit_with_status_one(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "Orchestrator", _FailingOrchestrator)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["push"])

    assert excinfo.value.code == 1
    assert "cherry push failed: Please provide an API key" in capsys.readouterr().err
