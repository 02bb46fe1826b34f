"""CLI entrypoints for cherry commands."""

from __future__ import annotations

import argparse
import sys
from datetime import UTC, datetime, time
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from . import __version__
from .errors import CherryError
from .logging import configure_logging
from .models import Number, Occurrence
from .orchestrator import Orchestrator
from .reporters import ExportFormat

DASHBOARD_URL = "https://www.cherrypush.com/user/projects"


def _add_common_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=argparse.SUPPRESS if suppress_default else None,
        help="Also write logs to the given file.",
    )


def _add_api_key_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--api-key",
        default=None,
        help="Your cherrypush.com API key (defaults to the CHERRY_API_KEY environment variable).",
    )


def _date(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected yyyy-mm-dd") from exc


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number of days '{value}'") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("the interval must be at least one day")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cherry",
        description="Track technical debt metrics and push them to cherrypush.com.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_common_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create a .cherry.yml configuration and a GitHub workflow.",
    )
    _add_common_options(init_parser, suppress_default=True)
    init_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    init_parser.add_argument(
        "--project-name",
        default=None,
        help="Project name to store in the configuration (guessed from git when omitted).",
    )

    run_parser = subparsers.add_parser("run", help="Compute metrics for the working tree.")
    _add_common_options(run_parser, suppress_default=True)
    run_parser.add_argument("--owner", default=None, help="Only consider code owned by these owners (comma separated).")
    run_parser.add_argument("--metric", default=None, help="Only consider the given metric.")
    run_parser.add_argument("-o", "--output", type=Path, default=None, help="Export occurrences into a local file.")
    run_parser.add_argument(
        "-f",
        "--format",
        choices=[fmt.value for fmt in ExportFormat],
        default=ExportFormat.JSON.value,
        help="Export format (default: json).",
    )

    push_parser = subparsers.add_parser("push", help="Push metrics of the current commit.")
    _add_common_options(push_parser, suppress_default=True)
    _add_api_key_option(push_parser)

    diff_parser = subparsers.add_parser(
        "diff",
        help="Compare a metric with its last reported value.",
    )
    _add_common_options(diff_parser, suppress_default=True)
    _add_api_key_option(diff_parser)
    diff_parser.add_argument("--metric", required=True, help="Metric to compare.")
    diff_parser.add_argument(
        "--error-if-increase",
        action="store_true",
        help="Return a dedicated error status code if the metric increased since its last report.",
    )

    backfill_parser = subparsers.add_parser(
        "backfill",
        help="Push metrics for past commits to build a trend history.",
    )
    _add_common_options(backfill_parser, suppress_default=True)
    _add_api_key_option(backfill_parser)
    backfill_parser.add_argument(
        "--since",
        type=_date,
        default=None,
        help="yyyy-mm-dd | The date at which the backfill will start (defaults to 90 days ago).",
    )
    backfill_parser.add_argument(
        "--until",
        type=_date,
        default=None,
        help="yyyy-mm-dd | The date at which the backfill will stop (defaults to today).",
    )
    backfill_parser.add_argument(
        "--interval",
        type=_positive_int,
        default=30,
        help="The number of days between backfills (defaults to 30 days).",
    )

    serve_parser = subparsers.add_parser("serve", help="Expose cherry over HTTP.")
    _add_common_options(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for cherry commands."""
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=getattr(args, "log_file", None))

    orchestrator = Orchestrator()
    try:
        if args.command == "init":
            _init(orchestrator, args)
        elif args.command == "run":
            _run(orchestrator, args)
        elif args.command == "push":
            _push(orchestrator, args)
        elif args.command == "diff":
            exit_code = _diff(orchestrator, args)
            if exit_code:
                parser.exit(exit_code, "The metric increased since its last report.\n")
        elif args.command == "backfill":
            _backfill(orchestrator, args)
        elif args.command == "serve":  # pragma: no cover - integration path
            from .service import run_service

            run_service(host=args.host, port=args.port)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except CherryError as exc:
        parser.exit(1, f"cherry {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _init(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    outcome = orchestrator.run_init(args.path, project_name=args.project_name)
    if not outcome.config_created:
        print(f"{outcome.config_path.name} already exists.")
        return
    print("Your initial setup is done! Now try the command `cherry run` to see your first metrics.")


def _run(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    owners = [owner.strip() for owner in args.owner.split(",") if owner.strip()] if args.owner else None
    outcome = orchestrator.run(owners=owners, metric=args.metric)

    if outcome.filtered:
        _print_occurrences(outcome.occurrences)
    else:
        _print_totals(outcome.totals)

    if args.output is not None:
        orchestrator.export(outcome.config, outcome.occurrences, args.output, ExportFormat(args.format))


def _push(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    outcome = orchestrator.run_push(api_key=args.api_key)
    if outcome.report.failed:
        failed = ", ".join(str(batch.index) for batch in outcome.report.failed)
        print(f"Some batches failed to upload ({failed}); check the errors above.", file=sys.stderr)
    print(f"Your dashboard is available at {DASHBOARD_URL}")


def _diff(orchestrator: Orchestrator, args: argparse.Namespace) -> int:
    outcome = orchestrator.run_diff(
        metric=args.metric,
        api_key=args.api_key,
        error_if_increase=bool(args.error_if_increase),
    )
    remote_diff = outcome.remote_diff
    if remote_diff is not None and remote_diff.added:
        print("Added occurrences:")
        for text in remote_diff.added:
            print(f"  {text}")
    return outcome.exit_code


def _backfill(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    until = datetime.combine(args.until.date(), time.max, tzinfo=UTC) if args.until else None
    outcome = orchestrator.run_backfill(
        api_key=args.api_key,
        since=args.since,
        until=until,
        interval=args.interval,
    )
    failed = sum(len(report.failed) for _, _, report in outcome.reports)
    if failed:
        print(f"{failed} batches failed to upload; check the errors above.", file=sys.stderr)
    print(f"Your dashboard is available at {DASHBOARD_URL}")


def _print_occurrences(occurrences: Sequence[Occurrence]) -> None:
    for occurrence in occurrences:
        print(f"- {occurrence.text}")
    print(f"Total occurrences: {len(occurrences)}")


def _print_totals(totals: dict[str, Number]) -> None:
    if not totals:
        print("No occurrences found.")
        return
    width = max(len(name) for name in totals)
    for name, total in totals.items():
        print(f"{name.ljust(width)}  {total}")


if __name__ == "__main__":
    main(sys.argv[1:])
