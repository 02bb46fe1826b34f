"""Pipeline orchestration for run/push/diff/backfill/init workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from .aggregate import RemoteDiff, aggregate_by_metric, compute_contributions, compute_remote_diff
from .api import CherryClient, ProgressReporter, UploadReport
from .codeowners import Codeowners
from .config import CONFIG_FILENAMES, CherryConfig, load_config
from .errors import ConfigurationError, TransportError, VCSError
from .git import CheckoutSession, Repository
from .logging import get_logger
from .metrics import ToolRunner, find_occurrences
from .models import Contribution, Number, Occurrence
from .reporters import (
    ExportFormat,
    build_json_report,
    build_sarif_report,
    build_sonar_report,
    write_report,
)
from .repo_scanner import RepoScanner

EXIT_METRIC_INCREASED = 3
WORKFLOW_PATH = Path(".github/workflows/cherry_push.yml")
TEMPLATES_DIR = Path(__file__).parent / "templates"

ClientFactory = Callable[[CherryConfig, str], CherryClient]
RepositoryFactory = Callable[[Path], Repository]


@dataclass
class RunOutcome:
    """Occurrences found by a local run."""

    config: CherryConfig
    occurrences: List[Occurrence]
    totals: Dict[str, Number]
    filtered: bool


@dataclass
class PushOutcome:
    """Result of pushing the current commit and its contributions."""

    sha: str
    report: UploadReport
    contributions: List[Contribution]


@dataclass
class DiffOutcome:
    """Result of comparing a metric with its last reported value."""

    status: str
    exit_code: int = 0
    remote_diff: Optional[RemoteDiff] = None


@dataclass
class BackfillOutcome:
    """Uploads performed while walking back through history."""

    reports: List[tuple[str, datetime, UploadReport]] = field(default_factory=list)


@dataclass
class InitOutcome:
    """Files written (or found) by ``cherry init``."""

    config_path: Path
    config_created: bool
    workflow_path: Path
    workflow_created: bool


def _default_client_factory(config: CherryConfig, api_key: str) -> CherryClient:
    return CherryClient(api_key, config.api.base_url)


class Orchestrator:
    """Coordinates metric collection with the git and service collaborators."""

    def __init__(
        self,
        scanner_factory: Callable[[CherryConfig], RepoScanner] | None = None,
        repository_factory: RepositoryFactory | None = None,
        client_factory: ClientFactory | None = None,
        tool_runner: ToolRunner | None = None,
        progress: ProgressReporter | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._scanner_factory = scanner_factory or (lambda config: RepoScanner(config.ignore))
        self._repository_factory = repository_factory or Repository
        self._client_factory = client_factory or _default_client_factory
        self._tool_runner = tool_runner
        self.progress = progress
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Collection

    def load_config(self, path: str | Path | None = None) -> CherryConfig:
        return load_config(Path(path) if path is not None else None)

    def collect(
        self,
        config: CherryConfig,
        *,
        owners: Optional[Sequence[str]] = None,
        metric: Optional[str] = None,
    ) -> List[Occurrence]:
        """Scan the working tree as it is now and evaluate the configured metrics."""
        codeowners = Codeowners.from_root(config.root)
        files = self._scanner_factory(config).scan(config.root, codeowners, owners)
        self.logger.debug("Scanning %d files for %d metrics", len(files), len(config.metrics))
        return find_occurrences(
            config,
            files,
            codeowners,
            metric=metric,
            runner=self._tool_runner,
        )

    def run(
        self,
        path: str | Path | None = None,
        *,
        owners: Optional[Sequence[str]] = None,
        metric: Optional[str] = None,
    ) -> RunOutcome:
        config = self.load_config(path)
        occurrences = self.collect(config, owners=owners, metric=metric)
        if owners:
            wanted = set(owners)
            occurrences = [o for o in occurrences if wanted.intersection(o.owners)]
        if metric:
            occurrences = [o for o in occurrences if o.metric_name == metric]
        return RunOutcome(
            config=config,
            occurrences=occurrences,
            totals=aggregate_by_metric(occurrences),
            filtered=bool(owners or metric),
        )

    def export(
        self,
        config: CherryConfig,
        occurrences: Sequence[Occurrence],
        output: Path,
        export_format: ExportFormat = ExportFormat.JSON,
    ) -> Path:
        if export_format is ExportFormat.SARIF:
            repository = self._repository_factory(config.root)
            content: object = build_sarif_report(
                occurrences,
                repository_url=config.repository_url,
                branch=repository.branch_name(),
                sha=repository.sha(),
            )
        elif export_format is ExportFormat.SONAR:
            content = build_sonar_report(occurrences)
        else:
            content = build_json_report(occurrences)
        target = output if output.is_absolute() else Path.cwd() / output
        write_report(target, content)
        self.logger.info("File has been saved as %s", target)
        return target

    # ------------------------------------------------------------------
    # Service workflows

    def run_push(self, path: str | Path | None = None, *, api_key: Optional[str] = None) -> PushOutcome:
        """Upload the current commit's metrics and the author's contributions."""
        config = self.load_config(path)
        project_name = config.require_project_name()
        client = self._client_factory(config, config.require_api_key(api_key))
        repository = self._repository_factory(config.root)

        with CheckoutSession(repository) as session:
            sha = repository.sha()
            committed_at = repository.commit_date(sha)

            self.logger.info("Computing metrics for current commit...")
            occurrences = self.collect(config)
            report = client.upload(project_name, committed_at, occurrences, self.progress)

            self.logger.info("Computing metrics for previous commit...")
            session.checkout(f"{sha}~")
            previous_occurrences = self.collect(config)

            contributions = compute_contributions(occurrences, previous_occurrences)
            if contributions:
                self.logger.info("Uploading contributions...")
                client.upload_contributions(
                    project_name,
                    repository.author_name(sha),
                    repository.author_email(sha),
                    sha,
                    committed_at,
                    contributions,
                )
            else:
                self.logger.info("No contribution found, skipping")

        return PushOutcome(sha=sha, report=report, contributions=contributions)

    def run_diff(
        self,
        path: str | Path | None = None,
        *,
        metric: str,
        api_key: Optional[str] = None,
        error_if_increase: bool = False,
    ) -> DiffOutcome:
        """Compare ``metric`` with its last reported value on the service."""
        config = self.load_config(path)
        project_name = config.require_project_name()
        client = self._client_factory(config, config.require_api_key(api_key))

        try:
            remote = client.fetch_metric(project_name, metric)
        except TransportError as exc:
            self.logger.error("Unable to fetch the last value of %s: %s", metric, exc)
            return DiffOutcome(status="unavailable")

        last_value = remote.value
        if not _is_integral(last_value):
            self.logger.info("No last value found for this metric, aborting.")
            return DiffOutcome(status="no_baseline")
        self.logger.info("Last metric value: %s", last_value)

        occurrences = self.collect(config, metric=metric)
        remote_diff = compute_remote_diff(metric, last_value, remote.occurrences, occurrences)
        self.logger.info("Current metric value: %s", remote_diff.current_value)
        self.logger.info("Difference: %s", remote_diff.diff)

        exit_code = EXIT_METRIC_INCREASED if remote_diff.increased and error_if_increase else 0
        status = "increased" if remote_diff.increased else "ok"
        return DiffOutcome(status=status, exit_code=exit_code, remote_diff=remote_diff)

    def run_backfill(
        self,
        path: str | Path | None = None,
        *,
        api_key: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        interval: int = 30,
    ) -> BackfillOutcome:
        """Upload metrics for historical commits, one every ``interval`` days."""
        now = self._clock()
        since = _aware(since) if since is not None else now - timedelta(days=90)
        until_date = _aware(until) if until is not None else now
        if since > until_date:
            raise ConfigurationError("The since date must be before the until date")
        if interval < 1:
            raise ConfigurationError("The interval must be at least one day")

        config = self.load_config(path)
        project_name = config.require_project_name()
        client = self._client_factory(config, config.require_api_key(api_key))
        repository = self._repository_factory(config.root)

        outcome = BackfillOutcome()
        with CheckoutSession(repository, require_clean=True) as session:
            branch = session.initial_branch or ""
            sha: Optional[str] = repository.sha() if until is None else repository.commit_sha_at(until_date, branch)
            date = until_date
            while sha and date >= since:
                committed_at = _aware(repository.commit_date(sha))
                if committed_at < since or committed_at > until_date:
                    break
                self.logger.info("On day %s...", committed_at.date().isoformat())

                session.checkout(sha)
                occurrences = self.collect(config)
                report = client.upload(project_name, committed_at, occurrences, self.progress)
                outcome.reports.append((sha, committed_at, report))

                date = committed_at - timedelta(days=interval)
                sha = repository.commit_sha_at(date, branch)
                if not sha:
                    self.logger.info("No commit found before %s, ending backfill", date.date().isoformat())

        return outcome

    # ------------------------------------------------------------------
    # Setup

    def run_init(self, path: str | Path = ".", *, project_name: Optional[str] = None) -> InitOutcome:
        """Create the configuration file and the CI workflow when they are missing."""
        root = Path(path).expanduser().resolve()
        repository = self._repository_factory(root)
        environment = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

        existing = next((root / name for name in CONFIG_FILENAMES if (root / name).exists()), None)
        config_path = existing or root / CONFIG_FILENAMES[0]
        config_created = False
        if existing is None:
            name = project_name or repository.guess_project_name() or root.name
            template = environment.get_template("cherry.yml.j2")
            repository_url = f"https://github.com/{name}" if "/" in name else None
            config_path.write_text(
                template.render(project_name=name, repository_url=repository_url),
                encoding="utf-8",
            )
            config_created = True
            self.logger.info("Configuration created at %s", config_path)
        else:
            self.logger.info("%s already exists.", config_path.name)

        workflow_path = root / WORKFLOW_PATH
        workflow_created = False
        if not workflow_path.exists():
            try:
                branch = repository.branch_name() or "main"
            except VCSError:
                branch = "main"
            workflow_path.parent.mkdir(parents=True, exist_ok=True)
            workflow_path.write_text(
                environment.get_template("cherry_push.yml.j2").render(branch=branch),
                encoding="utf-8",
            )
            workflow_created = True
            self.logger.info("GitHub workflow created at %s", workflow_path)

        return InitOutcome(
            config_path=config_path,
            config_created=config_created,
            workflow_path=workflow_path,
            workflow_created=workflow_created,
        )


def _is_integral(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


__all__ = [
    "BackfillOutcome",
    "DiffOutcome",
    "EXIT_METRIC_INCREASED",
    "InitOutcome",
    "Orchestrator",
    "PushOutcome",
    "RunOutcome",
]
