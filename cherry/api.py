"""Client for the remote metrics service."""

from __future__ import annotations

import json
import uuid as uuid_lib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from .aggregate import build_metrics_payload
from .config import DEFAULT_API_URL
from .errors import ConfigurationError, TransportError
from .logging import get_logger
from .models import Contribution, Number, Occurrence

UPLOAD_BATCH_SIZE = 1000

_LOGGER = get_logger("api")


@dataclass
class ApiRequest:
    """A single HTTP call to the metrics service."""

    method: str
    url: str
    params: Dict[str, str] = field(default_factory=dict)
    payload: Optional[Dict[str, Any]] = None
    timeout: float = 60.0


HttpTransport = Callable[[ApiRequest], Any]


class ProgressReporter(Protocol):
    """Receives batch lifecycle notifications during an upload."""

    def start(self, label: str) -> None: ...

    def succeed(self, label: str) -> None: ...

    def fail(self, label: str, error: Exception) -> None: ...


class LogProgress:
    """Reports upload progress through the cherry logger."""

    def __init__(self, logger=None) -> None:
        self._logger = logger or _LOGGER

    def start(self, label: str) -> None:
        self._logger.debug("%s...", label)

    def succeed(self, label: str) -> None:
        self._logger.info("  %s: done", label)

    def fail(self, label: str, error: Exception) -> None:
        self._logger.error("  %s: %s", label, error)


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one upload batch."""

    index: int
    size: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UploadReport:
    """Outcome of an upload, one entry per dispatched batch."""

    uuid: str
    occurrence_count: int
    batches: List[BatchResult] = field(default_factory=list)

    @property
    def failed(self) -> List[BatchResult]:
        return [batch for batch in self.batches if not batch.ok]


@dataclass(frozen=True)
class RemoteMetric:
    """Last reported state of a metric on the service."""

    value: Optional[Number]
    occurrences: Sequence[str]


def format_date(value: datetime) -> str:
    """Render ``value`` as a UTC ISO-8601 timestamp with millisecond precision."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def chunk(items: Sequence[Occurrence], size: int) -> List[Sequence[Occurrence]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class CherryClient:
    """Pushes metrics and contributions to the service and reads metric history."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        *,
        timeout: float = 60.0,
        batch_size: int = UPLOAD_BATCH_SIZE,
        transport: HttpTransport | None = None,
        uuid_factory: Callable[[], str] | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.batch_size = batch_size
        self._transport = transport or self._urllib_transport
        self._uuid_factory = uuid_factory or (lambda: str(uuid_lib.uuid4()))

    def push(
        self,
        project_name: str,
        date: datetime,
        uuid: str,
        occurrences: Sequence[Occurrence],
    ) -> Any:
        payload = {
            "api_key": self.api_key,
            "project_name": project_name,
            "date": format_date(date),
            "uuid": uuid,
            "metrics": build_metrics_payload(occurrences),
        }
        return self._request("POST", "/push", payload=payload)

    def upload(
        self,
        project_name: Optional[str],
        date: datetime,
        occurrences: Sequence[Occurrence],
        progress: ProgressReporter | None = None,
    ) -> UploadReport:
        """Push ``occurrences`` in sequential batches sharing one upload uuid.

        A failing batch is reported and recorded; the remaining batches are
        still sent. Callers inspect ``UploadReport.failed``.
        """
        if not project_name:
            raise ConfigurationError(
                "Specify a project_name in your .cherry.yml configuration file before pushing metrics"
            )
        progress = progress or LogProgress()
        report = UploadReport(uuid=self._uuid_factory(), occurrence_count=len(occurrences))
        batches = chunk(list(occurrences), self.batch_size)

        _LOGGER.info("Uploading %d occurrences in %d batches:", len(occurrences), len(batches))
        for index, batch in enumerate(batches, start=1):
            label = f"Batch {index} out of {len(batches)}"
            progress.start(label)
            try:
                self.push(project_name, date, report.uuid, batch)
            except TransportError as exc:
                progress.fail(label, exc)
                report.batches.append(BatchResult(index=index, size=len(batch), error=str(exc)))
                continue
            progress.succeed(label)
            report.batches.append(BatchResult(index=index, size=len(batch)))
        return report

    def upload_contributions(
        self,
        project_name: str,
        author_name: str,
        author_email: str,
        sha: str,
        date: datetime,
        contributions: Sequence[Contribution],
    ) -> Any:
        payload = {
            "project_name": project_name,
            "author_name": author_name,
            "author_email": author_email,
            "commit_sha": sha,
            "commit_date": format_date(date),
            "contributions": [
                {"metric_name": contribution.metric_name, "diff": contribution.diff}
                for contribution in contributions
            ],
        }
        return self._request("POST", "/contributions", params={"api_key": self.api_key}, payload=payload)

    def fetch_metric(self, project_name: str, metric_name: str) -> RemoteMetric:
        data = self._request(
            "GET",
            "/metrics",
            params={"project_name": project_name, "metric_name": metric_name, "api_key": self.api_key},
        )
        if not isinstance(data, Mapping):
            raise TransportError("Unexpected response from the metrics service")
        value = data.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            value = None
        texts: List[str] = []
        for entry in data.get("occurrences") or []:
            if isinstance(entry, str):
                texts.append(entry)
            elif isinstance(entry, Mapping) and isinstance(entry.get("text"), str):
                texts.append(entry["text"])
        return RemoteMetric(value=value, occurrences=tuple(texts))

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        request = ApiRequest(
            method=method,
            url=f"{self.base_url}{path}",
            params=params or {},
            payload=payload,
            timeout=self.timeout,
        )
        _LOGGER.debug("%s %s", method, request.url)
        return self._transport(request)

    @staticmethod
    def _urllib_transport(request: ApiRequest) -> Any:
        url = request.url
        if request.params:
            url = f"{url}?{urlencode(request.params)}"
        data = None
        headers = {"Accept": "application/json"}
        if request.payload is not None:
            data = json.dumps(request.payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        http_request = Request(url, data=data, headers=headers, method=request.method)
        try:
            with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            raise TransportError(
                f"Error while calling the metrics service {exc.code}: {_error_detail(exc)}",
                status=exc.code,
            ) from exc
        except URLError as exc:
            raise TransportError(f"Unable to reach the metrics service: {exc.reason}") from exc

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise TransportError("The metrics service returned invalid JSON") from exc


def _error_detail(exc: HTTPError) -> str:
    try:
        body = exc.read().decode("utf-8", errors="ignore")
    except OSError:
        body = ""
    try:
        parsed = json.loads(body) if body else None
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict) and parsed.get("error"):
        return str(parsed["error"])
    return exc.reason if isinstance(exc.reason, str) else str(exc.reason)


__all__ = [
    "ApiRequest",
    "BatchResult",
    "CherryClient",
    "LogProgress",
    "ProgressReporter",
    "RemoteMetric",
    "UPLOAD_BATCH_SIZE",
    "UploadReport",
    "format_date",
]
