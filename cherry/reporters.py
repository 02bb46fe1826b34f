"""Export formats built from occurrences (JSON, SARIF 2.1.0, Sonar generic issues)."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import __version__
from .aggregate import build_metrics_payload, group_by_metric
from .models import Occurrence

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
INFORMATION_URI = "https://github.com/cherrypush/cherrypush.com"


class ExportFormat(str, Enum):
    JSON = "json"
    SARIF = "sarif"
    SONAR = "sonar"


def _location(occurrence: Occurrence) -> Tuple[str, int]:
    path, _, rest = occurrence.text.partition(":")
    try:
        line = int(rest.split(":", 1)[0])
    except ValueError:
        line = 1
    return path, line if line > 0 else 1


def build_json_report(occurrences: Sequence[Occurrence]) -> List[Dict[str, object]]:
    return build_metrics_payload(occurrences)


def build_sarif_report(
    occurrences: Sequence[Occurrence],
    *,
    repository_url: Optional[str],
    branch: Optional[str],
    sha: Optional[str],
) -> Dict[str, Any]:
    rules = [{"id": name} for name in group_by_metric(occurrences)]
    results = []
    for occurrence in occurrences:
        path, line = _location(occurrence)
        results.append(
            {
                "ruleId": occurrence.metric_name,
                "level": "none",
                "message": {"text": f"{occurrence.metric_name} at {occurrence.text}"},
                "locations": [
                    {
                        "physicalLocation": {
                            "artifactLocation": {"uri": path},
                            "region": {"startLine": line},
                        }
                    }
                ],
            }
        )

    return {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "versionControlProvenance": [
                    {"repositoryUri": repository_url, "revisionId": sha, "branch": branch}
                ],
                "tool": {
                    "driver": {
                        "name": "cherry",
                        "version": __version__,
                        "informationUri": INFORMATION_URI,
                        "rules": rules,
                    }
                },
                "results": results,
            }
        ],
    }


def build_sonar_report(occurrences: Sequence[Occurrence]) -> Dict[str, Any]:
    issues = []
    for occurrence in occurrences:
        path, line = _location(occurrence)
        issues.append(
            {
                "engineId": "cherry",
                "ruleId": occurrence.metric_name,
                "type": "CODE_SMELL",
                "severity": "INFO",
                "primaryLocation": {
                    "message": f"{occurrence.metric_name} at {occurrence.text}",
                    "filePath": path,
                    "textRange": {"startLine": line},
                },
            }
        )
    return {"issues": issues}


def write_report(path: Path, content: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2) + "\n", encoding="utf-8")
    return path


__all__ = [
    "ExportFormat",
    "build_json_report",
    "build_sarif_report",
    "build_sonar_report",
    "write_report",
]
