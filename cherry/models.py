"""Core data models shared across cherry components."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

Number = Union[int, float]


@dataclass(frozen=True)
class Occurrence:
    """One concrete match of a metric at a location."""

    metric_name: str
    text: str
    value: Optional[Number] = None
    url: Optional[str] = None
    owners: Tuple[str, ...] = ()

    @property
    def weight(self) -> Number:
        """Numeric contribution of this occurrence to its metric total."""
        if isinstance(self.value, (int, float)) and not isinstance(self.value, bool):
            return self.value
        return 1

    def to_payload(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "value": self.value,
            "url": self.url,
            "owners": list(self.owners),
        }


@dataclass(frozen=True)
class Contribution:
    """Signed change in a metric's occurrence count between two snapshots."""

    metric_name: str
    diff: int


@dataclass
class SourceFile:
    """A project file relative to the root, with lazily read text."""

    root: Path
    path: str
    owners: Tuple[str, ...] = field(default=())

    @property
    def absolute_path(self) -> Path:
        return self.root / self.path

    @cached_property
    def content(self) -> str:
        return self.absolute_path.read_text(encoding="utf-8", errors="replace")

    @property
    def lines(self) -> list[str]:
        return self.content.splitlines()
