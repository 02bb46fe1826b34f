"""Shared evaluation context for metric rules."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..codeowners import Codeowners
from ..config import CherryConfig
from ..models import SourceFile

ToolRunner = Callable[..., str]


def default_tool_runner(args: Sequence[str], *, cwd: Path, ok_codes: Sequence[int] = (0,)) -> str:
    """Run an external analysis tool and return its stdout.

    Any exit status outside ``ok_codes`` is a failure. Tools such as
    ``npm outdated`` exit with 1 to signal findings, so their evaluators pass
    ``(0, 1)``.
    """
    try:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=False,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError(f"Unable to locate '{args[0]}'. Is it installed?") from exc
    if completed.returncode not in ok_codes:
        message = completed.stderr.strip() or completed.stdout.strip() or str(completed.returncode)
        raise RuntimeError(f"'{' '.join(args)}' failed with exit code {completed.returncode}: {message}")
    return completed.stdout


@dataclass
class EvaluationContext:
    """Everything a rule evaluator needs besides its metric definition."""

    config: CherryConfig
    files: List[SourceFile]
    codeowners: Codeowners
    runner: ToolRunner = default_tool_runner
    _by_path: Dict[str, SourceFile] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_path = {file.path: file for file in self.files}

    @property
    def root(self) -> Path:
        return self.config.root

    def file(self, path: str) -> Optional[SourceFile]:
        return self._by_path.get(path)

    def owners_for(self, path: str) -> tuple[str, ...]:
        known = self._by_path.get(path)
        if known is not None:
            return known.owners
        return self.codeowners.owners_for(path)

    def owners_for_many(self, paths: Iterable[str]) -> tuple[str, ...]:
        return self.codeowners.owners_for_many(paths)

    def url_for(self, path: str, line: Optional[int] = None) -> Optional[str]:
        base = self.config.repository_url
        if not base:
            return None
        url = f"{base}/blob/HEAD/{path}"
        if line is not None:
            url += f"#L{line}"
        return url


__all__ = ["EvaluationContext", "ToolRunner", "default_tool_runner"]
