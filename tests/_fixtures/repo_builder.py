"""Helper utilities for constructing temporary projects in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List, Mapping

from cherry.codeowners import Codeowners
from cherry.config import CherryConfig, load_config
from cherry.models import SourceFile
from cherry.repo_scanner import RepoScanner


class RepoBuilder:
    """Utility for writing files into a throwaway project and rescanning it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def config(self, content: str) -> CherryConfig:
        """Write `.cherry.yml` and return the loaded configuration."""
        self.write({".cherry.yml": content})
        return load_config(self.root)

    def scan(self, config: CherryConfig | None = None) -> List[SourceFile]:
        """Return a fresh file set for the project."""
        ignore = config.ignore if config is not None else ()
        return RepoScanner(ignore).scan(self.root, Codeowners.from_root(self.root))

    def path(self) -> Path:
        """Return the project root path."""
        return self.root


__all__ = ["RepoBuilder"]
