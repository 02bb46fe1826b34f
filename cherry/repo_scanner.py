"""Project file enumeration for metric scans."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import pathspec

from .codeowners import Codeowners
from .errors import ConfigurationError
from .globs import build_spec
from .logging import get_logger
from .models import SourceFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "bower_components",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
    ".next",
    "dist",
    "build",
    "coverage",
    "vendor",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_BINARY_SUFFIXES = {
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".svgz",
    ".pdf", ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp3", ".mp4", ".mov", ".avi", ".webm", ".wav", ".ogg",
    ".exe", ".dll", ".so", ".dylib", ".o", ".a", ".class", ".pyc", ".pyo",
    ".sqlite", ".db", ".bin",
}

_SNIFF_BYTES = 8192

_LOGGER = get_logger("scanner")


def _parse_gitignore(path: Path) -> List[str]:
    if not path.exists():
        return []

    lines: List[str] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        lines.append(line)
    return lines


def _load_ignore_spec(root: Path, extra_patterns: Sequence[str]) -> pathspec.PathSpec:
    extra = [pattern for pattern in extra_patterns if pattern.strip()]
    return build_spec(_parse_gitignore(root / ".gitignore") + extra)


def _should_ignore(rel_path: str, is_dir: bool, spec: pathspec.PathSpec) -> bool:
    # Directory-only patterns ("build/") need a trailing separator to match the directory itself.
    return spec.match_file(f"{rel_path}/" if is_dir else rel_path)


def _iter_files(root: Path, spec: pathspec.PathSpec) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        filtered_dirs = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, spec):
                continue
            filtered_dirs.append(name)
        dirnames[:] = filtered_dirs

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, spec):
                continue
            if not _is_text_file(current_dir / filename):
                continue
            yield rel_path


def _is_text_file(path: Path) -> bool:
    if path.suffix.lower() in _BINARY_SUFFIXES:
        return False
    if path.is_symlink() and not path.exists():
        return False
    try:
        with path.open("rb") as handle:
            chunk = handle.read(_SNIFF_BYTES)
    except OSError:
        return False
    return b"\0" not in chunk


class RepoScanner:
    """Walks the project to produce the candidate file set for metrics."""

    def __init__(self, ignore: Sequence[str] = ()) -> None:
        self._ignore = list(ignore)

    def scan(
        self,
        root: Path | str,
        codeowners: Optional[Codeowners] = None,
        owners: Optional[Sequence[str]] = None,
    ) -> List[SourceFile]:
        """Return sorted, duplicate-free project files with their owners resolved.

        When ``owners`` is given, only files owned by at least one of them are kept.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise ConfigurationError(f"Project root not found: {root}")
        if not root_path.is_dir():
            raise ConfigurationError(f"Project root is not a directory: {root}")

        codeowners = codeowners or Codeowners.from_root(root_path)
        owner_filter = set(owners) if owners else None
        spec = _load_ignore_spec(root_path, self._ignore)

        files: List[SourceFile] = []
        seen: set[str] = set()
        for rel_path in _iter_files(root_path, spec):
            if rel_path in seen:
                continue
            seen.add(rel_path)
            file_owners = codeowners.owners_for(rel_path)
            if owner_filter is not None and not owner_filter.intersection(file_owners):
                continue
            files.append(SourceFile(root=root_path, path=rel_path, owners=file_owners))

        files.sort(key=lambda file: file.path)
        _LOGGER.debug("Scanner discovered %d files under %s", len(files), root_path)
        return files
