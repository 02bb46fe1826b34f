"""Glob matching shared by ignore rules, metric includes and CODEOWNERS.

Patterns use gitignore (``gitwildmatch``) semantics through ``pathspec``. On
top of those, ``{a,b}`` alternatives are expanded into one pattern each, as
metric include globs such as ``**/*.{ts,tsx}`` rely on them.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Sequence

import pathspec

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """Return ``pattern`` with every ``{a,b}`` group expanded."""
    match = _BRACES.search(pattern)
    if match is None:
        return [pattern]
    expanded: List[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(pattern[: match.start()] + option + pattern[match.end() :]))
    return expanded


def build_spec(patterns: Sequence[str]) -> pathspec.PathSpec:
    """Compile ordered gitignore-style lines; later lines override earlier ones."""
    lines: List[str] = []
    for pattern in patterns:
        lines.extend(expand_braces(pattern.strip()))
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


@lru_cache(maxsize=None)
def compile_glob(pattern: str) -> pathspec.PathSpec:
    return build_spec([pattern])


def matches_glob(path: str, pattern: str) -> bool:
    if not pattern.strip():
        return False
    return compile_glob(pattern).match_file(path)


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(matches_glob(path, pattern) for pattern in patterns)


__all__ = ["build_spec", "compile_glob", "expand_braces", "matches_any", "matches_glob"]
