"""CODEOWNERS parsing and owner resolution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .globs import matches_glob
from .logging import get_logger

CODEOWNERS_LOCATIONS = (
    ".github/CODEOWNERS",
    "CODEOWNERS",
    "docs/CODEOWNERS",
    ".gitlab/CODEOWNERS",
)

_LOGGER = get_logger("codeowners")


@dataclass(frozen=True)
class OwnershipRule:
    """Associates a CODEOWNERS pattern with the owners it assigns."""

    pattern: str
    owners: Tuple[str, ...]

    def matches(self, path: str) -> bool:
        return matches_glob(path, self.pattern)


def parse_codeowners(text: str) -> List[OwnershipRule]:
    """Return ownership rules in declaration order."""
    rules: List[OwnershipRule] = []
    for raw_line in text.splitlines():
        line = raw_line.split(" #", 1)[0].strip()
        if not line or line.startswith("#"):
            continue
        pattern, *owners = line.split()
        rules.append(OwnershipRule(pattern=pattern, owners=tuple(owners)))
    return rules


class Codeowners:
    """Resolves file owners with last-matching-rule-wins precedence.

    Results are memoized per path, so a resolver should live for a single
    scan of the working tree and be rebuilt after a checkout.
    """

    def __init__(self, rules: Optional[Iterable[OwnershipRule | Tuple[str, Sequence[str]]]] = None) -> None:
        self._rules: List[OwnershipRule] = []
        for rule in rules or []:
            if isinstance(rule, OwnershipRule):
                self._rules.append(rule)
            else:
                pattern, owners = rule
                self._rules.append(OwnershipRule(pattern=pattern, owners=tuple(owners)))
        self._cache: Dict[str, Tuple[str, ...]] = {}

    @classmethod
    def from_root(cls, root: Path) -> "Codeowners":
        for location in CODEOWNERS_LOCATIONS:
            candidate = root / location
            if candidate.is_file():
                _LOGGER.debug("Loading ownership rules from %s", location)
                return cls(parse_codeowners(candidate.read_text(encoding="utf-8")))
        return cls()

    @property
    def rules(self) -> Sequence[OwnershipRule]:
        return tuple(self._rules)

    def owners_for(self, path: str) -> Tuple[str, ...]:
        normalized = path.replace("\\", "/").lstrip("/")
        cached = self._cache.get(normalized)
        if cached is not None:
            return cached

        owners: Tuple[str, ...] = ()
        for rule in self._rules:
            if rule.matches(normalized):
                owners = rule.owners
        self._cache[normalized] = owners
        return owners

    def owners_for_many(self, paths: Iterable[str]) -> Tuple[str, ...]:
        """Return the ordered union of owners across ``paths``."""
        seen: Dict[str, None] = {}
        for path in paths:
            for owner in self.owners_for(path):
                seen.setdefault(owner, None)
        return tuple(seen)


__all__ = ["CODEOWNERS_LOCATIONS", "Codeowners", "OwnershipRule", "parse_codeowners"]
