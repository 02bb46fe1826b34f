"""Tests for cherry.codeowners."""

from __future__ import annotations

from pathlib import Path

from cherry.codeowners import Codeowners, OwnershipRule, parse_codeowners


def test_last_matching_rule_wins() -> None:
    codeowners = Codeowners([("*.js", ["@frontend"]), ("src/**", ["@core"])])

    assert codeowners.owners_for("src/x.js") == ("@core",)
    assert codeowners.owners_for("lib/x.js") == ("@frontend",)
    assert codeowners.owners_for("README.md") == ()


def test_parse_codeowners_skips_comments_and_blank_lines() -> None:
    rules = parse_codeowners(
        """
# Global owners
*       @org/everyone

/docs/  @org/writers @alice # docs team
src/api/**  @org/backend
"""
    )

    assert rules == [
        OwnershipRule(pattern="*", owners=("@org/everyone",)),
        OwnershipRule(pattern="/docs/", owners=("@org/writers", "@alice")),
        OwnershipRule(pattern="src/api/**", owners=("@org/backend",)),
    ]


def test_rule_without_owners_clears_ownership() -> None:
    codeowners = Codeowners(parse_codeowners("* @org/everyone\ngenerated/\n"))

    assert codeowners.owners_for("app.py") == ("@org/everyone",)
    assert codeowners.owners_for("generated/schema.py") == ()


def test_anchored_directory_rule() -> None:
    codeowners = Codeowners([("/docs/", ["@writers"])])

    assert codeowners.owners_for("docs/guide.md") == ("@writers",)
    assert codeowners.owners_for("src/docs/guide.md") == ()


def test_owners_for_many_returns_ordered_union() -> None:
    codeowners = Codeowners([("a/**", ["@a", "@shared"]), ("b/**", ["@shared", "@b"])])

    assert codeowners.owners_for_many(["a/x.py", "b/y.py", "c/z.py"]) == ("@a", "@shared", "@b")


def test_from_root_prefers_github_location(tmp_path: Path) -> None:
    (tmp_path / ".github").mkdir()
    (tmp_path / ".github" / "CODEOWNERS").write_text("* @github\n", encoding="utf-8")
    (tmp_path / "CODEOWNERS").write_text("* @root\n", encoding="utf-8")

    assert Codeowners.from_root(tmp_path).owners_for("file.py") == ("@github",)


def test_from_root_without_file_has_no_rules(tmp_path: Path) -> None:
    codeowners = Codeowners.from_root(tmp_path)

    assert codeowners.rules == ()
    assert codeowners.owners_for("file.py") == ()


class _CountingRule(OwnershipRule):
    evaluated: list = []

    def matches(self, path: str) -> bool:
        _CountingRule.evaluated.append(path)
        return super().matches(path)


def test_owner_lookups_are_memoized_per_path() -> None:
    _CountingRule.evaluated.clear()
    codeowners = Codeowners(
        [_CountingRule(pattern="*", owners=("@all",)), _CountingRule(pattern="src/**", owners=("@core",))]
    )

    assert codeowners.owners_for("src/app.py") == ("@core",)
    assert codeowners.owners_for("src/app.py") == ("@core",)
    assert codeowners.owners_for("/src/app.py") == ("@core",)
    assert _CountingRule.evaluated == ["src/app.py", "src/app.py"]

    codeowners.owners_for("README.md")
    assert len(_CountingRule.evaluated) == 4
