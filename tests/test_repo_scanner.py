"""Tests for cherry.repo_scanner."""

from __future__ import annotations

import pytest

from cherry.codeowners import Codeowners
from cherry.errors import ConfigurationError
from cherry.repo_scanner import RepoScanner


def test_scanner_respects_gitignore_and_config_ignore(repo_builder) -> None:
    repo_builder.write(
        {
            ".gitignore": "*.log\ntmp/\n!keep.log\n",
            "src/app.js": "console.log('hi')\n",
            "src/app.min.js": "minified\n",
            "debug.log": "noise\n",
            "keep.log": "kept\n",
            "tmp/cache.txt": "cache\n",
            "node_modules/lib/index.js": "module.exports = {}\n",
        }
    )

    files = RepoScanner(["*.min.js"]).scan(repo_builder.path())
    paths = [file.path for file in files]

    assert paths == [".gitignore", "keep.log", "src/app.js"]


def test_scanner_skips_binary_files(repo_builder) -> None:
    repo_builder.write({"notes.txt": "hello\n"})
    (repo_builder.path() / "image.png").write_bytes(b"\x89PNG\r\n")
    (repo_builder.path() / "blob.dat").write_bytes(b"abc\x00def")

    paths = [file.path for file in RepoScanner().scan(repo_builder.path())]

    assert paths == ["notes.txt"]


def test_scanner_resolves_and_filters_owners(repo_builder) -> None:
    repo_builder.write(
        {
            "CODEOWNERS": "*.js @frontend\nsrc/** @core\n",
            "src/x.js": "x\n",
            "lib/y.js": "y\n",
            "lib/z.py": "z\n",
        }
    )
    codeowners = Codeowners.from_root(repo_builder.path())

    files = RepoScanner().scan(repo_builder.path(), codeowners)
    owners = {file.path: file.owners for file in files}
    assert owners["src/x.js"] == ("@core",)
    assert owners["lib/y.js"] == ("@frontend",)
    assert owners["lib/z.py"] == ()

    filtered = RepoScanner().scan(repo_builder.path(), codeowners, owners=["@frontend"])
    assert [file.path for file in filtered] == ["lib/y.js"]


def test_scanner_results_are_sorted_and_unique(repo_builder) -> None:
    repo_builder.write({"b.txt": "b\n", "a/z.txt": "z\n", "a.txt": "a\n"})

    paths = [file.path for file in RepoScanner().scan(repo_builder.path())]

    assert paths == sorted(set(paths))
    assert paths == ["a.txt", "a/z.txt", "b.txt"]


def test_missing_root_raises(tmp_path) -> None:
    with pytest.raises(ConfigurationError, match="Project root not found"):
        RepoScanner().scan(tmp_path / "missing")
