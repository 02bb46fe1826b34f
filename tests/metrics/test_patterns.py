"""Tests for pattern metrics."""

from __future__ import annotations

from cherry.aggregate import aggregate_by_metric
from cherry.metrics import find_occurrences
from cherry.codeowners import Codeowners


def _evaluate(repo_builder, config_text: str):
    config = repo_builder.config(config_text)
    files = repo_builder.scan(config)
    return find_occurrences(config, files, Codeowners.from_root(repo_builder.path()))


def test_todo_occurrences_per_line(repo_builder) -> None:
    repo_builder.write(
        {
            "file.js": """
            // TODO: rename
            const a = 1;
            // TODO: remove
            """,
            "notes.md": "TODO but not javascript\n",
        }
    )

    occurrences = _evaluate(
        repo_builder,
        """
        metrics:
          - name: TODO
            pattern: TODO
            include: "**/*.js"
        """,
    )

    assert [occurrence.text for occurrence in occurrences] == ["file.js:1", "file.js:3"]
    assert aggregate_by_metric(occurrences) == {"TODO": 2}


def test_urls_and_owners_are_attached(repo_builder) -> None:
    repo_builder.write(
        {
            ".github/CODEOWNERS": "src/** @core\n",
            "src/app.py": "x = 1  # FIXME\n",
        }
    )

    occurrences = _evaluate(
        repo_builder,
        """
        project_name: acme/webapp
        metrics:
          - name: FIXME
            pattern: FIXME
            include: "src/**"
        """,
    )

    assert len(occurrences) == 1
    occurrence = occurrences[0]
    assert occurrence.text == "src/app.py:1"
    assert occurrence.owners == ("@core",)
    assert occurrence.url == "https://github.com/acme/webapp/blob/HEAD/src/app.py#L1"


def test_exclude_globs_and_ignore_case(repo_builder) -> None:
    repo_builder.write(
        {
            "src/a.ts": "// todo lowercase\n",
            "src/a.test.ts": "// TODO in a test\n",
        }
    )

    occurrences = _evaluate(
        repo_builder,
        """
        metrics:
          - name: TODO
            pattern: TODO
            ignore_case: true
            include: ["src/**"]
            exclude: ["**/*.test.ts"]
        """,
    )

    assert [occurrence.text for occurrence in occurrences] == ["src/a.ts:1"]


def test_multiline_patterns_report_starting_line(repo_builder) -> None:
    repo_builder.write(
        {
            "styles.css": """
            .a {
              color: red;
            }
            .b {
              color: blue;
              color: green;
            }
            """,
        }
    )

    occurrences = _evaluate(
        repo_builder,
        r"""
        metrics:
          - name: Colors
            pattern: '\{\s+color: \w+;\s+color'
            multiline: true
            include: "**/*.css"
        """,
    )

    assert [occurrence.text for occurrence in occurrences] == ["styles.css:4"]


def test_group_by_file_counts_matches(repo_builder) -> None:
    repo_builder.write(
        {
            "a.py": "# TODO one\n# TODO two\n",
            "b.py": "# TODO three\n",
            "c.py": "print('clean')\n",
        }
    )

    occurrences = _evaluate(
        repo_builder,
        """
        metrics:
          - name: TODO
            pattern: TODO
            group_by_file: true
            include: "**/*.py"
        """,
    )

    assert [(occurrence.text, occurrence.value) for occurrence in occurrences] == [
        ("a.py", 2),
        ("b.py", 1),
    ]
    assert aggregate_by_metric(occurrences) == {"TODO": 3}


def test_value_group_extracts_numbers(repo_builder) -> None:
    repo_builder.write(
        {
            "a.py": "# noqa-count: 3\n# noqa-count: 2.5\n# noqa-count: many\n",
        }
    )

    occurrences = _evaluate(
        repo_builder,
        r"""
        metrics:
          - name: Suppressions
            pattern: 'noqa-count: (\S+)'
            value_group: 1
            include: "**/*.py"
        """,
    )

    assert [occurrence.value for occurrence in occurrences] == [3, 2.5, None]
    assert aggregate_by_metric(occurrences) == {"Suppressions": 6.5}


def test_group_by_file_sums_captured_values(repo_builder) -> None:
    repo_builder.write(
        {
            "a.py": "# skipped: 3\n# skipped: 4\n",
            "b.py": "# skipped: lots\n",
        }
    )

    occurrences = _evaluate(
        repo_builder,
        r"""
        metrics:
          - name: Skipped
            pattern: 'skipped: (\S+)'
            value_group: 1
            group_by_file: true
            include: "**/*.py"
        """,
    )

    assert [(occurrence.text, occurrence.value) for occurrence in occurrences] == [
        ("a.py", 7),
        ("b.py", 1),
    ]
