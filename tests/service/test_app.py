"""Tests for the FastAPI service."""

from __future__ import annotations

from fastapi.testclient import TestClient

from cherry.service import create_app


def _client() -> TestClient:
    return TestClient(create_app())


def test_health() -> None:
    response = _client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_run_endpoint(repo_builder) -> None:
    repo_builder.write(
        {
            ".cherry.yml": """
            metrics:
              - name: TODO
                pattern: TODO
                include: "**/*.py"
            """,
            "app.py": "# TODO first\n# TODO second\n",
        }
    )

    response = _client().post("/run", json={"path": str(repo_builder.path()), "metric": "TODO"})

    assert response.status_code == 200
    body = response.json()
    assert body["totals"] == {"TODO": 2.0}
    assert [occurrence["text"] for occurrence in body["occurrences"]] == ["app.py:1", "app.py:2"]


def test_run_endpoint_without_config(tmp_path) -> None:
    response = _client().post("/run", json={"path": str(tmp_path)})

    assert response.status_code == 400
    assert "No .cherry.yml" in response.json()["detail"]


def test_run_endpoint_reports_failing_metric(repo_builder) -> None:
    repo_builder.write(
        {
            ".cherry.yml": """
            metrics:
              - name: Broken
                pattern: '(?P<n>\\d+)'
                value_group: missing
            """,
            "app.py": "x = 1\n",
        }
    )

    response = _client().post("/run", json={"path": str(repo_builder.path())})

    assert response.status_code == 422
    assert response.json()["metric"] == "Broken"
