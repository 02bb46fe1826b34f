"""Git queries and checkouts used by the push and backfill workflows."""

from __future__ import annotations

import re
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import VCSError

_REMOTE_PROJECT = re.compile(r"[:/]([\w.-]+/[\w.-]+?)(?:\.git)?/?$")


class Repository:
    """Thin wrapper over the git CLI rooted at a working tree."""

    def __init__(self, root: Path | str, runner: Callable[..., str] | None = None) -> None:
        self.root = Path(root)
        self._runner = runner or self._default_runner

    def branch_name(self) -> Optional[str]:
        """Return the current branch, or ``None`` on a detached HEAD."""
        output = self._git("branch", "--show-current").strip()
        return output or None

    def sha(self, ref: str = "HEAD") -> str:
        return self._git("rev-parse", ref).strip()

    def commit_date(self, sha: str) -> datetime:
        output = self._git("show", "-s", "--format=%cI", sha).strip()
        try:
            return datetime.fromisoformat(output)
        except ValueError as exc:
            raise VCSError(f"Unexpected commit date for {sha}: {output!r}") from exc

    def author_name(self, sha: str) -> str:
        return self._git("show", "-s", "--format=%an", sha).strip()

    def author_email(self, sha: str) -> str:
        return self._git("show", "-s", "--format=%ae", sha).strip()

    def uncommitted_files(self) -> List[str]:
        output = self._git("status", "--porcelain")
        return [line[3:].strip() for line in output.splitlines() if line.strip()]

    def commit_sha_at(self, date: datetime, branch: str) -> Optional[str]:
        """Return the last commit on ``branch`` made before ``date``."""
        output = self._git("rev-list", "-n", "1", f"--before={date.isoformat()}", branch).strip()
        return output or None

    def checkout(self, ref: str) -> None:
        self._git("checkout", "-q", ref)

    def remote_url(self, remote: str = "origin") -> Optional[str]:
        try:
            return self._git("remote", "get-url", remote).strip() or None
        except VCSError:
            return None

    def guess_project_name(self) -> Optional[str]:
        """Derive ``owner/repo`` from the origin remote URL."""
        url = self.remote_url()
        if not url:
            return None
        match = _REMOTE_PROJECT.search(url)
        return match.group(1) if match else None

    def _git(self, *args: str) -> str:
        command = ["git", *args]
        try:
            return self._runner(command, cwd=self.root, capture_output=True)
        except subprocess.CalledProcessError as exc:
            message = (exc.stderr or exc.stdout or "").strip() or f"exit code {exc.returncode}"
            raise VCSError(f"`{' '.join(command)}` failed: {message}") from exc
        except FileNotFoundError as exc:
            raise VCSError("Unable to locate the git executable") from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


__all__ = ["Repository"]
