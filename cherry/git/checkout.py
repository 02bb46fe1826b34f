"""Scoped, single-owner access to the working tree for historical checkouts."""

from __future__ import annotations

import threading
from types import TracebackType
from typing import Optional, Type

from ..errors import VCSError
from ..logging import get_logger
from .repository import Repository

_LOGGER = get_logger("git.checkout")


class CheckoutSession:
    """Holds the working tree while a workflow checks out other commits.

    Only one session may be active per process. Leaving the ``with`` block
    always checks the initial branch out again, including when an exception
    is propagating.
    """

    _lock = threading.Lock()

    def __init__(self, repository: Repository, *, require_clean: bool = False) -> None:
        self.repository = repository
        self.require_clean = require_clean
        self.initial_branch: Optional[str] = None
        self._held = False

    def __enter__(self) -> "CheckoutSession":
        if not self._lock.acquire(blocking=False):
            raise VCSError("Another workflow is already checking out commits in this process")
        try:
            branch = self.repository.branch_name()
            if not branch:
                raise VCSError("Not on a branch, checkout a branch before running this command.")
            if self.require_clean and self.repository.uncommitted_files():
                raise VCSError("Please commit your changes before running this command")
        except BaseException:
            self._lock.release()
            raise
        self.initial_branch = branch
        self._held = True
        return self

    def checkout(self, ref: str) -> None:
        if not self._held:
            raise VCSError("Checkout session is not active")
        _LOGGER.debug("Checking out %s", ref)
        self.repository.checkout(ref)

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        try:
            if self.initial_branch:
                _LOGGER.debug("Restoring branch %s", self.initial_branch)
                self.repository.checkout(self.initial_branch)
        finally:
            self._held = False
            self._lock.release()


__all__ = ["CheckoutSession"]
