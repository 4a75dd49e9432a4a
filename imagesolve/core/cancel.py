"""Cancellation and deadline signal shared between a caller and resolve calls."""

import threading
import time
from typing import Optional

from .errors import CancelledError


class CancelToken:
    """Cooperative cancellation signal.

    The resolver calls check() at its safe points (between downloaded
    chunks, between repositories, between requirement expansions and
    between solver phases). A token can be cancelled explicitly or carry a
    deadline; tokens can be chained so that cancelling a parent also stops
    every child.
    """

    def __init__(self, timeout: Optional[float] = None,
                 parent: Optional['CancelToken'] = None):
        self._event = threading.Event()
        self._reason = ""
        self.parent = parent
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled by caller"):
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return self.parent is not None and self.parent.cancelled

    def check(self):
        """Raise CancelledError if cancellation was requested or the deadline passed."""
        if self._event.is_set():
            raise CancelledError(self._reason, reason="cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise CancelledError("deadline exceeded", reason="deadline")
        if self.parent is not None:
            self.parent.check()

    def child(self, timeout: Optional[float] = None) -> 'CancelToken':
        return CancelToken(timeout=timeout, parent=self)


def check(token: Optional[CancelToken]):
    """check() that accepts None for "not cancellable"."""
    if token is not None:
        token.check()
