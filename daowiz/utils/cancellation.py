"""Cooperative cancellation shared by every component of one invocation."""

import threading
from typing import Optional

from ..errors import Cancelled


class CancellationToken:
    """Signals in-flight ledger and store calls to abandon their work.

    Components call `raise_if_cancelled` before each remote call, and use
    `wait` instead of `time.sleep` so that cancelling interrupts backoff
    sleeps and receipt polling.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "operation cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, step: Optional[str] = None) -> None:
        if self._event.is_set():
            raise Cancelled(self._reason or "operation cancelled", step=step)

    def wait(self, seconds: float, step: Optional[str] = None) -> None:
        """Sleep for `seconds`, raising Cancelled as soon as the token fires."""
        if self._event.wait(timeout=max(seconds, 0.0)):
            raise Cancelled(self._reason or "operation cancelled", step=step)
