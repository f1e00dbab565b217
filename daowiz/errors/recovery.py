"""
Recovery strategy classifications for error handling.

Every daowiz exception derives from DaowizError and carries a `recoverable`
flag. Recoverable errors may be retried by the ledger retry policy;
unrecoverable ones are surfaced verbatim to the caller.
"""

from typing import Any, Optional


class DaowizError(Exception):
    """Base class for every error raised by daowiz."""

    recoverable = False

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class RecoverableError(DaowizError):
    """Errors that can be recovered from by retrying the same call."""

    recoverable = True

    def __init__(self, message: str, retry_count: int = 0,
                 max_retries: int = 3, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_count = retry_count
        self.max_retries = max_retries


class UnrecoverableError(DaowizError):
    """Errors that require a decision from the caller before going further."""

    recoverable = False
