"""
Errors raised at the ledger and content store boundaries.

Transient failures (network errors, HTTP 5xx, rate limiting) are retried by
the retry policy. Reverts and definitive "not found" answers are not.
"""

from typing import Any, Optional

from .recovery import DaowizError, RecoverableError, UnrecoverableError


class RPCError(UnrecoverableError):
    """A definitive error response from a ledger node."""

    def __init__(self, message: str, method: Optional[str] = None,
                 code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.method = method
        self.code = code


class TransientRPCError(RecoverableError):
    """Network or node-side failure that may succeed if retried."""

    def __init__(self, message: str, method: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.method = method


class TransactionReverted(RPCError):
    """A transaction was mined but its execution reverted."""

    def __init__(self, message: str, tx_hash: Optional[str] = None,
                 receipt: Optional[dict[str, Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.tx_hash = tx_hash
        self.receipt = receipt


class NotFoundError(RPCError):
    """The node definitively reports that the requested object does not exist."""

    def __init__(self, message: str, target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.target = target


class ContentStoreError(DaowizError):
    """A content store refused or failed a publish/fetch request."""

    def __init__(self, message: str, store: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.store = store


class ContentNotFound(ContentStoreError):
    """No content is stored under the requested address."""

    def __init__(self, message: str, address: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.address = address
