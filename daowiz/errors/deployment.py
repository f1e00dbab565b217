"""
Outcome errors for the create and list operations.

Each of these is surfaced verbatim to the caller with enough context (counts,
last scanned block, the instance that already exists) to decide on a manual
retry.
"""

from typing import TYPE_CHECKING, Any, Optional

from .recovery import DaowizError, UnrecoverableError

if TYPE_CHECKING:
    from ..models.records import InstanceRecord


class ValidationError(UnrecoverableError):
    """Malformed plan, query or configuration. Reported immediately."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None,
                 instance: Optional["InstanceRecord"] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.instance = instance


class DeployFailed(UnrecoverableError):
    """The create-instance transaction reverted or could not be submitted."""

    def __init__(self, message: str, tx_hash: Optional[str] = None,
                 cause: Optional[BaseException] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.tx_hash = tx_hash
        self.cause = cause


class PartialInstall(UnrecoverableError):
    """Only the first `installed` of `total` modules were installed."""

    def __init__(self, message: str, installed: int, total: int,
                 cause: Optional[BaseException] = None,
                 instance: Optional["InstanceRecord"] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.installed = installed
        self.total = total
        self.cause = cause
        self.instance = instance

    def __str__(self) -> str:
        return f"{self.message} (installed {self.installed}/{self.total})"


class MetadataLinkFailed(UnrecoverableError):
    """The set-metadata transaction failed. The instance is not rolled back."""

    def __init__(self, message: str, content_address: Optional[str] = None,
                 cause: Optional[BaseException] = None,
                 instance: Optional["InstanceRecord"] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.content_address = content_address
        self.cause = cause
        self.instance = instance


class PublishUnavailable(UnrecoverableError):
    """Neither the remote store nor the fallback store could be reached."""

    def __init__(self, message: str, attempted: Optional[list[str]] = None,
                 cause: Optional[BaseException] = None,
                 instance: Optional["InstanceRecord"] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.attempted = attempted or []
        self.cause = cause
        self.instance = instance


class ConfirmationTimeout(UnrecoverableError):
    """A transaction was not confirmed before its deadline.

    The transaction may still land; the caller should re-check before
    submitting it again.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None,
                 timeout: Optional[float] = None,
                 cause: Optional[BaseException] = None,
                 instance: Optional["InstanceRecord"] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.tx_hash = tx_hash
        self.timeout = timeout
        self.cause = cause
        self.instance = instance


class ScanIncomplete(UnrecoverableError):
    """A window of the scan could not be read. No partial result is returned."""

    def __init__(self, message: str, through_block: int,
                 cause: Optional[BaseException] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.through_block = through_block
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.message} (fully scanned through block {self.through_block})"


class Cancelled(DaowizError):
    """The invocation was cancelled. Confirmed transactions are not undone."""

    def __init__(self, message: str = "operation cancelled",
                 step: Optional[str] = None,
                 instance: Optional["InstanceRecord"] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step = step
        self.instance = instance
