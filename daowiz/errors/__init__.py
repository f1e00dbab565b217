"""
Error classification for deployment and discovery.

Structured exception hierarchy separating recoverable ledger failures from
the typed outcomes surfaced to the caller of the create and list operations.
"""

from .recovery import (
    DaowizError,
    RecoverableError,
    UnrecoverableError,
)
from .rpc import (
    RPCError,
    TransientRPCError,
    TransactionReverted,
    NotFoundError,
    ContentStoreError,
    ContentNotFound,
)
from .deployment import (
    ValidationError,
    DeployFailed,
    PartialInstall,
    MetadataLinkFailed,
    PublishUnavailable,
    ConfirmationTimeout,
    ScanIncomplete,
    Cancelled,
)

__all__ = [
    # Recovery Categories
    "DaowizError",
    "RecoverableError",
    "UnrecoverableError",
    # Ledger / Store Boundary
    "RPCError",
    "TransientRPCError",
    "TransactionReverted",
    "NotFoundError",
    "ContentStoreError",
    "ContentNotFound",
    # Operation Outcomes
    "ValidationError",
    "DeployFailed",
    "PartialInstall",
    "MetadataLinkFailed",
    "PublishUnavailable",
    "ConfirmationTimeout",
    "ScanIncomplete",
    "Cancelled",
]
