"""Ledger-facing records and the durable InstanceRecord output."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class TransactionRequest:
    """Unsigned transaction payload handed to the LedgerClient.

    `to=None` creates a contract from `data`.
    """
    data: bytes
    to: Optional[str] = None
    value: int = 0
    gas: Optional[int] = None
    label: str = ""          # Step name used in logs and errors


@dataclass(frozen=True)
class Receipt:
    """Confirmed transaction receipt."""
    tx_hash: str
    block_number: int
    status: int
    sender: Optional[str] = None
    contract_address: Optional[str] = None
    raw: Optional[dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class CreationEvent:
    """A contract creation attributable to a scanned account."""
    address: str
    deployer: str
    block_number: int
    tx_hash: str
    tx_index: int
    creation_input: bytes


@dataclass(frozen=True, eq=False)
class InstanceRecord:
    """A deployed Beacon DAO instance.

    Equality and hashing use the address only, so a set of records is
    deduplicated by address.
    """
    address: str
    deployer: Optional[str]
    block_number: int
    metadata_address: Optional[str] = None
    tx_hash: Optional[str] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InstanceRecord):
            return NotImplemented
        return self.address.lower() == other.address.lower()

    def __hash__(self) -> int:
        return hash(self.address.lower())

    def with_metadata(self, metadata_address: Optional[str]) -> "InstanceRecord":
        """Fresh record carrying a resolved metadata link."""
        return InstanceRecord(
            address=self.address,
            deployer=self.deployer,
            block_number=self.block_number,
            metadata_address=metadata_address,
            tx_hash=self.tx_hash,
        )
