"""Factory template: the identity of a Beacon DAO instance."""

from dataclasses import dataclass
from typing import Optional

from eth_utils import keccak


def code_hash(code: bytes) -> str:
    """Keccak-256 of `code`, as the ledger reports it for deployed code (EXTCODEHASH)."""
    return "0x" + keccak(code).hex()


@dataclass(frozen=True)
class FactoryTemplate:
    """Canonical implementation every instance is created from.

    `creation_bytecode` is the init code submitted by the create transaction
    (constructor arguments are appended to it on chain). `runtime_code_hash`
    is the digest of the deployed code, when the artifact provides it.
    """
    name: str
    creation_bytecode: bytes
    runtime_code_hash: Optional[str] = None

    @property
    def creation_hash(self) -> str:
        return code_hash(self.creation_bytecode)


@dataclass(frozen=True)
class Footprint:
    """What the ledger shows for a candidate address."""
    address: str
    creation_input: bytes
    runtime_code: bytes
