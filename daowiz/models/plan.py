"""Invocation-scoped inputs: deployment plans and scan queries."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .template import FactoryTemplate


class DeployMode(Enum):
    """How to treat a plan identical to one that is already deployed."""
    FRESH = "fresh"                        # Always create a new instance
    REUSE_EXISTING = "reuse_existing"      # Return the matching instance, if any


@dataclass(frozen=True)
class ModuleSpec:
    """A module binary paired with its sibling loader.

    Only produced by plan validation, which guarantees the pairing.
    """
    name: str
    module_path: Path       # WASM payload of the module
    loader_path: Path       # JS that loads the module
    position: int           # Zero-based install order

    def read_module(self) -> bytes:
        return self.module_path.read_bytes()

    def read_loader(self) -> bytes:
        return self.loader_path.read_bytes()


@dataclass(frozen=True)
class DeploymentPlan:
    """Validated, immutable description of one `new` invocation."""
    modules: tuple[ModuleSpec, ...]
    network_endpoint: str
    chain_id: int
    contracts_dir: Path
    metadata_endpoint: Optional[str] = None
    mode: DeployMode = DeployMode.FRESH

    @property
    def module_count(self) -> int:
        return len(self.modules)


@dataclass(frozen=True)
class ScanQuery:
    """Search for instances of `template` created by `account`.

    The block range is half-open: [from_block, to_block).
    """
    template: FactoryTemplate
    account: str
    from_block: int
    to_block: int

    def windows(self, window_size: int) -> list[tuple[int, int]]:
        """Split the range into consecutive half-open windows."""
        return [
            (start, min(start + window_size, self.to_block))
            for start in range(self.from_block, self.to_block, window_size)
        ]
