"""Metadata descriptor published for every instance.

Links between nodes follow the IPLD dag-json convention: a content address
is written as a map with the single key "/".
"""

from dataclasses import dataclass
from typing import Any

import orjson

SCHEMA_VERSION = 1


def link(address: str) -> dict[str, str]:
    """dag-json link to a content address."""
    return {"/": address}


def canonical_bytes(node: dict[str, Any]) -> bytes:
    """Deterministic encoding: identical nodes always produce identical bytes."""
    return orjson.dumps(node, option=orjson.OPT_SORT_KEYS)


@dataclass(frozen=True)
class ModuleEntry:
    """Content addresses of one published module and its loader."""
    name: str
    module: str
    loader: str

    def to_node(self) -> dict[str, Any]:
        return {
            "loader": [link(self.loader)],
            "module": [link(self.module)],
        }


@dataclass(frozen=True)
class MetadataDescriptor:
    """Organization descriptor: ordered modules plus display details."""
    title: str
    description: str
    modules: tuple[ModuleEntry, ...]
    schema_version: int = SCHEMA_VERSION

    def to_node(self, entry_addresses: list[str]) -> dict[str, Any]:
        """Root node referencing the already published module entries.

        Args:
            entry_addresses: Address of each module entry node, in install order
        """
        return {
            "title": self.title,
            "description": self.description,
            "payload": [link(address) for address in entry_addresses],
            "schema_version": self.schema_version,
        }
