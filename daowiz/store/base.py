"""Base classes for content-addressed stores."""

import base64
import hashlib
from abc import ABC, abstractmethod

# CIDv1 prefix: version 1, raw codec, sha2-256 multihash of 32 bytes
_CID_V1_RAW_SHA256 = bytes([0x01, 0x55, 0x12, 0x20])


def content_address(data: bytes) -> str:
    """CIDv1 (raw codec, sha2-256) of `data` in base32 multibase form.

    This is the address of `data` as one raw block. An IPFS node agrees only
    while the file fits in a single chunk (256 KiB by default); larger files
    are chunked into a dag-pb root with a different address. Anything that
    references published content must use the address the store returned.
    """
    digest = hashlib.sha256(data).digest()
    encoded = base64.b32encode(_CID_V1_RAW_SHA256 + digest).decode("ascii")
    return "b" + encoded.lower().rstrip("=")


class ContentStore(ABC):
    """Publish/fetch service keyed by content address.

    Publishing identical bytes must always yield the identical address.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def publish(self, data: bytes) -> str:
        """Store `data` and return its content address."""

    @abstractmethod
    def fetch(self, address: str) -> bytes:
        """Return the bytes stored under `address`.

        Raises:
            ContentNotFound: If nothing is stored under the address
        """
