"""
Signing capability injected at the process boundary.

Inner components receive a Signer and never see where the key came from.
The private key is held by eth-account only; it is never logged, bound to a
logger, or included in a repr.
"""

from abc import ABC, abstractmethod
from typing import Any

from eth_account import Account

from ..errors import ValidationError


class Signer(ABC):
    """Signs transactions on behalf of a single account."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksummed address of the signing account."""

    @abstractmethod
    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        """Return the raw signed transaction ready for broadcast."""


class LocalKeySigner(Signer):
    """Signs locally with a secp256k1 private key."""

    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(private_key)
        except Exception:
            # The underlying message may echo the key
            raise ValidationError(
                "deployment private key is not a valid secp256k1 key",
                field="private_key",
            ) from None

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(transaction)
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"LocalKeySigner(address={self.address})"
