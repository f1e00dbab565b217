"""
Ledger access through web3.

LedgerClient is the narrow boundary every ledger-facing call goes through.
Web3LedgerClient implements it on a web3 provider and applies the uniform
retry policy to each request: connection failures, HTTP 5xx/429 and
node-side rate-limit errors are transient; reverts and other error
responses are not.
"""

import functools
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import urlparse

import requests
import structlog
from eth_utils import keccak, to_checksum_address
from web3 import HTTPProvider, Web3
from web3.exceptions import (
    BadResponseFormat,
    BlockNotFound,
    ContractLogicError,
    TransactionNotFound,
    Web3Exception,
    Web3RPCError,
)
from web3.providers.base import BaseProvider

from ..config.defaults import ConfirmationParams
from ..errors import (
    Cancelled,
    ConfirmationTimeout,
    DaowizError,
    NotFoundError,
    RPCError,
    TransactionReverted,
    TransientRPCError,
    ValidationError,
)
from ..models.records import CreationEvent, Receipt, TransactionRequest
from ..utils.cancellation import CancellationToken
from .retry import RetryPolicy
from .signer import Signer

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# JSON-RPC error codes nodes use for rate limiting and overload
TRANSIENT_RPC_CODES = frozenset({-32005, -32603})
ALREADY_KNOWN_MESSAGES = ("already known", "known transaction", "already imported")


def to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def parse_receipt(tx_hash: str, raw: Mapping[str, Any]) -> Receipt:
    contract_address = raw.get("contractAddress")
    return Receipt(
        tx_hash=tx_hash,
        block_number=int(raw["blockNumber"]),
        status=int(raw.get("status", 1)),
        sender=raw.get("from"),
        contract_address=to_checksum_address(contract_address) if contract_address else None,
        raw=dict(raw),
    )


def rpc_failure(error: Web3RPCError, method: str) -> DaowizError:
    """Classify a JSON-RPC error response."""
    code = None
    message = str(error)
    response = getattr(error, "rpc_response", None)
    detail = response.get("error") if isinstance(response, dict) else None
    if isinstance(detail, dict):
        code = detail.get("code")
        message = str(detail.get("message", message))

    lowered = message.lower()
    if "revert" in lowered:
        return TransactionReverted(message, method=method, code=code)
    if "not found" in lowered:
        return NotFoundError(message, method=method, code=code, target=method)
    if code in TRANSIENT_RPC_CODES or "rate limit" in lowered:
        return TransientRPCError(f"RPC error {code}: {message}", method=method)
    return RPCError(f"RPC error {code}: {message}", method=method, code=code)


def confirm_or_timeout(ledger: "LedgerClient", tx_hash: str,
                       timeout: Optional[float] = None) -> Receipt:
    """Wait for a broadcast transaction, reporting an unresolved wait as a timeout.

    Once a transaction has been broadcast it may still land, so any failure
    other than a revert or cancellation becomes ConfirmationTimeout.
    """
    try:
        return ledger.wait_for_confirmation(tx_hash, timeout)
    except (TransactionReverted, ConfirmationTimeout, Cancelled):
        raise
    except DaowizError as e:
        raise ConfirmationTimeout(
            f"confirmation of {tx_hash} could not be established: {e}",
            tx_hash=tx_hash,
            timeout=timeout,
            cause=e,
        ) from e


class LedgerClient(ABC):
    """Boundary to a remote ledger."""

    @abstractmethod
    def submit_transaction(self, request: TransactionRequest) -> str:
        """Sign and broadcast a transaction, returning its hash."""

    @abstractmethod
    def wait_for_confirmation(self, tx_hash: str, timeout: Optional[float] = None) -> Receipt:
        """Block until the transaction is confirmed.

        Raises:
            TransactionReverted: If the transaction was mined but reverted
            ConfirmationTimeout: If the deadline passes first
        """

    @abstractmethod
    def read_code(self, address: str) -> bytes:
        """Runtime code currently stored at an address."""

    @abstractmethod
    def query_logs(self, account: str, from_block: int, to_block: int) -> list[CreationEvent]:
        """Contract creations by `account` in [from_block, to_block), in chain order."""

    @abstractmethod
    def call(self, address: str, data: bytes) -> bytes:
        """Read-only call against the latest state."""

    @abstractmethod
    def block_number(self) -> int:
        """Number of the latest block."""

    @property
    @abstractmethod
    def account(self) -> str:
        """Address transactions are submitted from."""


class Web3LedgerClient(LedgerClient):
    """LedgerClient on a web3 provider (HTTP JSON-RPC by default)."""

    def __init__(
        self,
        endpoint: str,
        chain_id: int,
        signer: Signer,
        retry: Optional[RetryPolicy] = None,
        confirmation: Optional[ConfirmationParams] = None,
        gas_price_wei: int = 0,
        cancel: Optional[CancellationToken] = None,
        provider: Optional[BaseProvider] = None,
    ):
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid ledger RPC URL: {endpoint}",
                                  field="network_endpoint", value=endpoint)

        self.endpoint = endpoint
        self.chain_id = chain_id
        self.signer = signer
        self.retry = retry or RetryPolicy()
        self.confirmation = confirmation or ConfirmationParams()
        self.gas_price_wei = gas_price_wei
        self.cancel = cancel or CancellationToken()
        self.logger = logger.bind(endpoint=endpoint, chain_id=chain_id)

        if provider is None:
            # Retries are applied by RetryPolicy, not by the provider
            provider = HTTPProvider(
                endpoint,
                request_kwargs={"timeout": self.confirmation.request_timeout_seconds},
                exception_retry_configuration=None,
            )
        self.w3 = Web3(provider)

    @property
    def account(self) -> str:
        return self.signer.address

    def _guarded(self, method: str, fn: Callable[[], T]) -> T:
        """Run one web3 call, mapping its failures onto daowiz errors."""
        try:
            return fn()

        except ContractLogicError as e:
            raise TransactionReverted(str(e), method=method) from e

        except Web3RPCError as e:
            raise rpc_failure(e, method) from e

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status is None or status >= 500 or status == 429:
                raise TransientRPCError(f"HTTP {status}: {e}", method=method) from e
            raise RPCError(f"HTTP {status}: {e}", method=method, code=status) from e

        except requests.exceptions.RequestException as e:
            raise TransientRPCError(f"Network error: {e}", method=method) from e

        except BadResponseFormat as e:
            raise TransientRPCError(f"Malformed response: {e}", method=method) from e

        except Web3Exception as e:
            raise RPCError(f"{method} failed: {e}", method=method) from e

    def rpc(self, method: str, fn: Callable[[], T]) -> T:
        """Perform one ledger request under the retry policy."""
        return self.retry.call(
            lambda: self._guarded(method, fn),
            description=method,
            cancel=self.cancel,
        )

    def _gas_price(self) -> int:
        if self.gas_price_wei:
            return self.gas_price_wei
        return int(self.rpc("eth_gasPrice", lambda: self.w3.eth.gas_price))

    def submit_transaction(self, request: TransactionRequest) -> str:
        self.cancel.raise_if_cancelled(step=request.label)

        sender = to_checksum_address(self.signer.address)
        nonce = int(self.rpc(
            "eth_getTransactionCount",
            lambda: self.w3.eth.get_transaction_count(sender, "pending"),
        ))

        transaction: dict[str, Any] = {
            "chainId": self.chain_id,
            "nonce": nonce,
            "gasPrice": self._gas_price(),
            "value": request.value,
            "data": to_hex(request.data),
        }
        if request.to is not None:
            transaction["to"] = to_checksum_address(request.to)

        if request.gas is not None:
            transaction["gas"] = request.gas
        else:
            estimate_params: dict[str, Any] = {
                "from": sender,
                "data": transaction["data"],
                "value": request.value,
            }
            if "to" in transaction:
                estimate_params["to"] = transaction["to"]
            transaction["gas"] = int(self.rpc(
                "eth_estimateGas", lambda: self.w3.eth.estimate_gas(estimate_params)
            ))

        raw = self.signer.sign_transaction(transaction)
        tx_hash = to_hex(keccak(raw))

        try:
            self.rpc("eth_sendRawTransaction", lambda: self.w3.eth.send_raw_transaction(raw))
        except RPCError as e:
            # A retried broadcast of the same signed bytes is reported as known
            if not any(m in str(e).lower() for m in ALREADY_KNOWN_MESSAGES):
                raise

        self.logger.info(
            "Transaction submitted",
            step=request.label,
            tx_hash=tx_hash,
            nonce=nonce,
            sender=sender,
        )
        return tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[Receipt]:
        def fetch():
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        raw = self.rpc("eth_getTransactionReceipt", fetch)
        if raw is None or raw.get("blockNumber") is None:
            return None
        return parse_receipt(tx_hash, raw)

    def wait_for_confirmation(self, tx_hash: str, timeout: Optional[float] = None) -> Receipt:
        timeout = self.confirmation.timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + timeout
        required = self.confirmation.confirmations

        while True:
            self.cancel.raise_if_cancelled(step="wait_for_confirmation")

            receipt = self.get_receipt(tx_hash)
            if receipt is not None:
                if not receipt.succeeded:
                    raise TransactionReverted(
                        f"transaction {tx_hash} reverted in block {receipt.block_number}",
                        tx_hash=tx_hash,
                        receipt=receipt.raw,
                    )
                if self.block_number() - receipt.block_number >= required:
                    self.logger.info(
                        "Transaction confirmed",
                        tx_hash=tx_hash,
                        block=receipt.block_number,
                        confirmations=required,
                    )
                    return receipt

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeout(
                    f"transaction {tx_hash} not confirmed within {timeout}s",
                    tx_hash=tx_hash,
                    timeout=timeout,
                )
            self.cancel.wait(min(self.confirmation.poll_interval_seconds, remaining),
                             step="wait_for_confirmation")

    def read_code(self, address: str) -> bytes:
        checksum = to_checksum_address(address)
        return bytes(self.rpc("eth_getCode", lambda: self.w3.eth.get_code(checksum)))

    def call(self, address: str, data: bytes) -> bytes:
        params = {"to": to_checksum_address(address), "data": to_hex(data)}
        return bytes(self.rpc("eth_call", lambda: self.w3.eth.call(params, "latest")))

    def block_number(self) -> int:
        return int(self.rpc("eth_blockNumber", lambda: self.w3.eth.block_number))

    def _block(self, number: int):
        try:
            return self.w3.eth.get_block(number, full_transactions=True)
        except BlockNotFound as e:
            # The node has not caught up with this height yet
            raise TransientRPCError(f"block {number} not available",
                                    method="eth_getBlockByNumber") from e

    def query_logs(self, account: str, from_block: int, to_block: int) -> list[CreationEvent]:
        events = []
        sender = account.lower()

        for number in range(from_block, to_block):
            self.cancel.raise_if_cancelled(step="query_logs")

            block = self.rpc("eth_getBlockByNumber", functools.partial(self._block, number))

            for tx in block.get("transactions", []):
                if tx.get("to") is not None or str(tx.get("from", "")).lower() != sender:
                    continue

                tx_hash = to_hex(tx["hash"])
                receipt = self.get_receipt(tx_hash)
                if receipt is None:
                    raise TransientRPCError(f"receipt for mined transaction {tx_hash} not indexed yet",
                                            method="eth_getTransactionReceipt")
                if not receipt.succeeded or receipt.contract_address is None:
                    continue

                events.append(CreationEvent(
                    address=receipt.contract_address,
                    deployer=to_checksum_address(tx["from"]),
                    block_number=number,
                    tx_hash=tx_hash,
                    tx_index=int(tx.get("transactionIndex", 0)),
                    creation_input=bytes(tx.get("input", b"")),
                ))

        return events
