"""Pytest configuration and shared fixtures."""

import itertools
import threading
from pathlib import Path
from typing import Any, Optional

import orjson
import pytest
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from daowiz.config.defaults import ContractParams, InstanceParams
from daowiz.data.artifacts import load_artifact
from daowiz.errors import ConfirmationTimeout, TransactionReverted, TransientRPCError
from daowiz.ledger.client import LedgerClient
from daowiz.ledger.contract import BeaconContract
from daowiz.ledger.signer import Signer
from daowiz.models.records import CreationEvent, Receipt, TransactionRequest
from daowiz.store import LocalContentStore

DEPLOYER = "0x" + "d1" * 20
OTHER_ACCOUNT = "0x" + "e2" * 20

CREATION_CODE = bytes.fromhex("6080604052348015600f57600080fd5b50")
RUNTIME_CODE = bytes.fromhex("6080604052600080fd00a1")

ARTIFACT = {
    "contractName": "Idea",
    "abi": [
        {
            "type": "constructor",
            "inputs": [
                {"name": "name", "type": "string"},
                {"name": "symbol", "type": "string"},
                {"name": "supply", "type": "uint256"},
            ],
        },
        {"type": "function", "name": "metadata", "inputs": [],
         "outputs": [{"name": "", "type": "string"}]},
    ],
    "bytecode": "0x" + CREATION_CODE.hex(),
    "deployedBytecode": "0x" + RUNTIME_CODE.hex(),
}

SET_METADATA = function_signature_to_4byte_selector("setMetadata(string)")
INSTALL_MODULE = function_signature_to_4byte_selector("installModule(string,string,string)")
METADATA_GETTER = function_signature_to_4byte_selector("metadata()")


class FakeSigner(Signer):
    """Signer for a fixed account that never touches a key."""

    def __init__(self, address: str = DEPLOYER):
        self._address = address

    @property
    def address(self) -> str:
        return self._address

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        return orjson.dumps(transaction, option=orjson.OPT_SORT_KEYS)


class FakeLedger(LedgerClient):
    """
    In-memory ledger.

    Every confirmed transaction mines one block. Contract creations get
    `runtime_code` and are indexed for `query_logs`; `setMetadata` calls are
    applied so that the `metadata()` getter answers them.

    Failures are injected per transaction label (`revert_labels`,
    `timeout_labels`, and `outage_labels` where the node stops answering
    after the broadcast) and per block (`unreadable_blocks`, which make any
    `query_logs` window containing them fail as transient).
    """

    def __init__(self, account: str = DEPLOYER, start_block: int = 100,
                 runtime_code: bytes = RUNTIME_CODE):
        self._account = account
        self.block = start_block
        self.runtime_code = runtime_code

        self.submitted: list[TransactionRequest] = []
        self.confirmed: list[TransactionRequest] = []
        self.code: dict[str, bytes] = {}
        self.creations: list[CreationEvent] = []
        self.metadata: dict[str, str] = {}

        self.revert_labels: set[str] = set()
        self.timeout_labels: set[str] = set()
        self.outage_labels: set[str] = set()
        self.unreadable_blocks: set[int] = set()
        self.on_confirm = None

        self._pending: dict[str, TransactionRequest] = {}
        self._hashes = itertools.count(1)
        self._addresses = itertools.count(1)
        self._lock = threading.Lock()
        self.windows_read: list[tuple[int, int]] = []

    @property
    def account(self) -> str:
        return self._account

    @property
    def confirmed_labels(self) -> list[str]:
        return [request.label for request in self.confirmed]

    def add_creation(self, address: str, block_number: int,
                     creation_input: bytes = CREATION_CODE,
                     code: Optional[bytes] = None, deployer: Optional[str] = None) -> None:
        """Record a contract creation that happened before the test."""
        address = to_checksum_address(address)
        self.code[address.lower()] = self.runtime_code if code is None else code
        self.creations.append(CreationEvent(
            address=address,
            deployer=deployer or self._account,
            block_number=block_number,
            tx_hash=f"0x{next(self._hashes):064x}",
            tx_index=0,
            creation_input=creation_input,
        ))

    def submit_transaction(self, request: TransactionRequest) -> str:
        tx_hash = f"0x{next(self._hashes):064x}"
        self.submitted.append(request)
        self._pending[tx_hash] = request
        return tx_hash

    def wait_for_confirmation(self, tx_hash: str, timeout: Optional[float] = None) -> Receipt:
        request = self._pending.pop(tx_hash)
        if request.label in self.timeout_labels:
            raise ConfirmationTimeout(f"{tx_hash} not confirmed", tx_hash=tx_hash,
                                      timeout=timeout)
        if request.label in self.outage_labels:
            raise TransientRPCError("Network error: connection refused",
                                    method="eth_getTransactionReceipt")

        self.block += 1
        if request.label in self.revert_labels:
            raise TransactionReverted(f"{request.label} reverted", tx_hash=tx_hash)

        contract_address = None
        if request.to is None:
            contract_address = to_checksum_address(f"0x{next(self._addresses):040x}")
            self.code[contract_address.lower()] = self.runtime_code
            self.creations.append(CreationEvent(
                address=contract_address,
                deployer=self._account,
                block_number=self.block,
                tx_hash=tx_hash,
                tx_index=0,
                creation_input=request.data,
            ))
        elif request.data.startswith(SET_METADATA):
            (value,) = decode(["string"], request.data[4:])
            self.metadata[request.to.lower()] = value

        self.confirmed.append(request)
        if self.on_confirm is not None:
            self.on_confirm(request)

        return Receipt(
            tx_hash=tx_hash,
            block_number=self.block,
            status=1,
            sender=self._account,
            contract_address=contract_address,
        )

    def read_code(self, address: str) -> bytes:
        return self.code.get(address.lower(), b"")

    def query_logs(self, account: str, from_block: int, to_block: int) -> list[CreationEvent]:
        with self._lock:
            self.windows_read.append((from_block, to_block))
        if any(from_block <= number < to_block for number in self.unreadable_blocks):
            raise TransientRPCError(f"blocks [{from_block}, {to_block}) unavailable",
                                    method="eth_getBlockByNumber")
        return sorted(
            (event for event in self.creations
             if event.deployer.lower() == account.lower()
             and from_block <= event.block_number < to_block),
            key=lambda e: (e.block_number, e.tx_index),
        )

    def call(self, address: str, data: bytes) -> bytes:
        if data.startswith(METADATA_GETTER):
            return encode(["string"], [self.metadata.get(address.lower(), "")])
        return b""

    def block_number(self) -> int:
        return self.block


class ChunkingStore(LocalContentStore):
    """
    Store that, like an IPFS node, addresses content larger than
    `chunk_size` as a chunked DAG rather than a single raw block.
    """

    def __init__(self, chunk_size: int = 16, name: str = "ipfs"):
        super().__init__(name=name)
        self.chunk_size = chunk_size

    def publish(self, data: bytes) -> str:
        address = super().publish(data)
        if len(data) <= self.chunk_size:
            return address
        chunked = "bafybei" + address[len("bafkrei"):]
        with self._lock:
            self._blocks[chunked] = bytes(data)
        return chunked


def decode_install(request: TransactionRequest) -> tuple[str, str, str]:
    """(name, module address, loader address) of an install transaction."""
    assert request.data.startswith(INSTALL_MODULE)
    return tuple(decode(["string", "string", "string"], request.data[4:]))


@pytest.fixture
def fake_ledger() -> FakeLedger:
    """Fresh in-memory ledger at block 100."""
    return FakeLedger()


@pytest.fixture
def fake_signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def contracts_dir(tmp_path: Path) -> Path:
    """Contracts directory holding a built Idea artifact."""
    root = tmp_path / "contracts-build"
    artifact = root / "contracts" / "Idea.sol" / "Idea.json"
    artifact.parent.mkdir(parents=True)
    artifact.write_bytes(orjson.dumps(ARTIFACT))
    return root


@pytest.fixture
def beacon_contract(contracts_dir: Path) -> BeaconContract:
    params = ContractParams()
    return BeaconContract(load_artifact(contracts_dir, params.artifact_path), params,
                          InstanceParams())


@pytest.fixture
def module_dir(tmp_path: Path) -> Path:
    """Directory with two modules: `alpha` and `beta` (wasm-bindgen style)."""
    root = tmp_path / "modules"
    root.mkdir()
    (root / "alpha.wasm").write_bytes(b"\x00asm\x01\x00\x00\x00alpha")
    (root / "alpha.js").write_bytes(b"export default function alpha() {}")
    (root / "beta_bg.wasm").write_bytes(b"\x00asm\x01\x00\x00\x00beta")
    (root / "beta.js").write_bytes(b"export default function beta() {}")
    return root


@pytest.fixture
def module_files(module_dir: Path) -> list[str]:
    """CLI-style file list for `alpha` then `beta`."""
    return [
        str(module_dir / "alpha.wasm"),
        str(module_dir / "alpha.js"),
        str(module_dir / "beta_bg.wasm"),
        str(module_dir / "beta.js"),
    ]
