"""
Contract interaction layer shared by deployment and discovery.

Builds the transactions of the create operation (create instance, install
module, set metadata) and reads an instance's metadata link. ABI encoding is
delegated to eth-abi; selectors come from eth-utils.
"""

from typing import Any, Optional

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from ..config.defaults import ContractParams, InstanceParams
from ..data.artifacts import ContractArtifact
from ..errors import RPCError, TransactionReverted, ValidationError
from ..models.plan import ModuleSpec
from ..models.records import TransactionRequest
from .client import LedgerClient


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split `name(type1,type2)` into its name and argument types."""
    name, _, rest = signature.partition("(")
    if not name or not rest.endswith(")"):
        raise ValidationError(f"malformed function signature: {signature}",
                              field="signature", value=signature)
    inner = rest[:-1].replace(" ", "")
    return name, [t for t in inner.split(",") if t]


def encode_call(signature: str, args: list[Any]) -> bytes:
    """Selector followed by the ABI-encoded arguments."""
    _, types = parse_signature(signature)
    if len(types) != len(args):
        raise ValidationError(
            f"{signature} takes {len(types)} argument(s), got {len(args)}",
            field="signature", value=signature,
        )
    selector = function_signature_to_4byte_selector(signature.replace(" ", ""))
    return bytes(selector) + encode(types, args)


class BeaconContract:
    """Call surface of the Beacon DAO contract.

    Every transaction the create operation submits is built here so that the
    orchestrator and installer deal only in TransactionRequest values.
    """

    def __init__(self, artifact: ContractArtifact, params: ContractParams,
                 instance: InstanceParams):
        self.artifact = artifact
        self.params = params
        self.instance = instance

    def constructor_args(self) -> list[Any]:
        """Organization details in constructor order.

        A trailing metadata parameter, when the constructor declares one, is
        left empty: metadata is linked by its own transaction.
        """
        candidates = [self.instance.title, self.instance.symbol, self.instance.supply, ""]
        types = self.artifact.constructor_inputs()
        if len(types) > len(candidates):
            raise ValidationError(
                f"constructor of {self.artifact.name} takes {len(types)} arguments, "
                f"at most {len(candidates)} are supported",
                field="abi", value=types,
            )
        return candidates[: len(types)]

    def create_request(self) -> TransactionRequest:
        types = self.artifact.constructor_inputs()
        data = self.artifact.bytecode + encode(types, self.constructor_args())
        return TransactionRequest(
            data=data,
            to=None,
            gas=self.params.gas_limit,
            label="create_instance",
        )

    def install_request(self, address: str, spec: ModuleSpec,
                        module_ref: str, loader_ref: str) -> TransactionRequest:
        return TransactionRequest(
            data=encode_call(self.params.install_method, [spec.name, module_ref, loader_ref]),
            to=address,
            gas=self.params.gas_limit,
            label=f"install_module:{spec.name}",
        )

    def set_metadata_request(self, address: str, content_address: str) -> TransactionRequest:
        return TransactionRequest(
            data=encode_call(self.params.set_metadata_method, [content_address]),
            to=address,
            gas=self.params.gas_limit,
            label="set_metadata",
        )

    def read_metadata(self, ledger: LedgerClient, address: str) -> Optional[str]:
        """Content address linked into an instance, None if not linked yet."""
        try:
            raw = ledger.call(address, encode_call(self.params.metadata_getter, []))
        except TransactionReverted:
            return None
        if not raw:
            return None
        try:
            (value,) = decode(["string"], raw)
        except Exception as e:
            raise RPCError(f"metadata getter of {address} returned undecodable data",
                           method="eth_call") from e
        return value or None
