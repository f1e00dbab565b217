"""
Built contract artifact loading.

The contracts directory holds the compiler output for the Beacon DAO
contract: a JSON document with `abi`, `bytecode` and, for most toolchains,
`deployedBytecode`. The artifact is the source of the FactoryTemplate.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import orjson

from ..errors import ValidationError
from ..models.template import FactoryTemplate, code_hash


def decode_hex(value: str, field: str) -> bytes:
    """Decode a `0x`-prefixed (or bare) hex string."""
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ValidationError(f"{field} is not valid hex: {e}", field=field) from e


def _bytecode_field(value: Any) -> Optional[str]:
    # Hardhat writes a string, Foundry an object with an `object` key
    if isinstance(value, dict):
        value = value.get("object")
    return value if isinstance(value, str) and value not in ("", "0x") else None


@dataclass(frozen=True)
class ContractArtifact:
    """ABI and bytecode of the contract every instance is created from."""
    name: str
    abi: list[dict[str, Any]]
    bytecode: bytes
    deployed_bytecode: Optional[bytes] = None

    def constructor_inputs(self) -> list[str]:
        """ABI types of the constructor parameters, in order."""
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [param["type"] for param in entry.get("inputs", [])]
        return []

    def to_template(self) -> FactoryTemplate:
        return FactoryTemplate(
            name=self.name,
            creation_bytecode=self.bytecode,
            runtime_code_hash=(
                code_hash(self.deployed_bytecode) if self.deployed_bytecode else None
            ),
        )


def load_artifact(contracts_dir: Path, artifact_path: str) -> ContractArtifact:
    """
    Load the contract artifact located under the contracts directory.

    Args:
        contracts_dir: Root of the built contracts
        artifact_path: Path of the artifact JSON relative to the root

    Raises:
        ValidationError: If the artifact is missing or malformed
    """
    path = Path(contracts_dir) / artifact_path

    try:
        document = orjson.loads(path.read_bytes())
    except FileNotFoundError as e:
        raise ValidationError(
            f"contract artifact not found: {path}", field="contracts_dir", value=str(path)
        ) from e
    except orjson.JSONDecodeError as e:
        raise ValidationError(
            f"contract artifact is not valid JSON: {e}", field="contracts_dir", value=str(path)
        ) from e

    if not isinstance(document, dict):
        raise ValidationError("contract artifact must be a JSON object", field="contracts_dir",
                              value=str(path))

    bytecode = _bytecode_field(document.get("bytecode"))
    if bytecode is None:
        raise ValidationError("contract artifact has no bytecode", field="bytecode",
                              value=str(path))

    abi = document.get("abi", [])
    if not isinstance(abi, list):
        raise ValidationError("contract artifact abi must be a list", field="abi",
                              value=str(path))

    deployed = _bytecode_field(document.get("deployedBytecode"))

    return ContractArtifact(
        name=document.get("contractName") or path.stem,
        abi=abi,
        bytecode=decode_hex(bytecode, "bytecode"),
        deployed_bytecode=decode_hex(deployed, "deployedBytecode") if deployed else None,
    )
