"""Unit tests for deployment plan validation and artifact loading."""

from pathlib import Path

import orjson
import pytest

from daowiz.data.artifacts import load_artifact
from daowiz.data.plan_builder import PlanBuilder, module_stem
from daowiz.errors import ValidationError
from daowiz.models.plan import DeployMode, ScanQuery
from daowiz.models.template import FactoryTemplate

RPC = "http://127.0.0.1:8545"


class TestModuleStem:
    """Test suite for module/loader name pairing."""

    @pytest.mark.parametrize("name, stem", [
        ("dao.wasm", "dao"),
        ("dao_bg.wasm", "dao"),
        ("dao.js", "dao"),
        ("treasury_bg.wasm", "treasury"),
    ])
    def test_stem(self, name: str, stem: str) -> None:
        """Test that suffixes and the bindgen marker are stripped."""
        assert module_stem(Path(name)) == stem


class TestPlanBuilder:
    """Test suite for PlanBuilder."""

    def test_build_valid_plan(self, module_files, contracts_dir) -> None:
        """Test that a well-formed invocation becomes an ordered plan."""
        plan = PlanBuilder().build(module_files, RPC, 1337, str(contracts_dir))

        assert [m.name for m in plan.modules] == ["alpha", "beta"]
        assert [m.position for m in plan.modules] == [0, 1]
        assert plan.modules[1].module_path.name == "beta_bg.wasm"
        assert plan.modules[1].loader_path.name == "beta.js"
        assert plan.mode is DeployMode.FRESH
        assert plan.module_count == 2

    def test_order_follows_module_binaries(self, module_dir, contracts_dir) -> None:
        """Test that install order is the order of the module binaries."""
        files = [
            str(module_dir / "beta.js"),
            str(module_dir / "beta_bg.wasm"),
            str(module_dir / "alpha.js"),
            str(module_dir / "alpha.wasm"),
        ]
        plan = PlanBuilder().build(files, RPC, 1, str(contracts_dir))
        assert [m.name for m in plan.modules] == ["beta", "alpha"]

    def test_missing_loader_is_rejected(self, module_dir, contracts_dir) -> None:
        """Test that a module without a loader fails validation."""
        with pytest.raises(ValidationError) as exc_info:
            PlanBuilder().build([str(module_dir / "alpha.wasm")], RPC, 1, str(contracts_dir))

        assert exc_info.value.field == "modules.alpha"
        assert "no sibling loader" in str(exc_info.value)

    def test_loader_without_module_is_rejected(self, module_dir, contracts_dir) -> None:
        """Test that a loader without a module fails validation."""
        with pytest.raises(ValidationError):
            PlanBuilder().build([str(module_dir / "beta.js")], RPC, 1, str(contracts_dir))

    def test_all_issues_reported(self, module_dir, tmp_path) -> None:
        """Test that every problem appears in one error."""
        with pytest.raises(ValidationError) as exc_info:
            PlanBuilder().build(
                [str(module_dir / "alpha.wasm"), str(module_dir / "notes.txt")],
                "ftp://node",
                0,
                str(tmp_path / "missing"),
            )

        message = str(exc_info.value)
        for field in ("modules.alpha", "modules", "network_endpoint", "chain_id",
                      "contracts_dir"):
            assert field in message

    def test_nonexistent_file(self, module_dir, contracts_dir) -> None:
        """Test that a missing file is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            PlanBuilder().build([str(module_dir / "ghost.wasm")], RPC, 1, str(contracts_dir))
        assert "does not exist" in str(exc_info.value)

    def test_duplicate_binary(self, module_dir, contracts_dir) -> None:
        """Test that the same module given twice is rejected."""
        files = [
            str(module_dir / "alpha.wasm"),
            str(module_dir / "alpha.js"),
            str(module_dir / "alpha.wasm"),
        ]
        with pytest.raises(ValidationError) as exc_info:
            PlanBuilder().build(files, RPC, 1, str(contracts_dir))
        assert "more than one" in str(exc_info.value)

    def test_metadata_endpoint_must_be_http(self, module_files, contracts_dir) -> None:
        """Test that an explicit metadata endpoint is validated."""
        with pytest.raises(ValidationError) as exc_info:
            PlanBuilder().build(module_files, RPC, 1, str(contracts_dir),
                                metadata_endpoint="localhost:5001")
        assert exc_info.value.field == "metadata_endpoint"

    def test_empty_plan_is_valid(self, contracts_dir) -> None:
        """Test that zero modules is a valid plan."""
        plan = PlanBuilder().build([], RPC, 1, str(contracts_dir))
        assert plan.modules == ()


class TestArtifacts:
    """Test suite for contract artifact loading."""

    def test_load_artifact(self, contracts_dir) -> None:
        """Test that bytecode, deployed bytecode and constructor inputs load."""
        artifact = load_artifact(contracts_dir, "contracts/Idea.sol/Idea.json")

        assert artifact.name == "Idea"
        assert artifact.constructor_inputs() == ["string", "string", "uint256"]
        assert artifact.bytecode.startswith(bytes.fromhex("6080"))
        assert artifact.deployed_bytecode is not None

        template = artifact.to_template()
        assert template.creation_bytecode == artifact.bytecode
        assert template.runtime_code_hash is not None

    def test_foundry_bytecode_object(self, tmp_path) -> None:
        """Test that a bytecode object with an `object` key is accepted."""
        path = tmp_path / "out" / "Idea.json"
        path.parent.mkdir()
        path.write_bytes(orjson.dumps({"abi": [], "bytecode": {"object": "6001"}}))

        artifact = load_artifact(tmp_path, "out/Idea.json")
        assert artifact.bytecode == b"\x60\x01"
        assert artifact.deployed_bytecode is None
        assert artifact.to_template().runtime_code_hash is None

    def test_missing_artifact(self, tmp_path) -> None:
        """Test that a missing artifact is a validation error."""
        with pytest.raises(ValidationError):
            load_artifact(tmp_path, "contracts/Idea.sol/Idea.json")

    def test_artifact_without_bytecode(self, tmp_path) -> None:
        """Test that an artifact with empty bytecode is rejected."""
        path = tmp_path / "Idea.json"
        path.write_bytes(orjson.dumps({"abi": [], "bytecode": "0x"}))
        with pytest.raises(ValidationError):
            load_artifact(tmp_path, "Idea.json")


class TestScanQuery:
    """Test suite for block range windowing."""

    def test_windows_cover_range(self) -> None:
        """Test that windows are consecutive and cover the half-open range."""
        query = ScanQuery(FactoryTemplate("Idea", b"\x60"), "0x" + "d1" * 20, 100, 250)
        assert query.windows(60) == [(100, 160), (160, 220), (220, 250)]

    def test_empty_range(self) -> None:
        """Test that an empty range has no windows."""
        query = ScanQuery(FactoryTemplate("Idea", b"\x60"), "0x" + "d1" * 20, 10, 10)
        assert query.windows(5) == []
