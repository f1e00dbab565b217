"""
Main engine coordinator.

Wires the ledger client, content stores, installer, publisher, scanner and
orchestrator from configuration for a single invocation, and exposes the two
operations of the tool: `create` a Beacon DAO instance and `list` the
instances an account has created.
"""

from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import structlog

from .config.loader import ConfigLoader
from .data.artifacts import load_artifact
from .data.plan_builder import PlanBuilder
from .deploy.installer import ModuleInstaller
from .deploy.metadata import MetadataPublisher
from .deploy.orchestrator import DeploymentOrchestrator
from .errors import ValidationError
from .ledger.client import LedgerClient, Web3LedgerClient
from .ledger.contract import BeaconContract
from .ledger.retry import RetryPolicy
from .ledger.signer import Signer
from .models.plan import DeployMode, ScanQuery
from .models.records import InstanceRecord
from .scan.scanner import InstanceScanner
from .store.base import ContentStore
from .store.ipfs import IpfsContentStore
from .store.local import LocalContentStore
from .utils.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

LedgerFactory = Callable[[str, int, Signer], LedgerClient]


class DaoEngine:
    """
    Main coordinator for Beacon DAO provisioning and discovery.

    Manages the invocation pipeline:
    Inputs → Plan Validation → Orchestrator / Scanner → InstanceRecord(s)
    """

    def __init__(
        self,
        config_dir: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None,
        ledger_factory: Optional[LedgerFactory] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config_dir: Directory searched for `daowiz.yaml`
            overrides: Highest-precedence configuration values
            ledger_factory: Builds the LedgerClient for an endpoint, chain id
                and signer (defaults to JSON-RPC over HTTP)
            cancel: Token that aborts the invocation when fired
        """
        self.logger = logger

        self.config_loader = ConfigLoader.create(Path(config_dir) if config_dir else None)
        self.config = self.config_loader.load(overrides)
        self.plan_builder = PlanBuilder()
        self.cancel = cancel or CancellationToken()
        self.retry = RetryPolicy.from_params(self.config.retry)
        self.ledger_factory = ledger_factory or self._web3_ledger

        self.logger.info("daowiz engine initialized", config_dir=str(self.config_loader.config_dir))

    def _web3_ledger(self, endpoint: str, chain_id: int, signer: Signer) -> LedgerClient:
        return Web3LedgerClient(
            endpoint=endpoint,
            chain_id=chain_id,
            signer=signer,
            retry=self.retry,
            confirmation=self.config.confirmation,
            gas_price_wei=self.config.contract.gas_price_wei,
            cancel=self.cancel,
        )

    def build_stores(self, metadata_endpoint: Optional[str]) -> list[ContentStore]:
        """
        Content stores in failover order.

        An explicit endpoint is tried first, followed by the in-process
        store when fallback is enabled. Without an endpoint the in-process
        store is used alone, or the default IPFS node when fallback is off.
        """
        params = self.config.content_store
        local = LocalContentStore(Path(params.fallback_dir) if params.fallback_dir else None)

        def ipfs(url: str) -> IpfsContentStore:
            return IpfsContentStore(
                api_url=url,
                retry=self.retry,
                timeout_seconds=params.request_timeout_seconds,
                cancel=self.cancel,
            )

        if metadata_endpoint:
            stores: list[ContentStore] = [ipfs(metadata_endpoint)]
            if params.fallback_enabled:
                stores.append(local)
            return stores

        if params.fallback_enabled:
            return [local]
        return [ipfs(params.default_api_url)]

    def load_contract(self, contracts_dir: str) -> BeaconContract:
        artifact = load_artifact(Path(contracts_dir), self.config.contract.artifact_path)
        return BeaconContract(artifact, self.config.contract, self.config.instance)

    def build_scanner(self, ledger: LedgerClient, contract: BeaconContract) -> InstanceScanner:
        return InstanceScanner(
            ledger,
            params=self.config.scan,
            cancel=self.cancel,
            metadata_reader=lambda address: contract.read_metadata(ledger, address),
        )

    def create(
        self,
        files: Sequence[str],
        network_endpoint: str,
        chain_id: int,
        contracts_dir: str,
        signer: Signer,
        metadata_endpoint: Optional[str] = None,
        mode: DeployMode = DeployMode.FRESH,
    ) -> InstanceRecord:
        """
        Create a Beacon DAO instance with the given modules.

        Args:
            files: Module binaries and loaders, in install order
            network_endpoint: Ledger JSON-RPC URL
            chain_id: Chain id signed into every transaction
            contracts_dir: Directory holding the compiled contract artifact
            signer: Deployment account
            metadata_endpoint: IPFS API URL for metadata
            mode: FRESH, or REUSE_EXISTING to return an identical earlier
                deployment instead of creating a new one

        Returns:
            The created instance, with its metadata link
        """
        plan = self.plan_builder.build(
            files,
            network_endpoint=network_endpoint,
            chain_id=chain_id,
            contracts_dir=contracts_dir,
            metadata_endpoint=metadata_endpoint,
            mode=mode,
        )
        contract = self.load_contract(contracts_dir)
        ledger = self.ledger_factory(network_endpoint, chain_id, signer)
        timeout = self.config.confirmation.timeout_seconds

        orchestrator = DeploymentOrchestrator(
            ledger=ledger,
            contract=contract,
            installer=ModuleInstaller(ledger, contract, cancel=self.cancel,
                                      confirmation_timeout=timeout),
            publisher=MetadataPublisher(self.build_stores(metadata_endpoint), cancel=self.cancel),
            instance=self.config.instance,
            scanner=self.build_scanner(ledger, contract),
            cancel=self.cancel,
            confirmation_timeout=timeout,
        )
        return orchestrator.deploy(plan)

    def list(
        self,
        network_endpoint: str,
        chain_id: int,
        contracts_dir: str,
        signer: Signer,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
        account: Optional[str] = None,
        resolve_metadata: Optional[bool] = None,
    ) -> list[InstanceRecord]:
        """
        List instances created by an account, ordered by creation block.

        The range is half-open, [from_block, to_block); it defaults to the
        whole chain up to and including the latest block.

        Args:
            account: Deployer to scan (defaults to the signer's account)
        """
        if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
            raise ValidationError("chain id must be a positive integer",
                                  field="chain_id", value=chain_id)

        contract = self.load_contract(contracts_dir)
        ledger = self.ledger_factory(network_endpoint, chain_id, signer)

        if to_block is None:
            to_block = ledger.block_number() + 1

        query = ScanQuery(
            template=contract.artifact.to_template(),
            account=account or ledger.account,
            from_block=0 if from_block is None else from_block,
            to_block=to_block,
        )
        records = self.build_scanner(ledger, contract).scan(query, resolve_metadata=resolve_metadata)
        return sorted(records, key=lambda r: (r.block_number, r.address.lower()))
