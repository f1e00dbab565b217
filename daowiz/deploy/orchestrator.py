"""
Deployment orchestration.

Drives the creation of one Beacon DAO instance through four steps, each its
own failure domain:

1. create the instance (contract creation transaction)
2. install the plan's modules, in order
3. publish the metadata descriptor
4. link the descriptor's content address into the instance

Module payloads are published before step 1; installs reference the
addresses the store returned for them, and the descriptor links the same
addresses.

Nothing is rolled back: once the instance exists every later failure
carries its InstanceRecord so the caller can resume by hand, e.g. by calling
`link_metadata` alone after a MetadataLinkFailed.
"""

from typing import Optional

from ..config.defaults import InstanceParams
from ..errors import (
    Cancelled,
    ConfirmationTimeout,
    DaowizError,
    DeployFailed,
    MetadataLinkFailed,
    PartialInstall,
    PublishUnavailable,
    TransactionReverted,
    ValidationError,
)
from ..ledger.client import LedgerClient, confirm_or_timeout
from ..ledger.contract import BeaconContract
from ..logging.config import get_deployment_logger, log_deploy_step
from ..models.plan import DeploymentPlan, DeployMode, ScanQuery
from ..models.records import InstanceRecord
from ..scan.scanner import InstanceScanner
from ..utils.cancellation import CancellationToken
from .installer import ModuleInstaller
from .metadata import MetadataPublisher, PublishedMetadata, PublishedPayloads

logger = get_deployment_logger(__name__)


class DeploymentOrchestrator:
    """
    Creates Beacon DAO instances from validated deployment plans.

    Manages the create pipeline:
    Create Instance → Install Modules → Publish Metadata → Link Metadata
    """

    def __init__(
        self,
        ledger: LedgerClient,
        contract: BeaconContract,
        installer: ModuleInstaller,
        publisher: MetadataPublisher,
        instance: Optional[InstanceParams] = None,
        scanner: Optional[InstanceScanner] = None,
        cancel: Optional[CancellationToken] = None,
        confirmation_timeout: Optional[float] = None,
    ):
        self.ledger = ledger
        self.contract = contract
        self.installer = installer
        self.publisher = publisher
        self.instance = instance or InstanceParams()
        self.scanner = scanner
        self.cancel = cancel or CancellationToken()
        self.confirmation_timeout = confirmation_timeout
        self.logger = logger

    def deploy(self, plan: DeploymentPlan) -> InstanceRecord:
        """
        Create an instance for `plan`.

        Returns:
            The created (or, in REUSE_EXISTING mode, rediscovered) instance

        Raises:
            ValidationError: A module or loader file can no longer be read
            DeployFailed: The create transaction failed
            ConfirmationTimeout: A transaction was not confirmed in time
            PartialInstall: Only some modules were installed
            PublishUnavailable: Metadata could not be published
            MetadataLinkFailed: The set-metadata transaction failed
            Cancelled: The invocation was cancelled
        """
        self.logger.info(
            "Starting deployment",
            modules=[spec.name for spec in plan.modules],
            mode=plan.mode.value,
            deployer=self.ledger.account,
        )

        published: Optional[PublishedMetadata] = None

        if plan.mode is DeployMode.REUSE_EXISTING:
            # Publishing first has no on-chain effect and yields the address
            # an identical earlier deployment would have linked
            published = self._publish(plan, instance=None)
            existing = self.find_existing(published.address)
            if existing is not None:
                log_deploy_step(self.logger, "reuse", "ok", instance=existing.address,
                                context={"content_address": published.address})
                return existing
            payloads = published.payloads
        else:
            payloads = self._publish_payloads(plan)

        record = self.create_instance()

        try:
            self._install(record, plan, payloads)
            if published is None:
                published = self._publish(plan, instance=record, payloads=payloads)
        except (Cancelled, PublishUnavailable, ValidationError) as e:
            e.instance = record
            raise

        return self.link_metadata(record, published.address)

    def _publish_payloads(self, plan: DeploymentPlan) -> PublishedPayloads:
        """Store module binaries and loaders ahead of the create transaction."""
        self.cancel.raise_if_cancelled(step="publish_payloads")
        try:
            payloads = self.publisher.publish_payloads(plan.modules)
        except PublishUnavailable:
            log_deploy_step(self.logger, "publish_payloads", "PublishUnavailable")
            raise
        log_deploy_step(self.logger, "publish_payloads", "ok",
                        context={"store": payloads.store, "modules": len(payloads.entries)})
        return payloads

    def create_instance(self) -> InstanceRecord:
        """Step 1: submit the create transaction and wait for confirmation."""
        self.cancel.raise_if_cancelled(step="create_instance")

        request = self.contract.create_request()

        try:
            tx_hash = self.ledger.submit_transaction(request)
        except (Cancelled, ValidationError):
            raise
        except DaowizError as e:
            log_deploy_step(self.logger, "create", "DeployFailed", context={"error": str(e)})
            raise DeployFailed(f"submitting the create transaction failed: {e}", cause=e) from e

        # Broadcast: from here on only a revert is a definite failure
        try:
            receipt = confirm_or_timeout(self.ledger, tx_hash, self.confirmation_timeout)
        except TransactionReverted as e:
            log_deploy_step(self.logger, "create", "DeployFailed",
                            context={"tx_hash": tx_hash, "error": str(e)})
            raise DeployFailed(
                f"create transaction {tx_hash} reverted: {e}", tx_hash=tx_hash, cause=e
            ) from e
        except ConfirmationTimeout as e:
            log_deploy_step(self.logger, "create", "ConfirmationTimeout",
                            context={"tx_hash": tx_hash, "error": str(e)})
            raise

        if receipt.contract_address is None:
            raise DeployFailed(
                f"create transaction {tx_hash} produced no contract address",
                tx_hash=tx_hash,
            )

        record = InstanceRecord(
            address=receipt.contract_address,
            deployer=self.ledger.account,
            block_number=receipt.block_number,
            tx_hash=tx_hash,
        )
        log_deploy_step(self.logger, "create", "ok", instance=record.address,
                        context={"tx_hash": tx_hash, "block": record.block_number})
        return record

    def _install(self, record: InstanceRecord, plan: DeploymentPlan,
                 payloads: PublishedPayloads) -> None:
        """Step 2: install modules, attaching the instance to any failure."""
        try:
            self.installer.install_all(record.address, plan.modules, payloads.references())
        except PartialInstall as e:
            e.instance = record
            raise

    def _publish(self, plan: DeploymentPlan, instance: Optional[InstanceRecord],
                 payloads: Optional[PublishedPayloads] = None) -> PublishedMetadata:
        """Step 3: publish the descriptor (and any payloads not yet stored)."""
        self.cancel.raise_if_cancelled(step="publish_metadata")
        try:
            published = self.publisher.publish_plan(plan.modules, self.instance, payloads)
        except PublishUnavailable:
            log_deploy_step(self.logger, "publish", "PublishUnavailable",
                            instance=instance.address if instance else None)
            raise
        log_deploy_step(self.logger, "publish", "ok",
                        instance=instance.address if instance else None,
                        context={"content_address": published.address, "store": published.store})
        return published

    def link_metadata(self, record: InstanceRecord, content_address: str) -> InstanceRecord:
        """
        Step 4: link a published descriptor into an existing instance.

        Safe to call on its own to retry after MetadataLinkFailed.
        """
        request = self.contract.set_metadata_request(record.address, content_address)
        tx_hash = None

        try:
            self.cancel.raise_if_cancelled(step="link_metadata")
            tx_hash = self.ledger.submit_transaction(request)
            confirm_or_timeout(self.ledger, tx_hash, self.confirmation_timeout)

        except (Cancelled, ConfirmationTimeout) as e:
            e.instance = record
            raise

        except DaowizError as e:
            log_deploy_step(self.logger, "link", "MetadataLinkFailed", instance=record.address,
                            context={"tx_hash": tx_hash, "content_address": content_address,
                                     "error": str(e)})
            raise MetadataLinkFailed(
                f"linking metadata {content_address} into {record.address} failed: {e}",
                content_address=content_address,
                cause=e,
                instance=record,
            ) from e

        linked = record.with_metadata(content_address)
        log_deploy_step(self.logger, "link", "ok", instance=record.address,
                        context={"tx_hash": tx_hash, "content_address": content_address})
        return linked

    def find_existing(self, content_address: str) -> Optional[InstanceRecord]:
        """Earliest instance by this deployer already linked to `content_address`."""
        if self.scanner is None:
            raise ValidationError("reusing an existing instance requires an instance scanner",
                                  field="mode", value=DeployMode.REUSE_EXISTING.value)

        query = ScanQuery(
            template=self.contract.artifact.to_template(),
            account=self.ledger.account,
            from_block=0,
            to_block=self.ledger.block_number() + 1,
        )
        candidates = [
            record for record in self.scanner.scan(query, resolve_metadata=True)
            if record.metadata_address == content_address
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda r: r.block_number)
