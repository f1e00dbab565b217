"""
Sequential module installation.

Modules are installed strictly in plan order, one confirmed transaction at a
time: a later module may rely on capabilities registered by an earlier one.
Installation stops at the first failure and reports how many modules made it
in. Nothing is retried across modules; per-request retries happen inside the
LedgerClient.

Each install references the content addresses returned when the module's
payloads were published, never addresses computed here.
"""

from typing import Mapping, Optional, Sequence

from ..errors import Cancelled, DaowizError, PartialInstall, ValidationError
from ..ledger.client import LedgerClient, confirm_or_timeout
from ..ledger.contract import BeaconContract
from ..logging.config import get_deployment_logger, log_deploy_step
from ..models.metadata import ModuleEntry
from ..models.plan import ModuleSpec
from ..utils.cancellation import CancellationToken

logger = get_deployment_logger(__name__)


class ModuleInstaller:
    """Installs an ordered list of modules into a freshly deployed instance."""

    def __init__(
        self,
        ledger: LedgerClient,
        contract: BeaconContract,
        cancel: Optional[CancellationToken] = None,
        confirmation_timeout: Optional[float] = None,
    ):
        self.ledger = ledger
        self.contract = contract
        self.cancel = cancel or CancellationToken()
        self.confirmation_timeout = confirmation_timeout
        self.logger = logger

    def _resolve(self, spec: ModuleSpec, references: Mapping[str, ModuleEntry]) -> ModuleEntry:
        entry = references.get(spec.name)
        if entry is None:
            raise ValidationError(
                f"module {spec.name} has no published content reference",
                field=f"modules.{spec.name}",
            )
        return entry

    def install_one(self, address: str, spec: ModuleSpec, entry: ModuleEntry) -> str:
        """Install a single module and wait for confirmation. Returns the tx hash."""
        request = self.contract.install_request(address, spec, entry.module, entry.loader)

        tx_hash = self.ledger.submit_transaction(request)
        confirm_or_timeout(self.ledger, tx_hash, self.confirmation_timeout)
        return tx_hash

    def install_all(
        self,
        address: str,
        modules: Sequence[ModuleSpec],
        references: Mapping[str, ModuleEntry],
    ) -> int:
        """
        Install every module in order.

        Args:
            address: Instance to install into
            modules: Modules in install order
            references: Published content addresses, by module name

        Returns:
            Number of modules installed (always len(modules) on return)

        Raises:
            PartialInstall: If module k+1 of n failed after k succeeded
            Cancelled: If cancelled between or during installs
        """
        total = len(modules)
        installed = 0

        for spec in modules:
            try:
                self.cancel.raise_if_cancelled(step=f"install_module:{spec.name}")
                tx_hash = self.install_one(address, spec, self._resolve(spec, references))

            except Cancelled as e:
                e.context.update({"installed": installed, "total": total})
                raise

            except DaowizError as e:
                log_deploy_step(
                    self.logger, "install", type(e).__name__, instance=address,
                    context={"module": spec.name, "position": spec.position,
                             "installed": installed, "total": total, "error": str(e)},
                )
                raise PartialInstall(
                    f"installing module {spec.name} failed: {e}",
                    installed=installed,
                    total=total,
                    cause=e,
                ) from e

            installed += 1
            log_deploy_step(
                self.logger, "install", "ok", instance=address,
                context={"module": spec.name, "position": spec.position,
                         "tx_hash": tx_hash, "installed": installed, "total": total},
            )

        return installed
