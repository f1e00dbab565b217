"""
Deployment plan validation.

Turns the raw file list of a `new` invocation into an immutable
DeploymentPlan. Module binaries and loaders are paired here, once, by their
shared stem: `dao.wasm`, `dao_bg.wasm` and `dao.js` all belong to the module
named `dao`. Install order is the order in which each module binary first
appears in the file list.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlparse

from ..errors import ValidationError
from ..models.plan import DeploymentPlan, DeployMode, ModuleSpec

logger = logging.getLogger(__name__)

MODULE_SUFFIX = ".wasm"
LOADER_SUFFIX = ".js"
BINDGEN_SUFFIX = "_bg"


def module_stem(path: Path) -> str:
    """Name shared by a module binary and its loader."""
    name = path.name
    for suffix in (MODULE_SUFFIX, LOADER_SUFFIX, BINDGEN_SUFFIX):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return name


@dataclass(frozen=True)
class PlanIssue:
    """Represents a single plan validation problem."""
    field: str
    message: str
    value: object


@dataclass
class _Slot:
    module: Optional[Path] = None
    loader: Optional[Path] = None
    extra: list[Path] = field(default_factory=list)


class PlanBuilder:
    """
    Deployment plan validation pipeline.

    Collects every problem with a plan before failing, so a single
    ValidationError reports all missing loaders at once.
    """

    def __init__(self) -> None:
        self.logger = logger

    def pair_modules(self, files: Sequence[str]) -> tuple[list[ModuleSpec], list[PlanIssue]]:
        """Pair module binaries with their loaders, preserving install order."""
        slots: dict[str, _Slot] = {}
        order: list[str] = []
        issues: list[PlanIssue] = []

        for raw in files:
            path = Path(raw)

            if path.suffix not in (MODULE_SUFFIX, LOADER_SUFFIX):
                issues.append(PlanIssue(
                    field="modules",
                    message=f"Expected a {MODULE_SUFFIX} module or {LOADER_SUFFIX} loader",
                    value=raw
                ))
                continue

            if not path.is_file():
                issues.append(PlanIssue(
                    field="modules",
                    message="File does not exist or is not readable",
                    value=raw
                ))
                continue

            stem = module_stem(path)
            slot = slots.setdefault(stem, _Slot())

            if path.suffix == MODULE_SUFFIX:
                if slot.module is not None:
                    slot.extra.append(path)
                    continue
                slot.module = path
                order.append(stem)
            else:
                if slot.loader is not None:
                    slot.extra.append(path)
                    continue
                slot.loader = path

        specs: list[ModuleSpec] = []
        for stem, slot in slots.items():
            if slot.extra:
                issues.append(PlanIssue(
                    field=f"modules.{stem}",
                    message="Module given more than one binary or loader",
                    value=[str(p) for p in slot.extra]
                ))
            if slot.module is None:
                issues.append(PlanIssue(
                    field=f"modules.{stem}",
                    message="Loader has no matching module binary",
                    value=str(slot.loader)
                ))
            elif slot.loader is None:
                issues.append(PlanIssue(
                    field=f"modules.{stem}",
                    message="Module has no sibling loader",
                    value=str(slot.module)
                ))

        if not issues:
            for position, stem in enumerate(order):
                slot = slots[stem]
                specs.append(ModuleSpec(
                    name=stem,
                    module_path=slot.module,
                    loader_path=slot.loader,
                    position=position,
                ))

        return specs, issues

    def build(
        self,
        files: Sequence[str],
        network_endpoint: str,
        chain_id: int,
        contracts_dir: str,
        metadata_endpoint: Optional[str] = None,
        mode: DeployMode = DeployMode.FRESH,
    ) -> DeploymentPlan:
        """
        Validate raw invocation inputs into a DeploymentPlan.

        Raises:
            ValidationError: Listing every problem found
        """
        specs, issues = self.pair_modules(files)

        for name, endpoint in (("network_endpoint", network_endpoint),
                               ("metadata_endpoint", metadata_endpoint)):
            if endpoint is None and name == "metadata_endpoint":
                continue
            parsed = urlparse(endpoint or "")
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                issues.append(PlanIssue(
                    field=name,
                    message="Must be an http(s) URL",
                    value=endpoint
                ))

        if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
            issues.append(PlanIssue(
                field="chain_id",
                message="Must be a positive integer",
                value=chain_id
            ))

        contracts_path = Path(contracts_dir)
        if not contracts_path.is_dir():
            issues.append(PlanIssue(
                field="contracts_dir",
                message="Directory does not exist",
                value=contracts_dir
            ))

        if issues:
            self.logger.error(
                "Deployment plan validation failed: %s",
                [f"{i.field}: {i.message}" for i in issues]
            )
            first = issues[0]
            raise ValidationError(
                "; ".join(f"{i.field}: {i.message} (got: {i.value})" for i in issues),
                field=first.field,
                value=first.value,
            )

        plan = DeploymentPlan(
            modules=tuple(specs),
            network_endpoint=network_endpoint,
            chain_id=chain_id,
            contracts_dir=contracts_path,
            metadata_endpoint=metadata_endpoint,
            mode=mode,
        )
        self.logger.info(
            "Validated deployment plan with %d module(s): %s",
            plan.module_count, [s.name for s in specs]
        )
        return plan
