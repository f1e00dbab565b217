"""
Metadata publication.

Every module binary and loader is published to the content store, then one
entry node per module, then the root descriptor referencing the entries in
install order. Content addressing makes the whole publication idempotent:
the same plan always ends at the same root address.

Payloads are published before the modules are installed, and the installer
references exactly the addresses the store returned. A store may address
large payloads differently from another (chunked files), so the descriptor
is only ever published where the payloads produce those same addresses.

Stores are tried in order (remote first, then the in-process fallback). A
store that fails part-way is abandoned as a whole and publication restarts
on the next one, so a descriptor never references content in another store.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, TypeVar

from ..config.defaults import InstanceParams
from ..errors import ContentStoreError, PublishUnavailable, TransientRPCError, ValidationError
from ..logging.config import get_deployment_logger
from ..models.metadata import MetadataDescriptor, ModuleEntry, canonical_bytes
from ..models.plan import ModuleSpec
from ..store.base import ContentStore
from ..utils.cancellation import CancellationToken

logger = get_deployment_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PublishedPayloads:
    """Module binaries and loaders stored in one content store, in install order."""
    entries: tuple[ModuleEntry, ...]
    store: str

    def references(self) -> dict[str, ModuleEntry]:
        return {entry.name: entry for entry in self.entries}


@dataclass(frozen=True)
class PublishedMetadata:
    """Outcome of a successful publication."""
    address: str
    descriptor: MetadataDescriptor
    store: str

    @property
    def payloads(self) -> PublishedPayloads:
        return PublishedPayloads(entries=self.descriptor.modules, store=self.store)


def read_payloads(spec: ModuleSpec) -> tuple[bytes, bytes]:
    """Module and loader bytes, re-read from disk."""
    try:
        return spec.read_module(), spec.read_loader()
    except OSError as e:
        raise ValidationError(
            f"module {spec.name} no longer resolves: {e}",
            field=f"modules.{spec.name}",
            value=str(e.filename or spec.module_path),
        ) from e


class MetadataPublisher:
    """Publishes organization descriptors to the first reachable store."""

    def __init__(
        self,
        stores: Sequence[ContentStore],
        cancel: Optional[CancellationToken] = None,
    ):
        self.stores = list(stores)
        self.cancel = cancel or CancellationToken()
        self.logger = logger

    def _stores_from(self, preferred: Optional[str]) -> list[ContentStore]:
        """Stores in failover order, `preferred` first."""
        if preferred is None:
            return self.stores
        return ([s for s in self.stores if s.name == preferred]
                + [s for s in self.stores if s.name != preferred])

    def _publish_descriptor(self, store: ContentStore, descriptor: MetadataDescriptor) -> str:
        entry_addresses = []
        for entry in descriptor.modules:
            self.cancel.raise_if_cancelled(step="publish_metadata")
            entry_addresses.append(store.publish(canonical_bytes(entry.to_node())))

        self.cancel.raise_if_cancelled(step="publish_metadata")
        return store.publish(canonical_bytes(descriptor.to_node(entry_addresses)))

    def _publish_payloads_on(
        self,
        store: ContentStore,
        modules: Sequence[ModuleSpec],
    ) -> tuple[ModuleEntry, ...]:
        entries = []
        for spec in modules:
            self.cancel.raise_if_cancelled(step="publish_metadata")
            module, loader = read_payloads(spec)
            entries.append(ModuleEntry(
                name=spec.name,
                module=store.publish(module),
                loader=store.publish(loader),
            ))
            self.logger.debug("Published module payloads", module=spec.name, store=store.name)
        return tuple(entries)

    def _with_failover(
        self,
        publish_on: Callable[[ContentStore], T],
        stores: Optional[Sequence[ContentStore]] = None,
    ) -> T:
        attempted = []
        last_error: Optional[Exception] = None

        for store in self.stores if stores is None else stores:
            attempted.append(store.name)
            try:
                return publish_on(store)
            except (TransientRPCError, ContentStoreError) as e:
                last_error = e
                self.logger.warning(
                    "Content store unavailable, trying next",
                    store=store.name,
                    error=str(e),
                )

        raise PublishUnavailable(
            f"no content store could be reached (tried: {', '.join(attempted) or 'none'})",
            attempted=attempted,
            cause=last_error,
        ) from last_error

    def publish_payloads(self, modules: Sequence[ModuleSpec]) -> PublishedPayloads:
        """
        Publish every module binary and loader to one store.

        Raises:
            ValidationError: A module or loader file can no longer be read
            PublishUnavailable: If no store could be reached
        """
        published = self._with_failover(
            lambda store: PublishedPayloads(
                entries=self._publish_payloads_on(store, modules),
                store=store.name,
            )
        )
        self.logger.info("Published module payloads", store=published.store,
                         modules=len(published.entries))
        return published

    def publish(self, descriptor: MetadataDescriptor) -> str:
        """
        Publish a descriptor whose module payloads are already stored.

        Returns:
            Content address of the root descriptor

        Raises:
            PublishUnavailable: If no store could be reached
        """
        return self._with_failover(
            lambda store: self._publish_descriptor(store, descriptor)
        )

    def publish_plan(
        self,
        modules: Sequence[ModuleSpec],
        instance: InstanceParams,
        payloads: Optional[PublishedPayloads] = None,
    ) -> PublishedMetadata:
        """
        Publish module payloads and the descriptor built from them.

        Given already published `payloads`, the descriptor links exactly
        those addresses: their store is tried first, and any other store
        must address the payloads identically to be used.

        Raises:
            ValidationError: A module or loader file can no longer be read
            PublishUnavailable: If no store could be reached
        """
        def publish_on(store: ContentStore) -> PublishedMetadata:
            if payloads is not None and store.name == payloads.store:
                entries = payloads.entries
            else:
                entries = self._publish_payloads_on(store, modules)
                if payloads is not None and entries != payloads.entries:
                    raise ContentStoreError(
                        f"store {store.name} addresses the module payloads differently "
                        f"from the installed references",
                        store=store.name,
                    )

            descriptor = MetadataDescriptor(
                title=instance.title,
                description=instance.description,
                modules=entries,
                schema_version=instance.schema_version,
            )
            return PublishedMetadata(
                address=self._publish_descriptor(store, descriptor),
                descriptor=descriptor,
                store=store.name,
            )

        published = self._with_failover(
            publish_on, self._stores_from(payloads.store if payloads else None)
        )
        self.logger.info(
            "Published metadata",
            store=published.store,
            content_address=published.address,
            modules=len(published.descriptor.modules),
        )
        return published
