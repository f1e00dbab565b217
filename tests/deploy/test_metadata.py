"""Tests for metadata descriptor publication and store failover."""

import orjson
import pytest

from conftest import ChunkingStore
from daowiz.config.defaults import InstanceParams
from daowiz.data.plan_builder import PlanBuilder
from daowiz.deploy.metadata import MetadataPublisher
from daowiz.errors import (
    Cancelled,
    ContentStoreError,
    PublishUnavailable,
    TransientRPCError,
    ValidationError,
)
from daowiz.models.metadata import MetadataDescriptor, ModuleEntry, canonical_bytes
from daowiz.store import LocalContentStore, content_address
from daowiz.store.base import ContentStore
from daowiz.utils.cancellation import CancellationToken


class DownStore(ContentStore):
    """Store that is never reachable."""

    def __init__(self, name="ipfs", error=None):
        super().__init__(name)
        self.error = error or TransientRPCError("connection refused")
        self.attempts = 0

    def publish(self, data):
        self.attempts += 1
        raise self.error

    def fetch(self, address):
        raise self.error


class FlakyStore(LocalContentStore):
    """Store that fails after accepting `limit` blocks."""

    def __init__(self, limit):
        super().__init__(name="flaky")
        self.limit = limit

    def publish(self, data):
        if self.limit == 0:
            raise ContentStoreError("disk full", store=self.name)
        self.limit -= 1
        return super().publish(data)


@pytest.fixture
def modules(module_files, contracts_dir):
    return PlanBuilder().build(module_files, "http://127.0.0.1:8545", 1,
                               str(contracts_dir)).modules


class TestDescriptor:
    """Test suite for descriptor nodes."""

    def test_entry_node(self):
        """Test the per-module dag-json entry."""
        entry = ModuleEntry(name="alpha", module="bafymod", loader="bafyload")
        assert entry.to_node() == {
            "loader": [{"/": "bafyload"}],
            "module": [{"/": "bafymod"}],
        }

    def test_canonical_bytes_ignore_insertion_order(self):
        assert canonical_bytes({"b": 1, "a": 2}) == canonical_bytes({"a": 2, "b": 1})

    def test_root_node(self):
        descriptor = MetadataDescriptor(title="T", description="D", modules=())
        assert descriptor.to_node(["bafy1", "bafy2"]) == {
            "title": "T",
            "description": "D",
            "payload": [{"/": "bafy1"}, {"/": "bafy2"}],
            "schema_version": 1,
        }


class TestMetadataPublisher:
    """Test suite for MetadataPublisher."""

    def test_publish_plan(self, modules):
        """Test that payloads, entries and the root all land in the store."""
        store = LocalContentStore()
        published = MetadataPublisher([store]).publish_plan(modules, InstanceParams())

        root = orjson.loads(store.fetch(published.address))
        assert root["title"] == "Vision DAO"
        assert len(root["payload"]) == 2

        first_entry = orjson.loads(store.fetch(root["payload"][0]["/"]))
        assert first_entry["module"] == [{"/": content_address(modules[0].read_module())}]
        assert store.fetch(first_entry["loader"][0]["/"]) == modules[0].read_loader()
        assert published.store == "local"
        assert [e.name for e in published.descriptor.modules] == ["alpha", "beta"]

    def test_publication_is_deterministic(self, modules):
        """Test that the same plan always yields the same root address."""
        first = MetadataPublisher([LocalContentStore()]).publish_plan(modules, InstanceParams())
        second = MetadataPublisher([LocalContentStore()]).publish_plan(modules, InstanceParams())
        assert first.address == second.address

    def test_details_change_the_address(self, modules):
        first = MetadataPublisher([LocalContentStore()]).publish_plan(modules, InstanceParams())
        other = MetadataPublisher([LocalContentStore()]).publish_plan(
            modules, InstanceParams(title="Other DAO"))
        assert first.address != other.address

    def test_failover_to_next_store(self, modules):
        """Test that an unreachable remote store falls back to the next."""
        down = DownStore()
        local = LocalContentStore()

        published = MetadataPublisher([down, local]).publish_plan(modules, InstanceParams())

        assert published.store == "local"
        assert down.attempts == 1
        assert local.fetch(published.address)

    def test_partial_store_is_abandoned(self, modules):
        """Test that a store failing mid-way is not mixed with the next."""
        flaky = FlakyStore(limit=2)
        local = LocalContentStore()

        published = MetadataPublisher([flaky, local]).publish_plan(modules, InstanceParams())

        root = orjson.loads(local.fetch(published.address))
        for link in root["payload"]:
            local.fetch(link["/"])

    def test_all_stores_down(self, modules):
        """Test that PublishUnavailable lists every attempted store."""
        with pytest.raises(PublishUnavailable) as exc_info:
            MetadataPublisher([DownStore("ipfs"), DownStore("local")]).publish_plan(
                modules, InstanceParams())

        assert exc_info.value.attempted == ["ipfs", "local"]
        assert isinstance(exc_info.value.cause, TransientRPCError)

    def test_no_stores(self, modules):
        with pytest.raises(PublishUnavailable):
            MetadataPublisher([]).publish_plan(modules, InstanceParams())

    def test_publish_descriptor(self):
        """Test publishing a descriptor whose payloads already exist."""
        store = LocalContentStore()
        entry = ModuleEntry(name="alpha", module=store.publish(b"m"), loader=store.publish(b"l"))
        descriptor = MetadataDescriptor(title="T", description="D", modules=(entry,))

        address = MetadataPublisher([store]).publish(descriptor)

        root = orjson.loads(store.fetch(address))
        assert root["payload"] == [{"/": content_address(canonical_bytes(entry.to_node()))}]

    def test_cancelled(self, modules):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(Cancelled):
            MetadataPublisher([LocalContentStore()], cancel=token).publish_plan(
                modules, InstanceParams())


class TestPublishPayloads:
    """Test suite for publishing module payloads ahead of installation."""

    def test_store_addresses_are_kept(self, modules):
        """Test that entries hold the addresses the store returned."""
        store = ChunkingStore()

        payloads = MetadataPublisher([store]).publish_payloads(modules)

        assert payloads.store == "ipfs"
        assert [e.name for e in payloads.entries] == ["alpha", "beta"]
        assert payloads.entries[0].loader.startswith("bafybei")
        assert store.fetch(payloads.entries[0].loader) == modules[0].read_loader()
        assert payloads.references()["beta"] == payloads.entries[1]

    def test_failover(self, modules):
        payloads = MetadataPublisher([DownStore(), LocalContentStore()]).publish_payloads(modules)
        assert payloads.store == "local"

    def test_unreadable_loader(self, modules):
        """Test that a loader removed after planning is a validation error."""
        modules[1].loader_path.unlink()

        with pytest.raises(ValidationError) as exc_info:
            MetadataPublisher([LocalContentStore()]).publish_payloads(modules)

        assert exc_info.value.field == "modules.beta"
        assert exc_info.value.value == str(modules[1].loader_path)

    def test_unreadable_module_is_not_failed_over(self, modules):
        """Test that a missing file is reported rather than tried on the next store."""
        modules[0].module_path.unlink()
        fallback = DownStore("local")

        with pytest.raises(ValidationError):
            MetadataPublisher([LocalContentStore(), fallback]).publish_plan(
                modules, InstanceParams())

        assert fallback.attempts == 0

    def test_descriptor_links_published_payloads(self, modules):
        """Test that the descriptor reuses the payload addresses of its store."""
        store = ChunkingStore()
        publisher = MetadataPublisher([LocalContentStore(), store])
        payloads = MetadataPublisher([store]).publish_payloads(modules)

        published = publisher.publish_plan(modules, InstanceParams(), payloads)

        assert published.store == "ipfs"
        assert published.descriptor.modules == payloads.entries

    def test_fallback_with_other_addresses_is_rejected(self, modules):
        """Test that a store addressing payloads differently cannot hold the descriptor."""
        payloads = MetadataPublisher([ChunkingStore()]).publish_payloads(modules)
        publisher = MetadataPublisher([DownStore("ipfs"), LocalContentStore()])

        with pytest.raises(PublishUnavailable) as exc_info:
            publisher.publish_plan(modules, InstanceParams(), payloads)

        assert exc_info.value.attempted == ["ipfs", "local"]
        assert isinstance(exc_info.value.cause, ContentStoreError)

    def test_fallback_with_same_addresses(self, modules):
        payloads = MetadataPublisher([LocalContentStore(name="ipfs")]).publish_payloads(modules)
        publisher = MetadataPublisher([DownStore("ipfs"), LocalContentStore()])

        published = publisher.publish_plan(modules, InstanceParams(), payloads)

        assert published.store == "local"
        assert published.descriptor.modules == payloads.entries
