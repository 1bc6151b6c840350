"""Tests for product identifier allocation."""

import asyncio

import pytest

from catalog_admin.application.id_allocator import (
    COUNTERS_COLLECTION,
    PRODUCT_COUNTER_ID,
    CounterProductIdAllocator,
    ScanProductIdAllocator,
    create_allocator,
)
from catalog_admin.domain import ProductId
from catalog_admin.infrastructure.document_store import InMemoryDocumentStore


async def insert_products(store: InMemoryDocumentStore, *ids: str) -> None:
    """Insert bare product documents."""
    for product_id in ids:
        await store.collection("products").insert_one({"_id": product_id})


class TestScanProductIdAllocator:
    """Tests for the scan (max + 1) strategy."""

    async def test_empty_catalog(self, store: InMemoryDocumentStore) -> None:
        """An empty catalog starts at prod_0001."""
        allocator = ScanProductIdAllocator(store)
        assert str(await allocator.allocate_next_product_id()) == "prod_0001"

    async def test_max_plus_one(self, store: InMemoryDocumentStore) -> None:
        """The highest number wins, not the last inserted or the count."""
        await insert_products(store, "prod_0007", "prod_0002")
        allocator = ScanProductIdAllocator(store)
        assert str(await allocator.allocate_next_product_id()) == "prod_0008"

    async def test_ignores_foreign_ids(self, store: InMemoryDocumentStore) -> None:
        """Identifiers outside the prod_<digits> pattern are skipped."""
        await insert_products(store, "prod_0003", "legacy-99", "prod_x")
        allocator = ScanProductIdAllocator(store)
        assert str(await allocator.allocate_next_product_id()) == "prod_0004"

    async def test_numeric_not_lexical_maximum(self, store: InMemoryDocumentStore) -> None:
        """prod_10000 is higher than prod_9999."""
        await insert_products(store, "prod_9999", "prod_10000")
        allocator = ScanProductIdAllocator(store)
        assert str(await allocator.allocate_next_product_id()) == "prod_10001"

    async def test_does_not_reserve(self, store: InMemoryDocumentStore) -> None:
        """Two calls without an insert in between return the same id."""
        allocator = ScanProductIdAllocator(store)
        first = await allocator.allocate_next_product_id()
        second = await allocator.allocate_next_product_id()
        assert first == second


class TestCounterProductIdAllocator:
    """Tests for the counter strategy."""

    async def test_sequential(self, store: InMemoryDocumentStore) -> None:
        """Serial calls return prod_0001, prod_0002, ..."""
        allocator = CounterProductIdAllocator(store)
        ids = [str(await allocator.allocate_next_product_id()) for _ in range(3)]
        assert ids == ["prod_0001", "prod_0002", "prod_0003"]

    async def test_seeded_from_existing_products(self, store: InMemoryDocumentStore) -> None:
        """A catalog created by the scan strategy continues where it left off."""
        await insert_products(store, "prod_0001", "prod_0005")
        allocator = CounterProductIdAllocator(store)

        assert await allocator.allocate_next_product_id() == ProductId(number=6)
        counter = await store.collection(COUNTERS_COLLECTION).find_one(PRODUCT_COUNTER_ID)
        assert counter["seq"] == 6

    async def test_never_reuses_after_delete(self, store: InMemoryDocumentStore) -> None:
        """Deleting the newest product does not free its id."""
        allocator = CounterProductIdAllocator(store)
        product_id = str(await allocator.allocate_next_product_id())
        await insert_products(store, product_id)
        await store.collection("products").delete_one(product_id)

        assert str(await allocator.allocate_next_product_id()) == "prod_0002"

    async def test_concurrent_allocations_are_distinct(
        self, store: InMemoryDocumentStore
    ) -> None:
        """Concurrent callers never receive the same id."""
        allocator = CounterProductIdAllocator(store)
        ids = await asyncio.gather(*(allocator.allocate_next_product_id() for _ in range(20)))
        assert sorted(n.number for n in ids) == list(range(1, 21))


def test_create_allocator(store: InMemoryDocumentStore) -> None:
    """Strategies are selected by name."""
    assert isinstance(create_allocator("scan", store), ScanProductIdAllocator)
    assert isinstance(create_allocator("counter", store), CounterProductIdAllocator)
    with pytest.raises(ValueError):
        create_allocator("uuid", store)
