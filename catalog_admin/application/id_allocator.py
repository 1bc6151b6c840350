"""Product identifier allocation.

Two strategies produce ``prod_NNNN`` identifiers:

- ``ScanProductIdAllocator`` scans existing product ids on every call and
  returns max + 1. Nothing is reserved, so two concurrent callers can
  compute the same id, and deleting the highest-numbered product makes its
  id available again.
- ``CounterProductIdAllocator`` increments a counter document atomically.
  Ids are never handed out twice and never reused after deletion. The
  counter is seeded from a scan the first time it is used, so it continues
  an existing catalog.
"""

from typing import Protocol

import structlog

from catalog_admin.application.repositories import PRODUCTS_COLLECTION
from catalog_admin.domain.value_objects import ProductId
from catalog_admin.infrastructure.document_store import (
    Collection,
    DocumentStore,
    DuplicateDocumentError,
)

logger = structlog.get_logger()

COUNTERS_COLLECTION = "counters"
PRODUCT_COUNTER_ID = "products"


class ProductIdAllocator(Protocol):
    """Source of new product identifiers."""

    async def allocate_next_product_id(self) -> ProductId: ...


async def highest_product_number(products: Collection) -> int:
    """Largest numeric suffix among ``prod_<digits>`` ids, 0 if none."""
    numbers = [
        ProductId.parse_number(document["_id"])
        for document in await products.find_many()
    ]
    return max((n for n in numbers if n is not None), default=0)


class ScanProductIdAllocator:
    """Allocate by scanning current product ids (max + 1).

    Kept for compatibility with catalogs managed by older tooling. See the
    module docstring for its race and reuse behaviour.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.products = store.collection(PRODUCTS_COLLECTION)

    async def allocate_next_product_id(self) -> ProductId:
        """Compute the next identifier from current state."""
        product_id = ProductId(number=await highest_product_number(self.products) + 1)
        logger.debug("Allocated product id by scan", product_id=str(product_id))
        return product_id


class CounterProductIdAllocator:
    """Allocate from a counter document incremented atomically."""

    def __init__(self, store: DocumentStore) -> None:
        self.products = store.collection(PRODUCTS_COLLECTION)
        self.counters = store.collection(COUNTERS_COLLECTION)

    async def allocate_next_product_id(self) -> ProductId:
        """Increment the product counter and return the new identifier."""
        counter = await self.counters.update_one(PRODUCT_COUNTER_ID, inc={"seq": 1})
        if counter is None:
            counter = await self._seed_counter()
        product_id = ProductId(number=counter["seq"])
        logger.debug("Allocated product id from counter", product_id=str(product_id))
        return product_id

    async def _seed_counter(self) -> dict:
        """Create the counter one past the highest existing id.

        If another caller seeds it first, fall back to incrementing theirs.
        """
        seed = await highest_product_number(self.products) + 1
        try:
            await self.counters.insert_one({"_id": PRODUCT_COUNTER_ID, "seq": seed})
        except DuplicateDocumentError:
            return await self.counters.update_one(PRODUCT_COUNTER_ID, inc={"seq": 1})
        logger.info("Seeded product id counter", seq=seed)
        return {"_id": PRODUCT_COUNTER_ID, "seq": seed}


def create_allocator(strategy: str, store: DocumentStore) -> ProductIdAllocator:
    """Build the allocator for ``strategy`` ("counter" or "scan")."""
    if strategy == "scan":
        return ScanProductIdAllocator(store)
    if strategy == "counter":
        return CounterProductIdAllocator(store)
    raise ValueError(f"Unknown product id strategy: {strategy}")
