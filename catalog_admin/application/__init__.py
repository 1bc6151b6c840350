"""Application layer module.

Contains the catalog service (use cases) that orchestrates domain logic
and the document store / media host adapters.
"""

from catalog_admin.application.catalog_service import (
    CatalogService,
    CompensationLog,
    ConsistencyIssue,
    ConsistencyIssueKind,
    get_catalog_service,
)
from catalog_admin.application.id_allocator import (
    CounterProductIdAllocator,
    ProductIdAllocator,
    ScanProductIdAllocator,
    create_allocator,
)

__all__ = [
    "CatalogService",
    "CompensationLog",
    "ConsistencyIssue",
    "ConsistencyIssueKind",
    "get_catalog_service",
    "CounterProductIdAllocator",
    "ProductIdAllocator",
    "ScanProductIdAllocator",
    "create_allocator",
]
