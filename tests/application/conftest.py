"""Shared fixtures for application service tests."""

from typing import Any

import pytest

from catalog_admin.application.catalog_service import CatalogService
from catalog_admin.infrastructure.document_store import InMemoryDocumentStore
from catalog_admin.infrastructure.media_host import InMemoryMediaHost


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Create an empty in-memory store."""
    return InMemoryDocumentStore()


@pytest.fixture
def media_host() -> InMemoryMediaHost:
    """Create an in-memory media host."""
    return InMemoryMediaHost()


@pytest.fixture
def service(store: InMemoryDocumentStore, media_host: InMemoryMediaHost) -> CatalogService:
    """Create a catalog service with default settings."""
    return CatalogService(store, media_host=media_host)


@pytest.fixture
async def catalog(service: CatalogService) -> CatalogService:
    """Service with categories C1, C2 and subcategories S1 (C1), S2 (C2)."""
    await service.create_category("Tools", category_id="C1")
    await service.create_category("Lighting", category_id="C2")
    await service.create_subcategory("C1", "Hand Tools", subcategory_id="S1")
    await service.create_subcategory("C2", "Desk Lamps", subcategory_id="S2")
    return service


@pytest.fixture
def product_fields() -> dict[str, Any]:
    """Complete product fields under C1 / S1."""
    return {
        "name": "Widget",
        "title": "Blue Widget",
        "description": "A very blue widget",
        "category_id": "C1",
        "subcategory_id": "S1",
    }
