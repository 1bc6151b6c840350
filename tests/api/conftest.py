"""Shared fixtures for API tests."""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from catalog_admin.application.catalog_service import reset_catalog_state
from catalog_admin.infrastructure.config import settings
from catalog_admin.infrastructure.document_store import InMemoryDocumentStore
from catalog_admin.infrastructure.media_host import InMemoryMediaHost
from catalog_admin.main import app


@pytest.fixture(autouse=True)
def fresh_catalog() -> Generator[InMemoryDocumentStore, None, None]:
    """Give every test its own empty store and media host."""
    store = InMemoryDocumentStore()
    reset_catalog_state(store, InMemoryMediaHost())
    yield store
    reset_catalog_state()


@pytest.fixture
def client() -> TestClient:
    """Create test client without authentication."""
    return TestClient(app)


@pytest.fixture
def auth_client() -> TestClient:
    """Create test client with valid API key authentication."""
    return TestClient(
        app,
        headers={"Authorization": f"Bearer {settings.admin_api_key}"},
    )


@pytest.fixture
def seeded_client(auth_client: TestClient) -> TestClient:
    """Authenticated client with category C1 and subcategory S1."""
    response = auth_client.post("/categories", json={"name": "Tools", "id": "C1"})
    assert response.status_code == 201
    response = auth_client.post(
        "/categories/C1/subcategories", json={"name": "Hand Tools", "id": "S1"}
    )
    assert response.status_code == 201
    return auth_client


@pytest.fixture
def product_form() -> dict[str, str]:
    """Complete multipart form fields under C1 / S1."""
    return {
        "product_name": "Widget",
        "product_title": "Blue Widget",
        "product_description": "A very blue widget",
        "category_id": "C1",
        "subcategory_id": "S1",
    }
