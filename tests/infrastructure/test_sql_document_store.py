"""Tests for the SQLAlchemy document store, run against SQLite."""

from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from catalog_admin.application.catalog_service import CatalogService
from catalog_admin.infrastructure.database import create_tables
from catalog_admin.infrastructure.document_store import (
    ASCENDING,
    DuplicateDocumentError,
    SqlDocumentStore,
)


@pytest.fixture
async def store(tmp_path: Path) -> AsyncGenerator[SqlDocumentStore, None]:
    """Create a SQL store backed by a fresh SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await create_tables(engine)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    sql_store = SqlDocumentStore(session_factory, engine=engine)
    yield sql_store
    await sql_store.close()


class TestSqlCollection:
    """Tests for SqlCollection."""

    async def test_insert_and_find(self, store: SqlDocumentStore) -> None:
        """Documents round-trip with datetimes intact."""
        created_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        products = store.collection("products")
        await products.insert_one({"_id": "prod_0001", "created_at": created_at})

        found = await products.find_one("prod_0001")
        assert found == {"_id": "prod_0001", "created_at": created_at}

    async def test_duplicate_insert(self, store: SqlDocumentStore) -> None:
        """Inserting a taken id raises DuplicateDocumentError."""
        products = store.collection("products")
        await products.insert_one({"_id": "prod_0001"})
        with pytest.raises(DuplicateDocumentError):
            await products.insert_one({"_id": "prod_0001"})

    async def test_same_id_in_two_collections(self, store: SqlDocumentStore) -> None:
        """Identifiers are scoped to their collection."""
        await store.collection("categories").insert_one({"_id": "x", "name": "A"})
        await store.collection("subcategories").insert_one({"_id": "x", "name": "B"})

        assert (await store.collection("categories").find_one("x"))["name"] == "A"
        assert (await store.collection("subcategories").find_one("x"))["name"] == "B"

    async def test_update_modifiers(self, store: SqlDocumentStore) -> None:
        """update_one applies modifiers and persists them."""
        categories = store.collection("categories")
        await categories.insert_one({"_id": "c1", "product_ids": [], "product_count": 0})

        await categories.update_one("c1", push={"product_ids": "p1"}, inc={"product_count": 1})
        await categories.update_one("c1", push={"product_ids": "p2"}, inc={"product_count": 1})
        await categories.update_one("c1", pull={"product_ids": "p1"}, inc={"product_count": -1})

        found = await categories.find_one("c1")
        assert found["product_ids"] == ["p2"]
        assert found["product_count"] == 1

    async def test_update_missing(self, store: SqlDocumentStore) -> None:
        """Updating an absent document matches nothing unless upserting."""
        counters = store.collection("counters")
        assert await counters.update_one("products", inc={"seq": 1}) is None
        assert await counters.update_one("products", inc={"seq": 1}, upsert=True) == {
            "_id": "products",
            "seq": 1,
        }

    async def test_find_many(self, store: SqlDocumentStore) -> None:
        """find_many filters and sorts."""
        subcategories = store.collection("subcategories")
        await subcategories.insert_one({"_id": "s1", "category_id": "c1", "name": "Saws"})
        await subcategories.insert_one({"_id": "s2", "category_id": "c2", "name": "Bags"})
        await subcategories.insert_one({"_id": "s3", "category_id": "c1", "name": "Drills"})

        found = await subcategories.find_many(
            filter={"category_id": "c1"}, sort=[("name", ASCENDING)]
        )
        assert [d["_id"] for d in found] == ["s3", "s1"]

    async def test_delete(self, store: SqlDocumentStore) -> None:
        """delete_one reports whether a document was removed."""
        products = store.collection("products")
        await products.insert_one({"_id": "prod_0001"})

        assert await products.delete_one("prod_0001") is True
        assert await products.find_one("prod_0001") is None
        assert await products.delete_one("prod_0001") is False


class TestCatalogOnSql:
    """The catalog service keeps parents consistent on the SQL backend."""

    async def test_create_and_delete_product(self, store: SqlDocumentStore) -> None:
        """Create then delete leaves both parents empty."""
        service = CatalogService(store)
        category = await service.create_category("Tools", category_id="C1")
        subcategory = await service.create_subcategory(category.id, "Hand Tools", "S1")

        product = await service.create_product(
            {
                "name": "Widget",
                "title": "Blue Widget",
                "description": "A very blue widget",
                "category_id": "C1",
                "subcategory_id": "S1",
            },
            ["u1", "u2"],
        )

        assert product.id == "prod_0001"
        assert (await service.get_category("C1")).product_ids == ["prod_0001"]
        assert (await service.get_subcategory(subcategory.id)).product_count == 1
        stored = await service.get_product("prod_0001")
        assert stored.image_count == 2
        assert stored.created_at == product.created_at

        await service.delete_product("prod_0001")

        assert await service.get_product("prod_0001") is None
        assert (await service.get_category("C1")).product_count == 0
        assert (await service.get_subcategory("S1")).product_count == 0
        assert await service.check_consistency() == []
