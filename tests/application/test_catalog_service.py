"""Tests for CatalogService product and category operations."""

from datetime import datetime, timezone
from typing import Any

import pytest

from catalog_admin.application.catalog_service import CatalogService
from catalog_admin.application.id_allocator import ScanProductIdAllocator
from catalog_admin.domain import (
    CategoryNotFoundError,
    ProductStatus,
    ProductValidationError,
    SubcategoryNotFoundError,
    ValidationError,
)
from catalog_admin.infrastructure.document_store import (
    DuplicateDocumentError,
    InMemoryDocumentStore,
)
from catalog_admin.infrastructure.media_host import InMemoryMediaHost, MediaUploadError


async def parent_ids(service: CatalogService) -> dict[str, list[str]]:
    """Product lists of every category and subcategory, by id."""
    lists = {c.id: c.product_ids for c in await service.list_categories()}
    for category_id in list(lists):
        for subcategory in await service.list_subcategories(category_id):
            lists[subcategory.id] = subcategory.product_ids
    return lists


async def stored_count(store: InMemoryDocumentStore, collection: str, record_id: str) -> int:
    """product_count as written to the parent document."""
    return (await store.collection(collection).find_one(record_id))["product_count"]


# ============================================================================
# Create
# ============================================================================


class TestCreateProduct:
    """Tests for create_product."""

    async def test_create_then_delete_scenario(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """Create in empty C1/S1, then delete, leaves both parents empty."""
        product = await catalog.create_product(product_fields, ["u1", "u2"])

        assert product.id == "prod_0001"
        assert product.image_count == 2
        assert (await catalog.get_category("C1")).product_count == 1
        assert (await catalog.get_subcategory("S1")).product_count == 1
        assert await stored_count(store, "categories", "C1") == 1
        assert await stored_count(store, "subcategories", "S1") == 1

        await catalog.delete_product("prod_0001")

        assert (await catalog.get_category("C1")).product_count == 0
        assert (await catalog.get_subcategory("S1")).product_count == 0
        assert await stored_count(store, "categories", "C1") == 0
        assert await catalog.get_product("prod_0001") is None

    async def test_serial_ids_follow_call_order(
        self, catalog: CatalogService, product_fields: dict
    ) -> None:
        """N serial creates yield prod_0001 .. prod_000N."""
        ids = [(await catalog.create_product(product_fields, ["u"])).id for _ in range(5)]
        assert ids == [f"prod_{n:04d}" for n in range(1, 6)]

    async def test_each_create_listed_once_with_matching_count(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """Every new id appears exactly once in both parents."""
        for _ in range(3):
            product = await catalog.create_product(product_fields, ["u"])
            lists = await parent_ids(catalog)
            assert lists["C1"].count(product.id) == 1
            assert lists["S1"].count(product.id) == 1
            assert await stored_count(store, "categories", "C1") == len(lists["C1"])
            assert await stored_count(store, "subcategories", "S1") == len(lists["S1"])

    async def test_stored_document_shape(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """The product document carries every stored field."""
        await catalog.create_product(product_fields, ["u1"])

        document = await store.collection("products").find_one("prod_0001")
        assert document["product_id"] == "prod_0001"
        assert document["product_name"] == "Widget"
        assert document["image_count"] == 1
        assert document["status"] == "active"
        assert document["created_at"] == document["updated_at"]

    async def test_accepts_document_field_names(self, catalog: CatalogService) -> None:
        """Form-style field names are accepted."""
        product = await catalog.create_product(
            {
                "product_name": "Lamp",
                "product_title": "Desk Lamp",
                "product_description": "Bright",
                "category_id": "C2",
                "subcategory_id": "S2",
            },
            ["u"],
        )
        assert product.name == "Lamp"
        assert (await catalog.get_category("C2")).product_ids == [product.id]

    @pytest.mark.parametrize("missing", ["name", "title", "description", "category_id"])
    async def test_missing_field_writes_nothing(
        self,
        catalog: CatalogService,
        store: InMemoryDocumentStore,
        product_fields: dict,
        missing: str,
    ) -> None:
        """Validation fails before any write, including id allocation."""
        product_fields[missing] = ""
        with pytest.raises(ProductValidationError) as exc_info:
            await catalog.create_product(product_fields, ["u"])

        assert exc_info.value.message == "Missing required fields"
        assert missing in exc_info.value.fields
        assert await store.collection("products").find_many() == []
        assert await store.collection("counters").find_many() == []

    async def test_no_images(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """At least one image is required."""
        with pytest.raises(ProductValidationError) as exc_info:
            await catalog.create_product(product_fields, [])
        assert exc_info.value.message == "At least one image is required"
        assert await store.collection("products").find_many() == []

    async def test_unknown_category(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """A missing category is reported before any write."""
        product_fields["category_id"] = "nope"
        with pytest.raises(CategoryNotFoundError):
            await catalog.create_product(product_fields, ["u"])
        assert await store.collection("products").find_many() == []

    async def test_unknown_subcategory(
        self, catalog: CatalogService, product_fields: dict
    ) -> None:
        """A missing subcategory is reported before any write."""
        product_fields["subcategory_id"] = "nope"
        with pytest.raises(SubcategoryNotFoundError):
            await catalog.create_product(product_fields, ["u"])
        assert (await catalog.get_category("C1")).product_ids == []

    async def test_subcategory_of_other_category_is_accepted(
        self, catalog: CatalogService, product_fields: dict
    ) -> None:
        """The category / subcategory relationship is not verified."""
        product_fields["subcategory_id"] = "S2"
        product = await catalog.create_product(product_fields, ["u"])

        assert (await catalog.get_category("C1")).product_ids == [product.id]
        assert (await catalog.get_subcategory("S2")).product_ids == [product.id]

    async def test_scan_allocator(self, store: InMemoryDocumentStore, product_fields: dict) -> None:
        """The scan strategy also numbers serial creates in order."""
        service = CatalogService(store, allocator=ScanProductIdAllocator(store))
        await service.create_category("Tools", category_id="C1")
        await service.create_subcategory("C1", "Hand Tools", subcategory_id="S1")

        first = await service.create_product(product_fields, ["u"])
        second = await service.create_product(product_fields, ["u"])
        assert (first.id, second.id) == ("prod_0001", "prod_0002")


class TestCreateProductWithImages:
    """Tests for create_product_with_images."""

    async def test_uploads_then_creates(
        self, catalog: CatalogService, media_host: InMemoryMediaHost, product_fields: dict
    ) -> None:
        """Images are uploaded under the product's folder."""
        product = await catalog.create_product_with_images(product_fields, [b"a", b"b"])

        assert product.image_urls == [
            "memory://media/products/tools/hand-tools/prod_0001/prod_0001_1",
            "memory://media/products/tools/hand-tools/prod_0001/prod_0001_2",
        ]
        assert len(media_host.uploads) == 2
        assert (await catalog.get_category("C1")).product_ids == ["prod_0001"]

    async def test_no_images_uploads_nothing(
        self, catalog: CatalogService, media_host: InMemoryMediaHost, product_fields: dict
    ) -> None:
        """Validation happens before upload."""
        with pytest.raises(ProductValidationError):
            await catalog.create_product_with_images(product_fields, [])
        assert media_host.uploads == {}

    async def test_upload_failure_writes_nothing(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """A failed upload aborts before any catalog write."""

        class FailingMediaHost(InMemoryMediaHost):
            async def upload_images(self, images: Any, folder: str, prefix: str) -> list[str]:
                raise MediaUploadError(folder, "rejected", 400)

        catalog.media_host = FailingMediaHost()
        with pytest.raises(MediaUploadError):
            await catalog.create_product_with_images(product_fields, [b"a"])

        assert await store.collection("products").find_many() == []
        assert (await catalog.get_category("C1")).product_ids == []


# ============================================================================
# Read
# ============================================================================


class TestReadProducts:
    """Tests for get_product and list_products."""

    async def test_get_absent(self, catalog: CatalogService) -> None:
        """Absent products are None, not an error."""
        assert await catalog.get_product("prod_0042") is None

    async def test_list_newest_first(self, catalog: CatalogService, product_fields: dict) -> None:
        """Products list newest first."""
        for _ in range(3):
            await catalog.create_product(product_fields, ["u"])

        products = await catalog.list_products()
        assert [p.id for p in products] == ["prod_0003", "prod_0002", "prod_0001"]

    async def test_list_ties_order_by_id_number(
        self, catalog: CatalogService, store: InMemoryDocumentStore
    ) -> None:
        """Products with equal created_at order by number, not by string."""
        created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        products = store.collection("products")
        for product_id in ("prod_9998", "prod_10000", "prod_9999"):
            await products.insert_one(
                {"_id": product_id, "created_at": created_at, "updated_at": created_at}
            )

        listed = await catalog.list_products()
        assert [p.id for p in listed] == ["prod_10000", "prod_9999", "prod_9998"]


# ============================================================================
# Update
# ============================================================================


class TestUpdateProduct:
    """Tests for update_product."""

    async def test_update_fields(self, catalog: CatalogService, product_fields: dict) -> None:
        """Changed fields persist and image_count follows image_urls."""
        created = await catalog.create_product(product_fields, ["u1"])

        updated = await catalog.update_product(
            created.id,
            {"product_title": "Red Widget", "image_urls": ["a", "b", "c"], "status": "inactive"},
        )

        assert updated.title == "Red Widget"
        assert updated.image_count == 3
        assert updated.status == ProductStatus.INACTIVE
        assert updated.updated_at >= created.updated_at
        assert updated.created_at == created.created_at

        stored = await catalog.get_product(created.id)
        assert stored.title == "Red Widget"
        assert stored.image_count == 3

    async def test_stored_image_count_follows_urls(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """The redundant stored image_count is rewritten."""
        await catalog.create_product(product_fields, ["u1", "u2"])
        await catalog.update_product("prod_0001", {"image_urls": ["only"]})

        document = await store.collection("products").find_one("prod_0001")
        assert document["image_count"] == 1

    async def test_update_absent_returns_none(self, catalog: CatalogService) -> None:
        """Updating an absent product returns None."""
        assert await catalog.update_product("prod_0099", {"product_title": "x"}) is None

    async def test_product_id_is_immutable(
        self, catalog: CatalogService, product_fields: dict
    ) -> None:
        """product_id cannot be changed."""
        await catalog.create_product(product_fields, ["u"])
        with pytest.raises(ProductValidationError):
            await catalog.update_product("prod_0001", {"product_id": "prod_0002"})
        assert await catalog.get_product("prod_0001") is not None

    async def test_category_change_migrates_membership(
        self, catalog: CatalogService, product_fields: dict
    ) -> None:
        """Moving a product moves it between parent lists."""
        await catalog.create_product(product_fields, ["u"])

        await catalog.update_product("prod_0001", {"category_id": "C2", "subcategory_id": "S2"})

        lists = await parent_ids(catalog)
        assert lists == {"C1": [], "C2": ["prod_0001"], "S1": [], "S2": ["prod_0001"]}
        assert await catalog.check_consistency() == []

    async def test_move_to_missing_parent_writes_nothing(
        self, catalog: CatalogService, product_fields: dict
    ) -> None:
        """The new parent must exist."""
        await catalog.create_product(product_fields, ["u"])

        with pytest.raises(CategoryNotFoundError):
            await catalog.update_product("prod_0001", {"category_id": "nope"})

        assert (await catalog.get_product("prod_0001")).category_id == "C1"
        assert (await catalog.get_category("C1")).product_ids == ["prod_0001"]

    async def test_migration_disabled_leaves_lists(
        self, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """Without migration only the product's own fields change."""
        service = CatalogService(store, migrate_parents_on_update=False)
        await service.create_category("Tools", category_id="C1")
        await service.create_category("Lighting", category_id="C2")
        await service.create_subcategory("C1", "Hand Tools", subcategory_id="S1")
        await service.create_product(product_fields, ["u"])

        updated = await service.update_product("prod_0001", {"category_id": "C2"})

        assert updated.category_id == "C2"
        assert (await service.get_category("C1")).product_ids == ["prod_0001"]
        assert (await service.get_category("C2")).product_ids == []


# ============================================================================
# Delete
# ============================================================================


class TestDeleteProduct:
    """Tests for delete_product."""

    async def test_delete_absent_is_noop(self, catalog: CatalogService, product_fields: dict) -> None:
        """Deleting an unknown id changes nothing and does not raise."""
        await catalog.create_product(product_fields, ["u"])
        before = await parent_ids(catalog)

        await catalog.delete_product("prod_0099")

        assert await parent_ids(catalog) == before

    async def test_delete_decrements_by_one(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """Only the deleted id leaves the parents."""
        for _ in range(3):
            await catalog.create_product(product_fields, ["u"])

        await catalog.delete_product("prod_0002")

        lists = await parent_ids(catalog)
        assert lists["C1"] == ["prod_0001", "prod_0003"]
        assert lists["S1"] == ["prod_0001", "prod_0003"]
        assert await stored_count(store, "categories", "C1") == 2
        assert await stored_count(store, "subcategories", "S1") == 2

    async def test_delete_twice(self, catalog: CatalogService, product_fields: dict) -> None:
        """The second delete is a no-op."""
        await catalog.create_product(product_fields, ["u"])
        await catalog.delete_product("prod_0001")
        await catalog.delete_product("prod_0001")
        assert (await catalog.get_category("C1")).product_count == 0

    async def test_missing_parent_is_skipped(
        self, catalog: CatalogService, store: InMemoryDocumentStore, product_fields: dict
    ) -> None:
        """A parent deleted out of band does not block product deletion."""
        await catalog.create_product(product_fields, ["u"])
        await store.collection("categories").delete_one("C1")

        await catalog.delete_product("prod_0001")

        assert await catalog.get_product("prod_0001") is None
        assert (await catalog.get_subcategory("S1")).product_ids == []


# ============================================================================
# Categories
# ============================================================================


class TestCategories:
    """Tests for category and subcategory operations."""

    async def test_create_and_list(self, service: CatalogService) -> None:
        """Categories list by name and start empty."""
        await service.create_category("Tools")
        await service.create_category("Apparel")

        categories = await service.list_categories()
        assert [c.name for c in categories] == ["Apparel", "Tools"]
        assert all(c.id.startswith("cat_") for c in categories)
        assert all(c.product_count == 0 for c in categories)

    async def test_blank_name(self, service: CatalogService) -> None:
        """A name is required."""
        with pytest.raises(ValidationError):
            await service.create_category("   ")

    async def test_duplicate_id(self, service: CatalogService) -> None:
        """Explicit ids must be unique."""
        await service.create_category("Tools", category_id="C1")
        with pytest.raises(DuplicateDocumentError):
            await service.create_category("Other", category_id="C1")

    async def test_subcategories_scoped_to_category(self, catalog: CatalogService) -> None:
        """list_subcategories only returns children of the category."""
        await catalog.create_subcategory("C1", "Drills", subcategory_id="S3")

        subcategories = await catalog.list_subcategories("C1")
        assert [s.id for s in subcategories] == ["S3", "S1"]
        assert all(s.category_id == "C1" for s in subcategories)

    async def test_subcategory_requires_category(self, service: CatalogService) -> None:
        """The parent category must exist."""
        with pytest.raises(CategoryNotFoundError):
            await service.create_subcategory("nope", "Orphans")
