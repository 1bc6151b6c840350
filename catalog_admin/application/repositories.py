"""Repositories mapping catalog entities onto document store collections."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Generic, TypeVar

from catalog_admin.domain.entities import CatalogAggregate, Category, Product, Subcategory
from catalog_admin.domain.exceptions import (
    CategoryNotFoundError,
    NotFoundError,
    ProductNotFoundError,
    SubcategoryNotFoundError,
)
from catalog_admin.domain.value_objects import ProductId
from catalog_admin.infrastructure.document_store import (
    ASCENDING,
    DESCENDING,
    Collection,
    Document,
    DocumentStore,
)

PRODUCTS_COLLECTION = "products"
CATEGORIES_COLLECTION = "categories"
SUBCATEGORIES_COLLECTION = "subcategories"

A = TypeVar("A", bound=CatalogAggregate)


def _newest_first_key(product: Product) -> tuple[datetime, int, str]:
    number = ProductId.parse_number(product.id)
    return product.created_at, -1 if number is None else number, product.id


class ProductRepository:
    """Repository for product documents."""

    def __init__(self, store: DocumentStore) -> None:
        self.collection: Collection = store.collection(PRODUCTS_COLLECTION)

    async def insert(self, product: Product) -> None:
        """Insert a new product document."""
        await self.collection.insert_one(product.to_document())

    async def restore(self, document: Document) -> None:
        """Re-insert a previously deleted product document."""
        await self.collection.insert_one(document)

    async def get(self, product_id: str) -> Product | None:
        """Get product by ID."""
        document = await self.collection.find_one(product_id)
        return Product.from_document(document) if document else None

    async def get_document(self, product_id: str) -> Document | None:
        """Get the raw stored document."""
        return await self.collection.find_one(product_id)

    async def list_newest_first(self) -> list[Product]:
        """All products ordered by creation time, newest first.

        Products created at the same instant order by identifier number,
        highest first.
        """
        documents = await self.collection.find_many(sort=[("created_at", DESCENDING)])
        products = [Product.from_document(d) for d in documents]
        products.sort(key=_newest_first_key, reverse=True)
        return products

    async def set_fields(self, product_id: str, fields: Mapping[str, Any]) -> None:
        """Overwrite fields of an existing product.

        Raises:
            ProductNotFoundError: If the product no longer exists.
        """
        updated = await self.collection.update_one(product_id, set_fields=fields)
        if updated is None:
            raise ProductNotFoundError(product_id)

    async def delete(self, product_id: str) -> bool:
        """Delete a product. Returns False if it did not exist."""
        return await self.collection.delete_one(product_id)


class CatalogAggregateRepository(Generic[A]):
    """Repository for parent aggregates (categories and subcategories).

    Membership changes are read-modify-write on the single parent document:
    the entity decides whether the list changes, and the whole list is
    written back together with its derived count.
    """

    entity_type: type[A]
    not_found_error: type[NotFoundError]
    collection_name: str

    def __init__(self, store: DocumentStore) -> None:
        self.collection: Collection = store.collection(self.collection_name)

    async def insert(self, aggregate: A) -> None:
        """Insert a new parent document."""
        await self.collection.insert_one(aggregate.to_document())

    async def get(self, aggregate_id: str) -> A | None:
        """Get by ID."""
        document = await self.collection.find_one(aggregate_id)
        return self.entity_type.from_document(document) if document else None

    async def require(self, aggregate_id: str) -> A:
        """Get by ID or raise the not-found error for this aggregate type."""
        aggregate = await self.get(aggregate_id)
        if aggregate is None:
            raise self.not_found_error(aggregate_id)
        return aggregate

    async def list_by_name(self, filter: Mapping[str, Any] | None = None) -> list[A]:
        """All matching aggregates ordered by name."""
        documents = await self.collection.find_many(filter=filter, sort=[("name", ASCENDING)])
        return [self.entity_type.from_document(d) for d in documents]

    async def list_documents(self) -> list[Document]:
        """Raw stored documents, including stored counts."""
        return await self.collection.find_many()

    async def attach(self, aggregate_id: str, product_id: str) -> bool:
        """Add a product to the parent's list.

        Returns:
            True if the list changed, False if the product was already listed.

        Raises:
            NotFoundError: If the parent does not exist.
        """
        aggregate = await self.require(aggregate_id)
        if not aggregate.attach_product(product_id):
            return False
        await self._write_membership(aggregate)
        return True

    async def detach(self, aggregate_id: str, product_id: str) -> bool:
        """Remove a product from the parent's list.

        Returns:
            True if the list changed, False if the product was not listed.

        Raises:
            NotFoundError: If the parent does not exist.
        """
        aggregate = await self.require(aggregate_id)
        if not aggregate.detach_product(product_id):
            return False
        await self._write_membership(aggregate)
        return True

    async def _write_membership(self, aggregate: A) -> None:
        updated = await self.collection.update_one(
            aggregate.id, set_fields=aggregate.membership_fields()
        )
        if updated is None:
            raise self.not_found_error(aggregate.id)


class CategoryRepository(CatalogAggregateRepository[Category]):
    """Repository for category documents."""

    entity_type = Category
    not_found_error = CategoryNotFoundError
    collection_name = CATEGORIES_COLLECTION


class SubcategoryRepository(CatalogAggregateRepository[Subcategory]):
    """Repository for subcategory documents."""

    entity_type = Subcategory
    not_found_error = SubcategoryNotFoundError
    collection_name = SUBCATEGORIES_COLLECTION

    async def list_for_category(self, category_id: str) -> list[Subcategory]:
        """Subcategories owned by a category, ordered by name."""
        return await self.list_by_name(filter={"category_id": category_id})
