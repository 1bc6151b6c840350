"""Catalog application service.

Owns product identifier allocation and keeps each product document
consistent with its two parent documents (category and subcategory).

Every operation is a sequence of single-document writes:

- create: insert product, attach to category, attach to subcategory
- update: rewrite product fields, then move parent membership if the
  category or subcategory changed
- delete: delete product, detach from category, detach from subcategory

The store offers no multi-document transactions. Each operation records an
undo action for every write it completes; if a later write fails, the undo
actions run in reverse order and the original error is re-raised. With
compensation disabled, a failure leaves the earlier writes in place.
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any
from uuid import uuid4

import structlog

from catalog_admin.application.id_allocator import ProductIdAllocator, create_allocator
from catalog_admin.application.repositories import (
    CategoryRepository,
    ProductRepository,
    SubcategoryRepository,
)
from catalog_admin.domain.entities import Category, Product, ProductDraft, Subcategory
from catalog_admin.domain.exceptions import (
    CategoryNotFoundError,
    ProductValidationError,
    SubcategoryNotFoundError,
    ValidationError,
)
from catalog_admin.infrastructure.config import settings
from catalog_admin.infrastructure.document_store import DocumentStore, create_document_store
from catalog_admin.infrastructure.media_host import (
    MediaHost,
    build_media_folder,
    create_media_host,
)

logger = structlog.get_logger()


# ============================================================================
# Compensation
# ============================================================================


@dataclass
class CompensationLog:
    """Undo actions for the writes one operation has completed.

    Attributes:
        operation: Operation name, for logs.
        subject_id: Record the operation is about, for logs.
        enabled: When False, ``rollback`` only logs what is left behind.
    """

    operation: str
    subject_id: str
    enabled: bool = True
    _steps: list[tuple[str, Callable[[], Awaitable[Any]]]] = field(
        default_factory=list, init=False, repr=False
    )

    def record(self, description: str, undo: Callable[[], Awaitable[Any]]) -> None:
        """Register the undo action for a completed write."""
        self._steps.append((description, undo))

    @property
    def completed(self) -> list[str]:
        """Descriptions of the undo actions recorded so far."""
        return [description for description, _ in self._steps]

    async def rollback(self) -> None:
        """Run recorded undo actions, most recent first.

        A failing undo action is logged and the remaining ones still run.
        """
        if not self.enabled:
            if self._steps:
                logger.warning(
                    "Partial write left in place",
                    operation=self.operation,
                    subject_id=self.subject_id,
                    pending_undo=self.completed,
                )
            return

        for description, undo in reversed(self._steps):
            try:
                await undo()
                logger.info(
                    "Compensated write",
                    operation=self.operation,
                    subject_id=self.subject_id,
                    step=description,
                )
            except Exception as e:
                logger.exception(
                    "Compensation failed",
                    operation=self.operation,
                    subject_id=self.subject_id,
                    step=description,
                    error=str(e),
                )
        self._steps.clear()


# ============================================================================
# Consistency Report
# ============================================================================


class ConsistencyIssueKind(str, Enum):
    """Ways the product / parent back-references can disagree."""

    MISSING_PARENT = "missing_parent"
    NOT_INDEXED = "not_indexed"
    DUPLICATE_ENTRY = "duplicate_entry"
    DANGLING_REFERENCE = "dangling_reference"
    WRONG_PARENT = "wrong_parent"
    COUNT_MISMATCH = "count_mismatch"


@dataclass
class ConsistencyIssue:
    """One disagreement found by :meth:`CatalogService.check_consistency`."""

    kind: ConsistencyIssueKind
    record_id: str
    detail: str


# ============================================================================
# Service
# ============================================================================


class CatalogService:
    """Service for catalog operations.

    Example usage:
        service = CatalogService(InMemoryDocumentStore())
        category = await service.create_category("Tools")
        subcategory = await service.create_subcategory(category.id, "Hand Tools")
        product = await service.create_product(
            {
                "name": "Widget",
                "title": "Blue Widget",
                "description": "A very blue widget",
                "category_id": category.id,
                "subcategory_id": subcategory.id,
            },
            ["https://cdn.example.com/widget-1.jpg"],
        )
        await service.delete_product(product.id)
    """

    def __init__(
        self,
        store: DocumentStore,
        allocator: ProductIdAllocator | None = None,
        media_host: MediaHost | None = None,
        *,
        compensate_partial_writes: bool = True,
        migrate_parents_on_update: bool = True,
        media_root_folder: str = "products",
    ) -> None:
        """Initialize service.

        Args:
            store: Document store holding all collections.
            allocator: Product id allocator (counter strategy by default).
            media_host: Image host for :meth:`create_product_with_images`.
            compensate_partial_writes: Undo completed writes when a later
                write of the same operation fails.
            migrate_parents_on_update: Move parent membership when an update
                changes ``category_id`` or ``subcategory_id``.
            media_root_folder: Root folder for uploaded images.
        """
        self.store = store
        self.allocator = allocator or create_allocator("counter", store)
        self.media_host = media_host
        self.compensate_partial_writes = compensate_partial_writes
        self.migrate_parents_on_update = migrate_parents_on_update
        self.media_root_folder = media_root_folder
        self.products = ProductRepository(store)
        self.categories = CategoryRepository(store)
        self.subcategories = SubcategoryRepository(store)

    def _compensation(self, operation: str, subject_id: str) -> CompensationLog:
        return CompensationLog(
            operation=operation,
            subject_id=subject_id,
            enabled=self.compensate_partial_writes,
        )

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    async def allocate_next_product_id(self) -> str:
        """Allocate a new product identifier.

        Returns:
            Identifier such as ``prod_0001``.
        """
        return str(await self.allocator.allocate_next_product_id())

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def create_product(
        self,
        fields: Mapping[str, Any] | ProductDraft,
        image_urls: Sequence[str],
    ) -> Product:
        """Create a product from already-hosted image URLs.

        The category/subcategory relationship is not verified; only the
        existence of both parents is.

        Args:
            fields: Name, title, description, category_id, subcategory_id.
            image_urls: Hosted image URLs, in display order.

        Returns:
            The created product.

        Raises:
            ProductValidationError: If fields or images are missing.
            CategoryNotFoundError: If the category does not exist.
            SubcategoryNotFoundError: If the subcategory does not exist.
            DocumentStoreError: If a write fails.
        """
        draft = self._draft(fields)
        draft.validate(list(image_urls))
        await self._require_parents(draft)

        product_id = await self.allocate_next_product_id()
        return await self._create(product_id, draft, list(image_urls))

    async def create_product_with_images(
        self,
        fields: Mapping[str, Any] | ProductDraft,
        images: Sequence[bytes],
    ) -> Product:
        """Upload raw images to the media host, then create the product.

        Images go to a folder derived from the new product id and the
        category/subcategory names. Nothing is written if the upload fails.

        Raises:
            ProductValidationError: If fields or images are missing.
            CategoryNotFoundError: If the category does not exist.
            SubcategoryNotFoundError: If the subcategory does not exist.
            MediaUploadError: If any image fails to upload.
            DocumentStoreError: If a write fails.
        """
        if self.media_host is None:
            raise RuntimeError("CatalogService has no media host configured")

        draft = self._draft(fields)
        missing = draft.missing_fields()
        if missing:
            raise ProductValidationError("Missing required fields", fields=missing)
        if not images:
            raise ProductValidationError("At least one image is required", fields=["images"])
        category, subcategory = await self._require_parents(draft)

        product_id = await self.allocate_next_product_id()
        folder = build_media_folder(
            self.media_root_folder, product_id, category.name, subcategory.name
        )
        image_urls = await self.media_host.upload_images(images, folder, product_id)
        return await self._create(product_id, draft, image_urls)

    async def _create(
        self, product_id: str, draft: ProductDraft, image_urls: list[str]
    ) -> Product:
        product = Product.create(product_id, draft, image_urls)
        compensation = self._compensation("create_product", product.id)

        try:
            await self.products.insert(product)
            compensation.record("delete product", partial(self.products.delete, product.id))

            if await self.categories.attach(product.category_id, product.id):
                compensation.record(
                    "detach from category",
                    partial(self.categories.detach, product.category_id, product.id),
                )

            await self.subcategories.attach(product.subcategory_id, product.id)
        except Exception:
            await compensation.rollback()
            raise

        logger.info(
            "Product created",
            product_id=product.id,
            category_id=product.category_id,
            subcategory_id=product.subcategory_id,
            image_count=product.image_count,
        )
        return product

    async def get_product(self, product_id: str) -> Product | None:
        """Get product by ID, or None if it does not exist."""
        return await self.products.get(product_id)

    async def list_products(self) -> list[Product]:
        """All products, newest first."""
        return await self.products.list_newest_first()

    async def update_product(
        self,
        product_id: str,
        changes: Mapping[str, Any],
    ) -> Product | None:
        """Merge ``changes`` into a product and refresh ``updated_at``.

        The identifier and creation timestamp cannot change. When the
        category or subcategory changes and parent migration is enabled,
        the product is moved between the parents' lists.

        Args:
            product_id: Product to update.
            changes: Partial fields, by attribute or document name.

        Returns:
            The updated product, or None if it does not exist.

        Raises:
            ProductValidationError: If the changes are not allowed.
            CategoryNotFoundError: If a new category does not exist.
            SubcategoryNotFoundError: If a new subcategory does not exist.
            DocumentStoreError: If a write fails.
        """
        normalized = Product.normalize_changes(changes)

        product = await self.products.get(product_id)
        if product is None:
            logger.info("Update skipped, product not found", product_id=product_id)
            return None

        previous = product.mutable_fields()
        old_category_id = product.category_id
        old_subcategory_id = product.subcategory_id
        product.apply_changes(normalized)

        category_moved = self.migrate_parents_on_update and product.category_id != old_category_id
        subcategory_moved = (
            self.migrate_parents_on_update and product.subcategory_id != old_subcategory_id
        )
        if category_moved:
            await self.categories.require(product.category_id)
        if subcategory_moved:
            await self.subcategories.require(product.subcategory_id)

        compensation = self._compensation("update_product", product_id)
        try:
            await self.products.set_fields(product_id, product.mutable_fields())
            compensation.record(
                "restore product fields",
                partial(self.products.set_fields, product_id, previous),
            )
            if category_moved:
                await self._move(
                    self.categories, product_id, old_category_id, product.category_id, compensation
                )
            if subcategory_moved:
                await self._move(
                    self.subcategories,
                    product_id,
                    old_subcategory_id,
                    product.subcategory_id,
                    compensation,
                )
        except Exception:
            await compensation.rollback()
            raise

        logger.info(
            "Product updated",
            product_id=product_id,
            fields=sorted(normalized),
            category_moved=category_moved,
            subcategory_moved=subcategory_moved,
        )
        return product

    async def _move(
        self,
        repository: CategoryRepository | SubcategoryRepository,
        product_id: str,
        old_parent_id: str,
        new_parent_id: str,
        compensation: CompensationLog,
    ) -> None:
        if await self._detach_if_present(repository, old_parent_id, product_id):
            compensation.record(
                f"re-attach to {old_parent_id}",
                partial(repository.attach, old_parent_id, product_id),
            )
        if await repository.attach(new_parent_id, product_id):
            compensation.record(
                f"detach from {new_parent_id}",
                partial(repository.detach, new_parent_id, product_id),
            )

    async def delete_product(self, product_id: str) -> None:
        """Delete a product and remove it from both parents.

        Deleting an absent product is a no-op. A parent that no longer
        exists is skipped.

        Raises:
            DocumentStoreError: If a write fails.
        """
        document = await self.products.get_document(product_id)
        if document is None:
            logger.info("Delete skipped, product not found", product_id=product_id)
            return
        product = Product.from_document(document)

        compensation = self._compensation("delete_product", product_id)
        try:
            if not await self.products.delete(product_id):
                logger.info("Product already deleted", product_id=product_id)
                return
            compensation.record("restore product", partial(self.products.restore, document))

            if await self._detach_if_present(self.categories, product.category_id, product_id):
                compensation.record(
                    "re-attach to category",
                    partial(self.categories.attach, product.category_id, product_id),
                )

            await self._detach_if_present(self.subcategories, product.subcategory_id, product_id)
        except Exception:
            await compensation.rollback()
            raise

        logger.info(
            "Product deleted",
            product_id=product_id,
            category_id=product.category_id,
            subcategory_id=product.subcategory_id,
        )

    async def _detach_if_present(
        self,
        repository: CategoryRepository | SubcategoryRepository,
        parent_id: str,
        product_id: str,
    ) -> bool:
        try:
            return await repository.detach(parent_id, product_id)
        except (CategoryNotFoundError, SubcategoryNotFoundError):
            logger.warning(
                "Parent missing, nothing to detach",
                parent_id=parent_id,
                product_id=product_id,
            )
            return False

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def create_category(self, name: str, category_id: str | None = None) -> Category:
        """Create an empty category.

        Raises:
            ValidationError: If the name is blank.
            DuplicateDocumentError: If ``category_id`` is taken.
        """
        if not name or not name.strip():
            raise ValidationError("Missing required fields", fields=["name"])
        category = Category(category_id or f"cat_{uuid4().hex[:12]}", name=name.strip())
        await self.categories.insert(category)
        logger.info("Category created", category_id=category.id, name=category.name)
        return category

    async def create_subcategory(
        self,
        category_id: str,
        name: str,
        subcategory_id: str | None = None,
    ) -> Subcategory:
        """Create an empty subcategory under an existing category.

        Raises:
            ValidationError: If the name is blank.
            CategoryNotFoundError: If the category does not exist.
            DuplicateDocumentError: If ``subcategory_id`` is taken.
        """
        if not name or not name.strip():
            raise ValidationError("Missing required fields", fields=["name"])
        await self.categories.require(category_id)
        subcategory = Subcategory(
            subcategory_id or f"sub_{uuid4().hex[:12]}",
            name=name.strip(),
            category_id=category_id,
        )
        await self.subcategories.insert(subcategory)
        logger.info(
            "Subcategory created",
            subcategory_id=subcategory.id,
            category_id=category_id,
            name=subcategory.name,
        )
        return subcategory

    async def get_category(self, category_id: str) -> Category | None:
        """Get category by ID."""
        return await self.categories.get(category_id)

    async def get_subcategory(self, subcategory_id: str) -> Subcategory | None:
        """Get subcategory by ID."""
        return await self.subcategories.get(subcategory_id)

    async def list_categories(self) -> list[Category]:
        """All categories, by name."""
        return await self.categories.list_by_name()

    async def list_subcategories(self, category_id: str) -> list[Subcategory]:
        """Subcategories of a category, by name."""
        return await self.subcategories.list_for_category(category_id)

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    async def check_consistency(self) -> list[ConsistencyIssue]:
        """Compare products with their parents' back-references.

        Read-only. Reports products missing from a parent list, duplicate
        list entries, list entries for absent or foreign products, and
        stored counts that differ from list length.
        """
        issues: list[ConsistencyIssue] = []
        products = {p.id: p for p in await self.products.list_newest_first()}

        parent_sets = (
            ("category", "category_id", self.categories),
            ("subcategory", "subcategory_id", self.subcategories),
        )
        for label, attribute, repository in parent_sets:
            documents = await repository.list_documents()
            parents = {d["_id"]: repository.entity_type.from_document(d) for d in documents}

            for product in products.values():
                parent_id = getattr(product, attribute)
                parent = parents.get(parent_id)
                if parent is None:
                    issues.append(
                        ConsistencyIssue(
                            ConsistencyIssueKind.MISSING_PARENT,
                            product.id,
                            f"{label} {parent_id} does not exist",
                        )
                    )
                    continue
                occurrences = parent.product_ids.count(product.id)
                if occurrences == 0:
                    issues.append(
                        ConsistencyIssue(
                            ConsistencyIssueKind.NOT_INDEXED,
                            product.id,
                            f"not listed in {label} {parent_id}",
                        )
                    )
                elif occurrences > 1:
                    issues.append(
                        ConsistencyIssue(
                            ConsistencyIssueKind.DUPLICATE_ENTRY,
                            parent_id,
                            f"{product.id} listed {occurrences} times",
                        )
                    )

            for document in documents:
                parent_id = document["_id"]
                listed = document.get("product_ids", [])
                for listed_id in dict.fromkeys(listed):
                    product = products.get(listed_id)
                    if product is None:
                        issues.append(
                            ConsistencyIssue(
                                ConsistencyIssueKind.DANGLING_REFERENCE,
                                parent_id,
                                f"lists absent product {listed_id}",
                            )
                        )
                    elif getattr(product, attribute) != parent_id:
                        issues.append(
                            ConsistencyIssue(
                                ConsistencyIssueKind.WRONG_PARENT,
                                parent_id,
                                f"lists {listed_id}, which belongs to "
                                f"{label} {getattr(product, attribute)}",
                            )
                        )
                stored_count = document.get("product_count")
                if stored_count != len(listed):
                    issues.append(
                        ConsistencyIssue(
                            ConsistencyIssueKind.COUNT_MISMATCH,
                            parent_id,
                            f"product_count {stored_count} != {len(listed)} listed",
                        )
                    )

        return issues

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _draft(fields: Mapping[str, Any] | ProductDraft) -> ProductDraft:
        if isinstance(fields, ProductDraft):
            return fields
        return ProductDraft.from_mapping(fields)

    async def _require_parents(self, draft: ProductDraft) -> tuple[Category, Subcategory]:
        category = await self.categories.require(draft.category_id)
        subcategory = await self.subcategories.require(draft.subcategory_id)
        return category, subcategory


# ============================================================================
# Service wiring
# ============================================================================


_document_store: DocumentStore | None = None
_media_host: MediaHost | None = None


def get_document_store() -> DocumentStore:
    """Get the document store singleton."""
    global _document_store
    if _document_store is None:
        _document_store = create_document_store(settings)
    return _document_store


def get_media_host() -> MediaHost:
    """Get the media host singleton."""
    global _media_host
    if _media_host is None:
        _media_host = create_media_host(settings)
    return _media_host


def reset_catalog_state(
    store: DocumentStore | None = None,
    media_host: MediaHost | None = None,
) -> None:
    """Replace the store and media host singletons (for testing)."""
    global _document_store, _media_host
    _document_store = store
    _media_host = media_host


async def close_catalog_state() -> None:
    """Release the store and media host singletons."""
    global _document_store, _media_host
    if _document_store is not None:
        await _document_store.close()
    if _media_host is not None:
        await _media_host.close()
    _document_store = None
    _media_host = None


def get_catalog_service() -> CatalogService:
    """Create a catalog service wired from settings."""
    store = get_document_store()
    return CatalogService(
        store,
        allocator=create_allocator(settings.product_id_strategy, store),
        media_host=get_media_host(),
        compensate_partial_writes=settings.compensate_partial_writes,
        migrate_parents_on_update=settings.migrate_parents_on_update,
        media_root_folder=settings.media_root_folder,
    )


__all__ = [
    "CatalogService",
    "CompensationLog",
    "ConsistencyIssue",
    "ConsistencyIssueKind",
    "close_catalog_state",
    "get_catalog_service",
    "get_document_store",
    "get_media_host",
    "reset_catalog_state",
]
