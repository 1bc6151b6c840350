"""Domain entities for the product catalog.

Products belong to one category and one subcategory. Both parents keep a
denormalized back-reference list of product identifiers. The redundant
counts (``product_count`` on parents, ``image_count`` on products) are
derived from list lengths and only written out so document readers see
them; they are never read back.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Self

from catalog_admin.domain.base import AggregateRoot, utc_now
from catalog_admin.domain.exceptions import ProductValidationError


class ProductStatus(str, Enum):
    """Product lifecycle status.

    Creation only ever produces ACTIVE; other values are set externally.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


# Entity attribute -> document field
PRODUCT_FIELDS: dict[str, str] = {
    "name": "product_name",
    "title": "product_title",
    "description": "product_description",
    "image_urls": "image_urls",
    "category_id": "category_id",
    "subcategory_id": "subcategory_id",
    "status": "status",
}

IMMUTABLE_PRODUCT_FIELDS = frozenset({"id", "_id", "product_id", "created_at"})
DERIVED_PRODUCT_FIELDS = frozenset({"image_count", "updated_at"})

_DOCUMENT_TO_ATTRIBUTE = {doc: attr for attr, doc in PRODUCT_FIELDS.items()}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _normalize_key(key: str) -> str:
    return _DOCUMENT_TO_ATTRIBUTE.get(key, key)


# ============================================================================
# Product
# ============================================================================


@dataclass
class ProductDraft:
    """Caller-supplied product fields before an identifier is allocated.

    Accepts either attribute names (``name``) or document field names
    (``product_name``) through :meth:`from_mapping`.
    """

    name: str
    title: str
    description: str
    category_id: str
    subcategory_id: str

    REQUIRED = ("name", "title", "description", "category_id", "subcategory_id")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a draft from a loose mapping, leaving gaps for validation."""
        normalized = {_normalize_key(k): v for k, v in data.items()}
        values = {}
        for name in cls.REQUIRED:
            value = normalized.get(name)
            values[name] = value.strip() if isinstance(value, str) else value
        return cls(**values)

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or blank."""
        return [name for name in self.REQUIRED if _is_blank(getattr(self, name))]

    def validate(self, image_urls: list[str]) -> None:
        """Check required fields and images.

        Raises:
            ProductValidationError: If anything required is missing.
        """
        missing = self.missing_fields()
        if missing:
            raise ProductValidationError("Missing required fields", fields=missing)
        not_text = [name for name in self.REQUIRED if not isinstance(getattr(self, name), str)]
        if not_text:
            raise ProductValidationError("Fields must be strings", fields=not_text)
        if any(not isinstance(url, str) for url in image_urls):
            raise ProductValidationError("Image URLs must be strings", fields=["image_urls"])
        if not image_urls or any(_is_blank(url) for url in image_urls):
            raise ProductValidationError(
                "At least one image is required", fields=["image_urls"]
            )


@dataclass(eq=False, kw_only=True)
class Product(AggregateRoot[str]):
    """A catalog product.

    Attributes:
        id: Product identifier (``prod_NNNN``).
        name: Internal product name.
        title: Display title.
        description: Long description.
        image_urls: Hosted image URLs in upload order.
        category_id: Parent category identifier.
        subcategory_id: Parent subcategory identifier.
        status: Lifecycle status.
    """

    name: str
    title: str
    description: str
    category_id: str
    subcategory_id: str
    image_urls: list[str] = field(default_factory=list)
    status: ProductStatus = ProductStatus.ACTIVE

    @property
    def image_count(self) -> int:
        """Number of images, always equal to ``len(image_urls)``."""
        return len(self.image_urls)

    @classmethod
    def create(cls, product_id: str, draft: ProductDraft, image_urls: list[str]) -> Self:
        """Create a new active product.

        Both timestamps are set to the same instant.

        Args:
            product_id: Allocated identifier.
            draft: Validated product fields.
            image_urls: Hosted image URLs.

        Returns:
            New Product.
        """
        draft.validate(image_urls)
        now = utc_now()
        return cls(
            product_id,
            name=draft.name,
            title=draft.title,
            description=draft.description,
            category_id=draft.category_id,
            subcategory_id=draft.subcategory_id,
            image_urls=list(image_urls),
            status=ProductStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def normalize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
        """Validate a partial update and map it to attribute names.

        Args:
            changes: Fields to change, by attribute or document name.

        Returns:
            Changes keyed by attribute name.

        Raises:
            ProductValidationError: On immutable, derived or unknown fields,
                and on values that are blank or of the wrong type.
        """
        rejected = sorted(
            k for k in changes if k in IMMUTABLE_PRODUCT_FIELDS or k in DERIVED_PRODUCT_FIELDS
        )
        if rejected:
            raise ProductValidationError("Fields cannot be updated", fields=rejected)

        normalized = {_normalize_key(k): v for k, v in changes.items()}
        unknown = sorted(k for k in normalized if k not in PRODUCT_FIELDS)
        if unknown:
            raise ProductValidationError("Unknown product fields", fields=unknown)

        text = {k: v for k, v in normalized.items() if k not in ("image_urls", "status")}
        not_text = sorted(k for k, v in text.items() if v is not None and not isinstance(v, str))
        if not_text:
            raise ProductValidationError("Fields must be strings", fields=not_text)

        blank = sorted(k for k, v in text.items() if _is_blank(v))
        if blank:
            raise ProductValidationError("Fields cannot be empty", fields=blank)

        if "image_urls" in normalized:
            urls = normalized["image_urls"]
            if not isinstance(urls, (list, tuple)):
                raise ProductValidationError(
                    "image_urls must be a list of URLs", fields=["image_urls"]
                )
            if any(not isinstance(u, str) for u in urls):
                raise ProductValidationError(
                    "Image URLs must be strings", fields=["image_urls"]
                )
            if not urls or any(_is_blank(u) for u in urls):
                raise ProductValidationError(
                    "At least one image is required", fields=["image_urls"]
                )
            normalized["image_urls"] = list(urls)

        if "status" in normalized:
            try:
                normalized["status"] = ProductStatus(normalized["status"])
            except (TypeError, ValueError) as e:
                raise ProductValidationError(
                    f"Invalid status '{normalized['status']}'", fields=["status"]
                ) from e

        return normalized

    def apply_changes(self, changes: Mapping[str, Any]) -> None:
        """Merge a partial update and refresh ``updated_at``.

        Raises:
            ProductValidationError: If the changes are not allowed.
        """
        for name, value in self.normalize_changes(changes).items():
            setattr(self, name, value)
        self._touch()

    def to_document(self) -> dict[str, Any]:
        """Serialize to a store document."""
        return {
            "_id": self.id,
            "product_id": self.id,
            "product_name": self.name,
            "product_title": self.title,
            "product_description": self.description,
            "image_urls": list(self.image_urls),
            "image_count": self.image_count,
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def mutable_fields(self) -> dict[str, Any]:
        """Document fields an update is allowed to rewrite."""
        document = self.to_document()
        for key in ("_id", "product_id", "created_at"):
            document.pop(key)
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Self:
        """Rebuild from a store document. ``image_count`` is not read."""
        return cls(
            document["_id"],
            name=document.get("product_name", ""),
            title=document.get("product_title", ""),
            description=document.get("product_description", ""),
            category_id=document.get("category_id", ""),
            subcategory_id=document.get("subcategory_id", ""),
            image_urls=list(document.get("image_urls", [])),
            status=ProductStatus(document.get("status", ProductStatus.ACTIVE.value)),
            created_at=document.get("created_at") or utc_now(),
            updated_at=document.get("updated_at") or utc_now(),
        )


# ============================================================================
# Category / Subcategory
# ============================================================================


@dataclass(eq=False, kw_only=True)
class CatalogAggregate(AggregateRoot[str]):
    """Parent record holding a back-reference list of product identifiers.

    ``product_ids`` behaves like an ordered set: attaching an identifier that
    is already present does nothing, and detaching removes every occurrence.
    """

    name: str
    product_ids: list[str] = field(default_factory=list)

    @property
    def product_count(self) -> int:
        """Number of products, always equal to ``len(product_ids)``."""
        return len(self.product_ids)

    def attach_product(self, product_id: str) -> bool:
        """Add a product identifier. Returns False if it was already listed."""
        if product_id in self.product_ids:
            return False
        self.product_ids.append(product_id)
        self._touch()
        return True

    def detach_product(self, product_id: str) -> bool:
        """Remove a product identifier. Returns False if it was not listed."""
        if product_id not in self.product_ids:
            return False
        self.product_ids = [pid for pid in self.product_ids if pid != product_id]
        self._touch()
        return True

    def membership_fields(self) -> dict[str, Any]:
        """Document fields touched by a membership change."""
        return {
            "product_ids": list(self.product_ids),
            "product_count": self.product_count,
            "updated_at": self.updated_at,
        }

    def to_document(self) -> dict[str, Any]:
        """Serialize to a store document."""
        return {
            "_id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            **self.membership_fields(),
        }

    @classmethod
    def _common_fields(cls, document: Mapping[str, Any]) -> dict[str, Any]:
        created_at: datetime = document.get("created_at") or utc_now()
        return {
            "name": document.get("name", ""),
            "product_ids": list(document.get("product_ids", [])),
            "created_at": created_at,
            "updated_at": document.get("updated_at") or created_at,
        }


@dataclass(eq=False, kw_only=True)
class Category(CatalogAggregate):
    """Top-level product grouping."""

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Self:
        """Rebuild from a store document. ``product_count`` is not read."""
        return cls(document["_id"], **cls._common_fields(document))


@dataclass(eq=False, kw_only=True)
class Subcategory(CatalogAggregate):
    """Product grouping nested under a category.

    Attributes:
        category_id: Owning category identifier.
    """

    category_id: str

    def to_document(self) -> dict[str, Any]:
        document = super().to_document()
        document["category_id"] = self.category_id
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Self:
        """Rebuild from a store document. ``product_count`` is not read."""
        return cls(
            document["_id"],
            category_id=document.get("category_id", ""),
            **cls._common_fields(document),
        )
