"""Domain layer - Entities, value objects and domain errors.

- **Entities**: Product, Category, Subcategory
- **Value Objects**: ProductId
- **Exceptions**: validation and not-found errors

Example usage:
    from catalog_admin.domain import Product, ProductDraft, ProductId

    draft = ProductDraft(
        name="Widget",
        title="Blue Widget",
        description="A very blue widget",
        category_id="cat_tools",
        subcategory_id="sub_hand_tools",
    )
    product = Product.create(str(ProductId.first()), draft, ["https://cdn/1.jpg"])
    print(product.image_count)  # 1
"""

from catalog_admin.domain.base import AggregateRoot, Entity, ValueObject
from catalog_admin.domain.entities import (
    CatalogAggregate,
    Category,
    Product,
    ProductDraft,
    ProductStatus,
    Subcategory,
)
from catalog_admin.domain.exceptions import (
    CategoryNotFoundError,
    DomainError,
    InvalidProductIdError,
    NotFoundError,
    ProductNotFoundError,
    ProductValidationError,
    SubcategoryNotFoundError,
    ValidationError,
)
from catalog_admin.domain.value_objects import ProductId

__all__ = [
    # Base classes
    "AggregateRoot",
    "Entity",
    "ValueObject",
    # Entities
    "CatalogAggregate",
    "Category",
    "Product",
    "ProductDraft",
    "ProductStatus",
    "Subcategory",
    # Value Objects
    "ProductId",
    # Exceptions
    "CategoryNotFoundError",
    "DomainError",
    "InvalidProductIdError",
    "NotFoundError",
    "ProductNotFoundError",
    "ProductValidationError",
    "SubcategoryNotFoundError",
    "ValidationError",
]
