"""Domain exceptions.

All domain-level errors that represent business rule violations.
Storage and media host failures live next to their adapters in the
infrastructure layer and are not wrapped here.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised when input is missing required fields or is malformed.

    Always raised before any write is issued.
    """

    def __init__(
        self,
        message: str,
        fields: list[str] | None = None,
    ) -> None:
        """Initialize validation error.

        Args:
            message: Human-readable error message.
            fields: Names of the offending fields.
        """
        super().__init__(message, details={"fields": fields or []})
        self.fields = fields or []


class ProductValidationError(ValidationError):
    """Raised when product fields or images are missing or malformed."""

    pass


class InvalidProductIdError(DomainError):
    """Raised when a string is not a well-formed product identifier."""

    def __init__(self, value: str) -> None:
        super().__init__(
            f"Invalid product id '{value}', expected 'prod_' followed by digits",
            details={"value": value},
        )


# ============================================================================
# Not Found Errors
# ============================================================================


class NotFoundError(DomainError):
    """Base class for lookups of absent records."""

    pass


class ProductNotFoundError(NotFoundError):
    """Raised when a product is required but does not exist."""

    def __init__(self, product_id: str) -> None:
        super().__init__(
            f"Product not found: {product_id}",
            details={"product_id": product_id},
        )


class CategoryNotFoundError(NotFoundError):
    """Raised when a category is required but does not exist."""

    def __init__(self, category_id: str) -> None:
        super().__init__(
            f"Category not found: {category_id}",
            details={"category_id": category_id},
        )


class SubcategoryNotFoundError(NotFoundError):
    """Raised when a subcategory is required but does not exist."""

    def __init__(self, subcategory_id: str) -> None:
        super().__init__(
            f"Subcategory not found: {subcategory_id}",
            details={"subcategory_id": subcategory_id},
        )
