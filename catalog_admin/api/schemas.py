"""API schemas for the catalog admin API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from catalog_admin.domain.entities import ProductStatus


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# ============================================================================
# Product Schemas
# ============================================================================


class ProductResponse(BaseModel):
    """Product as stored, using document field names."""

    product_id: str = Field(..., description="Product identifier (prod_NNNN)")
    product_name: str
    product_title: str
    product_description: str
    image_urls: list[str]
    image_count: int = Field(..., description="Always equal to len(image_urls)")
    category_id: str
    subcategory_id: str
    status: ProductStatus
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    """Products, newest first."""

    products: list[ProductResponse]
    total: int


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryCreateRequest(BaseModel):
    """Request to create a category or subcategory."""

    name: str = Field(..., min_length=1, max_length=200)
    id: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Identifier to use instead of a generated one",
    )


class CategoryResponse(BaseModel):
    """Category with its product back-references."""

    id: str
    name: str
    product_ids: list[str]
    product_count: int
    created_at: datetime
    updated_at: datetime


class CategoryListResponse(BaseModel):
    """Categories ordered by name."""

    categories: list[CategoryResponse]
    total: int


class SubcategoryResponse(CategoryResponse):
    """Subcategory with its owning category."""

    category_id: str


class SubcategoryListResponse(BaseModel):
    """Subcategories of one category, ordered by name."""

    subcategories: list[SubcategoryResponse]
    total: int


# ============================================================================
# Consistency Schemas
# ============================================================================


class ConsistencyIssueSchema(BaseModel):
    """One disagreement between a product and a parent list."""

    kind: str
    record_id: str
    detail: str


class ConsistencyReport(BaseModel):
    """Result of a read-only consistency check."""

    consistent: bool
    issue_count: int
    issues: list[ConsistencyIssueSchema]
