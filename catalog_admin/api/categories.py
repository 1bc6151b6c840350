"""Category API endpoints.

Provides endpoints for listing and creating categories and their
subcategories.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from catalog_admin.api.schemas import (
    CategoryCreateRequest,
    CategoryListResponse,
    CategoryResponse,
    ErrorResponse,
    SubcategoryListResponse,
    SubcategoryResponse,
)
from catalog_admin.application.catalog_service import CatalogService, get_catalog_service
from catalog_admin.domain.entities import Category, Subcategory
from catalog_admin.domain.exceptions import CategoryNotFoundError

router = APIRouter(prefix="/categories", tags=["Categories"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service() -> CatalogService:
    """Get catalog service."""
    return get_catalog_service()


# ============================================================================
# Converters
# ============================================================================


def category_to_response(category: Category) -> CategoryResponse:
    """Convert Category entity to response schema."""
    return CategoryResponse(
        id=category.id,
        name=category.name,
        product_ids=list(category.product_ids),
        product_count=category.product_count,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def subcategory_to_response(subcategory: Subcategory) -> SubcategoryResponse:
    """Convert Subcategory entity to response schema."""
    return SubcategoryResponse(
        id=subcategory.id,
        name=subcategory.name,
        category_id=subcategory.category_id,
        product_ids=list(subcategory.product_ids),
        product_count=subcategory.product_count,
        created_at=subcategory.created_at,
        updated_at=subcategory.updated_at,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=CategoryListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List categories",
)
async def list_categories(
    service: Annotated[CatalogService, Depends(get_service)],
) -> CategoryListResponse:
    """List all categories ordered by name."""
    categories = await service.list_categories()
    return CategoryListResponse(
        categories=[category_to_response(c) for c in categories],
        total=len(categories),
    )


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Create category",
)
async def create_category(
    request: CategoryCreateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> CategoryResponse:
    """Create an empty category."""
    category = await service.create_category(request.name, category_id=request.id)
    return category_to_response(category)


@router.get(
    "/{category_id}/subcategories",
    response_model=SubcategoryListResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="List subcategories",
)
async def list_subcategories(
    category_id: str,
    service: Annotated[CatalogService, Depends(get_service)],
) -> SubcategoryListResponse:
    """List subcategories of a category ordered by name.

    Raises:
        CategoryNotFoundError: If the category does not exist.
    """
    if await service.get_category(category_id) is None:
        raise CategoryNotFoundError(category_id)
    subcategories = await service.list_subcategories(category_id)
    return SubcategoryListResponse(
        subcategories=[subcategory_to_response(s) for s in subcategories],
        total=len(subcategories),
    )


@router.post(
    "/{category_id}/subcategories",
    response_model=SubcategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Create subcategory",
)
async def create_subcategory(
    category_id: str,
    request: CategoryCreateRequest,
    service: Annotated[CatalogService, Depends(get_service)],
) -> SubcategoryResponse:
    """Create an empty subcategory under an existing category."""
    subcategory = await service.create_subcategory(
        category_id, request.name, subcategory_id=request.id
    )
    return subcategory_to_response(subcategory)
