"""Product API endpoints.

Provides endpoints for creating, reading, updating and deleting products.
Creation takes a multipart form so images are uploaded to the media host
in the same request.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response, status
from starlette.datastructures import UploadFile

from catalog_admin.api.schemas import ErrorResponse, ProductListResponse, ProductResponse
from catalog_admin.application.catalog_service import CatalogService, get_catalog_service
from catalog_admin.domain.entities import PRODUCT_FIELDS, Product

router = APIRouter(prefix="/products", tags=["Products"])

# Form field names accepted on create
FORM_FIELDS = tuple(PRODUCT_FIELDS[name] for name in ("name", "title", "description")) + (
    "category_id",
    "subcategory_id",
)
IMAGE_FIELD_PREFIX = "images"


# ============================================================================
# Dependencies
# ============================================================================


def get_service() -> CatalogService:
    """Get catalog service."""
    return get_catalog_service()


# ============================================================================
# Converters
# ============================================================================


def product_to_response(product: Product) -> ProductResponse:
    """Convert Product entity to response schema."""
    document = product.to_document()
    document.pop("_id")
    return ProductResponse(**document)


async def read_product_form(request: Request) -> tuple[dict[str, str], list[bytes]]:
    """Split a multipart form into text fields and image payloads.

    Images may be sent under ``images`` (repeated) or any key starting with
    ``images`` (``images0``, ``images[1]``, ...), in form order.
    """
    form = await request.form()
    fields = {}
    for name in FORM_FIELDS:
        value = form.get(name)
        if isinstance(value, str):
            fields[name] = value

    images = []
    for key, value in form.multi_items():
        if key.startswith(IMAGE_FIELD_PREFIX) and isinstance(value, UploadFile):
            images.append(await value.read())
    return fields, images


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ProductListResponse,
    status_code=status.HTTP_200_OK,
    responses={401: {"model": ErrorResponse}},
    summary="List products",
    description="List all products, newest first.",
)
async def list_products(
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductListResponse:
    """List all products, newest first."""
    products = await service.list_products()
    return ProductListResponse(
        products=[product_to_response(p) for p in products],
        total=len(products),
    )


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Create product",
    description=(
        "Create a product from a multipart form. Images are uploaded to the "
        "media host, then the product is added to its category and subcategory."
    ),
)
async def create_product(
    request: Request,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Create a product with uploaded images.

    Args:
        request: Multipart request with product fields and image files.
        service: Catalog service.

    Returns:
        Created product.
    """
    fields, images = await read_product_form(request)
    product = await service.create_product_with_images(fields, images)
    return product_to_response(product)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get product",
)
async def get_product(
    product_id: str,
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Get product by ID.

    Raises:
        HTTPException: If product not found.
    """
    product = await service.get_product(product_id)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "PRODUCT_NOT_FOUND",
                "message": f"Product not found: {product_id}",
            },
        )
    return product_to_response(product)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Update product",
    description=(
        "Change some product fields. product_id and created_at cannot change; "
        "image_count and updated_at are maintained by the service."
    ),
)
async def update_product(
    product_id: str,
    changes: Annotated[dict[str, Any], Body()],
    service: Annotated[CatalogService, Depends(get_service)],
) -> ProductResponse:
    """Apply a partial update.

    Raises:
        HTTPException: If product not found.
    """
    product = await service.update_product(product_id, changes)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "PRODUCT_NOT_FOUND",
                "message": f"Product not found: {product_id}",
            },
        )
    return product_to_response(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Delete product",
    description="Delete a product and remove it from its parents. Absent ids succeed.",
)
async def delete_product(
    product_id: str,
    service: Annotated[CatalogService, Depends(get_service)],
) -> Response:
    """Delete a product."""
    await service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
