"""Catalog admin API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, exception handlers and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_admin.api.catalog import router as catalog_router
from catalog_admin.api.categories import router as categories_router
from catalog_admin.api.health import router as health_router
from catalog_admin.api.middleware import setup_middleware
from catalog_admin.api.products import router as products_router
from catalog_admin.application.catalog_service import (
    close_catalog_state,
    get_document_store,
    get_media_host,
)
from catalog_admin.domain.exceptions import (
    CategoryNotFoundError,
    DomainError,
    NotFoundError,
    ProductNotFoundError,
    SubcategoryNotFoundError,
    ValidationError,
)
from catalog_admin.infrastructure.config import settings
from catalog_admin.infrastructure.database import create_tables
from catalog_admin.infrastructure.document_store import (
    DocumentStoreError,
    DuplicateDocumentError,
)
from catalog_admin.infrastructure.logging_config import configure_logging
from catalog_admin.infrastructure.media_host import MediaUploadError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging(settings.log_level)
    logger.info(
        "Starting catalog admin API",
        version=settings.api_version,
        debug=settings.debug,
        storage_backend=settings.storage_backend,
        media_backend=settings.media_backend,
        product_id_strategy=settings.product_id_strategy,
    )

    if settings.storage_backend == "sql":
        await create_tables()
    get_document_store()
    get_media_host()

    yield

    logger.info("Shutting down catalog admin API")
    await close_catalog_state()


app = FastAPI(
    title="Catalog Admin API",
    description="Product catalog administration with consistent category indexes",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, API key auth, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(products_router)
app.include_router(categories_router)
app.include_router(catalog_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


NOT_FOUND_CODES = {
    ProductNotFoundError: "PRODUCT_NOT_FOUND",
    CategoryNotFoundError: "CATEGORY_NOT_FOUND",
    SubcategoryNotFoundError: "SUBCATEGORY_NOT_FOUND",
}


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    """Build the standard error body."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details if details is not None else [],
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Missing or malformed input."""
    return error_response(
        request, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", exc.message, exc.details
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Referenced record does not exist."""
    return error_response(
        request,
        status.HTTP_404_NOT_FOUND,
        NOT_FOUND_CODES.get(type(exc), "NOT_FOUND"),
        exc.message,
        exc.details,
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Any other business rule violation."""
    return error_response(
        request, status.HTTP_400_BAD_REQUEST, "DOMAIN_ERROR", exc.message, exc.details
    )


@app.exception_handler(DuplicateDocumentError)
async def duplicate_document_handler(
    request: Request, exc: DuplicateDocumentError
) -> JSONResponse:
    """Insert of an identifier that is already taken."""
    return error_response(
        request,
        status.HTTP_409_CONFLICT,
        "ALREADY_EXISTS",
        exc.message,
        {"collection": exc.collection, "id": exc.document_id},
    )


@app.exception_handler(DocumentStoreError)
async def document_store_error_handler(
    request: Request, exc: DocumentStoreError
) -> JSONResponse:
    """Storage failure, after any compensation has run."""
    logger.error(
        "Document store error",
        path=request.url.path,
        collection=exc.collection,
        document_id=exc.document_id,
        error=exc.message,
    )
    return error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "STORAGE_ERROR",
        "The document store is unavailable",
        {"collection": exc.collection},
    )


@app.exception_handler(MediaUploadError)
async def media_upload_error_handler(request: Request, exc: MediaUploadError) -> JSONResponse:
    """Media host rejected or failed an upload; nothing was written."""
    logger.error(
        "Media upload error",
        path=request.url.path,
        folder=exc.folder,
        status_code=exc.status_code,
        error=exc.message,
    )
    return error_response(
        request,
        status.HTTP_502_BAD_GATEWAY,
        "MEDIA_UPLOAD_FAILED",
        "Image upload failed",
        {"folder": exc.folder},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []
    return error_response(request, exc.status_code, error_code, message, details)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal error occurred",
    )
