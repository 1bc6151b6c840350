"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from catalog_admin.application.catalog_service import get_document_store
from catalog_admin.application.repositories import CATEGORIES_COLLECTION
from catalog_admin.infrastructure.config import settings
from catalog_admin.infrastructure.document_store import DocumentStoreError

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="catalog-admin",
        version=settings.api_version,
    )


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """Check the document store answers a read.

    Returns:
        ``{"status": "ready"}``, or 503 when the store is unreachable.
    """
    try:
        await get_document_store().collection(CATEGORIES_COLLECTION).find_one("__ready__")
    except DocumentStoreError as e:
        logger.warning("Readiness check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return JSONResponse(content={"status": "ready"})
