"""Catalog maintenance endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from catalog_admin.api.schemas import ConsistencyIssueSchema, ConsistencyReport, ErrorResponse
from catalog_admin.application.catalog_service import CatalogService, get_catalog_service

router = APIRouter(prefix="/catalog", tags=["Catalog"])


def get_service() -> CatalogService:
    """Get catalog service."""
    return get_catalog_service()


@router.get(
    "/consistency",
    response_model=ConsistencyReport,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Check back-reference consistency",
    description=(
        "Compare every product with its category and subcategory lists. "
        "Read-only; nothing is repaired."
    ),
)
async def check_consistency(
    service: Annotated[CatalogService, Depends(get_service)],
) -> ConsistencyReport:
    """Report disagreements between products and parent lists."""
    issues = await service.check_consistency()
    return ConsistencyReport(
        consistent=not issues,
        issue_count=len(issues),
        issues=[
            ConsistencyIssueSchema(
                kind=issue.kind.value,
                record_id=issue.record_id,
                detail=issue.detail,
            )
            for issue in issues
        ],
    )
