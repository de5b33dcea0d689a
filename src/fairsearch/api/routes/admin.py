"""Index maintenance endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body

from fairsearch.api.dependencies import SearchSvc
from fairsearch.api.routes.search import parse_bbox
from fairsearch.api.schemas import ReconcileRequest, ReconciliationReportResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/reconcile",
    response_model=ReconciliationReportResponse,
    operation_id="reconcileIndex",
    summary="Reconcile the index",
    description=(
        "Bring the index in line with the store. Joins a running pass when one "
        "with the same scope is in progress."
    ),
)
async def reconcile(
    search_service: SearchSvc,
    request: ReconcileRequest | None = Body(None),
) -> ReconciliationReportResponse:
    """Run a reconciliation pass and report what changed."""
    request = request or ReconcileRequest()
    if request.rebuild:
        report = await search_service.rebuild()
    else:
        report = await search_service.reconcile(parse_bbox(request.bbox))
    return ReconciliationReportResponse.model_validate(report)


@router.post(
    "/rebuild",
    response_model=ReconciliationReportResponse,
    operation_id="rebuildIndex",
    summary="Rebuild the index",
    description="Clear the index and re-index every entry.",
)
async def rebuild(search_service: SearchSvc) -> ReconciliationReportResponse:
    """Rebuild the index from the store."""
    report = await search_service.rebuild()
    return ReconciliationReportResponse.model_validate(report)
