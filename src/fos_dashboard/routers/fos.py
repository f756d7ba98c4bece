"""Ombudsman decision endpoints: dashboard, case browsing, ingestion status and keepalive."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from fos_dashboard.core.cache import cached_json_response
from fos_dashboard.core.deps import CronAuthorized, DbSession
from fos_dashboard.schemas.cases import CaseDetail, CaseListResponse
from fos_dashboard.schemas.dashboard import DashboardOverview, DashboardSnapshot
from fos_dashboard.schemas.ingestion import (
    IngestionStatusResponse,
    KeepaliveResponse,
    ProgressResponse,
)
from fos_dashboard.services import cases as cases_service
from fos_dashboard.services import dashboard as dashboard_service
from fos_dashboard.services import ingestion_status as ingestion_service
from fos_dashboard.services.cases import CaseFilters

router = APIRouter(prefix="/api/fos", tags=["fos"])


def get_case_filters(
    query: str | None = Query(None, description="Free-text search"),
    year: str | None = Query(None, description="Comma-separated decision years"),
    outcome: str | None = Query(None, description="Comma-separated outcomes"),
    product: str | None = Query(None, description="Comma-separated product groups"),
    firm: str | None = Query(None, description="Comma-separated firm names"),
    tag: str | None = Query(None, description="Comma-separated precedent or root-cause tags"),
    page: int | None = Query(None, description="Page number, clamped to the last page"),
    page_size: int | None = Query(None, description="Cases per page (5-100)"),
) -> CaseFilters:
    return CaseFilters.from_query(
        query=query,
        years=year,
        outcomes=outcome,
        products=product,
        firms=firm,
        tags=tag,
        page=page,
        page_size=page_size,
    )


Filters = Annotated[CaseFilters, Depends(get_case_filters)]


@router.get("/dashboard", response_model=DashboardSnapshot)
async def get_dashboard(request: Request, db: DbSession, filters: Filters) -> Response:
    """
    Get every dashboard panel for the filters in one response.

    Includes KPIs, yearly outcome totals, product and firm breakdowns, tag
    frequencies, year insights, a page of cases, filter options, ingestion
    status and data-quality counts.
    """

    async def build() -> DashboardSnapshot:
        return await dashboard_service.get_dashboard_snapshot(db, filters)

    return await cached_json_response(request, build)


@router.get("/overview", response_model=DashboardOverview)
async def get_overview(db: DbSession, filters: Filters) -> DashboardOverview:
    """Get the headline KPIs for the filtered decisions."""
    return await dashboard_service.get_overview(db, filters)


@router.get("/cases", response_model=CaseListResponse)
async def list_cases(db: DbSession, filters: Filters) -> CaseListResponse:
    """
    List ombudsman decisions, newest first.

    Unparseable years and unknown outcomes are ignored rather than rejected.
    """
    return await cases_service.list_cases(db, filters)


@router.get("/cases/{case_id}", response_model=CaseDetail)
async def get_case(case_id: str, db: DbSession) -> CaseDetail:
    """Get a decision by its reference (e.g. DRN-1234567), PDF hash or numeric ID."""
    case = await cases_service.get_case(db, case_id)
    if case is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Case not found",
        )
    return case


@router.get("/ingestion-status", response_model=IngestionStatusResponse)
async def get_ingestion_status(db: DbSession) -> IngestionStatusResponse:
    """Get the decision ingestion status, derived from the data when no run is recorded."""
    return await ingestion_service.get_ingestion_status(db)


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    db: DbSession,
    start_year: int | None = Query(None, ge=1900, le=2100, description="First decision year"),
) -> ProgressResponse:
    """Get decision counts per year along with the ingestion status."""
    return await ingestion_service.get_progress_summary(db, start_year)


@router.get("/keepalive", response_model=KeepaliveResponse)
async def keepalive(_: CronAuthorized, db: DbSession) -> KeepaliveResponse:
    """
    Run a cheap query to keep the database warm.

    Requires the cron secret as a bearer token when one is configured.
    """
    return await ingestion_service.warm_database(db)
