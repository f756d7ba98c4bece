"""Decision ingestion status, progress and database keepalive service."""

import logging
import time
from datetime import date

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fos_dashboard.models.fos_decision import FosDecision
from fos_dashboard.models.ingestion_run import IngestionRun
from fos_dashboard.schemas.ingestion import (
    IngestionSource,
    IngestionState,
    IngestionStatusResponse,
    KeepaliveResponse,
    ProgressResponse,
    YearProgress,
)

logger = logging.getLogger(__name__)


def normalize_run_status(status: str | None) -> IngestionState:
    """Map the ingester's free-text run status to a known state."""
    if not status:
        return IngestionState.IDLE
    normalized = status.lower()
    if "fail" in normalized or "error" in normalized:
        return IngestionState.ERROR
    if "run" in normalized or "progress" in normalized or "active" in normalized:
        return IngestionState.RUNNING
    if "warn" in normalized:
        return IngestionState.WARNING
    return IngestionState.IDLE


async def _decision_summary(db: AsyncSession) -> tuple[int, date | None]:
    result = await db.execute(
        select(func.count(FosDecision.id), func.max(FosDecision.decision_date))
    )
    total, latest = result.one()
    return int(total or 0), latest


async def get_latest_run(db: AsyncSession) -> IngestionRun | None:
    """Get the most recently updated ingestion run."""
    stmt = (
        select(IngestionRun)
        .order_by(
            IngestionRun.updated_at.desc(),
            IngestionRun.finished_at.is_(None),
            IngestionRun.finished_at.desc(),
            IngestionRun.started_at.is_(None),
            IngestionRun.started_at.desc(),
            IngestionRun.id.desc(),
        )
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def derive_ingestion_status(db: AsyncSession) -> IngestionStatusResponse:
    """Approximate the ingestion status from the decisions table itself."""
    total, latest = await _decision_summary(db)
    return IngestionStatusResponse(
        status=IngestionState.IDLE,
        source=IngestionSource.DERIVED,
        last_run_at=latest,
        last_success_at=latest,
        records_ingested=total,
    )


async def get_ingestion_status(db: AsyncSession) -> IngestionStatusResponse:
    """Get the ingestion status from the latest run, or derive it when none exist."""
    run = await get_latest_run(db)
    if run is None:
        return await derive_ingestion_status(db)

    return IngestionStatusResponse(
        status=normalize_run_status(run.status),
        source=IngestionSource.RUNS,
        last_run_at=run.updated_at or run.finished_at or run.started_at,
        last_success_at=run.last_success_at or run.finished_at,
        active_year=run.active_year,
        windows_done=run.windows_done,
        windows_total=run.windows_total,
        failed_windows=run.failed_windows,
        records_ingested=run.records_ingested,
    )


async def get_progress_summary(
    db: AsyncSession, start_year: int | None = None
) -> ProgressResponse:
    """Get decision counts per decision year along with the ingestion status."""
    decision_year = extract("year", FosDecision.decision_date)
    stmt = select(
        decision_year.label("year"),
        func.count(FosDecision.id).label("decisions"),
    ).where(FosDecision.decision_date.is_not(None))
    if start_year is not None:
        stmt = stmt.where(decision_year >= start_year)
    stmt = stmt.group_by(decision_year).order_by(decision_year)

    result = await db.execute(stmt)
    years = [
        YearProgress(year=int(row.year), decisions=int(row.decisions)) for row in result.all()
    ]
    return ProgressResponse(ingestion=await get_ingestion_status(db), years=years)


async def warm_database(db: AsyncSession) -> KeepaliveResponse:
    """Run a cheap aggregate query so the database connection stays warm."""
    started_at = time.perf_counter()
    total, latest = await _decision_summary(db)
    duration_ms = (time.perf_counter() - started_at) * 1000
    logger.debug(f"Keepalive query returned {total} decisions in {duration_ms:.1f}ms")
    return KeepaliveResponse(
        total_cases=total,
        latest_decision_date=latest,
        duration_ms=round(duration_ms, 1),
    )
