"""Complaint metric queries feeding the trend endpoints."""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import ColumnElement, Select, and_, case, distinct, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fos_dashboard.core.config import settings
from fos_dashboard.models.complaint_metric import ComplaintMetric

UNKNOWN_YEAR = "Unknown"


class MetricFilters(BaseModel):
    """Filters applied to complaint metric queries."""

    years: list[str] = Field(default_factory=list)
    firms: list[str] = Field(default_factory=list)
    products: list[str] = Field(default_factory=list)

    @classmethod
    def from_query(
        cls,
        years: str | None = None,
        firms: str | None = None,
        products: str | None = None,
    ) -> "MetricFilters":
        """Build filters from comma-separated query parameter values."""
        return cls(
            years=split_list_param(years),
            firms=split_list_param(firms),
            products=split_list_param(products),
        )


def split_list_param(raw: str | Iterable[str] | None) -> list[str]:
    """Split comma-separated values, trimming blanks and dropping duplicates."""
    if raw is None:
        return []
    chunks = [raw] if isinstance(raw, str) else list(raw)
    values: list[str] = []
    for chunk in chunks:
        for value in chunk.split(","):
            value = value.strip()
            if value and value not in values:
                values.append(value)
    return values


def trend_year_expression(years: Iterable[int] | None = None) -> ColumnElement[str]:
    """SQL expression bucketing a free-text reporting period into a year label.

    Periods such as "2023 H1" or "01/07/2022 - 31/12/2022" map to the first
    configured year they mention; anything else becomes "Unknown".
    """
    years = list(years if years is not None else settings.trend_years)
    if not years:
        return literal(UNKNOWN_YEAR)
    return case(
        *[(ComplaintMetric.reporting_period.like(f"%{year}%"), str(year)) for year in years],
        else_=UNKNOWN_YEAR,
    )


def _apply_filters(stmt: Select[Any], filters: MetricFilters) -> Select[Any]:
    conditions: list[ColumnElement[bool]] = []
    if filters.years:
        conditions.append(
            or_(*[ComplaintMetric.reporting_period.like(f"%{year}%") for year in filters.years])
        )
    if filters.firms:
        conditions.append(ComplaintMetric.firm_name.in_(filters.firms))
    if filters.products:
        conditions.append(ComplaintMetric.product_category.in_(filters.products))
    if conditions:
        stmt = stmt.where(and_(*conditions))
    return stmt


async def get_historical_trend_rows(
    db: AsyncSession,
    filters: MetricFilters | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Get per-period firm rows with their year bucket, ordered by firm and period."""
    filters = filters or MetricFilters()
    trend_year = trend_year_expression()
    stmt = select(
        ComplaintMetric.firm_name.label("firm_name"),
        ComplaintMetric.reporting_period.label("reporting_period"),
        ComplaintMetric.product_category.label("product_category"),
        ComplaintMetric.upheld_rate_pct.label("upheld_rate"),
        ComplaintMetric.closed_within_3_days_pct.label("closure_rate_3_days"),
        ComplaintMetric.closed_after_3_days_within_8_weeks_pct.label("closure_rate_8_weeks"),
        trend_year.label("trend_year"),
    ).where(ComplaintMetric.reporting_period.is_not(None))
    stmt = _apply_filters(stmt, filters)
    stmt = stmt.order_by(
        ComplaintMetric.firm_name, ComplaintMetric.reporting_period, ComplaintMetric.id
    ).limit(limit or settings.trend_row_limit)

    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


async def get_industry_trend_rows(
    db: AsyncSession,
    filters: MetricFilters | None = None,
) -> list[dict[str, Any]]:
    """Get industry-wide yearly averages, oldest year first."""
    filters = filters or MetricFilters()
    bucketed_stmt = select(
        ComplaintMetric.id,
        ComplaintMetric.firm_name,
        ComplaintMetric.upheld_rate_pct,
        ComplaintMetric.closed_within_3_days_pct,
        ComplaintMetric.closed_after_3_days_within_8_weeks_pct,
        trend_year_expression().label("year"),
    ).where(ComplaintMetric.reporting_period.is_not(None))
    bucketed = _apply_filters(bucketed_stmt, filters).subquery()

    stmt = (
        select(
            bucketed.c.year,
            func.avg(bucketed.c.upheld_rate_pct).label("avg_uphold_rate"),
            func.avg(bucketed.c.closed_within_3_days_pct).label("avg_closure_3_days"),
            func.avg(bucketed.c.closed_after_3_days_within_8_weeks_pct).label(
                "avg_closure_8_weeks"
            ),
            func.count(distinct(bucketed.c.firm_name)).label("firm_count"),
            func.count(bucketed.c.id).label("record_count"),
        )
        .where(bucketed.c.year != UNKNOWN_YEAR)
        .group_by(bucketed.c.year)
        .order_by(bucketed.c.year)
    )

    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


async def get_firm_names(db: AsyncSession) -> list[str]:
    """Get distinct non-empty firm names in alphabetical order."""
    stmt = (
        select(ComplaintMetric.firm_name)
        .distinct()
        .where(ComplaintMetric.firm_name.is_not(None), ComplaintMetric.firm_name != "")
        .order_by(ComplaintMetric.firm_name)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
