"""Dashboard snapshot aggregates over ombudsman decisions."""

import logging
import re
from collections import Counter
from collections.abc import Iterable
from typing import Any

from sqlalchemy import ColumnElement, Subquery, case, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fos_dashboard.models.fos_decision import FosDecision
from fos_dashboard.schemas.cases import CaseOutcome
from fos_dashboard.schemas.dashboard import (
    DashboardOverview,
    DashboardSnapshot,
    DataQuality,
    FilterOptions,
    FirmBreakdown,
    OutcomeCount,
    ProductBreakdown,
    TagCount,
    YearInsight,
    YearOutcomeTrend,
)
from fos_dashboard.services import complaint_metrics as metrics_service
from fos_dashboard.services import ingestion_status as ingestion_service
from fos_dashboard.services.cases import (
    UNKNOWN_FIRM,
    UNSPECIFIED_PRODUCT,
    CaseFilters,
    filter_conditions,
    labelled_column,
    list_cases,
    outcome_bucket_expression,
    parse_string_array,
)

logger = logging.getLogger(__name__)

TOP_PRODUCTS_LIMIT = 12
TOP_FIRMS_LIMIT = 15
TOP_TAGS_LIMIT = 12
PRODUCT_OPTIONS_LIMIT = 40
FIRM_OPTIONS_LIMIT = 120
TAG_OPTIONS_LIMIT = 40

# Regulatory codes such as "DISP 1.4" or "s75cca" are shown upper-cased
_CODE_PATTERN = re.compile(r"[a-z]{2,}\d|\d[a-z]{2,}", re.IGNORECASE)


def _filtered(filters: CaseFilters) -> Subquery:
    """Decisions matching the filters, with the dimensions the aggregates group on."""
    return (
        select(
            FosDecision.id,
            FosDecision.decision_date,
            extract("year", FosDecision.decision_date).label("year"),
            labelled_column(FosDecision.product_sector, UNSPECIFIED_PRODUCT).label("product"),
            labelled_column(FosDecision.business_name, UNKNOWN_FIRM).label("firm"),
            outcome_bucket_expression().label("outcome_bucket"),
            FosDecision.business_name,
            FosDecision.product_sector,
            FosDecision.ombudsman_reasoning_text,
            FosDecision.precedents,
            FosDecision.root_cause_tags,
        )
        .where(*filter_conditions(filters))
        .subquery("filtered")
    )


def _count_where(condition: ColumnElement[bool]) -> ColumnElement[int]:
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _bucket_count(filtered: Subquery, outcome: CaseOutcome) -> ColumnElement[int]:
    return _count_where(filtered.c.outcome_bucket == outcome.value)


def _is_blank(column: Any) -> ColumnElement[bool]:
    return func.nullif(func.trim(func.coalesce(column, "")), "").is_(None)


def _rate(part: Any, total: Any) -> float:
    """Percentage of part in total, to two decimals; 0 for an empty total."""
    if not total:
        return 0.0
    return round(int(part or 0) / int(total) * 100, 2)


def format_tag_label(label: str) -> str:
    """Display form of a tag: codes upper-cased, other words capitalised."""
    compact = re.sub(r"\s+", " ", label.strip())
    if not compact:
        return ""
    if _CODE_PATTERN.search(compact) or "." in compact:
        return compact.upper()
    return " ".join(token[:1].upper() + token[1:] for token in compact.split(" "))


def _tag_keys(value: Any) -> set[str]:
    keys = {re.sub(r"\s+", " ", tag.lower()) for tag in parse_string_array(value)}
    keys.discard("")
    return keys


def _top_tags(counter: Counter[str], limit: int) -> list[TagCount]:
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [TagCount(label=format_tag_label(key), count=count) for key, count in ranked]


async def get_tag_frequencies(
    db: AsyncSession, filters: CaseFilters, limit: int = TOP_TAGS_LIMIT
) -> tuple[list[TagCount], list[TagCount]]:
    """Count precedent and root-cause tags across the filtered decisions.

    Tags are compared case-insensitively and each decision counts a tag once.
    Returns (precedents, root_causes), most frequent first.
    """
    filtered = _filtered(filters)
    result = await db.execute(select(filtered.c.precedents, filtered.c.root_cause_tags))

    precedents: Counter[str] = Counter()
    root_causes: Counter[str] = Counter()
    for precedent_values, root_cause_values in result.all():
        precedents.update(_tag_keys(precedent_values))
        root_causes.update(_tag_keys(root_cause_values))

    return _top_tags(precedents, limit), _top_tags(root_causes, limit)


async def get_overview(
    db: AsyncSession,
    filters: CaseFilters,
    tags: tuple[list[TagCount], list[TagCount]] | None = None,
) -> DashboardOverview:
    """Get headline counts, rates and the decision date range."""
    filtered = _filtered(filters)
    stmt = select(
        func.count().label("total"),
        _bucket_count(filtered, CaseOutcome.UPHELD).label("upheld"),
        _bucket_count(filtered, CaseOutcome.NOT_UPHELD).label("not_upheld"),
        _bucket_count(filtered, CaseOutcome.PARTIALLY_UPHELD).label("partially_upheld"),
        func.min(filtered.c.decision_date).label("earliest"),
        func.max(filtered.c.decision_date).label("latest"),
    ).select_from(filtered)
    row = (await db.execute(stmt)).one()

    precedents, root_causes = tags if tags is not None else await get_tag_frequencies(db, filters)
    total = int(row.total or 0)
    return DashboardOverview(
        total_cases=total,
        upheld_cases=int(row.upheld),
        not_upheld_cases=int(row.not_upheld),
        partially_upheld_cases=int(row.partially_upheld),
        upheld_rate=_rate(row.upheld, total),
        not_upheld_rate=_rate(row.not_upheld, total),
        top_root_cause=root_causes[0].label if root_causes else None,
        top_precedent=precedents[0].label if precedents else None,
        earliest_decision_date=row.earliest,
        latest_decision_date=row.latest,
    )


async def get_year_trends(db: AsyncSession, filters: CaseFilters) -> list[YearOutcomeTrend]:
    """Get outcome totals per decision year, oldest first. Undated decisions are left out."""
    filtered = _filtered(filters)
    stmt = (
        select(
            filtered.c.year,
            func.count().label("total"),
            _bucket_count(filtered, CaseOutcome.UPHELD).label("upheld"),
            _bucket_count(filtered, CaseOutcome.NOT_UPHELD).label("not_upheld"),
            _bucket_count(filtered, CaseOutcome.PARTIALLY_UPHELD).label("partially_upheld"),
            _bucket_count(filtered, CaseOutcome.UNKNOWN).label("unknown"),
        )
        .where(filtered.c.year.is_not(None))
        .group_by(filtered.c.year)
        .order_by(filtered.c.year)
    )
    result = await db.execute(stmt)
    return [
        YearOutcomeTrend(
            year=int(row.year),
            total=int(row.total),
            upheld=int(row.upheld),
            not_upheld=int(row.not_upheld),
            partially_upheld=int(row.partially_upheld),
            unknown=int(row.unknown),
        )
        for row in result.all()
    ]


async def get_outcome_distribution(db: AsyncSession, filters: CaseFilters) -> list[OutcomeCount]:
    """Get the number of decisions per outcome bucket, largest first."""
    filtered = _filtered(filters)
    total = func.count().label("total")
    stmt = (
        select(filtered.c.outcome_bucket, total)
        .group_by(filtered.c.outcome_bucket)
        .order_by(total.desc(), filtered.c.outcome_bucket)
    )
    result = await db.execute(stmt)
    return [
        OutcomeCount(outcome=CaseOutcome(bucket), count=int(count))
        for bucket, count in result.all()
    ]


async def get_product_breakdown(
    db: AsyncSession, filters: CaseFilters, limit: int = TOP_PRODUCTS_LIMIT
) -> list[ProductBreakdown]:
    """Get the busiest product groups with their uphold rates."""
    filtered = _filtered(filters)
    total = func.count().label("total")
    stmt = (
        select(
            filtered.c.product,
            total,
            _bucket_count(filtered, CaseOutcome.UPHELD).label("upheld"),
        )
        .group_by(filtered.c.product)
        .order_by(total.desc(), filtered.c.product)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [
        ProductBreakdown(
            product=row.product, total=int(row.total), upheld_rate=_rate(row.upheld, row.total)
        )
        for row in result.all()
    ]


async def get_firm_breakdown(
    db: AsyncSession, filters: CaseFilters, limit: int = TOP_FIRMS_LIMIT
) -> list[FirmBreakdown]:
    """Get the firms with the most decisions and their outcome rates."""
    filtered = _filtered(filters)
    total = func.count().label("total")
    stmt = (
        select(
            filtered.c.firm,
            total,
            _bucket_count(filtered, CaseOutcome.UPHELD).label("upheld"),
            _bucket_count(filtered, CaseOutcome.NOT_UPHELD).label("not_upheld"),
        )
        .group_by(filtered.c.firm)
        .order_by(total.desc(), filtered.c.firm)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [
        FirmBreakdown(
            firm=row.firm,
            total=int(row.total),
            upheld_rate=_rate(row.upheld, row.total),
            not_upheld_rate=_rate(row.not_upheld, row.total),
        )
        for row in result.all()
    ]


async def get_data_quality(db: AsyncSession, filters: CaseFilters) -> DataQuality:
    """Count filtered decisions with missing dates, outcomes, firms or products."""
    filtered = _filtered(filters)
    stmt = select(
        _count_where(filtered.c.decision_date.is_(None)).label("missing_decision_date"),
        _bucket_count(filtered, CaseOutcome.UNKNOWN).label("missing_outcome"),
        _count_where(_is_blank(filtered.c.business_name)).label("missing_firm"),
        _count_where(_is_blank(filtered.c.product_sector)).label("missing_product"),
        _count_where(~_is_blank(filtered.c.ombudsman_reasoning_text)).label("with_reasoning"),
    ).select_from(filtered)
    row = (await db.execute(stmt)).one()
    return DataQuality(
        missing_decision_date=int(row.missing_decision_date),
        missing_outcome=int(row.missing_outcome),
        missing_firm=int(row.missing_firm),
        missing_product=int(row.missing_product),
        with_reasoning_text=int(row.with_reasoning),
    )


async def _top_product_by_year(db: AsyncSession, filters: CaseFilters) -> dict[int, str]:
    filtered = _filtered(filters)
    total = func.count().label("total")
    stmt = (
        select(filtered.c.year, filtered.c.product, total)
        .where(filtered.c.year.is_not(None))
        .group_by(filtered.c.year, filtered.c.product)
        .order_by(filtered.c.year, total.desc(), filtered.c.product)
    )
    result = await db.execute(stmt)

    top: dict[int, str] = {}
    for year, product, _ in result.all():
        top.setdefault(int(year), product)
    return top


def build_year_insights(
    trends: Iterable[YearOutcomeTrend], top_products: dict[int, str]
) -> list[YearInsight]:
    """Summarise each year's volume, uphold rate and main product, newest first."""
    insights = []
    previous: YearOutcomeTrend | None = None
    for item in sorted(trends, key=lambda trend: trend.year):
        upheld_rate = item.upheld / item.total * 100 if item.total else 0.0
        if previous is None:
            volume = "baseline year in the current filter window"
        else:
            delta = item.total - previous.total
            volume = f"{'+' if delta > 0 else ''}{delta} vs prior year"
        product = top_products.get(item.year, UNSPECIFIED_PRODUCT)
        insights.append(
            YearInsight(
                year=item.year,
                headline=f"{item.year}: {item.total:,} decisions, {upheld_rate:.1f}% upheld",
                detail=f"Primary product group: {product}. Volume trend: {volume}.",
            )
        )
        previous = item
    return sorted(insights, key=lambda insight: insight.year, reverse=True)


async def get_filter_options(db: AsyncSession) -> FilterOptions:
    """Get the values offered by the filter controls, across all decisions."""
    everything = _filtered(CaseFilters())

    years = await db.execute(
        select(everything.c.year)
        .distinct()
        .where(everything.c.year.is_not(None))
        .order_by(everything.c.year.desc())
    )
    products = await db.execute(
        select(everything.c.product)
        .group_by(everything.c.product)
        .order_by(func.count().desc(), everything.c.product)
        .limit(PRODUCT_OPTIONS_LIMIT)
    )
    firms = await db.execute(
        select(everything.c.firm)
        .group_by(everything.c.firm)
        .order_by(func.count().desc(), everything.c.firm)
        .limit(FIRM_OPTIONS_LIMIT)
    )
    precedents, root_causes = await get_tag_frequencies(db, CaseFilters(), TAG_OPTIONS_LIMIT)

    return FilterOptions(
        years=[int(year) for year in years.scalars().all() if year],
        outcomes=list(CaseOutcome),
        products=list(products.scalars().all()),
        firms=list(firms.scalars().all()),
        tags=list(dict.fromkeys(tag.label for tag in [*precedents, *root_causes])),
        trend_firms=await metrics_service.get_firm_names(db),
    )


async def get_dashboard_snapshot(db: AsyncSession, filters: CaseFilters) -> DashboardSnapshot:
    """Build every dashboard panel for one set of filters.

    The queries share one session, so they run one after another.
    """
    precedents, root_causes = await get_tag_frequencies(db, filters)
    overview = await get_overview(db, filters, (precedents, root_causes))
    trends = await get_year_trends(db, filters)
    cases = await list_cases(db, filters)

    snapshot = DashboardSnapshot(
        overview=overview,
        trends=trends,
        outcomes=await get_outcome_distribution(db, filters),
        products=await get_product_breakdown(db, filters),
        firms=await get_firm_breakdown(db, filters),
        precedents=precedents,
        root_causes=root_causes,
        insights=build_year_insights(trends, await _top_product_by_year(db, filters)),
        cases=cases.cases,
        pagination=cases.pagination,
        filters=await get_filter_options(db),
        ingestion=await ingestion_service.get_ingestion_status(db),
        data_quality=await get_data_quality(db, filters),
    )
    logger.debug(
        "Built dashboard snapshot: %d cases over %d years", overview.total_cases, len(trends)
    )
    return snapshot
