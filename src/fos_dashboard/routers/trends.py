"""Trend endpoints for firm and industry complaint metrics."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from fos_dashboard.core.cache import cached_json_response
from fos_dashboard.core.deps import DbSession
from fos_dashboard.schemas.charts import ScalingResult
from fos_dashboard.schemas.trends import (
    FirmTrendChartResponse,
    FirmTrendDetailResponse,
    FirmTrendListResponse,
    IndustryTrendResponse,
    IndustryYear,
    RankingDirection,
    TopTrendingResponse,
    TrendMetricKey,
)
from fos_dashboard.services import complaint_metrics as metrics_service
from fos_dashboard.services.chart_scaling import apply_dynamic_scaling, tick_values
from fos_dashboard.services.complaint_metrics import MetricFilters
from fos_dashboard.services.trend_analysis import (
    TREND_METRICS,
    build_yearly_series,
    calculate_benchmark_trends,
    format_trend_display,
    get_metric,
    group_trends_by_entity,
    rank_by_significance,
)

router = APIRouter(prefix="/api/trends", tags=["trends"])


def get_metric_filters(
    years: str | None = Query(None, description="Comma-separated reporting years"),
    firms: str | None = Query(None, description="Comma-separated firm names"),
    products: str | None = Query(None, description="Comma-separated product categories"),
) -> MetricFilters:
    return MetricFilters.from_query(years, firms, products)


Filters = Annotated[MetricFilters, Depends(get_metric_filters)]


def _with_firm(filters: MetricFilters, firm_name: str) -> MetricFilters:
    return filters.model_copy(update={"firms": [firm_name]})


@router.get("/firms", response_model=FirmTrendListResponse)
async def get_firm_trends(request: Request, db: DbSession, filters: Filters) -> Response:
    """
    Get trend bundles for every firm matching the filters.

    Each bundle holds uphold rate and closure rate trends plus the yearly
    uphold series.
    """

    async def build() -> FirmTrendListResponse:
        rows = await metrics_service.get_historical_trend_rows(db, filters)
        firms = group_trends_by_entity(rows)
        return FirmTrendListResponse(firms=firms, total=len(firms))

    return await cached_json_response(request, build)


@router.get("/industry", response_model=IndustryTrendResponse)
async def get_industry_trends(request: Request, db: DbSession, filters: Filters) -> Response:
    """Get industry benchmark trends computed from yearly averages."""

    async def build() -> IndustryTrendResponse:
        rows = await metrics_service.get_industry_trend_rows(db, filters)
        return IndustryTrendResponse(
            benchmarks=calculate_benchmark_trends(rows),
            years=[IndustryYear(**row) for row in rows],
        )

    return await cached_json_response(request, build)


@router.get("/top", response_model=TopTrendingResponse)
async def get_top_trending(
    request: Request,
    db: DbSession,
    filters: Filters,
    metric: TrendMetricKey = Query(TrendMetricKey.UPHOLD_RATE, description="Metric to rank by"),
    direction: RankingDirection = Query(
        RankingDirection.BOTH, description="Keep improving, declining or both"
    ),
    limit: int = Query(5, ge=1, le=50, description="Maximum number of firms"),
) -> Response:
    """
    Get the firms with the most significant change on a metric.

    Improving and declining follow the metric's polarity, so a falling uphold
    rate counts as improving.
    """

    async def build() -> TopTrendingResponse:
        rows = await metrics_service.get_historical_trend_rows(db, filters)
        ranked = rank_by_significance(
            group_trends_by_entity(rows), get_metric(metric), direction, limit
        )
        return TopTrendingResponse(metric=metric, direction=direction, firms=ranked)

    return await cached_json_response(request, build)


@router.get("/firms/{firm_name}", response_model=FirmTrendDetailResponse)
async def get_firm_trend(
    request: Request, firm_name: str, db: DbSession, filters: Filters
) -> Response:
    """Get one firm's trends with arrow, text, colour and tooltip per metric."""

    async def build() -> FirmTrendDetailResponse:
        rows = await metrics_service.get_historical_trend_rows(db, _with_firm(filters, firm_name))
        bundles = group_trends_by_entity(rows)
        if not bundles:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Firm not found",
            )
        firm = bundles[0]
        displays = {
            key: format_trend_display(getattr(firm.trends, key.value), metric)
            for key, metric in TREND_METRICS.items()
        }
        return FirmTrendDetailResponse(firm=firm, displays=displays)

    return await cached_json_response(request, build)


@router.get("/firms/{firm_name}/chart", response_model=FirmTrendChartResponse)
async def get_firm_trend_chart(
    request: Request,
    firm_name: str,
    db: DbSession,
    filters: Filters,
    metric: TrendMetricKey = Query(TrendMetricKey.UPHOLD_RATE, description="Metric to plot"),
) -> Response:
    """
    Get a line chart configuration for one firm metric.

    The y-axis is scaled to the data. Tick labels are rendered server-side
    since the options cannot carry a formatter function.
    """

    async def build() -> FirmTrendChartResponse:
        rows = await metrics_service.get_historical_trend_rows(db, _with_firm(filters, firm_name))
        if not rows:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Firm not found",
            )
        trend_metric = get_metric(metric)
        series = build_yearly_series(rows, trend_metric)
        values = [point.value for point in series]

        options: dict[str, Any] = {
            "responsive": True,
            "plugins": {"legend": {"display": False}},
            "scales": {"y": {"ticks": {"precision": 0}}},
        }
        apply_dynamic_scaling(options, values, trend_metric.chart_type)

        y_axis = options["scales"]["y"]
        format_tick = y_axis["ticks"].pop("callback")
        scale = ScalingResult(
            min=y_axis["min"], max=y_axis["max"], step_size=y_axis["ticks"]["stepSize"]
        )
        return FirmTrendChartResponse(
            firm_name=firm_name,
            metric=metric,
            labels=[point.year for point in series],
            values=values,
            options=options,
            tick_labels=[format_tick(tick) for tick in tick_values(scale)],
        )

    return await cached_json_response(request, build)
