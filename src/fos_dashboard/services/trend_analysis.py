"""Trend analysis for yearly complaint-handling metrics.

Trends compare the first and last point of a yearly series. Confidence is a
proxy based on how many year-to-year moves agree with the overall direction.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from fos_dashboard.schemas.charts import ChartType
from fos_dashboard.schemas.trends import (
    BenchmarkTrends,
    FirmTrendData,
    MetricTrends,
    RankingDirection,
    TrendAnalysis,
    TrendColor,
    TrendConfidence,
    TrendDirection,
    TrendDisplay,
    TrendMetricKey,
    TrendPoint,
)

DEFAULT_SIGNIFICANCE_THRESHOLD = 5.0
DEFAULT_MIN_PERIODS = 2


@dataclass(frozen=True)
class TrendMetric:
    """A tracked metric and how to read it.

    Attributes:
        key: Name of the metric in trend bundles.
        field: Column holding the metric in per-firm rows.
        benchmark_field: Column holding the yearly average in industry rows.
        label: Human readable name.
        higher_is_better: Whether an increase is an improvement.
        chart_type: How the metric is plotted.
    """

    key: TrendMetricKey
    field: str
    benchmark_field: str
    label: str
    higher_is_better: bool
    chart_type: ChartType = ChartType.RATE


UPHOLD_RATE = TrendMetric(
    key=TrendMetricKey.UPHOLD_RATE,
    field="upheld_rate",
    benchmark_field="avg_uphold_rate",
    label="Uphold rate",
    higher_is_better=False,
    chart_type=ChartType.PERCENTAGE,
)
CLOSURE_3_DAYS = TrendMetric(
    key=TrendMetricKey.CLOSURE_3_DAYS,
    field="closure_rate_3_days",
    benchmark_field="avg_closure_3_days",
    label="Closed within 3 days",
    higher_is_better=True,
)
CLOSURE_8_WEEKS = TrendMetric(
    key=TrendMetricKey.CLOSURE_8_WEEKS,
    field="closure_rate_8_weeks",
    benchmark_field="avg_closure_8_weeks",
    label="Closed within 8 weeks",
    higher_is_better=True,
)

TREND_METRICS: dict[TrendMetricKey, TrendMetric] = {
    metric.key: metric for metric in (UPHOLD_RATE, CLOSURE_3_DAYS, CLOSURE_8_WEEKS)
}


def get_metric(key: str | TrendMetricKey) -> TrendMetric:
    """Look up a metric definition; raises KeyError for unknown keys."""
    try:
        return TREND_METRICS[TrendMetricKey(key)]
    except ValueError:
        raise KeyError(key) from None


def _round_one_decimal(value: float) -> float:
    # Half-up rounding so 0.25 -> 0.3 and -0.25 -> -0.2
    return math.floor(value * 10 + 0.5) / 10


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _calculate_confidence(
    points: Sequence[TrendPoint], direction: TrendDirection
) -> TrendConfidence:
    if len(points) < 3:
        return TrendConfidence.LOW
    if direction == TrendDirection.STABLE:
        return TrendConfidence.MEDIUM

    expected_sign = 1 if direction == TrendDirection.UP else -1
    consistent_moves = 0
    for previous, current in zip(points, points[1:]):
        change = current.value - previous.value
        if change * expected_sign > 0:
            consistent_moves += 1

    consistency_ratio = consistent_moves / (len(points) - 1)
    if consistency_ratio >= 0.8:
        return TrendConfidence.HIGH
    if consistency_ratio >= 0.6:
        return TrendConfidence.MEDIUM
    return TrendConfidence.LOW


def calculate_trend(
    points: Sequence[TrendPoint] | None,
    *,
    significance_threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD,
    min_periods_for_trend: int = DEFAULT_MIN_PERIODS,
) -> TrendAnalysis:
    """Summarise the change between the earliest and latest point.

    Points are ordered by their period label before comparison, so input
    order does not matter. A zero starting value gives a 0% change even when
    the absolute change is not zero.

    Args:
        points: Observations, one per period.
        significance_threshold: Minimum absolute percent change for a trend
            to count as up or down.
        min_periods_for_trend: Fewer points than this yield a stable,
            low-confidence result.
    """
    points = list(points or [])
    if len(points) < min_periods_for_trend:
        return TrendAnalysis(
            direction=TrendDirection.STABLE,
            change_percent=0,
            change_value=0,
            is_significant=False,
            confidence=TrendConfidence.LOW,
            periods=len(points),
        )

    ordered = sorted(points, key=lambda point: point.year)
    first_value = ordered[0].value
    last_value = ordered[-1].value

    change_value = last_value - first_value
    change_percent = change_value / first_value * 100 if first_value != 0 else 0.0

    if change_percent >= significance_threshold:
        direction = TrendDirection.UP
    elif change_percent <= -significance_threshold:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return TrendAnalysis(
        direction=direction,
        change_percent=_round_one_decimal(change_percent),
        change_value=_round_one_decimal(change_value),
        is_significant=abs(change_percent) >= significance_threshold,
        confidence=_calculate_confidence(ordered, direction),
        periods=len(ordered),
    )


def _yearly_averages(samples: dict[str, list[float]]) -> list[TrendPoint]:
    return [
        TrendPoint(year=year, value=sum(values) / len(values))
        for year, values in sorted(samples.items())
        if values
    ]


def build_yearly_series(
    rows: Iterable[Mapping[str, Any]], metric: TrendMetric = UPHOLD_RATE
) -> list[TrendPoint]:
    """Average one metric per ``trend_year`` across rows, oldest year first."""
    samples: dict[str, list[float]] = {}
    for row in rows:
        yearly = samples.setdefault(str(row.get("trend_year")), [])
        value = _as_number(row.get(metric.field))
        if value is not None:
            yearly.append(value)
    return _yearly_averages(samples)


def group_trends_by_entity(rows: Iterable[Mapping[str, Any]]) -> list[FirmTrendData]:
    """Build per-firm trend bundles from flat per-period rows.

    Each row carries ``firm_name``, ``trend_year`` and the metric fields of
    TREND_METRICS. Metrics are averaged per firm and year, skipping missing
    values, and each yearly series is analysed on its own.
    """
    firms: dict[str, dict[TrendMetricKey, dict[str, list[float]]]] = {}

    for row in rows:
        firm_name = row.get("firm_name")
        if not firm_name:
            continue
        year = str(row.get("trend_year"))
        samples = firms.setdefault(firm_name, {key: {} for key in TREND_METRICS})

        for key, metric in TREND_METRICS.items():
            yearly = samples[key].setdefault(year, [])
            value = _as_number(row.get(metric.field))
            if value is not None:
                yearly.append(value)

    bundles = []
    for firm_name, samples in firms.items():
        series = {key: _yearly_averages(samples[key]) for key in TREND_METRICS}
        bundles.append(
            FirmTrendData(
                firm_name=firm_name,
                trends=MetricTrends(
                    **{key.value: calculate_trend(points) for key, points in series.items()}
                ),
                yearly_data=series[TrendMetricKey.UPHOLD_RATE],
            )
        )
    return bundles


def calculate_benchmark_trends(rows: Iterable[Mapping[str, Any]]) -> BenchmarkTrends:
    """Compute industry trends from pre-aggregated rows, one per year.

    Rows carry ``year`` plus each metric's ``benchmark_field``; a row missing
    a metric's average is left out of that metric's series only.
    """
    series: dict[TrendMetricKey, list[TrendPoint]] = {key: [] for key in TREND_METRICS}

    for row in rows:
        year = str(row.get("year"))
        for key, metric in TREND_METRICS.items():
            value = _as_number(row.get(metric.benchmark_field))
            if value is not None:
                series[key].append(TrendPoint(year=year, value=value))

    return BenchmarkTrends(
        **{key.value: calculate_trend(points) for key, points in series.items()},
        yearly_benchmarks=series[TrendMetricKey.UPHOLD_RATE],
    )


def is_improvement(trend: TrendAnalysis, metric: TrendMetric) -> bool | None:
    """Tell whether the trend is good news for the metric; None when stable."""
    if trend.direction == TrendDirection.STABLE:
        return None
    rising = trend.direction == TrendDirection.UP
    return rising == metric.higher_is_better


_CONFIDENCE_TEXT = {
    TrendConfidence.HIGH: "Strong trend",
    TrendConfidence.MEDIUM: "Moderate trend",
    TrendConfidence.LOW: "Weak trend",
}

_DIRECTION_ICONS = {
    TrendDirection.UP: "↗",
    TrendDirection.DOWN: "↘",
    TrendDirection.STABLE: "→",
}


def format_trend_display(trend: TrendAnalysis, metric: TrendMetric = UPHOLD_RATE) -> TrendDisplay:
    """Map a trend to its arrow, signed percent text, colour and tooltip."""
    improvement = is_improvement(trend, metric)
    if improvement is None:
        color = TrendColor.GRAY
    elif improvement:
        color = TrendColor.GREEN
    else:
        color = TrendColor.RED

    change = "Significant change" if trend.is_significant else "Minor change"
    return TrendDisplay(
        icon=_DIRECTION_ICONS[trend.direction],
        text=f"{trend.change_percent:+.1f}%",
        color=color,
        tooltip=f"{_CONFIDENCE_TEXT[trend.confidence]} over {trend.periods} periods. {change}.",
    )


def rank_by_significance(
    bundles: Iterable[FirmTrendData],
    metric: TrendMetric = UPHOLD_RATE,
    direction: RankingDirection = RankingDirection.BOTH,
    limit: int = 5,
) -> list[FirmTrendData]:
    """Return the firms with the largest significant change on a metric.

    ``improving`` and ``declining`` follow the metric's polarity, so a falling
    uphold rate counts as improving.
    """
    direction = RankingDirection(direction)
    selected = []
    for bundle in bundles:
        trend: TrendAnalysis = getattr(bundle.trends, metric.key.value)
        if not trend.is_significant:
            continue
        improvement = is_improvement(trend, metric)
        if direction == RankingDirection.IMPROVING and improvement is not True:
            continue
        if direction == RankingDirection.DECLINING and improvement is not False:
            continue
        selected.append(bundle)

    selected.sort(
        key=lambda bundle: abs(getattr(bundle.trends, metric.key.value).change_percent),
        reverse=True,
    )
    return selected[: max(limit, 0)]
