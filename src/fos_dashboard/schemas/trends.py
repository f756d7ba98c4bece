"""Trend analysis schemas for firm and industry complaint metrics."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TrendDirection(str, Enum):
    """Overall direction of a metric between its first and last period."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class TrendConfidence(str, Enum):
    """How consistently period-to-period moves agree with the overall direction."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendColor(str, Enum):
    """Semantic colour of a trend from the reader's point of view."""

    GREEN = "green"
    RED = "red"
    GRAY = "gray"


class RankingDirection(str, Enum):
    """Which significant trends to keep when ranking firms."""

    IMPROVING = "improving"
    DECLINING = "declining"
    BOTH = "both"


class TrendMetricKey(str, Enum):
    """Metrics tracked per firm and for the industry benchmark."""

    UPHOLD_RATE = "uphold_rate"
    CLOSURE_3_DAYS = "closure_3_days"
    CLOSURE_8_WEEKS = "closure_8_weeks"


class TrendPoint(BaseModel):
    """A single (period label, value) observation."""

    year: str
    value: float
    period: str | None = None

    model_config = {"frozen": True}


class TrendAnalysis(BaseModel):
    """Change summary between the first and last point of a series."""

    direction: TrendDirection
    change_percent: float
    change_value: float
    is_significant: bool
    confidence: TrendConfidence
    periods: int

    model_config = {"frozen": True}


class MetricTrends(BaseModel):
    """Trend results for each tracked metric."""

    uphold_rate: TrendAnalysis
    closure_3_days: TrendAnalysis
    closure_8_weeks: TrendAnalysis


class FirmTrendData(BaseModel):
    """Per-firm trends plus the yearly uphold-rate series behind them."""

    firm_name: str
    trends: MetricTrends
    yearly_data: list[TrendPoint]


class BenchmarkTrends(MetricTrends):
    """Industry-wide trends plus the yearly uphold-rate benchmark series."""

    yearly_benchmarks: list[TrendPoint]


class TrendDisplay(BaseModel):
    """Presentation of a trend: arrow, signed percentage, colour and tooltip."""

    icon: str
    text: str
    color: TrendColor
    tooltip: str


class IndustryYear(BaseModel):
    """Industry averages for one reporting year."""

    year: str
    avg_uphold_rate: float | None
    avg_closure_3_days: float | None
    avg_closure_8_weeks: float | None
    firm_count: int
    record_count: int


class FirmTrendListResponse(BaseModel):
    """Response containing trend bundles for every matching firm."""

    firms: list[FirmTrendData]
    total: int


class IndustryTrendResponse(BaseModel):
    """Response containing industry benchmark trends."""

    benchmarks: BenchmarkTrends
    years: list[IndustryYear]


class TopTrendingResponse(BaseModel):
    """Response containing firms ranked by trend significance."""

    metric: TrendMetricKey
    direction: RankingDirection
    firms: list[FirmTrendData]


class FirmTrendDetailResponse(BaseModel):
    """Response containing one firm's trends and their display form."""

    firm: FirmTrendData
    displays: dict[TrendMetricKey, TrendDisplay]


class FirmTrendChartResponse(BaseModel):
    """Chart configuration for one firm metric with dynamic y-axis scaling."""

    firm_name: str
    metric: TrendMetricKey
    labels: list[str]
    values: list[float]
    options: dict[str, Any]
    tick_labels: list[str] = Field(default_factory=list)
