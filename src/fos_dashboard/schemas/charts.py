"""Chart scaling schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class ChartType(str, Enum):
    """Semantic type of the plotted values."""

    PERCENTAGE = "percentage"
    VOLUME = "volume"
    RATE = "rate"


class ScalingResult(BaseModel):
    """Y-axis bounds and tick step for a chart."""

    min: float
    max: float
    step_size: float | None = None

    model_config = {"frozen": True}


class ScaleRequest(BaseModel):
    """Values to scale plus optional scaling parameters."""

    values: list[float | None] = Field(default_factory=list)
    chart_type: ChartType = ChartType.PERCENTAGE
    min_padding: float = 0
    max_padding: float = 10
    force_zero_base: bool = True
    round_to: float = 5


class ScaleResponse(BaseModel):
    """Computed scale, whether dynamic scaling is advisable, and tick labels."""

    scale: ScalingResult
    dynamic_scaling_recommended: bool
    tick_labels: list[str]
