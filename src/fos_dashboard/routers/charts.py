"""Chart scaling endpoint."""

from fastapi import APIRouter

from fos_dashboard.schemas.charts import ScaleRequest, ScaleResponse
from fos_dashboard.services.chart_scaling import (
    build_tick_labels,
    calculate_dynamic_scale,
    should_apply_dynamic_scaling,
)

router = APIRouter(prefix="/api/charts", tags=["charts"])


@router.post("/scale", response_model=ScaleResponse)
async def scale_chart(request: ScaleRequest) -> ScaleResponse:
    """
    Compute y-axis bounds for a set of chart values.

    Missing values are ignored; an empty series yields the default 0-100 axis.
    """
    scale = calculate_dynamic_scale(
        request.values,
        request.chart_type,
        min_padding=request.min_padding,
        max_padding=request.max_padding,
        force_zero_base=request.force_zero_base,
        round_to=request.round_to,
    )
    return ScaleResponse(
        scale=scale,
        dynamic_scaling_recommended=should_apply_dynamic_scaling(request.values),
        tick_labels=build_tick_labels(scale, request.chart_type),
    )
