"""Dynamic y-axis scaling for complaint statistics charts.

Complaint rates often sit in a narrow band (say 8-14%), which looks flat on
a fixed 0-100 axis. These helpers pick axis bounds and a tick step suited to
the observed values and the kind of quantity being plotted.
"""

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from functools import partial
from typing import Any

from fos_dashboard.schemas.charts import ChartType, ScalingResult

logger = logging.getLogger(__name__)

DEFAULT_SCALE = ScalingResult(min=0, max=100)

# Ranges narrower than this are widened so the chart keeps some height
MIN_VIABLE_RANGE = 5
FALLBACK_RANGE = 10


def _coerce_number(value: Any) -> float | None:
    """Return value as a finite float, or None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _valid_values(values: Iterable[Any] | None) -> list[float]:
    if not values:
        return []
    coerced = (_coerce_number(v) for v in values)
    return [v for v in coerced if v is not None]


def _percentage_ceiling(low: float, high: float, spread: float) -> float:
    if high <= 15:
        return 20
    if high <= 30:
        return 35
    if high <= 60:
        return high + 15
    if low >= 70 and spread <= 20:
        return 100
    return min(high + (10 if spread > 30 else 20), 100)


def _volume_ceiling(high: float) -> float:
    if high <= 100:
        return high + 20
    if high <= 1000:
        return high + high * 0.2
    if high <= 10000:
        return high + high * 0.15
    return high + high * 0.1


def _rate_ceiling(high: float) -> float:
    if high <= 25:
        return 30
    if high <= 50:
        return high + 15
    return min(high + 20, 100)


def _step_size(spread: float) -> float:
    if spread <= 20:
        return 5
    if spread <= 50:
        return 10
    if spread <= 100:
        return 20
    return math.ceil(spread / 5)


def calculate_dynamic_scale(
    values: Iterable[Any] | None,
    chart_type: ChartType = ChartType.PERCENTAGE,
    *,
    min_padding: float = 0,
    max_padding: float = 10,
    force_zero_base: bool = True,
    round_to: float = 5,
) -> ScalingResult:
    """Compute y-axis min, max and step size for the given values.

    Args:
        values: Observations; None, NaN and non-numeric entries are ignored.
        chart_type: Semantic type of the values, selects the ceiling rule.
        min_padding: Subtracted from the observed minimum when not zero-based.
        max_padding: Added to the observed maximum before the type rule applies.
        force_zero_base: Start the axis at 0 regardless of the data.
        round_to: Round the axis maximum up to a multiple of this (0 disables).

    Returns:
        The computed scale, or DEFAULT_SCALE (0-100) when no value is usable.
    """
    chart_type = ChartType(chart_type)
    valid = _valid_values(values)
    if not valid:
        return DEFAULT_SCALE

    low = min(valid)
    high = max(valid)
    spread = high - low
    logger.debug(
        "Dynamic scaling input: chart_type=%s min=%s max=%s range=%s count=%d",
        chart_type.value,
        low,
        high,
        spread,
        len(valid),
    )

    scaled_min = 0.0 if force_zero_base else max(0.0, low - min_padding)
    scaled_max = high + max_padding

    if chart_type == ChartType.PERCENTAGE:
        scaled_max = _percentage_ceiling(low, high, spread)
    elif chart_type == ChartType.VOLUME:
        scaled_max = _volume_ceiling(high)
    elif chart_type == ChartType.RATE:
        scaled_max = _rate_ceiling(high)

    if round_to > 0:
        scaled_max = math.ceil(scaled_max / round_to) * round_to

    if scaled_max - scaled_min < MIN_VIABLE_RANGE:
        scaled_max = scaled_min + FALLBACK_RANGE

    # The step is derived from the range before the percentage cap
    step_size = _step_size(scaled_max - scaled_min)
    if chart_type == ChartType.PERCENTAGE:
        scaled_max = min(scaled_max, 100)

    result = ScalingResult(min=scaled_min, max=scaled_max, step_size=step_size)
    logger.debug("Dynamic scaling result: %s", result)
    return result


def _plain_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def format_tick_label(value: Any, chart_type: ChartType = ChartType.PERCENTAGE) -> str:
    """Render an axis tick: percentages and rates get a % suffix, volumes get separators."""
    chart_type = ChartType(chart_type)
    number = _coerce_number(value)
    if number is None:
        return str(value)
    if chart_type in (ChartType.PERCENTAGE, ChartType.RATE):
        return f"{_plain_number(number)}%"
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def tick_values(scale: ScalingResult) -> list[float]:
    """List tick positions from scale.min to scale.max, both ends when there is no step."""
    if not scale.step_size or scale.step_size <= 0:
        return [scale.min, scale.max]

    ticks = []
    index = 0
    while scale.min + index * scale.step_size <= scale.max:
        ticks.append(scale.min + index * scale.step_size)
        index += 1
    return ticks


def build_tick_labels(
    scale: ScalingResult, chart_type: ChartType = ChartType.PERCENTAGE
) -> list[str]:
    """List the formatted tick labels from scale.min to scale.max."""
    return [format_tick_label(tick, chart_type) for tick in tick_values(scale)]


def apply_dynamic_scaling(
    chart_options: dict[str, Any],
    y_axis_data: Iterable[Any],
    chart_type: ChartType = ChartType.PERCENTAGE,
) -> dict[str, Any]:
    """Apply dynamic scaling to a Chart.js-style options dict in place.

    Existing y-axis and tick settings are kept unless overridden. The tick
    callback is a Python callable producing the same labels as
    format_tick_label.
    """
    chart_type = ChartType(chart_type)
    scaling = calculate_dynamic_scale(y_axis_data, chart_type)

    scales = chart_options.setdefault("scales", {})
    y_axis = scales.get("y") or {}

    scales["y"] = {
        **y_axis,
        "beginAtZero": scaling.min == 0,
        "min": scaling.min,
        "max": scaling.max,
        "ticks": {
            **(y_axis.get("ticks") or {}),
            "stepSize": scaling.step_size,
            "callback": partial(format_tick_label, chart_type=chart_type),
        },
    }
    logger.debug("Applied dynamic scaling for %s chart: %s", chart_type.value, scaling)
    return chart_options


def extract_chart_values(
    data: Iterable[Any] | None,
    value_key: str | Callable[[Any], Any],
) -> list[float]:
    """Pull numeric values out of records by field name or extractor function.

    Records may be mappings or objects exposing the field as an attribute.
    Entries that do not yield a number are dropped.
    """
    if not data:
        return []

    if isinstance(value_key, str):
        def extractor(item: Any) -> Any:
            if isinstance(item, Mapping):
                return item.get(value_key)
            return getattr(item, value_key, None)
    else:
        extractor = value_key

    return _valid_values(extractor(item) for item in data)


def should_apply_dynamic_scaling(values: Iterable[Any] | None) -> bool:
    """Tell whether the values would look misleadingly flat on a fixed 0-100 axis."""
    valid = _valid_values(values)
    if not valid:
        return False

    high = max(valid)
    low = min(valid)
    return high < 80 or (high - low) < 30 or high < 50
