"""
Chart series sanitization and axis scaling.

Turns analysis output into render-ready series: cleans values, computes
"nice" tick-aligned axes and pre-formats tick labels. Rendering itself is
left to the client.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from fieldplots.domain.models import SACPoint

# z for a symmetric 95% interval under the normal approximation.
# Chart consumers rely on y ± 1.96·sd; keep it in sync with any reimplementation.
CONFIDENCE_Z = 1.96

AxisType = Literal["category", "linear", "time", "log"]
MAX_TICKS = 100


class ChartDataPoint(BaseModel):
    x: Union[float, datetime, str]
    y: Optional[float] = None  # None leaves a gap in line charts
    meta: Dict[str, Any] = Field(default_factory=dict)


class ChartDataSeries(BaseModel):
    id: str
    name: str
    data: List[ChartDataPoint]
    x_axis_type: AxisType = "linear"
    y_axis_type: Literal["linear", "log"] = "linear"
    y_axis_id: Literal["left", "right"] = "left"
    type: Literal["bar", "line", "scatter", "area"] = "line"
    color: Optional[str] = None


class ChartConfig(BaseModel):
    show_confidence_interval: bool = True
    force_zero_baseline: Optional[bool] = None  # None: zero baseline only for bar series
    symmetrical_domain: bool = False


class ScaleResult(BaseModel):
    min: float
    max: float
    ticks: List[Union[float, str]]
    labels: List[str]
    type: AxisType
    categories: Optional[List[str]] = None


class MultiAxisScales(BaseModel):
    x: ScaleResult
    left: ScaleResult
    right: Optional[ScaleResult] = None


# ============================================================
# SAC series
# ============================================================

def confidence_interval(y: float, sd: float) -> tuple[float, float]:
    """Symmetric 95% interval y ± 1.96·sd."""
    return (y - CONFIDENCE_Z * sd, y + CONFIDENCE_Z * sd)


def sac_to_series(
    points: Sequence[SACPoint],
    series_id: str = "sac",
    name: str = "Species accumulation",
    config: Optional[ChartConfig] = None,
) -> ChartDataSeries:
    """
    Species accumulation curve as a line series.

    Each point carries ``meta.sd``; the precomputed 95% bounds are added
    unless ``config.show_confidence_interval`` is off.
    """
    show_interval = (config or ChartConfig()).show_confidence_interval
    data = []
    for point in points:
        meta: Dict[str, Any] = {"sd": point.sd}
        if show_interval:
            meta["ci_lower"], meta["ci_upper"] = confidence_interval(point.richness, point.sd)
        data.append(ChartDataPoint(x=point.plots_sampled, y=point.richness, meta=meta))
    return ChartDataSeries(id=series_id, name=name, data=data, x_axis_type="linear", type="line")


# ============================================================
# Sanitization
# ============================================================

def _to_timestamp(value: Union[float, datetime, str]) -> Union[float, str]:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return _to_timestamp(parsed)
    return value


def _clean_y(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def sanitize_series(series: Sequence[ChartDataSeries]) -> list[ChartDataSeries]:
    """
    Normalize series values before scaling.

    - time axes: datetimes and ISO strings become epoch milliseconds
    - y values: NaN/inf become None
    - None points are kept for line series (gaps) and dropped otherwise
    """
    cleaned = []
    for s in series:
        data = []
        for point in s.data:
            x = _to_timestamp(point.x) if s.x_axis_type == "time" else point.x
            y = _clean_y(point.y)
            if y is None and s.type != "line":
                continue
            data.append(point.model_copy(update={"x": x, "y": y}))
        cleaned.append(s.model_copy(update={"data": data}))
    return cleaned


# ============================================================
# Scales
# ============================================================

def format_tick(value: Union[float, str], max_value: float, axis_type: AxisType = "linear") -> str:
    """
    Human-readable tick label.

    Args:
        value: Tick value
        max_value: Largest value on the axis (reserved for range-aware formats)
        axis_type: Axis type

    Returns:
        Formatted label
    """
    if axis_type == "category" or isinstance(value, str):
        return str(value)

    if axis_type == "time":
        try:
            date = datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return ""
        return f"{date:%b} {date.day}"

    num = float(value)
    magnitude = abs(num)
    if num == 0:
        return "0"
    if magnitude < 0.01:
        return f"{num:.1e}"
    if magnitude < 1:
        return f"{num:.2f}"
    if magnitude < 1000:
        return f"{num:.0f}" if num.is_integer() else f"{num:.1f}"
    if magnitude < 1_000_000:
        return f"{num / 1000:.1f}k"
    return f"{num / 1_000_000:.1f}M"


def nice_step(raw_step: float) -> float:
    """Round a raw tick step up to 1, 2, 5 or 10 times a power of ten."""
    magnitude = 10 ** math.floor(math.log10(raw_step))
    normalized = raw_step / magnitude
    if normalized <= 1:
        nice = 1
    elif normalized <= 2:
        nice = 2
    elif normalized <= 5:
        nice = 5
    else:
        nice = 10
    return nice * magnitude


def calculate_linear_scale(
    values: Sequence[float],
    axis_type: AxisType = "linear",
    force_zero: bool = False,
    symmetrical: bool = False,
    steps: int = 5,
) -> ScaleResult:
    """
    Tick-aligned numeric axis covering ``values``.

    Args:
        values: Data values on this axis
        axis_type: "linear" or "time"
        force_zero: Extend the domain to include 0 (bar charts)
        symmetrical: Make the domain symmetric around 0 (residual plots)
        steps: Target number of intervals

    Returns:
        ScaleResult with nice min/max and ticks
    """
    finite = [float(v) for v in values if v is not None and math.isfinite(v)]
    if not finite:
        ticks = [0.0, 5.0, 10.0]
        return ScaleResult(
            min=0.0, max=10.0, ticks=ticks,
            labels=[format_tick(t, 10.0, axis_type) for t in ticks],
            type=axis_type,
        )

    lo, hi = min(finite), max(finite)

    # Flat data
    if lo == hi:
        if lo == 0:
            hi = 1.0
        else:
            lo, hi = sorted((lo * 0.9, hi * 1.1))

    if force_zero:
        lo = min(lo, 0.0)
        hi = max(hi, 0.0)

    if symmetrical:
        bound = max(abs(lo), abs(hi))
        lo, hi = -bound, bound

    step = nice_step((hi - lo) / steps)
    nice_min = math.floor(lo / step) * step
    nice_max = math.ceil(hi / step) * step

    ticks = []
    current = nice_min
    while current <= nice_max + step / 1000 and len(ticks) < MAX_TICKS:
        ticks.append(round(current, 10))
        current += step

    return ScaleResult(
        min=nice_min,
        max=nice_max,
        ticks=ticks,
        labels=[format_tick(t, nice_max, axis_type) for t in ticks],
        type=axis_type,
    )


def calculate_category_scale(values: Sequence[Any]) -> ScaleResult:
    """Categorical axis with one tick per distinct value, in first-seen order."""
    unique = list(dict.fromkeys(str(v) for v in values))
    return ScaleResult(
        min=0,
        max=len(unique),
        ticks=list(unique),
        labels=list(unique),
        type="category",
        categories=unique,
    )


def calculate_multi_axis_scales(
    series: Sequence[ChartDataSeries],
    config: Optional[ChartConfig] = None,
) -> MultiAxisScales:
    """
    Shared X scale plus left/right Y scales for a set of series.

    Args:
        series: Sanitized series
        config: Chart configuration

    Returns:
        MultiAxisScales; ``right`` is None when no series uses the right axis
    """
    config = config or ChartConfig()
    x_type = series[0].x_axis_type if series else "category"

    if x_type == "category":
        x_scale = calculate_category_scale([p.x for s in series for p in s.data])
    else:
        xs = []
        for s in series:
            for p in s.data:
                try:
                    xs.append(float(p.x))
                except (TypeError, ValueError):
                    continue
        x_scale = calculate_linear_scale(xs, axis_type="time" if x_type == "time" else "linear")

    def y_scale(selected: list[ChartDataSeries]) -> ScaleResult:
        ys = [p.y for s in selected for p in s.data if p.y is not None]
        if config.force_zero_baseline is None:
            force_zero = any(s.type == "bar" for s in selected)
        else:
            force_zero = config.force_zero_baseline
        return calculate_linear_scale(ys, force_zero=force_zero, symmetrical=config.symmetrical_domain)

    left = [s for s in series if s.y_axis_id == "left"]
    right = [s for s in series if s.y_axis_id == "right"]

    return MultiAxisScales(
        x=x_scale,
        left=y_scale(left),
        right=y_scale(right) if right else None,
    )
