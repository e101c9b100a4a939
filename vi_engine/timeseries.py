"""
FieldWatch VI - Time Series Analyzer
====================================
Requests time-series samples for an analysis window, buckets them into an
ordered series, and derives summary statistics and a line-chart
specification for trend analysis using pandas, NumPy and Plotly.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from .errors import TransportFailure
from .events import NOTICE, TIMESERIES_CHANGED, EventBus
from .gateway import RemoteDataGateway
from .generation import GenerationCounter
from .models import AnalysisMode, AnalysisRequest, Notice, TimeSeriesPoint, parse_date
from .vegetation_indices import get_index_color

logger = logging.getLogger(__name__)


# =============================================================================
# Labels
# =============================================================================

MONTH_LABELS = {
    "en": ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
    "th": ("ม.ค.", "ก.พ.", "มี.ค.", "เม.ย.", "พ.ค.", "มิ.ย.",
           "ก.ค.", "ส.ค.", "ก.ย.", "ต.ค.", "พ.ย.", "ธ.ค."),
}
MONTH_NAMES = ("January", "February", "March", "April", "May", "June", "July",
               "August", "September", "October", "November", "December")

# Thai labels use the Buddhist-era year
BUDDHIST_ERA_OFFSET = 543

TREND_THRESHOLD = 0.01


def _year_label(year: int, locale: str) -> str:
    return str(year + BUDDHIST_ERA_OFFSET if locale == "th" else year)


def bucket_label(bucket_date: date, mode: AnalysisMode, locale: str = "en") -> str:
    """Display label of a bucket: the year for yearly buckets, else month + year."""
    if mode is AnalysisMode.TEN_YEAR_AVG:
        return _year_label(bucket_date.year, locale)
    months = MONTH_LABELS.get(locale, MONTH_LABELS["en"])
    return f"{months[bucket_date.month - 1]} {_year_label(bucket_date.year, locale)}"


def describe_analysis(request: AnalysisRequest, today: Optional[date] = None) -> str:
    """Chart title for a request."""
    year = request.year or (today or date.today()).year
    if request.mode is AnalysisMode.MONTHLY_RANGE:
        return (f"Monthly mean {request.index_type}, "
                f"{MONTH_NAMES[request.start_month - 1]} - {MONTH_NAMES[request.end_month - 1]} {year}")
    if request.mode is AnalysisMode.FULL_YEAR:
        return f"Monthly mean {request.index_type}, full year {year} (January-December)"
    return f"Yearly mean {request.index_type}, last 10 years (one value per year)"


# =============================================================================
# Bucketing
# =============================================================================

def _sample_value(sample: Dict[str, Any]) -> Any:
    value = sample.get("vi_value")
    return sample.get("value") if value is None else value


def bucket_samples(samples: Sequence[Dict[str, Any]], mode: AnalysisMode,
                   start: date, end: date, locale: str = "en") -> List[TimeSeriesPoint]:
    """
    Bucket raw samples into an ordered series.

    Monthly buckets are used for ``monthly_range`` and ``full_year``; yearly
    buckets for ``ten_year_avg``. Each bucket holds the mean of its samples.

    Args:
        samples: Raw backend samples (``measurement_date``/``date`` and
            ``vi_value``/``value`` keys)
        mode: Analysis mode
        start: Window start (inclusive)
        end: Window end (inclusive)
        locale: Label locale, ``en`` or ``th``

    Returns:
        Points sorted ascending by bucket date
    """
    if not samples:
        return []

    df = pd.DataFrame({
        "date": [parse_date(s.get("measurement_date") or s.get("date")) for s in samples],
        "value": [_sample_value(s) for s in samples],
    })
    # Buckets follow the calendar date the backend reported, offset ignored
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    df = df.dropna(subset=["date", "value"])

    yearly = mode is AnalysisMode.TEN_YEAR_AVG
    if yearly:
        df = df[(df["date"].dt.year >= start.year) & (df["date"].dt.year <= end.year)]
    else:
        in_window = (df["date"] >= pd.Timestamp(start)) & \
                    (df["date"] < pd.Timestamp(end) + pd.Timedelta(days=1))
        df = df[in_window]
    if df.empty:
        return []

    buckets = df["date"].dt.to_period("Y" if yearly else "M")
    means = df.groupby(buckets)["value"].mean().sort_index()

    points = []
    for period, value in means.items():
        bucket_date = period.start_time.date()
        points.append(TimeSeriesPoint(
            bucket_date=bucket_date,
            bucket_label=bucket_label(bucket_date, mode, locale),
            value=float(value),
        ))
    return points


# =============================================================================
# Statistics
# =============================================================================

@dataclass(frozen=True)
class SeriesSummary:
    count: int
    mean: float
    min: float
    max: float
    std: float = 0.0
    slope: float = 0.0
    trend: str = "stable"


def summarize(points: Sequence[TimeSeriesPoint]) -> Optional[SeriesSummary]:
    """Summary statistics and trend direction of a series."""
    if not points:
        return None
    values = np.array([p.value for p in points], dtype=float)

    slope = 0.0
    trend = "stable"
    if len(values) >= 3:
        slope, _ = np.polyfit(np.arange(len(values)), values, 1)
        if slope > TREND_THRESHOLD:
            trend = "increasing"
        elif slope < -TREND_THRESHOLD:
            trend = "decreasing"

    return SeriesSummary(
        count=len(values),
        mean=float(values.mean()),
        min=float(values.min()),
        max=float(values.max()),
        std=float(values.std(ddof=1)) if len(values) > 1 else 0.0,
        slope=float(slope),
        trend=trend,
    )


# =============================================================================
# Chart specification
# =============================================================================

@dataclass(frozen=True)
class ChartDataset:
    label: str
    values: Tuple[Optional[float], ...]
    color: str
    fill: bool = True
    tension: float = 0.4


@dataclass(frozen=True)
class ChartSpec:
    """Renderer-neutral line chart."""

    title: str
    labels: Tuple[str, ...]
    datasets: Tuple[ChartDataset, ...]
    x_title: str
    y_title: str
    trend: Optional[Tuple[float, ...]] = None


def build_chart_spec(series: Dict[str, Sequence[TimeSeriesPoint]], title: str,
                     mode: AnalysisMode, with_trend: bool = True) -> Optional[ChartSpec]:
    """
    Build a line chart with one dataset per index.

    Args:
        series: Index code to its ordered points
        title: Chart title
        mode: Analysis mode (x-axis title)
        with_trend: Add a least-squares trend line for a single series

    Returns:
        ChartSpec, or None when every series is empty
    """
    by_date = {}
    for points in series.values():
        for point in points:
            by_date.setdefault(point.bucket_date, point.bucket_label)
    if not by_date:
        return None

    dates = sorted(by_date)
    datasets = []
    for index_type, points in series.items():
        lookup = {p.bucket_date: p.value for p in points}
        datasets.append(ChartDataset(
            label=index_type,
            values=tuple(lookup.get(d) for d in dates),
            color=get_index_color(index_type),
        ))

    trend = None
    if with_trend and len(datasets) == 1 and len(dates) >= 3:
        y = np.array(datasets[0].values, dtype=float)
        x = np.arange(len(y))
        coeffs = np.polyfit(x, y, 1)
        trend = tuple(float(v) for v in coeffs[0] * x + coeffs[1])

    y_title = " / ".join(series) + " value"
    return ChartSpec(
        title=title,
        labels=tuple(by_date[d] for d in dates),
        datasets=tuple(datasets),
        x_title="Year" if mode is AnalysisMode.TEN_YEAR_AVG else "Month",
        y_title=y_title,
        trend=trend,
    )


def to_plotly_figure(spec: ChartSpec) -> go.Figure:
    """Render a chart specification as a Plotly figure."""
    fig = go.Figure()
    for dataset in spec.datasets:
        fig.add_trace(go.Scatter(
            x=list(spec.labels),
            y=list(dataset.values),
            mode='lines+markers',
            name=dataset.label,
            line=dict(color=dataset.color, shape='spline', smoothing=dataset.tension * 2.5),
            fill='tozeroy' if dataset.fill else None,
        ))

    if spec.trend is not None:
        fig.add_trace(go.Scatter(
            x=list(spec.labels),
            y=list(spec.trend),
            mode='lines',
            name='Trend',
            line=dict(dash='dash', color='red')
        ))

    fig.update_layout(
        title=spec.title,
        xaxis_title=spec.x_title,
        yaxis_title=spec.y_title,
        hovermode='x unified',
        template='plotly_white'
    )
    return fig


def to_chartjs_config(spec: ChartSpec) -> Dict[str, Any]:
    """Chart.js configuration equivalent to the spec."""
    datasets = [
        {
            "label": d.label,
            "data": list(d.values),
            "borderColor": d.color,
            "fill": d.fill,
            "tension": d.tension,
        }
        for d in spec.datasets
    ]
    if spec.trend is not None:
        datasets.append({
            "label": "Trend",
            "data": list(spec.trend),
            "borderColor": "red",
            "borderDash": [6, 6],
            "fill": False,
        })
    return {
        "type": "line",
        "data": {"labels": list(spec.labels), "datasets": datasets},
        "options": {
            "plugins": {
                "legend": {"display": True},
                "title": {"display": True, "text": spec.title},
            },
            "scales": {
                "y": {"beginAtZero": False, "title": {"display": True, "text": spec.y_title}},
                "x": {"title": {"display": True, "text": spec.x_title}},
            },
        },
    }


def chart_image_url(spec: ChartSpec, service_url: str = "https://quickchart.io/chart") -> str:
    """URL of a rendered PNG of the chart on a Chart.js image service."""
    encoded = quote(json.dumps(to_chartjs_config(spec), ensure_ascii=False, separators=(",", ":")))
    return f"{service_url}?c={encoded}"


# =============================================================================
# Analyzer
# =============================================================================

@dataclass
class TimeSeriesResult:
    """Outcome of one analysis: ``ok``, ``no_data`` or ``failed``."""

    status: str
    request: AnalysisRequest
    start_date: date
    end_date: date
    points: List[TimeSeriesPoint] = field(default_factory=list)
    summary: Optional[SeriesSummary] = None
    chart: Optional[ChartSpec] = None
    description: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class TimeSeriesAnalyzer:
    """Runs analyses; only the latest request may replace the current result."""

    def __init__(self, gateway: RemoteDataGateway, bus: Optional[EventBus] = None,
                 label_locale: str = "en", today: Callable[[], date] = date.today):
        self.gateway = gateway
        self.bus = bus or EventBus()
        self.label_locale = label_locale
        self._today = today
        self._generations = GenerationCounter("timeseries")
        self.result: Optional[TimeSeriesResult] = None

    @property
    def points(self) -> List[TimeSeriesPoint]:
        return self.result.points if self.result else []

    @property
    def chart(self) -> Optional[ChartSpec]:
        return self.result.chart if self.result else None

    async def analyze(self, request: AnalysisRequest) -> Optional[TimeSeriesResult]:
        """
        Fetch and bucket samples for a request.

        Args:
            request: Analysis parameters

        Returns:
            TimeSeriesResult, or None if a later request superseded this one
        """
        generation = self._generations.issue(request.field_id, request.index_type, request.mode)
        today = self._today()
        start, end = request.date_range(today)
        description = describe_analysis(request, today)
        logger.info("Analyzing %s %s for field %s, %s..%s",
                    request.index_type, request.mode.value, request.field_id, start, end)

        try:
            samples = await self.gateway.get_timeseries(
                request.field_id, request.index_type, start, end, request.mode.value
            )
        except TransportFailure as exc:
            if not self._generations.is_current(generation):
                return None
            logger.error("Time-series request failed: %s", exc.describe())
            result = TimeSeriesResult(
                status="failed", request=request, start_date=start, end_date=end,
                description=description,
                message=f"Could not retrieve time-series data. {exc.describe()}",
            )
            return await self._publish(result, Notice("error", result.message))

        if not self._generations.is_current(generation):
            logger.debug("Discarding stale time-series response %s", generation)
            return None

        points = bucket_samples(samples, request.mode, start, end, self.label_locale)
        if not points:
            result = TimeSeriesResult(
                status="no_data", request=request, start_date=start, end_date=end,
                description=description,
                message="No data in the selected period. Try a different range.",
            )
            return await self._publish(result, Notice("info", result.message))

        result = TimeSeriesResult(
            status="ok", request=request, start_date=start, end_date=end,
            points=points,
            summary=summarize(points),
            chart=build_chart_spec({request.index_type: points}, description, request.mode),
            description=description,
        )
        logger.info("Processed %d time-series points", len(points))
        return await self._publish(result)

    async def _publish(self, result: TimeSeriesResult,
                       notice: Optional[Notice] = None) -> TimeSeriesResult:
        self.result = result
        await self.bus.publish(TIMESERIES_CHANGED, result)
        if notice is not None:
            await self.bus.publish(NOTICE, notice)
        return result

    def clear(self) -> None:
        self._generations.invalidate()
        self.result = None
