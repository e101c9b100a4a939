"""
FieldWatch VI - Export Utilities
================================
JSON and CSV records of an analysed series, plus the chart image reference.
All exports are pure transformations of the current result.
"""

import csv
import io
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .models import AnalysisMode, TimeSeriesPoint
from .timeseries import TimeSeriesResult, chart_image_url

# UTF-8 byte-order mark
BOM = "\ufeff"

CSV_COLUMNS = ["field_name", "index_type", "period", "month", "value"]

_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\s]+')


def export_basename(field_name: Optional[str], index_type: str, mode: AnalysisMode,
                    year: int, start_month: int, end_month: int) -> str:
    """
    Deterministic base filename for every artifact of one analysis.

    Args:
        field_name: Field display name (``field`` when empty)
        index_type: Index code
        mode: Analysis mode
        year: Selected year
        start_month: First month of the range
        end_month: Last month of the range

    Returns:
        ``{field}_{index}_{mode}_{year}{start}-{end}``
    """
    name = _UNSAFE_FILENAME.sub("_", (field_name or "").strip()) or "field"
    return f"{name}_{index_type}_{AnalysisMode(mode).value}_{year}{start_month}-{end_month}"


def _basename_for(result: TimeSeriesResult, field_name: Optional[str]) -> str:
    request = result.request
    year = request.year or result.end_date.year
    return export_basename(field_name, request.index_type, request.mode,
                           year, request.start_month, request.end_month)


# =============================================================================
# JSON
# =============================================================================

def to_json_record(result: TimeSeriesResult, field_name: Optional[str]) -> Dict[str, Any]:
    """Structured record of an analysis and its series."""
    request = result.request
    record = {
        "field_name": field_name,
        "vi_type": request.index_type,
        "analysis_type": request.mode.value,
        "year": request.year or result.end_date.year,
        "start_month": request.start_month,
        "end_month": request.end_month,
        "start_date": result.start_date.isoformat(),
        "end_date": result.end_date.isoformat(),
        "timeseries": [
            {"date": p.bucket_label, "bucket_start": p.bucket_date.isoformat(), "value": p.value}
            for p in result.points
        ],
        "description": result.description,
    }
    if result.summary is not None:
        record["summary"] = {
            "count": result.summary.count,
            "mean": result.summary.mean,
            "min": result.summary.min,
            "max": result.summary.max,
        }
    return record


def to_json_text(result: TimeSeriesResult, field_name: Optional[str]) -> str:
    return json.dumps(to_json_record(result, field_name), indent=2, ensure_ascii=False)


# =============================================================================
# CSV
# =============================================================================

def to_csv_text(points: Sequence[TimeSeriesPoint], field_name: Optional[str],
                index_type: str, mode: AnalysisMode = AnalysisMode.MONTHLY_RANGE) -> str:
    """
    Tabular record of a series, prefixed with a UTF-8 byte-order mark.

    Args:
        points: Ordered series
        field_name: Field display name
        index_type: Index code
        mode: Analysis mode; yearly series leave the month column empty

    Returns:
        CSV text with every cell quoted and values at full precision
    """
    yearly = AnalysisMode(mode) is AnalysisMode.TEN_YEAR_AVG
    df = pd.DataFrame(
        [
            {
                "field_name": field_name or "unknown",
                "index_type": index_type,
                "period": p.bucket_label,
                "month": "" if yearly else str(p.bucket_date.month),
                "value": repr(float(p.value)),
            }
            for p in points
        ],
        columns=CSV_COLUMNS,
    )
    body = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return BOM + body


def to_csv_bytes(points: Sequence[TimeSeriesPoint], field_name: Optional[str],
                 index_type: str, mode: AnalysisMode = AnalysisMode.MONTHLY_RANGE) -> bytes:
    return to_csv_text(points, field_name, index_type, mode).encode("utf-8")


def parse_csv_text(text: str) -> List[Tuple[str, float]]:
    """Read ``(period label, value)`` pairs back from an exported CSV."""
    df = pd.read_csv(
        io.StringIO(text[len(BOM):] if text.startswith(BOM) else text),
        dtype={"period": str, "month": str, "value": str},
        keep_default_na=False,
    )
    return [(str(row.period), float(row.value)) for row in df.itertuples(index=False)]


# =============================================================================
# Bundle
# =============================================================================

@dataclass(frozen=True)
class ExportBundle:
    """Filenames and payloads offered for download."""

    basename: str
    chart_filename: str
    chart_url: Optional[str]
    json_filename: str
    json_text: str
    csv_filename: str
    csv_bytes: bytes


def build_export_bundle(result: TimeSeriesResult, field_name: Optional[str],
                        chart_service_url: str = "https://quickchart.io/chart") -> Optional[ExportBundle]:
    """All artifacts of a successful analysis, or None when there is no series."""
    if not result.ok or not result.points:
        return None
    basename = _basename_for(result, field_name)
    chart_url = chart_image_url(result.chart, chart_service_url) if result.chart else None
    return ExportBundle(
        basename=basename,
        chart_filename=f"{basename}.png",
        chart_url=chart_url,
        json_filename=f"{basename}.json",
        json_text=to_json_text(result, field_name),
        csv_filename=f"{basename}.csv",
        csv_bytes=to_csv_bytes(result.points, field_name, result.request.index_type, result.request.mode),
    )
