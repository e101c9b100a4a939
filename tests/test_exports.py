import json
from datetime import date

from vi_engine.exports import (
    BOM,
    build_export_bundle,
    export_basename,
    parse_csv_text,
    to_csv_text,
    to_json_record,
)
from vi_engine.models import AnalysisMode, AnalysisRequest, TimeSeriesPoint
from vi_engine.timeseries import TimeSeriesResult, build_chart_spec, summarize


def _points():
    return [
        TimeSeriesPoint(date(2024, 1, 1), "ม.ค. 2567", 0.41234),
        TimeSeriesPoint(date(2024, 2, 1), "ก.พ. 2567", 0.5),
        TimeSeriesPoint(date(2024, 3, 1), "มี.ค. 2567", 0.63337),
    ]


def _result(points=None, status="ok"):
    points = _points() if points is None else points
    request = AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, year=2024,
                              start_month=1, end_month=3)
    return TimeSeriesResult(
        status=status, request=request,
        start_date=date(2024, 1, 1), end_date=date(2024, 3, 31),
        points=points,
        summary=summarize(points),
        chart=build_chart_spec({"NDVI": points}, "title", request.mode) if points else None,
        description="title",
    )


def test_export_basename_is_deterministic():
    assert export_basename("North plot", "NDVI", AnalysisMode.MONTHLY_RANGE, 2024, 1, 3) == \
        "North_plot_NDVI_monthly_range_20241-3"
    assert export_basename("", "EVI", "full_year", 2023, 1, 12) == "field_EVI_full_year_20231-12"
    assert export_basename("a/b:c", "NDVI", AnalysisMode.TEN_YEAR_AVG, 2024, 1, 3) == \
        "a_b_c_NDVI_ten_year_avg_20241-3"


def test_csv_has_bom_and_quoted_cells():
    text = to_csv_text(_points(), "แปลงนา", "NDVI")

    assert text.startswith(BOM)
    lines = text[len(BOM):].splitlines()
    assert lines[0] == '"field_name","index_type","period","month","value"'
    assert lines[1] == '"แปลงนา","NDVI","ม.ค. 2567","1","0.41234"'
    assert lines[2].endswith('"0.5"')


def test_csv_round_trip_keeps_labels_and_values():
    text = to_csv_text(_points(), "แปลงนา", "NDVI")

    rows = parse_csv_text(text)

    assert [label for label, _ in rows] == ["ม.ค. 2567", "ก.พ. 2567", "มี.ค. 2567"]
    assert [value for _, value in rows] == [0.41234, 0.5, 0.63337]


def test_csv_round_trip_keeps_unrounded_bucket_means():
    points = [
        TimeSeriesPoint(date(2024, 1, 1), "Jan 2024", 1 / 6),
        TimeSeriesPoint(date(2024, 2, 1), "Feb 2024", 0.1 + 0.2),
    ]

    rows = parse_csv_text(to_csv_text(points, "North plot", "NDVI"))

    assert rows == [("Jan 2024", 1 / 6), ("Feb 2024", 0.1 + 0.2)]


def test_yearly_csv_leaves_month_empty():
    points = [TimeSeriesPoint(date(2020, 1, 1), "2020", 0.5)]
    text = to_csv_text(points, None, "NDVI", AnalysisMode.TEN_YEAR_AVG)
    assert text.splitlines()[1] == '"unknown","NDVI","2020","","0.5"'


def test_json_record():
    record = to_json_record(_result(), "North plot")

    assert record["vi_type"] == "NDVI"
    assert record["analysis_type"] == "monthly_range"
    assert record["start_date"] == "2024-01-01"
    assert record["timeseries"][0] == {"date": "ม.ค. 2567", "bucket_start": "2024-01-01", "value": 0.41234}
    assert record["summary"]["count"] == 3


def test_bundle_for_successful_result():
    bundle = build_export_bundle(_result(), "North plot", "https://charts.example/chart")

    assert bundle.json_filename == "North_plot_NDVI_monthly_range_20241-3.json"
    assert bundle.csv_filename.endswith(".csv")
    assert bundle.chart_filename.endswith(".png")
    assert bundle.chart_url.startswith("https://charts.example/chart?c=")
    assert bundle.csv_bytes.startswith(BOM.encode("utf-8"))
    assert json.loads(bundle.json_text)["field_name"] == "North plot"


def test_no_bundle_without_series():
    assert build_export_bundle(_result(points=[], status="no_data"), "x") is None
