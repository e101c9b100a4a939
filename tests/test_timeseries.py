import asyncio
from datetime import date

import pytest

from tests.fakes import ScriptedGateway
from vi_engine.errors import TransportFailure
from vi_engine.events import NOTICE, TIMESERIES_CHANGED, EventBus
from vi_engine.models import AnalysisMode, AnalysisRequest, TimeSeriesPoint
from vi_engine.timeseries import (
    TimeSeriesAnalyzer,
    bucket_label,
    bucket_samples,
    build_chart_spec,
    chart_image_url,
    describe_analysis,
    summarize,
    to_chartjs_config,
    to_plotly_figure,
)

TODAY = date(2024, 6, 15)


def _analyzer(gateway, bus=None, locale="en"):
    return TimeSeriesAnalyzer(gateway, bus, label_locale=locale, today=lambda: TODAY)


def test_monthly_range_dates():
    request = AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, year=2024,
                              start_month=1, end_month=3)
    assert request.date_range(TODAY) == (date(2024, 1, 1), date(2024, 3, 31))


def test_monthly_range_end_of_february_in_non_leap_year():
    request = AnalysisRequest("f1", "NDVI", "monthly_range", year=2023, start_month=2, end_month=2)
    assert request.mode is AnalysisMode.MONTHLY_RANGE
    assert request.date_range(TODAY) == (date(2023, 2, 1), date(2023, 2, 28))


def test_full_year_and_ten_year_dates():
    full = AnalysisRequest("f1", "NDVI", AnalysisMode.FULL_YEAR, year=2022)
    ten = AnalysisRequest("f1", "NDVI", AnalysisMode.TEN_YEAR_AVG)

    assert full.date_range(TODAY) == (date(2022, 1, 1), date(2022, 12, 31))
    assert ten.date_range(TODAY) == (date(2014, 6, 15), TODAY)
    assert ten.date_range(date(2024, 2, 29)) == (date(2014, 2, 28), date(2024, 2, 29))


def test_invalid_month_range_rejected():
    with pytest.raises(ValueError):
        AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, start_month=5, end_month=2)
    with pytest.raises(ValueError):
        AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, start_month=0, end_month=2)


def test_bucket_labels():
    assert bucket_label(date(2024, 1, 1), AnalysisMode.MONTHLY_RANGE) == "Jan 2024"
    assert bucket_label(date(2024, 1, 1), AnalysisMode.TEN_YEAR_AVG) == "2024"
    assert bucket_label(date(2024, 1, 1), AnalysisMode.FULL_YEAR, "th") == "ม.ค. 2567"


def test_monthly_buckets_are_means_in_date_order():
    samples = [
        {"measurement_date": "2024-03-20T03:10:00Z", "vi_value": 0.7},
        {"date": "2024-01-05", "value": 0.4},
        {"date": "2024-01-25", "value": 0.6},
        {"date": "2024-02-14", "vi_value": "0.55"},
        {"date": "2024-04-02", "value": 0.9},
        {"date": "not a date", "value": 0.1},
        {"date": "2024-02-01", "value": None},
    ]

    points = bucket_samples(samples, AnalysisMode.MONTHLY_RANGE, date(2024, 1, 1), date(2024, 3, 31))

    assert [p.bucket_label for p in points] == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert [p.value for p in points] == pytest.approx([0.5, 0.55, 0.7])
    assert [p.bucket_date for p in points] == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]


def test_offset_timestamps_bucket_on_their_own_calendar_date():
    samples = [
        {"date": "2024-01-01T00:00:00+07:00", "value": 0.4},
        {"date": "2024-02-01T00:00:00+07:00", "value": 0.5},
        {"date": "2024-03-01T06:30:00+07:00", "value": 0.6},
    ]

    points = bucket_samples(samples, AnalysisMode.MONTHLY_RANGE, date(2024, 1, 1), date(2024, 3, 31))

    assert [p.bucket_label for p in points] == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert [p.value for p in points] == pytest.approx([0.4, 0.5, 0.6])


def test_full_year_points_stay_within_the_year():
    samples = [{"date": f"{year}-{month:02d}-10", "value": 0.5}
               for year in (2023, 2024, 2025) for month in (1, 6, 12)]

    points = bucket_samples(samples, AnalysisMode.FULL_YEAR, date(2024, 1, 1), date(2024, 12, 31))

    assert [p.bucket_date for p in points] == [date(2024, 1, 1), date(2024, 6, 1), date(2024, 12, 1)]


def test_ten_year_average_has_one_point_per_year():
    samples = [
        {"date": "2015-03-01", "value": 0.2},
        {"date": "2015-09-01", "value": 0.4},
        {"date": "2020-05-05", "value": 0.6},
        {"date": "2013-05-05", "value": 0.9},
    ]

    points = bucket_samples(samples, AnalysisMode.TEN_YEAR_AVG, date(2014, 6, 15), TODAY)

    assert [p.bucket_label for p in points] == ["2015", "2020"]
    assert [p.value for p in points] == pytest.approx([0.3, 0.6])


def test_summary_trend_direction():
    rising = [TimeSeriesPoint(date(2024, m, 1), str(m), 0.2 + 0.1 * m) for m in (1, 2, 3, 4)]
    flat = [TimeSeriesPoint(date(2024, m, 1), str(m), 0.5) for m in (1, 2, 3)]

    summary = summarize(rising)
    assert summary.trend == "increasing"
    assert summary.slope == pytest.approx(0.1)
    assert summary.min == pytest.approx(0.3)
    assert summarize(flat).trend == "stable"
    assert summarize([]) is None


def test_chart_spec_and_renderers():
    points = [TimeSeriesPoint(date(2024, m, 1), f"M{m}", 0.1 * m) for m in (1, 2, 3)]
    spec = build_chart_spec({"NDVI": points}, "Monthly mean NDVI", AnalysisMode.FULL_YEAR)

    assert spec.labels == ("M1", "M2", "M3")
    assert spec.x_title == "Month"
    assert spec.trend == pytest.approx((0.1, 0.2, 0.3))

    config = to_chartjs_config(spec)
    assert config["type"] == "line"
    assert [d["label"] for d in config["data"]["datasets"]] == ["NDVI", "Trend"]

    assert chart_image_url(spec, "https://charts.example/chart").startswith(
        "https://charts.example/chart?c=%7B"
    )

    fig = to_plotly_figure(spec)
    assert len(fig.data) == 2
    assert fig.data[1].line.dash == "dash"


def test_chart_spec_aligns_multiple_series_by_date():
    ndvi = [TimeSeriesPoint(date(2024, 1, 1), "Jan 2024", 0.5),
            TimeSeriesPoint(date(2024, 2, 1), "Feb 2024", 0.6)]
    evi = [TimeSeriesPoint(date(2024, 2, 1), "Feb 2024", 0.3)]

    spec = build_chart_spec({"NDVI": ndvi, "EVI": evi}, "t", AnalysisMode.MONTHLY_RANGE)

    assert spec.datasets[1].values == (None, 0.3)
    assert spec.trend is None
    assert build_chart_spec({"NDVI": []}, "t", AnalysisMode.MONTHLY_RANGE) is None


def test_describe_analysis():
    request = AnalysisRequest("f1", "EVI", AnalysisMode.MONTHLY_RANGE, year=2024,
                              start_month=1, end_month=3)
    assert describe_analysis(request, TODAY) == "Monthly mean EVI, January - March 2024"


def test_analyzer_success_publishes_result():
    gateway = ScriptedGateway()
    gateway.samples = [{"date": "2024-01-10", "value": 0.4}, {"date": "2024-02-10", "value": 0.5},
                       {"date": "2024-03-10", "value": 0.6}]
    bus = EventBus()
    published = []
    bus.subscribe(TIMESERIES_CHANGED, published.append)
    analyzer = _analyzer(gateway, bus)
    request = AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, year=2024)

    result = asyncio.run(analyzer.analyze(request))

    assert result.ok
    assert [p.bucket_label for p in result.points] == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert result.chart is not None
    assert published == [result]
    assert analyzer.points == result.points


def test_analyzer_empty_result_is_no_data():
    gateway = ScriptedGateway()
    bus = EventBus()
    notices = []
    bus.subscribe(NOTICE, notices.append)

    result = asyncio.run(_analyzer(gateway, bus).analyze(
        AnalysisRequest("f1", "NDVI", AnalysisMode.FULL_YEAR, year=2024)
    ))

    assert result.status == "no_data"
    assert result.points == []
    assert notices[0].level == "info"


def test_analyzer_failure_is_reported():
    gateway = ScriptedGateway()
    gateway.failures["timeseries"] = TransportFailure("Backend returned HTTP 502", status_code=502)

    result = asyncio.run(_analyzer(gateway).analyze(
        AnalysisRequest("f1", "NDVI", AnalysisMode.TEN_YEAR_AVG)
    ))

    assert result.status == "failed"
    assert "HTTP 502" in result.message


def test_analyzer_discards_superseded_request():
    gateway = ScriptedGateway()
    gateway.samples = [{"date": "2024-01-10", "value": 0.4}]
    analyzer = _analyzer(gateway)

    async def scenario():
        release = gateway.hold("timeseries", "full_year")
        first = asyncio.create_task(analyzer.analyze(
            AnalysisRequest("f1", "NDVI", AnalysisMode.FULL_YEAR, year=2024)
        ))
        await asyncio.sleep(0)
        second = await analyzer.analyze(
            AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, year=2024)
        )
        release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first is None
    assert analyzer.result is second
    assert second.request.mode is AnalysisMode.MONTHLY_RANGE


def test_thai_labels():
    gateway = ScriptedGateway()
    gateway.samples = [{"date": "2024-01-10", "value": 0.4}]

    result = asyncio.run(_analyzer(gateway, locale="th").analyze(
        AnalysisRequest("f1", "NDVI", AnalysisMode.MONTHLY_RANGE, year=2024)
    ))

    assert result.points[0].bucket_label == "ม.ค. 2567"
