"""
FieldWatch VI - Trend Panel Component
=====================================
Time-series analysis of the active field and index using Plotly, with chart,
JSON and CSV exports.
"""

from datetime import date

import streamlit as st

from vi_engine import AnalysisMode, FieldViewEngine
from vi_engine.timeseries import MONTH_NAMES, TimeSeriesResult, to_plotly_figure

from .session import run, show_notices

MODE_LABELS = {
    AnalysisMode.MONTHLY_RANGE: "Monthly range",
    AnalysisMode.FULL_YEAR: "Full year",
    AnalysisMode.TEN_YEAR_AVG: "10-year average",
}


class TrendPanelComponent:
    """Component for time-series trend analysis."""

    def __init__(self, engine: FieldViewEngine, session_prefix: str = "trend_"):
        self.engine = engine
        self.prefix = session_prefix

    def render(self) -> None:
        """Render the request form and, once run, the latest result."""
        st.subheader("📈 Trend Analysis")

        if self.engine.field is None:
            st.info("Select a field to analyze its trend.")
            return

        mode = st.radio(
            "Analysis type:",
            list(MODE_LABELS),
            format_func=MODE_LABELS.get,
            horizontal=True,
            key=f"{self.prefix}mode",
        )

        this_year = date.today().year
        year, start_month, end_month = None, 1, 3
        if mode is not AnalysisMode.TEN_YEAR_AVG:
            year = st.selectbox(
                "Year:", list(range(this_year, this_year - 10, -1)), key=f"{self.prefix}year"
            )
        if mode is AnalysisMode.MONTHLY_RANGE:
            col1, col2 = st.columns(2)
            with col1:
                start_month = st.selectbox(
                    "From:", range(1, 13), index=0,
                    format_func=lambda m: MONTH_NAMES[m - 1], key=f"{self.prefix}start"
                )
            with col2:
                end_month = st.selectbox(
                    "To:", range(1, 13), index=2,
                    format_func=lambda m: MONTH_NAMES[m - 1], key=f"{self.prefix}end"
                )
            if start_month > end_month:
                st.warning("The start month must not be after the end month.")
                return

        if st.button("📊 Analyze", type="primary", key=f"{self.prefix}run"):
            request = self.engine.build_analysis_request(mode, year, start_month, end_month)
            with st.spinner("Fetching time series..."):
                run(self.engine.analyze(request))

        result = self.engine.analyzer.result
        show_notices(self.engine)
        if result is not None and result.ok:
            self._render_result(result)

    def _render_result(self, result: TimeSeriesResult) -> None:
        st.caption(result.description)
        st.plotly_chart(to_plotly_figure(result.chart), use_container_width=True)
        self._show_statistics(result)
        self._render_exports()

    def _show_statistics(self, result: TimeSeriesResult) -> None:
        """Display summary statistics."""
        summary = result.summary
        if summary is None:
            return

        col1, col2, col3, col4 = st.columns(4)
        with col1:
            st.metric("Mean", f"{summary.mean:.4f}")
        with col2:
            st.metric("Min", f"{summary.min:.4f}")
        with col3:
            st.metric("Max", f"{summary.max:.4f}")
        with col4:
            st.metric("Std Dev", f"{summary.std:.4f}")

        if summary.trend == "increasing":
            st.success(f"📈 **Increasing trend** (+{summary.slope:.4f} per period)")
        elif summary.trend == "decreasing":
            st.warning(f"📉 **Decreasing trend** ({summary.slope:.4f} per period)")
        elif summary.trend == "stable":
            st.info("➡️ **Stable** - no significant trend")

    def _render_exports(self) -> None:
        bundle = self.engine.export_bundle()
        if bundle is None:
            return

        col1, col2, col3 = st.columns(3)
        with col1:
            st.download_button(
                "📄 JSON", bundle.json_text, file_name=bundle.json_filename,
                mime="application/json", key=f"{self.prefix}dl_json",
            )
        with col2:
            st.download_button(
                "📊 CSV", bundle.csv_bytes, file_name=bundle.csv_filename,
                mime="text/csv", key=f"{self.prefix}dl_csv",
            )
        with col3:
            if bundle.chart_url:
                st.link_button("🖼️ Chart image", bundle.chart_url)
