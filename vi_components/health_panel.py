"""
FieldWatch VI - Health Panel Component
======================================
Field health view: index selector, snapshot list, map with raster and image
overlays, legend and pointer probe.
"""

import streamlit as st
from streamlit_folium import st_folium

from vi_engine import FieldViewEngine
from vi_engine.folium_map import FoliumMapHandle
from vi_engine.map_overlay import BASE_LAYERS
from vi_engine.vegetation_indices import (
    VEGETATION_INDICES,
    get_available_indices,
    get_index_color,
    health_status,
    score_percentage,
)

from .legend import legend_html, probe_html
from .session import run, show_notices


class HealthPanelComponent:
    """Component for the field health map."""

    def __init__(self, engine: FieldViewEngine, session_prefix: str = "health_"):
        self.engine = engine
        self.prefix = session_prefix

    def render(self) -> None:
        """Render the full panel for the engine's active field."""
        field = self.engine.field
        if field is None:
            st.info("Select a field to see its vegetation health.")
            return

        st.subheader(f"🌱 {field.name or field.id}")
        self._render_index_selector()

        col_map, col_side = st.columns([3, 1])
        with col_side:
            self._render_snapshot_list()
            self._render_health_card()
        with col_map:
            self._render_map()

        show_notices(self.engine)

    def _render_index_selector(self) -> None:
        indices = get_available_indices()
        current = self.engine.index_type
        selected = st.selectbox(
            "Vegetation index:",
            indices,
            index=indices.index(current) if current in indices else 0,
            format_func=lambda code: f"{code} - {VEGETATION_INDICES[code]['name']}",
            key=f"{self.prefix}index",
        )
        if selected != current:
            run(self.engine.set_index_type(selected))

    def _render_snapshot_list(self) -> None:
        st.markdown("**📅 Snapshots**")
        snapshots = self.engine.snapshots.snapshots
        selected = self.engine.selected_snapshot

        if not snapshots:
            st.caption("No analyses yet for this index.")
        for snapshot in snapshots:
            is_selected = selected is not None and snapshot.id == selected.id
            label = f"{snapshot.snapshot_date.isoformat()}  ·  {snapshot.mean_value:.3f}"
            if st.button(
                f"{'▶ ' if is_selected else ''}{label}",
                key=f"{self.prefix}snap_{snapshot.id}",
                use_container_width=True,
                type="primary" if is_selected else "secondary",
            ):
                run(self.engine.select_snapshot(snapshot.id))
                st.rerun()

        if st.button("🔄 Analyze recent imagery", key=f"{self.prefix}analyze", use_container_width=True):
            with st.spinner("Running historical analysis..."):
                run(self.engine.run_historical_analysis())
            st.rerun()

    def _render_health_card(self) -> None:
        snapshot = self.engine.selected_snapshot
        if snapshot is None:
            return
        index_type = self.engine.index_type
        status = health_status(snapshot.mean_value, index_type)
        score = score_percentage(snapshot.mean_value, index_type)

        st.metric(f"Mean {index_type}", f"{snapshot.mean_value:.3f}")
        st.progress(score / 100.0, text=f"{status.status} ({score:.0f}%) - {status.description}")
        if snapshot.min_value is not None and snapshot.max_value is not None:
            st.caption(f"Range {snapshot.min_value:.3f} to {snapshot.max_value:.3f}")
        if snapshot.status_message:
            st.caption(snapshot.status_message)

    def _render_map(self) -> None:
        handle = self.engine.overlay.map
        if not isinstance(handle, FoliumMapHandle):
            st.warning("Map view is not available.")
            return

        names = list(BASE_LAYERS)
        current = self.engine.base_layer
        choice = st.radio(
            "Base map:",
            names,
            index=names.index(current) if current in names else 0,
            horizontal=True,
            key=f"{self.prefix}base_map",
        )
        if choice != current:
            self.engine.set_base_layer(choice)

        output = st_folium(
            handle.to_folium(),
            height=520,
            use_container_width=True,
            returned_objects=["last_clicked"],
            key=f"{self.prefix}map",
        )

        clicked = (output or {}).get("last_clicked")
        if clicked:
            handle.dispatch("mousemove", clicked["lat"], clicked["lng"])
        reading = self.engine.probe

        descriptor = self.engine.state.tile_descriptor
        if descriptor is not None and not descriptor.available:
            st.info(f"No clear imagery for this window ({descriptor.reason or 'unavailable'}).")

        html = legend_html(f"{self.engine.index_type} legend", self.engine.legend)
        if html:
            st.markdown(html, unsafe_allow_html=True)
        readout = probe_html(reading)
        if readout:
            st.markdown(readout, unsafe_allow_html=True)
        elif clicked:
            st.caption(
                f"Click inside the overlay to read an approximate "
                f"<span style='color:{get_index_color(self.engine.index_type)}'>"
                f"{self.engine.index_type}</span> value.",
                unsafe_allow_html=True,
            )
