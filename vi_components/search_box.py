"""
FieldWatch VI - Place Search Component
======================================
Looks up a place by name and recenters the map on the chosen result.
"""

import streamlit as st

from vi_engine import FieldViewEngine

from .session import run


class PlaceSearchComponent:
    """Sidebar place search."""

    def __init__(self, engine: FieldViewEngine, session_prefix: str = "search_"):
        self.engine = engine
        self.prefix = session_prefix

    def render(self) -> None:
        st.markdown("**🔍 Find a place**")
        query = st.text_input(
            "Place name:",
            placeholder="e.g. Chiang Mai",
            key=f"{self.prefix}query",
            label_visibility="collapsed",
        )
        if not query.strip():
            return

        results = run(self.engine.search_places(query)) or []
        if not results:
            st.caption("No places found.")
            return

        choice = st.selectbox(
            "Results:",
            range(len(results)),
            format_func=lambda i: results[i].display_name,
            key=f"{self.prefix}choice",
        )
        if st.button("📍 Go", key=f"{self.prefix}go"):
            place = results[choice]
            if self.engine.recenter_on(place):
                st.success(f"Centered on {place.display_name}")
