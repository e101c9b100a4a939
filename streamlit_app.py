# =============================================================================
# FIELDWATCH VI - FIELD HEALTH & TREND VIEWER
# =============================================================================
# Features:
# - Vegetation-index snapshots per field, latest auto-selected
# - Raster tiles and snapshot image overlay with legend and probe
# - Monthly / yearly / 10-year trend analysis with JSON and CSV export
# =============================================================================

import logging

import streamlit as st

from vi_components import (
    HealthPanelComponent,
    PlaceSearchComponent,
    TrendPanelComponent,
    mount_engine,
    open_field_once,
    unmount_engine,
)
from vi_engine import load_settings

# =============================================================================
# PAGE CONFIGURATION
# =============================================================================
st.set_page_config(
    page_title="FieldWatch - Vegetation Health",
    page_icon="🌾",
    layout="wide"
)


def read_settings():
    """Settings from the environment, overridden by a ``[fieldwatch]`` secrets table."""
    overrides = {}
    try:
        if 'fieldwatch' in st.secrets:
            overrides = dict(st.secrets['fieldwatch'])
    except Exception as e:
        # No secrets file configured
        logging.getLogger(__name__).debug("Secrets unavailable: %s", e)
    return load_settings(overrides)


settings = read_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

engine = mount_engine("field_view", settings)

# =============================================================================
# SIDEBAR
# =============================================================================
st.sidebar.title("🌾 FieldWatch")
st.sidebar.markdown("Vegetation index monitoring")
st.sidebar.markdown("---")

field_id = st.sidebar.text_input(
    "Field ID:",
    value=st.query_params.get("field", ""),
    key="field_id"
)

if not field_id and engine.field is not None:
    unmount_engine()
    engine = mount_engine("field_view", settings)

with st.spinner("Loading field..."):
    attempted = open_field_once(engine, field_id)
if attempted:
    st.query_params["field"] = field_id

page = st.sidebar.radio("Go to:", ["🌱 Field Health", "📈 Trend Analysis"])

st.sidebar.markdown("---")
with st.sidebar:
    PlaceSearchComponent(engine).render()

# =============================================================================
# PAGES
# =============================================================================
if page == "🌱 Field Health":
    st.title("🌱 Field Health")
    HealthPanelComponent(engine).render()
else:
    st.title("📈 Trend Analysis")
    TrendPanelComponent(engine).render()

# =============================================================================
# FOOTER
# =============================================================================
st.sidebar.markdown("---")
st.sidebar.markdown("**FieldWatch VI v1.0**")
st.sidebar.caption(f"Backend: {settings.api_base_url}")
