"""
FieldWatch VI - App Components
==============================
Streamlit UI components driving the field view engine.
"""

from .health_panel import HealthPanelComponent
from .legend import legend_html, probe_html
from .search_box import PlaceSearchComponent
from .session import mount_engine, open_field_once, run, show_notices, unmount_engine
from .trend_panel import TrendPanelComponent

__all__ = [
    'HealthPanelComponent',
    'PlaceSearchComponent',
    'TrendPanelComponent',
    'legend_html',
    'probe_html',
    'mount_engine',
    'open_field_once',
    'run',
    'show_notices',
    'unmount_engine',
]
