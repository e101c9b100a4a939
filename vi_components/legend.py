"""
FieldWatch VI - Legend Rendering
================================
HTML for the backend-driven discrete legend and the probe readout.
"""

from html import escape
from typing import Optional, Sequence

from vi_engine.models import LegendEntry, ProbeReading
from vi_engine.vegetation_indices import get_index_color


def legend_html(title: str, entries: Sequence[LegendEntry]) -> str:
    """Legend box; empty string when there is nothing to show."""
    if not entries:
        return ""
    rows = "".join(
        '<div style="display:flex;align-items:center;margin-bottom:4px">'
        f'<span style="display:inline-block;width:16px;height:16px;border-radius:3px;'
        f'background:{escape(entry.color)};margin-right:8px;border:1px solid #d1d5db"></span>'
        f'<span>{escape(entry.label)}</span></div>'
        for entry in entries
    )
    return (
        '<div style="background:rgba(255,255,255,0.97);border-radius:12px;'
        'box-shadow:0 6px 16px rgba(0,0,0,0.18);padding:12px 14px;min-width:160px;'
        'font-size:12px;color:#1f2937;border:1px solid #e5e7eb">'
        f'<div style="font-weight:700;font-size:13px;margin-bottom:8px">{escape(title)}</div>'
        f'{rows}</div>'
    )


def probe_html(reading: Optional[ProbeReading]) -> str:
    """Probe readout, labelled as an approximation; empty when hidden."""
    if reading is None:
        return ""
    color = get_index_color(reading.index_type)
    return (
        f'<div style="font-weight:600;color:{color};font-size:14px">'
        f'{escape(reading.index_type)}: ≈{reading.value:.3f}</div>'
        '<div style="font-size:11px;color:#6b7280">approximate value</div>'
    )
