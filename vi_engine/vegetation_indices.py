"""
FieldWatch VI - Vegetation Indices Module
=========================================
Catalogue of the vegetation indices served by the backend, with their valid
value ranges and the health classification shown next to a snapshot.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .errors import InvalidSelection


# =============================================================================
# Index Definitions
# =============================================================================

VEGETATION_INDICES = {
    "NDVI": {
        "name": "Normalized Difference Vegetation Index",
        "label": "Vegetation density",
        "range": (0.0, 1.0),
        "color": "#4CAF50"
    },
    "EVI": {
        "name": "Enhanced Vegetation Index",
        "label": "Growth vigour",
        "range": (0.0, 1.0),
        "color": "#8BC34A"
    },
    "SAVI": {
        "name": "Soil Adjusted Vegetation Index",
        "label": "Soil-adjusted vegetation",
        "range": (0.0, 1.0),
        "color": "#FF9800"
    },
    "GNDVI": {
        "name": "Green Normalized Difference Vegetation Index",
        "label": "Leaf chlorophyll",
        "range": (0.0, 1.0),
        "color": "#CDDC39"
    },
    "NDRE": {
        "name": "Normalized Difference Red Edge Index",
        "label": "Red-edge greenness",
        "range": (0.0, 0.6),
        "color": "#9CCC65"
    },
    "LSWI": {
        "name": "Land Surface Water Index",
        "label": "Moisture / water",
        "range": (-0.3, 0.5),
        "color": "#2196F3"
    }
}

DEFAULT_INDEX = "NDVI"
DEFAULT_RANGE = (0.0, 1.0)
DEFAULT_COLOR = "#4CAF50"


@dataclass(frozen=True)
class HealthStatus:
    """Qualitative reading of a snapshot mean value."""

    status: str
    color: str
    description: str


# =============================================================================
# Lookup Functions
# =============================================================================

def get_available_indices() -> List[str]:
    """Index codes in display order."""
    return list(VEGETATION_INDICES)


def validate_index(index_type: str) -> str:
    """Return the index code, raising InvalidSelection if it is unknown."""
    if index_type not in VEGETATION_INDICES:
        raise InvalidSelection(f"unknown vegetation index: {index_type!r}")
    return index_type


def get_index_range(index_type: str) -> Tuple[float, float]:
    """Valid numeric range for an index."""
    info = VEGETATION_INDICES.get(index_type)
    return info["range"] if info else DEFAULT_RANGE


def get_index_color(index_type: str) -> str:
    info = VEGETATION_INDICES.get(index_type)
    return info["color"] if info else DEFAULT_COLOR


def clamp_to_range(value: float, index_type: str) -> float:
    low, high = get_index_range(index_type)
    return max(low, min(high, value))


# =============================================================================
# Health Classification
# =============================================================================

def score_percentage(value: float, index_type: str) -> float:
    """
    Position of a value inside the index's valid range, 0-100.

    Args:
        value: Mean index value
        index_type: Index code

    Returns:
        Percentage clamped to [0, 100]
    """
    low, high = get_index_range(index_type)
    percentage = (value - low) / (high - low) * 100
    return max(0.0, min(100.0, percentage))


def health_status(value: float, index_type: str) -> HealthStatus:
    """Classify a mean index value into a health status."""
    if index_type not in VEGETATION_INDICES:
        return HealthStatus("Unknown", "#6b7280", "Cannot be assessed")

    low, high = get_index_range(index_type)
    percentage = (value - low) / (high - low) * 100

    if index_type == "LSWI":
        if percentage < 30:
            return HealthStatus("Dry", "#ef4444", "Low soil moisture")
        if percentage < 70:
            return HealthStatus("Adequate", "#f59e0b", "Moderate moisture")
        return HealthStatus("Moist", "#10b981", "High moisture")

    if percentage < 30:
        return HealthStatus("Low", "#ef4444", "Needs attention")
    if percentage < 60:
        return HealthStatus("Fair", "#f59e0b", "Acceptable condition")
    if percentage < 80:
        return HealthStatus("Good", "#10b981", "Good condition")
    return HealthStatus("Excellent", "#059669", "Very good condition")


def describe_indices() -> Dict[str, str]:
    """Index code to full name, for selectors."""
    return {code: info["name"] for code, info in VEGETATION_INDICES.items()}
