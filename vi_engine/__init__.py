"""
FieldWatch VI - Engine Module
=============================
Vegetation-index visualization and synchronization engine.
"""

from .config import Settings, load_settings

from .engine import FieldViewEngine

from .errors import (
    InvalidSelection,
    NoDataAvailable,
    StaleResponseDiscarded,
    TransportFailure,
    VIEngineError,
)

from .folium_map import FoliumMapHandle

from .gateway import RemoteDataGateway

from .models import (
    AnalysisMode,
    AnalysisRequest,
    Field,
    TileDescriptor,
    TimeSeriesPoint,
    VISnapshot,
)

from .vegetation_indices import (
    VEGETATION_INDICES,
    get_available_indices,
    health_status,
    score_percentage,
)

__all__ = [
    'Settings',
    'load_settings',
    'FieldViewEngine',
    'InvalidSelection',
    'NoDataAvailable',
    'StaleResponseDiscarded',
    'TransportFailure',
    'VIEngineError',
    'FoliumMapHandle',
    'RemoteDataGateway',
    'AnalysisMode',
    'AnalysisRequest',
    'Field',
    'TileDescriptor',
    'TimeSeriesPoint',
    'VISnapshot',
    'VEGETATION_INDICES',
    'get_available_indices',
    'health_status',
    'score_percentage',
]
