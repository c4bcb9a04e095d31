"""
MVC Map - interactive map of mapped value cases.

Renders point events either as circle markers or as a density heatmap,
depending on zoom level and dataset size, and culls markers that are far
outside the viewport.

Maps are rendered using Folium and embedded in Streamlit.
"""

from .controller import MapController, MapProps
from .culling import ViewportCuller, CullingResult
from .layers import DualLayerBuilder, PointMarker, PointMarkerSet, HeatmapLayer
from .map_config import MapViewConfig, MapConfigLoader, get_map_config
from .map_view import FoliumMapView
from .models import (
    ActiveLayer, DataPoint, Participant, MapObjectMarkerData, LatLngBounds, MvcDataError,
    points_from_records, points_from_dataframe, points_from_geodataframe
)
from .symbology import MarkerVisual, resolve_style
from .view_selector import select_layer

__all__ = [
    'MapController',
    'MapProps',
    'ViewportCuller',
    'CullingResult',
    'DualLayerBuilder',
    'PointMarker',
    'PointMarkerSet',
    'HeatmapLayer',
    'MapViewConfig',
    'MapConfigLoader',
    'get_map_config',
    'FoliumMapView',
    'ActiveLayer',
    'DataPoint',
    'Participant',
    'MapObjectMarkerData',
    'LatLngBounds',
    'MvcDataError',
    'points_from_records',
    'points_from_dataframe',
    'points_from_geodataframe',
    'MarkerVisual',
    'resolve_style',
    'select_layer'
]
