"""
Layer construction for the MVC map.

Builds the two renderings of the same MVC dataset, a group of circle markers
and a density heatmap, plus the auxiliary map-object popup markers. Every
build starts by tearing down what the previous build attached, so stale
markers never stay on the map.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

import folium
from folium.plugins import HeatMap

from .map_config import MapViewConfig
from .map_view import Evented, FoliumMapView
from .models import DataPoint, MapObjectMarkerData, normalize_color_dictionary
from .symbology import MarkerVisual, resolve_style, fallback_style

logger = logging.getLogger(__name__)

LOCATION_PRECISION = 6


def _location_key(latitude: float, longitude: float) -> Tuple[float, float]:
    return (round(float(latitude), LOCATION_PRECISION), round(float(longitude), LOCATION_PRECISION))


class PointMarker:
    """
    Circle marker for one data point.

    ``was_visible`` mirrors whether the circle is currently a child of its
    parent group. The parent is resolved on first use and cached; markers are
    rebuilt with their dataset and never move to another group.
    """

    def __init__(self, point: DataPoint, visual: MarkerVisual):
        self.point = point
        self.visual = visual
        self.circle = folium.CircleMarker(
            location=[point.latitude, point.longitude],
            **visual.to_path_options()
        )
        self.was_visible = False
        self._parent = None

    @property
    def folium_layer(self) -> folium.CircleMarker:
        return self.circle

    @property
    def location(self) -> Tuple[float, float]:
        return self.point.location

    @property
    def parent(self):
        if self._parent is None:
            self._parent = self.circle._parent
        return self._parent

    @property
    def is_attached(self) -> bool:
        parent = self.parent
        return parent is not None and self.circle.get_name() in parent._children

    def attach(self) -> None:
        parent = self.parent
        if parent is None:
            raise RuntimeError("Point marker has no parent group to attach to")
        parent.add_child(self.circle)

    def detach(self) -> None:
        parent = self.parent
        if parent is not None:
            parent._children.pop(self.circle.get_name(), None)


class PointMarkerSet(Evented):
    """Feature group holding the point markers of one dataset version."""

    def __init__(self, name: str = 'MVC points'):
        super().__init__()
        self.group = folium.FeatureGroup(name=name)
        self.markers: List[PointMarker] = []
        self._by_location: Dict[Tuple[float, float], List[PointMarker]] = {}

    @property
    def folium_layer(self) -> folium.FeatureGroup:
        return self.group

    def __len__(self) -> int:
        return len(self.markers)

    def __iter__(self) -> Iterator[PointMarker]:
        return iter(self.markers)

    def add_marker(self, marker: PointMarker) -> None:
        self.group.add_child(marker.circle)
        marker.was_visible = True
        self.markers.append(marker)
        self._by_location.setdefault(_location_key(*marker.location), []).append(marker)

    def clear_layers(self) -> None:
        for marker in self.markers:
            marker.detach()
            marker.was_visible = False
        self.markers = []
        self._by_location = {}

    def attached_markers(self) -> List[PointMarker]:
        return [marker for marker in self.markers if marker.is_attached]

    def find_at(self, latitude: float, longitude: float) -> Optional[PointMarker]:
        """Topmost marker drawn at the given coordinate, if any."""
        candidates = self._by_location.get(_location_key(latitude, longitude))
        return candidates[-1] if candidates else None

    def handle_click(self, latitude: float, longitude: float) -> Optional[PointMarker]:
        """Resolve a browser click to a marker and fire ``click`` on this layer."""
        marker = self.find_at(latitude, longitude)
        self.fire('click', layer=marker, latlng=(latitude, longitude))
        return marker


class HeatmapLayer:
    """Density rendering of the dataset; every point carries the same weight."""

    def __init__(self, points: Sequence[DataPoint], config: MapViewConfig,
                 name: str = 'MVC density'):
        self.data = [
            [point.latitude, point.longitude, config.heatmap_point_weight]
            for point in points
        ]
        self.heatmap = HeatMap(
            self.data,
            name=name,
            min_opacity=config.heatmap_min_opacity,
            radius=config.heatmap_radius,
            blur=config.heatmap_blur,
            gradient=config.heatmap_gradient_map,
        )

    @property
    def folium_layer(self) -> HeatMap:
        return self.heatmap

    def __len__(self) -> int:
        return len(self.data)


class DualLayerBuilder:
    """Builds and tears down the point layer, heatmap layer and POI markers of a map view."""

    def __init__(self, map_view: FoliumMapView, color_dictionary: Any = None,
                 config: Optional[MapViewConfig] = None):
        self.map_view = map_view
        self.config = config or MapViewConfig()
        self.color_dictionary = normalize_color_dictionary(color_dictionary)
        self.point_layer: Optional[PointMarkerSet] = None
        self.heatmap_layer: Optional[HeatmapLayer] = None
        self.poi_markers: List[folium.Marker] = []

    def set_color_dictionary(self, color_dictionary: Any) -> None:
        self.color_dictionary = normalize_color_dictionary(color_dictionary)

    def clear(self) -> None:
        """Detach and discard every layer this builder attached."""
        if self.point_layer is not None:
            self.point_layer.clear_layers()
            self.map_view.remove_layer(self.point_layer)
        if self.heatmap_layer is not None:
            self.map_view.remove_layer(self.heatmap_layer)
        self.point_layer = None
        self.heatmap_layer = None
        self.clear_poi_markers()

    def clear_poi_markers(self) -> None:
        for marker in self.poi_markers:
            self.map_view.remove_layer(marker)
        self.poi_markers = []

    def build_layers(self, points: Sequence[DataPoint]) -> Tuple[Optional[PointMarkerSet], Optional[HeatmapLayer]]:
        """
        Rebuild both MVC layers from scratch.

        Args:
            points: Data points of the current dataset

        Returns:
            Tuple of (point layer, heatmap layer); both None for an empty dataset
        """
        self.clear()

        if not points:
            logger.info("Empty MVC dataset, no layers built")
            return None, None

        self.point_layer = self.create_point_layer(points)
        self.heatmap_layer = HeatmapLayer(points, self.config)

        logger.info(f"Built point and heatmap layers for {len(points)} MVCs")
        return self.point_layer, self.heatmap_layer

    def create_point_layer(self, points: Sequence[DataPoint]) -> PointMarkerSet:
        point_layer = PointMarkerSet()
        fallbacks = 0

        for point in points:
            try:
                visual = resolve_style(point, self.color_dictionary, self.config)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Failed to resolve style for MVC at {point.location}: {e}")
                visual = fallback_style(self.config)
                fallbacks += 1
            point_layer.add_marker(PointMarker(point, visual))

        if fallbacks:
            logger.warning(f"{fallbacks} MVC markers drawn with the fallback style")
        return point_layer

    def build_poi_markers(self, markers_data: Optional[Sequence[MapObjectMarkerData]]) -> List[folium.Marker]:
        """Replace the auxiliary map-object markers with one popup marker per record."""
        self.clear_poi_markers()

        for data in markers_data or []:
            marker = folium.Marker(
                location=[data.latitude, data.longitude],
                popup=folium.Popup(data.name, show=True),
            )
            self.map_view.add_layer(marker)
            self.poi_markers.append(marker)

        if self.poi_markers:
            logger.info(f"Added {len(self.poi_markers)} map object markers")
        return self.poi_markers
