"""
Map controller for the MVC map.

Owns the map view and the layers drawn on it. Rebuilds the layers when the
host hands over a new dataset, picks the point or heatmap rendering after
every draw and zoom change, keeps point markers culled to the viewport, and
relays map readiness and point selection back to the host.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple
import logging

from .culling import CullingResult, ViewportCuller
from .layers import DualLayerBuilder, HeatmapLayer, PointMarker, PointMarkerSet
from .map_config import MapViewConfig
from .map_view import FoliumMapView, MapEvent
from .models import ActiveLayer, DataPoint, map_objects_from_records, points_from_records
from .view_selector import select_layer

logger = logging.getLogger(__name__)


def _coord_tuple(coord: Any) -> Tuple[float, float]:
    """Accept ``{"latitude", "longitude"}`` mappings as well as ``(lat, lng)`` pairs."""
    if isinstance(coord, Mapping):
        return float(coord['latitude']), float(coord['longitude'])
    latitude, longitude = coord
    return float(latitude), float(longitude)


@dataclass(frozen=True)
class MapProps:
    """Inputs supplied by the host application."""
    default_coord: Any
    region_level: Optional[int] = None
    mvcs: Sequence[Any] = ()
    map_objects_markers_data: Optional[Sequence[Any]] = None
    color_dictionary: Any = None
    on_map_ready: Optional[Callable[[FoliumMapView], None]] = None
    on_mvc_selected: Optional[Callable[[DataPoint], None]] = None

    def evolve(self, **changes) -> 'MapProps':
        return replace(self, **changes)


class MapController:
    """Coordinates layer building, view selection and culling for one map view."""

    def __init__(self, props: MapProps, config: Optional[MapViewConfig] = None):
        self.props = props
        self.config = config or MapViewConfig()
        self.culler = ViewportCuller(self.config)
        self.map_view: Optional[FoliumMapView] = None
        self.builder: Optional[DualLayerBuilder] = None
        self.points: List[DataPoint] = []
        self.active_layer = ActiveLayer.NONE
        self.is_points_layer_shown = False

    # Lifecycle

    @property
    def is_mounted(self) -> bool:
        return self.map_view is not None

    def mount(self, parent_height: Optional[int] = None,
              width: Optional[int] = None) -> FoliumMapView:
        """
        Create the map view, notify the host and draw the initial dataset.

        Args:
            parent_height: Height of the hosting container in pixels
            width: Width of the map in pixels, if known

        Returns:
            The initialized map view
        """
        if self.is_mounted:
            raise RuntimeError("Map controller is already mounted")

        height = self.adjust_map_height(parent_height)
        self.init_map(height, width)
        self.draw_layers(self.props.mvcs, self.props.map_objects_markers_data)
        return self.map_view

    def adjust_map_height(self, parent_height: Optional[int]) -> int:
        if parent_height is None or parent_height <= 0:
            return self.config.default_height
        return int(parent_height)

    def init_map(self, height: int, width: Optional[int] = None) -> FoliumMapView:
        center = _coord_tuple(self.props.default_coord)
        zoom = self.config.zoom_for_region_level(self.props.region_level)

        map_view = FoliumMapView(center, zoom, height=height, width=width)
        map_view.add_tile_layer(self.config.tiles_url, self.config.tiles_attribution)

        map_view.on('zoomend', self.handle_zoom_end)
        map_view.on('resize moveend zoomend', self.update_marker_visibility)

        self.map_view = map_view
        self.builder = DualLayerBuilder(map_view, self.props.color_dictionary, self.config)
        logger.info(f"Initialized map at {center}, zoom {zoom}, height {height}px")

        if self.props.on_map_ready:
            self.props.on_map_ready(map_view)
        return map_view

    def receive_props(self, next_props: MapProps) -> bool:
        """
        Accept new host inputs.

        Redraws everything when the MVC dataset changed and only the map
        object markers when just those changed. Datasets are compared by
        reference.

        Returns:
            True if anything was redrawn
        """
        previous = self.props
        self.props = next_props

        if not self.is_mounted:
            return False

        mvcs_changed = next_props.mvcs is not previous.mvcs
        objects_changed = next_props.map_objects_markers_data is not previous.map_objects_markers_data

        if mvcs_changed:
            self.draw_layers(next_props.mvcs, next_props.map_objects_markers_data)
            return True
        if objects_changed:
            self.builder.build_poi_markers(map_objects_from_records(next_props.map_objects_markers_data))
            return True
        return False

    def _require_mounted(self) -> None:
        if not self.is_mounted:
            raise RuntimeError("Map controller must be mounted before drawing")

    # Drawing

    def draw_layers(self, mvcs: Sequence[Any], map_objects_markers_data: Optional[Sequence[Any]] = None) -> None:
        """Tear down and rebuild the MVC layers and map object markers."""
        self._require_mounted()

        self.points = points_from_records(mvcs or [])
        self.builder.set_color_dictionary(self.props.color_dictionary)
        point_layer, _ = self.builder.build_layers(self.points)

        self.active_layer = ActiveLayer.NONE
        self.is_points_layer_shown = False

        if point_layer is not None:
            point_layer.on('click', self.handle_layer_click)
            self.set_layer_based_on_zoom()

        self.builder.build_poi_markers(map_objects_from_records(map_objects_markers_data))

    def set_layer_based_on_zoom(self) -> ActiveLayer:
        """Attach the rendering chosen for the current zoom and detach the other."""
        point_layer = self.point_layer
        heatmap_layer = self.heatmap_layer
        if point_layer is None or heatmap_layer is None:
            return self.active_layer

        previous = self.active_layer
        choice = select_layer(self.map_view.get_zoom(), len(self.points), self.config)

        if choice is ActiveLayer.HEATMAP:
            self.map_view.remove_layer(point_layer)
            if not self.map_view.has_layer(heatmap_layer):
                self.map_view.add_layer(heatmap_layer)
            self.is_points_layer_shown = False
            self.active_layer = ActiveLayer.HEATMAP
        else:
            self.map_view.remove_layer(heatmap_layer)
            if not self.map_view.has_layer(point_layer):
                self.map_view.add_layer(point_layer)
            self.is_points_layer_shown = True
            self.active_layer = ActiveLayer.POINTS
            self.update_marker_visibility()

        if choice is not previous:
            logger.info(f"Showing {choice.value} layer for {len(self.points)} MVCs at zoom {self.map_view.get_zoom()}")
        return self.active_layer

    # Event handlers

    def handle_zoom_end(self, event: Optional[MapEvent] = None) -> None:
        self.set_layer_based_on_zoom()

    def update_marker_visibility(self, event: Optional[MapEvent] = None) -> Optional[CullingResult]:
        """Cull point markers to the padded viewport; no-op unless the point layer is shown."""
        if not self.is_points_layer_shown or self.point_layer is None:
            return None
        return self.culler.update_visibility(self.point_layer.markers, self.map_view.get_bounds())

    def handle_layer_click(self, event: MapEvent) -> None:
        layer = getattr(event, 'layer', None)
        point = getattr(layer, 'point', None)
        if point is not None and self.props.on_mvc_selected:
            self.props.on_mvc_selected(point)

    def handle_map_click(self, latitude: float, longitude: float) -> Optional[PointMarker]:
        """Route a click reported by the browser to the point layer, if it is shown."""
        if not self.is_points_layer_shown or self.point_layer is None:
            return None
        return self.point_layer.handle_click(latitude, longitude)

    # State

    @property
    def point_layer(self) -> Optional[PointMarkerSet]:
        return self.builder.point_layer if self.builder else None

    @property
    def heatmap_layer(self) -> Optional[HeatmapLayer]:
        return self.builder.heatmap_layer if self.builder else None

    @property
    def markers(self) -> List[PointMarker]:
        return self.point_layer.markers if self.point_layer else []

    @property
    def poi_markers(self) -> list:
        return self.builder.poi_markers if self.builder else []

    def attached_markers(self) -> List[PointMarker]:
        """Point markers currently on the map: in the group, with the group on the map."""
        if self.point_layer is None or not self.map_view.has_layer(self.point_layer):
            return []
        return self.point_layer.attached_markers()
