"""
Folium-backed map view.

Wraps a ``folium.Map`` with the small surface the MVC map needs from a map
widget: current zoom, center and pixel size, viewport bounds, attaching and
detaching layers, and named viewport events (``zoomend``, ``moveend``,
``resize``, ``click``) with explicit handler subscription.

Bounds are computed with the Web Mercator projection used by Leaflet tiles
until the browser reports the real viewport through streamlit-folium.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

import folium
from pyproj import Transformer

from .models import LatLngBounds

logger = logging.getLogger(__name__)

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798
EARTH_HALF_CIRCUMFERENCE = 20037508.342789244
DEFAULT_WIDTH = 1024

_TO_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
_FROM_MERCATOR = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


@dataclass
class MapEvent:
    """Event passed to handlers registered with ``Evented.on``."""
    type: str
    target: Any
    layer: Any = None
    latlng: Optional[Tuple[float, float]] = None


class Evented:
    """Named-event subscription in the style of Leaflet's ``on``/``off``/``fire``."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = defaultdict(list)

    def on(self, events: str, handler: Callable) -> 'Evented':
        """Register ``handler`` for one or more space-separated event names."""
        for event_type in events.split():
            self._handlers[event_type].append(handler)
        return self

    def off(self, events: str, handler: Optional[Callable] = None) -> 'Evented':
        """Remove ``handler`` (or every handler) from the given events."""
        for event_type in events.split():
            if handler is None:
                self._handlers.pop(event_type, None)
            elif handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)
        return self

    def fire(self, event_type: str, **data) -> 'Evented':
        event = MapEvent(type=event_type, target=self, **data)
        for handler in list(self._handlers.get(event_type, [])):
            handler(event)
        return self


def _as_element(layer: Any):
    """Accept either a folium element or a wrapper exposing ``folium_layer``."""
    return getattr(layer, 'folium_layer', layer)


def project(latitude: float, longitude: float, zoom: float) -> Tuple[float, float]:
    """Project a coordinate to global pixel space at ``zoom``."""
    latitude = max(-MAX_LATITUDE, min(MAX_LATITUDE, latitude))
    x, y = _TO_MERCATOR.transform(longitude, latitude)
    scale = TILE_SIZE * 2 ** zoom / (2 * EARTH_HALF_CIRCUMFERENCE)
    return (x + EARTH_HALF_CIRCUMFERENCE) * scale, (EARTH_HALF_CIRCUMFERENCE - y) * scale


def unproject(pixel_x: float, pixel_y: float, zoom: float) -> Tuple[float, float]:
    """Inverse of ``project``; longitudes are clamped to the world extent."""
    scale = TILE_SIZE * 2 ** zoom / (2 * EARTH_HALF_CIRCUMFERENCE)
    x = pixel_x / scale - EARTH_HALF_CIRCUMFERENCE
    y = EARTH_HALF_CIRCUMFERENCE - pixel_y / scale
    x = max(-EARTH_HALF_CIRCUMFERENCE, min(EARTH_HALF_CIRCUMFERENCE, x))
    y = max(-EARTH_HALF_CIRCUMFERENCE, min(EARTH_HALF_CIRCUMFERENCE, y))
    longitude, latitude = _FROM_MERCATOR.transform(x, y)
    return latitude, longitude


class FoliumMapView(Evented):
    """Stateful map view over a ``folium.Map``."""

    def __init__(self, center: Tuple[float, float], zoom: float,
                 height: int = 600, width: Optional[int] = None):
        super().__init__()
        self.center = (float(center[0]), float(center[1]))
        self.zoom = zoom
        self.height = height
        self.width = width or DEFAULT_WIDTH
        self._reported_bounds: Optional[LatLngBounds] = None

        self._map = folium.Map(
            location=list(self.center),
            zoom_start=zoom,
            tiles=None,
        )
        logger.debug(f"Created map view centered at {self.center}, zoom {zoom}")

    @property
    def folium_map(self) -> folium.Map:
        self._sync_folium_view()
        return self._map

    def _sync_folium_view(self) -> None:
        self._map.location = list(self.center)
        options = getattr(self._map, 'options', None)
        if isinstance(options, dict):
            options['zoom'] = self.zoom

    # Layers

    def add_layer(self, layer: Any) -> 'FoliumMapView':
        element = _as_element(layer)
        self._map.add_child(element)
        return self

    def remove_layer(self, layer: Any) -> 'FoliumMapView':
        element = _as_element(layer)
        if self._map._children.pop(element.get_name(), None) is not None:
            element._parent = None
        return self

    def has_layer(self, layer: Any) -> bool:
        return _as_element(layer).get_name() in self._map._children

    def add_tile_layer(self, url: str, attribution: str) -> folium.TileLayer:
        tile_layer = folium.TileLayer(tiles=url, attr=attribution, name='Base map')
        self.add_layer(tile_layer)
        return tile_layer

    # Viewport

    def get_zoom(self) -> float:
        return self.zoom

    def get_size(self) -> Tuple[int, int]:
        return self.width, self.height

    def get_bounds(self) -> LatLngBounds:
        """Current viewport bounds: as reported by the browser, else projected."""
        if self._reported_bounds is not None:
            return self._reported_bounds

        center_x, center_y = project(self.center[0], self.center[1], self.zoom)
        half_width = self.width / 2
        half_height = self.height / 2
        south, west = unproject(center_x - half_width, center_y + half_height, self.zoom)
        north, east = unproject(center_x + half_width, center_y - half_height, self.zoom)
        return LatLngBounds(south=south, west=west, north=north, east=east)

    def set_view(self, center: Tuple[float, float], zoom: float) -> 'FoliumMapView':
        zoom_changed = zoom != self.zoom
        self.center = (float(center[0]), float(center[1]))
        self.zoom = zoom
        self._reported_bounds = None

        if zoom_changed:
            self.fire('zoomend')
        self.fire('moveend')
        return self

    def set_zoom(self, zoom: float) -> 'FoliumMapView':
        return self.set_view(self.center, zoom)

    def pan_to(self, center: Tuple[float, float]) -> 'FoliumMapView':
        return self.set_view(center, self.zoom)

    def sync_viewport(self, zoom: Optional[float] = None,
                      center: Optional[Tuple[float, float]] = None,
                      bounds: Optional[LatLngBounds] = None) -> 'FoliumMapView':
        """
        Apply a viewport reported by the browser.

        Fires ``zoomend`` when the zoom changed and ``moveend`` when the zoom,
        center or bounds changed.
        """
        zoom_changed = zoom is not None and zoom != self.zoom
        center_changed = center is not None and tuple(center) != self.center
        bounds_changed = bounds is not None and bounds != self._reported_bounds

        if zoom_changed:
            self.zoom = zoom
        if center_changed:
            self.center = (float(center[0]), float(center[1]))
        if bounds is not None:
            self._reported_bounds = bounds
        elif zoom_changed or center_changed:
            self._reported_bounds = None

        if zoom_changed:
            self.fire('zoomend')
        if zoom_changed or center_changed or bounds_changed:
            self.fire('moveend')
        return self

    def invalidate_size(self, width: Optional[int] = None,
                        height: Optional[int] = None) -> 'FoliumMapView':
        if width is not None:
            self.width = width
        if height is not None:
            self.height = height
        self._reported_bounds = None
        self.fire('resize')
        return self
