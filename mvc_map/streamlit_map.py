"""
Streamlit integration for the MVC map.

Keeps one mounted MapController per session, renders its folium map with
streamlit-folium, and feeds the viewport and clicks reported by the browser
back into the controller before the next render.
"""

from typing import Any, Dict, Optional, Sequence, Tuple
import logging

import streamlit as st
from streamlit_folium import st_folium

from .controller import MapController, MapProps
from .layers import PointMarker
from .map_config import MapViewConfig
from .models import DataPoint, LatLngBounds

logger = logging.getLogger(__name__)

CONTROLLER_KEY = 'mvc_map_controller'
LAST_CLICK_KEY = 'mvc_map_last_click'
SELECTED_KEY = 'mvc_map_selected'
MAP_KEY = 'mvc_map'


def _click_key(clicked: Optional[Dict[str, Any]]) -> Optional[Tuple[float, float]]:
    if not clicked or clicked.get('lat') is None or clicked.get('lng') is None:
        return None
    return float(clicked['lat']), float(clicked['lng'])


def apply_map_state(controller: MapController, map_state: Optional[Dict[str, Any]],
                    last_click: Optional[Tuple[float, float]] = None) -> Optional[PointMarker]:
    """
    Apply the state returned by ``st_folium`` to the controller.

    Args:
        controller: Mounted map controller
        map_state: Dictionary returned by ``st_folium`` (zoom, center, bounds,
            last_object_clicked)
        last_click: Click coordinate already handled on a previous rerun

    Returns:
        The clicked point marker if a new click hit one, else None
    """
    if not map_state or not controller.is_mounted:
        return None

    center = map_state.get('center')
    center_tuple = None
    if isinstance(center, dict) and center.get('lat') is not None:
        center_tuple = (float(center['lat']), float(center['lng']))

    controller.map_view.sync_viewport(
        zoom=map_state.get('zoom'),
        center=center_tuple,
        bounds=LatLngBounds.from_leaflet(map_state.get('bounds')),
    )

    click = _click_key(map_state.get('last_object_clicked'))
    if click is None or click == last_click:
        return None
    return controller.handle_map_click(*click)


def get_map_controller(props: MapProps, config: Optional[MapViewConfig] = None,
                       height: Optional[int] = None) -> MapController:
    """Session-scoped controller; mounted on first use, updated with new props afterwards."""
    controller = st.session_state.get(CONTROLLER_KEY)
    if controller is None:
        controller = MapController(props, config)
        controller.mount(parent_height=height)
        st.session_state[CONTROLLER_KEY] = controller
    else:
        controller.receive_props(props)
    return controller


def render_mvc_map_page(points: Sequence[DataPoint], default_coord: Any,
                        region_level: Optional[int] = None,
                        color_dictionary: Any = None,
                        map_objects: Optional[Sequence[Any]] = None,
                        config: Optional[MapViewConfig] = None,
                        height: Optional[int] = None) -> Optional[DataPoint]:
    """
    Render the MVC map and return the MVC selected by the latest click.

    ``points`` and ``map_objects`` are compared by reference between reruns,
    so callers should keep them in a resource cache.
    """
    config = config or MapViewConfig()
    height = height or config.default_height

    props = MapProps(
        default_coord=default_coord,
        region_level=region_level,
        mvcs=points,
        map_objects_markers_data=map_objects,
        color_dictionary=color_dictionary,
        on_mvc_selected=lambda point: st.session_state.__setitem__(SELECTED_KEY, point),
    )
    controller = get_map_controller(props, config, height)
    map_view = controller.map_view

    # The component's last value must reach culling before the map is serialized
    map_state = st.session_state.get(MAP_KEY)
    marker = apply_map_state(controller, map_state, st.session_state.get(LAST_CLICK_KEY))
    click = _click_key((map_state or {}).get('last_object_clicked'))
    if click is not None:
        st.session_state[LAST_CLICK_KEY] = click
    if marker is not None:
        logger.info(f"Selected MVC at {marker.location}")

    st_folium(
        map_view.folium_map,
        center=list(map_view.center),
        zoom=map_view.zoom,
        height=height,
        width=None,
        returned_objects=["zoom", "center", "bounds", "last_object_clicked"],
        key=MAP_KEY,
    )

    st.caption(
        f"Layer: {controller.active_layer.value} | MVCs: {len(controller.points)} | "
        f"Markers on map: {len(controller.attached_markers())} | Zoom: {map_view.zoom}"
    )
    return st.session_state.get(SELECTED_KEY)
