"""
Choice between the point and heatmap renderings.
"""

from typing import Optional

from .map_config import MapViewConfig
from .models import ActiveLayer

DEFAULT_CONFIG = MapViewConfig()


def select_layer(zoom: float, point_count: int,
                 config: Optional[MapViewConfig] = None) -> ActiveLayer:
    """Heatmap when zoomed out over a large dataset, points otherwise."""
    config = config or DEFAULT_CONFIG
    if zoom < config.zoom_threshold and point_count > config.count_threshold:
        return ActiveLayer.HEATMAP
    return ActiveLayer.POINTS
