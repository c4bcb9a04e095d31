"""
Configuration management for the MVC map.

Holds the constants used by marker styling, layer selection, culling and the
heatmap in one immutable structure, and loads optional overrides from a JSON
file merged over the defaults.
"""

import json
import os
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "mvc_map_config.json"

DEFAULT_HEATMAP_GRADIENT = (
    (0.0, 'white'),
    (0.25, 'yellow'),
    (0.5, 'orange'),
    (1.0, 'red'),
)

CARTODB_LIGHT_URL = 'https://cartodb-basemaps-{s}.global.ssl.fastly.net/light_all/{z}/{x}/{y}{r}.png'
CARTODB_ATTRIBUTION = (
    '&copy; <a href="http://www.openstreetmap.org/copyright">OpenStreetMap</a> '
    '&copy; <a href="http://cartodb.com/attributions">CartoDB</a>'
)


@dataclass(frozen=True)
class MapViewConfig:
    """Immutable settings shared by the style resolver, selector, culler and layer builder."""
    # Marker symbology
    min_radius: float = 3.0
    max_radius: float = 10.0
    radius_step: float = 0.5
    fill_opacity: float = 1.0
    outline_opacity: float = 0.5
    fatal_outline_color: str = '#000000'
    fatal_outline_width: float = 2.0
    fallback_color: str = '#999999'

    # View selection
    zoom_threshold: float = 15
    count_threshold: int = 1000

    # Culling
    padding_factor: float = 0.7

    # Heatmap
    heatmap_gradient: Tuple[Tuple[float, str], ...] = DEFAULT_HEATMAP_GRADIENT
    heatmap_radius: int = 25
    heatmap_blur: int = 15
    heatmap_min_opacity: float = 0.1
    heatmap_point_weight: float = 1.0

    # Base map
    tiles_url: str = CARTODB_LIGHT_URL
    tiles_attribution: str = CARTODB_ATTRIBUTION
    region_zoom_threshold: int = 2
    region_zoom: int = 14
    country_zoom: int = 10
    default_height: int = 600

    def __post_init__(self):
        if self.min_radius <= 0:
            raise ValueError(f"min_radius must be positive, got {self.min_radius}")
        if self.min_radius > self.max_radius:
            raise ValueError(
                f"min_radius ({self.min_radius}) must not exceed max_radius ({self.max_radius})"
            )
        if self.radius_step < 0:
            raise ValueError(f"radius_step must not be negative, got {self.radius_step}")
        if self.padding_factor < 0:
            raise ValueError(f"padding_factor must not be negative, got {self.padding_factor}")
        if self.count_threshold < 0:
            raise ValueError(f"count_threshold must not be negative, got {self.count_threshold}")
        if not self.heatmap_gradient:
            raise ValueError("heatmap_gradient needs at least one stop")
        # JSON sources give lists; store tuples so the config stays hashable
        object.__setattr__(
            self, 'heatmap_gradient',
            tuple((float(stop), str(color)) for stop, color in self.heatmap_gradient)
        )

    @property
    def heatmap_gradient_map(self) -> Dict[float, str]:
        """Gradient in the ``{stop: color}`` form expected by ``folium.plugins.HeatMap``."""
        return {stop: color for stop, color in self.heatmap_gradient}

    def zoom_for_region_level(self, region_level: Optional[int]) -> int:
        """Initial zoom: region-level views start closer than country-level ones."""
        if region_level is not None and region_level >= self.region_zoom_threshold:
            return self.region_zoom
        return self.country_zoom


class MapConfigLoader:
    """Loads map configuration from a JSON file, falling back to defaults."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.default_config = self._get_default_config()
        self.config = self._load_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration grouped by concern."""
        defaults = MapViewConfig()
        return {
            "markers": {
                "min_radius": defaults.min_radius,
                "max_radius": defaults.max_radius,
                "radius_step": defaults.radius_step,
                "fill_opacity": defaults.fill_opacity,
                "outline_opacity": defaults.outline_opacity,
                "fatal_outline_color": defaults.fatal_outline_color,
                "fatal_outline_width": defaults.fatal_outline_width,
                "fallback_color": defaults.fallback_color
            },
            "view_selection": {
                "zoom_threshold": defaults.zoom_threshold,
                "count_threshold": defaults.count_threshold
            },
            "culling": {
                "padding_factor": defaults.padding_factor
            },
            "heatmap": {
                "gradient": [list(stop) for stop in defaults.heatmap_gradient],
                "radius": defaults.heatmap_radius,
                "blur": defaults.heatmap_blur,
                "min_opacity": defaults.heatmap_min_opacity,
                "point_weight": defaults.heatmap_point_weight
            },
            "map_settings": {
                "tiles_url": defaults.tiles_url,
                "tiles_attribution": defaults.tiles_attribution,
                "region_zoom_threshold": defaults.region_zoom_threshold,
                "region_zoom": defaults.region_zoom,
                "country_zoom": defaults.country_zoom,
                "default_height": defaults.default_height
            }
        }

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or use defaults."""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    config = json.load(f)
                if not isinstance(config, dict):
                    raise ValueError(f"expected a JSON object, got {type(config).__name__}")
                logger.info(f"Loaded map configuration from {self.config_path}")
                return self._merge_configs(self.default_config, config)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")
                return self._merge_configs(self.default_config, {})
        else:
            logger.info(f"Config file {self.config_path} not found, using defaults")
            return self._merge_configs(self.default_config, {})

    def _merge_configs(self, default: Dict, user: Dict) -> Dict:
        """Recursively merge user config with defaults."""
        merged = {
            key: self._merge_configs(value, {}) if isinstance(value, dict) else value
            for key, value in default.items()
        }

        for key, value in user.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def get_view_config(self) -> MapViewConfig:
        """Build the immutable view configuration, or the defaults if the settings are unusable."""
        try:
            return self._build_view_config()
        except (TypeError, ValueError, KeyError) as e:
            logger.error(f"Invalid map configuration in {self.config_path}: {e}")
            logger.info("Using default configuration")
            return MapViewConfig()

    def _build_view_config(self) -> MapViewConfig:
        markers = self.config["markers"]
        selection = self.config["view_selection"]
        heatmap = self.config["heatmap"]
        settings = self.config["map_settings"]

        return MapViewConfig(
            min_radius=markers["min_radius"],
            max_radius=markers["max_radius"],
            radius_step=markers["radius_step"],
            fill_opacity=markers["fill_opacity"],
            outline_opacity=markers["outline_opacity"],
            fatal_outline_color=markers["fatal_outline_color"],
            fatal_outline_width=markers["fatal_outline_width"],
            fallback_color=markers["fallback_color"],
            zoom_threshold=selection["zoom_threshold"],
            count_threshold=selection["count_threshold"],
            padding_factor=self.config["culling"]["padding_factor"],
            heatmap_gradient=tuple(tuple(stop) for stop in heatmap["gradient"]),
            heatmap_radius=heatmap["radius"],
            heatmap_blur=heatmap["blur"],
            heatmap_min_opacity=heatmap["min_opacity"],
            heatmap_point_weight=heatmap["point_weight"],
            tiles_url=settings["tiles_url"],
            tiles_attribution=settings["tiles_attribution"],
            region_zoom_threshold=settings["region_zoom_threshold"],
            region_zoom=settings["region_zoom"],
            country_zoom=settings["country_zoom"],
            default_height=settings["default_height"],
        )

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            config_dir = os.path.dirname(os.path.abspath(self.config_path))
            os.makedirs(config_dir, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
            logger.info(f"Saved map configuration to {self.config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {self.config_path}: {e}")

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self.config = self._merge_configs(self.default_config, {})
        logger.info("Reset configuration to defaults")


# Global configuration instance
_map_config = None

def get_map_config(config_path: Optional[str] = None) -> MapViewConfig:
    """Get the global view configuration, loading it on first use."""
    global _map_config
    if _map_config is None:
        _map_config = MapConfigLoader(config_path)
    return _map_config.get_view_config()
