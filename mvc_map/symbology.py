"""
Symbology for MVC point markers.

Resolves the visual attributes of one data point: fill colour from the
participant-type dictionary, radius from the number of participants, and a
black outline for cases with fatalities.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
import logging

import matplotlib.colors as mcolors

from .map_config import MapViewConfig
from .models import DataPoint, normalize_color_dictionary

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = MapViewConfig()


@dataclass(frozen=True)
class MarkerVisual:
    """Visual attributes of a single circle marker."""
    color: str
    outline_color: str
    outline_width: float
    outline_opacity: float
    fill_color: str
    fill_opacity: float
    radius: float

    def to_path_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``folium.CircleMarker``."""
        return {
            'radius': self.radius,
            'color': self.outline_color,
            'weight': self.outline_width,
            'opacity': self.outline_opacity,
            'fill': True,
            'fill_color': self.fill_color,
            'fill_opacity': self.fill_opacity,
        }


def get_color_by_participant_type_id(participant_type_id: Any,
                                     color_dictionary: Optional[Any],
                                     fallback_color: str = DEFAULT_CONFIG.fallback_color) -> str:
    """
    Look up the display colour of a participant type.

    Args:
        participant_type_id: Type id of the MVC (int or str)
        color_dictionary: ``{id: color}`` mapping or list of ``{"id", "color"}`` entries
        fallback_color: Colour used for unknown ids or invalid colours

    Returns:
        Hex colour string
    """
    if participant_type_id is None:
        return fallback_color

    if not isinstance(color_dictionary, Mapping):
        color_dictionary = normalize_color_dictionary(color_dictionary)

    color = color_dictionary.get(participant_type_id)
    if color is None:
        # Host dictionaries often key ids as strings
        color = color_dictionary.get(str(participant_type_id))
    if color is None:
        color = next(
            (value for key, value in color_dictionary.items() if str(key) == str(participant_type_id)),
            None
        )

    if color is None or not mcolors.is_color_like(color):
        logger.debug(f"No usable colour for participant type {participant_type_id!r}, using {fallback_color}")
        return fallback_color

    return mcolors.to_hex(color)


def mvc_has_dead_participants(point: DataPoint) -> bool:
    return any(participant.is_dead for participant in point.participants)


def calc_marker_radius(point: DataPoint, config: MapViewConfig = DEFAULT_CONFIG) -> float:
    """Radius grows linearly with the participant count, capped at ``max_radius``."""
    radius = config.min_radius + len(point.participants) * config.radius_step
    return max(config.min_radius, min(radius, config.max_radius))


def resolve_style(point: DataPoint, color_dictionary: Optional[Any],
                  config: MapViewConfig = DEFAULT_CONFIG) -> MarkerVisual:
    """
    Compute the marker visual for one data point.

    Args:
        point: MVC data point
        color_dictionary: Participant-type colour dictionary
        config: Map view configuration

    Returns:
        MarkerVisual for the point
    """
    color = get_color_by_participant_type_id(
        point.participant_type_id, color_dictionary, config.fallback_color
    )

    outline_color = color
    outline_width = 0
    if mvc_has_dead_participants(point):
        outline_color = config.fatal_outline_color
        outline_width = config.fatal_outline_width

    return MarkerVisual(
        color=color,
        outline_color=outline_color,
        outline_width=outline_width,
        outline_opacity=config.outline_opacity,
        fill_color=color,
        fill_opacity=config.fill_opacity,
        radius=calc_marker_radius(point, config),
    )


def fallback_style(config: MapViewConfig = DEFAULT_CONFIG) -> MarkerVisual:
    """Visual used when a point's style cannot be resolved."""
    return MarkerVisual(
        color=config.fallback_color,
        outline_color=config.fallback_color,
        outline_width=0,
        outline_opacity=config.outline_opacity,
        fill_color=config.fallback_color,
        fill_opacity=config.fill_opacity,
        radius=config.min_radius,
    )
