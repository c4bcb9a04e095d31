"""
Viewport culling for MVC point markers.

Keeps only the markers near the viewport attached to their group. The
viewport is padded so markers just outside the frame are already attached
when the user pans. Markers whose visibility did not change are left alone,
so a viewport event costs one bounds check per marker and touches only the
markers that crossed the padded edge.
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import logging

from .map_config import MapViewConfig
from .models import LatLngBounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CullingResult:
    """Outcome of one culling pass."""
    attached: int = 0
    detached: int = 0
    visible: int = 0
    total: int = 0

    @property
    def toggled(self) -> int:
        return self.attached + self.detached


class ViewportCuller:
    """Attaches markers inside the padded viewport and detaches the rest."""

    def __init__(self, config: Optional[MapViewConfig] = None):
        self.config = config or MapViewConfig()

    def expand_bounds(self, bounds: LatLngBounds) -> LatLngBounds:
        return bounds.pad(self.config.padding_factor)

    def update_visibility(self, markers: Iterable, bounds: LatLngBounds) -> CullingResult:
        """
        Toggle marker attachment for the given viewport.

        Args:
            markers: Point markers exposing ``location``, ``was_visible``,
                ``attach()`` and ``detach()``
            bounds: Raw viewport bounds

        Returns:
            CullingResult with attach/detach counts
        """
        expanded = self.expand_bounds(bounds)
        attached = detached = visible = total = 0

        for marker in markers:
            total += 1
            is_visible = expanded.contains(*marker.location)
            if is_visible:
                visible += 1

            if is_visible != marker.was_visible:
                if is_visible:
                    marker.attach()
                    attached += 1
                else:
                    marker.detach()
                    detached += 1
                marker.was_visible = is_visible

        result = CullingResult(attached=attached, detached=detached, visible=visible, total=total)
        logger.debug(
            f"Culling pass: {visible}/{total} markers in view, "
            f"{attached} attached, {detached} detached"
        )
        return result
