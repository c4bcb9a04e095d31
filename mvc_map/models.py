"""
Data model for the MVC map.

Defines the read-only records supplied by the host (MVC data points, their
participants and auxiliary map-object markers), viewport bounds, and the
helpers that turn plain records, DataFrames and GeoDataFrames into them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

import numpy as np
import pandas as pd
import geopandas as gpd

logger = logging.getLogger(__name__)

TRUE_STRINGS = frozenset({'true', 't', 'yes', 'y', '1'})
FALSE_STRINGS = frozenset({'false', 'f', 'no', 'n', '0', ''})


class MvcDataError(ValueError):
    """Raised when a single input record cannot be turned into a map record."""


class ActiveLayer(Enum):
    """Which of the two MVC layers is attached to the map."""
    NONE = 'none'
    POINTS = 'points'
    HEATMAP = 'heatmap'


def _coerce_coordinate(value: Any, name: str, limit: float) -> float:
    try:
        coordinate = float(value)
    except (TypeError, ValueError):
        raise MvcDataError(f"{name} must be numeric, got {value!r}")

    if not np.isfinite(coordinate):
        raise MvcDataError(f"{name} must be finite, got {value!r}")
    if abs(coordinate) > limit:
        raise MvcDataError(f"{name} {coordinate} is outside [-{limit}, {limit}]")
    return coordinate


def _parse_flag(value: Any, name: str) -> bool:
    """Parse a deceased flag; CSV sources give strings such as "false" or "0"."""
    if value is None or (np.isscalar(value) and not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise MvcDataError(f"{name} must be a boolean, got {value!r}")
    if isinstance(value, (bool, np.bool_, int, float, np.number)):
        return bool(value)
    raise MvcDataError(f"{name} must be a boolean, got {type(value).__name__}")


@dataclass(frozen=True)
class Participant:
    """Participant of an MVC; only the deceased flag matters to the map."""
    is_dead: bool = False
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_record(cls, record: Any) -> 'Participant':
        if isinstance(record, Participant):
            return record
        if not isinstance(record, Mapping):
            raise MvcDataError(f"Participant record must be a mapping, got {type(record).__name__}")

        return cls(is_dead=_parse_flag(record.get('is_dead'), 'is_dead'), raw=dict(record))


@dataclass(frozen=True)
class DataPoint:
    """One mapped value case: an incident location with its participants."""
    latitude: float
    longitude: float
    participant_type_id: Any = None
    participants: Tuple[Participant, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def location(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'DataPoint':
        """
        Build a data point from a host record.

        Args:
            record: Mapping with ``latitude``, ``longitude``, ``participant_type_id``
                and ``participants`` (list of participant mappings)

        Returns:
            DataPoint

        Raises:
            MvcDataError: If coordinates or participants are malformed
        """
        if not isinstance(record, Mapping):
            raise MvcDataError(f"MVC record must be a mapping, got {type(record).__name__}")

        latitude = _coerce_coordinate(record.get('latitude'), 'latitude', 90.0)
        longitude = _coerce_coordinate(record.get('longitude'), 'longitude', 180.0)

        participants = record.get('participants')
        if participants is None or (np.isscalar(participants) and pd.isna(participants)):
            participants = []
        if isinstance(participants, (str, bytes, Mapping)) or not isinstance(participants, Iterable):
            raise MvcDataError(f"participants must be a list, got {type(participants).__name__}")

        type_id = record.get('participant_type_id')
        if type_id is not None and np.isscalar(type_id) and pd.isna(type_id):
            type_id = None

        return cls(
            latitude=latitude,
            longitude=longitude,
            participant_type_id=type_id,
            participants=tuple(Participant.from_record(p) for p in participants),
            raw=dict(record),
        )


@dataclass(frozen=True)
class MapObjectMarkerData:
    """Auxiliary map-object annotation shown as a popup marker."""
    latitude: float
    longitude: float
    name: str = ''

    @property
    def location(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    @classmethod
    def from_record(cls, record: Any) -> 'MapObjectMarkerData':
        if isinstance(record, MapObjectMarkerData):
            return record
        if not isinstance(record, Mapping):
            raise MvcDataError(f"Map object record must be a mapping, got {type(record).__name__}")

        name = record.get('name')
        return cls(
            latitude=_coerce_coordinate(record.get('latitude'), 'latitude', 90.0),
            longitude=_coerce_coordinate(record.get('longitude'), 'longitude', 180.0),
            name='' if name is None else str(name),
        )


@dataclass(frozen=True)
class LatLngBounds:
    """Geographic rectangle given by its south-west and north-east corners."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        if self.south > self.north or self.west > self.east:
            raise ValueError(
                f"Invalid bounds: south-west ({self.south}, {self.west}) "
                f"is not below/left of north-east ({self.north}, {self.east})"
            )

    @classmethod
    def from_leaflet(cls, payload: Optional[Mapping[str, Any]]) -> Optional['LatLngBounds']:
        """
        Parse the bounds dictionary reported by Leaflet through streamlit-folium.

        Returns None when the browser has not reported usable bounds yet.
        """
        if not payload:
            return None
        try:
            sw = payload['_southWest']
            ne = payload['_northEast']
            return cls(south=float(sw['lat']), west=float(sw['lng']),
                       north=float(ne['lat']), east=float(ne['lng']))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Ignoring malformed bounds payload {payload!r}: {e}")
            return None

    def pad(self, ratio: float) -> 'LatLngBounds':
        """Grow each side by ``ratio`` times the rectangle's height/width."""
        height_buffer = abs(self.north - self.south) * ratio
        width_buffer = abs(self.east - self.west) * ratio
        return LatLngBounds(
            south=self.south - height_buffer,
            west=self.west - width_buffer,
            north=self.north + height_buffer,
            east=self.east + width_buffer,
        )

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east


def points_from_records(records: Iterable[Any]) -> List[DataPoint]:
    """Convert host records to data points, skipping malformed ones."""
    points = []
    skipped = 0
    for index, record in enumerate(records):
        if isinstance(record, DataPoint):
            points.append(record)
            continue
        try:
            points.append(DataPoint.from_record(record))
        except MvcDataError as e:
            skipped += 1
            logger.warning(f"Skipping MVC record {index}: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} invalid MVC records out of {skipped + len(points)}")
    return points


def points_from_dataframe(df: pd.DataFrame) -> List[DataPoint]:
    """
    Convert a DataFrame of MVCs to data points.

    Expects ``latitude`` and ``longitude`` columns; ``participant_type_id`` and
    ``participants`` are optional.
    """
    missing = [col for col in ('latitude', 'longitude') if col not in df.columns]
    if missing:
        raise ValueError(f"MVC table is missing required columns: {missing}")

    return points_from_records(df.to_dict('records'))


def points_from_geodataframe(gdf: gpd.GeoDataFrame) -> List[DataPoint]:
    """Convert a point GeoDataFrame to data points, reprojecting to WGS84 if needed."""
    if gdf.empty:
        return []

    if gdf.crs and gdf.crs.to_string() != "EPSG:4326":
        gdf = gdf.to_crs("EPSG:4326")

    is_point = gdf.geometry.geom_type == 'Point'
    if not is_point.all():
        logger.warning(f"Skipping {int((~is_point).sum())} non-point geometries")
        gdf = gdf[is_point]

    df = pd.DataFrame(gdf.drop(columns=gdf.geometry.name))
    df['latitude'] = gdf.geometry.y.values
    df['longitude'] = gdf.geometry.x.values
    return points_from_records(df.to_dict('records'))


def map_objects_from_records(records: Optional[Iterable[Any]]) -> List[MapObjectMarkerData]:
    """Convert auxiliary map-object records, skipping malformed ones."""
    markers = []
    for index, record in enumerate(records or []):
        try:
            markers.append(MapObjectMarkerData.from_record(record))
        except MvcDataError as e:
            logger.warning(f"Skipping map object record {index}: {e}")
    return markers


def normalize_color_dictionary(dictionary: Any) -> Dict[Any, Any]:
    """
    Normalize a participant-type colour dictionary to a ``{id: color}`` mapping.

    Accepts either a mapping or the list form ``[{"id": ..., "color": ...}]``.
    """
    if dictionary is None:
        return {}
    if isinstance(dictionary, Mapping):
        return dict(dictionary)

    normalized = {}
    for entry in dictionary:
        if isinstance(entry, Mapping) and 'id' in entry:
            normalized[entry['id']] = entry.get('color')
        else:
            logger.warning(f"Ignoring colour dictionary entry without id: {entry!r}")
    return normalized
