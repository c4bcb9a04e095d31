"""
Pytest configuration and fixtures for MVC map tests.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mvc_map.controller import MapController, MapProps
from mvc_map.map_config import MapViewConfig
from mvc_map.models import DataPoint, Participant

CENTER = (55.7558, 37.6173)


def make_point(latitude=CENTER[0], longitude=CENTER[1], participant_type_id=1,
               n_participants=1, n_dead=0):
    """Build a data point with ``n_participants`` of which ``n_dead`` are deceased."""
    participants = tuple(
        Participant(is_dead=i < n_dead) for i in range(n_participants)
    )
    return DataPoint(
        latitude=latitude,
        longitude=longitude,
        participant_type_id=participant_type_id,
        participants=participants,
    )


@pytest.fixture
def color_dictionary():
    """Participant-type colours keyed by id."""
    return {1: '#e41a1c', 2: '#377eb8', 3: '#4daf4a'}


@pytest.fixture
def config():
    return MapViewConfig()


@pytest.fixture
def sample_points():
    """A handful of MVCs around the default center."""
    return [
        make_point(CENTER[0], CENTER[1], participant_type_id=1, n_participants=1),
        make_point(CENTER[0] + 0.001, CENTER[1] + 0.001, participant_type_id=2, n_participants=4),
        make_point(CENTER[0] - 0.001, CENTER[1] - 0.002, participant_type_id=3, n_participants=2, n_dead=1),
        make_point(CENTER[0] + 0.002, CENTER[1] - 0.001, participant_type_id=99, n_participants=0),
    ]


@pytest.fixture
def sample_records():
    """MVC records in the host's plain dictionary form."""
    return [
        {
            'latitude': CENTER[0],
            'longitude': CENTER[1],
            'participant_type_id': 1,
            'participants': [{'is_dead': False}, {'is_dead': True}],
        },
        {
            'latitude': CENTER[0] + 0.01,
            'longitude': CENTER[1] + 0.01,
            'participant_type_id': '2',
            'participants': [],
        },
    ]


@pytest.fixture
def mounted_controller(color_dictionary):
    """Factory mounting a controller on a 1024x600 map at the default center."""
    def _mount(points=(), region_level=1, **props):
        controller = MapController(MapProps(
            default_coord={'latitude': CENTER[0], 'longitude': CENTER[1]},
            region_level=region_level,
            mvcs=points,
            color_dictionary=color_dictionary,
            **props
        ))
        controller.mount(parent_height=600, width=1024)
        return controller

    return _mount


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "performance: mark test as a performance test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
