"""
Synthetic MVC datasets for demos and performance checks.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .models import DataPoint, Participant

DEFAULT_PARTICIPANT_TYPES = {
    1: '#e41a1c',
    2: '#377eb8',
    3: '#4daf4a',
    4: '#984ea3',
}


def generate_sample_mvcs(n_points: int, center: Tuple[float, float] = (55.7558, 37.6173),
                         spread: float = 0.05, participant_type_ids: Optional[Sequence[int]] = None,
                         max_participants: int = 6, dead_share: float = 0.05,
                         seed: Optional[int] = None) -> List[DataPoint]:
    """
    Generate MVCs scattered normally around ``center``.

    Args:
        n_points: Number of MVCs
        center: (latitude, longitude) of the cluster
        spread: Standard deviation of the scatter in degrees
        participant_type_ids: Type ids to draw from
        max_participants: Upper bound of participants per MVC
        dead_share: Probability that a participant is deceased
        seed: Random seed for reproducible datasets

    Returns:
        List of DataPoint
    """
    rng = np.random.default_rng(seed)
    type_ids = list(participant_type_ids or DEFAULT_PARTICIPANT_TYPES)

    latitudes = np.clip(rng.normal(center[0], spread, n_points), -90, 90)
    longitudes = np.clip(rng.normal(center[1], spread, n_points), -180, 180)
    counts = rng.integers(1, max_participants + 1, n_points)
    types = rng.choice(type_ids, n_points)

    points = []
    for latitude, longitude, count, type_id in zip(latitudes, longitudes, counts, types):
        participants = tuple(
            Participant(is_dead=bool(rng.random() < dead_share)) for _ in range(count)
        )
        points.append(DataPoint(
            latitude=float(latitude),
            longitude=float(longitude),
            participant_type_id=int(type_id),
            participants=participants,
        ))
    return points


def sample_color_dictionary() -> List[Dict[str, object]]:
    """Participant-type dictionary in the host's list form."""
    return [{'id': type_id, 'color': color} for type_id, color in DEFAULT_PARTICIPANT_TYPES.items()]
