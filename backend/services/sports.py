"""
Sport Profiles

League-level constants used by the form calculator, power ratings and
the game predictor. One profile per supported sport.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union


class Sport(Enum):
    NBA = "nba"
    NFL = "nfl"


@dataclass(frozen=True)
class SportProfile:
    """League constants for a single sport."""
    sport: Sport

    # Power rating: rating points per point of season differential
    point_diff_multiplier: float

    # Efficiency ratings are scored against this per-game baseline
    efficiency_baseline: float

    # Pace: combined score baseline and the scale it's reported on
    pace_baseline_total: float
    pace_scale: float

    # Flat line used to classify simulated overs/unders
    ou_baseline_total: float

    # Total used when team scoring averages are missing
    fallback_total: float

    # Clamp for predicted totals
    total_bounds: Tuple[float, float]

    # Standard deviation of final margin around the predicted margin
    margin_std_dev: float


PROFILES = {
    Sport.NBA: SportProfile(
        sport=Sport.NBA,
        point_diff_multiplier=1.5,
        efficiency_baseline=110.0,
        pace_baseline_total=220.0,
        pace_scale=100.0,
        ou_baseline_total=220.0,
        fallback_total=225.0,
        total_bounds=(200.0, 260.0),
        margin_std_dev=11.0,
    ),
    Sport.NFL: SportProfile(
        sport=Sport.NFL,
        point_diff_multiplier=2.0,
        efficiency_baseline=22.0,
        pace_baseline_total=45.0,
        pace_scale=22.0,
        ou_baseline_total=45.0,
        fallback_total=45.0,
        total_bounds=(35.0, 60.0),
        margin_std_dev=13.0,
    ),
}


def to_sport(sport: Union[Sport, str]) -> Sport:
    """Accept either a Sport or its string value ("nba", "nfl")."""
    if isinstance(sport, Sport):
        return sport
    try:
        return Sport(str(sport).strip().lower())
    except ValueError:
        raise ValueError(f"Unsupported sport: {sport!r} (expected 'nba' or 'nfl')")


def get_profile(sport: Union[Sport, str]) -> SportProfile:
    return PROFILES[to_sport(sport)]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going towards +infinity (not banker's rounding).

    round_half_up(2.5) == 3, round_half_up(-2.5) == -2,
    round_half_up(108.25, 1) == 108.3
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
