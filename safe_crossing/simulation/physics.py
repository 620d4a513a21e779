"""Stopping-distance physics for vehicles approaching the crossing."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Dict, Optional

TICK_SECONDS = 0.1
KMH_PER_MPS = 3.6

MAX_DECELERATION: Dict[str, float] = {
    "car": 7.0,
    "truck": 5.5,
    "bus": 5.0,
}
DEFAULT_MAX_DECELERATION = 6.0
DEFAULT_REACTION_TIME = 1.5
ROAD_CONDITION_FACTOR = 0.9
SAFETY_BUFFER = 5.0

# projected stops using the live deceleration keep a smaller margin
PROJECTED_SAFETY_BUFFER = 3.0
DECELERATING_THRESHOLD_KMH = 0.5


@dataclass(frozen=True, slots=True)
class VehicleFrame:
    """Speed (km/h) and lane position of a vehicle at one tick."""

    speed: float
    position: float


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""

    return int(math.floor(value + 0.5))


def required_stopping_distance(
    speed_kmh: float, category: str, reaction_time: Optional[float] = None
) -> float:
    """Return reaction distance + braking distance + safety buffer.

    The braking term uses the category's maximum deceleration scaled by a fixed
    road condition factor.  For a stationary vehicle only the buffer remains.
    """

    speed_mps = speed_kmh / KMH_PER_MPS
    reaction = reaction_time if reaction_time is not None else DEFAULT_REACTION_TIME
    effective = MAX_DECELERATION.get(category, DEFAULT_MAX_DECELERATION) * ROAD_CONDITION_FACTOR

    reaction_distance = speed_mps * reaction
    braking_distance = (speed_mps * speed_mps) / (2 * effective)
    return reaction_distance + braking_distance + SAFETY_BUFFER


def deceleration_rate(current: VehicleFrame, previous: Optional[VehicleFrame]) -> float:
    """Deceleration in m/s^2 derived from the one-tick speed drop."""

    if previous is None:
        return 0.0
    speed_change = previous.speed - current.speed
    if speed_change <= 0:
        return 0.0
    return (speed_change / KMH_PER_MPS) / TICK_SECONDS


def is_decelerating(current: VehicleFrame, previous: Optional[VehicleFrame]) -> bool:
    if previous is None:
        return False
    return previous.speed - current.speed > DECELERATING_THRESHOLD_KMH


def projected_stopping_distance(speed_kmh: float, rate: float) -> float:
    """Distance needed to stop when already braking at ``rate`` m/s^2."""

    if rate <= 0:
        return math.inf
    speed_mps = speed_kmh / KMH_PER_MPS
    return (speed_mps * speed_mps) / (2 * rate) + PROJECTED_SAFETY_BUFFER
