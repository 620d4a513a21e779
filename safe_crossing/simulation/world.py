"""Vehicle and pedestrian motion along the crossing approach."""

from __future__ import annotations

from dataclasses import dataclass, field
import itertools
import logging
from typing import Iterator, List, Literal, Optional, Sequence, Tuple

from .physics import (
    TICK_SECONDS,
    VehicleFrame,
    deceleration_rate,
    is_decelerating,
    projected_stopping_distance,
    required_stopping_distance,
    round_half_up,
)
from .random_source import RandomSource, make_random_source
from ..analysis.queue import QueueAnalysis, QueueAnalyzer, QueueVehicle

logger = logging.getLogger(__name__)

LightState = Literal["green", "amber", "red", "off"]
VehicleCategory = Literal["car", "truck", "bus"]
PedestrianCategory = Literal["adult", "elderly", "child"]
Direction = Literal["top-to-bottom", "bottom-to-top"]

SPAWN_POSITION = -20.0
DESPAWN_POSITION = 120.0
APPROACH_WINDOW_START = 30.0
STOP_LINE = 67.0
CROSSWALK_START = 70.0
CROSSWALK_END = 80.0
DETECTION_REFERENCE = 80.0
BRAKING_MARGIN = 10.0
MAX_BRAKING_STEP = 6.0
BRAKING_FACTOR = 0.3
RESUME_ACCELERATION = 2.0
LIVE_BRAKING_THRESHOLD = 3.0

SPAWN_CHANCE_RED = 0.005
SPAWN_CHANCE_DEFAULT = 0.02
EMERGENCY_CHANCE = 0.02
EMERGENCY_SPEED_BONUS = 20.0

PEDESTRIAN_LIMIT = 3
PEDESTRIAN_SPAWN_CHANCE = 0.02
PEDESTRIAN_SPEED_MULTIPLIER = 1.2
PEDESTRIAN_CORRIDOR = (-15.0, 115.0)

COLOR_EMERGENCY = (255, 0, 0)


@dataclass(frozen=True, slots=True)
class VehicleTemplate:
    category: VehicleCategory
    speeds: Tuple[float, ...]
    size: str
    colors: Tuple[Tuple[int, int, int], ...]


VEHICLE_TEMPLATES: Tuple[VehicleTemplate, ...] = (
    VehicleTemplate(
        "car",
        (25.0, 35.0, 45.0),
        "small",
        ((59, 130, 246), (239, 68, 68), (16, 185, 129), (245, 158, 11)),
    ),
    VehicleTemplate("truck", (20.0, 30.0, 40.0), "large", ((107, 114, 128), (55, 65, 81))),
    VehicleTemplate("bus", (15.0, 25.0, 35.0), "large", ((124, 58, 237), (220, 38, 38))),
)

PEDESTRIAN_SPEEDS = {
    "adult": (2.0, 2.5),
    "elderly": (1.2, 1.5),
    "child": (1.8, 2.2),
}


@dataclass(slots=True)
class Vehicle:
    """A vehicle on the approach lane.

    ``current`` and ``previous`` hold the last two frames; the previous frame is
    ``None`` until the vehicle has been advanced once.  Positions run from
    negative (off-screen) to 120 (past the intersection).
    """

    id: str
    category: VehicleCategory
    original_speed: float
    current: VehicleFrame
    reaction_time: float = 1.5
    size: str = "small"
    color: Tuple[int, int, int] = (59, 130, 246)
    is_emergency: bool = False
    is_stopped: bool = False
    is_waiting_at_light: bool = False
    previous: Optional[VehicleFrame] = None

    @property
    def speed(self) -> float:
        return self.current.speed

    @property
    def position(self) -> float:
        return self.current.position

    @property
    def deceleration_rate(self) -> float:
        return deceleration_rate(self.current, self.previous)

    @property
    def is_decelerating(self) -> bool:
        return is_decelerating(self.current, self.previous)

    def required_stopping_distance(self) -> float:
        return required_stopping_distance(self.speed, self.category, self.reaction_time)

    def distance_to_reference(self) -> float:
        return max(0.0, (DETECTION_REFERENCE - self.position) * 2)

    def can_safely_stop(self) -> bool:
        return self.required_stopping_distance() <= (DETECTION_REFERENCE - self.position) * 2

    def to_queue_vehicle(self) -> QueueVehicle:
        return QueueVehicle(
            id=self.id,
            position=self.position,
            speed=self.speed,
            category=self.category,
            is_emergency=self.is_emergency,
            can_safely_stop=self.can_safely_stop(),
        )


@dataclass(slots=True)
class Pedestrian:
    id: str
    position: float
    speed: float
    category: PedestrianCategory
    direction: Direction

    def advance(self) -> None:
        step = self.speed * PEDESTRIAN_SPEED_MULTIPLIER
        if self.direction == "top-to-bottom":
            self.position += step
        else:
            self.position -= step

    def in_corridor(self) -> bool:
        return PEDESTRIAN_CORRIDOR[0] < self.position < PEDESTRIAN_CORRIDOR[1]


@dataclass(slots=True)
class SensorZone:
    """Fixed detection band along the approach."""

    start: float
    end: float
    active: bool = False

    def covers(self, position: float) -> bool:
        return self.start <= position <= self.end


def default_sensor_zones() -> List[SensorZone]:
    return [SensorZone(35.0, 50.0), SensorZone(45.0, 60.0), SensorZone(55.0, 70.0)]


@dataclass(slots=True)
class DetectionResult:
    """Safety summary for the single best-candidate vehicle."""

    has_vehicle: bool = False
    speed: int = 0
    distance: int = 0
    can_stop: bool = True
    is_decelerating: bool = False
    required_distance: int = 0
    deceleration_rate: float = 0.0
    queue_analysis: Optional[QueueAnalysis] = None


@dataclass(slots=True)
class WorldSnapshot:
    """Everything the presentation layer needs after one tick."""

    light: LightState
    vehicles: List[Vehicle]
    pedestrians: List[Pedestrian]
    sensor_zones: List[bool]
    detection: DetectionResult
    queue_analysis: QueueAnalysis


def assess_vehicle(vehicle: Vehicle, queue_analysis: Optional[QueueAnalysis] = None) -> DetectionResult:
    """Decide whether ``vehicle`` can still stop before the crossing.

    A vehicle that is nominally too close may still be judged safe when it is
    already braking hard; its stopping distance is then projected from the live
    deceleration rate.
    """

    distance = vehicle.distance_to_reference()
    required = vehicle.required_stopping_distance()
    decelerating = vehicle.is_decelerating
    rate = vehicle.deceleration_rate

    can_stop = True
    if distance < required:
        can_stop = False
        if decelerating and rate > LIVE_BRAKING_THRESHOLD:
            can_stop = projected_stopping_distance(vehicle.speed, rate) <= distance

    return DetectionResult(
        has_vehicle=True,
        speed=round_half_up(vehicle.speed),
        distance=round_half_up(distance),
        can_stop=can_stop,
        is_decelerating=decelerating,
        required_distance=round_half_up(required),
        deceleration_rate=rate,
        queue_analysis=queue_analysis,
    )


class CrossingWorld:
    """Advance vehicles and pedestrians in fixed 100 ms steps."""

    def __init__(
        self,
        queue_analyzer: QueueAnalyzer,
        rng: RandomSource | None = None,
        *,
        sensor_zones: Sequence[SensorZone] | None = None,
    ) -> None:
        self.queue_analyzer = queue_analyzer
        self.rng = rng or make_random_source()
        self.vehicles: List[Vehicle] = []
        self.pedestrians: List[Pedestrian] = []
        self.sensor_zones: List[SensorZone] = list(sensor_zones or default_sensor_zones())
        self.tick_count = 0
        self.last_snapshot: Optional[WorldSnapshot] = None
        self._vehicle_ids: Iterator[int] = itertools.count(1)
        self._pedestrian_ids: Iterator[int] = itertools.count(1)

    # spawning ---------------------------------------------------------------

    def create_vehicle(self) -> Vehicle:
        template = self.rng.choice(VEHICLE_TEMPLATES)
        speed = self.rng.choice(template.speeds)
        color = self.rng.choice(template.colors)
        emergency = self.rng.random() < EMERGENCY_CHANCE
        return Vehicle(
            id=f"vehicle-{next(self._vehicle_ids)}",
            category=template.category,
            original_speed=speed,
            current=VehicleFrame(
                speed=speed + EMERGENCY_SPEED_BONUS if emergency else speed,
                position=SPAWN_POSITION,
            ),
            reaction_time=self.rng.uniform(1.2, 1.8),
            size=template.size,
            color=COLOR_EMERGENCY if emergency else color,
            is_emergency=emergency,
        )

    def create_pedestrian(self) -> Pedestrian:
        category = self.rng.choice(("adult", "elderly", "child"))
        direction: Direction = "top-to-bottom" if self.rng.random() > 0.5 else "bottom-to-top"
        low, high = PEDESTRIAN_SPEEDS[category]
        return Pedestrian(
            id=f"pedestrian-{next(self._pedestrian_ids)}",
            position=-5.0 if direction == "top-to-bottom" else 105.0,
            speed=self.rng.uniform(low, high),
            category=category,
            direction=direction,
        )

    def add_vehicle(self, vehicle: Vehicle) -> None:
        self.vehicles.append(vehicle)

    # motion -----------------------------------------------------------------

    def _advance_vehicle(self, vehicle: Vehicle, light: LightState) -> None:
        frame = vehicle.current
        speed = frame.speed
        position = frame.position
        was_waiting = vehicle.is_waiting_at_light
        stopped = vehicle.is_stopped
        waiting = was_waiting

        if light in ("red", "amber"):
            if APPROACH_WINDOW_START < position < STOP_LINE and not was_waiting:
                stopping_distance = vehicle.required_stopping_distance()
                distance_to_line = (STOP_LINE - position) * 2
                if distance_to_line <= stopping_distance + BRAKING_MARGIN and not stopped and speed > 0:
                    speed = max(0.0, speed - min(MAX_BRAKING_STEP, speed * BRAKING_FACTOR))
                    if speed <= 0.5 or position >= STOP_LINE - 1:
                        stopped = waiting = True
                        speed = 0.0
                        position = min(position, STOP_LINE)

            if CROSSWALK_START - 3 <= frame.position < CROSSWALK_END and not was_waiting:
                stopped = waiting = True
                speed = 0.0
                position = CROSSWALK_START - 3

            if was_waiting:
                position = min(position, STOP_LINE)
                speed = 0.0
        elif light == "green":
            if was_waiting:
                stopped = waiting = False
            if not stopped and speed < vehicle.original_speed:
                speed = min(vehicle.original_speed, speed + RESUME_ACCELERATION)

        if not stopped:
            position += speed * TICK_SECONDS

        vehicle.previous = frame
        vehicle.current = VehicleFrame(speed=speed, position=position)
        vehicle.is_stopped = stopped
        vehicle.is_waiting_at_light = waiting

    def _update_pedestrians(self, light: LightState) -> None:
        if light != "red":
            if self.pedestrians:
                logger.debug("Clearing %d pedestrians, light is %s", len(self.pedestrians), light)
            self.pedestrians = []
            return

        for pedestrian in self.pedestrians:
            pedestrian.advance()
        self.pedestrians = [p for p in self.pedestrians if p.in_corridor()]

        if len(self.pedestrians) < PEDESTRIAN_LIMIT and self.rng.random() < PEDESTRIAN_SPAWN_CHANCE:
            self.pedestrians.append(self.create_pedestrian())

    # detection --------------------------------------------------------------

    def _is_detectable(self, vehicle: Vehicle) -> bool:
        return not vehicle.is_waiting_at_light or vehicle.position <= CROSSWALK_START

    def detect(self, queue_analysis: Optional[QueueAnalysis] = None) -> DetectionResult:
        """Refresh the sensor zones and assess the nearest vehicle in the first zone."""

        for zone in self.sensor_zones:
            zone.active = False

        candidate: Optional[Vehicle] = None
        for vehicle in self.vehicles:
            if not self._is_detectable(vehicle):
                continue
            for index, zone in enumerate(self.sensor_zones):
                if zone.covers(vehicle.position):
                    zone.active = True
                    if index == 0 and (candidate is None or vehicle.position > candidate.position):
                        candidate = vehicle

        if candidate is None:
            return DetectionResult(queue_analysis=queue_analysis)
        return assess_vehicle(candidate, queue_analysis)

    def queue_inputs(self) -> List[QueueVehicle]:
        return [vehicle.to_queue_vehicle() for vehicle in self.vehicles]

    def analyze_queue(self) -> QueueAnalysis:
        return self.queue_analyzer.analyze(self.queue_inputs())

    def step(self, light: LightState) -> WorldSnapshot:
        """Advance the world by one tick under ``light``."""

        self.tick_count += 1
        for vehicle in self.vehicles:
            self._advance_vehicle(vehicle, light)
        self.vehicles = [v for v in self.vehicles if v.position < DESPAWN_POSITION]

        analysis = self.analyze_queue()
        detection = self.detect(analysis)
        self._update_pedestrians(light)

        spawn_chance = SPAWN_CHANCE_RED if light == "red" else SPAWN_CHANCE_DEFAULT
        if self.rng.random() < spawn_chance:
            vehicle = self.create_vehicle()
            self.vehicles.append(vehicle)
            logger.debug(
                "Spawned %s %s at %.0f km/h%s",
                vehicle.category,
                vehicle.id,
                vehicle.speed,
                " (emergency)" if vehicle.is_emergency else "",
            )

        self.last_snapshot = WorldSnapshot(
            light=light,
            vehicles=list(self.vehicles),
            pedestrians=list(self.pedestrians),
            sensor_zones=[zone.active for zone in self.sensor_zones],
            detection=detection,
            queue_analysis=analysis,
        )
        return self.last_snapshot
