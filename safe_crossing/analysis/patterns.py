"""Traffic pattern learning, red-phase prediction and simulated weather."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Callable, Deque, Dict, List, Literal, Optional

import numpy as np

from ..simulation.physics import round_half_up
from ..simulation.random_source import RandomSource, make_random_source

logger = logging.getLogger(__name__)

WeatherCondition = Literal["clear", "rain", "fog", "snow"]

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

WEATHER_WEIGHTS = (("clear", 0.7), ("rain", 0.2), ("fog", 0.1))
VISIBILITY_RANGES = {
    "clear": (95.0, 100.0),
    "rain": (70.0, 90.0),
    "fog": (40.0, 70.0),
}

MIN_SAMPLES_PER_PATTERN = 5
FULL_CONFIDENCE_SAMPLES = 20
PREDICTION_CONFIDENCE_THRESHOLD = 0.3
HIGH_CONFIDENCE_THRESHOLD = 0.7
HEURISTIC_CONFIDENCE = 0.2


def day_of_week(moment: datetime) -> int:
    """Day index with Sunday as 0."""

    return (moment.weekday() + 1) % 7


def time_slot(day: int, hour: int) -> str:
    return f"{DAY_NAMES[day]}-{hour:02d}"


@dataclass(slots=True)
class TrafficDataPoint:
    timestamp: float
    hour: int
    day_of_week: int
    vehicle_count: float
    average_speed: float
    request_count: int
    weather_condition: WeatherCondition = "clear"
    visibility: float = 100.0

    @classmethod
    def at(cls, moment: datetime, **metrics: object) -> "TrafficDataPoint":
        """Build a data point stamped with ``moment``'s hour and weekday."""

        return cls(
            timestamp=moment.timestamp(),
            hour=moment.hour,
            day_of_week=day_of_week(moment),
            **metrics,  # type: ignore[arg-type]
        )

    @property
    def time_slot(self) -> str:
        return time_slot(self.day_of_week, self.hour)


@dataclass(slots=True)
class TrafficPattern:
    time_slot: str
    average_vehicle_count: float
    average_speed: float
    request_frequency: float
    optimal_red_duration: float
    confidence: float
    sample_count: int


@dataclass(slots=True)
class Prediction:
    optimal_duration: int
    confidence: float
    reasoning: str


@dataclass(slots=True)
class WeatherSample:
    condition: WeatherCondition
    visibility: int


@dataclass(slots=True)
class PatternSummary:
    total_patterns: int
    high_confidence_patterns: int
    recent_data_points: int


def optimal_red_duration(
    average_vehicle_count: float, request_frequency: float, average_speed: float
) -> float:
    duration = 20.0
    if average_vehicle_count > 15:
        duration += 5
    if request_frequency > 2:
        duration += 3
    if average_speed < 30:
        duration -= 2
    return max(15.0, min(35.0, duration))


def pattern_confidence(sample_count: int) -> float:
    return min(1.0, sample_count / FULL_CONFIDENCE_SAMPLES)


class PatternLearner:
    """Aggregate traffic samples per (weekday, hour) slot and predict red phases.

    Samples are kept in a bounded ring; once the ring is full the oldest sample
    is evicted.  Each time a sample arrives, every slot holding at least five
    retained samples has its pattern recomputed.
    """

    def __init__(
        self,
        max_data_points: int = 1000,
        *,
        rng: RandomSource | None = None,
        time_func: Callable[[], datetime] | None = None,
    ) -> None:
        if max_data_points < 1:
            raise ValueError("max_data_points must be at least 1")
        self.max_data_points = max_data_points
        self.rng = rng or make_random_source()
        self.time_func = time_func or datetime.now
        self.data: Deque[TrafficDataPoint] = deque(maxlen=max_data_points)
        self.patterns: Dict[str, TrafficPattern] = {}

    def add_data_point(self, point: TrafficDataPoint) -> None:
        self.data.append(point)
        self._update_patterns()

    def _group_by_time_slot(self) -> Dict[str, List[TrafficDataPoint]]:
        grouped: Dict[str, List[TrafficDataPoint]] = {}
        for point in self.data:
            grouped.setdefault(point.time_slot, []).append(point)
        return grouped

    def _update_patterns(self) -> None:
        for slot, points in self._group_by_time_slot().items():
            if len(points) >= MIN_SAMPLES_PER_PATTERN:
                self.patterns[slot] = self._calculate_pattern(slot, points)

    @staticmethod
    def _calculate_pattern(slot: str, points: List[TrafficDataPoint]) -> TrafficPattern:
        samples = np.array(
            [(p.vehicle_count, p.average_speed, p.request_count) for p in points], dtype=float
        )
        avg_count, avg_speed, avg_requests = (float(v) for v in samples.mean(axis=0))
        return TrafficPattern(
            time_slot=slot,
            average_vehicle_count=avg_count,
            average_speed=avg_speed,
            request_frequency=avg_requests,
            optimal_red_duration=optimal_red_duration(avg_count, avg_requests, avg_speed),
            confidence=pattern_confidence(len(points)),
            sample_count=len(points),
        )

    def get_current_prediction(self, now: Optional[datetime] = None) -> Prediction:
        """Predict the red phase for the current slot, or fall back to a heuristic."""

        now = now or self.time_func()
        day = day_of_week(now)
        pattern = self.patterns.get(time_slot(day, now.hour))

        if pattern is not None and pattern.confidence > PREDICTION_CONFIDENCE_THRESHOLD:
            return Prediction(
                optimal_duration=round_half_up(pattern.optimal_red_duration),
                confidence=pattern.confidence,
                reasoning=(
                    f"Based on {round_half_up(pattern.confidence * 100)}% historical data: "
                    f"{pattern.average_vehicle_count:.1f} avg vehicles/min, "
                    f"{pattern.request_frequency:.1f} pedestrian requests/hour"
                ),
            )

        rush_hour = 7 <= now.hour <= 9 or 17 <= now.hour <= 19
        weekend = day in (0, 6)
        if rush_hour and not weekend:
            duration = 30
        elif weekend:
            duration = 20
        else:
            duration = 25
        label = "Rush hour" if rush_hour else "Weekend" if weekend else "Normal"

        return Prediction(
            optimal_duration=duration,
            confidence=HEURISTIC_CONFIDENCE,
            reasoning=f"Heuristic: {label} traffic pattern",
        )

    def get_current_weather_condition(self) -> WeatherSample:
        """Draw a simulated weather condition and its visibility percentage."""

        draw = self.rng.random()
        condition: WeatherCondition = "clear"
        for name, weight in WEATHER_WEIGHTS:
            if draw < weight:
                condition = name  # type: ignore[assignment]
                break
            draw -= weight

        low, high = VISIBILITY_RANGES[condition]
        return WeatherSample(condition=condition, visibility=round_half_up(self.rng.uniform(low, high)))

    def get_pattern_summary(self) -> PatternSummary:
        high_confidence = sum(
            1 for pattern in self.patterns.values() if pattern.confidence > HIGH_CONFIDENCE_THRESHOLD
        )
        return PatternSummary(
            total_patterns=len(self.patterns),
            high_confidence_patterns=high_confidence,
            recent_data_points=len(self.data),
        )


@dataclass(slots=True)
class TrafficSampler:
    """Feed the learner with running traffic metrics on the learning cadence."""

    learner: PatternLearner
    rng: RandomSource
    time_func: Callable[[], datetime] = datetime.now
    learning: bool = True
    request_count: int = 0
    weather: WeatherSample = field(default_factory=lambda: WeatherSample("clear", 95))
    prediction: Prediction = field(
        default_factory=lambda: Prediction(25, HEURISTIC_CONFIDENCE, "Initializing...")
    )
    summary: PatternSummary = field(default_factory=lambda: PatternSummary(0, 0, 0))

    def record_request(self) -> None:
        self.request_count += 1

    def sample(self, vehicle_count: float, average_speed: float) -> Optional[TrafficDataPoint]:
        """Record one data point; returns ``None`` while learning is paused."""

        if not self.learning:
            return None

        now = self.time_func()
        self.weather = self.learner.get_current_weather_condition()
        point = TrafficDataPoint.at(
            now,
            vehicle_count=vehicle_count,
            average_speed=average_speed,
            request_count=self.request_count,
            weather_condition=self.weather.condition,
            visibility=float(self.weather.visibility),
        )
        self.learner.add_data_point(point)
        self.prediction = self.learner.get_current_prediction(now)
        self.summary = self.learner.get_pattern_summary()
        logger.debug(
            "Learning sample %s: weather=%s prediction=%ds (%.0f%%)",
            point.time_slot,
            self.weather.condition,
            self.prediction.optimal_duration,
            self.prediction.confidence * 100,
        )

        # background pedestrian demand between real button presses
        if self.rng.random() < 0.1:
            self.request_count += 1
        return point

    def can_apply(self) -> bool:
        return self.prediction.confidence >= PREDICTION_CONFIDENCE_THRESHOLD
