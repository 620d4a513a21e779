from datetime import datetime, timedelta
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from safe_crossing.analysis.patterns import (
    PatternLearner,
    TrafficDataPoint,
    TrafficSampler,
    day_of_week,
    optimal_red_duration,
    time_slot,
)
from conftest import ScriptedRandom

MONDAY_8AM = datetime(2024, 1, 8, 8, 0)
MONDAY_NOON = datetime(2024, 1, 8, 12, 0)
SATURDAY_8AM = datetime(2024, 1, 13, 8, 0)
SATURDAY_NOON = datetime(2024, 1, 13, 12, 0)


def sample(moment=MONDAY_8AM, vehicle_count=20.0, average_speed=25.0, request_count=3):
    return TrafficDataPoint.at(
        moment,
        vehicle_count=vehicle_count,
        average_speed=average_speed,
        request_count=request_count,
    )


def test_time_slot_keys_use_day_name_and_hour():
    assert day_of_week(MONDAY_8AM) == 1
    assert day_of_week(datetime(2024, 1, 7)) == 0
    assert time_slot(1, 8) == "Monday-08"
    assert sample().time_slot == "Monday-08"


def test_optimal_red_duration_rules():
    assert optimal_red_duration(20, 3, 25) == 26
    assert optimal_red_duration(20, 3, 40) == 28
    assert optimal_red_duration(0, 0, 10) == 18
    assert optimal_red_duration(10, 1, 35) == 20


def test_pattern_appears_after_five_samples():
    learner = PatternLearner(rng=ScriptedRandom())
    for _ in range(4):
        learner.add_data_point(sample())
    assert learner.patterns == {}

    learner.add_data_point(sample())
    pattern = learner.patterns["Monday-08"]
    assert pattern.confidence == pytest.approx(0.25)
    assert pattern.sample_count == 5
    assert pattern.average_vehicle_count == pytest.approx(20.0)
    assert pattern.optimal_red_duration == 26


def test_confidence_grows_monotonically_and_caps():
    learner = PatternLearner(rng=ScriptedRandom())
    confidences = []
    for _ in range(25):
        learner.add_data_point(sample())
        pattern = learner.patterns.get("Monday-08")
        if pattern is not None:
            confidences.append(pattern.confidence)

    assert confidences == sorted(confidences)
    assert confidences[15] == 1.0  # 20th sample
    assert confidences[-1] == 1.0


def test_ring_buffer_evicts_oldest_sample():
    learner = PatternLearner(max_data_points=1000, rng=ScriptedRandom())
    points = [sample(MONDAY_8AM + timedelta(seconds=i)) for i in range(1001)]
    for point in points:
        learner.add_data_point(point)

    assert len(learner.data) == 1000
    assert learner.data[0].timestamp == points[1].timestamp
    assert learner.get_pattern_summary().recent_data_points == 1000


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        PatternLearner(max_data_points=0)


def test_prediction_from_confident_pattern():
    learner = PatternLearner(rng=ScriptedRandom())
    for _ in range(10):
        learner.add_data_point(sample())

    prediction = learner.get_current_prediction(MONDAY_8AM)

    assert prediction.optimal_duration == 26
    assert prediction.confidence == pytest.approx(0.5)
    assert prediction.reasoning == (
        "Based on 50% historical data: 20.0 avg vehicles/min, 3.0 pedestrian requests/hour"
    )


def test_low_confidence_pattern_falls_back_to_heuristic():
    learner = PatternLearner(rng=ScriptedRandom())
    for _ in range(6):
        learner.add_data_point(sample())

    prediction = learner.get_current_prediction(MONDAY_8AM)

    assert prediction.optimal_duration == 30
    assert prediction.confidence == pytest.approx(0.2)
    assert prediction.reasoning == "Heuristic: Rush hour traffic pattern"


@pytest.mark.parametrize(
    "moment, duration, label",
    [
        (MONDAY_8AM, 30, "Rush hour"),
        (MONDAY_NOON, 25, "Normal"),
        (SATURDAY_NOON, 20, "Weekend"),
        (SATURDAY_8AM, 20, "Rush hour"),
        (datetime(2024, 1, 10, 18, 30), 30, "Rush hour"),
    ],
)
def test_heuristic_prediction(moment, duration, label):
    prediction = PatternLearner(rng=ScriptedRandom()).get_current_prediction(moment)

    assert prediction.optimal_duration == duration
    assert prediction.reasoning == f"Heuristic: {label} traffic pattern"


def test_prediction_uses_time_func_by_default():
    learner = PatternLearner(rng=ScriptedRandom(), time_func=lambda: SATURDAY_NOON)

    assert learner.get_current_prediction().optimal_duration == 20


@pytest.mark.parametrize(
    "draw, condition, visibility",
    [(0.5, "clear", 95), (0.75, "rain", 70), (0.95, "fog", 40)],
)
def test_weather_draw(draw, condition, visibility):
    learner = PatternLearner(rng=ScriptedRandom([draw]))

    weather = learner.get_current_weather_condition()

    assert weather.condition == condition
    assert weather.visibility == visibility


def test_pattern_summary_counts_high_confidence_slots():
    learner = PatternLearner(rng=ScriptedRandom())
    for _ in range(15):
        learner.add_data_point(sample(MONDAY_8AM))
    for _ in range(5):
        learner.add_data_point(sample(MONDAY_NOON))

    summary = learner.get_pattern_summary()

    assert summary.total_patterns == 2
    assert summary.high_confidence_patterns == 1
    assert summary.recent_data_points == 20


def test_sampler_records_points_and_background_requests():
    learner = PatternLearner(rng=ScriptedRandom([0.5]))
    sampler = TrafficSampler(learner, ScriptedRandom([0.05]), time_func=lambda: MONDAY_NOON)
    sampler.record_request()

    point = sampler.sample(vehicle_count=4, average_speed=32)

    assert point is not None
    assert point.request_count == 1
    assert point.weather_condition == "clear"
    assert sampler.request_count == 2
    assert sampler.prediction.reasoning == "Heuristic: Normal traffic pattern"
    assert sampler.summary.recent_data_points == 1
    assert not sampler.can_apply()


def test_paused_sampler_records_nothing():
    learner = PatternLearner(rng=ScriptedRandom())
    sampler = TrafficSampler(learner, ScriptedRandom(), time_func=lambda: MONDAY_NOON, learning=False)

    assert sampler.sample(vehicle_count=4, average_speed=32) is None
    assert len(learner.data) == 0


def test_weather_visibility_rounds_halves_up():
    class MidpointRandom(ScriptedRandom):
        def uniform(self, a, b):
            return a + 0.5

    learner = PatternLearner(rng=MidpointRandom([0.5]))

    assert learner.get_current_weather_condition().visibility == 96  # 95.5 rounds up
