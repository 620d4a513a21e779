from pathlib import Path
import math
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from safe_crossing.analysis.queue import QueueAnalyzer
from safe_crossing.simulation.physics import (
    VehicleFrame,
    deceleration_rate,
    is_decelerating,
    projected_stopping_distance,
    required_stopping_distance,
    round_half_up,
)
from safe_crossing.simulation.world import (
    STOP_LINE,
    CrossingWorld,
    Pedestrian,
    Vehicle,
    assess_vehicle,
)
from conftest import ScriptedRandom


def make_world(rng=None):
    return CrossingWorld(QueueAnalyzer(), rng or ScriptedRandom())


def make_vehicle(position, speed, category="car", reaction_time=1.5, previous=None):
    return Vehicle(
        id=f"{category}-{position}",
        category=category,
        original_speed=speed,
        current=VehicleFrame(speed=speed, position=position),
        reaction_time=reaction_time,
        previous=previous,
    )


def test_stationary_vehicle_needs_only_safety_buffer():
    for category in ("car", "truck", "bus", "scooter"):
        assert required_stopping_distance(0, category, 1.8) == 5.0


def test_required_stopping_distance_uses_category_deceleration():
    # 36 km/h is 10 m/s; car braking at 7.0 * 0.9
    assert required_stopping_distance(36, "car", 1.5) == pytest.approx(15 + 100 / 12.6 + 5)
    assert required_stopping_distance(36, "scooter", 1.0) == pytest.approx(10 + 100 / 10.8 + 5)
    assert required_stopping_distance(36, "bus") > required_stopping_distance(36, "car")


def test_deceleration_helpers():
    previous = VehicleFrame(speed=36, position=40)
    current = VehicleFrame(speed=30, position=41)

    assert deceleration_rate(current, previous) == pytest.approx(6 / 3.6 / 0.1)
    assert deceleration_rate(current, None) == 0.0
    assert deceleration_rate(previous, current) == 0.0
    assert is_decelerating(current, previous)
    assert not is_decelerating(VehicleFrame(35.8, 41), previous)
    assert projected_stopping_distance(30, 0) == math.inf


def test_round_half_up():
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(1.49) == 1


def test_green_light_moves_vehicle_and_keeps_previous_frame():
    world = make_world()
    vehicle = make_vehicle(10, 30)
    world.add_vehicle(vehicle)

    world.step("green")

    assert vehicle.position == pytest.approx(13.0)
    assert vehicle.previous == VehicleFrame(speed=30, position=10)


def test_red_light_brakes_vehicle_before_stop_line():
    world = make_world()
    vehicle = make_vehicle(50, 30)
    world.add_vehicle(vehicle)

    world.step("red")
    assert vehicle.speed == 30  # still outside the braking window
    assert vehicle.position == pytest.approx(53.0)

    world.step("red")
    assert vehicle.speed == pytest.approx(24.0)
    assert vehicle.is_decelerating
    assert vehicle.deceleration_rate == pytest.approx(6 / 3.6 / 0.1)


def test_vehicle_never_passes_stop_line_on_red():
    world = make_world()
    vehicle = make_vehicle(50, 30)
    world.add_vehicle(vehicle)

    last_position = vehicle.position
    for _ in range(200):
        world.step("red")
        assert vehicle.position <= STOP_LINE
        assert vehicle.position >= last_position
        last_position = vehicle.position

    assert vehicle.is_waiting_at_light
    assert vehicle.speed == 0.0


def test_waiting_vehicle_resumes_gradually_on_green():
    world = make_world()
    vehicle = make_vehicle(50, 30)
    world.add_vehicle(vehicle)
    for _ in range(50):
        world.step("red")
    stopped_at = vehicle.position

    world.step("green")
    assert not vehicle.is_waiting_at_light
    assert vehicle.speed == pytest.approx(2.0)
    assert vehicle.position == pytest.approx(stopped_at + 0.2)

    world.step("green")
    assert vehicle.speed == pytest.approx(4.0)


def test_vehicle_inside_crosswalk_is_held_at_amber():
    world = make_world()
    vehicle = make_vehicle(72, 30)
    world.add_vehicle(vehicle)

    world.step("amber")

    assert vehicle.position == 67
    assert vehicle.speed == 0.0
    assert vehicle.is_waiting_at_light


def test_vehicles_removed_past_despawn_position():
    world = make_world()
    world.add_vehicle(make_vehicle(119, 30))

    snapshot = world.step("green")

    assert snapshot.vehicles == []


def test_pedestrians_only_walk_on_red():
    world = make_world()
    world.pedestrians = [
        Pedestrian("p1", 0.0, 2.0, "adult", "top-to-bottom"),
        Pedestrian("p2", -14.0, 2.0, "adult", "bottom-to-top"),
    ]

    world.step("red")
    assert [p.id for p in world.pedestrians] == ["p1"]
    assert world.pedestrians[0].position == pytest.approx(2.4)

    world.step("amber")
    assert world.pedestrians == []


def test_pedestrian_spawn_respects_limit():
    world = make_world(ScriptedRandom([0.0]))

    world.step("red")

    assert len(world.pedestrians) == 1
    pedestrian = world.pedestrians[0]
    assert (pedestrian.category, pedestrian.direction, pedestrian.position) == ("adult", "top-to-bottom", -5.0)

    crowded = make_world(ScriptedRandom(default=0.0))
    for _ in range(10):
        crowded.step("red")
    assert len(crowded.pedestrians) <= 3


def test_vehicle_spawn_chance_depends_on_light():
    quiet_on_red = make_world(ScriptedRandom([0.5, 0.01]))
    quiet_on_red.step("red")
    assert quiet_on_red.vehicles == []

    busy_on_green = make_world(ScriptedRandom([0.01]))
    busy_on_green.step("green")
    assert len(busy_on_green.vehicles) == 1
    spawned = busy_on_green.vehicles[0]
    assert (spawned.category, spawned.speed, spawned.position) == ("car", 25.0, -20.0)
    assert spawned.reaction_time == 1.2
    assert not spawned.is_emergency


def test_emergency_vehicle_spawns_faster_and_red():
    world = make_world(ScriptedRandom([0.0, 0.0]))

    world.step("green")

    vehicle = world.vehicles[0]
    assert vehicle.is_emergency
    assert vehicle.speed == 45.0
    assert vehicle.original_speed == 25.0
    assert vehicle.color == (255, 0, 0)


def test_detect_picks_nearest_vehicle_in_first_zone():
    world = make_world()
    world.add_vehicle(make_vehicle(38, 0))
    world.add_vehicle(make_vehicle(46, 0))

    detection = world.detect()

    assert detection.has_vehicle
    assert detection.distance == 68  # (80 - 46) * 2
    assert [zone.active for zone in world.sensor_zones] == [True, True, False]


def test_detect_without_vehicle_in_first_zone():
    world = make_world()
    world.add_vehicle(make_vehicle(58, 30))

    detection = world.detect()

    assert not detection.has_vehicle
    assert detection.can_stop
    assert [zone.active for zone in world.sensor_zones] == [False, True, True]


def test_fast_vehicle_in_zone_cannot_stop():
    world = make_world()
    world.add_vehicle(make_vehicle(41, 80))

    snapshot = world.step("green")

    assert snapshot.detection.has_vehicle
    assert snapshot.detection.speed == 80
    assert snapshot.detection.distance == 62
    assert not snapshot.detection.can_stop
    assert snapshot.sensor_zones[0]


def test_hard_braking_vehicle_is_judged_safe():
    braking = make_vehicle(55, 60, previous=VehicleFrame(speed=80, position=53))
    coasting = make_vehicle(55, 60)

    assert assess_vehicle(coasting).can_stop is False
    result = assess_vehicle(braking)
    assert result.is_decelerating
    assert result.deceleration_rate > 3
    assert result.can_stop is True


def test_queue_inputs_carry_stop_feasibility():
    world = make_world()
    world.add_vehicle(make_vehicle(45, 80))
    world.add_vehicle(make_vehicle(10, 20))

    inputs = {vehicle.position: vehicle.can_safely_stop for vehicle in world.queue_inputs()}

    assert inputs == {45: False, 10: True}
