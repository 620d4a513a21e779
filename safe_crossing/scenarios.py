"""Manual test scenarios that temporarily replace the simulated detection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .simulation.world import DetectionResult


@dataclass(frozen=True)
class ManualScenario:
    """A fixed vehicle reading held for ``duration`` seconds."""

    name: str
    description: str
    speed: int
    distance: int
    can_stop: bool
    duration: float

    def __post_init__(self) -> None:  # type: ignore[override]
        if self.duration <= 0:
            raise ValueError("A scenario must last a positive number of seconds")
        if self.speed < 0 or self.distance < 0:
            raise ValueError("Scenario speed and distance must be non-negative")

    def detection(self) -> DetectionResult:
        return DetectionResult(
            has_vehicle=True,
            speed=self.speed,
            distance=self.distance,
            can_stop=self.can_stop,
        )


def load_manual_scenarios() -> Dict[str, ManualScenario]:
    """Return the operator's scenario buttons keyed by name."""

    safe = ManualScenario(
        name="safe",
        description="Vehicle can stop safely",
        speed=25,
        distance=45,
        can_stop=True,
        duration=5.0,
    )
    unsafe = ManualScenario(
        name="unsafe",
        description="Vehicle cannot stop safely",
        speed=55,
        distance=20,
        can_stop=False,
        duration=3.0,
    )
    return {scenario.name: scenario for scenario in (safe, unsafe)}
