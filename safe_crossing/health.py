"""Simulated health monitoring of the crossing's hardware components."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, List, Literal, Sequence

from .simulation.physics import round_half_up
from .simulation.random_source import RandomSource

logger = logging.getLogger(__name__)

ComponentStatus = Literal["online", "degraded", "offline"]

ERROR_CHANCE = 0.02
ERROR_PENALTY = 5.0
MAX_DRIFT = 2.0


@dataclass(slots=True)
class SystemComponent:
    id: str
    name: str
    health: float
    backup: bool
    status: ComponentStatus = "online"
    error_count: int = 0
    last_check: float = 0.0


def default_components() -> List[SystemComponent]:
    return [
        SystemComponent("primary-ir", "Primary IR Sensors", 98, backup=True),
        SystemComponent("backup-ir", "Backup IR Sensors", 95, backup=False),
        SystemComponent("camera", "Vision System", 92, backup=True),
        SystemComponent("audio", "Audio System", 88, backup=False),
        SystemComponent("lights", "Traffic Lights", 100, backup=True),
        SystemComponent("network", "Network Comm", 85, backup=False),
        SystemComponent("power", "Power System", 96, backup=True),
        SystemComponent("control", "Main Controller", 99, backup=True),
    ]


def status_for(health: float) -> ComponentStatus:
    if health > 80:
        return "online"
    if health > 50:
        return "degraded"
    return "offline"


class HealthMonitor:
    """Random-walk component health with occasional faults."""

    def __init__(
        self,
        rng: RandomSource,
        clock: Callable[[], float],
        components: Sequence[SystemComponent] | None = None,
    ) -> None:
        self.rng = rng
        self.clock = clock
        self.components: List[SystemComponent] = list(components or default_components())

    def fluctuate(self) -> None:
        now = self.clock()
        for component in self.components:
            health = component.health + self.rng.uniform(-MAX_DRIFT, MAX_DRIFT)
            health = max(0.0, min(100.0, health))
            if self.rng.random() < ERROR_CHANCE:
                component.error_count += 1
                health -= ERROR_PENALTY
                logger.warning("%s reported an error (total %d)", component.name, component.error_count)

            previous = component.status
            component.health = float(round_half_up(max(0.0, health)))
            component.status = status_for(component.health)
            component.last_check = now
            if component.status != previous:
                logger.info("%s is now %s (%.0f%%)", component.name, component.status, component.health)

    def overall_health(self) -> int:
        if not self.components:
            return 0
        return round_half_up(sum(c.health for c in self.components) / len(self.components))

    def redundancy_ok(self) -> bool:
        critical = [c for c in self.components if c.backup]
        online = [c for c in critical if c.status == "online"]
        return len(online) >= len(critical) * 0.8

    def critical_issues(self) -> int:
        return sum(1 for c in self.components if c.status == "offline")
