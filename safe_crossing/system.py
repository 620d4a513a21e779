"""High level orchestration of the smart pedestrian crossing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable, Deque, Dict, List, Optional

from .analysis.patterns import PatternLearner, TrafficSampler
from .analysis.queue import QueueAnalysis, QueueAnalyzer, optimize_signal_timing
from .audio import AudioAnnouncer, AudioBackend
from .clock import Cadence, Scheduler, SimulationClock, Timer
from .config import CrossingConfig
from .controller import RequestOutcome, SignalController, SignalEvent
from .health import HealthMonitor
from .scenarios import ManualScenario, load_manual_scenarios
from .simulation.physics import round_half_up
from .simulation.random_source import RandomSource, make_random_source
from .simulation.world import CrossingWorld, DetectionResult, LightState, WorldSnapshot
from .visualization.base import VisualizationStrategy

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(slots=True)
class LogEntry:
    """Operator-facing event shown in the system log."""

    timestamp: float
    type: str
    message: str
    details: str = ""


class CrossingSystem:
    """Own every component of the crossing and drive them from one clock.

    Components are built once here and handed to each other by reference.  A
    call to :meth:`tick` advances the logical clock by one step, fires due
    timers, moves the world, refreshes the safety assessment and services the
    slower learning and health cadences.
    """

    def __init__(
        self,
        config: CrossingConfig | None = None,
        *,
        rng: RandomSource | None = None,
        audio_backend: AudioBackend | None = None,
        wall_time: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or CrossingConfig()
        self.config.validate()

        self.rng = rng or make_random_source(self.config.seed)
        self.clock = SimulationClock()
        self.scheduler = Scheduler(self.clock)
        self.queue_analyzer = QueueAnalyzer()
        self.world = CrossingWorld(self.queue_analyzer, self.rng)
        self.learner = PatternLearner(
            self.config.max_data_points, rng=self.rng, time_func=wall_time
        )
        self.sampler = TrafficSampler(
            self.learner, self.rng, time_func=wall_time or datetime.now
        )
        self.controller = SignalController(
            self.scheduler,
            amber_time=self.config.amber_time,
            red_light_duration=self.config.red_light_duration,
            hazard_retry_delay=self.config.hazard_retry_delay,
            emergency_retry_delay=self.config.emergency_retry_delay,
            override_duration=self.config.override_duration,
            enabled=self.config.system_enabled,
        )
        self.announcer = AudioAnnouncer(
            self.scheduler, audio_backend, enabled=self.config.audio_enabled
        )
        self.health = HealthMonitor(self.rng, self.clock)
        self.scenarios: Dict[str, ManualScenario] = load_manual_scenarios()

        self.learning_cadence = Cadence("learning", self.config.learning_interval, self.clock)
        self.health_cadence = Cadence("health", self.config.health_interval, self.clock)

        self.language = self.config.language
        self.simulation_running = True
        self.detection = DetectionResult()
        self.queue_analysis: Optional[QueueAnalysis] = None
        self.snapshot: Optional[WorldSnapshot] = None
        self.average_vehicle_count = 5
        self.average_speed = 35
        self.logs: Deque[LogEntry] = deque(maxlen=self.config.max_log_entries)
        self._scenario: Optional[ManualScenario] = None
        self._scenario_timer: Optional[Timer] = None
        self._last_safety: Optional[bool] = None

        self.controller.add_listener(self._on_signal_event)
        self.add_log("success", "Smart pedestrian crossing initialized")
        self.add_log("info", "Audio system ready", f"Language: {self.language}")

    # logging ----------------------------------------------------------------

    def add_log(self, kind: str, message: str, details: str = "") -> LogEntry:
        entry = LogEntry(timestamp=self.clock(), type=kind, message=message, details=details)
        self.logs.appendleft(entry)
        if details:
            logger.log(_LOG_LEVELS.get(kind, logging.INFO), "%s (%s)", message, details)
        else:
            logger.log(_LOG_LEVELS.get(kind, logging.INFO), "%s", message)
        return entry

    def clear_logs(self) -> None:
        self.logs.clear()

    # state ------------------------------------------------------------------

    @property
    def light(self) -> LightState:
        return self.controller.displayed_light

    @property
    def active_scenario(self) -> Optional[ManualScenario]:
        return self._scenario

    def suggested_red_duration(self) -> int:
        """Red phase suggested by the live queue and current weather visibility."""

        analysis = self.queue_analysis or self.queue_analyzer.analyze([])
        return optimize_signal_timing(analysis, self.sampler.weather.visibility)

    # tick -------------------------------------------------------------------

    def tick(self) -> Optional[WorldSnapshot]:
        self.clock.advance(self.config.tick_seconds)
        self.scheduler.run_due()

        if self.simulation_running:
            self.snapshot = self.world.step(self.controller.light)
            self.queue_analysis = self.snapshot.queue_analysis
            self._handle_detection(self.snapshot.detection)

        for _ in range(self.learning_cadence.due()):
            self.sampler.sample(self.average_vehicle_count, self.average_speed)
        for _ in range(self.health_cadence.due()):
            self.health.fluctuate()
        return self.snapshot

    def run(self, ticks: int) -> Optional[WorldSnapshot]:
        for _ in range(ticks):
            self.tick()
        return self.snapshot

    def _handle_detection(self, detection: DetectionResult) -> None:
        self.detection = detection
        self.average_vehicle_count = round_half_up(
            (self.average_vehicle_count + (1 if detection.has_vehicle else 0)) / 2
        )
        if detection.has_vehicle:
            self.average_speed = round_half_up((self.average_speed + detection.speed) / 2)

        if not detection.has_vehicle:
            self._last_safety = None
            return

        analysis = detection.queue_analysis
        safe = detection.can_stop and (
            analysis is None or analysis.recommended_action == "allow_crossing"
        )
        logger.debug(
            "Detection speed=%dkm/h distance=%dm/%dm decel=%.1fm/s2 queue=%s",
            detection.speed,
            detection.distance,
            detection.required_distance,
            detection.deceleration_rate,
            analysis.queue_length if analysis is not None else 0,
        )
        if safe == self._last_safety:
            return
        self._last_safety = safe

        status = "SAFE" if detection.can_stop else "UNSAFE"
        decel = " (DECELERATING)" if detection.is_decelerating else ""
        emergency = " | EMERGENCY" if analysis is not None and analysis.has_emergency_vehicle else ""
        queue = f" | Queue: {analysis.queue_length} vehicles" if analysis is not None else ""
        self.add_log(
            "success" if safe else "warning",
            f"Vehicle detected: {status}{decel}{emergency}",
            f"Speed: {detection.speed}km/h, Distance: {detection.distance}m/"
            f"{detection.required_distance}m, Decel: {detection.deceleration_rate:.1f}m/s2{queue}",
        )

    # signal events ----------------------------------------------------------

    def _on_signal_event(self, event: SignalEvent) -> None:
        self.add_log(event.level, event.message, event.details)
        if event.kind == "amber":
            self.announcer.play_beep(600, 300)
        elif event.kind == "red":
            self.announcer.play_audio_cue(
                self.config.message("cross", self.language), self.language, True
            )
        elif event.kind == "delayed":
            self.announcer.play_audio_cue(
                self.config.message("wait", self.language), self.language, False
            )

    # operator and pedestrian inputs ----------------------------------------

    def press_button(self) -> RequestOutcome:
        if self.controller.enabled:
            self.add_log(
                "info",
                "Pedestrian call button pressed",
                f"Language: {self.language}, Audio: {'ON' if self.announcer.enabled else 'OFF'}",
            )
            self.sampler.record_request()
            self.announcer.play_beep(1000, 150)
        return self.controller.request_crossing(self.detection)

    def run_scenario(self, name: str) -> ManualScenario:
        """Pause the simulator and hold a fixed vehicle reading for a while."""

        try:
            scenario = self.scenarios[name]
        except KeyError:
            raise ValueError(
                f"Unknown scenario {name!r}; expected one of {sorted(self.scenarios)}"
            ) from None

        if self._scenario_timer is not None:
            self._scenario_timer.cancel()
        self.simulation_running = False
        self._scenario = scenario
        self.detection = scenario.detection()
        level = "success" if scenario.can_stop else "warning"
        self.add_log(
            level,
            f"Manual scenario: {scenario.description}",
            f"Speed: {scenario.speed}km/h, Distance: {scenario.distance}m",
        )
        self._scenario_timer = self.scheduler.call_later(
            scenario.duration, self._end_scenario, label=f"scenario-{name}"
        )
        return scenario

    def _end_scenario(self) -> None:
        self._scenario = None
        self._scenario_timer = None
        self.detection = DetectionResult(queue_analysis=self.queue_analysis)
        self.add_log("info", "Vehicle cleared intersection")
        self.simulation_running = True

    def toggle_simulation(self) -> bool:
        self.simulation_running = not self.simulation_running
        logger.info("Simulation %s", "resumed" if self.simulation_running else "paused")
        return self.simulation_running

    def set_enabled(self, enabled: bool) -> None:
        self.controller.set_enabled(enabled)

    def set_audio_enabled(self, enabled: bool) -> None:
        self.announcer.set_enabled(enabled)
        self.add_log("info", f"Audio {'enabled' if enabled else 'disabled'}")

    def toggle_language(self) -> str:
        self.language = "fil" if self.language == "en" else "en"
        self.add_log("info", f"Language set to {self.language}")
        return self.language

    def set_red_light_duration(self, seconds: float) -> None:
        self.controller.set_red_light_duration(seconds)

    def set_learning(self, enabled: bool) -> None:
        """Pause or resume pattern learning; resuming restarts the learning cadence."""

        if enabled and not self.sampler.learning:
            self.learning_cadence.reset()
        self.sampler.learning = enabled
        self.add_log("info", f"Pattern learning {'resumed' if enabled else 'paused'}")

    def set_audio_message(self, language: str, kind: str, text: str) -> None:
        self.config.set_message(language, kind, text)
        self.add_log("info", f"Updated {kind} announcement", f"Language: {language}")

    def apply_optimal_duration(self) -> bool:
        """Adopt the learner's prediction when it is confident enough."""

        prediction = self.sampler.prediction
        if not self.sampler.can_apply():
            logger.info(
                "Prediction confidence %.0f%% too low to apply", prediction.confidence * 100
            )
            return False
        self.controller.set_red_light_duration(prediction.optimal_duration)
        self.add_log(
            "info",
            f"Applied learned red light duration of {prediction.optimal_duration}s",
            prediction.reasoning,
        )
        return True

    def manual_override(self) -> None:
        self.controller.manual_override()

    def context(self) -> Dict[str, object]:
        """State handed to a visualization strategy."""

        return {
            "snapshot": self.snapshot,
            "light": self.light,
            "detection": self.detection,
            "prediction": self.sampler.prediction,
            "weather": self.sampler.weather,
            "health": self.health.overall_health(),
            "redundancy_ok": self.health.redundancy_ok(),
            "critical_issues": self.health.critical_issues(),
            "learning": self.sampler.learning,
            "time_in_phase": self.controller.time_in_phase(),
            "request_active": self.controller.request_active,
            "scenario": self._scenario,
            "logs": list(self.logs)[:5],
            "time": self.clock(),
        }


class ModeStrategy(ABC):
    """Strategy pattern implementation for running different modes."""

    def __init__(self, system: CrossingSystem) -> None:
        self.system = system

    @abstractmethod
    def run(self) -> None:
        """Execute the strategy main loop."""

    @abstractmethod
    def close(self) -> None:
        """Clean up resources used by the strategy."""


class HeadlessModeStrategy(ModeStrategy):
    """Run a fixed number of ticks as fast as possible.

    ``press_every`` simulates a pedestrian pressing the button at a fixed
    interval of simulated seconds.
    """

    def __init__(self, system: CrossingSystem, ticks: int, press_every: float | None = None) -> None:
        super().__init__(system)
        self.ticks = ticks
        self.press_cadence = (
            Cadence("button", press_every, system.clock) if press_every else None
        )
        self.outcomes: List[RequestOutcome] = []

    def run(self) -> None:
        for _ in range(self.ticks):
            self.system.tick()
            if self.press_cadence is not None and self.press_cadence.due():
                self.outcomes.append(self.system.press_button())
        summary = self.system.sampler.summary
        logger.info(
            "Ran %d ticks: %d crossing cycles, %d delayed requests, %d patterns (%d samples)",
            self.ticks,
            self.system.controller.state.completed_cycles,
            self.system.controller.state.delayed_requests,
            summary.total_patterns,
            summary.recent_data_points,
        )

    def close(self) -> None:
        self.system.announcer.set_enabled(False)


class VisualModeStrategy(ModeStrategy):
    """Run in real time and render every tick through a visualization."""

    def __init__(
        self,
        system: CrossingSystem,
        visualization: VisualizationStrategy,
        ticks: int | None = None,
    ) -> None:
        super().__init__(system)
        self.visualization = visualization
        self.ticks = ticks
        self._running = True

    def run(self) -> None:
        count = 0
        while self._running and (self.ticks is None or count < self.ticks):
            self.system.tick()
            for action in self.visualization.poll_actions():
                self._dispatch(action)
            self.visualization.render(self.system.context())
            count += 1

    def _dispatch(self, action: str) -> None:
        if action == "quit":
            self._running = False
        elif action == "press":
            self.system.press_button()
        elif action in self.system.scenarios:
            self.system.run_scenario(action)
        elif action == "toggle-system":
            self.system.set_enabled(not self.system.controller.enabled)
        elif action == "toggle-audio":
            self.system.set_audio_enabled(not self.system.announcer.enabled)
        elif action == "toggle-language":
            self.system.toggle_language()
        elif action == "toggle-simulation":
            self.system.toggle_simulation()
        elif action == "apply-prediction":
            self.system.apply_optimal_duration()
        elif action == "override":
            self.system.manual_override()
        elif action == "toggle-learning":
            self.system.set_learning(not self.system.sampler.learning)
        elif action == "clear-logs":
            self.system.clear_logs()

    def close(self) -> None:
        self._running = False
        self.system.announcer.set_enabled(False)
        self.visualization.close()


class CrossingRunner:
    """Main entry point pairing a :class:`CrossingSystem` with a run strategy."""

    def __init__(self, system: CrossingSystem, strategy: ModeStrategy) -> None:
        self.system = system
        self.strategy = strategy

    def run(self) -> None:
        """Run the configured strategy until finished or interrupted."""

        try:
            self.strategy.run()
        except KeyboardInterrupt:
            logger.info("Crossing simulation interrupted by user")
        finally:
            self.strategy.close()
