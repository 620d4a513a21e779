"""Pedestrian-actuated signal controller."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable, List, Literal, Optional

from .analysis.queue import ALLOW_CROSSING
from .clock import Scheduler, Timer
from .config import check_red_light_duration
from .simulation.world import DetectionResult, LightState

logger = logging.getLogger(__name__)

RequestOutcome = Literal["ignored", "in_progress", "delayed", "started"]
EventLevel = Literal["info", "warning", "success", "error"]


@dataclass(slots=True)
class SignalEvent:
    """Notification emitted on every controller state change."""

    kind: str
    light: LightState
    level: EventLevel
    message: str
    details: str = ""
    emergency: bool = False


@dataclass(slots=True)
class ControllerState:
    """Internal state representation used by :class:`SignalController`."""

    phase: LightState = "green"
    phase_start: float = 0.0
    enabled: bool = True
    request_active: bool = False
    pending: Optional[Timer] = None
    reenable: Optional[Timer] = None
    delayed_requests: int = 0
    completed_cycles: int = 0


def blocking_hazard(detection: Optional[DetectionResult]) -> bool:
    """True when a detected vehicle makes it unsafe to start the amber phase."""

    if detection is None or not detection.has_vehicle:
        return False
    if not detection.can_stop:
        return True
    analysis = detection.queue_analysis
    return analysis is not None and analysis.recommended_action != ALLOW_CROSSING


def delay_reason(detection: DetectionResult) -> str:
    analysis = detection.queue_analysis
    if analysis is None:
        return "unsafe vehicle approach"
    if analysis.has_emergency_vehicle:
        return "emergency vehicle priority"
    if analysis.recommended_action == "delay_crossing":
        return analysis.reasoning.lower()
    return "unsafe vehicle approach"


class SignalController:
    """State machine over ``green``, ``amber``, ``red`` and ``off``.

    The vehicle signal rests on green.  A pedestrian request moves it to a
    fixed amber phase, then red for the configured duration, then back to
    green.  A request made while a vehicle cannot safely stop, or while the
    queue analysis advises against crossing, is retried after a short delay
    (longer when an emergency vehicle is approaching) provided the light is
    still green.  Disabling the system shows ``off`` and suppresses requests.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        amber_time: float = 3.0,
        red_light_duration: float = 25.0,
        hazard_retry_delay: float = 3.0,
        emergency_retry_delay: float = 8.0,
        override_duration: float = 10.0,
        enabled: bool = True,
    ) -> None:
        self.scheduler = scheduler
        self.amber_time = amber_time
        self.red_light_duration = check_red_light_duration(red_light_duration)
        self.hazard_retry_delay = hazard_retry_delay
        self.emergency_retry_delay = emergency_retry_delay
        self.override_duration = override_duration
        self.state = ControllerState(phase_start=scheduler.clock(), enabled=enabled)
        self._listeners: List[Callable[[SignalEvent], None]] = []

    # observers --------------------------------------------------------------

    def add_listener(self, callback: Callable[[SignalEvent], None]) -> None:
        self._listeners.append(callback)

    def _emit(self, kind: str, level: EventLevel, message: str, details: str = "", **extra: bool) -> None:
        event = SignalEvent(
            kind=kind,
            light=self.displayed_light,
            level=level,
            message=message,
            details=details,
            **extra,
        )
        for callback in self._listeners:
            callback(event)

    # state ------------------------------------------------------------------

    @property
    def light(self) -> LightState:
        """Phase seen by approaching vehicles."""

        return self.state.phase

    @property
    def displayed_light(self) -> LightState:
        return self.state.phase if self.state.enabled else "off"

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    @property
    def request_active(self) -> bool:
        return self.state.request_active

    def time_in_phase(self) -> float:
        return self.scheduler.clock() - self.state.phase_start

    def _set_phase(self, phase: LightState) -> None:
        self.state.phase = phase
        self.state.phase_start = self.scheduler.clock()

    def _cancel_pending(self) -> None:
        if self.state.pending is not None:
            self.state.pending.cancel()
            self.state.pending = None

    def set_red_light_duration(self, seconds: float) -> None:
        self.red_light_duration = check_red_light_duration(seconds)
        logger.info("Red light duration set to %.0fs", seconds)

    # requests ---------------------------------------------------------------

    def request_crossing(self, detection: Optional[DetectionResult] = None) -> RequestOutcome:
        if not self.state.enabled:
            self._emit("ignored", "warning", "Button press ignored - system disabled")
            return "ignored"
        if self.state.request_active or self.state.phase != "green":
            logger.debug("Crossing request already in progress (%s)", self.state.phase)
            return "in_progress"

        self.state.request_active = True

        if detection is not None and blocking_hazard(detection):
            analysis = detection.queue_analysis
            emergency = analysis is not None and analysis.has_emergency_vehicle
            delay = self.emergency_retry_delay if emergency else self.hazard_retry_delay
            queue_length = analysis.queue_length if analysis is not None else 0
            self.state.delayed_requests += 1
            self._emit(
                "delayed",
                "warning",
                f"Crossing delayed: {delay_reason(detection)}",
                f"Vehicle speed: {detection.speed}km/h, Distance: {detection.distance}m, "
                f"Queue: {queue_length} vehicles",
                emergency=emergency,
            )
            self.state.pending = self.scheduler.call_later(delay, self._retry, label="crossing-retry")
            return "delayed"

        self._begin_amber()
        return "started"

    def _retry(self) -> None:
        self.state.pending = None
        if self.state.enabled and self.state.phase == "green":
            self._begin_amber()
        else:
            self.state.request_active = False

    def _begin_amber(self) -> None:
        self._set_phase("amber")
        self._emit("amber", "info", f"Traffic light changing to amber ({self.amber_time:g}s warning)")
        self.state.pending = self.scheduler.call_later(self.amber_time, self._begin_red, label="amber-end")

    def _begin_red(self) -> None:
        self._set_phase("red")
        duration = self.red_light_duration
        self._emit("red", "success", f"Red light activated for {duration:g} seconds", "Safe to cross")
        self.state.pending = self.scheduler.call_later(duration, self._return_to_green, label="red-end")

    def _return_to_green(self) -> None:
        self.state.pending = None
        self._set_phase("green")
        self.state.request_active = False
        self.state.completed_cycles += 1
        self._emit("green", "info", "Traffic light returned to green")

    # operator controls ------------------------------------------------------

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self.state.enabled:
            return
        # an explicit operator choice supersedes a pending override re-enable
        if self.state.reenable is not None:
            self.state.reenable.cancel()
            self.state.reenable = None
        if not enabled:
            self._cancel_pending()
            self._set_phase("green")
            self.state.request_active = False
        self.state.enabled = enabled
        self._emit(
            "enabled" if enabled else "disabled",
            "info" if enabled else "warning",
            f"System {'enabled' if enabled else 'disabled'}",
        )

    def manual_override(self) -> None:
        """Force green, disable the system and re-enable it after a delay."""

        self._cancel_pending()
        if self.state.reenable is not None:
            self.state.reenable.cancel()
        self._set_phase("green")
        self.state.request_active = False
        self.state.enabled = False
        self._emit("override", "warning", "Manual override activated by operator")
        self.state.reenable = self.scheduler.call_later(
            self.override_duration, self._end_override, label="override-end"
        )

    def _end_override(self) -> None:
        self.state.reenable = None
        self.state.enabled = True
        self._emit("enabled", "info", "System automatically re-enabled after override")
