"""Pygame visualization for the simulated pedestrian crossing."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .base import VisualizationStrategy
from ..simulation.world import (
    CROSSWALK_END,
    CROSSWALK_START,
    DESPAWN_POSITION,
    SPAWN_POSITION,
    STOP_LINE,
    DetectionResult,
    WorldSnapshot,
    default_sensor_zones,
)

logger = logging.getLogger(__name__)

try:  # pragma: no cover - optional runtime dependency
    import pygame
except Exception as exc:  # pragma: no cover - degrade gracefully
    pygame = None  # type: ignore[assignment]
    _PYGAME_IMPORT_ERROR = exc
else:  # pragma: no cover - environment dependent
    _PYGAME_IMPORT_ERROR = None

COLOR_BACKGROUND = (25, 28, 33)
COLOR_ROAD = (72, 76, 83)
COLOR_ROAD_EDGE = (54, 58, 63)
COLOR_CROSSWALK = (225, 225, 225)
COLOR_STOP_LINE = (240, 240, 240)
COLOR_TEXT = (235, 235, 235)
COLOR_WARNING = (245, 158, 11)
COLOR_VEHICLE_GLASS = (210, 230, 245)
COLOR_PEDESTRIAN = (250, 204, 21)
COLOR_ZONE_IDLE = (0, 140, 220, 40)
COLOR_ZONE_ACTIVE = (0, 200, 120, 110)
COLOR_LIGHT_HOUSING = (32, 32, 36)
COLOR_LIGHT_OFF = (70, 70, 70)
COLOR_LIGHT_GREEN = (0, 200, 0)
COLOR_LIGHT_RED = (200, 0, 0)
COLOR_LIGHT_AMBER = (230, 160, 0)

VEHICLE_LENGTH = {"small": 36, "medium": 44, "large": 58}

KEY_ACTIONS = {
    "space": "press",
    "s": "safe",
    "u": "unsafe",
    "e": "toggle-system",
    "m": "toggle-audio",
    "l": "toggle-language",
    "p": "toggle-simulation",
    "a": "apply-prediction",
    "o": "override",
    "n": "toggle-learning",
    "c": "clear-logs",
    "q": "quit",
    "escape": "quit",
}


class CrossingVisualization(VisualizationStrategy):
    """Render the approach lane, crosswalk, signal and status using Pygame."""

    def __init__(self, width: int = 960, height: int = 540, fps: int = 10) -> None:
        if pygame is None:  # pragma: no cover - executed when dependency missing
            raise RuntimeError(
                "pygame is required for CrossingVisualization but could not be imported"
            ) from _PYGAME_IMPORT_ERROR

        pygame.init()
        self.surface = pygame.display.set_mode((width, height))
        pygame.display.set_caption("Smart Pedestrian Crossing - Simulation")
        self.clock = pygame.time.Clock()
        self.width = width
        self.height = height
        self.fps = fps

        self.lane_height = 90
        self.road_rect = pygame.Rect(0, height // 2 - self.lane_height // 2, width, self.lane_height)
        self.font_small = pygame.font.Font(None, 20)
        self.font_label = pygame.font.Font(None, 24)
        self.light_box = pygame.Rect(self.x_for(STOP_LINE) - 18, self.road_rect.top - 120, 36, 96)
        self._actions: List[str] = []

    def x_for(self, position: float) -> int:
        """Map a lane position onto the horizontal pixel axis."""

        span = DESPAWN_POSITION - SPAWN_POSITION
        return int((position - SPAWN_POSITION) / span * self.width)

    def _draw_road(self) -> None:
        pygame.draw.rect(self.surface, COLOR_ROAD_EDGE, self.road_rect.inflate(0, 12))
        pygame.draw.rect(self.surface, COLOR_ROAD, self.road_rect)

        left = self.x_for(CROSSWALK_START)
        right = self.x_for(CROSSWALK_END)
        stripe = 10
        y = self.road_rect.top
        while y < self.road_rect.bottom:
            pygame.draw.rect(
                self.surface,
                COLOR_CROSSWALK,
                pygame.Rect(left, y, right - left, min(stripe, self.road_rect.bottom - y)),
            )
            y += stripe * 2

        stop_x = self.x_for(STOP_LINE)
        pygame.draw.line(
            self.surface, COLOR_STOP_LINE, (stop_x, self.road_rect.top), (stop_x, self.road_rect.bottom), 3
        )

    def _draw_sensor_zones(self, snapshot: WorldSnapshot, bounds: List[tuple]) -> None:
        overlay = pygame.Surface((self.width, self.height), flags=pygame.SRCALPHA)
        for (start, end), active in zip(bounds, snapshot.sensor_zones):
            zone = pygame.Rect(
                self.x_for(start), self.road_rect.bottom + 8, self.x_for(end) - self.x_for(start), 10
            )
            pygame.draw.rect(overlay, COLOR_ZONE_ACTIVE if active else COLOR_ZONE_IDLE, zone)
        self.surface.blit(overlay, (0, 0))

    def _draw_vehicles(self, snapshot: WorldSnapshot) -> None:
        lane_y = self.road_rect.centery
        for vehicle in snapshot.vehicles:
            length = VEHICLE_LENGTH.get(vehicle.size, 36)
            front_x = self.x_for(vehicle.position)
            body = pygame.Rect(front_x - length, lane_y - 12, length, 24)
            pygame.draw.rect(self.surface, vehicle.color, body, border_radius=6)
            window = body.inflate(-18, -8)
            window.width = max(6, window.width)
            pygame.draw.rect(self.surface, COLOR_VEHICLE_GLASS, window, border_radius=4)
            if vehicle.is_emergency:
                pygame.draw.circle(self.surface, COLOR_LIGHT_RED, body.midtop, 4)

    def _draw_pedestrians(self, snapshot: WorldSnapshot) -> None:
        left = self.x_for(CROSSWALK_START)
        right = self.x_for(CROSSWALK_END)
        for index, pedestrian in enumerate(snapshot.pedestrians):
            x = left + (right - left) * (index + 1) // (len(snapshot.pedestrians) + 1)
            y = self.road_rect.top + int(pedestrian.position / 100 * self.road_rect.height)
            pygame.draw.circle(self.surface, COLOR_PEDESTRIAN, (x, y), 6)

    def _draw_light(self, state: str) -> None:
        pygame.draw.rect(self.surface, COLOR_LIGHT_HOUSING, self.light_box, border_radius=8)
        padding = 8
        radius = (self.light_box.width - padding * 2) // 2
        lamps = [
            ("red", COLOR_LIGHT_RED, self.light_box.top + padding + radius),
            ("amber", COLOR_LIGHT_AMBER, self.light_box.centery),
            ("green", COLOR_LIGHT_GREEN, self.light_box.bottom - padding - radius),
        ]
        for name, color, y in lamps:
            center = (self.light_box.centerx, y)
            pygame.draw.circle(self.surface, color if state == name else COLOR_LIGHT_OFF, center, radius)
            pygame.draw.circle(self.surface, COLOR_LIGHT_HOUSING, center, radius, 2)

        label = self.font_label.render(state.upper(), True, COLOR_TEXT)
        label_pos = label.get_rect()
        label_pos.midleft = (self.light_box.right + 8, self.light_box.centery)
        self.surface.blit(label, label_pos)

    def _draw_status(self, context: Dict[str, object]) -> None:
        detection: Optional[DetectionResult] = context.get("detection")  # type: ignore[assignment]
        prediction = context.get("prediction")
        weather = context.get("weather")
        lines = [
            f"t = {context.get('time', 0.0):.1f}s   phase {context.get('time_in_phase', 0.0):.0f}s   "
            f"health {context.get('health', 0)}%   critical {context.get('critical_issues', 0)}"
            f"{'' if context.get('redundancy_ok', True) else '   REDUNDANCY LOW'}"
            f"{'' if context.get('learning', True) else '   learning paused'}"
        ]
        if detection is not None and detection.has_vehicle:
            lines.append(
                f"Vehicle {detection.speed} km/h at {detection.distance} m "
                f"(needs {detection.required_distance} m) - {'SAFE' if detection.can_stop else 'UNSAFE'}"
            )
        else:
            lines.append("No vehicle in detection zone")
        if detection is not None and detection.queue_analysis is not None:
            analysis = detection.queue_analysis
            lines.append(f"Queue {analysis.queue_length}: {analysis.reasoning}")
        if prediction is not None:
            lines.append(
                f"Suggested red {prediction.optimal_duration}s "
                f"({prediction.confidence:.0%}) - {prediction.reasoning}"
            )
        if weather is not None:
            lines.append(f"Weather {weather.condition}, visibility {weather.visibility}%")
        if context.get("scenario") is not None:
            lines.append(f"Manual scenario: {context['scenario'].description}")

        for idx, text in enumerate(lines):
            color = COLOR_WARNING if "UNSAFE" in text else COLOR_TEXT
            self.surface.blit(self.font_small.render(text, True, color), (20, 20 + idx * 22))

        for idx, entry in enumerate(context.get("logs", [])):
            text = self.font_small.render(f"[{entry.type}] {entry.message}", True, COLOR_TEXT)
            self.surface.blit(text, (20, self.height - 120 + idx * 22))

    def poll_actions(self) -> List[str]:
        actions, self._actions = self._actions, []
        return actions

    def render(self, context: Dict[str, object]) -> None:
        for event in pygame.event.get():  # pragma: no cover - interactive loop
            if event.type == pygame.QUIT:
                self._actions.append("quit")
            elif event.type == pygame.KEYDOWN:
                action = KEY_ACTIONS.get(pygame.key.name(event.key))
                if action is not None:
                    self._actions.append(action)

        self.surface.fill(COLOR_BACKGROUND)
        self._draw_road()
        snapshot: Optional[WorldSnapshot] = context.get("snapshot")  # type: ignore[assignment]
        if snapshot is not None:
            self._draw_sensor_zones(snapshot, [(z.start, z.end) for z in default_sensor_zones()])
            self._draw_vehicles(snapshot)
            self._draw_pedestrians(snapshot)
        self._draw_light(str(context.get("light", "off")))
        self._draw_status(context)
        pygame.display.flip()
        self.clock.tick(self.fps)

    def close(self) -> None:
        if pygame is not None:
            pygame.quit()
