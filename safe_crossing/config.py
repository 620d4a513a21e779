"""Configuration dataclasses for the smart pedestrian crossing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal


LanguageLiteral = Literal["en", "fil"]

LANGUAGES = ("en", "fil")
MESSAGE_KINDS = ("wait", "cross")

MIN_RED_LIGHT_DURATION = 10.0
MAX_RED_LIGHT_DURATION = 60.0


def default_audio_messages() -> Dict[str, Dict[str, str]]:
    return {
        "en": {
            "wait": "Do not cross. Traffic light is red. Please wait for the safe crossing signal.",
            "cross": (
                "Safe to cross. You have 20 seconds to cross safely. "
                "Traffic light is red for vehicles."
            ),
        },
        "fil": {
            "wait": "Huwag tumawid. Pula ang ilaw. Maghintay para sa signal na ligtas na tumawid.",
            "cross": (
                "Ligtas na tumawid. May 20 segundo kayo para tumawid nang ligtas. "
                "Pula ang ilaw para sa mga sasakyan."
            ),
        },
    }


@dataclass(slots=True)
class CrossingConfig:
    """Runtime configuration for :class:`safe_crossing.system.CrossingSystem`.

    Parameters
    ----------
    tick_seconds:
        Length of one simulation step. Vehicle physics assume 0.1 seconds.
    learning_interval, health_interval:
        Cadences (seconds) of the pattern learner sampling and the component
        health fluctuation.
    amber_time, red_light_duration:
        Signal phase lengths in seconds. The red phase is adjustable between
        10 and 60 seconds.
    hazard_retry_delay, emergency_retry_delay:
        Delay applied to a pedestrian request while the approach is unsafe,
        respectively while an emergency vehicle is present.
    override_duration:
        Seconds the system stays disabled after a manual operator override.
    seed:
        Optional seed for the random source driving spawning and weather.
    audio_messages:
        Announcement text per language, with ``"wait"`` and ``"cross"`` keys.
    """

    tick_seconds: float = 0.1
    learning_interval: float = 5.0
    health_interval: float = 3.0
    amber_time: float = 3.0
    red_light_duration: float = 25.0
    hazard_retry_delay: float = 3.0
    emergency_retry_delay: float = 8.0
    override_duration: float = 10.0
    system_enabled: bool = True
    audio_enabled: bool = True
    language: LanguageLiteral = "en"
    seed: int | None = None
    max_data_points: int = 1000
    max_log_entries: int = 20
    audio_messages: Dict[str, Dict[str, str]] = field(default_factory=default_audio_messages)

    def validate(self) -> None:
        """Raise :class:`ValueError` when a setting is outside its valid range."""

        if self.tick_seconds <= 0:
            raise ValueError("tick_seconds must be positive")
        if self.learning_interval <= 0 or self.health_interval <= 0:
            raise ValueError("cadence intervals must be positive")
        if self.amber_time < 0:
            raise ValueError("amber_time must be non-negative")
        check_red_light_duration(self.red_light_duration)
        if self.language not in LANGUAGES:
            raise ValueError(f"Unsupported language {self.language!r}; expected one of {LANGUAGES}")
        for language in LANGUAGES:
            missing = [kind for kind in MESSAGE_KINDS if kind not in self.audio_messages.get(language, {})]
            if missing:
                raise ValueError(f"Audio messages for {language!r} are missing {missing}")
        if self.max_data_points < 1:
            raise ValueError("max_data_points must be at least 1")

    def message(self, kind: str, language: str | None = None) -> str:
        """Return the ``"wait"`` or ``"cross"`` announcement for ``language``."""

        return self.audio_messages[language or self.language][kind]

    def set_message(self, language: str, kind: str, text: str) -> None:
        if language not in LANGUAGES or kind not in MESSAGE_KINDS:
            raise ValueError(f"Unknown announcement {language!r}/{kind!r}")
        if not text.strip():
            raise ValueError("Announcement text must not be empty")
        self.audio_messages.setdefault(language, {})[kind] = text


def check_red_light_duration(seconds: float) -> float:
    if not MIN_RED_LIGHT_DURATION <= seconds <= MAX_RED_LIGHT_DURATION:
        raise ValueError(
            f"red light duration must be between {MIN_RED_LIGHT_DURATION:g} and "
            f"{MAX_RED_LIGHT_DURATION:g} seconds, got {seconds:g}"
        )
    return seconds
