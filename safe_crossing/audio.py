"""Accessible audio announcements for the crossing.

Each announcement is an explicit sequence of tones, pauses and speech run on
the simulation :class:`~safe_crossing.clock.Scheduler`.  Sequences can be
cancelled, and muting the announcer cancels everything in flight.  Backend
failures are logged and never propagate to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import List, Optional, Sequence, Union

import numpy as np

from .clock import Scheduler, Timer

logger = logging.getLogger(__name__)

try:  # pragma: no cover - optional runtime dependency
    import pygame
except Exception as exc:  # pragma: no cover - degrade gracefully
    pygame = None  # type: ignore[assignment]
    _PYGAME_IMPORT_ERROR = exc
else:  # pragma: no cover - environment dependent
    _PYGAME_IMPORT_ERROR = None


@dataclass(frozen=True, slots=True)
class Tone:
    frequency: float
    duration_ms: float


@dataclass(frozen=True, slots=True)
class Pause:
    seconds: float


@dataclass(frozen=True, slots=True)
class Speech:
    text: str
    language: str = "en"


AudioCue = Union[Tone, Pause, Speech]


def language_tag(language: str) -> str:
    return "fil-PH" if language == "fil" else "en-US"


def beep_pattern(frequency: float = 800, duration_ms: float = 200, fast: bool = False) -> List[AudioCue]:
    """A single tone, or a tone followed by two shorter repeats when ``fast``."""

    cues: List[AudioCue] = [Tone(frequency, duration_ms)]
    if fast:
        gap = duration_ms * 0.8 / 1000
        repeat = duration_ms * 0.6
        cues += [Pause(gap), Tone(frequency, repeat), Pause(gap), Tone(frequency, repeat)]
    return cues


def crossing_cue(message: str, language: str) -> List[AudioCue]:
    # speech starts 0.8 s after the first tone
    return beep_pattern(800, 200, fast=True) + [Pause(0.48), Speech(message, language)]


def waiting_cue(message: str, language: str) -> List[AudioCue]:
    # slow tones one second apart, speech 1.2 s after the first
    return [Tone(400, 500), Pause(1.0), Tone(400, 500), Pause(0.2), Speech(message, language)]


class AudioBackend(ABC):
    """Output device for tones and speech."""

    @abstractmethod
    def play_tone(self, frequency: float, duration_ms: float) -> None:
        """Start a tone; must not block."""

    @abstractmethod
    def speak(self, text: str, language_tag: str) -> None:
        """Announce ``text`` in the given BCP 47 language."""

    def stop(self) -> None:
        """Silence any output still playing."""


class LoggingAudioBackend(AudioBackend):
    """Headless backend that reports audio through the logging module."""

    def play_tone(self, frequency: float, duration_ms: float) -> None:
        logger.debug("Tone %.0f Hz for %.0f ms", frequency, duration_ms)

    def speak(self, text: str, language_tag: str) -> None:
        logger.info("Announcement [%s]: %s", language_tag, text)


class PygameAudioBackend(LoggingAudioBackend):
    """Play synthesized sine tones through ``pygame.mixer``.

    Speech is still reported through logging; there is no speech engine.
    """

    def __init__(self, sample_rate: int = 22050, volume: float = 0.1) -> None:
        if pygame is None:  # pragma: no cover - executed when dependency missing
            raise RuntimeError(
                "pygame is required for PygameAudioBackend but could not be imported"
            ) from _PYGAME_IMPORT_ERROR

        pygame.mixer.init(frequency=sample_rate, size=-16, channels=2, buffer=512)
        self.sample_rate = sample_rate
        self.volume = volume

    def synthesize(self, frequency: float, duration_ms: float) -> "np.ndarray":
        """Return a stereo int16 sine burst with an exponential fade-out."""

        samples = max(1, int(self.sample_rate * duration_ms / 1000))
        t = np.arange(samples) / self.sample_rate
        envelope = self.volume * np.power(0.01 / self.volume, t / max(t[-1], 1e-6))
        wave = np.sin(2 * np.pi * frequency * t) * envelope
        mono = (wave * 32767).astype(np.int16)
        return np.column_stack((mono, mono))

    def play_tone(self, frequency: float, duration_ms: float) -> None:  # pragma: no cover - needs audio device
        sound = pygame.sndarray.make_sound(self.synthesize(frequency, duration_ms))
        sound.play()

    def stop(self) -> None:  # pragma: no cover - needs audio device
        pygame.mixer.stop()


@dataclass(slots=True)
class AnnouncementSequence:
    """Run a list of cues in order, waiting on :class:`Pause` steps."""

    cues: Sequence[AudioCue]
    scheduler: Scheduler
    backend: AudioBackend
    label: str = "announcement"
    _index: int = 0
    _timer: Optional[Timer] = None
    cancelled: bool = False
    finished: bool = False

    def start(self) -> "AnnouncementSequence":
        self._advance()
        return self

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def done(self) -> bool:
        return self.cancelled or self.finished

    def _advance(self) -> None:
        self._timer = None
        while not self.cancelled and self._index < len(self.cues):
            cue = self.cues[self._index]
            self._index += 1
            if isinstance(cue, Pause):
                self._timer = self.scheduler.call_later(cue.seconds, self._advance, label=self.label)
                return
            self._play(cue)
        if not self.cancelled:
            self.finished = True

    def _play(self, cue: AudioCue) -> None:
        try:
            if isinstance(cue, Tone):
                self.backend.play_tone(cue.frequency, cue.duration_ms)
            elif isinstance(cue, Speech):
                self.backend.speak(cue.text, language_tag(cue.language))
        except Exception as exc:
            logger.warning("Audio playback error in %s: %s", self.label, exc)


class AudioAnnouncer:
    """Schedule tones and spoken announcements; silent when disabled."""

    def __init__(
        self,
        scheduler: Scheduler,
        backend: AudioBackend | None = None,
        *,
        enabled: bool = True,
    ) -> None:
        self.scheduler = scheduler
        self.backend = backend or LoggingAudioBackend()
        self.enabled = enabled
        self._sequences: List[AnnouncementSequence] = []
        self._announcement: Optional[AnnouncementSequence] = None

    def _run(self, cues: Sequence[AudioCue], label: str) -> Optional[AnnouncementSequence]:
        if not self.enabled:
            return None
        self._sequences = [seq for seq in self._sequences if not seq.done]
        sequence = AnnouncementSequence(cues, self.scheduler, self.backend, label=label)
        self._sequences.append(sequence)
        return sequence.start()

    def play_beep(
        self, frequency: float = 800, duration_ms: float = 200, fast: bool = False
    ) -> Optional[AnnouncementSequence]:
        return self._run(beep_pattern(frequency, duration_ms, fast), label=f"beep-{frequency:.0f}")

    def play_audio_cue(
        self, message: str, language: str = "en", is_crossing_signal: bool = False
    ) -> Optional[AnnouncementSequence]:
        """Play the crossing or waiting tone pattern, then speak ``message``.

        A new announcement replaces one still in progress.
        """

        if not self.enabled:
            return None
        if self._announcement is not None and not self._announcement.done:
            self._announcement.cancel()
        cues = crossing_cue(message, language) if is_crossing_signal else waiting_cue(message, language)
        self._announcement = self._run(cues, label="cross" if is_crossing_signal else "wait")
        return self._announcement

    def active(self) -> int:
        return sum(1 for seq in self._sequences if not seq.done)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if enabled:
            return
        for sequence in self._sequences:
            sequence.cancel()
        self._sequences.clear()
        self._announcement = None
        try:
            self.backend.stop()
        except Exception as exc:
            logger.warning("Failed to stop audio backend: %s", exc)
