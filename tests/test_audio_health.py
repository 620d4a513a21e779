from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from safe_crossing.audio import (
    AudioAnnouncer,
    AudioBackend,
    Pause,
    Speech,
    Tone,
    beep_pattern,
    crossing_cue,
)
from safe_crossing.clock import Scheduler, SimulationClock
from safe_crossing.config import CrossingConfig
from safe_crossing.health import HealthMonitor, SystemComponent, status_for
from safe_crossing.scenarios import ManualScenario, load_manual_scenarios
from conftest import ScriptedRandom


class RecordingBackend(AudioBackend):
    def __init__(self, fail_tones=False):
        self.calls = []
        self.stopped = False
        self.fail_tones = fail_tones

    def play_tone(self, frequency, duration_ms):
        if self.fail_tones:
            raise OSError("no audio device")
        self.calls.append(("tone", frequency, duration_ms))

    def speak(self, text, language_tag):
        self.calls.append(("speak", text, language_tag))

    def stop(self):
        self.stopped = True


def build_announcer(backend=None):
    clock = SimulationClock()
    scheduler = Scheduler(clock)
    backend = backend or RecordingBackend()
    return clock, scheduler, AudioAnnouncer(scheduler, backend), backend


def run_for(clock, scheduler, seconds, step=0.1):
    for _ in range(int(round(seconds / step))):
        clock.advance(step)
        scheduler.run_due()


def test_fast_beep_pattern_shape():
    assert beep_pattern(800, 200, fast=True) == [
        Tone(800, 200),
        Pause(0.16),
        Tone(800, 120),
        Pause(0.16),
        Tone(800, 120),
    ]
    assert crossing_cue("go", "fil")[-1] == Speech("go", "fil")


def test_crossing_announcement_timeline():
    clock, scheduler, announcer, backend = build_announcer()

    sequence = announcer.play_audio_cue("Safe to cross", "fil", is_crossing_signal=True)

    assert backend.calls == [("tone", 800, 200)]
    run_for(clock, scheduler, 0.5)
    assert [call[0] for call in backend.calls] == ["tone", "tone", "tone"]
    run_for(clock, scheduler, 0.5)
    assert backend.calls[-1] == ("speak", "Safe to cross", "fil-PH")
    assert sequence.done
    assert announcer.active() == 0


def test_waiting_announcement_speaks_after_second_tone():
    clock, scheduler, announcer, backend = build_announcer()

    announcer.play_audio_cue("Please wait", "en")
    run_for(clock, scheduler, 1.0)
    assert backend.calls == [("tone", 400, 500), ("tone", 400, 500)]
    run_for(clock, scheduler, 0.2)
    assert backend.calls[-1] == ("speak", "Please wait", "en-US")


def test_muting_cancels_scheduled_speech():
    clock, scheduler, announcer, backend = build_announcer()
    announcer.play_audio_cue("Safe to cross", "en", is_crossing_signal=True)

    announcer.set_enabled(False)
    run_for(clock, scheduler, 2.0)

    assert backend.stopped
    assert all(call[0] == "tone" for call in backend.calls)
    assert announcer.play_beep() is None
    assert announcer.play_audio_cue("ignored") is None


def test_new_announcement_replaces_previous():
    clock, scheduler, announcer, backend = build_announcer()
    first = announcer.play_audio_cue("first", "en")
    second = announcer.play_audio_cue("second", "en")

    run_for(clock, scheduler, 2.0)

    assert first.cancelled
    assert second.finished
    spoken = [call[1] for call in backend.calls if call[0] == "speak"]
    assert spoken == ["second"]


def test_backend_failures_do_not_break_sequence():
    clock, scheduler, announcer, backend = build_announcer(RecordingBackend(fail_tones=True))

    announcer.play_audio_cue("Safe to cross", "en", is_crossing_signal=True)
    run_for(clock, scheduler, 1.0)

    assert backend.calls == [("speak", "Safe to cross", "en-US")]


def test_health_drift_and_status_thresholds():
    monitor = HealthMonitor(ScriptedRandom(), clock=lambda: 3.0)

    monitor.fluctuate()

    by_id = {c.id: c for c in monitor.components}
    assert by_id["primary-ir"].health == 96
    assert by_id["network"].health == 83
    assert by_id["network"].last_check == 3.0

    monitor.fluctuate()
    monitor.fluctuate()
    assert by_id["network"].health == 79
    assert by_id["network"].status == "degraded"


def test_health_error_applies_penalty():
    monitor = HealthMonitor(ScriptedRandom([0.0]), clock=lambda: 0.0)

    monitor.fluctuate()

    first = monitor.components[0]
    assert first.error_count == 1
    assert first.health == 91
    assert monitor.components[1].error_count == 0


def test_health_aggregates():
    components = [
        SystemComponent("a", "A", 90, backup=True),
        SystemComponent("b", "B", 40, backup=True, status="offline"),
        SystemComponent("c", "C", 70, backup=False, status="degraded"),
    ]
    monitor = HealthMonitor(ScriptedRandom(), clock=lambda: 0.0, components=components)

    assert monitor.overall_health() == 67
    assert not monitor.redundancy_ok()
    assert monitor.critical_issues() == 1
    assert (status_for(81), status_for(80), status_for(50)) == ("online", "degraded", "offline")


def test_manual_scenarios():
    scenarios = load_manual_scenarios()

    unsafe = scenarios["unsafe"].detection()
    assert (unsafe.speed, unsafe.distance, unsafe.can_stop) == (55, 20, False)
    assert unsafe.queue_analysis is None
    assert scenarios["safe"].duration == 5.0
    with pytest.raises(ValueError):
        ManualScenario("broken", "", 10, 10, True, duration=0)


def test_config_validation_and_messages():
    config = CrossingConfig()
    config.validate()
    assert config.message("cross").startswith("Safe to cross")
    assert config.message("wait", "fil").startswith("Huwag tumawid")

    with pytest.raises(ValueError):
        CrossingConfig(red_light_duration=9).validate()
    with pytest.raises(ValueError):
        CrossingConfig(language="de").validate()
    with pytest.raises(ValueError):
        CrossingConfig(audio_messages={"en": {"wait": "Wait", "cross": "Cross"}}).validate()
    with pytest.raises(ValueError):
        CrossingConfig(
            audio_messages={"en": {"wait": "Wait", "cross": "Cross"}, "fil": {"wait": "Hintay"}}
        ).validate()

    config.set_message("fil", "wait", "Maghintay po")
    assert config.message("wait", "fil") == "Maghintay po"
    with pytest.raises(ValueError):
        config.set_message("de", "wait", "Warten")
    with pytest.raises(ValueError):
        config.set_message("en", "cross", "   ")


def test_overall_health_rounds_halves_up():
    components = [
        SystemComponent("a", "A", 94, backup=True),
        SystemComponent("b", "B", 95, backup=True),
    ]
    monitor = HealthMonitor(ScriptedRandom(), clock=lambda: 0.0, components=components)

    assert monitor.overall_health() == 95


def test_component_health_rounds_halves_up():
    class HalfStepRandom(ScriptedRandom):
        def uniform(self, a, b):
            return 0.5

    component = SystemComponent("a", "A", 90, backup=True)
    monitor = HealthMonitor(HalfStepRandom(), clock=lambda: 0.0, components=[component])

    monitor.fluctuate()

    assert component.health == 91  # 90.5 rounds up
