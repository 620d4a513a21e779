"""Command line entry point for the smart pedestrian crossing simulation."""

from __future__ import annotations

import argparse
import logging

from safe_crossing import CrossingConfig, CrossingRunner, CrossingSystem
from safe_crossing.audio import AudioBackend, LoggingAudioBackend, PygameAudioBackend
from safe_crossing.system import HeadlessModeStrategy, ModeStrategy, VisualModeStrategy


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--mode", choices=["headless", "visual"], default="headless")
    parser.add_argument("--ticks", type=int, default=3000, help="Number of 100 ms steps to simulate")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--red-duration", type=float, default=25.0, help="Red phase in seconds (10-60)")
    parser.add_argument("--language", choices=["en", "fil"], default="en")
    parser.add_argument("--no-audio", action="store_true", help="Start with audio muted")
    parser.add_argument("--audio-backend", choices=["log", "pygame"], default="log")
    parser.add_argument(
        "--press-every",
        type=float,
        default=None,
        help="Headless mode: simulated seconds between pedestrian button presses",
    )
    parser.add_argument(
        "--announcement",
        nargs=3,
        action="append",
        default=[],
        metavar=("LANG", "KIND", "TEXT"),
        help="Replace an announcement, e.g. --announcement en wait \"Please wait\"",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


def build_audio_backend(name: str) -> AudioBackend:
    if name == "pygame":
        return PygameAudioBackend()
    return LoggingAudioBackend()


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = CrossingConfig(
        red_light_duration=args.red_duration,
        language=args.language,
        audio_enabled=not args.no_audio,
        seed=args.seed,
    )
    try:
        system = CrossingSystem(config, audio_backend=build_audio_backend(args.audio_backend))
        for language, kind, text in args.announcement:
            system.set_audio_message(language, kind, text)
    except ValueError as exc:
        parser.error(str(exc))

    if args.mode == "visual":
        from safe_crossing.visualization.crossing import CrossingVisualization

        strategy: ModeStrategy = VisualModeStrategy(system, CrossingVisualization(), ticks=args.ticks)
    else:
        strategy = HeadlessModeStrategy(system, args.ticks, press_every=args.press_every)
    CrossingRunner(system, strategy).run()


if __name__ == "__main__":
    main()
