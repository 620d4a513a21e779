"""Smart pedestrian crossing simulation package."""

from .config import CrossingConfig
from .controller import SignalController
from .system import CrossingRunner, CrossingSystem

__all__ = [
    "CrossingConfig",
    "CrossingRunner",
    "CrossingSystem",
    "SignalController",
]
