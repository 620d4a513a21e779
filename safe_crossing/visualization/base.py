"""Visualization strategy abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List


class VisualizationStrategy(ABC):
    """Render the current state of the crossing."""

    @abstractmethod
    def render(self, context: Dict[str, object]) -> None:
        """Render the crossing using the provided context."""

    @abstractmethod
    def close(self) -> None:
        """Dispose of any resources such as windows or surfaces."""

    def poll_actions(self) -> List[str]:
        """Return operator actions requested since the last call."""

        return []
