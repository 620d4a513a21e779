from collections import deque
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest


class ScriptedRandom:
    """Deterministic stand-in for :class:`random.Random`.

    ``random()`` replays the scripted values and then returns ``default``;
    ``uniform`` returns the lower bound and ``choice`` the first element.
    """

    def __init__(self, values=(), default=0.99):
        self.values = deque(values)
        self.default = default

    def random(self):
        if self.values:
            return self.values.popleft()
        return self.default

    def uniform(self, a, b):
        return a

    def choice(self, seq):
        return seq[0]


@pytest.fixture
def quiet_random():
    """A random source that never spawns anything."""

    return ScriptedRandom()
