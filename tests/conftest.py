import os
import tempfile

# Must be set before captcha_system.config.constants is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="captcha-logs-"))
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta

import pytest


def make_trail(points, start=1000, step=10):
    """Build trail dicts from (x, y) pairs with evenly spaced timestamps."""
    return [{"x": x, "y": y, "timestamp": start + i * step} for i, (x, y) in enumerate(points)]


@pytest.fixture
def human_trail():
    """15 samples: x steps alternate 8/12 px, y jitters by 1 px, 10 ms apart."""
    points = []
    x, y = 100.0, 50.0
    for i in range(15):
        points.append((x, y))
        x += 8 if i % 2 == 0 else 12
        y = 51.0 if y == 50.0 else 50.0
    return make_trail(points)


@pytest.fixture
def stationary_trail():
    """10 identical points with increasing timestamps."""
    return make_trail([(100.0, 50.0)] * 10)


@pytest.fixture
def straight_line_trail():
    """Perfectly horizontal drag at constant speed."""
    return make_trail([(100.0 + 10 * i, 50.0) for i in range(12)])


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2024, 3, 21, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()
