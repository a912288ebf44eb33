"""
Shared fixtures for the trun test suite.
"""

import pytest

from trun.storage.dao import DAO
from trun.tracking.sources import PushSource
from trun.tracking.session import TrackingSession

# metres per degree of latitude on the haversine sphere
M_PER_DEG_LAT = 6371000.0 * 3.141592653589793 / 180


def north_of(coord, meters):
    """Point `meters` due north of `coord`."""
    return (coord[0] + meters / M_PER_DEG_LAT, coord[1])


class FakeClock:
    """Monotonic clock whose value the test sets by hand."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def source():
    return PushSource()


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def session(source, clock):
    return TrackingSession(source, clock=clock)


@pytest.fixture
def dao(tmp_path):
    d = DAO(str(tmp_path / "runs.sqlite"))
    yield d
    d.close()
