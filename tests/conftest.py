from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

# a Tuesday, so the week started two days earlier on Sunday the 18th
NOW = datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def windows() -> "TimeWindows":
    """
    UTC windows anchored to NOW so bucket assignment does not depend
    on the host clock or zone.
    """
    return local_time_ranges(now=NOW, tz=timezone.utc)


@pytest.fixture()
def clock(windows: "TimeWindows") -> "Clock":
    return lambda: windows


@pytest.fixture()
def now() -> "datetime":
    return NOW
