"""
Shared fixtures.
"""
from datetime import datetime

import pytest

from ambient_tracker.models import SensorMap


@pytest.fixture
def sensors():
    return SensorMap.parse([
        "tempf,B,Temperature",
        "humidity,C,Humidity",
    ])


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2026, 3, 1, 12, 0, 5)
