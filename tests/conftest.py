# tests/conftest.py

"""
Shared fixtures for the microgrid tests.

Provides a fixed-sequence random source, default parameters and
hand-built forecasts.
"""

from datetime import datetime

import pytest

from microgrid.models import ForecastPoint
from microgrid.system_model import SystemParams


class SequenceRandom:
    """Random source returning a fixed, repeating sequence of values in [0, 1)."""

    def __init__(self, values=(0.5,)):
        self.values = list(values)
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


def make_forecast(solar_w, demand_w, start_hour=0):
    """Build a forecast with constant solar/demand, one point per hour."""
    return [
        ForecastPoint(hour=f"{(start_hour + i) % 24}:00", solar_w=solar_w, demand_w=demand_w, confidence_pct=95)
        for i in range(24)
    ]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def params():
    return SystemParams()


@pytest.fixture
def mid_rng():
    """Every draw sits at the middle of its range."""
    return SequenceRandom([0.5])


@pytest.fixture
def weekday_noon():
    return datetime(2024, 6, 12, 12, 0, 0)  # Wednesday


@pytest.fixture
def saturday_noon():
    return datetime(2024, 6, 15, 12, 0, 0)
