"""
Pytest configuration and fixtures

The readiness pipeline is pure computation, so fixtures build samples and
baselines in memory; no database or network is involved.
"""
import pytest
import sys
import os

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.readiness import (
    CompositeReadinessAggregator,
    DailyMetricAssessor,
    Metric,
    MonitoringConfig,
)
from tests.readiness_helpers import build_samples, make_baseline


@pytest.fixture
def config():
    return MonitoringConfig()


@pytest.fixture
def composite_for(hrv_baseline, rhr_baseline):
    """
    Build a CompositeReadiness from raw values.

    hrv / rhr are today's readings, assessed against the hrv_baseline and
    rhr_baseline fixtures; every other keyword goes straight to aggregate().
    """
    assessor = DailyMetricAssessor()
    aggregator = CompositeReadinessAggregator()

    def _composite(hrv=None, rhr=None, **factors):
        return aggregator.aggregate(
            hrv=assessor.assess_hrv(hrv, hrv_baseline) if hrv is not None else None,
            rhr=assessor.assess_rhr(rhr, rhr_baseline) if rhr is not None else None,
            **factors,
        )
    return _composite


@pytest.fixture
def hrv_baseline():
    """HRV baseline: mean 52 ms, SD 6 -> normal 49, yellow 46, red 43."""
    return make_baseline(Metric.HRV, mean=52.0, std_dev=6.0)


@pytest.fixture
def rhr_baseline():
    """RHR baseline: mean 50 bpm, SD 2 -> normal 51, yellow 52, red 53."""
    return make_baseline(Metric.RHR, mean=50.0, std_dev=2.0)


@pytest.fixture
def good_wellness():
    return {
        "sleep_quality": 8,
        "sleep_hours": 8,
        "muscle_soreness": 2,
        "energy_level": 8,
        "mood": 8,
        "stress": 2,
        "injury_pain": 1,
    }


@pytest.fixture
def steady_hrv_samples():
    """21 days alternating around 55 ms."""
    return build_samples(hrv=[55 + (3 if i % 2 else -3) for i in range(21)])
