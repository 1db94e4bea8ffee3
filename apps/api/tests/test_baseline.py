"""
Unit tests for the Baseline Estimator

Covers the minimum-data rules, quality filtering, band derivation and
versioned supersession of baselines.
"""

import pytest
from dataclasses import replace
from datetime import timedelta

from services.readiness import (
    BaselineEstimator,
    BaselineHistory,
    InsufficientDataError,
    InsufficientQualityError,
    Metric,
    SampleQuality,
    ValidationError,
)
from tests.readiness_helpers import COMPUTED_AT, START_DATE, build_samples


@pytest.fixture
def estimator():
    return BaselineEstimator()


class TestMinimumData:
    """A baseline needs 14 valid days."""

    def test_too_few_days_raises_with_days_remaining(self, estimator):
        samples = build_samples(hrv=[55] * 10)

        with pytest.raises(InsufficientDataError) as exc:
            estimator.compute("a1", Metric.HRV, samples)

        assert exc.value.days_remaining == 4
        assert "4 more days" in exc.value.message
        assert exc.value.error_code == "INSUFFICIENT_DATA"

    def test_exactly_fourteen_days_is_enough(self, estimator):
        baseline = estimator.compute("a1", Metric.HRV, build_samples(hrv=[55] * 14), COMPUTED_AT)
        assert baseline.sample_days == 14

    def test_days_without_the_metric_do_not_count(self, estimator):
        """Samples that only carry resting HR are not HRV days."""
        samples = build_samples(hrv=[55] * 10, rhr=[50] * 20)

        with pytest.raises(InsufficientDataError):
            estimator.compute("a1", "hrv", samples)

    def test_poor_quality_days_raise_quality_error(self, estimator):
        samples = build_samples(hrv=[55] * 13) + build_samples(
            hrv=[55] * 8, start=START_DATE + timedelta(days=13), quality=SampleQuality.POOR
        )

        with pytest.raises(InsufficientQualityError) as exc:
            estimator.compute("a1", Metric.HRV, samples)

        assert exc.value.valid_days == 13
        assert exc.value.rejected_days == 8


class TestQualityFiltering:
    """Unusable samples are dropped before statistics are computed."""

    def test_high_artifact_samples_are_dropped(self, estimator):
        clean = build_samples(hrv=[50] * 16)
        noisy = build_samples(hrv=[90] * 2, start=START_DATE + timedelta(days=16), artifact_percent=15.0)

        baseline = estimator.compute("a1", Metric.HRV, clean + noisy, COMPUTED_AT)

        assert baseline.mean == 50.0
        assert baseline.rejected_days == 2

    def test_implausible_values_are_dropped(self, estimator):
        samples = build_samples(hrv=[50] * 15 + [350])

        baseline = estimator.compute("a1", Metric.HRV, samples, COMPUTED_AT)

        assert baseline.mean == 50.0
        assert baseline.sample_days == 15

    def test_artifacts_do_not_apply_to_resting_hr(self, estimator):
        samples = build_samples(rhr=[48] * 14, artifact_percent=20.0)

        baseline = estimator.compute("a1", Metric.RHR, samples, COMPUTED_AT)

        assert baseline.sample_days == 14

    def test_high_rejection_rate_warns(self, estimator):
        samples = build_samples(hrv=[50] * 14) + build_samples(
            hrv=[50] * 7, start=START_DATE + timedelta(days=14), quality=SampleQuality.POOR
        )

        baseline = estimator.compute("a1", Metric.HRV, samples, COMPUTED_AT)

        assert "high_rejection_rate" in [w.code for w in baseline.warnings]


class TestBands:
    """Threshold bands sit below the mean for HRV and above it for RHR."""

    def test_hrv_bands_below_mean(self, estimator, steady_hrv_samples):
        b = estimator.compute("a1", Metric.HRV, steady_hrv_samples, COMPUTED_AT)

        assert b.mean > b.normal_threshold > b.yellow_threshold > b.red_threshold
        assert b.normal_threshold == pytest.approx(b.mean - 0.5 * b.std_dev, abs=0.02)
        assert b.red_threshold == pytest.approx(b.mean - 1.5 * b.std_dev, abs=0.02)

    def test_rhr_bands_above_mean(self, estimator):
        samples = build_samples(rhr=[48, 52] * 7)

        b = estimator.compute("a1", Metric.RHR, samples, COMPUTED_AT)

        assert b.mean == 50.0
        assert b.mean < b.normal_threshold < b.yellow_threshold < b.red_threshold

    @pytest.mark.parametrize("values", [
        [50] * 14,
        [50, 50.1] * 7,
        [40, 80] * 10,
    ])
    def test_yellow_strictly_between_normal_and_red(self, estimator, values):
        for metric in (Metric.HRV, Metric.RHR):
            kwargs = {"hrv": values} if metric == Metric.HRV else {"rhr": values}
            b = estimator.compute("a1", metric, build_samples(**kwargs), COMPUTED_AT)
            assert min(b.normal_threshold, b.red_threshold) < b.yellow_threshold < max(b.normal_threshold, b.red_threshold)

    def test_identical_values_get_minimum_spread(self, estimator):
        b = estimator.compute("a1", Metric.RHR, build_samples(rhr=[50] * 14), COMPUTED_AT)

        assert b.std_dev == 1.0
        assert b.coefficient_of_variation == 0.0
        assert (b.normal_threshold, b.yellow_threshold, b.red_threshold) == (50.5, 51.0, 51.5)

    def test_uses_most_recent_window(self, estimator):
        samples = build_samples(hrv=[100] * 9 + [50] * 21)

        b = estimator.compute("a1", Metric.HRV, samples, COMPUTED_AT)

        assert b.mean == 50.0
        assert b.window_start == START_DATE + timedelta(days=9)
        assert b.sample_days == 21

    def test_unstable_baseline_warns(self, estimator):
        b = estimator.compute("a1", Metric.HRV, build_samples(hrv=[30, 80] * 8), COMPUTED_AT)

        assert b.is_stable is False
        assert "unstable_baseline" in [w.code for w in b.warnings]

    def test_compute_is_idempotent(self, estimator, steady_hrv_samples):
        first = estimator.compute("a1", Metric.HRV, steady_hrv_samples, COMPUTED_AT)
        second = estimator.compute("a1", Metric.HRV, steady_hrv_samples, COMPUTED_AT)

        assert first == second
        assert first.to_dict() == second.to_dict()


class TestValidation:

    def test_duplicate_dates_rejected(self, estimator):
        samples = build_samples(hrv=[50] * 14)
        samples.append(samples[-1])

        with pytest.raises(ValidationError):
            estimator.compute("a1", Metric.HRV, samples)

    def test_unknown_metric_rejected(self, estimator):
        with pytest.raises(ValidationError):
            estimator.compute("a1", "vo2max", build_samples(hrv=[50] * 14))

    def test_non_numeric_value_rejected(self, estimator):
        samples = build_samples(hrv=[50] * 13 + ["fifty"])

        with pytest.raises(ValidationError):
            estimator.compute("a1", Metric.HRV, samples)


class TestBaselineHistory:
    """Baselines are superseded, never modified."""

    def test_supersede_assigns_versions(self, estimator, steady_hrv_samples):
        history = BaselineHistory()
        first = history.supersede(estimator.compute("a1", Metric.HRV, steady_hrv_samples, COMPUTED_AT))
        later = estimator.compute(
            "a1", Metric.HRV, build_samples(hrv=[60] * 14), COMPUTED_AT + timedelta(days=35)
        )
        second = history.supersede(later)

        assert (first.version, second.version) == (1, 2)
        assert history.current("a1", Metric.HRV) == second
        assert history.versions("a1", "hrv") == (first, second)
        assert first.mean != second.mean

    def test_cannot_supersede_with_older_baseline(self, estimator, steady_hrv_samples):
        history = BaselineHistory()
        current = estimator.compute("a1", Metric.HRV, steady_hrv_samples, COMPUTED_AT)
        history.supersede(current)

        with pytest.raises(ValidationError):
            history.supersede(replace(current, computed_at=COMPUTED_AT - timedelta(days=1)))

    def test_metrics_are_tracked_separately(self, estimator):
        history = BaselineHistory()
        history.supersede(estimator.compute("a1", Metric.RHR, build_samples(rhr=[50] * 14), COMPUTED_AT))

        assert history.current("a1", Metric.HRV) is None
        assert history.current("a1", Metric.RHR).version == 1

    def test_needs_recalculation_after_six_weeks(self, estimator, steady_hrv_samples):
        history = BaselineHistory()
        baseline = estimator.compute("a1", Metric.HRV, steady_hrv_samples, COMPUTED_AT)

        assert history.needs_recalculation(None, COMPUTED_AT) is True
        assert history.needs_recalculation(baseline, COMPUTED_AT + timedelta(days=30)) is False
        assert history.needs_recalculation(baseline, COMPUTED_AT + timedelta(days=43)) is True
