"""
Baseline Estimator

Builds an athlete's personal HRV / resting-HR baseline from 14-21 days of
morning measurements, and derives the alert bands the daily assessment
compares against:

    HRV (lower is worse)            RHR (higher is worse)
    normal = mean - 0.5 SD          normal = mean + 0.5 SD
    yellow = mean - 1.0 SD          yellow = mean + 1.0 SD
    red    = mean - 1.5 SD          red    = mean + 1.5 SD

Samples flagged poor quality, with too many artifacts, or outside the
physiologically plausible range are discarded before any statistics are
computed. Baselines are immutable snapshots; recomputing one (every 4-6
weeks, or on demand) supersedes the previous version via BaselineHistory.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.errors import (
    DataQualityWarning,
    InsufficientDataError,
    InsufficientQualityError,
    ValidationError,
)
from services.readiness.models import Baseline, DailySample, Metric, SampleQuality
from services.readiness.stats import as_number, mean, sample_std

logger = logging.getLogger(__name__)


def coerce_metric(metric) -> Metric:
    try:
        return Metric(metric)
    except ValueError:
        raise ValidationError(f"Unknown metric: {metric!r}", field="metric")


class BaselineEstimator:
    """Compute mean / SD baselines and threshold bands for one metric."""

    def __init__(self, config: Optional[MonitoringConfig] = None):
        self.config = (config or DEFAULT_CONFIG).baseline

    def plausible_range(self, metric: Metric) -> Tuple[float, float]:
        if metric == Metric.HRV:
            return self.config.hrv_plausible_range
        return self.config.rhr_plausible_range

    def rejection_reason(self, sample: DailySample, metric: Metric) -> Optional[str]:
        """Why a sample is unusable for a baseline, or None if it is fine."""
        value = sample.value_for(metric)
        low, high = self.plausible_range(metric)

        if sample.quality == SampleQuality.POOR:
            return "poor_quality"
        if (
            metric == Metric.HRV
            and sample.artifact_percent is not None
            and sample.artifact_percent > self.config.max_artifact_percent
        ):
            return "artifacts"
        if not low <= value <= high:
            return "implausible_value"
        return None

    def compute(
        self,
        athlete_id: str,
        metric,
        samples: Sequence[DailySample],
        computed_at: Optional[datetime] = None,
    ) -> Baseline:
        """
        Compute a baseline from ordered daily samples.

        Raises:
            InsufficientDataError: fewer than min_days samples carry the metric.
            InsufficientQualityError: enough samples, but too few survive filtering.
            ValidationError: malformed samples (duplicate dates, non-numeric values).
        """
        metric = coerce_metric(metric)
        cfg = self.config

        seen = set()
        candidates: List[DailySample] = []
        for sample in sorted(samples, key=lambda s: s.date):
            if sample.date in seen:
                raise ValidationError(
                    f"Duplicate sample for {sample.date.isoformat()}", field="samples"
                )
            seen.add(sample.date)
            if as_number(sample.value_for(metric), f"{metric.value} value") is not None:
                candidates.append(sample)

        candidates = candidates[-cfg.window_days:]
        if len(candidates) < cfg.min_days:
            raise InsufficientDataError(len(candidates), cfg.min_days, metric=metric.value)

        valid: List[DailySample] = []
        rejected: Dict[str, int] = {}
        for sample in candidates:
            reason = self.rejection_reason(sample, metric)
            if reason:
                rejected[reason] = rejected.get(reason, 0) + 1
                logger.debug(f"Baseline {athlete_id}/{metric.value}: dropped {sample.date} ({reason})")
            else:
                valid.append(sample)

        rejected_days = len(candidates) - len(valid)
        if len(valid) < cfg.min_days:
            raise InsufficientQualityError(len(valid), rejected_days, cfg.min_days, metric=metric.value)

        values = [float(s.value_for(metric)) for s in valid]
        avg = mean(values)
        raw_std = sample_std(values)
        std = max(raw_std, cfg.min_std_dev)
        cv = raw_std / avg if avg > 0 else 0.0

        # HRV bands sit below the mean, RHR bands above it
        sign = -1.0 if metric == Metric.HRV else 1.0
        normal = avg + sign * cfg.normal_sd_multiple * std
        yellow = avg + sign * cfg.yellow_sd_multiple * std
        red = avg + sign * cfg.red_sd_multiple * std

        warnings: List[DataQualityWarning] = []
        max_cv = cfg.hrv_max_stable_cv if metric == Metric.HRV else cfg.rhr_max_stable_cv
        is_stable = cv <= max_cv
        if not is_stable:
            warnings.append(DataQualityWarning(
                code="unstable_baseline",
                message=(
                    f"{metric.value.upper()} varies {cv * 100:.0f}% day to day "
                    f"(>{max_cv * 100:.0f}%). Readiness scores will be less reliable; "
                    f"keep measurement time and position consistent."
                ),
                field=metric.value,
                value=round(cv, 4),
            ))

        rejection_ratio = rejected_days / len(candidates)
        if rejection_ratio > cfg.max_rejection_ratio:
            warnings.append(DataQualityWarning(
                code="high_rejection_rate",
                message=(
                    f"{rejected_days} of {len(candidates)} measurements were discarded "
                    f"({', '.join(sorted(rejected))})"
                ),
                field=metric.value,
                value=round(rejection_ratio, 4),
            ))

        baseline = Baseline(
            athlete_id=str(athlete_id),
            metric=metric,
            computed_at=computed_at or datetime.now(timezone.utc),
            mean=round(avg, 2),
            std_dev=round(std, 2),
            coefficient_of_variation=round(cv, 4),
            normal_threshold=round(normal, 2),
            yellow_threshold=round(yellow, 2),
            red_threshold=round(red, 2),
            sample_days=len(valid),
            rejected_days=rejected_days,
            window_start=valid[0].date,
            window_end=valid[-1].date,
            is_stable=is_stable,
            warnings=tuple(warnings),
        )

        logger.info(
            f"Baseline {athlete_id}/{metric.value}: mean={baseline.mean}, sd={baseline.std_dev}, "
            f"cv={cv:.3f}, days={len(valid)}, rejected={rejected_days}"
        )
        return baseline


class BaselineHistory:
    """
    Append-only store of baseline snapshots keyed by (athlete, metric).

    A new computation supersedes the current snapshot; earlier versions stay
    readable and are never modified.
    """

    def __init__(self, config: Optional[MonitoringConfig] = None):
        self.config = (config or DEFAULT_CONFIG).baseline
        self._snapshots: Dict[Tuple[str, Metric], List[Baseline]] = {}

    def supersede(self, baseline: Baseline) -> Baseline:
        key = (baseline.athlete_id, baseline.metric)
        versions = self._snapshots.setdefault(key, [])

        if versions and baseline.computed_at <= versions[-1].computed_at:
            raise ValidationError(
                "A superseding baseline must be computed after the current one",
                field="computed_at",
            )

        snapshot = replace(baseline, version=len(versions) + 1)
        versions.append(snapshot)
        logger.info(
            f"Baseline {baseline.athlete_id}/{baseline.metric.value} now at version {snapshot.version}"
        )
        return snapshot

    def current(self, athlete_id: str, metric) -> Optional[Baseline]:
        versions = self._snapshots.get((str(athlete_id), coerce_metric(metric)))
        return versions[-1] if versions else None

    def versions(self, athlete_id: str, metric) -> Tuple[Baseline, ...]:
        return tuple(self._snapshots.get((str(athlete_id), coerce_metric(metric)), ()))

    def needs_recalculation(self, baseline: Optional[Baseline], as_of: datetime) -> bool:
        if baseline is None:
            return True
        return as_of - baseline.computed_at > timedelta(days=self.config.recalculation_days)
