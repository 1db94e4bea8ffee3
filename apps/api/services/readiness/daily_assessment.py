"""
Daily Metric Assessor

Compares one morning's HRV or resting-HR reading against the athlete's
baseline bands and the last 7 days of readings.

Point assessment: which band today's value falls into.
Escalation: 3+ consecutive days beyond the yellow band force a "chronic"
status regardless of today's reading. Escalation only ever raises severity.
Trend: least-squares slope over the rolling window, as % of baseline per day.

HRV far ABOVE baseline (> mean + 2 SD) is not treated as good news: it is
flagged as abnormally elevated (parasympathetic overtraining or a bad
measurement).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging

from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.errors import DataQualityWarning, ValidationError
from services.readiness.models import Baseline, DailySample, Metric, to_plain
from services.readiness.stats import as_number, day_over_day_streak, linear_slope, trailing_run

logger = logging.getLogger(__name__)


class MetricStatus(str, Enum):
    NORMAL = "normal"
    SLIGHTLY_SUPPRESSED = "slightly_suppressed"
    SUPPRESSED = "suppressed"
    SEVERELY_SUPPRESSED = "severely_suppressed"
    CHRONICALLY_SUPPRESSED = "chronically_suppressed"
    ABNORMALLY_ELEVATED = "abnormally_elevated"
    SLIGHTLY_ELEVATED = "slightly_elevated"
    ELEVATED = "elevated"
    SEVERELY_ELEVATED = "severely_elevated"
    CHRONICALLY_ELEVATED = "chronically_elevated"


STATUS_SEVERITY = {
    MetricStatus.NORMAL: 0,
    MetricStatus.SLIGHTLY_SUPPRESSED: 1,
    MetricStatus.SLIGHTLY_ELEVATED: 1,
    MetricStatus.ABNORMALLY_ELEVATED: 2,
    MetricStatus.SUPPRESSED: 2,
    MetricStatus.ELEVATED: 2,
    MetricStatus.SEVERELY_SUPPRESSED: 3,
    MetricStatus.SEVERELY_ELEVATED: 3,
    MetricStatus.CHRONICALLY_SUPPRESSED: 4,
    MetricStatus.CHRONICALLY_ELEVATED: 4,
}


class MetricAction(str, Enum):
    PROCEED = "proceed"
    REDUCE_INTENSITY = "reduce_intensity"
    EASY_ONLY = "easy_only"
    REST_REQUIRED = "rest_required"


STATUS_ACTIONS = {
    MetricStatus.NORMAL: MetricAction.PROCEED,
    MetricStatus.SLIGHTLY_SUPPRESSED: MetricAction.REDUCE_INTENSITY,
    MetricStatus.SLIGHTLY_ELEVATED: MetricAction.REDUCE_INTENSITY,
    MetricStatus.ABNORMALLY_ELEVATED: MetricAction.EASY_ONLY,
    MetricStatus.SUPPRESSED: MetricAction.EASY_ONLY,
    MetricStatus.ELEVATED: MetricAction.EASY_ONLY,
    MetricStatus.SEVERELY_SUPPRESSED: MetricAction.REST_REQUIRED,
    MetricStatus.SEVERELY_ELEVATED: MetricAction.REST_REQUIRED,
    MetricStatus.CHRONICALLY_SUPPRESSED: MetricAction.REST_REQUIRED,
    MetricStatus.CHRONICALLY_ELEVATED: MetricAction.REST_REQUIRED,
}

CHRONIC_STATUSES = {MetricStatus.CHRONICALLY_SUPPRESSED, MetricStatus.CHRONICALLY_ELEVATED}


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING_MILD = "declining_mild"
    DECLINING_SIGNIFICANT = "declining_significant"


@dataclass(frozen=True)
class DailyAssessment:
    """One day's HRV or RHR assessment."""
    metric: Metric
    value: float
    baseline_mean: float
    deviation: float                  # value - baseline mean (ms or bpm)
    percent_of_baseline: float
    z_score: float
    point_status: MetricStatus        # Today's reading alone
    status: MetricStatus              # After chronic escalation
    severity: int
    action: MetricAction
    trend: TrendDirection
    slope_per_day: float
    slope_percent_per_day: float
    direction: str                    # Day-over-day: up / down / flat
    consecutive_days: int
    days_beyond_yellow: int
    history_days: int
    message: str
    warnings: Tuple[DataQualityWarning, ...] = ()

    @property
    def is_chronic(self) -> bool:
        return self.status in CHRONIC_STATUSES

    @property
    def exact_percent_of_baseline(self) -> float:
        """percent_of_baseline without display rounding; scoring uses this."""
        return self.value / self.baseline_mean * 100 if self.baseline_mean > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["is_chronic"] = self.is_chronic
        return data


class DailyMetricAssessor:
    """Classify today's HRV / RHR against baseline and rolling history."""

    def __init__(self, config: Optional[MonitoringConfig] = None):
        config = config or DEFAULT_CONFIG
        self.config = config.daily
        self.plausible = {
            Metric.HRV: config.baseline.hrv_plausible_range,
            Metric.RHR: config.baseline.rhr_plausible_range,
        }

    def assess_hrv(
        self,
        today: float,
        baseline: Baseline,
        history: Sequence[float] = (),
        sample: Optional[DailySample] = None,
    ) -> DailyAssessment:
        return self._assess(Metric.HRV, today, baseline, history, sample)

    def assess_rhr(
        self,
        today: float,
        baseline: Baseline,
        history: Sequence[float] = (),
        sample: Optional[DailySample] = None,
    ) -> DailyAssessment:
        return self._assess(Metric.RHR, today, baseline, history, sample)

    # ------------------------------------------------------------------
    # Point classification
    # ------------------------------------------------------------------

    def _hrv_point_status(self, value: float, baseline: Baseline) -> MetricStatus:
        elevated_above = baseline.mean + self.config.elevated_sd_multiple * baseline.std_dev
        if value > elevated_above:
            return MetricStatus.ABNORMALLY_ELEVATED
        if value >= baseline.normal_threshold:
            return MetricStatus.NORMAL
        if value >= baseline.yellow_threshold:
            return MetricStatus.SLIGHTLY_SUPPRESSED
        if value >= baseline.red_threshold:
            return MetricStatus.SUPPRESSED
        return MetricStatus.SEVERELY_SUPPRESSED

    def _rhr_point_status(self, value: float, baseline: Baseline) -> MetricStatus:
        if value <= baseline.normal_threshold:
            return MetricStatus.NORMAL
        if value <= baseline.yellow_threshold:
            return MetricStatus.SLIGHTLY_ELEVATED
        if value <= baseline.red_threshold:
            return MetricStatus.ELEVATED
        return MetricStatus.SEVERELY_ELEVATED

    def _beyond_yellow(self, metric: Metric, baseline: Baseline) -> Callable[[float], bool]:
        if metric == Metric.HRV:
            return lambda v: v < baseline.yellow_threshold
        max_deviation = self.config.rhr_chronic_deviation_bpm
        return lambda v: v > baseline.yellow_threshold or v - baseline.mean > max_deviation

    # ------------------------------------------------------------------
    # Trend
    # ------------------------------------------------------------------

    def _classify_trend(self, metric: Metric, series: List[float], baseline_mean: float) -> Tuple[TrendDirection, float, float]:
        cfg = self.config
        if len(series) < cfg.trend_min_points or baseline_mean <= 0:
            return TrendDirection.STABLE, 0.0, 0.0

        slope = linear_slope(series)
        slope_pct = slope / baseline_mean * 100
        # Rising resting HR is a decline in readiness
        effective = slope_pct if metric == Metric.HRV else -slope_pct

        if effective > cfg.improving_slope_pct:
            trend = TrendDirection.IMPROVING
        elif effective >= cfg.stable_slope_pct:
            trend = TrendDirection.STABLE
        elif effective >= cfg.mild_decline_slope_pct:
            trend = TrendDirection.DECLINING_MILD
        else:
            trend = TrendDirection.DECLINING_SIGNIFICANT
        return trend, slope, slope_pct

    # ------------------------------------------------------------------
    # Data quality
    # ------------------------------------------------------------------

    def _quality_warnings(
        self,
        metric: Metric,
        value: float,
        baseline: Baseline,
        sample: Optional[DailySample],
    ) -> List[DataQualityWarning]:
        warnings = []
        low, high = self.plausible[metric]
        if not low <= value <= high:
            warnings.append(DataQualityWarning(
                code="implausible_value",
                message=f"{metric.value.upper()} {value:g} is outside the plausible range {low:g}-{high:g}",
                field=metric.value,
                value=value,
            ))

        if metric == Metric.RHR and value < baseline.mean - 2 * baseline.std_dev:
            warnings.append(DataQualityWarning(
                code="unusually_low",
                message="Resting HR unusually low versus baseline; check the measurement",
                field=metric.value,
                value=value,
            ))

        if sample is not None:
            if sample.artifact_percent is not None and sample.artifact_percent > self.config.warn_artifact_percent:
                warnings.append(DataQualityWarning(
                    code="high_artifacts",
                    message=f"{sample.artifact_percent:g}% of beats flagged as artifacts",
                    field="artifact_percent",
                    value=sample.artifact_percent,
                ))
            if sample.measurement_seconds is not None and sample.measurement_seconds < self.config.min_measurement_seconds:
                warnings.append(DataQualityWarning(
                    code="short_measurement",
                    message=(
                        f"Measurement lasted {sample.measurement_seconds}s "
                        f"(minimum {self.config.min_measurement_seconds}s)"
                    ),
                    field="measurement_seconds",
                    value=float(sample.measurement_seconds),
                ))
        return warnings

    # ------------------------------------------------------------------
    # Assessment
    # ------------------------------------------------------------------

    def _assess(
        self,
        metric: Metric,
        today: float,
        baseline: Baseline,
        history: Sequence[float],
        sample: Optional[DailySample],
    ) -> DailyAssessment:
        if baseline is None:
            raise ValidationError(f"A {metric.value} baseline is required", field="baseline")
        if baseline.metric != metric:
            raise ValidationError(
                f"Expected a {metric.value} baseline, got {baseline.metric.value}",
                field="baseline",
            )

        value = as_number(today, metric.value)
        if value is None or value <= 0:
            raise ValidationError(f"{metric.value} must be a positive number", field=metric.value)

        window = []
        for i, v in enumerate(list(history)[-self.config.history_days:]):
            number = as_number(v, f"history[{i}]")
            if number is None or number <= 0:
                raise ValidationError("History values must be positive numbers", field="history")
            window.append(number)

        if metric == Metric.HRV:
            point_status = self._hrv_point_status(value, baseline)
            chronic_status = MetricStatus.CHRONICALLY_SUPPRESSED
        else:
            point_status = self._rhr_point_status(value, baseline)
            chronic_status = MetricStatus.CHRONICALLY_ELEVATED

        # A good reading today does not break the streak
        beyond = self._beyond_yellow(metric, baseline)
        streak = trailing_run(window, beyond)
        if beyond(value):
            streak += 1

        status = point_status
        if streak >= self.config.chronic_days:
            status = chronic_status

        series = window + [value]
        trend, slope, slope_pct = self._classify_trend(metric, series, baseline.mean)
        direction, consecutive = day_over_day_streak(series)

        deviation = value - baseline.mean
        percent = value / baseline.mean * 100 if baseline.mean > 0 else 0.0
        z_score = deviation / baseline.std_dev if baseline.std_dev > 0 else 0.0

        if metric == Metric.HRV:
            message = f"HRV {value:g} ms is {percent:.1f}% of baseline ({status.value.replace('_', ' ')})"
        else:
            message = f"Resting HR {value:g} bpm is {deviation:+.1f} bpm vs baseline ({status.value.replace('_', ' ')})"
        if status in CHRONIC_STATUSES:
            message += f"; {streak} consecutive days beyond the yellow band"

        assessment = DailyAssessment(
            metric=metric,
            value=value,
            baseline_mean=baseline.mean,
            deviation=round(deviation, 2),
            percent_of_baseline=round(percent, 1),
            z_score=round(z_score, 2),
            point_status=point_status,
            status=status,
            severity=STATUS_SEVERITY[status],
            action=STATUS_ACTIONS[status],
            trend=trend,
            slope_per_day=round(slope, 3),
            slope_percent_per_day=round(slope_pct, 2),
            direction=direction,
            consecutive_days=consecutive,
            days_beyond_yellow=streak,
            history_days=len(window),
            message=message,
            warnings=tuple(self._quality_warnings(metric, value, baseline, sample)),
        )

        logger.info(
            f"{metric.value} assessment: value={value}, status={status.value}, "
            f"trend={trend.value}, streak={streak}"
        )
        return assessment
