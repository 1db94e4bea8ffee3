"""
Trend & Warning Analyzer

Looks across 14-30 days of assessment history for patterns a single day's
assessment cannot see:

    sustained_hrv_suppression          HRV < 85% of baseline, 7+ days running
    overtraining_paradox               HRV > 130% while quality sessions get worse
    chronic_rhr_elevation              RHR > +5 bpm on 5 of the last 7 days
    performance_decline_despite_readiness
                                       benchmarks falling while readiness is good
    excessive_modification_rate        > 40-50% of sessions modified in 4 weeks
    recurring_injury_pain              repeated pain reports
    wellness_decline                   questionnaire composite trending down

Each pattern yields a TrendWarning with a fixed recommended action and the
statistics that triggered it.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.errors import InsufficientDataError, ValidationError
from services.readiness.models import (
    ModificationDecision,
    SEVERITY_ORDER,
    Severity,
    to_plain,
)
from services.readiness.stats import linear_slope, mean

logger = logging.getLogger(__name__)


class TrendPattern(str, Enum):
    SUSTAINED_HRV_SUPPRESSION = "sustained_hrv_suppression"
    OVERTRAINING_PARADOX = "overtraining_paradox"
    CHRONIC_RHR_ELEVATION = "chronic_rhr_elevation"
    PERFORMANCE_DECLINE_DESPITE_READINESS = "performance_decline_despite_readiness"
    EXCESSIVE_MODIFICATION_RATE = "excessive_modification_rate"
    RECURRING_INJURY_PAIN = "recurring_injury_pain"
    WELLNESS_DECLINE = "wellness_decline"


RECOMMENDED_ACTIONS = {
    TrendPattern.SUSTAINED_HRV_SUPPRESSION:
        "Reduce training load by 30-50% for a week and review sleep, stress and illness.",
    TrendPattern.OVERTRAINING_PARADOX:
        "Elevated HRV with falling performance can indicate overreaching: take 3-5 easy days and reassess.",
    TrendPattern.CHRONIC_RHR_ELEVATION:
        "Persistently raised resting heart rate: check for illness and cut intensity until it normalises.",
    TrendPattern.PERFORMANCE_DECLINE_DESPITE_READINESS:
        "Readiness is good but benchmarks are falling: review the training design rather than recovery.",
    TrendPattern.EXCESSIVE_MODIFICATION_RATE:
        "Most sessions are being modified: the plan is too demanding for current capacity, lower planned load.",
    TrendPattern.RECURRING_INJURY_PAIN:
        "Repeated pain reports: stop running through pain and get assessed by a physiotherapist.",
    TrendPattern.WELLNESS_DECLINE:
        "Wellness scores are trending down: prioritise sleep and recovery and watch for accumulating fatigue.",
}


@dataclass(frozen=True)
class AssessmentRecord:
    """
    One day of stored assessment output.

    performance is a session-quality measure where higher is better
    (e.g. speed at a fixed heart rate). injury_pain is the 1-10 pain item
    score where lower means more pain.
    """
    date: date
    hrv_percent: Optional[float] = None
    rhr_deviation: Optional[float] = None
    composite_score: Optional[float] = None
    decision: Optional[ModificationDecision] = None
    is_quality_session: bool = False
    performance: Optional[float] = None
    is_benchmark: bool = False
    injury_pain: Optional[float] = None
    wellness_composite: Optional[float] = None


@dataclass(frozen=True)
class TrendWarning:
    pattern: TrendPattern
    severity: Severity
    message: str
    recommended_action: str
    statistics: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TrendWarningReport:
    athlete_id: str
    days_analyzed: int
    period_start: date
    period_end: date
    warnings: Tuple[TrendWarning, ...]
    highest_severity: Optional[Severity]
    requires_urgent_attention: bool

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


def _consecutive_tail(records: Sequence[AssessmentRecord], predicate) -> List[AssessmentRecord]:
    """
    Trailing records that satisfy predicate on consecutive calendar days.

    A day without a reading ends the run: suppressed days either side of a
    missed measurement are not consecutive.
    """
    run: List[AssessmentRecord] = []
    for r in reversed(records):
        if not predicate(r) or (run and (run[-1].date - r.date).days != 1):
            break
        run.append(r)
    run.reverse()
    return run


def _strictly_declining(values: Sequence[float], min_drop_fraction: float = 0.0) -> bool:
    return all(b < a * (1 - min_drop_fraction) for a, b in zip(values, values[1:]))


class TrendWarningAnalyzer:
    """Detect multi-week warning patterns in assessment history."""

    def __init__(self, config: Optional[MonitoringConfig] = None):
        self.config = (config or DEFAULT_CONFIG).trends

    def analyze(self, athlete_id: str, history: Sequence[AssessmentRecord]) -> TrendWarningReport:
        """
        Raises:
            InsufficientDataError: fewer than min_days records.
            ValidationError: two records for the same date.
        """
        cfg = self.config
        records = sorted(history, key=lambda r: r.date)
        dates = [r.date for r in records]
        if len(set(dates)) != len(dates):
            raise ValidationError("Assessment history has duplicate dates", field="history")

        records = records[-cfg.max_days:]
        if len(records) < cfg.min_days:
            raise InsufficientDataError(len(records), cfg.min_days, metric="assessment history")

        checks = (
            self._hrv_suppression,
            self._overtraining_paradox,
            self._rhr_elevation,
            self._performance_decline,
            self._modification_rate,
            self._injury_pain,
            self._wellness_decline,
        )
        warnings = [w for w in (check(records) for check in checks) if w is not None]
        warnings.sort(key=lambda w: SEVERITY_ORDER[w.severity], reverse=True)

        highest = warnings[0].severity if warnings else None
        urgent = highest is not None and SEVERITY_ORDER[highest] >= SEVERITY_ORDER[Severity.HIGH]

        if warnings:
            logger.warning(
                f"Trend warnings for athlete {athlete_id}: "
                f"{[(w.pattern.value, w.severity.value) for w in warnings]}"
            )
        else:
            logger.info(f"No trend warnings for athlete {athlete_id} over {len(records)} days")

        return TrendWarningReport(
            athlete_id=str(athlete_id),
            days_analyzed=len(records),
            period_start=records[0].date,
            period_end=records[-1].date,
            warnings=tuple(warnings),
            highest_severity=highest,
            requires_urgent_attention=urgent,
        )

    def _warning(self, pattern: TrendPattern, severity: Severity, message: str, **stats) -> TrendWarning:
        return TrendWarning(
            pattern=pattern,
            severity=severity,
            message=message,
            recommended_action=RECOMMENDED_ACTIONS[pattern],
            statistics=stats,
        )

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def _hrv_suppression(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        readings = [r for r in records if r.hrv_percent is not None]
        run = len(_consecutive_tail(readings, lambda r: r.hrv_percent < cfg.suppression_percent))
        if run < cfg.suppression_days:
            return None

        severity = Severity.CRITICAL if run >= cfg.suppression_critical_days else Severity.HIGH
        return self._warning(
            TrendPattern.SUSTAINED_HRV_SUPPRESSION,
            severity,
            f"HRV has been below {cfg.suppression_percent:g}% of baseline for {run} consecutive days",
            consecutive_days=run,
            mean_percent=round(mean([r.hrv_percent for r in readings[-run:]]), 1),
        )

    def _overtraining_paradox(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        hrv = [r.hrv_percent for r in records if r.hrv_percent is not None]
        if not hrv or hrv[-1] <= cfg.paradox_percent:
            return None

        performances = [
            r.performance for r in records
            if r.is_quality_session and r.performance is not None
        ][-cfg.paradox_sessions:]
        if len(performances) < cfg.paradox_sessions or not _strictly_declining(performances):
            return None

        return self._warning(
            TrendPattern.OVERTRAINING_PARADOX,
            Severity.HIGH,
            f"HRV is {hrv[-1]:g}% of baseline while the last {len(performances)} "
            f"quality sessions declined",
            hrv_percent=hrv[-1],
            performances=performances,
        )

    def _rhr_elevation(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        since = records[-1].date - timedelta(days=cfg.rhr_elevation_window - 1)
        window = [r for r in records if r.date >= since]
        elevated = [
            r for r in window
            if r.rhr_deviation is not None and r.rhr_deviation > cfg.rhr_elevation_bpm
        ]
        if len(elevated) < cfg.rhr_elevation_days:
            return None

        return self._warning(
            TrendPattern.CHRONIC_RHR_ELEVATION,
            Severity.HIGH,
            f"Resting HR more than {cfg.rhr_elevation_bpm:g} bpm above baseline on "
            f"{len(elevated)} of the last {cfg.rhr_elevation_window} days",
            elevated_days=len(elevated),
            window_days=cfg.rhr_elevation_window,
            mean_deviation=round(mean([r.rhr_deviation for r in elevated]), 1),
        )

    def _performance_decline(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        benchmarks = [
            r.performance for r in records
            if r.is_benchmark and r.performance is not None
        ][-cfg.benchmark_sessions:]
        if len(benchmarks) < cfg.benchmark_sessions:
            return None
        if not _strictly_declining(benchmarks, cfg.benchmark_decline_percent / 100):
            return None

        scores = [r.composite_score for r in records if r.composite_score is not None]
        avg = mean(scores)
        if not scores or avg <= cfg.good_readiness_score:
            return None

        total_drop = (benchmarks[0] - benchmarks[-1]) / benchmarks[0] * 100
        return self._warning(
            TrendPattern.PERFORMANCE_DECLINE_DESPITE_READINESS,
            Severity.MEDIUM,
            f"{len(benchmarks)} consecutive benchmarks declined ({total_drop:.1f}% total) "
            f"while average readiness was {avg:.1f}",
            benchmarks=benchmarks,
            total_decline_percent=round(total_drop, 1),
            mean_composite=round(avg, 2),
        )

    def _modification_rate(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        since = records[-1].date - timedelta(days=cfg.modification_window_days - 1)
        sessions = [r for r in records if r.date >= since and r.decision is not None]
        if len(sessions) < cfg.modification_min_sessions:
            return None

        modified = sum(1 for r in sessions if r.decision != ModificationDecision.PROCEED)
        rate = modified / len(sessions)
        if rate > cfg.modification_rate_high:
            severity = Severity.HIGH
        elif rate > cfg.modification_rate_warning:
            severity = Severity.MEDIUM
        else:
            return None

        return self._warning(
            TrendPattern.EXCESSIVE_MODIFICATION_RATE,
            severity,
            f"{modified} of {len(sessions)} sessions ({rate * 100:.0f}%) were modified "
            f"in the last {cfg.modification_window_days} days",
            modified_sessions=modified,
            total_sessions=len(sessions),
            rate=round(rate, 3),
        )

    def _injury_pain(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        reports = [
            r for r in records
            if r.injury_pain is not None and r.injury_pain < cfg.injury_report_below
        ]
        worst = min((r.injury_pain for r in reports), default=None)

        if worst is not None and worst < cfg.injury_stop_below:
            severity = Severity.CRITICAL
            message = f"Pain scored {worst:g}/10: stop training immediately"
        elif len(reports) >= cfg.injury_reports:
            severity = Severity.HIGH
            message = f"Pain reported on {len(reports)} days"
        else:
            return None

        return self._warning(
            TrendPattern.RECURRING_INJURY_PAIN,
            severity,
            message,
            reports=len(reports),
            worst_score=worst,
            dates=[r.date.isoformat() for r in reports],
        )

    def _wellness_decline(self, records: List[AssessmentRecord]) -> Optional[TrendWarning]:
        cfg = self.config
        values = [
            r.wellness_composite for r in records if r.wellness_composite is not None
        ][-cfg.wellness_window:]
        if len(values) < 3:
            return None

        slope = linear_slope(values)
        if slope < cfg.wellness_slope_high:
            severity = Severity.HIGH
        elif slope < cfg.wellness_slope_warning:
            severity = Severity.MEDIUM
        else:
            return None

        return self._warning(
            TrendPattern.WELLNESS_DECLINE,
            severity,
            f"Wellness composite falling {abs(slope):.2f} points per day over {len(values)} days",
            slope_per_day=round(slope, 3),
            first=values[0],
            last=values[-1],
        )
