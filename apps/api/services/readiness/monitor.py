"""
Daily readiness pipeline.

Wires the components together for one athlete-day:

    today's sample + baselines + last 7 days
        -> HRV / RHR assessment
        -> wellness score
        -> composite readiness
        -> workout modification (if a session is planned)
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from services.readiness.composite import CompositeReadiness, CompositeReadinessAggregator
from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.daily_assessment import DailyAssessment, DailyMetricAssessor
from services.readiness.errors import DataQualityWarning, ValidationError
from services.readiness.methodologies import MethodologyRegistry
from services.readiness.models import Baseline, DailySample, Metric, to_plain
from services.readiness.modification import WorkoutModification, WorkoutModificationEngine
from services.readiness.wellness import WellnessScore, WellnessScorer
from services.readiness.workouts import PlannedWorkout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyReadinessReport:
    athlete_id: str
    date: date
    composite: CompositeReadiness
    hrv: Optional[DailyAssessment] = None
    rhr: Optional[DailyAssessment] = None
    wellness: Optional[WellnessScore] = None
    modification: Optional[WorkoutModification] = None
    warnings: Tuple[DataQualityWarning, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


class ReadinessMonitor:
    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        registry: Optional[MethodologyRegistry] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.assessor = DailyMetricAssessor(self.config)
        self.wellness_scorer = WellnessScorer(self.config)
        self.aggregator = CompositeReadinessAggregator(self.config)
        self.engine = WorkoutModificationEngine(self.config, registry)

    def assess_day(
        self,
        athlete_id: str,
        today: DailySample,
        hrv_baseline: Optional[Baseline] = None,
        rhr_baseline: Optional[Baseline] = None,
        history: Sequence[DailySample] = (),
        acwr: Optional[float] = None,
        workout: Optional[PlannedWorkout] = None,
        methodology: Optional[str] = None,
    ) -> DailyReadinessReport:
        """
        Run the full pipeline for today's sample.

        history holds earlier days only; anything beyond the rolling window
        is ignored.

        Raises:
            ValidationError: history dated on/after today, or no usable factors.
        """
        window = sorted(history, key=lambda s: s.date)
        if any(s.date >= today.date for s in window):
            raise ValidationError("History must only contain days before today", field="history")
        window = window[-self.config.daily.history_days:]

        warnings: List[DataQualityWarning] = []
        hrv = self._assess_metric(Metric.HRV, today, hrv_baseline, window, warnings)
        rhr = self._assess_metric(Metric.RHR, today, rhr_baseline, window, warnings)

        wellness = None
        if today.wellness is not None:
            wellness = self.wellness_scorer.score(today.wellness)

        composite = self.aggregator.aggregate(
            hrv=hrv,
            rhr=rhr,
            wellness=wellness,
            acwr=acwr,
            sleep_hours=today.sleep_hours,
        )
        warnings.extend(composite.warnings)

        modification = None
        if workout is not None:
            modification = self.engine.decide(composite, workout, methodology)

        logger.info(
            f"Readiness for athlete {athlete_id} on {today.date}: {composite.score} "
            f"({composite.tier.value}), decision="
            f"{modification.decision.value if modification else 'n/a'}"
        )

        return DailyReadinessReport(
            athlete_id=str(athlete_id),
            date=today.date,
            composite=composite,
            hrv=hrv,
            rhr=rhr,
            wellness=wellness,
            modification=modification,
            warnings=tuple(warnings),
        )

    def _assess_metric(
        self,
        metric: Metric,
        today: DailySample,
        baseline: Optional[Baseline],
        window: List[DailySample],
        warnings: List[DataQualityWarning],
    ) -> Optional[DailyAssessment]:
        value = today.value_for(metric)
        if value is None:
            return None
        if baseline is None:
            warnings.append(DataQualityWarning(
                code="missing_baseline",
                message=f"No {metric.value.upper()} baseline yet; {metric.value} left out of readiness",
                field=metric.value,
                value=value,
            ))
            return None

        warnings.extend(baseline.warnings)
        history = self._unbroken_history(metric, today.date, window)
        if metric == Metric.HRV:
            return self.assessor.assess_hrv(value, baseline, history, sample=today)
        return self.assessor.assess_rhr(value, baseline, history, sample=today)

    @staticmethod
    def _unbroken_history(metric: Metric, day: date, window: List[DailySample]) -> List[float]:
        """
        Readings for the run of days ending yesterday, oldest first.

        A day with no reading ends the run, so streaks and slopes only span
        consecutive days.
        """
        readings = {s.date: s.value_for(metric) for s in window}
        values = []
        day -= timedelta(days=1)
        while readings.get(day) is not None:
            values.append(readings[day])
            day -= timedelta(days=1)
        values.reverse()
        return values
