"""
Readiness API Router

Stateless endpoints over the readiness pipeline:
- Baseline computation from raw morning measurements
- Wellness questionnaire scoring
- Full daily assessment (HRV, RHR, wellness, composite, workout modification)
- Multi-week trend warnings
- Methodology catalogue

Callers supply the history; nothing is persisted here.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.exceptions import NotFoundError, UnprocessableEntityError
from services.readiness import (
    METHODOLOGIES,
    QUESTION_CATALOG,
    AssessmentRecord,
    Baseline,
    BaselineEstimator,
    DailySample,
    Importance,
    IntervalStructure,
    Metric,
    ModificationDecision,
    PlannedWorkout,
    ReadinessError,
    ReadinessMonitor,
    SampleQuality,
    TrendWarningAnalyzer,
    ValidationError,
    WellnessScorer,
    WorkoutType,
    get_monitoring_config,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/readiness", tags=["Readiness"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class SampleIn(BaseModel):
    date: date
    hrv_rmssd: Optional[float] = None
    resting_hr: Optional[float] = None
    sleep_hours: Optional[float] = None
    wellness: Optional[Dict[str, float]] = None
    quality: SampleQuality = SampleQuality.GOOD
    artifact_percent: Optional[float] = Field(default=None, ge=0, le=100)
    measurement_seconds: Optional[int] = Field(default=None, ge=0)

    def to_sample(self) -> DailySample:
        return DailySample(**self.model_dump())


class BaselineRequest(BaseModel):
    athlete_id: str
    metric: Metric
    samples: List[SampleIn]
    computed_at: Optional[datetime] = None


class BaselineIn(BaseModel):
    """A baseline previously returned by POST /baseline."""
    athlete_id: str
    metric: Metric
    computed_at: datetime
    mean: float = Field(gt=0)
    std_dev: float = Field(ge=0)
    normal_threshold: float
    yellow_threshold: float
    red_threshold: float
    sample_days: int
    coefficient_of_variation: float = 0.0
    is_stable: bool = True
    version: int = 1

    def to_baseline(self, min_days: int) -> Baseline:
        if self.sample_days < min_days:
            raise ValidationError(
                f"Baseline built from {self.sample_days} days; at least {min_days} are required",
                field="sample_days",
            )
        bands = (self.normal_threshold, self.yellow_threshold, self.red_threshold)
        ordered = bands[0] > bands[1] > bands[2] if self.metric == Metric.HRV else bands[0] < bands[1] < bands[2]
        if not ordered:
            raise ValidationError("Baseline thresholds are not ordered", field="baseline")
        return Baseline(**self.model_dump())


class WellnessRequest(BaseModel):
    responses: Dict[str, float]


class IntervalIn(BaseModel):
    reps: int = Field(ge=1)
    work_minutes: float = Field(gt=0)
    recovery_seconds: int = Field(ge=0)


class WorkoutIn(BaseModel):
    workout_type: WorkoutType
    duration_minutes: float = Field(gt=0)
    target_pace_sec_per_km: Optional[float] = Field(default=None, gt=0)
    target_hr: Optional[int] = Field(default=None, gt=0)
    intervals: Optional[IntervalIn] = None
    sessions: int = Field(default=1, ge=1, le=2)
    importance: Importance = Importance.NORMAL
    description: str = ""

    def to_workout(self) -> PlannedWorkout:
        data = self.model_dump(exclude={"intervals"})
        intervals = IntervalStructure(**self.intervals.model_dump()) if self.intervals else None
        return PlannedWorkout(intervals=intervals, **data)


class AssessmentRequest(BaseModel):
    athlete_id: str
    today: SampleIn
    hrv_baseline: Optional[BaselineIn] = None
    rhr_baseline: Optional[BaselineIn] = None
    history: List[SampleIn] = Field(default_factory=list)
    acwr: Optional[float] = Field(default=None, ge=0)
    workout: Optional[WorkoutIn] = None
    methodology: Optional[str] = None


class AssessmentRecordIn(BaseModel):
    date: date
    hrv_percent: Optional[float] = None
    rhr_deviation: Optional[float] = None
    composite_score: Optional[float] = Field(default=None, ge=0, le=10)
    decision: Optional[ModificationDecision] = None
    is_quality_session: bool = False
    performance: Optional[float] = Field(default=None, gt=0)
    is_benchmark: bool = False
    injury_pain: Optional[float] = Field(default=None, ge=1, le=10)
    wellness_composite: Optional[float] = Field(default=None, ge=0, le=10)


class TrendRequest(BaseModel):
    athlete_id: str
    history: List[AssessmentRecordIn]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_monitor() -> ReadinessMonitor:
    return ReadinessMonitor(get_monitoring_config())


def _unprocessable(error: ReadinessError) -> UnprocessableEntityError:
    logger.info(f"Readiness request rejected: {error.error_code} {error.message}")
    return UnprocessableEntityError.from_readiness_error(error)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/baseline")
async def compute_baseline(request: BaselineRequest) -> Dict[str, Any]:
    """
    Compute an HRV or resting-HR baseline from 14-21 days of samples.

    Returns 422 with days_remaining when there is not enough data yet.
    """
    estimator = BaselineEstimator(get_monitoring_config())
    try:
        baseline = estimator.compute(
            request.athlete_id,
            request.metric,
            [s.to_sample() for s in request.samples],
            computed_at=request.computed_at,
        )
    except ReadinessError as e:
        raise _unprocessable(e)
    return baseline.to_dict()


@router.get("/wellness/questions")
async def list_wellness_questions() -> List[Dict[str, Any]]:
    return [
        {
            "id": q.id,
            "label": q.label,
            "weight": q.weight,
            "category": q.category.value,
            "inverted": q.inverted,
            "scale": "hours" if q.hours else "1-10",
        }
        for q in QUESTION_CATALOG
    ]


@router.post("/wellness")
async def score_wellness(request: WellnessRequest) -> Dict[str, Any]:
    scorer = WellnessScorer(get_monitoring_config())
    try:
        return scorer.score(request.responses).to_dict()
    except ReadinessError as e:
        raise _unprocessable(e)


@router.post("/assessment")
async def assess_day(
    request: AssessmentRequest,
    monitor: ReadinessMonitor = Depends(get_monitor),
) -> Dict[str, Any]:
    """
    Run the daily pipeline: metric assessments, wellness, composite
    readiness and, when a workout is supplied, its modification.
    """
    min_days = monitor.config.baseline.min_days
    try:
        report = monitor.assess_day(
            athlete_id=request.athlete_id,
            today=request.today.to_sample(),
            hrv_baseline=request.hrv_baseline.to_baseline(min_days) if request.hrv_baseline else None,
            rhr_baseline=request.rhr_baseline.to_baseline(min_days) if request.rhr_baseline else None,
            history=[s.to_sample() for s in request.history],
            acwr=request.acwr,
            workout=request.workout.to_workout() if request.workout else None,
            methodology=request.methodology,
        )
    except ReadinessError as e:
        raise _unprocessable(e)
    return report.to_dict()


@router.post("/trends")
async def analyze_trends(request: TrendRequest) -> Dict[str, Any]:
    """Scan 14-30 days of assessment history for warning patterns."""
    analyzer = TrendWarningAnalyzer(get_monitoring_config())
    records = [AssessmentRecord(**r.model_dump()) for r in request.history]
    try:
        report = analyzer.analyze(request.athlete_id, records)
    except ReadinessError as e:
        raise _unprocessable(e)
    return report.to_dict()


@router.get("/methodologies")
async def list_methodologies() -> List[Dict[str, str]]:
    return METHODOLOGIES.list_methodologies()


@router.get("/methodologies/{name}")
async def get_methodology(name: str) -> Dict[str, str]:
    if not METHODOLOGIES.is_registered(name):
        raise NotFoundError("Methodology", name)
    rules = METHODOLOGIES.get(name)
    return {
        "name": rules.name,
        "display_name": rules.display_name,
        "description": rules.description,
    }
