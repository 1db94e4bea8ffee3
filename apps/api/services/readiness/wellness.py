"""
Wellness Questionnaire Scorer

Seven fixed morning questions, each weighted and assigned to a category.
Answers come in on the athlete-facing 1-10 scale; for inverted questions
(soreness, stress, pain) 1 means "none", so they are scored as 11 - answer.
Sleep duration is entered in hours and mapped onto the same 1-10 scale.

    composite = sum(weight * score) / sum(weight)

Pain and very poor sleep raise critical flags independently of the
composite, so a good average can never hide them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.errors import DataQualityWarning, ValidationError
from services.readiness.models import to_plain
from services.readiness.stats import as_number, score_at_least

logger = logging.getLogger(__name__)


class WellnessCategory(str, Enum):
    RECOVERY = "recovery"
    PHYSICAL = "physical"
    PSYCHOLOGICAL = "psychological"
    READINESS = "readiness"


class WellnessLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"
    VERY_POOR = "very_poor"


@dataclass(frozen=True)
class WellnessQuestion:
    id: str
    label: str
    weight: float
    category: WellnessCategory
    inverted: bool = False
    hours: bool = False       # Answered in hours, not on the 1-10 scale


QUESTION_CATALOG: Tuple[WellnessQuestion, ...] = (
    WellnessQuestion("sleep_quality", "Sleep quality", 1.5, WellnessCategory.RECOVERY),
    WellnessQuestion("sleep_hours", "Hours slept", 1.0, WellnessCategory.RECOVERY, hours=True),
    WellnessQuestion("muscle_soreness", "Muscle soreness", 1.5, WellnessCategory.PHYSICAL, inverted=True),
    WellnessQuestion("energy_level", "Energy level", 1.5, WellnessCategory.READINESS),
    WellnessQuestion("mood", "Mood", 1.0, WellnessCategory.PSYCHOLOGICAL),
    WellnessQuestion("stress", "Stress", 1.0, WellnessCategory.PSYCHOLOGICAL, inverted=True),
    WellnessQuestion("injury_pain", "Injury / pain", 2.0, WellnessCategory.PHYSICAL, inverted=True),
)

QUESTIONS_BY_ID = {q.id: q for q in QUESTION_CATALOG}

RECOMMENDATIONS = {
    WellnessLevel.EXCELLENT: "Excellent readiness. Train as planned; a key session is well timed today.",
    WellnessLevel.GOOD: "Good readiness. Proceed with planned training.",
    WellnessLevel.MODERATE: "Moderate readiness. Train, but keep intensity controlled and monitor how you feel.",
    WellnessLevel.POOR: "Poor readiness. Replace intensity with easy aerobic work or reduce volume.",
    WellnessLevel.VERY_POOR: "Very poor readiness. Prioritise rest and recovery today.",
}


@dataclass(frozen=True)
class WellnessFlag:
    question: str
    severity: str             # "red" or "yellow"
    score: float
    message: str


@dataclass(frozen=True)
class WellnessScore:
    composite: float
    level: WellnessLevel
    recommendation: str
    item_scores: Dict[str, float]
    category_scores: Dict[str, float]
    critical_flags: Tuple[WellnessFlag, ...] = ()
    warnings: Tuple[DataQualityWarning, ...] = ()

    @property
    def has_red_flag(self) -> bool:
        return any(f.severity == "red" for f in self.critical_flags)

    def to_dict(self) -> Dict[str, Any]:
        data = to_plain(self)
        data["has_red_flag"] = self.has_red_flag
        return data


class WellnessScorer:
    """Validate questionnaire answers and compute the weighted composite."""

    def __init__(self, config: Optional[MonitoringConfig] = None):
        self.config = (config or DEFAULT_CONFIG).wellness

    def sleep_hours_score(self, hours: float) -> float:
        return score_at_least(hours, self.config.sleep_hours_steps, default=1.0)

    def classify(self, composite: float) -> WellnessLevel:
        cfg = self.config
        if composite >= cfg.excellent_threshold:
            return WellnessLevel.EXCELLENT
        if composite >= cfg.good_threshold:
            return WellnessLevel.GOOD
        if composite >= cfg.moderate_threshold:
            return WellnessLevel.MODERATE
        if composite >= cfg.poor_threshold:
            return WellnessLevel.POOR
        return WellnessLevel.VERY_POOR

    def _item_score(self, question: WellnessQuestion, raw: Any) -> float:
        value = as_number(raw, question.id)
        if value is None:
            raise ValidationError(f"Missing answer for {question.id}", field=question.id)

        if question.hours:
            if not 0 <= value <= self.config.max_sleep_hours:
                raise ValidationError(
                    f"{question.id} must be between 0 and {self.config.max_sleep_hours:g} hours",
                    field=question.id,
                )
            return self.sleep_hours_score(value)

        if not value.is_integer() or not 1 <= value <= 10:
            raise ValidationError(
                f"{question.id} must be a whole number from 1 to 10, got {raw!r}",
                field=question.id,
            )
        return 11 - value if question.inverted else value

    def score(self, responses: Mapping[str, Any]) -> WellnessScore:
        """
        Score a completed questionnaire.

        Raises:
            ValidationError: not a mapping, missing or unknown question,
                or an answer outside its scale.
        """
        if not isinstance(responses, Mapping):
            raise ValidationError("Wellness responses must be a mapping", field="wellness")

        unknown = set(responses) - set(QUESTIONS_BY_ID)
        if unknown:
            raise ValidationError(f"Unknown wellness questions: {sorted(unknown)}", field="wellness")
        missing = [q.id for q in QUESTION_CATALOG if q.id not in responses]
        if missing:
            raise ValidationError(f"Missing wellness answers: {missing}", field=missing[0])

        item_scores = {q.id: self._item_score(q, responses[q.id]) for q in QUESTION_CATALOG}

        total_weight = sum(q.weight for q in QUESTION_CATALOG)
        composite = round(
            sum(item_scores[q.id] * q.weight for q in QUESTION_CATALOG) / total_weight, 2
        )

        category_scores = {}
        for category in WellnessCategory:
            questions = [q for q in QUESTION_CATALOG if q.category == category]
            weight = sum(q.weight for q in questions)
            category_scores[category.value] = round(
                sum(item_scores[q.id] * q.weight for q in questions) / weight, 2
            )

        level = self.classify(composite)
        flags = self._critical_flags(item_scores)

        warnings = []
        scaled_answers = [responses[q.id] for q in QUESTION_CATALOG if not q.hours]
        if len(set(float(a) for a in scaled_answers)) == 1:
            warnings.append(DataQualityWarning(
                code="identical_responses",
                message="Every answer is identical; the questionnaire may not have been read",
                field="wellness",
                value=float(scaled_answers[0]),
            ))

        logger.info(
            f"Wellness composite={composite} level={level.value} "
            f"flags={[f.question for f in flags]}"
        )

        return WellnessScore(
            composite=composite,
            level=level,
            recommendation=RECOMMENDATIONS[level],
            item_scores=item_scores,
            category_scores=category_scores,
            critical_flags=tuple(flags),
            warnings=tuple(warnings),
        )

    def _critical_flags(self, item_scores: Dict[str, float]) -> List[WellnessFlag]:
        cfg = self.config
        flags = []

        pain = item_scores["injury_pain"]
        if pain < cfg.injury_flag_below:
            red = pain < cfg.injury_red_flag_below
            flags.append(WellnessFlag(
                question="injury_pain",
                severity="red" if red else "yellow",
                score=pain,
                message=(
                    "Significant pain reported: stop running and get it assessed"
                    if red else
                    "Pain reported: avoid intensity and monitor closely"
                ),
            ))

        sleep_quality = item_scores["sleep_quality"]
        if sleep_quality < cfg.sleep_quality_flag_below:
            flags.append(WellnessFlag(
                question="sleep_quality",
                severity="yellow",
                score=sleep_quality,
                message="Very poor sleep quality",
            ))
        return flags
