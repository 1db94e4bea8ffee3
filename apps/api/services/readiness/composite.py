"""
Composite Readiness Aggregator

Merges the day's signals into one 0-10 readiness score:

    Factor     Weight   Source
    HRV          3.0    % of baseline (daily assessment)
    RHR          2.0    deviation from baseline, bpm
    Wellness     2.5    questionnaire composite
    ACWR         2.0    acute:chronic workload ratio
    Sleep        1.5    hours slept

Each factor maps to a 0-10 sub-score; <= 2 is a red flag, (2, 5] a yellow
flag. The tier is chosen by an ordered list of precedence rules: discrete
danger signals are checked before the weighted average, so one severely
compromised factor cannot be averaged away by otherwise good numbers.

Missing factors are dropped and the remaining weights renormalised;
confidence reports how much of the total weight was present.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging

from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.daily_assessment import CHRONIC_STATUSES, DailyAssessment, MetricStatus
from services.readiness.errors import DataQualityWarning, ValidationError
from services.readiness.models import (
    Metric,
    ModificationDecision,
    ReadinessTier,
    TIER_DECISIONS,
    to_plain,
)
from services.readiness.stats import as_number, score_at_least, score_at_most
from services.readiness.wellness import WellnessScore

logger = logging.getLogger(__name__)


class ReadinessFactor(str, Enum):
    HRV = "hrv"
    RHR = "rhr"
    WELLNESS = "wellness"
    ACWR = "acwr"
    SLEEP = "sleep"


@dataclass(frozen=True)
class FactorScore:
    factor: ReadinessFactor
    raw_value: float
    score: float
    weight: float
    flag: Optional[str] = None    # "red", "yellow" or None
    note: str = ""


@dataclass(frozen=True)
class RuleContext:
    score: float
    red_flags: int
    yellow_flags: int


@dataclass(frozen=True)
class PrecedenceRule:
    name: str
    description: str
    applies: Callable[[RuleContext], bool]
    tier: ReadinessTier


def build_precedence_rules(config: MonitoringConfig) -> Tuple[PrecedenceRule, ...]:
    """Tier rules in evaluation order; the first match wins."""
    cfg = config.composite
    return (
        PrecedenceRule(
            "multiple_red_flags",
            f">= {cfg.red_flags_for_critical} red flags: rest is mandatory",
            lambda c: c.red_flags >= cfg.red_flags_for_critical,
            ReadinessTier.CRITICAL,
        ),
        PrecedenceRule(
            "single_red_flag",
            "One red flag: significant modification",
            lambda c: c.red_flags == 1,
            ReadinessTier.POOR,
        ),
        PrecedenceRule(
            "multiple_yellow_flags",
            f">= {cfg.yellow_flags_for_suboptimal} yellow flags: moderate modification",
            lambda c: c.yellow_flags >= cfg.yellow_flags_for_suboptimal,
            ReadinessTier.SUBOPTIMAL,
        ),
        PrecedenceRule(
            "score_excellent",
            f"Composite >= {cfg.excellent_threshold}",
            lambda c: c.score >= cfg.excellent_threshold,
            ReadinessTier.EXCELLENT,
        ),
        PrecedenceRule(
            "score_good",
            f"Composite >= {cfg.good_threshold}",
            lambda c: c.score >= cfg.good_threshold,
            ReadinessTier.GOOD,
        ),
        PrecedenceRule(
            "score_moderate",
            f"Composite >= {cfg.moderate_threshold}",
            lambda c: c.score >= cfg.moderate_threshold,
            ReadinessTier.MODERATE,
        ),
        PrecedenceRule(
            "score_suboptimal",
            f"Composite >= {cfg.suboptimal_threshold}",
            lambda c: c.score >= cfg.suboptimal_threshold,
            ReadinessTier.SUBOPTIMAL,
        ),
        PrecedenceRule(
            "score_poor",
            f"Composite < {cfg.suboptimal_threshold}",
            lambda c: True,
            ReadinessTier.POOR,
        ),
    )


@dataclass(frozen=True)
class CompositeReadiness:
    score: float
    tier: ReadinessTier
    decision: ModificationDecision
    decided_by: str
    factors: Tuple[FactorScore, ...]
    red_flags: Tuple[str, ...]
    yellow_flags: Tuple[str, ...]
    confidence: float
    hrv_percent_of_baseline: Optional[float] = None
    hrv_status: Optional[MetricStatus] = None
    rhr_deviation: Optional[float] = None
    critical_flags: Tuple[str, ...] = ()
    warnings: Tuple[DataQualityWarning, ...] = ()

    def factor_score(self, factor: ReadinessFactor) -> Optional[float]:
        for f in self.factors:
            if f.factor == factor:
                return f.score
        return None

    @property
    def weakest_factor(self) -> Optional[ReadinessFactor]:
        if not self.factors:
            return None
        return min(self.factors, key=lambda f: (f.score, -f.weight)).factor

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


class CompositeReadinessAggregator:
    """Combine factor sub-scores into one tiered readiness result."""

    def __init__(self, config: Optional[MonitoringConfig] = None):
        config = config or DEFAULT_CONFIG
        self.config = config.composite
        self.rules = build_precedence_rules(config)

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------

    def hrv_score(self, assessment: DailyAssessment) -> Tuple[float, str]:
        score = score_at_least(assessment.exact_percent_of_baseline, self.config.hrv_breakpoints)
        note = f"{assessment.percent_of_baseline:.1f}% of baseline"
        if assessment.status == MetricStatus.ABNORMALLY_ELEVATED:
            score = min(score, self.config.hrv_elevated_cap)
            note += ", abnormally elevated"
        if assessment.status in CHRONIC_STATUSES:
            score = min(score, self.config.chronic_cap)
            note += ", chronically suppressed"
        return score, note

    def rhr_score(self, assessment: DailyAssessment) -> Tuple[float, str]:
        score = score_at_most(assessment.deviation, self.config.rhr_breakpoints)
        note = f"{assessment.deviation:+.1f} bpm vs baseline"
        if assessment.status in CHRONIC_STATUSES:
            score = min(score, self.config.chronic_cap)
            note += ", chronically elevated"
        return score, note

    def acwr_score(self, acwr: float) -> Tuple[float, str]:
        cfg = self.config
        low, high = cfg.acwr_optimal
        if low <= acwr <= high:
            return 10.0, "optimal load"
        if high < acwr <= cfg.acwr_elevated_max:
            return 8.0, "load rising"
        if cfg.acwr_elevated_max < acwr <= cfg.acwr_high_max:
            return 5.0, "high load spike"
        if acwr > cfg.acwr_high_max:
            return 0.0, "dangerous load spike"
        if acwr >= cfg.acwr_detraining_min:
            return 7.0, "load below chronic"
        return 5.0, "detraining"

    def sleep_score(self, hours: float) -> Tuple[float, str]:
        return score_at_least(hours, self.config.sleep_breakpoints), f"{hours:g} h slept"

    def _flag(self, score: float) -> Optional[str]:
        if score <= self.config.red_flag_max:
            return "red"
        if score <= self.config.yellow_flag_max:
            return "yellow"
        return None

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self,
        hrv: Optional[DailyAssessment] = None,
        rhr: Optional[DailyAssessment] = None,
        wellness: Optional[Union[WellnessScore, float]] = None,
        acwr: Optional[float] = None,
        sleep_hours: Optional[float] = None,
    ) -> CompositeReadiness:
        """
        Compute the composite readiness for one day.

        Raises:
            ValidationError: no factors supplied, mismatched assessments,
                or out-of-range ACWR / sleep / wellness values.
        """
        weights = self.config.weights
        raw: List[Tuple[ReadinessFactor, float, float, str]] = []
        warnings: List[DataQualityWarning] = []
        critical_flags: List[str] = []

        if hrv is not None:
            if hrv.metric != Metric.HRV:
                raise ValidationError("hrv must be an HRV assessment", field="hrv")
            score, note = self.hrv_score(hrv)
            raw.append((ReadinessFactor.HRV, hrv.percent_of_baseline, score, note))
            warnings.extend(hrv.warnings)

        if rhr is not None:
            if rhr.metric != Metric.RHR:
                raise ValidationError("rhr must be a resting-HR assessment", field="rhr")
            score, note = self.rhr_score(rhr)
            raw.append((ReadinessFactor.RHR, rhr.deviation, score, note))
            warnings.extend(rhr.warnings)

        if wellness is not None:
            if isinstance(wellness, WellnessScore):
                value = wellness.composite
                warnings.extend(wellness.warnings)
                critical_flags.extend(f.message for f in wellness.critical_flags)
            else:
                value = as_number(wellness, "wellness")
            if not 0 <= value <= 10:
                raise ValidationError("wellness must be between 0 and 10", field="wellness")
            raw.append((ReadinessFactor.WELLNESS, value, value, f"questionnaire {value:g}/10"))

        acwr_value = as_number(acwr, "acwr")
        if acwr_value is not None:
            if acwr_value < 0:
                raise ValidationError("acwr cannot be negative", field="acwr")
            score, note = self.acwr_score(acwr_value)
            raw.append((ReadinessFactor.ACWR, acwr_value, score, note))

        sleep_value = as_number(sleep_hours, "sleep_hours")
        if sleep_value is not None:
            if not 0 <= sleep_value <= 24:
                raise ValidationError("sleep_hours must be between 0 and 24", field="sleep_hours")
            score, note = self.sleep_score(sleep_value)
            raw.append((ReadinessFactor.SLEEP, sleep_value, score, note))

        if not raw:
            raise ValidationError("At least one readiness factor is required")

        factors = tuple(
            FactorScore(
                factor=factor,
                raw_value=value,
                score=score,
                weight=weights[factor.value],
                flag=self._flag(score),
                note=note,
            )
            for factor, value, score, note in raw
        )

        present_weight = sum(f.weight for f in factors)
        composite = round(sum(f.score * f.weight for f in factors) / present_weight, 2)
        confidence = round(present_weight / sum(weights.values()), 2)

        red = tuple(f.factor.value for f in factors if f.flag == "red")
        yellow = tuple(f.factor.value for f in factors if f.flag == "yellow")

        context = RuleContext(score=composite, red_flags=len(red), yellow_flags=len(yellow))
        rule = next(r for r in self.rules if r.applies(context))

        if confidence < 1.0:
            missing = [k for k in weights if k not in {f.factor.value for f in factors}]
            warnings.append(DataQualityWarning(
                code="missing_factors",
                message=f"Readiness computed without: {', '.join(missing)}",
                field="composite",
                value=confidence,
            ))

        result = CompositeReadiness(
            score=composite,
            tier=rule.tier,
            decision=TIER_DECISIONS[rule.tier],
            decided_by=rule.name,
            factors=factors,
            red_flags=red,
            yellow_flags=yellow,
            confidence=confidence,
            hrv_percent_of_baseline=hrv.percent_of_baseline if hrv else None,
            hrv_status=hrv.status if hrv else None,
            rhr_deviation=rhr.deviation if rhr else None,
            critical_flags=tuple(critical_flags),
            warnings=tuple(warnings),
        )

        logger.info(
            f"Composite readiness={composite} tier={rule.tier.value} rule={rule.name} "
            f"red={list(red)} yellow={list(yellow)} confidence={confidence}"
        )
        return result
