"""
Methodology Override Rules

Training methodologies can impose constraints on top of the generic
readiness decision. Each methodology is a MethodologyRules strategy
registered by name:

    @register
    class MyRules(MethodologyRules):
        name = "my_method"
        ...

    rules = METHODOLOGIES.get("norwegian")

A rule returns a MethodologyVerdict when it wants a different outcome, or
None to leave the generic decision alone. Rules may only make the outcome
stricter: WorkoutModificationEngine keeps the stricter of the two decisions
and never lets the methodology session run longer or faster than the
generic one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type
import logging

from services.readiness.composite import CompositeReadiness
from services.readiness.config import ModificationConfig
from services.readiness.daily_assessment import MetricStatus
from services.readiness.models import ModificationDecision
from services.readiness.workouts import (
    Modification,
    PlannedWorkout,
    RescheduleRecommendation,
    WorkoutType,
    easy_session,
    single_session,
)

logger = logging.getLogger(__name__)

DEFAULT_METHODOLOGY = "generic"


@dataclass(frozen=True)
class MethodologyVerdict:
    decision: ModificationDecision
    workout: Optional[PlannedWorkout]
    reasoning: str
    modifications: List[Modification] = field(default_factory=list)
    reschedule: Optional[RescheduleRecommendation] = None


class MethodologyRules(ABC):
    """Base class for methodology-specific readiness constraints."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique lowercase identifier, e.g. 'norwegian'."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        pass

    description: str = ""

    @abstractmethod
    def evaluate(
        self,
        composite: CompositeReadiness,
        workout: PlannedWorkout,
        generic: ModificationDecision,
        config: ModificationConfig,
    ) -> Optional[MethodologyVerdict]:
        """Return an override verdict, or None to accept the generic decision."""
        pass


class MethodologyRegistry:
    """Named methodology rules, looked up per assessment."""

    def __init__(self):
        self._rules: Dict[str, MethodologyRules] = {}

    def register(self, rules_class: Type[MethodologyRules]) -> Type[MethodologyRules]:
        instance = rules_class()
        if instance.name in self._rules:
            logger.warning(f"Overwriting existing methodology rules: {instance.name}")
        self._rules[instance.name] = instance
        logger.debug(f"Registered methodology rules: {instance.name} ({instance.display_name})")
        return rules_class

    def get(self, name: Optional[str]) -> MethodologyRules:
        """Rules for name; unknown or missing names fall back to generic."""
        if not name:
            return self._rules[DEFAULT_METHODOLOGY]
        rules = self._rules.get(name.lower())
        if rules is None:
            logger.warning(f"Unknown methodology '{name}', using {DEFAULT_METHODOLOGY} rules")
            return self._rules[DEFAULT_METHODOLOGY]
        return rules

    def is_registered(self, name: str) -> bool:
        return name in self._rules

    def names(self) -> List[str]:
        return sorted(self._rules)

    def list_methodologies(self) -> List[Dict[str, str]]:
        return [
            {
                "name": r.name,
                "display_name": r.display_name,
                "description": r.description,
            }
            for r in sorted(self._rules.values(), key=lambda r: r.name)
        ]


METHODOLOGIES = MethodologyRegistry()
register = METHODOLOGIES.register


class PassThroughRules(MethodologyRules):
    """Methodologies with no readiness constraints beyond the generic map."""

    def evaluate(self, composite, workout, generic, config):
        return None


@register
class GenericRules(PassThroughRules):
    name = "generic"
    display_name = "Generic"
    description = "Generic readiness decision with no methodology constraints"


@register
class PolarizedRules(PassThroughRules):
    name = "polarized"
    display_name = "Polarized (80/20)"
    description = "Low-intensity volume with a small share of hard sessions"


@register
class PyramidalRules(PassThroughRules):
    name = "pyramidal"
    display_name = "Pyramidal"
    description = "Intensity distribution tapering from easy to threshold to VO2max"


@register
class CanovaRules(PassThroughRules):
    name = "canova"
    display_name = "Canova"
    description = "Marathon-pace percentage based progression"


def _easy_aerobic(workout: PlannedWorkout, minutes: float, config: ModificationConfig, label: str):
    modified, changes = easy_session(workout, minutes, config.easy_conversion_pace_offset)
    return modified, changes, f"{label}: replaced with {modified.duration_minutes:g} min easy aerobic running"


@register
class NorwegianRules(MethodologyRules):
    """
    Double-threshold protocol: threshold work only when every marker is green.

    Vetoes on a quality day:
        composite < 7.5
        RHR more than 3 bpm above baseline
        HRV below 90% of baseline

    Both physiological vetoes, or composite < 6.0, cancel the day. A double
    session with a single veto drops to one session at 60% duration; any
    other vetoed quality session becomes easy aerobic running.
    """

    name = "norwegian"
    display_name = "Norwegian double threshold"
    description = "Lactate-controlled double threshold sessions with strict readiness gates"

    def vetoes(self, composite: CompositeReadiness, config: ModificationConfig) -> Dict[str, str]:
        found = {}
        if composite.score < config.norwegian_min_composite:
            found["composite"] = f"composite {composite.score:g} < {config.norwegian_min_composite:g}"
        if (
            composite.rhr_deviation is not None
            and composite.rhr_deviation > config.norwegian_max_rhr_deviation
        ):
            found["rhr"] = (
                f"resting HR +{composite.rhr_deviation:g} bpm "
                f"(> {config.norwegian_max_rhr_deviation:g})"
            )
        if (
            composite.hrv_percent_of_baseline is not None
            and composite.hrv_percent_of_baseline < config.norwegian_min_hrv_percent
        ):
            found["hrv"] = (
                f"HRV {composite.hrv_percent_of_baseline:g}% of baseline "
                f"(< {config.norwegian_min_hrv_percent:g}%)"
            )
        return found

    def evaluate(self, composite, workout, generic, config):
        if not workout.is_quality:
            return None

        vetoes = self.vetoes(composite, config)
        if not vetoes:
            return None

        summary = "; ".join(vetoes.values())

        if ("rhr" in vetoes and "hrv" in vetoes) or composite.score < config.norwegian_cancel_below:
            return MethodologyVerdict(
                decision=ModificationDecision.CANCEL,
                workout=None,
                reasoning=f"Double-threshold gate failed ({summary}): no threshold work today",
                reschedule=RescheduleRecommendation(
                    min_wait_hours=config.reassess_min_hours,
                    max_wait_hours=config.reassess_max_hours,
                    resume_when_composite_at_least=config.norwegian_min_composite,
                    note="Resume threshold work once every readiness gate is green",
                ),
            )

        if workout.sessions == 2 and len(vetoes) == 1:
            modified, changes = single_session(workout, config.norwegian_single_session_factor)
            return MethodologyVerdict(
                decision=ModificationDecision.MODERATE,
                workout=modified,
                modifications=changes,
                reasoning=(
                    f"Double-threshold gate: {summary}. "
                    f"Single session at {config.norwegian_single_session_factor * 100:.0f}% duration"
                ),
            )

        modified, changes, reasoning = _easy_aerobic(
            workout, config.easy_conversion_minutes, config, f"Double-threshold gate ({summary})"
        )
        return MethodologyVerdict(
            decision=ModificationDecision.MAJOR,
            workout=modified,
            modifications=changes,
            reasoning=reasoning,
        )


@register
class NorwegianSinglesRules(MethodologyRules):
    """
    Single threshold sessions (sub-threshold "singles"):

        composite >= 7.0 and HRV normal   proceed with threshold
        composite 6.0 - 7.0              easy aerobic, up to 60 min
        composite < 6.0                  recovery run, up to 30 min
    """

    name = "norwegian_singles"
    display_name = "Norwegian singles"
    description = "Single sub-threshold sessions gated on readiness and HRV"

    def evaluate(self, composite, workout, generic, config):
        if workout.workout_type != WorkoutType.THRESHOLD:
            return None

        hrv_normal = composite.hrv_status in (None, MetricStatus.NORMAL)
        if composite.score >= config.singles_min_composite and hrv_normal:
            return None

        if composite.score >= config.singles_easy_above:
            reason = (
                f"HRV {composite.hrv_status.value.replace('_', ' ')}"
                if composite.score >= config.singles_min_composite
                else f"composite {composite.score:g} < {config.singles_min_composite:g}"
            )
            modified, changes, reasoning = _easy_aerobic(
                workout, config.singles_easy_minutes, config, f"Threshold gate ({reason})"
            )
        else:
            modified, changes = easy_session(
                workout,
                config.singles_recovery_minutes,
                config.easy_conversion_pace_offset,
                WorkoutType.RECOVERY,
            )
            reasoning = (
                f"Threshold gate (composite {composite.score:g} < {config.singles_easy_above:g}): "
                f"recovery run {modified.duration_minutes:g} min"
            )

        return MethodologyVerdict(
            decision=ModificationDecision.MAJOR,
            workout=modified,
            modifications=changes,
            reasoning=reasoning,
        )
