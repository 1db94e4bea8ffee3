"""
Workout Modification Engine

Turns a composite readiness result and a planned workout into a concrete
adjusted session:

    cancel    no workout; reassess in 24-48 h, resume at composite >= 6.5
    major     quality -> easy aerobic, at most 40 min; easy -> 40% shorter recovery run
    moderate  duration / reps cut, recovery extended, pace slowed by type
    minor     small pace slowdown or 10% volume cut (easy runs untouched)
    proceed   unchanged

The selected methodology may then override the generic outcome, but only
towards a stricter decision, and its session is capped at the generic
session's duration and pace.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import logging

from services.readiness.composite import CompositeReadiness, ReadinessFactor
from services.readiness.config import DEFAULT_CONFIG, MonitoringConfig
from services.readiness.methodologies import (
    DEFAULT_METHODOLOGY,
    METHODOLOGIES,
    MethodologyRegistry,
)
from services.readiness.models import ModificationDecision, ReadinessTier, stricter, to_plain
from services.readiness.workouts import (
    Importance,
    Modification,
    PlannedWorkout,
    RescheduleRecommendation,
    WorkoutType,
    bound_workout,
    convert_workout,
    easy_session,
    scale_workout,
    slow_pace,
)

logger = logging.getLogger(__name__)


DECISION_SUMMARIES = {
    ModificationDecision.PROCEED: "proceed as planned",
    ModificationDecision.MINOR: "minor adjustment",
    ModificationDecision.MODERATE: "moderate reduction",
    ModificationDecision.MAJOR: "intensity removed",
    ModificationDecision.CANCEL: "session cancelled, rest today",
}


@dataclass(frozen=True)
class WorkoutModification:
    decision: ModificationDecision
    tier: ReadinessTier
    methodology: str
    original: PlannedWorkout
    modified: Optional[PlannedWorkout]
    modifications: Tuple[Modification, ...]
    reasoning: str
    reschedule: Optional[RescheduleRecommendation] = None
    suggestions: Tuple[str, ...] = ()
    generic_decision: Optional[ModificationDecision] = None
    methodology_override: bool = False

    @property
    def is_cancelled(self) -> bool:
        return self.decision == ModificationDecision.CANCEL

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class _Outcome:
    workout: Optional[PlannedWorkout]
    modifications: List[Modification]
    reschedule: Optional[RescheduleRecommendation] = None
    suggestions: Tuple[str, ...] = ()


class WorkoutModificationEngine:
    """Apply the decision map, then the methodology's constraints."""

    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        registry: Optional[MethodologyRegistry] = None,
    ):
        self.config = (config or DEFAULT_CONFIG).modification
        self.registry = registry or METHODOLOGIES

    def decide(
        self,
        composite: CompositeReadiness,
        workout: PlannedWorkout,
        methodology: Optional[str] = None,
    ) -> WorkoutModification:
        generic_decision = composite.decision
        outcome = self.apply(generic_decision, composite, workout)
        reasoning = self._reasoning(composite, generic_decision)

        rules = self.registry.get(methodology or DEFAULT_METHODOLOGY)
        decision = generic_decision
        override = False

        verdict = rules.evaluate(composite, workout, generic_decision, self.config)
        if verdict is not None:
            if stricter(verdict.decision, generic_decision) == verdict.decision:
                decision = verdict.decision
                override = True
                reschedule = verdict.reschedule
                if reschedule is None and decision == ModificationDecision.CANCEL:
                    reschedule = self._cancel_reschedule()
                modified, changes = verdict.workout, list(verdict.modifications)
                if modified is not None and outcome.workout is not None:
                    modified, changes = bound_workout(modified, changes, outcome.workout, workout)
                reasoning = f"{reasoning} {rules.display_name} rules: {verdict.reasoning}."
                if modified is not verdict.workout:
                    reasoning += (
                        f" Capped at the generic session ({modified.duration_minutes:g} min)."
                    )
                outcome = _Outcome(
                    workout=modified,
                    modifications=changes,
                    reschedule=reschedule or outcome.reschedule,
                )
                logger.info(
                    f"Methodology {rules.name} overrode {generic_decision.value} -> {decision.value}"
                )
            else:
                logger.warning(
                    f"Methodology {rules.name} tried to relax {generic_decision.value} "
                    f"to {verdict.decision.value}; ignored"
                )

        if outcome.workout is None and decision == ModificationDecision.CANCEL and not outcome.modifications:
            outcome.modifications.append(self._cancel_modification(workout))

        return WorkoutModification(
            decision=decision,
            tier=composite.tier,
            methodology=rules.name,
            original=workout,
            modified=outcome.workout,
            modifications=tuple(outcome.modifications),
            reasoning=reasoning,
            reschedule=outcome.reschedule,
            suggestions=outcome.suggestions,
            generic_decision=generic_decision,
            methodology_override=override,
        )

    # ------------------------------------------------------------------
    # Generic decision map
    # ------------------------------------------------------------------

    def apply(
        self,
        decision: ModificationDecision,
        composite: CompositeReadiness,
        workout: PlannedWorkout,
    ) -> _Outcome:
        if decision == ModificationDecision.CANCEL:
            return _Outcome(
                workout=None,
                modifications=[self._cancel_modification(workout)],
                reschedule=self._cancel_reschedule(),
            )
        if decision == ModificationDecision.MAJOR:
            return self._major(workout)
        if decision == ModificationDecision.MODERATE:
            return self._moderate(workout)
        if decision == ModificationDecision.MINOR:
            return self._minor(composite, workout)

        suggestions = ()
        if composite.tier == ReadinessTier.EXCELLENT:
            suggestions = (
                "Readiness is excellent: if the session feels easy, "
                "you can push the final repetitions or extend slightly.",
            )
        return _Outcome(workout=workout, modifications=[], suggestions=suggestions)

    def _major(self, workout: PlannedWorkout) -> _Outcome:
        cfg = self.config
        if workout.is_low_intensity:
            modified, changes = convert_workout(
                workout,
                WorkoutType.RECOVERY,
                workout.duration_minutes * cfg.easy_shorten_factor,
            )
            return _Outcome(workout=modified, modifications=changes)

        modified, changes = easy_session(workout, cfg.easy_conversion_minutes, cfg.easy_conversion_pace_offset)
        reschedule = None
        if workout.importance == Importance.KEY:
            reschedule = RescheduleRecommendation(
                min_wait_hours=cfg.reassess_min_hours,
                max_wait_hours=cfg.reassess_max_hours,
                resume_when_composite_at_least=cfg.resume_score_after_major,
                note=f"Move the key {workout.workout_type.value} session to a day with good readiness",
            )
        return _Outcome(workout=modified, modifications=changes, reschedule=reschedule)

    def _moderate(self, workout: PlannedWorkout) -> _Outcome:
        cfg = self.config
        kind = workout.workout_type

        if kind in (WorkoutType.THRESHOLD, WorkoutType.TEMPO, WorkoutType.RACE):
            modified, changes = scale_workout(
                workout,
                duration_factor=cfg.threshold_duration_factor,
                rep_factor=cfg.threshold_rep_factor,
                recovery_factor=cfg.recovery_extension_factor,
            )
            pace_offset = cfg.moderate_pace_offset
        elif kind == WorkoutType.INTERVALS:
            modified, changes = scale_workout(
                workout,
                duration_factor=cfg.intervals_duration_factor,
                rep_factor=cfg.intervals_rep_factor,
                recovery_factor=cfg.recovery_extension_factor,
            )
            pace_offset = cfg.moderate_pace_offset
        elif kind == WorkoutType.LONG_RUN:
            modified, changes = scale_workout(workout, duration_factor=cfg.long_run_duration_factor)
            pace_offset = cfg.long_run_pace_offset
        else:
            modified, changes = scale_workout(workout, duration_factor=cfg.easy_duration_factor)
            pace_offset = 0

        modified, pace_changes = slow_pace(modified, pace_offset)
        return _Outcome(workout=modified, modifications=changes + pace_changes)

    def _minor(self, composite: CompositeReadiness, workout: PlannedWorkout) -> _Outcome:
        cfg = self.config
        if workout.is_low_intensity:
            return _Outcome(workout=workout, modifications=[])

        if (
            composite.weakest_factor == ReadinessFactor.HRV
            and workout.target_pace_sec_per_km is not None
        ):
            modified, changes = slow_pace(workout, cfg.minor_pace_offset)
        else:
            modified, changes = scale_workout(
                workout,
                duration_factor=cfg.minor_volume_factor,
                rep_factor=cfg.minor_volume_factor,
            )
        return _Outcome(workout=modified, modifications=changes)

    # ------------------------------------------------------------------

    def _cancel_reschedule(self) -> RescheduleRecommendation:
        cfg = self.config
        return RescheduleRecommendation(
            min_wait_hours=cfg.reassess_min_hours,
            max_wait_hours=cfg.reassess_max_hours,
            resume_when_composite_at_least=cfg.resume_score_after_cancel,
            note="Rest, then reassess readiness before resuming training",
        )

    @staticmethod
    def _cancel_modification(workout: PlannedWorkout) -> Modification:
        return Modification("workout", workout.workout_type.value, None, "Session cancelled")

    @staticmethod
    def _reasoning(composite: CompositeReadiness, decision: ModificationDecision) -> str:
        parts = [
            f"Readiness {composite.score:g}/10 ({composite.tier.value}): "
            f"{DECISION_SUMMARIES[decision]}."
        ]
        if composite.red_flags:
            parts.append(f"Red flags: {', '.join(composite.red_flags)}.")
        if composite.yellow_flags:
            parts.append(f"Yellow flags: {', '.join(composite.yellow_flags)}.")
        notes = [f.note for f in composite.factors if f.flag]
        if notes:
            parts.append(f"({'; '.join(notes)})")
        return " ".join(parts)
