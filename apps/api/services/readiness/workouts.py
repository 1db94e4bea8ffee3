"""
Planned workout payloads and the primitive adjustments applied to them.

Adjustments never mutate: each returns a new PlannedWorkout plus the list of
Modification records describing what changed, so the engine and the
methodology rules can compose them and report every change.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from services.readiness.errors import ValidationError
from services.readiness.models import to_plain
from services.readiness.stats import as_number


class WorkoutType(str, Enum):
    EASY = "easy"
    RECOVERY = "recovery"
    LONG_RUN = "long_run"
    TEMPO = "tempo"
    THRESHOLD = "threshold"
    INTERVALS = "intervals"
    RACE = "race"


QUALITY_TYPES = frozenset({
    WorkoutType.TEMPO,
    WorkoutType.THRESHOLD,
    WorkoutType.INTERVALS,
    WorkoutType.RACE,
})

LOW_INTENSITY_TYPES = frozenset({WorkoutType.EASY, WorkoutType.RECOVERY})


class Importance(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    KEY = "key"


@dataclass(frozen=True)
class IntervalStructure:
    reps: int
    work_minutes: float
    recovery_seconds: int


@dataclass(frozen=True)
class PlannedWorkout:
    workout_type: WorkoutType
    duration_minutes: float
    target_pace_sec_per_km: Optional[float] = None
    target_hr: Optional[int] = None
    intervals: Optional[IntervalStructure] = None
    sessions: int = 1                   # 2 on double-threshold days
    importance: Importance = Importance.NORMAL
    description: str = ""

    def __post_init__(self):
        if not isinstance(self.workout_type, WorkoutType):
            raise ValidationError("workout_type must be a WorkoutType", field="workout_type")
        if as_number(self.duration_minutes, "duration_minutes") is None or self.duration_minutes <= 0:
            raise ValidationError("duration_minutes must be positive", field="duration_minutes")
        if self.sessions not in (1, 2):
            raise ValidationError("sessions must be 1 or 2", field="sessions")
        pace = as_number(self.target_pace_sec_per_km, "target_pace_sec_per_km")
        if pace is not None and pace <= 0:
            raise ValidationError("target_pace_sec_per_km must be positive", field="target_pace_sec_per_km")
        if self.intervals is not None and self.intervals.reps < 1:
            raise ValidationError("intervals.reps must be at least 1", field="intervals")

    @property
    def is_quality(self) -> bool:
        return self.workout_type in QUALITY_TYPES

    @property
    def is_low_intensity(self) -> bool:
        return self.workout_type in LOW_INTENSITY_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannedWorkout":
        try:
            workout_type = WorkoutType(data["workout_type"])
            importance = Importance(data.get("importance", Importance.NORMAL.value))
            intervals = data.get("intervals")
            if intervals is not None:
                intervals = IntervalStructure(
                    reps=int(intervals["reps"]),
                    work_minutes=float(intervals["work_minutes"]),
                    recovery_seconds=int(intervals["recovery_seconds"]),
                )
        except KeyError as e:
            raise ValidationError(f"Missing workout field: {e.args[0]}", field="workout")
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid workout: {e}", field="workout")

        return cls(
            workout_type=workout_type,
            duration_minutes=data.get("duration_minutes"),
            target_pace_sec_per_km=data.get("target_pace_sec_per_km"),
            target_hr=data.get("target_hr"),
            intervals=intervals,
            sessions=data.get("sessions", 1),
            importance=importance,
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class Modification:
    field: str
    original: Any
    modified: Any
    description: str


@dataclass(frozen=True)
class RescheduleRecommendation:
    min_wait_hours: int
    max_wait_hours: int
    resume_when_composite_at_least: float
    note: str = ""


Adjusted = Tuple[PlannedWorkout, List[Modification]]


def _minutes(value: float) -> float:
    return round(value, 1)


def convert_workout(
    workout: PlannedWorkout,
    workout_type: WorkoutType,
    duration_minutes: float,
    pace_offset: float = 0,
) -> Adjusted:
    """Replace the session with a continuous run of the given type and length."""
    changes: List[Modification] = []
    updates: Dict[str, Any] = {}

    if workout_type != workout.workout_type:
        updates["workout_type"] = workout_type
        changes.append(Modification(
            "workout_type", workout.workout_type.value, workout_type.value,
            f"Converted {workout.workout_type.value} to {workout_type.value} run",
        ))

    duration = _minutes(duration_minutes)
    if duration != workout.duration_minutes:
        updates["duration_minutes"] = duration
        changes.append(Modification(
            "duration_minutes", workout.duration_minutes, duration,
            f"Duration {workout.duration_minutes:g} -> {duration:g} min",
        ))

    if workout.intervals is not None:
        updates["intervals"] = None
        changes.append(Modification(
            "intervals", to_plain(workout.intervals), None, "Interval structure removed",
        ))

    if workout.sessions != 1:
        updates["sessions"] = 1
        changes.append(Modification("sessions", workout.sessions, 1, "Reduced to a single session"))

    converted = replace(workout, **updates)
    if pace_offset:
        converted, pace_changes = slow_pace(converted, pace_offset)
        changes.extend(pace_changes)
    return converted, changes


def scale_workout(
    workout: PlannedWorkout,
    duration_factor: float = 1.0,
    rep_factor: float = 1.0,
    recovery_factor: float = 1.0,
) -> Adjusted:
    """Scale duration, repetitions and recovery; reps never drop below one."""
    changes: List[Modification] = []
    updates: Dict[str, Any] = {}

    if duration_factor != 1.0:
        duration = _minutes(workout.duration_minutes * duration_factor)
        updates["duration_minutes"] = duration
        changes.append(Modification(
            "duration_minutes", workout.duration_minutes, duration,
            f"Duration {workout.duration_minutes:g} -> {duration:g} min "
            f"({(duration_factor - 1) * 100:+.0f}%)",
        ))

    intervals = workout.intervals
    if intervals is not None and (rep_factor != 1.0 or recovery_factor != 1.0):
        reps = max(1, int(round(intervals.reps * rep_factor)))
        recovery = int(round(intervals.recovery_seconds * recovery_factor))
        updates["intervals"] = replace(intervals, reps=reps, recovery_seconds=recovery)
        if reps != intervals.reps:
            changes.append(Modification(
                "intervals.reps", intervals.reps, reps,
                f"Repetitions {intervals.reps} -> {reps}",
            ))
        if recovery != intervals.recovery_seconds:
            changes.append(Modification(
                "intervals.recovery_seconds", intervals.recovery_seconds, recovery,
                f"Recovery between reps {intervals.recovery_seconds}s -> {recovery}s",
            ))

    return replace(workout, **updates), changes


def slow_pace(workout: PlannedWorkout, offset_sec_per_km: float) -> Adjusted:
    """Slow the target pace; a workout without a pace target is unchanged."""
    if workout.target_pace_sec_per_km is None or not offset_sec_per_km:
        return workout, []
    pace = workout.target_pace_sec_per_km + offset_sec_per_km
    return replace(workout, target_pace_sec_per_km=pace), [Modification(
        "target_pace_sec_per_km", workout.target_pace_sec_per_km, pace,
        f"Target pace {offset_sec_per_km:+g} s/km",
    )]


def single_session(workout: PlannedWorkout, duration_factor: float) -> Adjusted:
    """Collapse a double session into one shorter session."""
    reduced, changes = scale_workout(workout, duration_factor=duration_factor)
    if reduced.sessions != 1:
        changes.insert(0, Modification("sessions", reduced.sessions, 1, "Double session reduced to single"))
        reduced = replace(reduced, sessions=1)
    return reduced, changes


def easy_session(
    workout: PlannedWorkout,
    minutes: float,
    pace_offset: float = 0,
    workout_type: WorkoutType = WorkoutType.EASY,
) -> Adjusted:
    """Replace the session with a continuous low-intensity run, never longer than planned."""
    return convert_workout(workout, workout_type, min(minutes, workout.duration_minutes), pace_offset)


def bound_workout(
    workout: PlannedWorkout,
    changes: List[Modification],
    limit: PlannedWorkout,
    original: PlannedWorkout,
) -> Adjusted:
    """
    Keep workout no longer and no faster than limit.

    changes describe workout relative to original; entries for capped fields
    are rewritten to describe the final session.
    """
    updates: Dict[str, Any] = {}
    if workout.duration_minutes > limit.duration_minutes:
        updates["duration_minutes"] = limit.duration_minutes
    pace, limit_pace = workout.target_pace_sec_per_km, limit.target_pace_sec_per_km
    if pace is not None and limit_pace is not None and pace < limit_pace:
        updates["target_pace_sec_per_km"] = limit_pace
    if not updates:
        return workout, changes

    bounded = replace(workout, **updates)
    kept = [c for c in changes if c.field not in updates]
    if "duration_minutes" in updates and bounded.duration_minutes != original.duration_minutes:
        kept.append(Modification(
            "duration_minutes", original.duration_minutes, bounded.duration_minutes,
            f"Duration {original.duration_minutes:g} -> {bounded.duration_minutes:g} min",
        ))
    offset = None
    if "target_pace_sec_per_km" in updates and original.target_pace_sec_per_km is not None:
        offset = bounded.target_pace_sec_per_km - original.target_pace_sec_per_km
    if offset:
        kept.append(Modification(
            "target_pace_sec_per_km", original.target_pace_sec_per_km, bounded.target_pace_sec_per_km,
            f"Target pace {offset:+g} s/km",
        ))
    return bounded, kept
