"""
Unit tests for the Workout Modification Engine (generic decision map)

Methodology overrides are covered in test_methodologies.py.
"""

import pytest

from services.readiness import (
    Importance,
    ModificationDecision,
    ReadinessTier,
    WorkoutModificationEngine,
    WorkoutType,
)
from tests.readiness_helpers import make_workout


@pytest.fixture
def engine():
    return WorkoutModificationEngine()


class TestProceed:

    def test_excellent_readiness_suggests_pushing(self, engine, composite_for):
        workout = make_workout("threshold", 60, target_pace_sec_per_km=240)

        result = engine.decide(composite_for(wellness=9.0), workout)

        assert result.decision == ModificationDecision.PROCEED
        assert result.modified == workout
        assert result.modifications == ()
        assert len(result.suggestions) == 1

    def test_good_readiness_is_unchanged_without_suggestions(self, engine, composite_for):
        workout = make_workout("tempo", 45)

        result = engine.decide(composite_for(wellness=8.0), workout)

        assert result.tier == ReadinessTier.GOOD
        assert result.modified == workout
        assert result.suggestions == ()


class TestMinor:
    """Composite 7.2 sits in the moderate tier: a minor adjustment."""

    def test_tempo_gets_a_small_volume_cut(self, engine, composite_for):
        workout = make_workout("tempo", 45, target_pace_sec_per_km=250)

        result = engine.decide(composite_for(wellness=7.2), workout)

        assert result.decision == ModificationDecision.MINOR
        assert result.modified.duration_minutes == 40.5
        assert result.modified.target_pace_sec_per_km == 250
        assert result.reasoning.startswith("Readiness 7.2/10 (moderate)")

    def test_easy_run_is_untouched(self, engine, composite_for):
        workout = make_workout("easy", 45)

        result = engine.decide(composite_for(wellness=7.2), workout)

        assert result.decision == ModificationDecision.MINOR
        assert result.modified == workout
        assert result.modifications == ()

    def test_low_hrv_slows_the_pace_instead(self, engine, composite_for):
        """HRV at 86.5% (score 6) is the weakest factor of a 6.91 composite."""
        workout = make_workout("tempo", 45, target_pace_sec_per_km=250)

        result = engine.decide(composite_for(hrv=45, wellness=8.0), workout)

        assert result.decision == ModificationDecision.MINOR
        assert result.modified.target_pace_sec_per_km == 255
        assert result.modified.duration_minutes == 45

    def test_low_hrv_without_pace_target_cuts_volume(self, engine, composite_for):
        workout = make_workout("tempo", 45)

        result = engine.decide(composite_for(hrv=45, wellness=8.0), workout)

        assert result.modified.duration_minutes == 40.5


class TestModerate:
    """Composite 6.0: suboptimal tier."""

    @pytest.fixture
    def suboptimal(self, composite_for):
        return composite_for(wellness=6.0)

    def test_threshold(self, engine, suboptimal):
        workout = make_workout("threshold", 60, target_pace_sec_per_km=240, intervals=(4, 8, 120))

        modified = engine.decide(suboptimal, workout).modified

        assert modified.duration_minutes == 45.0
        assert modified.intervals.reps == 3
        assert modified.intervals.recovery_seconds == 156
        assert modified.target_pace_sec_per_km == 250

    def test_intervals(self, engine, suboptimal):
        workout = make_workout("intervals", 50, target_pace_sec_per_km=220, intervals=(6, 3, 90))

        result = engine.decide(suboptimal, workout)

        assert result.decision == ModificationDecision.MODERATE
        assert result.modified.duration_minutes == 40.0
        assert result.modified.intervals.reps == 4
        assert result.modified.intervals.recovery_seconds == 117
        assert result.modified.target_pace_sec_per_km == 230

    def test_long_run(self, engine, suboptimal):
        workout = make_workout("long_run", 120, target_pace_sec_per_km=320)

        modified = engine.decide(suboptimal, workout).modified

        assert modified.duration_minutes == 96.0
        assert modified.target_pace_sec_per_km == 335

    def test_easy_run_keeps_its_pace(self, engine, suboptimal):
        workout = make_workout("easy", 50, target_pace_sec_per_km=330)

        modified = engine.decide(suboptimal, workout).modified

        assert modified.duration_minutes == 40.0
        assert modified.target_pace_sec_per_km == 330

    def test_every_change_is_reported(self, engine, suboptimal):
        workout = make_workout("threshold", 60, target_pace_sec_per_km=240, intervals=(4, 8, 120))

        fields = [m.field for m in engine.decide(suboptimal, workout).modifications]

        assert fields == [
            "duration_minutes",
            "intervals.reps",
            "intervals.recovery_seconds",
            "target_pace_sec_per_km",
        ]


class TestMajor:
    """Composite 5.0 with one yellow flag: poor tier."""

    @pytest.fixture
    def poor(self, composite_for):
        return composite_for(wellness=5.0)

    def test_quality_session_becomes_easy_aerobic(self, engine, poor):
        workout = make_workout("intervals", 50, target_pace_sec_per_km=250, intervals=(6, 3, 90))

        result = engine.decide(poor, workout)

        assert result.decision == ModificationDecision.MAJOR
        assert result.modified.workout_type == WorkoutType.EASY
        assert result.modified.duration_minutes == 40.0
        assert result.modified.target_pace_sec_per_km == 310
        assert result.modified.intervals is None
        assert result.reschedule is None

    def test_short_quality_session_is_not_lengthened(self, engine, poor):
        workout = make_workout("tempo", 30, target_pace_sec_per_km=260)

        result = engine.decide(poor, workout)

        assert result.modified.workout_type == WorkoutType.EASY
        assert result.modified.duration_minutes == 30
        assert result.modified.target_pace_sec_per_km == 320
        assert "duration_minutes" not in [m.field for m in result.modifications]

    def test_easy_run_becomes_shorter_recovery(self, engine, poor):
        workout = make_workout("easy", 50)

        modified = engine.decide(poor, workout).modified

        assert modified.workout_type == WorkoutType.RECOVERY
        assert modified.duration_minutes == 30.0

    def test_key_session_is_rescheduled(self, engine, poor):
        workout = make_workout("threshold", 60, importance=Importance.KEY)

        reschedule = engine.decide(poor, workout).reschedule

        assert (reschedule.min_wait_hours, reschedule.max_wait_hours) == (24, 48)
        assert reschedule.resume_when_composite_at_least == 7.5


class TestCancel:

    def test_two_red_flags_cancel_the_session(self, engine, composite_for):
        workout = make_workout("threshold", 60)

        result = engine.decide(composite_for(wellness=2.0, acwr=1.8), workout)

        assert result.is_cancelled
        assert result.modified is None
        assert result.modifications[0].field == "workout"
        assert result.reschedule.resume_when_composite_at_least == 6.5
        assert "Red flags: wellness, acwr." in result.reasoning

    def test_easy_run_is_cancelled_too(self, engine, composite_for):
        result = engine.decide(composite_for(wellness=2.0, acwr=1.8), make_workout("easy", 30))
        assert result.modified is None

    def test_to_dict(self, engine, composite_for):
        data = engine.decide(composite_for(wellness=2.0, acwr=1.8), make_workout("tempo", 45)).to_dict()

        assert data["decision"] == "cancel"
        assert data["modified"] is None
        assert data["original"]["workout_type"] == "tempo"
        assert data["reschedule"]["min_wait_hours"] == 24


class TestGenericMethodology:

    def test_no_methodology_uses_generic(self, engine, composite_for):
        result = engine.decide(composite_for(wellness=6.0), make_workout("tempo", 45))

        assert result.methodology == "generic"
        assert result.methodology_override is False
        assert result.generic_decision == result.decision

    def test_adjustments_do_not_mutate_the_plan(self, engine, composite_for):
        workout = make_workout("threshold", 60, intervals=(4, 8, 120))

        result = engine.decide(composite_for(wellness=6.0), workout)

        assert result.original is workout
        assert workout.duration_minutes == 60
        assert workout.intervals.reps == 4
