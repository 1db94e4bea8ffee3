"""
Unit tests for Methodology Override Rules

Registry lookup, the Norwegian double-threshold and singles gates, and the
guarantee that a methodology can only make the outcome stricter.
"""

import pytest

from services.readiness import (
    METHODOLOGIES,
    MethodologyRegistry,
    MethodologyRules,
    MethodologyVerdict,
    ModificationDecision,
    WorkoutModificationEngine,
    WorkoutType,
)
from services.readiness.methodologies import GenericRules, NorwegianRules
from tests.readiness_helpers import make_workout


@pytest.fixture
def engine():
    return WorkoutModificationEngine()


class TestRegistry:

    def test_builtin_methodologies(self):
        assert METHODOLOGIES.names() == [
            "canova", "generic", "norwegian", "norwegian_singles", "polarized", "pyramidal",
        ]

    def test_missing_name_falls_back_to_generic(self):
        assert METHODOLOGIES.get(None).name == "generic"

    def test_unknown_name_falls_back_to_generic(self):
        assert METHODOLOGIES.get("lydiard").name == "generic"

    def test_lookup_is_case_insensitive(self):
        assert isinstance(METHODOLOGIES.get("Norwegian"), NorwegianRules)

    def test_listing(self):
        listing = METHODOLOGIES.list_methodologies()

        polarized = next(m for m in listing if m["name"] == "polarized")
        assert polarized["display_name"] == "Polarized (80/20)"
        assert all(m["description"] for m in listing)

    def test_rules_are_abstract(self):
        with pytest.raises(TypeError):
            MethodologyRules()


def _registry_with(*rule_classes):
    registry = MethodologyRegistry()
    registry.register(GenericRules)
    for rules_class in rule_classes:
        registry.register(rules_class)
    return registry


class AlwaysProceedRules(MethodologyRules):
    name = "always_proceed"
    display_name = "Always proceed"

    def evaluate(self, composite, workout, generic, config):
        return MethodologyVerdict(
            decision=ModificationDecision.PROCEED,
            workout=workout,
            reasoning="ignore readiness",
        )


class AlwaysRestRules(MethodologyRules):
    name = "always_rest"
    display_name = "Always rest"

    def evaluate(self, composite, workout, generic, config):
        return MethodologyVerdict(
            decision=ModificationDecision.CANCEL,
            workout=None,
            reasoning="rest day",
        )


class UnchangedSessionRules(MethodologyRules):
    name = "unchanged_session"
    display_name = "Unchanged session"

    def evaluate(self, composite, workout, generic, config):
        return MethodologyVerdict(
            decision=ModificationDecision.MAJOR,
            workout=workout,
            reasoning="keep the planned session",
        )


class TestStricterOnly:

    def test_relaxing_verdict_is_ignored(self, composite_for):
        engine = WorkoutModificationEngine(registry=_registry_with(AlwaysProceedRules))
        workout = make_workout("tempo", 50, target_pace_sec_per_km=250)

        result = engine.decide(composite_for(wellness=5.0), workout, methodology="always_proceed")

        assert result.decision == ModificationDecision.MAJOR
        assert result.methodology_override is False
        assert result.modified.workout_type == WorkoutType.EASY

    def test_stricter_verdict_is_adopted(self, composite_for):
        engine = WorkoutModificationEngine(registry=_registry_with(AlwaysRestRules))

        result = engine.decide(composite_for(wellness=9.0), make_workout("easy", 40), methodology="always_rest")

        assert result.generic_decision == ModificationDecision.PROCEED
        assert result.decision == ModificationDecision.CANCEL
        assert result.methodology_override is True
        assert result.modified is None
        assert result.modifications[0].field == "workout"
        assert result.reschedule.resume_when_composite_at_least == 6.5
        assert "Always rest rules: rest day." in result.reasoning

    def test_adopted_session_is_capped_at_the_generic_one(self, composite_for):
        engine = WorkoutModificationEngine(registry=_registry_with(UnchangedSessionRules))
        workout = make_workout("threshold", 50, target_pace_sec_per_km=240)

        result = engine.decide(composite_for(wellness=5.8), workout, methodology="unchanged_session")

        assert result.generic_decision == ModificationDecision.MODERATE
        assert result.decision == ModificationDecision.MAJOR
        assert result.modified.duration_minutes == 37.5
        assert result.modified.target_pace_sec_per_km == 250
        assert [m.field for m in result.modifications] == ["duration_minutes", "target_pace_sec_per_km"]

    @pytest.mark.parametrize("workout", [
        make_workout("threshold", 50),
        make_workout("threshold", 30, target_pace_sec_per_km=240),
        make_workout("threshold", 60, target_pace_sec_per_km=240, sessions=2),
        make_workout("tempo", 30, target_pace_sec_per_km=255),
        make_workout("intervals", 45, target_pace_sec_per_km=230, intervals=(5, 4, 120)),
    ])
    @pytest.mark.parametrize("wellness", [4.0, 5.8, 6.2, 6.5, 6.8, 7.2, 9.0])
    def test_methodology_session_never_exceeds_generic(self, engine, composite_for, workout, wellness):
        composites = [
            composite_for(wellness=wellness),
            composite_for(hrv=48, wellness=wellness),
            composite_for(hrv=52, rhr=50, wellness=wellness, acwr=2.0, sleep_hours=8),
        ]
        for composite in composites:
            generic = engine.decide(composite, workout).modified
            for name in METHODOLOGIES.names():
                modified = engine.decide(composite, workout, methodology=name).modified
                if modified is None or generic is None:
                    continue
                assert modified.duration_minutes <= generic.duration_minutes, name
                assert modified.sessions <= generic.sessions, name
                if modified.target_pace_sec_per_km is not None and generic.target_pace_sec_per_km is not None:
                    assert modified.target_pace_sec_per_km >= generic.target_pace_sec_per_km, name

    @pytest.mark.parametrize("name", ["polarized", "pyramidal", "canova", "generic"])
    def test_pass_through_methodologies(self, engine, composite_for, name):
        workout = make_workout("threshold", 60)
        composite = composite_for(wellness=7.2)

        result = engine.decide(composite, workout, methodology=name)

        assert result.methodology == name
        assert result.decision == composite.decision
        assert result.methodology_override is False


class TestNorwegian:
    """Threshold only when composite >= 7.5, RHR <= +3 bpm and HRV >= 90%."""

    def test_all_gates_green(self, engine, composite_for):
        composite = composite_for(hrv=52, rhr=50, wellness=9.0, acwr=0.9, sleep_hours=8)
        workout = make_workout("threshold", 60, sessions=2)

        result = engine.decide(composite, workout, methodology="norwegian")

        assert result.decision == ModificationDecision.PROCEED
        assert result.modified == workout

    def test_low_composite_converts_single_session_to_easy(self, engine, composite_for):
        """Generic would only make a minor adjustment at 7.2."""
        workout = make_workout("threshold", 60, target_pace_sec_per_km=240)

        result = engine.decide(composite_for(wellness=7.2), workout, methodology="norwegian")

        assert result.generic_decision == ModificationDecision.MINOR
        assert result.decision == ModificationDecision.MAJOR
        assert result.methodology_override is True
        assert result.modified.workout_type == WorkoutType.EASY
        assert result.modified.duration_minutes == 40
        assert result.modified.target_pace_sec_per_km == 300

    def test_double_session_with_one_veto_becomes_single(self, engine, composite_for):
        workout = make_workout("threshold", 60, sessions=2)

        result = engine.decide(composite_for(wellness=7.2), workout, methodology="norwegian")

        assert result.decision == ModificationDecision.MODERATE
        assert result.modified.sessions == 1
        assert result.modified.duration_minutes == 36.0
        assert result.modifications[0].field == "sessions"

    def test_rhr_and_hrv_vetoes_cancel_despite_good_composite(self, engine, composite_for):
        """Composite 8.18 (good) with RHR +4 bpm and HRV at 86.5%."""
        composite = composite_for(hrv=45, rhr=54, wellness=10.0, acwr=0.9, sleep_hours=9)

        result = engine.decide(composite, make_workout("intervals", 50), methodology="norwegian")

        assert composite.decision == ModificationDecision.PROCEED
        assert result.decision == ModificationDecision.CANCEL
        assert result.modified is None
        assert result.reschedule.resume_when_composite_at_least == 7.5
        assert "HRV 86.5% of baseline" in result.reasoning

    def test_composite_below_six_cancels(self, engine, composite_for):
        result = engine.decide(composite_for(wellness=5.8), make_workout("tempo", 45), methodology="norwegian")

        assert result.generic_decision == ModificationDecision.MODERATE
        assert result.decision == ModificationDecision.CANCEL

    def test_easy_days_are_not_gated(self, engine, composite_for):
        workout = make_workout("easy", 45)

        result = engine.decide(composite_for(wellness=7.2), workout, methodology="norwegian")

        assert result.methodology_override is False
        assert result.modified == workout

    def test_vetoes(self, composite_for, config):
        composite = composite_for(hrv=45, rhr=54, wellness=6.0)

        vetoes = NorwegianRules().vetoes(composite, config.modification)

        assert set(vetoes) == {"composite", "rhr", "hrv"}


class TestNorwegianSingles:

    def test_good_composite_with_normal_hrv_proceeds(self, engine, composite_for):
        workout = make_workout("threshold", 60)

        result = engine.decide(composite_for(hrv=52, wellness=9.0), workout, methodology="norwegian_singles")

        assert result.decision == ModificationDecision.PROCEED
        assert result.modified == workout

    def test_suppressed_hrv_blocks_threshold(self, engine, composite_for):
        """HRV at 92% is slightly suppressed; the composite is excellent."""
        composite = composite_for(hrv=48, wellness=9.0, acwr=0.9)

        result = engine.decide(composite, make_workout("threshold", 60), methodology="norwegian_singles")

        assert composite.decision == ModificationDecision.PROCEED
        assert result.decision == ModificationDecision.MAJOR
        assert result.modified.workout_type == WorkoutType.EASY
        assert result.modified.duration_minutes == 60

    def test_middling_composite_runs_easy_within_generic_volume(self, engine, composite_for):
        """Generic cuts the 50 min session to 45; the easy run may not exceed that."""
        result = engine.decide(composite_for(wellness=6.5), make_workout("threshold", 50), methodology="norwegian_singles")

        assert result.generic_decision == ModificationDecision.MINOR
        assert result.decision == ModificationDecision.MAJOR
        assert result.modified.workout_type == WorkoutType.EASY
        assert result.modified.duration_minutes == 45.0
        assert "Capped at the generic session" in result.reasoning

    def test_red_flag_keeps_the_generic_easy_duration(self, engine, composite_for):
        """One red flag (ACWR 2.0), composite 6.82: both sides agree on major."""
        composite = composite_for(hrv=52, rhr=50, wellness=4.0, acwr=2.0, sleep_hours=8)

        result = engine.decide(composite, make_workout("threshold", 50), methodology="norwegian_singles")

        assert composite.score == pytest.approx(6.82)
        assert result.generic_decision == ModificationDecision.MAJOR
        assert result.methodology_override is True
        assert result.modified.duration_minutes == 40.0
        assert [m.modified for m in result.modifications if m.field == "duration_minutes"] == [40.0]

    def test_low_composite_runs_recovery(self, engine, composite_for):
        result = engine.decide(composite_for(wellness=5.8), make_workout("threshold", 50), methodology="norwegian_singles")

        assert result.decision == ModificationDecision.MAJOR
        assert result.modified.workout_type == WorkoutType.RECOVERY
        assert result.modified.duration_minutes == 30

    def test_only_threshold_sessions_are_gated(self, engine, composite_for):
        composite = composite_for(wellness=6.5)

        result = engine.decide(composite, make_workout("intervals", 50), methodology="norwegian_singles")

        assert result.methodology_override is False
        assert result.decision == composite.decision
