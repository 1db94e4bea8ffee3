"""
Unit tests for the Wellness Scorer

Weighted composite, inverted scales, category sub-scores, critical flags
and input validation for the 7-question morning questionnaire.
"""

import pytest

from services.readiness import QUESTION_CATALOG, ValidationError, WellnessScorer
from services.readiness.wellness import WellnessLevel


@pytest.fixture
def scorer():
    return WellnessScorer()


class TestCatalog:

    def test_seven_questions_with_unique_ids(self):
        ids = [q.id for q in QUESTION_CATALOG]
        assert len(ids) == 7
        assert len(set(ids)) == 7

    def test_pain_carries_the_highest_weight(self):
        heaviest = max(QUESTION_CATALOG, key=lambda q: q.weight)
        assert heaviest.id == "injury_pain"


class TestComposite:

    def test_good_morning(self, scorer, good_wellness):
        """
        Scores: 8, 9 (8 h), 9, 8, 8, 9, 10 with weights
        1.5, 1.0, 1.5, 1.5, 1.0, 1.0, 2.0 -> 83.5 / 9.5
        """
        result = scorer.score(good_wellness)

        assert result.composite == pytest.approx(8.79)
        assert result.level == WellnessLevel.EXCELLENT
        assert result.critical_flags == ()

    def test_inverted_questions(self, scorer, good_wellness):
        result = scorer.score(good_wellness)

        assert result.item_scores["muscle_soreness"] == 9
        assert result.item_scores["stress"] == 9
        assert result.item_scores["injury_pain"] == 10

    def test_best_possible_answers_score_ten(self, scorer):
        responses = {
            "sleep_quality": 10, "sleep_hours": 9, "muscle_soreness": 1,
            "energy_level": 10, "mood": 10, "stress": 1, "injury_pain": 1,
        }
        assert scorer.score(responses).composite == 10.0

    def test_category_scores(self, scorer, good_wellness):
        result = scorer.score(good_wellness)

        assert result.category_scores["recovery"] == pytest.approx(8.4)
        assert result.category_scores["psychological"] == pytest.approx(8.5)
        assert set(result.category_scores) == {"recovery", "physical", "psychological", "readiness"}

    @pytest.mark.parametrize("hours,expected", [
        (10, 10), (9, 10), (8.5, 9), (8, 9), (7, 7), (6.5, 5), (5, 3), (4, 1), (0, 1),
    ])
    def test_sleep_hours_steps(self, scorer, hours, expected):
        assert scorer.sleep_hours_score(hours) == expected


class TestLevels:

    @pytest.mark.parametrize("composite,expected", [
        (9.2, WellnessLevel.EXCELLENT),
        (8.5, WellnessLevel.EXCELLENT),
        (8.49, WellnessLevel.GOOD),
        (7.0, WellnessLevel.GOOD),
        (6.99, WellnessLevel.MODERATE),
        (5.5, WellnessLevel.MODERATE),
        (5.49, WellnessLevel.POOR),
        (4.5, WellnessLevel.POOR),
        (4.49, WellnessLevel.VERY_POOR),
    ])
    def test_thresholds(self, scorer, composite, expected):
        assert scorer.classify(composite) == expected

    def test_recommendation_matches_level(self, scorer, good_wellness):
        result = scorer.score(good_wellness)
        assert "Excellent" in result.recommendation


class TestCriticalFlags:
    """Pain and very poor sleep are flagged regardless of the composite."""

    def test_mild_pain_is_yellow(self, scorer, good_wellness):
        result = scorer.score({**good_wellness, "injury_pain": 5})   # scores 6

        assert [(f.question, f.severity) for f in result.critical_flags] == [("injury_pain", "yellow")]
        assert result.has_red_flag is False

    def test_significant_pain_is_red(self, scorer, good_wellness):
        result = scorer.score({**good_wellness, "injury_pain": 7})   # scores 4

        assert result.has_red_flag is True
        assert result.critical_flags[0].severity == "red"

    def test_poor_sleep_quality_flagged_despite_good_composite(self, scorer, good_wellness):
        result = scorer.score({**good_wellness, "sleep_quality": 3})

        assert result.level in (WellnessLevel.EXCELLENT, WellnessLevel.GOOD)
        assert "sleep_quality" in [f.question for f in result.critical_flags]


class TestValidation:

    def test_missing_question(self, scorer, good_wellness):
        del good_wellness["mood"]
        with pytest.raises(ValidationError) as exc:
            scorer.score(good_wellness)
        assert exc.value.field == "mood"

    def test_unknown_question(self, scorer, good_wellness):
        with pytest.raises(ValidationError):
            scorer.score({**good_wellness, "motivation": 7})

    @pytest.mark.parametrize("value", [0, 11, 7.5, "7", None, True])
    def test_out_of_scale_answer(self, scorer, good_wellness, value):
        with pytest.raises(ValidationError):
            scorer.score({**good_wellness, "energy_level": value})

    @pytest.mark.parametrize("hours", [-1, 15])
    def test_sleep_hours_range(self, scorer, good_wellness, hours):
        with pytest.raises(ValidationError):
            scorer.score({**good_wellness, "sleep_hours": hours})

    def test_not_a_mapping(self, scorer):
        with pytest.raises(ValidationError):
            scorer.score([8, 8, 8])

    def test_identical_answers_warn(self, scorer):
        responses = {q.id: 5 for q in QUESTION_CATALOG}

        result = scorer.score(responses)

        assert [w.code for w in result.warnings] == ["identical_responses"]

    def test_to_dict(self, scorer, good_wellness):
        data = scorer.score(good_wellness).to_dict()

        assert data["level"] == "excellent"
        assert data["has_red_flag"] is False
        assert data["item_scores"]["injury_pain"] == 10
