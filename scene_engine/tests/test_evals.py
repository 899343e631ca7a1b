"""
Unit tests for the scene evaluation heuristics.

Tests cover:
- EvalCriterion enum values
- Word-count scoring against the expected window
- Completeness, coherence and instruction-following checks
- Safety screening with its context exemptions
- Scene and story reports
"""

import pytest

from scene_engine.core.evals import (
    EvalCriterion,
    EvalReport,
    EvalResult,
    evaluate_coherence,
    evaluate_completeness,
    evaluate_instruction_following,
    evaluate_safety,
    evaluate_scene,
    evaluate_story,
    expected_window,
    heat_level_appropriate,
    word_count_score,
)
from scene_engine.core.length_budget import LengthBudget
from scene_engine.core.metadata import extract_scene
from scene_engine.models import SceneMetadata
from scene_engine.tests.conftest import make_model_output, make_prose

WINDOW = LengthBudget(800, 1050, "Aim 800–1050 words")

CRAFT_LINES = ' "Stay," she said. She realized she trusted him. He stepped closer.'


def good_body(words: int = 880) -> str:
    return make_prose(words) + CRAFT_LINES


@pytest.fixture
def full_metadata() -> SceneMetadata:
    return extract_scene(make_model_output()).metadata


class TestEvalCriterion:
    """Tests for EvalCriterion enum."""

    def test_criterion_values(self):
        assert EvalCriterion.COMPLETENESS.value == "completeness"
        assert EvalCriterion.COHERENCE.value == "coherence"
        assert EvalCriterion.INSTRUCTION_FOLLOWING.value == "instruction_following"
        assert EvalCriterion.SAFETY.value == "safety"


class TestWordCountScore:
    """Tests for word_count_score."""

    def test_inside_window(self):
        assert word_count_score(900, WINDOW) == 30.0

    def test_just_outside_window(self):
        score = word_count_score(799, WINDOW)
        assert 15 <= score < 25

    def test_edge_of_buffer(self):
        # 15% of the 250-word span rounds to 38
        assert word_count_score(762, WINDOW) == 15
        assert word_count_score(1088, WINDOW) == 15

    def test_far_outside(self):
        assert word_count_score(500, WINDOW) == 0.0
        assert word_count_score(1500, WINDOW) == 0.0


class TestCompleteness:
    """Tests for evaluate_completeness."""

    def test_complete_scene(self, full_metadata):
        result = evaluate_completeness(good_body(), full_metadata, WINDOW)
        assert result.criterion == EvalCriterion.COMPLETENESS
        assert result.score == 100
        assert result.passed
        assert result.details["metadata_fields_missing"] == []

    def test_missing_metadata(self):
        result = evaluate_completeness(good_body(), None, WINDOW)
        assert result.score == 60
        assert not result.passed
        assert result.issues[0].startswith("Missing metadata: emotional_beat")

    def test_placeholder(self, full_metadata):
        result = evaluate_completeness(good_body() + " [LOVE INTEREST]", full_metadata, WINDOW)
        assert result.details["has_placeholder_text"]
        assert result.score == 70
        assert "Placeholder text present" in result.issues


class TestCoherence:
    """Tests for evaluate_coherence."""

    def test_no_metadata(self):
        result = evaluate_coherence(None)
        assert result.score == 0
        assert not result.passed

    def test_first_scene_complete(self, full_metadata):
        result = evaluate_coherence(full_metadata)
        assert result.score == 100
        assert result.passed
        assert "relationship_progress_logical" not in result.details

    def test_first_scene_missing_pov(self):
        metadata = SceneMetadata(key_characters="Mara, Julian", setting_location="pier")
        result = evaluate_coherence(metadata)
        assert result.score == 67
        assert result.issues == ["No POV character specified"]

    def test_later_scene_consistent(self, full_metadata):
        previous = SceneMetadata(relationship_progress=1)
        result = evaluate_coherence(full_metadata, [previous])
        assert result.passed
        assert result.score == 100

    def test_pov_matching_ignores_case(self):
        metadata = SceneMetadata(pov_character="mara", key_characters="Mara, Julian")
        assert evaluate_coherence(metadata, [SceneMetadata()]).passed

    def test_later_scene_problems(self):
        metadata = SceneMetadata(
            pov_character="Elena",
            key_characters="Mara, Julian",
            relationship_progress=2,
        )
        result = evaluate_coherence(metadata, [SceneMetadata(relationship_progress=-2)])
        assert not result.passed
        assert result.score == 50
        assert "POV character not in key_characters list" in result.issues
        assert any("jumped 4 points" in issue for issue in result.issues)


class TestInstructionFollowing:
    """Tests for evaluate_instruction_following."""

    def test_all_craft_elements(self, full_metadata, preferences):
        result = evaluate_instruction_following(good_body(), full_metadata, preferences, WINDOW)
        assert result.score == 100
        assert result.passed

    def test_bare_prose(self, preferences):
        result = evaluate_instruction_following(make_prose(500), None, preferences, WINDOW)
        assert result.score == 0
        assert result.issues == ["Too short: 500 words (expected 800-1050)"]

    def test_explicit_terms_at_low_heat(self, full_metadata, preferences):
        body = good_body() + " She was naked in the lamplight."
        result = evaluate_instruction_following(body, full_metadata, preferences, WINDOW)
        assert not result.details["heat_level_appropriate"]
        assert not result.passed

    @pytest.mark.parametrize("heat,expected", [(1, False), (2, False), (3, True), (5, True)])
    def test_heat_level_appropriate(self, heat, expected):
        assert heat_level_appropriate("Her nude portrait hung above the bed.", heat) is expected


class TestSafety:
    """Tests for evaluate_safety."""

    def test_clean(self):
        result = evaluate_safety(good_body())
        assert result.passed
        assert result.score == 100

    @pytest.mark.parametrize(
        "sentence",
        [
            "He was still a teenager that summer.",
            "He held her down against her will.",
            "She stabbed him twice in the dark.",
            "Later she kissed her brother goodbye at the door.",
        ],
    )
    def test_violations(self, sentence):
        result = evaluate_safety(make_prose(50) + " " + sentence)
        assert not result.passed
        assert result.score == 0
        assert result.issues

    def test_investigation_allows_violence_description(self):
        body = "The detective read the report. Someone had stabbed him in the alley."
        assert evaluate_safety(body).passed

    def test_comparison_allows_family_mention(self):
        body = "He was nothing like her brother, who kissed her brother's wife at parties."
        assert evaluate_safety(body).passed


class TestReports:
    """Tests for evaluate_scene and evaluate_story."""

    def test_scene_report(self, full_metadata, preferences):
        report = evaluate_scene(good_body(), full_metadata, preferences, 1)
        assert isinstance(report, EvalReport)
        assert [r.criterion for r in report.results] == list(EvalCriterion)
        assert report.overall_score == 100
        assert report.safety_passed

        data = report.to_dict()
        assert data["scene_number"] == 1
        assert data["results"][0]["criterion"] == "completeness"
        assert "timestamp" in data

    def test_safety_failure_zeroes_overall(self, full_metadata, preferences):
        body = good_body() + " He held her down."
        report = evaluate_scene(body, full_metadata, preferences, 1)
        assert report.overall_score == 0
        assert not report.safety_passed

    def test_expected_window_uses_phase(self, preferences):
        window = expected_window(preferences, 1, 10)
        assert (window.min_words, window.max_words) == (800, 900)
        assert expected_window(preferences, 1).min_words == 800
        assert expected_window(preferences, 1).max_words == 1050

    def test_story_report(self, full_metadata, preferences):
        scenes = [
            (good_body(), full_metadata),
            (make_prose(450), None),
        ]
        report = evaluate_story(scenes, preferences)

        assert len(report.scenes) == 2
        assert report.safety_passed
        assert report.metadata_completion_rate == 50
        assert report.total_word_count == 891 + 450
        assert set(report.averages) == {
            "completeness", "coherence", "instruction_following", "overall",
        }
        assert report.averages["coherence"] == 50

    def test_empty_story(self, preferences):
        report = evaluate_story([], preferences)
        assert report.scenes == []
        assert report.averages["overall"] == 0
        assert report.metadata_completion_rate == 0


def test_eval_result_defaults():
    result = EvalResult(criterion=EvalCriterion.SAFETY, score=100, passed=True)
    assert result.issues == []
    assert result.details == {}
