"""Tests for parameter sampling and the generation templates."""

from __future__ import annotations

import random

import pytest

from qbank_app.services import (
    cross_text_templates,
    grammar_templates,
    math_templates,
    reading_data_templates,
    reading_templates,
    sampling,
    transitions_templates,
)


def test_sample_gaussian_is_clamped():
    rng = random.Random(11)
    draws = [sampling.sample_gaussian(0.5, 5.0, rng) for _ in range(200)]
    assert all(0.0 <= value <= 1.0 for value in draws)
    assert 0.0 in draws or 1.0 in draws


def test_weighted_choice_respects_zero_weights():
    rng = random.Random(4)
    picks = {sampling.weighted_choice({"a": 1.0, "b": 0.0}, rng) for _ in range(50)}
    assert picks == {"a"}


def test_sample_from_empty_raises():
    with pytest.raises(ValueError):
        sampling.sample_from([])


def test_math_params_for_skill_infer_domain():
    params = math_templates.sample_math_params(skill="linear_equations", rng=random.Random(1))
    assert params.domain == math_templates.domain_for_skill("linear_equations")
    assert params.skill == "linear_equations"
    assert set(math_templates.compute_math_difficulty(params)) == set(math_templates.MATH_DIFFICULTY_FACTORS)


def test_math_params_round_trip_dict():
    params = math_templates.sample_math_params(rng=random.Random(8))
    restored = math_templates.SampledMathParams.from_dict(params.to_dict())
    assert restored == params


def test_math_unknown_domain_rejected():
    with pytest.raises(ValueError):
        math_templates.sample_math_params(domain="astrology")


def test_question_figure_type_mapping():
    assert math_templates.question_figure_type("coordinate_graph") == "graph"
    assert math_templates.question_figure_type("geometric_diagram") == "geometric"
    assert math_templates.question_figure_type("none") is None


def test_reading_params_derive_domain_and_skill():
    params = reading_templates.sample_reading_params(question_type="command_of_evidence", rng=random.Random(2))
    assert params.skill == "command_of_evidence_textual"
    assert params.passage_type in reading_templates.READING_PASSAGE_TYPES
    with pytest.raises(ValueError):
        reading_templates.sample_reading_params(question_type="nope")


def test_transition_distractors_come_from_other_relationships():
    params = transitions_templates.sample_transition_params(rng=random.Random(3), relationship_type="contrast")
    assert params.correct_transition in transitions_templates.TRANSITIONS_BY_TYPE["contrast"]
    assert params.distractor_transitions
    for distractor in params.distractor_transitions:
        assert distractor not in transitions_templates.TRANSITIONS_BY_TYPE["contrast"]
    with pytest.raises(ValueError):
        transitions_templates.sample_transition_params(relationship_type="sideways")


def test_data_params_and_difficulty():
    params = reading_data_templates.sample_data_question_params(data_type="data_table", rng=random.Random(6))
    assert params.data_type == "data_table"
    assert reading_data_templates.figure_type_for(params.data_type) == "table"
    difficulty = reading_data_templates.compute_rw_difficulty(params)
    assert 0.0 <= difficulty["inferenceDepth"] <= 0.8
    with pytest.raises(ValueError):
        reading_data_templates.sample_data_question_params(data_type="pie_chart")


def test_grammar_params_use_skill_patterns_and_distractors():
    params = grammar_templates.sample_grammar_params("boundaries_between_sentences", rng=random.Random(8))
    assert params.skill == "boundaries_between_sentences"
    assert params.pattern_type in grammar_templates.GRAMMAR_PATTERNS["boundaries_between_sentences"]
    assert params.distractor_strategies in reading_templates.DISTRACTOR_COMBOS_BY_TYPE["boundaries_between_sentences"]
    difficulty = grammar_templates.compute_rw_difficulty(params)
    assert difficulty["evidenceEvaluation"] == pytest.approx(1 - params.context_clarity)
    restored = grammar_templates.SampledGrammarParams.from_dict(params.to_dict())
    assert restored == params

    with pytest.raises(ValueError):
        grammar_templates.sample_grammar_params("spelling")


def test_cross_text_params_average_text_complexity():
    params = cross_text_templates.sample_cross_text_params(
        rng=random.Random(6), text1_complexity=0.2, text2_complexity=0.8, relationship_type="cause_effect"
    )
    assert params.relationship_type == "cause_effect"
    assert params.distractor_strategies in cross_text_templates.CROSS_TEXT_DISTRACTOR_COMBOS
    assert cross_text_templates.compute_rw_difficulty(params)["passageComplexity"] == pytest.approx(0.5)

    with pytest.raises(ValueError):
        cross_text_templates.sample_cross_text_params(passage_type_1="poetry")
