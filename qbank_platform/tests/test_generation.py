"""Tests for the question generation pipelines with a scripted AI client."""

from __future__ import annotations

import random

import pytest

from qbank_app.extensions import db
from qbank_app.models import GenerationDLQItem, Passage, Question
from qbank_app.services import (
    cross_text_generation,
    grammar_generation,
    grammar_templates,
    math_generation,
    math_templates,
    reading_data_generation,
    transitions_generation,
)

from conftest import auth_headers

MATH_PROBLEM = {
    "problemText": "If 2x + 3 = 11, what is x?",
    "correctAnswer": "4",
    "solutionSteps": ["Subtract 3", "Divide by 2"],
    "figureDescription": None,
    "figureData": None,
}
MATH_QUESTION = {
    "questionStem": "If 2x + 3 = 11, what is the value of x?",
    "choices": {"A": "3", "B": "7", "C": "4", "D": "8"},
    "correctAnswer": "C",
    "explanation": "Subtract 3 and divide by 2.",
    "wrongAnswerExplanations": {"A": "Arithmetic slip.", "C": "ignored", "D": "Forgot to divide."},
}
TRANSITIONS_QUESTION = {
    "passageWithBlank": "The bridge was finished early. _____ the city opened it a month ahead of schedule.",
    "questionStem": "Which choice completes the text with the most logical transition?",
    "choices": ["However,", "As a result,", "For instance,", "Similarly,"],
    "correctAnswer": "B",
    "explanation": "The second sentence is a consequence of the first.",
}
GRAMMAR_QUESTION = {
    "sentenceWithUnderline": "The collection of rare maps ______ housed in the university library.",
    "underlinedPortion": "is",
    "questionStem": "Which choice completes the text so that it conforms to the conventions of Standard English?",
    "choices": {"A": "is", "B": "are", "C": "were", "D": "have been"},
    "explanation": "The subject is the singular noun collection.",
    "grammarRule": "A verb agrees with its subject, not with a noun in an intervening phrase.",
    "distractorExplanations": {"B": "Agrees with maps.", "C": "Plural and past.", "D": "Plural."},
}
CROSS_TEXT_QUESTION = {
    "text1": {
        "content": "Ecologist Rosa Ibarra argues that urban beehives raise city pollination rates.",
        "author": "Rosa Ibarra",
    },
    "text2": {
        "content": "Entomologist Ken Mori found that hives crowd out native bees in dense cities.",
        "title": "Crowded Skies",
    },
    "questionStem": "Based on the texts, how would Mori most likely respond to Ibarra's argument?",
    "choices": {
        "A": "By noting that hives may harm native pollinators",
        "B": "By agreeing that hives always help pollination",
        "C": "By questioning whether cities have bees",
        "D": "By praising the honey yield of urban hives",
    },
    "explanation": "Mori's finding qualifies Ibarra's claim.",
    "distractorExplanations": {"B": "Reverses the relationship.", "C": "Misreads Text 2.", "D": "Off topic."},
}


def _math_params(seed=1):
    return math_templates.sample_math_params(
        domain="algebra", skill="linear_equations", figure_type="none", rng=random.Random(seed)
    )


def test_generate_math_question_persists_question(app_with_db, fake_ai):
    fake_ai.queue(MATH_PROBLEM, MATH_QUESTION)
    result = math_generation.generate_math_question(params=_math_params(), batch_id="math-test")
    assert result.success, result.error

    question = db.session.get(Question, result.question_id)
    assert question.category == "math"
    assert question.domain == "algebra"
    assert question.correct_answer == "C"
    assert question.generation_batch_id == "math-test"
    assert question.review_status == "pending"
    assert question.option_map()["C"] == "4"
    assert question.explanation.wrong_answer_explanations == {"A": "Arithmetic slip.", "D": "Forgot to divide."}
    assert set(question.math_difficulty) == set(math_templates.MATH_DIFFICULTY_FACTORS)
    assert question.generation_metadata["sampled_params"]["skill"] == "linear_equations"
    assert fake_ai.image_calls == []


def test_figure_tag_follows_rendered_figure(app_with_db, fake_ai):
    params = math_templates.sample_math_params(
        domain="algebra", skill="linear_equations", figure_type="coordinate_graph", rng=random.Random(2)
    )
    fake_ai.queue(MATH_PROBLEM, MATH_QUESTION)
    skipped = math_generation.generate_math_question(params=params)
    assert "no_figure" in db.session.get(Question, skipped.question_id).tags
    assert fake_ai.image_calls == []

    fake_ai.queue(dict(MATH_PROBLEM, figureData={"points": [[0, 3], [4, 11]]}), MATH_QUESTION)
    drawn = math_generation.generate_math_question(params=params)
    question = db.session.get(Question, drawn.question_id)
    assert "has_figure" in question.tags
    assert question.figure_image_id is not None


def test_single_generation_failure_does_not_touch_dlq(app_with_db, fake_ai):
    fake_ai.queue("I cannot answer that.")
    result = math_generation.generate_math_question(params=_math_params())
    assert not result.success
    assert result.error_stage == "problem_generation"
    assert GenerationDLQItem.query.count() == 0


def test_batch_failures_go_to_dlq_with_artefacts(app_with_db, fake_ai):
    fake_ai.queue(MATH_PROBLEM, {"questionStem": "missing the rest"})
    summary = math_generation.batch_generate_math_questions(1, domains=["algebra"], skills=["linear_equations"])
    assert summary["total"] == 1
    assert summary["failed"] == 1
    assert summary["results"][0]["error_stage"] == "question_generation"

    item = GenerationDLQItem.query.one()
    assert item.pipeline == "math"
    assert item.batch_id == summary["batch_id"]
    assert item.artefacts["problem"]["problemText"] == MATH_PROBLEM["problemText"]
    assert item.sampled_params["skill"] == "linear_equations"


def test_retry_reuses_stored_problem(app_with_db, fake_ai):
    fake_ai.queue(MATH_PROBLEM, {"questionStem": "missing the rest"})
    math_generation.batch_generate_math_questions(1, domains=["algebra"], skills=["linear_equations"])
    calls_before = len(fake_ai.chat_calls)

    fake_ai.queue(MATH_QUESTION)
    summary = math_generation.retry_dlq_items(limit=5)
    assert summary["processed"] == 1
    assert summary["succeeded"] == 1
    assert len(fake_ai.chat_calls) == calls_before + 1

    item = GenerationDLQItem.query.one()
    assert item.status == "succeeded"
    assert item.question_id == summary["results"][0]["question_id"]
    assert summary["results"][0]["dlq_id"] == item.id


def test_retry_failure_keeps_item_pending(app_with_db, fake_ai):
    fake_ai.queue("not json")
    math_generation.batch_generate_math_questions(1, domains=["algebra"])
    fake_ai.queue("still not json")
    summary = math_generation.retry_dlq_items()
    assert summary["failed"] == 1
    item = GenerationDLQItem.query.one()
    assert item.status == "pending"
    assert item.retry_count == 2


def test_transitions_question_creates_passage(app_with_db, fake_ai):
    fake_ai.queue(TRANSITIONS_QUESTION)
    result = transitions_generation.generate_transitions_question(relationship_type="cause_effect")
    assert result.success, result.error

    question = db.session.get(Question, result.question_id)
    assert question.category == "reading_writing"
    assert question.skill == "transitions"
    assert question.option_map()["B"] == "As a result,"
    passage = db.session.get(Passage, result.passage_id)
    assert passage.content.startswith("The bridge was finished early.")
    assert passage.used_in_question_count == 1


def test_data_question_shuffle_tracks_correct_answer():
    choices = {"A": "alpha", "B": "beta", "C": "gamma", "D": "delta"}
    options, correct, explanations = reading_data_generation.shuffle_choices(
        choices, "C", {"A": "wrong a", "B": "wrong b", "D": "wrong d"}, rng=random.Random(9)
    )
    by_key = {option["key"]: option["content"] for option in options}
    assert by_key[correct] == "gamma"
    assert correct not in explanations
    assert sorted(explanations.values()) == ["wrong a", "wrong b", "wrong d"]


def test_admin_generate_endpoint(client, admin_token, fake_ai):
    fake_ai.queue(TRANSITIONS_QUESTION)
    resp = client.post(
        "/api/admin/generate/transitions",
        json={"count": 1, "relationship_type": "cause_effect"},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["successful"] == 1
    assert payload["results"][0]["question_id"]


def test_admin_generate_rejects_unknown_skill(client, admin_token):
    resp = client.post(
        "/api/admin/generate/math",
        json={"count": 1, "skills": ["astrology"]},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 400


def test_grammar_question_has_no_passage_and_shuffles_choices(app_with_db, fake_ai):
    fake_ai.queue(GRAMMAR_QUESTION)
    result = grammar_generation.generate_grammar_question(
        "subject_verb_agreement", pattern_type="prepositional_phrase_distractor", rng=random.Random(3)
    )
    assert result.success, result.error
    assert result.passage_id is None

    question = db.session.get(Question, result.question_id)
    assert question.domain == "standard_english_conventions"
    assert question.skill == "subject_verb_agreement"
    assert question.passage_id is None
    assert question.prompt.startswith("The collection of rare maps ______")
    assert question.option_map()[question.correct_answer] == "is"
    assert "grammar" in question.tags
    assert "prepositional_phrase_distractor" in question.tags
    assert question.rw_difficulty["synthesisRequired"] == 0.0
    assert "Rule: A verb agrees" in question.explanation.correct_explanation
    assert question.correct_answer not in question.explanation.wrong_answer_explanations
    assert "prepositional phrase distractor" in fake_ai.chat_calls[0][1]["content"]


def test_grammar_batch_cycles_question_types(app_with_db, fake_ai):
    fake_ai.queue(GRAMMAR_QUESTION, GRAMMAR_QUESTION, "not json")
    summary = grammar_generation.batch_generate_grammar_questions(
        3, question_types=["verb_finiteness", "genitives_plurals"], rng=random.Random(5)
    )
    assert summary["total"] == 3
    assert summary["successful"] == 2
    skills = sorted(result["sampled_params"]["question_type"] for result in summary["results"])
    assert skills == ["genitives_plurals", "verb_finiteness", "verb_finiteness"]

    item = GenerationDLQItem.query.one()
    assert item.pipeline == "grammar"
    fake_ai.queue(GRAMMAR_QUESTION)
    retried = grammar_generation.retry_dlq_items()
    assert retried["succeeded"] == 1
    assert GenerationDLQItem.query.one().status == "succeeded"


def test_grammar_rejects_pattern_from_another_skill():
    with pytest.raises(ValueError, match="comma_splice"):
        grammar_templates.sample_grammar_params("verb_tense_aspect", pattern_type="comma_splice")


def test_cross_text_question_links_both_passages(app_with_db, fake_ai):
    fake_ai.queue(CROSS_TEXT_QUESTION)
    result = cross_text_generation.generate_cross_text_question(
        relationship_type="contradicts_challenges", rng=random.Random(2)
    )
    assert result.success, result.error

    question = db.session.get(Question, result.question_id)
    assert question.domain == "craft_and_structure"
    assert question.skill == "cross_text_connections"
    assert question.passage_id == result.passage_id
    assert question.option_map()[question.correct_answer].startswith("By noting")
    assert "contradicts_challenges" in question.tags

    first, second = question.passage, question.secondary_passage
    assert first.author == "Rosa Ibarra"
    assert first.title == "Text 1"
    assert second.title == "Crowded Skies"
    assert second.source == "Cross-text pair"
    assert second.used_in_question_count == 1
    factors = question.rw_difficulty
    assert factors["inferenceDepth"] == factors["synthesisRequired"]


def test_cross_text_missing_text_goes_to_dlq(app_with_db, fake_ai):
    broken = dict(CROSS_TEXT_QUESTION, text2={"title": "No body"})
    fake_ai.queue(broken)
    summary = cross_text_generation.batch_generate_cross_text_questions(1)
    assert summary["failed"] == 1
    assert summary["results"][0]["error_stage"] == "question_generation"
    assert Passage.query.count() == 0
    assert GenerationDLQItem.query.one().pipeline == "cross_text"


def test_admin_generate_grammar_and_cross_text(client, admin_token, fake_ai):
    fake_ai.queue(GRAMMAR_QUESTION, CROSS_TEXT_QUESTION)
    grammar = client.post(
        "/api/admin/generate/grammar",
        json={"count": 1, "question_types": ["subject_verb_agreement"]},
        headers=auth_headers(admin_token),
    )
    assert grammar.status_code == 200
    assert grammar.get_json()["successful"] == 1
    cross = client.post(
        "/api/admin/generate/cross-text",
        json={"count": 1, "relationship_type": "supports_extends"},
        headers=auth_headers(admin_token),
    )
    assert cross.get_json()["successful"] == 1

    bad = client.post(
        "/api/admin/generate/grammar",
        json={"question_types": ["spelling_bee"]},
        headers=auth_headers(admin_token),
    )
    assert bad.status_code == 400
