"""Tests for converting external generator output into import records."""

from __future__ import annotations

import random

import pytest

from qbank_app.services import transform

GEN_QUESTION = {
    "id": "gen-1",
    "topic": {"section": "READING", "domain": "InformationAndIdeas", "subtopic": "central_ideas"},
    "difficulty": {"overall": 4, "linguistic": 5, "conceptual": 2, "procedural": 3},
    "stem": "Which choice best states the main idea?",
    "choices": [
        {"label": "A", "text": "first"},
        {"label": "B", "text": "second"},
        {"label": "C", "text": "third"},
        {"label": "D", "text": "fourth"},
    ],
    "correctAnswer": "C",
    "explanation": "The passage focuses on the third idea.",
    "distractorRationale": {"A": "too narrow", "B": "off topic", "D": "too broad"},
    "passage": "A long passage about rivers and the towns that grew along them.",
    "passageMetadata": {"source": "River Histories", "genre": "Historical"},
    "metadata": {"generationId": "batch-9", "promptVersion": "v2"},
}


def test_map_domain_snake_cases_camel():
    assert transform.map_domain("InformationAndIdeas") == "information_and_ideas"
    assert transform.map_domain("AdvancedMath") == "advanced_math"
    assert transform.map_domain("") == ""


def test_map_category():
    assert transform.map_category("READING") == "reading_writing"
    assert transform.map_category("MATH") == "math"
    assert transform.map_category(None) == "math"


def test_map_passage_type_defaults_and_strict():
    assert transform.map_passage_type("Fiction") == "literary_narrative"
    assert transform.map_passage_type("scientific") == "natural_science"
    assert transform.map_passage_type("unknown-genre") == "social_science"
    with pytest.raises(ValueError):
        transform.map_passage_type("unknown-genre", strict=True)


def test_shuffle_list_is_a_permutation():
    items = list(range(10))
    shuffled = transform.shuffle_list(items, random.Random(3))
    assert sorted(shuffled) == items
    assert items == list(range(10))


def test_transform_question_tracks_correct_answer_through_shuffle():
    record = transform.transform_question(GEN_QUESTION, random.Random(7))
    question = record["question"]
    correct_key = question["correct_answer"]
    content_by_key = {option["key"]: option["content"] for option in record["options"]}
    assert content_by_key[correct_key] == "third"
    assert [option["key"] for option in record["options"]] == ["A", "B", "C", "D"]

    wrong = record["explanation"]["wrong_answer_explanations"]
    assert correct_key not in wrong
    assert sorted(wrong.values()) == ["off topic", "too broad", "too narrow"]
    for key, text in wrong.items():
        original = {"too narrow": "first", "off topic": "second", "too broad": "fourth"}[text]
        assert content_by_key[key] == original


def test_transform_question_fields():
    record = transform.transform_question(GEN_QUESTION, random.Random(1))
    question = record["question"]
    assert question["category"] == "reading_writing"
    assert question["domain"] == "information_and_ideas"
    assert question["overall_difficulty"] == pytest.approx(0.8)
    assert question["difficulty"] == 3
    assert question["rw_difficulty"]["passageComplexity"] == pytest.approx(1.0)
    assert question["rw_difficulty"]["inferenceDepth"] == pytest.approx(0.4)
    assert question["generation_batch_id"] == "batch-9"
    assert question["review_status"] == "pending"
    assert record["passage"]["passage_type"] == "humanities"
    assert record["passage_id"].startswith("passage_")


def test_transform_math_question_without_passage():
    gen = {
        "topic": {"section": "MATH", "domain": "Algebra", "subtopic": "linear_functions"},
        "difficulty": {"overall": 1, "procedural": 2},
        "stem": "What is the slope?",
        "choices": [{"label": key, "text": key.lower()} for key in "ABCD"],
        "correctAnswer": "A",
        "hasImage": True,
        "imageDescription": "A graph of a line",
    }
    record = transform.transform_question(gen, random.Random(2))
    assert record["passage_id"] is None
    assert record["question"]["math_difficulty"]["reasoningSteps"] == pytest.approx(0.4)
    assert record["needs_image"] is True
    assert record["figure_type"] == "graph"


def test_build_import_document_dedupes_passages():
    document = transform.build_import_document([GEN_QUESTION, dict(GEN_QUESTION, id="gen-2")], random.Random(5))
    assert len(document["questions"]) == 2
    assert len(document["passages"]) == 1
    assert all("passage" not in record for record in document["questions"])
