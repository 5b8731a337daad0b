"""Tests for difficulty conversions and difficulty-aware question queries."""

from __future__ import annotations

import random

import pytest

from qbank_app.extensions import db
from qbank_app.models import SkillMastery
from qbank_app.services import difficulty_service

from conftest import auth_headers


@pytest.mark.parametrize(
    "overall,legacy,level",
    [(0.0, 1, "easy"), (0.32, 1, "easy"), (0.33, 2, "medium"), (0.66, 2, "medium"), (0.67, 3, "hard"), (1.0, 3, "hard")],
)
def test_difficulty_buckets(overall, legacy, level):
    assert difficulty_service.difficulty_to_legacy(overall) == legacy
    assert difficulty_service.get_difficulty_level(overall) == level


def test_legacy_to_difficulty():
    assert difficulty_service.legacy_to_difficulty(1) == 0.0
    assert difficulty_service.legacy_to_difficulty(2) == 0.5
    assert difficulty_service.legacy_to_difficulty(3) == 1.0


def test_compute_overall_difficulty_is_mean():
    assert difficulty_service.compute_overall_difficulty("math", {"a": 0.2, "b": 0.6}) == pytest.approx(0.4)
    assert difficulty_service.compute_overall_difficulty("math", None) == 0.5
    assert difficulty_service.compute_overall_difficulty("math", {"a": None}) == 0.5


def test_questions_by_range_filters_status_and_bounds(make_question):
    easy = make_question(factors={"reasoningSteps": 0.1})
    medium = make_question(factors={"reasoningSteps": 0.5})
    make_question(factors={"reasoningSteps": 0.9})
    make_question(factors={"reasoningSteps": 0.5}, review_status="pending")

    result = difficulty_service.questions_by_difficulty_range("math", 0.0, 0.6)
    assert [q.id for q in result["items"]] == [easy.id, medium.id]
    assert result["has_more"] is False

    limited = difficulty_service.questions_by_difficulty_range("math", 0.0, 1.0, limit=1, exclude_ids=[easy.id])
    assert [q.id for q in limited["items"]] == [medium.id]
    assert limited["has_more"] is True


def test_questions_by_range_falls_back_to_legacy_difficulty(make_question):
    legacy = make_question()
    legacy.overall_difficulty = None
    legacy.difficulty = 3
    db.session.commit()
    scored = make_question(factors={"reasoningSteps": 0.4})

    result = difficulty_service.questions_by_difficulty_range("math", 0.0, 1.0)
    assert [q.id for q in result["items"]] == [scored.id, legacy.id]
    assert difficulty_service.questions_by_difficulty_range("math", 0.0, 0.9)["items"] == [scored]
    assert difficulty_service.difficulty_distribution("math")["total"] == 2


def test_adaptive_question_prefers_weak_skills(make_question, student_id):
    make_question(skill="linear_equations", factors={"reasoningSteps": 0.5})
    weak = make_question(skill="systems_of_equations", factors={"reasoningSteps": 0.5})
    db.session.add_all(
        [
            SkillMastery(user_id=student_id, category="math", domain="algebra", skill="linear_equations", mastery_points=800),
            SkillMastery(user_id=student_id, category="math", domain="algebra", skill="systems_of_equations", mastery_points=50),
        ]
    )
    db.session.commit()
    picked = difficulty_service.select_adaptive_question(
        student_id, category="math", target_difficulty=0.5, rng=random.Random(0)
    )
    assert picked.id == weak.id


def test_adaptive_question_respects_tolerance(make_question, student_id):
    make_question(factors={"reasoningSteps": 0.9})
    assert difficulty_service.select_adaptive_question(student_id, "math", 0.2, tolerance=0.1) is None


def test_adaptive_tolerance_defaults_to_a_fifth(make_question, student_id):
    assert difficulty_service.current_app.config["ADAPTIVE_DIFFICULTY_TOLERANCE"] == 0.2
    near = make_question(factors={"reasoningSteps": 0.68})
    make_question(factors={"reasoningSteps": 0.75})
    picked = difficulty_service.select_adaptive_question(student_id, "math", 0.5, rng=random.Random(0))
    assert picked.id == near.id


def test_distribution_counts_buckets(make_question):
    make_question(factors={"reasoningSteps": 0.1})
    make_question(factors={"reasoningSteps": 0.9}, skill="linear_inequalities")
    dist = difficulty_service.difficulty_distribution("math")
    assert dist["total"] == 2
    assert dist["overall"] == {"easy": 1, "medium": 0, "hard": 1}
    assert dist["by_skill"]["linear_inequalities"]["hard"] == 1


def test_questions_by_factors(make_question):
    match = make_question(factors={"reasoningSteps": 0.8, "computationLoad": 0.2})
    make_question(factors={"reasoningSteps": 0.8, "computationLoad": 0.9})
    result = difficulty_service.questions_by_factors(
        "math",
        [{"factor": "reasoningSteps", "min": 0.7}, {"factor": "computationLoad", "max": 0.3}],
    )
    assert [q.id for q in result["items"]] == [match.id]
    assert result["total_matching"] == 1


def test_by_difficulty_endpoint_validates_range(client, student_token):
    resp = client.post(
        "/api/questions/by-difficulty",
        json={"category": "math", "min_difficulty": 0.8, "max_difficulty": 0.2},
        headers=auth_headers(student_token),
    )
    assert resp.status_code == 400
    assert "errors" in resp.get_json()


def test_question_detail_hides_answer_from_students(client, student_token, admin_token, make_question):
    question = make_question()
    student_view = client.get(f"/api/questions/{question.id}", headers=auth_headers(student_token)).get_json()
    assert "correct_answer" not in student_view["question"]
    admin_view = client.get(f"/api/questions/{question.id}", headers=auth_headers(admin_token)).get_json()
    assert admin_view["question"]["correct_answer"] == "B"
