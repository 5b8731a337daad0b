"""Tests for endless mode: SM-2 scheduling, mastery and the session flow."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from qbank_app.extensions import db
from qbank_app.models import QuestionReviewSchedule, SkillMastery, UserAnswer
from qbank_app.services import endless_service, spaced_repetition

from conftest import auth_headers

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_sm2_correct_progression():
    first = spaced_repetition.calculate_sm2_update(True, now=NOW)
    assert (first.repetitions, first.interval) == (1, 1)
    assert first.ease_factor == pytest.approx(2.6)
    assert first.next_review_at == NOW + timedelta(days=1)

    second = spaced_repetition.calculate_sm2_update(True, first.ease_factor, first.interval, first.repetitions, NOW)
    assert (second.repetitions, second.interval) == (2, 6)

    third = spaced_repetition.calculate_sm2_update(True, second.ease_factor, second.interval, second.repetitions, NOW)
    assert third.interval == round(6 * second.ease_factor)


def test_sm2_incorrect_resets_and_floors_ease():
    update = spaced_repetition.calculate_sm2_update(False, 1.4, 15, 4, NOW)
    assert (update.repetitions, update.interval) == (0, 1)
    assert update.ease_factor == spaced_repetition.MIN_EASE


def test_review_priority_bands():
    assert spaced_repetition.review_priority(None, NOW) == 25.0
    schedule = QuestionReviewSchedule(interval=1, last_reviewed_at=NOW - timedelta(days=3))
    assert spaced_repetition.review_priority(schedule, NOW) == 30.0
    schedule.last_reviewed_at = NOW - timedelta(days=10)
    assert spaced_repetition.review_priority(schedule, NOW) == 40.0
    schedule.last_reviewed_at = NOW - timedelta(hours=12)
    assert spaced_repetition.review_priority(schedule, NOW) == 15.0
    schedule.interval = 6
    assert spaced_repetition.review_priority(schedule, NOW) == 0.0


@pytest.mark.parametrize(
    "points,level",
    [(0, "novice"), (99, "novice"), (100, "beginner"), (300, "intermediate"), (600, "advanced"), (900, "expert")],
)
def test_mastery_levels(points, level):
    assert endless_service.get_mastery_level(points) == level


@pytest.mark.parametrize(
    "correct,difficulty,streak,points,expected",
    [
        (True, 2, 0, 0, 15),
        (True, 1, 2, 400, 13),
        (True, 3, 5, 1000, 0),
        (False, 2, 0, 0, 0),
        (False, 3, 0, 100, -12),
    ],
)
def test_mastery_point_change(correct, difficulty, streak, points, expected):
    assert endless_service.calculate_mastery_point_change(correct, difficulty, streak, points) == expected


def test_selection_excludes_answered_and_resets_pool(app_with_db, make_question, student_id):
    first = make_question()
    second = make_question()
    make_question(review_status="pending")

    picked = endless_service.select_next_question(student_id, "math", answered_ids=[first.id], rng=random.Random(1))
    assert picked.id == second.id

    recycled = endless_service.select_next_question(
        student_id, "math", answered_ids=[first.id, second.id], rng=random.Random(1)
    )
    assert recycled.id in {first.id, second.id}


def test_selection_prefers_weak_untested_skills(app_with_db, make_question, student_id):
    strong = make_question(skill="linear_equations")
    weak = make_question(skill="linear_inequalities")
    db.session.add(
        SkillMastery(
            user_id=student_id,
            category="math",
            domain="algebra",
            skill="linear_equations",
            total_questions=10,
            correct_answers=10,
            last_practiced_at=NOW - timedelta(minutes=2),
        )
    )
    db.session.commit()
    picked = endless_service.select_next_question(student_id, "math", rng=random.Random(0), now=NOW)
    assert picked.id == weak.id
    assert picked.id != strong.id


def test_start_session_and_resume(client, student_token, make_question):
    make_question()
    first = client.post("/api/endless/sessions", json={"category": "math"}, headers=auth_headers(student_token))
    assert first.status_code == 201
    body = first.get_json()
    assert body["is_resumed"] is False
    assert body["current_question_id"] is not None

    again = client.post("/api/endless/sessions", json={}, headers=auth_headers(student_token))
    assert again.status_code == 200
    assert again.get_json()["session_id"] == body["session_id"]
    assert again.get_json()["is_resumed"] is True


def test_answer_flow_updates_everything(client, student_token, student_id, make_question):
    for _ in range(3):
        make_question(correct_answer="B")
    start = client.post("/api/endless/sessions", json={"category": "math"}, headers=auth_headers(student_token)).get_json()
    session_id, question_id = start["session_id"], start["current_question_id"]

    resp = client.post(
        f"/api/endless/sessions/{session_id}/answer",
        json={"question_id": question_id, "selected_answer": "b", "time_spent_ms": 4000},
        headers=auth_headers(student_token),
    )
    assert resp.status_code == 200
    result = resp.get_json()
    assert result["is_correct"] is True
    assert result["correct_answer"] == "B"
    assert result["current_streak"] == 1
    assert result["point_change"] == 15
    assert result["mastery_level"] == "novice"
    assert result["next_question_id"] not in (None, question_id)
    assert "first_question" in result["achievements_unlocked"]

    wrong = client.post(
        f"/api/endless/sessions/{session_id}/answer",
        json={"question_id": result["next_question_id"], "selected_answer": "A"},
        headers=auth_headers(student_token),
    ).get_json()
    assert wrong["is_correct"] is False
    assert wrong["current_streak"] == 0
    assert wrong["best_streak"] == 1
    assert wrong["explanation"] == "Because it balances."

    db.session.expire_all()
    assert UserAnswer.query.filter_by(user_id=student_id).count() == 2
    assert QuestionReviewSchedule.query.filter_by(user_id=student_id).count() == 2
    mastery = SkillMastery.query.filter_by(user_id=student_id).one()
    assert (mastery.total_questions, mastery.correct_answers) == (2, 1)

    state = client.get(f"/api/endless/sessions/{session_id}", headers=auth_headers(student_token)).get_json()
    assert state["questions_answered"] == 2
    assert state["accuracy"] == 50

    summary = client.post(f"/api/endless/sessions/{session_id}/end", headers=auth_headers(student_token)).get_json()
    assert summary["summary"]["correct_answers"] == 1
    current = client.get("/api/endless/sessions/current", headers=auth_headers(student_token)).get_json()
    assert current["session"] is None


def test_daily_goal_target_and_progress(client, student_token, make_question):
    make_question()
    make_question()
    set_resp = client.put("/api/endless/daily-goal", json={"target": 2}, headers=auth_headers(student_token))
    assert set_resp.get_json() == {"target": 2}

    start = client.post("/api/endless/sessions", json={}, headers=auth_headers(student_token)).get_json()
    question_id = start["current_question_id"]
    for _ in range(2):
        result = client.post(
            f"/api/endless/sessions/{start['session_id']}/answer",
            json={"question_id": question_id, "selected_answer": "B"},
            headers=auth_headers(student_token),
        ).get_json()
        question_id = result["next_question_id"]
    assert result["daily_goal_met"] is True

    progress = client.get("/api/endless/daily-goal", headers=auth_headers(student_token)).get_json()
    assert progress["questions_answered"] == 2
    assert progress["progress"] == 100
    assert progress["goal_met"] is True


def test_daily_goal_target_is_clamped(client, student_token):
    low = client.put("/api/endless/daily-goal", json={"target": 0}, headers=auth_headers(student_token))
    assert low.get_json() == {"target": 1}
    high = client.put("/api/endless/daily-goal", json={"target": 500}, headers=auth_headers(student_token))
    assert high.get_json() == {"target": 100}
    missing = client.put("/api/endless/daily-goal", json={}, headers=auth_headers(student_token))
    assert missing.status_code == 400


def test_other_users_session_is_hidden(client, student_token, make_question):
    make_question()
    start = client.post("/api/endless/sessions", json={}, headers=auth_headers(student_token)).get_json()
    other = client.post(
        "/api/auth/register", json={"email": "other@example.com", "password": "StrongPass123!"}
    ).get_json()["access_token"]
    resp = client.get(f"/api/endless/sessions/{start['session_id']}", headers=auth_headers(other))
    assert resp.status_code == 404


def test_mastery_and_streak_endpoints(client, student_token, make_question):
    question = make_question()
    start = client.post("/api/endless/sessions", json={}, headers=auth_headers(student_token)).get_json()
    client.post(
        f"/api/endless/sessions/{start['session_id']}/answer",
        json={"question_id": question.id, "selected_answer": "B"},
        headers=auth_headers(student_token),
    )
    mastery = client.get("/api/endless/mastery", headers=auth_headers(student_token)).get_json()
    assert mastery["mastery"]["math"][0]["skill"] == "linear_equations"
    assert mastery["due_reviews"] == 0

    streaks = client.get("/api/endless/streaks", headers=auth_headers(student_token)).get_json()
    assert streaks == {"current_streak": 1, "best_streak": 1, "total_sessions": 1}
