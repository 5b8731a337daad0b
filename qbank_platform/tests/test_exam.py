"""Tests for exam attempts, answers and scoring."""

from __future__ import annotations

import pytest

from qbank_app.models import QuestionPerformanceStats, UserAnswer
from qbank_app.services import score_service

from conftest import auth_headers


@pytest.mark.parametrize(
    "raw,count,expected",
    [(0, 44, 200), (44, 44, 800), (22, 44, 500), (27, 54, 500), (60, 54, 800)],
)
def test_scale_section(raw, count, expected):
    assert score_service.scale_section(raw, count) == expected


def _new_attempt(client, token, **payload):
    resp = client.post("/api/exam/attempts", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["attempt"]


def test_create_attempt_and_current(client, student_token):
    attempt = _new_attempt(client, student_token, mode="sat")
    assert attempt["status"] == "in_progress"
    assert attempt["mode"] == "sat"

    current = client.get("/api/exam/attempts/current", headers=auth_headers(student_token)).get_json()
    assert current["attempt"]["id"] == attempt["id"]
    assert current["attempt"]["answered_count"] == 0


def test_create_attempt_rejects_unknown_mode(client, student_token):
    resp = client.post("/api/exam/attempts", json={"mode": "speedrun"}, headers=auth_headers(student_token))
    assert resp.status_code == 400


def test_progress_and_status_transitions(client, student_token):
    attempt = _new_attempt(client, student_token)
    resp = client.patch(
        f"/api/exam/attempts/{attempt['id']}/progress",
        json={"current_section_index": 1, "current_question_index": 7},
        headers=auth_headers(student_token),
    )
    assert resp.get_json()["attempt"]["current_question_index"] == 7

    paused = client.post(f"/api/exam/attempts/{attempt['id']}/pause", headers=auth_headers(student_token))
    assert paused.get_json()["attempt"]["status"] == "paused"
    abandoned = client.post(f"/api/exam/attempts/{attempt['id']}/abandon", headers=auth_headers(student_token))
    assert abandoned.get_json()["attempt"]["status"] == "abandoned"

    reopened = client.post(f"/api/exam/attempts/{attempt['id']}/resume", headers=auth_headers(student_token))
    assert reopened.status_code == 409
    unknown = client.post(f"/api/exam/attempts/{attempt['id']}/teleport", headers=auth_headers(student_token))
    assert unknown.status_code == 404


def test_attempts_are_private(client, student_token):
    attempt = _new_attempt(client, student_token)
    other = client.post(
        "/api/auth/register", json={"email": "peer@example.com", "password": "StrongPass123!"}
    ).get_json()["access_token"]
    resp = client.get(f"/api/exam/attempts/{attempt['id']}", headers=auth_headers(other))
    assert resp.status_code == 404


def test_answer_flag_and_crossed_out(client, student_token, make_question):
    question = make_question()
    attempt = _new_attempt(client, student_token)
    base = f"/api/exam/attempts/{attempt['id']}"

    saved = client.put(
        f"{base}/answers",
        json={"question_id": question.id, "selected_answer": "A", "time_spent_ms": 1500},
        headers=auth_headers(student_token),
    ).get_json()["answer"]
    assert saved["status"] == "draft"
    assert saved["time_spent_ms"] == 1500

    again = client.put(
        f"{base}/answers",
        json={"question_id": question.id, "time_spent_ms": 500},
        headers=auth_headers(student_token),
    ).get_json()["answer"]
    assert again["selected_answer"] == "A"
    assert again["time_spent_ms"] == 2000

    flagged = client.post(f"{base}/flag", json={"question_id": question.id}, headers=auth_headers(student_token))
    assert flagged.get_json()["answer"]["flagged"] is True
    unflagged = client.post(f"{base}/flag", json={"question_id": question.id}, headers=auth_headers(student_token))
    assert unflagged.get_json()["answer"]["flagged"] is False

    crossed = client.post(
        f"{base}/crossed-out",
        json={"question_id": question.id, "crossed_out": ["C", "D"]},
        headers=auth_headers(student_token),
    )
    assert crossed.get_json()["answer"]["crossed_out"] == ["C", "D"]

    cleared = client.put(
        f"{base}/answers",
        json={"question_id": question.id, "selected_answer": None},
        headers=auth_headers(student_token),
    ).get_json()["answer"]
    assert cleared["status"] == "empty"


def test_answer_for_unknown_question(client, student_token):
    attempt = _new_attempt(client, student_token)
    resp = client.put(
        f"/api/exam/attempts/{attempt['id']}/answers",
        json={"question_id": 999, "selected_answer": "A"},
        headers=auth_headers(student_token),
    )
    assert resp.status_code == 404


def test_submit_grades_and_scores(client, student_token, make_question):
    math_right = make_question(correct_answer="B")
    math_wrong = make_question(correct_answer="C")
    reading = make_question(category="reading_writing", domain="craft_and_structure", skill="words_in_context")
    attempt = _new_attempt(client, student_token, mode="sat")
    base = f"/api/exam/attempts/{attempt['id']}"
    for question, choice in ((math_right, "B"), (math_wrong, "A"), (reading, "B")):
        client.put(
            f"{base}/answers",
            json={"question_id": question.id, "selected_answer": choice, "time_spent_ms": 1000},
            headers=auth_headers(student_token),
        )

    resp = client.post(f"{base}/submit", headers=auth_headers(student_token))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["graded"] == 3
    score = body["score"]
    assert score["math_raw"] == 1
    assert score["reading_writing_raw"] == 1
    assert score["math_scaled"] == score_service.scale_section(1, 44)
    assert score["reading_writing_scaled"] == score_service.scale_section(1, 54)
    assert score["total_scaled"] == score["math_scaled"] + score["reading_writing_scaled"]
    assert score["avg_time_per_question_ms"] == 1000
    algebra = next(entry for entry in score["domain_scores"] if entry["domain"] == "algebra")
    assert (algebra["correct"], algebra["total"]) == (1, 2)

    perf = QuestionPerformanceStats.query.filter_by(question_id=math_wrong.id).one()
    assert (perf.total_attempts, perf.correct_attempts) == (1, 0)

    stored = client.get(f"{base}/score", headers=auth_headers(student_token)).get_json()
    assert stored["score"]["total_scaled"] == score["total_scaled"]

    late = client.put(
        f"{base}/answers",
        json={"question_id": math_wrong.id, "selected_answer": "C"},
        headers=auth_headers(student_token),
    )
    assert late.status_code == 409

    stats = client.get("/api/exam/stats", headers=auth_headers(student_token)).get_json()
    assert stats["stats"]["total_attempts"] == 1
    assert stats["stats"]["math_correct"] == 1
    assert stats["stats"]["best_score"] == score["total_scaled"]

    history = client.get("/api/exam/attempts", headers=auth_headers(student_token)).get_json()["items"]
    assert history[0]["correct_answers"] == 2
    assert history[0]["scaled_score"] == score["total_scaled"]


def test_score_missing_before_submit(client, student_token):
    attempt = _new_attempt(client, student_token)
    resp = client.get(f"/api/exam/attempts/{attempt['id']}/score", headers=auth_headers(student_token))
    assert resp.status_code == 404


def test_second_submit_is_rejected_without_recounting(client, student_token, make_question):
    question = make_question(correct_answer="B")
    attempt = _new_attempt(client, student_token)
    base = f"/api/exam/attempts/{attempt['id']}"
    client.put(
        f"{base}/answers",
        json={"question_id": question.id, "selected_answer": "A"},
        headers=auth_headers(student_token),
    )
    assert client.post(f"{base}/submit", headers=auth_headers(student_token)).status_code == 200
    assert client.post(f"{base}/submit", headers=auth_headers(student_token)).status_code == 409

    perf = QuestionPerformanceStats.query.filter_by(question_id=question.id).one()
    assert perf.total_attempts == 1


def test_submitting_abandoned_attempt_writes_nothing(client, student_token, make_question):
    question = make_question()
    attempt = _new_attempt(client, student_token)
    base = f"/api/exam/attempts/{attempt['id']}"
    client.put(
        f"{base}/answers",
        json={"question_id": question.id, "selected_answer": "B"},
        headers=auth_headers(student_token),
    )
    client.post(f"{base}/abandon", headers=auth_headers(student_token))

    resp = client.post(f"{base}/submit", headers=auth_headers(student_token))
    assert resp.status_code == 409
    assert QuestionPerformanceStats.query.filter_by(question_id=question.id).count() == 0
    answer = UserAnswer.query.filter_by(attempt_id=attempt["id"]).one()
    assert answer.status == "draft"


def _answer_and_submit(client, token, answers, mode="practice"):
    attempt = _new_attempt(client, token, mode=mode)
    base = f"/api/exam/attempts/{attempt['id']}"
    for question, choice in answers:
        client.put(
            f"{base}/answers",
            json={"question_id": question.id, "selected_answer": choice},
            headers=auth_headers(token),
        )
    assert client.post(f"{base}/submit", headers=auth_headers(token)).status_code == 200
    return attempt


def test_wrong_answers_latest_miss_per_question(client, student_token, make_question):
    algebra = make_question(correct_answer="B")
    reading = make_question(category="reading_writing", domain="craft_and_structure", skill="words_in_context")
    solid = make_question(correct_answer="B")
    _answer_and_submit(client, student_token, [(algebra, "A"), (reading, "C"), (solid, "B")])
    _answer_and_submit(client, student_token, [(algebra, "D")], mode="sat")
    _answer_and_submit(client, student_token, [(reading, "B")])

    body = client.get("/api/exam/wrong-answers", headers=auth_headers(student_token)).get_json()
    assert body["total"] == 2
    assert body["has_more"] is False
    latest = body["items"][0]
    assert latest["question"]["id"] == algebra.id
    assert latest["selected_answer"] == "D"
    assert latest["mode"] == "sat"
    assert latest["question"]["correct_answer"] == "B"
    assert latest["wrong_attempts"] == 2
    assert latest["has_improved"] is False
    improved = body["items"][1]
    assert improved["question"]["id"] == reading.id
    assert improved["has_improved"] is True
    assert improved["total_attempts"] == 2

    math_only = client.get(
        "/api/exam/wrong-answers?category=math&limit=1", headers=auth_headers(student_token)
    ).get_json()
    assert [item["question"]["id"] for item in math_only["items"]] == [algebra.id]
    assert math_only["total"] == 1

    count = client.get("/api/exam/wrong-answers/count", headers=auth_headers(student_token)).get_json()
    assert count == {"total_wrong_questions": 2, "improved_count": 1, "needs_review_count": 1}


def test_wrong_answers_ignore_drafts_and_validate_query(client, student_token, make_question):
    question = make_question(correct_answer="B")
    attempt = _new_attempt(client, student_token)
    client.put(
        f"/api/exam/attempts/{attempt['id']}/answers",
        json={"question_id": question.id, "selected_answer": "A"},
        headers=auth_headers(student_token),
    )
    body = client.get("/api/exam/wrong-answers", headers=auth_headers(student_token)).get_json()
    assert body == {"items": [], "total": 0, "has_more": False}

    bad = client.get("/api/exam/wrong-answers?category=poetry", headers=auth_headers(student_token))
    assert bad.status_code == 400


def test_previous_attempts_track_improvement(client, student_token, make_question):
    question = make_question(correct_answer="B")
    first = _answer_and_submit(client, student_token, [(question, "A")])
    second = _answer_and_submit(client, student_token, [(question, "B")], mode="sat")
    url = f"/api/exam/questions/{question.id}/previous-attempts"

    body = client.get(url, headers=auth_headers(student_token)).get_json()
    assert [item["attempt_id"] for item in body["attempts"]] == [first["id"], second["id"]]
    assert [item["is_correct"] for item in body["attempts"]] == [False, True]
    assert body["attempts"][1]["mode"] == "sat"
    assert body["improved"] is True

    without_latest = client.get(
        f"{url}?exclude_attempt_id={second['id']}", headers=auth_headers(student_token)
    ).get_json()
    assert without_latest["total_attempts"] == 1
    assert without_latest["has_wrong_attempt"] is True
    assert without_latest["has_correct_attempt"] is False
    assert without_latest["improved"] is False
