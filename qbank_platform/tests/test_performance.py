"""Tests for per-question performance tracking and high-error flagging."""

from __future__ import annotations

from qbank_app.extensions import db
from qbank_app.models import Question, QuestionPerformanceStats
from qbank_app.services import performance_service

from conftest import auth_headers


def _answer(question_id, letter, correct, times=1):
    for _ in range(times):
        performance_service.record_question_attempt(question_id, letter, correct)


def test_record_attempt_tracks_distribution(app_with_db, make_question):
    question = make_question(correct_answer="B")
    _answer(question.id, "B", True, 2)
    _answer(question.id, "c", False, 3)
    _answer(question.id, "A", False)
    _answer(question.id, None, False)

    stats = QuestionPerformanceStats.query.filter_by(question_id=question.id).one()
    assert stats.total_attempts == 7
    assert stats.correct_attempts == 2
    assert round(stats.error_rate, 4) == round(5 / 7, 4)
    assert stats.answer_distribution == {"A": 1, "B": 2, "C": 3, "D": 0}
    assert stats.most_common_wrong_answer == "C"
    assert stats.flagged_for_review is False


def test_flags_after_min_attempts(app_with_db, make_question):
    app_with_db.config["PERFORMANCE_MIN_ATTEMPTS"] = 10
    question = make_question(correct_answer="A", review_status="verified")
    _answer(question.id, "B", False, 9)
    assert QuestionPerformanceStats.query.filter_by(question_id=question.id).one().flagged_for_review is False

    _answer(question.id, "B", False)
    stats = QuestionPerformanceStats.query.filter_by(question_id=question.id).one()
    assert stats.flagged_for_review is True
    assert stats.flag_reason.startswith("Urgent: high error rate: 100.0%")
    assert db.session.get(Question, question.id).review_status == "flagged_high_error"


def test_moderate_error_rate_flag_is_not_urgent(app_with_db, make_question):
    app_with_db.config["PERFORMANCE_MIN_ATTEMPTS"] = 10
    question = make_question(correct_answer="A")
    _answer(question.id, "A", True, 2)
    _answer(question.id, "B", False, 8)
    stats = QuestionPerformanceStats.query.filter_by(question_id=question.id).one()
    assert stats.flagged_for_review is True
    assert stats.flag_reason.startswith("High error rate: 80.0%")


def test_clear_flag_and_reset(app_with_db, make_question):
    app_with_db.config["PERFORMANCE_MIN_ATTEMPTS"] = 1
    question = make_question(correct_answer="A")
    _answer(question.id, "B", False)
    assert performance_service.get_flagged_questions()[0]["question_id"] == question.id

    performance_service.clear_question_flag(question.id)
    assert performance_service.get_flagged_questions() == []
    assert db.session.get(Question, question.id).review_status == "verified"

    assert performance_service.reset_question_stats(question.id)["deleted"] == 1
    assert QuestionPerformanceStats.query.count() == 0


def test_problematic_questions_and_dashboard(app_with_db, make_question):
    bad = make_question(correct_answer="A")
    good = make_question(correct_answer="A")
    _answer(bad.id, "D", False, 12)
    _answer(good.id, "A", True, 12)

    problematic = performance_service.get_problematic_questions(min_attempts=10, min_error_rate=0.5)
    assert [row["question"]["id"] for row in problematic] == [bad.id]

    dashboard = performance_service.get_quality_dashboard()
    assert dashboard["total_questions"] == 2
    assert dashboard["questions_with_stats"] == 2
    assert dashboard["total_attempts"] == 24
    assert dashboard["average_error_rate"] == 0.5


def test_quality_endpoints(client, admin_token, make_question):
    question = make_question()
    resp = client.get("/api/admin/quality/dashboard", headers=auth_headers(admin_token))
    assert resp.status_code == 200
    assert resp.get_json()["by_review_status"]["verified"] == 1

    missing = client.post("/api/admin/quality/questions/999/clear-flag", headers=auth_headers(admin_token))
    assert missing.status_code == 404
    ok = client.post(f"/api/admin/quality/questions/{question.id}/clear-flag", headers=auth_headers(admin_token))
    assert ok.get_json() == {"success": True}
