"""Tests for achievement awarding."""

from __future__ import annotations

from datetime import datetime

import pytest

from qbank_app.extensions import db
from qbank_app.models import UserAchievement
from qbank_app.services import achievement_service

from conftest import auth_headers

MIDDAY = datetime(2026, 3, 1, 12, 0)


def test_award_is_idempotent(app_with_db, student_id):
    first = achievement_service.award_achievement(student_id, "first_question")
    assert first is not None
    assert first.category == "special"
    assert achievement_service.award_achievement(student_id, "first_question") is None
    assert UserAchievement.query.filter_by(user_id=student_id).count() == 1


def test_unknown_achievement_raises(app_with_db, student_id):
    with pytest.raises(ValueError):
        achievement_service.award_achievement(student_id, "moon_landing")


def test_check_and_award_thresholds(app_with_db, student_id):
    unlocked = achievement_service.check_and_award(
        student_id, {"current_streak": 10, "total_questions": 50}, now=MIDDAY
    )
    assert set(unlocked) == {
        "streak_5",
        "streak_10",
        "perfect_10",
        "questions_10",
        "questions_50",
        "first_question",
    }
    again = achievement_service.check_and_award(
        student_id, {"current_streak": 11, "total_questions": 51}, now=MIDDAY
    )
    assert again == []


def test_session_accuracy_needs_enough_questions(app_with_db, student_id):
    assert achievement_service.check_and_award(
        student_id, {"session_questions": 10, "session_correct": 10}, now=MIDDAY
    ) == []
    unlocked = achievement_service.check_and_award(
        student_id, {"session_questions": 20, "session_correct": 17}, now=MIDDAY
    )
    assert unlocked == ["accuracy_80_session"]


def test_time_of_day_and_domain_expert(app_with_db, student_id):
    night = achievement_service.check_and_award(student_id, {}, now=datetime(2026, 3, 1, 2, 30))
    assert night == ["night_owl"]
    dawn = achievement_service.check_and_award(student_id, {}, now=datetime(2026, 3, 1, 5, 15))
    assert dawn == ["early_bird"]
    expert = achievement_service.check_and_award(
        student_id,
        {"mastery_level": "expert", "domain": "algebra", "category": "math"},
        now=MIDDAY,
    )
    assert expert == ["domain_expert_algebra"]

    stats = achievement_service.get_achievement_stats(student_id)
    assert stats["total"] == 3
    assert stats["special"] == 2
    assert stats["domain_mastery"] == 1


def test_achievements_endpoint(client, student_token, student_id):
    achievement_service.award_achievement(student_id, "streak_5")
    resp = client.get("/api/endless/achievements", headers=auth_headers(student_token))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["items"][0]["achievement_id"] == "streak_5"
    assert body["items"][0]["title"] == "5 in a Row"
    assert body["stats"]["streak"] == 1


def test_duplicate_insert_keeps_other_pending_awards(app_with_db, student_id, monkeypatch):
    achievement_service.award_achievement(student_id, "first_question")
    # Simulate a concurrent award landing between the lookup and the insert.
    monkeypatch.setattr(achievement_service, "_has_achievement", lambda *_args: False)

    assert achievement_service.award_achievement(student_id, "streak_5", commit=False) is not None
    assert achievement_service.award_achievement(student_id, "first_question", commit=False) is None
    db.session.commit()
    db.session.expire_all()

    held = {row.achievement_id for row in UserAchievement.query.filter_by(user_id=student_id)}
    assert held == {"first_question", "streak_5"}
