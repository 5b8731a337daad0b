"""Exam attempt lifecycle."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import current_app
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from ..extensions import db
from ..models import ExamAttempt, Question, UserAnswer
from ..models.attempt import ATTEMPT_MODES
from ..utils.dates import coerce_aware, utcnow
from . import question_service

SECTIONS = ("reading_writing", "math")
CLOSED_STATUSES = ("completed", "abandoned")


def serialize_attempt(attempt: ExamAttempt) -> dict:
    return {
        "id": attempt.id,
        "mode": attempt.mode,
        "section": attempt.section,
        "status": attempt.status,
        "current_section_index": attempt.current_section_index,
        "current_question_index": attempt.current_question_index,
        "started_at": attempt.started_at.isoformat() if attempt.started_at else None,
        "last_active_at": attempt.last_active_at.isoformat() if attempt.last_active_at else None,
        "completed_at": attempt.completed_at.isoformat() if attempt.completed_at else None,
    }


def get_attempt(attempt_id: int, user_id: int | None = None) -> ExamAttempt:
    attempt = db.session.get(ExamAttempt, attempt_id)
    if attempt is None or (user_id is not None and attempt.user_id != user_id):
        raise NotFound("Attempt not found")
    return attempt


def create_attempt(user_id: int, mode: str = "practice", section: str | None = None) -> ExamAttempt:
    if mode not in ATTEMPT_MODES:
        raise BadRequest(f"Unknown mode: {mode}")
    if section is not None and section not in SECTIONS:
        raise BadRequest(f"Unknown section: {section}")
    now = utcnow()
    attempt = ExamAttempt(
        user_id=user_id,
        mode=mode,
        section=section,
        current_section_index=0,
        current_question_index=0,
        status="in_progress",
        started_at=now,
        last_active_at=now,
    )
    db.session.add(attempt)
    db.session.commit()
    current_app.logger.info(
        "Created %s attempt %s for user %s",
        mode,
        attempt.id,
        user_id,
        extra={"event": "attempt.created", "user_id": user_id, "mode": mode},
    )
    return attempt


def get_current_attempt(user_id: int) -> Optional[Dict[str, Any]]:
    attempt = (
        ExamAttempt.query.filter_by(user_id=user_id, status="in_progress")
        .order_by(ExamAttempt.last_active_at.desc(), ExamAttempt.id.desc())
        .first()
    )
    if attempt is None:
        return None
    answered = attempt.answers.filter(
        UserAnswer.selected_answer.isnot(None), UserAnswer.selected_answer != ""
    ).count()
    return {**serialize_attempt(attempt), "answered_count": answered}


def update_progress(
    attempt_id: int,
    current_section_index: int | None = None,
    current_question_index: int | None = None,
    *,
    user_id: int | None = None,
) -> ExamAttempt:
    attempt = get_attempt(attempt_id, user_id)
    if current_section_index is not None:
        attempt.current_section_index = current_section_index
    if current_question_index is not None:
        attempt.current_question_index = current_question_index
    attempt.last_active_at = utcnow()
    db.session.commit()
    return attempt


def _transition(attempt_id: int, status: str, user_id: int | None) -> ExamAttempt:
    attempt = get_attempt(attempt_id, user_id)
    if attempt.status in CLOSED_STATUSES and attempt.status != status:
        raise Conflict(f"Attempt is already {attempt.status}")
    now = utcnow()
    attempt.status = status
    attempt.last_active_at = now
    if status == "completed":
        attempt.completed_at = now
    db.session.commit()
    current_app.logger.info(
        "Attempt %s is now %s",
        attempt.id,
        status,
        extra={"event": f"attempt.{status}", "attempt_id": attempt.id},
    )
    return attempt


def complete_attempt(attempt_id: int, user_id: int | None = None) -> ExamAttempt:
    return _transition(attempt_id, "completed", user_id)


def pause_attempt(attempt_id: int, user_id: int | None = None) -> ExamAttempt:
    return _transition(attempt_id, "paused", user_id)


def resume_attempt(attempt_id: int, user_id: int | None = None) -> ExamAttempt:
    return _transition(attempt_id, "in_progress", user_id)


def abandon_attempt(attempt_id: int, user_id: int | None = None) -> ExamAttempt:
    return _transition(attempt_id, "abandoned", user_id)


def get_attempt_history(user_id: int) -> List[dict]:
    attempts = (
        ExamAttempt.query.filter_by(user_id=user_id)
        .order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc())
        .all()
    )
    return [_enriched(attempt) for attempt in attempts]


def _enriched(attempt: ExamAttempt) -> dict:
    answers = attempt.answers.all()
    report = attempt.score_report
    return {
        **serialize_attempt(attempt),
        "correct_answers": sum(1 for answer in answers if answer.is_correct),
        "total_questions": len(answers),
        "scaled_score": report.total_scaled if report else None,
        "rw_scaled": report.reading_writing_scaled if report else None,
        "math_scaled": report.math_scaled if report else None,
    }


def get_recent_attempts(user_id: int, limit: int = 5) -> List[dict]:
    attempts = (
        ExamAttempt.query.filter_by(user_id=user_id)
        .order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc())
        .limit(limit)
        .all()
    )
    return [_enriched(attempt) for attempt in attempts]


# Wrong-answer review


def _answered_at(answer: UserAnswer):
    return coerce_aware(answer.submitted_at or answer.last_modified_at)


def _graded_answers(user_id: int, category: str | None = None, domain: str | None = None) -> List[UserAnswer]:
    query = UserAnswer.query.join(Question, UserAnswer.question_id == Question.id).filter(
        UserAnswer.user_id == user_id, UserAnswer.status == "graded"
    )
    if category:
        query = query.filter(Question.category == category)
    if domain:
        query = query.filter(Question.domain == domain)
    return query.all()


def _wrong_by_question(answers: List[UserAnswer]) -> Dict[int, Dict[str, Any]]:
    """Latest wrong answer per question plus the question's right/wrong tallies."""

    summary: Dict[int, Dict[str, Any]] = {}
    for answer in answers:
        entry = summary.setdefault(answer.question_id, {"latest_wrong": None, "wrong": 0, "correct": 0})
        if answer.is_correct:
            entry["correct"] += 1
            continue
        entry["wrong"] += 1
        latest = entry["latest_wrong"]
        if latest is None or (_answered_at(answer), answer.id) > (_answered_at(latest), latest.id):
            entry["latest_wrong"] = answer
    return {qid: entry for qid, entry in summary.items() if entry["latest_wrong"] is not None}


def get_wrong_answers(
    user_id: int,
    category: str | None = None,
    domain: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """Questions the user has missed, newest miss first, with the answer key for review."""

    entries = sorted(
        _wrong_by_question(_graded_answers(user_id, category, domain)).values(),
        key=lambda entry: (_answered_at(entry["latest_wrong"]), entry["latest_wrong"].id),
        reverse=True,
    )
    items = []
    for entry in entries[offset : offset + limit]:
        answer = entry["latest_wrong"]
        items.append(
            {
                "answer_id": answer.id,
                "attempt_id": answer.attempt_id,
                "mode": answer.attempt.mode,
                "selected_answer": answer.selected_answer,
                "selected_mistake_reason": answer.selected_mistake_reason,
                "time_spent_ms": answer.time_spent_ms,
                "submitted_at": answer.submitted_at.isoformat() if answer.submitted_at else None,
                "question": question_service.serialize_question(answer.question, include_answer=True),
                "has_improved": entry["correct"] > 0,
                "wrong_attempts": entry["wrong"],
                "total_attempts": entry["wrong"] + entry["correct"],
            }
        )
    return {"items": items, "total": len(entries), "has_more": offset + limit < len(entries)}


def get_wrong_answers_count(user_id: int) -> Dict[str, int]:
    entries = _wrong_by_question(_graded_answers(user_id)).values()
    improved = sum(1 for entry in entries if entry["correct"] > 0)
    return {
        "total_wrong_questions": len(entries),
        "improved_count": improved,
        "needs_review_count": len(entries) - improved,
    }


def get_previous_attempts(
    user_id: int, question_id: int, exclude_attempt_id: int | None = None
) -> Dict[str, Any]:
    query = UserAnswer.query.filter(
        UserAnswer.user_id == user_id,
        UserAnswer.question_id == question_id,
        UserAnswer.status == "graded",
        UserAnswer.selected_answer.isnot(None),
    )
    if exclude_attempt_id is not None:
        query = query.filter(UserAnswer.attempt_id != exclude_attempt_id)
    answers = sorted(query.all(), key=lambda answer: (_answered_at(answer), answer.id))
    attempts = [
        {
            "attempt_id": answer.attempt_id,
            "mode": answer.attempt.mode,
            "selected_answer": answer.selected_answer,
            "is_correct": bool(answer.is_correct),
            "time_spent_ms": answer.time_spent_ms,
            "submitted_at": answer.submitted_at.isoformat() if answer.submitted_at else None,
        }
        for answer in answers
    ]
    has_wrong = any(not item["is_correct"] for item in attempts)
    has_correct = any(item["is_correct"] for item in attempts)
    return {
        "attempts": attempts,
        "total_attempts": len(attempts),
        "improved": has_wrong and has_correct,
        "has_wrong_attempt": has_wrong,
        "has_correct_attempt": has_correct,
    }
