"""Per-question answers inside an exam attempt."""

from __future__ import annotations

from typing import Iterable, List, Optional

from flask import current_app
from werkzeug.exceptions import Conflict, NotFound

from ..extensions import db
from ..models import Question, UserAnswer
from ..utils.dates import utcnow
from . import attempt_service, performance_service

_UNSET = object()


def serialize_answer(answer: UserAnswer) -> dict:
    return {
        "id": answer.id,
        "attempt_id": answer.attempt_id,
        "question_id": answer.question_id,
        "selected_answer": answer.selected_answer,
        "status": answer.status,
        "is_correct": answer.is_correct,
        "flagged": answer.flagged,
        "crossed_out": answer.crossed_out or [],
        "time_spent_ms": answer.time_spent_ms,
        "submitted_at": answer.submitted_at.isoformat() if answer.submitted_at else None,
    }


def _get_or_create(attempt, question_id: int) -> UserAnswer:
    answer = UserAnswer.query.filter_by(attempt_id=attempt.id, question_id=question_id).first()
    if answer is None:
        if db.session.get(Question, question_id) is None:
            raise NotFound("Question not found")
        now = utcnow()
        answer = UserAnswer(
            attempt_id=attempt.id,
            question_id=question_id,
            user_id=attempt.user_id,
            status="empty",
            flagged=False,
            crossed_out=[],
            first_viewed_at=now,
            last_modified_at=now,
            time_spent_ms=0,
        )
        db.session.add(answer)
    return answer


def _open_attempt(attempt_id: int, user_id: int | None):
    attempt = attempt_service.get_attempt(attempt_id, user_id)
    if attempt.status in attempt_service.CLOSED_STATUSES:
        raise Conflict(f"Attempt is already {attempt.status}")
    return attempt


def save_answer(
    attempt_id: int,
    question_id: int,
    selected_answer=_UNSET,
    *,
    flagged: Optional[bool] = None,
    crossed_out: Optional[Iterable[str]] = None,
    time_spent_ms: Optional[int] = None,
    user_id: int | None = None,
) -> UserAnswer:
    """Upsert an answer; only the fields passed in are changed.

    Choosing an answer marks it a draft, clearing it marks it empty, and
    ``time_spent_ms`` accumulates.
    """

    attempt = _open_attempt(attempt_id, user_id)
    answer = _get_or_create(attempt, question_id)
    if selected_answer is not _UNSET:
        answer.selected_answer = selected_answer or None
        answer.status = "draft" if selected_answer else "empty"
    if flagged is not None:
        answer.flagged = bool(flagged)
    if crossed_out is not None:
        answer.crossed_out = list(crossed_out)
    if time_spent_ms:
        answer.time_spent_ms = (answer.time_spent_ms or 0) + max(0, int(time_spent_ms))
    answer.last_modified_at = utcnow()
    attempt.last_active_at = answer.last_modified_at
    db.session.commit()
    return answer


def toggle_flag(attempt_id: int, question_id: int, user_id: int | None = None) -> UserAnswer:
    attempt = _open_attempt(attempt_id, user_id)
    answer = _get_or_create(attempt, question_id)
    # A freshly created row starts unflagged, so toggling flags it.
    answer.flagged = not answer.flagged
    answer.last_modified_at = utcnow()
    db.session.commit()
    return answer


def update_crossed_out(
    attempt_id: int, question_id: int, crossed_out: Iterable[str], user_id: int | None = None
) -> UserAnswer:
    return save_answer(attempt_id, question_id, crossed_out=crossed_out, user_id=user_id)


def submit_answers(attempt_id: int, user_id: int | None = None) -> int:
    """Grade the attempt's ungraded answers; returns how many were graded.

    Closed attempts raise Conflict before anything is written.
    """

    attempt = _open_attempt(attempt_id, user_id)
    now = utcnow()
    graded = 0
    for answer in attempt.answers.all():
        question = answer.question
        if question is None or answer.status == "graded":
            continue
        correct = bool(answer.selected_answer) and answer.selected_answer == question.correct_answer
        answer.status = "graded"
        answer.is_correct = correct
        answer.submitted_at = now
        answer.last_modified_at = now
        if answer.selected_answer:
            performance_service.record_question_attempt(
                question.id, answer.selected_answer, correct, commit=False
            )
        graded += 1
    attempt.last_active_at = now
    db.session.commit()
    current_app.logger.info(
        "Graded %s answers for attempt %s",
        graded,
        attempt.id,
        extra={"event": "attempt.submitted", "attempt_id": attempt.id, "graded": graded},
    )
    return graded


def get_answers_for_attempt(attempt_id: int, user_id: int | None = None) -> List[UserAnswer]:
    attempt = attempt_service.get_attempt(attempt_id, user_id)
    return attempt.answers.order_by(UserAnswer.id.asc()).all()
