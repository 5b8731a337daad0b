"""SM-2 review scheduling for endless mode."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..extensions import db
from ..models import QuestionReviewSchedule
from ..utils.dates import coerce_aware, utcnow

DEFAULT_EASE = 2.5
MIN_EASE = 1.3


@dataclass
class SM2Update:
    ease_factor: float
    interval: int
    repetitions: int
    next_review_at: datetime
    last_reviewed_at: datetime


def calculate_sm2_update(
    correct: bool,
    ease_factor: float = DEFAULT_EASE,
    interval: int = 1,
    repetitions: int = 0,
    now: datetime | None = None,
) -> SM2Update:
    now = now or utcnow()
    if correct:
        repetitions += 1
        if repetitions == 1:
            new_interval = 1
        elif repetitions == 2:
            new_interval = 6
        else:
            new_interval = round(interval * ease_factor)
        ease = max(MIN_EASE, ease_factor + 0.1)
    else:
        repetitions = 0
        new_interval = 1
        ease = max(MIN_EASE, ease_factor - 0.2)
    return SM2Update(
        ease_factor=ease,
        interval=new_interval,
        repetitions=repetitions,
        next_review_at=now + timedelta(days=new_interval),
        last_reviewed_at=now,
    )


def get_schedule(user_id: int, question_id: int) -> Optional[QuestionReviewSchedule]:
    return QuestionReviewSchedule.query.filter_by(user_id=user_id, question_id=question_id).first()


def record_review(user_id: int, question_id: int, correct: bool, now: datetime | None = None) -> QuestionReviewSchedule:
    schedule = get_schedule(user_id, question_id)
    if schedule is None:
        update = calculate_sm2_update(correct, now=now)
        schedule = QuestionReviewSchedule(
            user_id=user_id,
            question_id=question_id,
            total_attempts=0,
            correct_attempts=0,
        )
        db.session.add(schedule)
    else:
        update = calculate_sm2_update(
            correct, schedule.ease_factor, schedule.interval, schedule.repetitions, now=now
        )
    schedule.ease_factor = update.ease_factor
    schedule.interval = update.interval
    schedule.repetitions = update.repetitions
    schedule.next_review_at = update.next_review_at
    schedule.last_reviewed_at = update.last_reviewed_at
    schedule.total_attempts = (schedule.total_attempts or 0) + 1
    schedule.correct_attempts = (schedule.correct_attempts or 0) + (1 if correct else 0)
    db.session.flush()
    return schedule


def review_priority(schedule: Optional[QuestionReviewSchedule], now: datetime | None = None) -> float:
    """Spaced-repetition share of the endless selection score (0-40)."""

    if schedule is None:
        return 25.0
    now = now or utcnow()
    days_since = (now - coerce_aware(schedule.last_reviewed_at)).total_seconds() / 86400
    days_overdue = days_since - (schedule.interval or 0)
    if days_overdue > 0:
        return min(40.0, 20 + days_overdue * 5)
    if days_overdue > -1:
        return 15.0
    return 0.0


def count_due(user_id: int, now: datetime | None = None) -> int:
    now = now or utcnow()
    return QuestionReviewSchedule.query.filter(
        QuestionReviewSchedule.user_id == user_id,
        QuestionReviewSchedule.next_review_at <= now,
    ).count()
