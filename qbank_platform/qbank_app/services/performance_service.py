"""Per-question answer statistics and high-error-rate flagging."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List

from flask import current_app

from ..extensions import db
from ..models import Question, QuestionPerformanceStats
from ..utils.dates import utcnow
from ..utils.llm_json import ANSWER_LETTERS

DASHBOARD_MIN_ATTEMPTS = 10


def _thresholds() -> tuple[int, float, float]:
    cfg = current_app.config
    return (
        int(cfg.get("PERFORMANCE_MIN_ATTEMPTS", 30)),
        float(cfg.get("PERFORMANCE_FLAG_THRESHOLD", 0.7)),
        float(cfg.get("PERFORMANCE_URGENT_THRESHOLD", 0.85)),
    )


def _most_common_wrong(distribution: Dict[str, int], correct: str | None) -> str | None:
    best, best_count = None, 0
    for key in ANSWER_LETTERS:
        count = distribution.get(key, 0)
        if key != correct and count > best_count:
            best, best_count = key, count
    return best


def record_question_attempt(
    question_id: int, selected_answer: str | None, is_correct: bool, commit: bool = True
) -> QuestionPerformanceStats:
    question = db.session.get(Question, question_id)
    stats = QuestionPerformanceStats.query.filter_by(question_id=question_id).first()
    if stats is None:
        stats = QuestionPerformanceStats(
            question_id=question_id,
            total_attempts=0,
            correct_attempts=0,
            error_rate=0.0,
            answer_distribution={key: 0 for key in ANSWER_LETTERS},
            flagged_for_review=False,
        )
        db.session.add(stats)

    stats.total_attempts = (stats.total_attempts or 0) + 1
    stats.correct_attempts = (stats.correct_attempts or 0) + (1 if is_correct else 0)
    stats.error_rate = 1 - stats.correct_attempts / stats.total_attempts
    distribution = dict(stats.answer_distribution or {})
    letter = (selected_answer or "").strip().upper()
    if letter in ANSWER_LETTERS:
        distribution[letter] = distribution.get(letter, 0) + 1
    stats.answer_distribution = distribution
    stats.most_common_wrong_answer = _most_common_wrong(
        distribution, question.correct_answer if question is not None else None
    )
    stats.last_updated_at = utcnow()

    min_attempts, flag_threshold, urgent_threshold = _thresholds()
    if (
        not stats.flagged_for_review
        and stats.total_attempts >= min_attempts
        and stats.error_rate >= flag_threshold
    ):
        urgency = "Urgent: high" if stats.error_rate >= urgent_threshold else "High"
        stats.flagged_for_review = True
        stats.flag_reason = (
            f"{urgency} error rate: {stats.error_rate * 100:.1f}% after {stats.total_attempts} attempts"
        )
        if question is not None and question.review_status == "verified":
            question.review_status = "flagged_high_error"
        current_app.logger.warning(
            "Flagged question %s: %s",
            question_id,
            stats.flag_reason,
            extra={"event": "performance.flagged", "question_id": question_id},
        )

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return stats


def serialize_stats(stats: QuestionPerformanceStats) -> dict:
    return {
        "question_id": stats.question_id,
        "total_attempts": stats.total_attempts,
        "correct_attempts": stats.correct_attempts,
        "error_rate": stats.error_rate,
        "answer_distribution": stats.answer_distribution,
        "most_common_wrong_answer": stats.most_common_wrong_answer,
        "flagged_for_review": stats.flagged_for_review,
        "flag_reason": stats.flag_reason,
    }


def get_problematic_questions(
    limit: int = 50, min_attempts: int | None = None, min_error_rate: float | None = None
) -> List[Dict[str, Any]]:
    default_attempts, default_rate, _ = _thresholds()
    min_attempts = default_attempts if min_attempts is None else min_attempts
    min_error_rate = default_rate if min_error_rate is None else min_error_rate
    rows = (
        QuestionPerformanceStats.query.filter(
            QuestionPerformanceStats.total_attempts >= min_attempts,
            QuestionPerformanceStats.error_rate >= min_error_rate,
        )
        .order_by(QuestionPerformanceStats.error_rate.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "stats": serialize_stats(row),
            "question": {
                "id": row.question.id,
                "category": row.question.category,
                "domain": row.question.domain,
                "skill": row.question.skill,
                "prompt": row.question.prompt,
                "correct_answer": row.question.correct_answer,
                "review_status": row.question.review_status,
            },
        }
        for row in rows
        if row.question is not None
    ]


def get_flagged_questions(limit: int = 50) -> List[Dict[str, Any]]:
    rows = QuestionPerformanceStats.query.filter_by(flagged_for_review=True).limit(limit).all()
    return [serialize_stats(row) for row in rows]


def get_quality_dashboard() -> Dict[str, Any]:
    statuses = Counter(
        status or "unset" for (status,) in db.session.query(Question.review_status).all()
    )
    by_review_status = {
        key: statuses.get(key, 0)
        for key in ("pending", "verified", "needs_revision", "rejected", "flagged_high_error", "unset")
    }
    all_stats = QuestionPerformanceStats.query.all()
    sufficient = [row for row in all_stats if row.total_attempts >= DASHBOARD_MIN_ATTEMPTS]
    min_attempts, _, _ = _thresholds()
    worst = sorted(
        (row for row in all_stats if row.total_attempts >= min_attempts),
        key=lambda row: row.error_rate,
        reverse=True,
    )[:10]
    return {
        "total_questions": sum(statuses.values()),
        "questions_with_stats": len(all_stats),
        "by_review_status": by_review_status,
        "average_error_rate": (
            sum(row.error_rate for row in sufficient) / len(sufficient) if sufficient else 0.0
        ),
        "flagged_count": sum(1 for row in all_stats if row.flagged_for_review),
        "worst_performing_question_ids": [row.question_id for row in worst],
        "total_attempts": sum(row.total_attempts for row in all_stats),
    }


def clear_question_flag(question_id: int) -> Dict[str, Any]:
    stats = QuestionPerformanceStats.query.filter_by(question_id=question_id).first()
    if stats is not None:
        stats.flagged_for_review = False
        stats.flag_reason = None
    question = db.session.get(Question, question_id)
    if question is not None and question.review_status == "flagged_high_error":
        question.review_status = "verified"
    db.session.commit()
    return {"success": True}


def reset_question_stats(question_id: int) -> Dict[str, Any]:
    deleted = QuestionPerformanceStats.query.filter_by(question_id=question_id).delete()
    db.session.commit()
    return {"success": True, "deleted": deleted}
