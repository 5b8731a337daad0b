"""Raw and scaled scoring for completed attempts."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import current_app

from ..extensions import db
from ..models import ExamAttempt, ScoreReport, UserAnswer
from . import attempt_service

MATH_QUESTION_COUNT = 44
RW_QUESTION_COUNT = 54
MIN_SECTION_SCORE = 200
MAX_SECTION_SCORE = 800


def scale_section(raw: int, question_count: int) -> int:
    """Linear raw-to-scaled conversion, clamped to the 200-800 section range."""

    scaled = round(MIN_SECTION_SCORE + raw / question_count * (MAX_SECTION_SCORE - MIN_SECTION_SCORE))
    return max(MIN_SECTION_SCORE, min(MAX_SECTION_SCORE, scaled))


def _percentage(correct: int, total: int) -> float:
    return correct / total * 100 if total else 0.0


def calculate_score(attempt_id: int, user_id: int | None = None) -> ScoreReport:
    attempt = attempt_service.get_attempt(attempt_id, user_id)
    answers = attempt.answers.all()

    raw = {"math": 0, "reading_writing": 0}
    domains: Dict[tuple, Dict[str, int]] = {}
    skills: Dict[tuple, Dict[str, int]] = {}
    total_time = 0
    for answer in answers:
        question = answer.question
        if question is None:
            continue
        total_time += answer.time_spent_ms or 0
        correct = bool(answer.is_correct)
        if correct and question.category in raw:
            raw[question.category] += 1
        for bucket, key in (
            (domains, (question.category, question.domain)),
            (skills, (question.category, question.domain, question.skill)),
        ):
            counts = bucket.setdefault(key, {"correct": 0, "total": 0})
            counts["total"] += 1
            counts["correct"] += 1 if correct else 0

    math_scaled = scale_section(raw["math"], MATH_QUESTION_COUNT)
    rw_scaled = scale_section(raw["reading_writing"], RW_QUESTION_COUNT)
    domain_scores = [
        {
            "category": category,
            "domain": domain,
            **counts,
            "percentage": _percentage(counts["correct"], counts["total"]),
        }
        for (category, domain), counts in domains.items()
    ]
    skill_scores = [
        {
            "category": category,
            "domain": domain,
            "skill": skill,
            **counts,
            "percentage": _percentage(counts["correct"], counts["total"]),
        }
        for (category, domain, skill), counts in skills.items()
    ]

    report = attempt.score_report
    if report is None:
        report = ScoreReport(attempt_id=attempt.id, user_id=attempt.user_id)
        db.session.add(report)
    report.math_raw = raw["math"]
    report.reading_writing_raw = raw["reading_writing"]
    report.math_scaled = math_scaled
    report.reading_writing_scaled = rw_scaled
    report.total_scaled = math_scaled + rw_scaled
    report.domain_scores = domain_scores
    report.skill_scores = skill_scores
    report.total_time_ms = total_time
    report.avg_time_per_question_ms = round(total_time / len(answers)) if answers else 0
    db.session.commit()
    current_app.logger.info(
        "Scored attempt %s: %s",
        attempt.id,
        report.total_scaled,
        extra={"event": "attempt.scored", "attempt_id": attempt.id, "total_scaled": report.total_scaled},
    )
    return report


def serialize_report(report: ScoreReport) -> dict:
    return {
        "attempt_id": report.attempt_id,
        "math_raw": report.math_raw,
        "reading_writing_raw": report.reading_writing_raw,
        "math_scaled": report.math_scaled,
        "reading_writing_scaled": report.reading_writing_scaled,
        "total_scaled": report.total_scaled,
        "domain_scores": report.domain_scores or [],
        "skill_scores": report.skill_scores or [],
        "total_time_ms": report.total_time_ms,
        "avg_time_per_question_ms": report.avg_time_per_question_ms,
        "generated_at": report.generated_at.isoformat() if report.generated_at else None,
    }


def get_score_report(attempt_id: int, user_id: int | None = None) -> Optional[ScoreReport]:
    attempt = attempt_service.get_attempt(attempt_id, user_id)
    return attempt.score_report


def get_score_history(user_id: int) -> List[ScoreReport]:
    return ScoreReport.query.filter_by(user_id=user_id).order_by(ScoreReport.generated_at.asc()).all()


def _graded_answers(user_id: int) -> List[UserAnswer]:
    return UserAnswer.query.filter_by(user_id=user_id).all()


def get_user_stats(user_id: int) -> Dict[str, Any]:
    completed = ExamAttempt.query.filter_by(user_id=user_id, status="completed").count()
    counts = {"reading_writing": [0, 0], "math": [0, 0]}
    if completed:
        for answer in _graded_answers(user_id):
            question = answer.question
            if question is None or question.category not in counts:
                continue
            counts[question.category][1] += 1
            if answer.is_correct:
                counts[question.category][0] += 1
    best = (
        db.session.query(db.func.max(ScoreReport.total_scaled)).filter(ScoreReport.user_id == user_id).scalar()
    )
    rw_correct, rw_total = counts["reading_writing"]
    math_correct, math_total = counts["math"]
    total = rw_total + math_total
    return {
        "total_attempts": completed,
        "total_questions": total,
        "correct_answers": rw_correct + math_correct,
        "accuracy": _percentage(rw_correct + math_correct, total),
        "best_score": best if completed else None,
        "rw_correct": rw_correct,
        "rw_total": rw_total,
        "rw_accuracy": _percentage(rw_correct, rw_total),
        "math_correct": math_correct,
        "math_total": math_total,
        "math_accuracy": _percentage(math_correct, math_total),
    }


def get_domain_stats(user_id: int) -> List[Dict[str, Any]]:
    stats: Dict[str, Dict[str, int]] = {}
    for answer in _graded_answers(user_id):
        question = answer.question
        if question is None:
            continue
        entry = stats.setdefault(question.domain, {"correct": 0, "total": 0})
        entry["total"] += 1
        entry["correct"] += 1 if answer.is_correct else 0
    return [
        {"domain": domain, **entry, "accuracy": _percentage(entry["correct"], entry["total"])}
        for domain, entry in stats.items()
    ]
