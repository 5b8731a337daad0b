"""Endless mode: adaptive question selection, streaks, mastery and daily goals."""

from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import func, or_
from werkzeug.exceptions import NotFound

from ..extensions import db
from ..models import (
    DailyGoal,
    EndlessSession,
    ExamAttempt,
    Question,
    QuestionReviewSchedule,
    SkillMastery,
    UserAnswer,
    UserPreference,
)
from ..utils.dates import coerce_aware, utcnow
from . import achievement_service, performance_service, question_service, spaced_repetition

MAX_MASTERY_POINTS = 1000
MASTERY_THRESHOLDS = (
    ("expert", 900),
    ("advanced", 600),
    ("intermediate", 300),
    ("beginner", 100),
)


def get_mastery_level(points: int) -> str:
    for level, floor in MASTERY_THRESHOLDS:
        if points >= floor:
            return level
    return "novice"


def calculate_mastery_point_change(correct: bool, difficulty: int, streak: int, points: int) -> int:
    """Signed change in mastery points, already clamped so points stay in 0..1000.

    ``difficulty`` is the legacy 1-3 scale, giving a 0.8-1.2 multiplier.
    """

    base = 15 if correct else -10
    multiplier = 0.6 + difficulty * 0.2
    streak_bonus = min(10, streak * 2) if correct else 0
    level_penalty = max(0.5, 1 - points / 2000) if correct else 1
    change = round((base * multiplier + streak_bonus) * level_penalty)
    new_points = max(0, min(MAX_MASTERY_POINTS, points + change))
    return new_points - points


def _daily_target(user_id: int) -> int:
    preference = UserPreference.query.filter_by(user_id=user_id).first()
    if preference is not None and preference.daily_question_target:
        return preference.daily_question_target
    return int(current_app.config.get("ENDLESS_DAILY_TARGET", 10))


def _today(now: datetime | None = None) -> str:
    return (now or utcnow()).date().isoformat()


def _accuracy(correct: int, total: int) -> int:
    return round(correct / total * 100) if total else 0


def _candidate_query(category: str | None, domain: str | None):
    query = Question.query.filter(
        or_(Question.review_status == "verified", Question.review_status.is_(None))
    )
    if category:
        query = query.filter(Question.category == category)
    if domain:
        query = query.filter(Question.domain == domain)
    return query


def select_next_question(
    user_id: int,
    category: str | None = None,
    domain: str | None = None,
    answered_ids: Iterable[int] | None = None,
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> Optional[Question]:
    """Score every eligible question and return the best one.

    The score mixes review urgency (0-40), skill weakness (0-40), a penalty
    for skills practised in the last 15 minutes, and up to 10 points of noise.
    Once every question has been answered in the session the pool resets.
    """

    questions = _candidate_query(category, domain).all()
    if not questions:
        return None
    answered = {int(qid) for qid in (answered_ids or [])}
    eligible = [question for question in questions if question.id not in answered] or questions

    gen = rng or random
    now = now or utcnow()
    schedules = {
        row.question_id: row for row in QuestionReviewSchedule.query.filter_by(user_id=user_id)
    }
    masteries = {row.skill: row for row in SkillMastery.query.filter_by(user_id=user_id)}

    best: Optional[Question] = None
    best_score = float("-inf")
    for question in eligible:
        score = spaced_repetition.review_priority(schedules.get(question.id), now)
        mastery = masteries.get(question.skill)
        if mastery is not None and mastery.total_questions > 0:
            score += round((1 - mastery.correct_answers / mastery.total_questions) * 40)
        else:
            score += 35
        if mastery is not None and mastery.last_practiced_at is not None:
            minutes = (now - coerce_aware(mastery.last_practiced_at)).total_seconds() / 60
            if minutes < 5:
                score -= 20
            elif minutes < 15:
                score -= 10
        score += gen.random() * 10
        if score > best_score:
            best, best_score = question, score
    return best


def _session_for_attempt(attempt_id: int) -> Optional[EndlessSession]:
    return EndlessSession.query.filter_by(attempt_id=attempt_id).first()


def get_session(session_id: int, user_id: int | None = None) -> EndlessSession:
    session = db.session.get(EndlessSession, session_id)
    if session is None or (user_id is not None and session.user_id != user_id):
        raise NotFound("Endless session not found")
    return session


def start_endless_session(
    user_id: int,
    category: str | None = None,
    domain: str | None = None,
    *,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    existing = (
        ExamAttempt.query.filter_by(user_id=user_id, status="in_progress", mode="endless")
        .order_by(ExamAttempt.started_at.desc())
        .first()
    )
    if existing is not None:
        session = _session_for_attempt(existing.id)
        if session is not None:
            return {
                "attempt_id": existing.id,
                "session_id": session.id,
                "current_question_id": session.current_question_id,
                "is_resumed": True,
            }

    now = utcnow()
    attempt = ExamAttempt(
        user_id=user_id,
        mode="endless",
        section=category,
        current_section_index=0,
        current_question_index=0,
        status="in_progress",
        started_at=now,
        last_active_at=now,
    )
    db.session.add(attempt)
    db.session.flush()

    best_streak = (
        db.session.query(func.max(EndlessSession.best_streak))
        .filter(EndlessSession.user_id == user_id)
        .scalar()
        or 0
    )
    first = select_next_question(user_id, category, domain, [], rng=rng, now=now)
    session = EndlessSession(
        attempt_id=attempt.id,
        user_id=user_id,
        category=category,
        domain=domain,
        current_streak=0,
        best_streak=best_streak,
        session_streak=0,
        questions_answered=0,
        correct_answers=0,
        question_ids_answered=[],
        current_question_id=first.id if first else None,
        started_at=now,
        last_active_at=now,
    )
    db.session.add(session)
    db.session.commit()
    current_app.logger.info(
        "Started endless session %s for user %s",
        session.id,
        user_id,
        extra={"event": "endless.started", "user_id": user_id, "category": category, "domain": domain},
    )
    return {
        "attempt_id": attempt.id,
        "session_id": session.id,
        "current_question_id": session.current_question_id,
        "is_resumed": False,
    }


def _update_mastery(user_id: int, question: Question, correct: bool, now: datetime) -> tuple[SkillMastery, int]:
    mastery = SkillMastery.query.filter_by(user_id=user_id, skill=question.skill).first()
    if mastery is None:
        mastery = SkillMastery(
            user_id=user_id,
            category=question.category,
            domain=question.domain,
            skill=question.skill,
            mastery_points=0,
            total_questions=0,
            correct_answers=0,
            current_streak=0,
        )
        db.session.add(mastery)
    points = mastery.mastery_points or 0
    streak = mastery.current_streak or 0
    change = calculate_mastery_point_change(correct, question.difficulty or 2, streak if correct else 0, points)
    mastery.mastery_points = points + change
    mastery.mastery_level = get_mastery_level(mastery.mastery_points)
    mastery.total_questions = (mastery.total_questions or 0) + 1
    mastery.correct_answers = (mastery.correct_answers or 0) + (1 if correct else 0)
    mastery.current_streak = streak + 1 if correct else 0
    mastery.last_practiced_at = now
    return mastery, change


def _update_daily_goal(user_id: int, correct: bool, time_spent_ms: int, now: datetime) -> DailyGoal:
    target = _daily_target(user_id)
    goal = DailyGoal.query.filter_by(user_id=user_id, date=_today(now)).first()
    if goal is None:
        goal = DailyGoal(
            user_id=user_id,
            date=_today(now),
            target_questions=target,
            questions_answered=0,
            correct_answers=0,
            time_spent_ms=0,
        )
        db.session.add(goal)
    goal.questions_answered = (goal.questions_answered or 0) + 1
    goal.correct_answers = (goal.correct_answers or 0) + (1 if correct else 0)
    goal.time_spent_ms = (goal.time_spent_ms or 0) + time_spent_ms
    goal.daily_goal_met = goal.questions_answered >= target
    return goal


def _record_answer(session: EndlessSession, question: Question, selected: str, correct: bool, time_spent_ms: int, now):
    # Endless mode can repeat a question once the pool resets; keep one row per attempt.
    answer = UserAnswer.query.filter_by(attempt_id=session.attempt_id, question_id=question.id).first()
    if answer is None:
        answer = UserAnswer(
            attempt_id=session.attempt_id,
            question_id=question.id,
            user_id=session.user_id,
            flagged=False,
            first_viewed_at=now,
            time_spent_ms=0,
        )
        db.session.add(answer)
    answer.selected_answer = selected
    answer.status = "graded"
    answer.is_correct = correct
    answer.last_modified_at = now
    answer.submitted_at = now
    answer.time_spent_ms = (answer.time_spent_ms or 0) + time_spent_ms


def submit_endless_answer(
    session_id: int,
    question_id: int,
    selected_answer: str,
    time_spent_ms: int = 0,
    *,
    user_id: int | None = None,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    session = get_session(session_id, user_id)
    question = question_service.get_question(question_id)
    now = utcnow()
    selected = (selected_answer or "").strip()
    correct = selected.upper() == (question.correct_answer or "").strip().upper()
    time_spent_ms = max(0, int(time_spent_ms or 0))

    _record_answer(session, question, selected, correct, time_spent_ms, now)

    session.session_streak = session.session_streak + 1 if correct else 0
    session.current_streak = session.current_streak + 1 if correct else 0
    session.best_streak = max(session.best_streak or 0, session.current_streak)
    session.questions_answered = (session.questions_answered or 0) + 1
    session.correct_answers = (session.correct_answers or 0) + (1 if correct else 0)

    spaced_repetition.record_review(session.user_id, question.id, correct, now)
    mastery, point_change = _update_mastery(session.user_id, question, correct, now)
    goal = _update_daily_goal(session.user_id, correct, time_spent_ms, now)
    performance_service.record_question_attempt(question.id, selected, correct, commit=False)

    answered = list(session.question_ids_answered or []) + [question.id]
    next_question = select_next_question(
        session.user_id, session.category, session.domain, answered, rng=rng, now=now
    )
    session.question_ids_answered = answered
    session.current_question_id = next_question.id if next_question else None
    session.last_active_at = now
    if session.attempt is not None:
        session.attempt.last_active_at = now
    db.session.commit()

    total_answered = (
        db.session.query(func.coalesce(func.sum(SkillMastery.total_questions), 0))
        .filter(SkillMastery.user_id == session.user_id)
        .scalar()
    )
    unlocked = achievement_service.check_and_award(
        session.user_id,
        {
            "current_streak": session.current_streak,
            "total_questions": int(total_answered),
            "session_questions": session.questions_answered,
            "session_correct": session.correct_answers,
            "mastery_level": mastery.mastery_level,
            "domain": question.domain,
            "category": question.category,
        },
    )

    current_app.logger.info(
        "Endless answer for question %s: %s",
        question.id,
        "correct" if correct else "incorrect",
        extra={
            "event": "endless.answered",
            "session_id": session.id,
            "question_id": question.id,
            "is_correct": correct,
            "point_change": point_change,
        },
    )
    explanation = question.explanation
    return {
        "is_correct": correct,
        "correct_answer": question.correct_answer,
        "explanation": explanation.correct_explanation if explanation else None,
        "wrong_answer_explanations": explanation.wrong_answer_explanations if explanation else None,
        "next_question_id": session.current_question_id,
        "current_streak": session.current_streak,
        "session_streak": session.session_streak,
        "best_streak": session.best_streak,
        "mastery_level": mastery.mastery_level,
        "mastery_points": mastery.mastery_points,
        "point_change": point_change,
        "daily_goal_met": goal.daily_goal_met,
        "achievements_unlocked": unlocked,
    }


def _summary(session: EndlessSession) -> Dict[str, Any]:
    return {
        "questions_answered": session.questions_answered,
        "correct_answers": session.correct_answers,
        "accuracy": _accuracy(session.correct_answers, session.questions_answered),
        "current_streak": session.current_streak,
        "session_streak": session.session_streak,
        "best_streak": session.best_streak,
    }


def end_endless_session(session_id: int, user_id: int | None = None) -> Dict[str, Any]:
    session = get_session(session_id, user_id)
    now = utcnow()
    attempt = session.attempt
    if attempt is not None:
        attempt.status = "completed"
        attempt.completed_at = now
        attempt.last_active_at = now
    db.session.commit()
    current_app.logger.info(
        "Ended endless session %s",
        session.id,
        extra={"event": "endless.ended", "session_id": session.id, "answered": session.questions_answered},
    )
    return _summary(session)


def get_session_state(session_id: int, user_id: int | None = None) -> Dict[str, Any]:
    session = get_session(session_id, user_id)
    return {**_summary(session), "session_id": session.id, "current_question_id": session.current_question_id}


def get_current_question(session_id: int, user_id: int | None = None) -> Optional[Dict[str, Any]]:
    session = get_session(session_id, user_id)
    if session.current_question_id is None:
        return None
    question = question_service.get_question(session.current_question_id)
    mastery = SkillMastery.query.filter_by(user_id=session.user_id, skill=question.skill).first()
    return {
        "question": question_service.serialize_question(question),
        "mastery": (
            {
                "level": mastery.mastery_level,
                "points": mastery.mastery_points,
                "skill": mastery.skill,
                "domain": mastery.domain,
            }
            if mastery
            else None
        ),
    }


def get_current_endless_attempt(user_id: int) -> Optional[Dict[str, Any]]:
    attempt = (
        ExamAttempt.query.filter_by(user_id=user_id, status="in_progress", mode="endless")
        .order_by(ExamAttempt.started_at.desc())
        .first()
    )
    if attempt is None:
        return None
    session = _session_for_attempt(attempt.id)
    return {
        "attempt_id": attempt.id,
        "session_id": session.id if session else None,
        "state": _summary(session) if session else None,
    }


def set_daily_goal_target(user_id: int, target: int) -> int:
    clamped = max(1, min(100, int(target)))
    preference = UserPreference.query.filter_by(user_id=user_id).first()
    if preference is None:
        preference = UserPreference(user_id=user_id)
        db.session.add(preference)
    preference.daily_question_target = clamped
    db.session.commit()
    return clamped


def get_daily_goal_progress(user_id: int, now: datetime | None = None) -> Dict[str, Any]:
    goal = DailyGoal.query.filter_by(user_id=user_id, date=_today(now)).first()
    if goal is None:
        return {
            "questions_answered": 0,
            "target": _daily_target(user_id),
            "progress": 0,
            "goal_met": False,
            "correct_answers": 0,
            "accuracy": 0,
            "time_spent_ms": 0,
        }
    target = goal.target_questions or 1
    return {
        "questions_answered": goal.questions_answered,
        "target": goal.target_questions,
        "progress": min(100, round(goal.questions_answered / target * 100)),
        "goal_met": goal.daily_goal_met,
        "correct_answers": goal.correct_answers,
        "accuracy": _accuracy(goal.correct_answers, goal.questions_answered),
        "time_spent_ms": goal.time_spent_ms,
    }


def get_streak_stats(user_id: int) -> Dict[str, int]:
    sessions = EndlessSession.query.filter_by(user_id=user_id).all()
    current = 0
    for session in sessions:
        if session.attempt is not None and session.attempt.status == "in_progress":
            current = session.current_streak
            break
    return {
        "current_streak": current,
        "best_streak": max((session.best_streak for session in sessions), default=0),
        "total_sessions": len(sessions),
    }


def get_skill_mastery_overview(user_id: int) -> Dict[str, List[Dict[str, Any]]]:
    overview: Dict[str, List[Dict[str, Any]]] = {"reading_writing": [], "math": []}
    rows = SkillMastery.query.filter_by(user_id=user_id).order_by(SkillMastery.domain, SkillMastery.skill)
    for row in rows:
        overview.setdefault(row.category, []).append(
            {
                "domain": row.domain,
                "skill": row.skill,
                "mastery_level": row.mastery_level,
                "mastery_points": row.mastery_points,
                "total_questions": row.total_questions,
                "correct_answers": row.correct_answers,
                "accuracy": _accuracy(row.correct_answers, row.total_questions),
                "current_streak": row.current_streak,
                "last_practiced_at": row.last_practiced_at.isoformat() if row.last_practiced_at else None,
            }
        )
    return overview


def get_due_review_count(user_id: int) -> int:
    return spaced_repetition.count_due(user_id)
