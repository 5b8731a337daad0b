"""Achievement definitions and awarding."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import UserAchievement
from ..models.endless import ACHIEVEMENT_CATEGORIES

STREAK_THRESHOLDS = (
    ("streak_5", 5),
    ("streak_10", 10),
    ("streak_25", 25),
    ("streak_50", 50),
    ("streak_100", 100),
)
QUESTION_THRESHOLDS = (
    ("questions_10", 10),
    ("questions_50", 50),
    ("questions_100", 100),
    ("questions_500", 500),
    ("questions_1000", 1000),
)
SESSION_ACCURACY_MIN_QUESTIONS = 20

ACHIEVEMENTS: Dict[str, Dict[str, str]] = {
    **{
        key: {"category": "streak", "title": f"{threshold} in a Row"}
        for key, threshold in STREAK_THRESHOLDS
    },
    **{
        key: {"category": "questions", "title": f"{threshold} Questions"}
        for key, threshold in QUESTION_THRESHOLDS
    },
    "first_question": {"category": "special", "title": "First Steps"},
    "accuracy_80_session": {"category": "accuracy", "title": "Sharp Shooter"},
    "accuracy_90_session": {"category": "accuracy", "title": "Precision"},
    "perfect_10": {"category": "accuracy", "title": "Perfect 10"},
    "domain_expert_algebra": {"category": "domain_mastery", "title": "Algebra Expert"},
    "domain_expert_advanced_math": {"category": "domain_mastery", "title": "Advanced Math Expert"},
    "domain_expert_geometry": {"category": "domain_mastery", "title": "Geometry Expert"},
    "domain_expert_reading": {"category": "domain_mastery", "title": "Reading Expert"},
    "night_owl": {"category": "special", "title": "Night Owl"},
    "early_bird": {"category": "special", "title": "Early Bird"},
}


def _has_achievement(user_id: int, achievement_id: str) -> bool:
    return (
        UserAchievement.query.filter_by(user_id=user_id, achievement_id=achievement_id).first() is not None
    )


def award_achievement(user_id: int, achievement_id: str, commit: bool = True) -> Optional[UserAchievement]:
    """Create the achievement row; returns None when the user already holds it."""

    definition = ACHIEVEMENTS.get(achievement_id)
    if definition is None:
        raise ValueError(f"Unknown achievement: {achievement_id}")
    if _has_achievement(user_id, achievement_id):
        return None
    achievement = UserAchievement(
        user_id=user_id, achievement_id=achievement_id, category=definition["category"]
    )
    # A duplicate rolls back only this insert; earlier pending writes survive.
    try:
        with db.session.begin_nested():
            db.session.add(achievement)
    except IntegrityError:
        if commit:
            db.session.commit()
        return None
    if commit:
        db.session.commit()
    current_app.logger.info(
        "Unlocked achievement %s for user %s",
        achievement_id,
        user_id,
        extra={"event": "achievement.unlocked", "user_id": user_id, "achievement": achievement_id},
    )
    return achievement


def _earned(context: Mapping[str, Any], now: datetime) -> List[str]:
    earned: List[str] = []
    streak = context.get("current_streak")
    if streak is not None:
        earned.extend(key for key, threshold in STREAK_THRESHOLDS if streak >= threshold)
        if streak >= 10:
            earned.append("perfect_10")

    total = context.get("total_questions")
    if total is not None:
        earned.extend(key for key, threshold in QUESTION_THRESHOLDS if total >= threshold)
        if total >= 1:
            earned.append("first_question")

    session_questions = context.get("session_questions")
    session_correct = context.get("session_correct")
    if (
        session_questions is not None
        and session_correct is not None
        and session_questions >= SESSION_ACCURACY_MIN_QUESTIONS
    ):
        accuracy = session_correct / session_questions * 100
        if accuracy >= 80:
            earned.append("accuracy_80_session")
        if accuracy >= 90:
            earned.append("accuracy_90_session")

    domain = (context.get("domain") or "").lower()
    if context.get("mastery_level") == "expert" and domain:
        if "algebra" in domain:
            earned.append("domain_expert_algebra")
        if "advanced" in domain:
            earned.append("domain_expert_advanced_math")
        if "geometry" in domain or "trig" in domain:
            earned.append("domain_expert_geometry")
        if context.get("category") == "reading_writing":
            earned.append("domain_expert_reading")

    if 0 <= now.hour < 5:
        earned.append("night_owl")
    if 4 <= now.hour < 6:
        earned.append("early_bird")
    return earned


def check_and_award(user_id: int, context: Mapping[str, Any], now: datetime | None = None) -> List[str]:
    """Award everything the context qualifies for; returns the newly unlocked ids.

    ``context`` keys: current_streak, total_questions, session_questions,
    session_correct, mastery_level, domain, category.
    """

    unlocked = []
    for achievement_id in _earned(context, now or datetime.now()):
        if award_achievement(user_id, achievement_id, commit=False) is not None:
            unlocked.append(achievement_id)
    db.session.commit()
    return unlocked


def get_user_achievements(user_id: int) -> List[Dict[str, Any]]:
    rows = (
        UserAchievement.query.filter_by(user_id=user_id)
        .order_by(UserAchievement.unlocked_at.asc(), UserAchievement.id.asc())
        .all()
    )
    return [
        {
            "achievement_id": row.achievement_id,
            "category": row.category,
            "title": ACHIEVEMENTS.get(row.achievement_id, {}).get("title", row.achievement_id),
            "unlocked_at": row.unlocked_at.isoformat() if row.unlocked_at else None,
        }
        for row in rows
    ]


def get_achievement_stats(user_id: int) -> Dict[str, int]:
    stats = {"total": 0, **{category: 0 for category in ACHIEVEMENT_CATEGORIES}}
    for row in UserAchievement.query.filter_by(user_id=user_id):
        stats["total"] += 1
        stats[row.category] = stats.get(row.category, 0) + 1
    return stats
