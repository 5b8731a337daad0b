"""Endless mode, mastery and gamification models."""

from __future__ import annotations

from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


MASTERY_LEVELS = ("novice", "beginner", "intermediate", "advanced", "expert")
ACHIEVEMENT_CATEGORIES = (
    "streak",
    "questions",
    "accuracy",
    "domain_mastery",
    "daily_challenge",
    "special",
)


class QuestionReviewSchedule(db.Model):
    """SM-2 style review schedule for one user/question pair."""

    __tablename__ = "question_review_schedule"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False)
    ease_factor = db.Column(db.Float, nullable=False, default=2.5)
    interval = db.Column(db.Integer, nullable=False, default=0)  # days
    repetitions = db.Column(db.Integer, nullable=False, default=0)
    next_review_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    last_reviewed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    total_attempts = db.Column(db.Integer, nullable=False, default=0)
    correct_attempts = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint("user_id", "question_id", name="uq_review_schedule_user_question"),
    )


class SkillMastery(db.Model):
    __tablename__ = "skill_mastery"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    category = db.Column(db.String(32), nullable=False)
    domain = db.Column(db.String(64), nullable=False)
    skill = db.Column(db.String(64), nullable=False)
    mastery_level = db.Column(db.String(16), nullable=False, default="novice")
    mastery_points = db.Column(db.Integer, nullable=False, default=0)
    total_questions = db.Column(db.Integer, nullable=False, default=0)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    last_practiced_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "skill", name="uq_skill_mastery_user_skill"),
    )


class EndlessSession(db.Model):
    __tablename__ = "endless_sessions"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("exam_attempts.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    category = db.Column(db.String(32))
    domain = db.Column(db.String(64))
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    best_streak = db.Column(db.Integer, nullable=False, default=0)
    session_streak = db.Column(db.Integer, nullable=False, default=0)
    questions_answered = db.Column(db.Integer, nullable=False, default=0)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    question_ids_answered = db.Column(db.JSON, nullable=False, default=list)
    current_question_id = db.Column(db.Integer, db.ForeignKey("questions.id"))
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    last_active_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    attempt = db.relationship("ExamAttempt", backref=db.backref("endless_session", uselist=False))


class DailyGoal(db.Model):
    __tablename__ = "daily_goals"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    target_questions = db.Column(db.Integer, nullable=False, default=10)
    questions_answered = db.Column(db.Integer, nullable=False, default=0)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    time_spent_ms = db.Column(db.Integer, nullable=False, default=0)
    daily_goal_met = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "date", name="uq_daily_goals_user_date"),
    )


class UserAchievement(db.Model):
    __tablename__ = "user_achievements"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    achievement_id = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    unlocked_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )
