"""Exam attempt, answer and score report models."""

from __future__ import annotations

from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


ATTEMPT_MODES = ("sat", "practice", "endless")
ATTEMPT_STATUSES = ("in_progress", "paused", "completed", "abandoned")
ANSWER_STATUSES = ("empty", "draft", "submitted", "graded")


class ExamAttempt(db.Model):
    __tablename__ = "exam_attempts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    mode = db.Column(db.String(16), nullable=False, default="practice")
    section = db.Column(db.String(32))
    current_section_index = db.Column(db.Integer, nullable=False, default=0)
    current_question_index = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="in_progress", index=True)
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    last_active_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True))

    answers = db.relationship(
        "UserAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )


class UserAnswer(db.Model):
    __tablename__ = "user_answers"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("exam_attempts.id"), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    selected_answer = db.Column(db.String(32))
    status = db.Column(db.String(16), nullable=False, default="empty")
    is_correct = db.Column(db.Boolean)
    flagged = db.Column(db.Boolean, nullable=False, default=False)
    crossed_out = db.Column(db.JSON)
    selected_mistake_reason = db.Column(db.String(255))
    first_viewed_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    last_modified_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    submitted_at = db.Column(db.DateTime(timezone=True))
    time_spent_ms = db.Column(db.Integer, nullable=False, default=0)

    attempt = db.relationship("ExamAttempt", back_populates="answers")
    question = db.relationship("Question")

    __table_args__ = (
        db.UniqueConstraint("attempt_id", "question_id", name="uq_user_answers_attempt_question"),
    )


class ScoreReport(db.Model):
    __tablename__ = "score_reports"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("exam_attempts.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    math_raw = db.Column(db.Integer, nullable=False, default=0)
    reading_writing_raw = db.Column(db.Integer, nullable=False, default=0)
    math_scaled = db.Column(db.Integer, nullable=False, default=200)
    reading_writing_scaled = db.Column(db.Integer, nullable=False, default=200)
    total_scaled = db.Column(db.Integer, nullable=False, default=400)
    domain_scores = db.Column(db.JSON, nullable=False, default=list)
    skill_scores = db.Column(db.JSON, nullable=False, default=list)
    total_time_ms = db.Column(db.Integer, nullable=False, default=0)
    avg_time_per_question_ms = db.Column(db.Integer, nullable=False, default=0)
    generated_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    attempt = db.relationship("ExamAttempt", backref=db.backref("score_report", uselist=False))
