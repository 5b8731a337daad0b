"""Generation failure queues and question quality tracking."""

from __future__ import annotations

from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


DLQ_STATUSES = ("pending", "retrying", "succeeded", "failed_permanently")
PIPELINES = ("math", "reading", "transitions", "reading_data", "grammar", "cross_text", "image")
REVIEW_TYPES = (
    "initial_verification",
    "high_error_rate_recheck",
    "post_improvement_verification",
)


class GenerationDLQItem(db.Model):
    """A failed generation attempt waiting for retry."""

    __tablename__ = "generation_dlq"

    id = db.Column(db.Integer, primary_key=True)
    pipeline = db.Column(db.String(32), nullable=False, index=True)
    domain = db.Column(db.String(64))
    sampled_params = db.Column(db.JSON, nullable=False)
    artefacts = db.Column(db.JSON)
    batch_id = db.Column(db.String(64), index=True)
    error = db.Column(db.Text, nullable=False)
    error_stage = db.Column(db.String(32), nullable=False)
    retry_count = db.Column(db.Integer, nullable=False, default=0)
    max_retries = db.Column(db.Integer, nullable=False, default=3)
    last_attempt_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"))
    image_id = db.Column(db.Integer, db.ForeignKey("images.id"))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (db.Index("ix_generation_dlq_pipeline_status", "pipeline", "status"),)


class QuestionReviewDLQItem(db.Model):
    __tablename__ = "question_review_dlq"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False, index=True)
    review_type = db.Column(db.String(48), nullable=False, default="initial_verification")
    error = db.Column(db.Text, nullable=False)
    retry_count = db.Column(db.Integer, nullable=False, default=0)
    max_retries = db.Column(db.Integer, nullable=False, default=3)
    last_attempt_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)


class QuestionPerformanceStats(db.Model):
    __tablename__ = "question_performance_stats"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False, unique=True)
    total_attempts = db.Column(db.Integer, nullable=False, default=0)
    correct_attempts = db.Column(db.Integer, nullable=False, default=0)
    error_rate = db.Column(db.Float, nullable=False, default=0.0, index=True)
    answer_distribution = db.Column(db.JSON, nullable=False, default=dict)
    most_common_wrong_answer = db.Column(db.String(8))
    flagged_for_review = db.Column(db.Boolean, nullable=False, default=False, index=True)
    flag_reason = db.Column(db.String(255))
    last_updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    question = db.relationship("Question", backref=db.backref("performance", uselist=False))
