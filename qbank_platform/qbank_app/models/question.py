"""Question bank models."""

from __future__ import annotations

from datetime import datetime, timezone

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


QUESTION_TYPES = ("multiple_choice", "grid_in")
CATEGORIES = ("reading_writing", "math")
REVIEW_STATUSES = ("pending", "verified", "needs_revision", "rejected", "flagged_high_error")
PASSAGE_TYPES = ("literary_narrative", "social_science", "natural_science", "humanities")
FIGURE_TYPES = ("graph", "geometric", "data_display", "diagram", "table")
FIGURE_PLACEMENTS = ("inline", "sidebar", "below-passage")
GENERATION_TYPES = ("official", "agent_generated", "curated", "seeded")


class Image(db.Model):
    __tablename__ = "images"

    id = db.Column(db.Integer, primary_key=True)
    storage_path = db.Column(db.String(512), nullable=False)
    mime_type = db.Column(db.String(32), nullable=False, default="image/png")
    width = db.Column(db.Integer, nullable=False)
    height = db.Column(db.Integer, nullable=False)
    aspect_ratio = db.Column(db.Float, nullable=False)
    alt_text = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)


class Passage(db.Model):
    __tablename__ = "passages"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255))
    author = db.Column(db.String(255))
    source = db.Column(db.String(255))
    content = db.Column(db.Text, nullable=False)
    passage_type = db.Column(db.String(32), index=True)
    complexity = db.Column(db.Float)
    analyzed_features = db.Column(db.JSON)
    generation_type = db.Column(db.String(32), nullable=False, default="agent_generated")
    used_in_question_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    questions = db.relationship("Question", back_populates="passage", foreign_keys="Question.passage_id")
    figures = db.relationship(
        "PassageFigure",
        back_populates="passage",
        order_by="PassageFigure.figure_number",
        cascade="all, delete-orphan",
    )


class PassageFigure(db.Model):
    __tablename__ = "passage_figures"

    id = db.Column(db.Integer, primary_key=True)
    passage_id = db.Column(db.Integer, db.ForeignKey("passages.id"), nullable=False, index=True)
    image_id = db.Column(db.Integer, db.ForeignKey("images.id"), nullable=False)
    figure_number = db.Column(db.Integer, nullable=False, default=1)
    caption = db.Column(db.String(512))
    placement = db.Column(db.String(32), nullable=False, default="below-passage")
    insert_after_paragraph = db.Column(db.Integer)

    passage = db.relationship("Passage", back_populates="figures")
    image = db.relationship("Image")


class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(32), nullable=False, default="multiple_choice")
    category = db.Column(db.String(32), nullable=False, index=True)
    domain = db.Column(db.String(64), nullable=False, index=True)
    skill = db.Column(db.String(64), nullable=False, index=True)
    difficulty = db.Column(db.Integer, nullable=False, default=2)  # legacy 1-3
    overall_difficulty = db.Column(db.Float)
    math_difficulty = db.Column(db.JSON)
    rw_difficulty = db.Column(db.JSON)
    prompt = db.Column(db.Text, nullable=False)
    passage_id = db.Column(db.Integer, db.ForeignKey("passages.id"), index=True)
    # Text 2 of a cross-text pair.
    secondary_passage_id = db.Column(db.Integer, db.ForeignKey("passages.id"))
    figure_image_id = db.Column(db.Integer, db.ForeignKey("images.id"))
    figure_type = db.Column(db.String(32))
    figure_caption = db.Column(db.String(512))
    correct_answer = db.Column(db.String(32), nullable=False)
    source_type = db.Column(db.String(32), nullable=False, default="agent_generated")
    generation_batch_id = db.Column(db.String(64), index=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    generation_metadata = db.Column(db.JSON)
    review_status = db.Column(db.String(32), index=True, default="pending")
    last_reviewed_at = db.Column(db.DateTime(timezone=True))
    review_metadata = db.Column(db.JSON)
    improvement_history = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    passage = db.relationship("Passage", back_populates="questions", foreign_keys=[passage_id])
    secondary_passage = db.relationship("Passage", foreign_keys=[secondary_passage_id])
    figure_image = db.relationship("Image")
    options = db.relationship(
        "AnswerOption",
        back_populates="question",
        order_by="AnswerOption.order",
        cascade="all, delete-orphan",
    )
    explanation = db.relationship(
        "Explanation",
        back_populates="question",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("ix_questions_category_overall", "category", "overall_difficulty"),
        db.Index("ix_questions_category_review", "category", "review_status"),
    )

    def option_map(self) -> dict[str, str]:
        return {option.key: option.content for option in self.options}


class AnswerOption(db.Model):
    __tablename__ = "answer_options"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False, index=True)
    key = db.Column(db.String(8), nullable=False)
    content = db.Column(db.Text, nullable=False)
    image_id = db.Column(db.Integer, db.ForeignKey("images.id"))
    order = db.Column(db.Integer, nullable=False, default=0)

    question = db.relationship("Question", back_populates="options")
    image = db.relationship("Image")


class Explanation(db.Model):
    __tablename__ = "explanations"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(
        db.Integer, db.ForeignKey("questions.id"), nullable=False, unique=True
    )
    correct_explanation = db.Column(db.Text, nullable=False, default="")
    wrong_answer_explanations = db.Column(db.JSON)
    common_mistakes = db.Column(db.JSON)
    video_url = db.Column(db.String(512))

    question = db.relationship("Question", back_populates="explanation")
