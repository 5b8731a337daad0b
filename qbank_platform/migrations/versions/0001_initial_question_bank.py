"""initial question bank schema"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_question_bank"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=128)),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="student"),
        sa.Column("target_score", sa.Integer),
        sa.Column("test_date", sa.Date),
        _timestamp("created_at"),
        _timestamp("last_active_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("daily_question_target", sa.Integer, nullable=False, server_default="10"),
        sa.Column("preferred_categories", sa.JSON),
        _timestamp("updated_at"),
    )

    op.create_table(
        "images",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("storage_path", sa.String(length=512), nullable=False),
        sa.Column("mime_type", sa.String(length=32), nullable=False, server_default="image/png"),
        sa.Column("width", sa.Integer, nullable=False),
        sa.Column("height", sa.Integer, nullable=False),
        sa.Column("aspect_ratio", sa.Float, nullable=False),
        sa.Column("alt_text", sa.Text, nullable=False, server_default=""),
        _timestamp("created_at"),
    )

    op.create_table(
        "passages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(length=255)),
        sa.Column("author", sa.String(length=255)),
        sa.Column("source", sa.String(length=255)),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("passage_type", sa.String(length=32)),
        sa.Column("complexity", sa.Float),
        sa.Column("analyzed_features", sa.JSON),
        sa.Column("generation_type", sa.String(length=32), nullable=False, server_default="agent_generated"),
        sa.Column("used_in_question_count", sa.Integer, nullable=False, server_default="0"),
        _timestamp("created_at"),
    )
    op.create_index("ix_passages_passage_type", "passages", ["passage_type"])

    op.create_table(
        "passage_figures",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("passage_id", sa.Integer, sa.ForeignKey("passages.id"), nullable=False),
        sa.Column("image_id", sa.Integer, sa.ForeignKey("images.id"), nullable=False),
        sa.Column("figure_number", sa.Integer, nullable=False, server_default="1"),
        sa.Column("caption", sa.String(length=512)),
        sa.Column("placement", sa.String(length=32), nullable=False, server_default="below-passage"),
        sa.Column("insert_after_paragraph", sa.Integer),
    )
    op.create_index("ix_passage_figures_passage_id", "passage_figures", ["passage_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="multiple_choice"),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("domain", sa.String(length=64), nullable=False),
        sa.Column("skill", sa.String(length=64), nullable=False),
        sa.Column("difficulty", sa.Integer, nullable=False, server_default="2"),
        sa.Column("overall_difficulty", sa.Float),
        sa.Column("math_difficulty", sa.JSON),
        sa.Column("rw_difficulty", sa.JSON),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("passage_id", sa.Integer, sa.ForeignKey("passages.id")),
        sa.Column("secondary_passage_id", sa.Integer, sa.ForeignKey("passages.id")),
        sa.Column("figure_image_id", sa.Integer, sa.ForeignKey("images.id")),
        sa.Column("figure_type", sa.String(length=32)),
        sa.Column("figure_caption", sa.String(length=512)),
        sa.Column("correct_answer", sa.String(length=32), nullable=False),
        sa.Column("source_type", sa.String(length=32), nullable=False, server_default="agent_generated"),
        sa.Column("generation_batch_id", sa.String(length=64)),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("generation_metadata", sa.JSON),
        sa.Column("review_status", sa.String(length=32), server_default="pending"),
        _timestamp("last_reviewed_at", nullable=True),
        sa.Column("review_metadata", sa.JSON),
        sa.Column("improvement_history", sa.JSON),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    for column in ("category", "domain", "skill", "passage_id", "generation_batch_id", "review_status"):
        op.create_index(f"ix_questions_{column}", "questions", [column])
    op.create_index("ix_questions_category_overall", "questions", ["category", "overall_difficulty"])
    op.create_index("ix_questions_category_review", "questions", ["category", "review_status"])

    op.create_table(
        "answer_options",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("key", sa.String(length=8), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("image_id", sa.Integer, sa.ForeignKey("images.id")),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_answer_options_question_id", "answer_options", ["question_id"])

    op.create_table(
        "explanations",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id"), nullable=False, unique=True),
        sa.Column("correct_explanation", sa.Text, nullable=False, server_default=""),
        sa.Column("wrong_answer_explanations", sa.JSON),
        sa.Column("common_mistakes", sa.JSON),
        sa.Column("video_url", sa.String(length=512)),
    )

    op.create_table(
        "exam_attempts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("mode", sa.String(length=16), nullable=False, server_default="practice"),
        sa.Column("section", sa.String(length=32)),
        sa.Column("current_section_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_question_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
        _timestamp("started_at"),
        _timestamp("last_active_at"),
        _timestamp("completed_at", nullable=True),
    )
    op.create_index("ix_exam_attempts_user_id", "exam_attempts", ["user_id"])
    op.create_index("ix_exam_attempts_status", "exam_attempts", ["status"])

    op.create_table(
        "user_answers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("attempt_id", sa.Integer, sa.ForeignKey("exam_attempts.id"), nullable=False),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("selected_answer", sa.String(length=32)),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="empty"),
        sa.Column("is_correct", sa.Boolean),
        sa.Column("flagged", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("crossed_out", sa.JSON),
        sa.Column("selected_mistake_reason", sa.String(length=255)),
        _timestamp("first_viewed_at"),
        _timestamp("last_modified_at"),
        _timestamp("submitted_at", nullable=True),
        sa.Column("time_spent_ms", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("attempt_id", "question_id", name="uq_user_answers_attempt_question"),
    )
    op.create_index("ix_user_answers_attempt_id", "user_answers", ["attempt_id"])
    op.create_index("ix_user_answers_user_id", "user_answers", ["user_id"])

    op.create_table(
        "score_reports",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("attempt_id", sa.Integer, sa.ForeignKey("exam_attempts.id"), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("math_raw", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reading_writing_raw", sa.Integer, nullable=False, server_default="0"),
        sa.Column("math_scaled", sa.Integer, nullable=False, server_default="200"),
        sa.Column("reading_writing_scaled", sa.Integer, nullable=False, server_default="200"),
        sa.Column("total_scaled", sa.Integer, nullable=False, server_default="400"),
        sa.Column("domain_scores", sa.JSON, nullable=False),
        sa.Column("skill_scores", sa.JSON, nullable=False),
        sa.Column("total_time_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("avg_time_per_question_ms", sa.Integer, nullable=False, server_default="0"),
        _timestamp("generated_at"),
    )
    op.create_index("ix_score_reports_user_id", "score_reports", ["user_id"])

    op.create_table(
        "question_review_schedule",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("ease_factor", sa.Float, nullable=False, server_default="2.5"),
        sa.Column("interval", sa.Integer, nullable=False, server_default="0"),
        sa.Column("repetitions", sa.Integer, nullable=False, server_default="0"),
        _timestamp("next_review_at"),
        _timestamp("last_reviewed_at"),
        sa.Column("total_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("correct_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("user_id", "question_id", name="uq_review_schedule_user_question"),
    )
    op.create_index("ix_question_review_schedule_user_id", "question_review_schedule", ["user_id"])
    op.create_index("ix_question_review_schedule_next_review_at", "question_review_schedule", ["next_review_at"])

    op.create_table(
        "skill_mastery",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("domain", sa.String(length=64), nullable=False),
        sa.Column("skill", sa.String(length=64), nullable=False),
        sa.Column("mastery_level", sa.String(length=16), nullable=False, server_default="novice"),
        sa.Column("mastery_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_questions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("correct_answers", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_streak", sa.Integer, nullable=False, server_default="0"),
        _timestamp("last_practiced_at"),
        sa.UniqueConstraint("user_id", "skill", name="uq_skill_mastery_user_skill"),
    )
    op.create_index("ix_skill_mastery_user_id", "skill_mastery", ["user_id"])

    op.create_table(
        "endless_sessions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("attempt_id", sa.Integer, sa.ForeignKey("exam_attempts.id"), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("category", sa.String(length=32)),
        sa.Column("domain", sa.String(length=64)),
        sa.Column("current_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("best_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("session_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("questions_answered", sa.Integer, nullable=False, server_default="0"),
        sa.Column("correct_answers", sa.Integer, nullable=False, server_default="0"),
        sa.Column("question_ids_answered", sa.JSON, nullable=False),
        sa.Column("current_question_id", sa.Integer, sa.ForeignKey("questions.id")),
        _timestamp("started_at"),
        _timestamp("last_active_at"),
    )
    op.create_index("ix_endless_sessions_user_id", "endless_sessions", ["user_id"])

    op.create_table(
        "daily_goals",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("target_questions", sa.Integer, nullable=False, server_default="10"),
        sa.Column("questions_answered", sa.Integer, nullable=False, server_default="0"),
        sa.Column("correct_answers", sa.Integer, nullable=False, server_default="0"),
        sa.Column("time_spent_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("daily_goal_met", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("user_id", "date", name="uq_daily_goals_user_date"),
    )
    op.create_index("ix_daily_goals_user_id", "daily_goals", ["user_id"])

    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("achievement_id", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        _timestamp("unlocked_at"),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )
    op.create_index("ix_user_achievements_user_id", "user_achievements", ["user_id"])

    op.create_table(
        "generation_dlq",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("pipeline", sa.String(length=32), nullable=False),
        sa.Column("domain", sa.String(length=64)),
        sa.Column("sampled_params", sa.JSON, nullable=False),
        sa.Column("artefacts", sa.JSON),
        sa.Column("batch_id", sa.String(length=64)),
        sa.Column("error", sa.Text, nullable=False),
        sa.Column("error_stage", sa.String(length=32), nullable=False),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer, nullable=False, server_default="3"),
        _timestamp("last_attempt_at"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id")),
        sa.Column("image_id", sa.Integer, sa.ForeignKey("images.id")),
        _timestamp("created_at"),
    )
    op.create_index("ix_generation_dlq_pipeline", "generation_dlq", ["pipeline"])
    op.create_index("ix_generation_dlq_batch_id", "generation_dlq", ["batch_id"])
    op.create_index("ix_generation_dlq_status", "generation_dlq", ["status"])
    op.create_index("ix_generation_dlq_pipeline_status", "generation_dlq", ["pipeline", "status"])

    op.create_table(
        "question_review_dlq",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("review_type", sa.String(length=48), nullable=False, server_default="initial_verification"),
        sa.Column("error", sa.Text, nullable=False),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer, nullable=False, server_default="3"),
        _timestamp("last_attempt_at"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        _timestamp("created_at"),
    )
    op.create_index("ix_question_review_dlq_question_id", "question_review_dlq", ["question_id"])
    op.create_index("ix_question_review_dlq_status", "question_review_dlq", ["status"])

    op.create_table(
        "question_performance_stats",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("question_id", sa.Integer, sa.ForeignKey("questions.id"), nullable=False, unique=True),
        sa.Column("total_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("correct_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_rate", sa.Float, nullable=False, server_default="0"),
        sa.Column("answer_distribution", sa.JSON, nullable=False),
        sa.Column("most_common_wrong_answer", sa.String(length=8)),
        sa.Column("flagged_for_review", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("flag_reason", sa.String(length=255)),
        _timestamp("last_updated_at"),
    )
    op.create_index("ix_question_performance_stats_error_rate", "question_performance_stats", ["error_rate"])
    op.create_index(
        "ix_question_performance_stats_flagged_for_review", "question_performance_stats", ["flagged_for_review"]
    )


def downgrade():
    for table in (
        "question_performance_stats",
        "question_review_dlq",
        "generation_dlq",
        "user_achievements",
        "daily_goals",
        "endless_sessions",
        "skill_mastery",
        "question_review_schedule",
        "score_reports",
        "user_answers",
        "exam_attempts",
        "explanations",
        "answer_options",
        "questions",
        "passage_figures",
        "passages",
        "images",
        "user_preferences",
        "users",
    ):
        op.drop_table(table)
