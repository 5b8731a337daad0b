"""Business logic modules (generation pipelines, review, endless mode, exams)."""

from . import (
    ai_client,
    question_service,
    passage_service,
    image_service,
    difficulty_service,
    dlq_service,
    math_generation,
    reading_generation,
    transitions_generation,
    reading_data_generation,
    grammar_templates,
    grammar_generation,
    cross_text_templates,
    cross_text_generation,
    review_service,
    performance_service,
    spaced_repetition,
    endless_service,
    achievement_service,
    attempt_service,
    answer_service,
    score_service,
    import_service,
    export_service,
)

__all__ = [
    "ai_client",
    "question_service",
    "passage_service",
    "image_service",
    "difficulty_service",
    "dlq_service",
    "math_generation",
    "reading_generation",
    "transitions_generation",
    "reading_data_generation",
    "grammar_templates",
    "grammar_generation",
    "cross_text_templates",
    "cross_text_generation",
    "review_service",
    "performance_service",
    "spaced_repetition",
    "endless_service",
    "achievement_service",
    "attempt_service",
    "answer_service",
    "score_service",
    "import_service",
    "export_service",
]
