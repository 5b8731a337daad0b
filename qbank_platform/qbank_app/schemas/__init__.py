"""Request validation / serialization schemas (marshmallow)."""

from .user_schema import LoginSchema, RegisterSchema, UserPreferenceSchema, UserSchema
from .question_schema import (
    AdaptiveNextSchema,
    DifficultyRangeSchema,
    FactorFilterSchema,
    QuestionFilterSchema,
)
from .exam_schema import (
    AnswerSaveSchema,
    AttemptCreateSchema,
    CrossedOutSchema,
    ProgressSchema,
    PreviousAttemptsQuerySchema,
    QuestionRefSchema,
    WrongAnswersQuerySchema,
)
from .endless_schema import DailyGoalSchema, EndlessAnswerSchema, EndlessStartSchema
from .admin_schema import (
    BatchReviewSchema,
    DLQClearSchema,
    DLQQuerySchema,
    DLQRetrySchema,
    CrossTextGenerateSchema,
    ExportQuerySchema,
    GrammarGenerateSchema,
    ImportSchema,
    MathGenerateSchema,
    ProblematicQuerySchema,
    ReadingDataGenerateSchema,
    ReadingGenerateSchema,
    ReviewRequestSchema,
    TransitionsGenerateSchema,
)

__all__ = [
    "LoginSchema",
    "RegisterSchema",
    "UserPreferenceSchema",
    "UserSchema",
    "AdaptiveNextSchema",
    "DifficultyRangeSchema",
    "FactorFilterSchema",
    "QuestionFilterSchema",
    "AnswerSaveSchema",
    "AttemptCreateSchema",
    "CrossedOutSchema",
    "ProgressSchema",
    "PreviousAttemptsQuerySchema",
    "QuestionRefSchema",
    "WrongAnswersQuerySchema",
    "DailyGoalSchema",
    "EndlessAnswerSchema",
    "EndlessStartSchema",
    "BatchReviewSchema",
    "DLQClearSchema",
    "DLQQuerySchema",
    "DLQRetrySchema",
    "CrossTextGenerateSchema",
    "ExportQuerySchema",
    "GrammarGenerateSchema",
    "ImportSchema",
    "MathGenerateSchema",
    "ProblematicQuerySchema",
    "ReadingDataGenerateSchema",
    "ReadingGenerateSchema",
    "ReviewRequestSchema",
    "TransitionsGenerateSchema",
]
