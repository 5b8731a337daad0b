"""Database models package."""

from .user import User, UserPreference
from .question import (
    AnswerOption,
    Explanation,
    Image,
    Passage,
    PassageFigure,
    Question,
)
from .attempt import ExamAttempt, ScoreReport, UserAnswer
from .endless import (
    DailyGoal,
    EndlessSession,
    QuestionReviewSchedule,
    SkillMastery,
    UserAchievement,
)
from .generation import GenerationDLQItem, QuestionPerformanceStats, QuestionReviewDLQItem

__all__ = [
    "User",
    "UserPreference",
    "AnswerOption",
    "Explanation",
    "Image",
    "Passage",
    "PassageFigure",
    "Question",
    "ExamAttempt",
    "ScoreReport",
    "UserAnswer",
    "DailyGoal",
    "EndlessSession",
    "QuestionReviewSchedule",
    "SkillMastery",
    "UserAchievement",
    "GenerationDLQItem",
    "QuestionPerformanceStats",
    "QuestionReviewDLQItem",
]
