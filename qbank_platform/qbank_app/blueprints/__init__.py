"""REST API blueprints (auth, questions, exam, endless, admin, metrics)."""

from __future__ import annotations

from .admin_bp import admin_bp
from .auth_bp import auth_bp
from .endless_bp import endless_bp
from .exam_bp import exam_bp
from .metrics_bp import metrics_bp
from .question_bp import question_bp

BLUEPRINTS = (
    (auth_bp, "/api/auth"),
    (question_bp, "/api/questions"),
    (exam_bp, "/api/exam"),
    (endless_bp, "/api/endless"),
    (admin_bp, "/api/admin"),
    (metrics_bp, ""),
)

__all__ = [
    "BLUEPRINTS",
    "admin_bp",
    "auth_bp",
    "endless_bp",
    "exam_bp",
    "metrics_bp",
    "question_bp",
]
