"""Application configuration objects."""

from __future__ import annotations

import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Type

from sqlalchemy.pool import NullPool, StaticPool

PROJECT_ROOT = Path(__file__).resolve().parent


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class BaseConfig:
    """Shared defaults across all environments."""

    APP_NAME = "SAT Question Bank"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite+pysqlite:///qbank_dev.db",
    )
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change_me")
    JWT_TOKEN_LOCATION = ("headers",)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        seconds=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_SEC", "43200"))
    )

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or os.getenv("AI_API_KEY", "")
    AI_API_KEY = OPENAI_API_KEY
    AI_API_BASE = os.getenv("AI_API_BASE", "https://api.openai.com/v1")
    AI_API_MAX_RETRIES = int(os.getenv("AI_API_MAX_RETRIES", "3"))
    AI_API_RETRY_BACKOFF = float(os.getenv("AI_API_RETRY_BACKOFF", "2.0"))
    AI_TIMEOUT_SECONDS = int(os.getenv("AI_TIMEOUT_SECONDS", "120"))
    AI_CONNECT_TIMEOUT_SEC = int(os.getenv("AI_CONNECT_TIMEOUT_SEC", "15"))
    AI_READ_TIMEOUT_SEC = int(
        os.getenv("AI_READ_TIMEOUT_SEC", str(AI_TIMEOUT_SECONDS))
    )
    AI_GENERATION_MODEL = os.getenv("AI_GENERATION_MODEL", "gpt-4.1")
    AI_REVIEW_MODEL = os.getenv("AI_REVIEW_MODEL") or AI_GENERATION_MODEL
    AI_IMAGE_MODEL = os.getenv("AI_IMAGE_MODEL", "gpt-image-1")
    AI_IMAGE_SIZE = os.getenv("AI_IMAGE_SIZE", "1536x1024")
    AI_GENERATION_TEMPERATURE = float(os.getenv("AI_GENERATION_TEMPERATURE", "0.8"))
    AI_REVIEW_TEMPERATURE = float(os.getenv("AI_REVIEW_TEMPERATURE", "0.1"))
    AI_REVIEW_ENABLE = _env_flag("AI_REVIEW_ENABLE", "true")

    GENERATION_CONCURRENCY = int(os.getenv("GENERATION_CONCURRENCY", "3"))
    GENERATION_BATCH_DELAY_SEC = float(os.getenv("GENERATION_BATCH_DELAY_SEC", "1.0"))
    GENERATION_RETRY_DELAY_SEC = float(os.getenv("GENERATION_RETRY_DELAY_SEC", "2.0"))
    REVIEW_BATCH_DELAY_SEC = float(os.getenv("REVIEW_BATCH_DELAY_SEC", "2.0"))
    DLQ_MAX_RETRIES = int(os.getenv("DLQ_MAX_RETRIES", "3"))

    REVIEW_COOLDOWN_DAYS = int(os.getenv("REVIEW_COOLDOWN_DAYS", "7"))
    REVIEW_AUTOCORRECT_CONFIDENCE = float(os.getenv("REVIEW_AUTOCORRECT_CONFIDENCE", "0.8"))
    PERFORMANCE_FLAG_THRESHOLD = float(os.getenv("PERFORMANCE_FLAG_THRESHOLD", "0.7"))
    PERFORMANCE_URGENT_THRESHOLD = float(os.getenv("PERFORMANCE_URGENT_THRESHOLD", "0.85"))
    PERFORMANCE_MIN_ATTEMPTS = int(os.getenv("PERFORMANCE_MIN_ATTEMPTS", "30"))
    ENDLESS_DAILY_TARGET = int(os.getenv("ENDLESS_DAILY_TARGET", "10"))
    ADAPTIVE_WEAK_SKILL_POINTS = int(os.getenv("ADAPTIVE_WEAK_SKILL_POINTS", "500"))
    ADAPTIVE_DIFFICULTY_TOLERANCE = float(os.getenv("ADAPTIVE_DIFFICULTY_TOLERANCE", "0.2"))

    IMAGE_STORAGE_DIR = os.getenv(
        "IMAGE_STORAGE_DIR", str(PROJECT_ROOT / "instance" / "images")
    )
    IMAGE_URL_SECRET = os.getenv("IMAGE_URL_SECRET") or JWT_SECRET_KEY
    IMAGE_URL_SALT = os.getenv("IMAGE_URL_SALT", "image-url")
    IMAGE_URL_TTL_SEC = int(os.getenv("IMAGE_URL_TTL_SEC", "1800"))
    IMAGE_URL_RATE_LIMIT = os.getenv("IMAGE_URL_RATE_LIMIT", "60 per minute")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    SERVICE_NAME = os.getenv("SERVICE_NAME", "qbank")
    RATE_LIMIT_DEFAULTS = [
        limit.strip()
        for limit in os.getenv("RATE_LIMIT_DEFAULTS", "200 per minute;1000 per day").split(";")
        if limit.strip()
    ]
    RATELIMIT_DEFAULT = "; ".join(RATE_LIMIT_DEFAULTS)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    JSON_SORT_KEYS = False

    ADMIN_DEFAULT_USERNAME = os.getenv("ADMIN_DEFAULT_USERNAME", "admin")
    ADMIN_DEFAULT_EMAIL = os.getenv("ADMIN_DEFAULT_EMAIL", "admin@example.com")
    ADMIN_DEFAULT_PASSWORD = os.getenv("ADMIN_DEFAULT_PASSWORD", "AdminPass123!")
    SEED_STUDENT_USERNAME = os.getenv("SEED_STUDENT_USERNAME", "student")
    SEED_STUDENT_EMAIL = os.getenv("SEED_STUDENT_EMAIL", "student@example.com")
    SEED_STUDENT_PASSWORD = os.getenv("SEED_STUDENT_PASSWORD", "StudentPass123!")

    SQLITE_TIMEOUT_SEC = int(os.getenv("SQLITE_TIMEOUT_SEC", "15"))
    SQLITE_BUSY_TIMEOUT_MS = int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "15000"))
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "poolclass": NullPool,
            "connect_args": {"timeout": SQLITE_TIMEOUT_SEC, "check_same_thread": False},
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_pre_ping": True,
            "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
            "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        }


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False


class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    # One shared connection so the in-memory schema survives across sessions.
    SQLALCHEMY_ENGINE_OPTIONS = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    JWT_SECRET_KEY = "test-secret"
    IMAGE_URL_SECRET = JWT_SECRET_KEY
    OPENAI_API_KEY = "test-key"
    AI_API_KEY = OPENAI_API_KEY
    AI_API_MAX_RETRIES = 1
    GENERATION_BATCH_DELAY_SEC = 0.0
    GENERATION_RETRY_DELAY_SEC = 0.0
    REVIEW_BATCH_DELAY_SEC = 0.0
    RATELIMIT_ENABLED = False


CONFIG_ALIASES: dict[str, Type[BaseConfig]] = {
    "dev": DevConfig,
    "development": DevConfig,
    "prod": ProdConfig,
    "production": ProdConfig,
    "test": TestConfig,
    "testing": TestConfig,
}


@lru_cache
def resolve_config(name_or_class: Any) -> Any:
    """Resolve config argument to the object expected by `app.config.from_object`."""

    if name_or_class is None:
        return DevConfig
    if isinstance(name_or_class, str):
        return CONFIG_ALIASES.get(name_or_class, name_or_class)
    return name_or_class
