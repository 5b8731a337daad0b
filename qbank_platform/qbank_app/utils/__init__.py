"""Utility helpers (security, LLM response parsing)."""

from .security import admin_required, generate_access_token, hash_password, is_admin, verify_password
from .llm_json import LLMResponseError, extract_json_object, normalize_answer_letter, require_fields

__all__ = [
    "admin_required",
    "generate_access_token",
    "hash_password",
    "is_admin",
    "verify_password",
    "LLMResponseError",
    "extract_json_object",
    "normalize_answer_letter",
    "require_fields",
]
