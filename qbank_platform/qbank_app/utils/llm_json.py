"""Helpers for pulling structured JSON out of free-form LLM replies."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

ANSWER_LETTERS = ("A", "B", "C", "D")

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class LLMResponseError(ValueError):
    """Model output was missing, not JSON, or lacked required fields."""


def extract_json_object(text: str | None) -> dict:
    if not text:
        raise LLMResponseError("Model returned an empty response")
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise LLMResponseError("Model response did not contain a JSON object")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"Model response JSON could not be parsed: {exc}") from exc
    if not isinstance(payload, dict):
        raise LLMResponseError("Model response JSON was not an object")
    return payload


def require_fields(payload: dict, fields: Iterable[str], label: str) -> dict:
    missing = [name for name in fields if not payload.get(name)]
    if missing:
        raise LLMResponseError(f"Generated {label} missing required fields: {', '.join(missing)}")
    return payload


def normalize_answer_letter(value: Any, default: str = "A") -> str:
    letter = str(value or "").strip().upper()[:1]
    return letter if letter in ANSWER_LETTERS else default


def normalize_choices(choices: Any, label: str = "question") -> dict[str, str]:
    """Coerce a choices payload (dict or list) into an ``{A..D: text}`` dict."""

    if isinstance(choices, list):
        choices = {
            ANSWER_LETTERS[index]: (item.get("text") if isinstance(item, dict) else item)
            for index, item in enumerate(choices[: len(ANSWER_LETTERS)])
        }
    if not isinstance(choices, dict):
        raise LLMResponseError(f"Generated {label} choices must be an object")
    normalized = {
        key.strip().upper(): str(value).strip()
        for key, value in choices.items()
        if isinstance(key, str) and value is not None
    }
    missing = [letter for letter in ANSWER_LETTERS if not normalized.get(letter)]
    if missing:
        raise LLMResponseError(f"Generated {label} missing choices: {', '.join(missing)}")
    return {letter: normalized[letter] for letter in ANSWER_LETTERS}
