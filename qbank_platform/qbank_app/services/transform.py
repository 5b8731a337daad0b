"""Conversion of external generator output into the question import format."""

from __future__ import annotations

import base64
import random
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, MutableSequence, Optional, Sequence, TypeVar

from ..models.question import PASSAGE_TYPES
from . import difficulty_service

T = TypeVar("T")

VALID_PASSAGE_TYPES = PASSAGE_TYPES
LABELS = ("A", "B", "C", "D")

GENRE_PASSAGE_TYPES: Dict[str, str] = {
    "argumentative": "social_science",
    "persuasive": "social_science",
    "informational": "social_science",
    "literary": "literary_narrative",
    "narrative": "literary_narrative",
    "fiction": "literary_narrative",
    "expository": "natural_science",
    "scientific": "natural_science",
    "science": "natural_science",
    "historical": "humanities",
    "philosophical": "humanities",
    "humanities": "humanities",
    "arts": "humanities",
}
DEFAULT_PASSAGE_TYPE = "social_science"

GEOMETRY_SUBTOPICS = {"area_volume", "triangles", "circles", "lines_angles", "right_triangles"}

_CAMEL_BOUNDARY = re.compile(r"([A-Z])")
_REPEATED_UNDERSCORE = re.compile(r"_+")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def map_category(section: str | None) -> str:
    return "reading_writing" if section == "READING" else "math"


def map_domain(domain: str) -> str:
    """``InformationAndIdeas`` -> ``information_and_ideas``."""

    snake = _CAMEL_BOUNDARY.sub(r"_\1", domain or "").lower().lstrip("_")
    return _REPEATED_UNDERSCORE.sub("_", snake)


def map_passage_type(genre: str | None, strict: bool = False) -> str:
    key = (genre or "").lower()
    result = GENRE_PASSAGE_TYPES.get(key)
    if result is None:
        if strict:
            raise ValueError(
                f"Unmapped passage genre {genre!r}; valid types: {', '.join(VALID_PASSAGE_TYPES)}"
            )
        result = DEFAULT_PASSAGE_TYPE
    if result not in VALID_PASSAGE_TYPES:
        raise ValueError(f"Invalid passage type mapping: {genre!r} -> {result!r}")
    return result


def shuffle_list(items: Sequence[T], rng: random.Random | None = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""

    gen = rng or random
    shuffled: MutableSequence[T] = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(gen.random() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return list(shuffled)


def _scaled(difficulty: Dict[str, Any], key: str) -> float:
    return (difficulty.get(key) or 3) / 5


def transform_rw_difficulty(difficulty: Optional[Dict[str, Any]]) -> Optional[Dict[str, float]]:
    if not difficulty:
        return None
    return {
        "passageComplexity": _scaled(difficulty, "linguistic"),
        "inferenceDepth": _scaled(difficulty, "conceptual"),
        "vocabularyLevel": _scaled(difficulty, "linguistic"),
        "evidenceEvaluation": _scaled(difficulty, "procedural"),
        "synthesisRequired": _scaled(difficulty, "conceptual"),
    }


def transform_math_difficulty(difficulty: Optional[Dict[str, Any]]) -> Optional[Dict[str, float]]:
    if not difficulty:
        return None
    return {
        "reasoningSteps": _scaled(difficulty, "procedural"),
        "algebraicComplexity": _scaled(difficulty, "procedural"),
        "conceptualDepth": _scaled(difficulty, "conceptual"),
        "computationLoad": _scaled(difficulty, "computational"),
        "multiStepRequired": _scaled(difficulty, "procedural"),
    }


def infer_figure_type(question: Dict[str, Any], category: str) -> Optional[str]:
    if not question.get("hasImage"):
        return None
    topic = (question.get("topic") or {}).get("subtopic") or ""
    description = (question.get("imageDescription") or "").lower()
    if topic in GEOMETRY_SUBTOPICS:
        return "geometric"
    if "graph" in description or "chart" in description or "data" in topic:
        return "graph"
    if "table" in description:
        return "table"
    if "diagram" in description:
        return "diagram"
    return "geometric" if category == "math" else "data_display"


def passage_key(content: str) -> str:
    encoded = base64.b64encode(content[:100].encode("utf-8")).decode("ascii")
    return "passage_" + _NON_ALNUM.sub("", encoded)[:20]


def transform_question(gen_question: Dict[str, Any], rng: random.Random | None = None) -> Dict[str, Any]:
    """Shuffle and relabel a generator question into one import record."""

    topic = gen_question.get("topic") or {}
    category = map_category(topic.get("section"))
    domain = map_domain(topic.get("domain") or "")
    skill = topic.get("subtopic") or ""
    difficulty = gen_question.get("difficulty") or {}
    overall_level = difficulty.get("overall") or 3

    shuffled = shuffle_list(gen_question.get("choices") or [], rng)
    new_label_for = {choice.get("label"): LABELS[index] for index, choice in enumerate(shuffled)}
    correct = new_label_for.get(gen_question.get("correctAnswer"))
    options = [
        {"key": LABELS[index], "content": choice.get("text", ""), "order": index}
        for index, choice in enumerate(shuffled)
    ]

    wrong_explanations = None
    rationale = gen_question.get("distractorRationale")
    if rationale:
        wrong_explanations = {
            new_label_for[old]: text
            for old, text in rationale.items()
            if old in new_label_for and new_label_for[old] != correct
        }

    metadata = gen_question.get("metadata") or {}
    generated_at = metadata.get("generatedAt")
    overall = overall_level / 5
    record: Dict[str, Any] = {
        "question": {
            "id": gen_question.get("id"),
            "type": "grid_in" if gen_question.get("answerType") == "grid_in" else "multiple_choice",
            "category": category,
            "domain": domain,
            "skill": skill,
            "difficulty": difficulty_service.difficulty_to_legacy(overall),
            "overall_difficulty": overall,
            "prompt": gen_question.get("stem", ""),
            "correct_answer": correct,
            "tags": [f"topic:{skill}", f"domain:{domain}", f"difficulty:{overall_level}"],
            "source_type": "agent_generated",
            "generation_batch_id": metadata.get("generationId"),
            "generation_metadata": {
                "agent_version": "sat-generator-1.0",
                "prompt_template": metadata.get("promptVersion") or "v1.0.0",
                "generated_at": generated_at
                or datetime.now(timezone.utc).isoformat(),
                "quality_score": (gen_question.get("_evaluation") or {}).get("score"),
            },
            "review_status": "pending",
        },
        "options": options,
        "passage_id": None,
        "explanation": {
            "correct_explanation": gen_question.get("explanation") or "",
            "wrong_answer_explanations": wrong_explanations,
        },
    }
    if category == "reading_writing":
        record["question"]["rw_difficulty"] = transform_rw_difficulty(difficulty)
    else:
        record["question"]["math_difficulty"] = transform_math_difficulty(difficulty)

    passage_text = gen_question.get("passage")
    if passage_text:
        passage_meta = gen_question.get("passageMetadata") or {}
        record["passage_id"] = passage_key(passage_text)
        record["passage"] = {
            "title": passage_meta.get("source") or "Generated Passage",
            "author": None,
            "source": passage_meta.get("source"),
            "content": passage_text,
            "passage_type": map_passage_type(passage_meta.get("genre")),
            "complexity": _scaled(difficulty, "linguistic"),
            "generation_type": "agent_generated",
        }

    if gen_question.get("hasImage"):
        record["needs_image"] = True
        record["image_description"] = gen_question.get("imageDescription")
        record["figure_type"] = infer_figure_type(gen_question, category)
    return record


def build_import_document(gen_questions: Sequence[Dict[str, Any]], rng: random.Random | None = None) -> Dict[str, Any]:
    """Wrap transformed records into the document shape ``import_questions`` accepts."""

    passages: Dict[str, Dict[str, Any]] = {}
    questions = []
    for gen_question in gen_questions:
        record = transform_question(gen_question, rng)
        passage = record.pop("passage", None)
        if passage is not None:
            passages.setdefault(record["passage_id"], passage)
        questions.append(record)
    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "passages": passages,
        "images": {},
        "questions": questions,
    }
