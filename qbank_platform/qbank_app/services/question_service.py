"""Question CRUD service functions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from flask import abort, current_app
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import AnswerOption, Explanation, Passage, Question
from ..models.question import CATEGORIES, QUESTION_TYPES, REVIEW_STATUSES
from . import difficulty_service, image_service, passage_service

OPTION_LETTERS = ("A", "B", "C", "D")


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def create_agent_question(
    *,
    category: str,
    domain: str,
    skill: str,
    prompt: str,
    correct_answer: str,
    options: Iterable[Dict[str, Any]],
    explanation: str = "",
    wrong_answer_explanations: Optional[Dict[str, str]] = None,
    common_mistakes: Optional[List[Dict[str, Any]]] = None,
    math_difficulty: Optional[Dict[str, float]] = None,
    rw_difficulty: Optional[Dict[str, float]] = None,
    passage_id: int | None = None,
    secondary_passage_id: int | None = None,
    figure_image_id: int | None = None,
    figure_type: str | None = None,
    figure_caption: str | None = None,
    tags: Optional[List[str]] = None,
    generation_metadata: Optional[Dict[str, Any]] = None,
    batch_id: str | None = None,
    question_type: str = "multiple_choice",
    source_type: str = "agent_generated",
    review_status: str = "pending",
    commit: bool = True,
) -> Question:
    """Insert a generated question with its options and explanation."""

    if category not in CATEGORIES:
        raise ValueError(f"Invalid category: {category}")
    if question_type not in QUESTION_TYPES:
        raise ValueError(f"Invalid question type: {question_type}")
    if review_status not in REVIEW_STATUSES:
        raise ValueError(f"Invalid review status: {review_status}")

    factors = math_difficulty if category == "math" else rw_difficulty
    overall = difficulty_service.compute_overall_difficulty(category, factors)
    question = Question(
        type=question_type,
        category=category,
        domain=domain,
        skill=skill,
        difficulty=difficulty_service.difficulty_to_legacy(overall),
        overall_difficulty=overall,
        math_difficulty=math_difficulty,
        rw_difficulty=rw_difficulty,
        prompt=prompt,
        passage_id=passage_id,
        secondary_passage_id=secondary_passage_id,
        figure_image_id=figure_image_id,
        figure_type=figure_type,
        figure_caption=figure_caption,
        correct_answer=correct_answer,
        source_type=source_type,
        generation_batch_id=batch_id,
        tags=list(tags) if tags else [domain, skill, "agent_generated"],
        generation_metadata=generation_metadata,
        review_status=review_status,
    )
    for index, option in enumerate(options):
        question.options.append(
            AnswerOption(
                key=option["key"],
                content=option["content"],
                image_id=option.get("image_id"),
                order=option.get("order", index),
            )
        )
    question.explanation = Explanation(
        correct_explanation=explanation or "",
        wrong_answer_explanations=wrong_answer_explanations or None,
        common_mistakes=common_mistakes or None,
    )
    db.session.add(question)
    for used_id in (passage_id, secondary_passage_id):
        passage = db.session.get(Passage, used_id) if used_id else None
        if passage is not None:
            passage_service.increment_usage(passage)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    current_app.logger.info(
        "Created question",
        extra={
            "event": "question.created",
            "question_id": question.id,
            "category": category,
            "skill": skill,
            "batch_id": batch_id,
        },
    )
    return question


def list_questions(filters: Optional[Dict[str, Any]] = None, page: int = 1, per_page: int = 20):
    filters = filters or {}
    query = Question.query.options(selectinload(Question.options))
    for field in ("category", "domain", "skill", "review_status", "figure_type"):
        value = filters.get(field)
        if value:
            query = query.filter(getattr(Question, field) == value)
    if filters.get("difficulty"):
        query = query.filter(Question.difficulty == int(filters["difficulty"]))
    if filters.get("batch_id"):
        query = query.filter(Question.generation_batch_id == filters["batch_id"])
    if filters.get("has_figure") is not None:
        if filters["has_figure"]:
            query = query.filter(Question.figure_image_id.isnot(None))
        else:
            query = query.filter(Question.figure_image_id.is_(None))
    return query.order_by(Question.created_at.desc(), Question.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )


def get_question(question_id: int) -> Question:
    question = (
        Question.query.options(
            joinedload(Question.passage),
            selectinload(Question.options),
            joinedload(Question.explanation),
        )
        .filter(Question.id == question_id)
        .first()
    )
    if question is None:
        abort(404)
    return question


def serialize_question(question: Question, *, include_answer: bool = False, include_passage: bool = True) -> dict:
    payload: Dict[str, Any] = {
        "id": question.id,
        "type": question.type,
        "category": question.category,
        "domain": question.domain,
        "skill": question.skill,
        "difficulty": question.difficulty,
        "overall_difficulty": question.overall_difficulty,
        "prompt": question.prompt,
        "passage_id": question.passage_id,
        "secondary_passage_id": question.secondary_passage_id,
        "figure": None,
        "options": [
            {
                "key": option.key,
                "content": option.content,
                "order": option.order,
                "image_url": image_service.signed_image_url(option.image_id),
            }
            for option in question.options
        ],
        "tags": question.tags or [],
        "review_status": question.review_status,
    }
    if question.figure_image_id:
        payload["figure"] = {
            "image_id": question.figure_image_id,
            "type": question.figure_type,
            "caption": question.figure_caption,
            "url": image_service.signed_image_url(question.figure_image_id),
        }
    if include_passage and question.passage is not None:
        payload["passage"] = passage_service.serialize_passage(question.passage)
    if include_passage and question.secondary_passage is not None:
        payload["secondary_passage"] = passage_service.serialize_passage(question.secondary_passage)
    if include_answer:
        explanation = question.explanation
        payload.update(
            {
                "correct_answer": question.correct_answer,
                "explanation": explanation.correct_explanation if explanation else None,
                "wrong_answer_explanations": explanation.wrong_answer_explanations if explanation else None,
                "common_mistakes": explanation.common_mistakes if explanation else None,
                "math_difficulty": question.math_difficulty,
                "rw_difficulty": question.rw_difficulty,
                "review_metadata": question.review_metadata,
            }
        )
    return payload


def review_payload(question: Question) -> dict:
    """Flat view of a question used to build review and improvement prompts."""

    return {
        "id": question.id,
        "category": question.category,
        "domain": question.domain,
        "skill": question.skill,
        "prompt": question.prompt,
        "passage": question.passage.content if question.passage is not None else None,
        "options": question.option_map(),
        "correct_answer": question.correct_answer,
    }


# Edits recorded in the improvement history


def _record_improvement(question: Question, improvement_type: str, field: str, old, new, reason: str) -> None:
    history = list(question.improvement_history or [])
    history.append(
        {
            "improved_at": _now_ms(),
            "improvement_type": improvement_type,
            "field_changed": field,
            "original_value": old,
            "new_value": new,
            "reason": reason,
        }
    )
    question.improvement_history = history


def update_prompt(question: Question, new_prompt: str, reason: str) -> Question:
    if not new_prompt or not new_prompt.strip():
        raise ValueError("New prompt must not be empty")
    _record_improvement(question, "question_stem", "prompt", question.prompt, new_prompt, reason)
    question.prompt = new_prompt
    db.session.add(question)
    return question


def update_option(question: Question, key: str, new_content: str, reason: str) -> Question:
    key = key.strip().upper()
    option = next((opt for opt in question.options if opt.key == key), None)
    if option is None:
        raise ValueError(f"Question {question.id} has no option {key}")
    _record_improvement(question, "answer_choice", f"option{key}", option.content, new_content, reason)
    option.content = new_content
    db.session.add(option)
    return question


def update_correct_answer(question: Question, new_answer: str, reason: str) -> Question:
    new_answer = new_answer.strip().upper()
    if new_answer not in OPTION_LETTERS:
        raise ValueError(f"Invalid correct answer: {new_answer}")
    _record_improvement(
        question, "correct_answer", "correct_answer", question.correct_answer, new_answer, reason
    )
    question.correct_answer = new_answer
    db.session.add(question)
    return question
