"""Cross-text pipeline: two related passages stored separately and one question about both."""

from __future__ import annotations

import random
from typing import Any, Dict, Optional

from ..utils.llm_json import LLMResponseError, normalize_choices
from . import cross_text_templates, passage_service, prompts, question_service
from .generation_common import (
    GenerationResult,
    call_json,
    generate_one,
    generation_metadata,
    retry_dlq,
    run_batch,
    stage,
)
from .reading_data_generation import shuffle_choices

PIPELINE = "cross_text"
QUESTION_FIELDS = ("text1", "text2", "questionStem", "choices", "explanation")


def _check_text(payload: Any, label: str) -> Dict[str, Any]:
    if not isinstance(payload, dict) or not str(payload.get("content") or "").strip():
        raise LLMResponseError(f"{label} is missing its content")
    return payload


def draft_cross_text_question(
    params: cross_text_templates.SampledCrossTextParams, artefacts: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    artefacts = dict(artefacts or {})
    with stage("question_generation", artefacts):
        question = call_json(prompts.build_cross_text_messages(params), QUESTION_FIELDS, "cross-text question")
        _check_text(question["text1"], "Text 1")
        _check_text(question["text2"], "Text 2")
        question["choices"] = normalize_choices(question["choices"], "cross-text question")
    return {"question": question, "artefacts": artefacts}


def _store_text(text: Dict[str, Any], default_title: str, passage_type: str, complexity: float):
    passage, _created = passage_service.create_passage(
        text["content"],
        title=text.get("title") or default_title,
        author=text.get("author") or None,
        source="Cross-text pair",
        passage_type=passage_type,
        complexity=complexity,
        commit=False,
    )
    return passage


def persist_cross_text_question(
    params: cross_text_templates.SampledCrossTextParams,
    draft: Dict[str, Any],
    batch_id: str | None,
    rng: random.Random | None = None,
) -> GenerationResult:
    question = draft["question"]
    first = _store_text(question["text1"], "Text 1", params.passage_type_1, params.text1_complexity)
    second = _store_text(question["text2"], "Text 2", params.passage_type_2, params.text2_complexity)
    options, correct, wrong = shuffle_choices(
        question["choices"], "A", question.get("distractorExplanations"), rng
    )
    created = question_service.create_agent_question(
        category="reading_writing",
        domain=cross_text_templates.DOMAIN,
        skill=cross_text_templates.SKILL,
        prompt=question["questionStem"],
        correct_answer=correct,
        options=options,
        explanation=question["explanation"],
        wrong_answer_explanations=wrong,
        rw_difficulty=cross_text_templates.compute_rw_difficulty(params),
        passage_id=first.id,
        secondary_passage_id=second.id,
        tags=[
            "reading_writing",
            cross_text_templates.DOMAIN,
            cross_text_templates.SKILL,
            params.relationship_type,
            params.topic_category,
            "agent_generated",
        ],
        generation_metadata=generation_metadata(
            "cross_text_connections", params, cross_text_templates.sampling_distribution()
        ),
        batch_id=batch_id,
        commit=False,
    )
    return GenerationResult(
        success=True,
        question_id=created.id,
        passage_id=first.id,
        sampled_params=params.to_dict(),
    )


def generate_cross_text_question(
    *,
    params: cross_text_templates.SampledCrossTextParams | None = None,
    batch_id: str | None = None,
    rng: random.Random | None = None,
    **overrides,
) -> GenerationResult:
    params = params or cross_text_templates.sample_cross_text_params(rng=rng, **overrides)
    return generate_one(
        PIPELINE, params, draft_cross_text_question, persist_cross_text_question, batch_id=batch_id
    )


def batch_generate_cross_text_questions(
    count: int, rng: random.Random | None = None, **overrides
) -> Dict[str, Any]:
    params_list = [cross_text_templates.sample_cross_text_params(rng=rng, **overrides) for _ in range(count)]
    return run_batch(PIPELINE, params_list, draft_cross_text_question, persist_cross_text_question)


def retry_dlq_items(limit: int = 10) -> Dict[str, Any]:
    return retry_dlq(
        PIPELINE,
        cross_text_templates.SampledCrossTextParams.from_dict,
        draft_cross_text_question,
        persist_cross_text_question,
        limit,
    )
