"""Reading pipeline: passage first, then a question about it."""

from __future__ import annotations

import random
from typing import Any, Dict, Optional, Sequence

from ..utils.llm_json import normalize_answer_letter, normalize_choices
from . import passage_service, prompts, question_service, reading_templates
from .generation_common import (
    GenerationResult,
    call_json,
    generate_one,
    generation_metadata,
    retry_dlq,
    run_batch,
    stage,
)

PIPELINE = "reading"
PASSAGE_FIELDS = ("passage", "mainIdea", "authorPurpose")
QUESTION_FIELDS = ("questionStem", "choices", "explanation")


def draft_reading_question(
    params: reading_templates.SampledReadingParams, artefacts: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    artefacts = dict(artefacts or {})
    passage = artefacts.get("passage")
    if passage is None:
        with stage("passage_generation", artefacts):
            passage = call_json(
                prompts.build_reading_passage_messages(params), PASSAGE_FIELDS, "reading passage"
            )
        artefacts["passage"] = passage

    with stage("question_generation", artefacts):
        question = call_json(
            prompts.build_reading_question_messages(params, passage), QUESTION_FIELDS, "reading question"
        )
        question["choices"] = normalize_choices(question["choices"], "reading question")
        question["correctAnswer"] = normalize_answer_letter(question.get("correctAnswer"), "A")
    return {"passage": passage, "question": question, "artefacts": artefacts}


def _analyzed_features(passage: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "paragraph_purposes": passage.get("paragraphPurposes") or [],
        "testable_vocabulary": [
            {"word": item.get("word"), "contextual_meaning": item.get("contextualMeaning")}
            for item in passage.get("testableVocabulary") or []
            if isinstance(item, dict)
        ],
        "key_inferences": passage.get("keyInferences") or [],
        "main_idea": passage.get("mainIdea"),
        "author_purpose": passage.get("authorPurpose"),
    }


def persist_reading_question(
    params: reading_templates.SampledReadingParams, draft: Dict[str, Any], batch_id: str | None
) -> GenerationResult:
    passage_data, question = draft["passage"], draft["question"]
    passage, _created = passage_service.create_passage(
        passage_data["passage"],
        title=passage_data.get("title"),
        author=passage_data.get("author"),
        source=passage_data.get("source"),
        passage_type=params.passage_type,
        complexity=params.factors.get("passageComplexity"),
        analyzed_features=_analyzed_features(passage_data),
        commit=False,
    )
    domain, skill = params.domain, params.skill
    correct = question["correctAnswer"]
    wrong = question.get("wrongAnswerExplanations") or question.get("distractorExplanations") or {}
    metadata = generation_metadata(
        f"reading_{params.question_type}",
        params,
        reading_templates.sampling_distribution(),
        passage_analysis={
            "main_idea": passage_data.get("mainIdea"),
            "author_purpose": passage_data.get("authorPurpose"),
            "key_inferences": passage_data.get("keyInferences"),
        },
    )
    created = question_service.create_agent_question(
        category="reading_writing",
        domain=domain,
        skill=skill,
        prompt=question["questionStem"],
        correct_answer=correct,
        options=[
            {"key": key, "content": text, "order": index}
            for index, (key, text) in enumerate(question["choices"].items())
        ],
        explanation=question["explanation"],
        wrong_answer_explanations={key: text for key, text in wrong.items() if key != correct and text},
        rw_difficulty=reading_templates.compute_rw_difficulty(params),
        passage_id=passage.id,
        tags=[
            "reading_writing",
            domain,
            skill,
            params.question_type,
            params.passage_type,
            "agent_generated",
        ],
        generation_metadata=metadata,
        batch_id=batch_id,
        commit=False,
    )
    return GenerationResult(
        success=True,
        question_id=created.id,
        passage_id=passage.id,
        sampled_params=params.to_dict(),
    )


def generate_reading_question(
    question_type: str | None = None,
    passage_type: str | None = None,
    *,
    params: reading_templates.SampledReadingParams | None = None,
    batch_id: str | None = None,
    rng: random.Random | None = None,
) -> GenerationResult:
    params = params or reading_templates.sample_reading_params(
        question_type=question_type, passage_type=passage_type, rng=rng
    )
    return generate_one(
        PIPELINE, params, draft_reading_question, persist_reading_question, batch_id=batch_id
    )


def batch_generate_reading_questions(
    count: int,
    question_types: Optional[Sequence[str]] = None,
    passage_types: Optional[Sequence[str]] = None,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    params_list = [
        reading_templates.sample_reading_params(
            question_type=question_types[index % len(question_types)] if question_types else None,
            passage_type=passage_types[index % len(passage_types)] if passage_types else None,
            rng=rng,
        )
        for index in range(count)
    ]
    return run_batch(PIPELINE, params_list, draft_reading_question, persist_reading_question)


def retry_dlq_items(limit: int = 10) -> Dict[str, Any]:
    return retry_dlq(
        PIPELINE,
        reading_templates.SampledReadingParams.from_dict,
        draft_reading_question,
        persist_reading_question,
        limit,
    )
