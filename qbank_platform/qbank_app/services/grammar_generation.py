"""Grammar pipeline: one sentence with an underlined portion, no stored passage."""

from __future__ import annotations

import random
from typing import Any, Dict, Iterable, Optional

from ..utils.llm_json import normalize_choices
from . import grammar_templates, prompts, question_service
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

PIPELINE = "grammar"
QUESTION_FIELDS = ("sentenceWithUnderline", "questionStem", "choices", "explanation")


def draft_grammar_question(
    params: grammar_templates.SampledGrammarParams, artefacts: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    artefacts = dict(artefacts or {})
    with stage("question_generation", artefacts):
        question = call_json(prompts.build_grammar_messages(params), QUESTION_FIELDS, "grammar question")
        question["choices"] = normalize_choices(question["choices"], "grammar question")
    return {"question": question, "artefacts": artefacts}


def persist_grammar_question(
    params: grammar_templates.SampledGrammarParams,
    draft: Dict[str, Any],
    batch_id: str | None,
    rng: random.Random | None = None,
) -> GenerationResult:
    question = draft["question"]
    # Drafts always carry the correct choice in A.
    options, correct, wrong = shuffle_choices(
        question["choices"], "A", question.get("distractorExplanations"), rng
    )
    explanation = question["explanation"]
    if question.get("grammarRule"):
        explanation = f"{explanation}\n\nRule: {question['grammarRule']}"
    created = question_service.create_agent_question(
        category="reading_writing",
        domain=grammar_templates.DOMAIN,
        skill=params.skill,
        prompt=f"{question['sentenceWithUnderline']}\n\n{question['questionStem']}",
        correct_answer=correct,
        options=options,
        explanation=explanation,
        wrong_answer_explanations=wrong,
        rw_difficulty=grammar_templates.compute_rw_difficulty(params),
        tags=[
            "reading_writing",
            grammar_templates.DOMAIN,
            params.skill,
            "grammar",
            params.pattern_type,
            params.topic_category,
            "agent_generated",
        ],
        generation_metadata=generation_metadata(
            params.question_type,
            params,
            grammar_templates.sampling_distribution(),
            underlined_portion=question.get("underlinedPortion"),
        ),
        batch_id=batch_id,
        commit=False,
    )
    return GenerationResult(success=True, question_id=created.id, sampled_params=params.to_dict())


def generate_grammar_question(
    question_type: str | None = None,
    *,
    params: grammar_templates.SampledGrammarParams | None = None,
    batch_id: str | None = None,
    rng: random.Random | None = None,
    **overrides,
) -> GenerationResult:
    params = params or grammar_templates.sample_grammar_params(question_type, rng=rng, **overrides)
    return generate_one(PIPELINE, params, draft_grammar_question, persist_grammar_question, batch_id=batch_id)


def batch_generate_grammar_questions(
    count: int,
    question_types: Iterable[str] | None = None,
    rng: random.Random | None = None,
    **overrides,
) -> Dict[str, Any]:
    """Generate ``count`` questions, cycling through the requested skills in order."""

    types = list(question_types or grammar_templates.GRAMMAR_QUESTION_TYPES)
    params_list = [
        grammar_templates.sample_grammar_params(types[index % len(types)], rng=rng, **overrides)
        for index in range(count)
    ]
    return run_batch(PIPELINE, params_list, draft_grammar_question, persist_grammar_question)


def retry_dlq_items(limit: int = 10) -> Dict[str, Any]:
    return retry_dlq(
        PIPELINE,
        grammar_templates.SampledGrammarParams.from_dict,
        draft_grammar_question,
        persist_grammar_question,
        limit,
    )
