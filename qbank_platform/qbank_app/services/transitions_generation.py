"""Transitions pipeline: a short passage with a blank and four connectors."""

from __future__ import annotations

import random
from typing import Any, Dict, Optional

from ..utils.llm_json import normalize_answer_letter, normalize_choices
from . import passage_service, prompts, question_service, transitions_templates
from .generation_common import (
    GenerationResult,
    call_json,
    generate_one,
    generation_metadata,
    retry_dlq,
    run_batch,
    stage,
)

PIPELINE = "transitions"
QUESTION_FIELDS = ("passageWithBlank", "questionStem", "choices")
DOMAIN = "expression_of_ideas"
SKILL = "transitions"


def draft_transitions_question(
    params: transitions_templates.SampledTransitionParams, artefacts: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    artefacts = dict(artefacts or {})
    with stage("question_generation", artefacts):
        question = call_json(
            prompts.build_transitions_messages(params), QUESTION_FIELDS, "transitions question"
        )
        question["choices"] = normalize_choices(question["choices"], "transitions question")
        # the model is asked to put the correct connector second unless told otherwise
        question["correctAnswer"] = normalize_answer_letter(question.get("correctAnswer"), "B")
    return {"question": question, "artefacts": artefacts}


def persist_transitions_question(
    params: transitions_templates.SampledTransitionParams, draft: Dict[str, Any], batch_id: str | None
) -> GenerationResult:
    question = draft["question"]
    passage, _created = passage_service.create_passage(
        question["passageWithBlank"],
        title="Transitions Exercise",
        author="Generated",
        source="Transitions question",
        passage_type="social_science",
        complexity=params.sentence_complexity,
        analyzed_features={
            "paragraph_purposes": ["Tests logical transition between ideas"],
            "testable_vocabulary": [],
            "key_inferences": [],
            "main_idea": "Transition exercise",
            "author_purpose": "Test logical connectors",
        },
        commit=False,
    )
    created = question_service.create_agent_question(
        category="reading_writing",
        domain=DOMAIN,
        skill=SKILL,
        prompt=question["questionStem"],
        correct_answer=question["correctAnswer"],
        options=[
            {"key": key, "content": text, "order": index}
            for index, (key, text) in enumerate(question["choices"].items())
        ],
        explanation=question.get("explanation") or "",
        rw_difficulty=transitions_templates.compute_rw_difficulty(params),
        passage_id=passage.id,
        tags=[
            "reading_writing",
            DOMAIN,
            SKILL,
            "transitions",
            params.relationship_type,
            params.topic_category,
            "agent_generated",
        ],
        generation_metadata=generation_metadata(
            "transitions",
            params,
            [
                {"factor": "sentenceComplexity", "mean": 0.5, "stdDev": 0.2},
                {"factor": "relationshipClarity", "mean": 0.5, "stdDev": 0.2},
            ],
        ),
        batch_id=batch_id,
        commit=False,
    )
    return GenerationResult(
        success=True,
        question_id=created.id,
        passage_id=passage.id,
        sampled_params=params.to_dict(),
    )


def generate_transitions_question(
    *,
    params: transitions_templates.SampledTransitionParams | None = None,
    batch_id: str | None = None,
    rng: random.Random | None = None,
    **overrides,
) -> GenerationResult:
    params = params or transitions_templates.sample_transition_params(rng=rng, **overrides)
    return generate_one(
        PIPELINE, params, draft_transitions_question, persist_transitions_question, batch_id=batch_id
    )


def batch_generate_transitions_questions(
    count: int, rng: random.Random | None = None, **overrides
) -> Dict[str, Any]:
    params_list = [
        transitions_templates.sample_transition_params(rng=rng, **overrides) for _ in range(count)
    ]
    return run_batch(PIPELINE, params_list, draft_transitions_question, persist_transitions_question)


def retry_dlq_items(limit: int = 10) -> Dict[str, Any]:
    return retry_dlq(
        PIPELINE,
        transitions_templates.SampledTransitionParams.from_dict,
        draft_transitions_question,
        persist_transitions_question,
        limit,
    )
