"""Math question pipeline: problem, optional figure, multiple-choice question."""

from __future__ import annotations

import random
from typing import Any, Dict, Optional, Sequence

from flask import current_app

from ..utils.llm_json import normalize_answer_letter, normalize_choices
from . import image_service, math_templates, prompts, question_service
from .generation_common import (
    GenerationResult,
    call_json,
    generate_image,
    generate_one,
    generation_metadata,
    image_dimensions,
    retry_dlq,
    run_batch,
    stage,
)

PIPELINE = "math"
PROBLEM_FIELDS = ("problemText", "correctAnswer")
QUESTION_FIELDS = ("questionStem", "choices", "correctAnswer", "explanation")


def draft_math_question(
    params: math_templates.SampledMathParams, artefacts: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    artefacts = dict(artefacts or {})
    problem = artefacts.get("problem")
    if problem is None:
        with stage("problem_generation", artefacts):
            problem = call_json(
                prompts.build_math_problem_messages(params), PROBLEM_FIELDS, "math problem"
            )
        artefacts["problem"] = problem

    figure = None
    if params.needs_figure and problem.get("figureData"):
        with stage("figure_generation", artefacts):
            figure = generate_image(prompts.build_math_figure_prompt(params, problem))

    with stage("question_generation", artefacts):
        question = call_json(
            prompts.build_math_question_messages(params, problem), QUESTION_FIELDS, "math question"
        )
        question["choices"] = normalize_choices(question["choices"], "math question")
        question["correctAnswer"] = normalize_answer_letter(question.get("correctAnswer"), "A")
    return {"problem": problem, "question": question, "figure": figure, "artefacts": artefacts}


def persist_math_question(
    params: math_templates.SampledMathParams, draft: Dict[str, Any], batch_id: str | None
) -> GenerationResult:
    problem, question = draft["problem"], draft["question"]
    correct = question["correctAnswer"]

    image = None
    if draft.get("figure"):
        width, height = image_dimensions(current_app.config.get("AI_IMAGE_SIZE"))
        image = image_service.store_image(
            draft["figure"],
            alt_text=problem.get("figureDescription") or "SAT math figure",
            width=width,
            height=height,
            commit=False,
        )

    wrong = {
        key: text
        for key, text in (question.get("wrongAnswerExplanations") or {}).items()
        if key != correct and text
    }
    metadata = generation_metadata(
        f"math_{params.domain}_{params.skill}",
        params,
        math_templates.sampling_distribution(),
        problem_analysis={
            "correct_answer": problem.get("correctAnswer"),
            "solution_steps": problem.get("solutionSteps"),
            "key_concepts_tested": problem.get("keyConceptsTested"),
        },
    )
    created = question_service.create_agent_question(
        category="math",
        domain=params.domain,
        skill=params.skill,
        prompt=question["questionStem"],
        correct_answer=correct,
        options=[
            {"key": key, "content": text, "order": index}
            for index, (key, text) in enumerate(question["choices"].items())
        ],
        explanation=question["explanation"],
        wrong_answer_explanations=wrong,
        math_difficulty=math_templates.compute_math_difficulty(params),
        figure_image_id=image.id if image is not None else None,
        figure_type=math_templates.question_figure_type(params.figure_type) if image is not None else None,
        tags=[
            "math",
            params.domain,
            params.skill,
            params.context_type,
            "has_figure" if image is not None else "no_figure",
            "agent_generated",
        ],
        generation_metadata=metadata,
        batch_id=batch_id,
        commit=False,
    )
    return GenerationResult(
        success=True,
        question_id=created.id,
        image_id=image.id if image is not None else None,
        sampled_params=params.to_dict(),
    )


def generate_math_question(
    domain: str | None = None,
    skill: str | None = None,
    *,
    params: math_templates.SampledMathParams | None = None,
    batch_id: str | None = None,
    rng: random.Random | None = None,
) -> GenerationResult:
    params = params or math_templates.sample_math_params(domain=domain, skill=skill, rng=rng)
    return generate_one(PIPELINE, params, draft_math_question, persist_math_question, batch_id=batch_id)


def batch_generate_math_questions(
    count: int,
    domains: Optional[Sequence[str]] = None,
    skills: Optional[Sequence[str]] = None,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    """Generate ``count`` questions, cycling through ``domains`` and ``skills`` when given."""

    params_list = []
    for index in range(count):
        domain = domains[index % len(domains)] if domains else None
        skill = skills[index % len(skills)] if skills else None
        params_list.append(math_templates.sample_math_params(domain=domain, skill=skill, rng=rng))
    return run_batch(PIPELINE, params_list, draft_math_question, persist_math_question)


def retry_dlq_items(limit: int = 10) -> Dict[str, Any]:
    return retry_dlq(
        PIPELINE,
        math_templates.SampledMathParams.from_dict,
        draft_math_question,
        persist_math_question,
        limit,
    )
