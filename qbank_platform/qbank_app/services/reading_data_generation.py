"""Data-interpretation pipeline: chart data, rendered chart, evidence question."""

from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

from ..utils.llm_json import ANSWER_LETTERS, normalize_choices
from . import image_service, prompts, question_service, reading_data_templates
from .generation_common import (
    GenerationResult,
    call_json,
    generate_image,
    generate_one,
    generation_metadata,
    retry_dlq,
    run_batch,
    stage,
)
from .transform import shuffle_list

PIPELINE = "reading_data"
DATA_FIELDS = ("title",)
QUESTION_FIELDS = ("passage", "questionStem", "choices", "explanation")
DOMAIN = "information_and_ideas"
SKILL = "command_of_evidence_quantitative"


def draft_data_question(
    params: reading_data_templates.SampledDataParams, artefacts: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    artefacts = dict(artefacts or {})
    chart_data = artefacts.get("chart_data")
    if chart_data is None:
        with stage("data_generation", artefacts):
            chart_data = call_json(prompts.build_chart_data_messages(params), DATA_FIELDS, "chart data")
        artefacts["chart_data"] = chart_data

    with stage("image_generation", artefacts):
        image = generate_image(prompts.build_chart_image_prompt(params, chart_data))

    with stage("question_generation", artefacts):
        question = call_json(
            prompts.build_chart_question_messages(params, chart_data), QUESTION_FIELDS, "chart question"
        )
        question["choices"] = normalize_choices(question["choices"], "chart question")
    return {"chart_data": chart_data, "image": image, "question": question, "artefacts": artefacts}


def shuffle_choices(
    choices: Dict[str, str],
    correct: str,
    explanations: Optional[Dict[str, str]] = None,
    rng: random.Random | None = None,
) -> tuple[List[Dict[str, Any]], str, Dict[str, str]]:
    """Shuffle lettered choices; returns options, the new correct letter and relabelled explanations."""

    order = shuffle_list(list(ANSWER_LETTERS), rng)
    new_letter = {old: ANSWER_LETTERS[index] for index, old in enumerate(order)}
    options = [
        {"key": ANSWER_LETTERS[index], "content": choices[old], "order": index}
        for index, old in enumerate(order)
    ]
    relabelled = {
        new_letter[old]: text
        for old, text in (explanations or {}).items()
        if old in new_letter and old != correct and text
    }
    return options, new_letter[correct], relabelled


def persist_data_question(
    params: reading_data_templates.SampledDataParams, draft: Dict[str, Any], batch_id: str | None
) -> GenerationResult:
    chart_data, question = draft["chart_data"], draft["question"]
    title = chart_data.get("title") or "Data figure"
    image = image_service.store_image(
        draft["image"],
        alt_text=f"{params.data_type.replace('_', ' ')}: {title}",
        width=reading_data_templates.CHART_IMAGE_WIDTH,
        height=reading_data_templates.CHART_IMAGE_HEIGHT,
        commit=False,
    )
    options, correct, wrong = shuffle_choices(
        question["choices"], "A", question.get("distractorExplanations")
    )
    created = question_service.create_agent_question(
        category="reading_writing",
        domain=DOMAIN,
        skill=SKILL,
        prompt=f"{question['passage']}\n\n{question['questionStem']}",
        correct_answer=correct,
        options=options,
        explanation=question["explanation"],
        wrong_answer_explanations=wrong,
        rw_difficulty=reading_data_templates.compute_rw_difficulty(params),
        figure_image_id=image.id,
        figure_type=reading_data_templates.figure_type_for(params.data_type),
        figure_caption=title,
        tags=[
            "reading_writing",
            DOMAIN,
            SKILL,
            "data_interpretation",
            params.data_type,
            params.domain,
            params.claim_type,
            "agent_generated",
        ],
        generation_metadata=generation_metadata(
            "reading_data_question",
            params,
            [{"factor": "claimStrength", "mean": 0.6, "stdDev": 0.2}],
            raw_chart_data=chart_data,
        ),
        batch_id=batch_id,
        commit=False,
    )
    return GenerationResult(
        success=True,
        question_id=created.id,
        image_id=image.id,
        sampled_params=params.to_dict(),
    )


def generate_data_question(
    data_type: str | None = None,
    domain: str | None = None,
    *,
    params: reading_data_templates.SampledDataParams | None = None,
    batch_id: str | None = None,
    rng: random.Random | None = None,
) -> GenerationResult:
    params = params or reading_data_templates.sample_data_question_params(
        data_type=data_type, domain=domain, rng=rng
    )
    return generate_one(PIPELINE, params, draft_data_question, persist_data_question, batch_id=batch_id)


def batch_generate_data_questions(
    count: int,
    data_type: str | None = None,
    domain: str | None = None,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    params_list = [
        reading_data_templates.sample_data_question_params(data_type=data_type, domain=domain, rng=rng)
        for _ in range(count)
    ]
    return run_batch(PIPELINE, params_list, draft_data_question, persist_data_question)


def retry_dlq_items(limit: int = 10) -> Dict[str, Any]:
    return retry_dlq(
        PIPELINE,
        reading_data_templates.SampledDataParams.from_dict,
        draft_data_question,
        persist_data_question,
        limit,
    )
