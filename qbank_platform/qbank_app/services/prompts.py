from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Dict, List, Optional

from . import (
    cross_text_templates,
    grammar_templates,
    math_templates,
    reading_data_templates,
    reading_templates,
    transitions_templates,
)
from .ai_client import image_part, text_part

SAT_MATH_GUARDRAILS = dedent(
    """
    DIGITAL SAT MATH GUARDRAILS
    • Setups stay within 4 sentences with clearly defined variables.
    • Numbers are realistic and calculator-friendly.
    • Stay within SAT scope: no calculus, matrices or proofs.
    • Figures must be reproducible from the text: coordinates, labels, units.
    """
).strip()

SAT_RW_GUARDRAILS = dedent(
    """
    DIGITAL SAT READING & WRITING GUARDRAILS
    • One short passage per question; tone is exam-neutral and evidence-based.
    • Question stems start with SAT phrasing ("Which choice...", "Based on the text...").
    • Exactly four answer choices (A-D) with exactly one defensible answer.
    • Every distractor mirrors a realistic misreading.
    """
).strip()

JSON_ONLY = "Respond with ONLY a JSON object, no other text."

CHOICES_SCHEMA = dedent(
    """
    "choices": {"A": "...", "B": "...", "C": "...", "D": "..."},
    "correctAnswer": "A" | "B" | "C" | "D",
    "explanation": "Why the correct answer is right",
    "wrongAnswerExplanations": {"A": "...", "B": "...", "C": "...", "D": "..."}
    """
).strip()

AUTO_FIXABLE_ISSUE_TYPES = (
    "answer_wrong",
    "poor_distractor",
    "unclear_choice",
    "unclear_stem",
    "ambiguous",
    "too_easy",
)


def _messages(system_prompt: str, user_content: Any) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


def _distractor_lines(strategies: List[str], catalog: Dict[str, str]) -> str:
    letters = ("B", "C", "D")
    return "\n".join(
        f"- Distractor {letters[index]}: {catalog.get(name, name)}"
        for index, name in enumerate(strategies[:3])
    )


def _factor_lines(factors: Dict[str, float]) -> str:
    return "\n".join(f"- {name}: {value:.2f}" for name, value in factors.items())


# Math


def build_math_problem_messages(params: math_templates.SampledMathParams) -> List[Dict[str, Any]]:
    steps = math_templates.reasoning_step_count(params.factors.get("reasoningSteps", 0.5))
    figure_note = (
        f"The problem relies on a {params.figure_type.replace('_', ' ')}. Describe it in "
        "figureDescription and give exact coordinates or measurements in figureData."
        if params.needs_figure
        else "The problem needs no figure; set figureDescription and figureData to null."
    )
    user_prompt = dedent(
        f"""
        Write one original SAT math problem.

        Domain: {params.domain}
        Skill: {params.skill}
        Context: {params.context_type.replace('_', ' ')}
        Reasoning steps: about {steps}
        Target difficulty (0-1): {params.target_overall_difficulty:.2f}
        Difficulty factors:
        {{factors}}

        {figure_note}

        {JSON_ONLY}
        {{{{
          "problemText": "...",
          "givenInformation": ["..."],
          "whatToFind": "...",
          "correctAnswer": "...",
          "solutionSteps": ["..."],
          "keyConceptsTested": ["..."],
          "figureDescription": "..." | null,
          "figureData": {{{{...}}}} | null
        }}}}
        """
    ).strip()
    user_prompt = user_prompt.format(factors=_factor_lines(params.factors))
    return _messages(SAT_MATH_GUARDRAILS, user_prompt)


def build_math_question_messages(
    params: math_templates.SampledMathParams, problem: Dict[str, Any]
) -> List[Dict[str, Any]]:
    distractors = _distractor_lines(params.distractor_strategies, math_templates.MATH_DISTRACTOR_STRATEGIES)
    user_prompt = "\n\n".join(
        [
            "Turn this solved problem into a four-choice SAT math question.",
            f"Problem:\n{problem.get('problemText', '')}",
            f"Correct answer: {problem.get('correctAnswer', '')}",
            f"Solution steps:\n{json.dumps(problem.get('solutionSteps') or [], ensure_ascii=False)}",
            "Build each wrong choice from one error pattern:\n" + distractors,
            "Place the correct value under any letter and report that letter in correctAnswer.",
            JSON_ONLY + "\n{\n\"questionStem\": \"...\",\n" + CHOICES_SCHEMA + "\n}",
        ]
    )
    return _messages(SAT_MATH_GUARDRAILS, user_prompt)


def build_math_figure_prompt(params: math_templates.SampledMathParams, problem: Dict[str, Any]) -> str:
    """Plain-text image prompt for the figure that accompanies a math problem."""

    kind = "coordinate plane graph" if params.figure_type == "coordinate_graph" else "geometric diagram"
    figure_data = problem.get("figureData")
    return dedent(
        f"""
        Draw a clean, SAT-style black-and-white {kind} on a white background.
        {problem.get('figureDescription') or ''}
        Exact figure data: {json.dumps(figure_data, ensure_ascii=False) if figure_data else 'n/a'}
        Every label appears exactly once. No answer, no solution, no extra text.
        """
    ).strip()


# Reading


def build_reading_passage_messages(params: reading_templates.SampledReadingParams) -> List[Dict[str, Any]]:
    traits = reading_templates.PASSAGE_TYPE_CHARACTERISTICS[params.passage_type]
    low, high = reading_templates.PASSAGE_LENGTH_WORDS[params.passage_length]
    user_prompt = dedent(
        f"""
        Write an original SAT reading passage.

        Passage type: {params.passage_type} ({traits['description']})
        Possible voices: {', '.join(traits['voices'])}
        Topic ideas: {', '.join(traits['topics'])}
        Structure hints: {', '.join(traits['structure'])}
        Length: {low}-{high} words
        It will support a {params.question_type.replace('_', ' ')} question focused on
        {params.question_focus.replace('_', ' ')}.
        Complexity factors:
        """
    ).strip()
    user_prompt += "\n" + _factor_lines(params.factors) + "\n\n" + JSON_ONLY + dedent(
        """
        {
          "passage": "...",
          "title": "..." | null,
          "author": "...",
          "source": "...",
          "paragraphPurposes": ["..."],
          "testableVocabulary": [{"word": "...", "contextualMeaning": "..."}],
          "keyInferences": ["..."],
          "mainIdea": "...",
          "authorPurpose": "..."
        }
        """
    )
    return _messages(SAT_RW_GUARDRAILS, user_prompt)


def build_reading_question_messages(
    params: reading_templates.SampledReadingParams, passage: Dict[str, Any]
) -> List[Dict[str, Any]]:
    distractors = _distractor_lines(
        params.distractor_strategies, reading_templates.READING_DISTRACTOR_STRATEGIES
    )
    user_prompt = "\n\n".join(
        [
            f"Write one SAT {params.question_type.replace('_', ' ')} question about this passage.",
            f"Passage:\n{passage.get('passage', '')}",
            f"Main idea: {passage.get('mainIdea', '')}\nAuthor purpose: {passage.get('authorPurpose', '')}",
            f"Question focus: {params.question_focus.replace('_', ' ')}",
            "Wrong choices:\n" + distractors,
            JSON_ONLY + "\n{\n\"questionStem\": \"...\",\n" + CHOICES_SCHEMA + "\n}",
        ]
    )
    return _messages(SAT_RW_GUARDRAILS, user_prompt)


# Transitions


def build_transitions_messages(params: transitions_templates.SampledTransitionParams) -> List[Dict[str, Any]]:
    scenario = transitions_templates.CONTEXT_SCENARIOS[params.relationship_type]
    user_prompt = dedent(
        f"""
        Write one SAT transitions question: a 2-4 sentence passage with a blank (_____)
        where a transition belongs.

        Relationship: {params.relationship_type.replace('_', ' ')} ({scenario['description']})
        Example: "{scenario['before']} _____ {scenario['after']}"
        Topic: {params.topic_category.replace('_', ' ')}
        Correct transition: {params.correct_transition}
        Distractors: {', '.join(params.distractor_transitions)}
        Sentence complexity (0-1): {params.sentence_complexity:.2f}
        Relationship clarity (0-1): {params.relationship_clarity:.2f}
        """
    ).strip()
    user_prompt += "\n\n" + JSON_ONLY + dedent(
        """
        {
          "passageWithBlank": "...",
          "questionStem": "Which choice completes the text with the most logical transition?",
          "choices": {"A": "...", "B": "...", "C": "...", "D": "..."},
          "correctAnswer": "A" | "B" | "C" | "D",
          "explanation": "..."
        }
        """
    )
    return _messages(SAT_RW_GUARDRAILS, user_prompt)


# Reading data (charts)


def build_chart_data_messages(params: reading_data_templates.SampledDataParams) -> List[Dict[str, Any]]:
    user_prompt = dedent(
        f"""
        Generate realistic data for an SAT data-interpretation question.

        Domain: {params.domain}
        Data type: {params.data_type}
        The data should naturally support {params.claim_type} interpretations.
        Include 3-6 categories or time points with plausible values.

        {JSON_ONLY}
        Bar charts: title, xAxisLabel, yAxisLabel, categories, values, unit, source, year.
        Line graphs: title, xAxisLabel, yAxisLabel, timePoints, series [{{"name", "values"}}], unit, source, year.
        Tables: title, headers, rows [{{"label", "values"}}], source, year.
        """
    ).strip()
    return _messages("You produce clean JSON datasets for standardized test figures.", user_prompt)


def build_chart_image_prompt(params: reading_data_templates.SampledDataParams, data: Dict[str, Any]) -> str:
    kind = {"bar_chart": "bar chart", "line_graph": "line graph", "data_table": "table"}[params.data_type]
    return dedent(
        f"""
        Render a clean, SAT-style {kind} titled "{data.get('title', '')}".
        Use exactly this data and label every axis, series and column:
        {json.dumps(data, ensure_ascii=False)}
        White background, legible sans-serif text, no decoration, no extra commentary.
        """
    ).strip()


def build_chart_question_messages(
    params: reading_data_templates.SampledDataParams, data: Dict[str, Any]
) -> List[Dict[str, Any]]:
    distractors = _distractor_lines(
        params.distractor_strategies, reading_data_templates.DATA_DISTRACTOR_STRATEGIES
    )
    user_prompt = "\n\n".join(
        [
            "Write one SAT reading question that requires interpreting this figure.",
            f"Figure data:\n{json.dumps(data, ensure_ascii=False)}",
            f"Claim type: {params.claim_type} - "
            f"{reading_data_templates.CLAIM_TYPE_DESCRIPTIONS[params.claim_type]}",
            f"Claim strength (0 tentative, 1 definitive): {params.claim_strength:.2f}",
            f"The correct answer must reference: {params.target_data_point.replace('_', ' ')}",
            f"Question position: {params.question_position}",
            "Put the correct answer in choice A. Wrong choices:\n" + distractors,
            JSON_ONLY
            + dedent(
                """
                {
                  "passage": "2-3 sentence context",
                  "questionStem": "Which choice most effectively uses data from the figure...",
                  "choices": {"A": "...", "B": "...", "C": "...", "D": "..."},
                  "explanation": "...",
                  "distractorExplanations": {"B": "...", "C": "...", "D": "..."}
                }
                """
            ),
        ]
    )
    return _messages(SAT_RW_GUARDRAILS, user_prompt)


# Grammar


def _calibration(value: float, bands: tuple[str, str, str, str]) -> str:
    for ceiling, text in zip((0.3, 0.5, 0.7), bands):
        if value < ceiling:
            return f"{round(value * 100)}% - {text}"
    return f"{round(value * 100)}% - {bands[3]}"


def build_grammar_messages(params: grammar_templates.SampledGrammarParams) -> List[Dict[str, Any]]:
    example = grammar_templates.PATTERN_EXAMPLES.get(params.pattern_type)
    distractors = _distractor_lines(params.distractor_strategies, reading_templates.READING_DISTRACTOR_STRATEGIES)
    calibration = "\n".join(
        [
            "Sentence complexity: "
            + _calibration(
                params.sentence_complexity,
                ("simple sentence", "one dependent clause", "multiple clauses", "long sentence with embedded clauses"),
            ),
            "Grammar subtlety: "
            + _calibration(
                params.grammar_subtlety,
                ("error is obvious", "error needs attention", "error is easy to miss", "error hides behind intervening words"),
            ),
            "Context clarity: "
            + _calibration(
                params.context_clarity,
                ("context gives little help", "some context clues", "clear context", "context points straight at the rule"),
            ),
            "Vocabulary level: "
            + _calibration(
                params.vocabulary_level,
                ("everyday words", "general academic words", "advanced academic words", "specialized terminology"),
            ),
        ]
    )
    user_prompt = "\n\n".join(
        [
            "Write one SAT Standard English Conventions question: one or two sentences with an "
            "underlined portion and four ways to complete it.",
            f"Skill: {params.question_type.replace('_', ' ')} - "
            f"{grammar_templates.GRAMMAR_TYPE_DESCRIPTIONS[params.question_type]}",
            f"Error pattern: {params.pattern_type.replace('_', ' ')}"
            + (f'\nExample of the pattern: "{example}"' if example else ""),
            f"Topic: {grammar_templates.TOPIC_GUIDANCE[params.topic_category]}",
            "Difficulty calibration:\n" + calibration,
            "Put the correct answer in choice A. Wrong choices:\n" + distractors,
            JSON_ONLY
            + dedent(
                """
                {
                  "sentenceWithUnderline": "The sentence with the tested portion written as ______",
                  "underlinedPortion": "the correct text for the blank",
                  "questionStem": "Which choice completes the text so that it conforms to the conventions of Standard English?",
                  "choices": {"A": "...", "B": "...", "C": "...", "D": "..."},
                  "explanation": "...",
                  "grammarRule": "The rule being tested",
                  "distractorExplanations": {"B": "...", "C": "...", "D": "..."}
                }
                """
            ),
        ]
    )
    return _messages(SAT_RW_GUARDRAILS, user_prompt)


# Cross-text


def build_cross_text_messages(params: cross_text_templates.SampledCrossTextParams) -> List[Dict[str, Any]]:
    distractors = _distractor_lines(
        params.distractor_strategies, cross_text_templates.CROSS_TEXT_DISTRACTOR_STRATEGIES
    )
    factors = _factor_lines(
        {
            "Text 1 complexity": params.text1_complexity,
            "Text 2 complexity": params.text2_complexity,
            "Relationship subtlety": params.relationship_subtlety,
            "Vocabulary level": params.vocabulary_level,
            "Argument complexity": params.argument_complexity,
        }
    )
    user_prompt = "\n\n".join(
        [
            "Write one SAT cross-text connections question: two short passages (Text 1 and Text 2, "
            "60-90 words each) by different authors on the same topic, and a question about how they relate.",
            f"Topic: {params.topic_category.replace('_', ' ')}",
            f"Text 1 style: {params.passage_type_1}. Text 2 style: {params.passage_type_2}.",
            f"Relationship: {params.relationship_type.replace('_', ' ')} - "
            f"{cross_text_templates.RELATIONSHIP_DESCRIPTIONS[params.relationship_type]}",
            "Difficulty factors (0-1):\n" + factors,
            "Put the correct answer in choice A. Wrong choices:\n" + distractors,
            JSON_ONLY
            + dedent(
                """
                {
                  "text1": {"content": "...", "author": "...", "title": "..."},
                  "text2": {"content": "...", "author": "...", "title": "..."},
                  "questionStem": "Based on the texts, how would the author of Text 2 most likely respond to ...?",
                  "choices": {"A": "...", "B": "...", "C": "...", "D": "..."},
                  "explanation": "...",
                  "distractorExplanations": {"B": "...", "C": "...", "D": "..."}
                }
                """
            ),
        ]
    )
    return _messages(SAT_RW_GUARDRAILS, user_prompt)


# Review


def _question_block(question: Dict[str, Any]) -> str:
    lines = []
    if question.get("passage"):
        lines.append(f"PASSAGE:\n{question['passage']}\n")
    lines.append(
        f"Category: {question.get('category')}\nDomain: {question.get('domain')}\nSkill: {question.get('skill')}"
    )
    lines.append(f"\nQuestion Stem: {question.get('prompt', '')}\n\nAnswer Choices:")
    options = question.get("options") or {}
    for letter in ("A", "B", "C", "D"):
        lines.append(f"{letter}) {options.get(letter, 'N/A')}")
    lines.append(f"\nMarked Correct Answer: {question.get('correct_answer')}")
    return "\n".join(lines)


def build_review_messages(
    question: Dict[str, Any], figure: Optional[tuple[str, str]] = None
) -> List[Dict[str, Any]]:
    """Verification prompt; ``figure`` is ``(base64, mime)`` for questions with an image."""

    checks = dedent(
        """
        VERIFICATION TASKS
        1. Work the problem and decide whether the marked answer is correct.
        2. Check every distractor is plausibly wrong and none is arguably correct.
        3. Check the stem is clear and tests the listed skill.
        """
    ).strip()
    if figure:
        checks += (
            "\n4. Check the figure: unique labels, values matching the text, legible rendering. "
            "Report image_label_error, image_text_mismatch, image_quality_issue or image_data_mismatch."
        )
    schema = dedent(
        """
        {
          "answerIsCorrect": true | false,
          "actualCorrectAnswer": "A" | "B" | "C" | "D" (only when different),
          "verificationReasoning": "...",
          "confidenceScore": 0.0-1.0,
          "correctExplanation": "...",
          "wrongAnswerExplanations": {"A": "...", "B": "...", "C": "...", "D": "..."},
          "commonMistakes": [{"reason": "...", "description": "...", "relatedSkill": "..."}],
          "issues": [{"type": "answer_wrong|poor_distractor|unclear_choice|unclear_stem|ambiguous|too_easy|too_hard", "description": "..."}],
          "recommendedAction": "verify" | "needs_revision" | "reject",
          "reviewNotes": "..."
        }
        """
    ).strip()
    body = "\n\n".join([_question_block(question), checks, JSON_ONLY, schema])
    system_prompt = "You are an expert SAT question reviewer. Be rigorous and concise."
    if figure:
        data_b64, mime_type = figure
        return _messages(system_prompt, [image_part(data_b64, mime_type), text_part(body)])
    return _messages(system_prompt, body)


def build_improvement_messages(question: Dict[str, Any], issues: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    issue_lines = "\n".join(
        f"{index}. {issue.get('type')}: {issue.get('description')}"
        for index, issue in enumerate(issues, start=1)
    )
    body = "\n\n".join(
        [
            _question_block(question),
            f"ISSUES FOUND:\n{issue_lines}",
            "Fix only what is broken. Keep the skill, the SAT style and exactly one correct answer.",
            JSON_ONLY,
            dedent(
                """
                {
                  "improvements": [
                    {"field": "prompt" | "optionA" | "optionB" | "optionC" | "optionD" | "correctAnswer",
                     "newValue": "...", "reason": "..."}
                  ],
                  "newCorrectAnswer": "A" | "B" | "C" | "D",
                  "verificationNotes": "..."
                }
                """
            ).strip(),
        ]
    )
    return _messages("You are an expert SAT question editor.", body)


def is_auto_fixable(issue: Dict[str, Any]) -> bool:
    issue_type = str(issue.get("type") or "").lower()
    if not issue_type:
        return False
    return any(
        fixable in issue_type or issue_type in fixable for fixable in AUTO_FIXABLE_ISSUE_TYPES
    )
