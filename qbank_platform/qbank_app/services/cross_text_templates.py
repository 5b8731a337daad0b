"""Sampling tables for paired-passage (Text 1 / Text 2) questions."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Tuple

from .reading_templates import READING_PASSAGE_TYPES
from .sampling import sample_from, sample_gaussian

DOMAIN = "craft_and_structure"
SKILL = "cross_text_connections"

RELATIONSHIP_DESCRIPTIONS: Dict[str, str] = {
    "supports_extends": "Text 2 provides additional evidence or support for the claim made in Text 1",
    "contradicts_challenges": "Text 2 disagrees with, qualifies, or challenges the position in Text 1",
    "provides_example": "Text 2 offers a specific instance of the general point in Text 1",
    "explains_mechanism": "Text 2 explains how or why the phenomenon described in Text 1 happens",
    "compares_contrasts": "Both texts address the same topic but emphasize different aspects",
    "cause_effect": "One text describes a cause or action, the other the resulting effect",
    "problem_solution": "One text identifies a problem, the other proposes or describes a solution",
    "general_specific": "One text presents a broad principle, the other a specific application",
}
RELATIONSHIP_TYPES = tuple(RELATIONSHIP_DESCRIPTIONS)

TOPIC_CATEGORIES = (
    "scientific_research",
    "historical_perspectives",
    "artistic_movements",
    "environmental_issues",
    "technological_impact",
    "social_phenomena",
    "educational_methods",
    "economic_concepts",
    "psychological_research",
    "literary_analysis",
)

CROSS_TEXT_FACTOR_PARAMS: Dict[str, Tuple[float, float]] = {
    "text1_complexity": (0.5, 0.2),
    "text2_complexity": (0.5, 0.2),
    "relationship_subtlety": (0.5, 0.25),
    "vocabulary_level": (0.5, 0.2),
    "argument_complexity": (0.5, 0.2),
}
TARGET_DIFFICULTY_PARAMS = (0.5, 0.15)

CROSS_TEXT_DISTRACTOR_STRATEGIES: Dict[str, str] = {
    "reverses_relationship": "States the opposite relationship (says 'supports' when Text 2 challenges).",
    "confuses_which_text": "Attributes a position from one text to the other.",
    "too_extreme": "Overstates the relationship with absolute language ('completely refutes').",
    "superficial_similarity": "Notes a surface similarity and misses the deeper relationship.",
    "partial_truth": "Gets one aspect right but misses the main connection.",
    "wrong_scope": "Focuses on a minor detail instead of the main relationship.",
    "misread_tone": "Misreads the attitude of one or both authors.",
    "plausible_but_wrong": "Sounds reasonable but does not describe this relationship.",
}

CROSS_TEXT_DISTRACTOR_COMBOS: List[List[str]] = [
    ["reverses_relationship", "confuses_which_text", "partial_truth"],
    ["too_extreme", "superficial_similarity", "plausible_but_wrong"],
    ["confuses_which_text", "wrong_scope", "plausible_but_wrong"],
    ["reverses_relationship", "partial_truth", "wrong_scope"],
    ["misread_tone", "too_extreme", "plausible_but_wrong"],
]


@dataclass
class SampledCrossTextParams:
    relationship_type: str
    topic_category: str
    passage_type_1: str
    passage_type_2: str
    text1_complexity: float = 0.5
    text2_complexity: float = 0.5
    relationship_subtlety: float = 0.5
    vocabulary_level: float = 0.5
    argument_complexity: float = 0.5
    distractor_strategies: List[str] = field(default_factory=list)
    target_overall_difficulty: float = 0.5

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "SampledCrossTextParams":
        return cls(**{key: payload[key] for key in cls.__dataclass_fields__ if key in payload})


def _choice(value: str | None, options, label: str, rng: random.Random | None) -> str:
    if value is None:
        return sample_from(options, rng)
    if value not in options:
        raise ValueError(f"Unknown {label}: {value}")
    return value


def sample_cross_text_params(rng: random.Random | None = None, **overrides) -> SampledCrossTextParams:
    factors = {
        name: float(overrides[name]) if overrides.get(name) is not None else sample_gaussian(mean, std, rng)
        for name, (mean, std) in CROSS_TEXT_FACTOR_PARAMS.items()
    }
    return SampledCrossTextParams(
        relationship_type=_choice(overrides.get("relationship_type"), RELATIONSHIP_TYPES, "relationship type", rng),
        topic_category=_choice(overrides.get("topic_category"), TOPIC_CATEGORIES, "topic category", rng),
        passage_type_1=_choice(overrides.get("passage_type_1"), READING_PASSAGE_TYPES, "passage type", rng),
        passage_type_2=_choice(overrides.get("passage_type_2"), READING_PASSAGE_TYPES, "passage type", rng),
        distractor_strategies=list(sample_from(CROSS_TEXT_DISTRACTOR_COMBOS, rng)),
        target_overall_difficulty=sample_gaussian(*TARGET_DIFFICULTY_PARAMS, rng=rng),
        **factors,
    )


def compute_rw_difficulty(params: SampledCrossTextParams) -> Dict[str, float]:
    return {
        "passageComplexity": (params.text1_complexity + params.text2_complexity) / 2,
        "inferenceDepth": params.relationship_subtlety,
        "vocabularyLevel": params.vocabulary_level,
        "evidenceEvaluation": params.argument_complexity,
        "synthesisRequired": params.relationship_subtlety,
    }


def sampling_distribution() -> list[dict]:
    return [
        {"factor": name, "mean": mean, "stdDev": std}
        for name, (mean, std) in CROSS_TEXT_FACTOR_PARAMS.items()
    ]
