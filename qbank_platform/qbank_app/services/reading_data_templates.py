"""Sampling tables for chart/graph/table data-interpretation questions."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from .sampling import sample_from, sample_gaussian

CLAIM_TYPES = ("causal", "correlational", "comparative", "trend-based")
CLAIM_STRENGTH_PARAMS = (0.6, 0.2)

CLAIM_TYPE_DESCRIPTIONS: Dict[str, str] = {
    "causal": "The passage suggests X causes or leads to Y.",
    "correlational": "The passage notes X is associated with Y without implying causation.",
    "comparative": "The passage compares two or more groups or categories.",
    "trend-based": "The passage describes change over time.",
}

TARGET_DATA_POINTS = (
    "max_value",
    "min_value",
    "trend_direction",
    "category_comparison",
    "specific_value",
    "percentage_change",
)

QUESTION_POSITIONS = ("support_claim", "weaken_claim", "complete_statement")

DATA_DOMAINS = ("science", "economics", "social_science", "health", "environment")

DATA_TYPES = ("bar_chart", "line_graph", "data_table")

DATA_DISTRACTOR_STRATEGIES: Dict[str, str] = {
    "misread_value": "Uses a value from an adjacent category, period or row.",
    "wrong_comparison": "Uses correct values but reverses which one is larger.",
    "opposite_trend": "Matches the magnitude but flips the direction of change.",
    "percentage_confusion": "Confuses absolute numbers with percentages.",
    "irrelevant_data": "Cites accurate data from the wrong year, category or series.",
    "axis_misread": "Confuses which axis represents what.",
    "extrapolation_error": "Extends a trend beyond the data shown.",
    "aggregation_error": "Confuses individual values with totals or averages.",
}

DATA_DISTRACTOR_COMBOS: List[List[str]] = [
    ["misread_value", "wrong_comparison", "opposite_trend"],
    ["percentage_confusion", "irrelevant_data", "misread_value"],
    ["axis_misread", "wrong_comparison", "extrapolation_error"],
    ["aggregation_error", "misread_value", "opposite_trend"],
    ["irrelevant_data", "percentage_confusion", "wrong_comparison"],
    ["extrapolation_error", "misread_value", "aggregation_error"],
]

CHART_IMAGE_WIDTH = 1600
CHART_IMAGE_HEIGHT = 1200


@dataclass
class SampledDataParams:
    claim_type: str
    claim_strength: float
    target_data_point: str
    question_position: str
    domain: str
    data_type: str = "bar_chart"
    distractor_strategies: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "SampledDataParams":
        return cls(**{key: payload[key] for key in cls.__dataclass_fields__ if key in payload})


def sample_data_question_params(
    data_type: str | None = None,
    domain: str | None = None,
    rng: random.Random | None = None,
) -> SampledDataParams:
    if data_type and data_type not in DATA_TYPES:
        raise ValueError(f"Unknown data type: {data_type}")
    return SampledDataParams(
        claim_type=sample_from(CLAIM_TYPES, rng),
        claim_strength=sample_gaussian(*CLAIM_STRENGTH_PARAMS, rng=rng),
        target_data_point=sample_from(TARGET_DATA_POINTS, rng),
        question_position=sample_from(QUESTION_POSITIONS, rng),
        domain=domain or sample_from(DATA_DOMAINS, rng),
        data_type=data_type or sample_from(DATA_TYPES, rng),
        distractor_strategies=list(sample_from(DATA_DISTRACTOR_COMBOS, rng)),
    )


def compute_rw_difficulty(params: SampledDataParams) -> Dict[str, float]:
    return {
        "passageComplexity": 0.4,
        "inferenceDepth": params.claim_strength * 0.8,
        "vocabularyLevel": 0.5,
        "evidenceEvaluation": 0.7,
        "synthesisRequired": 0.8 if params.question_position == "weaken_claim" else 0.6,
    }


def figure_type_for(data_type: str) -> str:
    return "table" if data_type == "data_table" else "data_display"
