"""Transition words and scenario tables for fill-the-blank transition questions."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from .sampling import sample_from

TRANSITIONS_BY_TYPE: Dict[str, List[str]] = {
    "addition": ["Additionally,", "Furthermore,", "Moreover,", "In addition,", "Also,", "Likewise,"],
    "contrast": [
        "However,",
        "Nevertheless,",
        "Nonetheless,",
        "Conversely,",
        "On the other hand,",
        "In contrast,",
        "Yet",
        "Still,",
    ],
    "cause_effect": [
        "Therefore,",
        "Consequently,",
        "Thus,",
        "As a result,",
        "Accordingly,",
        "Hence,",
        "For this reason,",
    ],
    "example": ["For example,", "For instance,", "Specifically,", "To illustrate,", "In particular,"],
    "clarification": ["In other words,", "That is,", "Namely,", "To clarify,", "More precisely,"],
    "temporal": [
        "Meanwhile,",
        "Subsequently,",
        "Previously,",
        "Afterward,",
        "Eventually,",
        "Initially,",
        "Ultimately,",
    ],
    "emphasis": ["Indeed,", "In fact,", "Notably,", "Particularly,", "Especially,"],
    "concession": ["Admittedly,", "Granted,", "To be sure,", "Certainly,"],
    "comparison": ["Similarly,", "Likewise,", "In the same way,", "Equally,"],
    "conclusion": ["In conclusion,", "Ultimately,", "Finally,", "In summary,"],
}
RELATIONSHIP_TYPES = tuple(TRANSITIONS_BY_TYPE)

CONTEXT_SCENARIOS: Dict[str, dict] = {
    "addition": {
        "description": "Adding related information to support the same point",
        "before": "The study showed that regular exercise improves cardiovascular health.",
        "after": "it found that physical activity enhances mental well-being.",
    },
    "contrast": {
        "description": "Presenting opposing or different information",
        "before": "Many scientists supported the new theory.",
        "after": "some researchers remained skeptical of its implications.",
    },
    "cause_effect": {
        "description": "Showing a result or consequence of prior information",
        "before": "The drought lasted for three consecutive years.",
        "after": "crop yields declined by nearly 40 percent.",
    },
    "example": {
        "description": "Providing a specific instance of a general statement",
        "before": "The museum features artifacts from various ancient civilizations.",
        "after": "visitors can see pottery from Mesopotamia and sculptures from Greece.",
    },
    "clarification": {
        "description": "Restating or explaining in different terms",
        "before": "Photosynthesis converts light energy into chemical energy.",
        "after": "plants use sunlight to produce glucose.",
    },
    "temporal": {
        "description": "Indicating time sequence or simultaneous events",
        "before": "The team analyzed the initial data from the experiment.",
        "after": "they began preparing for the second phase of research.",
    },
    "emphasis": {
        "description": "Stressing or highlighting important information",
        "before": "The discovery had significant implications for climate science.",
        "after": "it challenged several long-held assumptions about ocean currents.",
    },
    "concession": {
        "description": "Acknowledging a counterpoint before making a contrasting point",
        "before": "The new policy has some drawbacks.",
        "after": "its benefits outweigh the costs.",
    },
    "comparison": {
        "description": "Showing similarity between two things",
        "before": "Urban areas experienced rapid population growth.",
        "after": "suburban regions saw significant demographic increases.",
    },
    "conclusion": {
        "description": "Summarizing or reaching a final point",
        "before": "The evidence from multiple studies points in the same direction.",
        "after": "the hypothesis appears to be well-supported.",
    },
}

# Relationship types whose transitions make convincing wrong answers.
WRONG_TYPE_MAPPING: Dict[str, tuple[str, str, str]] = {
    "addition": ("contrast", "cause_effect", "clarification"),
    "contrast": ("addition", "comparison", "cause_effect"),
    "cause_effect": ("addition", "contrast", "temporal"),
    "example": ("clarification", "cause_effect", "conclusion"),
    "clarification": ("example", "cause_effect", "emphasis"),
    "temporal": ("cause_effect", "contrast", "addition"),
    "emphasis": ("clarification", "addition", "cause_effect"),
    "concession": ("addition", "cause_effect", "emphasis"),
    "comparison": ("contrast", "addition", "clarification"),
    "conclusion": ("addition", "example", "cause_effect"),
}

TOPIC_CATEGORIES = (
    "scientific_research",
    "historical_events",
    "social_issues",
    "technological_development",
    "environmental_topics",
    "cultural_phenomena",
    "economic_concepts",
    "literary_analysis",
)


@dataclass
class SampledTransitionParams:
    relationship_type: str
    topic_category: str
    correct_transition: str
    distractor_transitions: List[str] = field(default_factory=list)
    sentence_complexity: float = 0.5
    relationship_clarity: float = 0.5
    target_overall_difficulty: float = 0.5

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "SampledTransitionParams":
        return cls(**{key: payload[key] for key in cls.__dataclass_fields__ if key in payload})


def generate_distractor_transitions(
    relationship_type: str, rng: random.Random | None = None
) -> List[str]:
    """One transition from each commonly confused relationship type."""

    if relationship_type not in WRONG_TYPE_MAPPING:
        raise ValueError(f"Unknown relationship type: {relationship_type}")
    return [
        sample_from(TRANSITIONS_BY_TYPE[wrong_type], rng)
        for wrong_type in WRONG_TYPE_MAPPING[relationship_type]
    ]


def sample_transition_params(rng: random.Random | None = None, **overrides) -> SampledTransitionParams:
    relationship_type = overrides.get("relationship_type") or sample_from(RELATIONSHIP_TYPES, rng)
    if relationship_type not in TRANSITIONS_BY_TYPE:
        raise ValueError(f"Unknown relationship type: {relationship_type}")
    return SampledTransitionParams(
        relationship_type=relationship_type,
        topic_category=overrides.get("topic_category") or sample_from(TOPIC_CATEGORIES, rng),
        correct_transition=overrides.get("correct_transition")
        or sample_from(TRANSITIONS_BY_TYPE[relationship_type], rng),
        distractor_transitions=list(
            overrides.get("distractor_transitions")
            or generate_distractor_transitions(relationship_type, rng)
        ),
        sentence_complexity=float(overrides.get("sentence_complexity", 0.5)),
        relationship_clarity=float(overrides.get("relationship_clarity", 0.5)),
        target_overall_difficulty=float(overrides.get("target_overall_difficulty", 0.5)),
    )


def compute_rw_difficulty(params: SampledTransitionParams) -> Dict[str, float]:
    return {
        "passageComplexity": params.sentence_complexity,
        "inferenceDepth": 1 - params.relationship_clarity,
        "vocabularyLevel": params.sentence_complexity,
        "evidenceEvaluation": 0.3,
        "synthesisRequired": 0.5,
    }
