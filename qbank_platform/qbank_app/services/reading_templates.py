"""Sampling tables for passage-based reading & writing questions."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from .sampling import sample_from, sample_gaussian, weighted_choice

QUESTION_TYPE_DISTRIBUTION: Dict[str, float] = {
    # information_and_ideas
    "central_ideas": 0.12,
    "inferences": 0.12,
    "command_of_evidence": 0.12,
    # craft_and_structure
    "vocabulary_in_context": 0.10,
    "text_structure": 0.13,
    "cross_text_connections": 0.05,
    # expression_of_ideas
    "rhetorical_synthesis": 0.13,
    "transitions": 0.07,
    # standard_english_conventions
    "boundaries_between_sentences": 0.06,
    "boundaries_within_sentences": 0.07,
    "subject_verb_agreement": 0.03,
    "pronoun_antecedent_agreement": 0.03,
    "verb_finiteness": 0.02,
    "verb_tense_aspect": 0.03,
    "subject_modifier_placement": 0.01,
    "genitives_plurals": 0.01,
}
READING_QUESTION_TYPES = tuple(QUESTION_TYPE_DISTRIBUTION)

QUESTION_TYPE_DOMAINS: Dict[str, str] = {
    "central_ideas": "information_and_ideas",
    "inferences": "information_and_ideas",
    "command_of_evidence": "information_and_ideas",
    "vocabulary_in_context": "craft_and_structure",
    "text_structure": "craft_and_structure",
    "cross_text_connections": "craft_and_structure",
    "rhetorical_synthesis": "expression_of_ideas",
    "transitions": "expression_of_ideas",
}
# Skill names match the question type except where listed here.
SKILL_OVERRIDES = {"command_of_evidence": "command_of_evidence_textual"}

PASSAGE_TYPE_CHARACTERISTICS: Dict[str, dict] = {
    "literary_narrative": {
        "description": "Fiction excerpt or personal narrative with literary devices",
        "voices": ["first-person reflective", "third-person limited", "third-person omniscient"],
        "topics": [
            "coming-of-age realization",
            "cultural identity exploration",
            "relationship dynamics",
            "confronting adversity",
            "moment of self-discovery",
        ],
        "structure": [
            "sensory details and imagery",
            "internal monologue",
            "dialogue that reveals character",
            "symbolic objects or settings",
        ],
    },
    "social_science": {
        "description": "Academic writing about human behavior, society, or economics",
        "voices": ["academic third-person", "journalistic", "research summary"],
        "topics": [
            "cognitive psychology study",
            "behavioral economics finding",
            "sociological phenomenon",
            "educational research",
            "demographic trend analysis",
        ],
        "structure": [
            "claim followed by evidence",
            "study methodology summary",
            "counterargument acknowledgment",
            "implications for practice",
        ],
    },
    "natural_science": {
        "description": "Scientific research, discovery, or phenomenon explanation",
        "voices": ["research paper summary", "science journalism", "academic explanation"],
        "topics": [
            "biological mechanism",
            "ecological relationship",
            "physics discovery",
            "medical research finding",
            "environmental process",
        ],
        "structure": [
            "hypothesis and evidence",
            "process explanation",
            "cause-effect relationship",
            "scientific method reference",
        ],
    },
    "humanities": {
        "description": "Historical analysis, philosophical argument, or cultural critique",
        "voices": ["historical narrative", "philosophical argument", "cultural analysis"],
        "topics": [
            "historical figure's contribution",
            "philosophical concept",
            "artistic movement",
            "cultural tradition",
            "historical event analysis",
        ],
        "structure": [
            "thesis with supporting evidence",
            "chronological development",
            "compare/contrast elements",
            "significance/implications",
        ],
    },
}
READING_PASSAGE_TYPES = tuple(PASSAGE_TYPE_CHARACTERISTICS)

QUESTION_FOCUS = (
    "author_purpose",
    "evidence_relationship",
    "detail_interpretation",
    "structural_analysis",
    "tone_assessment",
    "comparative_elements",
    "logical_development",
)

READING_FACTOR_PARAMS: Dict[str, tuple[float, float]] = {
    "passageComplexity": (0.5, 0.2),
    "inferenceDepth": (0.5, 0.25),
    "vocabularyLevel": (0.5, 0.2),
    "evidenceEvaluation": (0.5, 0.2),
    "synthesisRequired": (0.4, 0.2),
}
TARGET_DIFFICULTY_PARAMS = (0.5, 0.15)

PASSAGE_LENGTH_WORDS: Dict[str, tuple[int, int]] = {
    "short": (100, 150),
    "medium": (150, 250),
    "long": (250, 350),
}

READING_DISTRACTOR_STRATEGIES: Dict[str, str] = {
    "too_broad": "True but too general; could describe many passages.",
    "too_narrow": "Focuses on a minor detail and misses the main point.",
    "opposite_meaning": "Reverses the author's position or the passage's meaning.",
    "unsupported_inference": "Reasonable-sounding claim the text does not support.",
    "wrong_scope": "Draws on the wrong paragraph or part of the passage.",
    "misread_tone": "Misreads the author's attitude.",
    "partial_answer": "Addresses only part of what the question asks.",
    "plausible_but_wrong": "Reuses passage language but reaches a wrong conclusion.",
    "extreme_position": "Uses absolute language where the passage is nuanced.",
    "temporal_confusion": "Confuses the sequence or timing of events.",
    "wrong_punctuation": "Uses the wrong punctuation mark.",
    "comma_splice": "Joins two independent clauses with only a comma.",
    "wrong_verb_form": "Uses the wrong verb number, tense or form.",
    "wrong_pronoun": "Uses a pronoun that disagrees in number or case.",
    "misplaced_modifier": "Places a modifier so the meaning becomes illogical.",
    "wrong_word_form": "Confuses possessive and plural forms.",
    "unnecessary_punctuation": "Adds punctuation where none is needed.",
    "wrong_transition": "Signals the wrong logical relationship.",
    "wordy_redundant": "Wordier or redundant version of the correct answer.",
}

DISTRACTOR_COMBOS_BY_TYPE: Dict[str, List[List[str]]] = {
    "central_ideas": [
        ["too_broad", "too_narrow", "opposite_meaning"],
        ["partial_answer", "too_narrow", "unsupported_inference"],
        ["extreme_position", "too_broad", "wrong_scope"],
    ],
    "inferences": [
        ["unsupported_inference", "opposite_meaning", "too_narrow"],
        ["plausible_but_wrong", "extreme_position", "wrong_scope"],
        ["unsupported_inference", "partial_answer", "too_broad"],
    ],
    "command_of_evidence": [
        ["wrong_scope", "partial_answer", "opposite_meaning"],
        ["too_narrow", "unsupported_inference", "plausible_but_wrong"],
        ["wrong_scope", "too_broad", "partial_answer"],
    ],
    "vocabulary_in_context": [
        ["plausible_but_wrong", "too_broad", "opposite_meaning"],
        ["wrong_scope", "plausible_but_wrong", "unsupported_inference"],
    ],
    "text_structure": [
        ["wrong_scope", "too_narrow", "opposite_meaning"],
        ["partial_answer", "plausible_but_wrong", "too_broad"],
    ],
    "cross_text_connections": [
        ["opposite_meaning", "partial_answer", "wrong_scope"],
        ["plausible_but_wrong", "unsupported_inference", "too_narrow"],
        ["misread_tone", "extreme_position", "opposite_meaning"],
    ],
    "rhetorical_synthesis": [
        ["partial_answer", "opposite_meaning", "unsupported_inference"],
        ["plausible_but_wrong", "wrong_scope", "too_narrow"],
    ],
    "transitions": [
        ["wrong_transition", "opposite_meaning", "plausible_but_wrong"],
        ["wrong_transition", "partial_answer", "too_narrow"],
    ],
    "boundaries_between_sentences": [
        ["comma_splice", "wrong_punctuation", "unnecessary_punctuation"],
        ["wrong_punctuation", "comma_splice", "wordy_redundant"],
    ],
    "boundaries_within_sentences": [
        ["wrong_punctuation", "unnecessary_punctuation", "comma_splice"],
        ["unnecessary_punctuation", "wrong_punctuation", "wordy_redundant"],
    ],
    "subject_verb_agreement": [
        ["wrong_verb_form", "plausible_but_wrong", "wordy_redundant"],
        ["wrong_verb_form", "wrong_word_form", "plausible_but_wrong"],
    ],
    "pronoun_antecedent_agreement": [
        ["wrong_pronoun", "plausible_but_wrong", "wordy_redundant"],
        ["wrong_pronoun", "wrong_word_form", "plausible_but_wrong"],
    ],
    "verb_finiteness": [
        ["wrong_verb_form", "plausible_but_wrong", "wordy_redundant"],
        ["wrong_verb_form", "wrong_word_form", "unnecessary_punctuation"],
    ],
    "verb_tense_aspect": [
        ["wrong_verb_form", "plausible_but_wrong", "temporal_confusion"],
        ["wrong_verb_form", "temporal_confusion", "wordy_redundant"],
    ],
    "subject_modifier_placement": [
        ["misplaced_modifier", "plausible_but_wrong", "wordy_redundant"],
        ["misplaced_modifier", "wrong_scope", "plausible_but_wrong"],
    ],
    "genitives_plurals": [
        ["wrong_word_form", "plausible_but_wrong", "wordy_redundant"],
        ["wrong_word_form", "wrong_pronoun", "plausible_but_wrong"],
    ],
}
DEFAULT_DISTRACTOR_COMBOS = [
    ["too_broad", "too_narrow", "opposite_meaning"],
    ["unsupported_inference", "partial_answer", "plausible_but_wrong"],
    ["wrong_scope", "misread_tone", "extreme_position"],
    ["too_narrow", "plausible_but_wrong", "unsupported_inference"],
    ["opposite_meaning", "wrong_scope", "too_broad"],
]


@dataclass
class SampledReadingParams:
    question_type: str
    question_focus: str
    passage_type: str
    passage_length: str
    factors: Dict[str, float] = field(default_factory=dict)
    distractor_strategies: List[str] = field(default_factory=list)
    target_overall_difficulty: float = 0.5

    @property
    def domain(self) -> str:
        return domain_skill_for(self.question_type)[0]

    @property
    def skill(self) -> str:
        return domain_skill_for(self.question_type)[1]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "SampledReadingParams":
        return cls(
            question_type=payload["question_type"],
            question_focus=payload.get("question_focus", QUESTION_FOCUS[0]),
            passage_type=payload.get("passage_type", "social_science"),
            passage_length=payload.get("passage_length", "medium"),
            factors=dict(payload.get("factors") or {}),
            distractor_strategies=list(payload.get("distractor_strategies") or []),
            target_overall_difficulty=float(payload.get("target_overall_difficulty", 0.5)),
        )


def domain_skill_for(question_type: str) -> tuple[str, str]:
    domain = QUESTION_TYPE_DOMAINS.get(question_type, "standard_english_conventions")
    return domain, SKILL_OVERRIDES.get(question_type, question_type)


def sample_question_type(rng: random.Random | None = None) -> str:
    return weighted_choice(QUESTION_TYPE_DISTRIBUTION, rng)


def sample_distractor_combo(question_type: str, rng: random.Random | None = None) -> List[str]:
    combos = DISTRACTOR_COMBOS_BY_TYPE.get(question_type) or DEFAULT_DISTRACTOR_COMBOS
    return list(sample_from(combos, rng))


def sample_reading_params(
    question_type: str | None = None,
    passage_type: str | None = None,
    rng: random.Random | None = None,
) -> SampledReadingParams:
    question_type = question_type or sample_question_type(rng)
    if question_type not in QUESTION_TYPE_DISTRIBUTION:
        raise ValueError(f"Unknown reading question type: {question_type}")
    if passage_type and passage_type not in PASSAGE_TYPE_CHARACTERISTICS:
        raise ValueError(f"Unknown passage type: {passage_type}")
    factors = {
        name: sample_gaussian(mean, std_dev, rng)
        for name, (mean, std_dev) in READING_FACTOR_PARAMS.items()
    }
    return SampledReadingParams(
        question_type=question_type,
        question_focus=sample_from(QUESTION_FOCUS, rng),
        passage_type=passage_type or sample_from(READING_PASSAGE_TYPES, rng),
        passage_length=sample_from(tuple(PASSAGE_LENGTH_WORDS), rng),
        factors=factors,
        distractor_strategies=sample_distractor_combo(question_type, rng),
        target_overall_difficulty=sample_gaussian(*TARGET_DIFFICULTY_PARAMS, rng=rng),
    )


def compute_rw_difficulty(params: SampledReadingParams) -> Dict[str, float]:
    return {name: float(params.factors.get(name, 0.5)) for name in READING_FACTOR_PARAMS}


def sampling_distribution() -> list[dict]:
    return [
        {"factor": name, "mean": mean, "stdDev": std_dev}
        for name, (mean, std_dev) in READING_FACTOR_PARAMS.items()
    ]
