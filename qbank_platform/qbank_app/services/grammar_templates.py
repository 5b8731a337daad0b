"""Standard English Conventions tables: grammar skills, error patterns and topics."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Tuple

from .reading_templates import DISTRACTOR_COMBOS_BY_TYPE
from .sampling import sample_from, sample_gaussian

DOMAIN = "standard_english_conventions"

# Each skill lists the error patterns a question can be built around.
GRAMMAR_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "boundaries_between_sentences": ("comma_splice", "run_on_sentence", "correct_period", "correct_semicolon"),
    "boundaries_within_sentences": ("series_commas", "appositive", "parenthetical", "introductory_phrase"),
    "subject_verb_agreement": (
        "prepositional_phrase_distractor",
        "inverted_sentence",
        "compound_subject",
        "indefinite_pronoun",
    ),
    "pronoun_antecedent_agreement": ("singular_they", "company_organization", "ambiguous_reference"),
    "verb_finiteness": ("gerund_vs_finite", "infinitive_vs_finite", "participle_modifier"),
    "verb_tense_aspect": ("past_vs_present", "perfect_aspect", "consistent_tense", "future_perfect"),
    "subject_modifier_placement": ("dangling_modifier", "misplaced_modifier", "squinting_modifier"),
    "genitives_plurals": ("its_vs_its", "their_there_theyre", "whose_vs_whos", "plural_vs_possessive"),
}
GRAMMAR_QUESTION_TYPES = tuple(GRAMMAR_PATTERNS)

GRAMMAR_TYPE_DESCRIPTIONS: Dict[str, str] = {
    "boundaries_between_sentences": "Punctuating the boundary between two independent clauses "
    "(periods, semicolons, comma splices, run-ons).",
    "boundaries_within_sentences": "Commas and other marks inside a sentence: series, appositives, "
    "parenthetical and introductory elements, and places where no punctuation belongs.",
    "subject_verb_agreement": "Matching a verb to its subject when phrases, inversion or compound "
    "subjects hide the subject's number.",
    "pronoun_antecedent_agreement": "Choosing a pronoun that agrees with and clearly refers to its antecedent.",
    "verb_finiteness": "Choosing a finite verb rather than a gerund, participle or infinitive "
    "where the sentence needs a main verb.",
    "verb_tense_aspect": "Keeping tense and aspect consistent with the timeline the text establishes.",
    "subject_modifier_placement": "Placing the noun a modifying phrase describes directly after the phrase.",
    "genitives_plurals": "Possessive versus plural forms and the its/it's, their/there/they're family.",
}

PATTERN_EXAMPLES: Dict[str, str] = {
    "prepositional_phrase_distractor": "The collection of rare books [is/are] valuable.",
    "inverted_sentence": "Among the findings [was/were] a surprising pattern.",
    "compound_subject": "The hypothesis and its implications [has/have] been widely discussed.",
    "indefinite_pronoun": "Each of the experiments [was/were] conducted carefully.",
    "company_organization": "The company announced [its/their] quarterly results.",
    "gerund_vs_finite": "The data [suggesting/suggests] a clear trend.",
    "perfect_aspect": "By the time the team arrived, the data [had been/was] analyzed.",
    "dangling_modifier": "Running quickly, the finish line came into view.",
    "its_vs_its": "The theory has [its/it's] limitations.",
}

TOPIC_CATEGORIES = (
    "scientific_research",
    "historical_events",
    "social_studies",
    "environmental_issues",
    "technological_development",
    "cultural_topics",
    "economic_concepts",
    "literary_subjects",
)

TOPIC_GUIDANCE: Dict[str, str] = {
    "scientific_research": "a specific discovery, experiment or researcher, with the lab or journal named",
    "historical_events": "a specific event, figure or period with dates and places",
    "social_studies": "a sociological or anthropological study of a named community",
    "environmental_issues": "a named location, species or conservation initiative",
    "technological_development": "a named invention, engineer or company",
    "cultural_topics": "a specific tradition, ritual or cultural figure",
    "economic_concepts": "a named economist, market or policy event",
    "literary_subjects": "a specific author, work or literary movement",
}

GRAMMAR_FACTOR_PARAMS: Dict[str, Tuple[float, float]] = {
    "sentence_complexity": (0.5, 0.2),
    "grammar_subtlety": (0.5, 0.2),
    "context_clarity": (0.5, 0.2),
    "vocabulary_level": (0.5, 0.2),
}
TARGET_DIFFICULTY_PARAMS = (0.5, 0.15)


@dataclass
class SampledGrammarParams:
    question_type: str
    pattern_type: str
    topic_category: str
    sentence_complexity: float = 0.5
    grammar_subtlety: float = 0.5
    context_clarity: float = 0.5
    vocabulary_level: float = 0.5
    distractor_strategies: List[str] = field(default_factory=list)
    target_overall_difficulty: float = 0.5

    @property
    def skill(self) -> str:
        return self.question_type

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "SampledGrammarParams":
        return cls(**{key: payload[key] for key in cls.__dataclass_fields__ if key in payload})


def sample_grammar_params(
    question_type: str | None = None, rng: random.Random | None = None, **overrides
) -> SampledGrammarParams:
    question_type = question_type or sample_from(GRAMMAR_QUESTION_TYPES, rng)
    if question_type not in GRAMMAR_PATTERNS:
        raise ValueError(f"Unknown grammar question type: {question_type}")
    pattern_type = overrides.get("pattern_type") or sample_from(GRAMMAR_PATTERNS[question_type], rng)
    if pattern_type not in GRAMMAR_PATTERNS[question_type]:
        raise ValueError(f"Pattern {pattern_type} does not belong to {question_type}")
    topic_category = overrides.get("topic_category") or sample_from(TOPIC_CATEGORIES, rng)
    if topic_category not in TOPIC_CATEGORIES:
        raise ValueError(f"Unknown topic category: {topic_category}")
    factors = {
        name: float(overrides[name]) if overrides.get(name) is not None else sample_gaussian(mean, std, rng)
        for name, (mean, std) in GRAMMAR_FACTOR_PARAMS.items()
    }
    return SampledGrammarParams(
        question_type=question_type,
        pattern_type=pattern_type,
        topic_category=topic_category,
        distractor_strategies=list(sample_from(DISTRACTOR_COMBOS_BY_TYPE[question_type], rng)),
        target_overall_difficulty=sample_gaussian(*TARGET_DIFFICULTY_PARAMS, rng=rng),
        **factors,
    )


def compute_rw_difficulty(params: SampledGrammarParams) -> Dict[str, float]:
    # Single-sentence items: nothing to synthesize across texts.
    return {
        "passageComplexity": params.sentence_complexity,
        "inferenceDepth": params.grammar_subtlety,
        "vocabularyLevel": params.vocabulary_level,
        "evidenceEvaluation": 1 - params.context_clarity,
        "synthesisRequired": 0.0,
    }


def sampling_distribution() -> list[dict]:
    return [
        {"factor": name, "mean": mean, "stdDev": std}
        for name, (mean, std) in GRAMMAR_FACTOR_PARAMS.items()
    ]
