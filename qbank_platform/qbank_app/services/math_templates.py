"""Sampling tables and parameter draws for generated SAT math questions."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from .sampling import sample_from, sample_gaussian, weighted_choice

DOMAIN_DISTRIBUTION: Dict[str, float] = {
    "algebra": 0.35,
    "advanced_math": 0.35,
    "problem_solving": 0.15,
    "geometry_trig": 0.15,
}
MATH_DOMAINS = tuple(DOMAIN_DISTRIBUTION)

MATH_SKILLS: Dict[str, tuple[str, ...]] = {
    "algebra": (
        "linear_equations",
        "linear_inequalities",
        "systems_of_equations",
        "linear_functions",
        "absolute_value",
    ),
    "advanced_math": (
        "quadratic_equations",
        "polynomial_operations",
        "exponential_functions",
        "radical_equations",
        "rational_expressions",
    ),
    "problem_solving": (
        "ratios_proportions",
        "percentages",
        "statistics_measures",
        "probability",
        "unit_conversion",
    ),
    "geometry_trig": (
        "triangle_properties",
        "circle_properties",
        "coordinate_geometry",
        "trigonometric_ratios",
        "area_volume",
    ),
}
ALL_MATH_SKILLS = tuple(skill for skills in MATH_SKILLS.values() for skill in skills)

# none | graph | geometric | optional (coin flip)
FIGURE_REQUIREMENTS: Dict[str, str] = {
    "linear_equations": "none",
    "linear_inequalities": "none",
    "systems_of_equations": "optional",
    "linear_functions": "graph",
    "absolute_value": "optional",
    "quadratic_equations": "optional",
    "polynomial_operations": "none",
    "exponential_functions": "graph",
    "radical_equations": "none",
    "rational_expressions": "none",
    "ratios_proportions": "none",
    "percentages": "none",
    "statistics_measures": "optional",
    "probability": "none",
    "unit_conversion": "none",
    "triangle_properties": "geometric",
    "circle_properties": "geometric",
    "coordinate_geometry": "graph",
    "trigonometric_ratios": "geometric",
    "area_volume": "geometric",
}

CONTEXT_BY_DOMAIN: Dict[str, tuple[str, ...]] = {
    "algebra": ("pure_math", "real_world", "scientific"),
    "advanced_math": ("pure_math", "real_world"),
    "problem_solving": ("real_world", "scientific"),
    "geometry_trig": ("pure_math", "real_world", "scientific"),
}

MATH_FACTOR_PARAMS: Dict[str, tuple[float, float]] = {
    "reasoningSteps": (0.5, 0.2),
    "algebraicComplexity": (0.5, 0.25),
    "conceptualDepth": (0.5, 0.2),
    "computationLoad": (0.4, 0.2),
    "multiStepRequired": (0.5, 0.25),
    "wordProblemComplexity": (0.4, 0.2),
}
TARGET_DIFFICULTY_PARAMS = (0.5, 0.15)
MATH_DIFFICULTY_FACTORS = (
    "reasoningSteps",
    "algebraicComplexity",
    "conceptualDepth",
    "computationLoad",
    "multiStepRequired",
)

MATH_DISTRACTOR_STRATEGIES: Dict[str, str] = {
    "sign_error": "Result of a sign error (+/- confusion), often with negatives or subtraction.",
    "calculation_slip": "Off by a factor or a simple arithmetic error.",
    "partial_solution": "Stopped too early, found only one root, or skipped the final step.",
    "wrong_formula": "Used a related but incorrect formula (area vs perimeter, etc).",
    "misread_problem": "Answered what was not asked, e.g. found x instead of y.",
    "order_of_operations": "Evaluated operations in the wrong order.",
    "setup_error": "Translated the word problem into the wrong equation.",
    "unit_confusion": "Mixed up or forgot to convert units.",
    "off_by_one": "Counting error at a boundary, sequence or count.",
    "distribution_error": "Did not distribute across every term.",
}

DISTRACTOR_COMBOS_BY_DOMAIN: Dict[str, List[List[str]]] = {
    "algebra": [
        ["sign_error", "calculation_slip", "setup_error"],
        ["partial_solution", "distribution_error", "misread_problem"],
        ["order_of_operations", "sign_error", "wrong_formula"],
    ],
    "advanced_math": [
        ["partial_solution", "sign_error", "calculation_slip"],
        ["wrong_formula", "order_of_operations", "distribution_error"],
        ["setup_error", "partial_solution", "misread_problem"],
    ],
    "problem_solving": [
        ["setup_error", "unit_confusion", "calculation_slip"],
        ["misread_problem", "off_by_one", "partial_solution"],
        ["wrong_formula", "calculation_slip", "setup_error"],
    ],
    "geometry_trig": [
        ["wrong_formula", "calculation_slip", "unit_confusion"],
        ["setup_error", "misread_problem", "partial_solution"],
        ["sign_error", "wrong_formula", "off_by_one"],
    ],
}
DEFAULT_DISTRACTOR_COMBOS = [
    ["sign_error", "calculation_slip", "partial_solution"],
    ["wrong_formula", "setup_error", "misread_problem"],
    ["order_of_operations", "distribution_error", "unit_confusion"],
]

_GEOMETRIC_HINTS = ("geometry", "triangle", "circle", "trig")


@dataclass
class SampledMathParams:
    domain: str
    skill: str
    context_type: str
    figure_type: str  # coordinate_graph | geometric_diagram | none
    factors: Dict[str, float] = field(default_factory=dict)
    distractor_strategies: List[str] = field(default_factory=list)
    target_overall_difficulty: float = 0.5

    @property
    def needs_figure(self) -> bool:
        return self.figure_type != "none"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "SampledMathParams":
        return cls(
            domain=payload["domain"],
            skill=payload["skill"],
            context_type=payload.get("context_type", "pure_math"),
            figure_type=payload.get("figure_type", "none"),
            factors=dict(payload.get("factors") or {}),
            distractor_strategies=list(payload.get("distractor_strategies") or []),
            target_overall_difficulty=float(payload.get("target_overall_difficulty", 0.5)),
        )


def domain_for_skill(skill: str) -> str:
    for domain, skills in MATH_SKILLS.items():
        if skill in skills:
            return domain
    return "algebra"


def figure_type_for_skill(skill: str, rng: random.Random | None = None) -> str:
    requirement = FIGURE_REQUIREMENTS.get(skill, "none")
    if requirement == "graph":
        return "coordinate_graph"
    if requirement == "geometric":
        return "geometric_diagram"
    if requirement == "optional":
        if (rng or random).random() < 0.5:
            return "none"
        if any(hint in skill for hint in _GEOMETRIC_HINTS):
            return "geometric_diagram"
        return "coordinate_graph"
    return "none"


def sample_distractor_combo(domain: str, rng: random.Random | None = None) -> List[str]:
    combos = DISTRACTOR_COMBOS_BY_DOMAIN.get(domain) or DEFAULT_DISTRACTOR_COMBOS
    return list(sample_from(combos, rng))


def sample_math_params(
    domain: str | None = None,
    skill: str | None = None,
    figure_type: str | None = None,
    rng: random.Random | None = None,
) -> SampledMathParams:
    if skill and not domain:
        domain = domain_for_skill(skill)
    domain = domain or weighted_choice(DOMAIN_DISTRIBUTION, rng)
    if domain not in MATH_SKILLS:
        raise ValueError(f"Unknown math domain: {domain}")
    skill = skill or sample_from(MATH_SKILLS[domain], rng)
    factors = {
        name: sample_gaussian(mean, std_dev, rng)
        for name, (mean, std_dev) in MATH_FACTOR_PARAMS.items()
    }
    return SampledMathParams(
        domain=domain,
        skill=skill,
        context_type=sample_from(CONTEXT_BY_DOMAIN[domain], rng),
        figure_type=figure_type or figure_type_for_skill(skill, rng),
        factors=factors,
        distractor_strategies=sample_distractor_combo(domain, rng),
        target_overall_difficulty=sample_gaussian(*TARGET_DIFFICULTY_PARAMS, rng=rng),
    )


def compute_math_difficulty(params: SampledMathParams) -> Dict[str, float]:
    return {name: float(params.factors.get(name, 0.5)) for name in MATH_DIFFICULTY_FACTORS}


def reasoning_step_count(normalized: float) -> int:
    return round(1 + normalized * 4)


def question_figure_type(figure_type: str) -> str | None:
    """Map the sampler's figure kind onto the stored question figure type."""

    if figure_type == "coordinate_graph":
        return "graph"
    if figure_type == "geometric_diagram":
        return "geometric"
    return None


def sampling_distribution() -> list[dict]:
    return [
        {"factor": name, "mean": mean, "stdDev": std_dev}
        for name, (mean, std_dev) in MATH_FACTOR_PARAMS.items()
    ]
