"""Difficulty scale conversions and difficulty-aware question queries."""

from __future__ import annotations

import random
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload

from ..models import Question, SkillMastery

EASY_CEILING = 0.33
MEDIUM_CEILING = 0.67


def difficulty_to_legacy(overall: float) -> int:
    if overall < EASY_CEILING:
        return 1
    if overall < MEDIUM_CEILING:
        return 2
    return 3


def legacy_to_difficulty(legacy: int) -> float:
    return (legacy - 1) / 2


def get_difficulty_level(overall: float) -> str:
    if overall < EASY_CEILING:
        return "easy"
    if overall < MEDIUM_CEILING:
        return "medium"
    return "hard"


def compute_overall_difficulty(category: str | None, factors: Optional[Mapping[str, float]]) -> float:
    """Equal-weight mean of the category's difficulty factors (0.5 when unknown)."""

    if not factors:
        return 0.5
    values = [float(value) for value in factors.values() if value is not None]
    if not values:
        return 0.5
    return sum(values) / len(values)


def effective_difficulty(question: Question) -> float:
    if question.overall_difficulty is not None:
        return float(question.overall_difficulty)
    return legacy_to_difficulty(question.difficulty or 2)


def _effective_difficulty_column():
    """SQL counterpart of `effective_difficulty` for filtering and ordering."""

    return func.coalesce(Question.overall_difficulty, (func.coalesce(Question.difficulty, 2) - 1) / 2.0)


def _base_query(category: str | None, domain: str | None = None, exclude_ids: Iterable[int] | None = None):
    query = Question.query.options(selectinload(Question.options))
    if category:
        query = query.filter(Question.category == category)
    if domain:
        query = query.filter(Question.domain == domain)
    exclude = [int(qid) for qid in (exclude_ids or [])]
    if exclude:
        query = query.filter(Question.id.notin_(exclude))
    return query


def questions_by_difficulty_range(
    category: str | None,
    min_difficulty: float = 0.0,
    max_difficulty: float = 1.0,
    *,
    domain: str | None = None,
    exclude_ids: Iterable[int] | None = None,
    limit: int = 20,
) -> Dict[str, Any]:
    difficulty = _effective_difficulty_column()
    query = _base_query(category, domain, exclude_ids).filter(
        or_(Question.review_status == "verified", Question.review_status.is_(None)),
        difficulty >= min_difficulty,
        difficulty <= max_difficulty,
    )
    rows = query.order_by(difficulty.asc(), Question.id.asc()).limit(limit + 1).all()
    return {"items": rows[:limit], "has_more": len(rows) > limit}


def select_adaptive_question(
    user_id: int,
    category: str | None = None,
    target_difficulty: float = 0.5,
    tolerance: float | None = None,
    exclude_ids: Iterable[int] | None = None,
    rng: random.Random | None = None,
) -> Optional[Question]:
    """Pick a question near the target difficulty, preferring the user's weak skills."""

    cfg = current_app.config
    tolerance = tolerance if tolerance is not None else float(cfg.get("ADAPTIVE_DIFFICULTY_TOLERANCE", 0.2))
    weak_threshold = int(cfg.get("ADAPTIVE_WEAK_SKILL_POINTS", 500))
    gen = rng or random

    mastery_query = SkillMastery.query.filter(SkillMastery.user_id == user_id)
    if category:
        mastery_query = mastery_query.filter(SkillMastery.category == category)
    weak_skills = {row.skill for row in mastery_query if row.mastery_points < weak_threshold}

    best: Optional[Question] = None
    best_score = -1.0
    for question in _base_query(category, exclude_ids=exclude_ids):
        delta = abs(effective_difficulty(question) - target_difficulty)
        if delta > tolerance:
            continue
        score = 30.0 if question.skill in weak_skills else 0.0
        score += (1 - delta / tolerance) * 20 if tolerance else 20
        score += gen.random() * 10
        if score > best_score:
            best, best_score = question, score
    return best


def _empty_bucket() -> Dict[str, int]:
    return {"easy": 0, "medium": 0, "hard": 0}


def difficulty_distribution(category: str, domain: str | None = None) -> Dict[str, Any]:
    overall = _empty_bucket()
    by_domain: Dict[str, Dict[str, int]] = defaultdict(_empty_bucket)
    by_skill: Dict[str, Dict[str, int]] = defaultdict(_empty_bucket)
    total = 0
    query = Question.query.filter(Question.category == category)
    if domain:
        query = query.filter(Question.domain == domain)
    for question in query:
        bucket = get_difficulty_level(effective_difficulty(question))
        overall[bucket] += 1
        by_domain[question.domain][bucket] += 1
        by_skill[question.skill][bucket] += 1
        total += 1
    return {
        "total": total,
        "overall": overall,
        "by_domain": dict(by_domain),
        "by_skill": dict(by_skill),
    }


def questions_by_factors(
    category: str,
    factor_filters: List[Mapping[str, Any]],
    *,
    exclude_ids: Iterable[int] | None = None,
    limit: int = 20,
) -> Dict[str, Any]:
    """Filter on individual difficulty factors, e.g. high reasoning with low computation."""

    matching: List[Question] = []
    for question in _base_query(category, exclude_ids=exclude_ids).order_by(Question.id.asc()):
        factors = question.math_difficulty if category == "math" else question.rw_difficulty
        if not factors:
            continue
        ok = True
        for rule in factor_filters:
            value = factors.get(rule["factor"])
            if value is None or value < float(rule.get("min", 0.0)) or value > float(rule.get("max", 1.0)):
                ok = False
                break
        if ok:
            matching.append(question)
    return {
        "items": matching[:limit],
        "has_more": len(matching) > limit,
        "total_matching": len(matching),
    }
