"""Passage persistence with content de-duplication."""

from __future__ import annotations

from typing import Optional, Tuple

from flask import abort, current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Passage, PassageFigure
from ..models.question import FIGURE_PLACEMENTS, GENERATION_TYPES, PASSAGE_TYPES


def find_by_content(content: str) -> Optional[Passage]:
    return Passage.query.filter(Passage.content == content).first()


def create_passage(
    content: str,
    *,
    title: str | None = None,
    author: str | None = None,
    source: str | None = None,
    passage_type: str | None = None,
    complexity: float | None = None,
    analyzed_features: dict | None = None,
    generation_type: str = "agent_generated",
    commit: bool = True,
) -> Tuple[Passage, bool]:
    """Return ``(passage, created)``; identical content reuses the stored row."""

    if not content or not content.strip():
        raise ValueError("Passage content is required")
    existing = find_by_content(content)
    if existing is not None:
        return existing, False
    if passage_type and passage_type not in PASSAGE_TYPES:
        raise ValueError(f"Invalid passage type: {passage_type}")
    if generation_type not in GENERATION_TYPES:
        raise ValueError(f"Invalid generation type: {generation_type}")
    passage = Passage(
        content=content,
        title=title,
        author=author,
        source=source,
        passage_type=passage_type,
        complexity=complexity,
        analyzed_features=analyzed_features,
        generation_type=generation_type,
        used_in_question_count=0,
    )
    db.session.add(passage)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    current_app.logger.info(
        "Created passage",
        extra={"event": "passage.created", "passage_id": passage.id, "passage_type": passage_type},
    )
    return passage, True


def get_passage_with_figures(passage_id: int) -> Passage:
    passage = (
        Passage.query.options(selectinload(Passage.figures).joinedload(PassageFigure.image))
        .filter(Passage.id == passage_id)
        .first()
    )
    if passage is None:
        abort(404)
    return passage


def add_passage_figure(
    passage: Passage,
    image_id: int,
    *,
    figure_number: int | None = None,
    caption: str | None = None,
    placement: str = "below-passage",
    insert_after_paragraph: int | None = None,
    commit: bool = True,
) -> PassageFigure:
    if placement not in FIGURE_PLACEMENTS:
        raise ValueError(f"Invalid figure placement: {placement}")
    if figure_number is None:
        figure_number = len(passage.figures) + 1
    figure = PassageFigure(
        passage=passage,
        image_id=image_id,
        figure_number=figure_number,
        caption=caption,
        placement=placement,
        insert_after_paragraph=insert_after_paragraph,
    )
    db.session.add(figure)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return figure


def increment_usage(passage: Passage) -> None:
    passage.used_in_question_count = (passage.used_in_question_count or 0) + 1
    db.session.add(passage)


def serialize_passage(passage: Passage | None, *, include_figures: bool = False, image_url=None) -> Optional[dict]:
    if passage is None:
        return None
    payload = {
        "id": passage.id,
        "title": passage.title,
        "author": passage.author,
        "source": passage.source,
        "content": passage.content,
        "passage_type": passage.passage_type,
        "complexity": passage.complexity,
        "generation_type": passage.generation_type,
        "used_in_question_count": passage.used_in_question_count,
    }
    if include_figures:
        payload["figures"] = [
            {
                "id": figure.id,
                "figure_number": figure.figure_number,
                "caption": figure.caption,
                "placement": figure.placement,
                "insert_after_paragraph": figure.insert_after_paragraph,
                "image_id": figure.image_id,
                "image_url": image_url(figure.image_id) if image_url else None,
            }
            for figure in passage.figures
        ]
    return payload
