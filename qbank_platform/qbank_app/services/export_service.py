"""Export of verified questions in the import document format."""

from __future__ import annotations

import base64
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import Image, Passage, PassageFigure, Question
from . import image_service


def _verified_query():
    return Question.query.filter(Question.review_status == "verified")


def _question_fields(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "type": question.type,
        "category": question.category,
        "domain": question.domain,
        "skill": question.skill,
        "difficulty": question.difficulty,
        "overall_difficulty": question.overall_difficulty,
        "math_difficulty": question.math_difficulty,
        "rw_difficulty": question.rw_difficulty,
        "prompt": question.prompt,
        "correct_answer": question.correct_answer,
        "tags": question.tags or [],
        "source_type": question.source_type,
        "generation_batch_id": question.generation_batch_id,
        "generation_metadata": question.generation_metadata,
        "review_status": question.review_status,
        "review_metadata": question.review_metadata,
        "figure_type": question.figure_type,
        "figure_caption": question.figure_caption,
        "figure_image_id": str(question.figure_image_id) if question.figure_image_id else None,
    }


def _passage_fields(passage: Passage) -> Dict[str, Any]:
    return {
        "title": passage.title,
        "author": passage.author,
        "source": passage.source,
        "content": passage.content,
        "passage_type": passage.passage_type,
        "complexity": passage.complexity,
        "analyzed_features": passage.analyzed_features,
        "generation_type": passage.generation_type,
        "used_in_question_count": passage.used_in_question_count,
    }


def _export_record(question: Question) -> Dict[str, Any]:
    explanation = question.explanation
    passage = question.passage
    return {
        "question": _question_fields(question),
        "options": [
            {
                "key": option.key,
                "content": option.content,
                "order": option.order,
                "image_id": str(option.image_id) if option.image_id else None,
            }
            for option in sorted(question.options, key=lambda opt: opt.order)
        ],
        "passage_id": str(passage.id) if passage is not None else None,
        "passage": _passage_fields(passage) if passage is not None else None,
        "secondary_passage_id": str(question.secondary_passage_id) if question.secondary_passage_id else None,
        "secondary_passage": _passage_fields(question.secondary_passage)
        if question.secondary_passage is not None
        else None,
        "passage_figures": [
            {
                "image_id": str(figure.image_id),
                "figure_number": figure.figure_number,
                "caption": figure.caption,
                "placement": figure.placement,
                "insert_after_paragraph": figure.insert_after_paragraph,
                "image": image_service.serialize_image(figure.image),
            }
            for figure in (passage.figures if passage is not None else [])
        ],
        "explanation": {
            "correct_explanation": explanation.correct_explanation,
            "wrong_answer_explanations": explanation.wrong_answer_explanations,
            "common_mistakes": explanation.common_mistakes,
        }
        if explanation is not None
        else None,
        "image": image_service.serialize_image(question.figure_image),
    }


def export_verified(limit: int = 100, offset: int = 0) -> Dict[str, Any]:
    total = _verified_query().count()
    questions = (
        _verified_query()
        .options(
            selectinload(Question.options),
            joinedload(Question.explanation),
            joinedload(Question.figure_image),
            joinedload(Question.passage).selectinload(Passage.figures).joinedload(PassageFigure.image),
            joinedload(Question.secondary_passage),
        )
        .order_by(Question.id.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    has_more = offset + limit < total
    return {
        "questions": [_export_record(question) for question in questions],
        "total": total,
        "has_more": has_more,
        "next_offset": offset + limit if has_more else None,
    }


def _image_blob(image) -> Dict[str, Any] | None:
    data = image_service.load_image_bytes(image)
    if data is None:
        return None
    return {
        "base64": base64.b64encode(data).decode("ascii"),
        "mime_type": image.mime_type,
        "width": image.width,
        "height": image.height,
        "aspect_ratio": image.aspect_ratio,
        "alt_text": image.alt_text,
    }


def export_document(page_size: int = 100, include_images: bool = True) -> Dict[str, Any]:
    """Collect every verified question into a single self-contained document."""

    records: List[Dict[str, Any]] = []
    passages: Dict[str, Dict[str, Any]] = {}
    images: Dict[str, Dict[str, Any]] = {}
    offset: int | None = 0
    while offset is not None:
        page = export_verified(limit=page_size, offset=offset)
        for record in page["questions"]:
            for key_field, inline_field in (("passage_id", "passage"), ("secondary_passage_id", "secondary_passage")):
                passage = record.pop(inline_field)
                if passage is not None:
                    passages.setdefault(record[key_field], passage)
            records.append(record)
        offset = page["next_offset"]

    if include_images:
        image_ids = set()
        for record in records:
            if record["question"]["figure_image_id"]:
                image_ids.add(record["question"]["figure_image_id"])
            image_ids.update(fig["image_id"] for fig in record["passage_figures"])
            image_ids.update(opt["image_id"] for opt in record["options"] if opt["image_id"])
        for image_id in sorted(image_ids):
            image = db.session.get(Image, int(image_id))
            blob = _image_blob(image) if image is not None else None
            if blob is not None:
                images[image_id] = blob

    by_category = Counter(record["question"]["category"] for record in records)
    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "total_questions": len(records),
            "total_passages": len(passages),
            "total_images": len(images),
            "by_category": {
                "reading_writing": by_category.get("reading_writing", 0),
                "math": by_category.get("math", 0),
            },
        },
        "passages": passages,
        "images": images,
        "questions": records,
    }


def export_stats() -> Dict[str, Any]:
    verified = _verified_query().all()
    by_domain = Counter(question.domain for question in verified)
    return {
        "total_verified": len(verified),
        "by_category": {
            "reading_writing": sum(1 for q in verified if q.category == "reading_writing"),
            "math": sum(1 for q in verified if q.category == "math"),
        },
        "by_domain": dict(by_domain),
        "with_figures": sum(1 for q in verified if q.figure_image_id),
        "with_passages": sum(1 for q in verified if q.passage_id),
    }
