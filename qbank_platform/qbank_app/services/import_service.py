"""Bulk import of question documents produced by export or the external generator."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, List, Optional

from flask import current_app

from ..extensions import db
from ..models import Question
from ..models.question import CATEGORIES, FIGURE_TYPES
from . import difficulty_service, image_service, passage_service, question_service
from .transform import VALID_PASSAGE_TYPES

SKILLS_REQUIRING_PASSAGE = (
    "central_ideas",
    "central_ideas_and_details",
    "inferences",
    "command_of_evidence",
    "command_of_evidence_textual",
    "command_of_evidence_quantitative",
    "words_in_context",
    "text_structure",
    "text_structure_and_purpose",
    "cross_text_connections",
    "rhetorical_synthesis",
    "transitions",
)
OPTION_KEYS = ("A", "B", "C", "D")


def _questions(document: Any) -> List[Dict[str, Any]]:
    if isinstance(document, list):
        return document
    return list((document or {}).get("questions") or [])


def _decode_image(blob: Dict[str, Any]) -> bytes:
    try:
        return base64.b64decode(blob.get("base64") or "", validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 image payload: {exc}") from exc


class _Importer:
    def __init__(self, document: Any, dry_run: bool, skip_existing: bool):
        self.passages = {} if isinstance(document, list) else dict(document.get("passages") or {})
        self.images = {} if isinstance(document, list) else dict(document.get("images") or {})
        self.records = _questions(document)
        self.dry_run = dry_run
        self.skip_existing = skip_existing
        self.passage_ids: Dict[str, int] = {}
        self.image_ids: Dict[str, int] = {}
        self.summary = {
            "questions_imported": 0,
            "questions_skipped": 0,
            "passages_created": 0,
            "passages_reused": 0,
            "images_created": 0,
            "errors": [],
        }

    def _image(self, key: Optional[str]) -> Optional[int]:
        if not key:
            return None
        if key in self.image_ids:
            return self.image_ids[key]
        blob = self.images.get(key)
        if blob is None:
            raise ValueError(f"Image {key} referenced but not included")
        data = _decode_image(blob)
        if self.dry_run:
            self.summary["images_created"] += 1
            self.image_ids[key] = 0
            return 0
        image = image_service.store_image(
            data,
            alt_text=blob.get("alt_text") or "",
            width=int(blob.get("width") or 0),
            height=int(blob.get("height") or 0),
            mime_type=blob.get("mime_type"),
            commit=False,
        )
        self.summary["images_created"] += 1
        self.image_ids[key] = image.id
        return image.id

    def _passage(
        self, record: Dict[str, Any], key_field: str = "passage_id", inline_field: str = "passage"
    ) -> Optional[int]:
        key = record.get(key_field)
        if not key:
            return None
        if key in self.passage_ids:
            return self.passage_ids[key]
        data = self.passages.get(key) or record.get(inline_field)
        if not data:
            raise ValueError(f"Passage {key} referenced but not included")
        if self.dry_run:
            existing = passage_service.find_by_content(data["content"])
            self.summary["passages_reused" if existing else "passages_created"] += 1
            self.passage_ids[key] = existing.id if existing else 0
            return self.passage_ids[key]
        passage, created = passage_service.create_passage(
            data["content"],
            title=data.get("title"),
            author=data.get("author"),
            source=data.get("source"),
            passage_type=data.get("passage_type"),
            complexity=data.get("complexity"),
            analyzed_features=data.get("analyzed_features"),
            generation_type=data.get("generation_type") or "agent_generated",
            commit=False,
        )
        self.summary["passages_created" if created else "passages_reused"] += 1
        if created and key_field == "passage_id":
            for figure in record.get("passage_figures") or []:
                passage_service.add_passage_figure(
                    passage,
                    self._image(figure.get("image_id")),
                    figure_number=figure.get("figure_number"),
                    caption=figure.get("caption"),
                    placement=figure.get("placement") or "below-passage",
                    insert_after_paragraph=figure.get("insert_after_paragraph"),
                    commit=False,
                )
        self.passage_ids[key] = passage.id
        return passage.id

    def _import_one(self, record: Dict[str, Any]) -> None:
        question = record["question"]
        if self.skip_existing and Question.query.filter(Question.prompt == question["prompt"]).first():
            self.summary["questions_skipped"] += 1
            return
        passage_id = self._passage(record)
        secondary_passage_id = self._passage(record, "secondary_passage_id", "secondary_passage")
        figure_image_id = self._image(question.get("figure_image_id"))
        options = [
            {
                "key": option["key"],
                "content": option.get("content", ""),
                "order": option.get("order", index),
                "image_id": self._image(option.get("image_id")),
            }
            for index, option in enumerate(record.get("options") or [])
        ]
        explanation = record.get("explanation") or {}
        if self.dry_run:
            self.summary["questions_imported"] += 1
            return
        _create_question(
            question,
            options=options,
            explanation=explanation,
            passage_id=passage_id,
            secondary_passage_id=secondary_passage_id,
            figure_image_id=figure_image_id,
        )
        self.summary["questions_imported"] += 1

    def run(self) -> Dict[str, Any]:
        for index, record in enumerate(self.records):
            known_passages, known_images = dict(self.passage_ids), dict(self.image_ids)
            try:
                self._import_one(record)
                if not self.dry_run:
                    db.session.commit()
            except (KeyError, ValueError) as exc:
                db.session.rollback()
                self.passage_ids, self.image_ids = known_passages, known_images
                self.summary["errors"].append({"index": index, "error": str(exc)})
                current_app.logger.warning(
                    "Skipping import record %s: %s",
                    index,
                    exc,
                    extra={"event": "import.record_failed"},
                )
        return self.summary


def _create_question(
    question: Dict[str, Any], *, options, explanation, passage_id, figure_image_id, secondary_passage_id=None
) -> Question:
    created = question_service.create_agent_question(
        category=question["category"],
        domain=question["domain"],
        skill=question["skill"],
        prompt=question["prompt"],
        correct_answer=question["correct_answer"],
        options=options,
        explanation=explanation.get("correct_explanation") or "",
        wrong_answer_explanations=explanation.get("wrong_answer_explanations"),
        common_mistakes=explanation.get("common_mistakes"),
        math_difficulty=question.get("math_difficulty"),
        rw_difficulty=question.get("rw_difficulty"),
        passage_id=passage_id or None,
        secondary_passage_id=secondary_passage_id or None,
        figure_image_id=figure_image_id or None,
        figure_type=question.get("figure_type"),
        figure_caption=question.get("figure_caption"),
        tags=question.get("tags"),
        generation_metadata=question.get("generation_metadata"),
        batch_id=question.get("generation_batch_id"),
        question_type=question.get("type") or "multiple_choice",
        source_type=question.get("source_type") or "agent_generated",
        review_status=question.get("review_status") or "pending",
        commit=False,
    )
    if question.get("overall_difficulty") is not None:
        created.overall_difficulty = float(question["overall_difficulty"])
        created.difficulty = difficulty_service.difficulty_to_legacy(created.overall_difficulty)
    if question.get("review_metadata"):
        created.review_metadata = question["review_metadata"]
    return created


def import_questions(document: Any, dry_run: bool = False, skip_existing: bool = False) -> Dict[str, Any]:
    """Import an export-shaped document (or a bare list of records).

    Passages are de-duplicated by content, embedded base64 images are
    written to storage, and each record is committed on its own so one
    bad record does not abort the batch.
    """

    summary = _Importer(document, dry_run, skip_existing).run()
    summary["dry_run"] = dry_run
    current_app.logger.info(
        "Imported questions",
        extra={
            "event": "import.completed",
            "imported": summary["questions_imported"],
            "skipped": summary["questions_skipped"],
            "failed": len(summary["errors"]),
            "dry_run": dry_run,
        },
    )
    return summary


def validate_import_records(document: Any) -> Dict[str, Any]:
    """Structural checks over an import document without touching the database."""

    passages = {} if isinstance(document, list) else dict(document.get("passages") or {})
    images = {} if isinstance(document, list) else dict(document.get("images") or {})
    errors: List[str] = []
    warnings: List[str] = []
    stats = {"total": 0, "with_passage": 0, "with_figure": 0, "needs_image": 0, "by_category": {}}

    for key, passage in passages.items():
        passage_type = passage.get("passage_type")
        if passage_type and passage_type not in VALID_PASSAGE_TYPES:
            errors.append(f"Passage {key}: invalid passage_type {passage_type!r}")
        if not (passage.get("content") or "").strip():
            errors.append(f"Passage {key}: empty content")

    for index, record in enumerate(_questions(document)):
        label = f"Question {index}"
        stats["total"] += 1
        question = record.get("question")
        if not isinstance(question, dict):
            errors.append(f"{label}: missing question block")
            continue
        category = question.get("category")
        if category not in CATEGORIES:
            errors.append(f"{label}: invalid category {category!r}")
        else:
            stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
        if not (question.get("prompt") or "").strip():
            errors.append(f"{label}: empty prompt")
        options = record.get("options") or []
        keys = [option.get("key") for option in options]
        if question.get("type", "multiple_choice") == "multiple_choice":
            if len(options) != 4:
                errors.append(f"{label}: expected 4 options, found {len(options)}")
            if sorted(k for k in keys if k) != list(OPTION_KEYS):
                errors.append(f"{label}: option keys must be A-D, found {keys}")
            if question.get("correct_answer") not in keys:
                errors.append(f"{label}: correct_answer {question.get('correct_answer')!r} is not an option")
        elif not question.get("correct_answer"):
            errors.append(f"{label}: missing correct_answer")
        for option in options:
            if not (option.get("content") or "").strip() and not option.get("image_id"):
                errors.append(f"{label}: option {option.get('key')} has no content")

        passage_key = record.get("passage_id")
        if passage_key:
            stats["with_passage"] += 1
            if passage_key not in passages and not record.get("passage"):
                errors.append(f"{label}: passage {passage_key} not included")
        elif question.get("skill") in SKILLS_REQUIRING_PASSAGE:
            warnings.append(f"{label}: skill {question.get('skill')} usually requires a passage")
        secondary_key = record.get("secondary_passage_id")
        if secondary_key and secondary_key not in passages and not record.get("secondary_passage"):
            errors.append(f"{label}: passage {secondary_key} not included")

        figure_type = question.get("figure_type") or record.get("figure_type")
        if figure_type and figure_type not in FIGURE_TYPES:
            errors.append(f"{label}: invalid figure_type {figure_type!r}")
        image_key = question.get("figure_image_id")
        if image_key:
            stats["with_figure"] += 1
            if image_key not in images:
                errors.append(f"{label}: figure image {image_key} not included")
        if record.get("needs_image"):
            stats["needs_image"] += 1
            warnings.append(f"{label}: image still needs to be generated")
        if not (record.get("explanation") or {}).get("correct_explanation"):
            warnings.append(f"{label}: missing explanation")

    return {"valid": not errors, "errors": errors, "warnings": warnings, "stats": stats}
