"""Second-pass LLM verification of generated questions, with auto-improvement."""

from __future__ import annotations

import time
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..metrics import record_review
from ..models import Explanation, Question
from ..models.generation import REVIEW_TYPES
from ..utils.dates import coerce_aware, utcnow
from ..utils.llm_json import ANSWER_LETTERS, LLMResponseError, extract_json_object, require_fields
from . import dlq_service, image_service, prompts, question_service
from .ai_client import get_ai_client

REVIEW_VERSION = "review-v1"
REVIEW_ACTIONS = ("verify", "needs_revision", "reject")


def should_review(question: Question, now: datetime | None = None) -> bool:
    last_reviewed = coerce_aware(question.last_reviewed_at)
    if last_reviewed is None:
        return True
    now = now or utcnow()
    status = question.review_status
    if status == "verified":
        cooldown = timedelta(days=int(current_app.config.get("REVIEW_COOLDOWN_DAYS", 7)))
        return now - last_reviewed >= cooldown
    if status == "flagged_high_error":
        return True
    if status in ("needs_revision", "rejected"):
        return False
    return status == "pending"


def _ask_model(messages) -> dict:
    cfg = current_app.config
    text = get_ai_client().chat_text(
        messages,
        model=cfg.get("AI_REVIEW_MODEL"),
        temperature=cfg.get("AI_REVIEW_TEMPERATURE", 0.1),
    )
    return extract_json_object(text)


def _request_review(question: Question) -> dict:
    figure = image_service.image_as_base64(question.figure_image) if question.figure_image_id else None
    if question.figure_image_id and figure is None:
        current_app.logger.warning(
            "Figure for question %s unreadable; reviewing text only", question.id
        )
    payload = _ask_model(prompts.build_review_messages(question_service.review_payload(question), figure))
    if "answerIsCorrect" not in payload:
        raise LLMResponseError("Review response missing answerIsCorrect")
    require_fields(payload, ("recommendedAction",), "review")
    return payload


def _review_status(result: dict) -> str:
    action = str(result.get("recommendedAction") or "").lower()
    if action == "verify" and result.get("answerIsCorrect"):
        return "verified"
    if action == "reject":
        return "rejected"
    return "needs_revision"


def _corrected_answer(question: Question, result: dict) -> Optional[str]:
    if result.get("answerIsCorrect"):
        return None
    letter = str(result.get("actualCorrectAnswer") or "").strip().upper()[:1]
    if letter not in ANSWER_LETTERS or letter == question.correct_answer:
        return None
    return letter


def _update_explanations(question: Question, result: dict) -> None:
    explanation = question.explanation
    if explanation is None:
        explanation = Explanation(question=question, correct_explanation="")
        db.session.add(explanation)
    if result.get("correctExplanation"):
        explanation.correct_explanation = result["correctExplanation"]
    wrong = result.get("wrongAnswerExplanations")
    if isinstance(wrong, dict):
        explanation.wrong_answer_explanations = {
            key: text for key, text in wrong.items() if key != question.correct_answer and text
        }
    if isinstance(result.get("commonMistakes"), list):
        explanation.common_mistakes = result["commonMistakes"]


def review_question(
    question_id: int,
    review_type: str = "initial_verification",
    skip_auto_improve: bool = False,
    *,
    queue_failures: bool = True,
) -> Dict[str, Any]:
    """Verify one question with the review model and store the outcome.

    Failures are queued in the review DLQ unless ``queue_failures`` is off
    (the DLQ retry path tracks its own item).
    """

    if review_type not in REVIEW_TYPES:
        raise ValueError(f"Unknown review type: {review_type}")
    question = db.session.get(Question, question_id)
    if question is None:
        return {"success": False, "question_id": question_id, "error": "Question not found"}
    if not should_review(question):
        return {
            "success": False,
            "question_id": question_id,
            "skipped": True,
            "error": "Question should not be reviewed",
        }

    try:
        result = _request_review(question)
        status = _review_status(result)
        original_answer = question.correct_answer
        new_answer = _corrected_answer(question, result)
        confidence = float(result.get("confidenceScore") or 0.0)
        if new_answer and confidence >= float(current_app.config.get("REVIEW_AUTOCORRECT_CONFIDENCE", 0.8)):
            status = "verified"

        issues = [issue for issue in result.get("issues") or [] if isinstance(issue, dict)]
        fixable = [issue for issue in issues if prompts.is_auto_fixable(issue)]
        if (
            status == "needs_revision"
            and fixable
            and not skip_auto_improve
            and review_type != "post_improvement_verification"
        ):
            improved = improve_question(question_id, fixable)
            if improved["success"]:
                rerun = review_question(
                    question_id,
                    "post_improvement_verification",
                    skip_auto_improve=True,
                    queue_failures=queue_failures,
                )
                return {**rerun, "auto_improved": True, "improvements_applied": improved["improvements_applied"]}
            current_app.logger.warning(
                "Auto-improvement of question %s failed: %s", question_id, improved.get("error")
            )

        if new_answer:
            question_service.update_correct_answer(question, new_answer, "Corrected during review")
        question.review_status = status
        question.last_reviewed_at = utcnow()
        question.review_metadata = {
            "review_version": REVIEW_VERSION,
            "review_type": review_type,
            "answer_validated": bool(result.get("answerIsCorrect")) or bool(new_answer),
            "original_correct_answer": original_answer if new_answer else None,
            "confidence_score": confidence,
            "review_notes": result.get("reviewNotes"),
            "issues": issues,
        }
        _update_explanations(question, result)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Review of question %s failed", question_id)
        record_review("error")
        if queue_failures:
            dlq_service.add_review_dlq(question_id, str(exc), review_type)
        return {"success": False, "question_id": question_id, "error": str(exc)}

    record_review(status)
    current_app.logger.info(
        "Reviewed question %s: %s",
        question_id,
        status,
        extra={
            "event": "review.completed",
            "question_id": question_id,
            "review_status": status,
            "review_type": review_type,
            "answer_corrected": bool(new_answer),
        },
    )
    return {
        "success": True,
        "question_id": question_id,
        "review_status": status,
        "answer_corrected": bool(new_answer),
        "confidence_score": confidence,
        "auto_improved": False,
    }


def _apply_improvement(question: Question, improvement: dict) -> bool:
    field = str(improvement.get("field") or "")
    value = improvement.get("newValue")
    reason = improvement.get("reason") or "Automated improvement"
    if not value:
        return False
    if field == "prompt":
        question_service.update_prompt(question, value, reason)
    elif field == "correctAnswer":
        question_service.update_correct_answer(question, value, reason)
    elif field.startswith("option"):
        question_service.update_option(question, field[len("option"):], value, reason)
    else:
        current_app.logger.warning("Ignoring improvement to unknown field %r", field)
        return False
    return True


def improve_question(question_id: int, issues: List[Dict[str, Any]]) -> Dict[str, Any]:
    question = db.session.get(Question, question_id)
    if question is None:
        return {"success": False, "error": "Question not found"}
    try:
        result = _ask_model(prompts.build_improvement_messages(question_service.review_payload(question), issues))
        improvements = [item for item in result.get("improvements") or [] if isinstance(item, dict)]
        applied = sum(1 for item in improvements if _apply_improvement(question, item))
        new_answer = str(result.get("newCorrectAnswer") or "").strip().upper()
        already = any(item.get("field") == "correctAnswer" for item in improvements)
        if new_answer in ANSWER_LETTERS and new_answer != question.correct_answer and not already:
            question_service.update_correct_answer(
                question, new_answer, "Corrected during improvement process"
            )
            applied += 1
        question.review_status = "pending"
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Improving question %s failed", question_id)
        return {"success": False, "error": str(exc)}

    current_app.logger.info(
        "Improved question %s",
        question_id,
        extra={"event": "review.improved", "question_id": question_id, "applied": applied},
    )
    return {
        "success": True,
        "improvements_applied": applied,
        "verification_notes": result.get("verificationNotes"),
    }


def _unverified_query(category: str | None = None):
    query = Question.query.filter(
        Question.source_type == "agent_generated",
        or_(
            Question.review_status.is_(None),
            Question.review_status.in_(("pending", "flagged_high_error")),
        ),
    )
    if category:
        query = query.filter(Question.category == category)
    return query


def batch_review(limit: int = 10, category: str | None = None, prioritize_figures: bool = True) -> Dict[str, Any]:
    query = _unverified_query(category)
    if prioritize_figures:
        query = query.order_by(Question.figure_image_id.is_(None), Question.id.asc())
    else:
        query = query.order_by(Question.id.asc())
    questions = query.limit(limit).all()
    delay = float(current_app.config.get("REVIEW_BATCH_DELAY_SEC", 2.0))

    results = []
    for index, question in enumerate(questions):
        review_type = (
            "high_error_rate_recheck" if question.review_status == "flagged_high_error" else "initial_verification"
        )
        results.append(review_question(question.id, review_type))
        if index + 1 < len(questions) and delay > 0:
            time.sleep(delay)

    successful = sum(1 for result in results if result["success"])
    current_app.logger.info(
        "Batch review finished: %s/%s successful",
        successful,
        len(results),
        extra={"event": "review.batch_finished"},
    )
    return {"total": len(results), "successful": successful, "results": results}


def retry_review_dlq(limit: int = 10) -> Dict[str, Any]:
    delay = float(current_app.config.get("REVIEW_BATCH_DELAY_SEC", 2.0))
    items = dlq_service.get_pending_reviews(limit)
    summary = {"processed": 0, "succeeded": 0, "failed": 0}
    for index, item in enumerate(items):
        dlq_service.mark_review_retrying(item)
        result = review_question(item.question_id, item.review_type, queue_failures=False)
        if result["success"] or result.get("skipped"):
            dlq_service.mark_review_succeeded(item)
            summary["succeeded"] += 1
        else:
            dlq_service.mark_review_failed(item, result.get("error") or "unknown error")
            summary["failed"] += 1
        summary["processed"] += 1
        if index + 1 < len(items) and delay > 0:
            time.sleep(delay)
    return summary


def review_stats(category: str | None = None) -> Dict[str, Any]:
    query = Question.query.filter(Question.source_type == "agent_generated")
    if category:
        query = query.filter(Question.category == category)
    counts = Counter(question.review_status or "pending" for question in query)
    return {
        "total": sum(counts.values()),
        "pending": counts.get("pending", 0),
        "verified": counts.get("verified", 0),
        "needs_revision": counts.get("needs_revision", 0),
        "rejected": counts.get("rejected", 0),
        "flagged_high_error": counts.get("flagged_high_error", 0),
        "review_dlq": dlq_service.get_review_dlq_stats(),
    }
