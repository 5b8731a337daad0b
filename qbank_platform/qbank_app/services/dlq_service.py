"""Dead-letter queues for failed generation and review attempts."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app

from ..extensions import db
from ..metrics import record_dlq_transition
from ..models import GenerationDLQItem, QuestionReviewDLQItem
from ..models.generation import DLQ_STATUSES, PIPELINES, REVIEW_TYPES


def _now():
    return datetime.now(timezone.utc)


def _check_pipeline(pipeline: str) -> None:
    if pipeline not in PIPELINES:
        raise ValueError(f"Unknown pipeline: {pipeline}")


def _max_retries() -> int:
    return int(current_app.config.get("DLQ_MAX_RETRIES", 3))


def add_to_dlq(
    pipeline: str,
    sampled_params: Dict[str, Any],
    error: str,
    error_stage: str,
    *,
    batch_id: str | None = None,
    artefacts: Optional[Dict[str, Any]] = None,
    domain: str | None = None,
    commit: bool = True,
) -> GenerationDLQItem:
    _check_pipeline(pipeline)
    item = GenerationDLQItem(
        pipeline=pipeline,
        domain=domain or (sampled_params or {}).get("domain"),
        sampled_params=sampled_params or {},
        artefacts=artefacts or None,
        batch_id=batch_id,
        error=error or "unknown error",
        error_stage=error_stage,
        retry_count=0,
        max_retries=_max_retries(),
        last_attempt_at=_now(),
        status="pending",
    )
    db.session.add(item)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    record_dlq_transition(pipeline, "pending")
    current_app.logger.warning(
        "Queued failed %s generation at %s: %s",
        pipeline,
        error_stage,
        error,
        extra={"event": "dlq.added", "pipeline": pipeline, "dlq_id": item.id, "stage": error_stage},
    )
    return item


def mark_retrying(item: GenerationDLQItem, commit: bool = True) -> GenerationDLQItem:
    item.status = "retrying"
    item.retry_count = (item.retry_count or 0) + 1
    item.last_attempt_at = _now()
    if commit:
        db.session.commit()
    record_dlq_transition(item.pipeline, "retrying")
    return item


def mark_succeeded(
    item: GenerationDLQItem,
    question_id: int | None = None,
    image_id: int | None = None,
    commit: bool = True,
) -> GenerationDLQItem:
    item.status = "succeeded"
    item.question_id = question_id
    item.image_id = image_id
    item.last_attempt_at = _now()
    if commit:
        db.session.commit()
    record_dlq_transition(item.pipeline, "succeeded")
    return item


def _next_failure_state(retry_count: int, max_retries: int) -> tuple[int, str]:
    new_count = (retry_count or 0) + 1
    status = "failed_permanently" if new_count >= max_retries else "pending"
    return new_count, status


def mark_failed(item: GenerationDLQItem, error: str, commit: bool = True) -> GenerationDLQItem:
    item.retry_count, item.status = _next_failure_state(item.retry_count, item.max_retries)
    item.error = error or item.error
    item.last_attempt_at = _now()
    if commit:
        db.session.commit()
    record_dlq_transition(item.pipeline, item.status)
    if item.status == "failed_permanently":
        current_app.logger.error(
            "DLQ item %s failed permanently after %s attempts",
            item.id,
            item.retry_count,
            extra={"event": "dlq.failed_permanently", "pipeline": item.pipeline, "dlq_id": item.id},
        )
    return item


def get_pending(pipeline: str, limit: int = 10) -> List[GenerationDLQItem]:
    _check_pipeline(pipeline)
    return (
        GenerationDLQItem.query.filter(
            GenerationDLQItem.pipeline == pipeline,
            GenerationDLQItem.status == "pending",
        )
        .order_by(GenerationDLQItem.created_at.asc(), GenerationDLQItem.id.asc())
        .limit(limit)
        .all()
    )


def get_stats(pipeline: str | None = None) -> Dict[str, Any]:
    query = GenerationDLQItem.query
    if pipeline:
        _check_pipeline(pipeline)
        query = query.filter(GenerationDLQItem.pipeline == pipeline)
    items = query.all()
    by_status = {status: 0 for status in DLQ_STATUSES}
    by_status.update(Counter(item.status for item in items))
    return {
        "total": len(items),
        **by_status,
        "by_domain": dict(Counter(item.domain or "unknown" for item in items)),
        "by_error_stage": dict(Counter(item.error_stage for item in items)),
        "by_pipeline": dict(Counter(item.pipeline for item in items)),
    }


def get_recent(pipeline: str | None = None, limit: int = 20) -> List[GenerationDLQItem]:
    query = GenerationDLQItem.query
    if pipeline:
        _check_pipeline(pipeline)
        query = query.filter(GenerationDLQItem.pipeline == pipeline)
    return query.order_by(GenerationDLQItem.created_at.desc(), GenerationDLQItem.id.desc()).limit(limit).all()


def clear_succeeded(pipeline: str | None = None) -> int:
    query = GenerationDLQItem.query.filter(GenerationDLQItem.status == "succeeded")
    if pipeline:
        _check_pipeline(pipeline)
        query = query.filter(GenerationDLQItem.pipeline == pipeline)
    deleted = query.delete(synchronize_session=False)
    db.session.commit()
    return deleted


def clear_all(pipeline: str | None = None) -> int:
    query = GenerationDLQItem.query
    if pipeline:
        _check_pipeline(pipeline)
        query = query.filter(GenerationDLQItem.pipeline == pipeline)
    deleted = query.delete(synchronize_session=False)
    db.session.commit()
    current_app.logger.info(
        "Cleared DLQ", extra={"event": "dlq.cleared", "pipeline": pipeline or "all", "deleted": deleted}
    )
    return deleted


def serialize_item(item: GenerationDLQItem) -> dict:
    return {
        "id": item.id,
        "pipeline": item.pipeline,
        "domain": item.domain,
        "sampled_params": item.sampled_params,
        "batch_id": item.batch_id,
        "error": item.error,
        "error_stage": item.error_stage,
        "retry_count": item.retry_count,
        "max_retries": item.max_retries,
        "status": item.status,
        "question_id": item.question_id,
        "image_id": item.image_id,
        "last_attempt_at": item.last_attempt_at.isoformat() if item.last_attempt_at else None,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


# Review queue


def add_review_dlq(
    question_id: int, error: str, review_type: str = "initial_verification", commit: bool = True
) -> QuestionReviewDLQItem:
    if review_type not in REVIEW_TYPES:
        raise ValueError(f"Unknown review type: {review_type}")
    item = QuestionReviewDLQItem(
        question_id=question_id,
        review_type=review_type,
        error=error or "unknown error",
        retry_count=0,
        max_retries=_max_retries(),
        last_attempt_at=_now(),
        status="pending",
    )
    db.session.add(item)
    if commit:
        db.session.commit()
    record_dlq_transition("review", "pending")
    current_app.logger.warning(
        "Queued failed review for question %s: %s",
        question_id,
        error,
        extra={"event": "review_dlq.added", "question_id": question_id, "review_type": review_type},
    )
    return item


def mark_review_retrying(item: QuestionReviewDLQItem, commit: bool = True) -> QuestionReviewDLQItem:
    item.status = "retrying"
    item.retry_count = (item.retry_count or 0) + 1
    item.last_attempt_at = _now()
    if commit:
        db.session.commit()
    record_dlq_transition("review", "retrying")
    return item


def mark_review_succeeded(item: QuestionReviewDLQItem, commit: bool = True) -> QuestionReviewDLQItem:
    item.status = "succeeded"
    item.last_attempt_at = _now()
    if commit:
        db.session.commit()
    record_dlq_transition("review", "succeeded")
    return item


def mark_review_failed(item: QuestionReviewDLQItem, error: str, commit: bool = True) -> QuestionReviewDLQItem:
    item.retry_count, item.status = _next_failure_state(item.retry_count, item.max_retries)
    item.error = error or item.error
    item.last_attempt_at = _now()
    if commit:
        db.session.commit()
    record_dlq_transition("review", item.status)
    return item


def get_pending_reviews(limit: int = 10) -> List[QuestionReviewDLQItem]:
    return (
        QuestionReviewDLQItem.query.filter(QuestionReviewDLQItem.status == "pending")
        .order_by(QuestionReviewDLQItem.created_at.asc(), QuestionReviewDLQItem.id.asc())
        .limit(limit)
        .all()
    )


def get_review_dlq_stats() -> Dict[str, Any]:
    items = QuestionReviewDLQItem.query.all()
    by_status = {status: 0 for status in DLQ_STATUSES}
    by_status.update(Counter(item.status for item in items))
    return {
        "total": len(items),
        **by_status,
        "by_review_type": dict(Counter(item.review_type for item in items)),
    }
