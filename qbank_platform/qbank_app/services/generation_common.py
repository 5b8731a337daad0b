"""Shared plumbing for the question generation pipelines.

Every pipeline splits a question into a *draft* step (LLM and image calls,
no database access) and a *persist* step (database writes). Batches run
drafts on a thread pool, each worker inside its own app context, while
persistence and dead-letter writes stay on the calling thread.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from flask import current_app

from ..extensions import db
from ..logging_config import bind_batch
from ..metrics import record_generation
from ..utils.llm_json import extract_json_object, require_fields
from . import dlq_service
from .ai_client import get_ai_client

AGENT_VERSION = "qbank-generator-1.0"

DraftFn = Callable[[Any, Optional[Dict[str, Any]]], Dict[str, Any]]
PersistFn = Callable[[Any, Dict[str, Any], Optional[str]], "GenerationResult"]


class GenerationError(Exception):
    """A pipeline stage failed; ``stage`` is the label stored in the DLQ."""

    def __init__(self, stage: str, message: str, artefacts: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.artefacts = artefacts or {}


@dataclass
class GenerationResult:
    success: bool
    question_id: int | None = None
    image_id: int | None = None
    passage_id: int | None = None
    error: str | None = None
    error_stage: str | None = None
    sampled_params: Dict[str, Any] = field(default_factory=dict)
    artefacts: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_batch_id(pipeline: str) -> str:
    return f"{pipeline}-{int(time.time() * 1000)}"


@contextmanager
def stage(name: str, artefacts: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Re-raise anything failing inside the block as a ``GenerationError`` for ``name``."""

    try:
        yield
    except GenerationError:
        raise
    except Exception as exc:
        raise GenerationError(name, str(exc) or exc.__class__.__name__, artefacts) from exc


def call_json(messages, required: Sequence[str], label: str, *, temperature: float | None = None) -> dict:
    cfg = current_app.config
    text = get_ai_client().chat_text(
        messages,
        model=cfg.get("AI_GENERATION_MODEL"),
        temperature=cfg.get("AI_GENERATION_TEMPERATURE", 0.8) if temperature is None else temperature,
    )
    return require_fields(extract_json_object(text), required, label)


def generate_image(prompt: str) -> bytes:
    return get_ai_client().generate_image(prompt, size=current_app.config.get("AI_IMAGE_SIZE"))


def image_dimensions(size: str | None, default=(1536, 1024)) -> tuple[int, int]:
    try:
        width, height = (int(part) for part in (size or "").lower().split("x"))
    except ValueError:
        return default
    return width, height


def generation_metadata(prompt_template: str, params: Any, distributions: Any = None, **extra) -> dict:
    metadata = {
        "agent_version": AGENT_VERSION,
        "prompt_template": prompt_template,
        "generated_at": now_iso(),
        "sampled_params": params.to_dict(),
    }
    if distributions is not None:
        metadata["verbalized_sampling"] = {"distributions": distributions}
    metadata.update(extra)
    return metadata


def _failure(params: Any, exc: GenerationError) -> GenerationResult:
    return GenerationResult(
        success=False,
        error=exc.message,
        error_stage=exc.stage,
        sampled_params=params.to_dict(),
        artefacts=exc.artefacts,
    )


def _persist(
    pipeline: str, params: Any, draft: Dict[str, Any], persist: PersistFn, batch_id: str | None
) -> GenerationResult:
    try:
        result = persist(params, draft, batch_id)
        db.session.commit()
        return result
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Persisting %s question failed", pipeline)
        return _failure(params, GenerationError("storage", str(exc), draft.get("artefacts")))


def generate_one(
    pipeline: str,
    params: Any,
    draft: DraftFn,
    persist: PersistFn,
    *,
    batch_id: str | None = None,
    artefacts: Optional[Dict[str, Any]] = None,
) -> GenerationResult:
    """Run draft and persist for a single question without touching the DLQ."""

    started = time.perf_counter()
    try:
        drafted = draft(params, artefacts)
    except GenerationError as exc:
        result = _failure(params, exc)
    else:
        result = _persist(pipeline, params, drafted, persist, batch_id)
    record_generation(pipeline, result.success, time.perf_counter() - started)
    _log_result(pipeline, result, batch_id)
    return result


def _log_result(pipeline: str, result: GenerationResult, batch_id: str | None) -> None:
    if result.success:
        current_app.logger.info(
            "Generated %s question %s",
            pipeline,
            result.question_id,
            extra={
                "event": "generation.succeeded",
                "pipeline": pipeline,
                "question_id": result.question_id,
                "batch_id": batch_id,
            },
        )
    else:
        current_app.logger.warning(
            "%s generation failed at %s: %s",
            pipeline,
            result.error_stage,
            result.error,
            extra={
                "event": "generation.failed",
                "pipeline": pipeline,
                "stage": result.error_stage,
                "batch_id": batch_id,
            },
        )


def _draft_in_context(app, draft: DraftFn, params: Any, batch_id: str):
    started = time.perf_counter()
    with app.app_context(), bind_batch(batch_id):
        try:
            return draft(params, None), None, time.perf_counter() - started
        except GenerationError as exc:
            return None, exc, time.perf_counter() - started


def run_batch(pipeline: str, params_list: List[Any], draft: DraftFn, persist: PersistFn) -> Dict[str, Any]:
    cfg = current_app.config
    concurrency = max(1, int(cfg.get("GENERATION_CONCURRENCY", 3)))
    delay = float(cfg.get("GENERATION_BATCH_DELAY_SEC", 1.0))
    batch_id = new_batch_id(pipeline)
    app = current_app._get_current_object()
    results: List[GenerationResult] = []

    current_app.logger.info(
        "Starting %s batch of %s",
        pipeline,
        len(params_list),
        extra={"event": "generation.batch_started", "pipeline": pipeline, "batch_id": batch_id},
    )
    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        for offset in range(0, len(params_list), concurrency):
            chunk = params_list[offset : offset + concurrency]
            drafted = list(executor.map(lambda p: _draft_in_context(app, draft, p, batch_id), chunk))
            for params, (draft_payload, error, elapsed) in zip(chunk, drafted):
                started = time.perf_counter()
                if error is not None:
                    result = _failure(params, error)
                else:
                    result = _persist(pipeline, params, draft_payload, persist, batch_id)
                record_generation(pipeline, result.success, elapsed + time.perf_counter() - started)
                _log_result(pipeline, result, batch_id)
                if not result.success:
                    dlq_service.add_to_dlq(
                        pipeline,
                        result.sampled_params,
                        result.error,
                        result.error_stage,
                        batch_id=batch_id,
                        artefacts=result.artefacts,
                    )
                results.append(result)
            if offset + concurrency < len(params_list) and delay > 0:
                time.sleep(delay)

    successful = sum(1 for result in results if result.success)
    current_app.logger.info(
        "Finished %s batch: %s/%s succeeded",
        pipeline,
        successful,
        len(results),
        extra={"event": "generation.batch_finished", "pipeline": pipeline, "batch_id": batch_id},
    )
    return {
        "batch_id": batch_id,
        "total": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "results": [result.to_dict() for result in results],
    }


def retry_dlq(
    pipeline: str,
    params_from_dict: Callable[[Dict[str, Any]], Any],
    draft: DraftFn,
    persist: PersistFn,
    limit: int = 10,
) -> Dict[str, Any]:
    """Regenerate pending DLQ items from their stored params and artefacts."""

    delay = float(current_app.config.get("GENERATION_RETRY_DELAY_SEC", 2.0))
    items = dlq_service.get_pending(pipeline, limit)
    summary = {"processed": 0, "succeeded": 0, "failed": 0, "results": []}
    for index, item in enumerate(items):
        dlq_service.mark_retrying(item)
        try:
            params = params_from_dict(item.sampled_params)
        except (KeyError, TypeError, ValueError) as exc:
            dlq_service.mark_failed(item, f"Stored params unusable: {exc}")
            summary["processed"] += 1
            summary["failed"] += 1
            continue
        result = generate_one(
            pipeline, params, draft, persist, batch_id=item.batch_id, artefacts=item.artefacts
        )
        if result.success:
            dlq_service.mark_succeeded(item, result.question_id, result.image_id)
            summary["succeeded"] += 1
        else:
            if result.artefacts:
                item.artefacts = result.artefacts
            item.error_stage = result.error_stage or item.error_stage
            dlq_service.mark_failed(item, result.error)
            summary["failed"] += 1
        summary["processed"] += 1
        summary["results"].append({"dlq_id": item.id, **result.to_dict()})
        if index + 1 < len(items) and delay > 0:
            time.sleep(delay)
    return summary
