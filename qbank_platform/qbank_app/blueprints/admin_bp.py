"""Admin blueprint endpoints: generation, DLQ, review, quality and bank import/export."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, abort, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from ..schemas import (
    BatchReviewSchema,
    CrossTextGenerateSchema,
    DLQClearSchema,
    DLQQuerySchema,
    DLQRetrySchema,
    ExportQuerySchema,
    GrammarGenerateSchema,
    ImportSchema,
    MathGenerateSchema,
    ProblematicQuerySchema,
    ReadingDataGenerateSchema,
    ReadingGenerateSchema,
    ReviewRequestSchema,
    TransitionsGenerateSchema,
)
from ..services import (
    cross_text_generation,
    dlq_service,
    export_service,
    grammar_generation,
    import_service,
    math_generation,
    performance_service,
    question_service,
    reading_data_generation,
    reading_generation,
    review_service,
    transitions_generation,
)
from ..utils import admin_required

admin_bp = Blueprint("admin_bp", __name__)

math_schema = MathGenerateSchema()
reading_schema = ReadingGenerateSchema()
transitions_schema = TransitionsGenerateSchema()
reading_data_schema = ReadingDataGenerateSchema()
grammar_schema = GrammarGenerateSchema()
cross_text_schema = CrossTextGenerateSchema()
dlq_query_schema = DLQQuerySchema()
dlq_retry_schema = DLQRetrySchema()
dlq_clear_schema = DLQClearSchema()
review_schema = ReviewRequestSchema()
batch_review_schema = BatchReviewSchema()
import_schema = ImportSchema()
export_query_schema = ExportQuerySchema()
problematic_schema = ProblematicQuerySchema()

RETRY_HANDLERS = {
    "math": math_generation.retry_dlq_items,
    "reading": reading_generation.retry_dlq_items,
    "transitions": transitions_generation.retry_dlq_items,
    "reading_data": reading_data_generation.retry_dlq_items,
    "grammar": grammar_generation.retry_dlq_items,
    "cross_text": cross_text_generation.retry_dlq_items,
}


@admin_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@admin_bp.errorhandler(HTTPException)
def handle_http_error(err: HTTPException):
    return jsonify({"message": err.description}), err.code


@admin_bp.get("/ping")
def ping():
    return jsonify({"module": "admin", "status": "ok"})


# Generation


@admin_bp.post("/generate/math")
@admin_required
def generate_math():
    payload = math_schema.load(request.get_json() or {})
    result = math_generation.batch_generate_math_questions(
        payload["count"], domains=payload["domains"], skills=payload["skills"]
    )
    return jsonify(result)


@admin_bp.post("/generate/reading")
@admin_required
def generate_reading():
    payload = reading_schema.load(request.get_json() or {})
    result = reading_generation.batch_generate_reading_questions(
        payload["count"], question_types=payload["question_types"], passage_types=payload["passage_types"]
    )
    return jsonify(result)


@admin_bp.post("/generate/transitions")
@admin_required
def generate_transitions():
    payload = transitions_schema.load(request.get_json() or {})
    count = payload.pop("count")
    result = transitions_generation.batch_generate_transitions_questions(count, **payload)
    return jsonify(result)


@admin_bp.post("/generate/reading-data")
@admin_required
def generate_reading_data():
    payload = reading_data_schema.load(request.get_json() or {})
    result = reading_data_generation.batch_generate_data_questions(
        payload["count"], data_type=payload["data_type"], domain=payload["domain"]
    )
    return jsonify(result)


@admin_bp.post("/generate/grammar")
@admin_required
def generate_grammar():
    payload = grammar_schema.load(request.get_json() or {})
    count = payload.pop("count")
    result = grammar_generation.batch_generate_grammar_questions(count, **payload)
    return jsonify(result)


@admin_bp.post("/generate/cross-text")
@admin_required
def generate_cross_text():
    payload = cross_text_schema.load(request.get_json() or {})
    count = payload.pop("count")
    result = cross_text_generation.batch_generate_cross_text_questions(count, **payload)
    return jsonify(result)


# Dead letter queue


@admin_bp.get("/dlq/stats")
@admin_required
def dlq_stats():
    params = dlq_query_schema.load(request.args)
    return jsonify(
        {
            "generation": dlq_service.get_stats(params["pipeline"]),
            "review": dlq_service.get_review_dlq_stats(),
        }
    )


@admin_bp.get("/dlq/recent")
@admin_required
def dlq_recent():
    params = dlq_query_schema.load(request.args)
    items = dlq_service.get_recent(params["pipeline"], params["limit"])
    return jsonify({"items": [dlq_service.serialize_item(item) for item in items]})


@admin_bp.post("/dlq/retry")
@admin_required
def dlq_retry():
    payload = dlq_retry_schema.load(request.get_json() or {})
    result = RETRY_HANDLERS[payload["pipeline"]](payload["limit"])
    return jsonify(result)


@admin_bp.post("/dlq/clear")
@admin_required
def dlq_clear():
    payload = dlq_clear_schema.load(request.get_json() or {})
    if payload["only_succeeded"]:
        deleted = dlq_service.clear_succeeded(payload["pipeline"])
    else:
        deleted = dlq_service.clear_all(payload["pipeline"])
    return jsonify({"deleted": deleted})


# Review


@admin_bp.post("/review/questions/<int:question_id>")
@admin_required
def review_one(question_id: int):
    payload = review_schema.load(request.get_json() or {})
    result = review_service.review_question(
        question_id, payload["review_type"], skip_auto_improve=payload["skip_auto_improve"]
    )
    if not result["success"] and result.get("error") == "Question not found":
        abort(404)
    return jsonify(result)


@admin_bp.post("/review/batch")
@admin_required
def review_batch():
    payload = batch_review_schema.load(request.get_json() or {})
    return jsonify(review_service.batch_review(**payload))


@admin_bp.post("/review/dlq/retry")
@admin_required
def review_dlq_retry():
    limit = request.args.get("limit", default=10, type=int)
    return jsonify(review_service.retry_review_dlq(max(1, min(limit, 100))))


@admin_bp.get("/review/stats")
@admin_required
def review_stats():
    return jsonify(review_service.review_stats(request.args.get("category")))


# Quality


@admin_bp.get("/quality/dashboard")
@admin_required
def quality_dashboard():
    return jsonify(performance_service.get_quality_dashboard())


@admin_bp.get("/quality/problematic")
@admin_required
def problematic_questions():
    params = problematic_schema.load(request.args)
    return jsonify({"items": performance_service.get_problematic_questions(**params)})


@admin_bp.get("/quality/flagged")
@admin_required
def flagged_questions():
    return jsonify({"items": performance_service.get_flagged_questions()})


@admin_bp.post("/quality/questions/<int:question_id>/clear-flag")
@admin_required
def clear_flag(question_id: int):
    question_service.get_question(question_id)
    return jsonify(performance_service.clear_question_flag(question_id))


@admin_bp.post("/quality/questions/<int:question_id>/reset")
@admin_required
def reset_stats(question_id: int):
    return jsonify(performance_service.reset_question_stats(question_id))


# Import / export


@admin_bp.post("/questions/import")
@admin_required
def import_questions():
    payload = import_schema.load(request.get_json() or {})
    summary = import_service.import_questions(
        payload["document"], dry_run=payload["dry_run"], skip_existing=payload["skip_existing"]
    )
    return jsonify(summary)


@admin_bp.post("/questions/validate")
@admin_required
def validate_import():
    payload = import_schema.load(request.get_json() or {})
    return jsonify(import_service.validate_import_records(payload["document"]))


@admin_bp.get("/questions/export")
@admin_required
def export_questions():
    params = export_query_schema.load(request.args)
    return jsonify(export_service.export_verified(params["limit"], params["offset"]))


@admin_bp.get("/questions/export/document")
@admin_required
def export_document():
    include_images = request.args.get("include_images", "true").lower() in {"1", "true", "yes"}
    return jsonify(export_service.export_document(include_images=include_images))


@admin_bp.get("/questions/export/stats")
@admin_required
def export_stats():
    return jsonify(export_service.export_stats())
