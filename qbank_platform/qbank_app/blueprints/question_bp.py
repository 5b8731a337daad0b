"""Question browsing, difficulty queries and signed image downloads."""

from __future__ import annotations

from http import HTTPStatus
from pathlib import Path

from flask import Blueprint, abort, current_app, jsonify, request, send_file
from flask_jwt_extended import current_user, jwt_required
from itsdangerous import BadSignature, SignatureExpired
from marshmallow import ValidationError

from ..extensions import limiter
from ..models.question import CATEGORIES
from ..schemas import AdaptiveNextSchema, DifficultyRangeSchema, FactorFilterSchema, QuestionFilterSchema
from ..services import difficulty_service, image_service, passage_service, question_service
from ..utils import is_admin
from ..utils.signed_urls import verify_image_token

question_bp = Blueprint("question_bp", __name__)

filter_schema = QuestionFilterSchema()
range_schema = DifficultyRangeSchema()
adaptive_schema = AdaptiveNextSchema()
factor_schema = FactorFilterSchema()


@question_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@question_bp.get("/ping")
def ping():
    return jsonify({"module": "questions", "status": "ok"})


@question_bp.get("")
@jwt_required()
def list_questions():
    params = filter_schema.load(request.args)
    page, per_page = params.pop("page"), params.pop("per_page")
    pagination = question_service.list_questions(params, page=page, per_page=per_page)
    return jsonify(
        {
            "items": [question_service.serialize_question(q, include_passage=False) for q in pagination.items],
            "total": pagination.total,
            "page": pagination.page,
            "per_page": pagination.per_page,
        }
    )


@question_bp.get("/<int:question_id>")
@jwt_required()
def get_question(question_id: int):
    question = question_service.get_question(question_id)
    # Answers are only revealed to admins; students see them after grading.
    return jsonify({"question": question_service.serialize_question(question, include_answer=is_admin())})


@question_bp.post("/by-difficulty")
@jwt_required()
def by_difficulty():
    params = range_schema.load(request.get_json() or {})
    result = difficulty_service.questions_by_difficulty_range(
        params["category"],
        params["min_difficulty"],
        params["max_difficulty"],
        domain=params["domain"],
        exclude_ids=params["exclude_ids"],
        limit=params["limit"],
    )
    return jsonify(
        {
            "items": [question_service.serialize_question(q, include_passage=False) for q in result["items"]],
            "has_more": result["has_more"],
        }
    )


@question_bp.post("/by-factors")
@jwt_required()
def by_factors():
    params = factor_schema.load(request.get_json() or {})
    result = difficulty_service.questions_by_factors(
        params["category"], params["factors"], exclude_ids=params["exclude_ids"], limit=params["limit"]
    )
    return jsonify(
        {
            "items": [question_service.serialize_question(q, include_passage=False) for q in result["items"]],
            "has_more": result["has_more"],
            "total_matching": result["total_matching"],
        }
    )


@question_bp.post("/adaptive-next")
@jwt_required()
def adaptive_next():
    params = adaptive_schema.load(request.get_json() or {})
    question = difficulty_service.select_adaptive_question(
        current_user.id,
        category=params["category"],
        target_difficulty=params["target_difficulty"],
        tolerance=params["tolerance"],
        exclude_ids=params["exclude_ids"],
    )
    return jsonify({"question": question_service.serialize_question(question) if question else None})


@question_bp.get("/distribution/<category>")
@jwt_required()
def distribution(category: str):
    if category not in CATEGORIES:
        abort(404)
    return jsonify(difficulty_service.difficulty_distribution(category, request.args.get("domain")))


@question_bp.get("/passages/<int:passage_id>")
@jwt_required()
def get_passage(passage_id: int):
    passage = passage_service.get_passage_with_figures(passage_id)
    return jsonify(
        {
            "passage": passage_service.serialize_passage(
                passage, include_figures=True, image_url=image_service.signed_image_url
            )
        }
    )


@question_bp.get("/images/<int:image_id>")
@limiter.limit(lambda: current_app.config.get("IMAGE_URL_RATE_LIMIT", "60 per minute"))
def get_image(image_id: int):
    token = request.args.get("sig")
    if not token:
        abort(401)
    try:
        verify_image_token(token, image_id)
    except SignatureExpired:
        abort(401)
    except BadSignature:
        abort(403)
    image = image_service.get_image(image_id)
    path = Path(image.storage_path)
    if not path.exists():
        abort(404)
    response = send_file(path, mimetype=image.mime_type or "image/png")
    response.headers["Cache-Control"] = f"private, max-age={int(current_app.config.get('IMAGE_URL_TTL_SEC', 1800))}"
    return response
