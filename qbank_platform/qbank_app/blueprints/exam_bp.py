"""Exam attempts, answers and score reports."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, abort, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from ..schemas import (
    AnswerSaveSchema,
    AttemptCreateSchema,
    CrossedOutSchema,
    PreviousAttemptsQuerySchema,
    ProgressSchema,
    QuestionRefSchema,
    WrongAnswersQuerySchema,
)
from ..services import answer_service, attempt_service, score_service

exam_bp = Blueprint("exam_bp", __name__)

attempt_create_schema = AttemptCreateSchema()
progress_schema = ProgressSchema()
answer_schema = AnswerSaveSchema()
question_ref_schema = QuestionRefSchema()
crossed_out_schema = CrossedOutSchema()
wrong_answers_schema = WrongAnswersQuerySchema()
previous_attempts_schema = PreviousAttemptsQuerySchema()


@exam_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@exam_bp.errorhandler(HTTPException)
def handle_http_error(err: HTTPException):
    return jsonify({"message": err.description}), err.code


@exam_bp.get("/ping")
def ping():
    return jsonify({"module": "exam", "status": "ok"})


@exam_bp.post("/attempts")
@jwt_required()
def create_attempt():
    payload = attempt_create_schema.load(request.get_json() or {})
    attempt = attempt_service.create_attempt(current_user.id, payload["mode"], payload["section"])
    return jsonify({"attempt": attempt_service.serialize_attempt(attempt)}), HTTPStatus.CREATED


@exam_bp.get("/attempts/current")
@jwt_required()
def current_attempt():
    return jsonify({"attempt": attempt_service.get_current_attempt(current_user.id)})


@exam_bp.get("/attempts")
@jwt_required()
def attempt_history():
    return jsonify({"items": attempt_service.get_attempt_history(current_user.id)})


@exam_bp.get("/attempts/recent")
@jwt_required()
def recent_attempts():
    limit = request.args.get("limit", default=5, type=int)
    return jsonify({"items": attempt_service.get_recent_attempts(current_user.id, max(1, min(limit, 50)))})


@exam_bp.get("/attempts/<int:attempt_id>")
@jwt_required()
def get_attempt(attempt_id: int):
    attempt = attempt_service.get_attempt(attempt_id, current_user.id)
    return jsonify({"attempt": attempt_service.serialize_attempt(attempt)})


@exam_bp.patch("/attempts/<int:attempt_id>/progress")
@jwt_required()
def update_progress(attempt_id: int):
    payload = progress_schema.load(request.get_json() or {})
    attempt = attempt_service.update_progress(attempt_id, user_id=current_user.id, **payload)
    return jsonify({"attempt": attempt_service.serialize_attempt(attempt)})


_TRANSITIONS = {
    "complete": attempt_service.complete_attempt,
    "pause": attempt_service.pause_attempt,
    "resume": attempt_service.resume_attempt,
    "abandon": attempt_service.abandon_attempt,
}


@exam_bp.post("/attempts/<int:attempt_id>/<action>")
@jwt_required()
def change_status(attempt_id: int, action: str):
    handler = _TRANSITIONS.get(action)
    if handler is None:
        abort(404)
    attempt = handler(attempt_id, current_user.id)
    return jsonify({"attempt": attempt_service.serialize_attempt(attempt)})


@exam_bp.get("/attempts/<int:attempt_id>/answers")
@jwt_required()
def list_answers(attempt_id: int):
    answers = answer_service.get_answers_for_attempt(attempt_id, current_user.id)
    return jsonify({"items": [answer_service.serialize_answer(answer) for answer in answers]})


@exam_bp.put("/attempts/<int:attempt_id>/answers")
@jwt_required()
def save_answer(attempt_id: int):
    payload = answer_schema.load(request.get_json() or {})
    question_id = payload.pop("question_id")
    answer = answer_service.save_answer(attempt_id, question_id, user_id=current_user.id, **payload)
    return jsonify({"answer": answer_service.serialize_answer(answer)})


@exam_bp.post("/attempts/<int:attempt_id>/flag")
@jwt_required()
def toggle_flag(attempt_id: int):
    payload = question_ref_schema.load(request.get_json() or {})
    answer = answer_service.toggle_flag(attempt_id, payload["question_id"], current_user.id)
    return jsonify({"answer": answer_service.serialize_answer(answer)})


@exam_bp.post("/attempts/<int:attempt_id>/crossed-out")
@jwt_required()
def update_crossed_out(attempt_id: int):
    payload = crossed_out_schema.load(request.get_json() or {})
    answer = answer_service.update_crossed_out(
        attempt_id, payload["question_id"], payload["crossed_out"], current_user.id
    )
    return jsonify({"answer": answer_service.serialize_answer(answer)})


@exam_bp.post("/attempts/<int:attempt_id>/submit")
@jwt_required()
def submit(attempt_id: int):
    graded = answer_service.submit_answers(attempt_id, current_user.id)
    attempt = attempt_service.complete_attempt(attempt_id, current_user.id)
    report = score_service.calculate_score(attempt.id, current_user.id)
    return jsonify({"graded": graded, "score": score_service.serialize_report(report)})


@exam_bp.get("/attempts/<int:attempt_id>/score")
@jwt_required()
def get_score(attempt_id: int):
    report = score_service.get_score_report(attempt_id, current_user.id)
    if report is None:
        abort(404)
    return jsonify({"score": score_service.serialize_report(report)})


@exam_bp.get("/scores")
@jwt_required()
def score_history():
    reports = score_service.get_score_history(current_user.id)
    return jsonify({"items": [score_service.serialize_report(report) for report in reports]})


@exam_bp.get("/stats")
@jwt_required()
def user_stats():
    return jsonify(
        {
            "stats": score_service.get_user_stats(current_user.id),
            "domains": score_service.get_domain_stats(current_user.id),
        }
    )


# Review of missed questions


@exam_bp.get("/wrong-answers")
@jwt_required()
def wrong_answers():
    params = wrong_answers_schema.load(request.args)
    return jsonify(attempt_service.get_wrong_answers(current_user.id, **params))


@exam_bp.get("/wrong-answers/count")
@jwt_required()
def wrong_answers_count():
    return jsonify(attempt_service.get_wrong_answers_count(current_user.id))


@exam_bp.get("/questions/<int:question_id>/previous-attempts")
@jwt_required()
def previous_attempts(question_id: int):
    params = previous_attempts_schema.load(request.args)
    return jsonify(
        attempt_service.get_previous_attempts(current_user.id, question_id, params["exclude_attempt_id"])
    )
