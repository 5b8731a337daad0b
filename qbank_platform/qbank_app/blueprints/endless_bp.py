"""Endless mode: adaptive practice with streaks, mastery and daily goals."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from ..schemas import DailyGoalSchema, EndlessAnswerSchema, EndlessStartSchema
from ..services import achievement_service, endless_service

endless_bp = Blueprint("endless_bp", __name__)

start_schema = EndlessStartSchema()
answer_schema = EndlessAnswerSchema()
daily_goal_schema = DailyGoalSchema()


@endless_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@endless_bp.errorhandler(HTTPException)
def handle_http_error(err: HTTPException):
    return jsonify({"message": err.description}), err.code


@endless_bp.get("/ping")
def ping():
    return jsonify({"module": "endless", "status": "ok"})


@endless_bp.post("/sessions")
@jwt_required()
def start_session():
    payload = start_schema.load(request.get_json() or {})
    result = endless_service.start_endless_session(current_user.id, payload["category"], payload["domain"])
    status = HTTPStatus.OK if result["is_resumed"] else HTTPStatus.CREATED
    return jsonify(result), status


@endless_bp.get("/sessions/current")
@jwt_required()
def current_session():
    return jsonify({"session": endless_service.get_current_endless_attempt(current_user.id)})


@endless_bp.get("/sessions/<int:session_id>")
@jwt_required()
def session_state(session_id: int):
    return jsonify(endless_service.get_session_state(session_id, current_user.id))


@endless_bp.get("/sessions/<int:session_id>/question")
@jwt_required()
def current_question(session_id: int):
    return jsonify({"current": endless_service.get_current_question(session_id, current_user.id)})


@endless_bp.post("/sessions/<int:session_id>/answer")
@jwt_required()
def submit_answer(session_id: int):
    payload = answer_schema.load(request.get_json() or {})
    result = endless_service.submit_endless_answer(
        session_id,
        payload["question_id"],
        payload["selected_answer"],
        payload["time_spent_ms"],
        user_id=current_user.id,
    )
    return jsonify(result)


@endless_bp.post("/sessions/<int:session_id>/end")
@jwt_required()
def end_session(session_id: int):
    return jsonify({"summary": endless_service.end_endless_session(session_id, current_user.id)})


@endless_bp.get("/daily-goal")
@jwt_required()
def daily_goal():
    return jsonify(endless_service.get_daily_goal_progress(current_user.id))


@endless_bp.put("/daily-goal")
@jwt_required()
def set_daily_goal():
    payload = daily_goal_schema.load(request.get_json() or {})
    target = endless_service.set_daily_goal_target(current_user.id, payload["target"])
    return jsonify({"target": target})


@endless_bp.get("/streaks")
@jwt_required()
def streaks():
    return jsonify(endless_service.get_streak_stats(current_user.id))


@endless_bp.get("/mastery")
@jwt_required()
def mastery():
    return jsonify(
        {
            "mastery": endless_service.get_skill_mastery_overview(current_user.id),
            "due_reviews": endless_service.get_due_review_count(current_user.id),
        }
    )


@endless_bp.get("/achievements")
@jwt_required()
def achievements():
    return jsonify(
        {
            "items": achievement_service.get_user_achievements(current_user.id),
            "stats": achievement_service.get_achievement_stats(current_user.id),
        }
    )
