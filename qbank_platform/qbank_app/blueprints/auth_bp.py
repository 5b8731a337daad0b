"""Authentication endpoints (register/login/me)."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from marshmallow import ValidationError
from sqlalchemy import func

from ..extensions import db
from ..models import User, UserPreference
from ..schemas import LoginSchema, RegisterSchema, UserSchema
from ..utils import generate_access_token, hash_password, verify_password
from ..utils.dates import utcnow

auth_bp = Blueprint("auth_bp", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
user_schema = UserSchema()


@auth_bp.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    return jsonify({"errors": err.messages}), HTTPStatus.BAD_REQUEST


@auth_bp.get("/ping")
def ping():
    return jsonify({"module": "auth", "status": "ok"})


@auth_bp.post("/register")
def register():
    payload = register_schema.load(request.get_json() or {})
    email = payload["email"].lower()
    if User.query.filter_by(email=email).first():
        return jsonify({"message": "Email already registered"}), HTTPStatus.CONFLICT

    username = None
    if payload.get("username"):
        username = payload["username"].lower()
        if User.query.filter(func.lower(User.username) == username).first():
            return jsonify({"message": "Username already taken"}), HTTPStatus.CONFLICT

    user = User(
        email=email,
        username=username,
        name=payload.get("name"),
        password_hash=hash_password(payload["password"]),
        role="student",
        target_score=payload.get("target_score"),
        test_date=payload.get("test_date"),
    )
    user.preference = UserPreference()
    db.session.add(user)
    db.session.commit()

    return (
        jsonify({"access_token": generate_access_token(user), "user": user_schema.dump(user)}),
        HTTPStatus.CREATED,
    )


@auth_bp.post("/login")
def login():
    payload = login_schema.load(request.get_json() or {})
    identifier = payload["identifier"].strip().lower()
    if "@" in identifier:
        user = User.query.filter_by(email=identifier).first()
    else:
        user = User.query.filter(func.lower(User.username) == identifier).first()
    if not user or not verify_password(payload["password"], user.password_hash):
        return jsonify({"message": "Invalid email or password"}), HTTPStatus.UNAUTHORIZED

    user.last_active_at = utcnow()
    db.session.commit()
    return jsonify({"access_token": generate_access_token(user), "user": user_schema.dump(user)})


@auth_bp.get("/me")
@jwt_required()
def me():
    if current_user is None:
        return jsonify({"message": "User not found"}), HTTPStatus.NOT_FOUND
    return jsonify({"user": user_schema.dump(current_user)})
