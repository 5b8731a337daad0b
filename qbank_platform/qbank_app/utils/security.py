"""Security helpers (password hashing, JWT tokens, role checks)."""

from __future__ import annotations

from functools import wraps
from http import HTTPStatus
from typing import Any, Dict

from flask import jsonify
from flask_jwt_extended import create_access_token, current_user, jwt_required
from werkzeug.security import check_password_hash, generate_password_hash


def hash_password(plain_password: str) -> str:
    return generate_password_hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, plain_password)


def generate_access_token(user) -> str:
    """Create a JWT access token embedding the user's ID and role."""

    claims: Dict[str, Any] = {"role": user.role}
    return create_access_token(identity=str(user.id), additional_claims=claims)


def is_admin(user=None) -> bool:
    user = user if user is not None else current_user
    return user is not None and getattr(user, "role", None) == "admin"


def admin_required(view):
    """Require a valid JWT belonging to an admin account."""

    @wraps(view)
    @jwt_required()
    def wrapper(*args, **kwargs):
        if not is_admin():
            return jsonify({"message": "Forbidden"}), HTTPStatus.FORBIDDEN
        return view(*args, **kwargs)

    return wrapper
