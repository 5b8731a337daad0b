"""Short-lived signed tokens for stored image downloads."""

from __future__ import annotations

from typing import Any, Dict

from flask import current_app
from itsdangerous import BadSignature, URLSafeTimedSerializer


def _serializer() -> URLSafeTimedSerializer:
    cfg = current_app.config
    secret = cfg.get("IMAGE_URL_SECRET") or cfg.get("JWT_SECRET_KEY")
    return URLSafeTimedSerializer(secret_key=secret, salt=cfg.get("IMAGE_URL_SALT", "image-url"))


def sign_image_token(image_id: int) -> str:
    return _serializer().dumps({"iid": int(image_id)})


def verify_image_token(token: str, image_id: int) -> Dict[str, Any]:
    """Return the token payload or raise ``BadSignature`` (``SignatureExpired`` when stale)."""

    max_age = int(current_app.config.get("IMAGE_URL_TTL_SEC", 1800))
    payload = _serializer().loads(token, max_age=max_age)
    if int(payload.get("iid", -1)) != int(image_id):
        raise BadSignature("Token does not match image")
    return payload
