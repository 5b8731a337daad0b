"""Storage for generated and imported figure images."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Optional, Tuple
from uuid import uuid4

from flask import current_app
from werkzeug.exceptions import NotFound

from ..extensions import db
from ..models import Image
from ..utils.signed_urls import sign_image_token

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def detect_image_mime(data: bytes) -> str:
    """Sniff the mime type from magic bytes; unknown data is treated as PNG."""

    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def _storage_root() -> Path:
    root = Path(current_app.config["IMAGE_STORAGE_DIR"])
    root.mkdir(parents=True, exist_ok=True)
    return root


def store_image(
    data: bytes,
    *,
    alt_text: str = "",
    width: int,
    height: int,
    mime_type: str | None = None,
    commit: bool = True,
) -> Image:
    if not data:
        raise ValueError("Image payload is empty")
    mime_type = mime_type or detect_image_mime(data)
    path = _storage_root() / f"{uuid4().hex}{_EXTENSIONS.get(mime_type, '.png')}"
    path.write_bytes(data)
    image = Image(
        storage_path=str(path),
        mime_type=mime_type,
        width=width,
        height=height,
        aspect_ratio=round(width / height, 4) if height else 1.0,
        alt_text=alt_text or "",
    )
    db.session.add(image)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    current_app.logger.info(
        "Stored image",
        extra={"event": "image.stored", "image_id": image.id, "bytes": len(data), "mime": mime_type},
    )
    return image


def get_image(image_id: int) -> Image:
    image = db.session.get(Image, image_id)
    if image is None:
        raise NotFound(f"Image {image_id} not found")
    return image


def load_image_bytes(image: Image) -> Optional[bytes]:
    path = Path(image.storage_path)
    if not path.exists():
        return None
    try:
        return path.read_bytes()
    except OSError as exc:
        current_app.logger.warning("Unable to read image %s: %s", image.id, exc)
        return None


def image_as_base64(image: Image | None) -> Optional[Tuple[str, str]]:
    """Return ``(base64, mime)`` for multimodal prompts, or None when unreadable."""

    if image is None:
        return None
    data = load_image_bytes(image)
    if data is None:
        return None
    return base64.b64encode(data).decode("ascii"), image.mime_type or detect_image_mime(data)


def serialize_image(image: Image | None, *, url: str | None = None) -> Optional[dict]:
    if image is None:
        return None
    payload = {
        "id": image.id,
        "mime_type": image.mime_type,
        "width": image.width,
        "height": image.height,
        "aspect_ratio": image.aspect_ratio,
        "alt_text": image.alt_text,
    }
    if url:
        payload["url"] = url
    return payload


def signed_image_url(image_id: int | None) -> Optional[str]:
    if image_id is None:
        return None
    return f"/api/questions/images/{image_id}?sig={sign_image_token(image_id)}"
