"""Tests for stored images and their signed download URLs."""

from __future__ import annotations

from qbank_app.services import image_service
from qbank_app.utils.signed_urls import sign_image_token

from conftest import PNG_BYTES

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


def _stored(app_with_db):
    return image_service.store_image(PNG_BYTES, alt_text="A line graph", width=800, height=600)


def test_store_image_writes_file_and_row(app_with_db):
    image = _stored(app_with_db)
    assert image.mime_type == "image/png"
    assert image.aspect_ratio == round(800 / 600, 4)
    assert image_service.load_image_bytes(image) == PNG_BYTES
    encoded, mime = image_service.image_as_base64(image)
    assert mime == "image/png"
    assert encoded


def test_detect_mime_and_empty_payload(app_with_db):
    assert image_service.detect_image_mime(JPEG_BYTES) == "image/jpeg"
    assert image_service.detect_image_mime(b"GIF89a....") == "image/gif"
    try:
        image_service.store_image(b"", width=1, height=1)
    except ValueError as exc:
        assert "empty" in str(exc)
    else:
        raise AssertionError("empty payload was accepted")


def test_signed_url_serves_image(client, app_with_db):
    image = _stored(app_with_db)
    url = image_service.signed_image_url(image.id)
    resp = client.get(url)
    assert resp.status_code == 200
    assert resp.data == PNG_BYTES
    assert resp.headers["Content-Type"] == "image/png"
    assert resp.headers["Cache-Control"].startswith("private")


def test_missing_signature_is_unauthorized(client, app_with_db):
    image = _stored(app_with_db)
    assert client.get(f"/api/questions/images/{image.id}").status_code == 401


def test_tampered_or_foreign_signature_is_forbidden(client, app_with_db):
    image = _stored(app_with_db)
    other = _stored(app_with_db)
    assert client.get(f"/api/questions/images/{image.id}?sig=garbage").status_code == 403
    foreign = sign_image_token(other.id)
    assert client.get(f"/api/questions/images/{image.id}?sig={foreign}").status_code == 403


def test_expired_signature_is_unauthorized(client, app_with_db):
    image = _stored(app_with_db)
    url = image_service.signed_image_url(image.id)
    app_with_db.config["IMAGE_URL_TTL_SEC"] = -1
    assert client.get(url).status_code == 401
