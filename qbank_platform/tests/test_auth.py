"""Tests for the auth blueprint."""

from __future__ import annotations

from qbank_app.extensions import db
from qbank_app.models import User, UserPreference

from conftest import auth_headers


def test_register_creates_user_and_preference(client):
    payload = {
        "email": "Student@example.com",
        "password": "StrongPass123!",
        "username": "Student_One",
        "target_score": 1400,
    }
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["access_token"]
    assert data["user"]["email"] == "student@example.com"
    assert data["user"]["username"] == "student_one"
    assert data["user"]["role"] == "student"
    assert data["user"]["preference"]["daily_question_target"] == 10

    user = User.query.filter_by(email="student@example.com").first()
    assert UserPreference.query.filter_by(user_id=user.id).count() == 1


def test_register_duplicate_email_returns_conflict(client):
    payload = {"email": "dup@example.com", "password": "StrongPass123!"}
    client.post("/api/auth/register", json=payload)
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "Email already registered"


def test_register_duplicate_username_returns_conflict(client):
    client.post("/api/auth/register", json={"email": "a@example.com", "password": "StrongPass123!", "username": "sam"})
    resp = client.post(
        "/api/auth/register", json={"email": "b@example.com", "password": "StrongPass123!", "username": "SAM"}
    )
    assert resp.status_code == 409


def test_register_validates_payload(client):
    resp = client.post("/api/auth/register", json={"email": "not-an-email", "password": "short"})
    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert "email" in errors
    assert "password" in errors


def test_login_by_email_and_username(client):
    client.post(
        "/api/auth/register",
        json={"email": "login@example.com", "password": "StrongPass123!", "username": "loginuser"},
    )
    by_email = client.post(
        "/api/auth/login", json={"identifier": "login@example.com", "password": "StrongPass123!"}
    )
    assert by_email.status_code == 200
    assert by_email.get_json()["user"]["email"] == "login@example.com"

    by_username = client.post("/api/auth/login", json={"identifier": "LoginUser", "password": "StrongPass123!"})
    assert by_username.status_code == 200
    assert "access_token" in by_username.get_json()


def test_login_invalid_credentials(client):
    resp = client.post(
        "/api/auth/login",
        json={"identifier": "missing@example.com", "password": "nope"},
    )
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid email or password"


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401


def test_me_returns_current_user(client, student_token):
    resp = client.get("/api/auth/me", headers=auth_headers(student_token))
    assert resp.status_code == 200
    assert resp.get_json()["user"]["email"] == "student@example.com"


def test_admin_routes_forbid_students(client, student_token):
    resp = client.get("/api/admin/dlq/stats", headers=auth_headers(student_token))
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Forbidden"


def test_admin_routes_allow_admins(client, admin_token):
    resp = client.get("/api/admin/dlq/stats", headers=auth_headers(admin_token))
    assert resp.status_code == 200
    assert resp.get_json()["generation"]["total"] == 0


def test_deleted_user_token_is_rejected(client, student_token):
    user = User.query.filter_by(email="student@example.com").first()
    db.session.delete(user)
    db.session.commit()
    resp = client.get("/api/auth/me", headers=auth_headers(student_token))
    assert resp.status_code == 401
