"""Pytest configuration for ensuring project modules resolve correctly."""

from __future__ import annotations

import json
import sys
import threading
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from qbank_app import create_app
from qbank_app.extensions import db
from qbank_app.models import User
from qbank_app.services import question_service
from qbank_app.utils.security import hash_password

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeAIClient:
    """Stands in for the provider client; replies are consumed in order."""

    def __init__(self, replies=None, image=PNG_BYTES):
        self.replies = list(replies or [])
        self.image = image
        self.chat_calls = []
        self.image_calls = []
        self._lock = threading.Lock()

    def queue(self, *replies):
        self.replies.extend(replies)

    def chat_text(self, messages, model=None, temperature=0.2):
        with self._lock:
            self.chat_calls.append(messages)
            if not self.replies:
                raise RuntimeError("no scripted reply left")
            reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply if isinstance(reply, str) else json.dumps(reply)

    def generate_image(self, prompt, size=None):
        with self._lock:
            self.image_calls.append(prompt)
        if isinstance(self.image, Exception):
            raise self.image
        return self.image


@pytest.fixture()
def app_with_db(tmp_path):
    app = create_app("test")
    app.config["IMAGE_STORAGE_DIR"] = str(tmp_path / "images")
    app.config["GENERATION_CONCURRENCY"] = 1
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app_with_db):
    return app_with_db.test_client()


@pytest.fixture()
def fake_ai(app_with_db):
    fake = FakeAIClient()
    app_with_db.extensions["ai_client"] = fake
    return fake


@pytest.fixture()
def student_token(client):
    register = client.post(
        "/api/auth/register",
        json={"email": "student@example.com", "password": "StrongPass123!", "username": "student1"},
    )
    assert register.status_code == 201, register.get_json()
    return register.get_json()["access_token"]


@pytest.fixture()
def student_id(app_with_db, student_token):
    return User.query.filter_by(email="student@example.com").first().id


@pytest.fixture()
def admin_token(app_with_db, client):
    admin = User(
        email="admin@example.com",
        username="admin1",
        password_hash=hash_password("AdminPass123!"),
        role="admin",
    )
    db.session.add(admin)
    db.session.commit()
    resp = client.post(
        "/api/auth/login",
        json={"identifier": "admin@example.com", "password": "AdminPass123!"},
    )
    return resp.get_json()["access_token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_question(app_with_db):
    counter = {"n": 0}

    def _make(
        category="math",
        domain="algebra",
        skill="linear_equations",
        correct_answer="B",
        review_status="verified",
        factors=None,
        **kwargs,
    ):
        counter["n"] += 1
        factors = factors if factors is not None else {"reasoningSteps": 0.5, "conceptualDepth": 0.5}
        return question_service.create_agent_question(
            category=category,
            domain=domain,
            skill=skill,
            prompt=kwargs.pop("prompt", f"Question {counter['n']}: solve for x."),
            correct_answer=correct_answer,
            options=[
                {"key": key, "content": f"choice {key}"} for key in ("A", "B", "C", "D")
            ],
            explanation="Because it balances.",
            wrong_answer_explanations={"A": "Sign error."},
            math_difficulty=factors if category == "math" else None,
            rw_difficulty=factors if category == "reading_writing" else None,
            review_status=review_status,
            **kwargs,
        )

    return _make
