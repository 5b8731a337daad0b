"""Smoke tests for the Flask application factory."""

from __future__ import annotations

import pytest

from qbank_app import create_app


@pytest.fixture(scope="module")
def app():
    app = create_app("test")
    yield app


def test_app_creation(app):
    assert app is not None
    assert app.config["TESTING"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"].endswith(":memory:")


@pytest.mark.parametrize(
    "endpoint",
    [
        "/api/auth/ping",
        "/api/admin/ping",
        "/api/questions/ping",
        "/api/exam/ping",
        "/api/endless/ping",
    ],
)
def test_ping_endpoints(app, endpoint):
    client = app.test_client()
    response = client.get(endpoint)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "ok"


def test_cli_groups_registered(app):
    commands = app.cli.commands
    for name in ("seed-users", "generate", "dlq", "review", "questions"):
        assert name in commands
