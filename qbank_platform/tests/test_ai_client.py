"""Tests for the provider HTTP client's retry handling."""

from __future__ import annotations

import base64

import pytest
import requests

from qbank_app.services import ai_client as ai_client_module
from qbank_app.services.ai_client import AIClient, AIClientError, get_ai_client


class _Response:
    def __init__(self, status, body=None, headers=None):
        self.status_code = status
        self.ok = 200 <= status < 300
        self._body = body or {}
        self.headers = headers or {}
        self.text = str(self._body)

    def json(self):
        return self._body


@pytest.fixture()
def scripted_post(app_with_db, monkeypatch):
    app_with_db.config["AI_API_RETRY_BACKOFF"] = 0
    app_with_db.config["AI_API_MAX_RETRIES"] = 3
    monkeypatch.setattr(ai_client_module.time, "sleep", lambda _delay: None)
    calls = []
    responses = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "json": json})
        reply = responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(ai_client_module.requests, "post", fake_post)
    return calls, responses


def _client():
    return AIClient(api_key="sk-test", api_base="https://llm.example/v1/", default_model="gpt-test")


def test_chat_text_retries_transient_failures(scripted_post):
    calls, responses = scripted_post
    responses.extend(
        [
            _Response(503),
            requests.ConnectionError("reset"),
            _Response(200, {"choices": [{"message": {"content": "ok"}}]}),
        ]
    )
    assert _client().chat_text([{"role": "user", "content": "hi"}]) == "ok"
    assert len(calls) == 3
    assert calls[0]["url"] == "https://llm.example/v1/chat/completions"
    assert calls[0]["json"]["model"] == "gpt-test"


def test_client_errors_are_not_retried(scripted_post):
    calls, responses = scripted_post
    responses.append(_Response(400, {"error": "bad request"}))
    with pytest.raises(AIClientError) as excinfo:
        _client().chat_text([])
    assert excinfo.value.status == 400
    assert len(calls) == 1


def test_retries_give_up_after_limit(scripted_post):
    calls, responses = scripted_post
    responses.extend([_Response(429, headers={"Retry-After": "1"})] * 3)
    with pytest.raises(AIClientError):
        _client().chat_text([])
    assert len(calls) == 3


def test_generate_image_decodes_payload(scripted_post):
    _, responses = scripted_post
    responses.append(_Response(200, {"data": [{"b64_json": base64.b64encode(b"png").decode()}]}))
    assert _client().generate_image("a bar chart") == b"png"


def test_missing_key_and_cached_client(app_with_db):
    with pytest.raises(AIClientError):
        AIClient(api_key="", api_base="x", default_model="m").chat([])
    assert get_ai_client() is get_ai_client()
