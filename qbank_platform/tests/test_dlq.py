"""Tests for the generation and review dead-letter queues."""

from __future__ import annotations

import pytest

from qbank_app.services import dlq_service

from conftest import auth_headers


def _queue(pipeline="math", **kwargs):
    return dlq_service.add_to_dlq(
        pipeline,
        {"domain": "algebra", "skill": "linear_equations"},
        "model timed out",
        "problem_generation",
        **kwargs,
    )


def test_add_to_dlq_defaults(app_with_db):
    item = _queue(batch_id="math-1")
    assert item.status == "pending"
    assert item.retry_count == 0
    assert item.max_retries == 3
    assert item.domain == "algebra"
    assert item.batch_id == "math-1"


def test_unknown_pipeline_rejected(app_with_db):
    with pytest.raises(ValueError):
        _queue(pipeline="poetry")


def test_retry_failure_cycle_reaches_permanent_failure(app_with_db):
    item = _queue()
    dlq_service.mark_retrying(item)
    assert item.status == "retrying"
    assert item.retry_count == 1

    dlq_service.mark_failed(item, "still broken")
    assert item.status == "pending"
    assert item.retry_count == 2
    assert item.error == "still broken"

    dlq_service.mark_retrying(item)
    dlq_service.mark_failed(item, "broken again")
    assert item.status == "failed_permanently"
    assert dlq_service.get_pending("math") == []


@pytest.mark.parametrize(
    "retry_count,max_retries,expected_status",
    [(2, 3, "failed_permanently"), (0, 3, "pending"), (4, 5, "failed_permanently"), (1, 5, "pending")],
)
def test_mark_failed_status_depends_on_remaining_retries(app_with_db, retry_count, max_retries, expected_status):
    item = _queue()
    item.retry_count = retry_count
    item.max_retries = max_retries

    dlq_service.mark_failed(item, "parse error")
    assert item.retry_count == retry_count + 1
    assert item.status == expected_status


def test_mark_succeeded_records_created_ids(app_with_db, make_question):
    item = _queue()
    question = make_question()
    dlq_service.mark_retrying(item)
    dlq_service.mark_succeeded(item, question.id)
    assert item.status == "succeeded"
    assert item.question_id == question.id


def test_stats_and_clear(app_with_db, make_question):
    first = _queue()
    _queue()
    _queue(pipeline="reading")
    dlq_service.mark_succeeded(first, make_question().id)

    stats = dlq_service.get_stats()
    assert stats["total"] == 3
    assert stats["succeeded"] == 1
    assert stats["pending"] == 2
    assert stats["by_pipeline"] == {"math": 2, "reading": 1}
    assert dlq_service.get_stats("math")["total"] == 2

    assert dlq_service.clear_succeeded("math") == 1
    assert dlq_service.get_stats()["total"] == 2
    assert dlq_service.clear_all("reading") == 1
    assert dlq_service.get_stats()["total"] == 1


def test_pending_is_oldest_first(app_with_db):
    first = _queue()
    second = _queue()
    assert [item.id for item in dlq_service.get_pending("math", limit=5)] == [first.id, second.id]
    assert [item.id for item in dlq_service.get_pending("math", limit=1)] == [first.id]


def test_review_dlq_cycle(app_with_db, make_question):
    question = make_question()
    item = dlq_service.add_review_dlq(question.id, "review timed out")
    with pytest.raises(ValueError):
        dlq_service.add_review_dlq(question.id, "oops", review_type="vibes_check")
    dlq_service.mark_review_retrying(item)
    dlq_service.mark_review_failed(item, "again")
    assert item.status == "pending"
    dlq_service.mark_review_retrying(item)
    dlq_service.mark_review_succeeded(item)
    stats = dlq_service.get_review_dlq_stats()
    assert stats["total"] == 1
    assert stats["succeeded"] == 1
    assert stats["by_review_type"] == {"initial_verification": 1}


def test_dlq_admin_endpoints(client, admin_token, app_with_db):
    _queue()
    recent = client.get("/api/admin/dlq/recent?pipeline=math", headers=auth_headers(admin_token))
    assert recent.status_code == 200
    assert recent.get_json()["items"][0]["error_stage"] == "problem_generation"

    bad = client.get("/api/admin/dlq/recent?pipeline=poetry", headers=auth_headers(admin_token))
    assert bad.status_code == 400

    cleared = client.post(
        "/api/admin/dlq/clear", json={"pipeline": "math", "only_succeeded": False}, headers=auth_headers(admin_token)
    )
    assert cleared.status_code == 200
    assert cleared.get_json()["deleted"] == 1
