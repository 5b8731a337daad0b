"""Tests for question import, validation and export."""

from __future__ import annotations

import base64
import copy

from qbank_app.extensions import db
from qbank_app.models import Image, Passage, Question
from qbank_app.services import export_service, import_service

from conftest import PNG_BYTES, auth_headers

PASSAGE_TEXT = "Coral reefs cover less than one percent of the ocean floor yet shelter a quarter of marine species."


def _record(prompt, *, passage_id=None, figure=None, correct="B", skill="central_ideas_and_details"):
    return {
        "question": {
            "type": "multiple_choice",
            "category": "reading_writing",
            "domain": "information_and_ideas",
            "skill": skill,
            "prompt": prompt,
            "correct_answer": correct,
            "rw_difficulty": {"passageComplexity": 0.6, "inferenceDepth": 0.4},
            "review_status": "verified",
            "figure_type": "graph" if figure else None,
            "figure_image_id": figure,
        },
        "options": [{"key": key, "content": f"Option {key}", "order": i} for i, key in enumerate("ABCD")],
        "passage_id": passage_id,
        "explanation": {
            "correct_explanation": "The passage says so.",
            "wrong_answer_explanations": {"A": "Too broad."},
        },
    }


def _document():
    return {
        "passages": {"p1": {"content": PASSAGE_TEXT, "passage_type": "natural_science", "title": "Reefs"}},
        "images": {
            "img1": {
                "base64": base64.b64encode(PNG_BYTES).decode("ascii"),
                "mime_type": "image/png",
                "width": 640,
                "height": 480,
                "alt_text": "Reef coverage chart",
            }
        },
        "questions": [
            _record("What is the main idea of the text?", passage_id="p1"),
            _record("Which choice best describes the chart?", passage_id="p1", figure="img1"),
        ],
    }


def test_import_creates_questions_passage_and_image(app_with_db):
    summary = import_service.import_questions(_document())
    assert summary["questions_imported"] == 2
    assert summary["passages_created"] == 1
    assert summary["images_created"] == 1
    assert summary["errors"] == []
    assert summary["dry_run"] is False

    passage = Passage.query.one()
    assert passage.used_in_question_count == 2
    charted = Question.query.filter(Question.figure_image_id.isnot(None)).one()
    assert charted.figure_type == "graph"
    assert db.session.get(Image, charted.figure_image_id).width == 640
    assert charted.explanation.correct_explanation == "The passage says so."


def test_reimport_reuses_passage_and_skips_existing(app_with_db):
    import_service.import_questions(_document())
    summary = import_service.import_questions(_document(), skip_existing=True)
    assert summary["questions_skipped"] == 2
    assert summary["questions_imported"] == 0
    assert Question.query.count() == 2

    fresh = _document()
    fresh["questions"] = [_record("A brand new prompt about reefs?", passage_id="p1")]
    again = import_service.import_questions(fresh)
    assert again["passages_reused"] == 1
    assert Passage.query.count() == 1


def test_dry_run_writes_nothing(app_with_db):
    summary = import_service.import_questions(_document(), dry_run=True)
    assert summary["questions_imported"] == 2
    assert summary["dry_run"] is True
    assert Question.query.count() == 0
    assert Passage.query.count() == 0
    assert Image.query.count() == 0


def test_bad_record_does_not_abort_batch(app_with_db):
    document = _document()
    document["questions"].insert(0, _record("Where is the figure?", figure="missing"))
    summary = import_service.import_questions(document)
    assert summary["questions_imported"] == 2
    assert summary["errors"][0]["index"] == 0
    assert "missing" in summary["errors"][0]["error"]


def test_validate_reports_structural_errors(app_with_db):
    assert import_service.validate_import_records(_document())["valid"] is True

    broken = copy.deepcopy(_document())
    broken["questions"][0]["options"] = broken["questions"][0]["options"][:3]
    broken["questions"][1]["question"]["category"] = "art"
    broken["questions"].append(_record("No passage here?", correct="E"))
    report = import_service.validate_import_records(broken)
    assert report["valid"] is False
    joined = " ".join(report["errors"])
    assert "expected 4 options" in joined
    assert "invalid category" in joined
    assert "is not an option" in joined
    assert any("usually requires a passage" in warning for warning in report["warnings"])
    assert report["stats"]["total"] == 3


def test_export_round_trip(app_with_db):
    import_service.import_questions(_document())
    document = export_service.export_document()
    assert document["summary"]["total_questions"] == 2
    assert document["summary"]["total_passages"] == 1
    assert document["summary"]["total_images"] == 1
    assert document["summary"]["by_category"]["reading_writing"] == 2

    stats = export_service.export_stats()
    assert stats["total_verified"] == 2
    assert stats["with_figures"] == 1

    assert import_service.validate_import_records(document)["valid"] is True
    again = import_service.import_questions(document, skip_existing=True)
    assert again["questions_skipped"] == 2


def test_paired_passages_survive_import_and_export(app_with_db):
    document = _document()
    document["passages"]["p2"] = {
        "content": "Reef biologists dispute how much of that diversity is endemic.",
        "title": "Text 2",
    }
    paired = _record("How would the author of Text 2 respond?", passage_id="p1", skill="cross_text_connections")
    paired["secondary_passage_id"] = "p2"
    document["questions"] = [paired]

    summary = import_service.import_questions(document)
    assert summary["passages_created"] == 2
    question = Question.query.one()
    assert question.passage.content == PASSAGE_TEXT
    assert question.secondary_passage.title == "Text 2"
    assert question.secondary_passage.used_in_question_count == 1

    exported = export_service.export_document()
    record = exported["questions"][0]
    assert record["secondary_passage_id"] == str(question.secondary_passage_id)
    assert exported["passages"][record["secondary_passage_id"]]["content"].startswith("Reef biologists")

    del exported["passages"][record["secondary_passage_id"]]
    report = import_service.validate_import_records(exported)
    assert report["valid"] is False
    assert any("not included" in error for error in report["errors"])


def test_export_pagination(app_with_db, make_question):
    for _ in range(3):
        make_question()
    make_question(review_status="pending")
    page = export_service.export_verified(limit=2, offset=0)
    assert page["total"] == 3
    assert len(page["questions"]) == 2
    assert page["next_offset"] == 2
    last = export_service.export_verified(limit=2, offset=2)
    assert last["has_more"] is False
    assert last["next_offset"] is None


def test_import_and_export_endpoints(client, admin_token):
    resp = client.post(
        "/api/admin/questions/import",
        json={"document": _document(), "dry_run": False},
        headers=auth_headers(admin_token),
    )
    assert resp.status_code == 200
    assert resp.get_json()["questions_imported"] == 2

    validated = client.post(
        "/api/admin/questions/validate", json={"document": []}, headers=auth_headers(admin_token)
    )
    assert validated.get_json()["valid"] is True

    exported = client.get("/api/admin/questions/export?limit=1", headers=auth_headers(admin_token))
    assert exported.get_json()["has_more"] is True
    bad = client.get("/api/admin/questions/export?limit=0", headers=auth_headers(admin_token))
    assert bad.status_code == 400
