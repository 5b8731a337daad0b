"""Tests for the Flask CLI commands."""

from __future__ import annotations

import json

from qbank_app.models import GenerationDLQItem, Question, User
from qbank_app.services import dlq_service


def _runner(app):
    return app.test_cli_runner()


def test_seed_users_is_idempotent(app_with_db):
    runner = _runner(app_with_db)
    result = runner.invoke(args=["seed-users"])
    assert result.exit_code == 0, result.output
    assert "Seeded accounts: admin, student" in result.output
    assert User.query.filter_by(role="admin").count() == 1

    again = runner.invoke(args=["seed-users"])
    assert "nothing to do" in again.output
    assert User.query.count() == 2


def test_seed_users_can_skip_student(app_with_db):
    result = _runner(app_with_db).invoke(args=["seed-users", "--skip-student"])
    assert "Seeded accounts: admin" in result.output
    assert User.query.count() == 1


def _document():
    return {
        "questions": [
            {
                "question": {
                    "category": "math",
                    "domain": "algebra",
                    "skill": "linear_equations",
                    "prompt": "If 3x = 12, what is x?",
                    "correct_answer": "A",
                    "review_status": "verified",
                },
                "options": [{"key": key, "content": value} for key, value in zip("ABCD", ("4", "3", "9", "36"))],
                "explanation": {"correct_explanation": "Divide by 3."},
            }
        ]
    }


def test_questions_import_validate_export(app_with_db, tmp_path):
    runner = _runner(app_with_db)
    source = tmp_path / "questions.json"
    source.write_text(json.dumps(_document()), encoding="utf-8")

    validated = runner.invoke(args=["questions", "validate", str(source)])
    assert validated.exit_code == 0, validated.output
    assert '"valid": true' in validated.output

    dry = runner.invoke(args=["questions", "import", str(source), "--dry-run"])
    assert '"questions_imported": 1' in dry.output
    assert Question.query.count() == 0

    imported = runner.invoke(args=["questions", "import", str(source)])
    assert imported.exit_code == 0, imported.output
    assert Question.query.count() == 1

    target = tmp_path / "export.json"
    exported = runner.invoke(args=["questions", "export", str(target), "--no-images"])
    assert "Exported 1 questions" in exported.output
    document = json.loads(target.read_text(encoding="utf-8"))
    assert document["questions"][0]["question"]["prompt"] == "If 3x = 12, what is x?"


def test_questions_validate_fails_on_errors(app_with_db, tmp_path):
    broken = _document()
    broken["questions"][0]["options"] = []
    source = tmp_path / "broken.json"
    source.write_text(json.dumps(broken), encoding="utf-8")
    result = _runner(app_with_db).invoke(args=["questions", "validate", str(source)])
    assert result.exit_code != 0
    assert "Import document has errors." in result.output


def test_dlq_stats_and_clear(app_with_db):
    item = dlq_service.add_to_dlq("math", {"domain": "algebra"}, "boom", "problem_generation")
    dlq_service.add_to_dlq("reading", {"domain": "craft_and_structure"}, "boom", "passage_generation")
    dlq_service.mark_succeeded(item)
    runner = _runner(app_with_db)

    stats = runner.invoke(args=["dlq", "stats", "--pipeline", "math"])
    assert stats.exit_code == 0, stats.output
    assert json.loads(stats.stdout)["generation"]["total"] == 1

    cleared = runner.invoke(args=["dlq", "clear"])
    assert "Deleted 1 DLQ items." in cleared.output
    everything = runner.invoke(args=["dlq", "clear", "--all"])
    assert "Deleted 1 DLQ items." in everything.output
    assert GenerationDLQItem.query.count() == 0


def test_dlq_retry_rejects_unknown_pipeline(app_with_db):
    result = _runner(app_with_db).invoke(args=["dlq", "retry", "poetry"])
    assert result.exit_code != 0
