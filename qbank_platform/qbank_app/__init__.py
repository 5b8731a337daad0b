"""qbank_app package – application factory and blueprint registration."""

from __future__ import annotations

import json
import os
from pathlib import Path
from time import perf_counter

import click
from flask import Flask, g, jsonify, request
from flask_jwt_extended import JWTManager
from sqlalchemy import event

from config import resolve_config
from .blueprints import BLUEPRINTS
from .extensions import db, init_extensions, jwt
from .logging_config import assign_request_id, configure_logging
from .metrics import record_request
from .utils import hash_password


def create_app(config_name: str | None = None) -> Flask:
    """Application factory used by both CLI and runtime servers."""

    app = Flask(__name__)
    _configure_app(app, config_name)
    configure_logging(app)
    init_extensions(app)
    _configure_jwt(jwt)
    _configure_sqlite_engine(app)
    _register_blueprints(app)
    _register_shellcontext(app)
    _register_cli(app)
    _register_bootstrap(app)
    _register_request_hooks(app)

    return app


def _configure_app(app: Flask, config_name: str | None) -> None:
    env_name = config_name or os.getenv("FLASK_CONFIG")
    app.config.from_object(resolve_config(env_name))


def _register_blueprints(app: Flask) -> None:
    for blueprint, prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)


def _register_shellcontext(app: Flask) -> None:
    from . import models

    @app.shell_context_processor
    def shell_context():
        return {"db": db, "models": models}


def _configure_jwt(jwt_manager: JWTManager) -> None:
    from .models import User

    @jwt_manager.user_lookup_loader
    def user_lookup_callback(_jwt_header, jwt_data):
        identity = jwt_data.get("sub")
        try:
            return db.session.get(User, int(identity))
        except (TypeError, ValueError):
            return None

    @jwt_manager.user_lookup_error_loader
    def user_lookup_error_callback(_jwt_header, _jwt_data):
        return jsonify({"message": "User not found"}), 401

    @jwt_manager.expired_token_loader
    def expired_token_callback(jwt_header, jwt_data):
        return jsonify({"message": "Token has expired"}), 401

    @jwt_manager.invalid_token_loader
    def invalid_token_callback(error_string):
        return jsonify({"message": "Invalid token", "error": error_string}), 401

    @jwt_manager.unauthorized_loader
    def missing_token_callback(error_string):
        return jsonify({"message": "Missing authorization token"}), 401


def _register_bootstrap(app: Flask) -> None:
    @app.before_request
    def ensure_schema():
        if app.config.get("_SCHEMA_READY"):
            return
        db.create_all()
        app.config["_SCHEMA_READY"] = True


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def start_request():
        assign_request_id()
        g.request_started_at = perf_counter()

    @app.after_request
    def finalize(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        started = getattr(g, "request_started_at", None)
        latency = perf_counter() - started if started else 0.0
        endpoint = request.endpoint or request.path
        record_request(request.method, endpoint, response.status_code, latency)
        return response


def _configure_sqlite_engine(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not uri.startswith("sqlite") or ":memory:" in uri:
        return
    busy_timeout_ms = int(app.config.get("SQLITE_BUSY_TIMEOUT_MS", 15000))

    with app.app_context():
        engine = db.engine

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):  # pragma: no cover
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms};")
                cursor.execute("PRAGMA synchronous=NORMAL;")
            finally:
                cursor.close()


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _seed_user(email: str, username: str, password: str, role: str) -> bool:
    from .models import User, UserPreference

    if User.query.filter_by(email=email.lower()).first():
        return False
    user = User(
        email=email.lower(),
        username=username.lower(),
        password_hash=hash_password(password),
        role=role,
    )
    user.preference = UserPreference()
    db.session.add(user)
    return True


def _register_cli(app: Flask) -> None:
    from .services import (
        cross_text_generation,
        dlq_service,
        export_service,
        grammar_generation,
        import_service,
        math_generation,
        reading_data_generation,
        reading_generation,
        review_service,
        transitions_generation,
    )

    @app.cli.command("seed-users")
    @click.option("--skip-student", is_flag=True, default=False, help="Skip creating the sample student account.")
    def seed_users(skip_student: bool) -> None:
        """Seed default admin / student accounts for local testing."""

        db.create_all()
        created = []
        cfg = app.config
        if _seed_user(cfg["ADMIN_DEFAULT_EMAIL"], cfg["ADMIN_DEFAULT_USERNAME"], cfg["ADMIN_DEFAULT_PASSWORD"], "admin"):
            created.append("admin")
        if not skip_student and _seed_user(
            cfg["SEED_STUDENT_EMAIL"], cfg["SEED_STUDENT_USERNAME"], cfg["SEED_STUDENT_PASSWORD"], "student"
        ):
            created.append("student")
        if created:
            db.session.commit()
            click.echo(f"Seeded accounts: {', '.join(created)}")
        else:
            click.echo("Seed users already exist; nothing to do.")

    @app.cli.group("generate")
    def generate_group():
        """Question generation pipelines."""

    @generate_group.command("math")
    @click.option("--count", default=1, show_default=True, type=click.IntRange(1, 500))
    @click.option("--domain", "domains", multiple=True, help="Restrict to a domain (repeatable).")
    @click.option("--skill", "skills", multiple=True, help="Restrict to a skill (repeatable).")
    def generate_math(count: int, domains, skills) -> None:
        result = math_generation.batch_generate_math_questions(
            count, domains=list(domains) or None, skills=list(skills) or None
        )
        click.echo(f"Generated {result['successful']}/{result['total']} math questions (batch {result['batch_id']}).")

    @generate_group.command("reading")
    @click.option("--count", default=1, show_default=True, type=click.IntRange(1, 500))
    @click.option("--question-type", "question_types", multiple=True)
    @click.option("--passage-type", "passage_types", multiple=True)
    def generate_reading(count: int, question_types, passage_types) -> None:
        result = reading_generation.batch_generate_reading_questions(
            count, question_types=list(question_types) or None, passage_types=list(passage_types) or None
        )
        click.echo(
            f"Generated {result['successful']}/{result['total']} reading questions (batch {result['batch_id']})."
        )

    @generate_group.command("transitions")
    @click.option("--count", default=1, show_default=True, type=click.IntRange(1, 500))
    @click.option("--relationship-type", default=None)
    def generate_transitions(count: int, relationship_type: str | None) -> None:
        overrides = {"relationship_type": relationship_type} if relationship_type else {}
        result = transitions_generation.batch_generate_transitions_questions(count, **overrides)
        click.echo(
            f"Generated {result['successful']}/{result['total']} transitions questions (batch {result['batch_id']})."
        )

    @generate_group.command("reading-data")
    @click.option("--count", default=1, show_default=True, type=click.IntRange(1, 500))
    @click.option("--data-type", default=None)
    @click.option("--domain", default=None)
    def generate_reading_data(count: int, data_type: str | None, domain: str | None) -> None:
        result = reading_data_generation.batch_generate_data_questions(count, data_type=data_type, domain=domain)
        click.echo(
            f"Generated {result['successful']}/{result['total']} data questions (batch {result['batch_id']})."
        )

    @generate_group.command("grammar")
    @click.option("--count", default=1, show_default=True, type=click.IntRange(1, 500))
    @click.option("--question-type", "question_types", multiple=True, help="Cycle through these skills (repeatable).")
    def generate_grammar(count: int, question_types) -> None:
        result = grammar_generation.batch_generate_grammar_questions(count, question_types=list(question_types) or None)
        click.echo(
            f"Generated {result['successful']}/{result['total']} grammar questions (batch {result['batch_id']})."
        )

    @generate_group.command("cross-text")
    @click.option("--count", default=1, show_default=True, type=click.IntRange(1, 500))
    @click.option("--relationship-type", default=None)
    def generate_cross_text(count: int, relationship_type: str | None) -> None:
        overrides = {"relationship_type": relationship_type} if relationship_type else {}
        result = cross_text_generation.batch_generate_cross_text_questions(count, **overrides)
        click.echo(
            f"Generated {result['successful']}/{result['total']} cross-text questions (batch {result['batch_id']})."
        )

    retry_handlers = {
        "math": math_generation.retry_dlq_items,
        "reading": reading_generation.retry_dlq_items,
        "transitions": transitions_generation.retry_dlq_items,
        "reading_data": reading_data_generation.retry_dlq_items,
        "grammar": grammar_generation.retry_dlq_items,
        "cross_text": cross_text_generation.retry_dlq_items,
    }

    @app.cli.group("dlq")
    def dlq_group():
        """Dead-letter queue maintenance."""

    @dlq_group.command("stats")
    @click.option("--pipeline", default=None)
    def dlq_stats(pipeline: str | None) -> None:
        _echo_json({"generation": dlq_service.get_stats(pipeline), "review": dlq_service.get_review_dlq_stats()})

    @dlq_group.command("retry")
    @click.argument("pipeline", type=click.Choice(sorted(retry_handlers)))
    @click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 100))
    def dlq_retry(pipeline: str, limit: int) -> None:
        result = retry_handlers[pipeline](limit)
        click.echo(f"Retried {result['processed']} items: {result['succeeded']} succeeded, {result['failed']} failed.")

    @dlq_group.command("clear")
    @click.option("--pipeline", default=None)
    @click.option("--all", "clear_everything", is_flag=True, default=False, help="Also delete unresolved items.")
    def dlq_clear(pipeline: str | None, clear_everything: bool) -> None:
        if clear_everything:
            deleted = dlq_service.clear_all(pipeline)
        else:
            deleted = dlq_service.clear_succeeded(pipeline)
        click.echo(f"Deleted {deleted} DLQ items.")

    @app.cli.group("review")
    def review_group():
        """Second-pass verification of generated questions."""

    @review_group.command("batch")
    @click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 500))
    @click.option("--category", type=click.Choice(["reading_writing", "math"]), default=None)
    def review_batch(limit: int, category: str | None) -> None:
        result = review_service.batch_review(limit=limit, category=category)
        click.echo(f"Reviewed {result['successful']}/{result['total']} questions.")

    @review_group.command("retry-dlq")
    @click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 100))
    def review_retry(limit: int) -> None:
        result = review_service.retry_review_dlq(limit)
        click.echo(f"Retried {result['processed']} reviews: {result['succeeded']} succeeded, {result['failed']} failed.")

    @app.cli.group("questions")
    def questions_group():
        """Question bank import/export."""

    @questions_group.command("import")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    @click.option("--dry-run", is_flag=True, default=False)
    @click.option("--skip-existing", is_flag=True, default=False)
    def import_command(path: Path, dry_run: bool, skip_existing: bool) -> None:
        document = json.loads(path.read_text(encoding="utf-8"))
        _echo_json(import_service.import_questions(document, dry_run=dry_run, skip_existing=skip_existing))

    @questions_group.command("validate")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    def validate_command(path: Path) -> None:
        document = json.loads(path.read_text(encoding="utf-8"))
        result = import_service.validate_import_records(document)
        _echo_json(result)
        if not result["valid"]:
            raise click.ClickException("Import document has errors.")

    @questions_group.command("export")
    @click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
    @click.option("--no-images", is_flag=True, default=False)
    def export_command(path: Path, no_images: bool) -> None:
        document = export_service.export_document(include_images=not no_images)
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
        click.echo(f"Exported {document['summary']['total_questions']} questions to {path}.")
