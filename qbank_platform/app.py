"""WSGI entry point for the question bank API.

`flask --app app run` or `gunicorn app:app` both pick up `app`; the config
class comes from FLASK_CONFIG (dev, prod, test).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

# Config classes read os.environ at import time, so `.env` goes first.
if os.getenv("QBANK_SKIP_DOTENV", "").lower() not in {"1", "true", "yes"}:
    load_dotenv(BASE_DIR / ".env", override=False)

from qbank_app import create_app  # noqa: E402

app = create_app(os.getenv("FLASK_CONFIG"))


if __name__ == "__main__":  # pragma: no cover
    app.run(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5080")),
        debug=bool(app.config.get("DEBUG")),
    )
