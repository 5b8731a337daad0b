"""HTTP client for the text-generation and image-generation providers."""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Any

import requests
from flask import current_app

# Rate limits and provider-side failures are worth another attempt; other 4xx are not.
RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


class AIClientError(RuntimeError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


@dataclass
class AIClient:
    api_key: str
    api_base: str
    default_model: str
    image_model: str = "gpt-image-1"

    def chat(self, messages, model: str | None = None, temperature: float = 0.2):
        return self._post(
            "/chat/completions",
            {"model": model or self.default_model, "messages": messages, "temperature": temperature},
        )

    def chat_text(self, messages, model: str | None = None, temperature: float = 0.2) -> str:
        """Return the text content of the first completion choice."""

        raw = self.chat(messages, model=model, temperature=temperature)
        try:
            content = raw["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise AIClientError("AI provider returned no text response") from exc
        if isinstance(content, list):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return content or ""

    def generate_image(self, prompt: str, size: str | None = None) -> bytes:
        """Render a figure and return the decoded PNG bytes."""

        raw = self._post(
            "/images/generations",
            {"model": self.image_model, "prompt": prompt, "size": size or "1536x1024", "n": 1},
        )
        try:
            return base64.b64decode(raw["data"][0]["b64_json"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise AIClientError("Image provider returned no image") from exc

    def _post(self, path: str, payload: dict[str, Any]):
        if not self.api_key:
            raise AIClientError("OPENAI_API_KEY / AI_API_KEY is not configured")

        cfg = current_app.config
        timeout = (cfg.get("AI_CONNECT_TIMEOUT_SEC", 15), cfg.get("AI_READ_TIMEOUT_SEC", 60))
        max_retries = max(1, int(cfg.get("AI_API_MAX_RETRIES", 3)))
        backoff = float(cfg.get("AI_API_RETRY_BACKOFF", 2.0))
        url = f"{self.api_base.rstrip('/')}{path}"

        for attempt in range(1, max_retries + 1):
            status = None
            retry_after = None
            try:
                response = requests.post(
                    url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                    timeout=timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                error = AIClientError(f"{path} unreachable: {exc}")
            else:
                if response.ok:
                    return response.json()
                status = response.status_code
                error = AIClientError(f"{path} returned HTTP {status}: {response.text[:300]}", status)
                if status not in RETRYABLE_STATUS:
                    raise error
                retry_after = response.headers.get("Retry-After")

            if attempt == max_retries:
                raise error
            delay = float(retry_after) if retry_after and retry_after.isdigit() else backoff * attempt
            current_app.logger.warning(
                "AI call to %s failed (attempt %s/%s), retrying in %.1fs",
                path,
                attempt,
                max_retries,
                delay,
                extra={"event": "ai.retry", "status": status, "model": payload.get("model")},
            )
            time.sleep(delay)


def image_part(data_b64: str, mime_type: str) -> dict[str, Any]:
    """Chat content part embedding an inline image."""

    return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{data_b64}"}}


def text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def get_ai_client() -> AIClient:
    """Return the app's client, building it from config on first use.

    Tests install a scripted fake under the same extensions key.
    """

    extensions = current_app.extensions
    if "ai_client" not in extensions:
        cfg = current_app.config
        extensions["ai_client"] = AIClient(
            api_key=cfg.get("OPENAI_API_KEY", ""),
            api_base=cfg.get("AI_API_BASE", "https://api.openai.com/v1"),
            default_model=cfg.get("AI_GENERATION_MODEL", "gpt-4.1"),
            image_model=cfg.get("AI_IMAGE_MODEL", "gpt-image-1"),
        )
    return extensions["ai_client"]
