"""Prometheus metrics helpers."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "qbank_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "qbank_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    ["endpoint"],
)
GENERATION_RESULTS = Counter(
    "qbank_generation_results_total",
    "Generated questions by pipeline and outcome",
    ["pipeline", "outcome"],
)
GENERATION_LATENCY = Histogram(
    "qbank_generation_latency_seconds",
    "Wall time of a single question generation",
    ["pipeline"],
)
DLQ_TRANSITIONS = Counter(
    "qbank_dlq_transitions_total",
    "Dead-letter queue status transitions",
    ["queue", "status"],
)
REVIEW_RESULTS = Counter(
    "qbank_review_results_total",
    "LLM review outcomes by resulting status",
    ["status"],
)


def record_request(method: str, endpoint: str, status: int, latency: float) -> None:
    REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)


def record_generation(pipeline: str, success: bool, latency: float) -> None:
    outcome = "success" if success else "failure"
    GENERATION_RESULTS.labels(pipeline=pipeline, outcome=outcome).inc()
    GENERATION_LATENCY.labels(pipeline=pipeline).observe(latency)


def record_dlq_transition(queue: str, status: str) -> None:
    DLQ_TRANSITIONS.labels(queue=queue, status=status).inc()


def record_review(status: str) -> None:
    REVIEW_RESULTS.labels(status=status).inc()


def latest_metrics() -> tuple[bytes, str]:
    data = generate_latest()
    return data, CONTENT_TYPE_LATEST
