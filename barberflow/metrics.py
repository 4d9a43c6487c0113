from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

_REQ_COUNT = Counter(
    "barberflow_http_requests_total",
    "Total HTTP requests",
    labelnames=("method", "path", "status"),
)
_REQ_LATENCY = Histogram(
    "barberflow_http_request_duration_seconds",
    "HTTP request latency seconds",
    labelnames=("method", "path"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.3, 0.5, 1.0, 2.5, 5.0, 10.0),
)
_TOKEN_VALIDATIONS = Counter(
    "barberflow_booking_token_validations_total",
    "Booking token validation outcomes",
    labelnames=("result",),
)
_BOOKINGS = Counter(
    "barberflow_appointment_bookings_total",
    "Appointment booking attempts",
    labelnames=("result",),
)


def observe_http_request(*, method: str, path: str, status: int, duration_seconds: float) -> None:
    _REQ_COUNT.labels(method=method, path=path, status=str(status)).inc()
    _REQ_LATENCY.labels(method=method, path=path).observe(duration_seconds)


def record_token_validation(*, result: str) -> None:
    _TOKEN_VALIDATIONS.labels(result=result).inc()


def record_booking(*, result: str) -> None:
    _BOOKINGS.labels(result=result).inc()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


def render_metrics() -> bytes:
    return generate_latest()
