from __future__ import annotations

from threading import Lock

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest


class HttpMetrics:
    """Prometheus request metrics bound to a private registry (resets on restart)."""

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self.requests_total = Counter(
            "http_requests_total",
            "Number of get requests.",
            ["path"],
            registry=self.registry,
        )
        self.response_duration = Histogram(
            "http_response_duration_seconds",
            "Duration of HTTP responses.",
            ["path"],
            registry=self.registry,
        )

    def observe_http_request(self, path: str, elapsed_seconds: float) -> None:
        self.requests_total.labels(path=path).inc()
        self.response_duration.labels(path=path).observe(elapsed_seconds)

    def request_count(self, path: str) -> float:
        value = self.registry.get_sample_value("http_requests_total", {"path": path})
        return value or 0.0

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST


_METRICS: HttpMetrics | None = None
_LOCK = Lock()


def get_metrics() -> HttpMetrics:
    global _METRICS
    with _LOCK:
        if _METRICS is None:
            _METRICS = HttpMetrics()
        return _METRICS


def reset_metrics() -> None:
    """Drop all recorded series (used by tests)."""

    global _METRICS
    with _LOCK:
        _METRICS = HttpMetrics()
