from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.fixpos.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._idempotency_replay_total = None
        self._settlements_total = None
        self._settlement_write_failures_total = None
        self._signal_failures_total = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._idempotency_replay_total = Counter(
            "idempotency_replay_total",
            "Idempotent replay responses.",
            registry=self._registry,
        )
        self._settlements_total = Counter(
            "settlements_total",
            "Checkout settlements by outcome and payment mode.",
            ["outcome", "mode"],
            registry=self._registry,
        )
        self._settlement_write_failures_total = Counter(
            "settlement_write_failures_total",
            "Settlement sequences aborted mid-way, by failing step.",
            ["step"],
            registry=self._registry,
        )
        self._signal_failures_total = Counter(
            "integration_signal_failures_total",
            "Integration signal deliveries that raised in a subscriber.",
            ["signal"],
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_idempotency_replay(self) -> None:
        if not self.enabled:
            return
        self._idempotency_replay_total.inc()

    def record_settlement(self, *, outcome: str, mode: str) -> None:
        if not self.enabled:
            return
        self._settlements_total.labels(outcome=outcome, mode=mode).inc()

    def increment_write_failure(self, step: str) -> None:
        if not self.enabled:
            return
        self._settlement_write_failures_total.labels(step=step).inc()

    def increment_signal_failure(self, signal: str) -> None:
        if not self.enabled:
            return
        self._signal_failures_total.labels(signal=signal).inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
