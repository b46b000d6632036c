"""Prometheus-compatible telemetry primitives for the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = structlog.get_logger(__name__)


_LATENCY_BUCKETS_MS = (250, 500, 1000, 2500, 5000, 10000, 30000, 60000)


@dataclass
class PipelineMetrics:
    registry: CollectorRegistry
    extraction_latency: Histogram
    extraction_errors: Counter
    records: Counter
    triples: Counter

    def observe_extraction(self, *, provider: str, model: str, latency_ms: float) -> None:
        """Record the latency of a successful model call."""

        self.extraction_latency.labels(provider=provider, model=model).observe(latency_ms)
        logger.debug(
            "telemetry.extraction",
            provider=provider,
            model=model,
            latency_ms=round(latency_ms, 2),
        )

    def observe_extraction_error(self, *, provider: str, kind: str) -> None:
        self.extraction_errors.labels(provider=provider, kind=kind).inc()

    def observe_record(self, *, state: str) -> None:
        """Count a record reaching a terminal pipeline state."""

        self.records.labels(state=state).inc()

    def observe_triples(self, *, outcome: str, count: int = 1) -> None:
        """
        Increment the triple counter for ``outcome``.

        Parameters:
            outcome (str): One of ``parsed``, ``discarded``, ``ingested`` or ``failed``.
            count (int): Number of triples to add; non-positive values are ignored.
        """
        if count <= 0:
            return
        self.triples.labels(outcome=outcome).inc(count)

    def export(self) -> str:
        """
        Return the current metrics from the registry in Prometheus text exposition format.

        Returns:
            metrics_text (str): Metrics data serialized in Prometheus text format.
        """
        return generate_latest(self.registry).decode("utf-8")


def _build_metrics(registry: Optional[CollectorRegistry] = None) -> PipelineMetrics:
    reg = registry or CollectorRegistry()
    extraction_latency = Histogram(
        "pubgraph_extraction_latency_ms",
        "Latency distribution for language-model extraction calls (ms).",
        labelnames=("provider", "model"),
        buckets=_LATENCY_BUCKETS_MS,
        registry=reg,
    )
    extraction_errors = Counter(
        "pubgraph_extraction_errors_total",
        "Failed language-model extraction calls by error kind.",
        labelnames=("provider", "kind"),
        registry=reg,
    )
    records = Counter(
        "pubgraph_records_total",
        "Publication records by terminal pipeline state.",
        labelnames=("state",),
        registry=reg,
    )
    triples = Counter(
        "pubgraph_triples_total",
        "Triples by processing outcome.",
        labelnames=("outcome",),
        registry=reg,
    )
    return PipelineMetrics(
        registry=reg,
        extraction_latency=extraction_latency,
        extraction_errors=extraction_errors,
        records=records,
        triples=triples,
    )


_DEFAULT_METRICS = _build_metrics()


def get_metrics() -> PipelineMetrics:
    """Get the shared PipelineMetrics instance used by CLI tools."""

    return _DEFAULT_METRICS


def create_metrics(registry: Optional[CollectorRegistry] = None) -> PipelineMetrics:
    """Factory for isolated metrics registries, useful in tests."""

    return _build_metrics(registry)


__all__ = [
    "PipelineMetrics",
    "create_metrics",
    "get_metrics",
]
