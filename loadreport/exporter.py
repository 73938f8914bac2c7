"""Export metrics snapshots in the Prometheus text exposition format."""

from typing import Optional

from prometheus_client import CollectorRegistry, Gauge
from prometheus_client.exposition import generate_latest

from .models import MetricsView

# Quantile label -> LatencyMetrics attribute
LATENCY_QUANTILES = {
    '0.5': 'p50',
    '0.95': 'p95',
    '0.99': 'p99',
}


class PrometheusMetricsExporter:
    """Export MetricsView snapshots as Prometheus gauges."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = 'loadreport'):
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace
        self._setup_metrics()

    def _gauge(self, name: str, documentation: str, labels=()):
        return Gauge(
            f'{self.namespace}_{name}',
            documentation,
            list(labels),
            registry=self.registry
        )

    def _setup_metrics(self):
        """Set up Prometheus metric definitions."""
        # Request metrics
        self.requests = self._gauge('requests_total', 'Total number of results folded so far')
        self.rate = self._gauge('requests_per_second', 'Requests per second over the attack duration')
        self.success = self._gauge('success_ratio', 'Fraction of results without an error')

        # Duration metrics
        self.duration = self._gauge('duration_seconds', 'Time between the earliest and latest result')
        self.wait = self._gauge('wait_seconds', 'Time between the latest result and its completion')

        # Latency metrics
        self.latency = self._gauge('latency_seconds', 'Latency quantiles in seconds', ['quantile'])
        self.latency_mean = self._gauge('latency_seconds_mean', 'Mean latency in seconds')
        self.latency_max = self._gauge('latency_seconds_max', 'Maximum latency in seconds')

        # Byte metrics
        self.bytes_in = self._gauge('bytes_in_total', 'Total response body bytes')
        self.bytes_in_mean = self._gauge('bytes_in_mean', 'Mean response body bytes')
        self.bytes_out = self._gauge('bytes_out_total', 'Total request body bytes')
        self.bytes_out_mean = self._gauge('bytes_out_mean', 'Mean request body bytes')

        # Status codes and errors
        self.status_codes = self._gauge('status_codes_total', 'Number of results by status code', ['code'])
        self.errors = self._gauge('errors', 'Distinct error strings observed', ['error'])

    def export(self, view: MetricsView) -> None:
        """Set every gauge from a snapshot."""
        self.requests.set(view.requests)
        self.rate.set(view.rate)
        self.success.set(view.success)

        self.duration.set(view.duration.total_seconds())
        self.wait.set(view.wait.total_seconds())

        for quantile, attribute in LATENCY_QUANTILES.items():
            self.latency.labels(quantile=quantile).set(getattr(view.latencies, attribute).total_seconds())
        self.latency_mean.set(view.latencies.mean.total_seconds())
        self.latency_max.set(view.latencies.max.total_seconds())

        self.bytes_in.set(view.bytes_in.total)
        self.bytes_in_mean.set(view.bytes_in.mean)
        self.bytes_out.set(view.bytes_out.total)
        self.bytes_out_mean.set(view.bytes_out.mean)

        for code, count in view.status_codes.items():
            self.status_codes.labels(code=str(code)).set(count)
        for error in view.errors:
            self.errors.labels(error=error).set(1)

    def render(self) -> str:
        return generate_latest(self.registry).decode('utf-8')
