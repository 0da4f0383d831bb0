"""
Shared metrics configuration for the Catalog Explorer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_query_metrics()

    def _setup_query_metrics(self):
        """Set up query cache and scheduler metrics."""
        self._metrics["query_cache_hits_total"] = Counter(
            "query_cache_hits_total",
            "Fresh cache entries served without a fetch",
            ["scope"],
            registry=self.registry
        )

        self._metrics["query_cache_misses_total"] = Counter(
            "query_cache_misses_total",
            "Cache lookups that scheduled a fetch",
            ["scope"],
            registry=self.registry
        )

        self._metrics["query_coalesced_total"] = Counter(
            "query_coalesced_total",
            "Fetch requests joined to an in-flight fetch",
            ["scope"],
            registry=self.registry
        )

        self._metrics["query_fetches_total"] = Counter(
            "query_fetches_total",
            "Completed fetches by outcome",
            ["scope", "result"],
            registry=self.registry
        )

        self._metrics["query_discarded_total"] = Counter(
            "query_discarded_total",
            "Responses discarded because a newer request superseded them",
            ["scope"],
            registry=self.registry
        )

        self._metrics["query_fetch_duration_seconds"] = Histogram(
            "query_fetch_duration_seconds",
            "Fetch duration in seconds",
            ["scope"],
            registry=self.registry
        )

        self._metrics["active_sessions"] = Gauge(
            "active_sessions",
            "Number of open explorer sessions",
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            (metric.labels(**labels) if labels else metric).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            (metric.labels(**labels) if labels else metric).set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
