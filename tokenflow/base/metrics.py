import threading
from typing import Dict
from prometheus_client import (
    CollectorRegistry, Counter, Histogram, Gauge, Info, generate_latest
)
from loguru import logger

# Global metrics registry per service
_service_registries: Dict[str, "MetricsRegistry"] = {}
_metrics_lock = threading.Lock()


class MetricsRegistry:
    """Centralized metrics registry for a service following logging conventions"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.registry = CollectorRegistry()
        self._init_common_metrics()

    def _init_common_metrics(self):
        """Initialize common metrics available to all services"""
        self.service_info = Info(
            'service_info',
            'Service information',
            registry=self.registry
        )
        self.service_info.info({'service_name': self.service_name})

        self.service_start_time = Gauge(
            'service_start_time_seconds',
            'Service start time in Unix timestamp',
            registry=self.registry
        )
        self.service_start_time.set_to_current_time()

        self.errors_total = Counter(
            'service_errors_total',
            'Total number of errors by type',
            ['error_type', 'component'],
            registry=self.registry
        )

    def create_counter(self, name: str, description: str, labelnames: list = None) -> Counter:
        return Counter(
            name, description,
            labelnames or [],
            registry=self.registry
        )

    def create_histogram(self, name: str, description: str, labelnames: list = None,
                         buckets: tuple = None) -> Histogram:
        kwargs = {
            'name': name,
            'documentation': description,
            'labelnames': labelnames or [],
            'registry': self.registry
        }
        if buckets:
            kwargs['buckets'] = buckets
        return Histogram(**kwargs)

    def get_metrics_text(self) -> str:
        """Get metrics in Prometheus text format"""
        return generate_latest(self.registry).decode('utf-8')

    def record_error(self, error_type: str, component: str = "unknown"):
        self.errors_total.labels(error_type=error_type, component=component).inc()


def setup_metrics(service_name: str) -> MetricsRegistry:
    """
    Setup metrics for a service following the same pattern as setup_logger.

    Repeated calls for the same service return the registry created first.
    """
    with _metrics_lock:
        if service_name in _service_registries:
            logger.debug(f"Metrics already setup for {service_name}")
            return _service_registries[service_name]

        metrics_registry = MetricsRegistry(service_name)
        _service_registries[service_name] = metrics_registry

        logger.info(f"Metrics setup completed for service: {service_name}")
        return metrics_registry


DURATION_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float('inf'))
COUNT_BUCKETS = (1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, float('inf'))


class AnalyticsMetrics:
    """Standard metrics for wallet analytics queries"""

    def __init__(self, registry: MetricsRegistry):
        self.registry = registry

        self.analytics_runs_total = registry.create_counter(
            'analytics_runs_total',
            'Total number of wallet analytics runs'
        )

        self.analytics_duration = registry.create_histogram(
            'analytics_run_duration_seconds',
            'Time spent computing wallet analytics',
            buckets=DURATION_BUCKETS
        )

        self.transfers_per_run = registry.create_histogram(
            'analytics_transfers_per_run',
            'Number of transfers analysed per run',
            buckets=COUNT_BUCKETS
        )

        self.skipped_records_total = registry.create_counter(
            'analytics_skipped_records_total',
            'Records excluded from analytics passes',
            ['reason']
        )

        self.feed_requests_total = registry.create_counter(
            'feed_requests_total',
            'Transfer feed requests by outcome',
            ['outcome']
        )

    def record_run(self, duration: float, transfer_count: int, skipped: list):
        self.analytics_runs_total.inc()
        self.analytics_duration.observe(duration)
        self.transfers_per_run.observe(transfer_count)
        for record in skipped:
            self.skipped_records_total.labels(reason=record.reason).inc()

    def record_feed_request(self, outcome: str):
        self.feed_requests_total.labels(outcome=outcome).inc()
