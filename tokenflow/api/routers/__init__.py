from tokenflow.base import setup_metrics, AnalyticsMetrics

API_SERVICE_NAME = "tokenflow-api"

_analytics_metrics = None


def get_analytics_metrics() -> AnalyticsMetrics:
    """Return the API's analytics metrics, creating them on first use."""
    global _analytics_metrics
    if _analytics_metrics is None:
        _analytics_metrics = AnalyticsMetrics(setup_metrics(API_SERVICE_NAME))
    return _analytics_metrics
