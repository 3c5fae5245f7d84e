import time
from functools import wraps
from typing import Callable, Dict, Optional, Union

from loguru import logger
from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server


class MetricsRegistry:
    def __init__(self, registry=None):
        # Use a provided registry or the default one
        self.registry = registry or REGISTRY

        # Inbound submissions
        self.submissions_total = Counter(
            "metform_n8n_submissions_total",
            "Total number of form submissions received",
            registry=self.registry,
        )
        self.delivery_skipped_total = Counter(
            "metform_n8n_delivery_skipped_total",
            "Submissions not forwarded to the webhook",
            ["reason"],
            registry=self.registry,
        )

        # Outbound deliveries
        self.delivery_total = Counter(
            "metform_n8n_delivery_total",
            "Total number of submissions delivered to the webhook",
            ["target"],
            registry=self.registry,
        )
        self.delivery_errors = Counter(
            "metform_n8n_delivery_errors_total",
            "Total number of failed webhook deliveries",
            ["target", "status_code"],
            registry=self.registry,
        )
        self.delivery_latency = Histogram(
            "metform_n8n_delivery_seconds",
            "Time spent delivering submissions to the webhook",
            ["target"],
            registry=self.registry,
        )

        self.up = Gauge(
            "metform_n8n_up",
            "Whether the bridge service is up",
            ["component"],
            registry=self.registry,
        )


# Global metrics registry
metrics = MetricsRegistry()


def start_metrics_server(port: int = 9090, host: str = "127.0.0.1"):
    """Start the Prometheus metrics server."""
    start_http_server(port, host)


def measure_time(
    metric: Histogram, labels: Optional[Union[Dict[str, str], Callable]] = None
) -> Callable:
    """Decorator to measure the execution time of a coroutine.

    ``labels`` is either a fixed dict or a callable receiving the call's
    positional arguments.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            labels_dict = {}
            if callable(labels):
                try:
                    labels_dict = labels(*args)
                except Exception as e:
                    logger.error(f"Error getting labels from function: {e}")
            elif isinstance(labels, dict):
                labels_dict = labels

            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                try:
                    metric.labels(**labels_dict).observe(duration)
                except Exception as e:
                    logger.error(f"Error recording metric: {e}")

        return wrapper

    return decorator
