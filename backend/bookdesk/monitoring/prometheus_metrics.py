"""
Prometheus metrics module for the booking platform.

Service operation metrics are fed by ``BaseService.measure_operation``;
HTTP metrics by the request-context middleware; booking metrics by the
booking service and the staff lock helpers.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with default process metrics
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "bookdesk_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "bookdesk_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "bookdesk_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "bookdesk_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "bookdesk_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "bookdesk_booking_lock_total",
    "Staff lock acquisitions by strategy and outcome",
    ["strategy", "outcome"],
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "bookdesk_booking_conflicts_total",
    "Booking writes rejected because of an overlapping booking",
    ["operation"],
    registry=REGISTRY,
)

booking_serialization_retries_total = Counter(
    "bookdesk_booking_serialization_retries_total",
    "Booking transactions retried after a serialization failure",
    ["operation"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so callers never touch metric objects directly."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_lock(strategy: str, outcome: str) -> None:
        booking_lock_total.labels(strategy=strategy, outcome=outcome).inc()

    @staticmethod
    def record_booking_conflict(operation: str) -> None:
        booking_conflicts_total.labels(operation=operation).inc()

    @staticmethod
    def record_serialization_retry(operation: str) -> None:
        booking_serialization_retries_total.labels(operation=operation).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
