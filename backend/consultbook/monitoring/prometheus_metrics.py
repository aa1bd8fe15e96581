"""
Prometheus metrics module for consultbook.

Service timings are fed by the @BaseService.measure_operation decorator;
slot-lock and reconciliation counters are recorded by their call sites.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# consultbook metrics only; the default registry also carries process collectors
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "consultbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "consultbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "consultbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

slot_lock_total = Counter(
    "consultbook_slot_lock_total",
    "Slot lock acquire/release outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)

reconciliation_bookings_total = Counter(
    "consultbook_reconciliation_bookings_total",
    "Bookings touched by the reconciliation tick",
    ["pass_name", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records and exposes consultbook metrics."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """Observe one @measure_operation call; errors also count by exception type."""
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_slot_lock(action: str, outcome: str) -> None:
        slot_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_reconciliation(pass_name: str, outcome: str, count: int = 1) -> None:
        if count > 0:
            reconciliation_bookings_total.labels(pass_name=pass_name, outcome=outcome).inc(count)

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)


prometheus_metrics = PrometheusMetrics()
