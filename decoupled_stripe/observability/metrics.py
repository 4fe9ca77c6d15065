"""
Metrics Collection with Prometheus.

Counts provider calls, payment state transitions and declines.
"""

from enum import Enum

from prometheus_client import Counter, Histogram, Info

from decoupled_stripe import __version__


class MetricLabels(str, Enum):
    """Standard metric label names."""

    OPERATION = "operation"
    OUTCOME = "outcome"
    GATEWAY = "gateway"
    STATE = "state"
    REASON = "reason"
    ERROR_TYPE = "error_type"


class GatewayMetrics:
    """
    Centralized metrics for the payment gateways.

    - Provider calls (rate, duration, failures)
    - Local payment state transitions
    - Declines by reason
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""
        self.service_info = Info(
            "decoupled_stripe",
            "Gateway package information",
        )
        self.service_info.info({"version": __version__})

        # ====================================================================
        # Provider Metrics
        # ====================================================================
        self.provider_calls_total = Counter(
            "decoupled_stripe_provider_calls_total",
            "Total calls made to the payment provider",
            [MetricLabels.OPERATION, MetricLabels.OUTCOME],
        )

        self.provider_call_duration_seconds = Histogram(
            "decoupled_stripe_provider_call_duration_seconds",
            "Payment provider call duration in seconds",
            [MetricLabels.OPERATION],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.provider_errors_total = Counter(
            "decoupled_stripe_provider_errors_total",
            "Payment provider errors by type",
            [MetricLabels.OPERATION, MetricLabels.ERROR_TYPE],
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.payment_transitions_total = Counter(
            "decoupled_stripe_payment_transitions_total",
            "Local payment state transitions",
            [MetricLabels.GATEWAY, MetricLabels.STATE],
        )

        self.declines_total = Counter(
            "decoupled_stripe_declines_total",
            "Payments declined by reason",
            [MetricLabels.GATEWAY, MetricLabels.REASON],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_provider_call(
        self, operation: str, duration: float, error_type: str | None = None
    ) -> None:
        """Record a provider call and, when it failed, its error type."""
        outcome = "error" if error_type else "success"
        self.provider_calls_total.labels(operation=operation, outcome=outcome).inc()
        self.provider_call_duration_seconds.labels(operation=operation).observe(duration)
        if error_type:
            self.provider_errors_total.labels(operation=operation, error_type=error_type).inc()

    def record_transition(self, gateway: str, state: str) -> None:
        self.payment_transitions_total.labels(gateway=gateway, state=state).inc()

    def record_decline(self, gateway: str, reason: str) -> None:
        self.declines_total.labels(gateway=gateway, reason=reason).inc()


# Global metrics instance
metrics = GatewayMetrics()
