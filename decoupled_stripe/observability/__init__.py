"""
Observability module - Logging, Metrics, and Tracing.
"""

from decoupled_stripe.observability.logging import get_logger, log_context, setup_logging
from decoupled_stripe.observability.metrics import metrics
from decoupled_stripe.observability.tracing import setup_tracing, trace_operation

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
    "trace_operation",
]
