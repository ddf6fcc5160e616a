"""
Observability module - Logging, Metrics, and Tracing.
"""

from ghoste_wallet.observability.logging import get_logger, log_context, setup_logging
from ghoste_wallet.observability.metrics import metrics
from ghoste_wallet.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
