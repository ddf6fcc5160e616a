"""
Metrics Collection with Prometheus.

Exposes wallet and HTTP metrics for monitoring.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

from ghoste_wallet.config import settings


class WalletMetrics:
    """
    Centralized metrics for the Ghoste Wallet API.

    Covers:
    - HTTP requests (rate, duration, in-progress)
    - Spends (outcome per pool, credits spent)
    - Wallet loads and lazy creations
    - Pool transfers
    - Errors
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "wallet_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
                "backend": settings.wallet_backend,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "wallet_http_requests_total",
            "Total HTTP requests",
            ["endpoint", "method", "status_code"],
        )

        self.http_request_duration_seconds = Histogram(
            "wallet_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["endpoint", "method"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "wallet_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            ["endpoint", "method"],
        )

        # ====================================================================
        # Spend Metrics
        # ====================================================================
        self.spends_total = Counter(
            "wallet_spends_total",
            "Spend attempts by outcome",
            ["outcome", "pool"],
        )

        self.credits_spent = Histogram(
            "wallet_credits_spent",
            "Credits spent per successful spend",
            ["pool"],
            buckets=(10, 25, 50, 100, 250, 500, 1000, 2000, 5000),
        )

        # ====================================================================
        # Wallet Metrics
        # ====================================================================
        self.wallet_loads_total = Counter(
            "wallet_loads_total",
            "Wallet profile loads by result",
            ["result"],
        )

        self.wallet_profiles_created_total = Counter(
            "wallet_profiles_created_total",
            "Wallet profiles created lazily on first access",
        )

        self.transfers_total = Counter(
            "wallet_transfers_total",
            "Pool transfers",
            ["direction", "success"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "wallet_errors_total",
            "Total errors by type",
            ["error_type", "operation"],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_spend(self, outcome: str, pool: str | None, amount: int) -> None:
        """Record a spend attempt; amount is only observed on success."""
        self.spends_total.labels(outcome=outcome, pool=pool or "none").inc()
        if outcome == "success" and pool is not None:
            self.credits_spent.labels(pool=pool).observe(amount)

    def record_wallet_load(self, result: str) -> None:
        """Record a wallet load (loaded, created, error)."""
        self.wallet_loads_total.labels(result=result).inc()

    def record_transfer(self, direction: str, success: bool) -> None:
        """Record a pool transfer."""
        self.transfers_total.labels(direction=direction, success=str(success)).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = WalletMetrics()
