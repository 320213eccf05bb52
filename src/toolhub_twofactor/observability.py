"""Prometheus metrics for two-factor operations.

Usage:
    ```python
    from toolhub_twofactor.observability import TwoFactorMetrics

    with TwoFactorMetrics.operation("verify"):
        ok = await provider.verify_code(record, code)
    TwoFactorMetrics.record_verification("mailbox", ok)
    ```
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Generator

_logger = logging.getLogger(__name__)

VERIFICATIONS = Counter(
    "twofactor_verifications",
    "Two-factor verification attempts",
    ["method", "result"],
)
DELIVERIES = Counter(
    "twofactor_deliveries",
    "Two-factor code deliveries",
    ["method", "result"],
)
LOCKOUTS = Counter(
    "twofactor_lockouts",
    "Two-factor methods moved into the locked state",
    ["method"],
)
OPERATION_DURATION = Histogram(
    "twofactor_operation_duration_seconds",
    "Two-factor manager operation duration",
    ["operation"],
)


class TwoFactorMetrics:
    """Helpers for recording two-factor metrics."""

    @staticmethod
    @contextmanager
    def operation(operation: str) -> Generator[None, None, None]:
        """Time a manager operation."""
        start = time.monotonic()
        try:
            yield
        finally:
            OPERATION_DURATION.labels(operation=operation).observe(
                time.monotonic() - start
            )

    @staticmethod
    def record_verification(method: str, result: bool | str) -> None:
        """Count a verification outcome.

        Args:
            method: Method key.
            result: True/False, or a label such as ``"locked"``.
        """
        if isinstance(result, bool):
            result = "success" if result else "failure"
        VERIFICATIONS.labels(method=method, result=result).inc()

    @staticmethod
    def record_delivery(method: str, ok: bool) -> None:
        DELIVERIES.labels(method=method, result="sent" if ok else "failed").inc()

    @staticmethod
    def record_lockout(method: str) -> None:
        _logger.debug("Lockout recorded for method %s", method)
        LOCKOUTS.labels(method=method).inc()


__all__: list[str] = [
    "TwoFactorMetrics",
    "VERIFICATIONS",
    "DELIVERIES",
    "LOCKOUTS",
    "OPERATION_DURATION",
]
