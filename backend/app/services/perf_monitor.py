"""
Timing decorators and the in-process quote metrics tracker.

``tracker`` is the single instance read by the /metrics endpoint; the engines
and the rate aggregator write to it directly.
"""
import functools
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("printquote-api.perf")


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _log_duration(func: Callable, start: float) -> None:
    logger.debug(
        f"{func.__qualname__} took {_elapsed_ms(start)}ms",
        extra={"duration_ms": _elapsed_ms(start)},
    )


def timed(func: Callable) -> Callable:
    """Log the wall time of each call to ``func`` at DEBUG."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            _log_duration(func, start)
    return wrapper


def timed_async(func: Callable) -> Callable:
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            _log_duration(func, start)
    return wrapper


class PerformanceTracker:
    """
    Thread-safe in-memory tracker for quote-level metrics.

    Tracks:
    - Prices computed
    - Rate aggregations completed and their average duration
    - Per-provider call durations, slowest provider
    - Error count broken down by provider
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._prices_computed: int = 0
        self._rate_requests: int = 0
        self._total_aggregation_ms: float = 0.0
        self._provider_durations: Dict[str, list] = {}   # provider_id -> [duration_ms, ...]
        self._error_counts: Dict[str, int] = {}           # provider_id -> count
        self._slowest_provider: Optional[str] = None
        self._slowest_provider_ms: float = 0.0

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def record_price_computed(self) -> None:
        with self._lock:
            self._prices_computed += 1

    def record_aggregation_complete(self, duration_ms: float) -> None:
        """Call once per finished rate aggregation, successful or not."""
        with self._lock:
            self._rate_requests += 1
            self._total_aggregation_ms += duration_ms

    def record_provider_duration(self, provider_id: str, duration_ms: float) -> None:
        with self._lock:
            self._provider_durations.setdefault(provider_id, []).append(duration_ms)
            if duration_ms > self._slowest_provider_ms:
                self._slowest_provider_ms = duration_ms
                self._slowest_provider = provider_id

    def record_provider_error(self, provider_id: str) -> None:
        with self._lock:
            self._error_counts[provider_id] = self._error_counts.get(provider_id, 0) + 1

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            prices_computed            : int
            rate_requests              : int
            avg_aggregation_ms         : float  (0 if none completed)
            slowest_provider           : str | None
            slowest_provider_ms        : float
            error_count                : int   (total across all providers)
            error_count_by_provider    : dict  {provider_id: count}
            provider_avg_durations_ms  : dict  {provider_id: avg_ms}
        """
        with self._lock:
            avg = (
                round(self._total_aggregation_ms / self._rate_requests, 2)
                if self._rate_requests > 0
                else 0.0
            )
            provider_avgs = {
                provider: round(sum(durations) / len(durations), 2) if durations else 0.0
                for provider, durations in self._provider_durations.items()
            }
            return {
                "prices_computed": self._prices_computed,
                "rate_requests": self._rate_requests,
                "avg_aggregation_ms": avg,
                "slowest_provider": self._slowest_provider,
                "slowest_provider_ms": round(self._slowest_provider_ms, 2),
                "error_count": sum(self._error_counts.values()),
                "error_count_by_provider": dict(self._error_counts),
                "provider_avg_durations_ms": provider_avgs,
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._prices_computed = 0
            self._rate_requests = 0
            self._total_aggregation_ms = 0.0
            self._provider_durations.clear()
            self._error_counts.clear()
            self._slowest_provider = None
            self._slowest_provider_ms = 0.0


# Module-level singleton; import this instance everywhere else.
tracker = PerformanceTracker()
