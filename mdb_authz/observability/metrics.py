"""
Metrics collection for MDB_AUTHZ.

Tracks latency and error counts for policy operations and the allow/deny
split of enforcement decisions.
"""

import functools
import inspect
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..exceptions import AuthzError

logger = logging.getLogger(__name__)


@dataclass
class OperationMetrics:
    """Metrics for a single operation."""

    operation_name: str
    count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    error_count: int = 0
    allowed_count: int = 0
    denied_count: int = 0
    last_execution: datetime | None = None

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count > 0 else 0.0

    def record(self, duration_ms: float, success: bool = True) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if not success:
            self.error_count += 1
        self.last_execution = datetime.now()

    def record_decision(self, allowed: bool) -> None:
        if allowed:
            self.allowed_count += 1
        else:
            self.denied_count += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation_name,
            "count": self.count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "error_count": self.error_count,
            "allowed": self.allowed_count,
            "denied": self.denied_count,
            "last_execution": self.last_execution.isoformat() if self.last_execution else None,
        }


class MetricsCollector:
    """
    Thread-safe collector for authorization metrics.

    Holds at most ``max_metrics`` keys; the least recently used key is
    evicted first.
    """

    def __init__(self, max_metrics: int = 1000):
        self._metrics: OrderedDict[str, OperationMetrics] = OrderedDict()
        self._lock = threading.Lock()
        self._max_metrics = max_metrics

    def _entry(self, operation_name: str) -> OperationMetrics:
        # Caller holds the lock
        entry = self._metrics.get(operation_name)
        if entry is None:
            if len(self._metrics) >= self._max_metrics:
                self._metrics.popitem(last=False)
            entry = self._metrics[operation_name] = OperationMetrics(operation_name)
        else:
            self._metrics.move_to_end(operation_name)
        return entry

    def record_operation(self, operation_name: str, duration_ms: float, success: bool = True) -> None:
        with self._lock:
            self._entry(operation_name).record(duration_ms, success)

    def record_decision(self, operation_name: str, allowed: bool) -> None:
        with self._lock:
            self._entry(operation_name).record_decision(allowed)

    def get_metrics(self, operation_name: str | None = None) -> dict[str, Any]:
        with self._lock:
            metrics = {
                key: value.to_dict()
                for key, value in self._metrics.items()
                if operation_name is None or key.startswith(operation_name)
            }
        return {"timestamp": datetime.now().isoformat(), "metrics": metrics}

    def get_operation_count(self, operation_name: str) -> int:
        with self._lock:
            entry = self._metrics.get(operation_name)
            return entry.count if entry else 0

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def record_operation(operation_name: str, duration_ms: float, success: bool = True) -> None:
    get_metrics_collector().record_operation(operation_name, duration_ms, success)


def timed_operation(operation_name: str) -> Callable[[Callable], Callable]:
    """
    Decorator to time and record an operation. AuthzError and OSError
    count as failures; everything propagates unchanged.

    Usage:
        @timed_operation("authz.load_policy")
        async def load_policy(self):
            ...
    """

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                success = True
                try:
                    return await func(*args, **kwargs)
                except (AuthzError, OSError):
                    success = False
                    raise
                finally:
                    duration_ms = (time.perf_counter() - start_time) * 1000
                    record_operation(operation_name, duration_ms, success)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            success = True
            try:
                return func(*args, **kwargs)
            except (AuthzError, OSError):
                success = False
                raise
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000
                record_operation(operation_name, duration_ms, success)

        return sync_wrapper

    return decorator
