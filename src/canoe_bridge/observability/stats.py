"""Remote call statistics for the bridge.

Every command that reaches the remote application (connect, variable
reads and writes, procedure calls, enumeration) is recorded with its
duration and outcome. Summaries expose success rate, duration
percentiles, and failure counts per error kind, so an operator can tell a
slow remote application from a misconfigured namespace list.

Records live in a bounded rolling window per operation; cumulative
counters are kept separately so the success rate covers the whole
lifetime of the collector.

Example:
    stats = CallStats()
    stats.record_call("read_variable", duration_ms=3.2, success=True)
    stats.record_call(
        "read_variable", duration_ms=1.0, success=False,
        error_kind="variable_not_found",
    )

    summary = stats.get_summary("read_variable")
    print(f"{summary.success_rate:.0%} ok, p95 {summary.p95_duration_ms:.1f}ms")
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

#: Per-operation number of call records kept for duration statistics.
DEFAULT_STATS_WINDOW_SIZE: int = 500


@dataclass
class CallSummary:
    """Summary statistics for one bridge operation.

    Attributes:
        operation: Operation name (e.g. ``read_variable``).
        total_calls: Calls recorded since creation or reset.
        successful_calls: Calls that completed without error.
        failed_calls: Calls that ended in an error result.
        success_rate: ``successful_calls / total_calls`` (0.0 when empty).
        min_duration_ms: Fastest call in the window.
        max_duration_ms: Slowest call in the window.
        avg_duration_ms: Mean duration over the window.
        p95_duration_ms: 95th percentile duration over the window.
        error_counts: Failure count per error kind.
        last_call_time: UTC time of the most recent call.
    """

    operation: str
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    success_rate: float = 0.0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0
    error_counts: dict[str, int] = field(default_factory=dict)
    last_call_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "operation": self.operation,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "success_rate": self.success_rate,
            "min_duration_ms": self.min_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "avg_duration_ms": self.avg_duration_ms,
            "p95_duration_ms": self.p95_duration_ms,
            "error_counts": dict(self.error_counts),
            "last_call_time": (
                self.last_call_time.isoformat() if self.last_call_time else None
            ),
        }


@dataclass
class _CallRecord:
    duration_ms: float
    success: bool


class _OperationCollector:
    """Rolling window and counters for a single operation."""

    def __init__(self, operation: str, window_size: int) -> None:
        self.operation = operation
        self._records: deque[_CallRecord] = deque(maxlen=window_size)
        self._error_counts: dict[str, int] = {}
        self._total = 0
        self._successful = 0
        self._last_call_time: datetime | None = None

    def record(self, duration_ms: float, success: bool, error_kind: str | None) -> None:
        self._records.append(_CallRecord(duration_ms=duration_ms, success=success))
        self._total += 1
        if success:
            self._successful += 1
        elif error_kind:
            self._error_counts[error_kind] = self._error_counts.get(error_kind, 0) + 1
        self._last_call_time = datetime.now(UTC)

    def summary(self) -> CallSummary:
        durations = sorted(r.duration_ms for r in self._records)
        if durations:
            min_dur, max_dur = durations[0], durations[-1]
            avg_dur = sum(durations) / len(durations)
            p95_dur = _percentile(durations, 95)
        else:
            min_dur = max_dur = avg_dur = p95_dur = 0.0

        return CallSummary(
            operation=self.operation,
            total_calls=self._total,
            successful_calls=self._successful,
            failed_calls=self._total - self._successful,
            success_rate=self._successful / self._total if self._total else 0.0,
            min_duration_ms=min_dur,
            max_duration_ms=max_dur,
            avg_duration_ms=avg_dur,
            p95_duration_ms=p95_dur,
            error_counts=dict(self._error_counts),
            last_call_time=self._last_call_time,
        )


class CallStats:
    """Per-operation call statistics for one bridge.

    The bridge itself is single-threaded, but MCP handlers and status
    queries may read summaries from another thread, so all access goes
    through one lock.

    Usage:
        stats = CallStats()
        with stats.measure("invoke_procedure") as call:
            result = invoker.invoke("ResetCounters")
            call.fail("procedure_not_found")   # only on failure
        print(stats.get_summary("invoke_procedure").to_dict())
    """

    def __init__(self, window_size: int = DEFAULT_STATS_WINDOW_SIZE) -> None:
        """Create an empty statistics container.

        Args:
            window_size: Records kept per operation for duration statistics.
        """
        self._window_size = window_size
        self._collectors: dict[str, _OperationCollector] = {}
        self._started = time.monotonic()
        self._lock = threading.Lock()

    def record_call(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error_kind: str | None = None,
    ) -> None:
        """Record one completed operation.

        Args:
            operation: Operation name.
            duration_ms: Wall time spent, in milliseconds.
            success: Whether the operation produced a success result.
            error_kind: Error kind value for failures, used for counts.
        """
        with self._lock:
            collector = self._collectors.get(operation)
            if collector is None:
                collector = _OperationCollector(operation, self._window_size)
                self._collectors[operation] = collector
            collector.record(duration_ms, success, error_kind)

    def measure(self, operation: str) -> _Measurement:
        """Time a block and record it as one call of ``operation``.

        The call counts as successful unless the block calls
        ``fail(kind)`` on the returned object or raises, in which case
        the exception type name is recorded as the error kind.
        """
        return _Measurement(self, operation)

    def get_summary(self, operation: str) -> CallSummary:
        """Return the summary for ``operation`` (empty if never recorded)."""
        with self._lock:
            collector = self._collectors.get(operation)
            if collector is None:
                return CallSummary(operation=operation)
            return collector.summary()

    def get_all_summaries(self) -> dict[str, CallSummary]:
        """Return summaries for every recorded operation, keyed by name."""
        with self._lock:
            return {name: c.summary() for name, c in self._collectors.items()}

    def reset(self) -> None:
        """Forget all records and counters."""
        with self._lock:
            self._collectors.clear()
            self._started = time.monotonic()

    def to_dict(self) -> dict[str, Any]:
        """Export all summaries plus collector uptime."""
        summaries = self.get_all_summaries()
        return {
            "uptime_seconds": time.monotonic() - self._started,
            "operations": {name: s.to_dict() for name, s in summaries.items()},
        }


class _Measurement:
    """Context manager returned by ``CallStats.measure``."""

    def __init__(self, stats: CallStats, operation: str) -> None:
        self._stats = stats
        self._operation = operation
        self._error_kind: str | None = None
        self._start = 0.0

    def fail(self, error_kind: str) -> None:
        """Mark the measured call as failed with ``error_kind``."""
        self._error_kind = error_kind

    def __enter__(self) -> _Measurement:
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        duration_ms = (time.perf_counter() - self._start) * 1000.0
        if exc_type is not None and self._error_kind is None:
            self._error_kind = exc_type.__name__
        self._stats.record_call(
            self._operation,
            duration_ms,
            success=self._error_kind is None,
            error_kind=self._error_kind,
        )


def _percentile(sorted_data: list[float], p: float) -> float:
    """Linear-interpolated percentile of pre-sorted data.

    Example:
        >>> _percentile([1.0, 2.0, 3.0, 4.0], 50)
        2.5
    """
    if not sorted_data:
        return 0.0
    if len(sorted_data) == 1:
        return sorted_data[0]
    rank = (len(sorted_data) - 1) * (p / 100.0)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return sorted_data[int(rank)]
    fraction = rank - lower
    return sorted_data[lower] + (sorted_data[upper] - sorted_data[lower]) * fraction
