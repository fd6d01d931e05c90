"""
Metrics counters and histograms implementation.

Provides thread-safe counters for:
- Solver calls (attempts, successes) per algorithm
- Failure reasons (degenerate_input, singular_system, ...)
- Histograms (iterations, RANSAC trials, residuals)

Metrics are observers only: nothing read here ever changes a solver result.
Every call that returns no result is counted under one failure reason.
"""

import logging
import statistics
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from lat_core.proto.failure import FailureReason

logger = logging.getLogger(__name__)


@dataclass
class CounterSnapshot:
    """Snapshot of counter state at a point in time."""

    timestamp: float
    counters: Dict[str, int]
    failure_reasons: Dict[str, int]
    histograms: Dict[str, List[float]]

    def total_failures(self) -> int:
        """Total failed calls across all reasons."""
        return sum(self.failure_reasons.values())

    def success_rate(self, algorithm: str) -> float:
        """Successful calls of an algorithm as a percentage of its attempts."""
        attempts = self.counters.get(f'{algorithm}_attempts', 0)
        if attempts == 0:
            return 0.0
        return (self.counters.get(f'{algorithm}_success', 0) / attempts) * 100.0


class MetricsCollector:
    """
    Thread-safe metrics collection.

    Usage:
        collector = MetricsCollector()
        collector.increment('nlls_attempts')
        collector.increment_failure(FailureReason.SINGULAR_SYSTEM)
        collector.record_histogram('nlls_iterations', 4)

        snapshot = collector.snapshot()
        print(f"Total failures: {snapshot.total_failures()}")
    """

    FAILURE_REASONS = {reason.value: reason.description for reason in FailureReason}

    def __init__(self):
        """Initialize metrics collector."""
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._failure_reasons: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, List[float]] = defaultdict(list)
        self._start_time = time.time()

        self._init_standard_counters()

    def _init_standard_counters(self):
        """Initialize failure reason keys to 0 for consistent reporting."""
        with self._lock:
            for reason in self.FAILURE_REASONS:
                if reason not in self._failure_reasons:
                    self._failure_reasons[reason] = 0

    def increment(self, counter_name: str, value: int = 1):
        """
        Increment a counter by value.

        Args:
            counter_name: Name of counter to increment
            value: Amount to increment (default 1)
        """
        with self._lock:
            self._counters[counter_name] += value

    def increment_failure(self, reason: Union[FailureReason, str], value: int = 1):
        """
        Increment failure counter for specific reason.

        Args:
            reason: Failure reason code (should be a FailureReason)
            value: Amount to increment (default 1)
        """
        key = reason.value if isinstance(reason, FailureReason) else reason
        if key not in self.FAILURE_REASONS:
            # Unknown reasons are still counted
            logger.warning("Unknown failure reason '%s'", key)

        with self._lock:
            self._failure_reasons[key] += value
            self._counters['solver_failures'] += value

    def get_counter(self, counter_name: str) -> int:
        """
        Get current value of a counter.

        Args:
            counter_name: Name of counter

        Returns:
            Current counter value
        """
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_failure_count(self, reason: Union[FailureReason, str]) -> int:
        """Number of failures recorded under a reason."""
        key = reason.value if isinstance(reason, FailureReason) else reason
        with self._lock:
            return self._failure_reasons.get(key, 0)

    def record_histogram(self, histogram_name: str, value: float, max_samples: int = 10000):
        """
        Record a value in a histogram.

        Args:
            histogram_name: Name of histogram
            value: Value to record
            max_samples: Maximum samples to keep (prevents unbounded growth)
        """
        with self._lock:
            samples = self._histograms[histogram_name]
            samples.append(value)

            # Keep only recent samples to bound memory
            if len(samples) > max_samples:
                self._histograms[histogram_name] = samples[-max_samples // 2:]

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Get statistics for a histogram.

        Args:
            histogram_name: Name of histogram

        Returns:
            Dict with min, max, mean, median, p95, p99, count
            None if histogram is empty
        """
        with self._lock:
            samples = self._histograms.get(histogram_name, [])

            if not samples:
                return None

            sorted_samples = sorted(samples)
            count = len(sorted_samples)

            return {
                'count': count,
                'min': sorted_samples[0],
                'max': sorted_samples[-1],
                'mean': statistics.mean(sorted_samples),
                'median': statistics.median(sorted_samples),
                'p95': sorted_samples[int(count * 0.95)] if count > 1 else sorted_samples[0],
                'p99': sorted_samples[int(count * 0.99)] if count > 1 else sorted_samples[0],
            }

    def snapshot(self) -> CounterSnapshot:
        """
        Get a snapshot of current metrics state.

        Returns:
            CounterSnapshot with copies of all metrics
        """
        with self._lock:
            return CounterSnapshot(
                timestamp=time.time(),
                counters=dict(self._counters),
                failure_reasons=dict(self._failure_reasons),
                histograms={k: list(v) for k, v in self._histograms.items()},
            )

    def reset(self):
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._counters.clear()
            self._failure_reasons.clear()
            self._histograms.clear()
            self._start_time = time.time()
        self._init_standard_counters()

    def get_uptime(self) -> float:
        """Get uptime in seconds since initialization."""
        return time.time() - self._start_time

    def format_summary(self) -> str:
        """Render a human-readable metrics summary."""
        snapshot = self.snapshot()
        uptime = self.get_uptime()
        lines = [
            "=" * 70,
            f"  METRICS SUMMARY (uptime: {uptime:.1f}s)",
            "=" * 70,
            "",
            "COUNTERS:",
        ]
        for name, value in sorted(snapshot.counters.items()):
            lines.append(f"  {name:30s}: {value:8d}")

        total_failures = snapshot.total_failures()
        if total_failures > 0:
            lines.append("")
            lines.append("FAILURE REASONS:")
            for reason, count in sorted(snapshot.failure_reasons.items()):
                if count > 0:
                    pct = (count / total_failures) * 100
                    lines.append(f"  {reason:30s}: {count:8d} ({pct:5.1f}%)")

        if snapshot.histograms:
            lines.append("")
            lines.append("HISTOGRAMS:")
            for name in sorted(snapshot.histograms.keys()):
                stats = self.get_histogram_stats(name)
                if stats:
                    lines.append(f"  {name}:")
                    lines.append(f"    count={stats['count']}, mean={stats['mean']:.3f}, "
                                 f"p95={stats['p95']:.3f}, p99={stats['p99']:.3f}")

        lines.append("=" * 70)
        return "\n".join(lines)
