"""
Metrics Module: Diagnostics, counters, histograms.

- Counters: <algorithm>_attempts, <algorithm>_success, solver_failures
- Failure reason codes (every "no result" is counted)
- Histograms: iterations, trials, residuals

Usage:
    from lat_core.metrics import get_metrics

    metrics = get_metrics()
    print(metrics.format_summary())
"""

import threading

from .counters import CounterSnapshot, MetricsCollector

# Global singleton for easy access
_global_metrics = None
_global_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        with _global_lock:
            if _global_metrics is None:
                _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    with _global_lock:
        _global_metrics = MetricsCollector()


__all__ = ['CounterSnapshot', 'MetricsCollector', 'get_metrics', 'reset_metrics']
