"""In-process metrics for the consent service: counters with an optional category, latency summaries."""

import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

ALL_OPERATIONS = "all"


@dataclass
class LatencySummary:
    """Running count/sum/min/max; memory stays constant however many calls are observed."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0

    def observe(self, latency_ms: float) -> None:
        if self.count == 0 or latency_ms < self.min_ms:
            self.min_ms = latency_ms
        if latency_ms > self.max_ms:
            self.max_ms = latency_ms
        self.count += 1
        self.total_ms += latency_ms

    def to_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "sum": self.total_ms,
            "min": self.min_ms,
            "max": self.max_ms,
            "mean": self.total_ms / self.count if self.count else 0.0,
        }


class MetricsCollector:
    """
    Thread-safe. A counter's total includes every category it was incremented under;
    categories (breaker name, consent status, failure category...) are kept alongside.
    Exported as JSON at GET /metrics.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals: dict[str, float] = defaultdict(float)
        self._by_category: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._latency: dict[str, dict[str, LatencySummary]] = defaultdict(lambda: defaultdict(LatencySummary))

    def increment(self, name: str, value: float = 1.0, *, category: Optional[str] = None) -> None:
        with self._lock:
            self._totals[name] += value
            if category is not None:
                self._by_category[name][category] += value

    def observe_latency(self, name: str, latency_ms: float, *, operation: Optional[str] = None) -> None:
        with self._lock:
            self._latency[name][ALL_OPERATIONS].observe(latency_ms)
            if operation is not None:
                self._latency[name][operation].observe(latency_ms)

    def counter(self, name: str, category: Optional[str] = None) -> float:
        with self._lock:
            if category is None:
                return self._totals.get(name, 0)
            return self._by_category.get(name, {}).get(category, 0)

    def export_metrics(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._totals),
                "counters_by_category": {name: dict(cats) for name, cats in self._by_category.items()},
                "latency_ms": {
                    name: {op: summary.to_dict() for op, summary in ops.items()}
                    for name, ops in self._latency.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._totals.clear()
            self._by_category.clear()
            self._latency.clear()
