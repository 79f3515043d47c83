"""
Tandem Metrics — in-process counters and latency histograms.

No external dependencies; the snapshot is served on /health.

Usage:
    from tandem.core.metrics import metrics

    metrics.inc("provider.malformed_frames", labels={"provider": "deepseek"})
    metrics.observe("pipeline.duration_ms", 5120.4, labels={"status": "complete"})

    snapshot = metrics.snapshot()
"""

from __future__ import annotations

import time
from collections import defaultdict, deque


class MetricsCollector:
    """Process-wide counters and rolling-window histograms."""

    # Rolling window size for histograms — keeps memory bounded
    HISTOGRAM_MAX_SAMPLES = 1000

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._histograms: dict[str, deque[float]] = defaultdict(
            lambda: deque(maxlen=self.HISTOGRAM_MAX_SAMPLES)
        )
        self._started_at = time.time()

    def inc(self, name: str, value: int = 1, labels: dict | None = None) -> None:
        self._counters[self._key(name, labels)] += value

    def observe(self, name: str, value: float, labels: dict | None = None) -> None:
        self._histograms[self._key(name, labels)].append(value)

    def counter(self, name: str, labels: dict | None = None) -> int:
        return self._counters.get(self._key(name, labels), 0)

    def snapshot(self) -> dict:
        """Counters plus p50/p95/max per histogram."""
        histograms: dict[str, dict] = {}
        for key, samples in self._histograms.items():
            if not samples:
                continue
            ordered = sorted(samples)
            n = len(ordered)
            histograms[key] = {
                "count": n,
                "p50": ordered[n // 2],
                "p95": ordered[min(int(n * 0.95), n - 1)],
                "max": ordered[-1],
            }
        return {
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "counters": dict(self._counters),
            "histograms": histograms,
        }

    def reset(self) -> None:
        self._counters.clear()
        self._histograms.clear()

    def _key(self, name: str, labels: dict | None) -> str:
        """Example: "provider.requests{provider=deepseek}"."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


# Process-wide singleton — import this directly
metrics = MetricsCollector()
