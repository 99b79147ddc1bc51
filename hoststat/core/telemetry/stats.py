from __future__ import annotations

import math
import threading
from collections import deque
from typing import Any, Deque, Dict, Iterable


class LoopStats:
    """
    In-memory bookkeeping for the sampling loop, bounded:
    - counters: ticks run, ticks dropped, read failures per metric
    - tick latency: last N durations in milliseconds
    Nothing here is persisted or exported.
    """

    def __init__(self, *, latency_window: int = 120):
        self.latency_window = max(10, int(latency_window))
        self._lock = threading.Lock()
        self._ticks = 0
        self._dropped = 0
        self._failures: Dict[str, int] = {}
        self._latency_ms: Deque[float] = deque(maxlen=self.latency_window)

    def record_tick(self, latency_ms: float) -> None:
        with self._lock:
            self._ticks += 1
            self._latency_ms.append(float(latency_ms))

    def record_dropped(self) -> None:
        with self._lock:
            self._dropped += 1

    def record_read_failure(self, metric: str) -> None:
        with self._lock:
            self._failures[str(metric)] = int(self._failures.get(str(metric), 0)) + 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            counters: Dict[str, int] = {"ticks_total": self._ticks, "ticks_dropped_total": self._dropped}
            for metric, n in sorted(self._failures.items()):
                counters[f"read_failures_total{{metric={metric}}}"] = n
            latency = list(self._latency_ms)
        return {"counters": counters, "tick_latency_ms": _stats(latency)}


def _percentile(sorted_vals: list[float], p: float) -> float:
    if not sorted_vals:
        return float("nan")
    if p <= 0:
        return sorted_vals[0]
    if p >= 100:
        return sorted_vals[-1]
    k = (len(sorted_vals) - 1) * (p / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_vals[int(k)]
    return sorted_vals[int(f)] * (c - k) + sorted_vals[int(c)] * (k - f)


def _stats(samples: Iterable[float]) -> Dict[str, float]:
    xs = sorted(float(x) for x in samples)
    if not xs:
        return {"count": 0.0}
    count = float(len(xs))
    return {
        "count": count,
        "min": xs[0],
        "max": xs[-1],
        "avg": sum(xs) / count,
        "p50": _percentile(xs, 50),
        "p95": _percentile(xs, 95),
    }
