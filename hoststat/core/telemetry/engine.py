from __future__ import annotations

import math
import time
from concurrent.futures import Executor, Future, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional, Tuple, TypeVar

from hoststat.core.errors import CounterUnavailableError, ReadTimeoutError
from hoststat.core.telemetry.models import (
    Capabilities,
    CoreTicks,
    Metric,
    MetricFlags,
    NetworkRates,
    RawCpuSample,
    RawMemorySample,
    RawNetworkSample,
    Snapshot,
)

if TYPE_CHECKING:
    from hoststat.core.telemetry.sources import CounterSource

T = TypeVar("T")


@dataclass
class EngineState:
    """
    Prior samples for the delta-based metrics.

    Each field is replaced whole on every update. Memory, GPU and power are
    instantaneous gauges and keep nothing here.
    """

    previous_cpu: Optional[RawCpuSample] = None
    previous_network: Optional[Tuple[RawNetworkSample, float]] = None


# -------- pure per-metric functions --------

def _core_utilization(prev: CoreTicks, cur: CoreTicks) -> float:
    diffs = (
        cur.user - prev.user,
        cur.system - prev.system,
        cur.nice - prev.nice,
        cur.idle - prev.idle,
    )
    if any(d < 0 for d in diffs):
        # counter went backwards: no contribution this tick
        return 0.0
    total = sum(diffs)
    if total <= 0:
        return 0.0
    used = diffs[0] + diffs[1] + diffs[2]
    return min(100.0, max(0.0, used / total * 100.0))


def cpu_utilization(raw: RawCpuSample, state: EngineState) -> Optional[float]:
    """
    Mean per-core busy percentage since the previous sample.

    Returns ``None`` on warm-up and on a core-count change. Every core weighs
    the same regardless of how many ticks it accumulated.
    """
    prev = state.previous_cpu
    state.previous_cpu = raw
    if prev is None or len(prev.cores) != len(raw.cores) or not raw.cores:
        return None
    per_core = [_core_utilization(p, c) for p, c in zip(prev.cores, raw.cores)]
    return sum(per_core) / len(per_core)


def memory_percent(raw: RawMemorySample) -> Optional[float]:
    """Free-page accounting: everything not free, inactive, purgeable or speculative is used."""
    if raw.page_size <= 0 or raw.total_bytes <= 0:
        return None
    total_pages = raw.total_bytes / raw.page_size
    if total_pages <= 0:
        return None
    available = raw.free_pages + raw.inactive_pages + raw.purgeable_pages + raw.speculative_pages
    used = 1.0 - (available / total_pages)
    pct = used * 100.0
    if not math.isfinite(pct):
        return None
    return min(100.0, max(0.0, pct))


def first_utilization(candidates: Iterable[Optional[float]]) -> Optional[float]:
    """First device reading that is not ``None`` wins. Later candidates are never pulled."""
    for value in candidates:
        if value is None:
            continue
        v = float(value)
        if math.isfinite(v):
            return v
    return None


def power_watts(milliwatts: Optional[int]) -> Optional[int]:
    if milliwatts is None:
        return None
    mw = int(milliwatts)
    # truncate toward zero, not floor
    return int(mw / 1000) if mw < 0 else mw // 1000


def _counter_delta(current: int, previous: int) -> int:
    if current >= previous:
        return current - previous
    # counter restarted; assume it began again from zero
    return current


def network_rates(raw: RawNetworkSample, timestamp: float, state: EngineState) -> Optional[NetworkRates]:
    prev = state.previous_network
    state.previous_network = (raw, float(timestamp))
    if prev is None:
        return None
    prev_raw, prev_ts = prev
    elapsed = float(timestamp) - prev_ts
    if elapsed <= 0:
        return None
    up = _counter_delta(raw.bytes_sent, prev_raw.bytes_sent) / elapsed
    down = _counter_delta(raw.bytes_recv, prev_raw.bytes_recv) / elapsed
    return NetworkRates(up_bytes_per_sec=up, down_bytes_per_sec=down)


# -------- tick orchestration --------

class TelemetryEngine:
    """
    Reads counters for every enabled metric and derives one ``Snapshot``.

    Owns its ``EngineState``; only ``tick()`` mutates it, and ticks are
    serialized by the sampling loop. A failed read makes only that metric
    unavailable and leaves its prior sample as it was.
    """

    def __init__(
        self,
        source: CounterSource,
        *,
        capabilities: Optional[Capabilities] = None,
        executor: Optional[Executor] = None,
        read_timeout_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        logger=None,
        on_read_failure: Optional[Callable[[Metric, Exception], None]] = None,
    ):
        self.source = source
        self.capabilities = capabilities if capabilities is not None else source.probe()
        self.executor = executor
        self.read_timeout_seconds = float(read_timeout_seconds)
        self.state = EngineState()
        self._clock = clock
        self._wall_clock = wall_clock
        self.logger = logger
        self.on_read_failure = on_read_failure
        # at most one outstanding read per metric; a hung read holds one worker, never more
        self._inflight: Dict[Metric, Future] = {}

    def tick(self, flags: Optional[MetricFlags] = None) -> Snapshot:
        flags = flags or MetricFlags()
        values: dict[str, Any] = {"sampled_at": float(self._wall_clock())}

        if flags.cpu:
            raw_cpu = self._read(Metric.cpu, self.source.read_cpu_ticks)
            if raw_cpu is not None:
                values["cpu_percent"] = cpu_utilization(raw_cpu, self.state)
        else:
            self.state.previous_cpu = None

        if flags.memory:
            raw_mem = self._read(Metric.memory, self.source.read_memory_stats)
            if raw_mem is not None:
                values["memory_percent"] = memory_percent(raw_mem)

        if flags.gpu and self.capabilities.accelerator:
            values["gpu_percent"] = self._read(Metric.gpu, self.source.read_accelerator_utilization)

        if flags.power and self.capabilities.power:
            values["power_watts"] = power_watts(self._read(Metric.power, self.source.read_power_milliwatts))

        if flags.network:
            raw_net = self._read(Metric.network, self.source.read_network_byte_counters)
            if raw_net is not None:
                values["network"] = network_rates(raw_net, self._clock(), self.state)
        else:
            self.state.previous_network = None

        return Snapshot(**values)

    def reset(self) -> None:
        self.state = EngineState()

    def _read(self, metric: Metric, fn: Callable[[], T]) -> Optional[T]:
        try:
            if self.executor is None:
                return fn()
            pending = self._inflight.get(metric)
            if pending is not None and not pending.done():
                raise ReadTimeoutError("Previous read still running.", metric=metric.value)
            fut = self.executor.submit(fn)
            self._inflight[metric] = fut
            try:
                return fut.result(timeout=self.read_timeout_seconds)
            except FutureTimeout as e:
                fut.cancel()
                raise ReadTimeoutError(metric=metric.value, timeout_seconds=self.read_timeout_seconds) from e
        except Exception as e:  # noqa: BLE001
            self._report_failure(metric, e)
            return None

    def _report_failure(self, metric: Metric, err: Exception) -> None:
        if self.logger:
            if isinstance(err, (CounterUnavailableError, ReadTimeoutError)):
                self.logger.debug(f"{metric.value} unavailable this tick: {err.user_message}")
            else:
                self.logger.warning(f"{metric.value} read failed: {err!r}")
        if self.on_read_failure is not None:
            try:
                self.on_read_failure(metric, err)
            except Exception:  # noqa: BLE001
                pass
