from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hoststat.core.telemetry.engine import TelemetryEngine
from hoststat.core.telemetry.models import Metric, MetricFlags, Snapshot
from hoststat.core.telemetry.sources import CounterSource
from hoststat.core.telemetry.stats import LoopStats

Renderer = Callable[[Snapshot, MetricFlags], None]


class SamplingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval_seconds: float = Field(default=1.0, ge=1.0)
    read_timeout_seconds: float = Field(default=0.5, gt=0.0)
    latency_window: int = 120
    # one worker per metric, so a hung read never queues the others
    read_workers: int = Field(default=len(Metric), ge=1, le=8)


class SamplingLoop:
    """
    Fires the engine once per interval on a daemon thread. A stopped loop can
    be started again.

    At most one tick runs at a time. ``trigger()`` from another thread while
    a tick is in flight is dropped, never queued. Counter reads go through an
    executor with one worker per metric, so a hung read makes only its own
    metric unavailable until it returns.
    """

    def __init__(
        self,
        *,
        cfg: SamplingConfig,
        source: CounterSource,
        flags_provider: Optional[Callable[[], MetricFlags]] = None,
        logger=None,
        engine: Optional[TelemetryEngine] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cfg = cfg
        self.logger = logger
        self.flags_provider = flags_provider or MetricFlags
        self.stats = LoopStats(latency_window=int(cfg.latency_window))
        self._clock = clock
        self._exec = self._new_executor()
        self._exec_closed = False
        self._owns_engine = engine is None
        self.engine = engine or TelemetryEngine(
            source,
            executor=self._exec,
            read_timeout_seconds=float(cfg.read_timeout_seconds),
            logger=logger,
        )
        self.engine.on_read_failure = self._on_read_failure
        self._renderers: List[Renderer] = []
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last: Optional[Snapshot] = None

    # -------- wiring --------
    def attach(self, renderer: Renderer) -> None:
        self._renderers.append(renderer)

    def last_snapshot(self) -> Optional[Snapshot]:
        return self._last

    # -------- lifecycle --------
    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        if self._exec_closed:
            self._exec = self._new_executor()
            self._exec_closed = False
            if self._owns_engine:
                self.engine.executor = self._exec
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="hoststat-sampler", daemon=True)
        self._thread.start()
        if self.logger:
            self.logger.info(f"Sampling every {float(self.cfg.interval_seconds):g}s")

    def stop(self) -> None:
        self._stop.set()
        t = self._thread
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=2.0)
        self._exec.shutdown(wait=False, cancel_futures=True)
        self._exec_closed = True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until ``stop()`` is called; returns True once stopped."""
        return self._stop.wait(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=int(self.cfg.read_workers), thread_name_prefix="hoststat-read")

    # -------- ticks --------
    def trigger(self) -> Optional[Snapshot]:
        """
        Run one tick now unless one is already in flight.
        Returns the snapshot, or ``None`` if the tick was dropped.
        """
        if not self._tick_lock.acquire(blocking=False):
            self.stats.record_dropped()
            if self.logger:
                self.logger.debug("Tick dropped: previous tick still running")
            return None
        try:
            return self._run_tick()
        finally:
            self._tick_lock.release()

    def _run_tick(self) -> Snapshot:
        t0 = self._clock()
        flags = self._read_flags()
        snap = self.engine.tick(flags)
        self._last = snap
        self.stats.record_tick((self._clock() - t0) * 1000.0)
        for renderer in list(self._renderers):
            try:
                renderer(snap, flags)
            except Exception as e:  # noqa: BLE001
                if self.logger:
                    self.logger.warning(f"Renderer failed: {e!r}")
        return snap

    def _read_flags(self) -> MetricFlags:
        try:
            return self.flags_provider()
        except Exception as e:  # noqa: BLE001
            if self.logger:
                self.logger.warning(f"Metric flags unavailable, sampling everything: {e!r}")
            return MetricFlags()

    def _loop(self) -> None:
        interval = max(1.0, float(self.cfg.interval_seconds))
        next_tick = self._clock()
        while not self._stop.is_set():
            now = self._clock()
            if now >= next_tick:
                self.trigger()
                # fixed period; skip missed slots instead of bursting to catch up
                next_tick += interval
                if next_tick <= self._clock():
                    next_tick = self._clock() + interval
            self._stop.wait(max(0.0, min(interval, next_tick - self._clock())))

    def _on_read_failure(self, metric: Metric, err: Exception) -> None:
        self.stats.record_read_failure(metric.value)

    def summary(self) -> Dict[str, Any]:
        return self.stats.snapshot()
