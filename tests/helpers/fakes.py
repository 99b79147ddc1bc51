from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from hoststat.core.errors import CounterUnavailableError
from hoststat.core.telemetry.models import Capabilities, CoreTicks, RawCpuSample, RawMemorySample, RawNetworkSample


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self._t = float(start)

    def __call__(self) -> float:
        return self._t

    def time(self) -> float:
        return self._t

    def advance(self, seconds: float) -> None:
        self._t += float(seconds)


def cpu(*cores: Tuple[int, int, int, int]) -> RawCpuSample:
    """cpu((user, system, nice, idle), ...)"""
    return RawCpuSample(cores=[CoreTicks(user=u, system=s, nice=n, idle=i) for u, s, n, i in cores])


def net(sent: int, recv: int) -> RawNetworkSample:
    return RawNetworkSample(bytes_sent=sent, bytes_recv=recv)


@dataclass
class FakeCounterSource:
    """
    Scripted counter source. Each read pops the next queued value; when the
    queue is empty the last value repeats. A queued exception is raised.
    """

    cpu_samples: List[object] = field(default_factory=list)
    memory_samples: List[object] = field(default_factory=list)
    network_samples: List[object] = field(default_factory=list)
    gpu: Optional[float] = None
    power_mw: Optional[int] = None
    capabilities: Capabilities = field(default_factory=lambda: Capabilities(accelerator=True, power=True))
    calls: Dict[str, int] = field(default_factory=dict)
    probes: int = 0
    block: Optional[threading.Event] = None

    def probe(self) -> Capabilities:
        self.probes += 1
        return self.capabilities

    def _next(self, name: str, queue: List[object]):
        self.calls[name] = self.calls.get(name, 0) + 1
        if not queue:
            raise CounterUnavailableError(f"no {name} scripted")
        value = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(value, Exception):
            raise value
        return value

    def read_cpu_ticks(self) -> RawCpuSample:
        self.calls["cpu_started"] = self.calls.get("cpu_started", 0) + 1
        if self.block is not None:
            self.block.wait(5.0)
        return self._next("cpu", self.cpu_samples)

    def read_memory_stats(self) -> RawMemorySample:
        return self._next("memory", self.memory_samples)

    def read_accelerator_utilization(self) -> Optional[float]:
        self.calls["gpu"] = self.calls.get("gpu", 0) + 1
        return self.gpu

    def read_power_milliwatts(self) -> Optional[int]:
        self.calls["power"] = self.calls.get("power", 0) + 1
        return self.power_mw

    def read_network_byte_counters(self) -> RawNetworkSample:
        return self._next("network", self.network_samples)

    def close(self) -> None:
        self.calls["close"] = self.calls.get("close", 0) + 1


class DummyLogger:
    def __init__(self):
        self.records: List[Tuple[str, str]] = []

    def _log(self, level: str, msg: str) -> None:
        self.records.append((level, str(msg)))

    def debug(self, msg, *_a, **_k):  # noqa: ANN001
        self._log("debug", msg)

    def info(self, msg, *_a, **_k):  # noqa: ANN001
        self._log("info", msg)

    def warning(self, msg, *_a, **_k):  # noqa: ANN001
        self._log("warning", msg)

    def messages(self, level: str) -> Sequence[str]:
        return [m for lvl, m in self.records if lvl == level]
