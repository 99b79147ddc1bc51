from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Metric(str, Enum):
    cpu = "cpu"
    memory = "memory"
    gpu = "gpu"
    power = "power"
    network = "network"


@dataclass(frozen=True)
class Capabilities:
    """Hardware probed once at startup; absent capabilities are never read."""

    accelerator: bool = False
    power: bool = False


class CoreTicks(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    user: int = Field(default=0, ge=0)
    system: int = Field(default=0, ge=0)
    nice: int = Field(default=0, ge=0)
    idle: int = Field(default=0, ge=0)


class RawCpuSample(BaseModel):
    """Per-core tick counters, cumulative since boot."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cores: List[CoreTicks]


class RawMemorySample(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    free_pages: int = Field(default=0, ge=0)
    inactive_pages: int = Field(default=0, ge=0)
    purgeable_pages: int = Field(default=0, ge=0)
    speculative_pages: int = Field(default=0, ge=0)
    page_size: int = Field(default=0, ge=0)
    total_bytes: int = Field(default=0, ge=0)


class RawNetworkSample(BaseModel):
    """Byte counters summed over interfaces that are up, running and not loopback."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    bytes_sent: int = Field(default=0, ge=0)
    bytes_recv: int = Field(default=0, ge=0)


class MetricFlags(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    cpu: bool = True
    memory: bool = True
    gpu: bool = True
    power: bool = True
    network: bool = True

    def enabled(self, metric: Metric) -> bool:
        return bool(getattr(self, metric.value))

    def any_enabled(self) -> bool:
        return any(self.enabled(m) for m in Metric)


class NetworkRates(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    up_bytes_per_sec: float
    down_bytes_per_sec: float


class Snapshot(BaseModel):
    """One tick's derived values. ``None`` means unavailable (disabled, warming up or failed)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sampled_at: float = Field(default_factory=lambda: time.time())
    cpu_percent: Optional[float] = None
    memory_percent: Optional[float] = None
    gpu_percent: Optional[float] = None
    power_watts: Optional[int] = None
    network: Optional[NetworkRates] = None
