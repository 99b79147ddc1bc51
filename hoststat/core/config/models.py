from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GpuConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enable_nvml: bool = True
    drm_root: str = "/sys/class/drm"


class PowerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    supply_root: str = "/sys/class/power_supply"


class SamplerConfigFile(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: int = Field(default=1, ge=1, le=1)
    # sub-second sampling is not supported
    interval_seconds: float = Field(default=1.0, ge=1.0, le=3600.0)
    read_timeout_seconds: float = Field(default=0.5, gt=0.0, le=10.0)
    latency_window: int = Field(default=120, ge=10, le=10_000)
    log_dir: str = "logs"
    color: bool = False
    max_backups: int = Field(default=10, ge=1)
    gpu: GpuConfig = Field(default_factory=GpuConfig)
    power: PowerConfig = Field(default_factory=PowerConfig)
