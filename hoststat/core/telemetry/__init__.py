"""
Host telemetry sampling (local-only).

Once per tick this subsystem reads cumulative counters and derives:
- CPU utilization from per-core tick deltas
- memory occupancy from page counts
- accelerator utilization and power draw, when the hardware exposes them
- network throughput from interface byte-counter deltas

Nothing is stored or exported; each tick yields one in-process ``Snapshot``.
"""

from hoststat.core.telemetry.engine import EngineState, TelemetryEngine
from hoststat.core.telemetry.loop import SamplingConfig, SamplingLoop
from hoststat.core.telemetry.models import MetricFlags, Snapshot

__all__ = ["EngineState", "MetricFlags", "SamplingConfig", "SamplingLoop", "Snapshot", "TelemetryEngine"]
