from __future__ import annotations

from typing import List, Optional

from hoststat.core.telemetry.models import Capabilities, MetricFlags, Snapshot
from hoststat.core.telemetry.severity import Severity, classify

KIB = 1024.0
MIB = 1024.0 * 1024.0

NO_DATA = "--"
NOTHING_ENABLED = "---"

_ANSI = {
    Severity.NORMAL: "",
    Severity.ELEVATED: "\033[33m",
    Severity.CRITICAL: "\033[31m",
}
_ANSI_RESET = "\033[0m"


def format_rate(bytes_per_sec: float) -> str:
    """Whole KB/s below 1024 KiB/s (halves round up), MB/s with one decimal from there up."""
    rate = max(0.0, float(bytes_per_sec))
    if rate < MIB:
        return f"{int(rate / KIB + 0.5)}KB/s"
    return f"{rate / MIB:.1f}MB/s"


def _percent(label: str, value: Optional[float], color: bool) -> str:
    if value is None:
        return f"{label}:{NO_DATA}"
    text = f"{label}:{value:.0f}%"
    if not color:
        return text
    prefix = _ANSI[classify(value)]
    return f"{prefix}{text}{_ANSI_RESET}" if prefix else text


def format_status_line(
    snapshot: Snapshot,
    flags: Optional[MetricFlags] = None,
    *,
    color: bool = False,
    capabilities: Optional[Capabilities] = None,
) -> str:
    """
    One line for the whole snapshot. Enabled metrics without a value show
    ``--``. GPU is left out only when the host has no accelerator at all.
    """
    flags = flags or MetricFlags()
    if not flags.any_enabled():
        return NOTHING_ENABLED
    has_accelerator = capabilities is None or capabilities.accelerator
    parts: List[str] = []
    if flags.cpu:
        parts.append(_percent("CPU", snapshot.cpu_percent, color))
    if flags.memory:
        parts.append(_percent("MEM", snapshot.memory_percent, color))
    if flags.gpu and has_accelerator:
        parts.append(_percent("GPU", snapshot.gpu_percent, color))
    if flags.power:
        parts.append(f"{snapshot.power_watts}W" if snapshot.power_watts is not None else f"{NO_DATA}W")
    if flags.network:
        net = snapshot.network
        if net is None:
            parts.append(f"↑{NO_DATA} ↓{NO_DATA}")
        else:
            parts.append(f"↑{format_rate(net.up_bytes_per_sec)} ↓{format_rate(net.down_bytes_per_sec)}")
    return " ".join(parts) if parts else NOTHING_ENABLED


class LogLineRenderer:
    """Writes one status line per tick to a logger."""

    def __init__(self, logger, *, color: bool = False, capabilities: Optional[Capabilities] = None):
        self.logger = logger
        self.color = bool(color)
        self.capabilities = capabilities
        self.last_line: Optional[str] = None

    def __call__(self, snapshot: Snapshot, flags: Optional[MetricFlags] = None) -> None:
        line = format_status_line(snapshot, flags, color=self.color, capabilities=self.capabilities)
        self.last_line = line
        self.logger.info(line)
