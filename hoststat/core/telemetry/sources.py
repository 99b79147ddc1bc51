from __future__ import annotations

import mmap
import os
from typing import Any, Iterator, List, Optional, Protocol

import psutil

from hoststat.core.errors import CounterUnavailableError
from hoststat.core.telemetry.engine import first_utilization
from hoststat.core.telemetry.models import Capabilities, CoreTicks, RawCpuSample, RawMemorySample, RawNetworkSample

# psutil reports CPU times in seconds; keep two decimals as integer ticks
_TICKS_PER_SECOND = 100


class CounterSource(Protocol):
    def probe(self) -> Capabilities: ...

    def read_cpu_ticks(self) -> RawCpuSample: ...

    def read_memory_stats(self) -> RawMemorySample: ...

    def read_accelerator_utilization(self) -> Optional[float]: ...

    def read_power_milliwatts(self) -> Optional[int]: ...

    def read_network_byte_counters(self) -> RawNetworkSample: ...


class PsutilCounterSource:
    """
    Local counter reader. Best effort:
    - CPU ticks, memory pages and interface byte counters via psutil
    - GPU utilization via pynvml if installed and enabled, then DRM sysfs
    - power draw via /sys/class/power_supply
    """

    def __init__(
        self,
        *,
        enable_nvml: bool = True,
        drm_root: str = "/sys/class/drm",
        supply_root: str = "/sys/class/power_supply",
        psutil_mod: Any = None,
        page_size: Optional[int] = None,
        logger=None,
    ):
        self.enable_nvml = bool(enable_nvml)
        self.drm_root = drm_root
        self.supply_root = supply_root
        self.logger = logger
        self._psutil = psutil_mod if psutil_mod is not None else psutil
        self._page_size = int(page_size or mmap.PAGESIZE)
        self._total_bytes: Optional[int] = None
        self._nvml = None

    # -------- capability probe --------
    def probe(self) -> Capabilities:
        caps = Capabilities(accelerator=self._probe_accelerator(), power=self._probe_power())
        if self.logger:
            self.logger.info(f"Capabilities: accelerator={caps.accelerator} power={caps.power}")
        return caps

    def _probe_accelerator(self) -> bool:
        if self.enable_nvml and self._nvml is None:
            try:
                import pynvml  # type: ignore

                pynvml.nvmlInit()
                if int(pynvml.nvmlDeviceGetCount()) > 0:
                    self._nvml = pynvml
                else:
                    pynvml.nvmlShutdown()
            except Exception:  # noqa: BLE001
                self._nvml = None
        return self._nvml is not None or bool(self._drm_busy_files())

    def _probe_power(self) -> bool:
        return any(True for _ in self._supply_dirs())

    def close(self) -> None:
        if self._nvml is not None:
            try:
                self._nvml.nvmlShutdown()
            except Exception:  # noqa: BLE001
                pass
            self._nvml = None

    # -------- CPU --------
    def read_cpu_ticks(self) -> RawCpuSample:
        try:
            per_cpu = self._psutil.cpu_times(percpu=True)
        except (OSError, RuntimeError) as e:
            raise CounterUnavailableError("CPU times unavailable.", error=str(e)) from e
        if not per_cpu:
            raise CounterUnavailableError("No CPU times reported.")
        cores = [
            CoreTicks(
                user=_ticks(getattr(t, "user", 0.0)),
                system=_ticks(getattr(t, "system", 0.0)),
                nice=_ticks(getattr(t, "nice", 0.0)),
                idle=_ticks(getattr(t, "idle", 0.0)),
            )
            for t in per_cpu
        ]
        return RawCpuSample(cores=cores)

    # -------- memory --------
    def read_memory_stats(self) -> RawMemorySample:
        try:
            vm = self._psutil.virtual_memory()
        except (OSError, RuntimeError) as e:
            raise CounterUnavailableError("Memory statistics unavailable.", error=str(e)) from e
        if self._total_bytes is None and int(getattr(vm, "total", 0) or 0) > 0:
            # physical memory does not change for the life of the process
            self._total_bytes = int(vm.total)
        ps = self._page_size
        return RawMemorySample(
            free_pages=int(getattr(vm, "free", 0) or 0) // ps,
            inactive_pages=int(getattr(vm, "inactive", 0) or 0) // ps,
            purgeable_pages=int(getattr(vm, "purgeable", 0) or 0) // ps,
            speculative_pages=int(getattr(vm, "speculative", 0) or 0) // ps,
            page_size=ps,
            total_bytes=int(self._total_bytes or 0),
        )

    # -------- accelerator --------
    def read_accelerator_utilization(self) -> Optional[float]:
        return first_utilization(self.accelerator_candidates())

    def accelerator_candidates(self) -> Iterator[Optional[float]]:
        """Lazily yields one reading per device: NVML devices first, then DRM cards."""
        nvml = self._nvml
        if nvml is not None:
            try:
                count = int(nvml.nvmlDeviceGetCount())
            except Exception:  # noqa: BLE001
                count = 0
            for i in range(count):
                try:
                    h = nvml.nvmlDeviceGetHandleByIndex(i)
                    yield float(nvml.nvmlDeviceGetUtilizationRates(h).gpu)
                except Exception:  # noqa: BLE001
                    yield None
        for path in self._drm_busy_files():
            yield _read_int(path)

    def _drm_busy_files(self) -> List[str]:
        if not os.path.isdir(self.drm_root):
            return []
        out: List[str] = []
        for card in sorted(os.listdir(self.drm_root)):
            # skip connector entries like card0-HDMI-A-1
            if not card.startswith("card") or "-" in card:
                continue
            path = os.path.join(self.drm_root, card, "device", "gpu_busy_percent")
            if os.path.isfile(path):
                out.append(path)
        return out

    # -------- power --------
    def read_power_milliwatts(self) -> Optional[int]:
        for d in self._supply_dirs():
            power_uw = _read_int(os.path.join(d, "power_now"))
            if power_uw is not None:
                return power_uw // 1000
            current_ua = _read_int(os.path.join(d, "current_now"))
            voltage_uv = _read_int(os.path.join(d, "voltage_now"))
            if current_ua is not None and voltage_uv is not None:
                # uA * uV = pW
                return (current_ua * voltage_uv) // 1_000_000_000
        return None

    def _supply_dirs(self) -> Iterator[str]:
        if not os.path.isdir(self.supply_root):
            return
        for name in sorted(os.listdir(self.supply_root)):
            d = os.path.join(self.supply_root, name)
            if os.path.isfile(os.path.join(d, "power_now")):
                yield d
            elif os.path.isfile(os.path.join(d, "current_now")) and os.path.isfile(os.path.join(d, "voltage_now")):
                yield d

    # -------- network --------
    def read_network_byte_counters(self) -> RawNetworkSample:
        try:
            stats = self._psutil.net_if_stats()
            counters = self._psutil.net_io_counters(pernic=True)
        except (OSError, RuntimeError) as e:
            raise CounterUnavailableError("Interface counters unavailable.", error=str(e)) from e
        sent = 0
        recv = 0
        for nic, ctr in (counters or {}).items():
            st = (stats or {}).get(nic)
            if st is None or not _is_up_running_external(nic, st):
                continue
            sent += int(ctr.bytes_sent)
            recv += int(ctr.bytes_recv)
        return RawNetworkSample(bytes_sent=sent, bytes_recv=recv)


def _ticks(seconds: Any) -> int:
    try:
        return max(0, int(round(float(seconds) * _TICKS_PER_SECOND)))
    except (TypeError, ValueError):
        return 0


def _read_int(path: str) -> Optional[int]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


def _is_up_running_external(nic: str, st: Any) -> bool:
    if not bool(getattr(st, "isup", False)):
        return False
    flags = str(getattr(st, "flags", "") or "")
    if flags:
        names = set(flags.split(","))
        return "running" in names and "loopback" not in names
    # no flags on this platform
    return not (nic == "lo" or nic.lower().startswith("loopback"))
