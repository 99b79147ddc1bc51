from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from hoststat.core.config.io import atomic_write_json, read_json_file
from hoststat.core.config.paths import ConfigFsPaths
from hoststat.core.errors import ConfigError
from hoststat.core.telemetry.models import Metric, MetricFlags


class MetricFlagStore:
    """
    Per-metric enable flags backed by ``config/metrics.json``.

    The file is re-read on every ``flags()`` call so edits made while the
    sampler runs take effect on the next tick. Unknown names are ignored and
    missing ones default to enabled.
    """

    def __init__(
        self,
        *,
        flags_path: Optional[str] = None,
        backups_dir: Optional[str] = None,
        logger=None,
        read_only: bool = False,
        max_backups: int = 10,
        overrides: Optional[Dict[str, bool]] = None,
    ):
        fs = ConfigFsPaths(".")
        self.flags_path = flags_path or fs.metrics
        self.backups_dir = backups_dir or fs.backups_dir
        self.logger = logger
        self.read_only = bool(read_only)
        self.max_backups = int(max_backups)
        self._overrides = {str(k): bool(v) for k, v in (overrides or {}).items()}
        self._lock = threading.Lock()

    def flags(self) -> MetricFlags:
        with self._lock:
            raw = self._load_raw()
        values = self._normalize(raw.get("flags"))
        values.update({k: v for k, v in self._overrides.items() if k in values})
        return MetricFlags(**values)

    def is_enabled(self, metric: str) -> bool:
        try:
            m = Metric(metric)
        except ValueError:
            return False
        return self.flags().enabled(m)

    def set_flag(self, metric: str, enabled: bool, *, actor: str = "user") -> bool:
        try:
            m = Metric(metric)
        except ValueError as e:
            raise ConfigError(f"Unknown metric: {metric}", metric=metric) from e
        if self.read_only:
            raise ConfigError("Metric flags are read-only.")
        enabled = bool(enabled)
        with self._lock:
            raw = self._load_raw()
            flags = self._normalize(raw.get("flags"))
            flags[m.value] = enabled
            payload = {"flags": flags, "updated_at": _now_iso(), "updated_by": actor}
            atomic_write_json(self.flags_path, payload, self.backups_dir, max_backups=self.max_backups)
        # a persisted change wins over a CLI override from now on
        self._overrides.pop(m.value, None)
        if self.logger:
            self.logger.info(f"Metric {m.value} {'enabled' if enabled else 'disabled'} by {actor}")
        return enabled

    def toggle(self, metric: str, *, actor: str = "user") -> bool:
        return self.set_flag(metric, not self.is_enabled(metric), actor=actor)

    # ---- internals ----
    def _load_raw(self) -> Dict[str, Any]:
        rr = read_json_file(self.flags_path)
        if rr.ok and isinstance(rr.data.get("flags"), dict):
            return rr.data
        if rr.error and rr.error != "missing" and self.logger:
            self.logger.warning(f"Metric flags unreadable ({rr.error}); all metrics enabled.")
        return self._bootstrap_defaults(write=rr.error == "missing")

    def _bootstrap_defaults(self, *, write: bool) -> Dict[str, Any]:
        payload = {"flags": MetricFlags().model_dump(), "updated_at": "1970-01-01T00:00:00Z", "updated_by": "system"}
        if write and not self.read_only:
            try:
                atomic_write_json(self.flags_path, payload, self.backups_dir, max_backups=self.max_backups)
            except OSError as e:
                if self.logger:
                    self.logger.warning(f"Metric flags write failed: {e}")
        return payload

    @staticmethod
    def _normalize(flags: Any) -> Dict[str, bool]:
        out = MetricFlags().model_dump()
        if not isinstance(flags, dict):
            return out
        for name, value in flags.items():
            if name not in out:
                continue
            if isinstance(value, dict):
                value = value.get("enabled", True)
            out[name] = bool(value)
        return out


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def default_flag_store(root: str = ".", **kwargs: Any) -> MetricFlagStore:
    fs = ConfigFsPaths(root)
    return MetricFlagStore(flags_path=fs.metrics, backups_dir=fs.backups_dir, **kwargs)


__all__ = ["MetricFlagStore", "default_flag_store"]
