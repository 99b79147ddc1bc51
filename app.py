from __future__ import annotations

import argparse
import os
import signal
import sys
from typing import Dict, List, Optional

from hoststat.core.config.manager import ConfigManager
from hoststat.core.config.paths import ConfigFsPaths
from hoststat.core.errors import ConfigError
from hoststat.core.flags.manager import MetricFlagStore
from hoststat.core.logger import get_logger, setup_logging
from hoststat.core.telemetry.formatting import LogLineRenderer
from hoststat.core.telemetry.loop import SamplingConfig, SamplingLoop
from hoststat.core.telemetry.models import Metric
from hoststat.core.telemetry.sources import PsutilCounterSource


def _overrides(disabled: Optional[List[str]]) -> Dict[str, bool]:
    return {name: False for name in (disabled or [])}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="hoststat: live CPU/memory/GPU/power/network sampler")
    ap.add_argument("--root", default=".", help="Directory holding config/ (default: current directory).")
    ap.add_argument("--interval", type=float, default=None, help="Seconds between ticks (>= 1, overrides config).")
    ap.add_argument("--disable", action="append", choices=[m.value for m in Metric], help="Skip a metric for this run (repeatable).")
    ap.add_argument("--once", action="store_true", help="Take a warm-up tick and one real tick, print the line, exit.")
    ap.add_argument("--color", action="store_true", help="Colour percentages by severity.")
    ap.add_argument("--verbose", action="store_true", help="Debug logging.")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    fs = ConfigFsPaths(args.root)

    boot_logger = get_logger("app")
    try:
        cfg = ConfigManager(fs=fs, logger=boot_logger).load()
    except ConfigError as e:
        print(f"Config error: {e.user_message} {e.context}", file=sys.stderr)
        return 2

    log_dir = cfg.log_dir if os.path.isabs(cfg.log_dir) else os.path.join(args.root, cfg.log_dir)
    logger = setup_logging(log_dir, verbose=bool(args.verbose))
    interval = float(args.interval) if args.interval is not None else float(cfg.interval_seconds)
    if interval < 1.0:
        logger.warning(f"Interval {interval:g}s below 1s; using 1s")
        interval = 1.0

    flags = MetricFlagStore(
        flags_path=fs.metrics,
        backups_dir=fs.backups_dir,
        logger=logger,
        max_backups=int(cfg.max_backups),
        overrides=_overrides(args.disable),
    )
    source = PsutilCounterSource(
        enable_nvml=bool(cfg.gpu.enable_nvml),
        drm_root=cfg.gpu.drm_root,
        supply_root=cfg.power.supply_root,
        logger=logger,
    )
    loop = SamplingLoop(
        cfg=SamplingConfig(interval_seconds=interval, read_timeout_seconds=cfg.read_timeout_seconds, latency_window=cfg.latency_window),
        source=source,
        flags_provider=flags.flags,
        logger=logger,
    )
    renderer = LogLineRenderer(logger, color=bool(args.color or cfg.color), capabilities=loop.engine.capabilities)

    if args.once:
        # first tick only seeds the delta metrics
        loop.trigger()
        loop.wait(interval)
        loop.attach(renderer)
        loop.trigger()
        loop.stop()
        source.close()
        return 0

    loop.attach(renderer)

    def _shutdown(_signum, _frame):  # noqa: ANN001
        loop.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    loop.start()
    try:
        while not loop.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        loop.stop()
        source.close()
        logger.info(f"Stopped. {loop.summary()['counters']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
