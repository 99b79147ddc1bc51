from __future__ import annotations

import pytest

from hoststat.core.telemetry.formatting import LogLineRenderer, format_rate, format_status_line
from hoststat.core.telemetry.models import Capabilities, MetricFlags, NetworkRates, Snapshot


@pytest.mark.parametrize(
    "rate,expected",
    [
        (0, "0KB/s"),
        (500, "0KB/s"),
        (512, "1KB/s"),
        (1536, "2KB/s"),
        (2560, "3KB/s"),
        (51_200, "50KB/s"),
        (1_048_575, "1024KB/s"),
        (1_048_576, "1.0MB/s"),
        (2_097_152, "2.0MB/s"),
        (5_400_000, "5.1MB/s"),
    ],
)
def test_format_rate_unit_boundary(rate, expected):
    assert format_rate(rate) == expected


def test_negative_rate_renders_as_zero():
    assert format_rate(-10) == "0KB/s"


def _full_snapshot(**overrides):
    values = dict(
        cpu_percent=12.4,
        memory_percent=40.0,
        gpu_percent=3.0,
        power_watts=15,
        network=NetworkRates(up_bytes_per_sec=3 * 1024, down_bytes_per_sec=1.2 * 1024 * 1024),
    )
    values.update(overrides)
    return Snapshot(**values)


def test_status_line_all_metrics():
    assert format_status_line(_full_snapshot()) == "CPU:12% MEM:40% GPU:3% 15W ↑3KB/s ↓1.2MB/s"


def test_missing_values_render_explicit_marker_not_zero():
    snap = Snapshot()
    line = format_status_line(snap)
    assert line == "CPU:-- MEM:-- GPU:-- --W ↑-- ↓--"
    assert "0W" not in line


def test_zero_watts_is_not_no_data():
    assert "0W" in format_status_line(_full_snapshot(power_watts=0))


def test_disabled_metrics_are_left_out():
    flags = MetricFlags(cpu=True, memory=False, gpu=False, power=False, network=False)
    assert format_status_line(_full_snapshot(), flags) == "CPU:12%"


def test_nothing_enabled():
    flags = MetricFlags(cpu=False, memory=False, gpu=False, power=False, network=False)
    assert format_status_line(_full_snapshot(), flags) == "---"


def test_color_marks_critical_only_when_requested():
    snap = _full_snapshot(cpu_percent=93.0)
    assert "\033[31mCPU:93%" in format_status_line(snap, color=True)
    assert "\033[" not in format_status_line(snap)


def test_log_line_renderer_writes_one_line(logger):
    r = LogLineRenderer(logger)
    r(_full_snapshot(), MetricFlags(network=False))
    assert logger.messages("info") == ["CPU:12% MEM:40% GPU:3% 15W"]
    assert r.last_line == "CPU:12% MEM:40% GPU:3% 15W"


def test_enabled_gpu_without_reading_shows_marker():
    flags = MetricFlags(memory=False, power=False, network=False)
    assert format_status_line(Snapshot(cpu_percent=12.0), flags) == "CPU:12% GPU:--"


def test_gpu_left_out_when_host_has_no_accelerator():
    flags = MetricFlags(memory=False, power=False, network=False)
    caps = Capabilities(accelerator=False, power=True)
    assert format_status_line(Snapshot(cpu_percent=12.0), flags, capabilities=caps) == "CPU:12%"
    with_gpu = Capabilities(accelerator=True)
    assert format_status_line(Snapshot(cpu_percent=12.0), flags, capabilities=with_gpu) == "CPU:12% GPU:--"
