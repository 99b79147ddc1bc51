from __future__ import annotations

import pytest

from hoststat.core.telemetry.models import RawMemorySample
from tests.helpers.fakes import DummyLogger, FakeClock, FakeCounterSource, cpu, net


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def memory_sample():
    # 1000 pages of 4 KiB, 300 of them reclaimable -> 70% used
    return RawMemorySample(
        free_pages=100,
        inactive_pages=150,
        purgeable_pages=25,
        speculative_pages=25,
        page_size=4096,
        total_bytes=4096 * 1000,
    )


@pytest.fixture
def fake_source(memory_sample):
    return FakeCounterSource(
        cpu_samples=[cpu((100, 50, 0, 850))],
        memory_samples=[memory_sample],
        network_samples=[net(1000, 2000)],
        gpu=12.0,
        power_mw=15_999,
    )
