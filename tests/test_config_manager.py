from __future__ import annotations

import json
import os

import pytest

from hoststat.core.config.manager import ConfigManager
from hoststat.core.config.models import SamplerConfigFile
from hoststat.core.config.paths import ConfigFsPaths
from hoststat.core.errors import ConfigError


def _cm(tmp_path, logger=None, **kw) -> ConfigManager:
    return ConfigManager(fs=ConfigFsPaths(root=str(tmp_path)), logger=logger, **kw)


def _write(path: str, text: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def test_missing_file_writes_defaults(tmp_path):
    cm = _cm(tmp_path)
    cfg = cm.load()
    assert cfg.interval_seconds == 1.0
    with open(cm.fs.sampler, "r", encoding="utf-8") as f:
        on_disk = json.load(f)
    assert on_disk["interval_seconds"] == 1.0
    assert on_disk["gpu"]["enable_nvml"] is True


def test_read_only_does_not_write_defaults(tmp_path):
    cm = _cm(tmp_path, read_only=True)
    cm.load()
    assert not os.path.exists(cm.fs.sampler)


def test_corrupt_json_is_moved_aside(tmp_path, logger):
    cm = _cm(tmp_path, logger=logger)
    _write(cm.fs.sampler, "{not json")
    cfg = cm.load()
    assert cfg == SamplerConfigFile()
    backups = os.listdir(cm.fs.backups_dir)
    assert any("sampler.json" in b and "corrupt" in b for b in backups)
    assert any("corrupt" in m for m in logger.messages("warning"))


def test_sub_second_interval_is_rejected(tmp_path):
    cm = _cm(tmp_path)
    _write(cm.fs.sampler, json.dumps({"interval_seconds": 0.25}))
    with pytest.raises(ConfigError) as ei:
        cm.load()
    assert ei.value.code == "config_error"
    assert ei.value.context["path"] == cm.fs.sampler
    d = ei.value.to_dict()
    assert d["severity"] == "CRITICAL"
    assert d["recoverable"] is False


def test_unknown_field_is_rejected(tmp_path):
    cm = _cm(tmp_path)
    _write(cm.fs.sampler, json.dumps({"refresh_hz": 4}))
    with pytest.raises(ConfigError):
        cm.load()


def test_get_before_load_raises(tmp_path):
    with pytest.raises(ConfigError):
        _cm(tmp_path).get()


def test_save_round_trips_and_backs_up(tmp_path):
    cm = _cm(tmp_path)
    cfg = cm.load()
    cm.save(cfg.model_copy(update={"interval_seconds": 5.0, "color": True}))
    again = _cm(tmp_path).load()
    assert again.interval_seconds == 5.0
    assert again.color is True
    assert any(b.startswith("sampler.json.") and "prewrite" in b for b in os.listdir(cm.fs.backups_dir))


def test_save_read_only_raises(tmp_path):
    cm = _cm(tmp_path, read_only=True)
    with pytest.raises(ConfigError):
        cm.save(SamplerConfigFile())
