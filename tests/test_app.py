from __future__ import annotations

import json

import app
from tests.helpers.fakes import DummyLogger


def test_once_prints_one_status_line(tmp_path, monkeypatch, fake_source):
    logger = DummyLogger()
    monkeypatch.setattr(app, "PsutilCounterSource", lambda **_kw: fake_source)
    monkeypatch.setattr(app, "setup_logging", lambda *_a, **_k: logger)

    rc = app.main(["--once", "--root", str(tmp_path), "--disable", "power"])

    assert rc == 0
    lines = [m for m in logger.messages("info") if m.startswith("CPU:")]
    assert lines == ["CPU:0% MEM:70% GPU:12% ↑0KB/s ↓0KB/s"]
    assert fake_source.calls["close"] == 1
    assert "power" not in fake_source.calls
    assert (tmp_path / "config" / "sampler.json").exists()


def test_invalid_config_exits_with_2(tmp_path, capsys):
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir()
    (cfg_dir / "sampler.json").write_text(json.dumps({"interval_seconds": 0}), encoding="utf-8")

    rc = app.main(["--once", "--root", str(tmp_path)])

    assert rc == 2
    assert "sampler.json is invalid" in capsys.readouterr().err
