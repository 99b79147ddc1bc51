from __future__ import annotations

import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ReadResult:
    ok: bool
    data: Dict[str, Any]
    error: Optional[str] = None


def read_json_file(path: str) -> ReadResult:
    """``error`` is ``missing``, ``not_object``, ``corrupt_json:...`` or the OS error text."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except FileNotFoundError:
        return ReadResult(ok=False, data={}, error="missing")
    except json.JSONDecodeError as e:
        return ReadResult(ok=False, data={}, error=f"corrupt_json:{e}")
    except OSError as e:
        return ReadResult(ok=False, data={}, error=str(e))
    if not isinstance(obj, dict):
        return ReadResult(ok=False, data={}, error="not_object")
    return ReadResult(ok=True, data=obj)


def _backup_name(path: str, tag: str) -> str:
    stamp = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
    return f"{os.path.basename(path)}.{stamp}.{tag}.json"


def move_aside_corrupt(path: str, backups_dir: str) -> Optional[str]:
    """Move an unreadable file into backups so defaults can be written in its place."""
    if not os.path.exists(path):
        return None
    os.makedirs(backups_dir, exist_ok=True)
    dst = os.path.join(backups_dir, _backup_name(path, "corrupt"))
    shutil.move(path, dst)
    return dst


def _prune(backups_dir: str, base: str, keep: int) -> None:
    # pre-write copies only; corrupt files stay until someone looks at them
    mine = [n for n in os.listdir(backups_dir) if n.startswith(f"{base}.") and n.endswith(".prewrite.json")]
    mine.sort(key=lambda n: os.path.getmtime(os.path.join(backups_dir, n)), reverse=True)
    for name in mine[keep:]:
        os.remove(os.path.join(backups_dir, name))


def atomic_write_json(path: str, data: Dict[str, Any], backups_dir: str, *, max_backups: int = 10) -> None:
    """
    Replace ``path`` with ``data`` via a temp file and ``os.replace``.

    The previous version, if any, is copied into ``backups_dir`` first and
    only the newest ``max_backups`` copies of that file are kept.
    """
    folder = os.path.dirname(path) or "."
    os.makedirs(folder, exist_ok=True)
    if os.path.exists(path):
        os.makedirs(backups_dir, exist_ok=True)
        shutil.copy2(path, os.path.join(backups_dir, _backup_name(path, "prewrite")))
        _prune(backups_dir, os.path.basename(path), max(1, int(max_backups)))

    fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=folder)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
