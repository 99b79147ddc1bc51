from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import ValidationError

from hoststat.core.config.io import atomic_write_json, move_aside_corrupt, read_json_file
from hoststat.core.config.models import SamplerConfigFile
from hoststat.core.config.paths import ConfigFsPaths
from hoststat.core.errors import ConfigError


class ConfigManager:
    """
    Loads ``config/sampler.json``.

    Missing file: defaults are written. Corrupt JSON: the file is moved into
    ``config/backups`` and defaults take its place. Well-formed JSON that fails
    validation is an error; the user has to fix it.
    """

    def __init__(self, *, fs: Optional[ConfigFsPaths] = None, logger=None, read_only: bool = False):
        self.fs = fs or ConfigFsPaths(".")
        self.logger = logger
        self.read_only = bool(read_only)
        self._cfg: Optional[SamplerConfigFile] = None

    def load(self) -> SamplerConfigFile:
        rr = read_json_file(self.fs.sampler)
        raw: Dict[str, Any]
        if rr.ok:
            raw = rr.data
        else:
            if rr.error and rr.error.startswith("corrupt_json"):
                moved = move_aside_corrupt(self.fs.sampler, self.fs.backups_dir)
                if self.logger:
                    self.logger.warning(f"Sampler config corrupt, moved to {moved}; using defaults.")
            raw = SamplerConfigFile().model_dump()
            if not self.read_only:
                atomic_write_json(self.fs.sampler, raw, self.fs.backups_dir)
        try:
            cfg = SamplerConfigFile.model_validate(raw)
        except ValidationError as e:
            raise ConfigError("sampler.json is invalid.", path=self.fs.sampler, errors=e.errors(include_url=False)) from e
        self._cfg = cfg
        return cfg

    def get(self) -> SamplerConfigFile:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    def save(self, cfg: SamplerConfigFile) -> None:
        if self.read_only:
            raise ConfigError("Config manager is read-only.")
        os.makedirs(self.fs.config_dir, exist_ok=True)
        atomic_write_json(self.fs.sampler, cfg.model_dump(), self.fs.backups_dir, max_backups=int(cfg.max_backups))
        self._cfg = cfg
