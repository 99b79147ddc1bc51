from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfigFsPaths:
    root: str = "."

    @property
    def config_dir(self) -> str:
        return os.path.join(self.root, "config")

    @property
    def backups_dir(self) -> str:
        return os.path.join(self.config_dir, "backups")

    # Files
    @property
    def sampler(self) -> str:
        return os.path.join(self.config_dir, "sampler.json")

    @property
    def metrics(self) -> str:
        return os.path.join(self.config_dir, "metrics.json")
