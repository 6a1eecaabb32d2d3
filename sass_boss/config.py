"""Configuration loaded from YAML or CLI args."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

import yaml


@dataclass(frozen=True)
class Config:
    root: str = "."
    tool_dir: str = "node_modules/.bin"
    sass_cmd: str = "node-sass"
    postcss_cmd: str = "postcss"
    postcss_config: str = "postcss.config.js"
    precision: int = 8
    production: bool = False
    source_maps: bool = False
    autoprefixer_enabled: bool = True
    notifications: bool = True
    notify_on_success: bool = True
    notification_title: str = "sass-boss"
    notification_icon: str | None = None
    use_shell: bool = True
    watch: bool = False

    @classmethod
    def load(cls, path: str | Path | None = None) -> Config:
        if path and Path(path).exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        return cls()

    @classmethod
    def from_cli(cls, **overrides) -> Config:
        cfg = cls.load(overrides.pop("config", None))
        changes = {
            k: v
            for k, v in overrides.items()
            if v is not None and k in cls.__dataclass_fields__
        }
        return replace(cfg, **changes)

    def tool_path(self, name: str) -> Path:
        """Resolve an executable inside the local tool installation."""
        return (Path(self.root) / self.tool_dir / name).resolve()

    @property
    def postcss_config_path(self) -> Path:
        return (Path(self.root) / self.postcss_config).resolve()
