from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class AppConfig:
    log_level: str = "INFO"
    sync_period_ms: int = 200
    sync_guard_ms: int = 100
    sync_edit_guard_ms: int = 300
    render_width: int = 320
    render_height: int = 480
    viewport_height: float = 900.0
    presets_path: str = "config/presets.yaml"

    @property
    def sync_period(self) -> float:
        return self.sync_period_ms / 1000.0

    @property
    def sync_guard(self) -> float:
        return self.sync_guard_ms / 1000.0

    @property
    def sync_edit_guard(self) -> float:
        return self.sync_edit_guard_ms / 1000.0

    @classmethod
    def from_yaml(cls, path: Optional[str]) -> "AppConfig":
        """파일이 없거나 키가 빠져 있으면 기본값"""
        if not path or not Path(path).exists():
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: top level must be a mapping")
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AppConfig":
        app = raw.get("app") or {}
        sync = raw.get("sync") or {}
        render = raw.get("render") or {}
        presets = raw.get("presets") or {}
        d = cls()
        return cls(
            log_level=str(app.get("log_level", d.log_level)).upper(),
            sync_period_ms=int(sync.get("period_ms", d.sync_period_ms)),
            sync_guard_ms=int(sync.get("guard_ms", d.sync_guard_ms)),
            sync_edit_guard_ms=int(sync.get("edit_guard_ms", d.sync_edit_guard_ms)),
            render_width=int(render.get("width", d.render_width)),
            render_height=int(render.get("height", d.render_height)),
            viewport_height=float(render.get("viewport_height", d.viewport_height)),
            presets_path=str(presets.get("path", d.presets_path)),
        )


def load_init_config(path: str) -> Dict[str, Any]:
    """settingsGroupA/B/C (+ themes/instruments) 를 담은 yaml"""
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: init config must be a mapping")
    return raw
