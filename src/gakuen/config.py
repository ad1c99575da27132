from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from platformdirs import user_data_dir

from .progression.rules import ProgressionRules

logger = logging.getLogger(__name__)

APP_NAME = "MahjongGakuen"
APP_AUTHOR = "MahjongGakuen"
SAVE_DIR_ENV = "GAKUEN_SAVE_DIR"


def default_save_dir(app_name: str = APP_NAME) -> Path:
    """Per-user save directory following platform conventions."""
    return Path(user_data_dir(appname=app_name, appauthor=APP_AUTHOR)) / "saves"


@dataclass
class EngineConfig:
    """
    Engine configuration with sensible defaults.

    You can override by providing a JSON file with keys:
      - app_name: str (default "MahjongGakuen")
      - save_dir: str (default: platform user data dir + "/saves")
      - slot: str (default "main")
      - keep_backup: bool (default True)
      - progression: object with any ProgressionRules field
    """

    app_name: str = APP_NAME
    save_dir: Optional[Path] = None
    slot: str = "main"
    keep_backup: bool = True
    progression: ProgressionRules = field(default_factory=ProgressionRules)

    def resolved_save_dir(self) -> Path:
        return Path(self.save_dir) if self.save_dir else default_save_dir(self.app_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "app_name": self.app_name,
            "save_dir": str(self.save_dir) if self.save_dir else None,
            "slot": self.slot,
            "keep_backup": self.keep_backup,
            "progression": asdict(self.progression),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "EngineConfig":
        cfg = cls()
        if "app_name" in raw:
            cfg.app_name = str(raw["app_name"])
        if raw.get("save_dir"):
            cfg.save_dir = Path(raw["save_dir"])
        if "slot" in raw:
            cfg.slot = str(raw["slot"])
        if "keep_backup" in raw:
            cfg.keep_backup = bool(raw["keep_backup"])
        prog = raw.get("progression")
        if isinstance(prog, dict):
            defaults = asdict(cfg.progression)
            unknown = set(prog) - set(defaults)
            if unknown:
                logger.warning("Ignoring unknown progression keys: %s", ", ".join(sorted(unknown)))
            merged = {**defaults, **{k: v for k, v in prog.items() if k in defaults}}
            cfg.progression = ProgressionRules(**merged)
        return cfg

    @classmethod
    def from_json(cls, path: Path) -> "EngineConfig":
        """Load configuration from JSON file. Missing fields fallback to defaults."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        logger.info("Loaded engine config from %s", path)
        return cls.from_dict(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        cfg = cls()
        override = os.environ.get(SAVE_DIR_ENV)
        if override:
            cfg.save_dir = Path(override)
        return cfg
