"""
This file contains the `Config` class which deals with the
bootstrap tool's settings: store locations, export defaults & logging
"""

import json
import logging

from pathlib import Path

log = logging.getLogger(__name__)

    
class Config:
    def __init__(self, config_json: Path | str | None = None):
        self.BASE_DIR = Path(__file__).resolve().parent.parent
        self.CONFIG_JSON = Path(config_json) if config_json else self.BASE_DIR / "config.json"
        
        self.data: dict = {}
        if self.CONFIG_JSON.exists():
            with open(self.CONFIG_JSON, "r", encoding="utf-8") as cfg:
                self.data = json.load(cfg)
        else:
            log.warning(f"Config file {self.CONFIG_JSON} not found, using defaults")
        
    def get(self, category: str, varname: str, default=None):
        value = self.data.get(category, {}).get(varname, {}).get("value", None)
        if value is not None:
            if category == "path":
                return self.BASE_DIR / value
            else:
                return value
        else:
            return default


"""
Use this variable anywhere else to prevent reloading config.json every time
"""     
APP_CONFIG = Config()
