from __future__ import annotations
from pathlib import Path

APP_NAME = "tmmpr"
CONFIG_DIR = Path.home() / ".config" / APP_NAME
SETTINGS_PATH = CONFIG_DIR / "settings.ini"
LOG_DIR = Path.home() / f".{APP_NAME}" / "logs"
LOG_PATH = LOG_DIR / f"{APP_NAME}.log"

BACKUPS_DIR_NAME = "backups"
MAP_FILE_SUFFIX = ".json"
