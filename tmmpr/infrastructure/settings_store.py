# tmmpr/infrastructure/settings_store.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from PySide6.QtCore import QSettings

from tmmpr.core.enums import Notification, Side
from tmmpr.core.settings import (
    DEFAULT_SAVE_INTERVAL,
    BackupsInterval,
    RuntimeBackupsInterval,
    Settings,
)
from tmmpr.paths import SETTINGS_PATH

log = logging.getLogger(__name__)

OFF = "off"


@dataclass(frozen=True)
class SettingsKeys:
    SAVE_INTERVAL: str = "autosave/interval"
    BACKUPS_INTERVAL: str = "backups/interval"
    BACKUPS_PATH: str = "backups/path"
    RUNTIME_BACKUPS_INTERVAL: str = "backups/runtime_interval"
    BACKUP_DATES_GROUP: str = "backup_dates"
    DEFAULT_START_SIDE: str = "connections/default_start_side"
    DEFAULT_END_SIDE: str = "connections/default_end_side"
    EDIT_MODAL: str = "editing/modal"


KEYS = SettingsKeys()


# ───────────────────────── tolerant getters ─────────────────────────

def get_str(settings: QSettings, key: str, default: str) -> str:
    try:
        val = settings.value(key, default)
        return str(val) if val is not None else default
    except Exception:
        return default


def get_bool(settings: QSettings, key: str, default: bool) -> bool:
    try:
        val = settings.value(key, default)
    except Exception:
        return default
    if isinstance(val, bool):
        return val
    s = str(val).strip().lower()
    if s in ("true", "1", "yes", "on"):
        return True
    if s in ("false", "0", "no", "off"):
        return False
    return default


# ───────────────────────── load / save ─────────────────────────

def _open(path: Path) -> QSettings:
    return QSettings(str(path), QSettings.Format.IniFormat)


def load_settings(path: Path = SETTINGS_PATH) -> tuple[Settings, Notification | None]:
    """
    Read settings from the INI file.

    A missing file gives defaults silently. An unreadable file, or any value
    that does not parse, falls back to the default for that value and
    reports SETTINGS_LOAD_FAIL.
    """
    path = Path(path)
    defaults = Settings()
    if not path.exists():
        return defaults, None

    qs = _open(path)
    if qs.status() != QSettings.Status.NoError:
        log.warning("Settings file unreadable (%s), using defaults: %s", qs.status(), path)
        return defaults, Notification.SETTINGS_LOAD_FAIL

    problems: list[str] = []

    def _choice(key, parse, default):
        raw = get_str(qs, key, OFF if default is None else str(default))
        if raw.strip().lower() == OFF:
            return None
        try:
            return parse(raw.strip())
        except ValueError:
            problems.append(f"{key}={raw!r}")
            return default

    def _save_interval(raw: str) -> int:
        value = int(raw)
        if value <= 0:
            raise ValueError(raw)
        return value

    def _side(key: str, default: Side) -> Side:
        raw = get_str(qs, key, default.value)
        try:
            return Side(raw)
        except ValueError:
            problems.append(f"{key}={raw!r}")
            return default

    backups_path = get_str(qs, KEYS.BACKUPS_PATH, "").strip() or None

    backup_dates: dict[str, datetime] = {}
    qs.beginGroup(KEYS.BACKUP_DATES_GROUP)
    try:
        for stem in qs.childKeys():
            raw = get_str(qs, stem, "")
            try:
                backup_dates[stem] = datetime.fromisoformat(raw)
            except ValueError:
                problems.append(f"{KEYS.BACKUP_DATES_GROUP}/{stem}={raw!r}")
    finally:
        qs.endGroup()

    edit_modal_raw = get_str(qs, KEYS.EDIT_MODAL, "false")
    edit_modal = get_bool(qs, KEYS.EDIT_MODAL, defaults.edit_modal)
    if edit_modal_raw.strip().lower() not in ("true", "false", "1", "0", "yes", "no", "on", "off"):
        problems.append(f"{KEYS.EDIT_MODAL}={edit_modal_raw!r}")

    settings = Settings(
        save_interval=_choice(KEYS.SAVE_INTERVAL, _save_interval, DEFAULT_SAVE_INTERVAL),
        backups_interval=_choice(KEYS.BACKUPS_INTERVAL, BackupsInterval, None),
        backups_path=backups_path,
        backup_dates=backup_dates,
        runtime_backups_interval=_choice(
            KEYS.RUNTIME_BACKUPS_INTERVAL, RuntimeBackupsInterval, None
        ),
        default_start_side=_side(KEYS.DEFAULT_START_SIDE, defaults.default_start_side),
        default_end_side=_side(KEYS.DEFAULT_END_SIDE, defaults.default_end_side),
        edit_modal=edit_modal,
    )

    if problems:
        log.warning("Malformed settings replaced by defaults: %s", ", ".join(problems))
        return settings, Notification.SETTINGS_LOAD_FAIL
    return settings, None


def save_settings(settings: Settings, path: Path = SETTINGS_PATH) -> bool:
    """Write all settings. Returns False (and logs) when the file cannot be written."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        log.exception("Cannot create settings directory: %s", path.parent)
        return False

    qs = _open(path)
    qs.clear()
    qs.setValue(KEYS.SAVE_INTERVAL, OFF if settings.save_interval is None else str(settings.save_interval))
    qs.setValue(
        KEYS.BACKUPS_INTERVAL,
        settings.backups_interval.value if settings.backups_interval else OFF,
    )
    qs.setValue(KEYS.BACKUPS_PATH, settings.backups_path or "")
    qs.setValue(
        KEYS.RUNTIME_BACKUPS_INTERVAL,
        settings.runtime_backups_interval.value if settings.runtime_backups_interval else OFF,
    )
    qs.setValue(KEYS.DEFAULT_START_SIDE, settings.default_start_side.value)
    qs.setValue(KEYS.DEFAULT_END_SIDE, settings.default_end_side.value)
    qs.setValue(KEYS.EDIT_MODAL, "true" if settings.edit_modal else "false")

    qs.beginGroup(KEYS.BACKUP_DATES_GROUP)
    for stem, when in sorted(settings.backup_dates.items()):
        qs.setValue(stem, when.isoformat())
    qs.endGroup()

    qs.sync()
    if qs.status() != QSettings.Status.NoError:
        log.error("Settings write failed (%s): %s", qs.status(), path)
        return False
    log.debug("Settings saved: %s", path)
    return True
