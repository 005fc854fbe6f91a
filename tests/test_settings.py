import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PySide6.QtCore import QSettings

from tmmpr.core.enums import Notification, Side
from tmmpr.core.settings import BackupsInterval, RuntimeBackupsInterval, Settings
from tmmpr.infrastructure.settings_store import get_bool, get_str, load_settings, save_settings


def test_defaults():
    s = Settings()

    assert s.save_interval == 20
    assert s.backups_interval is None
    assert s.runtime_backups_interval is None
    assert (s.default_start_side, s.default_end_side) == (Side.RIGHT, Side.RIGHT)
    assert s.edit_modal is False


def test_cycle_save_interval():
    s = Settings()
    seen = []
    for _ in range(5):
        s.cycle_save_interval()
        seen.append(s.save_interval)

    assert seen == [30, 60, None, 10, 20]


def test_backup_intervals_cycle_only_when_enabled():
    s = Settings()
    s.cycle_backups_interval()
    assert s.backups_interval is None

    s.toggle_backups()
    assert s.backups_interval is BackupsInterval.DAILY
    s.cycle_backups_interval()
    assert s.backups_interval is BackupsInterval.EVERY_3_DAYS
    assert s.backups_interval.duration == timedelta(days=3)
    s.toggle_backups()
    assert s.backups_interval is None

    s.toggle_runtime_backups()
    assert s.runtime_backups_interval is RuntimeBackupsInterval.HOURLY
    for _ in range(5):
        s.cycle_runtime_backups_interval()
    assert s.runtime_backups_interval is RuntimeBackupsInterval.HOURLY


def test_default_sides_and_modal_toggle():
    s = Settings()
    s.cycle_default_side(start=True)
    s.cycle_default_side(start=False)
    s.cycle_default_side(start=False)
    s.toggle_edit_modal()

    assert s.default_start_side is Side.BOTTOM
    assert s.default_end_side is Side.LEFT
    assert s.edit_modal is True


def test_missing_file_gives_defaults(tmp_path):
    settings, note = load_settings(tmp_path / "settings.ini")

    assert settings == Settings()
    assert note is None


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "cfg" / "settings.ini"
    s = Settings(
        save_interval=None,
        backups_interval=BackupsInterval.WEEKLY,
        backups_path=str(tmp_path / "backups"),
        backup_dates={"my map": datetime(2024, 3, 5, 14, 7, 9)},
        runtime_backups_interval=RuntimeBackupsInterval.EVERY_6_HOURS,
        default_start_side=Side.TOP,
        default_end_side=Side.LEFT,
        edit_modal=True,
    )

    assert save_settings(s, path) is True
    loaded, note = load_settings(path)

    assert note is None
    assert loaded == s


def test_malformed_values_fall_back_to_defaults(tmp_path):
    path = tmp_path / "settings.ini"
    path.write_text(
        "[autosave]\n"
        "interval=banana\n"
        "[backups]\n"
        "interval=weekly\n"
        "[connections]\n"
        "default_start_side=Diagonal\n"
        "default_end_side=Top\n",
        encoding="utf-8",
    )

    settings, note = load_settings(path)

    assert note is Notification.SETTINGS_LOAD_FAIL
    assert settings.save_interval == 20
    assert settings.default_start_side is Side.RIGHT
    # Valid values next to broken ones are kept
    assert settings.backups_interval is BackupsInterval.WEEKLY
    assert settings.default_end_side is Side.TOP


def test_save_failure_is_reported(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    assert save_settings(Settings(), blocker / "settings.ini") is False


def test_tolerant_getters(tmp_path):
    path = tmp_path / "raw.ini"
    path.write_text("[x]\nnum=abc\nflag=maybe\non=yes\n", encoding="utf-8")
    qs = QSettings(str(path), QSettings.Format.IniFormat)

    assert get_str(qs, "x/num", "7") == "abc"
    assert get_str(qs, "x/missing", "3") == "3"
    assert get_bool(qs, "x/flag", True) is True
    assert get_bool(qs, "x/on", False) is True
