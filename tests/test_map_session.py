import sys
import os
import json
from datetime import datetime

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tmmpr.core import keys
from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Notification
from tmmpr.core.keys import KeyEvent
from tmmpr.core.modes import EditMode, NormalMode
from tmmpr.core.settings import BackupsInterval, Settings
from tmmpr.infrastructure.map_files import CorruptMapFileError, load_map_file, save_map_file
from tmmpr.services.map_session import ExitTarget, MapSession, Recovery


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


NOW = datetime(2024, 3, 5, 14, 7)


def _open(tmp_path, settings=None, **kwargs):
    session = MapSession.open(
        tmp_path / "map.json",
        settings or Settings(),
        settings_path=tmp_path / "settings.ini",
        now=lambda: NOW,
        **kwargs,
    )
    session.resize(80, 24)
    return session


def press(session, *names):
    for name in names:
        session.handle_key(KeyEvent(name))


def test_open_creates_missing_map(tmp_path):
    session = _open(tmp_path)

    assert (tmp_path / "map.json").exists()
    assert session.canvas.notes == {}
    assert session.notification is None
    assert not session.canvas.dirty


def test_manual_save_and_notification_clears(tmp_path):
    session = _open(tmp_path)
    press(session, "a")
    for ch in "idea":
        session.handle_key(KeyEvent(ch))
    press(session, keys.ESC)
    assert session.canvas.dirty

    press(session, "s")
    assert session.notification is Notification.SAVE_SUCCESS
    assert not session.canvas.dirty
    assert [n.lines for n in load_map_file(tmp_path / "map.json").notes.values()] == [["idea"]]

    press(session, "j")
    assert session.notification is None


def test_save_key_types_while_editing(tmp_path):
    session = _open(tmp_path)
    press(session, "a", "s")

    assert isinstance(session.machine.mode, EditMode)
    assert session.machine.editor.lines == ["s"]
    assert session.notification is None


def test_quit_clean_map_exits_immediately(tmp_path):
    session = _open(tmp_path)
    press(session, "q")

    assert session.exit_target is ExitTarget.QUIT
    assert session.confirm_discard is None


def test_quit_dirty_map_asks_first(tmp_path):
    session = _open(tmp_path)
    press(session, "l")
    assert session.canvas.dirty

    press(session, "q")
    assert session.confirm_discard is ExitTarget.QUIT
    assert session.exit_target is None

    press(session, keys.ESC)
    assert session.confirm_discard is None
    assert session.exit_target is None

    press(session, "o", "x")
    assert session.confirm_discard is ExitTarget.SETTINGS
    press(session, "q")
    assert session.exit_target is ExitTarget.SETTINGS


def test_help_pages_wrap(tmp_path):
    session = _open(tmp_path)
    press(session, "?")
    assert session.help_page == 1

    press(session, "h")
    assert session.help_page == 5
    press(session, "l")
    assert session.help_page == 1
    press(session, keys.TAB, keys.RIGHT)
    assert session.help_page == 3

    # Help swallows map keys
    press(session, "a")
    assert session.canvas.notes == {}

    press(session, keys.ESC)
    assert session.help_page is None

    session.handle_key(KeyEvent(keys.F1))
    assert session.help_page == 1


def test_tick_autosaves(tmp_path):
    clock = FakeClock()
    session = _open(tmp_path, Settings(save_interval=10), clock=clock)
    press(session, "a", keys.ESC)
    assert session.canvas.dirty

    clock.t = 10
    session.tick()
    assert not session.canvas.dirty
    assert len(load_map_file(tmp_path / "map.json").notes) == 1


def test_open_makes_on_open_backup(tmp_path):
    settings = Settings(backups_interval=BackupsInterval.DAILY)
    session = _open(tmp_path, settings)

    assert (tmp_path / "backups" / "map-load-backup-24-03-05.json").exists()
    assert settings.backup_dates == {"map": NOW}
    assert session.notification is None


def test_corrupt_map_needs_explicit_choice(tmp_path):
    path = tmp_path / "map.json"
    path.write_text("{broken", encoding="utf-8")

    with pytest.raises(CorruptMapFileError):
        _open(tmp_path)
    assert path.read_text(encoding="utf-8") == "{broken"

    session = _open(tmp_path, recovery=Recovery.START_EMPTY)
    assert session.canvas.notes == {}
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert [p.name for p in tmp_path.glob("map.json.corrupt-*")]


def test_corrupt_map_restored_from_backup(tmp_path):
    backup = CanvasMap()
    backup.create_note(3, 3, lines=["saved"])
    save_map_file(tmp_path / "backups" / "map-load-backup-24-03-01.json", backup)
    (tmp_path / "map.json").write_text("{broken", encoding="utf-8")

    session = _open(tmp_path, recovery=Recovery.RESTORE_BACKUP)

    assert [n.lines for n in session.canvas.notes.values()] == [["saved"]]
    assert session.canvas.dirty
    press(session, "s")
    assert load_map_file(tmp_path / "map.json").notes == session.canvas.notes


def test_change_settings_reports_write_failure(tmp_path):
    session = _open(tmp_path)
    assert session.change_settings(lambda s: s.toggle_edit_modal()) is True
    assert session.settings.edit_modal is True

    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    session.settings_path = blocker / "settings.ini"

    assert session.change_settings(lambda s: s.cycle_save_interval()) is False
    assert session.notification is Notification.SETTINGS_SAVE_FAIL


def test_close_flushes(tmp_path):
    session = _open(tmp_path)
    press(session, "v")
    session.close()

    assert isinstance(session.machine.mode, NormalMode)
