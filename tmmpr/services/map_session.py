# tmmpr/services/map_session.py

from __future__ import annotations

import logging
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable

from PySide6.QtCore import QThreadPool

from tmmpr.core import keys
from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Notification
from tmmpr.core.keys import KeyEvent
from tmmpr.core.machine import ModeMachine
from tmmpr.core.modes import NormalMode
from tmmpr.core.settings import Settings
from tmmpr.infrastructure.filesystem import backups_dir_for
from tmmpr.infrastructure.map_files import (
    CorruptMapFileError,
    MapFileError,
    latest_backup_for,
    load_map_file,
    quarantine_corrupt_file,
    save_map_file,
)
from tmmpr.infrastructure.settings_store import save_settings
from tmmpr.paths import SETTINGS_PATH
from tmmpr.services.persistence import PersistenceScheduler
from tmmpr.services.save_service import SaveService

log = logging.getLogger(__name__)

HELP_PAGES = 5


class Recovery(str, Enum):
    """What to do when the map file on disk cannot be read."""
    RESTORE_BACKUP = "restore_backup"
    START_EMPTY = "start_empty"


class ExitTarget(str, Enum):
    QUIT = "quit"
    SETTINGS = "settings"


def open_canvas(
    map_path: Path,
    *,
    backups_path: str | None = None,
    recovery: Recovery | None = None,
) -> CanvasMap:
    """
    Load a map, creating an empty file when none exists yet.

    A corrupt file raises CorruptMapFileError unless the caller already chose
    a recovery. Both recoveries move the damaged file aside first; restoring
    loads the newest backup and leaves the map dirty so the next save puts
    it back in place.
    """
    map_path = Path(map_path)
    if not map_path.exists():
        canvas = CanvasMap()
        save_map_file(map_path, canvas)
        log.info("New map created: %s", map_path)
        return canvas

    try:
        return load_map_file(map_path)
    except CorruptMapFileError:
        if recovery is None:
            raise
        log.exception("Corrupt map file: %s", map_path)

    if recovery is Recovery.RESTORE_BACKUP:
        backup = latest_backup_for(map_path, backups_dir_for(map_path, backups_path))
        if backup is None:
            raise MapFileError(f"No backup found for {map_path}")
        canvas = load_map_file(backup)
        quarantine_corrupt_file(map_path)
        canvas.mark_dirty()
        log.info("Map restored from backup: %s", backup)
        return canvas

    quarantine_corrupt_file(map_path)
    canvas = CanvasMap()
    save_map_file(map_path, canvas)
    return canvas


class MapSession:
    """
    One open map: routes key presses to the mode machine, handles the keys
    that act on the session itself (save, quit, settings, help), owns the
    status-bar notification and drives the persistence scheduler.

    The terminal layer draws from the public state (`machine.mode`,
    `canvas`, `notification`, `help_page`, `confirm_discard`) and checks
    `exit_target` after every key.
    """

    def __init__(
        self,
        canvas: CanvasMap,
        settings: Settings,
        *,
        map_path: Path,
        scheduler: PersistenceScheduler,
        settings_path: Path = SETTINGS_PATH,
    ):
        self.canvas = canvas
        self.settings = settings
        self.map_path = Path(map_path)
        self.scheduler = scheduler
        self.settings_path = Path(settings_path)

        self.machine = ModeMachine(canvas, settings)
        self.notification: Notification | None = None
        self.help_page: int | None = None
        self.confirm_discard: ExitTarget | None = None
        self.exit_target: ExitTarget | None = None

    @classmethod
    def open(
        cls,
        map_path: Path,
        settings: Settings,
        *,
        settings_path: Path = SETTINGS_PATH,
        thread_pool: QThreadPool | None = None,
        recovery: Recovery | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ) -> "MapSession":
        map_path = Path(map_path)
        canvas = open_canvas(map_path, backups_path=settings.backups_path, recovery=recovery)
        scheduler = PersistenceScheduler(
            canvas,
            settings,
            map_path=map_path,
            save_service=SaveService(thread_pool=thread_pool),
            settings_path=settings_path,
            clock=clock,
            now=now,
        )
        session = cls(
            canvas,
            settings,
            map_path=map_path,
            scheduler=scheduler,
            settings_path=settings_path,
        )
        note = scheduler.on_open_backup()
        if note is not Notification.BACKUP_SUCCESS:
            session.notification = note
        log.info("Map opened: %s notes=%d", map_path, len(canvas.notes))
        return session

    # ───────────────────────── public API ─────────────────────────

    def resize(self, width: int, height: int) -> None:
        vp = self.canvas.viewport
        vp.width, vp.height = max(0, width), max(0, height)

    def handle_key(self, event: KeyEvent) -> bool:
        # Notifications last until the next key
        self.notification = None

        if self.help_page is not None:
            return self._on_help(event)
        if self.confirm_discard is not None:
            return self._on_confirm_discard(event)

        if isinstance(self.machine.mode, NormalMode):
            k = event.key
            if k == "s":
                self.save()
                return True
            if k == "q":
                return self._request_exit(ExitTarget.QUIT)
            if k == "o":
                return self._request_exit(ExitTarget.SETTINGS)
            if k in ("?", keys.F1):
                self.help_page = 1
                return True

        return self.machine.handle(event)

    def save(self) -> Notification:
        self.machine.leave_edit()
        self.notification = self.scheduler.save_now()
        return self.notification

    def tick(self) -> None:
        notes = self.scheduler.tick()
        if notes:
            self.notification = notes[-1]

    def change_settings(self, change: Callable[[Settings], None]) -> bool:
        """Apply one settings-screen action and persist it."""
        change(self.settings)
        if save_settings(self.settings, self.settings_path):
            return True
        self.notification = Notification.SETTINGS_SAVE_FAIL
        return False

    def close(self, timeout: float | None = None) -> None:
        """Flush outstanding writes. Unsaved edits are not written here."""
        for note in self.scheduler.shutdown(timeout):
            self.notification = note

    # ───────────────────────── internal ─────────────────────────

    def _request_exit(self, target: ExitTarget) -> bool:
        if self.canvas.dirty:
            self.confirm_discard = target
        else:
            self.exit_target = target
        return True

    def _on_confirm_discard(self, event: KeyEvent) -> bool:
        if event.key == "q":
            log.info("Unsaved changes discarded: %s", self.map_path)
            self.exit_target = self.confirm_discard
            self.confirm_discard = None
            return True
        if event.key == keys.ESC:
            self.confirm_discard = None
            return True
        return False

    def _on_help(self, event: KeyEvent) -> bool:
        k = event.key
        page = self.help_page or 1
        if k in ("?", keys.F1, keys.ESC):
            self.help_page = None
        elif k in ("l", keys.RIGHT, keys.TAB):
            self.help_page = page % HELP_PAGES + 1
        elif k in ("h", keys.LEFT):
            self.help_page = (page - 2) % HELP_PAGES + 1
        else:
            return False
        return True
