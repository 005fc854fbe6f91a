# tmmpr/services/persistence.py

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Notification
from tmmpr.core.settings import Settings
from tmmpr.infrastructure.filesystem import (
    backups_dir_for,
    load_backup_path,
    session_backup_path,
)
from tmmpr.infrastructure.map_files import encode_map
from tmmpr.infrastructure.settings_store import save_settings
from tmmpr.paths import SETTINGS_PATH
from tmmpr.services.save_service import SaveKind, SaveResult, SaveService

log = logging.getLogger(__name__)


class PersistenceScheduler:
    """
    Decides when the open map is written.

    Nothing here runs on a timer: the interaction loop calls tick() once per
    iteration and the scheduler compares the injected clock against the last
    save / last runtime backup. `clock` is monotonic seconds; `now` gives the
    local wall-clock time used for backup names and backup dates.
    """

    def __init__(
        self,
        canvas: CanvasMap,
        settings: Settings,
        *,
        map_path: Path,
        save_service: SaveService,
        settings_path: Path = SETTINGS_PATH,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.canvas = canvas
        self.settings = settings
        self.map_path = Path(map_path)
        self.saves = save_service
        self.settings_path = Path(settings_path)
        self._clock = clock
        self._now = now

        started = clock()
        self.last_save = started
        self.last_runtime_backup = started
        # Revision of the newest map snapshot handed to the save service
        self._requested_revision: int | None = None

    @property
    def backups_dir(self) -> Path:
        return backups_dir_for(self.map_path, self.settings.backups_path)

    # ───────────────────────── public API ─────────────────────────

    def tick(self) -> list[Notification]:
        """Collect finished writes and start whatever is due."""
        notes = self._collect(self.saves.poll())
        t = self._clock()

        interval = self.settings.save_interval
        if (
            interval is not None
            and self.canvas.dirty
            and self.canvas.revision != self._requested_revision
            and t - self.last_save >= interval
        ):
            self.last_save = t
            self._request_save(SaveKind.AUTOSAVE)

        runtime = self.settings.runtime_backups_interval
        if runtime is not None and t - self.last_runtime_backup >= runtime.seconds:
            self.last_runtime_backup = t
            path = session_backup_path(self.map_path, self.backups_dir, self._now())
            self.saves.request(
                path,
                encode_map(self.canvas),
                kind=SaveKind.BACKUP,
                revision=self.canvas.revision,
            )

        # Inline writes have already finished
        notes += self._collect(self.saves.poll())
        return notes

    def save_now(self) -> Notification:
        """Manual save; waits for the write and any write ahead of it."""
        self._request_save(SaveKind.MANUAL)
        self.last_save = self._clock()
        notes = self._collect(self.saves.flush())
        if Notification.SAVE_FAIL in notes:
            return Notification.SAVE_FAIL
        return Notification.SAVE_SUCCESS

    def on_open_backup(self) -> Notification | None:
        """
        Back the map up when it is opened, if backups are on and the last
        on-open backup of this file is older than the configured interval.
        """
        interval = self.settings.backups_interval
        if interval is None:
            return None

        stem = self.map_path.stem or "unknown"
        now = self._now()
        last = self.settings.backup_dates.get(stem)
        if last is not None and now - last < interval.duration:
            return None

        path = load_backup_path(self.map_path, self.backups_dir, now)
        self.saves.request(
            path,
            encode_map(self.canvas),
            kind=SaveKind.BACKUP,
            revision=self.canvas.revision,
        )
        results = self.saves.flush()
        notes = self._collect(results)
        if Notification.BACKUP_FAIL in notes:
            return Notification.BACKUP_FAIL

        self.settings.backup_dates[stem] = now
        if not save_settings(self.settings, self.settings_path):
            log.error("Backup written but its date could not be recorded: %s", path)
            return Notification.BACKUP_RECORD_FAIL
        return Notification.BACKUP_SUCCESS

    def shutdown(self, timeout: float | None = None) -> list[Notification]:
        """Wait for outstanding writes before the process exits."""
        return self._collect(self.saves.flush(timeout))

    # ───────────────────────── internal ─────────────────────────

    def _request_save(self, kind: SaveKind) -> None:
        revision = self.canvas.revision
        self._requested_revision = revision
        self.saves.request(self.map_path, encode_map(self.canvas), kind=kind, revision=revision)

    def _collect(self, results: list[SaveResult]) -> list[Notification]:
        notes: list[Notification] = []
        for res in results:
            job = res.job
            if job.kind is SaveKind.BACKUP:
                if res.ok:
                    log.info("Backup written: %s", job.path)
                    notes.append(Notification.BACKUP_SUCCESS)
                else:
                    notes.append(Notification.BACKUP_FAIL)
                continue

            if res.ok:
                self.canvas.mark_saved(job.revision)
                log.info("Map saved (%s): %s", job.kind.value, job.path)
                if job.kind is SaveKind.MANUAL:
                    notes.append(Notification.SAVE_SUCCESS)
            else:
                # Retry on a later tick
                if self._requested_revision == job.revision:
                    self._requested_revision = None
                notes.append(Notification.SAVE_FAIL)
        return notes
