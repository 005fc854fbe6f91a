import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PySide6.QtCore import QThreadPool

from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Notification
from tmmpr.core.settings import BackupsInterval, RuntimeBackupsInterval, Settings
from tmmpr.infrastructure.map_files import load_map_file
from tmmpr.infrastructure.settings_store import load_settings
from tmmpr.services.persistence import PersistenceScheduler
from tmmpr.services.save_service import SaveKind, SaveService


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


class CountingSaveService(SaveService):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.requests = []

    def request(self, path, text, *, kind, revision):
        self.requests.append((path, kind))
        return super().request(path, text, kind=kind, revision=revision)


class HoldingPool:
    """Stands in for QThreadPool: keeps workers until the test runs them."""

    def __init__(self):
        self.workers = []

    def start(self, worker):
        self.workers.append(worker)


NOW = datetime(2024, 3, 5, 14, 7)


def _scheduler(tmp_path, settings, *, clock=None, now=NOW, service=None):
    canvas = CanvasMap()
    canvas.create_note(1, 1, lines=["hello"])
    service = service or CountingSaveService()
    scheduler = PersistenceScheduler(
        canvas,
        settings,
        map_path=tmp_path / "map.json",
        save_service=service,
        settings_path=tmp_path / "settings.ini",
        clock=clock or FakeClock(),
        now=lambda: now,
    )
    return scheduler, canvas, service


# ───────────────────────── autosave ─────────────────────────

def test_autosave_writes_once_when_due(tmp_path):
    clock = FakeClock()
    scheduler, canvas, service = _scheduler(tmp_path, Settings(save_interval=20), clock=clock)

    clock.t = 19.9
    assert scheduler.tick() == []
    assert service.requests == []

    clock.t = 20.0
    scheduler.tick()
    assert service.requests == [(tmp_path / "map.json", SaveKind.AUTOSAVE)]
    assert not canvas.dirty
    assert load_map_file(tmp_path / "map.json").notes == canvas.notes

    clock.t = 500.0
    scheduler.tick()
    assert len(service.requests) == 1


def test_autosave_disabled_never_writes(tmp_path):
    clock = FakeClock()
    scheduler, canvas, service = _scheduler(tmp_path, Settings(save_interval=None), clock=clock)

    for t in (10, 1_000, 1_000_000):
        clock.t = t
        scheduler.tick()

    assert service.requests == []
    assert canvas.dirty
    assert not (tmp_path / "map.json").exists()


def test_failed_autosave_keeps_dirty_and_retries(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    clock = FakeClock()
    canvas = CanvasMap()
    canvas.create_note(0, 0)
    service = CountingSaveService()
    scheduler = PersistenceScheduler(
        canvas,
        Settings(save_interval=10),
        map_path=blocker / "map.json",
        save_service=service,
        clock=clock,
    )

    clock.t = 10
    assert scheduler.tick() == [Notification.SAVE_FAIL]
    assert canvas.dirty

    clock.t = 15
    scheduler.tick()
    assert len(service.requests) == 1

    clock.t = 20
    scheduler.tick()
    assert len(service.requests) == 2


def test_manual_save_works_with_autosave_off(tmp_path):
    scheduler, canvas, _ = _scheduler(tmp_path, Settings(save_interval=None))

    assert scheduler.save_now() is Notification.SAVE_SUCCESS
    assert not canvas.dirty
    assert (tmp_path / "map.json").exists()


# ───────────────────────── save service ─────────────────────────

def test_second_write_is_deferred_and_newest_wins(tmp_path):
    pool = HoldingPool()
    service = SaveService(thread_pool=pool)
    path = tmp_path / "map.json"

    service.request(path, "first", kind=SaveKind.AUTOSAVE, revision=1)
    service.request(path, "second", kind=SaveKind.AUTOSAVE, revision=2)
    service.request(path, "third", kind=SaveKind.AUTOSAVE, revision=3)

    # Only one write may be outstanding per file
    assert len(pool.workers) == 1
    assert service.busy(path)

    pool.workers[0].run()
    results = service.poll()
    assert [r.job.text for r in results] == ["first"]
    assert len(pool.workers) == 2

    pool.workers[1].run()
    results = service.poll()
    assert [r.job.revision for r in results] == [3]
    assert path.read_text(encoding="utf-8") == "third"
    assert not service.busy()


def test_different_files_write_independently(tmp_path):
    pool = HoldingPool()
    service = SaveService(thread_pool=pool)

    service.request(tmp_path / "a.json", "a", kind=SaveKind.AUTOSAVE, revision=1)
    service.request(tmp_path / "b.json", "b", kind=SaveKind.BACKUP, revision=1)

    assert len(pool.workers) == 2


def test_flush_with_real_thread_pool(tmp_path):
    pool = QThreadPool()
    service = SaveService(thread_pool=pool)
    path = tmp_path / "map.json"

    service.request(path, "one", kind=SaveKind.AUTOSAVE, revision=1)
    service.request(path, "two", kind=SaveKind.AUTOSAVE, revision=2)
    results = service.flush(timeout=10)

    assert all(r.ok for r in results)
    assert results[-1].job.revision == 2
    assert path.read_text(encoding="utf-8") == "two"
    pool.waitForDone()


# ───────────────────────── backups ─────────────────────────

def test_runtime_backup_on_its_own_interval(tmp_path):
    clock = FakeClock()
    settings = Settings(save_interval=None, runtime_backups_interval=RuntimeBackupsInterval.HOURLY)
    scheduler, canvas, _ = _scheduler(tmp_path, settings, clock=clock)

    clock.t = 3599
    scheduler.tick()
    assert not (tmp_path / "backups").exists()

    clock.t = 3600
    assert scheduler.tick() == [Notification.BACKUP_SUCCESS]
    backup = tmp_path / "backups" / "map-session-backup-24-03-05-1407.json"
    assert load_map_file(backup).notes == canvas.notes
    # Backups never touch the canonical file or the dirty flag
    assert canvas.dirty
    assert not (tmp_path / "map.json").exists()


def test_on_open_backup_records_date(tmp_path):
    settings = Settings(backups_interval=BackupsInterval.DAILY)
    scheduler, _, _ = _scheduler(tmp_path, settings)

    assert scheduler.on_open_backup() is Notification.BACKUP_SUCCESS
    assert (tmp_path / "backups" / "map-load-backup-24-03-05.json").exists()
    assert settings.backup_dates == {"map": NOW}

    stored, _ = load_settings(tmp_path / "settings.ini")
    assert stored.backup_dates == {"map": NOW}

    # Same day: nothing new
    assert scheduler.on_open_backup() is None


def test_on_open_backup_respects_interval(tmp_path):
    settings = Settings(
        backups_interval=BackupsInterval.WEEKLY,
        backup_dates={"map": NOW - timedelta(days=3)},
    )
    scheduler, _, service = _scheduler(tmp_path, settings)
    assert scheduler.on_open_backup() is None
    assert service.requests == []

    settings.backup_dates["map"] = NOW - timedelta(days=7)
    assert scheduler.on_open_backup() is Notification.BACKUP_SUCCESS


def test_on_open_backup_disabled(tmp_path):
    scheduler, _, service = _scheduler(tmp_path, Settings())

    assert scheduler.on_open_backup() is None
    assert service.requests == []


def test_on_open_backup_record_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    settings = Settings(backups_interval=BackupsInterval.DAILY)
    canvas = CanvasMap()
    scheduler = PersistenceScheduler(
        canvas,
        settings,
        map_path=tmp_path / "map.json",
        save_service=SaveService(),
        settings_path=blocker / "settings.ini",
        now=lambda: NOW,
    )

    assert scheduler.on_open_backup() is Notification.BACKUP_RECORD_FAIL
    assert (tmp_path / "backups" / "map-load-backup-24-03-05.json").exists()


def test_on_open_backup_write_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    settings = Settings(backups_interval=BackupsInterval.DAILY, backups_path=str(blocker / "b"))
    scheduler, _, _ = _scheduler(tmp_path, settings)

    assert scheduler.on_open_backup() is Notification.BACKUP_FAIL
    assert settings.backup_dates == {}
