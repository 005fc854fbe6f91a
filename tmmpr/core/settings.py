from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from tmmpr.core.enums import Side, cycle_side

SAVE_INTERVAL_CHOICES: tuple[int, ...] = (10, 20, 30, 60)
DEFAULT_SAVE_INTERVAL = 20


class BackupsInterval(str, Enum):
    """How old the last on-open backup may get before opening makes a new one."""
    DAILY = "daily"
    EVERY_3_DAYS = "every_3_days"
    WEEKLY = "weekly"
    EVERY_2_WEEKS = "every_2_weeks"

    @property
    def duration(self) -> timedelta:
        return _BACKUP_DURATIONS[self]


_BACKUP_DURATIONS = {
    BackupsInterval.DAILY: timedelta(days=1),
    BackupsInterval.EVERY_3_DAYS: timedelta(days=3),
    BackupsInterval.WEEKLY: timedelta(weeks=1),
    BackupsInterval.EVERY_2_WEEKS: timedelta(weeks=2),
}


class RuntimeBackupsInterval(str, Enum):
    """Backup cadence while a map stays open."""
    HOURLY = "hourly"
    EVERY_2_HOURS = "every_2_hours"
    EVERY_4_HOURS = "every_4_hours"
    EVERY_6_HOURS = "every_6_hours"
    EVERY_12_HOURS = "every_12_hours"

    @property
    def seconds(self) -> float:
        return _RUNTIME_SECONDS[self]


_RUNTIME_SECONDS = {
    RuntimeBackupsInterval.HOURLY: 3600.0,
    RuntimeBackupsInterval.EVERY_2_HOURS: 7200.0,
    RuntimeBackupsInterval.EVERY_4_HOURS: 14400.0,
    RuntimeBackupsInterval.EVERY_6_HOURS: 21600.0,
    RuntimeBackupsInterval.EVERY_12_HOURS: 43200.0,
}


def _next_in(choices: list, current):
    return choices[(choices.index(current) + 1) % len(choices)]


@dataclass
class Settings:
    """
    User configuration, loaded once at startup and handed to every component
    that reads it. Only the settings screen mutates it, through the cycle_*
    and toggle_* methods.
    """
    save_interval: int | None = DEFAULT_SAVE_INTERVAL
    backups_interval: BackupsInterval | None = None
    backups_path: str | None = None
    # map file stem -> last on-open backup
    backup_dates: dict[str, datetime] = field(default_factory=dict)
    runtime_backups_interval: RuntimeBackupsInterval | None = None
    default_start_side: Side = Side.RIGHT
    default_end_side: Side = Side.RIGHT
    edit_modal: bool = False

    def cycle_save_interval(self) -> None:
        """10s -> 20s -> 30s -> 60s -> off -> 10s"""
        choices: list[int | None] = [*SAVE_INTERVAL_CHOICES, None]
        current = self.save_interval if self.save_interval in choices else None
        self.save_interval = _next_in(choices, current)

    def toggle_backups(self) -> None:
        self.backups_interval = None if self.backups_interval else BackupsInterval.DAILY

    def cycle_backups_interval(self) -> None:
        if self.backups_interval is None:
            return
        self.backups_interval = _next_in(list(BackupsInterval), self.backups_interval)

    def toggle_runtime_backups(self) -> None:
        self.runtime_backups_interval = (
            None if self.runtime_backups_interval else RuntimeBackupsInterval.HOURLY
        )

    def cycle_runtime_backups_interval(self) -> None:
        if self.runtime_backups_interval is None:
            return
        self.runtime_backups_interval = _next_in(
            list(RuntimeBackupsInterval), self.runtime_backups_interval
        )

    def cycle_default_side(self, *, start: bool) -> None:
        if start:
            self.default_start_side = cycle_side(self.default_start_side)
        else:
            self.default_end_side = cycle_side(self.default_end_side)

    def toggle_edit_modal(self) -> None:
        self.edit_modal = not self.edit_modal
