from __future__ import annotations

from enum import Enum


class Side(str, Enum):
    """Side of a note a connection endpoint is anchored to."""
    TOP = "Top"
    BOTTOM = "Bottom"
    LEFT = "Left"
    RIGHT = "Right"


# Clockwise: Right -> Bottom -> Left -> Top -> Right
_SIDE_CYCLE = (Side.RIGHT, Side.BOTTOM, Side.LEFT, Side.TOP)


def cycle_side(side: Side) -> Side:
    i = _SIDE_CYCLE.index(side)
    return _SIDE_CYCLE[(i + 1) % len(_SIDE_CYCLE)]


class NoteColor(str, Enum):
    """Fixed palette shared by notes and connections, in cycling order."""
    RED = "Red"
    GREEN = "Green"
    YELLOW = "Yellow"
    BLUE = "Blue"
    MAGENTA = "Magenta"
    CYAN = "Cyan"
    WHITE = "White"
    BLACK = "Black"


DEFAULT_COLOR = NoteColor.WHITE


def cycle_color(color: NoteColor) -> NoteColor:
    palette = list(NoteColor)
    return palette[(palette.index(color) + 1) % len(palette)]


def parse_color(name: str | None) -> NoteColor:
    """Unknown names fall back to white, like files written by older versions."""
    try:
        return NoteColor(name)
    except ValueError:
        return DEFAULT_COLOR


class End(str, Enum):
    """Which endpoint of a connection is being edited."""
    START = "start"
    END = "end"


class Direction(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


class Notification(str, Enum):
    """Non-fatal messages shown in the status bar."""
    SAVE_SUCCESS = "save_success"
    SAVE_FAIL = "save_fail"
    BACKUP_SUCCESS = "backup_success"
    BACKUP_FAIL = "backup_fail"
    BACKUP_RECORD_FAIL = "backup_record_fail"
    SETTINGS_LOAD_FAIL = "settings_load_fail"
    SETTINGS_SAVE_FAIL = "settings_save_fail"
