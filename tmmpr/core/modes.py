"""
Interaction modes of the map screen.

Each mode is an immutable value carrying exactly the data it needs; the
machine replaces the current value on every transition. `Mode` is the closed
union of all of them.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias, Union

from tmmpr.core.enums import End
from tmmpr.core.models import ConnectionId, NoteId
from tmmpr.core.text_editor import EditorCursor


class EditSubMode(str, Enum):
    NORMAL = "normal"
    INSERT = "insert"


@dataclass(frozen=True)
class NormalMode:
    pass


@dataclass(frozen=True)
class VisualMode:
    note_id: NoteId


@dataclass(frozen=True)
class VisualMoveMode:
    note_id: NoteId


@dataclass(frozen=True)
class VisualConnectionMode:
    """
    Editing the connections of the focused note.

    `placing` is True while a freshly created connection is looking for its
    target; focus moves retarget it and ESC drops it again.
    """
    note_id: NoteId
    connection_id: ConnectionId | None = None
    active_end: End = End.START
    placing: bool = False


@dataclass(frozen=True)
class ConfirmDeleteMode:
    note_id: NoteId


@dataclass(frozen=True, eq=False)
class EditMode:
    """
    Text editing inside a note. `sub_mode` is None when modal editing is off.
    The cursor is the mutable working copy of the body.
    """
    note_id: NoteId
    cursor: EditorCursor
    sub_mode: EditSubMode | None = None


Mode: TypeAlias = Union[
    NormalMode,
    VisualMode,
    VisualMoveMode,
    VisualConnectionMode,
    ConfirmDeleteMode,
    EditMode,
]


def selected_note(mode: Mode) -> NoteId | None:
    """The focused note of a selection-bearing mode."""
    return getattr(mode, "note_id", None)
