from .canvas import CanvasMap
from .enums import Direction, End, NoteColor, Notification, Side, cycle_color, cycle_side
from .keys import KeyEvent
from .machine import ModeMachine
from .models import Connection, Note, Viewport
from .modes import (
    ConfirmDeleteMode,
    EditMode,
    EditSubMode,
    Mode,
    NormalMode,
    VisualConnectionMode,
    VisualMode,
    VisualMoveMode,
)
from .settings import BackupsInterval, RuntimeBackupsInterval, Settings
from .text_editor import EditorCursor

__all__ = ["CanvasMap",
           "Direction",
           "End",
           "NoteColor",
           "Notification",
           "Side",
           "cycle_color",
           "cycle_side",
           "KeyEvent",
           "ModeMachine",
           "Connection",
           "Note",
           "Viewport",
           "ConfirmDeleteMode",
           "EditMode",
           "EditSubMode",
           "Mode",
           "NormalMode",
           "VisualConnectionMode",
           "VisualMode",
           "VisualMoveMode",
           "BackupsInterval",
           "RuntimeBackupsInterval",
           "Settings",
           "EditorCursor",
           ]
