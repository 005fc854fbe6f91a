from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from tmmpr.core import keys
from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Direction, End, Side, cycle_color, cycle_side
from tmmpr.core.keys import KeyEvent
from tmmpr.core.models import Connection, NoteId
from tmmpr.core.modes import (
    ConfirmDeleteMode,
    EditMode,
    EditSubMode,
    Mode,
    NormalMode,
    VisualConnectionMode,
    VisualMode,
    VisualMoveMode,
    selected_note,
)
from tmmpr.core.navigation import (
    center_on,
    closest_to_viewport_center,
    focus_in_direction,
    follow_note,
)
from tmmpr.core.settings import Settings
from tmmpr.core.text_editor import EditorCursor

log = logging.getLogger(__name__)

SMALL_STEP = 1
LARGE_STEP = 5

_CHAR_DIRECTIONS = {
    "h": Direction.LEFT,
    "j": Direction.DOWN,
    "k": Direction.UP,
    "l": Direction.RIGHT,
}
_ARROW_DIRECTIONS = {
    keys.LEFT: Direction.LEFT,
    keys.DOWN: Direction.DOWN,
    keys.UP: Direction.UP,
    keys.RIGHT: Direction.RIGHT,
}
_UNIT = {
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
}


def direction_for(event: KeyEvent) -> Direction | None:
    """h/j/k/l or an arrow key (shift ignored)."""
    if event.key in _CHAR_DIRECTIONS:
        return _CHAR_DIRECTIONS[event.key]
    return _ARROW_DIRECTIONS.get(event.key)


def step_for(event: KeyEvent) -> tuple[int, int] | None:
    """
    Movement delta: h/j/k/l and arrows move by 1, H/J/K/L and shift+arrows by 5.
    """
    direction = direction_for(event)
    size = SMALL_STEP
    if direction is None and event.is_char and event.key.lower() in _CHAR_DIRECTIONS:
        direction = _CHAR_DIRECTIONS[event.key.lower()]
        size = LARGE_STEP
    elif direction is not None and event.key in _ARROW_DIRECTIONS and event.shift:
        size = LARGE_STEP
    if direction is None:
        return None
    dx, dy = _UNIT[direction]
    return dx * size, dy * size


def _end_for(conn: Connection | None, note_id: NoteId) -> End:
    if conn is None or conn.source == note_id:
        return End.START
    return End.END


def _distinct_end_side(source: NoteId, target: NoteId, source_side: Side, target_side: Side) -> Side:
    """Bump the end side when it would put both ends of a self-loop on one side."""
    if source == target and source_side == target_side:
        return cycle_side(target_side)
    return target_side


class ModeMachine:
    """
    Interprets key presses for the map screen.

    The current mode is a value from tmmpr.core.modes; `handle` looks up the
    handler for its type, which returns the next mode or None when the key
    means nothing there. Unbound keys are ignored, never errors.
    """

    def __init__(self, canvas: CanvasMap, settings: Settings, *, mode: Mode | None = None) -> None:
        self.canvas = canvas
        self.settings = settings
        self._mode: Mode = mode or NormalMode()
        self._handlers: dict[type, Callable[[Mode, KeyEvent], Mode | None]] = {
            NormalMode: self._on_normal,
            VisualMode: self._on_visual,
            VisualMoveMode: self._on_visual_move,
            VisualConnectionMode: self._on_visual_connection,
            ConfirmDeleteMode: self._on_confirm_delete,
            EditMode: self._on_edit,
        }

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def selected_note(self) -> NoteId | None:
        return selected_note(self._mode)

    @property
    def editor(self) -> EditorCursor | None:
        if isinstance(self._mode, EditMode):
            return self._mode.cursor
        return None

    def handle(self, event: KeyEvent) -> bool:
        """Apply one key press. Returns False when the key was a no-op."""
        handler = self._handlers[type(self._mode)]
        new_mode = handler(self._mode, event)
        if new_mode is None:
            return False
        if type(new_mode) is not type(self._mode):
            log.debug("Mode %s -> %s", type(self._mode).__name__, type(new_mode).__name__)
        self._mode = new_mode
        return True

    def leave_edit(self) -> None:
        """Commit a pending edit (used before saving or closing the map)."""
        if isinstance(self._mode, EditMode):
            self._commit_edit(self._mode)
            self._mode = NormalMode()

    # ───────────────────────── normal ─────────────────────────

    def _on_normal(self, mode: NormalMode, event: KeyEvent) -> Mode | None:
        step = step_for(event)
        if step is not None:
            self.canvas.scroll_viewport(*step)
            return mode

        if event.key == "a":
            cx, cy = self.canvas.viewport.center()
            note_id = self.canvas.create_note(cx, cy)
            self.canvas.bring_to_front(note_id)
            return self._enter_edit(note_id, new_note=True)

        if event.key == "v":
            note_id = closest_to_viewport_center(self.canvas)
            if note_id is None:
                return None
            self.canvas.bring_to_front(note_id)
            return VisualMode(note_id)

        return None

    # ───────────────────────── visual ─────────────────────────

    def _focus(self, note_id: NoteId) -> None:
        self.canvas.bring_to_front(note_id)
        center_on(self.canvas, note_id)

    def _on_visual(self, mode: VisualMode, event: KeyEvent) -> Mode | None:
        note_id = mode.note_id
        if note_id not in self.canvas.notes:
            return NormalMode()

        k = event.key
        if k == keys.ESC:
            return NormalMode()
        if k == "i":
            return self._enter_edit(note_id, new_note=False)
        if k == "m":
            return VisualMoveMode(note_id)
        if k == "c":
            conns = self.canvas.connections_for(note_id)
            first = conns[0] if conns else None
            return VisualConnectionMode(
                note_id,
                first.id if first else None,
                active_end=_end_for(first, note_id),
            )
        if k == "C":
            return self._start_placing(note_id)
        if k == "d":
            return ConfirmDeleteMode(note_id)
        if k == "e":
            self.canvas.cycle_note_color(note_id)
            return mode

        direction = direction_for(event)
        if direction is not None:
            target = focus_in_direction(self.canvas, note_id, direction)
            if target is None:
                return None
            self._focus(target)
            return VisualMode(target)
        return None

    def _on_visual_move(self, mode: VisualMoveMode, event: KeyEvent) -> Mode | None:
        note_id = mode.note_id
        if note_id not in self.canvas.notes:
            return NormalMode()

        if event.key == "m":
            return VisualMode(note_id)
        if event.key == keys.ESC:
            return NormalMode()

        step = step_for(event)
        if step is None:
            return None
        if self.canvas.move_note(note_id, *step):
            follow_note(self.canvas, note_id, *step)
        return mode

    def _on_confirm_delete(self, mode: ConfirmDeleteMode, event: KeyEvent) -> Mode | None:
        if event.key == keys.ESC:
            if mode.note_id not in self.canvas.notes:
                return NormalMode()
            return VisualMode(mode.note_id)
        if event.key == "d":
            note, removed = self.canvas.delete_note(mode.note_id)
            if note is not None:
                log.info("Deleted note id=%s with %d connection(s)", note.id, len(removed))
            return NormalMode()
        return None

    # ───────────────────────── connections ─────────────────────────

    def _start_placing(self, note_id: NoteId) -> Mode | None:
        start_side = self.settings.default_start_side
        end_side = _distinct_end_side(note_id, note_id, start_side, self.settings.default_end_side)
        conn_id = self.canvas.create_connection(note_id, note_id, start_side, end_side)
        if conn_id is None:
            return None
        return VisualConnectionMode(note_id, conn_id, active_end=End.START, placing=True)

    def _on_visual_connection(self, mode: VisualConnectionMode, event: KeyEvent) -> Mode | None:
        canvas = self.canvas
        note_id = mode.note_id
        if note_id not in canvas.notes:
            return NormalMode()
        conn = canvas.connections.get(mode.connection_id) if mode.connection_id is not None else None

        k = event.key
        if k == keys.ESC:
            if mode.placing and conn is not None:
                canvas.delete_connection(conn.id)
                return VisualMode(conn.source)
            return NormalMode()

        if k == "c":
            return VisualMode(note_id)

        if k == keys.ENTER:
            if not mode.placing:
                return None
            return replace(mode, placing=False)

        if k == "n":
            if mode.placing:
                return None
            return self._next_connection(mode)

        if conn is None:
            # Nothing focused: only focus movement remains meaningful.
            direction = direction_for(event)
            if direction is None:
                return None
            target = focus_in_direction(canvas, note_id, direction)
            if target is None:
                return None
            self._focus(target)
            return replace(mode, note_id=target)

        if k == "r":
            self._rotate(conn, mode.active_end)
            return mode

        if k == keys.TAB:
            other = End.END if mode.active_end is End.START else End.START
            return replace(mode, active_end=other)

        if k == "e":
            canvas.set_connection_color(conn.id, cycle_color(conn.color))
            return mode

        if k == "d":
            canvas.delete_connection(conn.id)
            return VisualMode(note_id)

        direction = direction_for(event)
        if direction is not None:
            target = focus_in_direction(canvas, note_id, direction)
            if target is None:
                return None
            self._focus(target)
            end_side = _distinct_end_side(
                conn.source, target, conn.source_side, self.settings.default_end_side
            )
            canvas.retarget_connection(conn.id, target, end_side)
            return replace(mode, note_id=target, active_end=_end_for(conn, target))
        return None

    def _rotate(self, conn: Connection, end: End) -> None:
        if end is End.START:
            side = cycle_side(conn.source_side)
            if conn.is_self_loop and side == conn.target_side:
                side = cycle_side(side)
            self.canvas.update_connection_sides(conn.id, source_side=side)
        else:
            side = cycle_side(conn.target_side)
            if conn.is_self_loop and side == conn.source_side:
                side = cycle_side(side)
            self.canvas.update_connection_sides(conn.id, target_side=side)

    def _next_connection(self, mode: VisualConnectionMode) -> Mode | None:
        conns = self.canvas.connections_for(mode.note_id)
        if not conns:
            return None
        ids = [c.id for c in conns]
        if mode.connection_id in ids:
            nxt = conns[(ids.index(mode.connection_id) + 1) % len(conns)]
        else:
            nxt = conns[0]
        return replace(mode, connection_id=nxt.id, active_end=_end_for(nxt, mode.note_id))

    # ───────────────────────── edit ─────────────────────────

    def _enter_edit(self, note_id: NoteId, *, new_note: bool) -> EditMode:
        note = self.canvas.notes[note_id]
        sub_mode: EditSubMode | None = None
        if self.settings.edit_modal:
            sub_mode = EditSubMode.INSERT if new_note else EditSubMode.NORMAL
        return EditMode(note_id, EditorCursor.for_body(note.lines), sub_mode)

    def _commit_edit(self, mode: EditMode) -> None:
        self.canvas.set_note_body(mode.note_id, mode.cursor.lines)

    def _on_edit(self, mode: EditMode, event: KeyEvent) -> Mode | None:
        if mode.note_id not in self.canvas.notes:
            return NormalMode()
        if mode.sub_mode is EditSubMode.NORMAL:
            return self._on_edit_normal(mode, event)
        return self._on_edit_insert(mode, event)

    def _on_edit_insert(self, mode: EditMode, event: KeyEvent) -> Mode | None:
        cur = mode.cursor
        k = event.key

        if k == keys.ESC:
            if mode.sub_mode is None:
                self._commit_edit(mode)
                return NormalMode()
            # Like vim: the cursor steps back onto the last typed character
            cur.move_left()
            return replace(mode, sub_mode=EditSubMode.NORMAL)

        if k == keys.ENTER:
            cur.split_line()
        elif k == keys.BACKSPACE:
            cur.backspace()
        elif k == keys.LEFT:
            cur.move_left()
        elif k == keys.RIGHT:
            cur.move_right()
        elif k == keys.UP:
            cur.move_up()
        elif k == keys.DOWN:
            cur.move_down()
        elif event.is_char and event.key.isprintable():
            cur.insert_char(event.key)
        else:
            return None
        return mode

    def _on_edit_normal(self, mode: EditMode, event: KeyEvent) -> Mode | None:
        cur = mode.cursor
        k = event.key

        if k == keys.ESC:
            self._commit_edit(mode)
            return NormalMode()
        if k == "i":
            return replace(mode, sub_mode=EditSubMode.INSERT)
        if k == "a":
            cur.move_right()
            return replace(mode, sub_mode=EditSubMode.INSERT)

        if k in ("h", keys.LEFT):
            cur.move_left()
        elif k in ("l", keys.RIGHT):
            cur.move_right(stop_on_last_char=True)
        elif k in ("j", keys.DOWN):
            cur.move_down()
        elif k in ("k", keys.UP):
            cur.move_up()
        elif k == "g":
            cur.to_start()
        elif k == "G":
            cur.to_end()
        elif k == "w":
            cur.word_forward()
        elif k == "b":
            cur.word_backward()
        elif k == "x":
            cur.delete_under_cursor()
        else:
            return None
        return mode
