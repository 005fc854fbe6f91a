from __future__ import annotations

from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Direction
from tmmpr.core.models import NoteId

# Rows at the bottom of the screen taken by the status bar.
STATUS_BAR_HEIGHT = 3


def manhattan(ax: int, ay: int, bx: int, by: int) -> int:
    return abs(ax - bx) + abs(ay - by)


def closest_note(canvas: CanvasMap, x: int, y: int) -> NoteId | None:
    """
    Note whose top-left corner is nearest to (x, y) by Manhattan distance.
    Ties go to the lowest id. None on an empty map.
    """
    best: tuple[int, NoteId] | None = None
    for note_id, note in canvas.notes.items():
        key = (manhattan(note.x, note.y, x, y), note_id)
        if best is None or key < best:
            best = key
    return best[1] if best is not None else None


def closest_to_viewport_center(canvas: CanvasMap) -> NoteId | None:
    cx, cy = canvas.viewport.center()
    return closest_note(canvas, cx, cy)


def _in_half_plane(direction: Direction, dx: int, dy: int) -> bool:
    if direction is Direction.RIGHT:
        return dx > 0
    if direction is Direction.LEFT:
        return dx < 0
    if direction is Direction.DOWN:
        return dy > 0
    return dy < 0


def focus_in_direction(canvas: CanvasMap, from_id: NoteId, direction: Direction) -> NoteId | None:
    """
    Nearest other note strictly in the half-plane on `direction`'s side of
    the focused note.

    Distance is parallel + perpendicular offset (Manhattan); ties go to the
    lowest id. Returns None when nothing lies that way, so callers keep the
    current focus.
    """
    origin = canvas.notes.get(from_id)
    if origin is None:
        return None

    best: tuple[int, NoteId] | None = None
    for note_id, note in canvas.notes.items():
        if note_id == from_id:
            continue
        dx = note.x - origin.x
        dy = note.y - origin.y
        if not _in_half_plane(direction, dx, dy):
            continue
        key = (abs(dx) + abs(dy), note_id)
        if best is None or key < best:
            best = key
    return best[1] if best is not None else None


def center_on(canvas: CanvasMap, note_id: NoteId) -> bool:
    """Scroll so the note's corner sits in the middle of the screen."""
    note = canvas.notes.get(note_id)
    if note is None:
        return False
    vp = canvas.viewport
    return canvas.set_viewport_origin(note.x - vp.width // 2, note.y - vp.height // 2)


def follow_note(canvas: CanvasMap, note_id: NoteId, dx: int, dy: int) -> bool:
    """
    After a note moved by (dx, dy), pan the viewport by the same step when the
    note crossed the visible edge it was moving towards.
    """
    note = canvas.notes.get(note_id)
    if note is None:
        return False
    vp = canvas.viewport
    width, height = note.dimensions()

    pan_x = 0
    if dx > 0 and note.x + width > vp.x + vp.width:
        pan_x = dx
    elif dx < 0 and note.x < vp.x:
        pan_x = dx

    pan_y = 0
    if dy > 0 and note.y + height > vp.y + vp.height - STATUS_BAR_HEIGHT:
        pan_y = dy
    elif dy < 0 and note.y < vp.y:
        pan_y = dy

    if not pan_x and not pan_y:
        return False
    return canvas.scroll_viewport(pan_x, pan_y)
