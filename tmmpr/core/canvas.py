from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tmmpr.core.enums import DEFAULT_COLOR, NoteColor, Side, cycle_color
from tmmpr.core.models import Connection, ConnectionId, Note, NoteId, Viewport

log = logging.getLogger(__name__)


@dataclass
class CanvasMap:
    """
    The whole map: notes, connections and the viewport.

    Connections reference notes by id only; deleting a note removes every
    connection touching it. Identifier counters only grow, so an id is never
    handed out twice, even after deletion.

    Every mutation bumps `revision`. The map is dirty while `revision` differs
    from the revision of the last successful write (`saved_revision`); a
    write that finishes after further edits therefore leaves the map dirty.
    """
    notes: dict[NoteId, Note] = field(default_factory=dict)
    connections: dict[ConnectionId, Connection] = field(default_factory=dict)
    next_note_id: int = 0
    next_connection_id: int = 0
    viewport: Viewport = field(default_factory=Viewport)
    # Back to front
    render_order: list[NoteId] = field(default_factory=list)
    revision: int = 0
    saved_revision: int = 0

    # ───────────────────────── dirty tracking ─────────────────────────

    @property
    def dirty(self) -> bool:
        return self.revision != self.saved_revision

    def mark_dirty(self) -> None:
        self.revision += 1

    def mark_saved(self, revision: int) -> None:
        """Record that the snapshot taken at `revision` reached the disk."""
        if revision > self.saved_revision:
            self.saved_revision = revision

    # ───────────────────────── notes ─────────────────────────

    def create_note(
        self,
        x: int,
        y: int,
        *,
        color: NoteColor = DEFAULT_COLOR,
        lines: list[str] | None = None,
    ) -> NoteId:
        note_id = self.next_note_id
        self.next_note_id += 1
        self.notes[note_id] = Note(
            id=note_id,
            x=max(0, int(x)),
            y=max(0, int(y)),
            lines=list(lines) if lines else [""],
            color=color,
        )
        self.render_order.append(note_id)
        self.mark_dirty()
        return note_id

    def delete_note(self, note_id: NoteId) -> tuple[Note | None, list[Connection]]:
        """
        Remove a note and every connection attached to it.

        Returns the removed entities. Deleting an absent id returns (None, []).
        """
        note = self.notes.pop(note_id, None)
        if note is None:
            return None, []

        removed = [c for c in self.connections.values() if c.touches(note_id)]
        for conn in removed:
            del self.connections[conn.id]
        if note_id in self.render_order:
            self.render_order.remove(note_id)

        self.mark_dirty()
        log.debug("Note deleted: id=%s connections_removed=%d", note_id, len(removed))
        return note, removed

    def move_note(self, note_id: NoteId, dx: int, dy: int) -> bool:
        note = self.notes.get(note_id)
        if note is None:
            return False
        new_x = max(0, note.x + dx)
        new_y = max(0, note.y + dy)
        if (new_x, new_y) == (note.x, note.y):
            return False
        note.x, note.y = new_x, new_y
        self.mark_dirty()
        return True

    def set_note_body(self, note_id: NoteId, lines: list[str]) -> bool:
        note = self.notes.get(note_id)
        if note is None:
            return False
        lines = list(lines) or [""]
        if lines == note.lines:
            return False
        note.lines = lines
        self.mark_dirty()
        return True

    def cycle_note_color(self, note_id: NoteId) -> bool:
        note = self.notes.get(note_id)
        if note is None:
            return False
        note.color = cycle_color(note.color)
        self.mark_dirty()
        return True

    def bring_to_front(self, note_id: NoteId) -> None:
        """Move a note to the end of the render order so it draws on top."""
        if note_id not in self.notes:
            return
        if note_id in self.render_order:
            self.render_order.remove(note_id)
        self.render_order.append(note_id)

    # ───────────────────────── connections ─────────────────────────

    @staticmethod
    def _degenerate(source: NoteId, target: NoteId, source_side: Side, target_side: Side) -> bool:
        # A self-loop is only drawable when its two ends sit on different sides.
        return source == target and source_side == target_side

    def create_connection(
        self,
        source: NoteId,
        target: NoteId,
        source_side: Side,
        target_side: Side,
        color: NoteColor = DEFAULT_COLOR,
    ) -> ConnectionId | None:
        """
        Add a connection. Returns None (and changes nothing) when an endpoint
        is missing or when it would be a self-loop with both ends on one side.
        """
        if source not in self.notes or target not in self.notes:
            log.debug("Connection refused: missing endpoint source=%s target=%s", source, target)
            return None
        if self._degenerate(source, target, source_side, target_side):
            log.debug("Connection refused: same-side self-loop on note=%s", source)
            return None

        conn_id = self.next_connection_id
        self.next_connection_id += 1
        self.connections[conn_id] = Connection(
            id=conn_id,
            source=source,
            target=target,
            source_side=source_side,
            target_side=target_side,
            color=color,
        )
        self.mark_dirty()
        return conn_id

    def delete_connection(self, conn_id: ConnectionId) -> Connection | None:
        conn = self.connections.pop(conn_id, None)
        if conn is not None:
            self.mark_dirty()
        return conn

    def update_connection_sides(
        self,
        conn_id: ConnectionId,
        *,
        source_side: Side | None = None,
        target_side: Side | None = None,
    ) -> bool:
        conn = self.connections.get(conn_id)
        if conn is None:
            return False
        new_source = source_side or conn.source_side
        new_target = target_side or conn.target_side
        if self._degenerate(conn.source, conn.target, new_source, new_target):
            return False
        if (new_source, new_target) == (conn.source_side, conn.target_side):
            return False
        conn.source_side, conn.target_side = new_source, new_target
        self.mark_dirty()
        return True

    def set_connection_color(self, conn_id: ConnectionId, color: NoteColor) -> bool:
        conn = self.connections.get(conn_id)
        if conn is None:
            return False
        if conn.color != color:
            conn.color = color
            self.mark_dirty()
        return True

    def retarget_connection(self, conn_id: ConnectionId, target: NoteId, target_side: Side) -> bool:
        """Point the connection's end at another note."""
        conn = self.connections.get(conn_id)
        if conn is None or target not in self.notes:
            return False
        if self._degenerate(conn.source, target, conn.source_side, target_side):
            return False
        if (conn.target, conn.target_side) == (target, target_side):
            return False
        conn.target, conn.target_side = target, target_side
        self.mark_dirty()
        return True

    def connections_for(self, note_id: NoteId) -> list[Connection]:
        """Connections touching a note, by ascending id."""
        return sorted(
            (c for c in self.connections.values() if c.touches(note_id)),
            key=lambda c: c.id,
        )

    # ───────────────────────── viewport ─────────────────────────

    def scroll_viewport(self, dx: int, dy: int) -> bool:
        vp = self.viewport
        return self.set_viewport_origin(vp.x + dx, vp.y + dy)

    def set_viewport_origin(self, x: int, y: int) -> bool:
        vp = self.viewport
        new_x, new_y = vp.clamp(x), vp.clamp(y)
        if (new_x, new_y) == (vp.x, vp.y):
            return False
        vp.x, vp.y = new_x, new_y
        self.mark_dirty()
        return True

    # ───────────────────────── invariants ─────────────────────────

    def invariant_problems(self) -> list[str]:
        """Human-readable list of broken invariants (empty when consistent)."""
        problems: list[str] = []
        for note_id, note in self.notes.items():
            if note.id != note_id:
                problems.append(f"note key {note_id} holds note id {note.id}")
            if note.x < 0 or note.y < 0:
                problems.append(f"note {note_id} has negative position ({note.x}, {note.y})")
            if note_id >= self.next_note_id:
                problems.append(f"note id {note_id} not below counter {self.next_note_id}")
        for conn_id, conn in self.connections.items():
            if conn.id != conn_id:
                problems.append(f"connection key {conn_id} holds connection id {conn.id}")
            if conn.source not in self.notes or conn.target not in self.notes:
                problems.append(f"connection {conn_id} references a missing note")
            if self._degenerate(conn.source, conn.target, conn.source_side, conn.target_side):
                problems.append(f"connection {conn_id} is a same-side self-loop")
            if conn_id >= self.next_connection_id:
                problems.append(f"connection id {conn_id} not below counter {self.next_connection_id}")
        if self.viewport.x < 0 or self.viewport.y < 0:
            problems.append("viewport has a negative origin")
        return problems
