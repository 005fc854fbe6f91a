from __future__ import annotations

from dataclasses import dataclass, field

from tmmpr.core.enums import DEFAULT_COLOR, NoteColor, Side

NoteId = int
ConnectionId = int

# Rendered note box: borders around the text, a minimum size, one extra
# column reserved for the edit cursor.
NOTE_MIN_WIDTH = 20
NOTE_MIN_HEIGHT = 4


@dataclass
class Note:
    id: NoteId
    x: int
    y: int
    lines: list[str] = field(default_factory=lambda: [""])
    color: NoteColor = DEFAULT_COLOR

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def dimensions(self) -> tuple[int, int]:
        """(width, height) of the rendered box, borders included."""
        longest = max((len(line) for line in self.lines), default=0)
        width = max(longest + 2, NOTE_MIN_WIDTH) + 1
        height = max(len(self.lines) + 2, NOTE_MIN_HEIGHT)
        return width, height

    def connection_point(self, side: Side) -> tuple[int, int]:
        """Canvas cell where a connection attaches: the middle of `side`."""
        width, height = self.dimensions()
        if side is Side.RIGHT:
            return self.x + width - 1, self.y + height // 2
        if side is Side.LEFT:
            return self.x, self.y + height // 2
        if side is Side.TOP:
            return self.x + width // 2, self.y
        return self.x + width // 2, self.y + height - 1


@dataclass
class Connection:
    id: ConnectionId
    source: NoteId
    target: NoteId
    source_side: Side
    target_side: Side
    color: NoteColor = DEFAULT_COLOR

    def touches(self, note_id: NoteId) -> bool:
        return self.source == note_id or self.target == note_id

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target


@dataclass
class Viewport:
    """
    Top-left visible canvas cell plus the visible size.

    width/height come from the terminal on every frame; only x/y are persisted.
    max_span optionally caps how far x/y may scroll.
    """
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    max_span: int | None = None

    def center(self) -> tuple[int, int]:
        return self.x + self.width // 2, self.y + self.height // 2

    def clamp(self, value: int) -> int:
        value = max(0, value)
        if self.max_span is not None:
            value = min(value, self.max_span)
        return value
