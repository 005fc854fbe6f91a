from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class EditorCursor:
    """
    Working copy of a note body plus the cursor inside it.

    Created when Edit mode opens on a note and written back into the note
    when Edit mode closes. After every operation the cursor satisfies
    0 <= line < len(lines) and 0 <= col <= len(lines[line]).
    """
    lines: list[str] = field(default_factory=lambda: [""])
    line: int = 0
    col: int = 0

    @classmethod
    def for_body(cls, lines: list[str]) -> "EditorCursor":
        return cls(lines=list(lines) or [""])

    @property
    def current_line(self) -> str:
        return self.lines[self.line]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def clamp(self) -> None:
        if not self.lines:
            self.lines = [""]
        self.line = min(max(self.line, 0), len(self.lines) - 1)
        self.col = min(max(self.col, 0), len(self.lines[self.line]))

    # ───────────────────────── offsets ─────────────────────────
    # Word motions work on the flat text, where each line break counts as
    # one whitespace character.

    def offset(self) -> int:
        return sum(len(s) + 1 for s in self.lines[: self.line]) + self.col

    def set_offset(self, offset: int) -> None:
        offset = max(0, offset)
        for i, s in enumerate(self.lines):
            if offset <= len(s):
                self.line, self.col = i, offset
                return
            offset -= len(s) + 1
        self.line = len(self.lines) - 1
        self.col = len(self.lines[-1])

    # ───────────────────────── motions ─────────────────────────

    def move_left(self) -> None:
        self.col = max(0, self.col - 1)
        self.clamp()

    def move_right(self, *, stop_on_last_char: bool = False) -> None:
        """
        One column right. In modal Normal the cursor rests on characters, so
        it stops on the last one instead of the end-of-line position.
        """
        limit = len(self.current_line)
        if stop_on_last_char:
            limit = max(0, limit - 1)
        self.col = min(self.col + 1, limit)
        self.clamp()

    def move_up(self) -> None:
        if self.line > 0:
            self.line -= 1
        self.clamp()

    def move_down(self) -> None:
        if self.line < len(self.lines) - 1:
            self.line += 1
        self.clamp()

    def to_start(self) -> None:
        self.line, self.col = 0, 0

    def to_end(self) -> None:
        self.line = len(self.lines) - 1
        self.col = len(self.lines[-1])

    def word_forward(self) -> None:
        """Start of the next word; the end of the body when there is none."""
        text = self.text
        pos = self.offset()
        n = len(text)
        while pos < n and not text[pos].isspace():
            pos += 1
        while pos < n and text[pos].isspace():
            pos += 1
        self.set_offset(pos)

    def word_backward(self) -> None:
        """
        Start of the current word, or of the previous word when the cursor
        already sits on a word start.
        """
        text = self.text
        pos = self.offset()
        if pos == 0 or not text:
            return
        pos = min(pos, len(text)) - 1
        while pos > 0 and text[pos].isspace():
            pos -= 1
        while pos > 0 and not text[pos - 1].isspace():
            pos -= 1
        self.set_offset(pos)

    # ───────────────────────── edits ─────────────────────────

    def insert_char(self, ch: str) -> None:
        if ch == "\n":
            self.split_line()
            return
        line = self.current_line
        self.lines[self.line] = line[: self.col] + ch + line[self.col:]
        self.col += len(ch)

    def split_line(self) -> None:
        line = self.current_line
        self.lines[self.line] = line[: self.col]
        self.lines.insert(self.line + 1, line[self.col:])
        self.line += 1
        self.col = 0

    def backspace(self) -> None:
        """Delete before the cursor; at column 0, join with the line above."""
        if self.col > 0:
            line = self.current_line
            self.lines[self.line] = line[: self.col - 1] + line[self.col:]
            self.col -= 1
        elif self.line > 0:
            prev = self.lines[self.line - 1]
            self.lines[self.line - 1] = prev + self.current_line
            del self.lines[self.line]
            self.line -= 1
            self.col = len(prev)

    def delete_under_cursor(self) -> None:
        """Remove the character under the cursor (modal 'x')."""
        line = self.current_line
        if self.col >= len(line):
            return
        self.lines[self.line] = line[: self.col] + line[self.col + 1:]
        # Keep resting on a character when the last one went away
        if self.col >= len(self.lines[self.line]) and self.col > 0:
            self.col -= 1
        self.clamp()
