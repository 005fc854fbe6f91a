from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KeyEvent:
    """
    One key press as delivered by the terminal layer.

    `key` is either a single printable character (case already applied:
    'H' is shift+h) or one of the named keys below. `shift` only matters for
    named keys such as arrows.
    """
    key: str
    shift: bool = False

    @property
    def is_char(self) -> bool:
        return len(self.key) == 1


ESC = "esc"
ENTER = "enter"
BACKSPACE = "backspace"
TAB = "tab"
LEFT = "left"
RIGHT = "right"
UP = "up"
DOWN = "down"
F1 = "f1"
