import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tmmpr.core.text_editor import EditorCursor


def test_for_body_copies_lines():
    body = ["one"]
    cur = EditorCursor.for_body(body)
    cur.insert_char("x")

    assert body == ["one"]
    assert EditorCursor.for_body([]).lines == [""]


def test_insert_and_split():
    cur = EditorCursor.for_body([""])
    for ch in "hello":
        cur.insert_char(ch)
    cur.col = 2
    cur.insert_char("\n")

    assert cur.lines == ["he", "llo"]
    assert (cur.line, cur.col) == (1, 0)


def test_backspace_merges_at_line_start():
    cur = EditorCursor(lines=["ab", "cd"], line=1, col=0)
    cur.backspace()

    assert cur.lines == ["abcd"]
    assert (cur.line, cur.col) == (0, 2)

    # Start of body: nothing to delete
    cur.line, cur.col = 0, 0
    cur.backspace()
    assert cur.lines == ["abcd"]


def test_vertical_moves_clamp_column():
    cur = EditorCursor(lines=["hello", "hi"], line=0, col=5)
    cur.move_down()
    assert (cur.line, cur.col) == (1, 2)

    cur.move_down()
    assert cur.line == 1

    cur.move_up()
    assert (cur.line, cur.col) == (0, 2)


def test_move_right_stops_on_last_char_when_asked():
    cur = EditorCursor(lines=["abc"], col=2)
    cur.move_right(stop_on_last_char=True)
    assert cur.col == 2

    cur.move_right()
    assert cur.col == 3


def test_word_motions_on_one_line():
    cur = EditorCursor(lines=["foo bar  baz"])

    cur.word_forward()
    assert cur.col == 4
    cur.word_forward()
    assert cur.col == 9
    cur.word_forward()
    assert cur.col == 12

    cur.word_backward()
    assert cur.col == 9
    cur.word_backward()
    assert cur.col == 4
    cur.word_backward()
    assert cur.col == 0


def test_word_forward_crosses_line_breaks():
    cur = EditorCursor(lines=["ab", "cd"])
    cur.word_forward()

    assert (cur.line, cur.col) == (1, 0)

    cur.word_backward()
    assert (cur.line, cur.col) == (0, 0)


def test_jump_to_start_and_end():
    cur = EditorCursor(lines=["first", "second line"], line=0, col=3)
    cur.to_end()
    assert (cur.line, cur.col) == (1, 11)

    cur.to_start()
    assert (cur.line, cur.col) == (0, 0)


def test_delete_under_cursor_keeps_cursor_on_text():
    cur = EditorCursor(lines=["abc"], col=2)
    cur.delete_under_cursor()

    assert cur.lines == ["ab"]
    assert cur.col == 1

    cur.col = 2
    cur.delete_under_cursor()
    assert cur.lines == ["ab"]
