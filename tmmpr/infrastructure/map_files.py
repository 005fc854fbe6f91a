# tmmpr/infrastructure/map_files.py

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from tmmpr.core.canvas import CanvasMap
from tmmpr.core.enums import Side, parse_color
from tmmpr.core.models import Connection, Note, Viewport
from tmmpr.infrastructure.filesystem import atomic_write_text

log = logging.getLogger(__name__)

MAP_FORMAT_VERSION = 1


class MapFileError(Exception):
    """A map file could not be read or written."""


class CorruptMapFileError(MapFileError):
    """The file exists but does not hold a readable map."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


# ───────────────────────── encoding ─────────────────────────

def map_to_dict(canvas: CanvasMap) -> dict[str, Any]:
    return {
        "version": MAP_FORMAT_VERSION,
        "viewport": {"x": canvas.viewport.x, "y": canvas.viewport.y},
        "next_note_id": canvas.next_note_id,
        "next_connection_id": canvas.next_connection_id,
        "notes": [
            {
                "id": n.id,
                "x": n.x,
                "y": n.y,
                "content": n.text,
                "color": n.color.value,
            }
            for n in sorted(canvas.notes.values(), key=lambda n: n.id)
        ],
        "connections": [
            {
                "id": c.id,
                "source": c.source,
                "target": c.target,
                "source_side": c.source_side.value,
                "target_side": c.target_side.value,
                "color": c.color.value,
            }
            for c in sorted(canvas.connections.values(), key=lambda c: c.id)
        ],
        "render_order": list(canvas.render_order),
    }


def encode_map(canvas: CanvasMap) -> str:
    """Pretty JSON text, stable key order so files diff cleanly."""
    return json.dumps(map_to_dict(canvas), indent=2, ensure_ascii=False) + "\n"


# ───────────────────────── decoding ─────────────────────────

class _Invalid(ValueError):
    pass


def _count(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _Invalid(f"{what} must be a non-negative integer, got {value!r}")
    return value


def _side(value: Any, what: str) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise _Invalid(f"{what} is not a side: {value!r}") from None


def _lines(content: Any) -> list[str]:
    if not isinstance(content, str):
        raise _Invalid(f"note content must be text, got {type(content).__name__}")
    return content.split("\n")


def _finish(canvas: CanvasMap, render_order: Any) -> CanvasMap:
    # Counters never fall behind the ids actually present
    if canvas.notes:
        canvas.next_note_id = max(canvas.next_note_id, max(canvas.notes) + 1)
    if canvas.connections:
        canvas.next_connection_id = max(canvas.next_connection_id, max(canvas.connections) + 1)

    order: list[int] = []
    if isinstance(render_order, list):
        order = [i for i in render_order if isinstance(i, int) and i in canvas.notes]
        order = list(dict.fromkeys(order))
    order += [i for i in sorted(canvas.notes) if i not in order]
    canvas.render_order = order
    return canvas


def _decode_current(data: dict[str, Any]) -> CanvasMap:
    viewport = data.get("viewport") or {}
    if not isinstance(viewport, dict):
        raise _Invalid("viewport must be an object")
    canvas = CanvasMap(
        next_note_id=_count(data.get("next_note_id", 0), "next_note_id"),
        next_connection_id=_count(data.get("next_connection_id", 0), "next_connection_id"),
        viewport=Viewport(
            x=_count(viewport.get("x", 0), "viewport.x"),
            y=_count(viewport.get("y", 0), "viewport.y"),
        ),
    )

    notes = data.get("notes", [])
    if not isinstance(notes, list):
        raise _Invalid("notes must be a list")
    for raw in notes:
        if not isinstance(raw, dict):
            raise _Invalid("note entries must be objects")
        note_id = _count(raw.get("id"), "note id")
        if note_id in canvas.notes:
            raise _Invalid(f"duplicate note id {note_id}")
        canvas.notes[note_id] = Note(
            id=note_id,
            x=_count(raw.get("x", 0), "note x"),
            y=_count(raw.get("y", 0), "note y"),
            lines=_lines(raw.get("content", "")),
            color=parse_color(raw.get("color")),
        )

    conns = data.get("connections", [])
    if not isinstance(conns, list):
        raise _Invalid("connections must be a list")
    for raw in conns:
        if not isinstance(raw, dict):
            raise _Invalid("connection entries must be objects")
        conn = Connection(
            id=_count(raw.get("id"), "connection id"),
            source=_count(raw.get("source"), "connection source"),
            target=_count(raw.get("target"), "connection target"),
            source_side=_side(raw.get("source_side"), "source_side"),
            target_side=_side(raw.get("target_side"), "target_side"),
            color=parse_color(raw.get("color")),
        )
        if conn.id in canvas.connections:
            raise _Invalid(f"duplicate connection id {conn.id}")
        if conn.source not in canvas.notes or conn.target not in canvas.notes:
            raise _Invalid(f"connection {conn.id} references a missing note")
        if conn.is_self_loop and conn.source_side == conn.target_side:
            raise _Invalid(f"connection {conn.id} is a same-side self-loop")
        canvas.connections[conn.id] = conn

    return _finish(canvas, data.get("render_order"))


def _decode_legacy(data: dict[str, Any]) -> CanvasMap:
    """
    Unversioned files: notes keyed by id, connections without ids and with
    from_/to_ fields, `view_pos` instead of `viewport`.
    """
    view_pos = data.get("view_pos") or {}
    if not isinstance(view_pos, dict):
        raise _Invalid("view_pos must be an object")
    counter = data.get("next_note_id_counter", data.get("next_note_id", 0))
    canvas = CanvasMap(
        next_note_id=_count(counter, "next_note_id_counter"),
        viewport=Viewport(
            x=_count(view_pos.get("x", 0), "view_pos.x"),
            y=_count(view_pos.get("y", 0), "view_pos.y"),
        ),
    )

    notes = data.get("notes", {})
    if not isinstance(notes, dict):
        raise _Invalid("notes must be an object keyed by id")
    for key, raw in notes.items():
        try:
            note_id = int(key)
        except (TypeError, ValueError):
            raise _Invalid(f"note key {key!r} is not an id") from None
        if not isinstance(raw, dict):
            raise _Invalid("note entries must be objects")
        canvas.notes[note_id] = Note(
            id=_count(note_id, "note id"),
            x=_count(raw.get("x", 0), "note x"),
            y=_count(raw.get("y", 0), "note y"),
            lines=_lines(raw.get("content", "")),
            color=parse_color(raw.get("color")),
        )

    conns = data.get("connections", [])
    if not isinstance(conns, list):
        raise _Invalid("connections must be a list")
    for raw in conns:
        if not isinstance(raw, dict):
            raise _Invalid("connection entries must be objects")
        source, target = raw.get("from_id"), raw.get("to_id")
        # Dangling ends were possible in old files; they carry no information
        if target is None or raw.get("to_side") is None:
            continue
        source = _count(source, "from_id")
        target = _count(target, "to_id")
        source_side = _side(raw.get("from_side"), "from_side")
        target_side = _side(raw.get("to_side"), "to_side")
        if source not in canvas.notes or target not in canvas.notes:
            log.warning("Legacy map: dropping connection to missing note %s -> %s", source, target)
            continue
        if source == target and source_side == target_side:
            log.warning("Legacy map: dropping same-side self-loop on note %s", source)
            continue
        conn_id = canvas.next_connection_id
        canvas.next_connection_id += 1
        canvas.connections[conn_id] = Connection(
            id=conn_id,
            source=source,
            target=target,
            source_side=source_side,
            target_side=target_side,
            color=parse_color(raw.get("color")),
        )

    return _finish(canvas, data.get("render_order"))


def map_from_dict(data: Any) -> CanvasMap:
    """
    Build a map from decoded JSON. Raises ValueError on anything that does not
    describe a consistent map.
    """
    if not isinstance(data, dict):
        raise _Invalid("top level must be an object")
    version = data.get("version")
    if version is None:
        if "view_pos" not in data:
            raise _Invalid("neither a versioned nor a legacy map")
        return _decode_legacy(data)
    if version != MAP_FORMAT_VERSION:
        raise _Invalid(f"unsupported map version {version!r}")
    return _decode_current(data)


# ───────────────────────── files ─────────────────────────

def load_map_file(path: Path) -> CanvasMap:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptMapFileError(path, f"not UTF-8 text ({exc.reason})") from exc
    except OSError as exc:
        raise MapFileError(f"Cannot read {path}: {exc}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptMapFileError(path, f"invalid JSON at line {exc.lineno}") from exc

    try:
        canvas = map_from_dict(data)
    except ValueError as exc:
        raise CorruptMapFileError(path, str(exc)) from exc

    if data.get("version") is None:
        log.info("Upgraded legacy map file: %s", path)
    log.debug(
        "Map loaded: path=%s notes=%d connections=%d",
        path,
        len(canvas.notes),
        len(canvas.connections),
    )
    return canvas


def write_map_text(path: Path, text: str) -> None:
    try:
        atomic_write_text(Path(path), text, encoding="utf-8")
    except OSError as exc:
        raise MapFileError(f"Cannot write {path}: {exc}") from exc


def save_map_file(path: Path, canvas: CanvasMap) -> None:
    write_map_text(path, encode_map(canvas))


# ───────────────────────── recovery ─────────────────────────

def latest_backup_for(map_path: Path, backups_dir: Path) -> Path | None:
    """Newest backup (load or session) of this map, by modification time."""
    backups_dir = Path(backups_dir)
    if not backups_dir.is_dir():
        return None
    stem = Path(map_path).stem
    candidates = [
        p for p in backups_dir.glob(f"{stem}-*-backup-*.json")
        if p.is_file() and p.name.startswith((f"{stem}-load-backup-", f"{stem}-session-backup-"))
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))


def quarantine_corrupt_file(map_path: Path, *, now: datetime | None = None) -> Path:
    """Move a damaged map aside so a fresh one can take its place."""
    map_path = Path(map_path)
    ts = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    target = map_path.with_name(f"{map_path.name}.corrupt-{ts}")
    n = 1
    while target.exists():
        target = map_path.with_name(f"{map_path.name}.corrupt-{ts}-{n}")
        n += 1
    try:
        map_path.replace(target)
    except OSError as exc:
        raise MapFileError(f"Cannot move {map_path} aside: {exc}") from exc
    log.warning("Corrupt map moved aside: %s -> %s", map_path, target)
    return target
