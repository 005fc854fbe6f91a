# tmmpr/workers/save_map.py

from __future__ import annotations

import threading
from pathlib import Path

from PySide6.QtCore import QObject, QRunnable, Signal

from tmmpr.infrastructure.map_files import write_map_text


class SaveMapSignals(QObject):
    """
    Signals emitted by SaveMapWorker.

    finished(req_id, path)
    failed(req_id, path, error_message)
    """
    finished = Signal(int, str)
    failed = Signal(int, str, str)


class SaveMapWorker(QRunnable):
    """
    Writes one already-encoded map snapshot to disk.

    The snapshot is plain text taken on the interaction thread, so the
    worker never touches the live map.
    """

    def __init__(self, *, req_id: int, path: Path, text: str):
        super().__init__()
        self.req_id = req_id
        self.path = Path(path)
        self.text = text
        self.done = threading.Event()

        self.signals = SaveMapSignals()

    def run(self) -> None:
        try:
            write_map_text(self.path, self.text)
            self.signals.finished.emit(self.req_id, str(self.path))
        except Exception as exc:
            self.signals.failed.emit(self.req_id, str(self.path), str(exc))
        finally:
            self.done.set()
