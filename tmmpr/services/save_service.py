# tmmpr/services/save_service.py

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PySide6.QtCore import QObject, Qt, QThreadPool, Slot

from tmmpr.workers.save_map import SaveMapWorker

log = logging.getLogger(__name__)


class SaveKind(str, Enum):
    MANUAL = "manual"
    AUTOSAVE = "autosave"
    BACKUP = "backup"


@dataclass(frozen=True)
class SaveJob:
    req_id: int
    path: Path
    text: str
    kind: SaveKind
    # Map revision the snapshot was taken at
    revision: int


@dataclass(frozen=True)
class SaveResult:
    job: SaveJob
    ok: bool
    error: str | None = None


class SaveService(QObject):
    """
    Orchestrates map writes.

    Responsibilities:
    - at most one in-flight write per target path
    - a write requested while one is outstanding becomes the single pending
      write for that path (newest snapshot wins) and starts when the
      outstanding one completes
    - hand completions back to the interaction thread through poll()

    Workers report through DirectConnection into a queue, so no Qt event
    loop is needed. Without a thread pool every write runs inline.
    """

    def __init__(self, *, thread_pool: QThreadPool | None = None):
        super().__init__()

        self._pool = thread_pool
        self._req_id = 0

        self._jobs: dict[int, SaveJob] = {}
        self._workers: dict[int, SaveMapWorker] = {}
        self._done: dict[int, threading.Event] = {}
        self._in_flight: dict[Path, int] = {}
        self._pending: dict[Path, SaveJob] = {}
        self._completed: queue.SimpleQueue[tuple[int, bool, str | None]] = queue.SimpleQueue()

    # ───────────────────────── public API ─────────────────────────

    def request(self, path: Path, text: str, *, kind: SaveKind, revision: int) -> int:
        """Queue one write. Returns its request id."""
        self._req_id += 1
        job = SaveJob(
            req_id=self._req_id,
            path=Path(path),
            text=text,
            kind=kind,
            revision=revision,
        )

        if job.path in self._in_flight:
            replaced = self._pending.get(job.path)
            if replaced is not None:
                log.debug("Pending write superseded: req=%s by req=%s", replaced.req_id, job.req_id)
            self._pending[job.path] = job
            log.debug("Write deferred: path=%s req=%s", job.path, job.req_id)
            return job.req_id

        self._start(job)
        return job.req_id

    def busy(self, path: Path | None = None) -> bool:
        if path is None:
            return bool(self._in_flight or self._pending)
        path = Path(path)
        return path in self._in_flight or path in self._pending

    def poll(self) -> list[SaveResult]:
        """Collect finished writes and start deferred ones."""
        results: list[SaveResult] = []
        while True:
            try:
                req_id, ok, error = self._completed.get_nowait()
            except queue.Empty:
                break

            job = self._jobs.pop(req_id, None)
            self._workers.pop(req_id, None)
            self._done.pop(req_id, None)
            if job is None:
                continue
            if self._in_flight.get(job.path) == req_id:
                del self._in_flight[job.path]

            if ok:
                log.debug("Write finished: kind=%s path=%s", job.kind.value, job.path)
            else:
                log.error("Write failed: kind=%s path=%s error=%s", job.kind.value, job.path, error)
            results.append(SaveResult(job=job, ok=ok, error=error))

            nxt = self._pending.pop(job.path, None)
            if nxt is not None:
                self._start(nxt)
        return results

    def flush(self, timeout: float | None = None) -> list[SaveResult]:
        """
        Block until every in-flight and pending write has completed.

        With a timeout, gives up on a write that is still running after
        `timeout` seconds and returns what completed so far.
        """
        results = self.poll()
        while self._in_flight:
            req_id = next(iter(self._in_flight.values()))
            done = self._done.get(req_id)
            if done is not None and not done.wait(timeout):
                log.warning("Flush timed out waiting for req=%s", req_id)
                break
            results.extend(self.poll())
        return results

    # ───────────────────────── internal ─────────────────────────

    def _start(self, job: SaveJob) -> None:
        worker = SaveMapWorker(req_id=job.req_id, path=job.path, text=job.text)
        worker.signals.finished.connect(self._handle_finished, Qt.ConnectionType.DirectConnection)
        worker.signals.failed.connect(self._handle_failed, Qt.ConnectionType.DirectConnection)

        self._jobs[job.req_id] = job
        self._workers[job.req_id] = worker
        self._done[job.req_id] = worker.done
        self._in_flight[job.path] = job.req_id

        if self._pool is None:
            worker.run()
        else:
            self._pool.start(worker)

    # Called on the worker thread

    @Slot(int, str)
    def _handle_finished(self, req_id: int, path: str) -> None:
        self._completed.put((req_id, True, None))

    @Slot(int, str, str)
    def _handle_failed(self, req_id: int, path: str, err: str) -> None:
        self._completed.put((req_id, False, err))
