from __future__ import annotations

import logging
from queue import Queue
from threading import Lock, Thread
from typing import Optional

from .models import LogRecord
from .storage import DocumentStore
from .timeutils import newest_first

logger = logging.getLogger(__name__)

LOGS = "logs"


class LogSink:
    """Persists request log records on a background thread.

    ``submit`` never blocks on storage and never raises; a record that cannot
    be written is dropped.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._queue: "Queue[Optional[LogRecord]]" = Queue()
        self._worker_lock = Lock()
        self._worker: Optional[Thread] = None

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        with self._worker_lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = Thread(target=self._run, name="request-log-writer", daemon=True)
            self._worker.start()

    def _run(self) -> None:
        while True:
            record = self._queue.get()
            try:
                if record is None:
                    return
                self.write(record)
            finally:
                self._queue.task_done()

    def write(self, record: LogRecord) -> None:
        try:
            self._store.insert(LOGS, record.model_dump(mode="json"))
        except Exception:
            logger.debug("Dropped request log record for %s %s", record.method, record.url, exc_info=True)

    def submit(self, record: LogRecord) -> None:
        try:
            self._ensure_worker()
            self._queue.put_nowait(record)
        except Exception:
            logger.debug("Unable to queue request log record", exc_info=True)

    def flush(self) -> None:
        """Block until every queued record has been handled."""

        self._queue.join()

    def close(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            return
        self._queue.put(None)
        self._worker.join(timeout=5)
        self._worker = None

    def recent(self, limit: int = 20) -> list:
        records = [LogRecord.model_validate(raw) for raw in self._store.find(LOGS)]
        return newest_first(records, lambda record: record.created_at)[:limit]
