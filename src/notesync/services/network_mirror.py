"""Best-effort mirroring of cache writes to the network."""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from notesync.exceptions import BatchSizeExceededError
from notesync.services.response_handlers import ApiResult, safe_api_call

logger = logging.getLogger(__name__)


@dataclass
class MirrorTask:
    operation: str
    fn: Callable[[], Any]
    note_id: Optional[str] = None


_STOP = object()


class NetworkMirror:
    """Runs network writes after the cache write has already succeeded.

    Tasks are served first-in first-out by a single daemon worker, so the
    tasks queued for one note (delete, then tombstone) run in the order
    they were submitted. A failing task is retried with a linearly growing
    delay. When retries are exhausted it is logged and dropped, and the
    next sync pass repairs the divergence.

    Args:
        max_retries: Extra attempts after the first failure
        retry_delay: Base delay in seconds, multiplied by the attempt number
        inline: Run tasks in the caller's thread instead of the worker
    """

    def __init__(self, max_retries: int = 3, retry_delay: float = 0.5, inline: bool = False):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.inline = inline
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self._idle = threading.Condition()
        self._pending = 0
        self._submitted = 0
        self._completed = 0
        self._failed = 0
        self._closed = False

    @classmethod
    def from_config(cls, config) -> "NetworkMirror":
        return cls(
            max_retries=config.mirror_max_retries,
            retry_delay=config.mirror_retry_delay,
            inline=config.mirror_inline,
        )

    def submit(
        self,
        operation: str,
        fn: Callable[[], Any],
        note_id: Optional[str] = None,
    ) -> None:
        """Queue a network write. Never raises for network faults."""
        if self._closed:
            logger.warning(f"Mirror is shut down, dropping {operation} for {note_id}")
            return
        task = MirrorTask(operation, fn, note_id)
        with self._idle:
            self._submitted += 1
            self._pending += 1
        if self.inline:
            self._run_task(task)
            return
        self._ensure_worker()
        self._queue.put(task)

    def _ensure_worker(self) -> None:
        with self._worker_lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._worker_loop, name="notesync-mirror", daemon=True
                )
                self._worker.start()

    def _worker_loop(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is _STOP:
                    return
                self._run_task(task)
            finally:
                self._queue.task_done()

    def _run_task(self, task: MirrorTask) -> None:
        succeeded = False
        try:
            succeeded = self._attempt(task)
        except BatchSizeExceededError as e:
            logger.error(f"Mirror {task.operation} rejected, not retrying: {e}")
        finally:
            with self._idle:
                self._pending -= 1
                if succeeded:
                    self._completed += 1
                else:
                    self._failed += 1
                self._idle.notify_all()

    def _attempt(self, task: MirrorTask) -> bool:
        for attempt in range(self.max_retries + 1):
            result = safe_api_call(task.fn)
            if isinstance(result, ApiResult.Success):
                logger.debug(f"Mirror {task.operation} for {task.note_id} done")
                return True
            if attempt < self.max_retries:
                logger.info(
                    "Mirror %s for %s failed (%s), retry %d/%d",
                    task.operation, task.note_id, result.error_message,
                    attempt + 1, self.max_retries,
                )
                time.sleep(self.retry_delay * (attempt + 1))
        logger.warning(
            "Mirror %s for %s gave up after %d attempts",
            task.operation, task.note_id, self.max_retries + 1,
        )
        return False

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every submitted task has finished.

        Returns:
            True if the queue emptied, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting tasks and stop the worker.

        With ``wait`` the queued tasks run to completion first.
        """
        self._closed = True
        if wait:
            self.drain(timeout)
        with self._worker_lock:
            worker = self._worker
            self._worker = None
        if worker is not None:
            self._queue.put(_STOP)
            if wait:
                worker.join(timeout)
        logger.debug("Network mirror shut down")

    def stats(self) -> Dict[str, int]:
        with self._idle:
            return {
                "submitted": self._submitted,
                "completed": self._completed,
                "failed": self._failed,
                "pending": self._pending,
            }
