"""
Worker Pool

A fixed number of worker threads consuming tasks from one unbounded
queue. Submitting never blocks; when every worker is busy, tasks wait in
the queue. Tasks share nothing and finish in no particular order.
"""

import logging
import queue
import threading
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
QUEUE_POLL_TIMEOUT = 0.1

Task = Tuple[Callable[..., Any], Tuple[Any, ...]]


class WorkerPool:
    """
    Bounded pool of worker threads.

    Usage:
        pool = WorkerPool(size=4)
        pool.start()
        pool.submit(handle_datagram, config, data, src)
        pool.stop()
    """

    def __init__(self, size: int = DEFAULT_WORKERS, name: str = "OscCommandsWorker"):
        if size < 1:
            raise ValueError(f"Worker pool size must be >= 1, got {size}")
        self._size = size
        self._name = name
        self._queue: "queue.Queue[Task]" = queue.Queue()
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._active = 0
        self._active_lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._size

    @property
    def is_running(self) -> bool:
        return bool(self._threads) and not self._stop.is_set()

    @property
    def pending(self) -> int:
        """Tasks queued but not yet picked up by a worker."""
        return self._queue.qsize()

    @property
    def active(self) -> int:
        """Tasks currently executing."""
        with self._active_lock:
            return self._active

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(
                target=self._worker_loop,
                name=f"{self._name}-{index}",
                daemon=True,
            )
            for index in range(self._size)
        ]
        for thread in self._threads:
            thread.start()

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        """Queue `fn(*args)` for the next free worker."""
        if not self.is_running:
            raise RuntimeError("WorkerPool is not running")
        self._queue.put((fn, args))

    def join(self) -> None:
        """Block until every submitted task has finished."""
        self._queue.join()

    def stop(self, drain: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop the workers.

        Args:
            drain: Run tasks still in the queue before stopping; when
                False they are discarded
            timeout: Seconds to wait for each worker thread
        """
        if not self._threads:
            return
        if not drain:
            self._drain_queue()
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"{thread.name} still busy; continuing shutdown")
        self._threads = []

    def _drain_queue(self) -> None:
        try:
            while True:
                self._queue.get_nowait()
                self._queue.task_done()
        except queue.Empty:
            return

    def _worker_loop(self) -> None:
        while True:
            try:
                fn, args = self._queue.get(timeout=QUEUE_POLL_TIMEOUT)
            except queue.Empty:
                if self._stop.is_set():
                    return
                continue

            with self._active_lock:
                self._active += 1
            try:
                fn(*args)
            except Exception:
                logger.exception(f"Unhandled error in {threading.current_thread().name}")
            finally:
                with self._active_lock:
                    self._active -= 1
                self._queue.task_done()
