"""
Worker Contexts

Where persistence operations run, away from the caller of save_form.

Two implementations:
- ThreadWorker: thread pool, for production
- ManualWorker: queued until stepped explicitly, for tests
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Deque, Tuple

logger = logging.getLogger(__name__)

Task = Callable[[], Any]
Completion = Callable[["Future[Any]"], None]


class WorkerShutdownError(Exception):
    """Raised when submitting to a worker that has been shut down."""
    pass


class Worker(ABC):
    """Runs a task off the calling context and reports its completion."""

    @abstractmethod
    def submit(self, task: Task, on_complete: Completion) -> None:
        """
        Schedule task; on_complete receives a finished Future.

        Never blocks on the task itself.
        """
        pass

    @abstractmethod
    def shutdown(self, wait: bool = True) -> None:
        pass


class ThreadWorker(Worker):
    """
    Thread pool worker.

    on_complete runs on the pool thread that ran the task.
    """

    def __init__(self, max_workers: int = 1, thread_name_prefix: str = "formsave"):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._shutdown = False

    def submit(self, task: Task, on_complete: Completion) -> None:
        if self._shutdown:
            raise WorkerShutdownError("ThreadWorker has been shut down")
        future = self._executor.submit(task)
        future.add_done_callback(on_complete)

    def shutdown(self, wait: bool = True) -> None:
        self._shutdown = True
        self._executor.shutdown(wait=wait)


class ManualWorker(Worker):
    """
    Deterministic worker.

    Tasks queue up until run_one_task()/run_all() is called; both the
    task and its completion then run on the calling thread.
    """

    def __init__(self):
        self._queue: Deque[Tuple[Task, Completion]] = deque()
        self._lock = threading.Lock()
        self._shutdown = False

    def submit(self, task: Task, on_complete: Completion) -> None:
        if self._shutdown:
            raise WorkerShutdownError("ManualWorker has been shut down")
        with self._lock:
            self._queue.append((task, on_complete))

    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    def run_one_task(self) -> bool:
        """Run the oldest queued task. Returns False if nothing was queued."""
        with self._lock:
            if not self._queue:
                return False
            task, on_complete = self._queue.popleft()

        future: "Future[Any]" = Future()
        try:
            future.set_result(task())
        except Exception as e:
            future.set_exception(e)
        on_complete(future)
        return True

    def run_all(self) -> int:
        """Run queued tasks, including ones queued while running. Returns count."""
        ran = 0
        while self.run_one_task():
            ran += 1
        return ran

    def shutdown(self, wait: bool = True) -> None:
        self._shutdown = True
        if wait:
            self.run_all()
        else:
            with self._lock:
                dropped = len(self._queue)
                self._queue.clear()
            if dropped:
                logger.warning(f"ManualWorker dropped {dropped} queued task(s) on shutdown")
