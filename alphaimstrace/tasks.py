"""Cancellable, progress-reporting units of work.

A task runs one batch computation (e.g. building the traces of one raw data
file) and exposes its state to whoever orchestrates it:

- ``status``: WAITING -> PROCESSING -> FINISHED / ERROR / CANCELED
- ``progress``: monotonically increasing fraction in [0, 1]
- ``error_message``: human-readable reason for an ERROR status

Cancellation is cooperative. ``cancel()`` only sets a flag; the task checks
``is_canceled()`` between units of work and returns early without committing
a result.

Examples
--------
>>> tasks = [IonMobilityTraceBuilderTask(frames, params, name) for name, frames in files]
>>> run_tasks(tasks, max_workers=4)
>>> [task.status for task in tasks]
[<TaskStatus.FINISHED: 'finished'>, ...]
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


class TaskStatus(Enum):
    """Life cycle state of a task."""
    WAITING = "waiting"
    PROCESSING = "processing"
    FINISHED = "finished"
    ERROR = "error"
    CANCELED = "canceled"


class AbstractTask:
    """Base class for cancellable tasks.

    Subclasses implement :meth:`process`. :meth:`run` wraps it with status
    handling: unexpected exceptions are logged and turned into an ERROR status
    with the exception text as error message.
    """

    task_description = "Processing"

    def __init__(self):
        self._status = TaskStatus.WAITING
        self._error_message: Optional[str] = None
        self._progress = 0.0
        self._cancel_event = threading.Event()
        self.progress_callback: Optional[Callable[[float], None]] = None

    @property
    def status(self) -> TaskStatus:
        return self._status

    def set_status(self, status: TaskStatus) -> None:
        self._status = status

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    def set_error(self, message: str) -> None:
        """Record an error; processing may continue (status is final at the end)."""
        self._status = TaskStatus.ERROR
        self._error_message = message

    @property
    def progress(self) -> float:
        return self._progress

    def set_progress(self, progress: float) -> None:
        progress = min(1.0, max(0.0, progress))
        if progress < self._progress:
            return
        self._progress = progress
        if self.progress_callback is not None:
            self.progress_callback(progress)

    def cancel(self) -> None:
        self._cancel_event.set()

    def is_canceled(self) -> bool:
        return self._cancel_event.is_set()

    def process(self) -> None:
        raise NotImplementedError

    def run(self) -> None:
        if self.is_canceled():
            self._status = TaskStatus.CANCELED
            return

        self._status = TaskStatus.PROCESSING
        try:
            self.process()
        except Exception as exc:
            logger.exception(f"{self.task_description} failed")
            self.set_error(str(exc))
            return

        if self.is_canceled():
            self._status = TaskStatus.CANCELED
        elif self._status == TaskStatus.PROCESSING:
            self.set_progress(1.0)
            self._status = TaskStatus.FINISHED

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status={self._status.value}, "
            f"progress={self._progress:.0%})"
        )


def run_tasks(tasks: Sequence[AbstractTask], max_workers: int = 1) -> List[AbstractTask]:
    """Run independent tasks, in a thread pool when max_workers > 1.

    Each task owns all of its state, so no coordination is needed. Failures
    are reported through each task's status, never raised.
    """
    if max_workers <= 1:
        for task in tasks:
            task.run()
        return list(tasks)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(task.run): task for task in tasks}
        for future in as_completed(futures):
            future.result()
            task = futures[future]
            logger.info(f"{task.task_description}: {task.status.value}")

    return list(tasks)
