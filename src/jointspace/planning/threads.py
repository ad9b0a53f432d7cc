"""
Cancellable worker threads for planning and path processing.

Workers are started and stopped individually and polled for completion
with :meth:`CancellableTask.is_running`. Cancellation is cooperative: the
wrapped planner or processor checks its stop flag once per loop iteration.
"""

import threading
from typing import Optional

from jointspace.core.exceptions import UsageError
from jointspace.core.logging import get_logger, worker_context
from jointspace.planning.path import CSpacePath
from jointspace.planning.rrt import MotionPlanner
from jointspace.planning.shortcut import ShortcutProcessor

_logger = get_logger(__name__)


class CancellableTask:
    """
    One OS thread running one unit of work.

    Subclasses implement :meth:`_run` and :meth:`_cancel`.
    """

    def __init__(self, name: str):
        self.name = name
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._cancelled = threading.Event()
        self.error: Optional[BaseException] = None

    def start(self) -> None:
        """
        Start the worker thread.

        Raises:
            UsageError: If the task is already running
        """
        if self.is_running():
            raise UsageError(f"Task '{self.name}' is already running")
        self._cancelled.clear()
        self.error = None
        self._running.set()
        self._thread = threading.Thread(target=self._main, name=self.name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Request cooperative termination and wait for the thread to exit."""
        if self._thread is None:
            return
        self._cancelled.set()
        self._cancel()
        self.join()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread. Returns True if it has finished."""
        if self._thread is not None:
            self._thread.join(timeout)
        return not self.is_running()

    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _main(self) -> None:
        with worker_context(task=self.name):
            try:
                self._run()
            except Exception as e:
                self.error = e
                _logger.error("task_failed", error=str(e), exc_info=True)
            finally:
                self._running.clear()

    def _run(self) -> None:
        raise NotImplementedError

    def _cancel(self) -> None:
        pass


class PlanningThread(CancellableTask):
    """Runs ``planner.plan()`` in its own thread."""

    def __init__(self, planner: MotionPlanner, name: Optional[str] = None):
        super().__init__(name or f"planning-{planner.name}")
        self.planner = planner
        self.success = False

    def start(self) -> None:
        if not self.is_running():
            self.planner.clear_stop()
        super().start()

    def _run(self) -> None:
        self.success = False
        self.success = self.planner.plan()

    def _cancel(self) -> None:
        self.planner.stop_search()

    def get_solution(self) -> Optional[CSpacePath]:
        if self.is_running():
            return None
        return self.planner.get_solution()


class PathProcessingThread(CancellableTask):
    """Runs a shortcut processor in its own thread."""

    def __init__(self, processor: ShortcutProcessor, name: Optional[str] = None):
        super().__init__(name or f"processing-{processor.path.name}")
        self.processor = processor
        self.steps = 0
        self.prune = True
        self._result: Optional[CSpacePath] = None

    def start(self, steps: int = 600, prune: bool = True) -> None:
        if not self.is_running():
            self.steps = steps
            self.prune = prune
            self._result = None
            self.processor.clear_stop()
        super().start()

    def _run(self) -> None:
        self._result = self.processor.optimize(self.steps, prune=self.prune)

    def _cancel(self) -> None:
        self.processor.stop_processing()

    def get_processed_path(self) -> Optional[CSpacePath]:
        """Processed path once the thread has finished, else None."""
        if self.is_running():
            return None
        return self._result
