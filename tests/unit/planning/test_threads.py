"""
Unit tests for the planning worker threads.
"""

import threading

import pytest

from jointspace.core.exceptions import MotionPlanningError, UsageError
from jointspace.planning.path import CSpacePath
from jointspace.planning.rrt import BiRrt
from jointspace.planning.shortcut import ShortcutProcessor
from jointspace.planning.threads import CancellableTask, PathProcessingThread, PlanningThread


class BlockingTask(CancellableTask):
    """Runs until it is cancelled."""

    def __init__(self):
        super().__init__("blocking")
        self.release = threading.Event()

    def _run(self):
        self.release.wait(10.0)

    def _cancel(self):
        self.release.set()


class TestCancellableTask:
    """Tests for CancellableTask."""

    def test_start_stop(self):
        task = BlockingTask()
        task.start()
        assert task.is_running()
        task.stop()
        assert not task.is_running()
        assert task.cancelled

    def test_double_start(self):
        task = BlockingTask()
        task.start()
        try:
            with pytest.raises(UsageError):
                task.start()
        finally:
            task.stop()

    def test_restart_after_finish(self):
        task = BlockingTask()
        task.start()
        task.stop()
        task.start()
        assert not task.cancelled
        task.stop()

    def test_stop_without_start(self):
        task = BlockingTask()
        task.stop()
        assert not task.is_running()


class TestPlanningThread:
    """Tests for PlanningThread."""

    def test_plans_in_background(self, free_cspace):
        planner = BiRrt(free_cspace)
        planner.set_start([-5.0, 0.0, 0.0])
        planner.set_goal([5.0, 0.0, 0.0])
        thread = PlanningThread(planner)
        thread.start()
        assert thread.join(30.0)
        assert thread.success
        assert thread.error is None
        assert thread.get_solution() is not None

    def test_error_is_captured(self, free_cspace):
        """A failing planner ends the thread and keeps the exception."""
        thread = PlanningThread(BiRrt(free_cspace, name="broken"))
        thread.start()
        assert thread.join(5.0)
        assert isinstance(thread.error, MotionPlanningError)
        assert thread.get_solution() is None


class TestPathProcessingThread:
    """Tests for PathProcessingThread."""

    def test_processes_in_background(self, free_cspace):
        path = CSpacePath([[-5.0, 0.0, 0.0], [0.0, 5.0, 0.0], [5.0, 0.0, 0.0]], "bent")
        thread = PathProcessingThread(ShortcutProcessor(path, free_cspace, seed=0))
        assert thread.name == "processing-bent"
        thread.start(steps=50)
        assert thread.join(30.0)
        result = thread.get_processed_path()
        assert result is not None
        assert result.length() <= path.length()
