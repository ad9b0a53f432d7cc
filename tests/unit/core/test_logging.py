"""
Unit tests for structured logging.
"""

import json
import threading

import pytest

from jointspace.core.logging import configure_logging, get_logger, worker_context


@pytest.fixture
def json_log(temp_dir):
    """Log JSON lines to a file for the duration of the test."""
    log_file = temp_dir / "events.log"
    configure_logging(level="DEBUG", json_output=True, log_file=str(log_file))
    yield log_file
    configure_logging(level="WARNING")


def read_events(log_file):
    return [json.loads(line) for line in log_file.read_text().splitlines() if line.startswith("{")]


class TestLogging:
    """Tests for configure_logging and worker_context."""

    def test_json_events_carry_fields(self, json_log):
        logger = get_logger("jointspace.planning.rrt")
        logger.info("planning_finished", planner="birrt_0", success=True, iterations=812)
        event = read_events(json_log)[-1]
        assert event["event"] == "planning_finished"
        assert event["level"] == "info"
        assert event["logger"] == "jointspace.planning.rrt"
        assert event["iterations"] == 812
        assert "timestamp" in event

    def test_level_filters_events(self, temp_dir):
        log_file = temp_dir / "quiet.log"
        configure_logging(level="WARNING", json_output=True, log_file=str(log_file))
        try:
            logger = get_logger("jointspace.collision.cd_manager")
            logger.debug("sampled_configuration")
            logger.warning("collision_query_without_checker")
        finally:
            configure_logging(level="WARNING")
        assert [e["event"] for e in read_events(log_file)] == ["collision_query_without_checker"]

    def test_worker_context_is_per_thread(self, json_log):
        logger = get_logger("jointspace.planning.threads")

        def work():
            with worker_context(task="planning-birrt_0"):
                logger.info("planning_started")
            logger.info("worker_done")

        worker = threading.Thread(target=work, name="worker-0")
        worker.start()
        worker.join(5.0)
        logger.info("main_event")

        events = {e["event"]: e for e in read_events(json_log)}
        assert events["planning_started"]["task"] == "planning-birrt_0"
        assert events["planning_started"]["thread_name"] == "worker-0"
        assert "task" not in events["worker_done"]
        assert "task" not in events["main_event"]
        assert events["main_event"]["thread_name"] == threading.current_thread().name
