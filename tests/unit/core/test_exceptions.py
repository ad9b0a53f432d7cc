"""
Unit tests for the exception hierarchy.
"""

import pytest

from jointspace.core.exceptions import (
    ConfigurationError,
    InverseKinematicsError,
    JointspaceError,
    ModelError,
    MotionPlanningError,
    RobotError,
    UsageError,
)


class TestExceptions:
    """Tests for JointspaceError and its subclasses."""

    @pytest.mark.parametrize(
        "error_class",
        [ConfigurationError, ModelError, RobotError, UsageError, MotionPlanningError, InverseKinematicsError],
    )
    def test_common_base(self, error_class):
        with pytest.raises(JointspaceError):
            raise error_class("failed")

    def test_message_only(self):
        error = JointspaceError("failed")
        assert str(error) == "failed"
        assert error.details == {}

    def test_details_in_message(self):
        error = UsageError("bad call", details={"value": 3})
        assert str(error) == "bad call - Details: {'value': 3}"
        assert error.message == "bad call"

    def test_model_name(self):
        error = ModelError("no such node", "arm")
        assert error.model_name == "arm"
        assert isinstance(RobotError("x"), ModelError)
