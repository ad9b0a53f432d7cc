"""
Unit tests for the shortcut path processor.
"""

import pytest

from jointspace.core.exceptions import UsageError
from jointspace.planning.path import CSpacePath
from jointspace.planning.shortcut import ShortcutProcessor


@pytest.fixture
def zigzag():
    return CSpacePath(
        [[-5.0, 0.0, 0.0], [-2.0, 5.0, 0.0], [0.0, -5.0, 0.0], [2.0, 5.0, 0.0], [5.0, 0.0, 0.0]],
        "zigzag",
    )


@pytest.fixture
def detour():
    """Valid path over the wall of ``wall_cspace``."""
    return CSpacePath(
        [[-5.0, 0.0, 0.0], [-5.0, 8.0, 0.0], [5.0, 8.0, 0.0], [5.0, 0.0, 0.0]],
        "detour",
    )


class TestShortcutProcessor:
    """Tests for ShortcutProcessor."""

    def test_requires_inputs(self, free_cspace, zigzag):
        with pytest.raises(UsageError):
            ShortcutProcessor(None, free_cspace)
        with pytest.raises(UsageError):
            ShortcutProcessor(zigzag, None)

    def test_free_space_becomes_straight(self, free_cspace, zigzag):
        result = ShortcutProcessor(zigzag, free_cspace, seed=0).optimize(100)
        assert result.num_points == 2
        assert result.length() == pytest.approx(10.0)

    def test_never_longer(self, wall_cspace, detour):
        result = ShortcutProcessor(detour, wall_cspace, seed=1).optimize(200)
        assert result.length() <= detour.length()
        assert result.point(0) == pytest.approx(detour.point(0))
        assert result.point(-1) == pytest.approx(detour.point(-1))

    def test_result_stays_valid(self, wall_cspace, detour):
        result = ShortcutProcessor(detour, wall_cspace, seed=2).optimize(200)
        points = result.points
        for a, b in zip(points, points[1:]):
            assert wall_cspace.is_path_valid(a, b)

    def test_input_not_modified(self, free_cspace, zigzag):
        before = zigzag.points
        ShortcutProcessor(zigzag, free_cspace, seed=0).optimize(50)
        assert [p.tolist() for p in zigzag.points] == [p.tolist() for p in before]

    def test_random_shortcuts_only(self, free_cspace, zigzag):
        processor = ShortcutProcessor(zigzag, free_cspace, seed=0)
        result = processor.optimize(200, prune=False)
        assert result.length() < zigzag.length()
        assert processor.accepted_shortcuts > 0

    def test_prune_keeps_required_corners(self, wall_cspace, detour):
        result = ShortcutProcessor(detour, wall_cspace).prune_waypoints()
        assert result.num_points >= 3
        assert result.length() <= detour.length()

    def test_stopped_processor_returns_input(self, free_cspace, zigzag):
        processor = ShortcutProcessor(zigzag, free_cspace, seed=0)
        processor.stop_processing()
        result = processor.shorten_solution_random(100)
        assert result.num_points == zigzag.num_points
        assert processor.accepted_shortcuts == 0
