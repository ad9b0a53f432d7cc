"""
Unit tests for the default collision engine.
"""

import math

import pytest
import trimesh

from jointspace.collision.checker import CollisionChecker
from jointspace.collision.geometry import CollisionModel
from jointspace.model import transforms


def box_at(checker, x, size=1.0, name="box"):
    model = CollisionModel(trimesh.creation.box(extents=[size] * 3), checker, name)
    model.global_pose = transforms.translation([x, 0.0, 0.0])
    return model


class TestCollisionModel:
    """Tests for CollisionModel."""

    def test_registration(self, checker):
        a = box_at(checker, 0.0)
        b = box_at(checker, 1.0)
        assert (a.handle, b.handle) == (0, 1)
        assert checker.num_registered == 2

    def test_aabb_follows_pose(self, checker):
        box = box_at(checker, 0.0)
        box.global_pose = transforms.translation([3.0, 0.0, 0.0])
        low, high = box.aabb()
        assert low == pytest.approx([2.5, -0.5, -0.5])
        assert high == pytest.approx([3.5, 0.5, 0.5])

    def test_clone_into_other_checker(self, checker):
        box = box_at(checker, 2.0)
        other = CollisionChecker()
        copy = box.clone(other)
        assert copy.checker is other
        assert copy.mesh is not box.mesh
        assert copy.global_pose == pytest.approx(box.global_pose)


class TestPairwiseQueries:
    """Tests for the bounding-box primitives."""

    def test_separated_boxes(self, checker):
        a, b = box_at(checker, 0.0), box_at(checker, 3.0)
        assert not checker.check_model_collision(a, b)
        result = checker.model_distance(a, b)
        assert result.distance == pytest.approx(2.0)
        assert result.point_a == pytest.approx([0.5, 0.0, 0.0])
        assert result.point_b == pytest.approx([2.5, 0.0, 0.0])
        assert result.triangle_a >= 0 and result.triangle_b >= 0

    def test_touching_is_not_collision(self, checker):
        a, b = box_at(checker, 0.0), box_at(checker, 1.0)
        assert not checker.check_model_collision(a, b)
        assert checker.model_distance(a, b).distance == pytest.approx(0.0)

    def test_overlap_reports_penetration(self, checker):
        a, b = box_at(checker, 0.0), box_at(checker, 0.75)
        assert checker.check_model_collision(a, b)
        assert checker.model_distance(a, b).distance == pytest.approx(-0.25)

    def test_diagonal_distance(self, checker):
        a = box_at(checker, 0.0)
        b = box_at(checker, 0.0)
        b.global_pose = transforms.translation([4.0, 5.0, 0.0])
        assert checker.model_distance(a, b).distance == pytest.approx(math.hypot(3.0, 4.0))
