"""
Unit tests for the collision detection manager.
"""

import math

import pytest

from jointspace.collision.cd_manager import MISSING_DISTANCE, CDManager
from jointspace.model import transforms
from jointspace.model.factory import create_box_obstacle
from jointspace.model.node_sets import LinkSet


@pytest.fixture
def boxes(checker):
    """Two unit boxes, 3 apart along x, each in its own model."""
    a = create_box_obstacle("a", 1.0, checker)
    b = create_box_obstacle("b", 1.0, checker, pose=transforms.translation([3.0, 0.0, 0.0]))
    return a, b


class TestRegistration:
    """Tests for adding collision groups."""

    def test_models_are_paired_in_order(self, checker, boxes):
        cdm = CDManager(checker)
        set_a = cdm.add_collision_model(boxes[0])
        set_b = cdm.add_collision_model(boxes[1])
        assert cdm.link_sets == [set_a, set_b]
        assert cdm.pairs == {set_a: [set_b]}

    def test_duplicate_add_changes_nothing(self, checker, boxes):
        cdm = CDManager(checker)
        set_a = cdm.add_collision_model(boxes[0].get_link_set())
        cdm.add_collision_model(boxes[1])
        again = cdm.add_collision_model(set_a)
        assert again is set_a
        assert len(cdm.link_sets) == 2
        assert sum(len(v) for v in cdm.pairs.values()) == 1

    def test_single_link_dedup(self, checker, boxes):
        cdm = CDManager(checker)
        link = boxes[0].links[0]
        first = cdm.add_collision_model(link)
        second = cdm.add_collision_model(LinkSet("wrapper", boxes[0], [link]))
        assert second is first
        assert cdm.has_link(link)

    def test_explicit_pair_registers_both(self, checker, boxes):
        cdm = CDManager(checker)
        set_a, set_b = boxes[0].get_link_set(), boxes[1].get_link_set()
        cdm.add_collision_model_pair(set_a, set_b)
        assert cdm.has_link_set(set_a) and cdm.has_link_set(set_b)
        cdm.add_collision_model_pair(set_a, set_b)
        assert cdm.pairs == {set_a: [set_b]}

    def test_list_of_links(self, planar_arm):
        cdm = CDManager(planar_arm.collision_checker)
        link_set = cdm.add_collision_model(planar_arm.links[1:])
        assert link_set.names == ["link_1", "link_2"]

    def test_none_is_ignored(self, checker):
        cdm = CDManager(checker)
        assert cdm.add_collision_model(None) is None
        cdm.add_collision_model_pair(None, None)
        assert cdm.link_sets == []


class TestQueries:
    """Tests for collision and distance queries."""

    def test_separate_boxes_then_overlap(self, checker, boxes):
        """Two apart boxes do not collide until one is moved onto the other."""
        cdm = CDManager(checker)
        cdm.add_collision_model_pair(boxes[0].get_link_set(), boxes[1].get_link_set())
        assert not cdm.is_in_collision()

        boxes[1].global_pose = transforms.translation([0.5, 0.0, 0.0])
        assert cdm.is_in_collision()

    def test_query_is_symmetric(self, checker, boxes):
        cdm = CDManager(checker)
        set_a = cdm.add_collision_model(boxes[0])
        set_b = cdm.add_collision_model(boxes[1])
        assert cdm.get_distance(set_a, [set_b]) == pytest.approx(cdm.get_distance(set_b, [set_a]))
        boxes[1].global_pose = transforms.translation([0.2, 0.0, 0.0])
        assert cdm.is_in_collision(set_a, [set_b]) == cdm.is_in_collision(set_b, [set_a]) is True

    def test_distance_over_pairs(self, checker, boxes):
        cdm = CDManager(checker)
        cdm.add_collision_model(boxes[0])
        cdm.add_collision_model(boxes[1])
        assert cdm.get_distance() == pytest.approx(2.0)
        details = cdm.get_distance_details()
        assert details.point_a == pytest.approx([0.5, 0.0, 0.0])
        assert details.point_b == pytest.approx([2.5, 0.0, 0.0])

    def test_link_set_against_all_others(self, checker, boxes):
        c = create_box_obstacle("c", 1.0, checker, pose=transforms.translation([0.0, 1.5, 0.0]))
        cdm = CDManager(checker)
        set_a = cdm.add_collision_model(boxes[0])
        cdm.add_collision_model(boxes[1])
        cdm.add_collision_model(c)
        assert cdm.get_distance(set_a) == pytest.approx(1.0)

    def test_no_pairs_is_infinitely_far(self, checker, boxes):
        cdm = CDManager(checker)
        cdm.add_collision_model(boxes[0])
        assert cdm.get_distance() == math.inf
        assert not cdm.is_in_collision()

    def test_missing_checker_sentinels(self, boxes):
        cdm = CDManager(None)
        cdm.add_collision_model(boxes[0])
        cdm.add_collision_model(boxes[1])
        assert cdm.is_in_collision() is False
        assert cdm.get_distance() == MISSING_DISTANCE

    def test_missing_link_set_sentinels(self, checker, boxes):
        cdm = CDManager(checker)
        cdm.add_collision_model(boxes[0])
        others = [cdm.add_collision_model(boxes[1])]
        assert cdm.is_in_collision(None, others) is False
        assert cdm.get_distance(None, others) == MISSING_DISTANCE

    def test_robot_against_obstacle(self, checker, point_robot):
        wall = create_box_obstacle("wall", 2.0, checker, pose=transforms.translation([5.0, 0.0, 0.0]))
        cdm = CDManager(checker)
        robot_links = cdm.add_collision_model(point_robot.get_link_set("colModel"))
        cdm.add_collision_model(wall)
        assert cdm.get_distance(robot_links) == pytest.approx(3.5)

        point_robot.get_joint_set("All").set_joint_values([4.0, 0.0, 0.0])
        assert cdm.is_in_collision(robot_links)
