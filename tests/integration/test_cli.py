"""
Integration tests for the command-line interface.
"""

import gc
import json

import pybullet as p
import pytest
from click.testing import CliRunner

from jointspace.cli import main


def connected_clients(limit: int = 1024) -> int:
    return sum(1 for cid in range(limit) if p.isConnected(physicsClientId=cid))


@pytest.fixture
def runner():
    return CliRunner()


class TestCli:
    """Tests for the jointspace CLI."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("plan", "ik", "info", "config"):
            assert command in result.output

    def test_plan(self, runner, temp_dir):
        output = temp_dir / "out.json"
        result = runner.invoke(
            main,
            ["plan", "--threads", "1", "--obstacles", "5", "--seed", "1", "--no-optimize", "-o", str(output)],
        )
        assert result.exit_code == 0, result.output
        assert "Scenario: default" in result.output
        data = json.loads(output.read_text())
        assert data["scenario"]["threads"] == 1
        assert len(data["results"]) == 1
        assert data["results"][0]["solution"]["points"]

    def test_plan_bounding_box_engine(self, runner):
        result = runner.invoke(main, ["plan", "--threads", "1", "--obstacles", "5", "--seed", "1", "--engine", "aabb"])
        assert result.exit_code == 0, result.output

    def test_plan_releases_physics_clients(self, runner):
        gc.collect()
        before = connected_clients()
        args = ["plan", "--threads", "2", "--obstacles", "5", "--seed", "2", "--no-optimize"]
        for _ in range(2):
            result = runner.invoke(main, args)
            assert result.exit_code == 0, result.output
        result = runner.invoke(main, ["ik", "--target", "1", "1", "0", "--joints", "2", "--seed", "0"])
        assert result.exit_code == 0, result.output
        gc.collect()
        assert connected_clients() <= before

    def test_plan_from_scenario(self, runner, sample_config_dir):
        scenario = sample_config_dir / "scenarios" / "small.yaml"
        result = runner.invoke(main, ["plan", "-s", str(scenario), "--threads", "1"])
        assert result.exit_code == 0, result.output
        assert "Scenario: small" in result.output

    def test_ik_reachable(self, runner):
        result = runner.invoke(main, ["ik", "--target", "1", "1", "0", "--joints", "2", "--seed", "0"])
        assert result.exit_code == 0, result.output
        assert "Reached" in result.output

    def test_ik_unreachable(self, runner):
        result = runner.invoke(main, ["ik", "--target", "5", "0", "0", "--joints", "2", "--attempts", "2"])
        assert result.exit_code == 1
        assert "No solution" in result.output

    def test_ik_on_urdf(self, runner, two_link_urdf):
        result = runner.invoke(main, ["ik", "--urdf", str(two_link_urdf), "--target", "1", "1", "0.1", "--seed", "0"])
        assert result.exit_code == 0, result.output
        assert "shoulder" in result.output

    def test_info(self, runner, two_link_urdf):
        result = runner.invoke(main, ["info", str(two_link_urdf)])
        assert result.exit_code == 0, result.output
        assert "shoulder" in result.output
        assert "Joint set" in result.output

    def test_list_robots(self, runner, sample_config_dir):
        result = runner.invoke(main, ["--config-dir", str(sample_config_dir), "config", "list-robots"])
        assert result.exit_code == 0, result.output
        assert "test_robot" in result.output

    def test_list_scenarios(self, runner, sample_config_dir):
        result = runner.invoke(main, ["--config-dir", str(sample_config_dir), "config", "list-scenarios"])
        assert result.exit_code == 0, result.output
        assert "small" in result.output

    def test_missing_config_dir(self, runner, temp_dir):
        result = runner.invoke(main, ["--config-dir", str(temp_dir / "nope"), "config", "list-robots"])
        assert result.exit_code == 1
