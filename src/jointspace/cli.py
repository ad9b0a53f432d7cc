"""
Command-line interface for jointspace.

Provides commands for multi-threaded planning runs, inverse kinematics
queries, robot description inspection and configuration listing.
"""

import json
from pathlib import Path
from typing import Optional

import click
import numpy as np
from rich.console import Console
from rich.table import Table

from jointspace import __version__
from jointspace.collision.checker import CollisionChecker
from jointspace.collision.pybullet_checker import PyBulletCollisionChecker
from jointspace.core.config import ConfigManager, PlannerConfig, ScenarioConfig, load_scenario
from jointspace.core.exceptions import JointspaceError
from jointspace.core.logging import configure_logging

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default="config",
    help="Configuration directory",
)
@click.option("--log-level", default="WARNING", help="Log level (DEBUG, INFO, WARNING, ...)")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.pass_context
def main(ctx: click.Context, config_dir: Path, log_level: str, json_logs: bool) -> None:
    """jointspace - Kinematic models, collision queries and motion planning."""
    configure_logging(level=log_level, json_output=json_logs)
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


def _checker_factory(engine: str):
    if engine == "aabb":
        return CollisionChecker
    return PyBulletCollisionChecker


# =============================================================================
# Planning Commands
# =============================================================================


@main.command("plan")
@click.option(
    "--scenario",
    "-s",
    "scenario_path",
    type=click.Path(exists=True, path_type=Path),
    help="Scenario YAML file",
)
@click.option("--threads", "-t", type=int, help="Number of planning problems")
@click.option("--obstacles", type=int, help="Number of random cubes")
@click.option("--seed", type=int, help="Scene seed")
@click.option("--shared-checker", is_flag=True, default=None, help="Share one collision checker")
@click.option(
    "--engine",
    type=click.Choice(["aabb", "pybullet"]),
    default="pybullet",
    help="Collision engine. aabb is exact for axis-aligned boxes only",
)
@click.option("--optimize/--no-optimize", default=True, help="Shortcut the solutions")
@click.option("--timeout", type=float, default=60.0, help="Wait limit per phase in seconds")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write solutions as JSON")
def plan(
    scenario_path: Optional[Path],
    threads: Optional[int],
    obstacles: Optional[int],
    seed: Optional[int],
    shared_checker: Optional[bool],
    engine: str,
    optimize: bool,
    timeout: float,
    output: Optional[Path],
) -> None:
    """Plan point-robot paths through a random cube field."""
    from jointspace.model.factory import create_point_robot
    from jointspace.planning.orchestrator import MultiThreadedPlanning

    try:
        if scenario_path:
            scenario = load_scenario(scenario_path)
        else:
            # point robot steps in playfield units
            scenario = ScenarioConfig(planner=PlannerConfig(sampling_size=20.0, dcd_sampling_size=1.0))
        if threads is not None:
            scenario.threads = threads
        if obstacles is not None:
            scenario.scene.obstacles = obstacles
        if seed is not None:
            scenario.scene.seed = seed
        if shared_checker is not None:
            scenario.shared_collision_checker = shared_checker

        factory = _checker_factory(engine)
        # planning problems clone the robot into their own checkers
        template_checker = factory()
        try:
            robot = create_point_robot(checker=template_checker, workspace=scenario.scene.playfield_size)
            with MultiThreadedPlanning(robot, scenario, checker_factory=factory) as mtp:
                mtp.build_scene()
                mtp.build_planning_threads()

                with console.status(f"Planning {mtp.thread_count} problems..."):
                    mtp.start_planning()
                    finished = mtp.wait_for_planners(timeout=timeout)
                    mtp.stop_planning()
                    mtp.check_planning_threads()
                if not finished:
                    console.print(f"[yellow]⚠[/yellow] Planning stopped after {timeout}s")

                if optimize and any(s is not None for s in mtp.solutions):
                    with console.status("Shortening solutions..."):
                        mtp.start_optimizing()
                        mtp.wait_for_optimizers(timeout=timeout)
                        mtp.stop_optimizing()
                        mtp.check_optimize_threads()

                table = Table(title=f"Scenario: {scenario.name}")
                table.add_column("Thread", style="cyan")
                table.add_column("Solved")
                table.add_column("Points")
                table.add_column("Length")
                table.add_column("Optimized")
                results = []
                for i in range(mtp.thread_count):
                    solution = mtp.solutions[i]
                    optimized = mtp.optimized_solutions[i]
                    table.add_row(
                        str(i),
                        "[green]✓[/green]" if solution is not None else "[red]✗[/red]",
                        str(solution.num_points) if solution is not None else "-",
                        f"{solution.length():.1f}" if solution is not None else "-",
                        f"{optimized.length():.1f}" if optimized is not None else "-",
                    )
                    results.append(
                        {
                            "thread": i,
                            "start": mtp.start_configs[i].tolist(),
                            "goal": mtp.goal_configs[i].tolist(),
                            "solution": solution.to_dict() if solution is not None else None,
                            "optimized": optimized.to_dict() if optimized is not None else None,
                        }
                    )
                console.print(table)
        finally:
            template_checker.close()

        if output:
            with open(output, "w") as f:
                json.dump({"scenario": scenario.model_dump(mode="json"), "results": results}, f, indent=2)
            console.print(f"[green]✓[/green] Wrote results to {output}")

    except JointspaceError as e:
        console.print(f"[red]✗[/red] Planning failed: {e}")
        raise SystemExit(1)


# =============================================================================
# Kinematics Commands
# =============================================================================


@main.command("ik")
@click.option("--target", "-p", type=float, nargs=3, required=True, help="Target TCP position")
@click.option("--joints", "-n", type=int, default=3, help="Joints of the planar arm")
@click.option("--urdf", type=click.Path(exists=True, path_type=Path), help="Solve on a URDF robot")
@click.option("--joint-set", default=None, help="Joint set of the URDF robot")
@click.option("--tolerance", type=float, default=1e-3, help="Position tolerance")
@click.option("--attempts", type=int, default=30, help="Optimizer runs")
@click.option("--seed", type=int, help="Random restart seed")
def ik(
    target: tuple[float, float, float],
    joints: int,
    urdf: Optional[Path],
    joint_set: Optional[str],
    tolerance: float,
    attempts: int,
    seed: Optional[int],
) -> None:
    """Solve a position IK query on a planar arm or a URDF robot."""
    from jointspace.ik import ConstrainedOptimizationIK, PositionConstraint
    from jointspace.model.factory import create_planar_arm

    checker = PyBulletCollisionChecker("ik")
    try:
        if urdf:
            from jointspace.core.robot import DEFAULT_JOINT_SET, RobotLoader

            model = RobotLoader.load(urdf, checker)
            arm = model.get_joint_set(joint_set or DEFAULT_JOINT_SET)
            eef = arm.tcp if arm.tcp is not None else model.links[-1]
        else:
            model = create_planar_arm(joints, checker=checker)
            arm = model.get_joint_set(joint_set or "arm")
            eef = arm.tcp

        solver = ConstrainedOptimizationIK(arm, max_attempts=attempts, seed=seed)
        solver.add_constraint(PositionConstraint(arm, eef, np.array(target), tolerance=tolerance))
        solver.initialize()
        success = solver.solve()

        table = Table(title=f"IK: {model.name}")
        table.add_column("Joint", style="cyan")
        table.add_column("Value (rad / m)")
        for name, value in zip(arm.names, arm.get_joint_values()):
            table.add_row(name, f"{value:.6f}")
        console.print(table)

        position = eef.global_position
        if success:
            console.print(f"[green]✓[/green] Reached {np.round(position, 6).tolist()} after {solver.attempts_used} attempt(s)")
        else:
            console.print(f"[red]✗[/red] No solution, closest {np.round(position, 6).tolist()} (error {solver.best_error:.3g})")
            raise SystemExit(1)

    except JointspaceError as e:
        console.print(f"[red]✗[/red] IK failed: {e}")
        raise SystemExit(1)
    finally:
        checker.close()


@main.command("info")
@click.argument("urdf", type=click.Path(exists=True, path_type=Path))
def info(urdf: Path) -> None:
    """Show the joints and links of a URDF robot."""
    from jointspace.core.robot import RobotLoader

    checker = PyBulletCollisionChecker("info")
    try:
        model = RobotLoader.load(urdf, checker)

        table = Table(title=f"Robot: {model.name}")
        table.add_column("Joint", style="cyan")
        table.add_column("Type")
        table.add_column("Lower")
        table.add_column("Upper")
        table.add_column("Coupled")
        for joint in model.joints:
            coupled = ", ".join(f"{n} x{f:g}" for n, f in joint.propagated_joint_values.items())
            table.add_row(
                joint.name,
                joint.__class__.__name__.replace("ModelJoint", "").lower(),
                f"{joint.limit_low:.4f}",
                f"{joint.limit_high:.4f}",
                coupled or "-",
            )
        console.print(table)

        with_geometry = [l for l in model.links if l.collision_model is not None]
        console.print(
            f"  {len(model.links)} links, {len(with_geometry)} with collision geometry, "
            f"{model.get_num_faces()} faces"
        )
        for name, joint_set in model.joint_sets.items():
            console.print(f"  Joint set [cyan]{name}[/cyan]: {', '.join(joint_set.names)}")

    except JointspaceError as e:
        console.print(f"[red]✗[/red] Failed to load robot: {e}")
        raise SystemExit(1)
    finally:
        checker.close()


# =============================================================================
# Configuration Commands
# =============================================================================


@main.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("list-robots")
@click.pass_context
def config_list_robots(ctx: click.Context) -> None:
    """List available robot configurations."""
    try:
        config_mgr = ConfigManager(ctx.obj["config_dir"])
        robots = config_mgr.list_robots()

        if not robots:
            console.print("[yellow]No robot configurations found.[/yellow]")
            return

        table = Table(title="Available Robots")
        table.add_column("Name", style="cyan")
        table.add_column("URDF")
        table.add_column("Joint sets")

        for name in robots:
            robot = config_mgr.get_robot(name)
            table.add_row(name, robot.urdf_path or "-", ", ".join(robot.joint_sets) or "-")

        console.print(table)

    except JointspaceError as e:
        console.print(f"[red]✗[/red] Failed to list robots: {e}")
        raise SystemExit(1)


@config.command("list-scenarios")
@click.pass_context
def config_list_scenarios(ctx: click.Context) -> None:
    """List available planning scenarios."""
    try:
        config_mgr = ConfigManager(ctx.obj["config_dir"])
        scenarios = config_mgr.list_scenarios()

        if not scenarios:
            console.print("[yellow]No scenario configurations found.[/yellow]")
            return

        table = Table(title="Available Scenarios")
        table.add_column("Name", style="cyan")
        table.add_column("Threads")
        table.add_column("Algorithm")
        table.add_column("Obstacles")

        for name in scenarios:
            scenario = config_mgr.get_scenario(name)
            table.add_row(
                name,
                str(scenario.threads),
                scenario.planner.algorithm,
                str(scenario.scene.obstacles),
            )

        console.print(table)

    except JointspaceError as e:
        console.print(f"[red]✗[/red] Failed to list scenarios: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
