"""
Demonstration of multi-threaded motion planning.

This script shows how to:
1. Build a random cube scene for a Cartesian point robot
2. Set up one planning problem per worker thread
3. Plan and shorten all problems concurrently
4. Inspect what was sent to the visualization
"""

from jointspace.core.config import PlannerConfig, ScenarioConfig, SceneConfig
from jointspace.core.logging import configure_logging
from jointspace.model.factory import create_point_robot
from jointspace.planning.orchestrator import MultiThreadedPlanning
from jointspace.visualization import RecordingVisualization


def main():
    """Run planning demonstration."""
    configure_logging(level="WARNING")

    print("=" * 60)
    print("jointspace Multi-Threaded Planning Demo")
    print("=" * 60)

    scenario = ScenarioConfig(
        name="demo",
        threads=4,
        planner=PlannerConfig(algorithm="birrt", sampling_size=20.0, dcd_sampling_size=1.0),
        scene=SceneConfig(obstacles=200, seed=42),
    )

    # 1. Scene
    print("\n1. Building scene")
    visualization = RecordingVisualization()
    robot = create_point_robot()
    mtp = MultiThreadedPlanning(robot, scenario, visualization)
    mtp.build_scene()
    print(f"   [OK] {scenario.scene.obstacles} cubes of size {scenario.scene.cube_size}")

    # 2. Problems
    print("\n2. Setting up planning problems")
    mtp.build_planning_threads()
    for i in range(mtp.thread_count):
        print(f"   Problem {i}: {mtp.start_configs[i].tolist()} -> {mtp.goal_configs[i].tolist()}")

    # 3. Planning
    print("\n3. Planning")
    mtp.start_planning()
    mtp.wait_for_planners(timeout=120)
    mtp.stop_planning()
    mtp.check_planning_threads()

    mtp.start_optimizing()
    mtp.wait_for_optimizers(timeout=120)
    mtp.stop_optimizing()
    mtp.check_optimize_threads()

    for i, (solution, optimized) in enumerate(zip(mtp.solutions, mtp.optimized_solutions)):
        if solution is None:
            print(f"   [FAIL] Problem {i}: no solution")
            continue
        line = f"   [OK] Problem {i}: {solution.num_points} points, length {solution.length():.0f}"
        if optimized is not None:
            line += f" -> {optimized.num_points} points, length {optimized.length():.0f}"
        print(line)

    # 4. Visualization
    print("\n4. Visualization layers")
    for layer in ("obstacles", "startgoal", "solution"):
        print(f"   {layer}: {len(visualization.items(layer))} items")

    mtp.close()
    robot.collision_checker.close()

    print("\n" + "=" * 60)
    print("[SUCCESS] Planning demo completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
