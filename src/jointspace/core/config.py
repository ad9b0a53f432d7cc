"""
Configuration management for jointspace.

Handles loading, validation, and access to robot descriptions and planning
scenario configurations.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from jointspace.core.exceptions import ConfigurationError


class JointSetConfig(BaseModel):
    """Named joint subset of a robot, with optional kinematic root and TCP."""

    joints: list[str]
    kinematic_root: str | None = None
    tcp: str | None = None


class RobotConfig(BaseModel):
    """Robot configuration model."""

    name: str
    urdf_path: str | None = None
    base_frame: str = "base_link"
    tool_frame: str = "tool0"
    joint_sets: dict[str, JointSetConfig] = Field(default_factory=dict)
    link_sets: dict[str, list[str]] = Field(default_factory=dict)
    joint_limits: dict[str, dict[str, float]] = Field(default_factory=dict)


class PlannerConfig(BaseModel):
    """Sampling-based planner parameters."""

    algorithm: str = "birrt"
    sampling_size: float = Field(default=0.1, gt=0)
    dcd_sampling_size: float = Field(default=0.02, gt=0)
    max_iterations: int = Field(default=100_000, gt=0)
    max_time: float | None = Field(default=None, gt=0)
    goal_probability: float = Field(default=0.1, ge=0, le=1)
    extend_mode: str = "connect"
    extend_mode_goal: str = "connect"

    @model_validator(mode="after")
    def _check_modes(self) -> "PlannerConfig":
        if self.algorithm not in ("rrt", "birrt"):
            raise ValueError(f"unknown planner algorithm: {self.algorithm}")
        for mode in (self.extend_mode, self.extend_mode_goal):
            if mode not in ("extend", "connect"):
                raise ValueError(f"unknown extend mode: {mode}")
        return self


class ShortcutConfig(BaseModel):
    """Path post-processing parameters."""

    optimize_steps: int = Field(default=600, ge=0)
    prune_waypoints: bool = True


class IKConfig(BaseModel):
    """Constrained optimization IK parameters."""

    timeout: float = Field(default=1.0, gt=0)
    global_tolerance: float = math.nan
    function_tolerance: float = Field(default=1e-6, gt=0)
    variable_tolerance: float = Field(default=1e-4, gt=0)
    max_attempts: int = Field(default=30, ge=1)
    random_displacement_factor: float = Field(default=1.0, ge=0)


class SceneConfig(BaseModel):
    """Random box-obstacle scene parameters."""

    obstacles: int = Field(default=200, ge=0)
    cube_size: float = Field(default=50.0, gt=0)
    playfield_size: float = Field(default=1000.0, gt=0)
    seed: int | None = None


class ScenarioConfig(BaseModel):
    """Multi-threaded planning scenario."""

    name: str = "default"
    threads: int = Field(default=4, ge=1)
    shared_collision_checker: bool = False
    robot_pairs: list[tuple[str, str]] = Field(default_factory=list)
    max_sample_attempts: int = Field(default=1000, ge=1)
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    shortcut: ShortcutConfig = Field(default_factory=ShortcutConfig)
    ik: IKConfig = Field(default_factory=IKConfig)
    scene: SceneConfig = Field(default_factory=SceneConfig)


def load_scenario(path: str | Path) -> ScenarioConfig:
    """
    Load a single scenario YAML file.

    Args:
        path: Path to the YAML file. The file may either hold the scenario at
            top level or under a ``scenario`` key.

    Returns:
        Validated ScenarioConfig

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Scenario file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if "scenario" in data:
            data = data["scenario"]
        data.setdefault("name", path.stem)
        return ScenarioConfig(**data)
    except (yaml.YAMLError, ValidationError, TypeError, AttributeError) as e:
        raise ConfigurationError(
            f"Failed to load scenario config: {path}",
            details={"error": str(e)},
        )


@dataclass
class ConfigManager:
    """
    Central configuration manager for jointspace.

    Loads and validates configurations from YAML files laid out as
    ``<config_dir>/robots/*.yaml`` and ``<config_dir>/scenarios/*.yaml``.

    Example:
        >>> config = ConfigManager(config_dir=Path("config"))
        >>> robot = config.get_robot("planar_arm")
        >>> scenario = config.get_scenario("cluttered_box")
    """

    config_dir: Path
    _robots: dict[str, RobotConfig] = field(default_factory=dict, init=False)
    _scenarios: dict[str, ScenarioConfig] = field(default_factory=dict, init=False)
    _loaded: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        """Initialize configuration manager."""
        self.config_dir = Path(self.config_dir)
        if not self.config_dir.exists():
            raise ConfigurationError(
                f"Configuration directory not found: {self.config_dir}"
            )

    def load(self) -> None:
        """Load all configurations from disk."""
        self._load_robots()
        self._load_scenarios()
        self._loaded = True

    def _load_robots(self) -> None:
        """Load robot configurations."""
        robots_dir = self.config_dir / "robots"
        if not robots_dir.exists():
            return

        for config_file in robots_dir.glob("*.yaml"):
            try:
                with open(config_file) as f:
                    data = yaml.safe_load(f)

                if data and "robot" in data:
                    robot_data = dict(data["robot"])
                    if "joint_sets" in data:
                        robot_data["joint_sets"] = data["joint_sets"]
                    if "link_sets" in data:
                        robot_data["link_sets"] = data["link_sets"]
                    if "limits" in data:
                        robot_data["joint_limits"] = data["limits"].get("joints", {})

                    self._robots[config_file.stem] = RobotConfig(**robot_data)
            except (yaml.YAMLError, ValidationError) as e:
                raise ConfigurationError(
                    f"Failed to load robot config: {config_file}",
                    details={"error": str(e)},
                )

    def _load_scenarios(self) -> None:
        """Load planning scenario configurations."""
        scenarios_dir = self.config_dir / "scenarios"
        if not scenarios_dir.exists():
            return

        for config_file in scenarios_dir.glob("*.yaml"):
            self._scenarios[config_file.stem] = load_scenario(config_file)

    def get_robot(self, name: str) -> RobotConfig:
        """
        Get robot configuration by name.

        Args:
            name: Robot configuration name (without .yaml extension)

        Returns:
            RobotConfig instance

        Raises:
            ConfigurationError: If robot not found
        """
        if not self._loaded:
            self.load()

        if name not in self._robots:
            raise ConfigurationError(
                f"Robot configuration not found: {name}",
                details={"available": list(self._robots.keys())},
            )
        return self._robots[name]

    def get_scenario(self, name: str) -> ScenarioConfig:
        """
        Get scenario configuration by name.

        Raises:
            ConfigurationError: If scenario not found
        """
        if not self._loaded:
            self.load()

        if name not in self._scenarios:
            raise ConfigurationError(
                f"Scenario configuration not found: {name}",
                details={"available": list(self._scenarios.keys())},
            )
        return self._scenarios[name]

    def list_robots(self) -> list[str]:
        """List available robot configurations."""
        if not self._loaded:
            self.load()
        return list(self._robots.keys())

    def list_scenarios(self) -> list[str]:
        """List available scenario configurations."""
        if not self._loaded:
            self.load()
        return list(self._scenarios.keys())
