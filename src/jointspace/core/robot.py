"""
Robot model loading for jointspace.

Handles URDF parsing through compas_robots and the conversion of the parsed
description into a jointspace kinematic :class:`~jointspace.model.Model`
with collision geometry, joint couplings and named joint and link sets.
"""

import math
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Optional

import numpy as np
import trimesh
from compas.geometry import Transformation
from compas_robots import RobotModel
from compas_robots.model import Joint, MeshDescriptor

from jointspace.collision.checker import CollisionChecker
from jointspace.collision.geometry import CollisionModel
from jointspace.core.config import RobotConfig
from jointspace.core.exceptions import ModelError, RobotError
from jointspace.core.logging import get_logger
from jointspace.model.model import Model
from jointspace.model.node_sets import JointSet, LinkSet
from jointspace.model.nodes import (
    ModelJoint,
    ModelJointFixed,
    ModelJointPrismatic,
    ModelJointRevolute,
    ModelLink,
)

_logger = get_logger(__name__)

DEFAULT_JOINT_SET = "All"


def frame_to_matrix(frame: Any) -> np.ndarray:
    """4x4 matrix of a compas Frame. ``None`` maps to the identity."""
    if frame is None:
        return np.eye(4)
    return np.array(Transformation.from_frame(frame).matrix, dtype=float)


class RobotLoader:
    """
    Loads robot models from URDF and configuration files.

    Example:
        >>> model = RobotLoader.load("robot.urdf")
        >>> model.get_joint_set("All").names
        ['joint_1', 'joint_2', ...]
    """

    @classmethod
    def load_from_urdf(cls, urdf_path: str | Path, **kwargs: Any) -> RobotModel:
        """
        Parse a URDF file.

        Args:
            urdf_path: Path to URDF file
            **kwargs: Additional arguments for RobotModel.from_urdf_file

        Returns:
            compas_robots RobotModel instance

        Raises:
            RobotError: If URDF loading fails
        """
        path = Path(urdf_path)

        if not path.exists():
            raise RobotError(f"URDF file not found: {path}")

        try:
            return RobotModel.from_urdf_file(str(path), **kwargs)
        except Exception as e:
            raise RobotError(f"Failed to load URDF from {path}: {e}") from e

    @classmethod
    def load(
        cls,
        urdf_path: str | Path,
        collision_checker: Optional[CollisionChecker] = None,
        config: Optional[RobotConfig] = None,
    ) -> Model:
        """
        Load a URDF file into a kinematic model.

        Args:
            urdf_path: Path to URDF file
            collision_checker: Collision engine for the link geometry
            config: Joint limit overrides and named sets

        Returns:
            Model with a root node per URDF root link
        """
        path = Path(urdf_path)
        robot_model = cls.load_from_urdf(path)
        model = cls.build_model(
            robot_model,
            collision_checker,
            name=config.name if config else None,
            mesh_dir=path.parent,
        )
        cls.apply_config(model, config)
        return model

    @classmethod
    def load_from_config(
        cls, config: RobotConfig, collision_checker: Optional[CollisionChecker] = None
    ) -> Model:
        """
        Load a robot from its configuration.

        Raises:
            RobotError: If the configuration names no URDF or loading fails
        """
        if not config.urdf_path:
            raise RobotError(
                f"Robot '{config.name}' has no URDF path specified in configuration"
            )
        return cls.load(config.urdf_path, collision_checker, config)

    @classmethod
    def build_model(
        cls,
        robot_model: RobotModel,
        collision_checker: Optional[CollisionChecker] = None,
        name: Optional[str] = None,
        mesh_dir: Optional[Path] = None,
    ) -> Model:
        """
        Convert a parsed robot description into a Model.

        URDF links become link nodes, URDF joints become joint nodes between
        them. Joint origins are the joints' static transformations, collision
        origins are baked into the link meshes. Mimic joints are coupled to
        their leader with the mimic multiplier.

        Raises:
            RobotError: On unsupported joint types or a malformed tree
        """
        model = Model(name or robot_model.name, collision_checker)
        checker = model.collision_checker

        links = {link.name: link for link in robot_model.links}
        joints_by_parent: dict[str, list] = defaultdict(list)
        for joint in robot_model.joints:
            joints_by_parent[joint.parent.link].append(joint)

        root = robot_model.root
        try:
            model.add_node(cls._create_link(root, checker, mesh_dir))
            queue = deque([root.name])
            while queue:
                parent_link = queue.popleft()
                for joint in joints_by_parent[parent_link]:
                    model.add_node(cls._create_joint(joint), parent_link)
                    child = links[joint.child.link]
                    model.add_node(cls._create_link(child, checker, mesh_dir), joint.name)
                    queue.append(child.name)

            for joint in robot_model.joints:
                mimic = getattr(joint, "mimic", None)
                if mimic is None:
                    continue
                if mimic.offset:
                    _logger.warning("mimic_offset_ignored", joint=joint.name, offset=mimic.offset)
                model.joint(mimic.joint).propagate_joint_value(joint.name, mimic.multiplier)
        except (KeyError, ModelError) as e:
            raise RobotError(f"Malformed robot description '{model.name}': {e}", model.name) from e

        _logger.info(
            "robot_model_built",
            robot=model.name,
            joints=len(model.joints),
            links=len(model.links),
            faces=model.get_num_faces(),
        )
        return model

    @classmethod
    def apply_config(cls, model: Model, config: Optional[RobotConfig] = None) -> None:
        """
        Apply joint limit overrides and register joint and link sets.

        Without configured joint sets, a set named ``All`` holding every
        movable, non-mimic joint in tree order is registered.
        """
        if config is not None:
            for joint_name, limits in config.joint_limits.items():
                if not model.has_node(joint_name):
                    _logger.warning("joint_limit_override_unknown", joint=joint_name)
                    continue
                joint = model.joint(joint_name)
                joint.set_joint_limits(
                    limits.get("min", joint.limit_low), limits.get("max", joint.limit_high)
                )

        tcp = None
        if config is not None and model.has_frame(config.tool_frame):
            tcp = config.tool_frame

        joint_sets = dict(config.joint_sets) if config is not None else {}
        if not joint_sets:
            followers = {
                name for j in model.joints for name in j.propagated_joint_values
            }
            movable = [
                j.name
                for j in model.joints
                if not isinstance(j, ModelJointFixed) and j.name not in followers
            ]
            if movable:
                model.register_joint_set(JointSet.create(DEFAULT_JOINT_SET, model, movable, tcp=tcp))
        for set_name, set_config in joint_sets.items():
            model.register_joint_set(
                JointSet.create(
                    set_name,
                    model,
                    set_config.joints,
                    kinematic_root=set_config.kinematic_root,
                    tcp=set_config.tcp or tcp,
                )
            )

        if config is not None:
            for set_name, link_names in config.link_sets.items():
                model.register_link_set(LinkSet.create(set_name, model, link_names))

    @classmethod
    def _create_joint(cls, joint: Any) -> ModelJoint:
        origin = frame_to_matrix(joint.origin)
        limit = getattr(joint, "limit", None)
        lower = limit.lower if limit is not None and limit.lower is not None else None
        upper = limit.upper if limit is not None and limit.upper is not None else None

        if joint.type == Joint.FIXED:
            return ModelJointFixed(joint.name, origin)

        axis = joint.axis
        direction = (1.0, 0.0, 0.0) if axis is None else (axis.x, axis.y, axis.z)
        if joint.type == Joint.CONTINUOUS:
            return ModelJointRevolute(joint.name, origin, direction, -math.pi, math.pi)
        if joint.type == Joint.REVOLUTE:
            return ModelJointRevolute(
                joint.name,
                origin,
                direction,
                -math.pi if lower is None else lower,
                math.pi if upper is None else upper,
            )
        if joint.type == Joint.PRISMATIC:
            return ModelJointPrismatic(
                joint.name,
                origin,
                direction,
                -1.0 if lower is None else lower,
                1.0 if upper is None else upper,
            )
        raise RobotError(f"Unsupported joint type of '{joint.name}'", details={"type": joint.type})

    @classmethod
    def _create_link(
        cls, link: Any, checker: CollisionChecker, mesh_dir: Optional[Path]
    ) -> ModelLink:
        meshes = []
        for collision in getattr(link, "collision", None) or []:
            mesh = cls._shape_to_mesh(collision.geometry.shape, mesh_dir)
            if mesh is None:
                continue
            mesh.apply_transform(frame_to_matrix(getattr(collision, "origin", None)))
            meshes.append(mesh)

        collision_model = None
        if meshes:
            mesh = meshes[0] if len(meshes) == 1 else trimesh.util.concatenate(meshes)
            collision_model = CollisionModel(mesh, checker, link.name)

        mass = 0.0
        com = (0.0, 0.0, 0.0)
        inertial = getattr(link, "inertial", None)
        if inertial is not None:
            if inertial.mass is not None:
                mass = float(inertial.mass.value)
            if inertial.origin is not None:
                com = tuple(frame_to_matrix(inertial.origin)[:3, 3])

        return ModelLink(link.name, collision_model=collision_model, mass=mass, com=com)

    @classmethod
    def _shape_to_mesh(cls, shape: Any, mesh_dir: Optional[Path]) -> Optional[trimesh.Trimesh]:
        """Collision shape as a trimesh in the collision frame, or None if it cannot be resolved."""
        if isinstance(shape, MeshDescriptor):
            path = cls._resolve_mesh_path(shape.filename, mesh_dir)
            if path is None:
                _logger.warning("collision_mesh_missing", filename=shape.filename)
                return None
            mesh = trimesh.load(str(path), force="mesh")
            scale = getattr(shape, "scale", None)
            if scale is not None:
                mesh.apply_scale(np.asarray(scale, dtype=float))
            return mesh
        if hasattr(shape, "xsize"):
            return trimesh.creation.box(extents=[shape.xsize, shape.ysize, shape.zsize])
        if hasattr(shape, "height") and hasattr(shape, "radius"):
            return trimesh.creation.cylinder(radius=shape.radius, height=shape.height)
        if hasattr(shape, "radius"):
            return trimesh.creation.icosphere(subdivisions=2, radius=shape.radius)

        _logger.warning("collision_shape_unsupported", shape=type(shape).__name__)
        return None

    @classmethod
    def _resolve_mesh_path(cls, filename: str, mesh_dir: Optional[Path]) -> Optional[Path]:
        for prefix in ("package://", "file://"):
            if filename.startswith(prefix):
                filename = filename[len(prefix):]
        candidate = Path(filename)
        if candidate.is_absolute():
            return candidate if candidate.exists() else None
        if mesh_dir is None:
            return None

        # package:// paths start with the package name; try dropping leading parts
        parts = candidate.parts
        for i in range(len(parts)):
            path = mesh_dir.joinpath(*parts[i:])
            if path.exists():
                return path
        return None
