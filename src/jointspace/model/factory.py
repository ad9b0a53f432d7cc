"""
Programmatic construction of models.

Builders for the models used by planning scenes and tests: box obstacles,
random obstacle fields, a Cartesian point robot and planar arms.
"""

import math
from typing import Optional, Sequence

import numpy as np
import trimesh

from jointspace.collision.checker import CollisionChecker
from jointspace.collision.geometry import CollisionModel
from jointspace.model import transforms
from jointspace.model.model import Model
from jointspace.model.node_sets import JointSet, LinkSet
from jointspace.model.nodes import (
    FrameAttachment,
    ModelJointPrismatic,
    ModelJointRevolute,
    ModelLink,
)


def create_box_link(
    name: str,
    extents: Sequence[float],
    checker: CollisionChecker,
    static_transformation: Optional[np.ndarray] = None,
    mass: float = 0.0,
    center: Optional[Sequence[float]] = None,
) -> ModelLink:
    """A link whose collision geometry is a box centered at ``center`` (link origin by default)."""
    mesh = trimesh.creation.box(extents=extents)
    if center is not None:
        mesh.apply_translation(center)
    return ModelLink(
        name,
        static_transformation,
        collision_model=CollisionModel(mesh, checker, name),
        mass=mass,
    )


def create_box_obstacle(
    name: str,
    size: float | Sequence[float],
    checker: Optional[CollisionChecker] = None,
    pose: Optional[np.ndarray] = None,
) -> Model:
    """
    Single-link model holding one box.

    Args:
        name: Model and link name
        size: Edge length, or the three box extents
        checker: Collision engine instance
        pose: Global pose of the box center
    """
    extents = [size] * 3 if np.isscalar(size) else list(size)
    model = Model(name, checker, global_pose=pose)
    model.add_node(create_box_link(name, extents, model.collision_checker))
    return model


def create_obstacle_field(
    name: str,
    positions: Sequence[Sequence[float]],
    cube_size: float,
    checker: Optional[CollisionChecker] = None,
) -> Model:
    """
    A static obstacle made of many boxes.

    All boxes hang below one geometry-less root link, so the model's default
    link set tests the whole field as a single collision group.
    """
    model = Model(name, checker)
    model.add_node(ModelLink(f"{name}_root"))
    for i, position in enumerate(positions):
        model.add_node(
            create_box_link(
                f"{name}_{i}",
                [cube_size] * 3,
                model.collision_checker,
                transforms.translation(position),
            ),
            parent=f"{name}_root",
        )
    return model


def random_obstacle_positions(
    count: int,
    cube_size: float,
    playfield_size: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Integer grid positions, uniformly spread over the playfield."""
    half = int(playfield_size - cube_size)
    return rng.integers(-half, half, size=(count, 3)).astype(float)


def create_point_robot(
    name: str = "point_robot",
    checker: Optional[CollisionChecker] = None,
    workspace: float = 1000.0,
    body_size: float = 20.0,
) -> Model:
    """
    Cartesian robot moving a box through space with three prismatic joints.

    Registers the joint set ``All`` (x, y, z), the link set ``colModel`` and
    the TCP frame ``Visu``.
    """
    model = Model(name, checker)
    model.add_node(ModelLink("base"))
    parent = "base"
    for axis_name, axis in zip("xyz", np.eye(3)):
        joint = ModelJointPrismatic(
            f"joint_{axis_name}",
            translation_direction=axis,
            limit_low=-workspace,
            limit_high=workspace,
        )
        model.add_node(joint, parent=parent)
        parent = joint.name

    model.add_node(
        create_box_link("body", [body_size] * 3, model.collision_checker, mass=1.0),
        parent=parent,
    )
    model.attach_frame("body", FrameAttachment("Visu"))

    model.register_joint_set(
        JointSet.create("All", model, ["joint_x", "joint_y", "joint_z"], kinematic_root="joint_x", tcp="Visu")
    )
    model.register_link_set(LinkSet.create("colModel", model, ["body"]))
    return model


def create_planar_arm(
    n_joints: int = 3,
    link_length: float = 1.0,
    name: str = "planar_arm",
    checker: Optional[CollisionChecker] = None,
    link_width: float = 0.1,
    limit: float = math.pi,
    with_geometry: bool = True,
) -> Model:
    """
    Serial arm of revolute joints rotating about z, links along x.

    Registers the joint set ``arm`` and the TCP frame ``tcp`` at the tip of
    the last link. Each link carries a mass of 1 at its center.
    """
    model = Model(name, checker)
    model.add_node(ModelLink("base"))
    parent = "base"
    for i in range(n_joints):
        offset = transforms.identity() if i == 0 else transforms.translation([link_length, 0.0, 0.0])
        joint = ModelJointRevolute(
            f"joint_{i + 1}",
            offset,
            axis=(0.0, 0.0, 1.0),
            limit_low=-limit,
            limit_high=limit,
        )
        model.add_node(joint, parent=parent)

        link_name = f"link_{i + 1}"
        if with_geometry:
            link = create_box_link(
                link_name,
                [link_length, link_width, link_width],
                model.collision_checker,
                mass=1.0,
                center=[link_length / 2.0, 0.0, 0.0],
            )
        else:
            link = ModelLink(link_name, mass=1.0)
        link.com = np.array([link_length / 2.0, 0.0, 0.0])
        model.add_node(link, parent=joint.name)
        parent = link_name

    model.attach_frame(parent, FrameAttachment("tcp", transforms.translation([link_length, 0.0, 0.0])))
    model.register_joint_set(
        JointSet.create(
            "arm",
            model,
            [f"joint_{i + 1}" for i in range(n_joints)],
            kinematic_root="joint_1",
            tcp="tcp",
        )
    )
    return model
