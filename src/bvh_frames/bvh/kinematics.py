from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

import numpy as np

from .errors import FrameIndexOutOfRange
from .math3d import apply_transform, compose_quat_from_channels, transform_matrix
from .types import BVHDocument, Channel, Joint, JointKey, Vec3

if TYPE_CHECKING:
    from ..convention import CoordinateConvention


@dataclass
class NodeLayout:
    """Flattened joint tree for FK evaluation."""

    joints: List[Joint]
    parent_index: List[int]  # into `joints`, -1 for the root
    names: List[str]
    edges: List[Tuple[int, int]]  # parent->child


@dataclass
class SkeletonWorld:
    joint_names: List[str]
    parent_index: List[int]
    edges: List[Tuple[int, int]]


@dataclass
class PoseWorld:
    joint_names: List[str]
    positions: List[Vec3]
    parent_index: List[int]


def local_transform(joint: Joint, row: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Local (translation, rotation) of `joint` for one motion row, in BVH axes.

    - position channels replace the static OFFSET; undeclared axes are 0
    - rotation channels are applied in the exact order of CHANNELS
    """
    values = row[joint.channel_slice]

    pos = np.zeros(3, dtype=np.float64)
    has_pos = False
    rot_channels: List[Channel] = []
    rot_values: List[float] = []

    for ch, v in zip(joint.channels, values):
        if ch.is_position:
            pos[ch.axis] = v
            has_pos = True
        else:
            rot_channels.append(ch)
            rot_values.append(float(v))

    translation = pos if has_pos else np.array(joint.offset, dtype=np.float64)
    rotation = compose_quat_from_channels(rot_channels, rot_values)
    return translation, rotation


def resolve(
    doc: BVHDocument,
    joint: JointKey,
    frame_idx: int,
    convention: Optional["CoordinateConvention"] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Resolve a joint's local transform at a frame.

    Returns `(translation, rotation)`: a (3,) vector and a (w, x, y, z) unit
    quaternion. Without a convention both stay in BVH's native axes.
    """
    j = doc.get_joint(joint)
    if frame_idx < 0 or frame_idx >= doc.motion.frame_count:
        raise FrameIndexOutOfRange(frame_idx, doc.motion.frame_count)

    translation, rotation = local_transform(j, doc.motion.data[frame_idx])
    if convention is None:
        return translation, rotation
    return convention.convert_translation(translation), convention.convert_rotation(rotation)


def build_layout(doc: BVHDocument, include_end_sites: bool = True) -> NodeLayout:
    joints: List[Joint] = []
    parent_index: List[int] = []
    names: List[str] = []
    edges: List[Tuple[int, int]] = []
    remap = {}

    for joint in doc.iter_depth_first():
        if joint.is_end_site and not include_end_sites:
            continue
        idx = len(joints)
        remap[joint.index] = idx
        pidx = remap[joint.parent] if joint.parent >= 0 else -1
        joints.append(joint)
        parent_index.append(pidx)
        names.append(joint.name)
        if pidx >= 0:
            edges.append((pidx, idx))

    return NodeLayout(joints=joints, parent_index=parent_index, names=names, edges=edges)


def get_skeleton_world(doc: BVHDocument, include_end_sites: bool = True) -> SkeletonWorld:
    layout = build_layout(doc, include_end_sites=include_end_sites)
    return SkeletonWorld(joint_names=layout.names, parent_index=layout.parent_index, edges=layout.edges)


def eval_pose_world(
    doc: BVHDocument,
    frame_idx: int,
    convention: Optional["CoordinateConvention"] = None,
    include_end_sites: bool = True,
) -> PoseWorld:
    """Forward kinematics: return world-space joint positions for a frame.

    Local transforms come from `local_transform`; the convention, if any,
    is applied to the resulting world points.
    """
    if frame_idx < 0 or frame_idx >= doc.motion.frame_count:
        raise FrameIndexOutOfRange(frame_idx, doc.motion.frame_count)

    layout = build_layout(doc, include_end_sites=include_end_sites)
    row = doc.motion.data[frame_idx]
    world: List[np.ndarray] = [np.eye(4, dtype=np.float64) for _ in layout.joints]
    positions: List[Vec3] = []

    for idx, joint in enumerate(layout.joints):
        pidx = layout.parent_index[idx]
        parent_m = world[pidx] if pidx >= 0 else np.eye(4, dtype=np.float64)
        t, q = local_transform(joint, row)
        world[idx] = parent_m @ transform_matrix(t, q)
        positions.append(apply_transform(world[idx], (0.0, 0.0, 0.0)))

    if convention is not None and positions:
        pts = convention.convert_points(np.asarray(positions, dtype=np.float64))
        positions = [(float(p[0]), float(p[1]), float(p[2])) for p in pts]

    return PoseWorld(joint_names=layout.names, positions=positions, parent_index=layout.parent_index)
