"""Skeleton and baked-animation payloads for asset-building layers.

Everything here is plain data derived from a parsed document; the caller
decides how to turn it into engine assets.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np

from .bvh.kinematics import resolve
from .bvh.math3d import quat_identity
from .bvh.types import BVHDocument, Joint, JointKey
from .convention import NATIVE, CoordinateConvention

logger = logging.getLogger(__name__)

BVH_EXTENSIONS = (".bvh",)


def can_import(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in BVH_EXTENSIONS


def joint_uid(joint: Joint) -> str:
    # Names may repeat within a file; the arena index keeps uids unique.
    return f"{joint.name}_{joint.index}"


@dataclass
class SkeletonBone:
    uid: str
    name: str
    parent_uid: Optional[str]
    bind_translation: np.ndarray
    bind_rotation: np.ndarray
    is_end_site: bool = False


@dataclass
class AnimationPayload:
    joint_uid: str
    bake_frequency: float  # samples per second
    range_start: float
    range_end: float
    translations: np.ndarray  # (F, 3)
    rotations: np.ndarray  # (F, 4), (w, x, y, z)

    @property
    def frame_count(self) -> int:
        return int(self.translations.shape[0])


def build_skeleton(doc: BVHDocument, convention: Optional[CoordinateConvention] = None) -> List[SkeletonBone]:
    """Bones in pre-order with converted OFFSETs as bind translation and identity bind rotation."""
    convention = convention or NATIVE
    bones: List[SkeletonBone] = []
    for joint in doc.iter_depth_first():
        parent = doc.parent_of(joint)
        bones.append(
            SkeletonBone(
                uid=joint_uid(joint),
                name=joint.name,
                parent_uid=joint_uid(parent) if parent is not None else None,
                bind_translation=convention.convert_translation(joint.offset),
                bind_rotation=quat_identity(),
                is_end_site=joint.is_end_site,
            )
        )
    return bones


def bake_joint(
    doc: BVHDocument, joint: JointKey, convention: Optional[CoordinateConvention] = None
) -> AnimationPayload:
    j = doc.get_joint(joint)
    motion = doc.motion
    n = motion.frame_count

    translations = np.zeros((n, 3), dtype=np.float64)
    rotations = np.zeros((n, 4), dtype=np.float64)
    for f in range(n):
        translations[f], rotations[f] = resolve(doc, j, f, convention)

    return AnimationPayload(
        joint_uid=joint_uid(j),
        bake_frequency=motion.frame_rate,
        range_start=0.0,
        range_end=motion.duration,
        translations=translations,
        rotations=rotations,
    )


def bake_animation(
    doc: BVHDocument,
    convention: Optional[CoordinateConvention] = None,
    include_end_sites: bool = True,
) -> Dict[str, AnimationPayload]:
    """Bake every joint's local transform for every frame, keyed by joint uid."""
    if doc.motion.frame_time <= 0:
        logger.warning(f"{doc.source or '<string>'}: frame time is {doc.motion.frame_time:g}; bake frequency set to 0")

    payloads: Dict[str, AnimationPayload] = {}
    for joint in doc.iter_depth_first():
        if joint.is_end_site and not include_end_sites:
            continue
        payloads[joint_uid(joint)] = bake_joint(doc, joint, convention)
    logger.debug(f"Baked {len(payloads)} joints x {doc.motion.frame_count} frames")
    return payloads
