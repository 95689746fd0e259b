from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np

from .errors import UnknownChannelType, UnknownJoint

Vec3 = Tuple[float, float, float]


class Channel(Enum):
    POSITION_X = "Xposition"
    POSITION_Y = "Yposition"
    POSITION_Z = "Zposition"
    ROTATION_X = "Xrotation"
    ROTATION_Y = "Yrotation"
    ROTATION_Z = "Zrotation"

    @classmethod
    def from_token(cls, token: str) -> "Channel":
        try:
            return cls(token)
        except ValueError:
            raise UnknownChannelType(token) from None

    @property
    def is_position(self) -> bool:
        return self in (Channel.POSITION_X, Channel.POSITION_Y, Channel.POSITION_Z)

    @property
    def is_rotation(self) -> bool:
        return not self.is_position

    @property
    def axis(self) -> int:
        """0, 1 or 2 for X, Y or Z."""
        return "XYZ".index(self.value[0])


@dataclass(frozen=True)
class Joint:
    index: int
    name: str
    offset: Vec3 = (0.0, 0.0, 0.0)
    channels: Tuple[Channel, ...] = ()
    channel_start_index: int = 0
    parent: int = -1  # arena index, -1 for the root
    children: Tuple[int, ...] = ()
    is_end_site: bool = False

    @property
    def channel_slice(self) -> slice:
        return slice(self.channel_start_index, self.channel_start_index + len(self.channels))

    @property
    def is_root(self) -> bool:
        return self.parent < 0


@dataclass(frozen=True, eq=False)
class MotionTable:
    frame_count: int
    frame_time: float
    data: np.ndarray  # frame_count x total_channels, read-only

    # Set only when rows were dropped by the "truncate" motion policy
    declared_frame_count: Optional[int] = None

    @property
    def total_channels(self) -> int:
        return int(self.data.shape[1])

    @property
    def duration(self) -> float:
        return self.frame_count * self.frame_time

    @property
    def frame_rate(self) -> float:
        return 1.0 / self.frame_time if self.frame_time > 0 else 0.0

    @property
    def is_truncated(self) -> bool:
        return self.declared_frame_count is not None and self.declared_frame_count != self.frame_count


JointKey = Union[Joint, int, str]


@dataclass(frozen=True, eq=False)
class BVHDocument:
    """Parsed skeleton and motion of one BVH source.

    `joints` is an arena in declaration order (depth-first pre-order), so
    the root is always `joints[0]` and parent/child links are arena indices.
    """

    joints: Tuple[Joint, ...]
    motion: MotionTable
    source: Optional[str] = None

    @property
    def root(self) -> Joint:
        return self.joints[0]

    @property
    def total_channels(self) -> int:
        return self.motion.total_channels

    @property
    def frame_count(self) -> int:
        return self.motion.frame_count

    def get_joint(self, key: JointKey) -> Joint:
        """Look a joint up by object, arena index or name (first declared match)."""
        if isinstance(key, Joint):
            if key.index < len(self.joints) and self.joints[key.index] is key:
                return key
            raise UnknownJoint(f"Joint {key.name!r} does not belong to this document")
        if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
            if 0 <= key < len(self.joints):
                return self.joints[int(key)]
            raise UnknownJoint(f"Joint index out of range: {key}")
        if isinstance(key, str):
            for joint in self.joints:
                if joint.name == key:
                    return joint
            raise UnknownJoint(f"No joint named {key!r}")
        raise TypeError(f"Unsupported joint key: {key!r}")

    def find_joints(self, name: str) -> List[Joint]:
        return [j for j in self.joints if j.name == name]

    def parent_of(self, joint: JointKey) -> Optional[Joint]:
        j = self.get_joint(joint)
        return self.joints[j.parent] if j.parent >= 0 else None

    def children_of(self, joint: JointKey) -> List[Joint]:
        j = self.get_joint(joint)
        return [self.joints[c] for c in j.children]

    def iter_depth_first(self) -> Iterator[Joint]:
        stack = [0] if self.joints else []
        while stack:
            idx = stack.pop()
            joint = self.joints[idx]
            yield joint
            stack.extend(reversed(joint.children))
