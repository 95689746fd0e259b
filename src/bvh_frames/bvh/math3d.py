"""Quaternion and 4x4 helpers.

Quaternions are numpy arrays in (w, x, y, z) order.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .types import Channel, Vec3


def quat_identity() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def quat_from_axis_angle(axis: int, deg: float) -> np.ndarray:
    """Rotation of `deg` degrees about the X (0), Y (1) or Z (2) axis."""
    half = np.deg2rad(float(deg)) * 0.5
    q = np.zeros(4, dtype=np.float64)
    q[0] = np.cos(half)
    q[1 + axis] = np.sin(half)
    return q


def quat_mul(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    w1, x1, y1, z1 = q1[0], q1[1], q1[2], q1[3]
    w2, x2, y2, z2 = q2[0], q2[1], q2[2], q2[3]
    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ],
        dtype=np.float64,
    )


def quat_normalize(q: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(q))
    if norm < 1e-12:
        return quat_identity()
    return np.asarray(q, dtype=np.float64) / norm


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    w, x, y, z = quat_normalize(q)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def compose_quat_from_channels(rot_channels: Sequence[Channel], rot_values: Sequence[float]) -> np.ndarray:
    """Compose a rotation in the exact channel order.

    BVH stores Euler angles in degrees. The CHANNELS order determines
    composition order: each channel's rotation is multiplied in on the right,
    so "Zrotation Xrotation Yrotation" yields Rz * Rx * Ry.
    """
    q = quat_identity()
    for ch, v in zip(rot_channels, rot_values):
        q = quat_mul(q, quat_from_axis_angle(ch.axis, v))
    return quat_normalize(q)


def translate(t: Vec3) -> np.ndarray:
    m = np.eye(4, dtype=np.float64)
    m[0, 3] = float(t[0])
    m[1, 3] = float(t[1])
    m[2, 3] = float(t[2])
    return m


def transform_matrix(t: Vec3, q: np.ndarray) -> np.ndarray:
    m = translate(t)
    m[:3, :3] = quat_to_matrix(q)
    return m


def apply_transform(m: np.ndarray, p: Vec3) -> Vec3:
    v = np.array([p[0], p[1], p[2], 1.0], dtype=np.float64)
    out = m @ v
    return (float(out[0]), float(out[1]), float(out[2]))
