"""Coordinate conventions.

This is the single place where BVH axes (Y-up, right-handed) are mapped to
a target convention. A convention is an orthonormal 3x3 axis matrix `M`
plus a unit scale:

- translations: ``t' = scale * M t``
- rotations: the matrix becomes ``M R M^T``; for a (w, x, y, z) quaternion
  that is ``(w, det(M) * M v)``. The determinant term is what keeps
  rotations consistent with translations when `M` flips handedness.

Named axis matrices live in ``presets/axis_presets.json``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Dict, Optional

import numpy as np

from .bvh.kinematics import eval_pose_world
from .bvh.types import BVHDocument

logger = logging.getLogger(__name__)

PresetDict = Dict[str, object]

SCALE_MODES = ("none", "factor", "auto")


def presets_dir() -> Path:
    # Works both for src-layout (repo) and installed packages.
    return Path(__file__).resolve().parent / "presets"


def load_axis_presets(path: Optional[Path] = None) -> Dict[str, PresetDict]:
    """Load axis presets from JSON.

    Returns a mapping from preset id to preset dict.
    """
    path = path or presets_dir() / "axis_presets.json"
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    presets: Dict[str, PresetDict] = {}
    for p in data.get("presets", []):
        pid = str(p.get("id"))
        presets[pid] = p
    return presets


def validate_axis_matrix(m: np.ndarray) -> np.ndarray:
    arr = np.asarray(m, dtype=np.float64)
    if arr.shape != (3, 3):
        raise ValueError(f"Axis matrix must be 3x3, got shape {arr.shape}")
    if not np.allclose(arr @ arr.T, np.eye(3), atol=1e-9):
        raise ValueError("Axis matrix must be orthonormal")
    return arr


def axis_matrix_from_preset(preset: PresetDict) -> np.ndarray:
    return validate_axis_matrix(np.array(preset.get("matrix"), dtype=np.float64))


def build_axis_matrix(axis_preset: np.ndarray, flip_x: bool, flip_y: bool, flip_z: bool) -> np.ndarray:
    m = validate_axis_matrix(axis_preset)

    flip = np.eye(3, dtype=np.float64)
    if flip_x:
        flip[0, 0] = -1.0
    if flip_y:
        flip[1, 1] = -1.0
    if flip_z:
        flip[2, 2] = -1.0
    return flip @ m


@dataclass(frozen=True, eq=False)
class CoordinateConvention:
    axis_matrix: np.ndarray = field(default_factory=lambda: np.eye(3, dtype=np.float64))
    scale: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "axis_matrix", validate_axis_matrix(self.axis_matrix))

    @property
    def handedness(self) -> float:
        """+1 when the mapping keeps handedness, -1 when it mirrors."""
        return 1.0 if np.linalg.det(self.axis_matrix) > 0 else -1.0

    def convert_translation(self, t) -> np.ndarray:
        return (self.axis_matrix @ np.asarray(t, dtype=np.float64)) * float(self.scale)

    def convert_rotation(self, q) -> np.ndarray:
        q = np.asarray(q, dtype=np.float64)
        v = self.handedness * (self.axis_matrix @ q[1:4])
        return np.array([q[0], v[0], v[1], v[2]], dtype=np.float64)

    def convert_points(self, pts: np.ndarray) -> np.ndarray:
        """Apply axis and scale to (N, 3) points."""
        return (np.asarray(pts, dtype=np.float64) @ self.axis_matrix.T) * float(self.scale)


NATIVE = CoordinateConvention()


@dataclass
class ConventionConfig:
    axis_preset_id: str = "none"
    flip_x: bool = False
    flip_y: bool = False
    flip_z: bool = False
    scale_mode: str = "none"  # none|factor|auto
    scale_factor: float = 1.0


def estimate_scale_factor_auto(doc: BVHDocument) -> float:
    """Heuristic unit scaling.

    We estimate the overall body size (max range over axes) from frame 0 positions.
    Then choose a factor to bring it into a meter-ish scale.

    Returns a multiplicative factor.
    """
    if doc.motion.frame_count == 0:
        return 1.0
    pose = eval_pose_world(doc, 0, include_end_sites=False)
    pts = np.asarray(pose.positions, dtype=np.float64)
    if pts.size == 0:
        return 1.0
    ranges = pts.max(axis=0) - pts.min(axis=0)
    size = float(np.max(np.abs(ranges)))

    # Typical human size in BVH is often around 150-200 (cm-ish) or 1.5-2.0 (m-ish)
    if size > 1000.0:
        # likely mm
        return 0.001
    if size > 100.0:
        # likely cm
        return 0.01
    if size > 10.0:
        # plausible in dm-ish
        return 0.1
    return 1.0


def build_convention(
    cfg: ConventionConfig,
    axis_presets: Optional[Dict[str, PresetDict]] = None,
    doc: Optional[BVHDocument] = None,
) -> CoordinateConvention:
    if cfg.scale_mode not in SCALE_MODES:
        raise ValueError(f"scale_mode must be one of {SCALE_MODES}, got {cfg.scale_mode!r}")
    presets = axis_presets if axis_presets is not None else load_axis_presets()

    # axis
    if cfg.axis_preset_id not in presets:
        raise KeyError(f"Unknown axis preset: {cfg.axis_preset_id!r}")
    base = axis_matrix_from_preset(presets[cfg.axis_preset_id])
    axis_m = build_axis_matrix(base, cfg.flip_x, cfg.flip_y, cfg.flip_z)

    # scale
    if cfg.scale_mode == "factor":
        s = float(cfg.scale_factor)
    elif cfg.scale_mode == "auto":
        if doc is None:
            raise ValueError("scale_mode 'auto' needs a document to measure")
        s = estimate_scale_factor_auto(doc)
    else:
        s = 1.0

    logger.debug(f"Convention: axis={cfg.axis_preset_id}, det={np.linalg.det(axis_m):+.0f}, scale={s:g}")
    return CoordinateConvention(axis_matrix=axis_m, scale=s)
