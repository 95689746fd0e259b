from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from .bvh.errors import BVHError
from .bvh.kinematics import resolve
from .bvh.loader import MOTION_POLICIES, LoaderConfig, load_bvh
from .bvh.types import BVHDocument
from .convention import SCALE_MODES, ConventionConfig, build_convention, load_axis_presets

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def format_tree(doc: BVHDocument) -> List[str]:
    lines: List[str] = []
    stack = [(0, 0)] if doc.joints else []
    while stack:
        idx, depth = stack.pop()
        joint = doc.joints[idx]
        chans = " ".join(ch.value for ch in joint.channels)
        ox, oy, oz = joint.offset
        head = "End Site" if joint.is_end_site else joint.name
        lines.append(f"{'  ' * depth}{head}  offset=({ox:g}, {oy:g}, {oz:g})" + (f"  [{chans}]" if chans else ""))
        stack.extend((c, depth + 1) for c in reversed(joint.children))
    return lines


def _cmd_info(doc: BVHDocument, args: argparse.Namespace) -> int:
    m = doc.motion
    print(f"{doc.source}")
    print(f"  joints:   {len(doc.joints)}")
    print(f"  channels: {doc.total_channels}")
    print(f"  frames:   {m.frame_count}" + (f" (declared {m.declared_frame_count})" if m.is_truncated else ""))
    print(f"  dt:       {m.frame_time:g}s ({m.frame_rate:.2f} fps)")
    for line in format_tree(doc):
        print(line)
    return 0


def _cmd_resolve(doc: BVHDocument, args: argparse.Namespace) -> int:
    cfg = ConventionConfig(
        axis_preset_id=args.axis,
        flip_x=args.flip_x,
        flip_y=args.flip_y,
        flip_z=args.flip_z,
        scale_mode=args.scale_mode,
        scale_factor=args.scale,
    )
    convention = build_convention(cfg, load_axis_presets(), doc)
    t, q = resolve(doc, args.joint, args.frame, convention)
    with np.printoptions(precision=6, suppress=True):
        print(f"translation: {t}")
        print(f"rotation:    {q}  (w, x, y, z)")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bvh-frames",
        description="Inspect BVH files and resolve per-frame joint transforms",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--motion-policy", choices=MOTION_POLICIES, default="strict",
        help="How to treat MOTION sections with missing values (default: strict)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_info = sub.add_parser("info", help="Print motion summary and joint tree")
    p_info.add_argument("path", help="BVH file")
    p_info.set_defaults(func=_cmd_info)

    p_res = sub.add_parser("resolve", help="Print a joint's local transform at a frame")
    p_res.add_argument("path", help="BVH file")
    p_res.add_argument("--joint", required=True, help="Joint name (first match)")
    p_res.add_argument("--frame", type=int, default=0, help="Frame index (default: 0)")
    p_res.add_argument("--axis", default="none", help="Axis preset id (default: none)")
    p_res.add_argument("--flip-x", action="store_true")
    p_res.add_argument("--flip-y", action="store_true")
    p_res.add_argument("--flip-z", action="store_true")
    p_res.add_argument("--scale-mode", choices=SCALE_MODES, default="none")
    p_res.add_argument("--scale", type=float, default=1.0, help="Scale factor for --scale-mode factor")
    p_res.set_defaults(func=_cmd_resolve)

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        doc = load_bvh(args.path, LoaderConfig(motion_policy=args.motion_policy))
        return args.func(doc, args)
    except (BVHError, OSError, KeyError, ValueError) as e:
        logger.error(f"{args.path}: {type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
