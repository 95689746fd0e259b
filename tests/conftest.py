from __future__ import annotations

import pytest

from bvh_frames.bvh.loader import parse_bvh

SAMPLE_BVH = """\
HIERARCHY
ROOT Hips
{
\tOFFSET 0.0 0.0 0.0
\tCHANNELS 6 Xposition Yposition Zposition Zrotation Xrotation Yrotation
\tJOINT Spine
\t{
\t\tOFFSET 0.0 10.0 0.0
\t\tCHANNELS 3 Zrotation Xrotation Yrotation
\t\tJOINT Head
\t\t{
\t\t\tOFFSET 0.0 20.0 0.0
\t\t\tCHANNELS 3 Zrotation Xrotation Yrotation
\t\t\tEnd Site
\t\t\t{
\t\t\t\tOFFSET 0.0 5.0 0.0
\t\t\t}
\t\t}
\t}
\tJOINT LeftLeg
\t{
\t\tOFFSET 5.0 -10.0 0.0
\t\tCHANNELS 3 Zrotation Xrotation Yrotation
\t\tEnd Site
\t\t{
\t\t\tOFFSET 0.0 -40.0 0.0
\t\t}
\t}
}
MOTION
Frames: 2
Frame Time: 0.0333333
0 90 0 0 0 0 0 0 0 0 0 0 0 0 0
1 91 2 0 0 90 30 0 0 0 0 0 0 0 45
"""


def single_joint_bvh(channels, rows, offset=(0.0, 0.0, 0.0), frame_time=0.0333333):
    """One ROOT joint with the given channel tokens and motion rows."""
    lines = [
        "HIERARCHY",
        "ROOT Hip",
        "{",
        f"  OFFSET {offset[0]} {offset[1]} {offset[2]}",
        f"  CHANNELS {len(channels)} {' '.join(channels)}",
        "}",
        "MOTION",
        f"Frames: {len(rows)}",
        f"Frame Time: {frame_time}",
    ]
    lines += [" ".join(str(v) for v in row) for row in rows]
    return "\n".join(lines) + "\n"


@pytest.fixture
def sample_text():
    return SAMPLE_BVH


@pytest.fixture
def sample_doc():
    return parse_bvh(SAMPLE_BVH, filename="sample.bvh")


@pytest.fixture
def make_single():
    def _make(channels, rows, **kwargs):
        return parse_bvh(single_joint_bvh(channels, rows, **kwargs))

    return _make


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "sample.bvh"
    path.write_text(SAMPLE_BVH, encoding="utf-8")
    return path
