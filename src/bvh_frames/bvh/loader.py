from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .errors import (
    MalformedInput,
    MissingHierarchyKeyword,
    MissingRootKeyword,
    TruncatedBlock,
    TruncatedMotionData,
    UnbalancedBraces,
)
from .tokens import TokenStream, tokenize
from .types import BVHDocument, Channel, Joint, MotionTable, Vec3

logger = logging.getLogger(__name__)

MOTION_POLICIES = ("strict", "truncate")


@dataclass
class LoaderConfig:
    motion_policy: str = "strict"  # strict|truncate
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if self.motion_policy not in MOTION_POLICIES:
            raise ValueError(f"motion_policy must be one of {MOTION_POLICIES}, got {self.motion_policy!r}")


@dataclass
class _JointDraft:
    name: str
    parent: int
    offset: Vec3 = (0.0, 0.0, 0.0)
    channels: List[Channel] = field(default_factory=list)
    children: List[int] = field(default_factory=list)
    is_end_site: bool = False
    channel_start_index: int = 0


def _read_offset(cur: TokenStream) -> Vec3:
    return (
        cur.pop_float("OFFSET x"),
        cur.pop_float("OFFSET y"),
        cur.pop_float("OFFSET z"),
    )


def _read_channels(cur: TokenStream) -> List[Channel]:
    n = cur.pop_int("CHANNELS count")
    if n < 0:
        raise MalformedInput(f"CHANNELS count must not be negative, got {n}")
    return [Channel.from_token(cur.pop("channel name")) for _ in range(n)]


def _new_joint(drafts: List[_JointDraft], name: str, parent: int, is_end_site: bool = False) -> int:
    idx = len(drafts)
    drafts.append(_JointDraft(name=name, parent=parent, is_end_site=is_end_site))
    if parent >= 0:
        drafts[parent].children.append(idx)
    return idx


def parse_hierarchy(cur: TokenStream) -> List[_JointDraft]:
    """Build the joint arena from HIERARCHY up to (and consuming) MOTION.

    Iterative on purpose: `scope` holds the joints whose `{` is open, so
    nesting depth is bounded by memory rather than the call stack.
    """
    cur.eof_error = TruncatedBlock

    while not cur.exhausted() and cur.peek() != "HIERARCHY":
        cur.pop()
    if cur.exhausted():
        raise MissingHierarchyKeyword("No HIERARCHY keyword found")
    cur.pop()

    first = cur.peek()
    if first != "ROOT":
        raise MissingRootKeyword(f"Expected 'ROOT' after HIERARCHY, got: {first if first is not None else 'EOF'}")

    drafts: List[_JointDraft] = []
    scope: List[int] = []
    pending: Optional[int] = None  # declared, waiting for its '{'
    pending_end_site = False
    in_end_site = False
    root_closed = False

    while True:
        if cur.exhausted():
            if scope or pending is not None or pending_end_site or in_end_site:
                raise TruncatedBlock("Input ended inside an unclosed HIERARCHY block")
            raise TruncatedMotionData("No MOTION section after HIERARCHY")

        tok = cur.pop()

        if tok == "MOTION":
            if scope or in_end_site or pending is not None or pending_end_site:
                raise TruncatedBlock("MOTION reached before all HIERARCHY blocks were closed")
            break

        if (pending is not None or pending_end_site) and tok != "{":
            raise MalformedInput(f"Expected '{{' after joint header, got: {tok!r}")

        if root_closed:
            if tok == "}":
                raise UnbalancedBraces("'}' without a matching '{'")
            if tok == "JOINT":
                raise UnbalancedBraces("JOINT declared outside any joint block")
            raise MalformedInput(f"Unexpected token after the ROOT block: {tok!r}")

        if tok in ("ROOT", "JOINT"):
            if in_end_site:
                raise MalformedInput(f"{tok} declared inside an End Site block")
            if tok == "ROOT" and drafts:
                raise MalformedInput("Only one ROOT per file is supported")
            name = cur.pop(f"{tok} name")
            pending = _new_joint(drafts, name, scope[-1] if scope else -1)

        elif tok == "End":
            site = cur.pop("'Site' after 'End'")
            if site != "Site":
                raise MalformedInput(f"Expected 'Site' after 'End', got: {site!r}")
            if in_end_site or not scope:
                raise MalformedInput("End Site declared outside a joint block")
            parent = scope[-1]
            _new_joint(drafts, f"{drafts[parent].name}_End", parent, is_end_site=True)
            pending_end_site = True

        elif tok == "{":
            if pending_end_site:
                pending_end_site = False
                in_end_site = True
            elif pending is not None:
                scope.append(pending)
                pending = None
            else:
                raise UnbalancedBraces("'{' without a preceding joint header")

        elif tok == "}":
            if in_end_site:
                in_end_site = False
            elif scope:
                scope.pop()
                root_closed = not scope
            else:
                raise UnbalancedBraces("'}' without a matching '{'")

        elif tok == "OFFSET":
            if in_end_site:
                drafts[-1].offset = _read_offset(cur)
            elif scope:
                drafts[scope[-1]].offset = _read_offset(cur)
            else:
                raise MalformedInput("OFFSET outside any joint block")

        elif tok == "CHANNELS":
            if in_end_site:
                raise MalformedInput("End Site blocks cannot declare CHANNELS")
            if not scope:
                raise MalformedInput("CHANNELS outside any joint block")
            drafts[scope[-1]].channels = _read_channels(cur)

        else:
            raise MalformedInput(f"Unknown key in HIERARCHY: {tok!r}")

    return drafts


def allocate_channel_indices(drafts: List[_JointDraft]) -> int:
    """Assign channel_start_index in depth-first pre-order; return the channel total.

    Motion columns are laid out in that order, End Sites contribute nothing.
    """
    total = 0
    stack = [0] if drafts else []
    while stack:
        idx = stack.pop()
        node = drafts[idx]
        node.channel_start_index = total
        total += len(node.channels)
        stack.extend(reversed(node.children))
    return total


def _expect_label(cur: TokenStream, label: str) -> str:
    """Consume tokens spelling `label` (whitespace-insensitive).

    Returns whatever is glued after the label in the last token, e.g. "10"
    for a lone "Frames:10" token.
    """
    acc = ""
    while True:
        tok = cur.pop(f"'{label}'")
        acc += tok
        if acc.startswith(label):
            return acc[len(label):]
        if not label.startswith(acc):
            raise MalformedInput(f"Expected '{label}', got: {acc!r}")


def parse_motion(cur: TokenStream, total_channels: int, config: LoaderConfig) -> MotionTable:
    cur.eof_error = TruncatedMotionData

    rest = _expect_label(cur, "Frames:")
    frames_tok = rest or cur.pop("frame count")
    try:
        frames = int(frames_tok)
    except ValueError:
        raise MalformedInput(f"Expected frame count, got: {frames_tok!r}") from None
    if frames < 0:
        raise MalformedInput(f"Frame count must not be negative, got {frames}")

    rest = _expect_label(cur, "FrameTime:")
    time_tok = rest or cur.pop("frame time")
    try:
        frame_time = float(time_tok)
    except ValueError:
        raise MalformedInput(f"Expected frame time, got: {time_tok!r}") from None
    if frame_time < 0:
        raise MalformedInput(f"Frame time must not be negative, got {frame_time}")

    expected = frames * total_channels
    values = cur.take(expected)
    if len(values) < expected:
        complete = len(values) // total_channels if total_channels else frames
        if config.motion_policy == "strict":
            raise TruncatedMotionData(
                f"MOTION data is too short: got {len(values)} values, expected {expected} "
                f"({complete} of {frames} frames complete)"
            )
        logger.warning(f"MOTION declares {frames} frames but only {complete} are complete; truncating")
        values = values[: complete * total_channels]

    try:
        flat = np.asarray(values, dtype=np.float64)
    except ValueError as e:
        raise MalformedInput(f"Non-numeric value in MOTION data: {e}") from e

    if not cur.exhausted():
        logger.warning(f"Ignoring {cur.remaining()} values after the last declared frame")

    n_rows = len(values) // total_channels if total_channels else frames
    data = flat.reshape(n_rows, total_channels)
    data.setflags(write=False)
    return MotionTable(
        frame_count=n_rows,
        frame_time=frame_time,
        data=data,
        declared_frame_count=frames if n_rows != frames else None,
    )


def _freeze(drafts: List[_JointDraft]) -> Tuple[Joint, ...]:
    return tuple(
        Joint(
            index=i,
            name=d.name,
            offset=d.offset,
            channels=tuple(d.channels),
            channel_start_index=d.channel_start_index,
            parent=d.parent,
            children=tuple(d.children),
            is_end_site=d.is_end_site,
        )
        for i, d in enumerate(drafts)
    )


def parse_bvh(
    source: Union[str, bytes],
    config: Optional[LoaderConfig] = None,
    filename: Optional[str] = None,
) -> BVHDocument:
    """Parse BVH text (or undecoded bytes) into an immutable document."""
    config = config or LoaderConfig()
    cur = TokenStream(tokenize(source, encoding=config.encoding))

    drafts = parse_hierarchy(cur)
    total_channels = allocate_channel_indices(drafts)
    motion = parse_motion(cur, total_channels, config)

    doc = BVHDocument(joints=_freeze(drafts), motion=motion, source=filename)
    logger.debug(
        f"Parsed {filename or '<string>'}: {len(doc.joints)} joints, "
        f"{total_channels} channels, {motion.frame_count} frames @ {motion.frame_time:g}s"
    )
    return doc


def load_bvh(path: Union[str, Path], config: Optional[LoaderConfig] = None) -> BVHDocument:
    with open(path, "rb") as f:
        data = f.read()
    return parse_bvh(data, config=config, filename=str(path))
