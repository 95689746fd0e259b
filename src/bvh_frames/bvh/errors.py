from __future__ import annotations


class BVHError(RuntimeError):
    pass


class BVHParseError(BVHError):
    """Raised when a BVH source cannot be turned into a document."""


class MalformedInput(BVHParseError):
    pass


class MissingHierarchyKeyword(BVHParseError):
    pass


class MissingRootKeyword(BVHParseError):
    pass


class UnbalancedBraces(BVHParseError):
    pass


class TruncatedBlock(BVHParseError):
    pass


class UnknownChannelType(BVHParseError):
    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown channel type: {token!r}")
        self.token = token


class TruncatedMotionData(BVHParseError):
    pass


class FrameIndexOutOfRange(BVHError, IndexError):
    def __init__(self, frame_index: int, frame_count: int) -> None:
        super().__init__(f"frame_index out of range: {frame_index} (frames={frame_count})")
        self.frame_index = frame_index
        self.frame_count = frame_count


class UnknownJoint(BVHError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""
