from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from .bvh.loader import LoaderConfig, load_bvh
from .bvh.types import BVHDocument

logger = logging.getLogger(__name__)


class _Slot:
    """Per-path parse lock and its parsed document."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.doc: Optional[BVHDocument] = None


class DocumentCache:
    """Parsed documents keyed by absolute file path.

    At most one parse runs per key: the first caller parses while concurrent
    callers for the same path block on that key's lock and then reuse the
    result. Failed parses are not stored, so the next caller retries.

    `invalidate` and `clear` drop the key's slot together with its lock. A
    parse already running for a dropped slot still returns its document to
    its own caller, but the result is not stored.
    """

    def __init__(self, config: Optional[LoaderConfig] = None) -> None:
        self.config = config or LoaderConfig()
        self.lock = threading.Lock()
        self._slots: Dict[str, _Slot] = {}

    @staticmethod
    def _key(path: Union[str, Path]) -> str:
        return os.path.abspath(os.fspath(path))

    def get(self, path: Union[str, Path]) -> BVHDocument:
        key = self._key(path)
        while True:
            with self.lock:
                slot = self._slots.get(key)
                if slot is None:
                    slot = self._slots[key] = _Slot()
                elif slot.doc is not None:
                    return slot.doc

            with slot.lock:
                with self.lock:
                    current = self._slots.get(key) is slot
                if not current:
                    # invalidated while we waited; start over on the new slot
                    continue
                if slot.doc is not None:
                    return slot.doc

                logger.debug(f"Parsing {key}")
                doc = load_bvh(key, self.config)
                with self.lock:
                    if self._slots.get(key) is slot:
                        slot.doc = doc
                    else:
                        logger.debug(f"{key} was invalidated during parsing; result not cached")
                return doc

    def invalidate(self, path: Union[str, Path]) -> None:
        key = self._key(path)
        with self.lock:
            self._slots.pop(key, None)

    def clear(self) -> None:
        with self.lock:
            self._slots.clear()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self.lock:
            slot = self._slots.get(self._key(path))
            return slot is not None and slot.doc is not None

    def __len__(self) -> int:
        with self.lock:
            return sum(1 for slot in self._slots.values() if slot.doc is not None)
