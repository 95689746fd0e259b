from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Type, Union

from .errors import BVHParseError, MalformedInput

_SEPARATORS = re.compile(r"[ \t\r\n]+")


def decode_source(source: Union[str, bytes], encoding: str = "utf-8") -> str:
    if isinstance(source, str):
        text = source
    else:
        try:
            text = bytes(source).decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise MalformedInput(f"Source is not valid {encoding} text: {e}") from e
    return text.lstrip("\ufeff")


def tokenize(source: Union[str, bytes], encoding: str = "utf-8") -> List[str]:
    """Split BVH text into whitespace-delimited tokens.

    Space, tab, CR and LF are all separators; runs of them collapse, so no
    empty token is ever produced.
    """
    text = decode_source(source, encoding)
    return [t for t in _SEPARATORS.split(text) if t]


@dataclass
class TokenStream:
    """Cursor over a flat token list.

    `eof_error` is the error raised when a token is requested past the end;
    each parsing stage swaps in its own.
    """

    tokens: List[str]
    i: int = 0
    eof_error: Type[BVHParseError] = MalformedInput

    def exhausted(self) -> bool:
        return self.i >= len(self.tokens)

    def remaining(self) -> int:
        return max(0, len(self.tokens) - self.i)

    def peek(self) -> Optional[str]:
        if self.i >= len(self.tokens):
            return None
        return self.tokens[self.i]

    def pop(self, what: str = "token") -> str:
        if self.i >= len(self.tokens):
            raise self.eof_error(f"Unexpected end of input while reading {what}")
        t = self.tokens[self.i]
        self.i += 1
        return t

    def pop_float(self, what: str = "number") -> float:
        t = self.pop(what)
        try:
            return float(t)
        except ValueError:
            raise MalformedInput(f"Expected {what}, got: {t!r}") from None

    def pop_int(self, what: str = "integer") -> int:
        t = self.pop(what)
        try:
            return int(t)
        except ValueError:
            raise MalformedInput(f"Expected {what}, got: {t!r}") from None

    def take(self, n: int) -> List[str]:
        """Consume up to `n` tokens; fewer are returned when input runs out."""
        out = self.tokens[self.i : self.i + n]
        self.i += len(out)
        return out
