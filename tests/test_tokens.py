import pytest

from bvh_frames.bvh.errors import MalformedInput, TruncatedBlock
from bvh_frames.bvh.tokens import TokenStream, tokenize


def test_tokenize_collapses_all_separators():
    text = "HIERARCHY\r\n  ROOT\tHip\n\n{\t \r\n}"
    assert tokenize(text) == ["HIERARCHY", "ROOT", "Hip", "{", "}"]


def test_tokenize_empty_input():
    assert tokenize("") == []
    assert tokenize(" \t\r\n ") == []


def test_tokenize_bytes_and_bom():
    assert tokenize(b"\xef\xbb\xbfHIERARCHY ROOT") == ["HIERARCHY", "ROOT"]


def test_tokenize_rejects_undecodable_bytes():
    with pytest.raises(MalformedInput):
        tokenize(b"HIERARCHY \xff\xfe\xfa")


def test_stream_eof_error_is_configurable():
    cur = TokenStream(["1.5", "x"], eof_error=TruncatedBlock)
    assert cur.pop_float() == 1.5
    with pytest.raises(MalformedInput):
        cur.pop_int()
    assert cur.exhausted()
    with pytest.raises(TruncatedBlock):
        cur.pop()


def test_stream_take_stops_at_end():
    cur = TokenStream(["a", "b", "c"])
    assert cur.take(2) == ["a", "b"]
    assert cur.take(5) == ["c"]
    assert cur.remaining() == 0
    assert cur.peek() is None
