"""Tests for JSON chunk decoding."""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from glb_errors import TextDecodeError
from json_document import decode_json_document


def test_decode_document():
    """Should parse a UTF-8 JSON object."""
    data = '{"asset": {"generator": "Ünïcode", "version": "2.0"}, "scene": 0}'.encode("utf-8")

    document = decode_json_document(data)

    assert document == {"asset": {"generator": "Ünïcode", "version": "2.0"}, "scene": 0}


def test_decode_memoryview():
    """Should accept a memoryview slice of a larger buffer."""
    data = b'xx{"asset": {}}xx'
    assert decode_json_document(memoryview(data)[2:-2]) == {"asset": {}}


def test_decode_invalid_utf8():
    """Should raise on bytes that are not UTF-8."""
    with pytest.raises(TextDecodeError, match="UTF-8"):
        decode_json_document(b'{"asset": "\xff\xfe"}')


def test_decode_malformed_json():
    """Should raise on truncated JSON."""
    with pytest.raises(TextDecodeError, match="Malformed"):
        decode_json_document(b'{"asset": {"version": "2.0"')


def test_decode_non_object():
    """Should raise when the top-level value is not an object."""
    with pytest.raises(TextDecodeError, match="list"):
        decode_json_document(b"[1, 2, 3]")


def test_decode_skips_utf8_bom():
    """A leading byte order mark should be ignored."""
    data = b'\xef\xbb\xbf{"asset": {"version": "2.0"}}'
    assert decode_json_document(data) == {"asset": {"version": "2.0"}}


def test_decode_deeply_nested():
    """Nesting deeper than the interpreter can parse should raise TextDecodeError."""
    data = b'{"a": ' + b"[" * 100000 + b"]" * 100000 + b"}"
    with pytest.raises(TextDecodeError, match="nested too deeply"):
        decode_json_document(data)
