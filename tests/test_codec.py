"""Tests for header/body codecs.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import base64
import pytest

from segcache_core.exceptions import DecodeError
from segcache_core.protocol.codec import (
    JSONSerializer,
    MsgPackSerializer,
    PickleSerializer,
    SerializerCodec,
)


class TestSerializerCodec:
    """Tests for SerializerCodec."""

    def test_header_round_trip(self):
        """Test header survives encode/decode."""
        codec = SerializerCodec(JSONSerializer())
        header = {"cube": "Sales", "measure": "Unit Sales", "year": 1997}

        key = codec.encode_header(header)
        assert isinstance(key, str)
        assert codec.decode_header(key) == header

    def test_equal_headers_share_a_key(self):
        """Test encoding is deterministic regardless of dict order."""
        codec = SerializerCodec(JSONSerializer())

        a = codec.encode_header({"cube": "Sales", "year": 1997})
        b = codec.encode_header({"year": 1997, "cube": "Sales"})
        assert a == b
        assert a != codec.encode_header({"cube": "Sales", "year": 1998})

    def test_default_is_pickle(self):
        """Test default codec handles arbitrary picklable values."""
        codec = SerializerCodec()
        body = {"cells": [(1, 2.5), (2, None)], "axes": frozenset({"x"})}

        assert codec.header_serializer.format_name == "pickle"
        assert codec.decode_body(codec.encode_body(body)) == body

    def test_separate_body_serializer(self):
        """Test header and body can use different formats."""
        codec = SerializerCodec(JSONSerializer(), MsgPackSerializer())

        blob = codec.encode_body({"values": [1, 2, 3]})
        assert codec.decode_body(blob) == {"values": [1, 2, 3]}
        with pytest.raises(DecodeError):
            codec.decode_header(blob)

    def test_encoded_values_are_base64(self):
        """Test output is plain ASCII base64."""
        codec = SerializerCodec(JSONSerializer())
        key = codec.encode_header(["a", "b"])

        assert base64.b64decode(key) == b'["a","b"]'

    def test_invalid_base64(self):
        """Test non-base64 input raises DecodeError."""
        codec = SerializerCodec(JSONSerializer())

        with pytest.raises(DecodeError):
            codec.decode_header("not base64!!")

    def test_index_key_name_does_not_decode(self):
        """Test the index set's own name is rejected."""
        codec = SerializerCodec()

        with pytest.raises(DecodeError):
            codec.decode_header("SEGMENT_HEADERS_SET")

    def test_invalid_payload(self):
        """Test valid base64 around a broken payload."""
        codec = SerializerCodec(JSONSerializer())
        blob = base64.b64encode(b"{oops").decode("ascii")

        with pytest.raises(DecodeError) as exc_info:
            codec.decode_body(blob)
        assert exc_info.value.cause is not None

    def test_none_and_non_ascii(self):
        """Test None and non-ASCII strings raise DecodeError."""
        codec = SerializerCodec(JSONSerializer())

        with pytest.raises(DecodeError):
            codec.decode_body(None)
        with pytest.raises(DecodeError):
            codec.decode_header("segment-é")


class TestSerializers:
    """Tests for individual serializers."""

    def test_json(self):
        """Test JSON serializer output is compact and sorted."""
        serializer = JSONSerializer()

        assert serializer.serialize({"b": 1, "a": 2}) == b'{"a":2,"b":1}'
        assert serializer.deserialize(b'{"a":2}') == {"a": 2}

    def test_msgpack(self):
        """Test MessagePack serializer."""
        serializer = MsgPackSerializer()
        value = {"name": "segment", "rows": [1, 2, 3]}

        assert serializer.deserialize(serializer.serialize(value)) == value
        assert serializer.format_name == "msgpack"

    def test_pickle_protocol(self):
        """Test pickle serializer honours the protocol."""
        serializer = PickleSerializer(protocol=2)

        assert serializer.serialize("x")[:2] == b"\x80\x02"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
