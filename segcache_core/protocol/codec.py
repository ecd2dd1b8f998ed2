"""SegCache Codec - Header and Body Encoding.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Headers and bodies are opaque to the cache. A Codec turns them into
transport-safe strings: the encoded header is both the store key and the
index set member, the encoded body is the stored blob.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import pickle
from abc import ABC, abstractmethod
from typing import Any, Optional

import msgpack

from segcache_core.exceptions import DecodeError

logger = logging.getLogger(__name__)


class Serializer(ABC):
    """Abstract serializer for header and body values."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""
        pass

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """Serialize value to bytes.

        Args:
            value: Value to serialize

        Returns:
            Serialized bytes
        """
        pass

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Deserialize bytes to value.

        Args:
            data: Serialized bytes

        Returns:
            Deserialized value
        """
        pass


class JSONSerializer(Serializer):
    """JSON serializer.

    Keys are sorted so equal headers always encode to the same key.
    Limited to JSON-compatible types; tuples come back as lists.
    """

    @property
    def format_name(self) -> str:
        return "json"

    def serialize(self, value: Any) -> bytes:
        return json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")

    def deserialize(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class PickleSerializer(Serializer):
    """Pickle serializer.

    Supports any picklable object. Not safe for untrusted stores.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        """Initialize pickle serializer.

        Args:
            protocol: Pickle protocol version
        """
        self.protocol = protocol

    @property
    def format_name(self) -> str:
        return "pickle"

    def serialize(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self.protocol)

    def deserialize(self, data: bytes) -> Any:
        return pickle.loads(data)


class MsgPackSerializer(Serializer):
    """MessagePack serializer.

    Compact binary format, faster than JSON.
    """

    @property
    def format_name(self) -> str:
        return "msgpack"

    def serialize(self, value: Any) -> bytes:
        return msgpack.packb(value, use_bin_type=True)

    def deserialize(self, data: bytes) -> Any:
        return msgpack.unpackb(data, raw=False)


class Codec(ABC):
    """Converts headers and bodies to and from transport-safe strings.

    Implementations must be deterministic: equal headers encode to equal
    strings, and distinct headers never collide. Decoding garbage must
    raise DecodeError rather than return a bogus value.
    """

    @abstractmethod
    def encode_header(self, header: Any) -> str:
        """Encode a header into its store key."""
        pass

    @abstractmethod
    def decode_header(self, encoded: str) -> Any:
        """Decode a store key back into a header.

        Raises:
            DecodeError: If the key is not a valid encoded header
        """
        pass

    @abstractmethod
    def encode_body(self, body: Any) -> str:
        """Encode a body into its stored blob."""
        pass

    @abstractmethod
    def decode_body(self, encoded: str) -> Any:
        """Decode a stored blob back into a body.

        Raises:
            DecodeError: If the blob is not a valid encoded body
        """
        pass


class SerializerCodec(Codec):
    """Codec that serializes values and wraps the bytes in base64.

    Example:
        codec = SerializerCodec(JSONSerializer())
        key = codec.encode_header({"cube": "Sales", "measure": "Units"})
        header = codec.decode_header(key)
    """

    def __init__(
        self,
        header_serializer: Optional[Serializer] = None,
        body_serializer: Optional[Serializer] = None,
    ):
        """Initialize codec.

        Args:
            header_serializer: Serializer for headers (pickle by default)
            body_serializer: Serializer for bodies (header serializer by default)
        """
        self.header_serializer = header_serializer or PickleSerializer()
        self.body_serializer = body_serializer or self.header_serializer

    def encode_header(self, header: Any) -> str:
        return self._encode(self.header_serializer, header)

    def decode_header(self, encoded: str) -> Any:
        return self._decode(self.header_serializer, encoded)

    def encode_body(self, body: Any) -> str:
        return self._encode(self.body_serializer, body)

    def decode_body(self, encoded: str) -> Any:
        return self._decode(self.body_serializer, encoded)

    @staticmethod
    def _encode(serializer: Serializer, value: Any) -> str:
        return base64.b64encode(serializer.serialize(value)).decode("ascii")

    @staticmethod
    def _decode(serializer: Serializer, encoded: Any) -> Any:
        if encoded is None:
            raise DecodeError("Nothing to decode")

        if isinstance(encoded, str):
            if not encoded.isascii():
                raise DecodeError("Encoded value is not ASCII")
            encoded = encoded.encode("ascii")

        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 payload: {e}", cause=e)

        try:
            return serializer.deserialize(raw)
        except Exception as e:
            raise DecodeError(
                f"Invalid {serializer.format_name} payload: {e}", cause=e
            )

    def __repr__(self) -> str:
        return (
            f"SerializerCodec(header={self.header_serializer.format_name}, "
            f"body={self.body_serializer.format_name})"
        )


__all__ = [
    "Serializer",
    "JSONSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
    "Codec",
    "SerializerCodec",
]
