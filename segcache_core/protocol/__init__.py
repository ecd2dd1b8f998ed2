"""Protocol module - Header and body codecs."""

from segcache_core.protocol.codec import (
    Codec,
    SerializerCodec,
    Serializer,
    JSONSerializer,
    PickleSerializer,
    MsgPackSerializer,
)

__all__ = [
    "Codec",
    "SerializerCodec",
    "Serializer",
    "JSONSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
]
