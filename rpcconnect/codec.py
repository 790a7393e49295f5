"""Codecs that marshal protobuf messages to and from bytes."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from google.protobuf import json_format
from google.protobuf.message import Message

CODEC_NAME_PROTO = "proto"
CODEC_NAME_JSON = "json"
CODEC_NAME_JSON_CHARSET_UTF8 = CODEC_NAME_JSON + "; charset=utf-8"


@runtime_checkable
class Codec(Protocol):
    """Marshals messages to and from bytes.

    The name may be used as part of an HTTP Content-Type and must not be empty.
    """

    def name(self) -> str: ...

    def marshal(self, message: Any) -> bytes: ...

    def unmarshal(self, data: bytes, message: Any) -> None: ...


def _require_proto(message: Any) -> Message:
    if not isinstance(message, Message):
        raise TypeError(f"{type(message).__name__} doesn't implement protobuf Message")
    return message


class ProtoBinaryCodec:
    """The binary protobuf wire format."""

    def name(self) -> str:
        return CODEC_NAME_PROTO

    def marshal(self, message: Any) -> bytes:
        return _require_proto(message).SerializeToString()

    def unmarshal(self, data: bytes, message: Any) -> None:
        _require_proto(message).ParseFromString(bytes(data))

    def marshal_stable(self, message: Any) -> bytes:
        """Serialize with deterministic map ordering."""
        return _require_proto(message).SerializeToString(deterministic=True)

    def is_binary(self) -> bool:
        return True


class ProtoJSONCodec:
    """The canonical protobuf JSON mapping."""

    def __init__(self, name: str = CODEC_NAME_JSON) -> None:
        self._name = name

    def name(self) -> str:
        return self._name

    def marshal(self, message: Any) -> bytes:
        value = json_format.MessageToDict(_require_proto(message))
        return json.dumps(value, ensure_ascii=False).encode("utf-8")

    def unmarshal(self, data: bytes, message: Any) -> None:
        target = _require_proto(message)
        if len(data) == 0:
            raise ValueError("zero-length payload is not a valid JSON object")
        target.Clear()
        json_format.Parse(bytes(data).decode("utf-8"), target)

    def marshal_stable(self, message: Any) -> bytes:
        """Serialize as compact JSON with object keys sorted.

        Map iteration order isn't fixed, so keys are sorted to keep the output
        the same for equal inputs.
        """
        value = json_format.MessageToDict(_require_proto(message))
        return json.dumps(
            value, ensure_ascii=False, separators=(",", ":"), sort_keys=True
        ).encode("utf-8")

    def is_binary(self) -> bool:
        return False


class Codecs:
    """Read-only view of codecs keyed by name."""

    def __init__(self, name_to_codec: Mapping[str, Codec]) -> None:
        self._name_to_codec = name_to_codec

    def get(self, name: str) -> Codec | None:
        """The codec registered under ``name``, if any."""
        return self._name_to_codec.get(name)

    def protobuf(self) -> Codec:
        """The registered protobuf codec, or the default binary codec."""
        if CODEC_NAME_PROTO in self._name_to_codec:
            return self._name_to_codec[CODEC_NAME_PROTO]
        return ProtoBinaryCodec()

    def names(self) -> list[str]:
        """A fresh list of the registered codec names."""
        return list(self._name_to_codec)