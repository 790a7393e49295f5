"""Helpers for HTTP header maps and binary header values.

Headers are represented as dicts mapping canonical names to lists of values.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable, Mapping

Headers = dict[str, list[str]]


def encode_binary_header(data: bytes) -> str:
    """Base64-encode ``data`` without padding, as binary headers require."""
    return base64.b64encode(data).decode("ascii").rstrip("=")


def decode_binary_header(data: str) -> bytes:
    """Decode a padded or unpadded base64 header value.

    Comma-joined values must be split before decoding.
    """
    if len(data) % 4 != 0:
        if "=" in data:
            raise ValueError(f"illegal base64 data: {data!r}")
        data += "=" * (-len(data) % 4)
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"illegal base64 data: {data!r}") from exc


def merge_headers(into: Headers, source: Mapping[str, Iterable[str] | None]) -> None:
    """Append every value in ``source`` to the matching key of ``into``."""
    for key, values in source.items():
        into[key] = [*(into.get(key) or ()), *(values or ())]


def get_header(headers: Mapping[str, list[str]] | None, key: str) -> str:
    """Return the first value for ``key``, or an empty string."""
    if headers is None:
        return ""
    values = headers.get(key)
    if not values:
        return ""
    return values[0]


def set_header(headers: Headers, key: str, value: str) -> None:
    """Replace all values for ``key`` with ``value``."""
    headers[key] = [value]


def del_header(headers: Headers, key: str) -> None:
    """Remove ``key`` if present."""
    headers.pop(key, None)


def add_header(headers: Headers, key: str, value: str) -> None:
    """Append ``value`` to the values for ``key``."""
    headers.setdefault(key, []).append(value)