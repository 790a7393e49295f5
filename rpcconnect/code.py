"""Status codes shared by the Connect, gRPC and gRPC-Web protocols."""

from __future__ import annotations

import enum
import re

_UINT32_MAX = 0xFFFFFFFF
_NUMERIC = re.compile(r"[+-]?[0-9]+")
_PREFIX = "code_"


class Code(enum.IntEnum):
    """An RPC error code.

    The names and meanings match the gRPC status codes. There is no member for
    success. Values outside the canonical range are still representable so
    that they survive a text round trip.
    """

    CANCELED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, int) or isinstance(value, bool):
            return None
        if not 0 <= value <= _UINT32_MAX:
            return None
        pseudo = int.__new__(cls, value)
        pseudo._name_ = f"CODE_{value}"
        pseudo._value_ = value
        return cls._value2member_map_.setdefault(value, pseudo)

    def __str__(self) -> str:
        if MIN_CODE <= self.value <= MAX_CODE:
            return self.name.lower()
        return f"{_PREFIX}{self.value}"

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)

    def marshal_text(self) -> bytes:
        """Return the textual form of the code as bytes."""
        return str(self).encode()

    @classmethod
    def from_text(cls, text: bytes | str) -> Code:
        """Parse a code from its textual form.

        Canonical codes are accepted only by name ("canceled", not "code_1");
        other codes are accepted in the "code_<n>" form.
        """
        data = text.decode() if isinstance(text, (bytes, bytearray)) else text
        member = _BY_NAME.get(data)
        if member is not None:
            return member
        if data.startswith(_PREFIX):
            data = data[len(_PREFIX):]
            if _NUMERIC.fullmatch(data):
                number = int(data)
                if (number < MIN_CODE or number > MAX_CODE) and 0 <= number <= _UINT32_MAX:
                    return cls(number)
        raise ValueError(f'invalid code "{data}"')


MIN_CODE = Code.CANCELED.value
MAX_CODE = Code.UNAUTHENTICATED.value

_BY_NAME = {member.name.lower(): member for member in Code}