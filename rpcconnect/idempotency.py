"""Idempotency levels that an RPC procedure can declare."""

from __future__ import annotations

import enum


class IdempotencyLevel(enum.IntEnum):
    """How idempotent an RPC is; the values match the protobuf method options."""

    UNKNOWN = 0
    NO_SIDE_EFFECTS = 1
    IDEMPOTENT = 2

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, int) or isinstance(value, bool):
            return None
        pseudo = int.__new__(cls, value)
        pseudo._name_ = f"IDEMPOTENCY_{value}"
        pseudo._value_ = value
        return cls._value2member_map_.setdefault(value, pseudo)

    def __str__(self) -> str:
        label = _LABELS.get(self.value)
        if label is not None:
            return label
        return f"idempotency_{self.value}"

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)


_LABELS = {
    0: "idempotency_unknown",
    1: "no_side_effects",
    2: "idempotent",
}