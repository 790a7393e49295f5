"""A pool of reusable byte buffers."""

from __future__ import annotations

import threading

MAX_RECYCLE_BUFFER_SIZE = 8 * 1024 * 1024  # larger buffers aren't kept


class BufferPool:
    """A thread-safe free list of ``bytearray`` buffers.

    Buffers handed back with :meth:`put` are emptied and reused by later calls
    to :meth:`get`, unless they grew beyond ``MAX_RECYCLE_BUFFER_SIZE``.
    """

    def __init__(self) -> None:
        self._free: list[bytearray] = []
        self._lock = threading.Lock()

    def get(self) -> bytearray:
        """Return an empty buffer, reusing a pooled one when available."""
        with self._lock:
            if self._free:
                return self._free.pop()
        return bytearray()

    def put(self, buffer: bytearray) -> None:
        """Return ``buffer`` to the pool; oversized buffers are dropped."""
        if len(buffer) > MAX_RECYCLE_BUFFER_SIZE:
            return
        buffer.clear()
        with self._lock:
            self._free.append(buffer)