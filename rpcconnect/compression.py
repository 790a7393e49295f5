"""Named, pooled compression algorithms for message payloads."""

from __future__ import annotations

import gzip
import io
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import Any, BinaryIO, Protocol, runtime_checkable

from .code import Code
from .errors import errorf

COMPRESSION_GZIP = "gzip"
COMPRESSION_IDENTITY = "identity"

_CHUNK_SIZE = 32 * 1024
_MAX_INT64 = 2**63 - 1


@runtime_checkable
class _Decompressor(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...

    def reset(self, source: BinaryIO) -> None: ...


@runtime_checkable
class _Compressor(Protocol):
    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...

    def reset(self, sink: Any) -> None: ...


class _Discard:
    """A sink that drops everything written to it."""

    def write(self, data: bytes) -> int:
        return len(data)

    def flush(self) -> None:
        pass


class GzipDecompressor:
    """A reusable gzip reader; closing it leaves the source open."""

    def __init__(self, source: BinaryIO | None = None) -> None:
        self._file: gzip.GzipFile | None = None
        if source is not None:
            self.reset(source)

    def read(self, size: int = -1) -> bytes:
        if self._file is None:
            return b""
        return self._file.read(size)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()

    def reset(self, source: BinaryIO) -> None:
        self._file = gzip.GzipFile(fileobj=source, mode="rb")


class GzipCompressor:
    """A reusable gzip writer; closing it flushes but leaves the sink open."""

    def __init__(self, sink: Any = None, level: int = 6) -> None:
        self._level = level
        self._file: gzip.GzipFile | None = None
        self.reset(sink if sink is not None else _Discard())

    def write(self, data: bytes) -> int:
        assert self._file is not None
        return self._file.write(data)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()

    def reset(self, sink: Any) -> None:
        self._file = gzip.GzipFile(
            fileobj=sink, mode="wb", compresslevel=self._level, mtime=0
        )


class _Pool:
    """A thread-safe free list that falls back to a factory when empty."""

    def __init__(self, factory: Callable[[], Any] | None) -> None:
        self._factory = factory
        self._items: list[Any] = []
        self._lock = threading.Lock()

    def get(self) -> Any:
        with self._lock:
            if self._items:
                return self._items.pop()
        if self._factory is None:
            return None
        return self._factory()

    def put(self, item: Any) -> None:
        with self._lock:
            self._items.append(item)


def _read_up_to(reader: _Decompressor, limit: int | None) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while limit is None or total < limit:
        want = _CHUNK_SIZE if limit is None else min(_CHUNK_SIZE, limit - total)
        chunk = reader.read(want)
        if not chunk:
            break
        chunks.append(chunk)
        total += len(chunk)
    return b"".join(chunks)


def _discard_rest(reader: _Decompressor) -> int:
    count = 0
    while chunk := reader.read(_CHUNK_SIZE):
        count += len(chunk)
    return count


class CompressionPool:
    """Pools of reusable compressors and decompressors for one algorithm."""

    def __init__(
        self,
        new_decompressor: Callable[[], Any] | None,
        new_compressor: Callable[[], Any] | None,
    ) -> None:
        self._decompressors = _Pool(new_decompressor)
        self._compressors = _Pool(new_compressor)

    def decompress(self, data: bytes, read_max_bytes: int = 0) -> bytes:
        """Decompress ``data``, refusing output larger than ``read_max_bytes``."""
        try:
            decompressor = self._get_decompressor(io.BytesIO(bytes(data)))
        except Exception as exc:
            raise errorf(Code.INVALID_ARGUMENT, "get decompressor", exc)
        limit = read_max_bytes + 1 if 0 < read_max_bytes < _MAX_INT64 else None
        try:
            output = _read_up_to(decompressor, limit)
        except Exception as exc:
            self._put_decompressor_quietly(decompressor)
            raise errorf(Code.INVALID_ARGUMENT, "decompress", exc)
        if read_max_bytes > 0 and len(output) > read_max_bytes:
            try:
                discarded = _discard_rest(decompressor)
            except Exception as exc:
                self._put_decompressor_quietly(decompressor)
                raise errorf(
                    Code.RESOURCE_EXHAUSTED,
                    f"message is larger than configured max {read_max_bytes}"
                    " - unable to determine message size",
                    exc,
                )
            self._put_decompressor_quietly(decompressor)
            raise errorf(
                Code.RESOURCE_EXHAUSTED,
                f"message size {len(output) + discarded} is larger than "
                f"configured max {read_max_bytes}",
            )
        try:
            self._put_decompressor(decompressor)
        except Exception as exc:
            raise errorf(Code.UNKNOWN, "recycle decompressor", exc)
        return output

    def compress(self, data: bytes) -> bytes:
        """Compress ``data`` and return the compressed bytes."""
        sink = io.BytesIO()
        try:
            compressor = self._get_compressor(sink)
        except Exception as exc:
            raise errorf(Code.UNKNOWN, "get compressor", exc)
        try:
            compressor.write(bytes(data))
        except Exception as exc:
            try:
                self._put_compressor(compressor)
            except Exception:
                pass
            raise errorf(Code.INTERNAL, "compress", exc)
        try:
            self._put_compressor(compressor)
        except Exception as exc:
            raise errorf(Code.INTERNAL, "recycle compressor", exc)
        return sink.getvalue()

    def _get_decompressor(self, source: BinaryIO) -> _Decompressor:
        decompressor = self._decompressors.get()
        if not isinstance(decompressor, _Decompressor):
            raise TypeError("expected Decompressor, got incorrect type from pool")
        decompressor.reset(source)
        return decompressor

    def _put_decompressor(self, decompressor: _Decompressor) -> None:
        decompressor.close()
        # Most decompressors read a header on reset; an empty source has none,
        # and the decompressor is reset again when taken out of the pool.
        try:
            decompressor.reset(io.BytesIO(b""))
        except Exception:
            pass
        self._decompressors.put(decompressor)

    def _put_decompressor_quietly(self, decompressor: _Decompressor) -> None:
        try:
            self._put_decompressor(decompressor)
        except Exception:
            pass

    def _get_compressor(self, sink: Any) -> _Compressor:
        compressor = self._compressors.get()
        if not isinstance(compressor, _Compressor):
            raise TypeError("expected Compressor, got incorrect type from pool")
        compressor.reset(sink)
        return compressor

    def _put_compressor(self, compressor: _Compressor) -> None:
        compressor.close()
        compressor.reset(_Discard())
        self._compressors.put(compressor)


def new_compression_pool(
    new_decompressor: Callable[[], Any] | None,
    new_compressor: Callable[[], Any] | None,
) -> CompressionPool | None:
    """Build a pool, or return None when neither constructor is given."""
    if new_decompressor is None and new_compressor is None:
        return None
    return CompressionPool(new_decompressor, new_compressor)


class CompressionPools:
    """Read-only view of named compression pools, most preferred first."""

    def __init__(
        self,
        name_to_pool: Mapping[str, CompressionPool | None],
        reversed_names: Sequence[str],
    ) -> None:
        self._name_to_pool = name_to_pool
        # Names arrive in registration order; the last registered is preferred.
        names = dict.fromkeys(reversed(list(reversed_names)))
        self._comma_separated_names = ",".join(names)

    def get(self, name: str) -> CompressionPool | None:
        """The pool for ``name``; None for identity, empty or unknown names."""
        if not name or name == COMPRESSION_IDENTITY:
            return None
        return self._name_to_pool.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._name_to_pool

    def comma_separated_names(self) -> str:
        """Registered names joined by commas, most preferred first."""
        return self._comma_separated_names