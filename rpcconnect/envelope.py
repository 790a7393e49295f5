"""Length-prefixed message framing shared by Connect, gRPC and gRPC-Web.

Each message is preceded by a 5-byte prefix: one byte of bitwise flags and a
big-endian uint32 holding the message length.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Protocol

from .buffer_pool import BufferPool
from .code import Code
from .codec import Codec, ProtoBinaryCodec
from .compression import CompressionPool
from .errors import ConnectError, WrappedError, as_error, errorf

FLAG_ENVELOPE_COMPRESSED = 0b00000001

_PREFIX = struct.Struct(">BI")
_PREFIX_SIZE = _PREFIX.size
_CHUNK_SIZE = 32 * 1024


class _Writer(Protocol):
    def write(self, data: bytes) -> Any: ...


class _Reader(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class SpecialEnvelopeError(ConnectError):
    """Raised when the final envelope carries protocol-specific flags.

    It wraps an :class:`EOFError`, so callers treat it as the end of the stream.
    """

    def __init__(self) -> None:
        eof = EOFError("EOF")
        super().__init__(
            Code.UNKNOWN,
            WrappedError(f"final message has protocol-specific flags: {eof}", eof),
        )


def is_end_of_stream(err: BaseException | None) -> bool:
    """Whether ``err`` is, or wraps, an :class:`EOFError`."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, EOFError):
            return True
        seen.add(id(err))
        err = err.__cause__
    return False


@dataclass
class Envelope:
    """A block of bytes with the framing flags that precede it."""

    data: bytes = b""
    flags: int = 0

    def is_set(self, flag: int) -> bool:
        """Whether every bit of ``flag`` is set."""
        return self.flags & flag == flag


class EnvelopeWriter:
    """Marshals messages and writes them as envelopes, compressing as needed."""

    def __init__(
        self,
        writer: _Writer,
        codec: Codec | None = None,
        compress_min_bytes: int = 0,
        compression_pool: CompressionPool | None = None,
        buffer_pool: BufferPool | None = None,
        send_max_bytes: int = 0,
    ) -> None:
        self.writer = writer
        self.codec = codec if codec is not None else ProtoBinaryCodec()
        self.compress_min_bytes = compress_min_bytes
        self.compression_pool = compression_pool
        self.buffer_pool = buffer_pool if buffer_pool is not None else BufferPool()
        self.send_max_bytes = send_max_bytes

    def marshal(self, message: Any) -> None:
        """Marshal ``message`` and write it; ``None`` writes nothing but headers."""
        if message is None:
            try:
                self.writer.write(b"")
            except Exception as exc:
                coded = as_error(exc)
                if coded is not None:
                    raise coded from None
                raise ConnectError(Code.UNKNOWN, exc) from exc
            return
        try:
            raw = self.codec.marshal(message)
        except Exception as exc:
            raise errorf(Code.INTERNAL, "marshal message", exc) from exc
        self.write(Envelope(bytes(raw)))

    def write(self, env: Envelope) -> None:
        """Write the envelope, compressing its data when configured to."""
        size = len(env.data)
        if (
            env.is_set(FLAG_ENVELOPE_COMPRESSED)
            or self.compression_pool is None
            or size < self.compress_min_bytes
        ):
            if self.send_max_bytes > 0 and size > self.send_max_bytes:
                raise errorf(
                    Code.RESOURCE_EXHAUSTED,
                    f"message size {size} exceeds sendMaxBytes {self.send_max_bytes}",
                )
            self._write(env)
            return
        compressed = self.compression_pool.compress(env.data)
        if self.send_max_bytes > 0 and len(compressed) > self.send_max_bytes:
            raise errorf(
                Code.RESOURCE_EXHAUSTED,
                f"compressed message size {len(compressed)} exceeds "
                f"sendMaxBytes {self.send_max_bytes}",
            )
        self._write(Envelope(compressed, env.flags | FLAG_ENVELOPE_COMPRESSED))

    def _write(self, env: Envelope) -> None:
        prefix = _PREFIX.pack(env.flags, len(env.data))
        try:
            self.writer.write(prefix)
        except Exception as exc:
            coded = as_error(exc)
            if coded is not None:
                raise coded from None
            raise errorf(Code.UNKNOWN, "write envelope", exc) from exc
        try:
            self.writer.write(bytes(env.data))
        except Exception as exc:
            raise errorf(Code.UNKNOWN, "write message", exc) from exc


class EnvelopeReader:
    """Reads envelopes from a stream and unmarshals their messages."""

    def __init__(
        self,
        reader: _Reader,
        codec: Codec | None = None,
        compression_pool: CompressionPool | None = None,
        buffer_pool: BufferPool | None = None,
        read_max_bytes: int = 0,
    ) -> None:
        self.reader = reader
        self.codec = codec if codec is not None else ProtoBinaryCodec()
        self.compression_pool = compression_pool
        self.buffer_pool = buffer_pool if buffer_pool is not None else BufferPool()
        self.read_max_bytes = read_max_bytes
        self.last: Envelope | None = None

    def unmarshal(self, message: Any) -> None:
        """Read the next envelope and unmarshal it into ``message``.

        Raises a :class:`ConnectError` wrapping :class:`EOFError` at the end of
        the stream, and :class:`SpecialEnvelopeError` when the envelope carries
        protocol-specific flags; that envelope is then kept in :attr:`last`.
        """
        env = self.read()
        standard = env.flags in (0, FLAG_ENVELOPE_COMPRESSED)
        if standard and not env.data:
            # No data: the default value of the message is correct.
            return
        data = env.data
        if data and env.is_set(FLAG_ENVELOPE_COMPRESSED):
            if self.compression_pool is None:
                raise errorf(
                    Code.INVALID_ARGUMENT,
                    "gRPC protocol error: sent compressed message without "
                    "Grpc-Encoding header",
                )
            data = self.compression_pool.decompress(data, self.read_max_bytes)
        if not standard:
            self.last = Envelope(bytes(data), env.flags)
            raise SpecialEnvelopeError()
        try:
            self.codec.unmarshal(data, message)
        except Exception as exc:
            raise errorf(
                Code.INVALID_ARGUMENT, f"unmarshal into {type(message).__name__}", exc
            ) from exc

    def read(self) -> Envelope:
        """Read one envelope, without decompressing or unmarshaling it."""
        try:
            prefix = self._read_prefix()
        except Exception as exc:
            coded = as_error(exc)
            if coded is not None:
                raise coded from None
            raise errorf(
                Code.INVALID_ARGUMENT, "protocol error: incomplete envelope", exc
            ) from exc
        if not prefix:
            # The stream ended cleanly.
            raise ConnectError(Code.UNKNOWN, EOFError("EOF"))
        if len(prefix) < _PREFIX_SIZE:
            raise errorf(
                Code.INVALID_ARGUMENT,
                f"protocol error: incomplete envelope: got {len(prefix)} "
                f"of {_PREFIX_SIZE} prefix bytes",
            )
        flags, size = _PREFIX.unpack(prefix)
        if self.read_max_bytes > 0 and size > self.read_max_bytes:
            try:
                self._discard(size)
            except Exception as exc:
                raise errorf(Code.UNKNOWN, "read enveloped message", exc) from exc
            raise errorf(
                Code.RESOURCE_EXHAUSTED,
                f"message size {size} is larger than configured max {self.read_max_bytes}",
            )
        buffer = self.buffer_pool.get()
        try:
            remaining = size
            while remaining > 0:
                try:
                    chunk = self.reader.read(remaining)
                except Exception as exc:
                    raise errorf(Code.UNKNOWN, "read enveloped message", exc) from exc
                if not chunk:
                    # Likely malformed: don't wait for more chunks.
                    raise errorf(
                        Code.INVALID_ARGUMENT,
                        f"protocol error: promised {size} bytes in enveloped message, "
                        f"got {size - remaining} bytes",
                    )
                buffer.extend(chunk)
                remaining -= len(chunk)
            data = bytes(buffer)
        finally:
            self.buffer_pool.put(buffer)
        return Envelope(data, flags)

    def _read_prefix(self) -> bytes:
        prefix = b""
        while len(prefix) < _PREFIX_SIZE:
            chunk = self.reader.read(_PREFIX_SIZE - len(prefix))
            if not chunk:
                break
            prefix += chunk
        return prefix

    def _discard(self, count: int) -> None:
        while count > 0:
            chunk = self.reader.read(min(count, _CHUNK_SIZE))
            if not chunk:
                return
            count -= len(chunk)