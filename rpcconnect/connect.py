"""Core RPC types: stream types, specs, peers, and request/response wrappers."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable
from urllib.parse import SplitResult, urlsplit

from .code import Code
from .envelope import is_end_of_stream
from .errors import ConnectError
from .header import Headers
from .idempotency import IdempotencyLevel

VERSION = "1.8.0-dev"

T = TypeVar("T")


class StreamType(enum.IntFlag):
    """Whether the client, the server, neither, or both is streaming."""

    UNARY = 0b00
    CLIENT = 0b01
    SERVER = 0b10
    BIDI = CLIENT | SERVER


@dataclass(frozen=True)
class Spec:
    """A description of a client call or a handler invocation."""

    stream_type: StreamType = StreamType.UNARY
    procedure: str = ""  # for example, "/acme.foo.v1.FooService/Bar"
    is_client: bool = False  # otherwise we're in a handler
    idempotency_level: IdempotencyLevel = IdempotencyLevel.UNKNOWN


@dataclass(frozen=True)
class Peer:
    """The other party to an RPC.

    Client-side, ``addr`` is the host or host:port of the server's URL; the
    query parameters are only set server-side.
    """

    addr: str = ""
    protocol: str = ""
    query: dict[str, list[str]] | None = None


def peer_from_url(url: str | SplitResult, protocol: str) -> Peer:
    """Describe the server at ``url`` for the given protocol."""
    parsed = urlsplit(url) if isinstance(url, str) else url
    host = parsed.netloc.rpartition("@")[2]
    return Peer(addr=host, protocol=protocol)


class Request(Generic[T]):
    """A request message together with its headers, spec and peer."""

    def __init__(self, msg: T | None) -> None:
        self.msg = msg
        self.spec = Spec()
        self.peer = Peer()
        self._header: Headers | None = None

    def any(self) -> Any:
        """The wrapped message, untyped."""
        return self.msg

    def header(self) -> Headers:
        """The request headers, created on first use.

        Keys beginning with "Connect-" and "Grpc-" are reserved by the protocols.
        """
        if self._header is None:
            self._header = {}
        return self._header

    def __repr__(self) -> str:
        return f"Request({self.msg!r})"


class Response(Generic[T]):
    """A response message together with its headers and trailers."""

    def __init__(self, msg: T | None) -> None:
        self.msg = msg
        self._header: Headers | None = None
        self._trailer: Headers | None = None

    def any(self) -> Any:
        """The wrapped message, untyped."""
        return self.msg

    def header(self) -> Headers:
        """The response headers, created on first use."""
        if self._header is None:
            self._header = {}
        return self._header

    def trailer(self) -> Headers:
        """The response trailers, created on first use."""
        if self._trailer is None:
            self._trailer = {}
        return self._trailer

    def __repr__(self) -> str:
        return f"Response({self.msg!r})"


@runtime_checkable
class StreamingClientConn(Protocol):
    """The client's view of a bidirectional message exchange.

    ``receive`` raises an error wrapping :class:`EOFError` when the server is
    done sending.
    """

    def spec(self) -> Spec: ...

    def peer(self) -> Peer: ...

    def send(self, msg: Any) -> None: ...

    def request_header(self) -> Headers: ...

    def close_request(self) -> None: ...

    def receive(self, msg: Any) -> None: ...

    def response_header(self) -> Headers: ...

    def response_trailer(self) -> Headers: ...

    def close_response(self) -> None: ...


@runtime_checkable
class StreamingHandlerConn(Protocol):
    """The server's view of a bidirectional message exchange.

    ``receive`` raises an error wrapping :class:`EOFError` when the client is
    done sending.
    """

    def spec(self) -> Spec: ...

    def peer(self) -> Peer: ...

    def receive(self, msg: Any) -> None: ...

    def request_header(self) -> Headers: ...

    def send(self, msg: Any) -> None: ...

    def response_header(self) -> Headers: ...

    def response_trailer(self) -> Headers: ...


def receive_unary_response(
    conn: StreamingClientConn, message_type: Callable[[], T]
) -> Response[T]:
    """Receive exactly one message from ``conn`` and wrap it with metadata.

    The stream is read once more so that trailers arrive; a second message is
    an error.
    """
    msg = message_type()
    conn.receive(msg)
    try:
        conn.receive(message_type())
    except Exception as exc:
        if not is_end_of_stream(exc):
            raise ConnectError(Code.UNKNOWN, exc) from exc
    else:
        raise ConnectError(Code.UNKNOWN, ValueError("unary stream has multiple messages"))
    response: Response[T] = Response(msg)
    response._header = conn.response_header()
    response._trailer = conn.response_trailer()
    return response