"""The handler's views of streaming RPCs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

from .connect import Peer, Spec, StreamingHandlerConn
from .envelope import is_end_of_stream
from .header import Headers

Req = TypeVar("Req")
Res = TypeVar("Res")


class ClientStream(Generic[Req]):
    """The handler's view of a client streaming RPC."""

    def __init__(self, conn: StreamingHandlerConn, message_type: Callable[[], Req]) -> None:
        self._conn = conn
        self._message_type = message_type
        self._msg: Req | None = None
        self._error: BaseException | None = None

    def spec(self) -> Spec:
        """The specification for the RPC."""
        return self._conn.spec()

    def peer(self) -> Peer:
        """Describes the client for this RPC."""
        return self._conn.peer()

    def request_header(self) -> Headers:
        """The headers received from the client."""
        return self._conn.request_header()

    def receive(self) -> bool:
        """Advance to the next message; False once the stream stops.

        Each call allocates a fresh message. After False, :meth:`err` reports
        any unexpected error.
        """
        if self._error is not None:
            return False
        self._msg = self._message_type()
        try:
            self._conn.receive(self._msg)
        except Exception as exc:
            self._error = exc
            return False
        return True

    def msg(self) -> Req:
        """The most recent message received."""
        if self._msg is None:
            self._msg = self._message_type()
        return self._msg

    def err(self) -> BaseException | None:
        """The first error that wasn't the end of the stream, if any."""
        if self._error is None or is_end_of_stream(self._error):
            return None
        return self._error

    def conn(self) -> StreamingHandlerConn:
        """The underlying connection."""
        return self._conn


class ServerStream(Generic[Res]):
    """The handler's view of a server streaming RPC."""

    def __init__(self, conn: StreamingHandlerConn) -> None:
        self._conn = conn

    def response_header(self) -> Headers:
        """The response headers, sent with the first call to :meth:`send`."""
        return self._conn.response_header()

    def response_trailer(self) -> Headers:
        """The response trailers, writable until the handler returns."""
        return self._conn.response_trailer()

    def send(self, msg: Res | None) -> None:
        """Send a message; the first call also sends the response headers."""
        self._conn.send(msg)

    def conn(self) -> StreamingHandlerConn:
        """The underlying connection."""
        return self._conn


class BidiStream(Generic[Req, Res]):
    """The handler's view of a bidirectional streaming RPC."""

    def __init__(self, conn: StreamingHandlerConn, message_type: Callable[[], Req]) -> None:
        self._conn = conn
        self._message_type = message_type

    def spec(self) -> Spec:
        """The specification for the RPC."""
        return self._conn.spec()

    def peer(self) -> Peer:
        """Describes the client for this RPC."""
        return self._conn.peer()

    def request_header(self) -> Headers:
        """The headers received from the client."""
        return self._conn.request_header()

    def receive(self) -> Req:
        """Receive a message; raises an error wrapping EOFError at the end."""
        msg = self._message_type()
        self._conn.receive(msg)
        return msg

    def response_header(self) -> Headers:
        """The response headers, sent with the first call to :meth:`send`."""
        return self._conn.response_header()

    def response_trailer(self) -> Headers:
        """The response trailers, writable until the handler returns."""
        return self._conn.response_trailer()

    def send(self, msg: Res | None) -> None:
        """Send a message; the first call also sends the response headers."""
        self._conn.send(msg)

    def conn(self) -> StreamingHandlerConn:
        """The underlying connection."""
        return self._conn