"""The client's views of streaming RPCs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

from .connect import Peer, Response, Spec, StreamingClientConn, receive_unary_response
from .envelope import is_end_of_stream
from .header import Headers

Req = TypeVar("Req")
Res = TypeVar("Res")


def _close_quietly(conn: StreamingClientConn) -> None:
    try:
        conn.close_response()
    except Exception:
        pass


class ClientStreamForClient(Generic[Req, Res]):
    """The client's view of a client streaming RPC.

    When ``error`` is given, the stream could not be constructed and every
    operation raises it.
    """

    def __init__(
        self,
        conn: StreamingClientConn | None,
        message_type: Callable[[], Res],
        error: BaseException | None = None,
    ) -> None:
        self._conn = conn
        self._message_type = message_type
        self._error = error

    def _live_conn(self) -> StreamingClientConn:
        if self._error is not None:
            raise self._error
        assert self._conn is not None
        return self._conn

    def spec(self) -> Spec:
        """The specification for the RPC."""
        return self._live_conn().spec()

    def peer(self) -> Peer:
        """Describes the server for the RPC."""
        return self._live_conn().peer()

    def request_header(self) -> Headers:
        """The request headers, sent with the first call to :meth:`send`."""
        if self._error is not None:
            return {}
        return self._live_conn().request_header()

    def send(self, request: Req | None) -> None:
        """Send a message; the first call also sends the request headers.

        If the server has returned an error, this raises an error wrapping
        :class:`EOFError`; call :meth:`close_and_receive` to get the full error.
        """
        self._live_conn().send(request)

    def close_and_receive(self) -> Response[Res]:
        """Close the send side of the stream and wait for the response."""
        conn = self._live_conn()
        try:
            conn.close_request()
        except Exception:
            _close_quietly(conn)
            raise
        try:
            response = receive_unary_response(conn, self._message_type)
        except Exception:
            _close_quietly(conn)
            raise
        conn.close_response()
        return response

    def conn(self) -> StreamingClientConn:
        """The underlying connection."""
        return self._live_conn()


class ServerStreamForClient(Generic[Res]):
    """The client's view of a server streaming RPC."""

    def __init__(
        self,
        conn: StreamingClientConn | None,
        message_type: Callable[[], Res],
        error: BaseException | None = None,
    ) -> None:
        self._conn = conn
        self._message_type = message_type
        self._construct_error = error
        self._receive_error: BaseException | None = None
        self._msg: Res | None = None

    def _live_conn(self) -> StreamingClientConn:
        if self._construct_error is not None:
            raise self._construct_error
        assert self._conn is not None
        return self._conn

    def receive(self) -> bool:
        """Advance to the next message; False once the stream stops.

        Each call allocates a fresh message. After False, :meth:`err` reports
        any unexpected error.
        """
        if self._construct_error is not None or self._receive_error is not None:
            return False
        self._msg = self._message_type()
        try:
            self._live_conn().receive(self._msg)
        except Exception as exc:
            self._receive_error = exc
            return False
        return True

    def msg(self) -> Res:
        """The most recent message received."""
        if self._msg is None:
            self._msg = self._message_type()
        return self._msg

    def err(self) -> BaseException | None:
        """The first error that wasn't the end of the stream, if any."""
        if self._construct_error is not None:
            return self._construct_error
        if self._receive_error is not None and not is_end_of_stream(self._receive_error):
            return self._receive_error
        return None

    def response_header(self) -> Headers:
        """The headers received from the server."""
        if self._construct_error is not None:
            return {}
        return self._live_conn().response_header()

    def response_trailer(self) -> Headers:
        """The trailers received from the server, complete once the stream ends."""
        if self._construct_error is not None:
            return {}
        return self._live_conn().response_trailer()

    def close(self) -> None:
        """Close the receive side of the stream."""
        self._live_conn().close_response()

    def conn(self) -> StreamingClientConn:
        """The underlying connection."""
        return self._live_conn()


class BidiStreamForClient(Generic[Req, Res]):
    """The client's view of a bidirectional streaming RPC."""

    def __init__(
        self,
        conn: StreamingClientConn | None,
        message_type: Callable[[], Res],
        error: BaseException | None = None,
    ) -> None:
        self._conn = conn
        self._message_type = message_type
        self._error = error

    def _live_conn(self) -> StreamingClientConn:
        if self._error is not None:
            raise self._error
        assert self._conn is not None
        return self._conn

    def spec(self) -> Spec:
        """The specification for the RPC."""
        return self._live_conn().spec()

    def peer(self) -> Peer:
        """Describes the server for the RPC."""
        return self._live_conn().peer()

    def request_header(self) -> Headers:
        """The request headers, sent with the first call to :meth:`send`."""
        if self._error is not None:
            return {}
        return self._live_conn().request_header()

    def send(self, msg: Req | None) -> None:
        """Send a message; ``None`` sends only the request headers."""
        self._live_conn().send(msg)

    def close_request(self) -> None:
        """Close the send side of the stream."""
        self._live_conn().close_request()

    def receive(self) -> Res:
        """Receive a message; raises an error wrapping EOFError at the end."""
        conn = self._live_conn()
        msg = self._message_type()
        conn.receive(msg)
        return msg

    def close_response(self) -> None:
        """Close the receive side of the stream."""
        self._live_conn().close_response()

    def response_header(self) -> Headers:
        """The headers received from the server."""
        if self._error is not None:
            return {}
        return self._live_conn().response_header()

    def response_trailer(self) -> Headers:
        """The trailers received from the server, complete once the stream ends."""
        if self._error is not None:
            return {}
        return self._live_conn().response_trailer()

    def conn(self) -> StreamingClientConn:
        """The underlying connection."""
        return self._live_conn()