from dataclasses import dataclass

import pytest

from rpcconnect.code import Code
from rpcconnect.connect import Peer, Spec, StreamType
from rpcconnect.envelope import is_end_of_stream
from rpcconnect.errors import ConnectError
from rpcconnect.handler_streams import BidiStream, ClientStream, ServerStream


@dataclass
class Box:
    value: int = 0


class FakeHandlerConn:
    def __init__(self, values=(), receive_error=None):
        self.values = list(values)
        self.receive_error = receive_error
        self.sent = []
        self.request_headers = {"Grpc-Timeout": ["1S"]}
        self.response_headers = {}
        self.response_trailers = {}

    def spec(self):
        return Spec(stream_type=StreamType.CLIENT, procedure="/svc/Upload")

    def peer(self):
        return Peer(addr="127.0.0.1:5000", protocol="grpc")

    def receive(self, msg):
        if self.values:
            msg.value = self.values.pop(0)
            return
        if self.receive_error is not None:
            raise self.receive_error
        raise ConnectError(Code.UNKNOWN, EOFError("EOF"))

    def request_header(self):
        return self.request_headers

    def send(self, msg):
        self.sent.append(msg)

    def response_header(self):
        return self.response_headers

    def response_trailer(self):
        return self.response_trailers


class NopHandlerConn(FakeHandlerConn):
    def receive(self, msg):
        return None


def test_client_stream_iterator_allocates_new_messages():
    stream = ClientStream(NopHandlerConn(), Box)
    assert stream.receive() is True
    first = stream.msg()
    assert stream.receive() is True
    second = stream.msg()
    assert first is not second


def test_client_stream_reads_until_eof():
    stream = ClientStream(FakeHandlerConn(values=[4, 5]), Box)
    received = []
    while stream.receive():
        received.append(stream.msg().value)
    assert received == [4, 5]
    assert stream.err() is None
    assert stream.receive() is False


def test_client_stream_reports_unexpected_error():
    failure = ConnectError(Code.DATA_LOSS, ValueError("corrupt"))
    stream = ClientStream(FakeHandlerConn(receive_error=failure), Box)
    assert stream.receive() is False
    assert stream.err() is failure


def test_client_stream_msg_before_receive_is_default():
    stream = ClientStream(FakeHandlerConn(), Box)
    assert stream.msg() == Box()


def test_client_stream_delegates_metadata():
    conn = FakeHandlerConn()
    stream = ClientStream(conn, Box)
    assert stream.spec().procedure == "/svc/Upload"
    assert stream.peer().addr == "127.0.0.1:5000"
    assert stream.request_header() == {"Grpc-Timeout": ["1S"]}
    assert stream.conn() is conn


def test_server_stream_sends_and_exposes_headers():
    conn = FakeHandlerConn()
    stream = ServerStream(conn)
    stream.response_header()["X-Header"] = ["one"]
    stream.response_trailer()["X-Trailer"] = ["two"]
    stream.send(Box(1))
    stream.send(None)
    assert conn.sent == [Box(1), None]
    assert conn.response_headers == {"X-Header": ["one"]}
    assert conn.response_trailers == {"X-Trailer": ["two"]}
    assert stream.conn() is conn


def test_bidi_stream_round_trip():
    conn = FakeHandlerConn(values=[8])
    stream = BidiStream(conn, Box)
    assert stream.receive() == Box(8)
    with pytest.raises(ConnectError) as info:
        stream.receive()
    assert is_end_of_stream(info.value)
    stream.send(Box(9))
    assert conn.sent == [Box(9)]
    assert stream.spec().stream_type == StreamType.CLIENT
    assert stream.peer().protocol == "grpc"
    assert stream.request_header() == {"Grpc-Timeout": ["1S"]}
    assert stream.response_header() is conn.response_headers
    assert stream.response_trailer() is conn.response_trailers
    assert stream.conn() is conn