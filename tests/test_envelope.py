import io

import pytest
from google.protobuf import wrappers_pb2

from rpcconnect.code import Code
from rpcconnect.compression import CompressionPool, GzipCompressor, GzipDecompressor
from rpcconnect.errors import ConnectError
from rpcconnect.envelope import (
    FLAG_ENVELOPE_COMPRESSED,
    Envelope,
    EnvelopeReader,
    EnvelopeWriter,
    SpecialEnvelopeError,
    is_end_of_stream,
)


def gzip_pool():
    return CompressionPool(GzipDecompressor, GzipCompressor)


def write_messages(*texts, **kwargs):
    sink = io.BytesIO()
    writer = EnvelopeWriter(sink, **kwargs)
    for text in texts:
        writer.marshal(wrappers_pb2.StringValue(value=text))
    return sink.getvalue()


def test_is_set():
    env = Envelope(b"", FLAG_ENVELOPE_COMPRESSED | 0x80)
    assert env.is_set(FLAG_ENVELOPE_COMPRESSED)
    assert env.is_set(0x80)
    assert not Envelope(b"", 0x80).is_set(FLAG_ENVELOPE_COMPRESSED)


def test_wire_format_of_uncompressed_envelope():
    sink = io.BytesIO()
    EnvelopeWriter(sink).write(Envelope(b"abc"))
    assert sink.getvalue() == b"\x00\x00\x00\x00\x03abc"


def test_round_trip_messages():
    wire = write_messages("one", "two")
    reader = EnvelopeReader(io.BytesIO(wire))
    got = []
    for _ in range(2):
        msg = wrappers_pb2.StringValue()
        reader.unmarshal(msg)
        got.append(msg.value)
    assert got == ["one", "two"]
    with pytest.raises(ConnectError) as info:
        reader.unmarshal(wrappers_pb2.StringValue())
    assert info.value.code == Code.UNKNOWN
    assert is_end_of_stream(info.value)


def test_compressed_round_trip():
    text = "x" * 200
    wire = write_messages(text, compression_pool=gzip_pool())
    assert wire[0] == FLAG_ENVELOPE_COMPRESSED
    reader = EnvelopeReader(io.BytesIO(wire), compression_pool=gzip_pool())
    msg = wrappers_pb2.StringValue()
    reader.unmarshal(msg)
    assert msg.value == text


def test_small_messages_skip_compression():
    wire = write_messages("hi", compression_pool=gzip_pool(), compress_min_bytes=1024)
    assert wire[0] == 0
    env = EnvelopeReader(io.BytesIO(wire)).read()
    assert env.data == wrappers_pb2.StringValue(value="hi").SerializeToString()


def test_compressed_without_pool_is_rejected():
    wire = write_messages("payload", compression_pool=gzip_pool())
    reader = EnvelopeReader(io.BytesIO(wire))
    with pytest.raises(ConnectError) as info:
        reader.unmarshal(wrappers_pb2.StringValue())
    assert info.value.code == Code.INVALID_ARGUMENT


def test_empty_standard_message_leaves_default():
    sink = io.BytesIO()
    EnvelopeWriter(sink).write(Envelope(b""))
    msg = wrappers_pb2.StringValue(value="keep")
    EnvelopeReader(io.BytesIO(sink.getvalue())).unmarshal(msg)
    assert msg.value == "keep"


def test_send_max_bytes():
    sink = io.BytesIO()
    writer = EnvelopeWriter(sink, send_max_bytes=3)
    with pytest.raises(ConnectError) as info:
        writer.write(Envelope(b"abcd"))
    assert info.value.code == Code.RESOURCE_EXHAUSTED
    assert sink.getvalue() == b""


def test_send_max_bytes_after_compression():
    writer = EnvelopeWriter(io.BytesIO(), compression_pool=gzip_pool(), send_max_bytes=5)
    with pytest.raises(ConnectError) as info:
        writer.write(Envelope(b"a" * 100))
    assert info.value.code == Code.RESOURCE_EXHAUSTED


def test_read_max_bytes_discards_message():
    wire = write_messages("too long for the limit", "ok")
    reader = EnvelopeReader(io.BytesIO(wire), read_max_bytes=10)
    with pytest.raises(ConnectError) as info:
        reader.unmarshal(wrappers_pb2.StringValue())
    assert info.value.code == Code.RESOURCE_EXHAUSTED
    msg = wrappers_pb2.StringValue()
    reader.unmarshal(msg)
    assert msg.value == "ok"


def test_incomplete_prefix():
    reader = EnvelopeReader(io.BytesIO(b"\x00\x00"))
    with pytest.raises(ConnectError) as info:
        reader.read()
    assert info.value.code == Code.INVALID_ARGUMENT
    assert not is_end_of_stream(info.value)


def test_truncated_body():
    reader = EnvelopeReader(io.BytesIO(b"\x00\x00\x00\x00\x05ab"))
    with pytest.raises(ConnectError) as info:
        reader.read()
    assert info.value.code == Code.INVALID_ARGUMENT
    assert "promised 5 bytes" in str(info.value)


def test_special_flags_keep_last_envelope():
    sink = io.BytesIO()
    EnvelopeWriter(sink).write(Envelope(b"trailer", 0x80))
    reader = EnvelopeReader(io.BytesIO(sink.getvalue()))
    with pytest.raises(SpecialEnvelopeError) as info:
        reader.unmarshal(wrappers_pb2.StringValue())
    assert is_end_of_stream(info.value)
    assert info.value.code == Code.UNKNOWN
    assert reader.last == Envelope(b"trailer", 0x80)


def test_unmarshal_garbage():
    sink = io.BytesIO()
    EnvelopeWriter(sink).write(Envelope(b"\xff\xff\xff"))
    with pytest.raises(ConnectError) as info:
        EnvelopeReader(io.BytesIO(sink.getvalue())).unmarshal(wrappers_pb2.StringValue())
    assert info.value.code == Code.INVALID_ARGUMENT


def test_marshal_non_proto():
    with pytest.raises(ConnectError) as info:
        EnvelopeWriter(io.BytesIO()).marshal(object())
    assert info.value.code == Code.INTERNAL


class _FailingWriter:
    def __init__(self, exc):
        self.exc = exc

    def write(self, data):
        raise self.exc


def test_writer_connect_error_passes_through():
    original = ConnectError(Code.CANCELED)
    with pytest.raises(ConnectError) as info:
        EnvelopeWriter(_FailingWriter(original)).write(Envelope(b"x"))
    assert info.value is original


def test_writer_os_error_is_coded_unknown():
    with pytest.raises(ConnectError) as info:
        EnvelopeWriter(_FailingWriter(OSError("broken"))).write(Envelope(b"x"))
    assert info.value.code == Code.UNKNOWN
    assert "broken" in str(info.value)


def test_marshal_none_writes_nothing():
    sink = io.BytesIO()
    EnvelopeWriter(sink).marshal(None)
    assert sink.getvalue() == b""


def test_is_end_of_stream_on_plain_error():
    assert not is_end_of_stream(ValueError("nope"))
    assert is_end_of_stream(EOFError())