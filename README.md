# rpcconnect

This package holds building blocks for RPC over HTTP in the Connect style. Its
status codes, error model and 5-byte message framing are the ones used by
Connect, gRPC and gRPC-Web.

## Modules

- `rpcconnect.code`: `Code` holds the protocol's error codes. `str(code)` gives
  the canonical text, such as `"not_found"`, and `Code.marshal_text()` gives the
  same text as bytes. `Code.from_text` parses the text back. A code outside the
  canonical range is written as `"code_<n>"`.
- `rpcconnect.idempotency`: `IdempotencyLevel` has the members `UNKNOWN`,
  `NO_SIDE_EFFECTS` and `IDEMPOTENT`.
- `rpcconnect.errors`: `ConnectError` is an exception with a code, an optional
  cause, metadata headers (`meta()`) and protobuf details (`ErrorDetail`). The
  module also provides these helpers:
  - `code_of`, `as_error`
  - `new_wire_error`, `is_wire_error`
  - `new_not_modified_error`, `is_not_modified_error`
  - `wrap_if_uncoded`, `wrap_if_context_error`, `wrap_if_rst_error`
- `rpcconnect.header`: unpadded base64 for binary headers with
  `encode_binary_header` and `decode_binary_header`. It also has helpers for
  header dicts of the form `dict[str, list[str]]`: `merge_headers`,
  `get_header`, `set_header`, `add_header` and `del_header`.
- `rpcconnect.codec`: `ProtoBinaryCodec` and `ProtoJSONCodec`, each with
  `marshal_stable`, and the `Codecs` registry.
- `rpcconnect.compression`: `CompressionPool` keeps reusable compressors and
  decompressors, and `decompress` takes an optional size limit. The module
  provides `GzipCompressor` and `GzipDecompressor`, and `CompressionPools` maps
  names to pools.
- `rpcconnect.buffer_pool`: `BufferPool` is a thread-safe pool of reusable
  `bytearray` buffers.
- `rpcconnect.envelope`: `EnvelopeWriter` and `EnvelopeReader` write and read
  length-prefixed messages. They compress when asked to and enforce
  send and read size limits.
- `rpcconnect.connect`: `Request`, `Response`, `Spec`, `Peer` and `StreamType`.
  It also defines the `StreamingClientConn` and `StreamingHandlerConn`
  protocols, and `receive_unary_response`.
- `rpcconnect.client_streams`: `ClientStreamForClient`, `ServerStreamForClient`
  and `BidiStreamForClient` wrap a `StreamingClientConn`.
- `rpcconnect.handler_streams`: `ClientStream`, `ServerStream` and `BidiStream`
  wrap a `StreamingHandlerConn`.

## Installation

```
pip install rpcconnect
```

## Examples

Error codes:

```python
from rpcconnect.code import Code

assert str(Code.NOT_FOUND) == "not_found"
assert Code.from_text("not_found") is Code.NOT_FOUND
```

Errors:

```python
from rpcconnect.code import Code
from rpcconnect.errors import ConnectError, code_of

err = ConnectError(Code.UNAVAILABLE, ValueError("backend down"))
assert str(err) == "unavailable: backend down"
assert code_of(err) is Code.UNAVAILABLE
```

Binary headers:

```python
from rpcconnect.header import encode_binary_header, decode_binary_header

encoded = encode_binary_header(b"\x00\x01\x02")
assert decode_binary_header(encoded) == b"\x00\x01\x02"
```

Framing a protobuf message:

```python
import io

from google.protobuf.wrappers_pb2 import StringValue
from rpcconnect.envelope import EnvelopeReader, EnvelopeWriter

stream = io.BytesIO()
EnvelopeWriter(stream).marshal(StringValue(value="hi"))
stream.seek(0)

received = StringValue()
EnvelopeReader(stream).unmarshal(received)
assert received.value == "hi"
```

Gzip compression:

```python
from rpcconnect.compression import CompressionPool, GzipCompressor, GzipDecompressor

pool = CompressionPool(GzipDecompressor, GzipCompressor)
payload = b"hello" * 100
assert pool.decompress(pool.compress(payload)) == payload
```

When a `read_max_bytes` limit is passed to `decompress` and the output is
larger, it raises a `ConnectError` with `Code.RESOURCE_EXHAUSTED`.

## What this package does not do

The package does no networking:

- It has no HTTP client that calls procedures.
- It has no server or request handler that serves them.
- It implements no protocol negotiation.
- It has no code generator for service definitions.

The stream wrappers work with any object that implements
`StreamingClientConn` or `StreamingHandlerConn`. You must supply that
connection yourself.

## Running the tests

```
pip install -e ".[test]"
pytest
```