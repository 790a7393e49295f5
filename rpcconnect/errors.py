"""RPC errors carrying a status code, metadata and protobuf details."""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections.abc import Iterator
from urllib.error import URLError

from google.protobuf import any_pb2, descriptor_pool, message_factory
from google.protobuf.message import Message

from .code import Code
from .header import Headers

DEFAULT_ANY_RESOLVER_PREFIX = "type.googleapis.com/"

_CANCELED_TYPES = (asyncio.CancelledError, concurrent.futures.CancelledError)
_DEADLINE_TYPES = (TimeoutError, asyncio.TimeoutError, concurrent.futures.TimeoutError)


class WrappedError(Exception):
    """An error whose message is prefixed onto the error it wraps."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class _NotModified(Exception):
    pass


# Signals Connect-protocol responses to GET requests to use 304 Not Modified.
_ERR_NOT_MODIFIED = _NotModified("not modified")


def not_modified_client_error() -> WrappedError:
    """Return the error a client reports for an HTTP 304 response."""
    return WrappedError(f"HTTP 304: {_ERR_NOT_MODIFIED}", _ERR_NOT_MODIFIED)


def _message_class(descriptor):
    get_class = getattr(message_factory, "GetMessageClass", None)
    if get_class is not None:
        return get_class(descriptor)
    return message_factory.MessageFactory().GetPrototype(descriptor)


class ErrorDetail:
    """A self-describing protobuf message attached to a :class:`ConnectError`."""

    def __init__(self, msg: Message) -> None:
        if isinstance(msg, any_pb2.Any):
            self._pb = msg
        else:
            packed = any_pb2.Any()
            packed.Pack(msg)
            self._pb = packed
        self._wire_json = ""

    @property
    def any_message(self) -> any_pb2.Any:
        """The detail as a ``google.protobuf.Any``."""
        return self._pb

    def type_name(self) -> str:
        """Fully-qualified protobuf message name, without the type URL host."""
        url = self._pb.type_url
        if url.startswith(DEFAULT_ANY_RESOLVER_PREFIX):
            return url[len(DEFAULT_ANY_RESOLVER_PREFIX):]
        return url

    def to_bytes(self) -> bytes:
        """A copy of the protobuf-serialized detail."""
        return bytes(self._pb.value)

    def value(self) -> Message:
        """Unmarshal the detail using the default descriptor pool."""
        full_name = self._pb.type_url.rsplit("/", 1)[-1]
        try:
            descriptor = descriptor_pool.Default().FindMessageTypeByName(full_name)
        except KeyError as exc:
            raise LookupError(f"unknown message type {full_name!r}") from exc
        message = _message_class(descriptor)()
        if not self._pb.Unpack(message):
            raise ValueError(f"cannot unpack detail of type {full_name!r}")
        return message

    def __repr__(self) -> str:
        return f"ErrorDetail({self.type_name()!r})"


class ConnectError(Exception):
    """An error annotated with a status code, metadata and optional details.

    The message of the underlying error is sent to clients.
    """

    def __init__(self, code: Code, cause: BaseException | None = None) -> None:
        super().__init__(code, cause)
        self.code = Code(code)
        self.cause = cause
        self.__cause__ = cause
        self._details: list[ErrorDetail] = []
        self._meta: Headers | None = None
        self._wire = False

    def __str__(self) -> str:
        message = self.message()
        if not message:
            return str(self.code)
        return f"{self.code}: {message}"

    def __repr__(self) -> str:
        return f"ConnectError({self.code!s}, {self.cause!r})"

    def message(self) -> str:
        """The underlying error's message, or an empty string."""
        if self.cause is None:
            return ""
        return str(self.cause)

    def details(self) -> list[ErrorDetail]:
        """The error's details."""
        return self._details

    def add_detail(self, detail: ErrorDetail) -> None:
        """Append a detail."""
        self._details.append(detail)

    def meta(self) -> Headers:
        """Key-value metadata sent alongside the error."""
        if self._meta is None:
            self._meta = {}
        return self._meta

    def _details_as_any(self) -> list[any_pb2.Any]:
        return [detail.any_message for detail in self._details]


def errorf(code: Code, message: str, cause: BaseException | None = None) -> ConnectError:
    """Build a coded error whose message wraps ``cause`` when given."""
    text = f"{message}: {cause}" if cause is not None else message
    return ConnectError(code, WrappedError(text, cause))


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def new_wire_error(code: Code, cause: BaseException | None) -> ConnectError:
    """Like :class:`ConnectError`, but marked as sent by the server."""
    err = ConnectError(code, cause)
    err._wire = True
    return err


def is_wire_error(err: BaseException | None) -> bool:
    """Whether the error was returned by the server rather than synthesized."""
    found = as_error(err)
    return found is not None and found._wire


def new_not_modified_error(headers: Headers | None) -> ConnectError:
    """An error telling a GET client that the resource hasn't changed."""
    err = ConnectError(Code.UNKNOWN, _ERR_NOT_MODIFIED)
    if headers is not None:
        err._meta = headers
    return err


def is_not_modified_error(err: BaseException | None) -> bool:
    """Whether the error indicates a 304 Not Modified response."""
    return any(link is _ERR_NOT_MODIFIED for link in _chain(err))


def code_of(err: BaseException | None) -> Code:
    """The code of the wrapped :class:`ConnectError`, or ``Code.UNKNOWN``."""
    found = as_error(err)
    if found is not None:
        return found.code
    return Code.UNKNOWN


def as_error(err: BaseException | None) -> ConnectError | None:
    """Find the first :class:`ConnectError` in the cause chain."""
    for link in _chain(err):
        if isinstance(link, ConnectError):
            return link
    return None


def wrap_if_uncoded(err: BaseException | None) -> BaseException | None:
    """Ensure the error carries a code, defaulting to ``Code.UNKNOWN``."""
    if err is None:
        return None
    maybe_coded = wrap_if_context_error(err)
    if as_error(maybe_coded) is not None:
        return maybe_coded
    return ConnectError(Code.UNKNOWN, maybe_coded)


def wrap_if_context_error(err: BaseException | None) -> BaseException | None:
    """Code cancellation and timeout errors that aren't already coded."""
    if err is None:
        return None
    if as_error(err) is not None:
        return err
    links = list(_chain(err))
    if any(isinstance(link, _CANCELED_TYPES) for link in links):
        return ConnectError(Code.CANCELED, err)
    if any(isinstance(link, _DEADLINE_TYPES) for link in links):
        return ConnectError(Code.DEADLINE_EXCEEDED, err)
    return err


def wrap_if_likely_h2c_not_configured_error(
    url_scheme: str | None, err: BaseException | None
) -> BaseException | None:
    """Explain errors that usually mean h2c is needed to reach a gRPC server."""
    if err is None:
        return None
    if as_error(err) is not None:
        return err
    if url_scheme is not None and url_scheme != "http":
        return err
    text = str(err)
    if text.startswith('Post "') and (
        "net/http: HTTP/1.x transport connection broken: malformed HTTP response" in text
        or text.endswith("write: broken pipe")
    ):
        return WrappedError(
            f"possible h2c configuration issue when talking to gRPC server: {text}", err
        )
    return err


def wrap_if_likely_with_grpc_not_used_error(err: BaseException | None) -> BaseException | None:
    """Explain errors that usually mean the gRPC client option is missing."""
    if err is None:
        return None
    if as_error(err) is not None:
        return err
    text = str(err)
    if (
        text.startswith('Post "')
        and "http2: Transport: cannot retry err" in text
        and text.endswith(
            "after Request.Body was written; define Request.GetBody to avoid this error"
        )
    ):
        return WrappedError(
            "possible missing gRPC client option when talking to gRPC server: " + text, err
        )
    return err


_RST_INTERNAL = frozenset(
    {
        "NO_ERROR",
        "PROTOCOL_ERROR",
        "INTERNAL_ERROR",
        "FLOW_CONTROL_ERROR",
        "SETTINGS_TIMEOUT",
        "FRAME_SIZE_ERROR",
        "COMPRESSION_ERROR",
        "CONNECT_ERROR",
    }
)


def wrap_if_rst_error(err: BaseException | None) -> BaseException | None:
    """Map HTTP/2 RST_STREAM errors received from the peer to RPC codes."""
    stream_prefix = "stream error: "
    peer_suffix = "; received from peer"
    if err is None:
        return None
    if as_error(err) is not None:
        return err
    if isinstance(err, URLError) and isinstance(err.reason, BaseException):
        err = err.reason
    text = str(err)
    if not text.startswith(stream_prefix) or not text.endswith(peer_suffix):
        return err
    text = text[: -len(peer_suffix)]
    index = text.rfind(";")
    if index < 0 or index >= len(text) - 1:
        return err
    name = text[index + 1:].strip()
    if name in _RST_INTERNAL:
        return ConnectError(Code.INTERNAL, err)
    if name == "REFUSED_STREAM":
        return ConnectError(Code.UNAVAILABLE, err)
    if name == "CANCEL":
        return ConnectError(Code.CANCELED, err)
    if name == "ENHANCE_YOUR_CALM":
        return ConnectError(
            Code.RESOURCE_EXHAUSTED, WrappedError(f"bandwidth exhausted: {err}", err)
        )
    if name == "INADEQUATE_SECURITY":
        return ConnectError(
            Code.PERMISSION_DENIED, WrappedError(f"transport protocol insecure: {err}", err)
        )
    return err