"""Connect-style RPC primitives: codes, errors, headers, codecs, compression, envelopes and stream wrappers."""

__version__ = "0.1.0"

__all__ = [
    "buffer_pool",
    "client_streams",
    "code",
    "codec",
    "compression",
    "connect",
    "envelope",
    "errors",
    "handler_streams",
    "header",
    "idempotency",
]