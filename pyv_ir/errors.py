from __future__ import annotations


class SerializationError(Exception):
    """Base class for every error raised while serializing a graph."""


class PreconditionError(SerializationError, ValueError):
    """Bad arguments detected before any file is touched."""


class UnsupportedVersionError(PreconditionError):
    pass


class InternalError(SerializationError, RuntimeError):
    """A broken invariant somewhere in the pipeline. Never recovered from."""


class UnsupportedNodeError(InternalError):
    pass


def check(condition: bool, *message, error=InternalError):
    """Raises `error` built from the message parts unless `condition` holds."""
    if not condition:
        raise error("".join(str(m) for m in message))
