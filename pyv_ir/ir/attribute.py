from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable


class AttributeKind(Enum):
    """The closed set of value kinds an operation attribute can hold."""
    BOOL = "bool"
    STRING = "string"
    INT64 = "int64"
    DOUBLE = "double"
    INT64_LIST = "int64_list"
    UINT64_LIST = "uint64_list"
    FLOAT_LIST = "float_list"
    STRING_LIST = "string_list"
    BUFFER = "buffer"
    # Values with no persisted form, e.g. the body of a sub-graph operation
    OPAQUE = "opaque"


_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MAX = (1 << 64) - 1


def _int64(v) -> int:
    v = int(v)
    if not _INT64_MIN <= v <= _INT64_MAX:
        raise ValueError(f"Value {v} does not fit in int64")
    return v


def _uint64(v) -> int:
    v = int(v)
    if not 0 <= v <= _UINT64_MAX:
        raise ValueError(f"Value {v} does not fit in uint64")
    return v


@dataclass(frozen=True)
class AttributeValue:
    """A single attribute value tagged with its kind.

    Build values through the classmethods so the payload always matches the kind.
    """
    kind: AttributeKind
    value: Any

    @classmethod
    def boolean(cls, v: bool) -> AttributeValue:
        return cls(AttributeKind.BOOL, bool(v))

    @classmethod
    def string(cls, v: str) -> AttributeValue:
        return cls(AttributeKind.STRING, str(v))

    @classmethod
    def int64(cls, v: int) -> AttributeValue:
        return cls(AttributeKind.INT64, _int64(v))

    @classmethod
    def double(cls, v: float) -> AttributeValue:
        return cls(AttributeKind.DOUBLE, float(v))

    @classmethod
    def int64_list(cls, v: Iterable[int]) -> AttributeValue:
        return cls(AttributeKind.INT64_LIST, tuple(_int64(x) for x in v))

    @classmethod
    def uint64_list(cls, v: Iterable[int]) -> AttributeValue:
        return cls(AttributeKind.UINT64_LIST, tuple(_uint64(x) for x in v))

    @classmethod
    def float_list(cls, v: Iterable[float]) -> AttributeValue:
        return cls(AttributeKind.FLOAT_LIST, tuple(float(x) for x in v))

    @classmethod
    def string_list(cls, v: Iterable[str]) -> AttributeValue:
        return cls(AttributeKind.STRING_LIST, tuple(str(x) for x in v))

    @classmethod
    def buffer(cls, v: bytes) -> AttributeValue:
        return cls(AttributeKind.BUFFER, bytes(v))

    @classmethod
    def opaque(cls, v: Any) -> AttributeValue:
        return cls(AttributeKind.OPAQUE, v)
