from __future__ import annotations
from enum import Enum

import numpy as np


class ElementType(str, Enum):
    """Element types a tensor port can carry."""

    UNDEFINED = "undefined"

    # Floating point
    F16 = "f16"
    F32 = "f32"
    BF16 = "bf16"
    F64 = "f64"

    # Signed integers
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"

    # Unsigned integers
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"

    # 1-bit packed and boolean
    U1 = "u1"
    BOOLEAN = "boolean"

    def __str__(self) -> str:
        return self.value

    @property
    def is_real(self) -> bool:
        return self in (ElementType.F16, ElementType.F32, ElementType.BF16, ElementType.F64)

    def to_numpy(self) -> np.dtype:
        """Returns the numpy dtype used to hold values of this type in memory.

        bf16 has no numpy counterpart and is kept as its raw 16-bit pattern;
        u1 values are held unpacked as uint8 and packed only when serialized.
        """
        try:
            return np.dtype(_NUMPY_STORAGE[self])
        except KeyError as e:
            raise ValueError(f"Element type '{self.value}' has no numpy storage") from e

    @classmethod
    def from_numpy(cls, dtype) -> ElementType:
        dtype = np.dtype(dtype)
        for et, name in _NUMPY_NATIVE.items():
            if np.dtype(name) == dtype:
                return et
        raise ValueError(f"Unsupported numpy dtype: {dtype}")


# Types with an exact numpy equivalent
_NUMPY_NATIVE = {
    ElementType.F16: "float16",
    ElementType.F32: "float32",
    ElementType.F64: "float64",
    ElementType.I8: "int8",
    ElementType.I16: "int16",
    ElementType.I32: "int32",
    ElementType.I64: "int64",
    ElementType.U8: "uint8",
    ElementType.U16: "uint16",
    ElementType.U32: "uint32",
    ElementType.U64: "uint64",
    ElementType.BOOLEAN: "bool",
}

_NUMPY_STORAGE = dict(_NUMPY_NATIVE)
_NUMPY_STORAGE.update({
    ElementType.BF16: "uint16",
    ElementType.U1: "uint8",
})
