from __future__ import annotations
from typing import Set

from ..errors import check
from ..ir.element_type import ElementType

# Operation type names whose IR spelling differs from the graph library's.
# Add new discrepancies here; callers go through translate_type_name only.
TYPE_NAME_TRANSLATIONS = {
    "Constant": "Const",
    "Relu": "ReLU",
    "Softmax": "SoftMax",
}

PRECISION_NAMES = {
    ElementType.UNDEFINED: "UNSPECIFIED",
    ElementType.F16: "FP16",
    ElementType.F32: "FP32",
    ElementType.BF16: "BF16",
    ElementType.F64: "FP64",
    ElementType.I8: "I8",
    ElementType.I16: "I16",
    ElementType.I32: "I32",
    ElementType.I64: "I64",
    ElementType.U8: "U8",
    ElementType.U16: "U16",
    ElementType.U32: "U32",
    ElementType.U64: "U64",
    ElementType.U1: "BIN",
    ElementType.BOOLEAN: "BOOL",
}


def translate_type_name(name: str) -> str:
    return TYPE_NAME_TRANSLATIONS.get(name, name)


def precision_name(element_type) -> str:
    name = PRECISION_NAMES.get(element_type)
    check(name is not None, "Unsupported precision: ", element_type)
    return name


class UniqueNameAllocator:
    """Hands out layer names that are unique within one serialized document.

    A name seen for the first time is returned as is; a repeated one gets the
    first free integer suffix ("conv", "conv0", "conv1", ...). This only exists
    because consumers of the IR reject duplicate layer names while the graph
    itself allows them.
    """

    def __init__(self):
        self._names: Set[str] = set()

    def allocate(self, candidate: str) -> str:
        name = candidate
        suffix = 0
        while name in self._names:
            name = f"{candidate}{suffix}"
            suffix += 1
        self._names.add(name)
        return name

    def __contains__(self, name: str) -> bool:
        return name in self._names
