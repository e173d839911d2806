from __future__ import annotations
from typing import BinaryIO
import xml.etree.ElementTree as ET

import numpy as np

from ..errors import InternalError
from ..ir.attribute import AttributeKind, AttributeValue
from ..ir.model_ir import Graph, Node
from .naming import translate_type_name

# rt_info key whose presence marks an execution-statistics graph
EXEC_TIME_KEY = "execTimeMcs"
# rt_info key that carries the layer type in execution-statistics graphs
LAYER_TYPE_KEY = "layerType"

GENERIC_IE_TYPE = "GenericIE"
GENERIC_IE_TYPE_ATTR = "__generic_ie_type__"


def join(values, glue: str = ", ") -> str:
    return glue.join(values)


def _format_number(v) -> str:
    """Shortest text that reads back to `v`, with an exponent outside [1e-4, 1e16)."""
    if v == 0 or 1e-4 <= abs(v) < 1e16 or not np.isfinite(v):
        return np.format_float_positional(v, trim="-")
    return np.format_float_scientific(v, trim="-", exp_digits=2)


def _format_double(v: float) -> str:
    return _format_number(np.float64(v))


def _format_float(v: float) -> str:
    return _format_number(np.float32(v))


class XmlSerializer:
    """Renders a node's attributes into its <data> element and the weights stream.

    `node_type_name` may be rewritten while visiting (GenericIE layers carry
    their real type as an attribute); read it back after the visit.
    """

    def __init__(self, data: ET.Element, bin_data: BinaryIO, node_type_name: str):
        self.data = data
        self.bin_data = bin_data
        self.node_type_name = node_type_name

    def on_attribute(self, name: str, value: AttributeValue):
        kind = value.kind
        if kind is AttributeKind.BOOL:
            self.data.set(name, "true" if value.value else "false")
        elif kind is AttributeKind.STRING:
            self._on_string(name, value.value)
        elif kind is AttributeKind.INT64:
            self.data.set(name, str(value.value))
        elif kind is AttributeKind.DOUBLE:
            self.data.set(name, _format_double(value.value))
        elif kind in (AttributeKind.INT64_LIST, AttributeKind.UINT64_LIST):
            self.data.set(name, join(str(v) for v in value.value))
        elif kind is AttributeKind.FLOAT_LIST:
            self.data.set(name, join(_format_float(v) for v in value.value))
        elif kind is AttributeKind.STRING_LIST:
            self.data.set(name, join(value.value))
        elif kind is AttributeKind.BUFFER:
            self._on_buffer(name, value.value)
        elif kind is AttributeKind.OPAQUE:
            pass
        else:
            raise InternalError(f"Unsupported attribute kind {kind} for '{name}'")

    def _on_string(self, name: str, value: str):
        if self.node_type_name == GENERIC_IE_TYPE and name == GENERIC_IE_TYPE_ATTR:
            # holds the layer type, not layer data
            self.node_type_name = value
        else:
            self.data.set(name, value)

    def _on_buffer(self, name: str, payload: bytes):
        if name != "value" or translate_type_name(self.node_type_name) != "Const":
            return
        offset = self.bin_data.tell()
        self.data.set("offset", str(offset))
        self.data.set("size", str(len(payload)))
        self.bin_data.write(payload)


def visit_exec_graph_node(data: ET.Element, node_type_name: str, node: Node) -> str:
    """Renders the string runtime info of an execution-statistics node.

    Returns the node type name, overridden by the `layerType` entry if present.
    """
    for name, value in node.rt_info.items():
        if not isinstance(value, str):
            continue
        if name == LAYER_TYPE_KEY:
            node_type_name = value
        else:
            data.set(name, value)
    return node_type_name


def is_exec_graph(graph: Graph) -> bool:
    """True when any operation carries collected execution statistics."""
    return any(EXEC_TIME_KEY in op.rt_info for op in graph.get_ops())
