from __future__ import annotations
from typing import Mapping, Optional

from ..ir.model_ir import Node
from ..ir.opset import OpSet, builtin_opsets

EXPERIMENTAL = "experimental"


def get_opset_name(node: Node, custom_opsets: Optional[Mapping[str, OpSet]] = None) -> str:
    """Returns the version label written for `node`.

    The oldest built-in op-set that knows the node's type wins, since that is
    the first version guaranteed to read it; custom op-sets are only
    consulted, in mapping order, when no built-in one matches.
    """
    for opset in builtin_opsets():
        if opset.contains_op_type(node):
            return opset.name

    for name, opset in (custom_opsets or {}).items():
        if opset.contains_op_type(node):
            return name

    return EXPERIMENTAL
