from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple

from ..errors import InternalError, check
from ..ir.element_type import ElementType
from ..ir.model_ir import Graph, Node, Output, clone_graph
from ..ir.ops import TensorIterator
from ..ir.shape import Dimension, PartialShape

logger = logging.getLogger(__name__)


def _subgraph(node: Node) -> Optional[Graph]:
    if isinstance(node, TensorIterator):
        return node.get_function()
    return None


def has_dynamic_shapes(graph: Graph) -> bool:
    """True if any output in the graph, or in a nested body, is not static."""
    for op in graph.get_ordered_ops():
        if op.is_dynamic():
            return True
        body = _subgraph(op)
        if body is not None and has_dynamic_shapes(body):
            return True
    return False


def dynamic_to_static(shape: PartialShape, node: Node) -> PartialShape:
    """Replaces every dynamic dimension by its upper bound.

    Shapes of dynamic rank are returned unchanged; the writer rejects them.
    """
    if shape.is_static or shape.rank_is_dynamic:
        return shape
    dims = []
    for d in shape:
        if d.is_static:
            dims.append(d)
            continue
        check(d.has_upper_bound,
              "Dynamic dimension without upper bound in ", node.friendly_name, " shape ", shape)
        dims.append(Dimension.static(d.get_max_length()))
    return PartialShape(dims)


class ShapeResolver:
    """Computes a static stand-in for every output of a graph with dynamic shapes.

    The graph itself is never touched: resolution runs on a clone, and the
    results are kept in an overlay keyed by the original graph's outputs.
    Outputs without an overlay entry are read from the graph as is.

    Each clone node is first constant folded; when folding is impossible its
    dynamic dimensions are replaced by their upper bounds. Folded and
    bounded shapes then flow to the consumers through normal type inference.

    The graph must not be mutated by anyone else while a resolver built on it
    is in use.
    """

    def __init__(self):
        self._overlay: Dict[Output, Tuple[ElementType, PartialShape]] = {}

    def resolve(self, graph: Graph) -> bool:
        """Fills the overlay for `graph`. Returns False if the graph was already static."""
        if not has_dynamic_shapes(graph):
            return False

        ops = graph.get_ordered_ops()
        clone = clone_graph(graph)
        clone_ops = clone.get_ordered_ops()
        check(len(ops) == len(clone_ops), "Unexpected get_ordered_ops method behaviour")

        for op, clone_op in zip(ops, clone_ops):
            body = _subgraph(op)
            if body is not None:
                self.resolve(body)

            try:
                clone_op.validate_and_infer_types()
            except ValueError as e:
                raise InternalError(
                    f"Shape inference failed on static bounds in {op.friendly_name}: {e}") from e

            replacements = clone_op.constant_fold(clone_op.input_values())
            if replacements is None:
                self._bound_outputs(op, clone_op)
            else:
                self._fold_outputs(op, clone_op, replacements)
        return True

    def _bound_outputs(self, op: Node, clone_op: Node):
        for i, out in enumerate(clone_op.outputs):
            static = dynamic_to_static(out.partial_shape, op)
            if static != out.partial_shape:
                logger.debug(f"{op.friendly_name}:{i} {out.partial_shape} -> {static} (upper bound)")
            clone_op.set_output_type(i, out.element_type, static)
            self._overlay[op.outputs[i]] = (out.element_type, static)

    def _fold_outputs(self, op: Node, clone_op: Node, replacements):
        logger.debug(f"{op.friendly_name} folded to a constant")
        for i, replacement in enumerate(replacements):
            self._overlay[op.outputs[i]] = (replacement.element_type, replacement.partial_shape)
            node_output = clone_op.outputs[i]
            if replacement is not node_output:
                node_output.replace(replacement)

    def element_type(self, output: Output) -> ElementType:
        if output in self._overlay:
            return self._overlay[output][0]
        return output.element_type

    def partial_shape(self, output: Output) -> PartialShape:
        if output in self._overlay:
            return self._overlay[output][1]
        return output.partial_shape

    def __len__(self) -> int:
        return len(self._overlay)
