from __future__ import annotations
import itertools
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

from .element_type import ElementType
from .shape import PartialShape

if TYPE_CHECKING:
    from .ops import Parameter, Result


class Output:
    """An output port of a node. Owns the port's element type and shape."""

    def __init__(self, node: Node, index: int,
                 element_type: ElementType = ElementType.UNDEFINED,
                 partial_shape: Optional[PartialShape] = None):
        self.node = node
        self.index = index
        self.element_type = element_type
        self.partial_shape = partial_shape if partial_shape is not None else PartialShape.dynamic()
        self.targets: List[Input] = []

    def get_shape(self):
        return self.partial_shape.to_shape()

    def replace(self, replacement: Output):
        """Reconnects every consumer of this output to `replacement`."""
        for target in list(self.targets):
            target.set_source(replacement)

    def __repr__(self) -> str:
        return f"<Output {self.node.friendly_name}:{self.index} {self.element_type} {self.partial_shape}>"


class Input:
    """An input port of a node, connected to exactly one producer Output."""

    def __init__(self, node: Node, index: int, source: Output):
        self.node = node
        self.index = index
        self.source: Output = source
        source.targets.append(self)

    def set_source(self, source: Output):
        self.source.targets.remove(self)
        self.source = source
        source.targets.append(self)

    @property
    def element_type(self) -> ElementType:
        return self.source.element_type

    @property
    def partial_shape(self) -> PartialShape:
        return self.source.partial_shape

    def get_shape(self):
        return self.partial_shape.to_shape()


class Node:
    """Base class of every graph operation.

    Subclasses declare `type_name` and `version`, set their attributes, call
    `Node.__init__` with their arguments and then `validate_and_infer_types()`.
    """
    type_name = "Node"
    version = 0

    _instance_ids = itertools.count()

    def __init__(self, args: Sequence[Output] = (), output_size: int = 1, name: Optional[str] = None):
        for a in args:
            if not isinstance(a, Output):
                raise ValueError(f"{self.type_name} expects Output arguments, got {type(a).__name__}")
        self._instance_id = next(Node._instance_ids)
        self._friendly_name = name
        self.inputs: List[Input] = [Input(self, i, a) for i, a in enumerate(args)]
        self.outputs: List[Output] = [Output(self, i) for i in range(output_size)]
        self.rt_info: Dict[str, object] = {}

    @property
    def friendly_name(self) -> str:
        if self._friendly_name:
            return self._friendly_name
        return f"{self.type_name}_{self._instance_id}"

    @friendly_name.setter
    def friendly_name(self, name: str):
        self._friendly_name = name

    def output(self, index: int = 0) -> Output:
        return self.outputs[index]

    def input_value(self, index: int) -> Output:
        return self.inputs[index].source

    def input_values(self) -> List[Output]:
        return [i.source for i in self.inputs]

    def get_input_size(self) -> int:
        return len(self.inputs)

    def get_output_size(self) -> int:
        return len(self.outputs)

    def set_output_type(self, index: int, element_type: ElementType, partial_shape: PartialShape):
        out = self.outputs[index]
        out.element_type = ElementType(element_type)
        out.partial_shape = partial_shape

    def is_dynamic(self) -> bool:
        return any(o.partial_shape.is_dynamic for o in self.outputs)

    def validate_and_infer_types(self):
        pass

    def visit_attributes(self, visitor) -> bool:
        """Feeds every attribute to `visitor.on_attribute(name, value)`.

        Returns False for operations that do not support attribute visiting.
        """
        return False

    def constant_fold(self, input_values: Sequence[Output]) -> Optional[List[Output]]:
        """Evaluates the node on constant inputs.

        Returns one replacement Output per node output, or None when the node
        cannot be folded.
        """
        return None

    def clone_with_new_inputs(self, new_args: Sequence[Output]) -> Node:
        raise NotImplementedError(f"{self.type_name} does not support cloning")

    def __repr__(self) -> str:
        return f"<{self.type_name} '{self.friendly_name}'>"


def is_parameter(node: Node) -> bool:
    return node.type_name == "Parameter"


def is_output(node: Node) -> bool:
    return node.type_name == "Result"


def topological_sort(roots: Sequence[Node]) -> List[Node]:
    """Depth-first post-order over producers; every producer precedes its consumers."""
    order: List[Node] = []
    visited = set()
    for root in roots:
        if root in visited:
            continue
        visited.add(root)
        stack = [(root, iter(root.input_values()))]
        while stack:
            node, pending = stack[-1]
            for source in pending:
                producer = source.node
                if producer not in visited:
                    visited.add(producer)
                    stack.append((producer, iter(producer.input_values())))
                    break
            else:
                stack.pop()
                order.append(node)
    return order


class Graph:
    """A dataflow graph reachable from its parameters and results."""

    def __init__(self, results: Sequence[Result], parameters: Sequence[Parameter] = (), name: str = ""):
        for r in results:
            if not is_output(r):
                raise ValueError(f"Graph results must be Result nodes, got {r!r}")
        for p in parameters:
            if not is_parameter(p):
                raise ValueError(f"Graph parameters must be Parameter nodes, got {p!r}")
        self.results: List[Result] = list(results)
        self.parameters: List[Parameter] = list(parameters)
        self.friendly_name = name

    def get_ordered_ops(self) -> List[Node]:
        """Parameters first, then every node needed by the results, producers first."""
        return topological_sort(list(self.parameters) + list(self.results))

    def get_ops(self) -> List[Node]:
        return self.get_ordered_ops()

    def validate_nodes_and_infer_types(self):
        for node in self.get_ordered_ops():
            node.validate_and_infer_types()

    def __repr__(self) -> str:
        return f"<Graph '{self.friendly_name}' results={len(self.results)} parameters={len(self.parameters)}>"


def clone_graph(graph: Graph) -> Graph:
    """Returns a structural copy of `graph` whose ordered ops match the original's one for one."""
    mapping: Dict[Node, Node] = {}
    for node in graph.get_ordered_ops():
        new_args = [mapping[src.node].outputs[src.index] for src in node.input_values()]
        clone = node.clone_with_new_inputs(new_args)
        clone.friendly_name = node.friendly_name
        clone.rt_info = dict(node.rt_info)
        mapping[node] = clone
    return Graph(
        results=[mapping[r] for r in graph.results],
        parameters=[mapping[p] for p in graph.parameters],
        name=graph.friendly_name,
    )
