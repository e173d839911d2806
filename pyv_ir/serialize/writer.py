from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence
import xml.etree.ElementTree as ET

from ..errors import UnsupportedNodeError, check
from ..ir.model_ir import Graph, Node, is_output, is_parameter
from ..ir.opset import OpSet
from ..ir.shape import PartialShape
from .attributes import XmlSerializer, is_exec_graph, visit_exec_graph_node
from .naming import UniqueNameAllocator, precision_name, translate_type_name
from .opset_resolver import get_opset_name
from .shape_resolver import ShapeResolver

logger = logging.getLogger(__name__)

IR_VERSION = "10"


@dataclass
class Edge:
    from_layer: int = 0
    from_port: int = 0
    to_layer: int = 0
    to_port: int = 0


def create_layer_ids(ordered_ops: Sequence[Node]) -> Dict[Node, int]:
    """Layer id of a node is its position in the topological order."""
    return {node: layer_id for layer_id, node in enumerate(ordered_ops)}


def create_edge_mapping(layer_ids: Mapping[Node, int], ordered_ops: Sequence[Node]) -> List[Edge]:
    """One edge per connected input, sorted by source layer.

    Ports of a layer are numbered inputs first, so an output port number is
    offset by the producer's input count.
    """
    edges: List[Edge] = []
    for node in ordered_ops:
        if is_parameter(node):
            continue

        for i in node.inputs:
            source_output = i.source
            source_node = source_output.node
            check(source_node in layer_ids, "Internal error: no layer id for ", source_node)
            check(node in layer_ids, "Internal error: no layer id for ", node)

            edges.append(Edge(
                from_layer=layer_ids[source_node],
                from_port=source_node.get_input_size() + source_output.index,
                to_layer=layer_ids[node],
                to_port=i.index,
            ))
    # sorted() is stable: edges from one layer keep their discovery order
    return sorted(edges, key=lambda e: e.from_layer)


def _append_dims(port: ET.Element, shape: PartialShape):
    for d in shape.to_shape():
        ET.SubElement(port, "dim").text = str(d)


def graph_to_irv10(graph: Graph, bin_data: BinaryIO,
                   custom_opsets: Optional[Mapping[str, OpSet]] = None) -> ET.Element:
    """Builds the IR v10 <net> document for `graph`, writing weights to `bin_data`."""
    exec_graph = is_exec_graph(graph)

    net = ET.Element("net")
    net.set("name", graph.friendly_name)
    net.set("version", IR_VERSION)
    layers = ET.SubElement(net, "layers")

    ordered_ops = graph.get_ordered_ops()
    layer_ids = create_layer_ids(ordered_ops)
    unique_names = UniqueNameAllocator()

    resolver = ShapeResolver()
    if resolver.resolve(graph):
        logger.info(f"Graph '{graph.friendly_name}' has dynamic shapes, serializing static bounds")

    for node in ordered_ops:
        check(node in layer_ids, "Internal error: no layer id for ", node)
        # <layers>
        layer = ET.SubElement(layers, "layer")
        layer.set("id", str(layer_ids[node]))
        layer.set("name", unique_names.allocate(node.friendly_name))
        layer.set("type", "")
        if not exec_graph:
            layer.set("version", get_opset_name(node, custom_opsets))

        # <layers/data>
        data = ET.Element("data")
        node_type_name = node.type_name
        if exec_graph:
            node_type_name = visit_exec_graph_node(data, node_type_name, node)
        else:
            visitor = XmlSerializer(data, bin_data, node_type_name)
            check(node.visit_attributes(visitor),
                  "Visitor API is not supported in ", node, error=UnsupportedNodeError)
            node_type_name = visitor.node_type_name
        layer.set("type", translate_type_name(node_type_name))
        if data.attrib:
            layer.append(data)

        port_id = 0
        # <layers/input>
        if node.inputs:
            input_el = ET.SubElement(layer, "input")
            for i in node.inputs:
                shape = resolver.partial_shape(i.source)
                check(shape.is_static, "Unsupported dynamic input shape in ", node)
                port = ET.SubElement(input_el, "port")
                port.set("id", str(port_id))
                port_id += 1
                _append_dims(port, shape)

        # <layers/output>
        if node.outputs and not is_output(node):
            output_el = ET.SubElement(layer, "output")
            for o in node.outputs:
                shape = resolver.partial_shape(o)
                check(shape.is_static, "Unsupported dynamic output shape in ", node)
                port = ET.SubElement(output_el, "port")
                port.set("id", str(port_id))
                port_id += 1
                port.set("precision", precision_name(resolver.element_type(o)))
                _append_dims(port, shape)

    # <edges>
    edges_el = ET.SubElement(net, "edges")
    edge_mapping = create_edge_mapping(layer_ids, ordered_ops)
    for e in edge_mapping:
        edge = ET.SubElement(edges_el, "edge")
        edge.set("from-layer", str(e.from_layer))
        edge.set("from-port", str(e.from_port))
        edge.set("to-layer", str(e.to_layer))
        edge.set("to-port", str(e.to_port))

    logger.debug(f"Built IR for '{graph.friendly_name}': {len(ordered_ops)} layers, {len(edge_mapping)} edges")
    return net
