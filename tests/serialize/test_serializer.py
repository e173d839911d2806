import xml.etree.ElementTree as ET
from pathlib import Path

import numpy as np
import pytest

from pyv_ir.errors import InternalError, PreconditionError, UnsupportedNodeError, UnsupportedVersionError
from pyv_ir.ir.attribute import AttributeValue
from pyv_ir.ir.element_type import ElementType
from pyv_ir.ir.model_ir import Graph, Node
from pyv_ir.ir.ops import Constant, GenericIE, NonZero, Parameter, Relu, Result
from pyv_ir.ir.opset import OpSet
from pyv_ir.ir.shape import Dimension, PartialShape
from pyv_ir.serialize.serializer import Serialize, Version, provide_bin_path, serialize


def _layers(root):
    return root.find("layers").findall("layer")


def _layer(root, name):
    return next(l for l in _layers(root) if l.get("name") == name)


def _dims(port):
    return [int(d.text) for d in port.findall("dim")]


def _edges(root):
    return [
        (int(e.get("from-layer")), int(e.get("from-port")), int(e.get("to-layer")), int(e.get("to-port")))
        for e in root.find("edges").findall("edge")
    ]


def _output_shapes(graph):
    return {(op.friendly_name, o.index): (o.element_type, o.partial_shape)
            for op in graph.get_ordered_ops() for o in op.outputs}


class MyOp(Node):
    type_name = "MyOp"

    def __init__(self, arg, name=None):
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        self.set_output_type(0, self.inputs[0].element_type, self.inputs[0].partial_shape)

    def visit_attributes(self, visitor):
        visitor.on_attribute("alpha", AttributeValue.double(0.5))
        return True


class NoVisitOp(MyOp):
    type_name = "NoVisitOp"

    def visit_attributes(self, visitor):
        return False


def test_round_trip_const_relu_result(tmp_path: Path, const_relu_graph, weights):
    """Serializes Const -> Relu -> Result and reads both files back."""
    # given
    xml_path = tmp_path / "model.xml"
    bin_path = tmp_path / "model.bin"

    # when
    serialize(const_relu_graph, str(xml_path), str(bin_path))

    # then
    root = ET.parse(xml_path).getroot()
    assert root.tag == "net"
    assert root.get("name") == "const_relu"
    assert root.get("version") == "10"

    layers = _layers(root)
    assert [int(l.get("id")) for l in layers] == [0, 1, 2]
    assert [l.get("type") for l in layers] == ["Const", "ReLU", "Result"]
    assert all(l.get("version") == "opset1" for l in layers)

    data = layers[0].find("data")
    assert data.get("element_type") == "f32"
    assert data.get("shape") == "2, 3"
    offset, size = int(data.get("offset")), int(data.get("size"))
    assert size == weights.nbytes
    assert bin_path.read_bytes()[offset:offset + size] == weights.tobytes()

    # Relu has no attributes at all
    assert layers[1].find("data") is None

    assert _edges(root) == [(0, 0, 1, 0), (1, 1, 2, 0)]

    # Result layers only have inputs
    result = layers[2]
    assert result.find("output") is None
    assert _dims(result.find("input").find("port")) == [2, 3]

    relu_out = layers[1].find("output").find("port")
    assert relu_out.get("id") == "1"
    assert relu_out.get("precision") == "FP32"


def test_bin_path_is_derived_from_xml_path(tmp_path: Path, const_relu_graph):
    # given
    xml_path = tmp_path / "net.xml"

    # when
    serialize(const_relu_graph, str(xml_path))

    # then
    assert (tmp_path / "net.bin").exists()
    assert provide_bin_path("out/net.xml") == "out/net.bin"
    assert provide_bin_path("out/net.xml", "weights.bin") == "weights.bin"


def test_run_on_function_reports_graph_unchanged(tmp_path: Path, const_relu_graph):
    assert Serialize(str(tmp_path / "m.xml")).run_on_function(const_relu_graph) is False


@pytest.mark.parametrize("path, message", [
    (".xml", "too short"),
    ("abc", "too short"),
    ("model.onnx", "'xml' extension"),
])
def test_invalid_xml_path(path, message):
    with pytest.raises(PreconditionError, match=message):
        Serialize(path)


def test_unsupported_version_fails_before_io(tmp_path: Path):
    # when/then
    with pytest.raises(UnsupportedVersionError, match="Unsupported IR version"):
        Serialize(str(tmp_path / "model.xml"), version=11)
    assert not (tmp_path / "model.bin").exists()
    assert Serialize(str(tmp_path / "model.xml"), version=10).version is Version.IR_V10


def test_unwritable_bin_path_raises_os_error(tmp_path: Path, const_relu_graph):
    missing_dir = tmp_path / "missing"
    with pytest.raises(OSError):
        serialize(const_relu_graph, str(tmp_path / "model.xml"), str(missing_dir / "model.bin"))


def test_unwritable_xml_path_raises_os_error(tmp_path: Path, const_relu_graph):
    with pytest.raises(OSError):
        serialize(const_relu_graph, str(tmp_path / "missing" / "model.xml"), str(tmp_path / "model.bin"))


def test_duplicate_names_get_suffixes(tmp_path: Path):
    # given
    x = Parameter(ElementType.F32, [1, 8], name="conv")
    a = Relu(x.output(0), name="conv")
    b = Relu(a.output(0), name="conv")
    graph = Graph(results=[Result(b.output(0), name="out")], parameters=[x])

    # when
    serialize(graph, str(tmp_path / "model.xml"))

    # then
    names = [l.get("name") for l in _layers(ET.parse(tmp_path / "model.xml").getroot())]
    assert names == ["conv", "conv0", "conv1", "out"]
    assert len(set(names)) == len(names)


def test_dynamic_dimension_serialized_as_upper_bound(tmp_path: Path):
    # given
    x = Parameter(ElementType.F32, [2, Dimension(1, 10)], name="x")
    relu = Relu(x.output(0), name="relu")
    graph = Graph(results=[Result(relu.output(0), name="y")], parameters=[x])
    before = _output_shapes(graph)

    # when
    serialize(graph, str(tmp_path / "model.xml"))

    # then
    root = ET.parse(tmp_path / "model.xml").getroot()
    assert _dims(_layer(root, "x").find("output").find("port")) == [2, 10]
    assert _dims(_layer(root, "relu").find("input").find("port")) == [2, 10]
    assert _dims(_layer(root, "relu").find("output").find("port")) == [2, 10]
    # the declared shape attribute still shows the dynamic dimension
    assert _layer(root, "x").find("data").get("shape") == "2, -1"
    assert _output_shapes(graph) == before
    assert relu.output(0).partial_shape == PartialShape([2, Dimension(1, 10)])


def test_foldable_dynamic_shape_serialized_as_folded_shape(tmp_path: Path):
    # given
    data = Constant.from_array(np.array([0, 1, 0, 2, 3], dtype=np.float32), name="data")
    nonzero = NonZero(data.output(0), name="nonzero")
    graph = Graph(results=[Result(nonzero.output(0), name="indices")])
    before = _output_shapes(graph)

    # when
    serialize(graph, str(tmp_path / "model.xml"))

    # then
    root = ET.parse(tmp_path / "model.xml").getroot()
    port = _layer(root, "nonzero").find("output").find("port")
    assert _dims(port) == [1, 3]
    assert port.get("precision") == "I64"
    assert _layer(root, "nonzero").get("version") == "opset3"
    assert _output_shapes(graph) == before


def test_unfoldable_nonzero_uses_upper_bound(tmp_path: Path):
    # given
    x = Parameter(ElementType.F32, [10], name="x")
    nonzero = NonZero(x.output(0), name="nonzero")
    graph = Graph(results=[Result(nonzero.output(0), name="indices")], parameters=[x])

    # when
    serialize(graph, str(tmp_path / "model.xml"))

    # then
    root = ET.parse(tmp_path / "model.xml").getroot()
    assert _dims(_layer(root, "nonzero").find("output").find("port")) == [1, 10]
    assert _dims(_layer(root, "indices").find("input").find("port")) == [1, 10]


def test_unbounded_dynamic_dimension_is_fatal(tmp_path: Path):
    x = Parameter(ElementType.F32, [1, Dimension.dynamic()], name="x")
    graph = Graph(results=[Result(x.output(0))], parameters=[x])
    with pytest.raises(InternalError, match="without upper bound"):
        serialize(graph, str(tmp_path / "model.xml"))


def test_exec_graph_uses_runtime_info(tmp_path: Path, const_relu_graph):
    # given
    for op in const_relu_graph.get_ordered_ops():
        op.rt_info.update({"execTimeMcs": "12", "layerType": "Convolution", "runtimePrecision": "FP32"})
    const_relu_graph.results[0].rt_info["execOrder"] = 3

    # when
    serialize(const_relu_graph, str(tmp_path / "exec.xml"))

    # then
    root = ET.parse(tmp_path / "exec.xml").getroot()
    layers = _layers(root)
    assert all(l.get("version") is None for l in layers)
    assert all(l.get("type") == "Convolution" for l in layers)
    data = layers[0].find("data")
    assert data.attrib == {"execTimeMcs": "12", "runtimePrecision": "FP32"}
    # the attribute visitor is bypassed, so no weights are written
    assert (tmp_path / "exec.bin").read_bytes() == b""


def test_generic_ie_layer_type_override(tmp_path: Path):
    # given
    x = Parameter(ElementType.F32, [1, 3], name="x")
    legacy = GenericIE([x.output(0)], "CustomNorm", {"eps": "1e-5"},
                       [(ElementType.F32, PartialShape([1, 3]))], name="norm")
    graph = Graph(results=[Result(legacy.output(0))], parameters=[x])

    # when
    serialize(graph, str(tmp_path / "model.xml"))

    # then
    layer = _layer(ET.parse(tmp_path / "model.xml").getroot(), "norm")
    assert layer.get("type") == "CustomNorm"
    assert layer.get("version") == "experimental"
    assert layer.find("data").attrib == {"eps": "1e-5"}


def test_custom_opset_version(tmp_path: Path):
    # given
    x = Parameter(ElementType.F32, [4], name="x")
    op = MyOp(x.output(0), name="mine")
    graph = Graph(results=[Result(op.output(0))], parameters=[x])
    custom = {"custom_opset": OpSet("custom_opset", ["MyOp"])}

    # when
    serialize(graph, str(tmp_path / "model.xml"), custom_opsets=custom)

    # then
    layer = _layer(ET.parse(tmp_path / "model.xml").getroot(), "mine")
    assert layer.get("version") == "custom_opset"
    assert layer.find("data").get("alpha") == "0.5"


def test_node_without_attribute_visitor_is_fatal(tmp_path: Path):
    x = Parameter(ElementType.F32, [4], name="x")
    op = NoVisitOp(x.output(0), name="opaque_op")
    graph = Graph(results=[Result(op.output(0))], parameters=[x])
    with pytest.raises(UnsupportedNodeError, match="opaque_op"):
        serialize(graph, str(tmp_path / "model.xml"))
