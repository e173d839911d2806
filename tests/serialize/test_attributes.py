import io
import xml.etree.ElementTree as ET

import numpy as np
import pytest

from pyv_ir.errors import InternalError
from pyv_ir.ir.attribute import AttributeValue
from pyv_ir.ir.element_type import ElementType
from pyv_ir.ir.model_ir import Graph
from pyv_ir.ir.ops import Constant, Parameter, Relu, Result
from pyv_ir.serialize.attributes import XmlSerializer, is_exec_graph, join, visit_exec_graph_node


@pytest.fixture
def data():
    return ET.Element("data")


@pytest.mark.parametrize("value, expected", [
    (AttributeValue.boolean(True), "true"),
    (AttributeValue.boolean(False), "false"),
    (AttributeValue.string("numpy"), "numpy"),
    (AttributeValue.int64(-5), "-5"),
    (AttributeValue.double(0.1), "0.1"),
    (AttributeValue.double(2.0), "2"),
    (AttributeValue.int64_list([1, 2, 3]), "1, 2, 3"),
    (AttributeValue.uint64_list([7]), "7"),
    (AttributeValue.int64_list([]), ""),
    (AttributeValue.float_list([0.5, 1.25]), "0.5, 1.25"),
    (AttributeValue.double(1e-5), "1e-05"),
    (AttributeValue.double(-2.5e-7), "-2.5e-07"),
    (AttributeValue.double(1e20), "1e+20"),
    (AttributeValue.double(0.0), "0"),
    (AttributeValue.float_list([1e-5, 0.5, 3e38]), "1e-05, 0.5, 3e+38"),
    (AttributeValue.string_list(["a", "b"]), "a, b"),
])
def test_scalar_and_list_rendering(data, value, expected):
    # when
    XmlSerializer(data, io.BytesIO(), "Relu").on_attribute("attr", value)

    # then
    assert data.get("attr") == expected


def test_const_buffers_are_appended_to_weights(data):
    # given
    bin_data = io.BytesIO(b"")
    first = np.arange(3, dtype=np.float32).tobytes()
    second = np.arange(2, dtype=np.int64).tobytes()
    other = ET.Element("data")

    # when
    XmlSerializer(data, bin_data, "Constant").on_attribute("value", AttributeValue.buffer(first))
    XmlSerializer(other, bin_data, "Constant").on_attribute("value", AttributeValue.buffer(second))

    # then
    assert (data.get("offset"), data.get("size")) == ("0", "12")
    assert (other.get("offset"), other.get("size")) == ("12", "16")
    assert bin_data.getvalue() == first + second


@pytest.mark.parametrize("type_name, attr", [("Relu", "value"), ("Constant", "weights")])
def test_other_buffers_are_ignored(data, type_name, attr):
    bin_data = io.BytesIO()
    XmlSerializer(data, bin_data, type_name).on_attribute(attr, AttributeValue.buffer(b"\x01\x02"))
    assert data.attrib == {}
    assert bin_data.getvalue() == b""


def test_generic_ie_type_overrides_node_type(data):
    # given
    visitor = XmlSerializer(data, io.BytesIO(), "GenericIE")

    # when
    visitor.on_attribute("__generic_ie_type__", AttributeValue.string("Proposal"))
    visitor.on_attribute("ratio", AttributeValue.string("0.5"))

    # then
    assert visitor.node_type_name == "Proposal"
    assert data.attrib == {"ratio": "0.5"}


def test_generic_ie_attribute_on_other_node_is_plain_data(data):
    visitor = XmlSerializer(data, io.BytesIO(), "Relu")
    visitor.on_attribute("__generic_ie_type__", AttributeValue.string("Proposal"))
    assert visitor.node_type_name == "Relu"
    assert data.get("__generic_ie_type__") == "Proposal"


def test_opaque_values_are_not_persisted(data):
    XmlSerializer(data, io.BytesIO(), "TensorIterator").on_attribute("body", AttributeValue.opaque(object()))
    assert data.attrib == {}


def test_unknown_kind_is_internal_error(data):
    bogus = AttributeValue("complex", 1j)
    with pytest.raises(InternalError, match="Unsupported attribute kind"):
        XmlSerializer(data, io.BytesIO(), "Relu").on_attribute("z", bogus)


def test_visit_exec_graph_node_skips_non_string_info(data):
    # given
    x = Parameter(ElementType.F32, [1], name="x")
    x.rt_info.update({"execTimeMcs": "7", "layerType": "Input", "execOrder": 0})

    # when
    type_name = visit_exec_graph_node(data, "Parameter", x)

    # then
    assert type_name == "Input"
    assert data.attrib == {"execTimeMcs": "7"}


def test_is_exec_graph():
    x = Parameter(ElementType.F32, [1], name="x")
    relu = Relu(x.output(0))
    graph = Graph(results=[Result(relu.output(0))], parameters=[x])
    assert not is_exec_graph(graph)

    relu.rt_info["execTimeMcs"] = "3"
    assert is_exec_graph(graph)


def test_join():
    assert join(["1", "2"]) == "1, 2"
    assert join(["1", "2"], glue="x") == "1x2"
    assert join([]) == ""


def test_constant_visits_its_bytes(data):
    # given
    const = Constant.from_array(np.array([1.5, -2.0], dtype=np.float32))
    bin_data = io.BytesIO()

    # when
    const.visit_attributes(XmlSerializer(data, bin_data, const.type_name))

    # then
    assert data.attrib == {"element_type": "f32", "shape": "2", "offset": "0", "size": "8"}
    assert bin_data.getvalue() == np.array([1.5, -2.0], dtype="<f4").tobytes()
