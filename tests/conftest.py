import numpy as np
import pytest

from pyv_ir.ir.element_type import ElementType
from pyv_ir.ir.model_ir import Graph
from pyv_ir.ir.ops import Add, Constant, MatMul, Parameter, Relu, Result


@pytest.fixture
def weights():
    """A small float32 tensor with negative and positive values."""
    return (np.arange(6, dtype=np.float32).reshape(2, 3) - 2.5)


@pytest.fixture
def const_relu_graph(weights):
    """Const -> Relu -> Result."""
    const = Constant.from_array(weights, name="weights")
    relu = Relu(const.output(0), name="relu")
    result = Result(relu.output(0), name="output")
    return Graph(results=[result], name="const_relu")


@pytest.fixture
def dense_graph():
    """Parameter -> MatMul(W) -> Add(B) -> Relu -> Result."""
    x = Parameter(ElementType.F32, [1, 4], name="x")
    w = Constant.from_array(np.ones((4, 2), dtype=np.float32), name="w")
    b = Constant.from_array(np.full((1, 2), 0.5, dtype=np.float32), name="b")
    matmul = MatMul(x.output(0), w.output(0), name="matmul")
    add = Add(matmul.output(0), b.output(0), name="add")
    relu = Relu(add.output(0), name="relu")
    result = Result(relu.output(0), name="y")
    return Graph(results=[result], parameters=[x], name="dense")
