from __future__ import annotations
from typing import Any, Callable, Dict, List

import numpy as np
import onnx
from onnx import numpy_helper

from .element_type import ElementType
from .model_ir import Graph, Node, Output
from .ops import (Add, Concat, Constant, Convert, Convolution, MatMul, Multiply, NonZero,
                  Parameter, Relu, Reshape, Result, ShapeOf3, Sigmoid, Softmax, Subtract)
from .shape import Dimension, PartialShape


def _onnx_dtype_to_element_type(onnx_dtype: int) -> ElementType:
    if onnx_dtype == onnx.TensorProto.BFLOAT16:
        return ElementType.BF16
    try:
        return ElementType.from_numpy(onnx.helper.tensor_dtype_to_np_dtype(onnx_dtype))
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unsupported ONNX element type: {onnx_dtype}") from e


def _value_info_shape(value_info) -> PartialShape:
    ttype = value_info.type.tensor_type
    if not ttype.HasField("shape"):
        return PartialShape.dynamic()
    dims = []
    for d in ttype.shape.dim:
        # dim_param and missing dims have no known bound
        dims.append(d.dim_value if d.HasField("dim_value") else Dimension.dynamic())
    return PartialShape(dims)


def _softmax(n, args, attrs, opset_version):
    default_axis = -1 if opset_version >= 13 else 1
    axis = attrs.get("axis", default_axis)
    rank = args[0].partial_shape.rank
    if axis < 0:
        if rank is None:
            raise ValueError(f"Softmax '{n.name}': negative axis needs a known input rank")
        axis += rank
    # before opset 13 the input is flattened to 2-D at `axis`, which only
    # matches a per-axis softmax when `axis` is the last one
    if opset_version < 13 and (rank is None or axis != rank - 1):
        raise ValueError(
            f"Softmax '{n.name}': opset {opset_version} softmax over flattened axes {axis}.. is not supported")
    return Softmax(args[0], axis)


def _conv(n, args, attrs, opset_version):
    if attrs.get("group", 1) != 1:
        raise ValueError(f"Conv '{n.name}': grouped convolution is not supported")
    spatial = args[1].partial_shape.rank - 2
    auto_pad = attrs.get("auto_pad", b"NOTSET")
    auto_pad = auto_pad.decode() if isinstance(auto_pad, bytes) else auto_pad
    if auto_pad not in ("NOTSET", "VALID"):
        raise ValueError(f"Conv '{n.name}': auto_pad {auto_pad} is not supported")
    pads = list(attrs.get("pads", [0] * (2 * spatial)))
    conv = Convolution(
        args[0], args[1],
        strides=attrs.get("strides", [1] * spatial),
        pads_begin=pads[:spatial],
        pads_end=pads[spatial:],
        dilations=attrs.get("dilations", [1] * spatial),
        auto_pad="explicit" if auto_pad == "NOTSET" else "valid",
    )
    if len(args) < 3:
        return conv

    # the per-channel bias becomes an Add broadcast over [1, C, 1, ...]
    base = n.name or f"Conv_{n.output[0]}"
    conv.friendly_name = f"{base}/Convolution"
    pattern = Constant(ElementType.I64, [spatial + 2], [1, -1] + [1] * spatial, name=f"{base}/bias_shape")
    bias = Reshape(args[2], pattern.output(0), name=f"{base}/bias_reshape")
    return Add(conv.output(0), bias.output(0))


def _initializer_constant(t) -> Constant:
    array = numpy_helper.to_array(t)
    if t.data_type == onnx.TensorProto.BFLOAT16:
        # numpy has no bfloat16; Constant keeps the upper half of the float32 bits
        return Constant(ElementType.BF16, array.shape, array.astype(np.float32), name=t.name)
    return Constant.from_array(array, name=t.name)


def _reshape(n, args, attrs, opset_version):
    # a zero in an ONNX shape copies the input dimension unless allowzero is set
    return Reshape(args[0], args[1], special_zero=not attrs.get("allowzero", 0))


_CONVERTERS: Dict[str, Callable[..., Node]] = {
    "Relu": lambda n, args, attrs, v: Relu(args[0]),
    "Sigmoid": lambda n, args, attrs, v: Sigmoid(args[0]),
    "Add": lambda n, args, attrs, v: Add(args[0], args[1]),
    "Sub": lambda n, args, attrs, v: Subtract(args[0], args[1]),
    "Mul": lambda n, args, attrs, v: Multiply(args[0], args[1]),
    "MatMul": lambda n, args, attrs, v: MatMul(args[0], args[1]),
    "Softmax": _softmax,
    "Conv": _conv,
    "Reshape": _reshape,
    "Concat": lambda n, args, attrs, v: Concat(args, attrs["axis"]),
    "Cast": lambda n, args, attrs, v: Convert(args[0], _onnx_dtype_to_element_type(attrs["to"])),
    "Shape": lambda n, args, attrs, v: ShapeOf3(args[0], ElementType.I64),
    "NonZero": lambda n, args, attrs, v: NonZero(args[0], ElementType.I64),
}


def _default_opset_version(model) -> int:
    for opset in model.opset_import:
        if opset.domain in ("", "ai.onnx"):
            return opset.version
    return 1


def build_model_ir(model) -> Graph:
    """Converts an ONNX ModelProto into a Graph."""
    g = model.graph
    opset_version = _default_opset_version(model)
    tensors: Dict[str, Output] = {}

    # Initializers (weights, biases) become constants
    for t in g.initializer:
        tensors[t.name] = _initializer_constant(t).output(0)

    parameters: List[Parameter] = []
    for i in g.input:
        if i.name in tensors:
            continue
        ttype = i.type.tensor_type
        param = Parameter(_onnx_dtype_to_element_type(ttype.elem_type), _value_info_shape(i), name=i.name)
        parameters.append(param)
        tensors[i.name] = param.output(0)

    for n in g.node:
        try:
            args = [tensors[t_name] for t_name in n.input if t_name]
        except KeyError as e:
            raise ValueError(f"Error mapping node {n.name}: Tensor {e} not found in graph tensor map.") from e
        convert = _CONVERTERS.get(n.op_type)
        if convert is None:
            raise ValueError(f"Unsupported ONNX op_type '{n.op_type}' in node '{n.name}'.")
        attrs: Dict[str, Any] = {a.name: onnx.helper.get_attribute_value(a) for a in n.attribute}
        node = convert(n, args, attrs, opset_version)
        node.friendly_name = n.name or f"{n.op_type}_{n.output[0]}"
        for idx, out_name in enumerate(n.output):
            if idx >= node.get_output_size():
                raise ValueError(f"Node '{node.friendly_name}' has no output #{idx} for '{out_name}'")
            tensors[out_name] = node.output(idx)

    results = []
    for o in g.output:
        try:
            results.append(Result(tensors[o.name], name=o.name))
        except KeyError as e:
            raise ValueError(f"Error mapping output: Tensor {e} not found in graph tensor map.") from e

    return Graph(results=results, parameters=parameters, name=g.name)


def load_onnx_as_model_ir(path: str) -> Graph:
    """Loads an ONNX model into the Model IR."""
    model = onnx.load(path)
    return build_model_ir(model)
