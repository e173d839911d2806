from __future__ import annotations
from functools import reduce
import operator
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .attribute import AttributeValue
from .element_type import ElementType
from .model_ir import Graph, Node, Output, clone_graph
from .shape import Dimension, PartialShape

# Element types whose values numpy can compute on directly
_FOLDABLE_TYPES = {
    ElementType.F16, ElementType.F32, ElementType.F64,
    ElementType.I8, ElementType.I16, ElementType.I32, ElementType.I64,
    ElementType.U8, ElementType.U16, ElementType.U32, ElementType.U64,
    ElementType.BOOLEAN,
}


def _shape_attr(shape: PartialShape) -> List[int]:
    return [d.get_length() if d.is_static else -1 for d in shape]


def _product(values) -> int:
    return reduce(operator.mul, values, 1)


def _constant_arrays(values: Sequence[Output]) -> Optional[List[np.ndarray]]:
    """Returns the data behind `values` if every one of them is produced by a Constant."""
    arrays = []
    for v in values:
        if not isinstance(v.node, Constant):
            return None
        if v.node.element_type not in _FOLDABLE_TYPES:
            return None
        arrays.append(v.node.get_data())
    return arrays


def _folded(element_type: ElementType, data: np.ndarray) -> Output:
    return Constant(element_type, data.shape, data).output(0)


def _merge_dim(a: Dimension, b: Dimension) -> Dimension:
    """Merges two dimensions known to be equal at runtime."""
    if a.is_static and b.is_static:
        if a != b:
            raise ValueError(f"Dimensions {a} and {b} are incompatible")
        return a
    if a.is_static:
        return a
    if b.is_static:
        return b
    lo = max(a.min_length, b.min_length)
    if a.max_length is None:
        hi = b.max_length
    elif b.max_length is None:
        hi = a.max_length
    else:
        hi = min(a.max_length, b.max_length)
    if hi is not None and hi < lo:
        raise ValueError(f"Dimensions {a} and {b} are incompatible")
    return Dimension(lo, hi)


def _broadcast_dim(a: Dimension, b: Dimension) -> Dimension:
    if a.is_static and a.get_length() == 1:
        return b
    if b.is_static and b.get_length() == 1:
        return a
    return _merge_dim(a, b)


def broadcast_shapes(a: PartialShape, b: PartialShape) -> PartialShape:
    """Numpy-style broadcast of two partial shapes."""
    if a.rank_is_dynamic or b.rank_is_dynamic:
        return PartialShape.dynamic()
    rank = max(a.rank, b.rank)
    one = Dimension.static(1)
    ad = [one] * (rank - a.rank) + list(a.dims)
    bd = [one] * (rank - b.rank) + list(b.dims)
    try:
        return PartialShape([_broadcast_dim(x, y) for x, y in zip(ad, bd)])
    except ValueError as e:
        raise ValueError(f"Shapes {a} and {b} cannot be broadcast") from e


def _add_dims(a: Dimension, b: Dimension) -> Dimension:
    hi = None if a.max_length is None or b.max_length is None else a.max_length + b.max_length
    return Dimension(a.min_length + b.min_length, hi)


class Parameter(Node):
    """A graph input."""
    type_name = "Parameter"

    def __init__(self, element_type, partial_shape, name: Optional[str] = None):
        self.element_type = ElementType(element_type)
        if not isinstance(partial_shape, PartialShape):
            partial_shape = PartialShape(partial_shape)
        self.partial_shape = partial_shape
        super().__init__((), 1, name)
        self.validate_and_infer_types()

    def set_partial_shape(self, partial_shape: PartialShape):
        self.partial_shape = partial_shape

    def validate_and_infer_types(self):
        self.set_output_type(0, self.element_type, self.partial_shape)

    def visit_attributes(self, visitor) -> bool:
        if not self.partial_shape.rank_is_dynamic:
            visitor.on_attribute("shape", AttributeValue.int64_list(_shape_attr(self.partial_shape)))
        visitor.on_attribute("element_type", AttributeValue.string(self.element_type.value))
        return True

    def clone_with_new_inputs(self, new_args):
        return Parameter(self.element_type, self.partial_shape)


class Constant(Node):
    """A tensor whose value is known when the graph is built."""
    type_name = "Constant"

    def __init__(self, element_type, shape, values, name: Optional[str] = None):
        self.element_type = ElementType(element_type)
        self.shape: Tuple[int, ...] = tuple(int(d) for d in shape)
        self._data = self._to_storage(values)
        super().__init__((), 1, name)
        self.validate_and_infer_types()

    @classmethod
    def from_array(cls, array, name: Optional[str] = None) -> Constant:
        array = np.asarray(array)
        return cls(ElementType.from_numpy(array.dtype), array.shape, array, name)

    def _to_storage(self, values) -> np.ndarray:
        dtype = self.element_type.to_numpy()
        if self.element_type == ElementType.BF16:
            # keep the upper half of the float32 bit pattern
            as_f32 = np.asarray(values, dtype=np.float32)
            data = (as_f32.view(np.uint32) >> 16).astype(np.uint16)
        elif self.element_type == ElementType.U1:
            data = np.asarray(values).astype(bool).astype(np.uint8)
        else:
            data = np.asarray(values, dtype=dtype)
        count = _product(self.shape)
        if data.size == 1 and count != 1:
            return np.full(self.shape, data.reshape(-1)[0], dtype=data.dtype)
        if data.size != count:
            raise ValueError(
                f"Constant of shape {self.shape} needs {count} values, got {data.size}")
        return data.reshape(self.shape)

    def get_data(self) -> np.ndarray:
        return self._data

    def get_buffer(self) -> bytes:
        """Raw little-endian bytes of the value, u1 packed eight elements per byte."""
        if self.element_type == ElementType.U1:
            return np.packbits(self._data.reshape(-1)).tobytes()
        data = self._data.astype(self._data.dtype.newbyteorder("<"), copy=False)
        return np.ascontiguousarray(data).tobytes()

    def validate_and_infer_types(self):
        self.set_output_type(0, self.element_type, PartialShape.from_shape(self.shape))

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("element_type", AttributeValue.string(self.element_type.value))
        visitor.on_attribute("shape", AttributeValue.int64_list(self.shape))
        visitor.on_attribute("value", AttributeValue.buffer(self.get_buffer()))
        return True

    def clone_with_new_inputs(self, new_args):
        c = Constant(self.element_type, self.shape, 0)
        c._data = self._data.copy()
        return c


class Result(Node):
    """A graph output sink."""
    type_name = "Result"

    def __init__(self, arg: Output, name: Optional[str] = None):
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        self.set_output_type(0, self.inputs[0].element_type, self.inputs[0].partial_shape)

    def visit_attributes(self, visitor) -> bool:
        return True

    def clone_with_new_inputs(self, new_args):
        return Result(new_args[0])


class _UnaryElementwise(Node):
    _np_func = None

    def __init__(self, arg: Output, name: Optional[str] = None):
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        self.set_output_type(0, self.inputs[0].element_type, self.inputs[0].partial_shape)

    def visit_attributes(self, visitor) -> bool:
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None:
            return None
        et = self.outputs[0].element_type
        result = type(self)._np_func(arrays[0]).astype(et.to_numpy())
        return [_folded(et, result)]

    def clone_with_new_inputs(self, new_args):
        return type(self)(new_args[0])


class Relu(_UnaryElementwise):
    type_name = "Relu"
    _np_func = staticmethod(lambda x: np.maximum(x, 0))


class Sigmoid(_UnaryElementwise):
    type_name = "Sigmoid"
    _np_func = staticmethod(lambda x: 1.0 / (1.0 + np.exp(-x)))


class _BinaryElementwise(Node):
    version = 1
    _np_func = None

    def __init__(self, a: Output, b: Output, auto_broadcast: str = "numpy", name: Optional[str] = None):
        self.auto_broadcast = auto_broadcast
        super().__init__((a, b), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        a, b = self.inputs
        if a.element_type != b.element_type:
            raise ValueError(
                f"{self.type_name} '{self.friendly_name}': element types "
                f"{a.element_type} and {b.element_type} differ")
        if self.auto_broadcast == "numpy":
            shape = broadcast_shapes(a.partial_shape, b.partial_shape)
        elif self.auto_broadcast == "none":
            if a.partial_shape.rank_is_dynamic or b.partial_shape.rank_is_dynamic:
                shape = PartialShape.dynamic()
            elif a.partial_shape.rank != b.partial_shape.rank:
                raise ValueError(f"{self.type_name} '{self.friendly_name}': ranks differ")
            else:
                shape = PartialShape([_merge_dim(x, y) for x, y in zip(a.partial_shape, b.partial_shape)])
        else:
            raise ValueError(f"Unsupported auto_broadcast mode: {self.auto_broadcast}")
        self.set_output_type(0, a.element_type, shape)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("auto_broadcast", AttributeValue.string(self.auto_broadcast))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None:
            return None
        et = self.outputs[0].element_type
        result = np.asarray(type(self)._np_func(arrays[0], arrays[1])).astype(et.to_numpy())
        return [_folded(et, result)]

    def clone_with_new_inputs(self, new_args):
        return type(self)(new_args[0], new_args[1], self.auto_broadcast)


class Add(_BinaryElementwise):
    type_name = "Add"
    _np_func = staticmethod(np.add)


class Subtract(_BinaryElementwise):
    type_name = "Subtract"
    _np_func = staticmethod(np.subtract)


class Multiply(_BinaryElementwise):
    type_name = "Multiply"
    _np_func = staticmethod(np.multiply)


class Clamp(Node):
    type_name = "Clamp"

    def __init__(self, arg: Output, min_value: float, max_value: float, name: Optional[str] = None):
        if min_value > max_value:
            raise ValueError(f"Clamp min {min_value} is greater than max {max_value}")
        self.min_value = float(min_value)
        self.max_value = float(max_value)
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        self.set_output_type(0, self.inputs[0].element_type, self.inputs[0].partial_shape)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("min", AttributeValue.double(self.min_value))
        visitor.on_attribute("max", AttributeValue.double(self.max_value))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None:
            return None
        et = self.outputs[0].element_type
        result = np.clip(arrays[0], self.min_value, self.max_value).astype(et.to_numpy())
        return [_folded(et, result)]

    def clone_with_new_inputs(self, new_args):
        return Clamp(new_args[0], self.min_value, self.max_value)


class MatMul(Node):
    type_name = "MatMul"

    def __init__(self, a: Output, b: Output, transpose_a: bool = False, transpose_b: bool = False,
                 name: Optional[str] = None):
        self.transpose_a = transpose_a
        self.transpose_b = transpose_b
        super().__init__((a, b), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        a, b = self.inputs
        if a.element_type != b.element_type:
            raise ValueError(f"MatMul '{self.friendly_name}': element types differ")
        if a.partial_shape.rank_is_dynamic or b.partial_shape.rank_is_dynamic:
            self.set_output_type(0, a.element_type, PartialShape.dynamic())
            return
        ad, bd = list(a.partial_shape), list(b.partial_shape)
        if len(ad) < 2 or len(bd) < 2:
            raise ValueError(f"MatMul '{self.friendly_name}' supports inputs of rank 2 or more")
        if self.transpose_a:
            ad[-1], ad[-2] = ad[-2], ad[-1]
        if self.transpose_b:
            bd[-1], bd[-2] = bd[-2], bd[-1]
        try:
            _merge_dim(ad[-1], bd[-2])
        except ValueError as e:
            raise ValueError(
                f"MatMul '{self.friendly_name}': inner dimensions {ad[-1]} and {bd[-2]} differ") from e
        batch = broadcast_shapes(PartialShape(ad[:-2]), PartialShape(bd[:-2]))
        self.set_output_type(0, a.element_type, PartialShape(list(batch) + [ad[-2], bd[-1]]))

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("transpose_a", AttributeValue.boolean(self.transpose_a))
        visitor.on_attribute("transpose_b", AttributeValue.boolean(self.transpose_b))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None:
            return None
        a, b = arrays
        if self.transpose_a:
            a = np.swapaxes(a, -1, -2)
        if self.transpose_b:
            b = np.swapaxes(b, -1, -2)
        et = self.outputs[0].element_type
        return [_folded(et, np.matmul(a, b).astype(et.to_numpy()))]

    def clone_with_new_inputs(self, new_args):
        return MatMul(new_args[0], new_args[1], self.transpose_a, self.transpose_b)


class Softmax(Node):
    type_name = "Softmax"
    version = 1

    def __init__(self, arg: Output, axis: int = 1, name: Optional[str] = None):
        self.axis = axis
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        shape = self.inputs[0].partial_shape
        if not shape.rank_is_dynamic and not 0 <= self.axis < max(shape.rank, 1):
            raise ValueError(f"Softmax '{self.friendly_name}': axis {self.axis} out of range for {shape}")
        self.set_output_type(0, self.inputs[0].element_type, shape)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("axis", AttributeValue.int64(self.axis))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        et = self.outputs[0].element_type
        if arrays is None or not et.is_real:
            return None
        x = arrays[0]
        e = np.exp(x - np.max(x, axis=self.axis, keepdims=True))
        return [_folded(et, (e / np.sum(e, axis=self.axis, keepdims=True)).astype(et.to_numpy()))]

    def clone_with_new_inputs(self, new_args):
        return Softmax(new_args[0], self.axis)


def _conv_out_dim(d: Dimension, kernel: int, stride: int, dilation: int, pad_begin: int, pad_end: int) -> Dimension:
    effective = dilation * (kernel - 1) + 1

    def out(length: int) -> int:
        return max((length + pad_begin + pad_end - effective) // stride + 1, 0)

    if d.is_static:
        return Dimension.static(out(d.get_length()))
    lo = out(d.min_length)
    hi = None if d.max_length is None else out(d.max_length)
    return Dimension(lo, hi)


class Convolution(Node):
    type_name = "Convolution"
    version = 1

    def __init__(self, data: Output, filters: Output, strides: Sequence[int], pads_begin: Sequence[int],
                 pads_end: Sequence[int], dilations: Sequence[int], auto_pad: str = "explicit",
                 name: Optional[str] = None):
        if auto_pad not in ("explicit", "valid"):
            raise ValueError(f"Unsupported auto_pad mode: {auto_pad}")
        self.strides = list(strides)
        self.pads_begin = list(pads_begin)
        self.pads_end = list(pads_end)
        self.dilations = list(dilations)
        self.auto_pad = auto_pad
        super().__init__((data, filters), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        data, filters = self.inputs
        if data.element_type != filters.element_type:
            raise ValueError(f"Convolution '{self.friendly_name}': element types differ")
        ds, fs = data.partial_shape, filters.partial_shape
        if ds.rank_is_dynamic or fs.rank_is_dynamic:
            self.set_output_type(0, data.element_type, PartialShape.dynamic())
            return
        spatial = ds.rank - 2
        if fs.rank != ds.rank or spatial < 1:
            raise ValueError(f"Convolution '{self.friendly_name}': data {ds} and filters {fs} ranks mismatch")
        for attr in ("strides", "pads_begin", "pads_end", "dilations"):
            if len(getattr(self, attr)) != spatial:
                raise ValueError(f"Convolution '{self.friendly_name}': {attr} must have {spatial} values")
        _merge_dim(ds[1], fs[1])
        pads_begin = self.pads_begin if self.auto_pad == "explicit" else [0] * spatial
        pads_end = self.pads_end if self.auto_pad == "explicit" else [0] * spatial
        out = [ds[0], fs[0]]
        for i in range(spatial):
            kernel = fs[2 + i]
            if not kernel.is_static:
                out.append(Dimension.dynamic())
                continue
            out.append(_conv_out_dim(ds[2 + i], kernel.get_length(), self.strides[i],
                                     self.dilations[i], pads_begin[i], pads_end[i]))
        self.set_output_type(0, data.element_type, PartialShape(out))

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("strides", AttributeValue.int64_list(self.strides))
        visitor.on_attribute("dilations", AttributeValue.int64_list(self.dilations))
        visitor.on_attribute("pads_begin", AttributeValue.int64_list(self.pads_begin))
        visitor.on_attribute("pads_end", AttributeValue.int64_list(self.pads_end))
        visitor.on_attribute("auto_pad", AttributeValue.string(self.auto_pad))
        return True

    def clone_with_new_inputs(self, new_args):
        return Convolution(new_args[0], new_args[1], self.strides, self.pads_begin,
                           self.pads_end, self.dilations, self.auto_pad)


class Reshape(Node):
    type_name = "Reshape"
    version = 1

    def __init__(self, data: Output, pattern: Output, special_zero: bool = False, name: Optional[str] = None):
        self.special_zero = special_zero
        super().__init__((data, pattern), 1, name)
        self.validate_and_infer_types()

    def _pattern(self) -> Optional[List[int]]:
        source = self.input_value(1).node
        if not isinstance(source, Constant):
            return None
        return [int(v) for v in source.get_data().reshape(-1)]

    def validate_and_infer_types(self):
        data = self.inputs[0]
        pattern = self._pattern()
        if pattern is None:
            pshape = self.inputs[1].partial_shape
            if pshape.is_static and len(pshape) == 1:
                out = PartialShape.dynamic(pshape[0].get_length())
            else:
                out = PartialShape.dynamic()
            self.set_output_type(0, data.element_type, out)
            return
        self.set_output_type(0, data.element_type, self._infer_from_pattern(data.partial_shape, pattern))

    def _infer_from_pattern(self, in_shape: PartialShape, pattern: List[int]) -> PartialShape:
        out: List[Optional[Dimension]] = []
        for i, p in enumerate(pattern):
            if p == 0 and self.special_zero:
                if in_shape.rank_is_dynamic:
                    out.append(Dimension.dynamic())
                elif i < in_shape.rank:
                    out.append(in_shape[i])
                else:
                    raise ValueError(f"Reshape '{self.friendly_name}': zero at {i} exceeds input rank")
            elif p == -1:
                if None in out:
                    raise ValueError(f"Reshape '{self.friendly_name}': more than one -1 in pattern")
                out.append(None)
            elif p >= 0:
                out.append(Dimension.static(p))
            else:
                raise ValueError(f"Reshape '{self.friendly_name}': invalid pattern value {p}")
        if None not in out:
            return PartialShape(out)

        known = [d for d in out if d is not None]
        if in_shape.is_static and all(d.is_static for d in known):
            total = _product(in_shape.to_shape())
            divisor = _product(d.get_length() for d in known)
            if divisor == 0 or total % divisor:
                raise ValueError(f"Reshape '{self.friendly_name}': cannot reshape {in_shape} to {pattern}")
            inferred = Dimension.static(total // divisor)
        else:
            upper = None
            if not in_shape.rank_is_dynamic and all(d.has_upper_bound for d in in_shape):
                divisor = _product(d.min_length for d in known)
                if divisor:
                    upper = _product(d.max_length for d in in_shape) // divisor
            inferred = Dimension.dynamic(upper)
        return PartialShape([inferred if d is None else d for d in out])

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("special_zero", AttributeValue.boolean(self.special_zero))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values[:1])
        if arrays is None or not isinstance(input_values[1].node, Constant):
            return None
        out = self.outputs[0]
        if not out.partial_shape.is_static:
            return None
        return [_folded(out.element_type, arrays[0].reshape(out.partial_shape.to_shape()))]

    def clone_with_new_inputs(self, new_args):
        return Reshape(new_args[0], new_args[1], self.special_zero)


class Concat(Node):
    type_name = "Concat"

    def __init__(self, args: Sequence[Output], axis: int, name: Optional[str] = None):
        if not args:
            raise ValueError("Concat needs at least one input")
        self.axis = axis
        super().__init__(args, 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        et = self.inputs[0].element_type
        shapes = [i.partial_shape for i in self.inputs]
        if any(i.element_type != et for i in self.inputs):
            raise ValueError(f"Concat '{self.friendly_name}': element types differ")
        if any(s.rank_is_dynamic for s in shapes):
            self.set_output_type(0, et, PartialShape.dynamic())
            return
        rank = shapes[0].rank
        if any(s.rank != rank for s in shapes):
            raise ValueError(f"Concat '{self.friendly_name}': input ranks differ")
        axis = self.axis + rank if self.axis < 0 else self.axis
        if not 0 <= axis < rank:
            raise ValueError(f"Concat '{self.friendly_name}': axis {self.axis} out of range")
        out = list(shapes[0])
        for s in shapes[1:]:
            for i, d in enumerate(s):
                out[i] = _add_dims(out[i], d) if i == axis else _merge_dim(out[i], d)
        self.set_output_type(0, et, PartialShape(out))

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("axis", AttributeValue.int64(self.axis))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None:
            return None
        et = self.outputs[0].element_type
        return [_folded(et, np.concatenate(arrays, axis=self.axis))]

    def clone_with_new_inputs(self, new_args):
        return Concat(new_args, self.axis)


class Convert(Node):
    type_name = "Convert"

    def __init__(self, arg: Output, destination_type, name: Optional[str] = None):
        self.destination_type = ElementType(destination_type)
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        self.set_output_type(0, self.destination_type, self.inputs[0].partial_shape)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("destination_type", AttributeValue.string(self.destination_type.value))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None or self.destination_type not in _FOLDABLE_TYPES:
            return None
        return [_folded(self.destination_type, arrays[0].astype(self.destination_type.to_numpy()))]

    def clone_with_new_inputs(self, new_args):
        return Convert(new_args[0], self.destination_type)


class ShapeOf(Node):
    """Produces the shape of its input as a 1-D tensor (opset1 flavour, always i64)."""
    type_name = "ShapeOf"

    def __init__(self, arg: Output, name: Optional[str] = None):
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    @property
    def output_type(self) -> ElementType:
        return ElementType.I64

    def validate_and_infer_types(self):
        shape = self.inputs[0].partial_shape
        dims = [Dimension.dynamic()] if shape.rank_is_dynamic else [shape.rank]
        self.set_output_type(0, self.output_type, PartialShape(dims))

    def visit_attributes(self, visitor) -> bool:
        return True

    def constant_fold(self, input_values):
        shape = input_values[0].partial_shape
        if not shape.is_static:
            return None
        data = np.array(shape.to_shape(), dtype=self.output_type.to_numpy())
        return [_folded(self.output_type, data)]

    def clone_with_new_inputs(self, new_args):
        return ShapeOf(new_args[0])


class ShapeOf3(ShapeOf):
    """ShapeOf with a selectable i32/i64 output type."""
    version = 3

    def __init__(self, arg: Output, output_type=ElementType.I64, name: Optional[str] = None):
        et = ElementType(output_type)
        if et not in (ElementType.I32, ElementType.I64):
            raise ValueError(f"ShapeOf output_type must be i32 or i64, got {et}")
        self._output_type = et
        super().__init__(arg, name)

    @property
    def output_type(self) -> ElementType:
        return self._output_type

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("output_type", AttributeValue.string(self._output_type.value))
        return True

    def clone_with_new_inputs(self, new_args):
        return ShapeOf3(new_args[0], self._output_type)


class NonZero(Node):
    """Indices of the non-zero elements, shaped [rank, count].

    The count is only known once the data is, so it is a dynamic dimension
    bounded by the input's element count.
    """
    type_name = "NonZero"
    version = 3

    def __init__(self, arg: Output, output_type=ElementType.I64, name: Optional[str] = None):
        et = ElementType(output_type)
        if et not in (ElementType.I32, ElementType.I64):
            raise ValueError(f"NonZero output_type must be i32 or i64, got {et}")
        self.output_type = et
        super().__init__((arg,), 1, name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        shape = self.inputs[0].partial_shape
        if shape.rank_is_dynamic:
            out = PartialShape([Dimension.dynamic(), Dimension.dynamic()])
        else:
            upper = None
            if all(d.has_upper_bound for d in shape):
                upper = _product(d.max_length for d in shape)
            out = PartialShape([max(shape.rank, 1), Dimension.dynamic(upper)])
        self.set_output_type(0, self.output_type, out)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("output_type", AttributeValue.string(self.output_type.value))
        return True

    def constant_fold(self, input_values):
        arrays = _constant_arrays(input_values)
        if arrays is None:
            return None
        indices = np.array(np.nonzero(np.atleast_1d(arrays[0])), dtype=self.output_type.to_numpy())
        return [_folded(self.output_type, indices)]

    def clone_with_new_inputs(self, new_args):
        return NonZero(new_args[0], self.output_type)


class TensorIterator(Node):
    """Runs `body` with its parameters bound one to one to the node's inputs.

    Outputs mirror the body's results.
    """
    type_name = "TensorIterator"

    def __init__(self, args: Sequence[Output], body: Graph, name: Optional[str] = None):
        if len(body.parameters) != len(args):
            raise ValueError(
                f"TensorIterator body expects {len(body.parameters)} inputs, got {len(args)}")
        self.body = body
        super().__init__(args, len(body.results), name)
        self.validate_and_infer_types()

    def get_function(self) -> Graph:
        return self.body

    def validate_and_infer_types(self):
        for param, inp in zip(self.body.parameters, self.inputs):
            param.element_type = inp.element_type
            param.set_partial_shape(inp.partial_shape)
        self.body.validate_nodes_and_infer_types()
        for i, result in enumerate(self.body.results):
            self.set_output_type(i, result.outputs[0].element_type, result.outputs[0].partial_shape)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("body", AttributeValue.opaque(self.body))
        return True

    def clone_with_new_inputs(self, new_args):
        return TensorIterator(new_args, clone_graph(self.body))


class GenericIE(Node):
    """A layer known only by its legacy type name and string parameters."""
    type_name = "GenericIE"

    def __init__(self, args: Sequence[Output], layer_type: str, params: Dict[str, str],
                 output_types: Sequence[Tuple[ElementType, PartialShape]], name: Optional[str] = None):
        self.layer_type = layer_type
        self.params = dict(params)
        self.output_types = [(ElementType(et), ps) for et, ps in output_types]
        super().__init__(args, len(self.output_types), name)
        self.validate_and_infer_types()

    def validate_and_infer_types(self):
        for i, (et, ps) in enumerate(self.output_types):
            self.set_output_type(i, et, ps)

    def visit_attributes(self, visitor) -> bool:
        visitor.on_attribute("__generic_ie_type__", AttributeValue.string(self.layer_type))
        for key, value in self.params.items():
            visitor.on_attribute(key, AttributeValue.string(value))
        return True

    def clone_with_new_inputs(self, new_args):
        return GenericIE(new_args, self.layer_type, self.params, self.output_types)
