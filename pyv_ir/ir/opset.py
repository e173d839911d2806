from __future__ import annotations
from functools import lru_cache
from typing import Iterable, Tuple, Union

from .model_ir import Node

OpTypeEntry = Union[str, Tuple[str, int]]


class OpSet:
    """A named, versioned catalogue of operation types.

    Entries are `(type_name, version)` pairs; a bare type name matches every
    version of that type.
    """

    def __init__(self, name: str, op_types: Iterable[OpTypeEntry] = ()):
        self.name = name
        self._versioned = set()
        self._any_version = set()
        for entry in op_types:
            self.insert(entry)

    def insert(self, entry: OpTypeEntry):
        if isinstance(entry, str):
            self._any_version.add(entry)
        else:
            type_name, version = entry
            self._versioned.add((type_name, int(version)))

    def contains_type(self, type_name: str, version: int = 0) -> bool:
        return type_name in self._any_version or (type_name, version) in self._versioned

    def contains_op_type(self, node: Node) -> bool:
        return self.contains_type(node.type_name, node.version)

    def __len__(self) -> int:
        return len(self._versioned) + len(self._any_version)

    def __repr__(self) -> str:
        return f"OpSet('{self.name}', {len(self)} types)"


_OPSET1 = [
    ("Abs", 0), ("Acos", 0), ("Add", 1), ("Asin", 0), ("Atan", 0), ("AvgPool", 1),
    ("BatchNormInference", 0), ("BinaryConvolution", 1), ("Broadcast", 1),
    ("CTCGreedyDecoder", 0), ("Ceiling", 0), ("Clamp", 0), ("Concat", 0), ("Constant", 0),
    ("Convert", 0), ("ConvertLike", 1), ("Convolution", 1), ("ConvolutionBackpropData", 1),
    ("Cos", 0), ("Cosh", 0), ("DeformableConvolution", 1), ("DeformablePSROIPooling", 1),
    ("DepthToSpace", 0), ("DetectionOutput", 0), ("Divide", 1), ("Elu", 0), ("Equal", 1),
    ("Erf", 0), ("Exp", 0), ("FakeQuantize", 0), ("Floor", 0), ("FloorMod", 1), ("Gather", 1),
    ("GatherTree", 1), ("Greater", 1), ("GreaterEqual", 1), ("GroupConvolution", 1),
    ("GroupConvolutionBackpropData", 1), ("GRN", 0), ("HardSigmoid", 0), ("Interpolate", 0),
    ("Less", 1), ("LessEqual", 1), ("Log", 0), ("LogicalAnd", 1), ("LogicalNot", 1),
    ("LogicalOr", 1), ("LogicalXor", 1), ("LRN", 0), ("LSTMCell", 0), ("LSTMSequence", 0),
    ("MatMul", 0), ("MaxPool", 1), ("Maximum", 1), ("Minimum", 1), ("Mod", 1), ("Multiply", 1),
    ("Negative", 0), ("NonMaxSuppression", 1), ("NormalizeL2", 0), ("NotEqual", 1),
    ("OneHot", 1), ("PRelu", 0), ("PSROIPooling", 0), ("Pad", 1), ("Parameter", 0), ("Power", 1),
    ("PriorBox", 0), ("PriorBoxClustered", 0), ("Proposal", 0), ("Range", 0), ("Relu", 0),
    ("ReduceMax", 1), ("ReduceLogicalAnd", 1), ("ReduceLogicalOr", 1), ("ReduceMean", 1),
    ("ReduceMin", 1), ("ReduceProd", 1), ("ReduceSum", 1), ("RegionYolo", 0), ("Reshape", 1),
    ("Result", 0), ("ReverseSequence", 0), ("RNNCell", 0), ("Select", 1), ("Selu", 0),
    ("ShapeOf", 0), ("Sigmoid", 0), ("Sign", 0), ("Sin", 0), ("Sinh", 0), ("Softmax", 1),
    ("Split", 1), ("Sqrt", 0), ("SquaredDifference", 0), ("Squeeze", 0), ("StridedSlice", 1),
    ("Subtract", 1), ("Tan", 0), ("Tanh", 0), ("TensorIterator", 0), ("Tile", 0), ("TopK", 1),
    ("Transpose", 1), ("Unsqueeze", 0), ("VariadicSplit", 1),
]

_OPSET2_ADDED = [
    ("BatchToSpace", 1), ("Gelu", 0), ("MVN", 0), ("ReorgYolo", 0), ("ROIPooling", 0),
    ("SpaceToBatch", 1),
]

_OPSET3_ADDED = [
    ("Assign", 3), ("Broadcast", 3), ("Bucketize", 3), ("EmbeddingBagOffsetsSum", 3),
    ("EmbeddingBagPackedSum", 3), ("EmbeddingSegmentsSum", 3), ("ExtractImagePatches", 3),
    ("GRUCell", 3), ("NonMaxSuppression", 3), ("NonZero", 3), ("ReadValue", 3), ("ROIAlign", 3),
    ("ScatterElementsUpdate", 3), ("ScatterUpdate", 3), ("ShapeOf", 3), ("ShuffleChannels", 0),
    ("TopK", 3),
]

_OPSET4_ADDED = [
    ("Acosh", 3), ("Asinh", 3), ("Atanh", 3), ("CTCLoss", 4), ("HSwish", 4), ("Interpolate", 4),
    ("LSTMCell", 4), ("Mish", 4), ("NonMaxSuppression", 4), ("Proposal", 4), ("Range", 4),
    ("ReduceL1", 4), ("ReduceL2", 4), ("ScatterNDUpdate", 3), ("SoftPlus", 4), ("Swish", 4),
]

_OPSET5_ADDED = [
    ("BatchNormInference", 5), ("GatherND", 5), ("GRUSequence", 5), ("HSigmoid", 5),
    ("LogSoftmax", 5), ("Loop", 5), ("LSTMSequence", 5), ("NonMaxSuppression", 5),
    ("RNNSequence", 5), ("Round", 5),
]

# Operations superseded by a newer version of the same type are dropped from later sets
_OPSET3_REMOVED = {("Broadcast", 1), ("NonMaxSuppression", 1), ("ShapeOf", 0), ("TopK", 1)}
_OPSET4_REMOVED = {("Interpolate", 0), ("LSTMCell", 0), ("NonMaxSuppression", 3), ("Proposal", 0),
                   ("Range", 0)}
_OPSET5_REMOVED = {("BatchNormInference", 0), ("LSTMSequence", 0), ("NonMaxSuppression", 4)}


def _build(name: str, previous, added, removed=()):
    types = [t for t in previous if t not in set(removed)] + list(added)
    return types, OpSet(name, types)


@lru_cache(maxsize=None)
def _builtin_opsets() -> Tuple[OpSet, ...]:
    t1, opset1 = _build("opset1", [], _OPSET1)
    t2, opset2 = _build("opset2", t1, _OPSET2_ADDED)
    t3, opset3 = _build("opset3", t2, _OPSET3_ADDED, _OPSET3_REMOVED)
    t4, opset4 = _build("opset4", t3, _OPSET4_ADDED, _OPSET4_REMOVED)
    _, opset5 = _build("opset5", t4, _OPSET5_ADDED, _OPSET5_REMOVED)
    return opset1, opset2, opset3, opset4, opset5


def get_opset1() -> OpSet:
    return _builtin_opsets()[0]


def get_opset2() -> OpSet:
    return _builtin_opsets()[1]


def get_opset3() -> OpSet:
    return _builtin_opsets()[2]


def get_opset4() -> OpSet:
    return _builtin_opsets()[3]


def get_opset5() -> OpSet:
    return _builtin_opsets()[4]


def builtin_opsets() -> Tuple[OpSet, ...]:
    """The built-in op-sets, oldest first."""
    return _builtin_opsets()
