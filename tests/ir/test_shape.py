import pytest

from pyv_ir.ir.element_type import ElementType
from pyv_ir.ir.shape import Dimension, PartialShape


def test_dimension_kinds():
    assert Dimension.static(3).is_static
    assert Dimension(2, 2) == Dimension.static(2)
    bounded = Dimension(1, 10)
    assert bounded.is_dynamic and bounded.has_upper_bound
    assert bounded.get_max_length() == 10
    unbounded = Dimension.dynamic()
    assert unbounded.is_dynamic and not unbounded.has_upper_bound
    assert str(bounded) == "1..10"
    assert str(unbounded) == "0..?"
    assert str(Dimension.static(4)) == "4"


def test_dimension_rejects_bad_interval():
    with pytest.raises(ValueError):
        Dimension(5, 2)
    with pytest.raises(ValueError):
        Dimension(-1, 2)


def test_dynamic_dimension_has_no_length():
    with pytest.raises(ValueError, match="dynamic dimension"):
        Dimension(1, 4).get_length()


def test_partial_shape_static():
    # given
    shape = PartialShape([2, 3])

    # then
    assert shape.is_static
    assert shape.rank == 2
    assert shape.to_shape() == (2, 3)
    assert shape == PartialShape.from_shape((2, 3))
    assert str(shape) == "[2,3]"


def test_partial_shape_dynamic():
    # given
    shape = PartialShape([2, Dimension(1, 8)])

    # then
    assert shape.is_dynamic
    assert not shape.rank_is_dynamic
    assert shape[1] == Dimension(1, 8)
    with pytest.raises(ValueError, match="not static"):
        shape.to_shape()


def test_partial_shape_dynamic_rank():
    shape = PartialShape.dynamic()
    assert shape.rank_is_dynamic
    assert shape.rank is None
    assert shape.is_dynamic
    assert str(shape) == "[...]"
    with pytest.raises(ValueError, match="dynamic rank"):
        len(shape)


def test_partial_shape_hashes_by_value():
    assert len({PartialShape([1, 2]), PartialShape([1, 2]), PartialShape.dynamic(2)}) == 2
    assert PartialShape([]) != PartialShape.dynamic()


def test_scalar_shape_is_static():
    assert PartialShape([]).is_static
    assert PartialShape([]).to_shape() == ()


@pytest.mark.parametrize("et, real", [
    (ElementType.F32, True),
    (ElementType.BF16, True),
    (ElementType.I64, False),
    (ElementType.U1, False),
    (ElementType.BOOLEAN, False),
])
def test_element_type_is_real(et, real):
    assert et.is_real is real


def test_element_type_numpy_mapping():
    assert ElementType.from_numpy("float16") is ElementType.F16
    assert ElementType.from_numpy(bool) is ElementType.BOOLEAN
    assert ElementType.BF16.to_numpy().name == "uint16"
    assert str(ElementType.I32) == "i32"
    with pytest.raises(ValueError, match="Unsupported numpy dtype"):
        ElementType.from_numpy("complex64")
    with pytest.raises(ValueError, match="no numpy storage"):
        ElementType.UNDEFINED.to_numpy()
