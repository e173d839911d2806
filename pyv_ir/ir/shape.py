from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union


@dataclass(frozen=True)
class Dimension:
    """A tensor dimension: a concrete size, or an interval [min_length, max_length].

    `max_length=None` means the dimension has no declared upper bound.
    """
    min_length: int = 0
    max_length: Optional[int] = None

    def __post_init__(self):
        if self.min_length < 0:
            raise ValueError(f"Dimension lower bound must be non-negative, got {self.min_length}")
        if self.max_length is not None and self.max_length < self.min_length:
            raise ValueError(f"Invalid dimension interval [{self.min_length}, {self.max_length}]")

    @classmethod
    def static(cls, length: int) -> Dimension:
        return cls(length, length)

    @classmethod
    def dynamic(cls, upper_bound: Optional[int] = None) -> Dimension:
        return cls(0, upper_bound)

    @property
    def is_static(self) -> bool:
        return self.max_length is not None and self.min_length == self.max_length

    @property
    def is_dynamic(self) -> bool:
        return not self.is_static

    @property
    def has_upper_bound(self) -> bool:
        return self.max_length is not None

    def get_length(self) -> int:
        if not self.is_static:
            raise ValueError(f"Cannot get length of dynamic dimension {self}")
        return self.min_length

    def get_max_length(self) -> Optional[int]:
        return self.max_length

    def __str__(self) -> str:
        if self.is_static:
            return str(self.min_length)
        upper = "?" if self.max_length is None else str(self.max_length)
        return f"{self.min_length}..{upper}"


DimLike = Union[int, Dimension]


def _as_dimension(d: DimLike) -> Dimension:
    if isinstance(d, Dimension):
        return d
    return Dimension.static(int(d))


class PartialShape:
    """Tensor shape whose rank and dimensions may be partially unknown.

    `dims=None` stands for a shape of unknown rank.
    """

    def __init__(self, dims: Optional[Iterable[DimLike]] = None):
        self._dims: Optional[Tuple[Dimension, ...]] = None
        if dims is not None:
            self._dims = tuple(_as_dimension(d) for d in dims)

    @classmethod
    def dynamic(cls, rank: Optional[int] = None) -> PartialShape:
        if rank is None:
            return cls(None)
        return cls([Dimension.dynamic()] * rank)

    @classmethod
    def from_shape(cls, shape: Iterable[int]) -> PartialShape:
        return cls([int(d) for d in shape])

    @property
    def rank_is_dynamic(self) -> bool:
        return self._dims is None

    @property
    def rank(self) -> Optional[int]:
        return None if self._dims is None else len(self._dims)

    @property
    def is_static(self) -> bool:
        return self._dims is not None and all(d.is_static for d in self._dims)

    @property
    def is_dynamic(self) -> bool:
        return not self.is_static

    @property
    def dims(self) -> Tuple[Dimension, ...]:
        if self._dims is None:
            raise ValueError("Shape of dynamic rank has no dimensions")
        return self._dims

    def to_shape(self) -> Tuple[int, ...]:
        if not self.is_static:
            raise ValueError(f"Shape {self} is not static")
        return tuple(d.get_length() for d in self._dims)

    def __len__(self) -> int:
        return len(self.dims)

    def __getitem__(self, i) -> Dimension:
        return self.dims[i]

    def __iter__(self):
        return iter(self.dims)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PartialShape):
            return NotImplemented
        return self._dims == other._dims

    def __hash__(self) -> int:
        return hash(self._dims)

    def __str__(self) -> str:
        if self._dims is None:
            return "[...]"
        return "[" + ",".join(str(d) for d in self._dims) + "]"

    def __repr__(self) -> str:
        return f"PartialShape({self})"
