"""
Point and rectangle primitives shared by the index, the query engine and the loaders.
"""

import operator
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

MAX_COORDINATE = (1 << 32) - 1


@dataclass(frozen=True)
class Point:
    """
    Non-negative integer point.

    ``z_order`` is a cached derived value and takes no part in equality or hashing.
    """
    x: int
    y: int
    z_order: Optional[int] = field(default=None, compare=False, hash=False)

    @classmethod
    def coerce(cls, obj: Any) -> "Point":
        """
        Convert a Point, an (x, y) pair or a length-2 array row into a Point.

        Raises:
            ValueError: If the value is not a pair of integral coordinates
                in ``[0, 2**32)``.
        """
        if isinstance(obj, Point):
            return obj
        return cls(*coerce_pair(obj, bounded=True))

    def with_z_order(self, z_order: int) -> "Point":
        return Point(self.x, self.y, z_order)

    def as_tuple(self) -> tuple:
        return (self.x, self.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


def _coordinate(value: Any, bounded: bool = True) -> int:
    try:
        coord = operator.index(value)
    except TypeError:
        # Accept integral floats such as 3.0 coming out of pandas/numpy
        if isinstance(value, float) or hasattr(value, "is_integer"):
            if not float(value).is_integer():
                raise ValueError(f"Coordinate {value!r} is not integral")
            coord = int(value)
        else:
            raise ValueError(f"Coordinate {value!r} is not an integer")
    if bounded and (coord < 0 or coord > MAX_COORDINATE):
        raise ValueError(f"Coordinate {coord} outside supported range [0, {MAX_COORDINATE}]")
    return coord


def coerce_pair(obj: Any, bounded: bool = False) -> Tuple[int, int]:
    """Integral (x, y) pair from a 2-tuple or array row."""
    if isinstance(obj, Point):
        return obj.x, obj.y
    try:
        raw_x, raw_y = obj[0], obj[1]
        if len(obj) != 2:
            raise ValueError(f"Expected a coordinate pair, got {len(obj)} values")
    except (TypeError, IndexError, KeyError) as e:
        raise ValueError(f"Cannot interpret {obj!r} as a point: {e}") from e
    return _coordinate(raw_x, bounded), _coordinate(raw_y, bounded)


def coerce_points(points: Iterable[Any]) -> List[Point]:
    """Coerce an iterable of point-like values into a list of Points."""
    return [Point.coerce(p) for p in points]


@dataclass(frozen=True)
class Rect:
    """Inclusive axis-aligned rectangle ``[min_x, max_x] x [min_y, max_y]``."""
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    @classmethod
    def from_corners(cls, bottom_left: Any, top_right: Any) -> "Rect":
        """Query rectangle from two corners; coordinates may fall outside the indexable range."""
        min_x, min_y = coerce_pair(bottom_left)
        max_x, max_y = coerce_pair(top_right)
        return cls(min_x, max_x, min_y, max_y)

    @classmethod
    def bounding(cls, points: List[Point]) -> "Rect":
        """Tight bounding box of a non-empty point list."""
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        return cls(min(xs), max(xs), min(ys), max(ys))

    def intersects(self, other: "Rect") -> bool:
        return not (
            other.max_x < self.min_x or other.min_x > self.max_x or
            other.max_y < self.min_y or other.min_y > self.max_y
        )

    def intersection(self, other: "Rect") -> Optional["Rect"]:
        if not self.intersects(other):
            return None
        return Rect(
            max(self.min_x, other.min_x), min(self.max_x, other.max_x),
            max(self.min_y, other.min_y), min(self.max_y, other.max_y),
        )

    def contains_point(self, point: Point) -> bool:
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def contains_rect(self, other: "Rect") -> bool:
        return (
            self.min_x <= other.min_x and other.max_x <= self.max_x and
            self.min_y <= other.min_y and other.max_y <= self.max_y
        )

    @property
    def range_x(self) -> int:
        return self.max_x - self.min_x

    @property
    def range_y(self) -> int:
        return self.max_y - self.min_y

    def __str__(self) -> str:
        return f"[{self.min_x}, {self.max_x}] x [{self.min_y}, {self.max_y}]"
