"""
Adaptive Z-order index tree.

Every node carries its own bits-per-dimension. Internal nodes split their
region along the aligned grid at that width, one child per occupied cell;
leaves keep their points sorted by their own-width Z-order together with a
linear model predicting array position from Z-order value.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np

from adaptive_zindex.data.points import Point, Rect, coerce_points
from adaptive_zindex.encoding.zorder import global_max_bits, truncate_and_encode
from adaptive_zindex.indexes.selector import (
    AdaptiveBitSelector,
    SelectorConfig,
    group_into_cells,
)
from adaptive_zindex.models.linear import DEGENERATE_FIT, LinearFit, fit_linear

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BitPattern:
    """High-order bit prefix shared by every value of one axis within a leaf."""
    value: int
    length: int
    width: int

    @classmethod
    def common_prefix(cls, values: Iterable[int], width: int) -> "BitPattern":
        values = list(values)
        first = values[0]
        diff = 0
        for v in values[1:]:
            diff |= first ^ v
        length = width - diff.bit_length()
        return cls(first >> (width - length), length, width)

    @property
    def lower(self) -> int:
        return self.value << (self.width - self.length)

    @property
    def upper(self) -> int:
        return self.lower | ((1 << (self.width - self.length)) - 1)

    def as_string(self) -> str:
        if self.length == 0:
            return ""
        return format(self.value, f"0{self.length}b")


class NodeKind(Enum):
    LEAF = "leaf"
    INTERNAL = "internal"


@dataclass
class LeafPayload:
    points: List[Point]
    z_orders: np.ndarray
    fit: LinearFit
    x_pattern: Optional[BitPattern] = None
    y_pattern: Optional[BitPattern] = None


@dataclass
class InternalPayload:
    children: List[int] = field(default_factory=list)


@dataclass
class IndexNode:
    """
    Arena-resident tree node.

    ``parent`` and the children of an internal payload are indices into
    :attr:`AdaptiveZOrderIndex.nodes`; the root has ``parent is None``.
    """
    index: int
    bounds: Rect
    optimal_bits: int
    kind: NodeKind
    payload: Union[LeafPayload, InternalPayload]
    parent: Optional[int] = None
    depth: int = 0
    cell_z: Optional[int] = None  # Z-order of the parent grid cell this node occupies

    @property
    def is_leaf(self) -> bool:
        return self.kind is NodeKind.LEAF

    @property
    def has_learned_model(self) -> bool:
        return self.is_leaf and self.payload.fit.is_valid

    @property
    def children(self) -> List[int]:
        return self.payload.children if self.kind is NodeKind.INTERNAL else []

    @property
    def has_patterns(self) -> bool:
        return self.is_leaf and self.payload.x_pattern is not None and self.payload.y_pattern is not None

    def pattern_extent(self) -> Optional[Rect]:
        """Spatial extent implied by the leaf's bit patterns, clipped to the node bounds."""
        if not self.has_patterns:
            return None
        xp, yp = self.payload.x_pattern, self.payload.y_pattern
        extent = Rect(xp.lower, xp.upper, yp.lower, yp.upper)
        return extent.intersection(self.bounds)

    def __str__(self) -> str:
        b = self.bounds
        if self.is_leaf:
            return (f"Leaf#{self.index}[X({b.min_x}-{b.max_x}) Y({b.min_y}-{b.max_y}), "
                    f"bits={self.optimal_bits}, points={len(self.payload.points)}, "
                    f"model={'yes' if self.has_learned_model else 'no'}]")
        return (f"Internal#{self.index}[X({b.min_x}-{b.max_x}) Y({b.min_y}-{b.max_y}), "
                f"bits={self.optimal_bits}, children={len(self.children)}]")


class AdaptiveZOrderIndex:
    """
    Learned spatial index with per-node adaptive Z-order granularity.

    Built once from a fixed point set, read-only afterwards.
    """

    def __init__(self, config: Optional[SelectorConfig] = None, **kwargs):
        """
        Initialize the index.

        Args:
            config: Selector tunables
            **kwargs: Individual SelectorConfig fields, overriding ``config``
        """
        base = config or SelectorConfig()
        if kwargs:
            base = replace(base, **kwargs)
        self.config = base
        self.nodes: List[IndexNode] = []
        self.num_points: int = 0
        self.global_bits: int = 1
        self.build_time: Optional[float] = None
        self.memory_usage: Optional[float] = None
        self._selector: Optional[AdaptiveBitSelector] = None

    @property
    def is_built(self) -> bool:
        return bool(self.nodes)

    @property
    def root(self) -> IndexNode:
        if not self.nodes:
            raise ValueError("Index not built. Call build() first.")
        return self.nodes[0]

    def node(self, index: int) -> IndexNode:
        return self.nodes[index]

    def build(self, points: Iterable[Any]) -> "AdaptiveZOrderIndex":
        """
        Build the tree from point-like values.

        Args:
            points: Points, (x, y) pairs or an (N, 2) integer array

        Raises:
            ValueError: On malformed coordinates
        """
        points = coerce_points(points)
        logger.info(f"Building adaptive Z-order index for {len(points)} points")
        start_time = time.perf_counter()

        self.nodes = []
        self.num_points = len(points)

        if not points:
            self.global_bits = 1
            self._selector = AdaptiveBitSelector(1, 1, self.config)
            self._make_leaf([], Rect(0, 0, 0, 0), bits=1, parent=None, depth=0, cell_z=None)
        else:
            bounds = Rect.bounding(points)
            self.global_bits = global_max_bits(max(bounds.max_x, bounds.max_y))
            self._selector = AdaptiveBitSelector.for_points(points, self.config)
            self._build_node(points, bounds, parent=None, start_bits=1, depth=0, cell_z=None)

        self.build_time = time.perf_counter() - start_time
        self._calculate_memory_usage()

        stats = self.get_statistics()
        logger.info(f"Adaptive Z-order index built in {self.build_time:.4f} seconds")
        logger.info(f"{stats['num_nodes']} nodes ({stats['num_leaves']} leaves), "
                    f"root bits={self.root.optimal_bits}, global bits={self.global_bits}")
        return self

    def _build_node(
        self,
        points: List[Point],
        bounds: Rect,
        parent: Optional[int],
        start_bits: int,
        depth: int,
        cell_z: Optional[int],
    ) -> int:
        decision = self._selector.evaluate_region(points, Rect.bounding(points), start_bits, depth)
        parent_bits = self.nodes[parent].optimal_bits if parent is not None else 1
        bits = min(max(decision.bits, parent_bits), self.global_bits)

        if not decision.needs_refinement or bits != decision.bits:
            logger.debug(f"{'  ' * depth}Leaf at depth {depth}: {len(points)} points, "
                         f"{bits} bits ({decision.reason.value})")
            return self._make_leaf(points, bounds, bits, parent, depth, cell_z)

        index = len(self.nodes)
        self.nodes.append(IndexNode(
            index=index,
            bounds=bounds,
            optimal_bits=bits,
            kind=NodeKind.INTERNAL,
            payload=InternalPayload(),
            parent=parent,
            depth=depth,
            cell_z=cell_z,
        ))
        cells = decision.cells or group_into_cells(points, self.global_bits, bits)
        logger.debug(f"{'  ' * depth}Internal node at depth {depth}: {len(points)} points, "
                     f"{bits} bits, {len(cells)} occupied cells")

        children = []
        for z, cell in cells.items():
            child_bounds = cell.rect.intersection(bounds)
            child = self._build_node(cell.points, child_bounds, index, bits + 1, depth + 1, z)
            children.append(child)
        self.nodes[index].payload.children = children
        return index

    def _make_leaf(
        self,
        points: List[Point],
        bounds: Rect,
        bits: int,
        parent: Optional[int],
        depth: int,
        cell_z: Optional[int],
    ) -> int:
        keyed = sorted(
            ((truncate_and_encode(p.x, p.y, self.global_bits, bits), p) for p in points),
            key=lambda item: (item[0], item[1].x, item[1].y),
        )
        sorted_points = [p.with_z_order(z) for z, p in keyed]
        z_orders = np.array([z for z, _ in keyed], dtype=np.uint64)
        fit = fit_linear(z_orders) if len(z_orders) else DEGENERATE_FIT

        x_pattern = y_pattern = None
        if sorted_points:
            x_pattern = BitPattern.common_prefix((p.x for p in sorted_points), self.global_bits)
            y_pattern = BitPattern.common_prefix((p.y for p in sorted_points), self.global_bits)

        index = len(self.nodes)
        self.nodes.append(IndexNode(
            index=index,
            bounds=bounds,
            optimal_bits=bits,
            kind=NodeKind.LEAF,
            payload=LeafPayload(sorted_points, z_orders, fit, x_pattern, y_pattern),
            parent=parent,
            depth=depth,
            cell_z=cell_z,
        ))
        return index

    def iter_leaves(self):
        return (n for n in self.nodes if n.is_leaf)

    def range_query(self, bottom_left: Any, top_right: Any, **options):
        """Run a rectangle query; see :class:`adaptive_zindex.query.range_query.RangeQueryEngine`."""
        from adaptive_zindex.query.range_query import RangeQueryEngine
        return RangeQueryEngine(self, observer=options.pop("observer", None)).range_query(
            bottom_left, top_right, **options
        )

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get index statistics.

        Returns:
            Dictionary with index statistics
        """
        if not self.nodes:
            return {"status": "not_built"}

        leaves = list(self.iter_leaves())
        bits_histogram: Dict[int, int] = {}
        for node in self.nodes:
            bits_histogram[node.optimal_bits] = bits_histogram.get(node.optimal_bits, 0) + 1

        r2 = [leaf.payload.fit.r_squared for leaf in leaves if leaf.has_learned_model]
        return {
            "status": "built",
            "num_points": self.num_points,
            "num_nodes": len(self.nodes),
            "num_leaves": len(leaves),
            "max_depth": max(n.depth for n in self.nodes),
            "global_bits": self.global_bits,
            "root_bits": self.root.optimal_bits,
            "bits_histogram": dict(sorted(bits_histogram.items())),
            "leaves_with_model": len(r2),
            "mean_leaf_r2": float(np.mean(r2)) if r2 else None,
            "build_time_seconds": self.build_time,
            "memory_usage_mb": self.memory_usage,
        }

    def _calculate_memory_usage(self) -> None:
        """Approximate memory held by the leaf arrays."""
        memory_usage = 0.0
        for leaf in self.iter_leaves():
            memory_usage += leaf.payload.z_orders.nbytes / (1024 * 1024)
            # two 8-byte coordinates per stored point
            memory_usage += len(leaf.payload.points) * 16 / (1024 * 1024)
        self.memory_usage = memory_usage

    def clear(self) -> None:
        """Clear the index."""
        self.nodes = []
        self.num_points = 0
        self.global_bits = 1
        self.build_time = None
        self.memory_usage = None
        self._selector = None
        logger.info("Adaptive Z-order index cleared")


def build_index(points: Iterable[Any], **config) -> AdaptiveZOrderIndex:
    """Build an adaptive Z-order index from a list of points."""
    return AdaptiveZOrderIndex(**config).build(points)
