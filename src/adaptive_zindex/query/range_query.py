"""
Rectangle range queries over an adaptive Z-order index.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from adaptive_zindex.data.points import Point, Rect
from adaptive_zindex.encoding.zorder import global_max_bits, truncate_and_encode
from adaptive_zindex.indexes.adaptive_tree import AdaptiveZOrderIndex, IndexNode

logger = logging.getLogger(__name__)

Observer = Callable[..., None]


class QueryMode(Enum):
    """Leaf scan strategy."""
    AUTO = "auto"
    STRICT = "strict"


@dataclass
class RangeQueryResult:
    """Points found by a range query together with its cost."""
    points: List[Point] = field(default_factory=list)
    node_accesses: int = 0
    elapsed_seconds: float = 0.0

    def __len__(self) -> int:
        return len(self.points)

    def as_tuples(self) -> List[Tuple[int, int]]:
        return [p.as_tuple() for p in self.points]


def _noop_observer(event: str, **details: Any) -> None:
    pass


def error_margin(r_squared: float) -> int:
    """Search window half-width around a model prediction."""
    if r_squared > 0.95:
        return 2
    if r_squared > 0.8:
        return 5
    return 10


class RangeQueryEngine:
    """
    Depth-first range query executor.

    Args:
        index: Built index to query
        observer: Callable invoked as ``observer(event, **details)`` at the
            ``node_visited``, ``leaf_pruned``, ``model_predicted``,
            ``bounds_resolved`` and ``linear_scan`` trace points
        mode: Default leaf scan strategy
    """

    def __init__(
        self,
        index: AdaptiveZOrderIndex,
        observer: Optional[Observer] = None,
        mode: QueryMode = QueryMode.AUTO,
    ):
        self.index = index
        self.observer = observer or _noop_observer
        self.mode = QueryMode(mode)

    def range_query(
        self,
        bottom_left: Any,
        top_right: Any,
        mode: Optional[Union[QueryMode, str]] = None,
    ) -> RangeQueryResult:
        """
        Find every indexed point inside the inclusive rectangle.

        Args:
            bottom_left: (min_x, min_y) corner
            top_right: (max_x, max_y) corner
            mode: Leaf scan strategy; defaults to the engine's

        Returns:
            RangeQueryResult with matching points, visited node count and elapsed time
        """
        if not self.index.is_built:
            raise ValueError("Index not built. Call build() first.")

        rect = Rect.from_corners(bottom_left, top_right)
        mode = QueryMode(mode) if mode is not None else self.mode

        start_time = time.perf_counter()
        root = self.index.root
        global_bits = global_max_bits(max(root.bounds.max_x, root.bounds.max_y))

        result = RangeQueryResult()
        self._visit(root, rect, global_bits, mode, result)
        result.elapsed_seconds = time.perf_counter() - start_time

        logger.debug(f"Range query {rect}: {len(result.points)} points, "
                     f"{result.node_accesses} node accesses, {result.elapsed_seconds * 1000:.3f} ms")
        return result

    def _visit(self, node: IndexNode, rect: Rect, global_bits: int, mode: QueryMode, result: RangeQueryResult) -> None:
        result.node_accesses += 1
        ql = truncate_and_encode(rect.min_x, rect.min_y, global_bits, node.optimal_bits)
        qr = truncate_and_encode(rect.max_x, rect.max_y, global_bits, node.optimal_bits)
        self.observer("node_visited", node=node.index, depth=node.depth,
                      bits=node.optimal_bits, ql=ql, qr=qr)

        if not node.is_leaf:
            for child_index in node.children:
                child = self.index.node(child_index)
                if child.bounds.intersects(rect):
                    self._visit(child, rect, global_bits, mode, result)
            return

        payload = node.payload
        if not payload.points:
            return

        extent = node.pattern_extent()
        if extent is not None:
            overlap = extent.intersection(rect)
            if overlap is None:
                self.observer("leaf_pruned", node=node.index)
                return
            ql = max(ql, truncate_and_encode(overlap.min_x, overlap.min_y, global_bits, node.optimal_bits))
            qr = min(qr, truncate_and_encode(overlap.max_x, overlap.max_y, global_bits, node.optimal_bits))

        if not node.has_learned_model:
            self._linear_scan(node, rect, result)
        elif mode is QueryMode.AUTO and extent is not None and rect.contains_rect(extent):
            self._fast_scan(node, ql, qr, result)
        else:
            self._strict_scan(node, rect, ql, qr, result)

    def _linear_scan(self, node: IndexNode, rect: Rect, result: RangeQueryResult) -> None:
        self.observer("linear_scan", node=node.index, size=len(node.payload.points))
        result.points.extend(p for p in node.payload.points if rect.contains_point(p))

    def _predict(self, node: IndexNode, key: int) -> int:
        n = len(node.payload.points)
        pos = int(round(node.payload.fit.predict(key)))
        return min(max(pos, 0), n - 1)

    def _fast_scan(self, node: IndexNode, ql: int, qr: int, result: RangeQueryResult) -> None:
        """Z-range-only scan; callers guarantee the leaf lies inside the rectangle."""
        points = node.payload.points
        zs = node.payload.z_orders
        n = len(points)

        pos = self._predict(node, ql)
        self.observer("model_predicted", node=node.index, key=ql, position=pos)

        while pos > 0 and int(zs[pos - 1]) >= ql:
            pos -= 1
        while pos < n and int(zs[pos]) < ql:
            pos += 1

        while pos < n and int(zs[pos]) <= qr:
            result.points.append(points[pos])
            pos += 1

    def _strict_scan(self, node: IndexNode, rect: Rect, ql: int, qr: int, result: RangeQueryResult) -> None:
        """Model-windowed binary search followed by a coordinate re-check of every candidate."""
        payload = node.payload
        zs = payload.z_orders
        n = len(zs)
        margin = error_margin(payload.fit.r_squared)

        start_pred = self._predict(node, ql)
        end_pred = self._predict(node, qr)
        self.observer("model_predicted", node=node.index, key=ql, position=start_pred,
                      end_key=qr, end_position=end_pred, margin=margin)

        lo = max(0, start_pred - margin)
        hi = min(n, end_pred + margin + 1)
        key_lo, key_hi = np.uint64(ql), np.uint64(qr)

        fallback = lo >= hi
        if not fallback:
            window = zs[lo:hi]
            start = lo + int(np.searchsorted(window, key_lo, side="left"))
            end = lo + int(np.searchsorted(window, key_hi, side="right"))
            start_ok = (lo == 0 or zs[lo - 1] < key_lo) and (start < hi or hi == n or zs[hi] >= key_lo)
            end_ok = (hi == n or zs[hi] > key_hi) and (lo == 0 or zs[lo - 1] <= key_hi)
            fallback = not (start_ok and end_ok)

        if fallback:
            start = int(np.searchsorted(zs, key_lo, side="left"))
            end = int(np.searchsorted(zs, key_hi, side="right"))

        self.observer("bounds_resolved", node=node.index, start=start, end=end,
                      window=(lo, hi), fallback=fallback)

        for i in range(start, end):
            point = payload.points[i]
            if rect.contains_point(point):
                result.points.append(point)


def range_query(
    index: AdaptiveZOrderIndex,
    bottom_left: Any,
    top_right: Any,
    mode: Union[QueryMode, str] = QueryMode.AUTO,
    observer: Optional[Observer] = None,
) -> RangeQueryResult:
    """Query ``index`` for points inside ``[bottom_left, top_right]``."""
    return RangeQueryEngine(index, observer=observer, mode=mode).range_query(bottom_left, top_right)


def batch_range_queries(
    index: AdaptiveZOrderIndex,
    bottom_lefts: Sequence[Any],
    top_rights: Sequence[Any],
    **options,
) -> List[RangeQueryResult]:
    """
    Run one range query per corner pair.

    Raises:
        ValueError: If the corner sequences differ in length.
    """
    if len(bottom_lefts) != len(top_rights):
        raise ValueError(f"Corner lists must have same length ({len(bottom_lefts)} vs {len(top_rights)})")
    engine = RangeQueryEngine(index, **options)
    return [engine.range_query(bl, tr) for bl, tr in zip(bottom_lefts, top_rights)]
