"""
R-Tree spatial index implementation.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from rtree import index

from adaptive_zindex.data.points import Point, Rect, coerce_points

logger = logging.getLogger(__name__)


class RTreeIndex:
    """
    R-Tree spatial index implementation using the rtree library.

    Baseline for comparing the adaptive Z-order index on integer point sets.
    """

    def __init__(
        self,
        leaf_capacity: int = 100,
        near_minimum_overlap_factor: int = 32,
        **kwargs
    ):
        """
        Initialize R-Tree index.

        Args:
            leaf_capacity: Maximum number of entries in a leaf node
            near_minimum_overlap_factor: Near minimum overlap factor for node splitting
            **kwargs: Additional parameters (for compatibility)
        """
        self.leaf_capacity = leaf_capacity
        self.near_minimum_overlap_factor = near_minimum_overlap_factor
        self.index: Optional[index.Index] = None
        self.coordinates: Optional[np.ndarray] = None
        self.build_time: Optional[float] = None
        self.memory_usage: Optional[float] = None

    def build(self, points: Iterable[Any]) -> "RTreeIndex":
        """
        Build R-Tree index from points.

        Args:
            points: Points, (x, y) pairs or an (N, 2) integer array
        """
        points = coerce_points(points)
        logger.info(f"Building R-Tree Index for {len(points)} points")
        start_time = time.perf_counter()

        self.coordinates = np.array([p.as_tuple() for p in points], dtype=np.int64).reshape(-1, 2)

        properties = index.Property()
        properties.leaf_capacity = self.leaf_capacity
        properties.near_minimum_overlap_factor = self.near_minimum_overlap_factor
        properties.storage = index.RT_Memory

        self.index = index.Index(properties=properties)

        # R-Tree expects (left, bottom, right, top); points are degenerate boxes
        for i, (x, y) in enumerate(self.coordinates):
            self.index.insert(i, (float(x), float(y), float(x), float(y)))

        self.build_time = time.perf_counter() - start_time
        self._calculate_memory_usage()

        logger.info(f"R-Tree Index built in {self.build_time:.4f} seconds")
        logger.info(f"Memory usage: {self.memory_usage:.2f} MB")
        return self

    def range_query(self, bottom_left: Any, top_right: Any) -> List[Point]:
        """
        Perform range query using R-Tree index.

        Args:
            bottom_left: (min_x, min_y) corner
            top_right: (max_x, max_y) corner

        Returns:
            Points inside the inclusive rectangle
        """
        if self.index is None:
            raise ValueError("Index not built. Call build() first.")

        rect = Rect.from_corners(bottom_left, top_right)
        bbox = (float(rect.min_x), float(rect.min_y), float(rect.max_x), float(rect.max_y))

        results = []
        for i in self.index.intersection(bbox):
            x, y = self.coordinates[i]
            point = Point(int(x), int(y))
            if rect.contains_point(point):
                results.append(point)
        return results

    def batch_range_queries(self, bottom_lefts: Sequence[Any], top_rights: Sequence[Any]) -> List[List[Point]]:
        """
        Perform batch range queries for multiple rectangles.

        Returns:
            List of result lists, one for each rectangle
        """
        if len(bottom_lefts) != len(top_rights):
            raise ValueError(f"Corner lists must have same length ({len(bottom_lefts)} vs {len(top_rights)})")
        return [self.range_query(bl, tr) for bl, tr in zip(bottom_lefts, top_rights)]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get index statistics and performance metrics.

        Returns:
            Dictionary with index statistics
        """
        if self.index is None:
            return {"status": "not_built"}

        stats = {
            "status": "built",
            "num_points": len(self.coordinates),
            "build_time_seconds": self.build_time,
            "memory_usage_mb": self.memory_usage,
            "leaf_capacity": self.leaf_capacity,
            "near_minimum_overlap_factor": self.near_minimum_overlap_factor,
        }
        if len(self.coordinates):
            stats["bounds"] = self.index.bounds
        return stats

    def _calculate_memory_usage(self) -> None:
        """Calculate approximate memory usage of the index."""
        memory_usage = self.coordinates.nbytes / (1024 * 1024)
        # rtree does not expose memory stats; roughly 100 bytes per entry
        memory_usage += (len(self.coordinates) * 100) / (1024 * 1024)
        self.memory_usage = memory_usage

    def clear(self) -> None:
        """Clear the index and free memory."""
        if self.index is not None:
            self.index.close()

        self.index = None
        self.coordinates = None
        self.build_time = None
        self.memory_usage = None
        logger.info("R-Tree Index cleared")
