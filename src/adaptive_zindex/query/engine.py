"""
Query engine for range queries across different index types.
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from adaptive_zindex.data.points import Point, coerce_points
from adaptive_zindex.indexes.adaptive_tree import AdaptiveZOrderIndex
from adaptive_zindex.indexes.rtree_index import RTreeIndex
from adaptive_zindex.query.range_query import QueryMode, RangeQueryEngine

logger = logging.getLogger(__name__)


class IndexType(Enum):
    """Enumeration of supported index types."""
    ADAPTIVE_ZORDER = "adaptive_zorder"
    RTREE = "rtree"


class QueryEngine:
    """
    Unified query engine for range queries.

    Provides a consistent interface for executing range queries across
    different index implementations (adaptive Z-order, R-Tree).
    """

    def __init__(self):
        """Initialize the query engine."""
        self.indexes: Dict[str, Any] = {}
        self.points: Optional[List[Point]] = None

    def add_index(
        self,
        name: str,
        index_type: IndexType,
        points: Sequence[Any],
        **index_kwargs
    ) -> None:
        """
        Add and build an index.

        Args:
            name: Unique name for the index
            index_type: Type of index to create
            points: Points, (x, y) pairs or an (N, 2) integer array
            **index_kwargs: Additional arguments for index construction
        """
        index_type = IndexType(index_type)
        logger.info(f"Adding {index_type.value} index: {name}")
        points = coerce_points(points)

        if index_type == IndexType.ADAPTIVE_ZORDER:
            index = AdaptiveZOrderIndex(**index_kwargs)
        elif index_type == IndexType.RTREE:
            index = RTreeIndex(**index_kwargs)
        else:
            raise ValueError(f"Unsupported index type: {index_type}")

        index.build(points)

        self.indexes[name] = {
            'index': index,
            'type': index_type,
            'stats': index.get_statistics()
        }

        if self.points is None:
            self.points = points

        logger.info(f"Successfully added index: {name}")

    def range_query(
        self,
        bottom_left: Any,
        top_right: Any,
        index_name: Optional[str] = None,
        measure_time: bool = True,
        mode: QueryMode = QueryMode.AUTO
    ) -> Dict[str, Any]:
        """
        Execute range query on specified index(es).

        Args:
            bottom_left: (min_x, min_y) corner
            top_right: (max_x, max_y) corner
            index_name: Name of specific index (None for all indexes)
            measure_time: Whether to measure query time
            mode: Leaf scan strategy for adaptive Z-order indexes

        Returns:
            Dictionary with query results and timing information
        """
        if not self.indexes:
            raise ValueError("No indexes available")

        target_indexes = [index_name] if index_name else list(self.indexes.keys())
        results = {}

        for name in target_indexes:
            if name not in self.indexes:
                logger.warning(f"Index {name} not found, skipping")
                continue

            index_info = self.indexes[name]
            index = index_info['index']

            start_time = time.perf_counter() if measure_time else None

            try:
                node_accesses = None
                if index_info['type'] == IndexType.ADAPTIVE_ZORDER:
                    outcome = RangeQueryEngine(index, mode=mode).range_query(bottom_left, top_right)
                    query_results = outcome.points
                    node_accesses = outcome.node_accesses
                else:
                    query_results = index.range_query(bottom_left, top_right)
                query_time = time.perf_counter() - start_time if measure_time else None

                results[name] = {
                    'results': query_results,
                    'count': len(query_results),
                    'node_accesses': node_accesses,
                    'query_time_seconds': query_time,
                    'index_type': index_info['type'].value
                }

            except Exception as e:
                logger.error(f"Error executing range query on {name}: {e}")
                results[name] = {
                    'error': str(e),
                    'index_type': index_info['type'].value
                }

        return results

    def batch_range_queries(
        self,
        bottom_lefts: Sequence[Any],
        top_rights: Sequence[Any],
        index_name: Optional[str] = None,
        measure_time: bool = True
    ) -> Dict[str, Any]:
        """
        Execute batch range queries on specified index(es).

        Args:
            bottom_lefts: Bottom-left corners
            top_rights: Top-right corners, same length as ``bottom_lefts``
            index_name: Name of specific index (None for all indexes)
            measure_time: Whether to measure total query time

        Returns:
            Dictionary with batch query results and timing information
        """
        if not self.indexes:
            raise ValueError("No indexes available")
        if len(bottom_lefts) != len(top_rights):
            raise ValueError(f"Corner lists must have same length ({len(bottom_lefts)} vs {len(top_rights)})")

        target_indexes = [index_name] if index_name else list(self.indexes.keys())
        results = {}
        num_queries = len(bottom_lefts)

        for name in target_indexes:
            if name not in self.indexes:
                logger.warning(f"Index {name} not found, skipping")
                continue

            index_info = self.indexes[name]
            start_time = time.perf_counter() if measure_time else None

            try:
                batch_results = []
                for bl, tr in zip(bottom_lefts, top_rights):
                    outcome = self.range_query(bl, tr, index_name=name, measure_time=False)[name]
                    if 'error' in outcome:
                        raise ValueError(outcome['error'])
                    batch_results.append(outcome['results'])

                total_time = time.perf_counter() - start_time if measure_time else None
                results[name] = {
                    'results': batch_results,
                    'num_queries': num_queries,
                    'total_results': sum(len(r) for r in batch_results),
                    'total_time_seconds': total_time,
                    'avg_time_per_query': total_time / num_queries if total_time and num_queries else None,
                    'index_type': index_info['type'].value
                }

            except Exception as e:
                logger.error(f"Error executing batch queries on {name}: {e}")
                results[name] = {
                    'error': str(e),
                    'index_type': index_info['type'].value
                }

        return results

    def compare_indexes(
        self,
        bottom_left: Any,
        top_right: Any,
        index_names: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Compare performance of multiple indexes on the same range query.

        Args:
            bottom_left: (min_x, min_y) corner
            top_right: (max_x, max_y) corner
            index_names: List of index names to compare (None for all)

        Returns:
            Dictionary with comparative results
        """
        target_indexes = index_names if index_names else list(self.indexes.keys())
        results = self.range_query(bottom_left, top_right)

        filtered_results = {k: v for k, v in results.items() if k in target_indexes}

        if len(filtered_results) > 1:
            times = [r['query_time_seconds'] for r in filtered_results.values()
                     if 'error' not in r and r['query_time_seconds']]
            if times:
                fastest_time = min(times)
                for result in filtered_results.values():
                    if result.get('query_time_seconds') is not None:
                        result['speedup_factor'] = result['query_time_seconds'] / fastest_time

            counts = {r['count'] for r in filtered_results.values() if 'error' not in r}
            for result in filtered_results.values():
                result['results_agree'] = len(counts) <= 1

        return filtered_results

    def get_index_statistics(self, index_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Get statistics for specified index(es).

        Args:
            index_name: Name of specific index (None for all indexes)

        Returns:
            Dictionary with index statistics
        """
        if index_name:
            if index_name not in self.indexes:
                raise ValueError(f"Index {index_name} not found")
            return {index_name: self.indexes[index_name]['stats']}
        return {name: info['stats'] for name, info in self.indexes.items()}

    def clear_index(self, index_name: str) -> None:
        """
        Clear and remove an index.

        Args:
            index_name: Name of index to clear
        """
        if index_name not in self.indexes:
            raise ValueError(f"Index {index_name} not found")

        self.indexes[index_name]['index'].clear()
        del self.indexes[index_name]
        logger.info(f"Cleared index: {index_name}")

    def clear_all_indexes(self) -> None:
        """Clear all indexes."""
        for name in list(self.indexes.keys()):
            self.clear_index(name)
        self.points = None
        logger.info("Cleared all indexes")

    def list_indexes(self) -> List[str]:
        """Get list of available index names."""
        return list(self.indexes.keys())

    def coordinates(self) -> np.ndarray:
        """Indexed points as an (N, 2) integer array."""
        if not self.points:
            return np.empty((0, 2), dtype=np.int64)
        return np.array([p.as_tuple() for p in self.points], dtype=np.int64)

    def get_summary(self) -> Dict[str, Any]:
        """
        Get summary of query engine state.

        Returns:
            Dictionary with engine summary
        """
        return {
            'num_indexes': len(self.indexes),
            'index_names': list(self.indexes.keys()),
            'index_types': [info['type'].value for info in self.indexes.values()],
            'data_points': len(self.points) if self.points is not None else 0,
        }
