"""
Adaptive Z-order: a learned 2D spatial index with per-region Z-order granularity.

Points are partitioned recursively; every node picks its own bits-per-dimension
so that, within each leaf, the Z-order value of a point predicts its position
in the leaf's sorted array through a simple linear model.

Main Components:
- encoding: Z-order (Morton) codec
- models: Linear rank model
- indexes: Adaptive bit-width selector, the index tree, and an R-Tree baseline
- query: Range query engine and multi-index query facade
- data: Point primitives, dataset loading and generation
- evaluation: Benchmark harness
"""

__version__ = "0.1.0"

from adaptive_zindex.data.loader import DataLoader
from adaptive_zindex.data.points import Point, Rect
from adaptive_zindex.indexes.adaptive_tree import AdaptiveZOrderIndex, build_index
from adaptive_zindex.indexes.rtree_index import RTreeIndex
from adaptive_zindex.indexes.selector import SelectorConfig, determine_optimal_bits
from adaptive_zindex.query.range_query import QueryMode, RangeQueryResult, batch_range_queries, range_query
from adaptive_zindex.query.engine import QueryEngine
from adaptive_zindex.evaluation.evaluator import PerformanceEvaluator

__all__ = [
    "Point",
    "Rect",
    "AdaptiveZOrderIndex",
    "SelectorConfig",
    "build_index",
    "determine_optimal_bits",
    "range_query",
    "batch_range_queries",
    "QueryMode",
    "RangeQueryResult",
    "DataLoader",
    "RTreeIndex",
    "QueryEngine",
    "PerformanceEvaluator",
]
