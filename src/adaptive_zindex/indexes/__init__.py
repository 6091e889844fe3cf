"""Spatial index implementations."""

from .adaptive_tree import AdaptiveZOrderIndex, build_index
from .rtree_index import RTreeIndex
from .selector import AdaptiveBitSelector, SelectorConfig

__all__ = ["AdaptiveZOrderIndex", "build_index", "RTreeIndex", "AdaptiveBitSelector", "SelectorConfig"]
