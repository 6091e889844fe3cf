"""Tests for building the adaptive Z-order index tree."""

import numpy as np
import pytest

from adaptive_zindex.data.points import Point, Rect
from adaptive_zindex.indexes.adaptive_tree import (
    AdaptiveZOrderIndex,
    BitPattern,
    NodeKind,
    build_index,
)


def test_empty_input_builds_single_trivial_leaf():
    index = build_index([])
    assert len(index.nodes) == 1
    assert index.root.kind is NodeKind.LEAF
    assert index.root.optimal_bits == 1
    assert index.root.payload.points == []
    assert not index.root.has_learned_model


def test_uniform_region_builds_single_leaf(sample_points):
    index = build_index(sample_points)
    assert len(index.nodes) == 1
    root = index.root
    assert root.is_leaf
    assert root.parent is None
    assert root.optimal_bits == 2
    assert root.bounds == Rect(0, 6, 0, 6)
    assert index.global_bits == 3
    assert sorted(p.as_tuple() for p in root.payload.points) == sorted(sample_points)


def test_dense_cell_becomes_internal_node(refined_points):
    index = build_index(refined_points)
    root = index.root

    assert root.kind is NodeKind.INTERNAL
    assert root.optimal_bits == 2
    assert root.children == [1, 2]

    block, outlier = index.node(1), index.node(2)
    assert block.parent == 0 and outlier.parent == 0
    assert block.cell_z == 0 and outlier.cell_z == 15
    assert block.bounds == Rect(0, 3, 0, 3)
    assert outlier.bounds == Rect(12, 15, 12, 15)
    assert block.optimal_bits == 4
    assert outlier.optimal_bits == 2
    assert len(block.payload.points) == 9
    assert block.has_learned_model
    assert not outlier.has_learned_model


def test_child_bits_never_below_parent(refined_points):
    index = build_index(refined_points)
    for node in index.nodes:
        if node.parent is not None:
            assert node.optimal_bits >= index.node(node.parent).optimal_bits


def test_leaf_arrays_are_sorted_and_parallel():
    rng = np.random.default_rng(5)
    points = rng.integers(0, 500, size=(400, 2))
    index = build_index(points)
    total = 0
    for leaf in index.iter_leaves():
        zs = leaf.payload.z_orders
        assert np.all(zs[:-1] <= zs[1:])
        assert [p.z_order for p in leaf.payload.points] == [int(z) for z in zs]
        total += len(zs)
    assert total == 400


def test_leaf_patterns_cover_leaf_points():
    rng = np.random.default_rng(9)
    index = build_index(rng.integers(0, 1024, size=(300, 2)))
    for leaf in index.iter_leaves():
        extent = leaf.pattern_extent()
        assert extent is not None
        assert all(extent.contains_point(p) for p in leaf.payload.points)


def test_bit_pattern_common_prefix():
    pattern = BitPattern.common_prefix([0b1100, 0b1101, 0b1111], 4)
    assert pattern.length == 2
    assert pattern.as_string() == "11"
    assert (pattern.lower, pattern.upper) == (12, 15)

    single = BitPattern.common_prefix([5], 4)
    assert single.length == 4
    assert (single.lower, single.upper) == (5, 5)

    disjoint = BitPattern.common_prefix([0, 8], 4)
    assert disjoint.length == 0
    assert disjoint.as_string() == ""
    assert (disjoint.lower, disjoint.upper) == (0, 15)


def test_duplicate_points_are_kept():
    points = [(3, 3)] * 5 + [(0, 0), (7, 7)]
    index = build_index(points)
    stored = [p for leaf in index.iter_leaves() for p in leaf.payload.points]
    assert stored.count(Point(3, 3)) == 5


def test_malformed_points_are_rejected():
    with pytest.raises(ValueError):
        build_index([(1, 2, 3)])
    with pytest.raises(ValueError):
        build_index([(-1, 2)])
    with pytest.raises(ValueError):
        build_index([(1.5, 2)])


def test_statistics_and_clear(refined_points):
    index = AdaptiveZOrderIndex(max_bits=4).build(refined_points)
    stats = index.get_statistics()
    assert stats["status"] == "built"
    assert stats["num_points"] == 10
    assert stats["num_nodes"] == 3
    assert stats["num_leaves"] == 2
    assert stats["max_depth"] == 1
    assert stats["bits_histogram"] == {2: 2, 4: 1}
    assert stats["leaves_with_model"] == 1
    assert stats["memory_usage_mb"] > 0

    index.clear()
    assert not index.is_built
    assert index.get_statistics() == {"status": "not_built"}
    with pytest.raises(ValueError):
        index.root


def test_config_overrides_are_applied():
    index = AdaptiveZOrderIndex(max_bits=2, max_rank_error=1.0)
    assert index.config.max_bits == 2
    assert index.config.max_rank_error == 1.0
    assert index.config.max_depth == 8
