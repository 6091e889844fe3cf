"""Tests for range queries over the adaptive Z-order index."""

import numpy as np
import pytest

from adaptive_zindex.data.points import Point, Rect
from adaptive_zindex.encoding.zorder import truncate_and_encode
from adaptive_zindex.indexes.adaptive_tree import (
    AdaptiveZOrderIndex,
    IndexNode,
    LeafPayload,
    NodeKind,
    build_index,
)
from adaptive_zindex.models.linear import LinearFit
from adaptive_zindex.query.range_query import (
    QueryMode,
    RangeQueryEngine,
    batch_range_queries,
    error_margin,
    range_query,
)


def brute_force(points, bottom_left, top_right):
    return sorted(
        (int(x), int(y)) for x, y in points
        if bottom_left[0] <= x <= top_right[0] and bottom_left[1] <= y <= top_right[1]
    )


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, **details):
        self.events.append((event, details))

    def names(self):
        return [event for event, _ in self.events]


def test_block_query_returns_six_points(sample_points):
    index = build_index(sample_points)
    result = range_query(index, (0, 0), (2, 1))
    assert sorted(result.as_tuples()) == [(0, 0), (0, 1), (1, 0), (1, 1), (2, 0), (2, 1)]
    assert result.node_accesses == 1
    assert result.elapsed_seconds >= 0
    assert len(result) == 6


@pytest.mark.parametrize("mode", [QueryMode.AUTO, QueryMode.STRICT])
def test_query_matches_brute_force(mode):
    rng = np.random.default_rng(21)
    for extent, size in ((64, 50), (500, 400), (5000, 300)):
        points = rng.integers(0, extent, size=(size, 2))
        index = build_index(points)
        for _ in range(40):
            corner = rng.integers(0, extent, size=2)
            span = rng.integers(0, extent // 2 + 1, size=2)
            bl = (int(corner[0]), int(corner[1]))
            tr = (bl[0] + int(span[0]), bl[1] + int(span[1]))
            result = range_query(index, bl, tr, mode=mode)
            assert sorted(result.as_tuples()) == brute_force(points, bl, tr)


def test_query_on_refined_tree_prunes_children(refined_points):
    index = build_index(refined_points)
    result = range_query(index, (0, 0), (1, 1))
    assert sorted(result.as_tuples()) == [(0, 0), (0, 1), (1, 0), (1, 1)]
    assert result.node_accesses == 2


def test_whole_space_query_returns_everything(refined_points):
    index = build_index(refined_points)
    result = range_query(index, (0, 0), (15, 15))
    assert sorted(result.as_tuples()) == sorted(refined_points)
    assert result.node_accesses == 3


def test_auto_mode_uses_fast_scan_for_covered_leaf(refined_points):
    index = build_index(refined_points)

    auto = Recorder()
    fast = range_query(index, (0, 0), (3, 3), observer=auto)
    assert len(fast) == 9
    assert "model_predicted" in auto.names()
    assert "bounds_resolved" not in auto.names()

    strict = Recorder()
    checked = range_query(index, (0, 0), (3, 3), mode="strict", observer=strict)
    assert "bounds_resolved" in strict.names()
    assert sorted(checked.as_tuples()) == sorted(fast.as_tuples())


def test_leaf_outside_pattern_extent_is_pruned(refined_points):
    index = build_index(refined_points)
    recorder = Recorder()
    result = range_query(index, (12, 12), (14, 14), observer=recorder)
    assert result.points == []
    assert result.node_accesses == 2
    assert ("leaf_pruned", {"node": 2}) in recorder.events


def test_leaf_without_model_is_scanned_linearly(refined_points):
    index = build_index(refined_points)
    recorder = Recorder()
    result = range_query(index, (10, 10), (15, 15), observer=recorder)
    assert result.points == [Point(15, 15)]
    assert "linear_scan" in recorder.names()


def test_observer_sees_every_visited_node(refined_points):
    index = build_index(refined_points)
    recorder = Recorder()
    result = range_query(index, (0, 0), (15, 15), observer=recorder)
    visited = [d["node"] for e, d in recorder.events if e == "node_visited"]
    assert visited == [0, 1, 2]
    assert len(visited) == result.node_accesses


def test_repeated_queries_are_identical(sample_points):
    index = build_index(sample_points)
    first = range_query(index, (1, 0), (5, 5))
    second = range_query(index, (1, 0), (5, 5))
    assert first.points == second.points
    assert first.node_accesses == second.node_accesses


def test_corners_outside_coordinate_range_are_clamped(sample_points):
    index = build_index(sample_points)
    result = range_query(index, (-10, -10), (10**12, 10**12))
    assert sorted(result.as_tuples()) == sorted(sample_points)


def test_query_with_large_coordinates():
    points = [(0, 0), (2**32 - 1, 2**32 - 1), (2**31, 2**31), (2**31 + 1, 2**31), (12345, 67890)]
    index = build_index(points)
    assert index.global_bits == 32
    result = range_query(index, (2**31, 0), (2**32 - 1, 2**31))
    assert sorted(result.as_tuples()) == [(2**31, 2**31), (2**31 + 1, 2**31)]


def test_duplicates_are_all_returned():
    points = [(4, 4)] * 3 + [(x, y) for x in range(6) for y in range(6)]
    index = build_index(points)
    for mode in QueryMode:
        result = range_query(index, (4, 4), (4, 4), mode=mode)
        assert result.as_tuples() == [(4, 4)] * 4


def test_empty_index_query():
    index = build_index([])
    result = range_query(index, (0, 0), (10, 10))
    assert result.points == []
    assert result.node_accesses == 1


def test_index_method_delegates_to_engine(sample_points):
    index = build_index(sample_points)
    result = index.range_query((0, 0), (2, 1), mode=QueryMode.STRICT)
    assert len(result) == 6


def test_unbuilt_index_is_rejected():
    from adaptive_zindex.indexes.adaptive_tree import AdaptiveZOrderIndex

    with pytest.raises(ValueError, match="not built"):
        RangeQueryEngine(AdaptiveZOrderIndex()).range_query((0, 0), (1, 1))


def test_batch_queries(sample_points):
    index = build_index(sample_points)
    results = batch_range_queries(index, [(0, 0), (4, 4)], [(2, 1), (6, 6)])
    assert [len(r) for r in results] == [6, 3]

    with pytest.raises(ValueError, match="same length"):
        batch_range_queries(index, [(0, 0)], [(1, 1), (2, 2)])


def test_error_margin_tiers():
    assert error_margin(0.99) == 2
    assert error_margin(0.9) == 5
    assert error_margin(0.7) == 10


def test_strict_scan_falls_back_when_window_misses_bounds():
    points = [Point(i, 0, truncate_and_encode(i, 0, 6, 6)) for i in range(40)]
    zs = np.array([p.z_order for p in points], dtype=np.uint64)
    # Valid but poor model: always predicts position 0, margin 10
    fit = LinearFit(0.0, 0.0, 0.7)
    index = AdaptiveZOrderIndex()
    index.global_bits = 6
    index.nodes = [IndexNode(0, Rect(0, 39, 0, 0), 6, NodeKind.LEAF, LeafPayload(points, zs, fit))]
    assert index.root.has_learned_model
    assert index.root.pattern_extent() is None

    recorder = Recorder()
    result = range_query(index, (30, 0), (35, 0), mode=QueryMode.STRICT, observer=recorder)
    assert sorted(result.as_tuples()) == [(x, 0) for x in range(30, 36)]
    bounds = [d for e, d in recorder.events if e == "bounds_resolved"]
    assert bounds == [{"node": 0, "start": 30, "end": 36, "window": (0, 11), "fallback": True}]

    recorder = Recorder()
    result = range_query(index, (0, 0), (3, 0), mode=QueryMode.STRICT, observer=recorder)
    assert sorted(result.as_tuples()) == [(0, 0), (1, 0), (2, 0), (3, 0)]
    bounds = [d for e, d in recorder.events if e == "bounds_resolved"]
    assert bounds == [{"node": 0, "start": 0, "end": 4, "window": (0, 11), "fallback": False}]
