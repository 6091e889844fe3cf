"""Tests for the multi-index query engine and the R-Tree baseline."""

import pytest

from adaptive_zindex.indexes.adaptive_tree import AdaptiveZOrderIndex
from adaptive_zindex.query.engine import IndexType, QueryEngine


@pytest.fixture
def engine(sample_points):
    query_engine = QueryEngine()
    query_engine.add_index("adaptive", IndexType.ADAPTIVE_ZORDER, sample_points)
    query_engine.add_index("rtree", IndexType.RTREE, sample_points)
    return query_engine


def test_indexes_agree_on_range_query(engine):
    results = engine.range_query((0, 0), (2, 1))
    assert results["adaptive"]["count"] == 6
    assert results["rtree"]["count"] == 6
    assert sorted(p.as_tuple() for p in results["adaptive"]["results"]) == \
        sorted(p.as_tuple() for p in results["rtree"]["results"])
    assert results["adaptive"]["node_accesses"] == 1
    assert results["rtree"]["node_accesses"] is None


def test_rtree_boundaries_are_inclusive(engine):
    rtree = engine.indexes["rtree"]["index"]
    assert sorted(p.as_tuple() for p in rtree.range_query((4, 4), (5, 5))) == [(4, 4), (5, 5)]
    assert rtree.range_query((7, 7), (9, 9)) == []


def test_unknown_index_is_skipped(engine):
    assert engine.range_query((0, 0), (1, 1), index_name="missing") == {}


def test_query_failure_is_reported(engine):
    engine.indexes["broken"] = {
        "index": AdaptiveZOrderIndex(),
        "type": IndexType.ADAPTIVE_ZORDER,
        "stats": {},
    }
    results = engine.range_query((0, 0), (1, 1))
    assert "not built" in results["broken"]["error"]
    assert results["adaptive"]["count"] == 4


def test_batch_range_queries(engine):
    results = engine.batch_range_queries([(0, 0), (4, 4)], [(2, 1), (6, 6)], index_name="adaptive")
    assert results["adaptive"]["num_queries"] == 2
    assert results["adaptive"]["total_results"] == 9
    with pytest.raises(ValueError):
        engine.batch_range_queries([(0, 0)], [])


def test_compare_indexes(engine):
    results = engine.compare_indexes((0, 0), (6, 6))
    assert set(results) == {"adaptive", "rtree"}
    assert all(r["results_agree"] for r in results.values())


def test_statistics_and_clear(engine):
    stats = engine.get_index_statistics()
    assert stats["adaptive"]["num_points"] == 15
    assert stats["rtree"]["num_points"] == 15
    with pytest.raises(ValueError):
        engine.get_index_statistics("missing")

    assert engine.get_summary()["data_points"] == 15
    assert engine.coordinates().shape == (15, 2)

    engine.clear_index("rtree")
    assert engine.list_indexes() == ["adaptive"]
    engine.clear_all_indexes()
    assert engine.list_indexes() == []
    with pytest.raises(ValueError, match="No indexes"):
        engine.range_query((0, 0), (1, 1))
