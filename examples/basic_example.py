#!/usr/bin/env python3
"""
Basic example demonstrating the adaptive Z-order index.

This example shows how to:
1. Generate a sparse grid dataset
2. Build the adaptive index and an R-Tree baseline
3. Execute range queries, with and without a trace observer
4. Compare performance
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from adaptive_zindex.data.loader import DataLoader
from adaptive_zindex.evaluation.evaluator import PerformanceEvaluator
from adaptive_zindex.indexes.adaptive_tree import build_index
from adaptive_zindex.query.engine import IndexType, QueryEngine
from adaptive_zindex.query.range_query import range_query


def basic_example():
    """Run a basic example of the adaptive index."""
    print("🗺️ Adaptive Z-order Index - Basic Example")
    print("=" * 60)

    # Step 1: Create dataset
    print("\n📊 Generating a 10x10 sparse grid dataset...")
    loader = DataLoader()
    df = loader.generate_grid_dataset(grid_size=10, cell_size=10, fill_ratio=0.3, points_per_cell=8)
    data_file = loader.save_csv(Path(__file__).parent / "grid_10x10_sparse_dataset.csv")
    points = loader.to_points(df)
    print(f"Dataset saved to {data_file}: {len(points)} points")

    # Step 2: Build the index and inspect it
    print("\n🏗️ Building adaptive Z-order index...")
    index = build_index(points)
    stats = index.get_statistics()
    print(f"Nodes: {stats['num_nodes']} ({stats['num_leaves']} leaves), max depth {stats['max_depth']}")
    print(f"Bits per node: {stats['bits_histogram']}")
    for node in index.nodes[:10]:
        print(f"  {'  ' * node.depth}{node}")

    # Step 3: Queries
    print("\n🔍 Range query [(0, 0), (40, 20)]...")
    result = range_query(index, (0, 0), (40, 20))
    print(f"Found {len(result)} points, {result.node_accesses} node accesses, "
          f"{result.elapsed_seconds * 1000:.3f} ms")

    events = []
    range_query(index, (0, 0), (40, 20), mode="strict", observer=lambda event, **details: events.append(event))
    print(f"Strict mode trace: {len(events)} events, "
          f"{events.count('linear_scan')} linear scans, {events.count('bounds_resolved')} model searches")

    # Step 4: Compare against an R-Tree
    print("\n⚡ Benchmarking against an R-Tree...")
    query_engine = QueryEngine()
    query_engine.add_index("adaptive", IndexType.ADAPTIVE_ZORDER, points)
    query_engine.add_index("rtree", IndexType.RTREE, points)

    evaluator = PerformanceEvaluator(query_engine)
    results = evaluator.comprehensive_evaluation(num_queries=20)
    summary = results['summary']
    print(summary[['index_name', 'window_ratio', 'avg_query_time', 'avg_result_count',
                   'exact_match_rate']].to_string(index=False))

    print("\n✅ Example completed successfully!")


if __name__ == "__main__":
    basic_example()
