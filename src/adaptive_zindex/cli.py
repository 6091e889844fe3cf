"""
Command-line interface for the adaptive Z-order index.
"""

import click
import logging
import sys
from pathlib import Path
from typing import Optional

from adaptive_zindex.data.loader import DataLoader
from adaptive_zindex.evaluation.evaluator import DEFAULT_WINDOW_RATIOS, PerformanceEvaluator
from adaptive_zindex.indexes.adaptive_tree import AdaptiveZOrderIndex
from adaptive_zindex.query.engine import IndexType, QueryEngine
from adaptive_zindex.query.range_query import QueryMode, RangeQueryEngine


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def cli(verbose: bool):
    """Adaptive Z-order learned index: build, query and benchmark."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument('output', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--grid-size', type=int, default=10, help='Cells per axis')
@click.option('--cell-size', type=int, default=10, help='Cell side length')
@click.option('--fill-ratio', type=float, default=0.3, help='Share of occupied cells')
@click.option('--points-per-cell', type=int, default=8, help='Points per occupied cell')
@click.option('--seed', type=int, default=42, help='Random seed')
def generate(output: Path, grid_size: int, cell_size: int, fill_ratio: float, points_per_cell: int, seed: int):
    """Generate a sparse grid dataset."""
    try:
        loader = DataLoader()
        df = loader.generate_grid_dataset(grid_size, cell_size, fill_ratio, points_per_cell, seed)
        loader.save_csv(output, df)
        click.echo(f"✅ Wrote {len(df)} points to {output}")
    except Exception as e:
        click.echo(f"❌ Error generating dataset: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('data_file', type=click.Path(exists=True, path_type=Path))
@click.option('--max-points', type=int, help='Read at most this many points')
@click.option('--sample-size', type=int, help='Number of points to sample')
@click.option('--show-tree', is_flag=True, help='Print every index node')
def info(data_file: Path, max_points: Optional[int], sample_size: Optional[int], show_tree: bool):
    """Display dataset information and index statistics."""
    click.echo(f"📊 Analyzing dataset: {data_file}")

    try:
        loader = DataLoader()
        df = loader.load_csv(data_file, max_points=max_points, sample_size=sample_size)
        stats = loader.get_statistics()

        click.echo(f"\n📈 Dataset Statistics:")
        click.echo(f"  Total points: {stats['total_records']:,}")
        click.echo(f"  Unique points: {stats['unique_points']:,}")
        if 'bounds' in stats:
            b = stats['bounds']
            click.echo(f"  X range: {b['min_x']} to {b['max_x']}")
            click.echo(f"  Y range: {b['min_y']} to {b['max_y']}")

        index = AdaptiveZOrderIndex().build(loader.to_points(df))
        index_stats = index.get_statistics()

        click.echo(f"\n🌲 Index Statistics:")
        click.echo(f"  Nodes: {index_stats['num_nodes']} ({index_stats['num_leaves']} leaves)")
        click.echo(f"  Max depth: {index_stats['max_depth']}")
        click.echo(f"  Global bits: {index_stats['global_bits']}, root bits: {index_stats['root_bits']}")
        click.echo(f"  Bits histogram: {index_stats['bits_histogram']}")
        click.echo(f"  Leaves with learned model: {index_stats['leaves_with_model']}")
        click.echo(f"  Build time: {index_stats['build_time_seconds']:.6f}s")

        if show_tree:
            click.echo(f"\n📋 Nodes:")
            for node in index.nodes:
                click.echo(f"  {'  ' * node.depth}{node}")

    except Exception as e:
        click.echo(f"❌ Error analyzing dataset: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('data_file', type=click.Path(exists=True, path_type=Path))
@click.option('--min-x', type=int, required=True, help='Minimum x')
@click.option('--min-y', type=int, required=True, help='Minimum y')
@click.option('--max-x', type=int, required=True, help='Maximum x')
@click.option('--max-y', type=int, required=True, help='Maximum y')
@click.option('--max-points', type=int, help='Read at most this many points')
@click.option('--mode', type=click.Choice([m.value for m in QueryMode]), default=QueryMode.AUTO.value,
              help='Leaf scan strategy')
@click.option('--compare', is_flag=True, help='Also run the query on an R-Tree')
@click.option('--trace', is_flag=True, help='Print query trace events')
def query(
    data_file: Path,
    min_x: int,
    min_y: int,
    max_x: int,
    max_y: int,
    max_points: Optional[int],
    mode: str,
    compare: bool,
    trace: bool
):
    """Perform a range query."""
    click.echo(f"🔍 Performing range query: [({min_x}, {min_y}), ({max_x}, {max_y})]")

    try:
        loader = DataLoader()
        df = loader.load_csv(data_file, max_points=max_points)
        points = loader.to_points(df)

        query_engine = QueryEngine()
        query_engine.add_index("adaptive", IndexType.ADAPTIVE_ZORDER, points)

        if trace:
            def observer(event, **details):
                fields = ", ".join(f"{k}={v}" for k, v in details.items())
                click.echo(f"  [{event}] {fields}")

            RangeQueryEngine(query_engine.indexes["adaptive"]["index"], observer=observer,
                             mode=mode).range_query((min_x, min_y), (max_x, max_y))

        if compare:
            query_engine.add_index("rtree", IndexType.RTREE, points)

        results = query_engine.range_query((min_x, min_y), (max_x, max_y), mode=QueryMode(mode))

        click.echo(f"\n📊 Range Query Results:")
        click.echo("-" * 60)

        for index_name, result in results.items():
            if 'error' in result:
                click.echo(f"{index_name.upper():>12}: ERROR - {result['error']}")
                continue
            line = f"{index_name.upper():>12}: {result['count']:>6} results in {result['query_time_seconds']:.6f}s"
            if result['node_accesses'] is not None:
                line += f", {result['node_accesses']} node accesses"
            click.echo(line)

        adaptive = results.get("adaptive", {})
        if 'error' in adaptive:
            sys.exit(1)

        for point in adaptive['results'][:10]:
            click.echo(f"  {point}")
        if adaptive['count'] > 10:
            click.echo(f"  ... and {adaptive['count'] - 10} more")

    except Exception as e:
        click.echo(f"❌ Error during query: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('data_file', type=click.Path(exists=True, path_type=Path))
@click.option('--max-points', type=int, help='Read at most this many points')
@click.option('--num-queries', type=int, default=20, help='Queries per window size')
@click.option('--seed', type=int, default=42, help='Random seed for query windows')
@click.option('--output', type=click.Path(dir_okay=False, path_type=Path), help='CSV file for the metrics')
def benchmark(data_file: Path, max_points: Optional[int], num_queries: int, seed: int, output: Optional[Path]):
    """Benchmark the adaptive index against an R-Tree on 10/25/50% windows."""
    click.echo(f"🚀 Starting benchmark with dataset: {data_file}")

    try:
        loader = DataLoader()
        df = loader.load_csv(data_file, max_points=max_points)
        points = loader.to_points(df)
        click.echo(f"✅ Dataset ready: {len(points)} points")

        query_engine = QueryEngine()
        click.echo("🏗️ Building adaptive Z-order index...")
        query_engine.add_index("adaptive", IndexType.ADAPTIVE_ZORDER, points)
        click.echo("🏗️ Building R-Tree index...")
        query_engine.add_index("rtree", IndexType.RTREE, points)

        click.echo("⚡ Running performance evaluation...")
        evaluator = PerformanceEvaluator(query_engine)
        results = evaluator.comprehensive_evaluation(DEFAULT_WINDOW_RATIOS, num_queries, seed)

        click.echo("\n" + "=" * 80)
        click.echo("📊 BENCHMARK RESULTS")
        click.echo("=" * 80)
        columns = ['index_name', 'window_ratio', 'avg_query_time', 'avg_result_count',
                   'avg_node_accesses', 'exact_match_rate']
        click.echo(results['summary'][columns].to_string(index=False))

        if output:
            evaluator.save_results(output)
            click.echo(f"\n💾 Detailed results saved to: {output}")

        if not results['all_exact']:
            click.echo("❌ Some answers differ from the brute-force reference", err=True)
            sys.exit(1)

        click.echo("\n✅ Benchmark completed successfully!")

    except Exception as e:
        click.echo(f"❌ Error during benchmark: {e}", err=True)
        sys.exit(1)


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
