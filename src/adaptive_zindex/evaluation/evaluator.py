"""
Performance evaluation and metrics for spatial index comparison.
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from adaptive_zindex.query.engine import QueryEngine

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_RATIOS = (0.1, 0.25, 0.5)

Corner = Tuple[int, int]


@dataclass
class QueryBenchmark:
    """Configuration for a query benchmark."""
    window_ratio: float
    num_queries: int = 20
    description: str = ""


@dataclass
class PerformanceMetrics:
    """Performance metrics for an index on one benchmark."""
    index_name: str
    index_type: str
    window_ratio: float
    build_time: float
    memory_usage_mb: float
    avg_query_time: float
    min_query_time: float
    max_query_time: float
    std_query_time: float
    throughput_queries_per_sec: float
    avg_result_count: float
    avg_node_accesses: Optional[float]
    precision: float
    recall: float
    exact_match_rate: float
    total_queries: int
    error_rate: float = 0.0


class PerformanceEvaluator:
    """
    Benchmarks the indexes of a :class:`QueryEngine` on random query windows.

    Every answer is checked against a brute-force scan of the indexed points.
    """

    def __init__(self, query_engine: QueryEngine):
        self.query_engine = query_engine
        self.evaluation_results: Dict[str, Any] = {}
        self.metrics: List[PerformanceMetrics] = []

    def generate_random_queries(
        self,
        window_ratio: float,
        num_queries: int,
        seed: Optional[int] = None
    ) -> List[Tuple[Corner, Corner]]:
        """
        Generate square-ish query windows covering ``window_ratio`` of the data extent per axis.

        Args:
            window_ratio: Window side as a share of the data range, per axis
            num_queries: Number of windows
            seed: Random seed

        Returns:
            List of (bottom_left, top_right) corner pairs
        """
        coords = self.query_engine.coordinates()
        if len(coords) == 0:
            raise ValueError("No data points available")

        min_x, min_y = coords.min(axis=0)
        max_x, max_y = coords.max(axis=0)
        range_x, range_y = int(max_x - min_x), int(max_y - min_y)
        width = max(1, int(range_x * window_ratio))
        height = max(1, int(range_y * window_ratio))

        rng = np.random.default_rng(seed)
        start_xs = int(min_x) + rng.integers(0, max(1, range_x - width), size=num_queries)
        start_ys = int(min_y) + rng.integers(0, max(1, range_y - height), size=num_queries)

        return [
            ((int(sx), int(sy)), (int(sx) + width, int(sy) + height))
            for sx, sy in zip(start_xs, start_ys)
        ]

    def brute_force(self, bottom_left: Corner, top_right: Corner) -> List[Corner]:
        """Reference answer by scanning every indexed point."""
        coords = self.query_engine.coordinates()
        mask = (
            (coords[:, 0] >= bottom_left[0]) & (coords[:, 0] <= top_right[0]) &
            (coords[:, 1] >= bottom_left[1]) & (coords[:, 1] <= top_right[1])
        )
        return [(int(x), int(y)) for x, y in coords[mask]]

    def run_benchmark(
        self,
        benchmark: QueryBenchmark,
        index_names: Optional[Sequence[str]] = None,
        seed: Optional[int] = 42
    ) -> Dict[str, PerformanceMetrics]:
        """
        Run one benchmark on the selected indexes.

        Args:
            benchmark: Benchmark configuration
            index_names: Indexes to evaluate (None for all)
            seed: Random seed for the query windows

        Returns:
            Metrics keyed by index name
        """
        queries = self.generate_random_queries(benchmark.window_ratio, benchmark.num_queries, seed)
        expected = [self.brute_force(bl, tr) for bl, tr in queries]
        names = list(index_names) if index_names else self.query_engine.list_indexes()

        logger.info(f"Running benchmark '{benchmark.description or benchmark.window_ratio}' "
                    f"with {len(queries)} queries on {len(names)} index(es)")

        results = {}
        for name in names:
            times, counts, accesses = [], [], []
            precisions, recalls, exact = [], [], []
            errors = 0

            for (bl, tr), truth in zip(queries, expected):
                outcome = self.query_engine.range_query(bl, tr, index_name=name).get(name)
                if outcome is None or 'error' in outcome:
                    errors += 1
                    continue

                found = sorted(p.as_tuple() for p in outcome['results'])
                times.append(outcome['query_time_seconds'])
                counts.append(len(found))
                if outcome.get('node_accesses') is not None:
                    accesses.append(outcome['node_accesses'])

                found_set, truth_set = set(found), set(truth)
                hits = len(found_set & truth_set)
                precisions.append(hits / len(found_set) if found_set else 1.0)
                recalls.append(hits / len(truth_set) if truth_set else 1.0)
                exact.append(found == sorted(truth))

            metrics = self._summarize(name, benchmark, times, counts, accesses,
                                      precisions, recalls, exact, errors, len(queries))
            results[name] = metrics
            self.metrics.append(metrics)

            logger.info(f"{name}: avg {metrics.avg_query_time * 1000:.3f} ms, "
                        f"recall {metrics.recall:.3f}, exact {metrics.exact_match_rate:.0%}")

        return results

    def _summarize(
        self,
        name: str,
        benchmark: QueryBenchmark,
        times: List[float],
        counts: List[int],
        accesses: List[int],
        precisions: List[float],
        recalls: List[float],
        exact: List[bool],
        errors: int,
        total: int
    ) -> PerformanceMetrics:
        index_info = self.query_engine.indexes[name]
        stats = index_info['stats']
        times_arr = np.array(times) if times else np.zeros(1)
        total_time = float(times_arr.sum())

        return PerformanceMetrics(
            index_name=name,
            index_type=index_info['type'].value,
            window_ratio=benchmark.window_ratio,
            build_time=stats.get('build_time_seconds') or 0.0,
            memory_usage_mb=stats.get('memory_usage_mb') or 0.0,
            avg_query_time=float(times_arr.mean()),
            min_query_time=float(times_arr.min()),
            max_query_time=float(times_arr.max()),
            std_query_time=float(times_arr.std()),
            throughput_queries_per_sec=len(times) / total_time if total_time > 0 else 0.0,
            avg_result_count=float(np.mean(counts)) if counts else 0.0,
            avg_node_accesses=float(np.mean(accesses)) if accesses else None,
            precision=float(np.mean(precisions)) if precisions else 0.0,
            recall=float(np.mean(recalls)) if recalls else 0.0,
            exact_match_rate=float(np.mean(exact)) if exact else 0.0,
            total_queries=total,
            error_rate=errors / total if total else 0.0,
        )

    def comprehensive_evaluation(
        self,
        window_ratios: Sequence[float] = DEFAULT_WINDOW_RATIOS,
        num_queries: int = 20,
        seed: Optional[int] = 42
    ) -> Dict[str, Any]:
        """
        Benchmark every index at every window ratio.

        Returns:
            Dictionary with the per-benchmark metrics, a summary table and rankings
        """
        logger.info(f"Starting evaluation at window ratios {list(window_ratios)}")
        self.metrics = []

        for i, ratio in enumerate(window_ratios):
            benchmark = QueryBenchmark(ratio, num_queries, description=f"{ratio:.0%} window")
            run_seed = None if seed is None else seed + i
            self.run_benchmark(benchmark, seed=run_seed)

        df = self.summary_dataframe()
        avg_performance = df.groupby('index_name')['avg_query_time'].mean().sort_values()

        self.evaluation_results = {
            'metrics': [asdict(m) for m in self.metrics],
            'summary': df,
            'performance_rankings': avg_performance.to_dict(),
            'all_exact': bool((df['exact_match_rate'] == 1.0).all()) if len(df) else True,
        }
        return self.evaluation_results

    def summary_dataframe(self) -> pd.DataFrame:
        """Collected metrics as a DataFrame, one row per (index, window ratio)."""
        return pd.DataFrame([asdict(m) for m in self.metrics])

    def save_results(self, filepath: Path) -> Path:
        """Write the collected metrics as CSV."""
        if not self.metrics:
            raise ValueError("No evaluation results to save")
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        self.summary_dataframe().to_csv(filepath, index=False)
        logger.info(f"Saved evaluation results to {filepath}")
        return filepath
