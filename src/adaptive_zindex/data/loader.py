"""
Data loading and generation utilities for integer point datasets.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from adaptive_zindex.data.points import MAX_COORDINATE, Point

logger = logging.getLogger(__name__)


class DataLoader:
    """
    Loads, generates and saves 2D integer point datasets.

    Files are plain delimited text, one ``x,y`` pair per line; commas and
    whitespace are both accepted as separators and unparseable lines are
    skipped.
    """

    def __init__(self, data_path: Optional[Path] = None):
        """
        Initialize DataLoader.

        Args:
            data_path: Optional path to default data directory
        """
        self.data_path = Path(data_path) if data_path else Path("data")
        self.dataset: Optional[pd.DataFrame] = None

    def _resolve(self, filepath: Path) -> Path:
        filepath = Path(filepath)
        if not filepath.exists() and not filepath.is_absolute() and (self.data_path / filepath).exists():
            return self.data_path / filepath
        return filepath

    def load_csv(
        self,
        filepath: Path,
        max_points: Optional[int] = None,
        sample_size: Optional[int] = None,
        random_state: int = 42
    ) -> pd.DataFrame:
        """
        Load integer points from a delimited text file.

        Args:
            filepath: Path to the file (relative paths are also tried under ``data_path``)
            max_points: Keep only the first N valid rows
            sample_size: Optional number of rows to sample after truncation
            random_state: Random seed for sampling

        Returns:
            DataFrame with int64 columns ``x`` and ``y``
        """
        filepath = self._resolve(filepath)
        logger.info(f"Loading data from {filepath}")

        try:
            raw = pd.read_csv(
                filepath,
                sep=r"[,\s]+",
                header=None,
                engine="python",
                skip_blank_lines=True,
                on_bad_lines="skip",
            )
        except pd.errors.EmptyDataError:
            logger.warning(f"{filepath} contains no data")
            raw = pd.DataFrame()
        except Exception as e:
            logger.error(f"Error loading data: {e}")
            raise

        if raw.shape[1] < 2:
            df = pd.DataFrame({"x": pd.Series(dtype=np.int64), "y": pd.Series(dtype=np.int64)})
        else:
            df = pd.DataFrame({
                "x": pd.to_numeric(raw.iloc[:, 0], errors="coerce"),
                "y": pd.to_numeric(raw.iloc[:, 1], errors="coerce"),
            })

            # Remove invalid coordinates
            initial_count = len(df)
            df = df.dropna(subset=["x", "y"])
            df = df[(df["x"] % 1 == 0) & (df["y"] % 1 == 0)]
            df = df[(df["x"] >= 0) & (df["x"] <= MAX_COORDINATE)]
            df = df[(df["y"] >= 0) & (df["y"] <= MAX_COORDINATE)]
            df = df.astype({"x": np.int64, "y": np.int64}).reset_index(drop=True)

            valid_count = len(df)
            if valid_count < initial_count:
                logger.warning(f"Removed {initial_count - valid_count} rows with invalid coordinates")

        if max_points is not None and int(max_points) < len(df):
            df = df.iloc[:int(max_points)].reset_index(drop=True)

        if sample_size is not None and 0 < int(sample_size) < len(df):
            df = df.sample(n=int(sample_size), random_state=random_state).reset_index(drop=True)
            logger.info(f"Sampled {sample_size} rows from dataset")

        self.dataset = df
        logger.info(f"Loaded {len(df)} points")
        return df

    def generate_grid_dataset(
        self,
        grid_size: int = 10,
        cell_size: int = 10,
        fill_ratio: float = 0.3,
        points_per_cell: int = 8,
        seed: int = 42
    ) -> pd.DataFrame:
        """
        Generate a sparse grid dataset.

        The space ``[0, grid_size * cell_size)`` on both axes is split into
        ``grid_size x grid_size`` cells; a random ``fill_ratio`` share of them
        receives ``points_per_cell`` distinct random points, the rest stay empty.

        Args:
            grid_size: Number of cells per axis
            cell_size: Cell side length
            fill_ratio: Share of occupied cells, in (0, 1]
            points_per_cell: Points placed in each occupied cell
            seed: Random seed

        Returns:
            DataFrame with int64 columns ``x`` and ``y``
        """
        if grid_size < 1 or cell_size < 1:
            raise ValueError("grid_size and cell_size must be positive")
        if not 0 < fill_ratio <= 1:
            raise ValueError(f"fill_ratio must be in (0, 1], got {fill_ratio}")

        rng = np.random.default_rng(seed)
        num_cells = grid_size * grid_size
        num_filled = max(1, int(round(num_cells * fill_ratio)))
        filled = np.sort(rng.choice(num_cells, size=num_filled, replace=False))
        per_cell = min(points_per_cell, cell_size * cell_size)

        xs, ys = [], []
        for cell in filled:
            cx, cy = divmod(int(cell), grid_size)
            offsets = rng.choice(cell_size * cell_size, size=per_cell, replace=False)
            ox, oy = np.divmod(offsets, cell_size)
            xs.append(cx * cell_size + ox)
            ys.append(cy * cell_size + oy)

        df = pd.DataFrame({
            "x": np.concatenate(xs).astype(np.int64),
            "y": np.concatenate(ys).astype(np.int64),
        })
        self.dataset = df
        logger.info(f"Generated {len(df)} points in {num_filled}/{num_cells} cells "
                    f"of a {grid_size}x{grid_size} grid (cell size {cell_size})")
        return df

    def save_csv(self, filepath: Path, df: Optional[pd.DataFrame] = None) -> Path:
        """
        Write points as headerless ``x,y`` lines.

        Args:
            filepath: Output path
            df: DataFrame to save (uses self.dataset if None)
        """
        if df is None:
            df = self.dataset
        if df is None:
            raise ValueError("No dataset provided")

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        df[["x", "y"]].to_csv(filepath, header=False, index=False)
        logger.info(f"Saved {len(df)} points to {filepath}")
        return filepath

    def to_points(self, df: Optional[pd.DataFrame] = None) -> List[Point]:
        """Convert a loaded DataFrame into Points."""
        if df is None:
            df = self.dataset
        if df is None:
            raise ValueError("No dataset loaded. Call load_csv() first.")
        return [Point(int(x), int(y)) for x, y in zip(df["x"], df["y"])]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get dataset statistics.

        Returns:
            Dictionary with dataset statistics
        """
        if self.dataset is None:
            return {}

        df = self.dataset
        stats: Dict[str, Any] = {
            "total_records": len(df),
            "unique_points": int(len(df.drop_duplicates())),
            "memory_usage_mb": df.memory_usage(deep=True).sum() / 1024 / 1024,
        }
        if len(df):
            stats["bounds"] = {
                "min_x": int(df["x"].min()),
                "max_x": int(df["x"].max()),
                "min_y": int(df["y"].min()),
                "max_y": int(df["y"].max()),
            }
        return stats
