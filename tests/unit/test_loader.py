"""Tests for dataset loading and generation."""

import numpy as np

from adaptive_zindex.data.loader import DataLoader
from adaptive_zindex.data.points import Point


def test_load_csv_skips_invalid_rows(tmp_path):
    path = tmp_path / "points.csv"
    path.write_text("x,y\n1,2\n3 4\n5,  6\n-1,2\n7.5,1\n8.0,9\nabc,1\n")

    df = DataLoader().load_csv(path)
    assert list(df.columns) == ["x", "y"]
    assert df["x"].dtype == np.int64
    assert list(zip(df["x"], df["y"])) == [(1, 2), (3, 4), (5, 6), (8, 9)]


def test_load_csv_limits_and_samples(tmp_path):
    path = tmp_path / "points.csv"
    path.write_text("".join(f"{i},{i * 2}\n" for i in range(50)))

    loader = DataLoader()
    assert len(loader.load_csv(path, max_points=10)) == 10
    sampled = loader.load_csv(path, max_points=20, sample_size=5)
    assert len(sampled) == 5
    assert set(sampled["x"]) <= set(range(20))


def test_load_csv_resolves_relative_to_data_path(tmp_path):
    (tmp_path / "grid.csv").write_text("1,1\n2,2\n")
    df = DataLoader(tmp_path).load_csv("grid.csv")
    assert len(df) == 2


def test_empty_file_gives_empty_dataset(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")
    loader = DataLoader()
    df = loader.load_csv(path)
    assert len(df) == 0
    assert loader.to_points(df) == []


def test_generate_grid_dataset():
    loader = DataLoader()
    df = loader.generate_grid_dataset(grid_size=10, cell_size=10, fill_ratio=0.3, points_per_cell=8, seed=1)
    assert len(df) == 240
    assert df["x"].between(0, 99).all() and df["y"].between(0, 99).all()
    assert not df.duplicated().any()

    occupied = {(x // 10, y // 10) for x, y in zip(df["x"], df["y"])}
    assert len(occupied) == 30

    again = DataLoader().generate_grid_dataset(grid_size=10, cell_size=10, fill_ratio=0.3, points_per_cell=8, seed=1)
    assert df.equals(again)


def test_save_and_reload(tmp_path):
    loader = DataLoader()
    df = loader.generate_grid_dataset(grid_size=4, cell_size=5, fill_ratio=0.5, points_per_cell=3, seed=2)
    path = loader.save_csv(tmp_path / "out" / "grid.csv")

    assert path.read_text().splitlines()[0].count(",") == 1
    reloaded = DataLoader().load_csv(path)
    assert list(zip(reloaded["x"], reloaded["y"])) == list(zip(df["x"], df["y"]))


def test_to_points_and_statistics(tmp_path):
    path = tmp_path / "points.csv"
    path.write_text("0,0\n3,4\n3,4\n")
    loader = DataLoader()
    loader.load_csv(path)
    assert loader.to_points() == [Point(0, 0), Point(3, 4), Point(3, 4)]

    stats = loader.get_statistics()
    assert stats["total_records"] == 3
    assert stats["unique_points"] == 2
    assert stats["bounds"] == {"min_x": 0, "max_x": 3, "min_y": 0, "max_y": 4}
