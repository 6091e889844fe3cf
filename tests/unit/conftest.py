"""Shared point sets for the unit tests."""

import pytest


@pytest.fixture
def sample_points():
    """A dense 4x3 block plus a sparse diagonal tail."""
    return [
        (0, 0), (1, 0), (2, 0), (0, 1), (1, 1), (2, 1), (0, 2), (1, 2), (2, 2),
        (3, 0), (3, 1), (3, 2), (4, 4), (5, 5), (6, 6),
    ]


@pytest.fixture
def refined_points():
    """A 3x3 block far from a single outlier; the block forces one level of refinement."""
    return [(x, y) for x in range(3) for y in range(3)] + [(15, 15)]
