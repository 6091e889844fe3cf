"""
Adaptive bit-width selection.

Finds, per region, the largest bits-per-dimension whose Z-order values are
linearly rankable within a bounded position error, and decides which grid
cells at that width are hard enough to warrant a finer, recursive look.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Dict, Iterable, List, Optional, Tuple

from adaptive_zindex.data.points import Point, Rect, coerce_points
from adaptive_zindex.encoding.zorder import global_max_bits, truncate_and_encode
from adaptive_zindex.models.linear import fit_linear

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectorConfig:
    """Tunables of the selection heuristic."""
    max_depth: int = 8
    small_region_points: int = 4
    max_bits: int = 4
    max_rank_error: float = 2.0
    collinear_slope_tolerance: float = 1.0
    refine_fraction: float = 0.5
    max_refined_cells: int = 5


class DecisionReason(Enum):
    """Why a region ended up with its bit width."""
    DEPTH_LIMIT = "depth_limit"
    SMALL_REGION = "small_region"
    TINY_RANGE = "tiny_range"
    NO_ACCEPTED_WIDTH = "no_accepted_width"
    MAX_BITS = "max_bits"
    REFINE = "refine"
    ACCEPTED = "accepted"


@dataclass
class Cell:
    """
    One occupied cell of the aligned ``2^bits x 2^bits`` grid.

    The grid is aligned on absolute coordinates: cell ``(cx, cy)`` at width
    ``bits`` spans ``[cx << shift, ((cx + 1) << shift) - 1]`` on x (likewise
    on y) with ``shift = global_bits - bits``.
    """
    min_x: int
    max_x: int
    min_y: int
    max_y: int
    z_order: int
    points: List[Point] = field(default_factory=list)

    def has_data(self) -> bool:
        return bool(self.points)

    def add_point(self, point: Point) -> None:
        self.points.append(point)

    @cached_property
    def center(self) -> Optional[Point]:
        if not self.has_data():
            return None
        return Point((self.min_x + self.max_x) // 2, (self.min_y + self.max_y) // 2)

    @property
    def rect(self) -> Rect:
        return Rect(self.min_x, self.max_x, self.min_y, self.max_y)

    def __str__(self) -> str:
        return f"Cell[{self.min_x},{self.max_x}]x[{self.min_y},{self.max_y}]"


@dataclass
class RegionDecision:
    """Outcome of one level of the selection algorithm for a region."""
    bits: int
    reason: DecisionReason
    max_error: Optional[float] = None  # rank error observed when `bits` was accepted
    cells: Dict[int, Cell] = field(default_factory=dict)
    refine: List[int] = field(default_factory=list)  # cell Z-orders to look at recursively

    @property
    def needs_refinement(self) -> bool:
        return bool(self.refine)


def is_roughly_collinear(points: List[Point], tolerance: float = 1.0) -> bool:
    """
    Cheap collinearity test: slopes from the first point to every other point
    must span at most ``tolerance``. Vertical pairs are ignored.
    """
    if len(points) <= 2:
        return True

    first = points[0]
    slopes = [
        (p.y - first.y) / (p.x - first.x)
        for p in points[1:]
        if p.x != first.x
    ]
    if not slopes:
        return True
    return abs(max(slopes) - min(slopes)) <= tolerance


def group_into_cells(points: Iterable[Point], global_bits: int, bits: int) -> Dict[int, Cell]:
    """Bucket points into the aligned grid at ``bits``, keyed by cell Z-order (ascending)."""
    shift = global_bits - bits
    cells: Dict[int, Cell] = {}
    for point in points:
        z = truncate_and_encode(point.x, point.y, global_bits, bits)
        cell = cells.get(z)
        if cell is None:
            cx, cy = point.x >> shift, point.y >> shift
            cell = Cell(
                min_x=cx << shift, max_x=((cx + 1) << shift) - 1,
                min_y=cy << shift, max_y=((cy + 1) << shift) - 1,
                z_order=z,
            )
            cells[z] = cell
        cell.add_point(point)
    return dict(sorted(cells.items()))


class AdaptiveBitSelector:
    """
    Adaptive bits-per-dimension selector bound to one dataset.

    The selector needs the dataset-wide bit width (to re-quantize absolute
    coordinates) and the widening ceiling derived from the root region; both
    are fixed at construction time and shared by every recursive call.
    """

    def __init__(
        self,
        global_bits: int,
        widening_ceiling: int,
        config: Optional[SelectorConfig] = None,
    ):
        """
        Args:
            global_bits: Bits needed for the largest coordinate in the dataset
            widening_ceiling: Largest width ever tried during widening
            config: Heuristic tunables
        """
        self.global_bits = global_bits
        self.widening_ceiling = min(widening_ceiling, global_bits)
        self.config = config or SelectorConfig()

    @classmethod
    def for_points(cls, points: List[Point], config: Optional[SelectorConfig] = None) -> "AdaptiveBitSelector":
        if not points:
            return cls(1, 1, config)
        bounds = Rect.bounding(points)
        g_bits = global_max_bits(max(bounds.max_x, bounds.max_y))
        max_range = max(bounds.range_x + 1, bounds.range_y + 1)
        # ceil(log2(max_range))
        ceiling = (max_range - 1).bit_length()
        return cls(g_bits, ceiling, config)

    def determine_optimal_bits(self, points: List[Point]) -> int:
        """Full recursive selection over a region; returns the largest width any refinement needed."""
        if not points:
            return 1
        return self._select(points, Rect.bounding(points), start_bits=1, depth=0)

    def _select(self, points: List[Point], bounds: Rect, start_bits: int, depth: int) -> int:
        decision = self.evaluate_region(points, bounds, start_bits, depth)
        if not decision.needs_refinement:
            return decision.bits

        best = decision.bits
        for z in decision.refine:
            cell = decision.cells[z]
            logger.debug(f"{'  ' * depth}Refining cell Z={z} ({len(cell.points)} points) from {decision.bits + 1} bits")
            cell_bits = self._select(cell.points, Rect.bounding(cell.points), decision.bits + 1, depth + 1)
            best = max(best, cell_bits)
            if best >= self.config.max_bits:
                break
        return min(best, self.config.max_bits)

    def evaluate_region(self, points: List[Point], bounds: Rect, start_bits: int, depth: int) -> RegionDecision:
        """
        Run one level of the algorithm: base cases, progressive widening and
        the recursion trigger. Does not recurse itself.
        """
        cfg = self.config
        indent = "  " * depth

        if depth > cfg.max_depth:
            logger.debug(f"{indent}Depth {depth} over limit {cfg.max_depth}, using 1 bit")
            return RegionDecision(1, DecisionReason.DEPTH_LIMIT)

        if len(points) <= cfg.small_region_points:
            bits = 1 if is_roughly_collinear(points, cfg.collinear_slope_tolerance) else 2
            logger.debug(f"{indent}{len(points)} points, direct collinearity test -> {bits} bits")
            return RegionDecision(bits, DecisionReason.SMALL_REGION)

        if bounds.range_x <= 1 and bounds.range_y <= 1:
            logger.debug(f"{indent}Range {bounds.range_x}x{bounds.range_y} too small to subdivide")
            return RegionDecision(1, DecisionReason.TINY_RANGE)

        bits, max_error = self.progressive_widening(points, start_bits, depth)
        if max_error is None:
            logger.debug(f"{indent}No width accepted from {start_bits} bits, using {bits}")
            return RegionDecision(bits, DecisionReason.NO_ACCEPTED_WIDTH)

        if bits >= cfg.max_bits:
            return RegionDecision(bits, DecisionReason.MAX_BITS, max_error)

        cells = group_into_cells(points, self.global_bits, bits)
        failing = [
            z for z, cell in cells.items()
            if len(cell.points) > cfg.small_region_points
            and not is_roughly_collinear(cell.points, cfg.collinear_slope_tolerance)
        ]
        allowed = max(1, int(len(cells) * cfg.refine_fraction))

        if failing and len(failing) <= allowed:
            logger.debug(f"{indent}{len(failing)}/{len(cells)} cells at {bits} bits need refinement")
            return RegionDecision(
                bits, DecisionReason.REFINE, max_error,
                cells=cells, refine=failing[:cfg.max_refined_cells],
            )

        logger.debug(f"{indent}Accepting {bits} bits ({len(failing)} failing of {len(cells)} cells)")
        return RegionDecision(bits, DecisionReason.ACCEPTED, max_error, cells=cells)

    def progressive_widening(self, points: List[Point], start_bits: int, depth: int = 0) -> Tuple[int, Optional[float]]:
        """
        Try widths from ``start_bits`` upward while the distinct Z-orders stay
        linearly rankable.

        Returns:
            Tuple of (last accepted width, its max rank error). The error is
            None when no width was accepted, in which case the width is
            ``max(1, start_bits - 1)``.
        """
        cfg = self.config
        indent = "  " * depth
        last_good = max(1, start_bits - 1)
        last_error: Optional[float] = None

        for bits in range(start_bits, self.widening_ceiling + 1):
            keys = sorted({truncate_and_encode(p.x, p.y, self.global_bits, bits) for p in points})
            if len(keys) < 2:
                logger.debug(f"{indent}{bits} bits: only {len(keys)} distinct Z-order value(s)")
                break

            fit = fit_linear(keys)
            if not fit.is_valid:
                logger.debug(f"{indent}{bits} bits: linear fit rejected ({fit})")
                break

            error = fit.max_abs_error
            if error > cfg.max_rank_error:
                logger.debug(f"{indent}{bits} bits: max rank error {error:.2f} > {cfg.max_rank_error}")
                break

            logger.debug(f"{indent}{bits} bits: {len(keys)} keys, max rank error {error:.2f}, accepted")
            last_good, last_error = bits, error
            if bits >= cfg.max_bits:
                break

        return last_good, last_error


def determine_optimal_bits(points: Iterable[Any], config: Optional[SelectorConfig] = None) -> int:
    """Bits-per-dimension the selector picks for a whole point set."""
    points = coerce_points(points)
    return AdaptiveBitSelector.for_points(points, config).determine_optimal_bits(points)
