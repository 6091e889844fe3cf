"""
Z-order (Morton) codec on explicit bit widths.

Bit ``i`` of x lands at position ``2i + 1`` and bit ``i`` of y at ``2i``, so
x is the more significant coordinate within each interleaved pair.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

MAX_BITS = 32

_MASKS = (
    (16, 0x0000FFFF0000FFFF),
    (8, 0x00FF00FF00FF00FF),
    (4, 0x0F0F0F0F0F0F0F0F),
    (2, 0x3333333333333333),
    (1, 0x5555555555555555),
)
_LOW_32 = 0xFFFFFFFF


def _check_bits(bits: int) -> None:
    if not 0 <= bits <= MAX_BITS:
        raise ValueError(f"bits must be in [0, {MAX_BITS}], got {bits}")


def encode(x: int, y: int, bits: int) -> int:
    """
    Interleave the ``bits`` least-significant bits of x and y, most-significant first.

    Bits of x or y above ``bits`` are ignored; callers re-quantize a coordinate
    by right-shifting it before encoding.
    """
    _check_bits(bits)
    z = 0
    for i in range(bits - 1, -1, -1):
        if (x >> i) & 1:
            z |= 1 << (2 * i + 1)
        if (y >> i) & 1:
            z |= 1 << (2 * i)
    return z


def decode(z: int, bits: int = MAX_BITS) -> Tuple[int, int]:
    """Inverse of :func:`encode`."""
    _check_bits(bits)
    x = y = 0
    for i in range(bits):
        x |= ((z >> (2 * i + 1)) & 1) << i
        y |= ((z >> (2 * i)) & 1) << i
    return x, y


def _spread(v: int) -> int:
    v &= _LOW_32
    for shift, mask in _MASKS:
        v = (v | (v << shift)) & mask
    return v


def encode_fast(x: int, y: int) -> int:
    """Magic-mask encoder for the full 32-bit case; equals ``encode(x, y, 32)``."""
    return (_spread(x) << 1) | _spread(y)


def _spread_array(v: np.ndarray) -> np.ndarray:
    v = v & np.uint64(_LOW_32)
    for shift, mask in _MASKS:
        v = (v | (v << np.uint64(shift))) & np.uint64(mask)
    return v


def encode_batch(xs: Sequence[int], ys: Sequence[int]) -> np.ndarray:
    """
    Vectorised 32-bit encoder.

    Args:
        xs: x coordinates
        ys: y coordinates

    Returns:
        uint64 array of Z-order values

    Raises:
        ValueError: If xs and ys differ in length.
    """
    xs = np.asarray(xs, dtype=np.uint64)
    ys = np.asarray(ys, dtype=np.uint64)
    if xs.shape != ys.shape:
        raise ValueError(f"Arrays must have same length ({xs.shape} vs {ys.shape})")
    return (_spread_array(xs) << np.uint64(1)) | _spread_array(ys)


def global_max_bits(max_coordinate: int) -> int:
    """Bits needed to represent coordinates in ``[0, max_coordinate]``: ceil(log2(max + 1)), at least 1."""
    return max(1, int(max_coordinate).bit_length())


def truncate_and_encode(x: int, y: int, global_bits: int, bits: int) -> int:
    """
    Re-quantize absolute coordinates to ``bits`` bits per axis and encode.

    Coordinates are clamped into ``[0, 2**global_bits - 1]`` first, then the
    ``global_bits - bits`` low-order bits are shifted off. Build and query
    paths both go through here so Z bounds share one granularity.
    """
    if bits > global_bits:
        raise ValueError(f"bits ({bits}) exceeds global bit width ({global_bits})")
    limit = (1 << global_bits) - 1
    shift = global_bits - bits
    x = min(max(x, 0), limit) >> shift
    y = min(max(y, 0), limit) >> shift
    return encode(x, y, bits)
