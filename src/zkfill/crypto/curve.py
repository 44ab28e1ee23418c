"""BN254 group helpers on top of ``py_ecc.optimized_bn128``.

Points are py_ecc projective triples.  This module adds what a prover and
verifier need beyond the bare group law: JSON (de)serialization in the
snarkjs layout, strict point validation, fixed-base windowed tables for
key generation, and a bucket (Pippenger) multi-scalar multiplication.
"""

import logging
from collections.abc import Sequence
from typing import Any

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    G1,
    G2,
    Z1,
    Z2,
    add,
    b,
    b2,
    curve_order,
    double,
    field_modulus,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    normalize,
)

from zkfill.crypto.field import to_int

logger = logging.getLogger(__name__)

# py_ecc points are tuples of FQ / FQ2 coordinates
G1Point = tuple[Any, Any, Any]
G2Point = tuple[Any, Any, Any]

__all__ = [
    "G1",
    "G2",
    "Z1",
    "Z2",
    "FixedBaseTable",
    "G1Point",
    "G2Point",
    "add",
    "g1_from_json",
    "g1_to_json",
    "g2_from_json",
    "g2_in_subgroup",
    "g2_to_json",
    "msm",
    "multiply",
    "neg",
]


# ---------------------------------------------------------------------------
# Serialization (snarkjs layout: decimal strings, projective with z = 1)
# ---------------------------------------------------------------------------


def _coord(value: Any) -> int:
    coord = to_int(value)
    if not 0 <= coord < field_modulus:
        msg = "Coordinate outside the base field"
        raise ValueError(msg)
    return coord


def _fq2_ints(value: Any) -> tuple[int, int]:
    c0, c1 = value.coeffs
    return int(c0), int(c1)


def g1_to_json(point: G1Point) -> list[str]:
    """Serialize a G1 point as ``[x, y, "1"]`` (``["0", "1", "0"]`` at infinity)."""
    if is_inf(point):
        return ["0", "1", "0"]
    x, y = normalize(point)
    return [str(int(x)), str(int(y)), "1"]


def g2_to_json(point: G2Point) -> list[list[str]]:
    """Serialize a G2 point as ``[[x0, x1], [y0, y1], ["1", "0"]]``."""
    if is_inf(point):
        return [["0", "0"], ["1", "0"], ["0", "0"]]
    x, y = normalize(point)
    x0, x1 = _fq2_ints(x)
    y0, y1 = _fq2_ints(y)
    return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]


def g1_from_json(data: Sequence[Any]) -> G1Point:
    """Parse and validate a G1 point from ``[x, y]`` or ``[x, y, z]``.

    ``z`` must be 1 (affine) or 0 (infinity).  Raises ``ValueError`` for any
    malformed or off-curve input.
    """
    if not isinstance(data, (list, tuple)) or len(data) not in (2, 3):
        msg = "G1 point must be [x, y] or [x, y, z]"
        raise ValueError(msg)
    z = _coord(data[2]) if len(data) == 3 else 1
    if z == 0:
        return Z1
    if z != 1:
        msg = "G1 point must be affine (z = 1)"
        raise ValueError(msg)
    x, y = _coord(data[0]), _coord(data[1])
    if x == 0 and y == 0:
        return Z1
    point = (FQ(x), FQ(y), FQ(1))
    if not is_on_curve(point, b):
        msg = "G1 point is not on the curve"
        raise ValueError(msg)
    return point


def g2_from_json(data: Sequence[Any], *, check_subgroup: bool = True) -> G2Point:
    """Parse and validate a G2 point from ``[[x0, x1], [y0, y1](, [z0, z1])]``.

    Raises ``ValueError`` for malformed, off-curve or (by default)
    out-of-subgroup points.
    """
    if not isinstance(data, (list, tuple)) or len(data) not in (2, 3):
        msg = "G2 point must be [[x0, x1], [y0, y1]] or include z"
        raise ValueError(msg)
    for part in data:
        if not isinstance(part, (list, tuple)) or len(part) != 2:
            msg = "G2 coordinates must be pairs"
            raise ValueError(msg)
    z = (_coord(data[2][0]), _coord(data[2][1])) if len(data) == 3 else (1, 0)
    if z == (0, 0):
        return Z2
    if z != (1, 0):
        msg = "G2 point must be affine (z = 1)"
        raise ValueError(msg)
    x0, x1 = _coord(data[0][0]), _coord(data[0][1])
    y0, y1 = _coord(data[1][0]), _coord(data[1][1])
    if x0 == x1 == y0 == y1 == 0:
        return Z2
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2([1, 0]))
    if not is_on_curve(point, b2):
        msg = "G2 point is not on the curve"
        raise ValueError(msg)
    if check_subgroup and not g2_in_subgroup(point):
        msg = "G2 point is not in the prime-order subgroup"
        raise ValueError(msg)
    return point


def g2_in_subgroup(point: G2Point) -> bool:
    """Whether *point* lies in the order-``r`` subgroup of the twist."""
    return is_inf(multiply(point, curve_order))


# ---------------------------------------------------------------------------
# Fixed-base scalar multiplication
# ---------------------------------------------------------------------------


class FixedBaseTable:
    """Precomputed multiples of one base point for many scalar multiplications.

    ``table[j][d] = d * 2^(window*j) * base``; a multiplication is then one
    addition per window.

    Args:
        base: Point to multiply.
        window: Bits per window.
    """

    def __init__(self, base: Any, window: int = 8) -> None:
        self.window = window
        self._zero = Z2 if isinstance(base[0], FQ2) else Z1
        self._table: list[list[Any]] = []
        windows = -(-curve_order.bit_length() // window)
        step = base
        for _ in range(windows):
            row = [self._zero, step]
            for _ in range(2, 1 << window):
                row.append(add(row[-1], step))
            self._table.append(row)
            for _ in range(window):
                step = double(step)
        logger.debug("Built fixed-base table: %d windows of %d bits", windows, window)

    def multiply(self, scalar: int) -> Any:
        scalar %= curve_order
        mask = (1 << self.window) - 1
        acc = self._zero
        j = 0
        while scalar:
            digit = scalar & mask
            if digit:
                acc = add(acc, self._table[j][digit])
            scalar >>= self.window
            j += 1
        return acc


# ---------------------------------------------------------------------------
# Multi-scalar multiplication
# ---------------------------------------------------------------------------


def _window_bits(n: int) -> int:
    if n < 32:
        return 3
    return max(4, n.bit_length() - 3)


def msm(points: Sequence[Any], scalars: Sequence[int], zero: Any) -> Any:
    """Compute ``sum(s_i * P_i)`` with the bucket method.

    Zero scalars and points at infinity are skipped.  *zero* is the identity
    of the group the points belong to.
    """
    if len(points) != len(scalars):
        msg = f"MSM length mismatch: {len(points)} points, {len(scalars)} scalars"
        raise ValueError(msg)

    pairs = [
        (p, s % curve_order)
        for p, s in zip(points, scalars, strict=True)
        if s % curve_order and not is_inf(p)
    ]
    if not pairs:
        return zero

    c = _window_bits(len(pairs))
    mask = (1 << c) - 1
    max_bits = max(s for _, s in pairs).bit_length()
    windows = -(-max_bits // c)

    result = zero
    for w in reversed(range(windows)):
        for _ in range(c):
            result = double(result) if not is_inf(result) else result
        buckets: list[Any] = [None] * (1 << c)
        shift = w * c
        for p, s in pairs:
            digit = (s >> shift) & mask
            if digit:
                buckets[digit] = p if buckets[digit] is None else add(buckets[digit], p)
        running = zero
        window_sum = zero
        for digit in range(mask, 0, -1):
            if buckets[digit] is not None:
                running = add(running, buckets[digit])
            window_sum = add(window_sum, running)
        result = add(result, window_sum)
    return result
