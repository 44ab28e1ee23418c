"""Poseidon hash over the BN254 scalar field.

The commitment must be cheap to recompute inside an arithmetic circuit, so it
uses Poseidon (x^5 S-box, 8 full rounds) rather than a bit-oriented hash.
Round constants and the Cauchy MDS matrix are derived with the Grain LFSR
procedure from the Poseidon reference parameter generator, seeded only by
the public parameters (field, S-box, width, round counts).  Nothing here is
random at runtime: the same parameters are produced on every machine.

Example:
    >>> from zkfill.crypto.poseidon import poseidon_hash
    >>> poseidon_hash([2000, 10, 123456789]) == poseidon_hash([2000, 10, 123456789])
    True
"""

import functools
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from zkfill.crypto.field import FIELD_ORDER, inverse

logger = logging.getLogger(__name__)

FULL_ROUNDS = 8
# Partial rounds for widths 2..17 at 128-bit security (x^5, BN254)
PARTIAL_ROUNDS_BY_WIDTH = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
SBOX_ALPHA = 5
FIELD_BITS = FIELD_ORDER.bit_length()


@dataclass(frozen=True)
class PoseidonParams:
    """Fixed parameters for one Poseidon width.

    Attributes:
        width: State width ``t`` (number of inputs + 1).
        full_rounds: Total number of full rounds (split evenly before/after).
        partial_rounds: Number of partial rounds.
        round_constants: One tuple of ``width`` constants per round.
        mds: ``width x width`` mixing matrix, applied as ``new[i] = sum(M[i][j] * s[j])``.
    """

    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple[tuple[int, ...], ...]
    mds: tuple[tuple[int, ...], ...]

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, r: int) -> bool:
        half = self.full_rounds // 2
        return r < half or r >= half + self.partial_rounds


# ---------------------------------------------------------------------------
# Grain LFSR parameter generation
# ---------------------------------------------------------------------------


class _GrainLFSR:
    """80-bit Grain LFSR in self-shrinking mode."""

    def __init__(self, width: int, full_rounds: int, partial_rounds: int) -> None:
        init = (
            _bits(1, 2)  # prime field
            + _bits(0, 4)  # x^alpha S-box
            + _bits(FIELD_BITS, 12)
            + _bits(width, 12)
            + _bits(full_rounds, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        self._bits = init
        self._pos = 0
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        b, i = self._bits, self._pos
        new_bit = b[i + 62] ^ b[i + 51] ^ b[i + 38] ^ b[i + 23] ^ b[i + 13] ^ b[i]
        b.append(new_bit)
        self._pos += 1
        return new_bit

    def bits(self) -> Iterator[int]:
        while True:
            selector = self._clock()
            while selector == 0:
                self._clock()
                selector = self._clock()
            yield self._clock()

    def random_int(self, nbits: int) -> int:
        gen = self.bits()
        value = 0
        for _ in range(nbits):
            value = (value << 1) | next(gen)
        return value


def _bits(value: int, width: int) -> list[int]:
    return [int(c) for c in format(value, f"0{width}b")]


def _generate_round_constants(grain: _GrainLFSR, count: int) -> list[int]:
    constants = []
    while len(constants) < count:
        candidate = grain.random_int(FIELD_BITS)
        if candidate < FIELD_ORDER:
            constants.append(candidate)
    return constants


def _generate_mds(grain: _GrainLFSR, width: int) -> tuple[tuple[int, ...], ...]:
    while True:
        values = [grain.random_int(FIELD_BITS) % FIELD_ORDER for _ in range(2 * width)]
        if len(set(values)) != len(values):
            continue
        xs, ys = values[:width], values[width:]
        if any((x + y) % FIELD_ORDER == 0 for x in xs for y in ys):
            continue
        return tuple(tuple(inverse(x + y) for y in ys) for x in xs)


@functools.lru_cache(maxsize=8)
def poseidon_params(width: int) -> PoseidonParams:
    """Return the (cached) Poseidon parameters for state *width*.

    Raises:
        ValueError: If *width* is outside 2..17.
    """
    if not 2 <= width <= len(PARTIAL_ROUNDS_BY_WIDTH) + 1:
        msg = f"Unsupported Poseidon width {width}"
        raise ValueError(msg)

    partial_rounds = PARTIAL_ROUNDS_BY_WIDTH[width - 2]
    grain = _GrainLFSR(width, FULL_ROUNDS, partial_rounds)
    flat = _generate_round_constants(grain, (FULL_ROUNDS + partial_rounds) * width)
    mds = _generate_mds(grain, width)
    round_constants = tuple(
        tuple(flat[r * width : (r + 1) * width]) for r in range(FULL_ROUNDS + partial_rounds)
    )
    logger.debug("Derived Poseidon parameters for width %d", width)
    return PoseidonParams(
        width=width,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=round_constants,
        mds=mds,
    )


# ---------------------------------------------------------------------------
# Native permutation / hash
# ---------------------------------------------------------------------------


def _sbox(x: int) -> int:
    return pow(x, SBOX_ALPHA, FIELD_ORDER)


def poseidon_permutation(state: Sequence[int], params: PoseidonParams) -> list[int]:
    """Apply the Poseidon permutation to *state*."""
    if len(state) != params.width:
        msg = f"State must have {params.width} elements, got {len(state)}"
        raise ValueError(msg)

    s = [v % FIELD_ORDER for v in state]
    for r in range(params.total_rounds):
        rc = params.round_constants[r]
        s = [(v + c) % FIELD_ORDER for v, c in zip(s, rc, strict=True)]
        if params.is_full_round(r):
            s = [_sbox(v) for v in s]
        else:
            s[0] = _sbox(s[0])
        s = [sum(m * v for m, v in zip(row, s, strict=True)) % FIELD_ORDER for row in params.mds]
    return s


def poseidon_hash(inputs: Sequence[int]) -> int:
    """Hash field elements with Poseidon (capacity element first, set to 0)."""
    if not inputs:
        msg = "Poseidon needs at least one input"
        raise ValueError(msg)
    params = poseidon_params(len(inputs) + 1)
    return poseidon_permutation([0, *inputs], params)[0]
