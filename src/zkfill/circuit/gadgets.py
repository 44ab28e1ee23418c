"""Reusable constraint gadgets: multiplication, Poseidon, range checks."""

from collections.abc import Sequence

from zkfill.circuit.r1cs import ONE_LC, ConstraintSystem, LCLike, LinearCombination, as_lc
from zkfill.crypto.field import FIELD_ORDER
from zkfill.crypto.poseidon import poseidon_params


def _product(cs: ConstraintSystem, a: LinearCombination, b: LinearCombination) -> int | None:
    va, vb = cs.value_of(a), cs.value_of(b)
    if va is None or vb is None:
        return None
    return va * vb % FIELD_ORDER


def mul(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str) -> LinearCombination:
    """Allocate ``c = a * b`` and constrain it."""
    a, b = as_lc(a), as_lc(b)
    c = cs.alloc(name, _product(cs, a, b))
    cs.enforce(a, b, c, name)
    return c


def pow5(cs: ConstraintSystem, x: LCLike, name: str) -> LinearCombination:
    """``x^5`` in three constraints."""
    x2 = mul(cs, x, x, f"{name}.x2")
    x4 = mul(cs, x2, x2, f"{name}.x4")
    return mul(cs, x4, x, f"{name}.x5")


def poseidon(cs: ConstraintSystem, inputs: Sequence[LCLike], name: str = "poseidon") -> LinearCombination:
    """In-circuit Poseidon hash, matching :func:`zkfill.crypto.poseidon.poseidon_hash`.

    Only S-box outputs become wires; round-constant additions and the MDS
    mix stay as linear combinations.
    """
    params = poseidon_params(len(inputs) + 1)
    state: list[LinearCombination] = [LinearCombination(), *(as_lc(x) for x in inputs)]

    for r in range(params.total_rounds):
        state = [s + c for s, c in zip(state, params.round_constants[r], strict=True)]
        if params.is_full_round(r):
            state = [pow5(cs, s, f"{name}.r{r}.s{i}") for i, s in enumerate(state)]
        else:
            state[0] = pow5(cs, state[0], f"{name}.r{r}.s0")
        mixed = []
        for row in params.mds:
            acc = LinearCombination()
            for m, s in zip(row, state, strict=True):
                acc = acc + s * m
            mixed.append(acc)
        state = mixed
    return state[0]


def range_check(cs: ConstraintSystem, x: LCLike, bits: int, name: str) -> list[LinearCombination]:
    """Constrain ``0 <= x < 2^bits`` by a boolean decomposition.

    With a witness, a value outside the range yields bit wires that fail the
    recomposition constraint, so the violation shows up in
    :meth:`ConstraintSystem.which_is_unsatisfied` under ``<name>.sum``.
    """
    x = as_lc(x)
    value = cs.value_of(x)
    decomposition: list[LinearCombination] = []
    total = LinearCombination()
    for i in range(bits):
        bit_value = None if value is None else (value >> i) & 1
        bit = cs.alloc(f"{name}.b{i}", bit_value)
        cs.enforce(bit, bit - ONE_LC, LinearCombination(), f"{name}.b{i}")
        decomposition.append(bit)
        total = total + bit * (1 << i)
    cs.enforce_equal(total, x, f"{name}.sum")
    return decomposition
