"""Tests for the R1CS builder and gadgets."""

import pytest

from zkfill.circuit.gadgets import mul, poseidon, pow5, range_check
from zkfill.circuit.r1cs import ONE_LC, ConstraintSystem, LinearCombination, as_lc
from zkfill.crypto.field import FIELD_ORDER
from zkfill.crypto.poseidon import poseidon_hash


def test_linear_combination_arithmetic():
    """Addition, subtraction and scaling reduce modulo the field."""
    a = LinearCombination({1: 2, 2: 3})
    b = LinearCombination({1: -2, 3: 1})

    assert (a + b).terms == {2: 3, 3: 1}
    assert (a - a).terms == {}
    assert (a * 2).terms == {1: 4, 2: 6}
    assert (5 + a).terms == {0: 5, 1: 2, 2: 3}
    assert (5 - a).terms == {0: 5, 1: FIELD_ORDER - 2, 2: FIELD_ORDER - 3}
    assert (-a).terms == {1: FIELD_ORDER - 2, 2: FIELD_ORDER - 3}


def test_linear_combination_evaluate():
    lc = LinearCombination({0: 7, 1: 3})
    assert lc.evaluate([1, 5]) == 22
    assert lc.evaluate([1, None]) is None


def test_as_lc_rejects_bool_and_other_types():
    assert as_lc(3).terms == {0: 3}
    with pytest.raises(TypeError):
        as_lc(True)
    with pytest.raises(TypeError):
        as_lc("3")


def test_simple_system_satisfied_and_violated():
    cs = ConstraintSystem()
    x = cs.alloc_public("x", 3)
    y = cs.alloc("y", 9)
    cs.enforce(x, x, y, "square")
    assert cs.is_satisfied()
    assert cs.public_values() == [3]

    bad = ConstraintSystem()
    x = bad.alloc_public("x", 3)
    y = bad.alloc("y", 10)
    bad.enforce(x, x, y, "square")
    assert bad.which_is_unsatisfied() == "square"


def test_public_inputs_must_come_first():
    cs = ConstraintSystem()
    cs.alloc("private", 1)
    with pytest.raises(RuntimeError):
        cs.alloc_public("late", 1)


def test_shape_without_witness():
    """A key-generation system has no witness to check."""
    cs = ConstraintSystem()
    x = cs.alloc_public("x")
    cs.enforce(x, x, x, "idempotent")

    assert not cs.has_witness
    with pytest.raises(ValueError):
        cs.which_is_unsatisfied()
    with pytest.raises(ValueError, match="'x'"):
        cs.witness()


def test_digest_ignores_witness_values():
    def build(value):
        cs = ConstraintSystem()
        x = cs.alloc_public("x", value)
        cs.enforce(x, ONE_LC, x, "id")
        return cs

    assert build(1).digest() == build(2).digest() == build(None).digest()


def test_mul_and_pow5():
    cs = ConstraintSystem()
    x = cs.alloc("x", 3)
    y = mul(cs, x, 4, "y")
    z = pow5(cs, x, "z")

    assert cs.value_of(y) == 12
    assert cs.value_of(z) == 243
    assert cs.num_constraints == 4
    assert cs.is_satisfied()


def test_poseidon_gadget_matches_native_hash():
    cs = ConstraintSystem()
    inputs = [cs.alloc(f"in{i}", v) for i, v in enumerate((2000, 10, 123456789))]

    out = poseidon(cs, inputs)

    assert cs.value_of(out) == poseidon_hash([2000, 10, 123456789])
    assert cs.is_satisfied()


def test_range_check_in_range():
    cs = ConstraintSystem()
    x = cs.alloc("x", 2**8 - 1)
    bits = range_check(cs, x, 8, "x")

    assert len(bits) == 8
    assert cs.is_satisfied()


def test_range_check_out_of_range():
    """A value too wide for the bit width fails the recomposition."""
    cs = ConstraintSystem()
    x = cs.alloc("x", 2**8)
    range_check(cs, x, 8, "x")
    assert cs.which_is_unsatisfied() == "x.sum"


def test_range_check_negative_wraps_and_fails():
    cs = ConstraintSystem()
    x = cs.alloc("x", 3)
    y = cs.alloc("y", 5)
    range_check(cs, x - y, 64, "gap")
    assert cs.which_is_unsatisfied() == "gap.sum"
