"""Tests for BN254 group helpers."""

import pytest
from py_ecc.optimized_bn128 import G1, G2, Z1, Z2, add, curve_order, eq, field_modulus, multiply

from zkfill.crypto.curve import (
    FixedBaseTable,
    g1_from_json,
    g1_to_json,
    g2_from_json,
    g2_in_subgroup,
    g2_to_json,
    msm,
)


def test_g1_json_layout():
    """Generator serializes as decimal strings with z = 1."""
    assert g1_to_json(G1) == ["1", "2", "1"]
    assert g1_to_json(Z1) == ["0", "1", "0"]


def test_g1_parse_generated_point():
    point = multiply(G1, 7)
    parsed = g1_from_json(g1_to_json(point))
    assert eq(parsed, point)


def test_g1_parse_accepts_two_coordinates_and_hex():
    parsed = g1_from_json(["0x1", "2"])
    assert eq(parsed, G1)


def test_g1_parse_infinity():
    assert eq(g1_from_json(["0", "1", "0"]), Z1)
    assert eq(g1_from_json(["0", "0"]), Z1)


@pytest.mark.parametrize(
    "data",
    [
        ["1", "3", "1"],
        ["1", "2", "2"],
        ["1"],
        "not a point",
        [str(field_modulus), "2", "1"],
        ["abc", "2", "1"],
    ],
)
def test_g1_parse_rejects_bad_points(data):
    """Off-curve, non-affine, short, out-of-range and non-numeric input."""
    with pytest.raises((ValueError, TypeError)):
        g1_from_json(data)


def test_g2_roundtrip_and_subgroup():
    point = multiply(G2, 11)
    data = g2_to_json(point)

    assert data[2] == ["1", "0"]
    assert eq(g2_from_json(data), point)
    assert g2_in_subgroup(point)


def test_g2_infinity():
    assert g2_to_json(Z2) == [["0", "0"], ["1", "0"], ["0", "0"]]
    assert eq(g2_from_json([["0", "0"], ["1", "0"], ["0", "0"]]), Z2)


def test_g2_rejects_off_curve_and_bad_shape():
    data = g2_to_json(G2)
    data[1][0] = str(int(data[1][0]) + 1)
    with pytest.raises(ValueError):
        g2_from_json(data)
    with pytest.raises(ValueError):
        g2_from_json([["1", "2"], ["3"]])


def test_fixed_base_table_matches_multiply():
    table = FixedBaseTable(G1, window=4)
    for scalar in (0, 1, 2, 255, 123456789, curve_order - 1, curve_order + 3):
        assert eq(table.multiply(scalar), multiply(G1, scalar % curve_order))


def test_fixed_base_table_g2():
    table = FixedBaseTable(G2, window=4)
    assert eq(table.multiply(99), multiply(G2, 99))


def test_msm_matches_naive_sum():
    points = [multiply(G1, i + 1) for i in range(40)]
    scalars = [(i * 7919 + 3) % curve_order for i in range(40)]
    scalars[5] = 0

    expected = Z1
    for p, s in zip(points, scalars, strict=True):
        expected = add(expected, multiply(p, s))

    assert eq(msm(points, scalars, Z1), expected)


def test_msm_small_and_empty():
    assert eq(msm([], [], Z1), Z1)
    assert eq(msm([G1, Z1], [0, 5], Z1), Z1)
    assert eq(msm([G1, G1], [2, 3], Z1), multiply(G1, 5))


def test_msm_length_mismatch():
    with pytest.raises(ValueError):
        msm([G1], [1, 2], Z1)
