"""BN254 scalar field helpers.

All circuit values, commitments and public signals live in the scalar field
of the BN254 (alt_bn128) curve, the field the EVM pairing precompile and
snarkjs use.
"""

from typing import Any

from py_ecc.optimized_bn128 import curve_order, field_modulus

# Order of the BN254 scalar field (Fr)
FIELD_ORDER: int = curve_order

# Modulus of the BN254 base field (Fq), used for point coordinates
BASE_FIELD_MODULUS: int = field_modulus


def to_int(value: Any) -> int:
    """Parse an int, decimal string or ``0x``-prefixed hex string.

    Raises:
        ValueError: If *value* is not an integer or a numeric string.
        TypeError: If *value* is a bool or some other type.
    """
    if isinstance(value, bool):
        msg = "Booleans are not field elements"
        raise TypeError(msg)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s.startswith("0x"):
            return int(s, 16)
        return int(s, 10)
    msg = f"Expected int or numeric string, got {type(value).__name__}"
    raise TypeError(msg)


def to_field(value: Any) -> int:
    """Reduce *value* into ``[0, FIELD_ORDER)``."""
    return to_int(value) % FIELD_ORDER


def is_field_element(value: int) -> bool:
    """Whether *value* is a canonical scalar field element."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_ORDER


def inverse(value: int) -> int:
    """Multiplicative inverse in the scalar field.

    Raises:
        ZeroDivisionError: If *value* is zero modulo the field order.
    """
    value %= FIELD_ORDER
    if value == 0:
        msg = "Zero has no inverse in the scalar field"
        raise ZeroDivisionError(msg)
    return pow(value, FIELD_ORDER - 2, FIELD_ORDER)
