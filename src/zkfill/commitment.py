"""Poseidon commitments to a maker's hidden order parameters.

The commitment ``Poseidon(secret_price, secret_amount, nonce)`` is the only
secret-derived value ever published.  It is recomputed inside the circuit
with exactly the same field, parameters and input order.

Example:
    >>> from zkfill.commitment import create_commitment, verify_opening
    >>>
    >>> params, commitment = create_commitment(2000, 10, nonce=123456789)
    >>> verify_opening(commitment, params)
    True
"""

import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from zkfill.crypto.field import FIELD_ORDER, to_field, to_int
from zkfill.crypto.poseidon import poseidon_hash

logger = logging.getLogger(__name__)

# Bit width of every price and amount value, inside and outside the circuit
RANGE_BITS = 64
MAX_VALUE = (1 << RANGE_BITS) - 1
MIN_PRICE = 1
MIN_AMOUNT = 1
NONCE_BYTES = 8

T = TypeVar("T")


class SecretParameters(BaseModel):
    """A maker's hidden minimums plus the commitment nonce.

    Never transmitted in clear; ``repr`` hides every value.
    """

    model_config = ConfigDict(frozen=True)

    secret_price: int = Field(ge=0, repr=False, description="Minimum acceptable price")
    secret_amount: int = Field(ge=0, repr=False, description="Minimum acceptable amount")
    nonce: int = Field(ge=0, repr=False, description="Random blinding nonce")

    def commitment(self) -> int:
        return commit(self.secret_price, self.secret_amount, self.nonce)


# ---------------------------------------------------------------------------
# Tagged validation result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful validation carrying the validated value."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed validation.

    Attributes:
        field: Name of the offending field.
        reason: Human-readable reason (never includes the value itself).
    """

    field: str
    reason: str


ValidationResult = Ok[SecretParameters] | Err


def _bounded(raw: Mapping[str, Any], name: str, low: int) -> int | Err:
    if name not in raw or raw[name] is None:
        return Err(name, "is required")
    try:
        value = to_int(raw[name])
    except (TypeError, ValueError):
        return Err(name, "must be an integer")
    if value < low:
        return Err(name, f"must be at least {low}")
    if value > MAX_VALUE:
        return Err(name, f"must fit in {RANGE_BITS} bits")
    return value


def validate_secret_parameters(params: SecretParameters | Mapping[str, Any]) -> ValidationResult:
    """Validate maker parameters against the protocol bounds.

    Price and amount must lie in ``[1, 2^64 - 1]`` and the nonce in
    ``[0, 2^64 - 1]``.  Accepts a ``SecretParameters`` or a raw mapping of
    ints / numeric strings (e.g. form or JSON input).
    """
    raw = params.model_dump() if isinstance(params, SecretParameters) else params

    price = _bounded(raw, "secret_price", MIN_PRICE)
    if isinstance(price, Err):
        return price
    amount = _bounded(raw, "secret_amount", MIN_AMOUNT)
    if isinstance(amount, Err):
        return amount
    nonce = _bounded(raw, "nonce", 0)
    if isinstance(nonce, Err):
        return nonce

    return Ok(SecretParameters(secret_price=price, secret_amount=amount, nonce=nonce))


# ---------------------------------------------------------------------------
# Commitment scheme
# ---------------------------------------------------------------------------


def commit(secret_price: int, secret_amount: int, nonce: int) -> int:
    """Compute ``Poseidon(secret_price, secret_amount, nonce)``.

    Pure and deterministic; inputs are reduced into the scalar field and no
    range checks are applied.
    """
    return poseidon_hash([to_field(secret_price), to_field(secret_amount), to_field(nonce)])


def generate_nonce() -> int:
    """Draw a fresh 64-bit nonce from the OS CSPRNG."""
    return int.from_bytes(secrets.token_bytes(NONCE_BYTES), "big")


def create_commitment(
    secret_price: int, secret_amount: int, nonce: int | None = None
) -> tuple[SecretParameters, int]:
    """Validate maker parameters and commit to them.

    Returns:
        The validated parameters and their commitment.

    Raises:
        ValueError: If the parameters are outside the protocol bounds.
    """
    raw = {
        "secret_price": secret_price,
        "secret_amount": secret_amount,
        "nonce": generate_nonce() if nonce is None else nonce,
    }
    result = validate_secret_parameters(raw)
    if isinstance(result, Err):
        msg = f"Invalid {result.field}: {result.reason}"
        raise ValueError(msg)

    params = result.value
    commitment = params.commitment()
    logger.info("Created commitment %s", format_commitment(commitment))
    return params, commitment


def verify_opening(commitment: int | str, params: SecretParameters) -> bool:
    """Whether *params* open *commitment*."""
    try:
        expected = parse_commitment(commitment)
    except (TypeError, ValueError):
        return False
    return params.commitment() == expected


def format_commitment(commitment: int) -> str:
    """Decimal string form used in order metadata."""
    return str(commitment)


def parse_commitment(value: int | str) -> int:
    """Parse a published commitment (decimal or ``0x`` hex).

    Raises:
        ValueError: If the value is not a canonical field element.
    """
    commitment = to_int(value)
    if not 0 <= commitment < FIELD_ORDER:
        msg = "Commitment is not a scalar field element"
        raise ValueError(msg)
    return commitment
