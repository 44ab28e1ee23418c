"""Proof and public-signal models, and the on-chain calldata format.

Proofs travel as snarkjs-style JSON (decimal coordinate strings).  For the
EVM pairing precompile each G2 coordinate pair is written ``(c1, c0)``
instead of ``(c0, c1)``; :func:`swap_g2` and :func:`unswap_g2` are the only
places that convention lives.
"""

from collections.abc import Sequence
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from zkfill.crypto.curve import G1Point, G2Point, g1_to_json, g2_to_json
from zkfill.crypto.field import to_int


def _stringify(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_stringify(v) for v in value]
    return value


# Decimal coordinate strings, accepting ints on input
Coordinates = Annotated[list[str], BeforeValidator(_stringify)]
CoordinatePairs = Annotated[list[list[str]], BeforeValidator(_stringify)]


class Proof(BaseModel):
    """A Groth16 proof in snarkjs layout.

    Shape is not enforced here; the verifier rejects malformed points.
    """

    pi_a: Coordinates
    pi_b: CoordinatePairs
    pi_c: Coordinates
    protocol: Literal["groth16"] = "groth16"
    curve: Literal["bn128"] = "bn128"

    @classmethod
    def from_points(cls, a: G1Point, b: G2Point, c: G1Point) -> "Proof":
        return cls(pi_a=g1_to_json(a), pi_b=g2_to_json(b), pi_c=g1_to_json(c))

    @classmethod
    def from_calldata(
        cls, a: Sequence[Any], b: Sequence[Sequence[Any]], c: Sequence[Any]
    ) -> "Proof":
        """Rebuild a proof from on-chain calldata (G2 coordinates swapped back)."""
        return cls(pi_a=[*a, 1], pi_b=[*unswap_g2(b), [1, 0]], pi_c=[*c, 1])


class PublicSignals(BaseModel):
    """The five public signals a proof is bound to, in circuit order."""

    model_config = ConfigDict(frozen=True)

    valid: int = Field(ge=0)
    commitment: int = Field(ge=0)
    nonce: int = Field(ge=0)
    offered_price: int = Field(ge=0)
    offered_amount: int = Field(ge=0)

    def to_list(self) -> list[int]:
        return [self.valid, self.commitment, self.nonce, self.offered_price, self.offered_amount]

    def to_strings(self) -> list[str]:
        return [str(v) for v in self.to_list()]

    @classmethod
    def from_list(cls, values: Sequence[Any]) -> "PublicSignals":
        """Build from a 5-element list of ints or numeric strings.

        Raises:
            ValueError: On wrong arity or non-numeric values.
        """
        if len(values) != 5:
            msg = f"Expected 5 public signals, got {len(values)}"
            raise ValueError(msg)
        valid, commitment, nonce, price, amount = (to_int(v) for v in values)
        return cls(
            valid=valid,
            commitment=commitment,
            nonce=nonce,
            offered_price=price,
            offered_amount=amount,
        )


class ProofBundle(BaseModel):
    """A proof together with the public signals it was generated for."""

    proof: Proof
    public_signals: PublicSignals

    def calldata(self) -> "Calldata":
        return export_calldata(self.proof, self.public_signals)


class Calldata(BaseModel):
    """Proof in the argument shape of an on-chain Groth16 verifier."""

    a: list[int]
    b: list[list[int]]
    c: list[int]
    signals: list[int]


# ---------------------------------------------------------------------------
# G2 coordinate convention
# ---------------------------------------------------------------------------


def swap_g2(b: Sequence[Sequence[Any]]) -> list[list[Any]]:
    """``[[x0, x1], [y0, y1]]`` to the on-chain ``[[x1, x0], [y1, y0]]``."""
    return [[b[0][1], b[0][0]], [b[1][1], b[1][0]]]


def unswap_g2(b: Sequence[Sequence[Any]]) -> list[list[Any]]:
    """Inverse of :func:`swap_g2`; rejects anything but a 2x2 array."""
    if len(b) != 2 or any(len(pair) != 2 for pair in b):
        msg = "G2 calldata must be a 2x2 array"
        raise ValueError(msg)
    return [[b[0][1], b[0][0]], [b[1][1], b[1][0]]]


def export_calldata(proof: Proof, public_signals: PublicSignals) -> Calldata:
    """Convert a proof to on-chain calldata (projective ``z`` dropped, G2 swapped)."""
    b_affine = [[to_int(v) for v in pair] for pair in proof.pi_b[:2]]
    return Calldata(
        a=[to_int(v) for v in proof.pi_a[:2]],
        b=swap_g2(b_affine),
        c=[to_int(v) for v in proof.pi_c[:2]],
        signals=public_signals.to_list(),
    )
