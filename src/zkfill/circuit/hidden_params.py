"""The hidden-parameter fill circuit.

Public signals, in order: ``valid``, ``commitment``, ``nonce``,
``offered_price``, ``offered_amount``.  Private inputs: ``secret_price`` and
``secret_amount``.  A witness exists only when

* ``Poseidon(secret_price, secret_amount, nonce) == commitment``,
* ``offered_price >= secret_price`` and ``offered_amount >= secret_amount``
  (non-strict), with all four values and both differences decomposed into
  ``RANGE_BITS`` bits so the subtraction cannot wrap around the field,
* ``valid == 1``.
"""

import functools
import logging
from dataclasses import dataclass

from zkfill.circuit.gadgets import poseidon, range_check
from zkfill.circuit.r1cs import ONE_LC, ConstraintSystem
from zkfill.commitment import RANGE_BITS

logger = logging.getLogger(__name__)

PUBLIC_SIGNAL_NAMES = ("valid", "commitment", "nonce", "offered_price", "offered_amount")
NUM_PUBLIC_SIGNALS = len(PUBLIC_SIGNAL_NAMES)


@dataclass(frozen=True)
class HiddenParamsWitness:
    """Full assignment for one proof. Holds secrets; never log it."""

    secret_price: int
    secret_amount: int
    nonce: int
    commitment: int
    offered_price: int
    offered_amount: int

    def __repr__(self) -> str:
        return "HiddenParamsWitness(<redacted>)"


def synthesize(witness: HiddenParamsWitness | None = None) -> ConstraintSystem:
    """Build the circuit, assigning values when *witness* is given."""
    w = witness
    cs = ConstraintSystem()

    valid = cs.alloc_public("valid", None if w is None else 1)
    commitment = cs.alloc_public("commitment", None if w is None else w.commitment)
    nonce = cs.alloc_public("nonce", None if w is None else w.nonce)
    offered_price = cs.alloc_public("offered_price", None if w is None else w.offered_price)
    offered_amount = cs.alloc_public("offered_amount", None if w is None else w.offered_amount)

    secret_price = cs.alloc("secret_price", None if w is None else w.secret_price)
    secret_amount = cs.alloc("secret_amount", None if w is None else w.secret_amount)

    # 1. commitment opening
    digest = poseidon(cs, [secret_price, secret_amount, nonce], "commit")
    cs.enforce_equal(digest, commitment, "commitment")

    # 2/3. offered >= secret
    range_check(cs, offered_price - secret_price, RANGE_BITS, "price_gap")
    range_check(cs, offered_amount - secret_amount, RANGE_BITS, "amount_gap")

    # 4. operands are themselves bounded, so the gaps cannot wrap
    range_check(cs, secret_price, RANGE_BITS, "secret_price")
    range_check(cs, secret_amount, RANGE_BITS, "secret_amount")
    range_check(cs, offered_price, RANGE_BITS, "offered_price")
    range_check(cs, offered_amount, RANGE_BITS, "offered_amount")

    # 5. validity output
    cs.enforce(valid, ONE_LC, ONE_LC, "valid")

    if witness is None:
        logger.debug(
            "Synthesized circuit: %d wires, %d constraints", cs.num_wires, cs.num_constraints
        )
    return cs


@functools.lru_cache(maxsize=1)
def circuit_shape() -> ConstraintSystem:
    """The witness-free circuit, built once per process."""
    return synthesize()


def circuit_digest() -> str:
    """Identifier of this circuit version, recorded in its keys."""
    return circuit_shape().digest()
