"""Groth16 pairing verification over BN254.

Checks ``e(A, B) = e(alpha, beta) * e(vk_x, gamma) * e(C, delta)`` with
``vk_x = IC_0 + sum(x_i * IC_i)``.  Both entry points are total: adversarial
or malformed input yields ``False``, never an exception.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from py_ecc.optimized_bn128 import FQ12, final_exponentiate, pairing

from zkfill.crypto.curve import add, g1_from_json, g2_from_json, multiply, neg
from zkfill.crypto.field import is_field_element, to_int
from zkfill.groth16.keys import VerificationKey
from zkfill.proof import Proof, PublicSignals, unswap_g2

logger = logging.getLogger(__name__)


def _signal_list(public_signals: PublicSignals | Sequence[Any]) -> list[int]:
    if isinstance(public_signals, PublicSignals):
        return public_signals.to_list()
    if isinstance(public_signals, (str, bytes)) or not isinstance(public_signals, Sequence):
        msg = "Public signals must be a sequence"
        raise TypeError(msg)
    return [to_int(s) for s in public_signals]


def _pairing_check(vk: VerificationKey, a: Any, b: Any, c: Any, signals: list[int]) -> bool:
    if len(signals) != vk.n_public:
        logger.debug("Rejecting proof: %d signals for %d inputs", len(signals), vk.n_public)
        return False
    if not all(is_field_element(s) for s in signals):
        logger.debug("Rejecting proof: public signal outside the scalar field")
        return False

    vk_x = vk.ic[0]
    for x, point in zip(signals, vk.ic[1:], strict=True):
        if x:
            vk_x = add(vk_x, multiply(point, x))

    product = (
        pairing(b, neg(a), final_exponentiate=False)
        * pairing(vk.beta_2, vk.alpha_1, final_exponentiate=False)
        * pairing(vk.gamma_2, vk_x, final_exponentiate=False)
        * pairing(vk.delta_2, c, final_exponentiate=False)
    )
    return final_exponentiate(product) == FQ12.one()


def verify(
    proof: Proof | Mapping[str, Any],
    public_signals: PublicSignals | Sequence[Any],
    verification_key: VerificationKey,
) -> bool:
    """Verify a snarkjs-shaped proof against *public_signals*.

    Returns ``False`` for malformed, off-curve or out-of-subgroup points,
    signals of the wrong arity or outside the field, and proofs made under
    another key.
    """
    try:
        if not isinstance(proof, Proof):
            proof = Proof.model_validate(proof)
        a = g1_from_json(proof.pi_a)
        b = g2_from_json(proof.pi_b)
        c = g1_from_json(proof.pi_c)
        return _pairing_check(verification_key, a, b, c, _signal_list(public_signals))
    except Exception as e:
        logger.debug("Proof rejected as malformed: %s", type(e).__name__)
        return False


def verify_calldata(
    a: Sequence[Any],
    b: Sequence[Sequence[Any]],
    c: Sequence[Any],
    signals: Sequence[Any],
    verification_key: VerificationKey,
) -> bool:
    """Verify a proof given in on-chain calldata form.

    ``b`` carries each G2 coordinate as ``(c1, c0)``, the order the EVM
    pairing precompile expects.
    """
    try:
        pa = g1_from_json(list(a))
        pb = g2_from_json(unswap_g2(b))
        pc = g1_from_json(list(c))
        return _pairing_check(verification_key, pa, pb, pc, _signal_list(signals))
    except Exception as e:
        logger.debug("Calldata rejected as malformed: %s", type(e).__name__)
        return False
