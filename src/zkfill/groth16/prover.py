"""Groth16 proof generation from a satisfied constraint system."""

import logging
import secrets
import time
from dataclasses import dataclass

from zkfill.circuit.r1cs import ConstraintSystem
from zkfill.crypto.curve import Z1, Z2, G1Point, G2Point, add, msm, multiply, neg
from zkfill.crypto.field import FIELD_ORDER, inverse
from zkfill.crypto.polynomial import COSET_SHIFT, EvaluationDomain
from zkfill.groth16.keys import ProvingKey
from zkfill.groth16.qap import row_evaluations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawProof:
    """Proof as curve points."""

    a: G1Point
    b: G2Point
    c: G1Point


def compute_h(domain: EvaluationDomain, cs: ConstraintSystem, witness: list[int]) -> list[int]:
    """Coefficients of ``h = (a*b - c) / Z`` (degree at most ``n - 2``)."""
    a_evals, b_evals, c_evals = row_evaluations(cs, witness)
    a_coset = domain.coset_fft(domain.ifft(a_evals))
    b_coset = domain.coset_fft(domain.ifft(b_evals))
    c_coset = domain.coset_fft(domain.ifft(c_evals))

    # Z(g * omega^i) = g^n - 1 on the whole coset
    z_inv = inverse(pow(COSET_SHIFT, domain.size, FIELD_ORDER) - 1)
    h_coset = [
        (a * b - c) * z_inv % FIELD_ORDER for a, b, c in zip(a_coset, b_coset, c_coset, strict=True)
    ]
    h = domain.coset_ifft(h_coset)
    if h[-1] != 0:
        msg = "Witness does not satisfy the constraint system"
        raise ValueError(msg)
    return h[:-1]


def prove(proving_key: ProvingKey, cs: ConstraintSystem) -> RawProof:
    """Produce a Groth16 proof for the witness held by *cs*.

    Raises:
        ValueError: If *cs* has no witness, does not match the key, or is
            unsatisfied.
    """
    start = time.perf_counter()
    if cs.num_wires != proving_key.num_wires or cs.num_public != proving_key.num_public:
        msg = "Constraint system does not match the proving key"
        raise ValueError(msg)

    witness = cs.witness()
    domain = EvaluationDomain.for_rows(proving_key.domain_size)
    h = compute_h(domain, cs, witness)

    r = secrets.randbelow(FIELD_ORDER)
    s = secrets.randbelow(FIELD_ORDER)
    pk = proving_key

    a = add(add(pk.alpha_1, msm(pk.a_query, witness, Z1)), multiply(pk.delta_1, r))
    b2 = add(add(pk.beta_2, msm(pk.b2_query, witness, Z2)), multiply(pk.delta_2, s))
    b1 = add(add(pk.beta_1, msm(pk.b1_query, witness, Z1)), multiply(pk.delta_1, s))

    private = witness[pk.num_public + 1 :]
    c = msm(pk.l_query, private, Z1)
    c = add(c, msm(pk.h_query, h, Z1))
    c = add(c, multiply(a, s))
    c = add(c, multiply(b1, r))
    c = add(c, neg(multiply(pk.delta_1, r * s % FIELD_ORDER)))

    logger.debug("Groth16 proof computed in %.2fs", time.perf_counter() - start)
    return RawProof(a=a, b=b2, c=c)
