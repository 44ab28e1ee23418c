"""Circuit-specific Groth16 key generation.

This is a single-party setup: whoever runs it learns the toxic waste
(``tau``, ``alpha``, ``beta``, ``gamma``, ``delta``) and could forge proofs.
The values are discarded when :func:`generate_keys` returns.  A ``seed``
makes the keys reproducible, which is only suitable for tests and local
development.
"""

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass

from zkfill.circuit.r1cs import ConstraintSystem
from zkfill.crypto.curve import G1, G2, FixedBaseTable
from zkfill.crypto.field import FIELD_ORDER, inverse
from zkfill.groth16.keys import ProvingKey, VerificationKey
from zkfill.groth16.qap import domain_for, wire_polynomials_at

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToxicWaste:
    tau: int
    alpha: int
    beta: int
    gamma: int
    delta: int

    def __repr__(self) -> str:
        return "ToxicWaste(<redacted>)"


def _nonzero_scalar(seed: bytes | None, label: str) -> int:
    if seed is None:
        return secrets.randbelow(FIELD_ORDER - 1) + 1
    counter = 0
    while True:
        digest = hashlib.sha256(seed + label.encode() + counter.to_bytes(4, "big")).digest()
        value = int.from_bytes(digest + hashlib.sha256(digest).digest(), "big") % FIELD_ORDER
        if value:
            return value
        counter += 1


def sample_toxic_waste(seed: bytes | None = None) -> ToxicWaste:
    return ToxicWaste(
        tau=_nonzero_scalar(seed, "tau"),
        alpha=_nonzero_scalar(seed, "alpha"),
        beta=_nonzero_scalar(seed, "beta"),
        gamma=_nonzero_scalar(seed, "gamma"),
        delta=_nonzero_scalar(seed, "delta"),
    )


def generate_keys(
    cs: ConstraintSystem, *, seed: bytes | None = None
) -> tuple[ProvingKey, VerificationKey]:
    """Generate a proving/verification key pair for the shape of *cs*.

    Args:
        cs: Constraint system (values, if any, are ignored).
        seed: Optional seed for a reproducible setup.

    Returns:
        The proving key and the matching verification key.
    """
    start = time.perf_counter()
    domain = domain_for(cs)
    toxic = sample_toxic_waste(seed)
    while domain.vanishing_at(toxic.tau) == 0:
        toxic = sample_toxic_waste()

    lagrange = domain.lagrange_at(toxic.tau)
    u, v, w = wire_polynomials_at(cs, lagrange)

    gamma_inv = inverse(toxic.gamma)
    delta_inv = inverse(toxic.delta)
    num_public = cs.num_public

    g1 = FixedBaseTable(G1)
    g2 = FixedBaseTable(G2)

    def combined(i: int) -> int:
        return (toxic.beta * u[i] + toxic.alpha * v[i] + w[i]) % FIELD_ORDER

    ic = tuple(g1.multiply(combined(i) * gamma_inv) for i in range(num_public + 1))
    l_query = tuple(
        g1.multiply(combined(i) * delta_inv) for i in range(num_public + 1, cs.num_wires)
    )
    a_query = tuple(g1.multiply(x) for x in u)
    b1_query = tuple(g1.multiply(x) for x in v)
    b2_query = tuple(g2.multiply(x) for x in v)

    z_over_delta = domain.vanishing_at(toxic.tau) * delta_inv % FIELD_ORDER
    h_query = []
    tau_power = 1
    for _ in range(domain.size - 1):
        h_query.append(g1.multiply(tau_power * z_over_delta))
        tau_power = tau_power * toxic.tau % FIELD_ORDER

    digest = cs.digest()
    alpha_1 = g1.multiply(toxic.alpha)
    delta_2 = g2.multiply(toxic.delta)
    proving_key = ProvingKey(
        circuit_digest=digest,
        domain_size=domain.size,
        num_public=num_public,
        num_wires=cs.num_wires,
        alpha_1=alpha_1,
        beta_1=g1.multiply(toxic.beta),
        beta_2=g2.multiply(toxic.beta),
        delta_1=g1.multiply(toxic.delta),
        delta_2=delta_2,
        a_query=a_query,
        b1_query=b1_query,
        b2_query=b2_query,
        l_query=l_query,
        h_query=tuple(h_query),
    )
    verification_key = VerificationKey(
        alpha_1=alpha_1,
        beta_2=proving_key.beta_2,
        gamma_2=g2.multiply(toxic.gamma),
        delta_2=delta_2,
        ic=ic,
        circuit_digest=digest,
    )
    logger.info(
        "Generated Groth16 keys: %d wires, %d public, domain %d (%.1fs)",
        cs.num_wires,
        num_public,
        domain.size,
        time.perf_counter() - start,
    )
    return proving_key, verification_key
