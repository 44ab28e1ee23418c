"""Quadratic arithmetic program view of a constraint system.

The QAP rows are the circuit's constraints followed by one row per public
wire (including the constant one) of the form ``w_i * 0 = 0``.  The extra
rows keep the public-input polynomials linearly independent, which the
Groth16 soundness argument requires.
"""

from collections.abc import Iterator
from dataclasses import dataclass

from zkfill.circuit.r1cs import ConstraintSystem, LinearCombination
from zkfill.crypto.field import FIELD_ORDER
from zkfill.crypto.polynomial import EvaluationDomain


@dataclass(frozen=True)
class QapRow:
    a: LinearCombination
    b: LinearCombination
    c: LinearCombination


def qap_rows(cs: ConstraintSystem) -> Iterator[QapRow]:
    for constraint in cs.iter_constraints():
        yield QapRow(constraint.a, constraint.b, constraint.c)
    empty = LinearCombination()
    for wire in range(cs.num_public + 1):
        yield QapRow(LinearCombination.wire(wire), empty, empty)


def num_rows(cs: ConstraintSystem) -> int:
    return cs.num_constraints + cs.num_public + 1


def domain_for(cs: ConstraintSystem) -> EvaluationDomain:
    return EvaluationDomain.for_rows(num_rows(cs))


def wire_polynomials_at(
    cs: ConstraintSystem, lagrange: list[int]
) -> tuple[list[int], list[int], list[int]]:
    """Evaluate every wire's ``u_i``, ``v_i``, ``w_i`` at the point behind *lagrange*.

    *lagrange* holds ``L_j(x)`` for each domain row ``j``.
    """
    n = cs.num_wires
    u, v, w = [0] * n, [0] * n, [0] * n
    for j, row in enumerate(qap_rows(cs)):
        lj = lagrange[j]
        for target, lc in ((u, row.a), (v, row.b), (w, row.c)):
            for wire, coeff in lc.terms.items():
                target[wire] = (target[wire] + coeff * lj) % FIELD_ORDER
    return u, v, w


def row_evaluations(cs: ConstraintSystem, witness: list[int]) -> tuple[list[int], list[int], list[int]]:
    """``<A_j, w>``, ``<B_j, w>``, ``<C_j, w>`` for every QAP row ``j``."""
    a_evals, b_evals, c_evals = [], [], []
    for row in qap_rows(cs):
        a_evals.append(row.a.evaluate(witness))
        b_evals.append(row.b.evaluate(witness))
        c_evals.append(row.c.evaluate(witness))
    return a_evals, b_evals, c_evals
