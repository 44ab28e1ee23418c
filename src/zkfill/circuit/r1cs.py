"""Rank-1 constraint systems over the BN254 scalar field.

A constraint is ``<A, w> * <B, w> = <C, w>`` where ``A``, ``B``, ``C`` are
linear combinations of wires.  Wire 0 is the constant one, followed by the
public inputs, followed by everything else.  The same builder is used with
concrete values (witness generation) and without (key generation).
"""

import hashlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Union

from zkfill.crypto.field import FIELD_ORDER

logger = logging.getLogger(__name__)

ONE = 0


class LinearCombination:
    """Sparse ``{wire: coefficient}`` map with field arithmetic."""

    __slots__ = ("terms",)

    def __init__(self, terms: dict[int, int] | None = None) -> None:
        self.terms: dict[int, int] = {}
        for wire, coeff in (terms or {}).items():
            coeff %= FIELD_ORDER
            if coeff:
                self.terms[wire] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE: value})

    @classmethod
    def wire(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    def _combine(self, other: "LCLike", sign: int) -> "LinearCombination":
        other = as_lc(other)
        terms = dict(self.terms)
        for wire, coeff in other.terms.items():
            terms[wire] = (terms.get(wire, 0) + sign * coeff) % FIELD_ORDER
        return LinearCombination(terms)

    def __add__(self, other: "LCLike") -> "LinearCombination":
        return self._combine(other, 1)

    __radd__ = __add__

    def __sub__(self, other: "LCLike") -> "LinearCombination":
        return self._combine(other, -1)

    def __rsub__(self, other: "LCLike") -> "LinearCombination":
        return as_lc(other)._combine(self, -1)

    def __neg__(self) -> "LinearCombination":
        return LinearCombination({w: -c for w, c in self.terms.items()})

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int):
            return NotImplemented
        return LinearCombination({w: c * scalar for w, c in self.terms.items()})

    __rmul__ = __mul__

    def __repr__(self) -> str:
        return f"LinearCombination({self.terms!r})"

    def evaluate(self, values: list[int | None]) -> int | None:
        """Value under *values*, or ``None`` if any referenced wire is unknown."""
        acc = 0
        for wire, coeff in self.terms.items():
            v = values[wire]
            if v is None:
                return None
            acc += coeff * v
        return acc % FIELD_ORDER


LCLike = Union[LinearCombination, int]


def as_lc(value: LCLike) -> LinearCombination:
    if isinstance(value, LinearCombination):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return LinearCombination.constant(value)
    msg = f"Cannot use {type(value).__name__} in a linear combination"
    raise TypeError(msg)


@dataclass(frozen=True)
class Constraint:
    a: LinearCombination
    b: LinearCombination
    c: LinearCombination
    label: str


class ConstraintSystem:
    """Builder for an R1CS instance and, optionally, its witness.

    Public inputs must all be allocated before the first private wire.

    Example:
        >>> cs = ConstraintSystem()
        >>> x = cs.alloc_public("x", 3)
        >>> y = cs.alloc("y", 9)
        >>> cs.enforce(x, x, y, "square")
        >>> cs.is_satisfied()
        True
    """

    def __init__(self) -> None:
        self.wire_names: list[str] = ["one"]
        self.values: list[int | None] = [1]
        self.num_public = 0
        self.constraints: list[Constraint] = []

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    @property
    def num_wires(self) -> int:
        return len(self.wire_names)

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    @property
    def has_witness(self) -> bool:
        return all(v is not None for v in self.values)

    def alloc_public(self, name: str, value: int | None = None) -> LinearCombination:
        if self.num_wires != self.num_public + 1:
            msg = f"Public input '{name}' allocated after private wires"
            raise RuntimeError(msg)
        self.num_public += 1
        return self._alloc(name, value)

    def alloc(self, name: str, value: int | None = None) -> LinearCombination:
        return self._alloc(name, value)

    def _alloc(self, name: str, value: int | None) -> LinearCombination:
        self.wire_names.append(name)
        self.values.append(None if value is None else value % FIELD_ORDER)
        return LinearCombination.wire(len(self.wire_names) - 1)

    def value_of(self, lc: LCLike) -> int | None:
        return as_lc(lc).evaluate(self.values)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def enforce(self, a: LCLike, b: LCLike, c: LCLike, label: str) -> None:
        """Add the constraint ``a * b = c``."""
        self.constraints.append(Constraint(as_lc(a), as_lc(b), as_lc(c), label))

    def enforce_equal(self, a: LCLike, b: LCLike, label: str) -> None:
        self.enforce(a, ONE_LC, b, label)

    def which_is_unsatisfied(self) -> str | None:
        """Label of the first violated constraint, or ``None`` if all hold.

        Raises:
            ValueError: If the system was built without a witness.
        """
        if not self.has_witness:
            msg = "Constraint system has no witness"
            raise ValueError(msg)
        for constraint in self.iter_constraints():
            a = constraint.a.evaluate(self.values)
            b = constraint.b.evaluate(self.values)
            c = constraint.c.evaluate(self.values)
            if (a * b - c) % FIELD_ORDER:
                return constraint.label
        return None

    def is_satisfied(self) -> bool:
        return self.which_is_unsatisfied() is None

    def iter_constraints(self) -> Iterator[Constraint]:
        return iter(self.constraints)

    # ------------------------------------------------------------------
    # Witness access
    # ------------------------------------------------------------------

    def witness(self) -> list[int]:
        if not self.has_witness:
            missing = next(n for n, v in zip(self.wire_names, self.values, strict=True) if v is None)
            msg = f"Wire '{missing}' has no value"
            raise ValueError(msg)
        return [v for v in self.values if v is not None]

    def public_values(self) -> list[int]:
        """Values of the public wires (without the leading one)."""
        return self.witness()[1 : self.num_public + 1]

    def digest(self) -> str:
        """SHA-256 over the constraint structure, independent of the witness."""
        h = hashlib.sha256()
        h.update(f"{self.num_wires}:{self.num_public}:{self.num_constraints}".encode())
        for constraint in self.constraints:
            for lc in (constraint.a, constraint.b, constraint.c):
                h.update(b"|")
                for wire, coeff in sorted(lc.terms.items()):
                    h.update(f"{wire}*{coeff},".encode())
        return h.hexdigest()


ONE_LC = LinearCombination.constant(1)
