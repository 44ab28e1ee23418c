"""Radix-2 evaluation domains and number-theoretic transforms over Fr.

The Groth16 prover interpolates the constraint-row evaluations of the QAP
polynomials over a multiplicative subgroup of size ``2^k`` and evaluates them
again on a shifted coset to divide by the vanishing polynomial.
"""

import functools
from dataclasses import dataclass

from zkfill.crypto.field import FIELD_ORDER, inverse

# Multiplicative generator of Fr, used as the coset shift
COSET_SHIFT = 5

# Fr - 1 is divisible by 2^28
TWO_ADICITY = 28


@functools.lru_cache(maxsize=16)
def root_of_unity(size: int) -> int:
    """Return a primitive *size*-th root of unity (size a power of two)."""
    if size < 1 or size & (size - 1):
        msg = f"Domain size must be a power of two, got {size}"
        raise ValueError(msg)
    if size.bit_length() - 1 > TWO_ADICITY:
        msg = f"Domain size 2^{size.bit_length() - 1} exceeds the field's two-adicity"
        raise ValueError(msg)
    if size == 1:
        return 1
    exponent = (FIELD_ORDER - 1) // size
    candidate = 2
    while True:
        omega = pow(candidate, exponent, FIELD_ORDER)
        if pow(omega, size // 2, FIELD_ORDER) == FIELD_ORDER - 1:
            return omega
        candidate += 1


@dataclass(frozen=True)
class EvaluationDomain:
    """The subgroup ``{omega^i}`` of size ``size``."""

    size: int
    omega: int

    @classmethod
    def for_rows(cls, rows: int) -> "EvaluationDomain":
        """Smallest power-of-two domain holding *rows* evaluations."""
        size = 1
        while size < rows:
            size <<= 1
        return cls(size=size, omega=root_of_unity(size))

    @property
    def omega_inv(self) -> int:
        return inverse(self.omega)

    @property
    def size_inv(self) -> int:
        return inverse(self.size)

    def element(self, i: int) -> int:
        return pow(self.omega, i, FIELD_ORDER)

    def vanishing_at(self, x: int) -> int:
        """``Z(x) = x^n - 1``."""
        return (pow(x, self.size, FIELD_ORDER) - 1) % FIELD_ORDER

    def lagrange_at(self, x: int) -> list[int]:
        """Evaluate every Lagrange basis polynomial ``L_i`` at *x*.

        ``L_i(x) = omega^i * Z(x) / (n * (x - omega^i))``; *x* must lie
        outside the domain.
        """
        z = self.vanishing_at(x)
        if z == 0:
            msg = "Evaluation point lies inside the domain"
            raise ValueError(msg)
        n_inv = self.size_inv
        out = []
        w = 1
        for _ in range(self.size):
            out.append(w * z * n_inv * inverse(x - w) % FIELD_ORDER)
            w = w * self.omega % FIELD_ORDER
        return out

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def fft(self, coeffs: list[int]) -> list[int]:
        """Coefficients to evaluations over the domain."""
        return _ntt(self._padded(coeffs), self.omega)

    def ifft(self, evals: list[int]) -> list[int]:
        """Evaluations over the domain to coefficients."""
        out = _ntt(self._padded(evals), self.omega_inv)
        n_inv = self.size_inv
        return [v * n_inv % FIELD_ORDER for v in out]

    def coset_fft(self, coeffs: list[int], shift: int = COSET_SHIFT) -> list[int]:
        """Evaluate over the coset ``shift * {omega^i}``."""
        scaled = []
        g = 1
        for c in self._padded(coeffs):
            scaled.append(c * g % FIELD_ORDER)
            g = g * shift % FIELD_ORDER
        return _ntt(scaled, self.omega)

    def coset_ifft(self, evals: list[int], shift: int = COSET_SHIFT) -> list[int]:
        """Inverse of :meth:`coset_fft`."""
        coeffs = self.ifft(evals)
        shift_inv = inverse(shift)
        g = 1
        out = []
        for c in coeffs:
            out.append(c * g % FIELD_ORDER)
            g = g * shift_inv % FIELD_ORDER
        return out

    def _padded(self, values: list[int]) -> list[int]:
        if len(values) > self.size:
            msg = f"{len(values)} values do not fit a domain of size {self.size}"
            raise ValueError(msg)
        return list(values) + [0] * (self.size - len(values))


def _ntt(values: list[int], omega: int) -> list[int]:
    """Iterative Cooley-Tukey transform, natural order in and out."""
    n = len(values)
    a = list(values)

    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j |= bit
        if i < j:
            a[i], a[j] = a[j], a[i]

    length = 2
    while length <= n:
        w_len = pow(omega, n // length, FIELD_ORDER)
        half = length // 2
        twiddles = [1] * half
        for k in range(1, half):
            twiddles[k] = twiddles[k - 1] * w_len % FIELD_ORDER
        for start in range(0, n, length):
            for k in range(half):
                u = a[start + k]
                v = a[start + k + half] * twiddles[k] % FIELD_ORDER
                a[start + k] = (u + v) % FIELD_ORDER
                a[start + k + half] = (u - v) % FIELD_ORDER
        length <<= 1
    return a


def evaluate(coeffs: list[int], x: int) -> int:
    """Horner evaluation of a coefficient-form polynomial."""
    acc = 0
    for c in reversed(coeffs):
        acc = (acc * x + c) % FIELD_ORDER
    return acc
