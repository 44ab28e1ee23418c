"""Arithmetic circuit for hidden-parameter fills."""

from .hidden_params import (
    NUM_PUBLIC_SIGNALS,
    PUBLIC_SIGNAL_NAMES,
    HiddenParamsWitness,
    circuit_digest,
    circuit_shape,
    synthesize,
)
from .r1cs import ConstraintSystem, LinearCombination

__all__ = [
    "NUM_PUBLIC_SIGNALS",
    "PUBLIC_SIGNAL_NAMES",
    "ConstraintSystem",
    "HiddenParamsWitness",
    "LinearCombination",
    "circuit_digest",
    "circuit_shape",
    "synthesize",
]
