"""Groth16 over BN254: key generation, proving and pairing verification."""

from .keys import ProvingKey, VerificationKey, check_key_pair
from .prover import RawProof, prove
from .setup import generate_keys
from .verifier import verify, verify_calldata

__all__ = [
    "ProvingKey",
    "RawProof",
    "VerificationKey",
    "check_key_pair",
    "generate_keys",
    "prove",
    "verify",
    "verify_calldata",
]
