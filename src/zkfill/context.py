"""Immutable, process-wide proving context.

Keys are loaded (or generated) once at startup and passed explicitly to the
proof generator, the verifier-side adapter and the maker service.  Nothing
mutates a context after construction, so one instance is safe to share
across concurrent proof and verification calls.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from zkfill.circuit.hidden_params import circuit_digest, circuit_shape
from zkfill.errors import ArtifactError
from zkfill.groth16.keys import (
    ProvingKey,
    VerificationKey,
    check_key_pair,
    load_proving_key,
    load_verification_key,
    save_key,
)
from zkfill.groth16.setup import generate_keys

logger = logging.getLogger(__name__)

PROVING_KEY_FILE = "proving_key.json"
VERIFICATION_KEY_FILE = "verification_key.json"


@dataclass(frozen=True)
class ProvingContext:
    """Verification key plus, on proving hosts, the matching proving key."""

    verification_key: VerificationKey
    proving_key: ProvingKey | None = None

    def __post_init__(self) -> None:
        if self.proving_key is not None:
            check_key_pair(self.proving_key, self.verification_key)

    @property
    def can_prove(self) -> bool:
        return self.proving_key is not None

    @property
    def circuit_digest(self) -> str:
        return self.verification_key.circuit_digest

    @classmethod
    def generate(cls, seed: bytes | None = None) -> "ProvingContext":
        """Run key generation for the hidden-parameter circuit."""
        proving_key, verification_key = generate_keys(circuit_shape(), seed=seed)
        return cls(verification_key=verification_key, proving_key=proving_key)

    @classmethod
    def load(cls, directory: Path, *, require_proving_key: bool = True) -> "ProvingContext":
        """Load key artifacts from *directory*.

        Raises:
            ArtifactError: If a required file is missing, malformed, built
                for another circuit version, or the pair does not match.
        """
        verification_key = load_verification_key(directory / VERIFICATION_KEY_FILE)
        _check_circuit(verification_key.circuit_digest)

        proving_key = None
        pk_path = directory / PROVING_KEY_FILE
        if require_proving_key or pk_path.exists():
            proving_key = load_proving_key(pk_path)

        context = cls(verification_key=verification_key, proving_key=proving_key)
        logger.info(
            "Loaded proving context from %s (circuit %s, proving=%s)",
            directory,
            context.circuit_digest[:12],
            context.can_prove,
        )
        return context

    def save(self, directory: Path) -> None:
        save_key(self.verification_key, directory / VERIFICATION_KEY_FILE)
        if self.proving_key is not None:
            save_key(self.proving_key, directory / PROVING_KEY_FILE)


def _check_circuit(digest: str) -> None:
    expected = circuit_digest()
    if digest != expected:
        raise ArtifactError(
            f"Key artifacts are for circuit {digest[:12] or '<unknown>'}, "
            f"this build expects {expected[:12]}; regenerate the keys"
        )
