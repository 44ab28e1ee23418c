"""Groth16 proving and verification keys and their JSON artifacts.

The verification key uses the snarkjs ``verification_key.json`` layout
(``vk_alpha_1``, ``vk_beta_2``, ``vk_gamma_2``, ``vk_delta_2``, ``IC``) plus a
``circuit_digest`` field.  Both keys record the digest of the circuit they
were generated for; a pair with different digests is refused.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from zkfill.crypto.curve import (
    G1Point,
    G2Point,
    g1_from_json,
    g1_to_json,
    g2_from_json,
    g2_to_json,
)
from zkfill.errors import ArtifactError

logger = logging.getLogger(__name__)

PROTOCOL = "groth16"
CURVE = "bn128"


@dataclass(frozen=True)
class VerificationKey:
    """Everything the pairing check needs."""

    alpha_1: G1Point
    beta_2: G2Point
    gamma_2: G2Point
    delta_2: G2Point
    ic: tuple[G1Point, ...]
    circuit_digest: str

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    def to_json(self) -> dict[str, Any]:
        return {
            "protocol": PROTOCOL,
            "curve": CURVE,
            "nPublic": self.n_public,
            "vk_alpha_1": g1_to_json(self.alpha_1),
            "vk_beta_2": g2_to_json(self.beta_2),
            "vk_gamma_2": g2_to_json(self.gamma_2),
            "vk_delta_2": g2_to_json(self.delta_2),
            "IC": [g1_to_json(p) for p in self.ic],
            "circuit_digest": self.circuit_digest,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "VerificationKey":
        """Parse and validate a verification key.

        Raises:
            ArtifactError: If the key is malformed or for another protocol.
        """
        try:
            _check_header(data)
            ic = tuple(g1_from_json(p) for p in data["IC"])
            n_public = int(data.get("nPublic", len(ic) - 1))
            if n_public != len(ic) - 1:
                msg = f"nPublic={n_public} does not match {len(ic)} IC points"
                raise ValueError(msg)
            return cls(
                alpha_1=g1_from_json(data["vk_alpha_1"]),
                beta_2=g2_from_json(data["vk_beta_2"]),
                gamma_2=g2_from_json(data["vk_gamma_2"]),
                delta_2=g2_from_json(data["vk_delta_2"]),
                ic=ic,
                circuit_digest=str(data.get("circuit_digest", "")),
            )
        except ArtifactError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactError(f"Malformed verification key: {e}") from e


@dataclass(frozen=True)
class ProvingKey:
    """Query vectors for the prover.

    ``a_query``, ``b1_query`` and ``b2_query`` are indexed by wire;
    ``l_query`` covers only the private wires (after the public ones);
    ``h_query`` holds ``tau^i * Z(tau) / delta`` for ``i < domain_size - 1``.
    """

    circuit_digest: str
    domain_size: int
    num_public: int
    num_wires: int
    alpha_1: G1Point
    beta_1: G1Point
    beta_2: G2Point
    delta_1: G1Point
    delta_2: G2Point
    a_query: tuple[G1Point, ...]
    b1_query: tuple[G1Point, ...]
    b2_query: tuple[G2Point, ...]
    l_query: tuple[G1Point, ...]
    h_query: tuple[G1Point, ...]

    def to_json(self) -> dict[str, Any]:
        return {
            "protocol": PROTOCOL,
            "curve": CURVE,
            "circuit_digest": self.circuit_digest,
            "domain_size": self.domain_size,
            "num_public": self.num_public,
            "num_wires": self.num_wires,
            "alpha_1": g1_to_json(self.alpha_1),
            "beta_1": g1_to_json(self.beta_1),
            "beta_2": g2_to_json(self.beta_2),
            "delta_1": g1_to_json(self.delta_1),
            "delta_2": g2_to_json(self.delta_2),
            "A": [g1_to_json(p) for p in self.a_query],
            "B1": [g1_to_json(p) for p in self.b1_query],
            "B2": [g2_to_json(p) for p in self.b2_query],
            "L": [g1_to_json(p) for p in self.l_query],
            "H": [g1_to_json(p) for p in self.h_query],
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ProvingKey":
        """Parse a proving key.

        Points are checked to be on the curve; the G2 subgroup check is
        skipped for the (large, locally generated) query vectors.

        Raises:
            ArtifactError: If the key is malformed or inconsistent.
        """
        try:
            _check_header(data)
            key = cls(
                circuit_digest=str(data["circuit_digest"]),
                domain_size=int(data["domain_size"]),
                num_public=int(data["num_public"]),
                num_wires=int(data["num_wires"]),
                alpha_1=g1_from_json(data["alpha_1"]),
                beta_1=g1_from_json(data["beta_1"]),
                beta_2=g2_from_json(data["beta_2"]),
                delta_1=g1_from_json(data["delta_1"]),
                delta_2=g2_from_json(data["delta_2"]),
                a_query=tuple(g1_from_json(p) for p in data["A"]),
                b1_query=tuple(g1_from_json(p) for p in data["B1"]),
                b2_query=tuple(g2_from_json(p, check_subgroup=False) for p in data["B2"]),
                l_query=tuple(g1_from_json(p) for p in data["L"]),
                h_query=tuple(g1_from_json(p) for p in data["H"]),
            )
        except ArtifactError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactError(f"Malformed proving key: {e}") from e

        private = key.num_wires - key.num_public - 1
        if not (
            len(key.a_query) == len(key.b1_query) == len(key.b2_query) == key.num_wires
            and len(key.l_query) == private
            and len(key.h_query) == key.domain_size - 1
        ):
            raise ArtifactError("Proving key query lengths are inconsistent")
        return key


def _check_header(data: dict[str, Any]) -> None:
    if not isinstance(data, dict):
        raise ArtifactError("Key artifact must be a JSON object")
    if data.get("protocol", PROTOCOL) != PROTOCOL or data.get("curve", CURVE) != CURVE:
        raise ArtifactError(
            f"Unsupported key: protocol={data.get('protocol')!r} curve={data.get('curve')!r}"
        )


def check_key_pair(proving_key: ProvingKey, verification_key: VerificationKey) -> None:
    """Refuse a proving/verification key pair that was not generated together.

    Raises:
        ArtifactError: On a circuit digest or shared-element mismatch.
    """
    if proving_key.circuit_digest != verification_key.circuit_digest:
        raise ArtifactError("Proving and verification keys are for different circuits")
    if verification_key.n_public != proving_key.num_public:
        raise ArtifactError("Proving and verification keys disagree on public input count")
    if g1_to_json(proving_key.alpha_1) != g1_to_json(verification_key.alpha_1) or g2_to_json(
        proving_key.delta_2
    ) != g2_to_json(verification_key.delta_2):
        raise ArtifactError("Proving and verification keys come from different setups")


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ArtifactError(f"Key artifact not found: {path}")
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ArtifactError(f"Failed to read key artifact {path}: {e}") from e


def load_verification_key(path: Path) -> VerificationKey:
    vk = VerificationKey.from_json(_read_json(path))
    logger.info("Loaded verification key from %s (%d public inputs)", path, vk.n_public)
    return vk


def load_proving_key(path: Path) -> ProvingKey:
    pk = ProvingKey.from_json(_read_json(path))
    logger.info("Loaded proving key from %s (%d wires)", path, pk.num_wires)
    return pk


def save_key(key: ProvingKey | VerificationKey, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(key.to_json(), f, indent=1)
    logger.info("Wrote %s to %s", type(key).__name__, path)
