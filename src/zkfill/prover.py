"""Asynchronous proof generation with fail-fast constraint checks.

:class:`ProofGenerator` checks locally, before any proving work, that the
secrets open the declared commitment and that the offer meets both hidden
minimums.  Only then is the proving backend invoked.  Proving is CPU-bound
and runs off the event loop; cancelling the awaiting task abandons the
attempt without touching the shared, read-only proving key.

Example:
    >>> generator = ProofGenerator.native(context)
    >>> bundle = await generator.prove(params, commitment, OfferValues(offered_price=2100, offered_amount=50))
    >>> bundle.public_signals.to_list()[0]
    1
"""

import asyncio
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Protocol

from zkfill.circuit.hidden_params import HiddenParamsWitness, synthesize
from zkfill.commitment import Err, SecretParameters, parse_commitment, validate_secret_parameters
from zkfill.context import ProvingContext
from zkfill.errors import (
    AmountConstraintViolated,
    ArtifactError,
    CommitmentMismatch,
    ConstraintViolation,
    PriceConstraintViolated,
    ProofGenerationFailed,
)
from zkfill.groth16.prover import prove as groth16_prove
from zkfill.orders import OfferValues
from zkfill.proof import Proof, ProofBundle, PublicSignals

logger = logging.getLogger(__name__)


class ProvingBackend(Protocol):
    """Something that turns a full witness into a proof bundle."""

    name: str

    async def prove(self, witness: HiddenParamsWitness) -> ProofBundle:
        """Generate a proof; raise ``ProofGenerationFailed`` on failure."""
        ...


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class NativeGroth16Backend:
    """In-process Groth16 prover over the hidden-parameter circuit."""

    name = "native"

    def __init__(self, context: ProvingContext) -> None:
        if context.proving_key is None:
            raise ArtifactError("Proving context has no proving key")
        self.context = context

    def prove_sync(self, witness: HiddenParamsWitness) -> ProofBundle:
        cs = synthesize(witness)
        failed = cs.which_is_unsatisfied()
        if failed is not None:
            raise ProofGenerationFailed(f"Witness does not satisfy constraint '{failed}'")
        raw = groth16_prove(self.context.proving_key, cs)
        return ProofBundle(
            proof=Proof.from_points(raw.a, raw.b, raw.c),
            public_signals=PublicSignals.from_list(cs.public_values()),
        )

    async def prove(self, witness: HiddenParamsWitness) -> ProofBundle:
        return await asyncio.to_thread(self.prove_sync, witness)


class SnarkjsBackend:
    """Drive ``snarkjs groth16 fullprove`` against compiled circuit artifacts.

    The witness is written to a private temporary directory that is removed
    when the call returns.  Any failure, including a timeout, fails closed
    with ``ProofGenerationFailed``.

    Args:
        wasm_path: Compiled circuit (``hidden_params.wasm``).
        zkey_path: Proving key (``hidden_params_0001.zkey``).
        executable: ``snarkjs`` command.
        timeout: Seconds before the subprocess is killed.
    """

    name = "snarkjs"

    def __init__(
        self,
        wasm_path: Path,
        zkey_path: Path,
        *,
        executable: str = "snarkjs",
        timeout: float = 60.0,
    ) -> None:
        self.wasm_path = Path(wasm_path)
        self.zkey_path = Path(zkey_path)
        self.executable = executable
        self.timeout = timeout

    @staticmethod
    def circuit_inputs(witness: HiddenParamsWitness) -> dict[str, str]:
        return {
            "secretPrice": str(witness.secret_price),
            "secretAmount": str(witness.secret_amount),
            "commit": str(witness.commitment),
            "nonce": str(witness.nonce),
            "offeredPrice": str(witness.offered_price),
            "offeredAmount": str(witness.offered_amount),
        }

    async def prove(self, witness: HiddenParamsWitness) -> ProofBundle:
        for path in (self.wasm_path, self.zkey_path):
            if not path.exists():
                raise ProofGenerationFailed(f"Circuit artifact not found: {path.name}")

        with tempfile.TemporaryDirectory(prefix="zkfill-") as tmp:
            workdir = Path(tmp)
            input_path = workdir / "input.json"
            proof_path = workdir / "proof.json"
            public_path = workdir / "public.json"

            fd = os.open(input_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w") as f:
                json.dump(self.circuit_inputs(witness), f)

            try:
                process = await asyncio.create_subprocess_exec(
                    self.executable,
                    "groth16",
                    "fullprove",
                    str(input_path),
                    str(self.wasm_path),
                    str(self.zkey_path),
                    str(proof_path),
                    str(public_path),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ProofGenerationFailed(f"Cannot run {self.executable}: {e.strerror}") from e

            try:
                await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except TimeoutError:
                process.kill()
                await process.wait()
                raise ProofGenerationFailed(
                    f"snarkjs timed out after {self.timeout} seconds"
                ) from None
            except asyncio.CancelledError:
                process.kill()
                await process.wait()
                raise

            if process.returncode != 0:
                raise ProofGenerationFailed(f"snarkjs exited with code {process.returncode}")

            try:
                with open(proof_path) as f:
                    proof = Proof.model_validate(json.load(f))
                with open(public_path) as f:
                    signals = PublicSignals.from_list(json.load(f))
            except (OSError, ValueError) as e:
                raise ProofGenerationFailed(f"snarkjs produced unreadable output: {e}") from e

        return ProofBundle(proof=proof, public_signals=signals)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def check_fill_constraints(
    secret_params: SecretParameters, commitment: int | str, offer: OfferValues
) -> int:
    """Check locally that a proof can exist; return the parsed commitment.

    Raises:
        CommitmentMismatch: The secrets do not open *commitment*.
        PriceConstraintViolated: ``offered_price < secret_price``.
        AmountConstraintViolated: ``offered_amount < secret_amount``.
        ConstraintViolation: The secrets are outside the protocol bounds.
    """
    validated = validate_secret_parameters(secret_params)
    if isinstance(validated, Err):
        raise ConstraintViolation(f"Secret {validated.field} {validated.reason}")

    try:
        declared = parse_commitment(commitment)
    except (TypeError, ValueError) as e:
        raise CommitmentMismatch("Declared commitment is not a field element") from e
    if secret_params.commitment() != declared:
        raise CommitmentMismatch("Secret parameters do not open the declared commitment")

    if offer.offered_price < secret_params.secret_price:
        raise PriceConstraintViolated("Offered price is below the hidden minimum")
    if offer.offered_amount < secret_params.secret_amount:
        raise AmountConstraintViolated("Offered amount is below the hidden minimum")
    return declared


class ProofGenerator:
    """Produce fill proofs through a pluggable backend.

    Args:
        backend: Proving backend.
        timeout: Optional overall time limit in seconds.
    """

    def __init__(self, backend: ProvingBackend, *, timeout: float | None = None) -> None:
        self.backend = backend
        self.timeout = timeout

    @classmethod
    def native(cls, context: ProvingContext, *, timeout: float | None = None) -> "ProofGenerator":
        return cls(NativeGroth16Backend(context), timeout=timeout)

    async def prove(
        self, secret_params: SecretParameters, commitment: int | str, offer: OfferValues
    ) -> ProofBundle:
        """Generate a proof that *offer* meets the hidden minimums.

        Raises:
            CommitmentMismatch, PriceConstraintViolated, AmountConstraintViolated:
                Detected before the backend is invoked.
            ProofGenerationFailed: The backend failed or timed out.
        """
        declared = check_fill_constraints(secret_params, commitment, offer)
        witness = HiddenParamsWitness(
            secret_price=secret_params.secret_price,
            secret_amount=secret_params.secret_amount,
            nonce=secret_params.nonce,
            commitment=declared,
            offered_price=offer.offered_price,
            offered_amount=offer.offered_amount,
        )

        start = time.perf_counter()
        try:
            if self.timeout is None:
                bundle = await self.backend.prove(witness)
            else:
                bundle = await asyncio.wait_for(self.backend.prove(witness), timeout=self.timeout)
        except ProofGenerationFailed:
            raise
        except TimeoutError:
            raise ProofGenerationFailed(
                f"Proof generation timed out after {self.timeout} seconds"
            ) from None
        except Exception as e:
            raise ProofGenerationFailed(
                f"{self.backend.name} backend failed: {type(e).__name__}"
            ) from e

        expected = PublicSignals(
            valid=1,
            commitment=declared,
            nonce=secret_params.nonce,
            offered_price=offer.offered_price,
            offered_amount=offer.offered_amount,
        )
        if bundle.public_signals != expected:
            raise ProofGenerationFailed("Backend returned public signals for different inputs")

        logger.info(
            "Generated proof for commitment %s with %s backend in %.2fs",
            str(declared)[:12],
            self.backend.name,
            time.perf_counter() - start,
        )
        return bundle
