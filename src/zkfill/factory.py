"""Factory functions building runtime objects from configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from zkfill.context import VERIFICATION_KEY_FILE, ProvingContext
from zkfill.errors import ArtifactError
from zkfill.maker.service import MakerService, OrderRegistry
from zkfill.predicate import PredicateAdapter
from zkfill.prover import ProofGenerator, SnarkjsBackend

if TYPE_CHECKING:
    from zkfill.config.schema import ZkFillConfig

logger = logging.getLogger(__name__)


def load_context(config: ZkFillConfig, *, require_proving_key: bool = True) -> ProvingContext:
    """Load circuit keys from ``circuit.artifacts_dir``.

    With ``circuit.setup_seed`` set and no artifacts on disk, keys are
    generated deterministically instead (development only).

    Raises:
        ArtifactError: Keys are missing, malformed or mismatched.
    """
    directory = Path(config.circuit.artifacts_dir).expanduser()
    if (directory / VERIFICATION_KEY_FILE).exists():
        return ProvingContext.load(directory, require_proving_key=require_proving_key)
    if config.circuit.setup_seed is not None:
        logger.warning("No circuit artifacts in %s; generating keys from the setup seed", directory)
        return ProvingContext.generate(seed=config.circuit.setup_seed.encode())
    raise ArtifactError(f"No circuit artifacts in {directory}; run 'zkfill setup' first")


def create_proof_generator(config: ZkFillConfig, context: ProvingContext | None) -> ProofGenerator:
    """Create a proof generator for ``prover.backend``.

    Raises:
        ValueError: If the backend is not recognised.
    """
    backend = config.prover.backend

    if backend == "native":
        if context is None:
            context = load_context(config)
        return ProofGenerator.native(context, timeout=config.prover.timeout)
    elif backend == "snarkjs":
        snarkjs = config.prover.snarkjs
        return ProofGenerator(
            SnarkjsBackend(
                Path(snarkjs.wasm_path),
                Path(snarkjs.zkey_path),
                executable=snarkjs.executable,
                timeout=config.prover.timeout,
            ),
        )
    else:
        raise ValueError(f"Unknown prover backend: {backend}")


def create_maker_service(
    config: ZkFillConfig, context: ProvingContext | None = None
) -> MakerService:
    """Create the maker service, reading its signing key from the environment.

    Every proof the service generates is checked against the circuit's
    verification key before the order is signed, whichever backend proves.

    Raises:
        ArtifactError: The verification key cannot be loaded.
    """
    if context is None:
        context = load_context(config, require_proving_key=config.prover.backend == "native")
    registry_path = config.maker.registry_path
    registry = OrderRegistry(Path(registry_path).expanduser() if registry_path else None)

    private_key = os.environ.get(config.maker.private_key_env)
    if not private_key:
        logger.warning(
            "%s is not set; fill authorizations will be refused", config.maker.private_key_env
        )

    return MakerService.from_private_key(
        registry,
        create_proof_generator(config, context),
        private_key,
        chain_id=config.maker.chain_id,
        router=config.maker.router,
        predicate_address=config.maker.predicate_address,
        adapter=PredicateAdapter(context.verification_key),
    )
