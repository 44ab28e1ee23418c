"""Key setup, proving and verification commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console

console = Console()


def _load(config_path: str | None):
    from zkfill.config.loader import load_config
    from zkfill.errors import ConfigError

    try:
        return load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from None


def setup_command(config_path: str | None, out: str | None, seed: str | None) -> None:
    """Generate and save a key pair for the hidden-parameter circuit."""
    from zkfill.config.loader import artifacts_dir
    from zkfill.context import ProvingContext

    config = _load(config_path)
    directory = Path(out).expanduser() if out else artifacts_dir(config)

    if seed is not None:
        console.print("[yellow]Deterministic setup: do not use these keys in production.[/yellow]")

    with console.status("Generating keys (this takes a while)..."):
        context = ProvingContext.generate(seed=seed.encode() if seed is not None else None)
    context.save(directory)

    console.print(f"[green]Keys written to {directory}[/green]")
    console.print(f"Circuit digest: {context.circuit_digest}")


def prove_command(
    price: int,
    amount: int,
    nonce: int,
    commitment: str,
    offered_price: int,
    offered_amount: int,
    out: str,
    config_path: str | None,
) -> None:
    """Prove an offer meets the hidden minimums and write the bundle as JSON."""
    from pydantic import ValidationError

    from zkfill.commitment import SecretParameters
    from zkfill.errors import ZkFillError
    from zkfill.factory import create_proof_generator
    from zkfill.orders import OfferValues

    config = _load(config_path)
    try:
        secrets = SecretParameters(secret_price=price, secret_amount=amount, nonce=nonce)
        offer = OfferValues(offered_price=offered_price, offered_amount=offered_amount)
    except ValidationError:
        console.print("[red]Values must be non-negative 64-bit integers.[/red]")
        raise typer.Exit(1) from None

    try:
        generator = create_proof_generator(config, None)
        with console.status("Generating proof..."):
            bundle = asyncio.run(generator.prove(secrets, commitment, offer))
    except ZkFillError as e:
        console.print(f"[red]{e.user_message}[/red] ({type(e).__name__})")
        raise typer.Exit(1) from None

    Path(out).write_text(bundle.model_dump_json(indent=2))
    console.print(f"[green]Proof written to {out}[/green]")
    console.print(f"Public signals: {bundle.public_signals.to_strings()}")


def verify_command(
    proof_path: str, commitment: str | None, config_path: str | None, calldata: bool
) -> None:
    """Check a proof bundle; exit with status 1 when it does not verify."""
    from zkfill.commitment import parse_commitment
    from zkfill.errors import ZkFillError
    from zkfill.factory import load_context
    from zkfill.groth16.verifier import verify
    from zkfill.proof import ProofBundle

    config = _load(config_path)
    try:
        bundle = ProofBundle.model_validate(json.loads(Path(proof_path).read_text()))
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read proof bundle: {e}[/red]")
        raise typer.Exit(1) from None

    try:
        context = load_context(config, require_proving_key=False)
    except ZkFillError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    try:
        expected = parse_commitment(commitment) if commitment is not None else None
    except ValueError:
        console.print("[red]--commitment is not a valid field element[/red]")
        raise typer.Exit(1) from None
    if expected is not None and bundle.public_signals.commitment != expected:
        console.print("[red]Proof is bound to a different commitment[/red]")
        raise typer.Exit(1)

    if not verify(bundle.proof, bundle.public_signals, context.verification_key):
        console.print("[red]Proof is INVALID[/red]")
        raise typer.Exit(1)

    console.print("[green]Proof is valid[/green]")
    if calldata:
        console.print_json(bundle.calldata().model_dump_json())
