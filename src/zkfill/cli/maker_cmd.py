"""Maker-side commands: commitments, order registry and the service."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

console = Console()


def commit_command(price: int, amount: int, nonce: int | None) -> None:
    """Print the commitment for the given hidden parameters."""
    from zkfill.commitment import create_commitment, format_commitment

    try:
        params, commitment = create_commitment(price, amount, nonce)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"Commitment: [cyan]{format_commitment(commitment)}[/cyan]")
    console.print(f"Nonce: {params.nonce}")
    console.print("[dim]Keep the price, amount and nonce private.[/dim]")


def _config(config_path: str | None, *, need_registry: bool = True):
    from zkfill.config.loader import load_config
    from zkfill.errors import ConfigError

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from None
    if need_registry and not config.maker.registry_path:
        console.print("[red]Set maker.registry_path in the config to keep registered orders.[/red]")
        raise typer.Exit(1)
    return config


def order_create_command(
    maker: str,
    maker_asset: str,
    taker_asset: str,
    making_amount: int,
    taking_amount: int,
    price: int,
    amount: int,
    nonce: int | None,
    config_path: str | None,
) -> None:
    """Commit to the hidden parameters and register the order."""
    from pydantic import ValidationError

    from zkfill.commitment import create_commitment, format_commitment
    from zkfill.maker.service import OrderRegistry
    from zkfill.orders import OrderParameters, PublishedOrder

    config = _config(config_path)
    try:
        params = OrderParameters(
            maker=maker,
            maker_asset=maker_asset,
            taker_asset=taker_asset,
            making_amount=making_amount,
            taking_amount=taking_amount,
        )
        secrets, commitment = create_commitment(price, amount, nonce)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid order: {e}[/red]")
        raise typer.Exit(1) from None

    registry = OrderRegistry(Path(config.maker.registry_path).expanduser())
    base = PublishedOrder.build(params, commitment)
    order_id = "0x" + base.order_hash(config.maker.chain_id, config.maker.router).hex()
    try:
        registry.register(order_id, params, secrets)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None
    registry.save()

    console.print(f"[green]Registered order {order_id}[/green]")
    console.print(f"Commitment: [cyan]{format_commitment(commitment)}[/cyan]")


def order_list_command(config_path: str | None) -> None:
    """Show registered orders without their secrets."""
    from zkfill.maker.service import OrderRegistry

    config = _config(config_path)
    registry = OrderRegistry(Path(config.maker.registry_path).expanduser())
    if not len(registry):
        console.print("[dim]No orders registered.[/dim]")
        return

    table = Table(title="Registered Orders")
    table.add_column("Order", style="cyan")
    table.add_column("Commitment")
    table.add_column("Maker")
    table.add_column("Fills", style="green")
    table.add_column("Status")
    for entry in registry.orders():
        status = entry.status()
        table.add_row(
            status.order_id[:18],
            status.commitment[:18],
            status.maker,
            str(status.fills_authorized),
            "[green]active[/green]" if status.active else "[red]inactive[/red]",
        )
    console.print(table)


def serve_command(config_path: str | None, host: str | None, port: int | None) -> None:
    """Run the maker service in the foreground."""
    import uvicorn

    from zkfill.errors import ZkFillError
    from zkfill.server.app import create_app

    config = _config(config_path, need_registry=False)
    try:
        app = create_app(config)
    except ZkFillError as e:
        console.print(f"[red]Cannot start maker service: {e}[/red]")
        raise typer.Exit(1) from None

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    console.print(f"[green]Starting zkfill maker service on {bind_host}:{bind_port}[/green]")
    console.print("\nPress Ctrl+C to stop")
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")
