"""Main CLI application using Typer."""

import typer
from rich.console import Console

from zkfill import __version__

app = typer.Typer(
    name="zkfill",
    help="zkfill - zero-knowledge fill authorization for hidden-parameter orders",
    no_args_is_help=True,
)

console = Console()


@app.command()
def version():
    """Show zkfill version."""
    console.print(f"zkfill version {__version__}")


@app.command()
def setup(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    out: str = typer.Option(None, "--out", "-o", help="Output directory (default: from config)"),
    seed: str = typer.Option(
        None, "--seed", help="Deterministic seed (development only; omit for a random setup)"
    ),
):
    """Generate proving and verification keys for the circuit."""
    from zkfill.cli.proof_cmd import setup_command

    setup_command(config_path=config_path, out=out, seed=seed)


@app.command()
def commit(
    price: int = typer.Argument(..., help="Hidden minimum price"),
    amount: int = typer.Argument(..., help="Hidden minimum amount"),
    nonce: int = typer.Option(None, "--nonce", help="Nonce (default: random 64-bit)"),
):
    """Compute the commitment for a set of hidden parameters."""
    from zkfill.cli.maker_cmd import commit_command

    commit_command(price=price, amount=amount, nonce=nonce)


@app.command()
def prove(
    price: int = typer.Option(..., "--price", help="Hidden minimum price"),
    amount: int = typer.Option(..., "--amount", help="Hidden minimum amount"),
    nonce: int = typer.Option(..., "--nonce", help="Commitment nonce"),
    commitment: str = typer.Option(..., "--commitment", help="Published commitment"),
    offered_price: int = typer.Option(..., "--offered-price", help="Taker's offered price"),
    offered_amount: int = typer.Option(..., "--offered-amount", help="Taker's offered amount"),
    out: str = typer.Option("proof.json", "--out", "-o", help="Where to write the proof bundle"),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Generate a fill proof for an offer against a commitment."""
    from zkfill.cli.proof_cmd import prove_command

    prove_command(
        price=price,
        amount=amount,
        nonce=nonce,
        commitment=commitment,
        offered_price=offered_price,
        offered_amount=offered_amount,
        out=out,
        config_path=config_path,
    )


@app.command()
def verify(
    proof_path: str = typer.Argument(..., help="Proof bundle JSON"),
    commitment: str = typer.Option(
        None, "--commitment", help="Also check the proof is bound to this commitment"
    ),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    calldata: bool = typer.Option(False, "--calldata", help="Print on-chain calldata"),
):
    """Verify a proof bundle against the verification key."""
    from zkfill.cli.proof_cmd import verify_command

    verify_command(
        proof_path=proof_path, commitment=commitment, config_path=config_path, calldata=calldata
    )


@app.command()
def serve(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
    host: str = typer.Option(None, "--host", help="Bind address (default: from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default: from config)"),
):
    """Start the maker authorization service."""
    from zkfill.cli.maker_cmd import serve_command

    serve_command(config_path=config_path, host=host, port=port)


# Order commands
order_app = typer.Typer(help="Manage the maker's registered orders")
app.add_typer(order_app, name="order")


@order_app.command("create")
def order_create(
    maker: str = typer.Option(..., "--maker", help="Maker address"),
    maker_asset: str = typer.Option(..., "--maker-asset", help="Token the maker sells"),
    taker_asset: str = typer.Option(..., "--taker-asset", help="Token the maker buys"),
    making_amount: int = typer.Option(..., "--making-amount", help="Amount of maker asset"),
    taking_amount: int = typer.Option(..., "--taking-amount", help="Amount of taker asset"),
    price: int = typer.Option(..., "--price", help="Hidden minimum price"),
    amount: int = typer.Option(..., "--amount", help="Hidden minimum amount"),
    nonce: int = typer.Option(None, "--nonce", help="Nonce (default: random 64-bit)"),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Register a hidden-parameter order with the local maker registry."""
    from zkfill.cli.maker_cmd import order_create_command

    order_create_command(
        maker=maker,
        maker_asset=maker_asset,
        taker_asset=taker_asset,
        making_amount=making_amount,
        taking_amount=taking_amount,
        price=price,
        amount=amount,
        nonce=nonce,
        config_path=config_path,
    )


@order_app.command("list")
def order_list(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """List registered orders (without secrets)."""
    from zkfill.cli.maker_cmd import order_list_command

    order_list_command(config_path=config_path)


if __name__ == "__main__":
    app()
