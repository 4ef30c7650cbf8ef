"""Command-line interface for cwharness."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from cwharness.config import settings
from cwharness.errors import HarnessError
from cwharness.key import KeyringBackend, generate_mnemonic
from cwharness.log import setup_logging
from cwharness.network import Backend, CleanScope, Network, get_network, network_class

app = typer.Typer(help="cwharness: CosmWasm local network and deployment harness")
console = Console()


@contextmanager
def _reported() -> Iterator[None]:
    """Print harness errors and exit with status 1."""
    try:
        yield
    except HarnessError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _print_keys(network: Network) -> None:
    table = Table(title=f"Keys: {type(network).__name__}")
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="green")
    table.add_column("Backend", style="yellow")

    for key in network.keys():
        table.add_row(key.name, key.address, key.backend.value)

    console.print(table)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Stand up CosmWasm chains and drive contract transactions against them."""
    setup_logging((log_level or settings.log_level).upper())


@app.command()
def init_local(
    backend: Backend = typer.Argument(..., help="Network backend"),
):
    """Initialize a network, resuming from existing state if present."""
    with _reported():
        network = get_network(backend)

    console.print(f"[green]Initialized {backend.value}[/green] in {network.root}")
    _print_keys(network)


@app.command()
def start_local(
    backend: Backend = typer.Argument(..., help="Network backend"),
):
    """Start a local network and follow its log until Ctrl-C."""
    with _reported():
        network = get_network(backend)
        with network.start_local() as handle:
            console.print(f"[bold blue]{backend.value} running[/bold blue] (Ctrl-C to stop)")
            handle.foreground()

    console.print("[green]Stopped[/green]")


@app.command()
def clean(
    backend: Backend = typer.Argument(..., help="Network backend"),
):
    """Remove chain and relayer state, keeping sources and binaries."""
    with _reported():
        network_class(backend)().clean(CleanScope.STATE)
    console.print(f"[green]Cleaned {backend.value} state[/green]")


@app.command()
def clean_all(
    backend: Backend = typer.Argument(..., help="Network backend"),
):
    """Remove everything the backend persisted."""
    with _reported():
        network_class(backend)().clean(CleanScope.ALL)
    console.print(f"[green]Removed all {backend.value} files[/green]")


@app.command()
def deploy(
    backend: Backend = typer.Argument(..., help="Network backend"),
    wasm: Path = typer.Option(Path("examples/cw20_base.wasm"), "--wasm", "-w", help="cw20-base bytecode"),
    signer: Optional[str] = typer.Option(None, "--signer", "-s", help="Key name (defaults to the first key)"),
):
    """Deploy a demo cw20 token and mint to the signer."""
    from cwharness.deploy import MINT_AMOUNT, deploy_cw20

    with _reported():
        network = get_network(backend)

        key = None
        if signer is not None:
            key = next((k for k in network.keys() if k.name == signer), None)
            if key is None:
                console.print(f"[red]Unknown key: {signer}[/red]")
                raise typer.Exit(1)

        console.print(f"[bold blue]Deploying cw20 to {backend.value}[/bold blue]")
        result = deploy_cw20(network, wasm, key)

    console.print(f"Stored CW20 base at code id: {result.code_id}")
    console.print(f"Instantiated CW20 DEMO at address: {result.contract}")
    console.print(f"Minted {MINT_AMOUNT} uDEMO")
    console.print(f"[green]Balance: {result.balance} uDEMO[/green]")


@app.command()
def keys(
    backend: Backend = typer.Argument(..., help="Network backend"),
):
    """List the network's keys."""
    with _reported():
        network = get_network(backend)
    _print_keys(network)


@app.command()
def recover(
    backend: Backend = typer.Argument(..., help="Network backend"),
    name: str = typer.Argument(..., help="Key name"),
    mnemonic: str = typer.Option(..., prompt=True, hide_input=True, help="BIP-39 mnemonic"),
    keyring: KeyringBackend = typer.Option(KeyringBackend.TEST, "--keyring", "-k", help="Keyring backend"),
):
    """Recover a key from a mnemonic into the network's keyring."""
    with _reported():
        network = get_network(backend)
        key = network.recover(name, mnemonic, keyring)
    console.print(f"[green]Recovered[/green] {key}")


@app.command()
def mnemonic(
    words: int = typer.Option(24, "--words", "-n", help="12, 15, 18, 21 or 24"),
):
    """Generate a new BIP-39 mnemonic."""
    if words not in (12, 15, 18, 21, 24):
        console.print(f"[red]Unsupported word count: {words}[/red]")
        raise typer.Exit(1)
    console.print(generate_mnemonic(strength=words * 32 // 3))


@app.command()
def dist(
    workspace: Optional[Path] = typer.Option(None, "--workspace", help="Workspace root (defaults to cwd)"),
):
    """Build and optimize all workspace contracts."""
    from cwharness.ops import dist_workspace

    with _reported():
        artifacts = dist_workspace(workspace)
    console.print(f"[green]Artifacts in {artifacts}[/green]")


@app.command()
def version():
    """Show version information."""
    from cwharness import __version__
    console.print(f"cwharness version {__version__}")


if __name__ == "__main__":
    app()
