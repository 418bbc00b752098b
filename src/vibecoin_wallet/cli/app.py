"""CLI for vibecoin-wallet - manage your launch wallet from the terminal."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from vibecoin_wallet.wallet.results import OperationResult

app = typer.Typer(
    name="vibecoin-wallet",
    help="Local encrypted wallet for launching coins and claiming fees.",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger("vibecoin_wallet.cli")

_identity: Optional[str] = None
_config_path: Optional[Path] = None
_verbose: bool = False
_manager = None


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"vibecoin-wallet {version('vibecoin-wallet')}")
        raise typer.Exit()


@app.callback()
def main(
    identity: str = typer.Option(
        None,
        "--identity",
        "-u",
        help="User identity (multi-user keystores only)",
        envvar="VIBECOIN_IDENTITY",
    ),
    config: Path = typer.Option(
        None,
        "--config",
        help="Path to config.yaml (default: ~/.vibecoin/config.yaml)",
        envvar="VIBECOIN_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Local encrypted wallet for launching coins and claiming fees."""
    global _identity, _config_path, _verbose, _manager
    _identity = identity
    _config_path = config
    _verbose = verbose
    _manager = None


def _setup_logging(level: str) -> None:
    root = logging.getLogger("vibecoin_wallet")
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    root.addHandler(handler)
    root.setLevel(logging.INFO if _verbose else level.upper())


def _get_manager():
    """Build the wallet manager once per invocation and run legacy migration."""
    global _manager
    if _manager is not None:
        return _manager

    from vibecoin_wallet.config import load_or_default
    from vibecoin_wallet.wallet.manager import WalletManager

    cfg = load_or_default(_config_path)
    _setup_logging(cfg.logging.level)
    _manager = WalletManager.from_config(cfg)

    migrated = _manager.migrate_legacy()
    if not migrated.success:
        _fail(migrated)
    if migrated.data.get("migrated"):
        console.print(f"[dim]Moved wallet from legacy location to {_manager.keystore.path}[/dim]")
    return _manager


def _fail(result: OperationResult) -> None:
    console.print(f"[red]{result.error}[/red]")
    raise typer.Exit(1)


def _prompt_password(confirm: bool = False) -> str:
    password = console.input("[bold]Wallet password: [/bold]", password=True)
    if not password:
        console.print("[red]Password required.[/red]")
        raise typer.Exit(1)
    if confirm:
        again = console.input("[bold]Confirm password: [/bold]", password=True)
        if password != again:
            console.print("[red]Passwords do not match.[/red]")
            raise typer.Exit(1)
    return password


def _tx_panel(result: OperationResult, title: str) -> None:
    mgr = _get_manager()
    tx_hash = result.data.get("transactionHash")
    lines = [f"[bold green]{result.data.get('message', title)}[/bold green]\n"]
    if tx_hash:
        lines.append(f"Tx: [cyan]{tx_hash}[/cyan]")
        lines.append(f"Block: {result.data.get('blockNumber')}")
        lines.append(f"Explorer: {mgr.provider.chain.tx_url(tx_hash)}")
    console.print(Panel("\n".join(lines), title=title))


# ------------------------------------------------------------------
# Wallet lifecycle
# ------------------------------------------------------------------


@app.command()
def init(
    chain: str = typer.Option("ethereum", "--chain", "-c", help="Network to use"),
    layout: str = typer.Option("single", "--layout", help="Keystore layout: single or multi"),
    rpc_url: str = typer.Option(None, "--rpc-url", help="Custom RPC endpoint"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
):
    """Write a config file with the chosen network and keystore layout."""
    from vibecoin_wallet.config import AppConfig, WalletConfig, default_config_path, save_config
    from vibecoin_wallet.wallet.chains import list_chain_names

    if chain not in list_chain_names():
        console.print(f"[red]Unknown chain '{chain}'. Available: {', '.join(list_chain_names())}[/red]")
        raise typer.Exit(1)
    if layout not in ("single", "multi"):
        console.print("[red]Layout must be 'single' or 'multi'.[/red]")
        raise typer.Exit(1)

    path = _config_path or default_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}. Use --force to overwrite.[/yellow]")
        raise typer.Exit(1)

    save_config(AppConfig(wallet=WalletConfig(chain=chain, layout=layout, rpc_url=rpc_url)), path)
    console.print(f"[green]Config written to[/green] [cyan]{path}[/cyan]")


@app.command()
def create():
    """Generate a new wallet with an encrypted keystore."""
    mgr = _get_manager()
    console.print(
        "[yellow]Choose a password you will NEVER forget. "
        "There is no recovery option.[/yellow]"
    )
    password = _prompt_password(confirm=True)
    result = mgr.create(password, identity=_identity)
    if not result.success:
        _fail(result)

    console.print(Panel(
        f"[bold green]Wallet created![/bold green]\n\n"
        f"Address: [cyan]{result.data['address']}[/cyan]\n\n"
        f"[dim]{result.data['warning']}[/dim]",
        title="Launch Wallet",
    ))


@app.command()
def address():
    """Show the wallet address."""
    result = _get_manager().get_address(identity=_identity)
    if not result.success:
        _fail(result)
    console.print(Panel(
        f"[cyan]{result.data['address']}[/cyan]\n\n"
        f"[dim]Created {result.data['createdAt']}[/dim]",
        title="Wallet Address",
    ))


@app.command()
def balance():
    """Show the wallet's native token balance."""
    result = _get_manager().get_balance(identity=_identity)
    if not result.success:
        _fail(result)

    table = Table(title="Wallet Balance")
    table.add_column("Chain", style="cyan")
    table.add_column("Address", style="dim")
    table.add_column("Balance", justify="right")
    table.add_column("Symbol")
    chain = _get_manager().provider.chain
    table.add_row(
        f"{chain.name} [yellow](testnet)[/yellow]" if chain.testnet else chain.name,
        result.data["address"],
        result.data["balance"],
        result.data["unit"],
    )
    console.print(table)


@app.command()
def migrate():
    """Move a wallet file from its legacy location, if present."""
    mgr = _get_manager()
    console.print(f"Keystore: [cyan]{mgr.keystore.path}[/cyan]")


# ------------------------------------------------------------------
# Signing and transfers
# ------------------------------------------------------------------


@app.command()
def sign(message: str = typer.Argument(help="Message to sign")):
    """Sign a message with the wallet key."""
    mgr = _get_manager()
    password = _prompt_password()
    result = mgr.sign(password, message, identity=_identity)
    if not result.success:
        _fail(result)
    console.print(Panel(
        f"Address:   [cyan]{result.data['address']}[/cyan]\n"
        f"Message:   {result.data['message']}\n"
        f"Signature: [green]{result.data['signature']}[/green]",
        title="Signed Message",
    ))


@app.command()
def transfer(
    amount: str = typer.Argument(help="Amount to send (e.g. 0.01)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
):
    """Send native tokens. IRREVERSIBLE once broadcast."""
    mgr = _get_manager()
    chain = mgr.provider.chain

    console.print(f"\n[bold]Send {amount} {chain.native_symbol} on {chain.name}[/bold]")
    console.print(f"  To: {to}")
    console.print("  [yellow]This cannot be undone.[/yellow]\n")

    typer.confirm("Confirm this transaction?", abort=True)
    password = _prompt_password()

    result = mgr.transfer(password, to, amount, identity=_identity)
    if not result.success:
        _fail(result)
    _tx_panel(result, "Transaction Sent")


# ------------------------------------------------------------------
# Claims
# ------------------------------------------------------------------


@app.command("collect-fees")
def collect_fees():
    """Claim accumulated trading fees."""
    mgr = _get_manager()
    password = _prompt_password()
    result = mgr.collect_fees(password, identity=_identity)
    if not result.success:
        _fail(result)
    _tx_panel(result, f"Fees Collected ({result.data['method']})")


vesting_app = typer.Typer(
    name="vesting",
    help="Check and claim vested creator tokens.",
    no_args_is_help=True,
)
app.add_typer(vesting_app, name="vesting")


@vesting_app.command("check")
def vesting_check(token: str = typer.Argument(help="Token contract address")):
    """Show the vesting schedule for a launched token."""
    result = _get_manager().vesting_info(token, identity=_identity)
    if not result.success:
        _fail(result)

    table = Table(title=f"Vesting: {result.data['tokenAddress']}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    for key in ("totalAmount", "releasedAmount", "releasableAmount", "lockedAmount"):
        table.add_row(key, result.data[key])
    table.add_row("beneficiary", result.data["beneficiary"])
    console.print(table)


@vesting_app.command("claim")
def vesting_claim(token: str = typer.Argument(help="Token contract address")):
    """Claim vested tokens for a launched token."""
    mgr = _get_manager()
    password = _prompt_password()
    result = mgr.claim_vested(password, token, identity=_identity)
    if not result.success:
        _fail(result)
    _tx_panel(result, "Vested Tokens Claimed")


# ------------------------------------------------------------------
# Launch service
# ------------------------------------------------------------------


@app.command()
def launch(
    name: str = typer.Option(..., "--name", "-n", help="Coin name (1-32 characters)"),
    symbol: str = typer.Option(..., "--symbol", "-s", help="Ticker symbol (2-8 characters)"),
    url: str = typer.Option(None, "--url", help="Project website"),
    github: str = typer.Option(None, "--github", help="Project GitHub URL"),
    description: str = typer.Option(None, "--description", "-d", help="Short description"),
):
    """Sign and submit a coin launch request."""
    mgr = _get_manager()
    typer.confirm(f"Launch {name} ({symbol})?", abort=True)
    password = _prompt_password()
    result = mgr.launch_coin(
        password, name, symbol,
        url=url, github=github, description=description,
        identity=_identity,
    )
    if not result.success:
        _fail(result)
    console.print(Panel(
        json.dumps(result.data["coin"], indent=2),
        title="[bold green]Coin launched[/bold green]",
    ))


@app.command()
def status():
    """Check whether the launch service is reachable."""
    result = _get_manager().api_status()
    if not result.success:
        _fail(result)
    if result.data.get("available"):
        console.print("[green]Launch API available.[/green]")
    else:
        console.print(f"[yellow]{result.data.get('message')}[/yellow] ({result.data.get('apiUrl')})")


if __name__ == "__main__":
    app()
