"""CLI for the smart-account client - inspect balances and build calls from the terminal."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from smart_account_client.config import SessionConfig, get_config_path, load_config, save_config
from smart_account_client.errors import WalletError
from smart_account_client.wallet.encoding import AbiParam
from smart_account_client.wallet.tokens import erc20_function

app = typer.Typer(
    name="smart-account",
    help="Read balances and encode calls for an account-abstraction smart account.",
    no_args_is_help=True,
)
console = Console()

_config_path: Path | None = None


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"smart-account-client {version('smart-account-client')}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.yaml (default: .smart-account/config.yaml)",
        envvar="SMART_ACCOUNT_CONFIG",
    ),
    log_level: str = typer.Option(None, "--log-level", help="Override the configured log level"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Read balances and encode calls for an account-abstraction smart account."""
    global _config_path
    _config_path = config
    level = log_level or _load_config().log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _resolved_config_path() -> Path:
    return _config_path or get_config_path()


def _load_config() -> SessionConfig:
    return load_config(_resolved_config_path())


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _fail(exc: Exception) -> None:
    if isinstance(exc, WalletError):
        console.print(f"[red]{exc.kind.value}:[/red] {exc}")
    else:
        console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(1)


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command("init")
def init(
    chain: str = typer.Option("base-sepolia", "--chain", help="Chain to operate on"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
):
    """Write a default configuration file."""
    path = _resolved_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    try:
        config = SessionConfig(chain=chain)
    except ValueError as exc:
        _fail(exc)
    save_config(config, path)
    console.print(f"[green]Config written to[/green] {path}")


# ------------------------------------------------------------------
# balance / token
# ------------------------------------------------------------------


def _chain_client(config: SessionConfig):
    from smart_account_client.wallet.provider import Web3ChainClient

    return Web3ChainClient.for_chain(config.resolve_chain(), config.rpc_url)


@app.command("balance")
def balance(
    address: str = typer.Argument(help="Account address (0x...)"),
):
    """Show native and tracked token balances for an address."""
    from smart_account_client.wallet.session import AccountSession
    from smart_account_client.wallet.units import validate_address

    config = _load_config()
    chain = config.resolve_chain()
    try:
        validate_address(address)
    except WalletError as exc:
        _fail(exc)

    async def _balance():
        session = AccountSession.from_config(config, chain_client=_chain_client(config))
        for token_address in config.tokens_to_resolve():
            await session.track_token(token_address)
        await session.refresh(address)
        return session

    session = _run(_balance())
    snapshot = session.snapshot

    table = Table(title=f"Balances on {chain.name}")
    table.add_column("Asset", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Status", style="dim")

    native = snapshot.native_balance
    table.add_row(
        chain.native_symbol,
        native.display,
        f"[red]{native.error}[/red]" if native.error else "[green]OK[/green]",
    )
    for token in session.tracked_tokens:
        entry = snapshot.token_balances.get(token.key)
        if entry is None:
            continue
        table.add_row(
            token.symbol,
            entry.display,
            f"[red]{entry.error}[/red]" if entry.error else "[green]OK[/green]",
        )
    console.print(table)
    for warning in snapshot.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")


@app.command("token")
def token(
    token_address: str = typer.Argument(help="ERC-20 contract address (0x...)"),
):
    """Resolve and show ERC-20 token metadata."""
    from smart_account_client.wallet.tokens import TokenRegistry

    config = _load_config()
    chain = config.resolve_chain()

    async def _resolve():
        registry = TokenRegistry(config.token_descriptors())
        return await registry.resolve(token_address, _chain_client(config))

    try:
        descriptor = _run(_resolve())
    except WalletError as exc:
        _fail(exc)

    console.print(Panel(
        f"[bold]{descriptor.name}[/bold] ({descriptor.symbol})\n\n"
        f"Address:  [cyan]{descriptor.address}[/cyan]\n"
        f"Decimals: {descriptor.decimals}\n"
        f"Explorer: {chain.explorer_url}/token/{descriptor.address}",
        title="Token",
    ))


# ------------------------------------------------------------------
# encode
# ------------------------------------------------------------------


def _parse_cli_arg(param: AbiParam, text: str):
    abi_type = param.type
    if abi_type.startswith(("uint", "int")):
        try:
            return int(text, 0)
        except ValueError:
            return text
    if abi_type == "bool":
        return text.lower() in ("1", "true", "yes")
    if abi_type.startswith("bytes") and text.startswith("0x"):
        try:
            return bytes.fromhex(text[2:])
        except ValueError:
            return text
    return text


@app.command("encode")
def encode(
    function: str = typer.Argument(help="ERC-20 function name (transfer, approve, transferFrom, balanceOf)"),
    args: list[str] = typer.Argument(None, help="Positional arguments"),
):
    """Print the call data for an ERC-20 function call."""
    from smart_account_client.wallet.encoding import encode_call_hex

    args = args or []
    try:
        abi_function = erc20_function(function)
        parsed = [
            _parse_cli_arg(param, text)
            for param, text in zip(abi_function.inputs, args)
        ] + list(args[len(abi_function.inputs):])
        data = encode_call_hex(abi_function, parsed)
    except WalletError as exc:
        _fail(exc)

    console.print(f"[dim]{abi_function.signature}[/dim]")
    console.print(data, soft_wrap=True)
