"""CLI entrypoint for rental-vault."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any, Coroutine

import typer

from .allocation import SelectedAsset, allocate
from .checkout import build_withdrawal_requests
from .constants import (
    DEFAULT_GOERLI_RPC_URL,
    DEFAULT_MAINNET_RPC_URL,
    DEFAULT_MUMBAI_RPC_URL,
    DEFAULT_POLYGON_RPC_URL,
)
from .custody.vault import VaultReader
from .errors import RentalVaultError
from .formatter import (
    format_account_table,
    format_counts_table,
    format_page_table,
    format_quote_table,
)
from .index.alchemy import AlchemyAssetIndex
from .inventory.enumerator import CustodyEnumerator
from .logger import setup_logging
from .rpc.executor import ResilientCallExecutor
from .rpc.reader import Web3ContractReader
from .settings import Network, VaultSettings
from .state import AppState

NETWORK_RPC_DEFAULTS = {
    Network.MAINNET: DEFAULT_MAINNET_RPC_URL,
    Network.GOERLI: DEFAULT_GOERLI_RPC_URL,
    Network.POLYGON: DEFAULT_POLYGON_RPC_URL,
    Network.MUMBAI: DEFAULT_MUMBAI_RPC_URL,
}

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Custody vault inventory and withdrawal quoting tool.",
)

JsonOption = Annotated[bool, typer.Option("--json", help="Print raw JSON instead of tables.")]
ContractOption = Annotated[
    list[str] | None,
    typer.Option("--contract", help="Restrict to this collection address (repeatable)."),
]
PageOption = Annotated[int, typer.Option("--page", "-p", min=1, help="1-indexed page.")]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("rental_vault")


def _state(ctx: typer.Context) -> AppState:
    return ctx.ensure_object(dict)["state"]


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning library errors into a non-zero exit."""
    try:
        return asyncio.run(coro)
    except (RentalVaultError, ValueError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e


def _executor(settings: VaultSettings) -> ResilientCallExecutor:
    reader = Web3ContractReader.from_rpc_url(settings.rpc_url_required)
    return ResilientCallExecutor.from_settings(settings, reader)


def _enumerator(settings: VaultSettings) -> CustodyEnumerator:
    return CustodyEnumerator.from_settings(
        settings,
        settings.deployment(),
        AlchemyAssetIndex.from_settings(settings),
        _executor(settings),
    )


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def parse_selected_asset(value: str) -> SelectedAsset:
    """Parse ``ADDRESS:TOKEN_ID:FEE`` (fee in whole native units)."""
    parts = value.split(":")
    if len(parts) != 3:
        raise typer.BadParameter(
            f"expected ADDRESS:TOKEN_ID:FEE, got {value!r}", param_hint="--asset"
        )
    address, token_id, fee = parts
    try:
        return SelectedAsset(address=address, token_id=int(token_id), fee=fee)
    except ValueError as e:
        raise typer.BadParameter(f"invalid token id in {value!r}", param_hint="--asset") from e


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [rental_vault] table).",
        ),
    ] = None,
    network: Annotated[
        Network | None,
        typer.Option(
            "--network",
            "-n",
            help="Network to use (mainnet, goerli, polygon or mumbai).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="JSON-RPC endpoint; overrides the network default."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration and apply network-specific defaults."""
    if config_path:
        os.environ["RENTAL_VAULT_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Network | str] = {}
    if network is not None:
        init_kwargs["network"] = network
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = VaultSettings(**init_kwargs)
    if settings.rpc_url is None:
        settings.rpc_url = NETWORK_RPC_DEFAULTS[settings.network]

    setup_logging(settings.log_level)
    state = AppState(settings=settings, logger=_build_logger())

    if show_config:
        _echo_json(settings.as_safe_dict())
        raise typer.Exit(code=0)

    ctx.ensure_object(dict)["state"] = state


@app.command()
def page(
    ctx: typer.Context,
    owner: Annotated[str, typer.Argument(help="Wallet whose assets are listed.")],
    page_number: PageOption = 1,
    contract: ContractOption = None,
    as_json: JsonOption = False,
):
    """List one page of an owner's assets, split into available and locked."""
    settings = _state(ctx).settings
    enumerator = _enumerator(settings)
    result = _run(enumerator.list_page(owner, page_number, contract or None))
    if as_json:
        _echo_json(result.to_dict())
    else:
        format_page_table(result, settings.network_info["native_currency"]["symbol"])
    if result.is_partial:
        typer.secho(
            f"Warning: {len(result.failures)} item(s) excluded, page is partial.",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def count(
    ctx: typer.Context,
    owner: Annotated[str, typer.Argument(help="Wallet whose assets are counted.")],
    contract: ContractOption = None,
    as_json: JsonOption = False,
):
    """Count an owner's available and locked assets."""
    enumerator = _enumerator(_state(ctx).settings)
    counts = _run(enumerator.count_all(owner, contract or None))
    if as_json:
        _echo_json(
            {"available": counts.available, "locked": counts.locked, "total": counts.total}
        )
    else:
        format_counts_table(counts)


@app.command("vault-page")
def vault_page(
    ctx: typer.Context,
    contract: ContractOption = None,
    page_number: PageOption = 1,
    as_json: JsonOption = False,
):
    """List one page of the assets held by the vault itself."""
    settings = _state(ctx).settings
    enumerator = _enumerator(settings)
    result = _run(enumerator.list_custody_page(contract or [], page_number))
    if as_json:
        _echo_json(result.to_dict())
    else:
        format_page_table(result, settings.network_info["native_currency"]["symbol"])


@app.command("vault-count")
def vault_count(
    ctx: typer.Context,
    contract: ContractOption = None,
    as_json: JsonOption = False,
):
    """Count the assets held by the vault within the given collections."""
    enumerator = _enumerator(_state(ctx).settings)
    total = _run(enumerator.count_custody(contract or []))
    if as_json:
        _echo_json({"total": total})
    else:
        typer.echo(total)


@app.command()
def account(
    ctx: typer.Context,
    proxy_wallet: Annotated[str, typer.Argument(help="Proxy wallet to inspect.")],
    as_json: JsonOption = False,
):
    """Show rent credit, rental allowance and referral details of a proxy wallet."""
    settings = _state(ctx).settings
    deployment = settings.deployment()
    reader = VaultReader(deployment, _executor(settings))

    async def load():
        return await asyncio.gather(
            reader.credit_balance(proxy_wallet),
            reader.rental_allowance(proxy_wallet),
            reader.rent_durations(),
            reader.referer(proxy_wallet),
        )

    credit, allowance, durations, referer = _run(load())
    if as_json:
        _echo_json(
            {
                "proxy_wallet": proxy_wallet,
                "rent_credit": str(credit),
                "rental_allowance": str(allowance.remaining),
                "max_rental_amount": str(allowance.maximum),
                "min_rent_duration": durations.minimum,
                "max_rent_duration": durations.maximum,
                "referer": referer,
            }
        )
    else:
        format_account_table(
            proxy_wallet, credit, allowance, durations, referer, deployment.native_symbol
        )


@app.command()
def quote(
    ctx: typer.Context,
    proxy_wallet: Annotated[str, typer.Argument(help="Proxy wallet that pays and receives.")],
    assets: Annotated[
        list[str],
        typer.Option("--asset", "-a", help="ADDRESS:TOKEN_ID:FEE (repeatable, in order)."),
    ],
    credit: Annotated[
        str | None,
        typer.Option("--credit", help="Credit to spend; read from the vault when omitted."),
    ] = None,
    as_json: JsonOption = False,
):
    """Allocate credit and build the withdrawal requests without submitting them."""
    settings = _state(ctx).settings
    selected = [parse_selected_asset(value) for value in assets]
    deployment = settings.deployment()

    available_credit: Any = credit
    if available_credit is None:
        reader = VaultReader(deployment, _executor(settings))
        available_credit = _run(reader.credit_balance(proxy_wallet))

    try:
        allocation = allocate(
            selected, available_credit, decimals=deployment.native_decimals
        )
        requests = build_withdrawal_requests(deployment, proxy_wallet, allocation)
    except (RentalVaultError, ValueError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e

    if as_json:
        _echo_json(
            {
                "total_fee": str(allocation.total_fee),
                "credit_used": [str(c) for c in allocation.credit_used],
                "fees_after_credit": [str(f) for f in allocation.fees_after_credit],
                "remaining_credit": str(allocation.remaining_credit),
                "requests": [request.to_dict() for request in requests],
            }
        )
    else:
        format_quote_table(allocation, requests, deployment.native_symbol)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
