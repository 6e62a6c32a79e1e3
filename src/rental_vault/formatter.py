"""Rich console output for the CLI."""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .allocation import AllocationResult
from .checkout import TxRequest
from .custody.vault import RentalAllowance, RentDurations
from .inventory.models import Asset, CustodyCounts, InventoryPage
from .units import DecimalAmount, format_units


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    return f"{address[:10]}...{address[-4:]}"


def _asset_name(asset: Asset) -> str:
    name = asset.metadata.get("name") or asset.metadata.get("title")
    return str(name) if name else f"#{asset.token_id}"


def _asset_table(title: str, assets: list[Asset], native_symbol: str) -> Table:
    table = Table(title=title, expand=True, show_lines=False)
    table.add_column("Collection", style="cyan", no_wrap=True)
    table.add_column("Token", justify="right")
    table.add_column("Name")
    table.add_column(f"Value ({native_symbol})", justify="right", style="green")
    table.add_column(f"Price / Day ({native_symbol})", justify="right", style="yellow")
    table.add_column("Locked Until", justify="right", style="dim")

    for asset in assets:
        locked_until = (
            str(asset.custody.locked_until)
            if asset.custody is not None and asset.custody.is_locked
            else "-"
        )
        table.add_row(
            _truncate_address(asset.contract_address),
            str(asset.token_id),
            _asset_name(asset),
            str(asset.valuation.value),
            str(asset.valuation.price),
            locked_until,
        )
    return table


def format_page_table(
    page: InventoryPage, native_symbol: str, console: Console | None = None
) -> None:
    """Print the available and locked assets of one page."""
    console = console or Console()
    parts: list = [
        _asset_table("Available", page.available, native_symbol),
        "",
        _asset_table("Locked", page.locked, native_symbol),
    ]
    if page.failures:
        warnings = Text("\n".join(f.describe() for f in page.failures), style="yellow")
        parts += ["", Panel(warnings, title="[bold]Excluded (partial page)[/]", border_style="yellow")]

    console.print(
        Panel(
            Group(*parts),
            title=f"[bold white]Page {page.page} ({page.size}/{page.page_size})[/]",
            border_style="white",
        )
    )


def format_counts_table(counts: CustodyCounts, console: Console | None = None) -> None:
    console = console or Console()
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan", justify="right")
    table.add_row("Available", str(counts.available))
    table.add_row("Locked", str(counts.locked))
    table.add_row("[bold]Total[/]", f"[bold]{counts.total}[/]")
    console.print(Panel(table, title="[bold]Counts[/]", border_style="green"))


def format_account_table(
    proxy_wallet: str,
    credit: DecimalAmount,
    allowance: RentalAllowance,
    durations: RentDurations,
    referer: str | None,
    native_symbol: str,
    console: Console | None = None,
) -> None:
    console = console or Console()
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan")
    table.add_row("Proxy Wallet", proxy_wallet)
    table.add_row("Rent Credit", f"{credit} {native_symbol}")
    table.add_row(
        "Rental Allowance",
        f"{allowance.remaining} / {allowance.maximum} {native_symbol}",
    )
    table.add_row("Rent Duration", f"{durations.minimum}s - {durations.maximum}s")
    table.add_row("Referer", referer or "-")
    console.print(Panel(table, title="[bold]Account[/]", border_style="blue"))


def format_quote_table(
    allocation: AllocationResult,
    requests: list[TxRequest],
    native_symbol: str,
    console: Console | None = None,
) -> None:
    """Print the credit split and the encoded withdrawal requests."""
    console = console or Console()
    decimals = allocation.decimals

    table = Table(expand=True)
    table.add_column("Collection", style="cyan", no_wrap=True)
    table.add_column("Token", justify="right")
    table.add_column(f"Fee ({native_symbol})", justify="right", style="yellow")
    table.add_column(f"Credit Used ({native_symbol})", justify="right", style="green")
    table.add_column(f"Net ({native_symbol})", justify="right")
    for address, token_id, fee, used, net in zip(
        allocation.asset_addresses,
        allocation.token_ids,
        allocation.fees,
        allocation.credit_used,
        allocation.net_costs,
    ):
        table.add_row(
            _truncate_address(address),
            str(token_id),
            format_units(fee, decimals),
            format_units(used, decimals),
            format_units(net, decimals),
        )
    table.add_row(
        "[bold]TOTAL[/]",
        "",
        f"[bold]{allocation.total_fee}[/]",
        f"[bold]{allocation.total_credit_used}[/]",
        "",
        style="bold",
    )

    summary = Table(show_header=False, box=None, padding=(0, 1))
    summary.add_column("Key", style="dim")
    summary.add_column("Value", style="cyan")
    summary.add_row("Available Credit", f"{allocation.available_credit} {native_symbol}")
    summary.add_row("Remaining Credit", f"{allocation.remaining_credit} {native_symbol}")

    tx_parts: list = []
    for request in requests:
        tx_parts.append(
            Text(
                f"from={request.sender} to={request.to} value={request.value}",
                style="white",
            )
        )
        tx_parts.append(Text(request.data, style="dim", overflow="fold"))

    console.print(
        Panel(
            Group(
                table,
                "",
                summary,
                "",
                Panel(Group(*tx_parts), title="[bold]Requests[/]", border_style="dim"),
            ),
            title="[bold white]Withdrawal Quote (not submitted)[/]",
            border_style="white",
            padding=(1, 2),
        )
    )
