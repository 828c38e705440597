"""Rich console formatter for portfolio reports."""

from __future__ import annotations

from decimal import Decimal

from rich.columns import Columns
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .generator import PortfolioReport


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    return f"{address[:10]}...{address[-4:]}"


def _format_amount(value: str, places: int = 4) -> str:
    return f"{Decimal(value):,.{places}f}"


def format_report_table(report: PortfolioReport, console: Console | None = None) -> None:
    """Print the portfolio dashboard.

    Args:
        report: The portfolio report to format
        console: Console to print to (stdout when omitted)
    """
    console = console or Console()

    summary_table = Table(show_header=False, box=None, padding=(0, 1))
    summary_table.add_column("Key", style="dim")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Total TVL", _format_amount(report.total_tvl, 2))
    summary_table.add_row("Yield Generated", _format_amount(report.total_yield_generated, 2))
    summary_table.add_row("Best Vault", report.best_vault or "[dim]<N/A>[/]")
    summary_table.add_row("Pass", str(report.pass_number))
    summary_panel = Panel(summary_table, title="[bold]Summary[/]", border_style="green")

    panels = [summary_panel]
    if report.wallet:
        wallet_table = Table(show_header=False, box=None, padding=(0, 1))
        wallet_table.add_column("Key", style="dim")
        wallet_table.add_column("Value", style="cyan")
        wallet_table.add_row("Wallet", _truncate_address(report.wallet))
        wallet_table.add_row("Portfolio Value", _format_amount(report.portfolio_value or "0", 2))
        wallet_table.add_row("Positions", str(len(report.positions)))
        panels.append(Panel(wallet_table, title="[bold]Wallet[/]", border_style="blue"))

    vault_table = Table(expand=True)
    vault_table.add_column("Vault", style="cyan", no_wrap=True)
    vault_table.add_column("Protocol", style="dim")
    vault_table.add_column("TVL", justify="right")
    vault_table.add_column("Yield Generated", justify="right", style="green")
    vault_table.add_column("APY", justify="right", style="yellow")
    for vault in report.vaults:
        vault_table.add_row(
            vault.name,
            vault.protocol,
            f"{_format_amount(vault.tvl, 2)} {vault.asset_symbol}",
            f"{_format_amount(vault.yield_generated)} {vault.asset_symbol}",
            f"{vault.apy:.2f}%" if vault.apy is not None else "[dim]<N/A>[/]",
        )
    for address, reason in report.failures.items():
        vault_table.add_row(
            f"[red]{_truncate_address(address)}[/]", f"[red]{escape(reason)}[/]", "-", "-", "-"
        )

    sections: list = [
        Columns(panels, equal=True, expand=True),
        "",
        Panel(vault_table, title="[bold]Vaults[/]", border_style="cyan"),
    ]

    if report.positions:
        position_table = Table(expand=True)
        position_table.add_column("Vault", style="cyan")
        position_table.add_column("Shares", justify="right", style="dim")
        position_table.add_column("Assets", justify="right", style="green")
        for position in report.positions:
            position_table.add_row(
                position.vault_name,
                _format_amount(position.shares),
                f"{_format_amount(position.assets)} {position.asset_symbol}",
            )
        sections += ["", Panel(position_table, title="[bold]Positions[/]", border_style="blue")]

    if report.donations:
        donation_table = Table(expand=True)
        donation_table.add_column("Category", style="magenta")
        donation_table.add_column("Amount", justify="right")
        donation_table.add_column("Share", justify="right", style="yellow")
        for donation in report.donations:
            donation_table.add_row(
                donation.category,
                _format_amount(donation.amount, 2),
                f"{donation.percentage}%",
            )
        sections += [
            "",
            Panel(donation_table, title="[bold]Donations[/]", border_style="magenta"),
        ]

    console.print()
    console.print(
        Panel(
            Group(*sections),
            title="[bold white]Vault Hub[/]",
            border_style="white",
            padding=(1, 2),
        )
    )
    console.print()
