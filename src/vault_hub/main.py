"""CLI entrypoint for the vault hub."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from .adapters.ledger_adapters import Web3LedgerAdapter
from .adapters.signer_adapters import (
    BaseSigner,
    ConfirmingSigner,
    LocalAccountSigner,
    TransactionRequest,
)
from .constants import DEFAULT_MAINNET_RPC_URL
from .domain import MutationKind, MutationStatus
from .errors import InvalidConfigurationError, VaultHubError
from .logger import setup_logging
from .notifications import ConsoleNotificationSink
from .orchestrator import TransactionOrchestrator
from .processors import best_vault, projected_yield
from .report import generate_report, publish_report
from .settings import HubSettings, OutputFormat, RegistryPreset
from .state import AppState
from .units import parse_units

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Compare ERC-4626 yield vaults and manage deposits and withdrawals.",
)

console = Console()


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("vault_hub")


def _settings(ctx: typer.Context) -> HubSettings:
    return ctx.obj


def _build_state(settings: HubSettings, ledger: Web3LedgerAdapter | None = None) -> AppState:
    return AppState.from_settings(settings, _build_logger(), ledger=ledger)


@contextmanager
def _cli_errors() -> Iterator[None]:
    """Turn classified errors into a red message and exit code 1."""
    try:
        yield
    except VaultHubError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(code=1) from e


def _parse_decimal(value: str, name: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise InvalidConfigurationError(f"{name} must be a number, got {value!r}") from e


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [vault_hub] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="Ledger RPC endpoint; defaults to a public mainnet RPC."),
    ] = None,
    registry: Annotated[
        RegistryPreset | None,
        typer.Option("--registry", help="Vault preset used when the config lists no vaults."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat | None,
        typer.Option("--format", help="Report output: rich table or JSON."),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration shared by every command."""
    if config_path:
        os.environ["VAULT_HUB_CONFIG"] = str(config_path)

    init_kwargs: dict[str, object] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if registry is not None:
        init_kwargs["registry"] = registry
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()
    if output_format is not None:
        init_kwargs["output_format"] = output_format

    settings = HubSettings(**init_kwargs)
    if settings.rpc_url is None:
        settings.rpc_url = DEFAULT_MAINNET_RPC_URL

    setup_logging(settings.log_level)
    ctx.obj = settings

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def snapshot(ctx: typer.Context):
    """Refresh every vault and print the portfolio."""
    from .pipeline.run import run_refresh

    settings = _settings(ctx)
    with _cli_errors():
        state = _build_state(settings)
        result = asyncio.run(run_refresh(state))
        report = generate_report(result.snapshot, donations=settings.donation_breakdown)
    publish_report(report, settings.output_format, console)


@app.command()
def positions(
    ctx: typer.Context,
    wallet: Annotated[str, typer.Argument(help="Wallet address whose positions to read.")],
):
    """Refresh the portfolio and print a wallet's positions."""
    from .pipeline.run import run_refresh

    settings = _settings(ctx)
    with _cli_errors():
        state = _build_state(settings)
        result = asyncio.run(run_refresh(state, wallet=wallet))
        report = generate_report(
            result.snapshot,
            wallet=wallet,
            positions=result.positions,
            donations=settings.donation_breakdown,
        )
    publish_report(report, settings.output_format, console)


def _confirm_transaction(request: TransactionRequest) -> bool:
    return typer.confirm(f"Sign and send {request.label or 'transaction'} to {request.to}?")


async def _run_mutation(
    settings: HubSettings, kind: MutationKind, vault_ref: str, amount: str, yes: bool
) -> None:
    ledger = Web3LedgerAdapter.from_settings(settings)
    state = _build_state(settings, ledger=ledger)
    descriptor = state.registry.resolve(vault_ref)
    raw_amount = parse_units(amount, descriptor.decimals)

    signer: BaseSigner = LocalAccountSigner.from_settings(settings, ledger.w3)
    if not yes:
        signer = ConfirmingSigner(signer, _confirm_transaction)
    wallet = settings.wallet_address or signer.address

    orchestrator = TransactionOrchestrator(
        ledger,
        signer,
        aggregator=state.aggregator,
        positions=state.positions,
        sink=ConsoleNotificationSink(console),
        confirmation_timeout=settings.confirmation_timeout_seconds,
        logger=state.logger,
    )

    await state.aggregator.refresh()
    if kind is MutationKind.DEPOSIT:
        result = await orchestrator.deposit(descriptor, wallet, raw_amount)
    else:
        result = await orchestrator.withdraw(descriptor, wallet, raw_amount)

    match result.status:
        case MutationStatus.SUCCEEDED:
            console.print(
                f"[bold green]{kind.value.capitalize()} of {amount} "
                f"{descriptor.asset_symbol} confirmed[/] ({result.tx_hash})"
            )
        case MutationStatus.INDETERMINATE:
            console.print(
                f"[bold yellow]{kind.value.capitalize()} outcome unknown:[/] {result.reason}"
            )
            raise typer.Exit(code=1)
        case _:
            console.print(f"[bold red]{kind.value.capitalize()} failed:[/] {result.reason}")
            raise typer.Exit(code=1)


@app.command()
def deposit(
    ctx: typer.Context,
    vault: Annotated[str, typer.Argument(help="Vault address, share symbol or name.")],
    amount: Annotated[str, typer.Argument(help="Amount of the underlying asset, e.g. 100.5")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask before signing.")] = False,
):
    """Approve (if needed) and deposit into a vault."""
    settings = _settings(ctx)
    if not settings.private_key:
        raise typer.BadParameter(
            "private_key is required to sign transactions.",
            param_hint=["VAULT_HUB_PRIVATE_KEY"],
        )
    with _cli_errors():
        asyncio.run(_run_mutation(settings, MutationKind.DEPOSIT, vault, amount, yes))


@app.command()
def withdraw(
    ctx: typer.Context,
    vault: Annotated[str, typer.Argument(help="Vault address, share symbol or name.")],
    amount: Annotated[str, typer.Argument(help="Amount of the underlying asset to withdraw.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask before signing.")] = False,
):
    """Withdraw assets from a vault."""
    settings = _settings(ctx)
    if not settings.private_key:
        raise typer.BadParameter(
            "private_key is required to sign transactions.",
            param_hint=["VAULT_HUB_PRIVATE_KEY"],
        )
    with _cli_errors():
        asyncio.run(_run_mutation(settings, MutationKind.WITHDRAW, vault, amount, yes))


@app.command()
def project(
    ctx: typer.Context,
    principal: Annotated[str, typer.Argument(help="Amount invested.")],
    days: Annotated[str, typer.Argument(help="Holding period in days.")],
    apy: Annotated[
        float | None,
        typer.Option("--apy", help="APY in percent; defaults to the best vault's APY."),
    ] = None,
):
    """Project simple-interest yield for a principal over a number of days."""
    settings = _settings(ctx)
    with _cli_errors():
        source = "--apy"
        if apy is None:
            from .pipeline.run import run_refresh

            result = asyncio.run(run_refresh(_build_state(settings)))
            best = best_vault(result.snapshot)
            if best is None or best.apy is None:
                raise InvalidConfigurationError(
                    "No vault with a known APY; pass --apy explicitly"
                )
            apy, source = best.apy, best.name

        projected = projected_yield(
            _parse_decimal(principal, "principal"),
            Decimal(str(apy)),
            _parse_decimal(days, "days"),
        )

    if settings.output_format == OutputFormat.JSON:
        typer.echo(
            json.dumps(
                {
                    "principal": principal,
                    "days": days,
                    "apy": apy,
                    "apy_source": source,
                    "projected_yield": str(projected),
                },
                indent=2,
            )
        )
    else:
        console.print(
            f"Projected yield on {principal} over {days} days at {apy:.2f}% "
            f"([dim]{source}[/]): [bold green]{projected:,.2f}[/]"
        )


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
