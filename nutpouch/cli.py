"""nutpouch CLI - inspect a Cashu proof file and check mint health."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import WalletSettings, configure_logging, load_settings
from .denominations import suggest_denominations
from .errors import WalletError
from .health import check_wallet_health
from .history import TransactionStore, format_transaction
from .proofs import format_balance, summarize_proofs
from .selectors import get_selector
from .storage import JSONFileStorage
from .token import parse_token
from .wallet import Wallet

app = typer.Typer(
    name="pouch",
    help="nutpouch - Cashu proof wallet tools",
    rich_markup_mode="markdown",
)
console = Console()


def handle_wallet_error(e: Exception) -> None:
    """Print errors with a user-friendly message."""
    if isinstance(e, WalletError):
        console.print(f"[red]❌ {e.user_message}[/red]")
        if e.suggestion:
            console.print(f"[dim]💡 {e.suggestion}[/dim]")
    else:
        console.print(f"[red]❌ Error: {e}[/red]")


def _settings(ctx: typer.Context) -> WalletSettings:
    return ctx.obj


async def _open_wallet(settings: WalletSettings) -> Wallet:
    wallet = Wallet(
        settings.mint_url or "",
        JSONFileStorage(settings.wallet_file),
        selector=get_selector(settings.selector),
        unit=settings.unit,
    )
    await wallet.load()
    return wallet


@app.callback()
def main(
    ctx: typer.Context,
    wallet_file: Annotated[
        Optional[Path],
        typer.Option("--wallet-file", "-w", help="JSON file holding the proofs"),
    ] = None,
    mint_url: Annotated[
        Optional[str], typer.Option("--mint", "-m", help="Mint URL")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Verbose logging")] = False,
) -> None:
    """nutpouch - Cashu proof wallet tools.

    Settings come from the environment or a .env file in the current
    directory: NUTPOUCH_MINT_URL (or CASHU_MINTS), NUTPOUCH_UNIT,
    NUTPOUCH_SELECTOR, NUTPOUCH_WALLET_FILE, NUTPOUCH_HISTORY_FILE,
    NUTPOUCH_HEALTH_TIMEOUT_MS, NUTPOUCH_DEBUG.
    """
    try:
        settings = load_settings()
    except ValueError as e:
        console.print(f"[red]❌ Invalid configuration: {e}[/red]")
        raise typer.Exit(1)

    if wallet_file is not None:
        settings.wallet_file = wallet_file
    if mint_url is not None:
        settings.mint_url = mint_url.rstrip("/")
    settings.debug = settings.debug or debug

    configure_logging(settings.debug)
    ctx.obj = settings


@app.command()
def balance(
    ctx: typer.Context,
    details: Annotated[
        bool, typer.Option("--details", "-d", help="Show breakdown by keyset")
    ] = False,
) -> None:
    """Show the wallet balance."""
    settings = _settings(ctx)

    async def _balance() -> None:
        wallet = await _open_wallet(settings)
        console.print(
            f"[green]✅ Balance: {format_balance(wallet.balance, unit=wallet.unit)}[/green] "
            f"[dim]({len(wallet.proofs)} proofs)[/dim]"
        )
        if details and wallet.proofs:
            summary = summarize_proofs(wallet.proofs)
            table = Table(title="Proofs by keyset")
            table.add_column("Keyset", style="cyan")
            table.add_column("Proofs", justify="right")
            table.add_column("Balance", justify="right", style="green")
            for keyset_id, keyset in summary.by_keyset.items():
                table.add_row(keyset_id, str(keyset.proof_count), str(keyset.balance))
            console.print(table)

    try:
        asyncio.run(_balance())
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


@app.command()
def preview(
    ctx: typer.Context,
    amount: Annotated[int, typer.Argument(help="Amount to send")],
) -> None:
    """Show which proofs creating a token would use, without spending them."""
    settings = _settings(ctx)

    async def _preview() -> None:
        wallet = await _open_wallet(settings)
        result = wallet.preview_token(amount)
        if not result.can_create:
            console.print(f"[red]❌ {result.issue}[/red]")
            if result.suggestion:
                console.print(f"[dim]💡 {result.suggestion}[/dim]")
            raise typer.Exit(1)

        amounts = ", ".join(str(p["amount"]) for p in result.selected_proofs)
        console.print(f"[green]✅ Can send {amount}[/green]")
        console.print(f"  Proofs: [{amounts}] = {result.selected_total}")
        console.print(f"  Change: {result.change}")
        console.print(f"  Needs swap: {'yes' if result.needs_swap else 'no'}")

    try:
        asyncio.run(_preview())
    except typer.Exit:
        raise
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


@app.command()
def analyze(
    ctx: typer.Context,
    amount: Annotated[int, typer.Argument(help="Amount to pay")],
) -> None:
    """Analyze whether an amount can be paid exactly."""
    settings = _settings(ctx)

    async def _analyze() -> None:
        wallet = await _open_wallet(settings)
        analysis = wallet.analyze_payment(amount)
        if not analysis.can_afford:
            console.print(
                f"[red]❌ Cannot afford {amount} (balance {analysis.total_balance})[/red]"
            )
            raise typer.Exit(1)

        console.print(f"Exact payment: {'yes' if analysis.can_pay_exact else 'no'}")
        console.print(f"Selected total: {analysis.selected_total}")
        console.print(f"Change: {analysis.change_amount}")
        console.print(f"Efficiency: {analysis.efficiency:.0%}")

    try:
        asyncio.run(_analyze())
    except typer.Exit:
        raise
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


@app.command()
def denominations(ctx: typer.Context) -> None:
    """Report the health of the wallet's denomination mix."""
    settings = _settings(ctx)

    async def _denominations() -> None:
        wallet = await _open_wallet(settings)
        health = wallet.denomination_health()

        color = "green" if health.score >= 70 else "yellow" if health.score >= 40 else "red"
        console.print(f"[{color}]Score: {health.score}/100[/{color}]")

        if health.denomination_counts:
            table = Table(title="Denominations")
            table.add_column("Amount", justify="right", style="cyan")
            table.add_column("Count", justify="right")
            for denom in health.denominations:
                table.add_row(str(denom), str(health.denomination_counts[denom]))
            console.print(table)

        payable = ", ".join(str(a) for a in health.exact_payable_amounts) or "none"
        console.print(f"Exactly payable: {payable}")
        for recommendation in health.recommendations:
            console.print(f"[yellow]• {recommendation}[/yellow]")

    try:
        asyncio.run(_denominations())
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


@app.command()
def suggest(
    balance: Annotated[int, typer.Argument(help="Balance to split")],
) -> None:
    """Suggest the ideal power-of-two breakdown of a balance."""
    split = suggest_denominations(balance)
    if not split:
        console.print("[yellow]Nothing to split[/yellow]")
        return
    parts = " + ".join(
        f"{denom}" if count == 1 else f"{count}×{denom}" for denom, count in split.items()
    )
    console.print(f"{balance} = {parts}")


@app.command("defrag-stats")
def defrag_stats(ctx: typer.Context) -> None:
    """Show how fragmented the wallet is."""
    settings = _settings(ctx)

    async def _defrag_stats() -> None:
        wallet = await _open_wallet(settings)
        stats = wallet.get_defrag_stats()
        console.print(f"Proofs: {stats.proof_count}")
        console.print(f"Fragmentation: {stats.fragmentation:.0%}")
        console.print(f"Small proofs: {stats.small_proof_count}")
        console.print(f"Estimated proofs after defragmentation: {stats.estimated_new_proof_count}")
        console.print(f"Recommendation: [bold]{stats.recommendation}[/bold]")

    try:
        asyncio.run(_defrag_stats())
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


@app.command()
def decode(
    token: Annotated[str, typer.Argument(help="cashuA or cashuB token")],
) -> None:
    """Decode a Cashu token and show its contents."""
    try:
        info = parse_token(token)
    except ValueError as e:
        console.print(f"[red]❌ Invalid token: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"Version: V{info.version}")
    console.print(f"Mint: {info.mint}")
    console.print(f"Amount: {format_balance(info.amount, unit=info.unit)}")
    console.print(f"Proofs: {info.proof_count}")
    if info.memo:
        console.print(f"Memo: {info.memo}")


@app.command()
def history(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Records to show")] = 20,
    type_: Annotated[
        Optional[list[str]],
        typer.Option("--type", "-t", help="send, receive, mint or swap"),
    ] = None,
) -> None:
    """Show recorded transactions, newest first."""
    settings = _settings(ctx)
    if settings.history_file is None:
        console.print("[yellow]NUTPOUCH_HISTORY_FILE is not set[/yellow]")
        raise typer.Exit(1)
    if not settings.history_file.exists():
        console.print("[yellow]No transactions recorded yet[/yellow]")
        return

    try:
        data = json.loads(settings.history_file.read_text(encoding="utf-8"))
        store = TransactionStore.deserialize(data)
    except (ValueError, KeyError, TypeError) as e:
        console.print(f"[red]❌ Could not read history: {e}[/red]")
        raise typer.Exit(1)

    result = store.query(types=type_, limit=limit)  # type: ignore[arg-type]
    table = Table(title=f"Transactions ({result.total})")
    table.add_column("Date", style="dim")
    table.add_column("Transaction")
    table.add_column("Status")
    table.add_column("Memo")
    for record in result.records:
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M"),
            format_transaction(record),
            record.status,
            record.memo or "",
        )
    console.print(table)
    if result.has_more:
        console.print(f"[dim]... {result.total - len(result.records)} more[/dim]")


@app.command()
def health(
    ctx: typer.Context,
    skip_proofs: Annotated[
        bool, typer.Option("--skip-proofs", help="Only check mint connectivity")
    ] = False,
) -> None:
    """Check mint connectivity and which proofs are still unspent."""
    settings = _settings(ctx)
    if not settings.mint_url:
        console.print("[red]❌ No mint configured. Set NUTPOUCH_MINT_URL or use --mint.[/red]")
        raise typer.Exit(1)
    mint_url = settings.mint_url

    async def _health() -> None:
        wallet = await _open_wallet(settings)
        console.print(f"[blue]Checking {mint_url}...[/blue]")
        report = await check_wallet_health(
            mint_url,
            wallet.proofs,
            timeout_ms=settings.health_timeout_ms,
            skip_proof_check=skip_proofs,
        )

        color = "green" if report.score >= 70 else "yellow" if report.score >= 40 else "red"
        console.print(f"[{color}]Health score: {report.score}/100[/{color}]")
        if report.mint.reachable:
            console.print(f"Mint latency: {report.mint.latency_ms}ms")
        console.print(
            f"Proofs: {report.proofs.valid} valid, {report.proofs.spent} spent, "
            f"{report.proofs.unknown} unknown"
        )
        for issue in report.issues:
            console.print(f"[yellow]• {issue}[/yellow]")

    try:
        asyncio.run(_health())
    except Exception as e:
        handle_wallet_error(e)
        raise typer.Exit(1)


def cli() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
