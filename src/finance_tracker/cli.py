import typer
from pathlib import Path
from typing import Optional
from datetime import date

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from finance_tracker.aggregation.yodlee import YodleeClient, YodleeConfig
from finance_tracker.categorization import CategorizationEngine
from finance_tracker.categorization.categories import category_style, confidence_level
from finance_tracker.database.connection import DatabaseConfig, DatabaseManager
from finance_tracker.domain.models import Transaction
from finance_tracker.logger import setup_logging
from finance_tracker.parsers.factory import ParserFactory
from finance_tracker.repositories.sqlite_transaction_repository import SQLiteTransactionRepository
from finance_tracker.services.transaction_service import TransactionService

app = typer.Typer(
    name="finance-tracker",
    help="Track, import and categorize your personal finances",
    add_completion=False,
)

console = Console()

LEVEL_COLOURS = {"high": "green", "medium": "yellow", "low": "red", "unknown": "dim"}

class State:
    verbose: bool = False
    service: Optional[TransactionService] = None


state = State()

@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Path to the SQLite database (defaults to $FINANCE_TRACKER_DB)",
    ),
):
    """
    Finance Tracker - Import, categorize, and analyze your transactions.
    """
    setup_logging("DEBUG" if verbose else None)

    if state.service is None:
        if not ParserFactory.get_available_sources():
            ParserFactory.load_parsers_from_config()
        db_manager = DatabaseManager(DatabaseConfig(db_path))
        db_manager.initialize_schema()
        repository = SQLiteTransactionRepository(db_manager)
        state.service = TransactionService(repository)

    state.verbose = verbose


def _fail(e: Exception):
    console.print(f"[bold red]Error:[/bold red] {e}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)


def _format_category(category: str) -> str:
    icon, colour = category_style(category)
    return f"[{colour}]{icon} {category}[/{colour}]"


def _format_confidence(confidence: Optional[float]) -> str:
    level = confidence_level(confidence)
    colour = LEVEL_COLOURS[level]
    value = "-" if confidence is None else f"{confidence:.2f}"
    return f"[{colour}]{value} ({level})[/{colour}]"


def _format_amount(txn: Transaction) -> str:
    amount_colour = "green" if txn.amount > 0 else "red"
    return f"[{amount_colour}]{txn.amount:,.2f}[/{amount_colour}]"


@app.command(name="import")
def import_transactions(
    filepath: Path = typer.Argument(
        ...,
        help="Path to the statement file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    source: str = typer.Option(
        "csv",
        "--source", "-s",
        help="Import source (csv)"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Preview without saving to database",
    ),
    categorize: bool = typer.Option(
        True,
        "--categorize/--no-categorize",
        help="Categorize transactions as they are being imported",
    ),
):
    """
    Import transactions from a statement file.

    Examples:
        finance-tracker import transactions.csv
        finance-tracker import transactions.csv --dry-run
        finance-tracker import transactions.csv --no-categorize
    """
    try:
        console.print(Panel.fit(
            f"[bold cyan]Import Configuration[/bold cyan]\n"
            f"File: {filepath}\n"
            f"Source: {source.upper()}\n"
            f"Mode: {'DRY RUN' if dry_run else 'LIVE'}\n"
            f"Categorize: {'YES' if categorize else 'NO'}",
            border_style="cyan"
        ))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Importing transactions...", total=None)

            result = state.service.import_statement(
                filepath=filepath,
                source=source,
                dry_run=dry_run,
                categorize=categorize
            )

            progress.update(task, completed=True)

        console.print(f"\n[bold]Found {result.total_parsed} transactions[/bold]")

        if result.imported or result.skipped:
            preview_table = Table(title="Preview (first 10)")
            preview_table.add_column("Date", style="cyan")
            preview_table.add_column("Description", style="white")
            preview_table.add_column("Category")
            preview_table.add_column("Confidence", justify="right")
            preview_table.add_column("Amount", justify="right")
            preview_table.add_column("Status", justify="center")

            new_ids = {id(t) for t in result.imported}
            for txn in (result.imported + result.skipped)[:10]:
                status = "[green]NEW[/green]" if id(txn) in new_ids else "[yellow]DUP[/yellow]"
                preview_table.add_row(
                    str(txn.date),
                    txn.description[:40],
                    _format_category(txn.category),
                    _format_confidence(txn.confidence),
                    _format_amount(txn),
                    status
                )

            console.print("\n")
            console.print(preview_table)

        console.print("")
        if dry_run:
            console.print("[yellow]DRY RUN - No changes made[/yellow]")
            console.print(f"[green]✓[/green] Would import: {result.new_transactions}")
            console.print(f"[yellow]⏭️[/yellow]  Would skip: {result.duplicates_skipped}")
        else:
            console.print(f"[bold green]✓ Imported {result.new_transactions} new transactions[/bold green]")
            if result.categorized:
                console.print(f"[magenta]🏷️  Categorized {result.categorized}[/magenta]")
            if result.duplicates_skipped > 0:
                console.print(f"[yellow]⏭️  Skipped {result.duplicates_skipped} duplicates[/yellow]")

    except Exception as e:
        _fail(e)


@app.command(name="sync")
def sync(
    login_name: str = typer.Argument(..., help="Yodlee user login name"),
    start_date: str = typer.Option(..., "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD), defaults to today"),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Preview without saving to database",
    ),
):
    """
    Pull categorized transactions from Yodlee (settings from YODLEE_* env vars).

    Examples:
        finance-tracker sync sbMem123 --from 2025-01-01
    """
    try:
        with YodleeClient(YodleeConfig.from_env()) as client:
            result = state.service.import_from_aggregator(
                client=client,
                login_name=login_name,
                from_date=date.fromisoformat(start_date),
                to_date=date.fromisoformat(end_date) if end_date else date.today(),
                dry_run=dry_run,
            )

        verb = "Would import" if dry_run else "Imported"
        console.print(f"[bold green]✓ {verb} {result.new_transactions} transactions[/bold green]")
        if result.duplicates_skipped > 0:
            console.print(f"[yellow]⏭️  Skipped {result.duplicates_skipped} duplicates[/yellow]")
    except Exception as e:
        _fail(e)


@app.command(name="link")
def link(
    login_name: str = typer.Argument(..., help="Yodlee user login name"),
    email: Optional[str] = typer.Option(None, "--email", help="Email used when registering a new user"),
    container_id: str = typer.Option("container-fastlink", "--container", help="FastLink iframe container id"),
):
    """
    Print the FastLink configuration for linking bank accounts.

    Registers the user with Yodlee first if needed.
    """
    try:
        with YodleeClient(YodleeConfig.from_env()) as client:
            client.ensure_user(login_name, email=email)
            token = client.get_fastlink_token(login_name)
            fastlink_config = client.generate_fastlink_config(login_name, token, container_id)

        console.print_json(data=fastlink_config)
    except Exception as e:
        _fail(e)


@app.command(name="classify")
def classify(
    description: str = typer.Argument(..., help="Transaction description"),
    amount: Optional[float] = typer.Option(
        None,
        "--amount", "-a",
        help="Transaction amount (sign is ignored)",
    ),
):
    """
    Show which category a description would get.

    Examples:
        finance-tracker classify "WOOLWORTHS SANDTON" --amount 1247.50
    """
    try:
        result = state.service.categorization_engine.classify(description, amount)
        console.print(
            f"{_format_category(result.category)}  "
            f"confidence {_format_confidence(result.confidence)}"
        )
    except Exception as e:
        _fail(e)


@app.command(name="recategorize")
def recategorize(
    start_date: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
):
    """
    Re-run categorization over stored transactions.

    Only replaces categories with a strictly more confident result.
    """
    try:
        count = state.service.recategorize_transactions(
            start_date=date.fromisoformat(start_date) if start_date else None,
            end_date=date.fromisoformat(end_date) if end_date else None,
        )
        console.print(f"[bold green]✓ Updated {count} transactions[/bold green]")
    except Exception as e:
        _fail(e)


@app.command(name="set-category")
def set_category(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    category: str = typer.Argument(..., help="New category"),
):
    """Manually set a transaction's category."""
    try:
        txn = state.service.set_category(transaction_id, category)
        console.print(
            f"[bold green]✓[/bold green] {txn.description[:40]} → {_format_category(txn.category)}"
        )
    except Exception as e:
        _fail(e)


@app.command(name="rules")
def rules():
    """List the active categorization rules in priority order."""
    try:
        engine: CategorizationEngine = state.service.categorization_engine

        table = Table(title="Categorization Rules")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Category")
        table.add_column("Base", justify="right")
        table.add_column("Patterns", justify="right")
        table.add_column("Keywords")
        table.add_column("Amount boosts")

        for priority, rule in enumerate(engine.rules, start=1):
            boosts = ", ".join(
                f"{r.min or 0:g}-{r.max if r.max is not None else '∞'}: +{r.boost:g}"
                for r in rule.amount_ranges
            )
            table.add_row(
                str(priority),
                _format_category(rule.category),
                f"{rule.base_confidence:.2f}",
                str(len(rule.patterns)),
                ", ".join(rule.keywords),
                boosts or "-",
            )

        console.print(table)
    except Exception as e:
        _fail(e)


@app.command(name="report")
def report(
    month: Optional[int] = typer.Option(
        None,
        "--month", "-m",
        help="Month (1-12)",
        min=1,
        max=12
    ),
    year: Optional[int] = typer.Option(
        None,
        "--year", "-y",
        help="Year",
    ),
):
    """
    Generate a monthly report.

    Examples:
        finance-tracker report
        finance-tracker report --month 5 --year 2025
    """
    try:
        today = date.today()
        summary = state.service.get_monthly_summary(
            year=year or today.year,
            month=month or today.month,
        )

        month_name = summary.start_date.strftime("%B %Y")
        console.print(f"\n[bold cyan]Monthly Report: {month_name}[/bold cyan]")

        if summary.total_transactions == 0:
            console.print(Panel(
                "[yellow]No transactions found for this month[/yellow]",
                title="Empty Report",
                border_style="yellow"
            ))
            return

        summary_text = (
            f"[bold]Transactions:[/bold] {summary.total_transactions}\n\n"
            f"[red]💸 Expenses:[/red]  {summary.total_debits:>12,.2f}\n"
            f"[green]💰 Income:[/green]    {summary.total_credits:>12,.2f}\n"
            f"{'─' * 30}\n"
        )
        net_colour = "green" if summary.net_flow >= 0 else "red"
        net_icon = "📈" if summary.net_flow >= 0 else "📉"
        summary_text += f"[bold {net_colour}]{net_icon} Net:[/bold {net_colour}]      {summary.net_flow:>12,.2f}"

        console.print(Panel(
            summary_text,
            title=f"[bold]{month_name} Summary[/bold]",
            border_style="cyan",
            padding=(1, 2)
        ))

        if summary.debits:
            console.print("\n[bold]Top Spending Categories[/bold]")

            category_table = Table(show_header=True, box=None, padding=(0, 2))
            category_table.add_column("Category", no_wrap=True)
            category_table.add_column("Amount", justify="right", style="red")
            category_table.add_column("% of Total", justify="right", style="dim")

            for category, amount in summary.top_spending_categories[:10]:
                percentage = (amount / summary.total_debits * 100) if summary.total_debits > 0 else 0
                category_table.add_row(
                    _format_category(category),
                    f"{amount:,.2f}",
                    f"{percentage:.1f}%"
                )

            console.print(category_table)

        console.print("\n[bold]Recent Transactions[/bold]")

        all_transactions = sorted(
            summary.debits + summary.credits,
            key=lambda t: t.date,
            reverse=True,
        )

        txn_table = Table(show_header=True, padding=(0, 1))
        txn_table.add_column("Date", style="cyan", width=12)
        txn_table.add_column("Description", style="white", max_width=40)
        txn_table.add_column("Category", width=20)
        txn_table.add_column("Confidence", justify="right")
        txn_table.add_column("Account", justify="right", width=12)
        txn_table.add_column("Amount", justify="right", width=12)

        for txn in all_transactions[:15]:
            desc = txn.description[:37] + "..." if len(txn.description) > 40 else txn.description
            txn_table.add_row(
                str(txn.date),
                desc,
                _format_category(txn.category),
                _format_confidence(txn.confidence),
                txn.account_id,
                _format_amount(txn),
            )

        console.print(txn_table)

        if len(all_transactions) > 15:
            console.print(f"\n[dim]Showing 15 of {len(all_transactions)} transactions[/dim]")

    except Exception as e:
        _fail(e)


@app.command(name="clear")
def clear(
    everything: bool = typer.Option(
        False,
        "--all",
        help="Remove every transaction, not only imported ones",
    ),
):
    """Remove imported transactions (or all of them with --all)."""
    try:
        if everything:
            removed = state.service.clear_all_data()
        else:
            removed = state.service.clear_imported_data()
        console.print(f"[bold green]✓ Removed {removed} transactions[/bold green]")
    except Exception as e:
        _fail(e)


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
