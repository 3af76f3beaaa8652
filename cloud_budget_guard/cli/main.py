"""
CLI interface for Cloud Budget Guard.

Loads billing records, prints cost breakdowns and checks budgets.
"""

import json
import logging
import sqlite3
import sys
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from cloud_budget_guard.config.loader import load_budget_config
from cloud_budget_guard.core.aggregation import (
    aggregate_by_region,
    aggregate_by_service,
    daily_series,
    total_cost,
)
from cloud_budget_guard.core.budget import BudgetStatus, BudgetStatusKind, evaluate_records
from cloud_budget_guard.core.currency import format_currency, format_percentage
from cloud_budget_guard.storage.db import DEFAULT_DB_PATH
from cloud_budget_guard.storage.models import BillingRecord, ValidationError, parse_iso_date
from cloud_budget_guard.storage.repository import (
    BillingRepository,
    initialize_schema,
    insert_billing_records,
)
from cloud_budget_guard.utils.logger import configure_logging

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

# Exit codes - WARNING status is non-failing
EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

FAILING_STATUSES = (BudgetStatusKind.CRITICAL, BudgetStatusKind.EXCEEDED)

STATUS_STYLES = {
    BudgetStatusKind.ON_TRACK: "green",
    BudgetStatusKind.WARNING: "yellow",
    BudgetStatusKind.CRITICAL: "red",
    BudgetStatusKind.EXCEEDED: "bold red",
}


class GroupBy(str, Enum):
    service = "service"
    region = "region"
    day = "day"


DB_OPTION = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the SQLite database")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also log to this file"),
):
    """Cloud Budget Guard CLI."""
    configure_logging("DEBUG" if verbose else "WARNING", log_file)
    if ctx.invoked_subcommand is None:
        console.print("Cloud Budget Guard - Use --help to see available commands")


@app.command()
def init(db: str = DB_OPTION):
    """Initialize the billing record database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Database initialized successfully")
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def load(
    file: Path = typer.Argument(..., help="JSON file containing an array of billing records"),
    db: str = DB_OPTION,
):
    """
    Load billing records from a JSON file.

    Every record is validated before anything is written; one bad record
    rejects the whole file.
    """
    try:
        with open(file, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        if not isinstance(payload, list):
            raise ValidationError("Billing file must contain a JSON array")

        records = []
        for index, item in enumerate(payload):
            try:
                records.append(BillingRecord.from_dict(item))
            except ValidationError as e:
                raise ValidationError(f"Record {index}: {e}")

        initialize_schema(db)
        count = insert_billing_records(records, db)
        console.print(f"[green]✓[/] Loaded {count} billing records")
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error loading billing records:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except sqlite3.Error as e:
        _print_database_error(e)
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def costs(
    by: GroupBy = typer.Option(GroupBy.service, "--by", "-b", help="Group costs by service, region or day"),
    start: Optional[str] = typer.Option(None, "--start", help="First day to include (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Last day to include (YYYY-MM-DD)"),
    service: Optional[List[str]] = typer.Option(None, "--service", "-s", help="Only include this service"),
    region: Optional[List[str]] = typer.Option(None, "--region", "-r", help="Only include this region"),
    db: str = DB_OPTION,
):
    """Print a cost breakdown of stored billing records."""
    try:
        repository = BillingRepository(db)
        records = repository.get_records(
            start=parse_iso_date(start, "start") if start else None,
            end=parse_iso_date(end, "end") if end else None,
            services=service,
            regions=region,
        )

        if not records:
            console.print("\n[bold yellow]No billing records found[/]")
            sys.exit(EXIT_CODE_PASS)

        if by == GroupBy.day:
            summaries = daily_series(records)
        elif by == GroupBy.region:
            summaries = aggregate_by_region(records)
        else:
            summaries = aggregate_by_service(records)

        table = Table(title=f"Costs by {by.value}")
        table.add_column(by.value.capitalize())
        table.add_column("Cost", justify="right")
        table.add_column("Share", justify="right")
        table.add_column("Records", justify="right")
        for summary in summaries:
            key = summary.key.isoformat() if isinstance(summary.key, date) else str(summary.key)
            table.add_row(
                key,
                format_currency(summary.total_cost),
                format_percentage(summary.percentage),
                str(summary.record_count),
            )
        console.print(table)
        console.print(f"[bold]Total:[/bold] {format_currency(total_cost(records))}")
    except ValidationError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except sqlite3.Error as e:
        _print_database_error(e)
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(
    config: Path = typer.Option(..., "--config", "-c", help="Budget configuration YAML"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation day (YYYY-MM-DD, default today)"),
    db: str = DB_OPTION,
):
    """Show the status of every active budget."""
    try:
        statuses = _evaluate_budgets(config, as_of, db)
    except sqlite3.Error as e:
        _print_database_error(e)
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_statuses(statuses)


@app.command()
def check(
    config: Path = typer.Option(..., "--config", "-c", help="Budget configuration YAML"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation day (YYYY-MM-DD, default today)"),
    enforced: bool = typer.Option(
        False,
        "--enforced",
        "-e",
        help="Exit with error code if any budget is critical or exceeded"
    ),
    db: str = DB_OPTION,
):
    """
    Check budgets and summarise the worst status.

    Warnings never fail the check. With --enforced, a critical or exceeded
    budget exits with code 1.
    """
    try:
        statuses = _evaluate_budgets(config, as_of, db)
    except sqlite3.Error as e:
        _print_database_error(e)
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    failing = [s for s in statuses if s.status in FAILING_STATUSES]
    warnings = [s for s in statuses if s.status == BudgetStatusKind.WARNING]

    for budget_status in failing + warnings:
        style = STATUS_STYLES[budget_status.status]
        console.print(
            f"[{style}]{budget_status.status.value.upper()}[/] {budget_status.budget_name}: "
            f"{format_percentage(budget_status.percentage_used)} of "
            f"{format_currency(budget_status.budget_amount)} used"
        )

    if not failing and not warnings:
        console.print(f"[green]✓[/] All {len(statuses)} budgets on track")

    if enforced and failing:
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_PASS)


def _print_database_error(error: sqlite3.Error) -> None:
    """Report a database failure, with a setup hint when the table is missing."""
    console.print(f"[red]Database error:[/] {str(error)}")
    if "no such table" in str(error).lower():
        console.print("Run `cloud-budget-guard init` to initialize the database, then load billing records")


def _evaluate_budgets(config_path: Path, as_of: Optional[str], db: str) -> List[BudgetStatus]:
    """Evaluate every active budget against the stored records."""
    budget_config = load_budget_config(str(config_path))
    day = parse_iso_date(as_of, "as-of") if as_of else date.today()

    repository = BillingRepository(db)
    records = repository.get_records(end=day)
    logger.debug("Evaluating budgets against %d records as of %s", len(records), day)

    return [
        evaluate_records(budget, records, day)
        for budget in budget_config.active_budgets()
    ]


def _display_statuses(statuses: List[BudgetStatus]) -> None:
    """Display budget statuses as a table."""
    if not statuses:
        console.print("\n[dim]No active budgets configured.[/]")
        return

    table = Table(title="Budget Status")
    table.add_column("Budget")
    table.add_column("Spend", justify="right")
    table.add_column("Budget", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Projected", justify="right")
    table.add_column("Days left", justify="right")
    table.add_column("Status")

    for s in statuses:
        style = STATUS_STYLES[s.status]
        table.add_row(
            s.budget_name,
            format_currency(s.current_spend),
            format_currency(s.budget_amount),
            format_percentage(s.percentage_used),
            format_currency(s.remaining_amount),
            format_currency(s.projected_spend),
            str(s.days_remaining),
            f"[{style}]{s.status.value}[/]",
        )
    console.print(table)


if __name__ == "__main__":
    app()
