"""ClaimCalc CLI.

Commands:
- init: Create the reserving tables
- seed-hod-codes: Load the standard Head of Damage codes
- hod-codes: List active HOD codes (optionally filtered)
- summary: Show a project's financial position
- serve: Run the JSON API
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from claimcalc.config import get_config
from claimcalc.core.logging import configure_logging
from claimcalc.db.connection import close_db, get_engine, get_session
from claimcalc.db.models import Base
from claimcalc.db.seed import seed_hod_codes
from claimcalc.reserving.calculator import format_currency
from claimcalc.reserving.service import ReservingService

app = typer.Typer(
    name="claimcalc",
    help="ClaimCalc - Reserving and damage assessment for property claims",
    no_args_is_help=True,
)

console = Console()

CLI_ACTOR = "claimcalc-cli"


@app.callback()
def main() -> None:
    configure_logging()


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        engine = get_engine()
        async with engine.begin() as conn:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            console.print("[green]Creating tables...[/green]")
            await conn.run_sync(Base.metadata.create_all)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="seed-hod-codes")
def seed_hod_codes_cmd():
    """Insert the standard HOD codes that are not already present."""

    async def _seed() -> int:
        async with get_session() as session:
            inserted = await seed_hod_codes(session)
        await close_db()
        return inserted

    inserted = asyncio.run(_seed())
    console.print(f"[bold green]✓[/bold green] Inserted {inserted} HOD codes")


@app.command(name="hod-codes")
def hod_codes_cmd(
    search: str | None = typer.Option(None, "--search", "-s", help="Filter by code, description or category"),
):
    """List active HOD codes with their typical rate bands."""
    config = get_config()

    async def _list():
        async with get_session() as session:
            service = ReservingService(session, CLI_ACTOR, config=config.reserving)
            codes = await service.list_hod_codes(search)
        await close_db()
        return codes

    codes = asyncio.run(_list())
    if not codes:
        console.print("[yellow]No HOD codes found[/yellow]")
        return

    table = Table(title="HOD Codes")
    table.add_column("Code", style="cyan")
    table.add_column("Description")
    table.add_column("Category")
    table.add_column("Rate", justify="right")
    table.add_column("Unit")
    currency = config.reserving.currency
    for code in codes:
        if code.typical_rate_low is not None and code.typical_rate_high is not None:
            rate = (
                f"{format_currency(code.typical_rate_low, currency)} - "
                f"{format_currency(code.typical_rate_high, currency)}"
            )
        else:
            rate = "-"
        table.add_row(code.code, code.description, code.category.value, rate, code.unit_type.value)
    console.print(table)


@app.command()
def summary(
    project_id: str = typer.Argument(..., help="Project (claim) identifier"),
):
    """Show the current reserve, damage totals and budget lines for a project."""
    config = get_config()

    async def _summary():
        async with get_session() as session:
            service = ReservingService(session, CLI_ACTOR, config=config.reserving)
            result = await service.project_summary(project_id)
        await close_db()
        return result

    result = asyncio.run(_summary())
    currency = result.currency

    for relation in result.missing_relations:
        console.print(f"[yellow]Table {relation} is not provisioned; run `claimcalc init`[/yellow]")

    table = Table(title=f"Project {project_id}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    reserve = result.current_reserve
    if reserve is None:
        table.add_row("Current reserve", "none")
    else:
        table.add_row("Current reserve", f"{reserve.reserve_type.value} ({reserve.status.value})")
        table.add_row("Estimated", format_currency(reserve.total_estimated, currency))
        table.add_row("Actual", format_currency(reserve.total_actual, currency))
        table.add_row("Variance", format_currency(reserve.total_variance, currency))
        if result.variance_percentage is not None:
            table.add_row("Variance %", f"{result.variance_percentage}% ({result.variance_indicator})")
    table.add_row("Reserves on file", str(result.reserve_count))
    table.add_row("Damage items", str(result.damage_item_count))
    table.add_row("Damage (net)", format_currency(result.damage_total_cost, currency))
    table.add_row("Damage VAT", format_currency(result.damage_total_vat, currency))
    table.add_row("Damage (gross)", format_currency(result.damage_total_including_vat, currency))
    table.add_row("PC sums allocated", format_currency(result.pc_sums.allocated, currency))
    table.add_row("PC sums remaining", format_currency(result.pc_sums.remaining, currency))
    table.add_row("Approved variations", format_currency(result.approved_variation_impact, currency))
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the JSON API with uvicorn."""
    import uvicorn

    uvicorn.run("claimcalc.web.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
